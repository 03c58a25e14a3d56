# path: trackmap/storage/route_store.py

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol
import json
import logging
import threading

from pydantic import TypeAdapter, ValidationError

from trackmap.errors import DuplicateRoute, RouteNotFound, StorageError
from trackmap.models.route_models import Route


logger = logging.getLogger(__name__)

_routes_adapter = TypeAdapter(List[Route])


class RouteStore(Protocol):
    def add_routes(self, routes: Iterable[Route]) -> None: ...

    def get_all(self) -> List[Route]: ...

    def get_by_period(self, period_key: str) -> List[Route]: ...

    def delete(self, route_id: str) -> None: ...

    def get(self, route_id: str) -> Optional[Route]: ...

    def clear(self) -> None: ...


class InMemoryRouteStore:
    """Dict-backed store. add_routes is all-or-nothing."""

    def __init__(self, routes: Iterable[Route] = ()):
        self._lock = threading.RLock()
        self._routes: Dict[str, Route] = {}
        InMemoryRouteStore.add_routes(self, routes)

    def add_routes(self, routes: Iterable[Route]) -> None:
        routes = list(routes)
        with self._lock:
            incoming = set()
            for route in routes:
                if route.id in self._routes or route.id in incoming:
                    raise DuplicateRoute(route.id)
                incoming.add(route.id)
            for route in routes:
                self._routes[route.id] = route

    def get_all(self) -> List[Route]:
        with self._lock:
            return list(self._routes.values())

    def get_by_period(self, period_key: str) -> List[Route]:
        with self._lock:
            return [r for r in self._routes.values() if r.period_key == period_key]

    def get(self, route_id: str) -> Optional[Route]:
        with self._lock:
            return self._routes.get(route_id)

    def delete(self, route_id: str) -> None:
        with self._lock:
            if route_id not in self._routes:
                raise RouteNotFound(route_id)
            del self._routes[route_id]

    def clear(self) -> None:
        with self._lock:
            self._routes.clear()


class JsonFileRouteStore(InMemoryRouteStore):
    """
    In-memory store mirrored to a JSON file holding a list of Route records.

    Every write rewrites the whole file; a failed write rolls the in-memory
    state back and raises StorageError. Snapshot, mutation and flush of one
    write run under a single hold of the store lock.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> List[Route]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            routes = _routes_adapter.validate_python(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Could not read route store {self.path}: {e}")
            raise StorageError(f"Could not read route store {self.path}: {e}") from e
        logger.info(f"Loaded {len(routes)} routes from {self.path}")
        return routes

    def _flush(self, snapshot: Dict[str, Route]) -> None:
        # caller holds self._lock
        payload = _routes_adapter.dump_json(self.get_all(), indent=2)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(payload)
            tmp.replace(self.path)
        except OSError as e:
            self._routes = snapshot
            logger.error(f"Could not write route store {self.path}: {e}")
            raise StorageError(f"Could not write route store {self.path}: {e}") from e

    def add_routes(self, routes: Iterable[Route]) -> None:
        with self._lock:
            snapshot = dict(self._routes)
            super().add_routes(routes)
            self._flush(snapshot)

    def delete(self, route_id: str) -> None:
        with self._lock:
            snapshot = dict(self._routes)
            super().delete(route_id)
            self._flush(snapshot)

    def clear(self) -> None:
        with self._lock:
            snapshot = dict(self._routes)
            super().clear()
            self._flush(snapshot)
