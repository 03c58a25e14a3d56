# path: trackmap/services/map_surface.py

"""
Map surface contract and an in-memory implementation.

The surface draws nothing itself here: it holds the rendered set that a
widget (or an HTTP client) consumes, and the viewport that widget reports.
"""

from __future__ import annotations

from typing import Callable, Dict, Hashable, List, Optional, Protocol, Tuple
import logging
import threading

from trackmap.models.render_models import RenderItem
from trackmap.utils.geo import BBox


logger = logging.getLogger(__name__)

ViewportListener = Callable[[BBox, float], None]


class MapSurface(Protocol):
    def replace_all(self, items: List[RenderItem]) -> None: ...

    def viewport(self) -> Tuple[BBox, float]: ...

    def subscribe(self, listener: ViewportListener) -> Callable[[], None]: ...


class InMemoryMapSurface:
    def __init__(self, bbox: BBox = (0.0, 0.0, 0.0, 0.0), zoom: float = 12.0):
        self._lock = threading.Lock()
        self._bbox = bbox
        self._zoom = zoom
        self._items: Dict[str, RenderItem] = {}
        self._listeners: List[ViewportListener] = []
        self.replace_count = 0

    def replace_all(self, items: List[RenderItem]) -> None:
        incoming = {item.id: item for item in items}
        with self._lock:
            removed = [rid for rid in self._items if rid not in incoming]
            self._items = incoming
            self.replace_count += 1
        if removed:
            logger.debug(f"Removed {len(removed)} routes from surface")

    def rendered(self) -> List[RenderItem]:
        with self._lock:
            return list(self._items.values())

    def viewport(self) -> Tuple[BBox, float]:
        with self._lock:
            return self._bbox, self._zoom

    def set_viewport(self, bbox: BBox, zoom: float) -> None:
        """Pan/zoom/resize: store the new view and notify listeners."""
        with self._lock:
            self._bbox = tuple(bbox)
            self._zoom = zoom
            listeners = list(self._listeners)
        for listener in listeners:
            listener(self._bbox, zoom)

    def subscribe(self, listener: ViewportListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe


class RenderOwner(Protocol):
    def attach(self) -> None: ...

    def detach(self) -> None: ...


class SurfaceRegistry:
    """
    Surfaces keyed by a stable host handle, each with at most one render owner.

    attach_or_reuse() is idempotent per handle. The registry's one-time setup
    runs under a lock and signals readiness through an Event.
    """

    def __init__(self, initializer: Optional[Callable[[], None]] = None):
        self._initializer = initializer
        self._init_lock = threading.Lock()
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._surfaces: Dict[Hashable, InMemoryMapSurface] = {}
        self._owners: Dict[Hashable, RenderOwner] = {}

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def ensure_ready(self) -> None:
        if self._ready.is_set():
            return
        with self._init_lock:
            if self._ready.is_set():
                return
            if self._initializer is not None:
                self._initializer()
            self._ready.set()
            logger.info("Map surface registry ready")

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def attach_or_reuse(
        self,
        host_handle: Hashable,
        factory: Callable[[], InMemoryMapSurface] = InMemoryMapSurface,
    ) -> InMemoryMapSurface:
        self.ensure_ready()
        with self._lock:
            surface = self._surfaces.get(host_handle)
            if surface is None:
                surface = factory()
                self._surfaces[host_handle] = surface
                logger.info(f"Attached map surface for host {host_handle!r}")
            return surface

    def set_owner(self, host_handle: Hashable, owner: RenderOwner) -> None:
        """
        Make `owner` the only renderer attached to the handle's surface.

        A previous owner is detached before the new one attaches.
        """
        with self._lock:
            previous = self._owners.get(host_handle)
            if previous is owner:
                return
            if previous is not None:
                previous.detach()
                logger.info(f"Replaced render owner for host {host_handle!r}")
            self._owners[host_handle] = owner
            owner.attach()

    def owner(self, host_handle: Hashable) -> Optional[RenderOwner]:
        with self._lock:
            return self._owners.get(host_handle)

    def detach(self, host_handle: Hashable) -> None:
        with self._lock:
            self._surfaces.pop(host_handle, None)
            owner = self._owners.pop(host_handle, None)
            if owner is not None:
                owner.detach()
