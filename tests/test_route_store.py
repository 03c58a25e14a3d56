"""
Unit tests for route stores.
"""

from pathlib import Path
import threading

import pytest

from trackmap.errors import DuplicateRoute, RouteNotFound, StorageError
from trackmap.storage.route_store import InMemoryRouteStore, JsonFileRouteStore
from conftest import box_route


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRouteStore()
    return JsonFileRouteStore(tmp_path / "routes.json")


class TestRouteStoreContract:
    def test_add_and_get_all(self, store):
        store.add_routes([box_route("a", 0, 0, 1, 1), box_route("b", 1, 1, 2, 2)])
        assert [r.id for r in store.get_all()] == ["a", "b"]
        assert store.get("a").bbox == (0.0, 0.0, 1.0, 1.0)
        assert store.get("missing") is None

    def test_get_by_period(self, store):
        store.add_routes([
            box_route("w", 0, 0, 1, 1, period_key="week"),
            box_route("m", 0, 0, 1, 1, period_key="month"),
        ])
        assert [r.id for r in store.get_by_period("week")] == ["w"]
        assert store.get_by_period("year") == []

    def test_delete(self, store):
        store.add_routes([box_route("a", 0, 0, 1, 1)])
        store.delete("a")
        assert store.get_all() == []
        with pytest.raises(RouteNotFound):
            store.delete("a")

    def test_duplicate_add_is_rejected_whole(self, store):
        store.add_routes([box_route("a", 0, 0, 1, 1)])
        with pytest.raises(DuplicateRoute):
            store.add_routes([box_route("b", 0, 0, 1, 1), box_route("a", 0, 0, 1, 1)])
        assert [r.id for r in store.get_all()] == ["a"]

    def test_clear(self, store):
        store.add_routes([box_route("a", 0, 0, 1, 1)])
        store.clear()
        assert store.get_all() == []


class TestJsonFileRouteStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "routes.json"
        JsonFileRouteStore(path).add_routes([box_route("a", 0, 0, 1, 1, color="#111111")])
        reopened = JsonFileRouteStore(path)
        route = reopened.get("a")
        assert route.color == "#111111"
        assert route.bbox == (0.0, 0.0, 1.0, 1.0)

    def test_missing_file_is_empty_and_not_created(self, tmp_path):
        path = tmp_path / "routes.json"
        assert JsonFileRouteStore(path).get_all() == []
        assert not path.exists()

    def test_corrupt_file_raises_storage_error(self, tmp_path):
        path = tmp_path / "routes.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            JsonFileRouteStore(path)

    def test_failed_write_rolls_back(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        # parent "directory" is a file, so writing must fail
        store = JsonFileRouteStore(blocker / "routes.json")
        with pytest.raises(StorageError):
            store.add_routes([box_route("a", 0, 0, 1, 1)])
        assert store.get_all() == []

    def test_concurrent_write_waits_for_failed_write_to_roll_back(self, tmp_path, monkeypatch):
        path = tmp_path / "routes.json"
        store = JsonFileRouteStore(path)
        store.add_routes([box_route("x", 0, 0, 1, 1)])
        real_flush = store._flush
        seen = {}

        def flush(snapshot):
            if "deleter" in seen:
                return real_flush(snapshot)
            # a delete from another thread arrives while this write is in progress
            deleter = threading.Thread(target=store.delete, args=("x",))
            seen["deleter"] = deleter
            deleter.start()
            deleter.join(timeout=0.2)
            seen["blocked"] = deleter.is_alive()
            with monkeypatch.context() as m:
                m.setattr(Path, "write_bytes", _fail_write)
                real_flush(snapshot)

        store._flush = flush
        with pytest.raises(StorageError):
            store.add_routes([box_route("y", 0, 0, 1, 1)])
        seen["deleter"].join(timeout=5)

        assert seen["blocked"]
        assert store.get_all() == []
        assert JsonFileRouteStore(path).get_all() == []


def _fail_write(self, data):
    raise OSError("disk full")
