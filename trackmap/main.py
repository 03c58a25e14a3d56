# path: trackmap/main.py

from __future__ import annotations

from typing import Optional
import logging
import uuid

from fastapi import FastAPI

from trackmap.api.routes.render import router as render_router
from trackmap.api.routes.routes import router as routes_router
from trackmap.config import AppSettings, load_settings
from trackmap.services.map_surface import SurfaceRegistry
from trackmap.services.render_scheduler import RenderScheduler
from trackmap.storage.route_store import InMemoryRouteStore, JsonFileRouteStore, RouteStore

surfaces = SurfaceRegistry()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[AppSettings] = None,
    store: Optional[RouteStore] = None,
    host_handle: Optional[str] = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if store is None:
        store = JsonFileRouteStore(settings.storage_path) if settings.storage_path else InMemoryRouteStore()

    app = FastAPI(title="trackmap")
    app.state.settings = settings
    app.state.store = store
    app.state.host_handle = host_handle or uuid.uuid4().hex
    app.state.surface = surfaces.attach_or_reuse(app.state.host_handle)
    app.state.scheduler = RenderScheduler(app.state.surface, store.get_all, settings.render)
    surfaces.set_owner(app.state.host_handle, app.state.scheduler)

    app.include_router(routes_router)
    app.include_router(render_router)
    return app


app = create_app()
