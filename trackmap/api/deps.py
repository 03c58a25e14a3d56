# path: trackmap/api/deps.py

from __future__ import annotations

from fastapi import Request

from trackmap.config import AppSettings
from trackmap.services.map_surface import InMemoryMapSurface
from trackmap.services.render_scheduler import RenderScheduler
from trackmap.storage.route_store import RouteStore


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_store(request: Request) -> RouteStore:
    return request.app.state.store


def get_surface(request: Request) -> InMemoryMapSurface:
    return request.app.state.surface


def get_scheduler(request: Request) -> RenderScheduler:
    return request.app.state.scheduler
