# path: trackmap/api/routes/render.py

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from trackmap.api.deps import get_scheduler, get_surface
from trackmap.errors import StorageError
from trackmap.models.render_models import MetricsSummary, RenderItem, RenderRequest, RenderResponse
from trackmap.services.map_surface import InMemoryMapSurface
from trackmap.services.render_scheduler import RenderScheduler

router = APIRouter(prefix="/render", tags=["render"])


class ViewportAccepted(BaseModel):
    state: str


@router.post("", response_model=RenderResponse)
def render_viewport(req: RenderRequest, scheduler: RenderScheduler = Depends(get_scheduler)) -> RenderResponse:
    try:
        render_pass = scheduler.render_now(req.viewport, req.zoom)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return RenderResponse(
        items=render_pass.items,
        metrics=render_pass.metrics,
        should_optimize=scheduler.monitor.should_optimize(),
        tolerance=render_pass.tolerance,
    )


@router.post("/viewport", response_model=ViewportAccepted, status_code=202)
def move_viewport(req: RenderRequest, surface: InMemoryMapSurface = Depends(get_surface)) -> ViewportAccepted:
    # Goes through the debounced pipeline; read the result from GET /render/current.
    surface.set_viewport(req.viewport, req.zoom)
    return ViewportAccepted(state="pending")


@router.get("/current", response_model=List[RenderItem])
def current_render(surface: InMemoryMapSurface = Depends(get_surface)) -> List[RenderItem]:
    return surface.rendered()


@router.get("/metrics", response_model=MetricsSummary)
def render_metrics(scheduler: RenderScheduler = Depends(get_scheduler)) -> MetricsSummary:
    return scheduler.monitor.summary()
