# path: trackmap/models/render_models.py

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator


class RenderItem(BaseModel):
    id: str
    lines: List[List[List[float]]]
    color: str
    popup: Dict[str, Any] = Field(default_factory=dict)
    simplified: bool = False

    @property
    def point_count(self) -> int:
        return sum(len(line) for line in self.lines)


class RenderMetrics(BaseModel):
    render_time_ms: float = Field(ge=0)
    route_count: int = Field(ge=0)
    point_count: int = Field(ge=0)
    fps: Optional[float] = None
    memory_mb: Optional[float] = None


class RenderRequest(BaseModel):
    viewport: Tuple[float, float, float, float]  # [minLon, minLat, maxLon, maxLat]
    zoom: float = Field(ge=0, le=24)

    @field_validator("viewport")
    @classmethod
    def validate_order(cls, bbox: Tuple[float, float, float, float]):
        min_lon, min_lat, max_lon, max_lat = bbox
        if min_lon > max_lon or min_lat > max_lat:
            raise ValueError("viewport min must not exceed max")
        return bbox


class RenderResponse(BaseModel):
    items: List[RenderItem]
    metrics: RenderMetrics
    should_optimize: bool
    tolerance: float


class MetricsSummary(BaseModel):
    average_render_time_ms: float
    average_fps: float
    latest: Optional[RenderMetrics] = None
    should_optimize: bool = False
