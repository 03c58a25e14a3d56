# path: trackmap/models/route_models.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Union
import math

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from trackmap.utils.geo import BBox, bounds


PeriodKey = Literal["week", "month", "year"]


class TrackPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    ele: Optional[float] = None
    time: Optional[str] = None


class Track(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    points: List[TrackPoint] = Field(default_factory=list)


class RouteStats(BaseModel):
    distance_km: Optional[float] = None
    duration_h: Optional[float] = None
    elevation_gain: Optional[float] = None
    avg_speed: Optional[float] = None


class LineStringGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["LineString"] = "LineString"
    coordinates: List[List[float]]  # [lon, lat] or [lon, lat, ele]

    @field_validator("coordinates")
    @classmethod
    def validate_coords(cls, coords: List[List[float]]):
        for c in coords:
            if len(c) < 2:
                raise ValueError("coordinate needs at least lon and lat")
        return coords


class MultiLineStringGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["MultiLineString"] = "MultiLineString"
    coordinates: List[List[List[float]]]


class Feature(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["Feature"] = "Feature"
    geometry: Union[LineStringGeometry, MultiLineStringGeometry] = Field(discriminator="type")
    properties: Dict[str, Any] = Field(default_factory=dict)


class FeatureCollection(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: List[Feature] = Field(default_factory=list)


class Route(BaseModel):
    id: str
    name: str
    color: Optional[str] = None
    category: Optional[str] = None
    date: Optional[str] = None
    period_key: PeriodKey = "month"
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: Optional[str] = None
    points: Optional[List[TrackPoint]] = None
    geojson: FeatureCollection = Field(default_factory=FeatureCollection)
    stats: RouteStats = Field(default_factory=RouteStats)

    model_config = ConfigDict(frozen=True)

    # derived from geometry; refreshed by model_post_init and model_copy
    _bbox: BBox = PrivateAttr(default=(0.0, 0.0, 0.0, 0.0))
    _drawable: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: Any) -> None:
        self._derive_geometry()

    def model_copy(self, *, update: Optional[Mapping[str, Any]] = None, deep: bool = False) -> Route:
        copied = super().model_copy(update=update, deep=deep)
        copied._derive_geometry()
        return copied

    def _derive_geometry(self) -> None:
        lines = self.lines()
        self._bbox = bounds(c for line in lines for c in line)
        self._drawable = any(len(line) >= 2 for line in lines) and all(
            math.isfinite(c[0]) and math.isfinite(c[1]) for line in lines for c in line
        )

    def lines(self) -> List[List[List[float]]]:
        out: List[List[List[float]]] = []
        for feature in self.geojson.features:
            geom = feature.geometry
            if geom.type == "LineString":
                out.append(geom.coordinates)
            else:
                out.extend(geom.coordinates)
        if not out and self.points:
            out.append([point_coord(p) for p in self.points])
        return out

    @property
    def bbox(self) -> BBox:
        return self._bbox

    @property
    def is_drawable(self) -> bool:
        """All coordinates finite and at least one line of two or more points."""
        return self._drawable

    @property
    def point_count(self) -> int:
        return sum(len(line) for line in self.lines())


def point_coord(p: TrackPoint) -> List[float]:
    if p.ele is None:
        return [p.lon, p.lat]
    return [p.lon, p.lat, p.ele]


class BackupFile(BaseModel):
    version: int = 1
    exported_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    routes: List[Route] = Field(default_factory=list)


class ImportOptions(BaseModel):
    color_mode: Literal["auto", "manual"] = "auto"
    default_color: str = "#2563eb"
    period_grouping: PeriodKey = "month"
    merge_identical_tracks: bool = False

