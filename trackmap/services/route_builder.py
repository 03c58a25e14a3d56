# path: trackmap/services/route_builder.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
import hashlib
import json
import logging

from trackmap.models.route_models import (
    Feature,
    FeatureCollection,
    ImportOptions,
    LineStringGeometry,
    Route,
    RouteStats,
    Track,
    TrackPoint,
    point_coord,
)
from trackmap.services.colors import parse_iso_datetime
from trackmap.services.gpx_parser import ParseResult
from trackmap.utils.geo import polyline_length_m


logger = logging.getLogger(__name__)


def stable_json_sha256(obj) -> str:
    data = json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return "sha256:" + hashlib.sha256(data).hexdigest()


def track_fingerprint(track: Track) -> str:
    return stable_json_sha256([[p.lon, p.lat] for p in track.points])


def compute_stats(points: Sequence[TrackPoint]) -> RouteStats:
    if len(points) < 2:
        return RouteStats()

    distance_km = polyline_length_m([(p.lon, p.lat) for p in points]) / 1000.0

    times = [t for t in (parse_iso_datetime(p.time) for p in points) if t is not None]
    duration_h: Optional[float] = None
    if len(times) >= 2:
        duration_h = (times[-1] - times[0]).total_seconds() / 3600.0

    elevations = [p.ele for p in points if p.ele is not None]
    elevation_gain: Optional[float] = None
    if len(elevations) >= 2:
        elevation_gain = sum(max(0.0, b - a) for a, b in zip(elevations, elevations[1:]))

    avg_speed: Optional[float] = None
    if duration_h and duration_h > 0 and distance_km > 0:
        avg_speed = distance_km / duration_h

    return RouteStats(
        distance_km=distance_km,
        duration_h=duration_h,
        elevation_gain=elevation_gain,
        avg_speed=avg_speed,
    )


def build_route(
    track: Track,
    job_id: str,
    *,
    color: Optional[str] = None,
    category: Optional[str] = None,
    period_key: str = "month",
    now: Optional[datetime] = None,
) -> Route:
    """Turn one parsed track into a persistable Route; id is "<job_id>:<track id>"."""
    coords = [point_coord(p) for p in track.points]
    features: List[Feature] = []
    if coords:
        features.append(Feature(geometry=LineStringGeometry(coordinates=coords), properties={"name": track.name}))

    first_time = next((p.time for p in track.points if p.time), None)
    created_at = (now or datetime.now(timezone.utc)).isoformat()

    return Route(
        id=f"{job_id}:{track.id}",
        name=track.name,
        color=color,
        category=category,
        date=first_time,
        period_key=period_key,
        created_at=created_at,
        points=list(track.points),
        geojson=FeatureCollection(features=features),
        stats=compute_stats(track.points),
    )


def build_routes(
    results: Sequence[ParseResult],
    options: Optional[ImportOptions] = None,
    now: Optional[datetime] = None,
) -> List[Route]:
    """
    Flatten successful parse results into routes, in input order.

    With merge_identical_tracks, tracks whose coordinate sequences match an
    earlier track are dropped.
    """
    options = options or ImportOptions()
    color = options.default_color if options.color_mode == "manual" else None

    seen: Dict[str, str] = {}
    routes: List[Route] = []
    for result in results:
        if not result.ok:
            continue
        for track in result.tracks:
            if options.merge_identical_tracks:
                fp = track_fingerprint(track)
                if fp in seen:
                    logger.info(f"Merged track {result.job_id}:{track.id} into {seen[fp]}")
                    continue
                seen[fp] = f"{result.job_id}:{track.id}"
            routes.append(
                build_route(
                    track,
                    result.job_id,
                    color=color,
                    period_key=options.period_grouping,
                    now=now,
                )
            )
    return routes
