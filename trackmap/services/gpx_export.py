# path: trackmap/services/gpx_export.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
import logging

import gpxpy
import gpxpy.gpx

from trackmap.errors import UnsupportedBackupVersion
from trackmap.models.route_models import BackupFile, Route
from trackmap.services.colors import parse_iso_datetime


logger = logging.getLogger(__name__)

BACKUP_VERSION = 1
GPX_CREATOR = "trackmap"


def route_to_gpx(route: Route) -> str:
    """
    Serialize a route back to GPX 1.1: one trk, one trkseg per line.

    Point timestamps survive when the route still carries its parsed points;
    color, category and stats have no slot in GPX and are dropped.
    """
    gpx = gpxpy.gpx.GPX()
    gpx.creator = GPX_CREATOR
    gpx.name = route.name
    gpx.time = parse_iso_datetime(route.date)

    gpx_track = gpxpy.gpx.GPXTrack(name=route.name)
    gpx.tracks.append(gpx_track)

    lines = route.lines()
    times: List[Optional[datetime]] = []
    if route.points and len(lines) == 1 and len(lines[0]) == len(route.points):
        times = [parse_iso_datetime(p.time) for p in route.points]

    for line in lines:
        gpx_segment = gpxpy.gpx.GPXTrackSegment()
        gpx_track.segments.append(gpx_segment)
        for i, coord in enumerate(line):
            lon, lat = coord[0], coord[1]
            ele = coord[2] if len(coord) > 2 else None
            gpx_segment.points.append(
                gpxpy.gpx.GPXTrackPoint(lat, lon, elevation=ele, time=times[i] if times else None)
            )

    return gpx.to_xml()


def export_backup(routes: Sequence[Route], now: Optional[datetime] = None) -> BackupFile:
    exported_at = (now or datetime.now(timezone.utc)).isoformat()
    return BackupFile(version=BACKUP_VERSION, exported_at=exported_at, routes=list(routes))


def import_backup(data: Dict[str, Any] | BackupFile) -> List[Route]:
    """Validate a backup document and return its routes."""
    version = data.version if isinstance(data, BackupFile) else data.get("version")
    if version != BACKUP_VERSION:
        raise UnsupportedBackupVersion(version)
    backup = data if isinstance(data, BackupFile) else BackupFile.model_validate(data)
    logger.info(f"Read backup with {len(backup.routes)} routes from {backup.exported_at}")
    return backup.routes
