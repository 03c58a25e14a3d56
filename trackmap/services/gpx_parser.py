# path: trackmap/services/gpx_parser.py

"""
GPX track parsing.

Turns raw track-file text into Track models. Individual malformed points are
skipped; only text that is not markup at all raises ParseError.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence, Tuple
import logging
import math
import uuid
import xml.etree.ElementTree as ET

from pydantic import BaseModel, Field

from trackmap.errors import ParseError
from trackmap.models.route_models import Track, TrackPoint


logger = logging.getLogger(__name__)


def _local(tag: str) -> str:
    # "{http://www.topografix.com/GPX/1/1}trkpt" -> "trkpt"
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _children(elem: ET.Element, name: str) -> List[ET.Element]:
    return [c for c in elem if _local(c.tag) == name]


def _child_text(elem: ET.Element, name: str) -> Optional[str]:
    for c in elem:
        if _local(c.tag) == name:
            text = (c.text or "").strip()
            return text or None
    return None


def _finite(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _parse_point(trkpt: ET.Element) -> Optional[TrackPoint]:
    lat = _finite(trkpt.get("lat"))
    lon = _finite(trkpt.get("lon"))
    if lat is None or lon is None:
        return None
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        return None
    return TrackPoint(
        lat=lat,
        lon=lon,
        ele=_finite(_child_text(trkpt, "ele")),
        time=_child_text(trkpt, "time"),
    )


def parse(raw_text: str, source_name: str = "gpx.gpx") -> List[Track]:
    """
    Parse a GPX document into tracks, in document order.

    Track ids are "0", "1", ... within this call; callers merging several
    files must prefix them. A track without a name takes source_name.
    """
    try:
        root = ET.fromstring(raw_text)
    except ET.ParseError as e:
        raise ParseError(str(e), source=source_name) from e

    tracks: List[Track] = []
    for trk_idx, trk in enumerate(_children(root, "trk")):
        name = _child_text(trk, "name") or source_name
        points: List[TrackPoint] = []
        skipped = 0
        for seg in _children(trk, "trkseg"):
            for trkpt in _children(seg, "trkpt"):
                point = _parse_point(trkpt)
                if point is None:
                    skipped += 1
                    continue
                points.append(point)
        if skipped:
            logger.debug(f"{source_name}: skipped {skipped} invalid points in track {trk_idx}")
        tracks.append(Track(id=str(trk_idx), name=name, points=points))

    return tracks


class SourceFile(BaseModel):
    name: str
    content: str


class ParseResult(BaseModel):
    job_id: str
    name: str
    tracks: List[Track] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def new_job_id() -> str:
    return uuid.uuid4().hex[:12]


def _parse_job(job: Tuple[str, SourceFile]) -> ParseResult:
    job_id, source = job
    try:
        tracks = parse(source.content, source.name)
    except ParseError as e:
        logger.warning(f"Failed to parse {source.name}: {e.reason}")
        return ParseResult(job_id=job_id, name=source.name, error=e.reason)
    return ParseResult(job_id=job_id, name=source.name, tracks=tracks)


def parse_files(
    files: Iterable[SourceFile],
    max_workers: int = 4,
    job_ids: Sequence[str] | None = None,
) -> List[ParseResult]:
    """
    Parse many files in a worker pool.

    Returns one result per input, in input order. A file that fails to parse
    gets a result with `error` set and does not affect the others.
    """
    files = list(files)
    if job_ids is None:
        job_ids = [new_job_id() for _ in files]
    if len(job_ids) != len(files):
        raise ValueError("job_ids must match files one to one")
    if not files:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_parse_job, zip(job_ids, files)))
