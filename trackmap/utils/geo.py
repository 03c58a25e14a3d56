# path: trackmap/utils/geo.py

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple
import math


# [minLon, minLat, maxLon, maxLat]
BBox = Tuple[float, float, float, float]

EMPTY_BBOX: BBox = (0.0, 0.0, 0.0, 0.0)


def bounds(points_lonlat: Iterable[Sequence[float]]) -> BBox:
    """
    Axis-aligned bounds of (lon, lat[, ele]) coordinates.

    An empty input yields EMPTY_BBOX, which callers must read as "no geometry".
    """
    min_lon = min_lat = math.inf
    max_lon = max_lat = -math.inf
    for p in points_lonlat:
        lon, lat = p[0], p[1]
        if lon < min_lon:
            min_lon = lon
        if lon > max_lon:
            max_lon = lon
        if lat < min_lat:
            min_lat = lat
        if lat > max_lat:
            max_lat = lat
    if min_lon == math.inf:
        return EMPTY_BBOX
    return (float(min_lon), float(min_lat), float(max_lon), float(max_lat))


def intersects(a: Sequence[float], b: Sequence[float]) -> bool:
    # Closed intervals: touching edges intersect.
    a_min_lon, a_min_lat, a_max_lon, a_max_lat = a
    b_min_lon, b_min_lat, b_max_lon, b_max_lat = b
    return not (
        a_max_lon < b_min_lon
        or a_min_lon > b_max_lon
        or a_max_lat < b_min_lat
        or a_min_lat > b_max_lat
    )


def is_empty_bbox(box: Sequence[float]) -> bool:
    return tuple(box) == EMPTY_BBOX


def has_area(box: Sequence[float]) -> bool:
    min_lon, min_lat, max_lon, max_lat = box
    return max_lon > min_lon and max_lat > min_lat


def bbox_center(box: Sequence[float]) -> Tuple[float, float]:
    min_lon, min_lat, max_lon, max_lat = box
    return ((min_lon + max_lon) / 2.0, (min_lat + max_lat) / 2.0)


def center_distance_sq(a: Sequence[float], b: Sequence[float]) -> float:
    a_lon, a_lat = bbox_center(a)
    b_lon, b_lat = bbox_center(b)
    d_lon = a_lon - b_lon
    d_lat = a_lat - b_lat
    return d_lon * d_lon + d_lat * d_lat


def haversine_m(a_lon: float, a_lat: float, b_lon: float, b_lat: float) -> float:
    r = 6371000.0
    phi1 = math.radians(a_lat)
    phi2 = math.radians(b_lat)
    dphi = math.radians(b_lat - a_lat)
    dlmb = math.radians(b_lon - a_lon)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * r * math.asin(math.sqrt(s))


def polyline_length_m(points_lonlat: List[Tuple[float, float]]) -> float:
    total = 0.0
    for i in range(1, len(points_lonlat)):
        a_lon, a_lat = points_lonlat[i - 1][:2]
        b_lon, b_lat = points_lonlat[i][:2]
        total += haversine_m(a_lon, a_lat, b_lon, b_lat)
    return total
