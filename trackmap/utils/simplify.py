# path: trackmap/utils/simplify.py

from __future__ import annotations

from typing import List, Sequence, TypeVar

# Any indexable point whose [0] is x (lon) and [1] is y (lat); extra items (ele) ride along.
P = TypeVar("P", bound=Sequence[float])


def sq_distance(a: Sequence[float], b: Sequence[float]) -> float:
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    return dx * dx + dy * dy


def sq_segment_distance(p: Sequence[float], a: Sequence[float], b: Sequence[float]) -> float:
    """Squared distance from p to the segment a-b."""
    x, y = a[0], a[1]
    dx = b[0] - x
    dy = b[1] - y

    # Zero-length chord: fall back to the distance to the anchor point.
    if dx != 0 or dy != 0:
        t = ((p[0] - x) * dx + (p[1] - y) * dy) / (dx * dx + dy * dy)
        if t > 1:
            x, y = b[0], b[1]
        elif t > 0:
            x += dx * t
            y += dy * t

    dx = p[0] - x
    dy = p[1] - y
    return dx * dx + dy * dy


def simplify_radial(points: List[P], sq_tolerance: float) -> List[P]:
    prev_idx = 0
    kept = [points[0]]
    for i in range(1, len(points)):
        if sq_distance(points[i], points[prev_idx]) > sq_tolerance:
            kept.append(points[i])
            prev_idx = i
    if prev_idx != len(points) - 1:
        kept.append(points[-1])
    return kept


def simplify_douglas_peucker(points: List[P], sq_tolerance: float) -> List[P]:
    n = len(points)
    markers = [False] * n
    markers[0] = markers[-1] = True

    # unresolved [first, last] ranges
    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        max_sq = 0.0
        index = 0
        a, b = points[first], points[last]
        for i in range(first + 1, last):
            d = sq_segment_distance(points[i], a, b)
            if d > max_sq:
                index = i
                max_sq = d
        if max_sq > sq_tolerance:
            markers[index] = True
            stack.append((first, index))
            stack.append((index, last))

    return [p for p, keep in zip(points, markers) if keep]


def simplify(points: Sequence[P], tolerance: float = 1.0, high_quality: bool = False) -> List[P]:
    """
    Reduce a polyline while keeping it within `tolerance` of the original.

    Radial-distance pre-pass (skipped when high_quality) followed by
    Douglas-Peucker. First and last points are always kept. Works in the
    coordinate units it is given; no projection is applied.
    """
    points = list(points)
    if len(points) <= 2:
        return points

    sq_tolerance = tolerance * tolerance
    if not high_quality:
        points = simplify_radial(points, sq_tolerance)
    if len(points) <= 2:
        return points
    return simplify_douglas_peucker(points, sq_tolerance)


def tolerance_for_zoom(
    zoom: float,
    base_tolerance_m: float = 10.0,
    zoom_reference_level: float = 18.0,
    unit_scale: float = 0.00001,
) -> float:
    # Halves per zoom step: base * 2^(ref - zoom), metres scaled to degrees.
    return base_tolerance_m * (2.0 ** (zoom_reference_level - zoom)) * unit_scale
