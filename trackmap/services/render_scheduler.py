# path: trackmap/services/render_scheduler.py

"""
Viewport-driven render pipeline.

build_render_set() is the pure part: cull routes against the viewport, order
them by distance to the view center, cap the count and simplify by zoom.
RenderScheduler wraps it in a debounced state machine so that at most one
pass computes at a time and bursts of pan/zoom events collapse into one.

Culling is a linear scan over cached route bounds, sized for low thousands of
routes; no spatial tree is kept.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import logging
import math
import threading

from pydantic import BaseModel

from trackmap.config import RenderSettings
from trackmap.errors import RenderSkip
from trackmap.models.render_models import RenderItem, RenderMetrics
from trackmap.models.route_models import Route
from trackmap.services.colors import resolve_route_color
from trackmap.services.map_surface import MapSurface
from trackmap.services.performance import PerformanceMonitor
from trackmap.utils.geo import BBox, center_distance_sq, has_area, intersects, is_empty_bbox
from trackmap.utils.simplify import simplify, tolerance_for_zoom


logger = logging.getLogger(__name__)


class RenderState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    DEBOUNCED = "debounced"
    COMPUTING = "computing"
    COMMITTED = "committed"


class RenderPlan(BaseModel):
    items: List[RenderItem]
    tolerance: float
    max_routes: int


class RenderPass(BaseModel):
    items: List[RenderItem]
    metrics: RenderMetrics
    tolerance: float
    optimized: bool


def select_candidates(routes: Sequence[Route], viewport: BBox, max_routes: int) -> List[Route]:
    """
    Drawable routes intersecting the viewport, closest center first, ties by
    id, capped. Undrawable routes are dropped before the cap is applied.
    """
    if not has_area(viewport):
        return []
    candidates = [
        r for r in routes
        if r.is_drawable and not is_empty_bbox(r.bbox) and intersects(r.bbox, viewport)
    ]
    candidates.sort(key=lambda r: (center_distance_sq(r.bbox, viewport), r.id))
    return candidates[:max_routes]


def effective_limits(settings: RenderSettings, zoom: float, optimize: bool) -> Tuple[float, int]:
    tolerance = tolerance_for_zoom(
        zoom,
        base_tolerance_m=settings.base_tolerance_m,
        zoom_reference_level=settings.zoom_reference_level,
        unit_scale=settings.unit_scale,
    )
    max_routes = settings.max_visible_routes
    if optimize:
        tolerance *= settings.optimize_tolerance_factor
        max_routes = max(1, int(max_routes * settings.optimize_route_factor))
    return tolerance, max_routes


def popup_summary(route: Route) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"name": route.name}
    if route.date:
        summary["date"] = route.date
    if route.category:
        summary["category"] = route.category
    for key, value in route.stats.model_dump().items():
        if value is not None:
            summary[key] = round(value, 2)
    return summary


def build_render_item(
    route: Route,
    zoom: float,
    tolerance: float,
    settings: RenderSettings,
) -> RenderItem:
    lines = route.lines()
    point_count = sum(len(line) for line in lines)
    reduce = point_count > settings.density_threshold_points or zoom < settings.detail_zoom_threshold

    out: List[List[List[float]]] = []
    for line in lines:
        if any(not (math.isfinite(c[0]) and math.isfinite(c[1])) for c in line):
            raise RenderSkip(route.id, "non-finite coordinate")
        if reduce:
            line = simplify(line, tolerance, settings.high_quality)
        if len(line) >= 2:
            out.append(line)
    if not out:
        raise RenderSkip(route.id, "no drawable line")

    return RenderItem(
        id=route.id,
        lines=out,
        color=resolve_route_color(route, settings.period_key),
        popup=popup_summary(route),
        simplified=reduce,
    )


def build_render_set(
    routes: Sequence[Route],
    viewport: BBox,
    zoom: float,
    settings: Optional[RenderSettings] = None,
    optimize: bool = False,
) -> RenderPlan:
    settings = settings or RenderSettings()
    tolerance, max_routes = effective_limits(settings, zoom, optimize)

    items: List[RenderItem] = []
    for route in select_candidates(routes, viewport, max_routes):
        try:
            items.append(build_render_item(route, zoom, tolerance, settings))
        except RenderSkip as e:
            logger.warning(f"Skipping route {e.route_id}: {e.reason}")
    return RenderPlan(items=items, tolerance=tolerance, max_routes=max_routes)


TimerFactory = Callable[..., Any]


class RenderScheduler:
    """
    Single render owner for one map surface.

    Idle -> Pending -> Debounced -> Computing -> Committed -> Idle. A new
    viewport event while Pending/Debounced restarts the debounce timer; one
    arriving during Computing is queued and starts a fresh cycle after commit.
    """

    def __init__(
        self,
        surface: MapSurface,
        route_source: Callable[[], Sequence[Route]],
        settings: Optional[RenderSettings] = None,
        monitor: Optional[PerformanceMonitor] = None,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.surface = surface
        self.route_source = route_source
        self.settings = settings or RenderSettings()
        self.monitor = monitor or PerformanceMonitor(
            max_metrics=self.settings.metrics_history,
            fps_window=self.settings.fps_window,
            render_budget_ms=self.settings.render_budget_ms,
            min_fps=self.settings.min_fps,
        )
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._compute_lock = threading.Lock()
        self._state = RenderState.IDLE
        self._timer = None
        self._generation = 0
        self._queued = False
        self._detached = False
        self._viewport: Optional[Tuple[BBox, float]] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.last_pass: Optional[RenderPass] = None

    @property
    def state(self) -> RenderState:
        return self._state

    def attach(self) -> None:
        """Listen for pan/zoom/resize on the surface."""
        with self._lock:
            self._detached = False
        if self._unsubscribe is None:
            self._unsubscribe = self.surface.subscribe(self.notify)

    def detach(self) -> None:
        """
        Stop owning the surface.

        Pending and queued passes are dropped. Returns only after an
        in-flight pass has committed, so no write from this scheduler
        reaches the surface afterwards.
        """
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._detached = True
            self._queued = False
            self._generation += 1
            self._cancel_timer()
            if self._state in (RenderState.PENDING, RenderState.DEBOUNCED):
                self._state = RenderState.IDLE
        with self._compute_lock:
            pass

    def notify(self, bbox: BBox, zoom: float) -> None:
        with self._lock:
            if self._detached:
                return
            self._viewport = (tuple(bbox), zoom)
            if self._state == RenderState.COMPUTING:
                self._queued = True
                return
            self._arm()

    def _arm(self) -> None:
        # caller holds self._lock
        self._cancel_timer()
        self._state = RenderState.PENDING
        self._generation += 1
        timer = self._timer_factory(self.settings.debounce_seconds, self._on_timer, args=(self._generation,))
        timer.daemon = True
        self._timer = timer
        self._state = RenderState.DEBOUNCED
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, generation: int) -> Optional[RenderPass]:
        with self._lock:
            if generation != self._generation or self._state != RenderState.DEBOUNCED:
                return None
            self._timer = None
            self._state = RenderState.COMPUTING
            bbox, zoom = self._viewport
        try:
            return self._run_cycle(bbox, zoom)
        except Exception:
            logger.exception("Render pass failed")
            return None
        finally:
            self._finish_cycle()

    def _finish_cycle(self) -> None:
        with self._lock:
            if self._state == RenderState.COMPUTING:
                self._state = RenderState.COMMITTED
            if self._queued:
                self._queued = False
                self._arm()
            elif self._state == RenderState.COMMITTED:
                self._state = RenderState.IDLE

    def flush(self) -> Optional[RenderPass]:
        """
        Run a pending debounced pass right away.

        None when nothing is pending, or when a newer viewport event re-armed
        the debounce before the pass could start.
        """
        with self._lock:
            if self._state != RenderState.DEBOUNCED:
                return None
            self._cancel_timer()
            generation = self._generation
        return self._on_timer(generation)

    def render_now(self, bbox: BBox, zoom: float) -> RenderPass:
        """
        Synchronous pass for an explicit viewport, bypassing the debounce.

        Supersedes any pending debounced pass. Waits for an in-flight pass to
        commit first. Errors from the route source propagate.
        """
        with self._lock:
            self._viewport = (tuple(bbox), zoom)
            self._cancel_timer()
            self._generation += 1
            if self._state in (RenderState.PENDING, RenderState.DEBOUNCED):
                self._state = RenderState.IDLE
        return self._run_cycle(tuple(bbox), zoom)

    def _run_cycle(self, bbox: BBox, zoom: float) -> RenderPass:
        with self._compute_lock:
            optimize = self.monitor.should_optimize()
            start = self.monitor.start()
            plan = build_render_set(self.route_source(), bbox, zoom, self.settings, optimize)
            self.surface.replace_all(plan.items)
            metrics = self.monitor.observe(
                start,
                route_count=len(plan.items),
                point_count=sum(item.point_count for item in plan.items),
            )
            render_pass = RenderPass(
                items=plan.items,
                metrics=metrics,
                tolerance=plan.tolerance,
                optimized=optimize,
            )
            self.last_pass = render_pass
            logger.debug(
                f"Rendered {len(plan.items)} routes at zoom {zoom} "
                f"(tolerance={plan.tolerance:.6f}, optimized={optimize})"
            )
            return render_pass
