# path: trackmap/services/performance.py

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Optional
import logging
import os
import time

import psutil

from trackmap.models.render_models import MetricsSummary, RenderMetrics


logger = logging.getLogger(__name__)

RENDER_BUDGET_MS = 16.0  # one frame at 60 fps
MIN_FPS = 30.0


def process_memory_mb() -> Optional[float]:
    try:
        return psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
    except psutil.Error as e:
        logger.debug(f"Memory reading unavailable: {e}")
        return None


class PerformanceMonitor:
    """
    Timing feedback for render passes.

    Advisory only: it never touches rendering state. The scheduler reads
    should_optimize() before its next pass.
    """

    def __init__(
        self,
        max_metrics: int = 100,
        fps_window: int = 60,
        render_budget_ms: float = RENDER_BUDGET_MS,
        min_fps: float = MIN_FPS,
        clock: Callable[[], float] = time.perf_counter,
        memory_reader: Optional[Callable[[], Optional[float]]] = process_memory_mb,
    ):
        self.metrics: Deque[RenderMetrics] = deque(maxlen=max_metrics)
        self.fps_history: Deque[float] = deque(maxlen=fps_window)
        self.render_budget_ms = render_budget_ms
        self.min_fps = min_fps
        self._clock = clock
        self._memory_reader = memory_reader
        self._last_frame_time: Optional[float] = None

    def start(self) -> float:
        """Start mark, in seconds on the monitor's clock."""
        return self._clock()

    def observe(self, start_mark: float, route_count: int, point_count: int) -> RenderMetrics:
        now = self._clock()
        metric = RenderMetrics(
            render_time_ms=max(0.0, (now - start_mark) * 1000.0),
            route_count=route_count,
            point_count=point_count,
            fps=self._frame_rate(now),
            memory_mb=self._memory_reader() if self._memory_reader else None,
        )
        self.metrics.append(metric)
        if self.should_optimize():
            self.log_performance_warning(metric)
        return metric

    def _frame_rate(self, now: float) -> Optional[float]:
        # From the gap between consecutive observations, not the render time.
        if self._last_frame_time is not None:
            delta = now - self._last_frame_time
            if delta > 0:
                self.fps_history.append(1.0 / delta)
        self._last_frame_time = now
        if not self.fps_history:
            return None
        return sum(self.fps_history) / len(self.fps_history)

    def latest(self) -> Optional[RenderMetrics]:
        return self.metrics[-1] if self.metrics else None

    def average_render_time(self) -> float:
        if not self.metrics:
            return 0.0
        return sum(m.render_time_ms for m in self.metrics) / len(self.metrics)

    def average_fps(self) -> float:
        values = [m.fps for m in self.metrics if m.fps is not None]
        if not values:
            return 0.0
        return sum(values) / len(values)

    def should_optimize(self) -> bool:
        latest = self.latest()
        if latest is None:
            return False
        if latest.render_time_ms > self.render_budget_ms:
            return True
        return latest.fps is not None and latest.fps < self.min_fps

    def summary(self) -> MetricsSummary:
        return MetricsSummary(
            average_render_time_ms=self.average_render_time(),
            average_fps=self.average_fps(),
            latest=self.latest(),
            should_optimize=self.should_optimize(),
        )

    def log_performance_warning(self, metric: RenderMetrics) -> None:
        fps = f"{metric.fps:.1f} FPS" if metric.fps is not None else "N/A"
        memory = f"{metric.memory_mb:.1f}MB" if metric.memory_mb is not None else "N/A"
        logger.warning(
            f"Slow rendering detected: renderTime={metric.render_time_ms:.2f}ms fps={fps} "
            f"routes={metric.route_count} points={metric.point_count} memory={memory}"
        )
