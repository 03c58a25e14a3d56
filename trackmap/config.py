# path: trackmap/config.py

from __future__ import annotations

from pathlib import Path
from typing import Optional
import logging
import os

import yaml
from pydantic import BaseModel, Field

from trackmap.models.route_models import PeriodKey


logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TRACKMAP_CONFIG"


class RenderSettings(BaseModel):
    debounce_seconds: float = Field(default=0.15, ge=0)
    max_visible_routes: int = Field(default=50, ge=1)
    density_threshold_points: int = Field(default=1000, ge=0)
    detail_zoom_threshold: float = 14.0

    # tolerance = base_tolerance_m * 2^(zoom_reference_level - zoom) * unit_scale
    base_tolerance_m: float = Field(default=10.0, ge=0)
    zoom_reference_level: float = 18.0
    unit_scale: float = Field(default=0.00001, gt=0)
    high_quality: bool = False

    # applied on the next pass when the performance monitor asks for less detail
    optimize_route_factor: float = Field(default=0.5, gt=0, le=1)
    optimize_tolerance_factor: float = Field(default=2.0, ge=1)

    render_budget_ms: float = Field(default=16.0, gt=0)
    min_fps: float = Field(default=30.0, ge=0)
    metrics_history: int = Field(default=100, ge=1)
    fps_window: int = Field(default=60, ge=1)

    period_key: PeriodKey = "month"


class AppSettings(BaseModel):
    render: RenderSettings = Field(default_factory=RenderSettings)
    storage_path: Optional[str] = None
    parse_workers: int = Field(default=4, ge=1)
    log_level: str = "INFO"


def load_settings(path: str | Path | None = None) -> AppSettings:
    """
    Load settings from a YAML file.

    The path comes from the argument or the TRACKMAP_CONFIG environment
    variable; with neither, defaults are returned. A named file that does
    not exist raises FileNotFoundError, bad values raise pydantic's
    ValidationError.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None
    if path is None:
        logger.info("No config file given, using defaults")
        return AppSettings()

    path = Path(path)
    if not path.exists():
        logger.error(f"Config file not found at {path.absolute()}")
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    settings = AppSettings.model_validate(data)
    logger.info(f"Loaded settings from {path}")
    return settings
