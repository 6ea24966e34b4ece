from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from drivetelemetry.speed_estimation.smoothing import CircularEmaSmoother


@dataclass(frozen=True)
class HeadingFusionConfig:
    alpha: float
    gps_min_speed_kmh: float
    low_speed_compass_kmh: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "HeadingFusionConfig":
        alpha = float(d.get("alpha", 0.12))
        if not 0.0 < alpha <= 1.0:
            raise ValueError("heading.alpha must be in (0, 1]")
        return HeadingFusionConfig(
            alpha=alpha,
            gps_min_speed_kmh=float(d.get("gps_min_speed_kmh", 5.0)),
            low_speed_compass_kmh=float(d.get("low_speed_compass_kmh", 5.0)),
        )


def _valid_course(v: Optional[float]) -> bool:
    # receivers report exactly 0 when the course is unknown
    return v is not None and not math.isnan(float(v)) and float(v) != 0.0


def _valid_compass(v: Optional[float]) -> bool:
    return v is not None and not math.isnan(float(v))


class HeadingFusionEstimator:
    def __init__(self, cfg: HeadingFusionConfig) -> None:
        self._cfg = cfg
        self._smoother = CircularEmaSmoother(alpha=cfg.alpha)

    @property
    def heading_deg(self) -> float:
        return self._smoother.value

    def update(self, gps_course_deg: Optional[float], compass_deg: Optional[float], speed_kmh: float) -> float:
        has_gps = _valid_course(gps_course_deg)
        has_compass = _valid_compass(compass_deg)

        if speed_kmh >= self._cfg.gps_min_speed_kmh and has_gps:
            target = float(gps_course_deg)
        elif has_compass:
            target = float(compass_deg)
        elif has_gps:
            target = float(gps_course_deg)
        else:
            return self._smoother.value
        return self._smoother.update(target)

    def reset(self) -> None:
        self._smoother.reset()
