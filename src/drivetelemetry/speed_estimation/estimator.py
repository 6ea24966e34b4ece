from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from drivetelemetry.speed_estimation.math import haversine_m
from drivetelemetry.speed_estimation.smoothing import EmaSmoother
from drivetelemetry.speed_estimation.units import mps_to_kmh
from drivetelemetry.utils.types import LatLng, RawFix


@dataclass(frozen=True)
class PositionFusionConfig:
    alpha: float
    snap_delta_kmh: float
    min_dt_s: float
    trusted_accuracy_m: float
    blend_accuracy_m: float
    blend_weight_good: float
    blend_weight_poor: float
    drift_reported_max_kmh: float
    drift_geometric_min_kmh: float
    stationary_clamp_kmh: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "PositionFusionConfig":
        drift = d.get("drift", {})
        blend = d.get("blend", {})
        alpha = float(d.get("alpha", 0.15))
        if not 0.0 < alpha <= 1.0:
            raise ValueError("position.alpha must be in (0, 1]")
        return PositionFusionConfig(
            alpha=alpha,
            snap_delta_kmh=float(d.get("snap_delta_kmh", 30.0)),
            min_dt_s=float(d.get("min_dt_s", 0.5)),
            trusted_accuracy_m=float(d.get("trusted_accuracy_m", 20.0)),
            blend_accuracy_m=float(blend.get("accuracy_m", 50.0)),
            blend_weight_good=float(blend.get("weight_good", 0.7)),
            blend_weight_poor=float(blend.get("weight_poor", 0.3)),
            drift_reported_max_kmh=float(drift.get("reported_max_kmh", 3.0)),
            drift_geometric_min_kmh=float(drift.get("geometric_min_kmh", 15.0)),
            stationary_clamp_kmh=float(d.get("stationary_clamp_kmh", 2.0)),
        )


@dataclass
class _LastFix:
    latlng: LatLng
    timestamp_s: float


class PositionFusionEstimator:
    """
    Fuse the receiver-reported speed with the speed implied by consecutive fixes.

    The output is never negative and sits at exactly 0 below the stationary clamp.
    """

    def __init__(self, cfg: PositionFusionConfig) -> None:
        self._cfg = cfg
        self._smoother = EmaSmoother(alpha=cfg.alpha, snap_delta=cfg.snap_delta_kmh)
        self._last: Optional[_LastFix] = None

    @property
    def speed_kmh(self) -> float:
        return self._clamp(self._smoother.value)

    def update(self, fix: RawFix) -> float:
        cfg = self._cfg
        geometric_kmh = 0.0
        if self._last is not None:
            dt = float(fix.timestamp_s - self._last.timestamp_s)
            if dt > cfg.min_dt_s:
                geometric_kmh = mps_to_kmh(haversine_m(self._last.latlng, fix.latlng) / dt)

        reported_kmh = mps_to_kmh(fix.speed_mps) if fix.speed_mps is not None else 0.0
        reported_kmh = max(0.0, reported_kmh)

        if fix.speed_mps is not None and fix.accuracy_m < cfg.trusted_accuracy_m:
            target = reported_kmh
        elif reported_kmh < cfg.drift_reported_max_kmh and geometric_kmh > cfg.drift_geometric_min_kmh:
            # position jumped while the receiver reports standing still
            target = 0.0
        else:
            w = cfg.blend_weight_good if fix.accuracy_m < cfg.blend_accuracy_m else cfg.blend_weight_poor
            target = reported_kmh * w + geometric_kmh * (1.0 - w)

        self._last = _LastFix(latlng=fix.latlng, timestamp_s=float(fix.timestamp_s))
        self._smoother.update(max(0.0, target))
        return self.speed_kmh

    def reset(self) -> None:
        self._smoother.reset()
        self._last = None

    def _clamp(self, v: float) -> float:
        if v < self._cfg.stationary_clamp_kmh:
            return 0.0
        return float(v)
