from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from drivetelemetry.utils.types import DrivingEvent, EventType, SeverityTier


@dataclass(frozen=True)
class GForceRule:
    type: EventType
    points: float
    tier: SeverityTier
    description: str


@dataclass(frozen=True)
class GForceConfig:
    harsh_braking_mps2: float
    harsh_accel_mps2: float
    cornering_mps2: float
    braking: GForceRule
    acceleration: GForceRule
    cornering: GForceRule

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "GForceConfig":
        pts = d.get("points", {})
        braking = float(d.get("harsh_braking_mps2", -8.5))
        if braking >= 0.0:
            raise ValueError("g_force.harsh_braking_mps2 must be negative")
        return GForceConfig(
            harsh_braking_mps2=braking,
            harsh_accel_mps2=float(d.get("harsh_accel_mps2", 8.5)),
            cornering_mps2=float(d.get("cornering_mps2", 5.5)),
            braking=GForceRule("HARSH_BRAKING", float(pts.get("harsh_braking", -7.0)), "moderate", "Harsh Braking"),
            acceleration=GForceRule(
                "HARSH_ACCELERATION", float(pts.get("harsh_acceleration", -7.0)), "moderate", "Aggressive Acceleration"
            ),
            cornering=GForceRule("UNSAFE_CORNERING", float(pts.get("unsafe_cornering", -15.0)), "serious", "Unsafe Cornering"),
        )


def classify_g_force(smoothed_xyz: Tuple[float, float, float], cfg: GForceConfig) -> Optional[GForceRule]:
    """Braking, then acceleration, then cornering; at most one rule matches."""
    x, y, _ = smoothed_xyz
    if y < cfg.harsh_braking_mps2:
        return cfg.braking
    if y > cfg.harsh_accel_mps2:
        return cfg.acceleration
    if abs(x) > cfg.cornering_mps2:
        return cfg.cornering
    return None


def g_force_event(
    now_s: float,
    smoothed_xyz: Tuple[float, float, float],
    cfg: GForceConfig,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    speed_kmh: Optional[float] = None,
) -> Optional[DrivingEvent]:
    rule = classify_g_force(smoothed_xyz, cfg)
    if rule is None:
        return None
    x, y, z = smoothed_xyz
    return DrivingEvent(
        type=rule.type,
        timestamp_s=float(now_s),
        points_delta=rule.points,
        severity_tier=rule.tier,
        description=rule.description,
        lat=lat,
        lng=lng,
        speed_kmh=speed_kmh,
        value=float(math.sqrt(x * x + y * y + z * z)),
    )
