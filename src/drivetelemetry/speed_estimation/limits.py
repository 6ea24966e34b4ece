from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from drivetelemetry.utils.types import RoadContext, SeverityTier


@dataclass(frozen=True)
class SchoolZoneConfig:
    limit_kmh: float
    weekdays: Tuple[int, ...]
    bands_h: Tuple[Tuple[float, float], ...]

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SchoolZoneConfig":
        weekdays = d.get("weekdays", [0, 1, 2, 3, 4])
        if not isinstance(weekdays, list):
            raise ValueError("school_zone.weekdays must be a list")
        raw_bands: List[Any] = d.get("bands_h", [[8.0, 9.5], [14.5, 16.0]])
        bands = []
        for b in raw_bands:
            if len(b) != 2 or float(b[0]) > float(b[1]):
                raise ValueError(f"Invalid school_zone band: {b}")
            bands.append((float(b[0]), float(b[1])))
        return SchoolZoneConfig(
            limit_kmh=float(d.get("limit_kmh", 40.0)),
            weekdays=tuple(int(x) for x in weekdays),
            bands_h=tuple(bands),
        )


def is_school_time(when: datetime, cfg: SchoolZoneConfig) -> bool:
    if when.weekday() not in cfg.weekdays:
        return False
    h = when.hour + when.minute / 60.0
    return any(lo <= h <= hi for lo, hi in cfg.bands_h)


def effective_speed_limit_kmh(ctx: RoadContext, school_time_active: bool, cfg: SchoolZoneConfig) -> Optional[float]:
    """Posted limit, tightened to the school-zone limit while a school zone is active."""
    if ctx.is_school_zone and school_time_active:
        if ctx.max_speed_kmh is None:
            return float(cfg.limit_kmh)
        return float(min(float(ctx.max_speed_kmh), float(cfg.limit_kmh)))
    if ctx.max_speed_kmh is None:
        return None
    return float(ctx.max_speed_kmh)


@dataclass(frozen=True)
class SpeedingTiers:
    moderate_over_kmh: float
    serious_over_kmh: float
    critical_over_kmh: float


def speeding_tier(over_kmh: float, tiers: SpeedingTiers) -> SeverityTier:
    if over_kmh > tiers.critical_over_kmh:
        return "critical"
    if over_kmh > tiers.serious_over_kmh:
        return "serious"
    if over_kmh > tiers.moderate_over_kmh:
        return "moderate"
    return "minor"
