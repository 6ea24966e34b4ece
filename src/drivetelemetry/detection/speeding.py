from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from drivetelemetry.speed_estimation.limits import SpeedingTiers, speeding_tier
from drivetelemetry.utils.types import DrivingEvent, FusedFix, SeverityTier


logger = logging.getLogger("drivetelemetry.detection.speeding")


@dataclass(frozen=True)
class SpeedingPoints:
    minor: float
    moderate: float
    serious: float
    critical: float
    recurring: float

    def for_tier(self, tier: SeverityTier) -> float:
        return float(getattr(self, tier))


@dataclass(frozen=True)
class SpeedingConfig:
    tolerance_kmh: float
    sustain_s: float
    recurring_s: float
    accuracy_gate_m: float
    tiers: SpeedingTiers
    points: SpeedingPoints
    school_zone_multiplier: float
    bonus_points: float
    bonus_min_speed_kmh: float
    bonus_interval_s: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SpeedingConfig":
        thr = d.get("thresholds_over_kmh", {})
        pts = d.get("points", {})
        bonus = d.get("safe_driving_bonus", {})
        tiers = SpeedingTiers(
            moderate_over_kmh=float(thr.get("moderate", 10.0)),
            serious_over_kmh=float(thr.get("serious", 20.0)),
            critical_over_kmh=float(thr.get("critical", 30.0)),
        )
        if not tiers.moderate_over_kmh <= tiers.serious_over_kmh <= tiers.critical_over_kmh:
            raise ValueError("speeding.thresholds_over_kmh must be non-decreasing")
        return SpeedingConfig(
            tolerance_kmh=float(d.get("tolerance_kmh", 4.0)),
            sustain_s=float(d.get("sustain_s", 3.0)),
            recurring_s=float(d.get("recurring_s", 5.0)),
            accuracy_gate_m=float(d.get("accuracy_gate_m", 40.0)),
            tiers=tiers,
            points=SpeedingPoints(
                minor=float(pts.get("minor", -3.0)),
                moderate=float(pts.get("moderate", -7.0)),
                serious=float(pts.get("serious", -15.0)),
                critical=float(pts.get("critical", -30.0)),
                recurring=float(pts.get("recurring", -5.0)),
            ),
            school_zone_multiplier=float(d.get("school_zone_multiplier", 2.0)),
            bonus_points=float(bonus.get("points", 5.0)),
            bonus_min_speed_kmh=float(bonus.get("min_speed_kmh", 20.0)),
            bonus_interval_s=float(bonus.get("interval_s", 60.0)),
        )


@dataclass(frozen=True)
class SpeedingContext:
    limit_kmh: Optional[float]
    is_school_zone: bool = False
    school_time_active: bool = False


class SpeedingMonitor:
    """
    Speeding episode tracker.

    An episode opens once the speed exceeds limit + tolerance. The first penalty fires
    after ``sustain_s``; while the episode lasts a recurring penalty fires every
    ``recurring_s``. Falling back to limit + tolerance or below closes the episode.
    """

    def __init__(self, cfg: SpeedingConfig) -> None:
        self._cfg = cfg
        self._last_bonus_s: Optional[float] = None
        self.reset()

    @property
    def is_penalty_active(self) -> bool:
        return self._penalty_active

    def reset(self) -> None:
        self._episode_start_s: Optional[float] = None
        self._penalty_active = False
        self._last_penalty_s: Optional[float] = None
        self._penalties = 0

    def restart(self) -> None:
        self.reset()
        self._last_bonus_s = None

    def update(self, now_s: float, fix: FusedFix, ctx: SpeedingContext) -> List[DrivingEvent]:
        cfg = self._cfg
        limit = ctx.limit_kmh
        if limit is None or fix.accuracy_m >= cfg.accuracy_gate_m:
            self.reset()
            return []

        speed = float(fix.speed_kmh)
        if speed <= limit + cfg.tolerance_kmh:
            self.reset()
            return self._maybe_bonus(now_s, fix, limit, ctx)

        if self._episode_start_s is None:
            self._episode_start_s = float(now_s)
        duration = float(now_s) - self._episode_start_s
        if duration < cfg.sustain_s:
            return []
        if self._penalty_active and self._last_penalty_s is not None:
            if float(now_s) - self._last_penalty_s < cfg.recurring_s:
                return []

        over = speed - limit
        tier = speeding_tier(over, cfg.tiers)
        points = cfg.points.for_tier(tier)
        if self._penalties > 0:
            points = cfg.points.recurring
        school_active = ctx.is_school_zone and ctx.school_time_active
        if school_active:
            points *= cfg.school_zone_multiplier
            tier = "critical"

        self._penalty_active = True
        self._last_penalty_s = float(now_s)
        self._penalties += 1

        event = DrivingEvent(
            type="SCHOOL_ZONE_SPEEDING" if ctx.is_school_zone else "SPEEDING",
            timestamp_s=float(now_s),
            points_delta=float(points),
            severity_tier=tier,
            description=f"Speeding: {round(speed)} in {round(limit)}",
            lat=fix.lat,
            lng=fix.lng,
            speed_kmh=speed,
            road_limit_kmh=float(limit),
            value=speed,
        )
        logger.info("%s tier=%s over=%.1f km/h points=%.1f", event.type, tier, over, points)
        return [event]

    def _maybe_bonus(self, now_s: float, fix: FusedFix, limit: float, ctx: SpeedingContext) -> List[DrivingEvent]:
        cfg = self._cfg
        speed = float(fix.speed_kmh)
        if ctx.is_school_zone or not (cfg.bonus_min_speed_kmh < speed < limit):
            return []
        if self._last_bonus_s is not None and float(now_s) - self._last_bonus_s < cfg.bonus_interval_s:
            return []
        self._last_bonus_s = float(now_s)
        return [
            DrivingEvent(
                type="SAFE_DRIVING_BONUS",
                timestamp_s=float(now_s),
                points_delta=float(cfg.bonus_points),
                severity_tier="minor",
                description="Safe Driving Bonus",
                lat=fix.lat,
                lng=fix.lng,
                speed_kmh=speed,
                road_limit_kmh=float(limit),
                value=speed,
            )
        ]
