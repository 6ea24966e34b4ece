from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from drivetelemetry.context.base import NO_ROAD_DATA
from drivetelemetry.detection.distraction import DistractionConfig, distraction_event
from drivetelemetry.detection.gforce import GForceConfig, g_force_event
from drivetelemetry.detection.speeding import SpeedingConfig, SpeedingContext, SpeedingMonitor
from drivetelemetry.detection.stop import StopDetector, StopDetectorConfig
from drivetelemetry.speed_estimation.limits import SchoolZoneConfig, effective_speed_limit_kmh, is_school_time
from drivetelemetry.speed_estimation.smoothing import MotionSmoother, MotionSmootherConfig
from drivetelemetry.utils.types import DrivingEvent, FusedFix, InteractionEvent, MotionSample, RoadContext, SetupMode


logger = logging.getLogger("drivetelemetry.detection.detector")


@dataclass(frozen=True)
class ViolationDetectorConfig:
    stop: StopDetectorConfig
    speeding: SpeedingConfig
    g_force: GForceConfig
    distraction: DistractionConfig
    school_zone: SchoolZoneConfig
    motion: MotionSmootherConfig
    warning_cooldown_s: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ViolationDetectorConfig":
        return ViolationDetectorConfig(
            stop=StopDetectorConfig.from_dict(dict(d.get("safe_stop", {}) or {})),
            speeding=SpeedingConfig.from_dict(dict(d.get("speeding", {}) or {})),
            g_force=GForceConfig.from_dict(dict(d.get("g_force", {}) or {})),
            distraction=DistractionConfig.from_dict(dict(d.get("distraction", {}) or {})),
            school_zone=SchoolZoneConfig.from_dict(dict(d.get("school_zone", {}) or {})),
            motion=MotionSmootherConfig.from_dict(dict(d.get("motion", {}) or {})),
            warning_cooldown_s=float(d.get("warning_cooldown_s", 3.0)),
        )


@dataclass
class TickResult:
    """Events raised on one tick and the signed point delta they carry.

    The delta is for this tick only; accumulation belongs to the trip aggregator.
    """

    points_delta: float = 0.0
    events: List[DrivingEvent] = field(default_factory=list)


class ViolationDetector:
    """
    Per-tick driving-violation state machine.

    Each ``tick`` runs in a fixed order: position update, stopped-state update,
    distraction check, then the main loop (speeding followed by G-force).
    """

    def __init__(self, cfg: ViolationDetectorConfig) -> None:
        self._cfg = cfg
        self._stop = StopDetector(cfg.stop)
        self._speeding = SpeedingMonitor(cfg.speeding)
        self._motion = MotionSmoother(cfg.motion)
        self._active = False
        self._passenger = False
        self._fix: Optional[FusedFix] = None
        self._pending: List[InteractionEvent] = []
        self._last_warning_s: Optional[float] = None
        self._road = NO_ROAD_DATA
        self._school_time = False
        self._limit_kmh: Optional[float] = None
        self.points_delta = 0.0

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_stopped(self) -> bool:
        return self._stop.is_stopped

    @property
    def is_passenger(self) -> bool:
        return self._passenger

    @property
    def speed_limit_kmh(self) -> Optional[float]:
        return self._limit_kmh

    @property
    def road_context(self) -> RoadContext:
        return self._road

    @property
    def school_time_active(self) -> bool:
        return self._school_time

    def start(self, now_s: float, setup_mode: SetupMode) -> None:
        self._active = True
        self._passenger = setup_mode == "passenger"
        self._stop.reset(now_s)
        self._speeding.restart()
        self._motion.reset()
        self._fix = None
        self._pending = []
        self._last_warning_s = None
        self._road = NO_ROAD_DATA
        self._school_time = False
        self._limit_kmh = None
        self.points_delta = 0.0

    def stop(self) -> None:
        self._active = False
        self._pending = []
        self.points_delta = 0.0

    def record_interaction(self, interaction: InteractionEvent) -> None:
        if not self._active or self._passenger:
            return
        self._pending.append(interaction)

    def apply_road_context(self, ctx: RoadContext, when: datetime) -> None:
        self._road = ctx
        self._school_time = is_school_time(when, self._cfg.school_zone)
        self._limit_kmh = effective_speed_limit_kmh(ctx, self._school_time, self._cfg.school_zone)
        logger.debug(
            "Road context: limit=%s school_zone=%s school_time=%s road=%s",
            self._limit_kmh,
            ctx.is_school_zone,
            self._school_time,
            ctx.road_name,
        )

    def tick(
        self,
        now_s: float,
        fix: Optional[FusedFix] = None,
        motion: Optional[MotionSample] = None,
        signal_lost: bool = False,
    ) -> TickResult:
        self.points_delta = 0.0
        result = TickResult()
        if not self._active:
            return result

        if fix is not None:
            self._fix = fix
            self._stop.update(now_s, fix.speed_kmh)

        self._check_distraction(result, signal_lost)

        if self._fix is not None and not self._passenger:
            ctx = SpeedingContext(
                limit_kmh=self._limit_kmh,
                is_school_zone=self._road.is_school_zone,
                school_time_active=self._school_time,
            )
            result.events.extend(self._speeding.update(now_s, self._fix, ctx))

        if motion is not None:
            smoothed = self._motion.add(motion.ax, motion.ay, motion.az)
            if self._g_force_armed(now_s):
                f = self._fix
                ev = g_force_event(
                    now_s,
                    smoothed,
                    self._cfg.g_force,
                    lat=f.lat if f is not None else None,
                    lng=f.lng if f is not None else None,
                    speed_kmh=f.speed_kmh if f is not None else None,
                )
                if ev is not None:
                    logger.info("%s |a|=%.2f m/s^2", ev.type, ev.value or 0.0)
                    result.events.append(ev)
                    self._last_warning_s = float(now_s)

        result.points_delta = float(sum(ev.points_delta for ev in result.events))
        self.points_delta = result.points_delta
        return result

    def _check_distraction(self, result: TickResult, signal_lost: bool) -> None:
        pending, self._pending = self._pending, []
        for interaction in pending:
            t = float(interaction.timestamp_s)
            if self._last_warning_s is not None and t - self._last_warning_s < self._cfg.distraction.debounce_s:
                continue
            ev = distraction_event(interaction, self._fix, self._cfg.distraction, self._stop.is_stopped, signal_lost)
            if ev is None:
                continue
            logger.warning("%s at %.1f km/h", ev.type, ev.speed_kmh or 0.0)
            result.events.append(ev)
            self._last_warning_s = t

    def _g_force_armed(self, now_s: float) -> bool:
        if self._stop.is_stopped or self._speeding.is_penalty_active:
            return False
        if self._last_warning_s is None:
            return True
        return float(now_s) - self._last_warning_s > self._cfg.warning_cooldown_s
