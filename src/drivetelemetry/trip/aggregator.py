from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from drivetelemetry.geometry.simplify import PathCompressorConfig, simplify_path
from drivetelemetry.speed_estimation.math import haversine_m
from drivetelemetry.utils.types import (
    DrivingEvent,
    FusedFix,
    LatLng,
    SetupMode,
    TransportMode,
    TripRecord,
    TripValidity,
)


logger = logging.getLogger("drivetelemetry.trip.aggregator")

_EVENT_TIME_STEP_S = 1e-3


@dataclass(frozen=True)
class TripConfig:
    accuracy_gate_m: float
    path_min_step_m: float
    points_per_km: float
    min_speed_for_points_kmh: float
    max_valid_speed_kmh: float
    train_speed_kmh: float
    walk_speed_kmh: float
    compliance_penalty_per_event: int
    min_driver_confidence: float
    base_confidence: float
    mount_confidence_bonus: float
    passenger_confidence: float
    distraction_confidence_penalty: float
    path: PathCompressorConfig

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TripConfig":
        mode = d.get("transport_mode", {})
        conf = d.get("confidence", {})
        return TripConfig(
            accuracy_gate_m=float(d.get("accuracy_gate_m", 40.0)),
            path_min_step_m=float(d.get("path_min_step_m", 5.0)),
            points_per_km=float(d.get("points_per_km", 15.0)),
            min_speed_for_points_kmh=float(d.get("min_speed_for_points_kmh", 15.0)),
            max_valid_speed_kmh=float(d.get("max_valid_speed_kmh", 200.0)),
            train_speed_kmh=float(mode.get("train_speed_kmh", 180.0)),
            walk_speed_kmh=float(mode.get("walk_speed_kmh", 20.0)),
            compliance_penalty_per_event=int(d.get("compliance_penalty_per_event", 5)),
            min_driver_confidence=float(conf.get("min_driver", 0.4)),
            base_confidence=float(conf.get("base", 0.5)),
            mount_confidence_bonus=float(conf.get("mount_bonus", 0.3)),
            passenger_confidence=float(conf.get("passenger", 0.1)),
            distraction_confidence_penalty=float(conf.get("distraction_penalty", 0.25)),
            path=PathCompressorConfig.from_dict(dict(d.get("path", {}) or {})),
        )


def classify_transport_mode(max_speed_kmh: float, cfg: TripConfig) -> TransportMode:
    if max_speed_kmh > cfg.train_speed_kmh:
        return "train"
    if max_speed_kmh < cfg.walk_speed_kmh:
        return "walk"
    return "car"


def compliance_score(events: Iterable[DrivingEvent], penalty_per_event: int = 5) -> int:
    negatives = sum(1 for ev in events if ev.points_delta < 0)
    return max(0, 100 - penalty_per_event * negatives)


class TripAggregator:
    """
    Owns one trip at a time: accumulators during the drive, a single finalization at stop.

    Finalized records are frozen; the aggregator keeps nothing of a trip after ``stop``.
    """

    def __init__(self, cfg: TripConfig) -> None:
        self._cfg = cfg
        self._active = False
        self._clear()

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def trip_id(self) -> Optional[str]:
        return self._trip_id

    @property
    def distance_km(self) -> float:
        return self._distance_km

    @property
    def duration_s(self) -> int:
        return self._duration_s

    @property
    def points(self) -> int:
        return int(math.floor(self._points))

    @property
    def reward_eligible(self) -> bool:
        return self._reward_eligible

    @property
    def driver_confidence(self) -> float:
        return self._confidence

    @property
    def distraction_count(self) -> int:
        return self._distractions

    @property
    def events(self) -> List[DrivingEvent]:
        return list(self._events)

    @property
    def path(self) -> List[LatLng]:
        return list(self._path)

    def start(self, now_s: float, setup_mode: SetupMode = "mount", start_name: Optional[str] = None) -> str:
        self._clear()
        self._active = True
        self._trip_id = uuid.uuid4().hex
        self._start_time_s = float(now_s)
        self._start_name = start_name
        self._confidence = self._initial_confidence(setup_mode)
        logger.info("Trip %s started (mode=%s confidence=%.2f)", self._trip_id, setup_mode, self._confidence)
        return self._trip_id

    def tick_second(self) -> None:
        if self._active:
            self._duration_s += 1

    def add_fix(self, fix: FusedFix) -> None:
        if not self._active:
            return
        cfg = self._cfg
        if self._prev is not None and fix.accuracy_m < cfg.accuracy_gate_m:
            step_m = haversine_m(self._prev.latlng, fix.latlng)
            self._distance_km += step_m / 1000.0
            if step_m > cfg.path_min_step_m:
                self._path.append(fix.latlng)
            if self._reward_eligible and fix.speed_kmh > cfg.min_speed_for_points_kmh:
                self._points += step_m / 1000.0 * cfg.points_per_km
        if self._prev is None and fix.accuracy_m < cfg.accuracy_gate_m:
            self._path.append(fix.latlng)
        if self._max_speed_kmh < fix.speed_kmh < cfg.max_valid_speed_kmh:
            self._max_speed_kmh = float(fix.speed_kmh)
        self._prev = fix

    def add_events(self, events: Iterable[DrivingEvent]) -> None:
        for ev in events:
            self.add_event(ev)

    def add_event(self, event: DrivingEvent) -> None:
        if not self._active:
            return
        self._append(event)
        if not event.is_distraction:
            self._points += float(event.points_delta)
            return

        self._distractions += 1
        self._confidence = max(0.0, self._confidence - self._cfg.distraction_confidence_penalty)
        if self._distractions == 1:
            self._points = float(math.floor(self._points * 0.5))
            logger.warning("Trip %s: first distraction, points halved to %d", self._trip_id, self.points)
            return

        self._reward_eligible = False
        if self._distractions == 2:
            self._append(
                DrivingEvent(
                    type="TRIP_INVALIDATED_PHONE_USE",
                    timestamp_s=event.timestamp_s,
                    points_delta=0.0,
                    severity_tier="critical",
                    description="Trip Invalidated: Repeated Phone Use",
                    lat=event.lat,
                    lng=event.lng,
                    speed_kmh=event.speed_kmh,
                )
            )
            logger.warning("Trip %s invalidated after repeated phone use", self._trip_id)

    def stop(self, now_s: float, end_name: Optional[str] = None) -> TripRecord:
        if not self._active:
            raise RuntimeError("No active trip to stop")
        cfg = self._cfg
        mode = classify_transport_mode(self._max_speed_kmh, cfg)
        validity = self._validity(mode)
        events = tuple(self._events)
        score = compliance_score(events, cfg.compliance_penalty_per_event)
        points = self.points if validity == "VALID" else 0

        record = TripRecord(
            id=str(self._trip_id),
            start_time_s=self._start_time_s,
            end_time_s=float(now_s),
            distance_km=float(self._distance_km),
            duration_s=int(self._duration_s),
            points=int(points),
            max_speed_kmh=float(self._max_speed_kmh),
            compliance_score=int(score),
            events=events,
            compressed_path=tuple(simplify_path(self._path, cfg.path.tolerance_m)),
            start_name=self._start_name or "Unknown Location",
            end_name=end_name or "Free Drive",
            validity=validity,
            reward_eligible=self._reward_eligible and validity == "VALID",
            driver_confidence=float(self._confidence),
            mode_of_transport=mode,
        )
        logger.info(
            "Trip %s finalized: %.2f km, %d s, points=%d score=%d validity=%s path=%d->%d",
            record.id,
            record.distance_km,
            record.duration_s,
            record.points,
            record.compliance_score,
            record.validity,
            len(self._path),
            len(record.compressed_path),
        )
        self._active = False
        self._clear()
        return record

    def discard(self) -> None:
        if self._active:
            logger.info("Trip %s discarded", self._trip_id)
        self._active = False
        self._clear()

    def _validity(self, mode: TransportMode) -> TripValidity:
        if not self._reward_eligible:
            return "INVALID_HANDHELD"
        if self._confidence < self._cfg.min_driver_confidence:
            return "INVALID_PASSENGER"
        if mode == "train":
            return "INVALID_TRAIN"
        return "VALID"

    def _initial_confidence(self, setup_mode: SetupMode) -> float:
        if setup_mode == "passenger":
            return float(self._cfg.passenger_confidence)
        confidence = float(self._cfg.base_confidence)
        if setup_mode == "mount":
            confidence += self._cfg.mount_confidence_bonus
        return confidence

    def _append(self, event: DrivingEvent) -> None:
        if self._events and event.timestamp_s <= self._events[-1].timestamp_s:
            event = replace(event, timestamp_s=self._events[-1].timestamp_s + _EVENT_TIME_STEP_S)
        self._events.append(event)

    def _clear(self) -> None:
        self._trip_id: Optional[str] = None
        self._start_time_s = 0.0
        self._start_name: Optional[str] = None
        self._distance_km = 0.0
        self._duration_s = 0
        self._points = 0.0
        self._max_speed_kmh = 0.0
        self._events: List[DrivingEvent] = []
        self._path: List[LatLng] = []
        self._prev: Optional[FusedFix] = None
        self._reward_eligible = True
        self._distractions = 0
        self._confidence = float(self._cfg.base_confidence)
