from __future__ import annotations

import logging
import queue
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

from drivetelemetry.context.base import NO_ROAD_DATA, RoadContextService
from drivetelemetry.context.refresher import RoadContextConfig, RoadContextRefresher
from drivetelemetry.context.registry import create_road_context_service
from drivetelemetry.detection.detector import ViolationDetector, ViolationDetectorConfig
from drivetelemetry.io.sources import ClockTick, LocationError, LocationErrorSample, SensorSample
from drivetelemetry.navigation.guidance import NavigatorConfig, RouteNavigator
from drivetelemetry.output.notifier import FeedbackSink, create_feedback_sink
from drivetelemetry.output.sinks import CsvTripSummaryStore, JsonlTripStore, TripStore, TripStores
from drivetelemetry.pipeline.scheduler import Scheduler
from drivetelemetry.routing.base import RouteError, RouteService
from drivetelemetry.routing.registry import create_route_service
from drivetelemetry.speed_estimation.estimator import PositionFusionConfig, PositionFusionEstimator
from drivetelemetry.speed_estimation.heading import HeadingFusionConfig, HeadingFusionEstimator
from drivetelemetry.trip.aggregator import TripAggregator, TripConfig
from drivetelemetry.utils.config import resolve_path
from drivetelemetry.utils.types import (
    DrivingEvent,
    FusedFix,
    InteractionEvent,
    LatLng,
    MotionSample,
    OrientationSample,
    RawFix,
    RoadContext,
    RouteGeometry,
    SetupMode,
    TripRecord,
)


logger = logging.getLogger("drivetelemetry.pipeline.session")


@dataclass(frozen=True)
class GpsConfig:
    timeout_s: float = 10.0
    max_accuracy_m: float = 200.0
    signal_check_s: float = 2.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "GpsConfig":
        return GpsConfig(
            timeout_s=float(d.get("timeout_s", 10.0)),
            max_accuracy_m=float(d.get("max_accuracy_m", 200.0)),
            signal_check_s=float(d.get("signal_check_s", 2.0)),
        )


@dataclass(frozen=True)
class OutputConfig:
    jsonl_path: Optional[str] = None
    csv_path: Optional[str] = None

    @staticmethod
    def from_dict(d: Dict[str, Any], base_dir: Optional[str] = None) -> "OutputConfig":
        csv_cfg = d.get("csv", {}) or {}
        jsonl_cfg = d.get("jsonl", {}) or {}
        return OutputConfig(
            jsonl_path=resolve_path(str(jsonl_cfg.get("path")), base_dir) if bool(jsonl_cfg.get("enabled", False)) else None,
            csv_path=resolve_path(str(csv_cfg.get("path")), base_dir) if bool(csv_cfg.get("enabled", False)) else None,
        )

    def create_store(self) -> TripStore:
        return TripStores(
            jsonl=JsonlTripStore(self.jsonl_path) if self.jsonl_path else None,
            csv=CsvTripSummaryStore(self.csv_path) if self.csv_path else None,
        )


@dataclass(frozen=True)
class TelemetryConfig:
    position: PositionFusionConfig
    heading: HeadingFusionConfig
    violations: ViolationDetectorConfig
    navigation: NavigatorConfig
    trip: TripConfig
    road_context: RoadContextConfig
    gps: GpsConfig
    output: OutputConfig
    feedback: Dict[str, Any] = field(default_factory=dict)
    routing: Dict[str, Any] = field(default_factory=dict)
    duration_tick_s: float = 1.0

    @staticmethod
    def from_dict(d: Dict[str, Any], base_dir: Optional[str] = None) -> "TelemetryConfig":
        return TelemetryConfig(
            position=PositionFusionConfig.from_dict(dict(d.get("position", {}) or {})),
            heading=HeadingFusionConfig.from_dict(dict(d.get("heading", {}) or {})),
            violations=ViolationDetectorConfig.from_dict(dict(d.get("violations", {}) or {})),
            navigation=NavigatorConfig.from_dict(dict(d.get("navigation", {}) or {})),
            trip=TripConfig.from_dict(dict(d.get("trip", {}) or {})),
            road_context=RoadContextConfig.from_dict(dict(d.get("road_context", {}) or {})),
            gps=GpsConfig.from_dict(dict(d.get("gps", {}) or {})),
            output=OutputConfig.from_dict(dict(d.get("output", {}) or {}), base_dir),
            feedback=dict(d.get("feedback", {}) or {}),
            routing=dict(d.get("routing", {}) or {}),
            duration_tick_s=float(d.get("duration_tick_s", 1.0)),
        )


@dataclass(frozen=True)
class Envelope:
    kind: str
    timestamp_s: float
    payload: Any = None
    seq: int = 0
    trip_id: Optional[str] = None


class TripSession:
    """
    Single consumer of an ordered envelope queue.

    Sensor sources and background completions only ``post``; every state change happens in
    ``run_pending`` on the caller's thread. Per fix the order is position fusion, heading
    fusion, navigation, violation tick, then trip accumulation.
    """

    def __init__(
        self,
        cfg: TelemetryConfig,
        road_context: Optional[RoadContextService] = None,
        route_service: Optional[RouteService] = None,
        feedback: Optional[FeedbackSink] = None,
        store: Optional[TripStore] = None,
        executor: Optional[Executor] = None,
        wall_clock: Optional[Callable[[float], datetime]] = None,
    ) -> None:
        self._cfg = cfg
        self._position = PositionFusionEstimator(cfg.position)
        self._heading = HeadingFusionEstimator(cfg.heading)
        self._detector = ViolationDetector(cfg.violations)
        self._navigator = RouteNavigator(cfg.navigation)
        self._aggregator = TripAggregator(cfg.trip)
        self._refresher = RoadContextRefresher(cfg.road_context)
        self._road_service = road_context or create_road_context_service(cfg.road_context.backend, cfg.road_context.params)
        self._route_service = route_service
        if self._route_service is None and cfg.routing:
            self._route_service = create_route_service(
                str(cfg.routing.get("backend", "none")).lower(), dict(cfg.routing.get("params", {}) or {})
            )
        self._feedback = feedback or create_feedback_sink(cfg.feedback)
        self._store = store or cfg.output.create_store()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="telemetry-io")
        self._wall_clock = wall_clock or datetime.fromtimestamp
        self._scheduler = Scheduler()
        self._queue: "queue.Queue[Envelope]" = queue.Queue()

        self._now_s = 0.0
        self._fused: Optional[FusedFix] = None
        self._compass_deg: Optional[float] = None
        self._last_fix_s: Optional[float] = None
        self._signal_lost = False
        self._location_error: Optional[LocationError] = None
        self._route_seq = 0
        self._destination: Optional[LatLng] = None
        self.route_error: Optional[RouteError] = None
        self.last_record: Optional[TripRecord] = None

    @property
    def is_active(self) -> bool:
        return self._aggregator.is_active

    @property
    def trip_id(self) -> Optional[str]:
        return self._aggregator.trip_id

    @property
    def fused(self) -> Optional[FusedFix]:
        return self._fused

    @property
    def signal_lost(self) -> bool:
        return self._signal_lost

    @property
    def location_error(self) -> Optional[LocationError]:
        return self._location_error

    @property
    def detector(self) -> ViolationDetector:
        return self._detector

    @property
    def aggregator(self) -> TripAggregator:
        return self._aggregator

    @property
    def navigator(self) -> RouteNavigator:
        return self._navigator

    def post(self, sample: SensorSample) -> None:
        if isinstance(sample, RawFix):
            self._queue.put(Envelope("fix", sample.timestamp_s, sample))
        elif isinstance(sample, MotionSample):
            self._queue.put(Envelope("motion", sample.timestamp_s, sample))
        elif isinstance(sample, OrientationSample):
            self._queue.put(Envelope("orientation", sample.timestamp_s, sample))
        elif isinstance(sample, InteractionEvent):
            self._queue.put(Envelope("interaction", sample.timestamp_s, sample))
        elif isinstance(sample, LocationErrorSample):
            self._queue.put(Envelope("location_error", sample.timestamp_s, sample.error))
        elif isinstance(sample, ClockTick):
            self._queue.put(Envelope("clock", sample.timestamp_s))
        else:
            raise TypeError(f"Unsupported sample: {type(sample).__name__}")

    def feed(self, sample: SensorSample) -> None:
        self.post(sample)
        self.run_pending()

    def run_pending(self) -> int:
        handled = 0
        while True:
            try:
                env = self._queue.get_nowait()
            except queue.Empty:
                return handled
            self._dispatch(env)
            handled += 1

    def start(self, setup_mode: SetupMode = "mount", start_name: Optional[str] = None, now_s: Optional[float] = None) -> str:
        self.run_pending()
        if self._location_error is not None and self._location_error.is_fatal:
            raise self._location_error
        if self.is_active:
            raise RuntimeError("Trip already active")
        t = self._now_s if now_s is None else float(now_s)
        self._now_s = max(self._now_s, t)
        self._position.reset()
        self._heading.reset()
        self._signal_lost = False
        trip_id = self._aggregator.start(t, setup_mode, start_name)
        self._detector.start(t, setup_mode)
        self._scheduler.every(t, self._cfg.duration_tick_s, self._on_duration_tick)
        self._scheduler.every(t, self._cfg.gps.signal_check_s, self._on_signal_check)
        return trip_id

    def stop(self, end_name: Optional[str] = None, save: bool = True) -> Optional[TripRecord]:
        if not self.is_active:
            raise RuntimeError("No active trip to stop")
        self._scheduler.cancel_all()
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
                dropped += 1
            except queue.Empty:
                break
        if dropped:
            logger.debug("Dropped %d pending envelopes on stop", dropped)
        self._refresher.invalidate()
        self._route_seq += 1
        self._destination = None
        self._navigator.clear_route()
        self._detector.stop()
        if not save:
            self._aggregator.discard()
            return None
        record = self._aggregator.stop(self._now_s, end_name)
        self._store.save(record)
        self.last_record = record
        return record

    def request_route(self, destination: LatLng, origin: Optional[LatLng] = None) -> int:
        if self._route_service is None:
            raise RuntimeError("No route service configured")
        if origin is None:
            if self._fused is None:
                raise RuntimeError("No position available to route from")
            origin = self._fused.latlng
        self._destination = (float(destination[0]), float(destination[1]))
        self._route_seq += 1
        seq = self._route_seq
        future = self._executor.submit(self._route_service.route, origin, self._destination)
        future.add_done_callback(lambda f: self._post_completion("route", f, seq, None))
        return seq

    def close(self) -> None:
        if self.is_active:
            self.stop(save=False)
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def _dispatch(self, env: Envelope) -> None:
        if env.kind in ("fix", "motion", "orientation", "interaction", "clock", "location_error"):
            self._advance_clock(env.timestamp_s)
        if env.kind == "fix":
            self._on_fix(env.payload)
        elif env.kind == "motion":
            self._on_motion(env.payload)
        elif env.kind == "orientation":
            self._on_orientation(env.payload)
        elif env.kind == "interaction":
            self._on_interaction(env.payload)
        elif env.kind == "location_error":
            self._on_location_error(env.payload)
        elif env.kind == "road_context":
            self._on_road_context(env)
        elif env.kind == "route":
            self._on_route(env)

    def _advance_clock(self, t: float) -> None:
        if t > self._now_s:
            self._now_s = float(t)
        self._scheduler.advance(self._now_s)

    def _on_fix(self, fix: RawFix) -> None:
        if self._last_fix_s is not None and fix.accuracy_m > self._cfg.gps.max_accuracy_m:
            logger.debug("Dropping fix with accuracy %.0f m", fix.accuracy_m)
            return
        self._last_fix_s = float(fix.timestamp_s)
        self._location_error = None
        if self._signal_lost:
            self._signal_lost = False
            logger.info("GPS signal restored")

        speed = self._position.update(fix)
        heading = self._heading.update(fix.heading_deg, self._compass_deg, speed)
        fused = FusedFix(
            timestamp_s=float(fix.timestamp_s),
            lat=float(fix.lat),
            lng=float(fix.lng),
            accuracy_m=float(fix.accuracy_m),
            speed_kmh=speed,
            heading_deg=heading,
        )
        self._fused = fused
        if not self.is_active:
            return

        nav = self._navigator.update(fused.timestamp_s, fused.latlng)
        for prompt in nav.prompts:
            self._feedback.on_guidance(prompt)
        if nav.reroute_requested and self._destination is not None and self._route_service is not None:
            self.request_route(self._destination, fused.latlng)

        if self._refresher.due(fused.timestamp_s, fused.latlng):
            self._request_road_context(fused)

        result = self._detector.tick(fused.timestamp_s, fix=fused, signal_lost=self._signal_lost)
        self._aggregator.add_fix(fused)
        self._record_events(result.events)

    def _on_motion(self, sample: MotionSample) -> None:
        if not self.is_active:
            return
        result = self._detector.tick(sample.timestamp_s, motion=sample, signal_lost=self._signal_lost)
        self._record_events(result.events)

    def _on_orientation(self, sample: OrientationSample) -> None:
        self._compass_deg = sample.compass_heading_deg
        if self._compass_deg is None:
            return
        speed = self._position.speed_kmh
        if speed < self._cfg.heading.low_speed_compass_kmh:
            self._heading.update(None, self._compass_deg, speed)

    def _on_interaction(self, interaction: InteractionEvent) -> None:
        if not self.is_active:
            return
        self._detector.record_interaction(interaction)
        result = self._detector.tick(interaction.timestamp_s, signal_lost=self._signal_lost)
        self._record_events(result.events)

    def _on_location_error(self, err: LocationError) -> None:
        self._location_error = err
        if err.is_fatal:
            logger.error("Location provider error: %s (%s)", err.kind, err)
        else:
            logger.warning("Location provider timeout: %s", err)

    def _on_duration_tick(self, now_s: float) -> None:
        self._aggregator.tick_second()

    def _on_signal_check(self, now_s: float) -> None:
        if self._signal_lost or self._last_fix_s is None:
            return
        if now_s - self._last_fix_s > self._cfg.gps.timeout_s:
            self._signal_lost = True
            logger.warning("GPS signal lost: no fix for %.1f s", now_s - self._last_fix_s)

    def _request_road_context(self, fused: FusedFix) -> None:
        seq = self._refresher.begin(fused.timestamp_s, fused.latlng)
        trip_id = self._aggregator.trip_id
        future = self._executor.submit(self._road_service.lookup, fused.lat, fused.lng)
        future.add_done_callback(lambda f: self._post_completion("road_context", f, seq, trip_id))

    def _post_completion(self, kind: str, future: "Future[Any]", seq: int, trip_id: Optional[str]) -> None:
        try:
            payload: Any = future.result()
        except Exception as e:
            if kind == "road_context":
                logger.warning("Road context lookup failed: %s", e)
                payload = NO_ROAD_DATA
            else:
                payload = e
        self._queue.put(Envelope(kind, self._now_s, payload, seq=seq, trip_id=trip_id))

    def _on_road_context(self, env: Envelope) -> None:
        if not self.is_active or env.trip_id != self._aggregator.trip_id or not self._refresher.is_current(env.seq):
            logger.debug("Discarding stale road context (seq=%d)", env.seq)
            return
        ctx: RoadContext = env.payload
        self._detector.apply_road_context(ctx, self._wall_clock(self._now_s))

    def _on_route(self, env: Envelope) -> None:
        if env.seq != self._route_seq:
            logger.debug("Discarding stale route (seq=%d)", env.seq)
            return
        if isinstance(env.payload, RouteGeometry):
            self.route_error = None
            self._navigator.set_route(env.payload)
            return
        err = env.payload
        self.route_error = err if isinstance(err, RouteError) else RouteError(str(err))
        logger.warning("Route request failed: %s", self.route_error)

    def _record_events(self, events: Iterable[DrivingEvent]) -> None:
        for ev in events:
            self._aggregator.add_event(ev)
            self._feedback.on_event(ev)
