import pytest

from drivetelemetry.speed_estimation.math import offset_latlng
from drivetelemetry.trip.aggregator import TripAggregator, TripConfig, classify_transport_mode, compliance_score
from drivetelemetry.utils.types import DrivingEvent, FusedFix

ORIGIN = (45.0, 7.0)


def _fix(t: float, east_m: float, speed_kmh: float = 36.0, accuracy_m: float = 5.0) -> FusedFix:
    lat, lng = offset_latlng(ORIGIN, east_m, 0.0)
    return FusedFix(timestamp_s=t, lat=lat, lng=lng, accuracy_m=accuracy_m, speed_kmh=speed_kmh, heading_deg=90.0)


def _event(t: float, type_: str = "SPEEDING", points: float = -7.0) -> DrivingEvent:
    return DrivingEvent(type=type_, timestamp_s=t, points_delta=points, severity_tier="moderate", description=type_)  # type: ignore[arg-type]


def _aggregator(setup_mode: str = "mount") -> TripAggregator:
    agg = TripAggregator(TripConfig.from_dict({}))
    agg.start(0.0, setup_mode)  # type: ignore[arg-type]
    return agg


def test_start_resets_accumulators() -> None:
    agg = _aggregator()
    agg.add_fix(_fix(0.0, 0.0))
    agg.add_fix(_fix(1.0, 100.0))
    agg.add_event(_event(1.0))
    agg.start(2.0, "mount")
    assert agg.distance_km == 0.0
    assert agg.events == []
    assert agg.path == []
    assert agg.reward_eligible
    assert agg.distraction_count == 0
    assert abs(agg.driver_confidence - 0.8) < 1e-9


def test_distance_skips_noisy_fixes() -> None:
    agg = _aggregator()
    agg.add_fix(_fix(0.0, 0.0))
    agg.add_fix(_fix(1.0, 100.0))
    agg.add_fix(_fix(2.0, 300.0, accuracy_m=80.0))
    agg.add_fix(_fix(3.0, 400.0))
    assert abs(agg.distance_km - 0.2) < 1e-6
    assert len(agg.path) == 3


def test_points_accrue_only_above_speed_floor() -> None:
    agg = _aggregator()
    agg.add_fix(_fix(0.0, 0.0, speed_kmh=10.0))
    agg.add_fix(_fix(1.0, 1000.0, speed_kmh=10.0))
    assert agg.points == 0
    agg.add_fix(_fix(2.0, 3000.0, speed_kmh=60.0))
    assert 29 <= agg.points <= 30


def test_first_distraction_halves_points_once() -> None:
    agg = _aggregator()
    for t in range(4):
        agg.add_event(_event(float(t), "SAFE_DRIVING_BONUS", 5.0))
    assert agg.points == 20
    agg.add_event(_event(10.0, "PHONE_TOUCH", -30.0))
    assert agg.points == 10
    assert agg.reward_eligible
    assert abs(agg.driver_confidence - 0.55) < 1e-9


def test_second_distraction_invalidates_exactly_once() -> None:
    agg = _aggregator()
    agg.add_event(_event(1.0, "PHONE_TOUCH", -30.0))
    agg.add_event(_event(5.0, "APP_BACKGROUNDED", -30.0))
    assert not agg.reward_eligible
    agg.add_event(_event(9.0, "PHONE_TOUCH", -30.0))
    agg.add_event(_event(12.0, "PHONE_TOUCH", -30.0))
    invalidations = [ev for ev in agg.events if ev.type == "TRIP_INVALIDATED_PHONE_USE"]
    assert len(invalidations) == 1
    assert agg.distraction_count == 4

    rec = agg.stop(20.0)
    assert rec.validity == "INVALID_HANDHELD"
    assert rec.points == 0
    assert not rec.reward_eligible


def test_event_timestamps_are_strictly_increasing() -> None:
    agg = _aggregator()
    agg.add_event(_event(5.0))
    agg.add_event(_event(5.0))
    agg.add_event(_event(4.0))
    ts = [ev.timestamp_s for ev in agg.events]
    assert all(b > a for a, b in zip(ts, ts[1:]))


def test_stop_builds_record_and_clears_state() -> None:
    agg = _aggregator()
    for i in range(30):
        agg.add_fix(_fix(float(i), 50.0 * i, speed_kmh=50.0))
        agg.tick_second()
    agg.add_event(_event(3.0))
    agg.add_event(_event(7.0, "HARSH_BRAKING"))
    rec = agg.stop(30.0, end_name="Home")

    assert rec.duration_s == 30
    assert rec.start_name == "Unknown Location"
    assert rec.end_name == "Home"
    assert rec.compliance_score == 90
    assert rec.validity == "VALID"
    assert rec.mode_of_transport == "car"
    assert rec.reward_eligible
    # a straight drive compresses to its endpoints
    assert len(rec.compressed_path) == 2
    assert abs(rec.max_speed_kmh - 50.0) < 1e-9
    assert not agg.is_active
    assert agg.trip_id is None


def test_stop_without_trip_raises() -> None:
    agg = TripAggregator(TripConfig.from_dict({}))
    with pytest.raises(RuntimeError):
        agg.stop(0.0)


def test_passenger_trip_is_invalid() -> None:
    agg = _aggregator("passenger")
    agg.add_fix(_fix(0.0, 0.0, speed_kmh=50.0))
    rec = agg.stop(10.0)
    assert rec.validity == "INVALID_PASSENGER"
    assert rec.points == 0


def test_train_speed_invalidates_and_outliers_are_ignored() -> None:
    agg = _aggregator()
    agg.add_fix(_fix(0.0, 0.0, speed_kmh=190.0))
    agg.add_fix(_fix(1.0, 50.0, speed_kmh=250.0))
    rec = agg.stop(2.0)
    assert abs(rec.max_speed_kmh - 190.0) < 1e-9
    assert rec.mode_of_transport == "train"
    assert rec.validity == "INVALID_TRAIN"


def test_transport_mode_and_compliance_helpers() -> None:
    cfg = TripConfig.from_dict({})
    assert classify_transport_mode(10.0, cfg) == "walk"
    assert classify_transport_mode(90.0, cfg) == "car"
    assert classify_transport_mode(181.0, cfg) == "train"
    assert compliance_score([_event(float(i)) for i in range(3)]) == 85
    assert compliance_score([_event(float(i)) for i in range(25)]) == 0
    assert compliance_score([_event(1.0, "SAFE_DRIVING_BONUS", 5.0)]) == 100


def test_discard_drops_trip() -> None:
    agg = _aggregator()
    agg.add_fix(_fix(0.0, 0.0))
    agg.discard()
    assert not agg.is_active
    with pytest.raises(RuntimeError):
        agg.stop(1.0)
