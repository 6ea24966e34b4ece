import random

from drivetelemetry.speed_estimation.estimator import PositionFusionConfig, PositionFusionEstimator
from drivetelemetry.speed_estimation.heading import HeadingFusionConfig, HeadingFusionEstimator
from drivetelemetry.speed_estimation.math import haversine_m, lerp_angle_deg, offset_latlng, speed_kmh, wrap_angle_deg
from drivetelemetry.speed_estimation.smoothing import CircularEmaSmoother, EmaSmoother, MotionSmoother, MotionSmootherConfig, MovingAverage
from drivetelemetry.utils.types import OrientationSample, RawFix

ORIGIN = (45.0, 7.0)


def _fix(t: float, east_m: float, speed_mps=None, accuracy_m: float = 5.0) -> RawFix:
    lat, lng = offset_latlng(ORIGIN, east_m, 0.0)
    return RawFix(lat=lat, lng=lng, accuracy_m=accuracy_m, timestamp_s=t, speed_mps=speed_mps)


def test_haversine_matches_local_offset() -> None:
    p = offset_latlng(ORIGIN, 0.0, 100.0)
    assert abs(haversine_m(ORIGIN, p) - 100.0) < 1e-3


def test_speed_kmh_basic() -> None:
    p = offset_latlng(ORIGIN, 0.0, 100.0)
    v = speed_kmh(ORIGIN, 0.0, p, 10.0)
    assert v is not None
    assert abs(v - 36.0) < 1e-3
    assert speed_kmh(ORIGIN, 1.0, p, 1.0) is None


def test_wrap_and_lerp_take_shortest_arc() -> None:
    assert abs(wrap_angle_deg(190.0) - (-170.0)) < 1e-9
    assert abs(lerp_angle_deg(350.0, 10.0, 0.5) - 0.0) < 1e-9


def test_ema_snaps_on_large_jump() -> None:
    ema = EmaSmoother(alpha=0.15, snap_delta=30.0)
    assert abs(ema.update(20.0) - 3.0) < 1e-9
    assert abs(ema.update(80.0) - 80.0) < 1e-9


def test_circular_ema_crosses_north() -> None:
    s = CircularEmaSmoother(alpha=0.12, initial_deg=350.0)
    assert abs(s.update(10.0) - 352.4) < 1e-9


def test_moving_average_converges_to_constant() -> None:
    ma = MovingAverage(size=10)
    for _ in range(15):
        ma.add(3.0)
    assert len(ma) == 10
    assert abs(ma.average() - 3.0) < 1e-9


def test_moving_average_overwrites_oldest() -> None:
    ma = MovingAverage(size=10)
    for v in range(1, 13):
        ma.add(float(v))
    assert abs(ma.average() - 7.5) < 1e-9


def test_motion_smoother_per_axis() -> None:
    sm = MotionSmoother(MotionSmootherConfig.from_dict({"window": 2}))
    sm.add(1.0, 2.0, 3.0)
    x, y, z = sm.add(3.0, 4.0, 5.0)
    assert (x, y, z) == (2.0, 3.0, 4.0)
    sm.reset()
    assert sm.averages() == (0.0, 0.0, 0.0)


def test_position_fusion_trusts_accurate_reported_speed() -> None:
    est = PositionFusionEstimator(PositionFusionConfig.from_dict({}))
    est.update(_fix(0.0, 0.0, speed_mps=0.0))
    v = est.update(_fix(1.0, 22.0, speed_mps=20.0))
    assert abs(v - 72.0) < 1e-6


def test_position_fusion_clamps_stationary_noise() -> None:
    est = PositionFusionEstimator(PositionFusionConfig.from_dict({}))
    v = est.update(_fix(0.0, 0.0, speed_mps=0.4))
    assert v == 0.0


def test_position_fusion_suppresses_drift_jump() -> None:
    est = PositionFusionEstimator(PositionFusionConfig.from_dict({}))
    est.update(_fix(0.0, 0.0, speed_mps=0.5, accuracy_m=30.0))
    v = est.update(_fix(1.0, 100.0, speed_mps=0.5, accuracy_m=30.0))
    assert v == 0.0


def test_position_fusion_blends_when_accuracy_is_moderate() -> None:
    est = PositionFusionEstimator(PositionFusionConfig.from_dict({}))
    est.update(_fix(0.0, 0.0, speed_mps=10.0, accuracy_m=30.0))
    v = est.update(_fix(1.0, 10.0, speed_mps=10.0, accuracy_m=30.0))
    first = 0.15 * (0.7 * 36.0)
    assert abs(v - (first + 0.15 * (36.0 - first))) < 1e-3


def test_position_fusion_never_negative() -> None:
    rng = random.Random(7)
    est = PositionFusionEstimator(PositionFusionConfig.from_dict({}))
    east = 0.0
    for i in range(300):
        east += rng.uniform(-80.0, 80.0)
        speed = rng.choice([None, rng.uniform(-5.0, 60.0)])
        v = est.update(_fix(float(i), east, speed_mps=speed, accuracy_m=rng.uniform(1.0, 150.0)))
        assert v >= 0.0


def test_heading_prefers_gps_course_when_moving() -> None:
    h = HeadingFusionEstimator(HeadingFusionConfig.from_dict({}))
    assert abs(h.update(90.0, 180.0, 50.0) - 10.8) < 1e-9


def test_heading_uses_compass_at_low_speed() -> None:
    h = HeadingFusionEstimator(HeadingFusionConfig.from_dict({}))
    assert abs(h.update(90.0, 170.0, 2.0) - 20.4) < 1e-9


def test_heading_ignores_zero_course_without_compass() -> None:
    h = HeadingFusionEstimator(HeadingFusionConfig.from_dict({}))
    h.update(90.0, None, 50.0)
    before = h.heading_deg
    assert h.update(0.0, None, 50.0) == before


def test_heading_stays_in_range_and_never_jumps_half_turn() -> None:
    h = HeadingFusionEstimator(HeadingFusionConfig.from_dict({}))
    prev = h.heading_deg
    course = 0.5
    for _ in range(500):
        course = (course + 7.3) % 360.0 or 1.0
        cur = h.update(course, None, 60.0)
        assert 0.0 <= cur < 360.0
        assert abs(wrap_angle_deg(cur - prev)) <= 180.0
        prev = cur


def test_compass_heading_from_yaw() -> None:
    assert OrientationSample(timestamp_s=0.0, yaw=90.0).compass_heading_deg == 270.0
    assert OrientationSample(timestamp_s=0.0, yaw=0.0).compass_heading_deg == 0.0
    assert OrientationSample(timestamp_s=0.0, yaw=None).compass_heading_deg is None
