import csv
import json

import pytest

from drivetelemetry.io.sources import ClockTick, LocationError, LocationErrorSample, ReplayLogConfig, ReplayLogReader, parse_sample
from drivetelemetry.output.notifier import LogFeedbackSink, create_feedback_sink
from drivetelemetry.output.sinks import CsvTripSummaryStore, JsonlTripStore, trip_to_dict
from drivetelemetry.pipeline.replay import ReplayRunner, ReplayRunnerConfig
from drivetelemetry.pipeline.scheduler import InlineExecutor, Scheduler
from drivetelemetry.speed_estimation.math import offset_latlng
from drivetelemetry.utils.config import load_layered_yaml, merge_config
from drivetelemetry.utils.types import DrivingEvent, InteractionEvent, MotionSample, RawFix, TripRecord

ORIGIN = (45.0, 7.0)


def _record(trip_id: str = "t1") -> TripRecord:
    ev = DrivingEvent(type="HARSH_BRAKING", timestamp_s=3.0, points_delta=-7.0, severity_tier="moderate", description="Harsh Braking")
    return TripRecord(
        id=trip_id,
        start_time_s=0.0,
        end_time_s=60.0,
        distance_km=1.2,
        duration_s=60,
        points=11,
        max_speed_kmh=72.0,
        compliance_score=95,
        events=(ev,),
        compressed_path=((45.0, 7.0), (45.01, 7.0)),
        start_name="Work",
        end_name="Home",
        validity="VALID",
        reward_eligible=True,
        driver_confidence=0.8,
        mode_of_transport="car",
    )


def test_parse_sample_kinds() -> None:
    fix = parse_sample({"kind": "fix", "t": 1.0, "lat": 45.0, "lng": 7.0, "accuracy_m": 4.0, "speed_mps": 10.0})
    assert isinstance(fix, RawFix)
    assert fix.speed_mps == 10.0
    assert fix.heading_deg is None
    assert isinstance(parse_sample({"kind": "motion", "t": 1.0, "ay": -9.0}), MotionSample)
    touch = parse_sample({"kind": "interaction", "t": 2.0, "interaction": "touch", "target_safe": True})
    assert isinstance(touch, InteractionEvent) and touch.target_safe
    err = parse_sample({"kind": "location_error", "t": 0.0, "error": "timeout"})
    assert isinstance(err, LocationErrorSample) and not err.error.is_fatal
    assert isinstance(parse_sample({"kind": "clock", "t": 5.0}), ClockTick)


def test_parse_sample_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        parse_sample({"kind": "lidar", "t": 0.0})
    with pytest.raises(ValueError):
        parse_sample({"kind": "interaction", "t": 0.0, "interaction": "swipe"})
    with pytest.raises(ValueError):
        LocationError("exploded")  # type: ignore[arg-type]


def test_replay_reader_skips_invalid_lines(tmp_path) -> None:
    p = tmp_path / "log.jsonl"
    p.write_text(
        "# recorded drive\n"
        '{"kind": "fix", "t": 0, "lat": 45.0, "lng": 7.0}\n'
        "\n"
        "not json\n"
        '{"kind": "clock", "t": 1}\n',
        encoding="utf-8",
    )
    with ReplayLogReader(ReplayLogConfig(path=str(p))) as reader:
        samples = list(reader)
        assert reader.skipped == 1
    assert [type(s).__name__ for s in samples] == ["RawFix", "ClockTick"]


def test_replay_reader_strict_mode_raises(tmp_path) -> None:
    p = tmp_path / "log.jsonl"
    p.write_text("not json\n", encoding="utf-8")
    with ReplayLogReader(ReplayLogConfig(path=str(p), skip_invalid=False)) as reader:
        with pytest.raises(ValueError):
            list(reader)


def test_scheduler_fires_in_order_and_cancels() -> None:
    s = Scheduler()
    fired = []
    a = s.every(0.0, 1.0, lambda t: fired.append(("a", t)))
    s.every(0.0, 1.5, lambda t: fired.append(("b", t)))
    assert s.advance(3.0) == 5
    assert fired == [("a", 1.0), ("b", 1.5), ("a", 2.0), ("a", 3.0), ("b", 3.0)]
    s.cancel(a)
    fired.clear()
    s.advance(4.5)
    assert fired == [("b", 4.5)]
    s.cancel_all()
    assert s.advance(100.0) == 0
    with pytest.raises(ValueError):
        s.every(0.0, 0.0, lambda t: None)


def test_inline_executor_captures_exceptions() -> None:
    ex = InlineExecutor()
    assert ex.submit(lambda x: x + 1, 1).result() == 2

    def _fail() -> None:
        raise RuntimeError("boom")

    f = ex.submit(_fail)
    assert isinstance(f.exception(), RuntimeError)
    ex.shutdown()
    with pytest.raises(RuntimeError):
        ex.submit(lambda: None)


def test_jsonl_store_appends(tmp_path) -> None:
    p = tmp_path / "out" / "trips.jsonl"
    store = JsonlTripStore(str(p))
    store.save(_record("t1"))
    store.save(_record("t2"))
    rows = [json.loads(line) for line in p.read_text(encoding="utf-8").splitlines()]
    assert [r["id"] for r in rows] == ["t1", "t2"]
    assert rows[0]["events"][0]["type"] == "HARSH_BRAKING"
    assert rows[0]["path"] == [[45.0, 7.0], [45.01, 7.0]]


def test_csv_store_writes_header_once(tmp_path) -> None:
    p = tmp_path / "trips.csv"
    store = CsvTripSummaryStore(str(p))
    store.save(_record("t1"))
    store.save(_record("t2"))
    with open(p, "r", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["id"] for r in rows] == ["t1", "t2"]
    assert rows[0]["event_count"] == "1"
    assert rows[0]["path_points"] == "2"


def test_trip_to_dict_roundtrips_through_json() -> None:
    d = json.loads(json.dumps(trip_to_dict(_record())))
    assert d["validity"] == "VALID"
    assert d["compliance_score"] == 95


def test_feedback_sink_factory() -> None:
    assert isinstance(create_feedback_sink({}), LogFeedbackSink)
    with pytest.raises(ValueError):
        create_feedback_sink({"type": "http"})
    with pytest.raises(ValueError):
        create_feedback_sink({"type": "pager"})


def test_merge_config_is_recursive(tmp_path) -> None:
    base = {"trip": {"points_per_km": 15, "path": {"tolerance_m": 5}}, "gps": {"timeout_s": 10}}
    merged = merge_config(base, {"trip": {"path": {"tolerance_m": 8}}})
    assert merged["trip"]["points_per_km"] == 15
    assert merged["trip"]["path"]["tolerance_m"] == 8
    assert base["trip"]["path"]["tolerance_m"] == 5

    a = tmp_path / "a.yaml"
    b = tmp_path / "b.yaml"
    a.write_text("gps:\n  timeout_s: 10\n  max_accuracy_m: 200\n", encoding="utf-8")
    b.write_text("gps:\n  timeout_s: 4\n", encoding="utf-8")
    layered = load_layered_yaml([str(a), str(b)])
    assert layered["gps"] == {"timeout_s": 4, "max_accuracy_m": 200}


def _write_drive_log(path, speeds) -> None:
    east = 0.0
    lines = []
    for t, v in enumerate(speeds):
        east += v / 3.6
        lat, lng = offset_latlng(ORIGIN, east, 0.0)
        lines.append(json.dumps({"kind": "fix", "t": float(t), "lat": lat, "lng": lng, "accuracy_m": 5.0, "speed_mps": v / 3.6}))
        lines.append(json.dumps({"kind": "motion", "t": t + 0.5, "ax": 0.0, "ay": 0.2, "az": 9.8}))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_replay_runner_produces_and_stores_trip(tmp_path) -> None:
    log = tmp_path / "drive.jsonl"
    _write_drive_log(log, [0.0] + [50.0] * 30)
    telemetry = {
        "road_context": {"backend": "static", "params": {"max_speed_kmh": 60}},
        "output": {"jsonl": {"enabled": True, "path": "trips.jsonl"}},
    }
    runner = ReplayRunner(
        ReplayRunnerConfig(log_path=str(log), telemetry=telemetry, base_dir=str(tmp_path), start_name="A", end_name="B")
    )
    rec = runner.run()
    assert rec.start_name == "A"
    assert rec.duration_s == 30
    assert rec.validity == "VALID"
    assert abs(rec.distance_km - 30 * 50.0 / 3600.0) < 1e-3
    saved = (tmp_path / "trips.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(saved[0])["id"] == rec.id


def test_replay_runner_without_fixes_fails(tmp_path) -> None:
    log = tmp_path / "empty.jsonl"
    log.write_text('{"kind": "clock", "t": 1}\n', encoding="utf-8")
    runner = ReplayRunner(ReplayRunnerConfig(log_path=str(log), telemetry={}, base_dir=str(tmp_path)))
    with pytest.raises(RuntimeError):
        runner.run()
