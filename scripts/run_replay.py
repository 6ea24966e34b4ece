from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from drivetelemetry.output.sinks import trip_to_dict
from drivetelemetry.pipeline.replay import ReplayRunner, ReplayRunnerConfig
from drivetelemetry.utils.config import load_layered_yaml, resolve_path
from drivetelemetry.utils.logging import setup_logging_from_config


def _parse_latlng(s: str) -> tuple:
    lat, lng = s.split(",", 1)
    return (float(lat), float(lng))


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay a recorded sensor log through one trip")
    ap.add_argument("--log", required=True, help="JSONL sensor log (fix/motion/orientation/interaction records)")
    ap.add_argument("--config", default="configs/telemetry.yaml", help="Telemetry YAML")
    ap.add_argument("--override", action="append", default=[], help="Extra YAML layered over --config (repeatable)")
    ap.add_argument("--mode", default="mount", choices=["mount", "carplay", "passenger"], help="Driver setup mode")
    ap.add_argument("--start-name", default=None)
    ap.add_argument("--end-name", default=None)
    ap.add_argument("--destination", default=None, type=_parse_latlng, help="lat,lng to route to")
    ap.add_argument("--print-trip", action="store_true", help="Print the finalized trip as JSON")
    ap.add_argument("--log-level", default=None)
    ap.add_argument("--log-file", default=None)
    args = ap.parse_args()

    base_dir = os.getcwd()
    telemetry = load_layered_yaml([resolve_path(p, base_dir) for p in [args.config, *args.override]])
    setup_logging_from_config(dict(telemetry.get("logging", {}) or {}), level=args.log_level, log_file=args.log_file)

    runner = ReplayRunner(
        ReplayRunnerConfig(
            log_path=resolve_path(args.log, base_dir),
            telemetry=telemetry,
            base_dir=base_dir,
            setup_mode=args.mode,
            start_name=args.start_name,
            end_name=args.end_name,
            destination=args.destination,
        )
    )
    record = runner.run()
    if args.print_trip:
        print(json.dumps(trip_to_dict(record), indent=2, ensure_ascii=False))
    else:
        print(
            f"trip={record.id} distance_km={record.distance_km:.3f} duration_s={record.duration_s} "
            f"points={record.points} score={record.compliance_score} validity={record.validity}"
        )


if __name__ == "__main__":
    main()
