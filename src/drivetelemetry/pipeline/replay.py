from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from drivetelemetry.io.sources import ReplayLogConfig, ReplayLogReader
from drivetelemetry.pipeline.scheduler import InlineExecutor
from drivetelemetry.pipeline.session import TelemetryConfig, TripSession
from drivetelemetry.utils.types import LatLng, RawFix, SetupMode, TripRecord


logger = logging.getLogger("drivetelemetry.pipeline.replay")


@dataclass(frozen=True)
class ReplayRunnerConfig:
    log_path: str
    telemetry: Dict[str, Any]
    base_dir: str
    setup_mode: SetupMode = "mount"
    start_name: Optional[str] = None
    end_name: Optional[str] = None
    destination: Optional[LatLng] = None


class ReplayRunner:
    """Replay a recorded sensor log through one trip, starting it on the first fix."""

    def __init__(self, cfg: ReplayRunnerConfig, session: Optional[TripSession] = None) -> None:
        self._cfg = cfg
        self._session = session or TripSession(
            TelemetryConfig.from_dict(cfg.telemetry, cfg.base_dir),
            executor=InlineExecutor(),
        )

    @property
    def session(self) -> TripSession:
        return self._session

    def run(self) -> TripRecord:
        cfg = self._cfg
        session = self._session
        samples = 0
        with ReplayLogReader(ReplayLogConfig(path=cfg.log_path)) as reader:
            for sample in reader:
                if not session.is_active and isinstance(sample, RawFix):
                    session.start(cfg.setup_mode, cfg.start_name, now_s=sample.timestamp_s)
                    session.feed(sample)
                    if cfg.destination is not None:
                        session.request_route(cfg.destination)
                        session.run_pending()
                else:
                    session.feed(sample)
                samples += 1
            if reader.skipped:
                logger.warning("Skipped %d invalid samples", reader.skipped)

        if not session.is_active:
            raise RuntimeError(f"No location fix in replay log: {cfg.log_path}")
        record = session.stop(cfg.end_name)
        session.close()
        logger.info("Replayed %d samples from %s", samples, cfg.log_path)
        if record is None:
            raise RuntimeError("Trip was not saved")
        return record
