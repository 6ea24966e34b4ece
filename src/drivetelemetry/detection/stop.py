from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class StopDetectorConfig:
    stop_speed_kmh: float
    stop_duration_s: float
    resume_speed_kmh: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "StopDetectorConfig":
        cfg = StopDetectorConfig(
            stop_speed_kmh=float(d.get("stop_speed_kmh", 1.5)),
            stop_duration_s=float(d.get("stop_duration_s", 4.0)),
            resume_speed_kmh=float(d.get("resume_speed_kmh", 5.0)),
        )
        if cfg.resume_speed_kmh < cfg.stop_speed_kmh:
            raise ValueError("safe_stop.resume_speed_kmh must be >= stop_speed_kmh")
        return cfg


class StopDetector:
    """
    Stopped/moving hysteresis.

    Enters "stopped" only after the speed stays under ``stop_speed_kmh`` for longer than
    ``stop_duration_s``; leaves it only once the speed exceeds ``resume_speed_kmh``.
    A new trip starts in the stopped state.
    """

    def __init__(self, cfg: StopDetectorConfig) -> None:
        self._cfg = cfg
        self._stopped = True
        self._below_since: Optional[float] = None

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def update(self, now_s: float, speed_kmh: float) -> bool:
        if self._stopped:
            if speed_kmh > self._cfg.resume_speed_kmh:
                self._stopped = False
                self._below_since = None
            return self._stopped

        if speed_kmh < self._cfg.stop_speed_kmh:
            if self._below_since is None:
                self._below_since = float(now_s)
            elif float(now_s) - self._below_since > self._cfg.stop_duration_s:
                self._stopped = True
        else:
            self._below_since = None
        return self._stopped

    def reset(self, now_s: Optional[float] = None) -> None:
        self._stopped = True
        self._below_since = now_s
