from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Literal, Optional, Union

from drivetelemetry.utils.types import InteractionEvent, MotionSample, OrientationSample, RawFix


logger = logging.getLogger("drivetelemetry.io.sources")

LocationErrorKind = Literal["permission_denied", "unavailable", "timeout"]
_LOCATION_ERROR_KINDS = ("permission_denied", "unavailable", "timeout")
_INTERACTION_KINDS = ("touch", "click", "background", "foreground")


class LocationError(Exception):
    def __init__(self, kind: LocationErrorKind, message: str = "") -> None:
        if kind not in _LOCATION_ERROR_KINDS:
            raise ValueError(f"Unknown location error kind: {kind}")
        super().__init__(message or kind)
        self.kind: LocationErrorKind = kind

    @property
    def is_fatal(self) -> bool:
        return self.kind != "timeout"


@dataclass(frozen=True)
class LocationErrorSample:
    timestamp_s: float
    error: LocationError


@dataclass(frozen=True)
class ClockTick:
    timestamp_s: float


SensorSample = Union[RawFix, MotionSample, OrientationSample, InteractionEvent, LocationErrorSample, ClockTick]


def _opt_float(v: Any) -> Optional[float]:
    if v is None:
        return None
    return float(v)


def parse_sample(d: Dict[str, Any]) -> SensorSample:
    """Build one typed sample from a replay-log record keyed by ``kind``."""
    kind = str(d.get("kind", "")).lower()
    t = float(d["t"])
    if kind == "fix":
        return RawFix(
            lat=float(d["lat"]),
            lng=float(d["lng"]),
            accuracy_m=float(d.get("accuracy_m", 10.0)),
            timestamp_s=t,
            speed_mps=_opt_float(d.get("speed_mps")),
            heading_deg=_opt_float(d.get("heading_deg")),
        )
    if kind == "motion":
        rot = d.get("rotation_rate") or [0.0, 0.0, 0.0]
        return MotionSample(
            timestamp_s=t,
            ax=float(d.get("ax", 0.0)),
            ay=float(d.get("ay", 0.0)),
            az=float(d.get("az", 0.0)),
            rotation_rate=(float(rot[0]), float(rot[1]), float(rot[2])),
        )
    if kind == "orientation":
        return OrientationSample(
            timestamp_s=t,
            yaw=_opt_float(d.get("yaw")),
            pitch=_opt_float(d.get("pitch")),
            roll=_opt_float(d.get("roll")),
        )
    if kind == "interaction":
        ik = str(d.get("interaction", "touch")).lower()
        if ik not in _INTERACTION_KINDS:
            raise ValueError(f"Unknown interaction kind: {ik}")
        return InteractionEvent(kind=ik, timestamp_s=t, target_safe=bool(d.get("target_safe", False)))  # type: ignore[arg-type]
    if kind == "location_error":
        return LocationErrorSample(timestamp_s=t, error=LocationError(d.get("error", "unavailable"), str(d.get("message", ""))))
    if kind == "clock":
        return ClockTick(timestamp_s=t)
    raise ValueError(f"Unknown sample kind: {kind!r}")


@dataclass(frozen=True)
class ReplayLogConfig:
    path: str
    skip_invalid: bool = True


class ReplayLogReader:
    """
    Iterate a recorded JSON-lines sensor log in file order.

    Each line is an object with ``kind`` and ``t`` (seconds) plus kind-specific fields.
    Blank lines and ``#`` comments are ignored.
    """

    def __init__(self, cfg: ReplayLogConfig) -> None:
        self._cfg = cfg
        self._f = open(cfg.path, "r", encoding="utf-8")
        self.skipped = 0

    def __iter__(self) -> Iterator[SensorSample]:
        for lineno, line in enumerate(self._f, start=1):
            s = line.strip()
            if not s or s.startswith("#"):
                continue
            try:
                yield parse_sample(json.loads(s))
            except (ValueError, KeyError, TypeError) as e:
                if not self._cfg.skip_invalid:
                    raise ValueError(f"{self._cfg.path}:{lineno}: {e}") from e
                self.skipped += 1
                logger.warning("Skipping invalid sample at %s:%d: %s", self._cfg.path, lineno, e)

    def close(self) -> None:
        self._f.close()

    def __enter__(self) -> "ReplayLogReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
