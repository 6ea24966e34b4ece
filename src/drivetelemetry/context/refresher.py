from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from drivetelemetry.speed_estimation.math import haversine_m
from drivetelemetry.utils.types import LatLng


@dataclass(frozen=True)
class RoadContextConfig:
    backend: str
    params: Dict[str, Any] = field(default_factory=dict)
    refresh_interval_s: float = 30.0
    refetch_distance_m: float = 550.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "RoadContextConfig":
        return RoadContextConfig(
            backend=str(d.get("backend", "none")).lower(),
            params=dict(d.get("params", {}) or {}),
            refresh_interval_s=float(d.get("refresh_interval_s", 30.0)),
            refetch_distance_m=float(d.get("refetch_distance_m", 550.0)),
        )


class RoadContextRefresher:
    """
    Throttle road-context lookups and hand out sequence numbers for them.

    Only the completion carrying the latest sequence number may be applied; ``invalidate``
    retires every outstanding request (used when a trip stops).
    """

    def __init__(self, cfg: RoadContextConfig) -> None:
        self._cfg = cfg
        self._seq = 0
        self._last_fetch_s: Optional[float] = None
        self._last_fetch_pos: Optional[LatLng] = None

    @property
    def latest_seq(self) -> int:
        return self._seq

    def due(self, now_s: float, position: LatLng) -> bool:
        if self._last_fetch_s is None or self._last_fetch_pos is None:
            return True
        if float(now_s) - self._last_fetch_s > self._cfg.refresh_interval_s:
            return True
        return haversine_m(self._last_fetch_pos, position) > self._cfg.refetch_distance_m

    def begin(self, now_s: float, position: LatLng) -> int:
        self._seq += 1
        self._last_fetch_s = float(now_s)
        self._last_fetch_pos = (float(position[0]), float(position[1]))
        return self._seq

    def is_current(self, seq: int) -> bool:
        return int(seq) == self._seq

    def invalidate(self) -> None:
        self._seq += 1
        self._last_fetch_s = None
        self._last_fetch_pos = None
