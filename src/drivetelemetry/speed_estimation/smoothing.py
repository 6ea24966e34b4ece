from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from drivetelemetry.speed_estimation.math import lerp_angle_deg, normalize_heading_deg


@dataclass
class EmaSmoother:
    """
    Exponential moving average for scalar speed values.

    A jump larger than ``snap_delta`` replaces the running value outright instead of
    being smoothed in, so GPS reacquisition does not drag the estimate for seconds.
    Not suitable for angles; use ``CircularEmaSmoother`` for headings.
    """
    alpha: float
    snap_delta: Optional[float] = None
    initial: float = 0.0
    _value: float = field(default=0.0, init=False)

    def __post_init__(self) -> None:
        self._value = float(self.initial)

    @property
    def value(self) -> float:
        return float(self._value)

    def update(self, target: float) -> float:
        delta = float(target) - self._value
        if self.snap_delta is not None and abs(delta) > float(self.snap_delta):
            self._value = float(target)
        else:
            self._value = self._value + float(self.alpha) * delta
        return float(self._value)

    def reset(self) -> None:
        self._value = float(self.initial)


@dataclass
class CircularEmaSmoother:
    alpha: float
    initial_deg: float = 0.0
    _value: float = field(default=0.0, init=False)

    def __post_init__(self) -> None:
        self._value = normalize_heading_deg(self.initial_deg)

    @property
    def value(self) -> float:
        return float(self._value)

    def update(self, target_deg: float) -> float:
        self._value = lerp_angle_deg(self._value, float(target_deg), float(self.alpha))
        return float(self._value)

    def reset(self) -> None:
        self._value = normalize_heading_deg(self.initial_deg)


class MovingAverage:
    """Fixed-capacity ring buffer with a running sum; insert and average are O(1)."""

    def __init__(self, size: int = 10) -> None:
        self.size = max(1, int(size))
        self._buf = np.zeros(self.size, dtype=np.float64)
        self._pointer = 0
        self._count = 0
        self._sum = 0.0

    def __len__(self) -> int:
        return self._count

    def add(self, value: float) -> float:
        if self._count == self.size:
            self._sum -= float(self._buf[self._pointer])
        else:
            self._count += 1
        self._buf[self._pointer] = float(value)
        self._sum += float(value)
        self._pointer = (self._pointer + 1) % self.size
        return self.average()

    def average(self) -> float:
        if self._count == 0:
            return 0.0
        return float(self._sum / self._count)

    def reset(self) -> None:
        self._buf.fill(0.0)
        self._pointer = 0
        self._count = 0
        self._sum = 0.0


@dataclass(frozen=True)
class MotionSmootherConfig:
    window: int = 10

    @staticmethod
    def from_dict(d: dict) -> "MotionSmootherConfig":
        window = int(d.get("window", 10))
        if window < 1:
            raise ValueError("motion.window must be >= 1")
        return MotionSmootherConfig(window=window)


class MotionSmoother:
    """Per-axis moving averages for the accelerometer."""

    def __init__(self, cfg: MotionSmootherConfig) -> None:
        self._x = MovingAverage(cfg.window)
        self._y = MovingAverage(cfg.window)
        self._z = MovingAverage(cfg.window)

    def add(self, ax: float, ay: float, az: float) -> Tuple[float, float, float]:
        return (self._x.add(ax), self._y.add(ay), self._z.add(az))

    def averages(self) -> Tuple[float, float, float]:
        return (self._x.average(), self._y.average(), self._z.average())

    def reset(self) -> None:
        self._x.reset()
        self._y.reset()
        self._z.reset()
