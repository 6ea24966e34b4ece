"""
Douglas-Peucker polyline simplification for stored trip traces.

Distances are measured in raw degree space (lng as x, lat as y); the tolerance is
given in meters and converted with a flat 1 m ~ 0.000009 deg factor, which is
close enough for deciding which trace points are worth keeping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np

from drivetelemetry.utils.types import LatLng

DEG_PER_METER = 0.000009


@dataclass(frozen=True)
class PathCompressorConfig:
    tolerance_m: float = 5.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "PathCompressorConfig":
        tol = float(d.get("tolerance_m", 5.0))
        if tol < 0.0:
            raise ValueError("path.tolerance_m must be non-negative")
        return PathCompressorConfig(tolerance_m=tol)


def perpendicular_distances(xy: np.ndarray, start: np.ndarray, end: np.ndarray) -> np.ndarray:
    """Distance from each row of ``xy`` to segment ``start``-``end``, clamped to the segment."""
    seg = end - start
    len2 = float(seg @ seg)
    rel = xy - start
    if len2 == 0.0:
        return np.hypot(rel[:, 0], rel[:, 1])
    t = np.clip((rel @ seg) / len2, 0.0, 1.0)
    foot = start + t[:, None] * seg
    d = xy - foot
    return np.hypot(d[:, 0], d[:, 1])


def simplify_path(points: Sequence[LatLng], tolerance_m: float) -> List[LatLng]:
    if len(points) <= 2:
        return list(points)

    tol = float(tolerance_m) * DEG_PER_METER
    xy = np.asarray([(float(p[1]), float(p[0])) for p in points], dtype=np.float64)
    keep = np.zeros(len(points), dtype=bool)
    keep[0] = True
    keep[-1] = True

    stack = [(0, len(points) - 1)]
    while stack:
        i0, i1 = stack.pop()
        if i1 - i0 < 2:
            continue
        dists = perpendicular_distances(xy[i0 + 1 : i1], xy[i0], xy[i1])
        k = int(np.argmax(dists))
        if float(dists[k]) > tol:
            split = i0 + 1 + k
            keep[split] = True
            stack.append((split, i1))
            stack.append((i0, split))

    return [points[i] for i in np.flatnonzero(keep)]
