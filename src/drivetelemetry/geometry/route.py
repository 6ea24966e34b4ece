from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from drivetelemetry.speed_estimation.math import haversine_m, local_xy_m, offset_latlng
from drivetelemetry.utils.types import LatLng, SnapResult


def closest_point_on_segment(p: LatLng, a: LatLng, b: LatLng) -> Tuple[LatLng, float]:
    """Foot of the perpendicular from ``p`` onto segment ``ab``, clamped to its endpoints.

    Returns the projected point and the segment parameter ``t`` in [0, 1].
    """
    bx, by = local_xy_m(a, b)
    px, py = local_xy_m(a, p)
    len2 = bx * bx + by * by
    if len2 == 0.0:
        return (float(a[0]), float(a[1])), 0.0
    t = (px * bx + py * by) / len2
    t = max(0.0, min(1.0, t))
    return offset_latlng(a, t * bx, t * by), float(t)


def snap_to_route(
    position: LatLng,
    coords: Sequence[LatLng],
    center_index: int,
    look_back: int = 2,
    look_ahead: int = 8,
) -> Optional[SnapResult]:
    """Project ``position`` onto the closest segment in a window around ``center_index``."""
    n = len(coords)
    if n < 2:
        return None
    start = max(0, int(center_index) - int(look_back))
    end = min(n - 1, int(center_index) + int(look_ahead))
    if start >= end:
        start = max(0, end - 1)

    best: Optional[SnapResult] = None
    for i in range(start, end):
        projected, _ = closest_point_on_segment(position, coords[i], coords[i + 1])
        d = haversine_m(position, projected)
        if best is None or d < best.distance_to_snap_m:
            best = SnapResult(projected_point=projected, distance_to_snap_m=float(d), matched_segment_index=i)
    return best


def cumulative_distances_m(coords: Sequence[LatLng]) -> np.ndarray:
    out = np.zeros(len(coords), dtype=np.float64)
    for i in range(1, len(coords)):
        out[i] = out[i - 1] + haversine_m(coords[i - 1], coords[i])
    return out


def distance_along_route_m(snap: SnapResult, coords: Sequence[LatLng], cumulative: np.ndarray, target_index: int) -> float:
    """Distance travelled along the polyline from the snapped point to ``coords[target_index]``."""
    seg_end = snap.matched_segment_index + 1
    if target_index < seg_end:
        return haversine_m(snap.projected_point, coords[target_index])
    head = haversine_m(snap.projected_point, coords[seg_end])
    return float(head + cumulative[target_index] - cumulative[seg_end])
