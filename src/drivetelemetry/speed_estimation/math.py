from __future__ import annotations

import math
from typing import Optional, Tuple

from drivetelemetry.utils.types import LatLng

EARTH_RADIUS_M = 6371e3


def haversine_m(a: LatLng, b: LatLng) -> float:
    lat1 = math.radians(float(a[0]))
    lat2 = math.radians(float(b[0]))
    dlat = lat2 - lat1
    dlng = math.radians(float(b[1]) - float(a[1]))
    h = math.sin(dlat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2.0) ** 2
    return float(EARTH_RADIUS_M * 2.0 * math.atan2(math.sqrt(h), math.sqrt(max(0.0, 1.0 - h))))


def normalize_heading_deg(angle: float) -> float:
    a = float(angle) % 360.0
    if a >= 360.0:
        a = 0.0
    return a


def wrap_angle_deg(angle: float) -> float:
    a = float(angle) % 360.0
    if a >= 180.0:
        a -= 360.0
    return a


def lerp_angle_deg(start: float, end: float, t: float) -> float:
    """Interpolate from ``start`` towards ``end`` along the shorter arc."""
    delta = wrap_angle_deg(float(end) - float(start))
    return normalize_heading_deg(float(start) + delta * float(t))


def local_xy_m(origin: LatLng, p: LatLng) -> Tuple[float, float]:
    """Equirectangular projection of ``p`` into meters east/north of ``origin``."""
    lat0 = math.radians(float(origin[0]))
    dx = math.radians(float(p[1]) - float(origin[1])) * math.cos(lat0) * EARTH_RADIUS_M
    dy = math.radians(float(p[0]) - float(origin[0])) * EARTH_RADIUS_M
    return (float(dx), float(dy))


def offset_latlng(origin: LatLng, east_m: float, north_m: float) -> LatLng:
    lat0 = math.radians(float(origin[0]))
    dlat = math.degrees(float(north_m) / EARTH_RADIUS_M)
    dlng = math.degrees(float(east_m) / (EARTH_RADIUS_M * max(1e-12, math.cos(lat0))))
    return (float(origin[0]) + dlat, float(origin[1]) + dlng)


def speed_kmh(a: LatLng, t0_s: float, b: LatLng, t1_s: float) -> Optional[float]:
    dt = float(t1_s - t0_s)
    if dt <= 0.0:
        return None
    return float(haversine_m(a, b) / dt * 3.6)
