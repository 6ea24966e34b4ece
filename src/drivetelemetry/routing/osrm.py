from __future__ import annotations

import json
import logging
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from drivetelemetry.routing.base import RouteError, RouteService
from drivetelemetry.speed_estimation.math import haversine_m
from drivetelemetry.utils.types import LatLng, RouteGeometry, RouteInstruction


logger = logging.getLogger("drivetelemetry.routing.osrm")


def _nearest_index(coords: Sequence[LatLng], p: LatLng, start: int) -> int:
    best = start
    best_d = float("inf")
    for i in range(start, len(coords)):
        d = haversine_m(coords[i], p)
        if d < best_d:
            best, best_d = i, d
    return best


def step_text(step: Dict[str, Any]) -> str:
    maneuver = step.get("maneuver", {}) or {}
    kind = str(maneuver.get("type", ""))
    modifier = str(maneuver.get("modifier", "") or "")
    name = str(step.get("name", "") or "")
    onto = f" onto {name}" if name else ""
    if kind == "depart":
        return f"Head {modifier or 'straight'} on {name}" if name else "Head out"
    if kind == "arrive":
        return f"Destination is on the {modifier}" if modifier in ("left", "right") else "Arrive at destination"
    if kind in ("roundabout", "rotary"):
        exit_no = maneuver.get("exit")
        return f"At the roundabout, take the {exit_no} exit{onto}" if exit_no else f"Enter the roundabout{onto}"
    if kind == "merge":
        return f"Merge onto {name}" if name else "Merge"
    if kind in ("on ramp", "off ramp"):
        return f"Take the ramp to {name}" if name else "Take the exit"
    if modifier == "uturn":
        return "Make a U-turn"
    if modifier in ("slight left", "slight right", "sharp left", "sharp right"):
        return f"{modifier.capitalize()}{onto}"
    if modifier in ("left", "right"):
        return f"Turn {modifier}{onto}"
    return f"Continue onto {name}" if name else "Continue straight"


def parse_osrm_route(payload: Dict[str, Any]) -> RouteGeometry:
    if payload.get("code") != "Ok" or not payload.get("routes"):
        raise RouteError(f"Route service returned {payload.get('code')!r}: {payload.get('message', '')}")
    route = payload["routes"][0]
    coords: List[LatLng] = [(float(lat), float(lng)) for lng, lat in route["geometry"]["coordinates"]]
    if len(coords) < 2:
        raise RouteError("Route geometry has fewer than two coordinates")

    instructions: List[RouteInstruction] = []
    cursor = 0
    for leg in route.get("legs", []):
        for step in leg.get("steps", []):
            loc = step.get("maneuver", {}).get("location")
            if not loc:
                continue
            idx = _nearest_index(coords, (float(loc[1]), float(loc[0])), cursor)
            cursor = idx
            instructions.append(RouteInstruction(text=step_text(step), index=idx, distance_m=float(step.get("distance", 0.0))))

    return RouteGeometry(
        coordinates=tuple(coords),
        instructions=tuple(instructions),
        total_distance_m=float(route.get("distance", 0.0)),
        total_time_s=float(route.get("duration", 0.0)),
    )


@dataclass
class OsrmRouteService(RouteService):
    base_url: str = "https://router.project-osrm.org"
    profile: str = "driving"
    timeout_s: float = 5.0

    def route(self, origin: LatLng, destination: LatLng) -> RouteGeometry:
        url = (
            f"{self.base_url.rstrip('/')}/route/v1/{self.profile}/"
            f"{origin[1]},{origin[0]};{destination[1]},{destination[0]}"
            "?overview=full&geometries=geojson&steps=true"
        )
        try:
            with urllib.request.urlopen(url, timeout=float(self.timeout_s)) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except Exception as e:
            logger.warning("Route request failed: %s", e)
            raise RouteError(f"Route request failed: {e}") from e
        return parse_osrm_route(payload)
