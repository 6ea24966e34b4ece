from __future__ import annotations

import json
import logging
import re
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from drivetelemetry.context.base import NO_ROAD_DATA, RoadContextService
from drivetelemetry.utils.types import RoadContext


logger = logging.getLogger("drivetelemetry.context.overpass")

DEFAULT_ENDPOINTS = [
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://z.overpass-api.de/api/interpreter",
]

# fallback limits (km/h) by OSM highway class when no maxspeed tag is present
DEFAULT_HIGHWAY_SPEEDS: Dict[str, float] = {
    "motorway": 110.0,
    "motorway_link": 80.0,
    "trunk": 100.0,
    "primary": 80.0,
    "secondary": 60.0,
    "tertiary": 60.0,
    "residential": 50.0,
    "living_street": 20.0,
    "service": 20.0,
    "unclassified": 80.0,
}

_LEADING_INT = re.compile(r"^\s*(\d+)")


def _parse_maxspeed(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    m = _LEADING_INT.match(str(raw))
    if m is None:
        return None
    return float(int(m.group(1)))


def build_query(lat: float, lng: float, road_radius_m: float, school_radius_m: float) -> str:
    return (
        "[out:json][timeout:5];("
        f'way(around:{road_radius_m:g},{lat},{lng})["highway"];'
        f'node(around:{school_radius_m:g},{lat},{lng})["amenity"="school"];'
        f'way(around:{school_radius_m:g},{lat},{lng})["amenity"="school"];'
        ");out tags;"
    )


def parse_elements(elements: List[Dict[str, Any]], highway_speeds: Dict[str, float]) -> RoadContext:
    if not elements:
        return NO_ROAD_DATA
    tagged = [el for el in elements if isinstance(el.get("tags"), dict)]
    is_school_zone = any(el["tags"].get("amenity") == "school" for el in tagged)

    road = next((el for el in tagged if el["tags"].get("maxspeed")), None)
    if road is None:
        road = next((el for el in tagged if el["tags"].get("highway")), None)
    if road is None:
        return RoadContext(max_speed_kmh=None, road_name=None, is_school_zone=is_school_zone)

    tags = road["tags"]
    max_speed = _parse_maxspeed(tags.get("maxspeed"))
    if max_speed is None:
        max_speed = highway_speeds.get(str(tags.get("highway", "")))
    return RoadContext(max_speed_kmh=max_speed, road_name=tags.get("name"), is_school_zone=is_school_zone)


@dataclass
class OverpassRoadContextService(RoadContextService):
    endpoints: List[str] = field(default_factory=lambda: list(DEFAULT_ENDPOINTS))
    timeout_s: float = 3.0
    road_radius_m: float = 20.0
    school_radius_m: float = 80.0
    highway_speeds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_HIGHWAY_SPEEDS))

    def lookup(self, lat: float, lng: float) -> RoadContext:
        body = urllib.parse.urlencode(
            {"data": build_query(lat, lng, self.road_radius_m, self.school_radius_m)}
        ).encode("utf-8")
        for url in self.endpoints:
            req = urllib.request.Request(url, data=body, method="POST")
            req.add_header("Content-Type", "application/x-www-form-urlencoded")
            try:
                with urllib.request.urlopen(req, timeout=float(self.timeout_s)) as resp:
                    payload = json.loads(resp.read().decode("utf-8"))
            except Exception:
                logger.warning("Overpass lookup failed at %s, trying next endpoint", url, exc_info=True)
                continue
            return parse_elements(list(payload.get("elements") or []), self.highway_speeds)
        logger.warning("All Overpass endpoints failed for (%.5f, %.5f); no road data", lat, lng)
        return NO_ROAD_DATA
