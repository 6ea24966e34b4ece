from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from drivetelemetry.utils.types import RoadContext

NO_ROAD_DATA = RoadContext(max_speed_kmh=None, road_name=None, is_school_zone=False)


class RoadContextService(Protocol):
    def lookup(self, lat: float, lng: float) -> RoadContext:
        ...


@dataclass
class NullRoadContextService(RoadContextService):
    def lookup(self, lat: float, lng: float) -> RoadContext:
        _ = (lat, lng)
        return NO_ROAD_DATA


@dataclass
class StaticRoadContextService(RoadContextService):
    max_speed_kmh: Optional[float] = None
    road_name: Optional[str] = None
    is_school_zone: bool = False

    def lookup(self, lat: float, lng: float) -> RoadContext:
        _ = (lat, lng)
        return RoadContext(max_speed_kmh=self.max_speed_kmh, road_name=self.road_name, is_school_zone=self.is_school_zone)
