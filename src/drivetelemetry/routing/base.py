from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from drivetelemetry.utils.types import LatLng, RouteGeometry


class RouteError(Exception):
    pass


class RouteService(Protocol):
    def route(self, origin: LatLng, destination: LatLng) -> RouteGeometry:
        ...


@dataclass
class StaticRouteService(RouteService):
    geometry: Optional[RouteGeometry] = None

    def route(self, origin: LatLng, destination: LatLng) -> RouteGeometry:
        _ = (origin, destination)
        if self.geometry is None:
            raise RouteError("No route available")
        return self.geometry
