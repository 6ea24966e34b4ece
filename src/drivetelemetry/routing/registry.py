from __future__ import annotations

from typing import Any, Dict, Optional

from drivetelemetry.routing.base import RouteService, StaticRouteService
from drivetelemetry.routing.osrm import OsrmRouteService


def create_route_service(backend: str, params: Dict[str, Any]) -> Optional[RouteService]:
    if backend == "none":
        return None
    if backend == "static":
        return StaticRouteService()
    if backend == "osrm":
        return OsrmRouteService(
            base_url=str(params.get("base_url", "https://router.project-osrm.org")),
            profile=str(params.get("profile", "driving")),
            timeout_s=float(params.get("timeout_s", 5.0)),
        )
    raise ValueError(f"Unknown route backend: {backend}")
