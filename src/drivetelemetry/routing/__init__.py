from .base import RouteError, RouteService, StaticRouteService
from .osrm import OsrmRouteService, parse_osrm_route
from .registry import create_route_service

__all__ = [
    "OsrmRouteService",
    "RouteError",
    "RouteService",
    "StaticRouteService",
    "create_route_service",
    "parse_osrm_route",
]
