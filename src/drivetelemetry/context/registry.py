from __future__ import annotations

from typing import Any, Dict

from drivetelemetry.context.base import NullRoadContextService, RoadContextService, StaticRoadContextService


def create_road_context_service(backend: str, params: Dict[str, Any]) -> RoadContextService:
    if backend == "none":
        return NullRoadContextService()

    if backend == "static":
        max_speed = params.get("max_speed_kmh")
        return StaticRoadContextService(
            max_speed_kmh=float(max_speed) if max_speed is not None else None,
            road_name=str(params["road_name"]) if params.get("road_name") is not None else None,
            is_school_zone=bool(params.get("is_school_zone", False)),
        )

    if backend == "overpass":
        from drivetelemetry.context.overpass import DEFAULT_ENDPOINTS, DEFAULT_HIGHWAY_SPEEDS, OverpassRoadContextService

        endpoints = params.get("endpoints", DEFAULT_ENDPOINTS)
        if not isinstance(endpoints, list) or not endpoints:
            raise ValueError("road_context.params.endpoints must be a non-empty list")
        speeds = dict(DEFAULT_HIGHWAY_SPEEDS)
        speeds.update({str(k): float(v) for k, v in (params.get("highway_speeds") or {}).items()})
        return OverpassRoadContextService(
            endpoints=[str(u) for u in endpoints],
            timeout_s=float(params.get("timeout_s", 3.0)),
            road_radius_m=float(params.get("road_radius_m", 20.0)),
            school_radius_m=float(params.get("school_radius_m", 80.0)),
            highway_speeds=speeds,
        )

    raise ValueError(f"Unknown road context backend: {backend}")
