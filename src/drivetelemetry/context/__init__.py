from .base import NO_ROAD_DATA, NullRoadContextService, RoadContextService, StaticRoadContextService
from .refresher import RoadContextConfig, RoadContextRefresher
from .registry import create_road_context_service

__all__ = [
    "NO_ROAD_DATA",
    "NullRoadContextService",
    "RoadContextConfig",
    "RoadContextRefresher",
    "RoadContextService",
    "StaticRoadContextService",
    "create_road_context_service",
]
