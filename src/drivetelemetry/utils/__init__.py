from .config import load_layered_yaml, load_yaml, merge_config, resolve_path
from .logging import setup_logging, setup_logging_from_config
from .types import (
    DrivingEvent,
    FusedFix,
    FusedState,
    InteractionEvent,
    LatLng,
    MotionSample,
    OrientationSample,
    RawFix,
    RoadContext,
    RouteGeometry,
    RouteInstruction,
    TripRecord,
)

__all__ = [
    "DrivingEvent",
    "FusedFix",
    "FusedState",
    "InteractionEvent",
    "LatLng",
    "MotionSample",
    "OrientationSample",
    "RawFix",
    "RoadContext",
    "RouteGeometry",
    "RouteInstruction",
    "TripRecord",
    "load_layered_yaml",
    "load_yaml",
    "merge_config",
    "resolve_path",
    "setup_logging",
    "setup_logging_from_config",
]
