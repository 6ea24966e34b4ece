from .sources import (
    ClockTick,
    LocationError,
    LocationErrorSample,
    ReplayLogConfig,
    ReplayLogReader,
    SensorSample,
    parse_sample,
)

__all__ = [
    "ClockTick",
    "LocationError",
    "LocationErrorSample",
    "ReplayLogConfig",
    "ReplayLogReader",
    "SensorSample",
    "parse_sample",
]
