from .detector import TickResult, ViolationDetector, ViolationDetectorConfig
from .distraction import DistractionConfig, distraction_event
from .gforce import GForceConfig, classify_g_force
from .speeding import SpeedingConfig, SpeedingContext, SpeedingMonitor
from .stop import StopDetector, StopDetectorConfig

__all__ = [
    "DistractionConfig",
    "GForceConfig",
    "SpeedingConfig",
    "SpeedingContext",
    "SpeedingMonitor",
    "StopDetector",
    "StopDetectorConfig",
    "TickResult",
    "ViolationDetector",
    "ViolationDetectorConfig",
    "classify_g_force",
    "distraction_event",
]
