from .estimator import PositionFusionConfig, PositionFusionEstimator
from .heading import HeadingFusionConfig, HeadingFusionEstimator
from .smoothing import MotionSmoother, MotionSmootherConfig, MovingAverage
from .units import kmh_to_mps, mps_to_kmh

__all__ = [
    "HeadingFusionConfig",
    "HeadingFusionEstimator",
    "MotionSmoother",
    "MotionSmootherConfig",
    "MovingAverage",
    "PositionFusionConfig",
    "PositionFusionEstimator",
    "kmh_to_mps",
    "mps_to_kmh",
]
