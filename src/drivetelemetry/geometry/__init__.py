from .route import closest_point_on_segment, cumulative_distances_m, distance_along_route_m, snap_to_route
from .simplify import PathCompressorConfig, simplify_path

__all__ = [
    "PathCompressorConfig",
    "closest_point_on_segment",
    "cumulative_distances_m",
    "distance_along_route_m",
    "simplify_path",
    "snap_to_route",
]
