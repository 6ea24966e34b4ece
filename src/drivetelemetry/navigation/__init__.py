from .guidance import GuidanceBand, NavigationUpdate, NavigatorConfig, RouteNavigator
from .instructions import clean_route_instruction

__all__ = ["GuidanceBand", "NavigationUpdate", "NavigatorConfig", "RouteNavigator", "clean_route_instruction"]
