from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional, Tuple

LatLng = Tuple[float, float]

SeverityTier = Literal["minor", "moderate", "serious", "critical"]
SetupMode = Literal["mount", "carplay", "passenger"]
TransportMode = Literal["car", "bus", "train", "walk", "unknown"]
TripValidity = Literal["VALID", "INVALID_TRAIN", "INVALID_BUS", "INVALID_PASSENGER", "INVALID_HANDHELD"]
InteractionKind = Literal["touch", "click", "background", "foreground"]
GuidancePhase = Literal["PREP", "PREP_1", "APPROACH", "NEAR", "EXECUTE", "REROUTE"]

EventType = Literal[
    "SPEEDING",
    "SCHOOL_ZONE_SPEEDING",
    "SAFE_DRIVING_BONUS",
    "HARSH_BRAKING",
    "HARSH_ACCELERATION",
    "UNSAFE_CORNERING",
    "PHONE_TOUCH",
    "APP_BACKGROUNDED",
    "TRIP_INVALIDATED_PHONE_USE",
]

DISTRACTION_EVENT_TYPES = frozenset({"PHONE_TOUCH", "APP_BACKGROUNDED"})


@dataclass(frozen=True)
class RawFix:
    lat: float
    lng: float
    accuracy_m: float
    timestamp_s: float
    speed_mps: Optional[float] = None
    heading_deg: Optional[float] = None

    @property
    def latlng(self) -> LatLng:
        return (float(self.lat), float(self.lng))


@dataclass(frozen=True)
class MotionSample:
    timestamp_s: float
    ax: float
    ay: float
    az: float
    rotation_rate: Tuple[float, float, float] = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class OrientationSample:
    timestamp_s: float
    yaw: Optional[float]
    pitch: Optional[float] = None
    roll: Optional[float] = None

    @property
    def compass_heading_deg(self) -> Optional[float]:
        if self.yaw is None or math.isnan(float(self.yaw)):
            return None
        return (360.0 - float(self.yaw)) % 360.0


@dataclass(frozen=True)
class FusedState:
    speed_kmh: float
    heading_deg: float


@dataclass(frozen=True)
class FusedFix:
    """A raw fix paired with the fused speed/heading computed from it."""

    timestamp_s: float
    lat: float
    lng: float
    accuracy_m: float
    speed_kmh: float
    heading_deg: float

    @property
    def latlng(self) -> LatLng:
        return (float(self.lat), float(self.lng))

    @property
    def state(self) -> FusedState:
        return FusedState(speed_kmh=self.speed_kmh, heading_deg=self.heading_deg)


@dataclass(frozen=True)
class DrivingEvent:
    type: EventType
    timestamp_s: float
    points_delta: float
    severity_tier: SeverityTier
    description: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    speed_kmh: Optional[float] = None
    road_limit_kmh: Optional[float] = None
    value: Optional[float] = None

    @property
    def is_distraction(self) -> bool:
        return self.type in DISTRACTION_EVENT_TYPES


@dataclass(frozen=True)
class InteractionEvent:
    kind: InteractionKind
    timestamp_s: float
    target_safe: bool = False


@dataclass(frozen=True)
class RoadContext:
    max_speed_kmh: Optional[float] = None
    road_name: Optional[str] = None
    is_school_zone: bool = False


@dataclass(frozen=True)
class RouteInstruction:
    text: str
    index: int
    distance_m: float = 0.0


@dataclass(frozen=True)
class RouteGeometry:
    coordinates: Tuple[LatLng, ...]
    instructions: Tuple[RouteInstruction, ...]
    total_distance_m: float = 0.0
    total_time_s: float = 0.0


@dataclass(frozen=True)
class SnapResult:
    projected_point: LatLng
    distance_to_snap_m: float
    matched_segment_index: int


@dataclass(frozen=True)
class GuidancePrompt:
    instruction_index: int
    phase: GuidancePhase
    text: str
    distance_m: float
    interrupt: bool

    @property
    def key(self) -> Tuple[int, str]:
        return (self.instruction_index, self.phase)


@dataclass(frozen=True)
class TripRecord:
    id: str
    start_time_s: float
    end_time_s: float
    distance_km: float
    duration_s: int
    points: int
    max_speed_kmh: float
    compliance_score: int
    events: Tuple[DrivingEvent, ...]
    compressed_path: Tuple[LatLng, ...]
    start_name: str
    end_name: str
    validity: TripValidity
    reward_eligible: bool
    driver_confidence: float
    mode_of_transport: TransportMode
