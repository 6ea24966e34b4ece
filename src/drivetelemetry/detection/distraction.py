from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from drivetelemetry.utils.types import DrivingEvent, FusedFix, InteractionEvent


@dataclass(frozen=True)
class DistractionConfig:
    points: float
    debounce_s: float
    background_min_speed_kmh: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "DistractionConfig":
        return DistractionConfig(
            points=float(d.get("points", -30.0)),
            debounce_s=float(d.get("debounce_s", 2.0)),
            background_min_speed_kmh=float(d.get("background_min_speed_kmh", 5.0)),
        )


def distraction_event(
    interaction: InteractionEvent,
    fix: Optional[FusedFix],
    cfg: DistractionConfig,
    is_stopped: bool,
    signal_lost: bool,
) -> Optional[DrivingEvent]:
    """Turn a touch/visibility interaction into a distraction event, or ``None`` when it is harmless.

    Safe harbors: the vehicle is stopped, the touch landed on UI marked safe, or (for
    backgrounding) the GPS signal is lost or the vehicle is slower than
    ``background_min_speed_kmh``. Debouncing is left to the caller.
    """
    if is_stopped:
        return None
    speed = float(fix.speed_kmh) if fix is not None else 0.0

    if interaction.kind == "background":
        if signal_lost or speed <= cfg.background_min_speed_kmh:
            return None
        event_type = "APP_BACKGROUNDED"
        description = "App Backgrounded while Driving"
    elif interaction.kind in ("touch", "click"):
        if interaction.target_safe:
            return None
        event_type = "PHONE_TOUCH"
        description = "Phone Interaction while Driving"
    else:
        return None

    return DrivingEvent(
        type=event_type,  # type: ignore[arg-type]
        timestamp_s=float(interaction.timestamp_s),
        points_delta=float(cfg.points),
        severity_tier="serious",
        description=description,
        lat=fix.lat if fix is not None else None,
        lng=fix.lng if fix is not None else None,
        speed_kmh=speed,
        value=speed,
    )
