from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import numpy as np

from drivetelemetry.geometry.route import cumulative_distances_m, distance_along_route_m, snap_to_route
from drivetelemetry.navigation.instructions import clean_route_instruction
from drivetelemetry.utils.types import GuidancePhase, GuidancePrompt, LatLng, RouteGeometry, SnapResult


logger = logging.getLogger("drivetelemetry.navigation.guidance")

_DEFAULT_BANDS: List[Dict[str, Any]] = [
    {"phase": "PREP", "distance_m": 2000.0, "window_m": 100.0, "template": "In 2 kilometers, {text}"},
    {"phase": "PREP_1", "distance_m": 1000.0, "window_m": 50.0, "template": "In 1 kilometer, {text}"},
    {"phase": "APPROACH", "distance_m": 500.0, "window_m": 50.0, "template": "In 500 meters, {text}"},
    {"phase": "NEAR", "distance_m": 200.0, "window_m": 20.0, "template": "In 200 meters, {text}"},
]

REROUTE_TEXT = "Recalculating route."


@dataclass(frozen=True)
class GuidanceBand:
    phase: GuidancePhase
    distance_m: float
    window_m: float
    template: str

    def matches(self, distance_m: float) -> bool:
        return abs(float(distance_m) - self.distance_m) < self.window_m


@dataclass(frozen=True)
class NavigatorConfig:
    off_route_m: float
    off_route_sustain_s: float
    look_back: int
    look_ahead: int
    execute_m: float
    bands: Tuple[GuidanceBand, ...]

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "NavigatorConfig":
        raw_bands = d.get("bands", _DEFAULT_BANDS)
        if not isinstance(raw_bands, list):
            raise ValueError("navigation.bands must be a list")
        bands = tuple(
            GuidanceBand(
                phase=str(b["phase"]),  # type: ignore[arg-type]
                distance_m=float(b["distance_m"]),
                window_m=float(b.get("window_m", 50.0)),
                template=str(b.get("template", "In {distance} meters, {text}")),
            )
            for b in raw_bands
        )
        return NavigatorConfig(
            off_route_m=float(d.get("off_route_m", 25.0)),
            off_route_sustain_s=float(d.get("off_route_sustain_s", 3.0)),
            look_back=int(d.get("look_back", 2)),
            look_ahead=int(d.get("look_ahead", 8)),
            execute_m=float(d.get("execute_m", 40.0)),
            bands=bands,
        )


@dataclass
class NavigationUpdate:
    snap: Optional[SnapResult] = None
    off_route: bool = False
    reroute_requested: bool = False
    instruction_index: int = 0
    distance_to_turn_m: Optional[float] = None
    prompts: List[GuidancePrompt] = field(default_factory=list)


class RouteNavigator:
    """Snap positions onto the active route, advance instructions and stage guidance prompts."""

    def __init__(self, cfg: NavigatorConfig) -> None:
        self._cfg = cfg
        self._route: Optional[RouteGeometry] = None
        self._cumulative: np.ndarray = np.zeros(0, dtype=np.float64)
        self._reset_progress()

    @property
    def route(self) -> Optional[RouteGeometry]:
        return self._route

    @property
    def is_off_route(self) -> bool:
        return self._off_route

    @property
    def instruction_index(self) -> int:
        return self._instruction_index

    def set_route(self, route: RouteGeometry) -> None:
        self._route = route
        self._cumulative = cumulative_distances_m(route.coordinates)
        self._reset_progress()
        logger.info("Route set: %d coords, %d instructions", len(route.coordinates), len(route.instructions))

    def clear_route(self) -> None:
        self._route = None
        self._cumulative = np.zeros(0, dtype=np.float64)
        self._reset_progress()

    def update(self, now_s: float, position: LatLng) -> NavigationUpdate:
        route = self._route
        if route is None or len(route.coordinates) < 2:
            return NavigationUpdate()

        if self._off_route:
            snap = snap_to_route(position, route.coordinates, 0, look_back=0, look_ahead=len(route.coordinates))
        else:
            snap = snap_to_route(
                position, route.coordinates, self._segment_index, self._cfg.look_back, self._cfg.look_ahead
            )
        if snap is None:
            return NavigationUpdate()

        out = NavigationUpdate(snap=snap, instruction_index=self._instruction_index)
        if snap.distance_to_snap_m > self._cfg.off_route_m:
            if self._off_route_since is None:
                self._off_route_since = float(now_s)
            elif float(now_s) - self._off_route_since > self._cfg.off_route_sustain_s and not self._off_route:
                self._off_route = True
                out.reroute_requested = True
                out.prompts.append(
                    GuidancePrompt(
                        instruction_index=self._instruction_index,
                        phase="REROUTE",
                        text=REROUTE_TEXT,
                        distance_m=float(snap.distance_to_snap_m),
                        interrupt=True,
                    )
                )
                logger.warning("Off route by %.1f m, requesting reroute", snap.distance_to_snap_m)
            out.off_route = self._off_route
            return out

        if self._off_route:
            logger.info("Back on route")
        self._off_route = False
        self._off_route_since = None
        self._segment_index = snap.matched_segment_index

        instructions = route.instructions
        if not instructions:
            return out
        current = instructions[self._instruction_index]
        if snap.matched_segment_index > current.index:
            for i, instr in enumerate(instructions):
                if instr.index > snap.matched_segment_index:
                    self._instruction_index = i
                    break
        out.instruction_index = self._instruction_index

        current = instructions[self._instruction_index]
        anchor = min(max(0, int(current.index)), len(route.coordinates) - 1)
        dist = distance_along_route_m(snap, route.coordinates, self._cumulative, anchor)
        out.distance_to_turn_m = float(dist)

        prompt = self._checkpoint(dist, clean_route_instruction(current.text))
        if prompt is not None:
            out.prompts.append(prompt)
        return out

    def _checkpoint(self, distance_m: float, text: str) -> Optional[GuidancePrompt]:
        phase: Optional[str] = None
        speech = ""
        for band in self._cfg.bands:
            if band.matches(distance_m):
                phase = band.phase
                speech = band.template.format(text=text, distance=int(band.distance_m))
                break
        if phase is None and distance_m < self._cfg.execute_m:
            phase = "EXECUTE"
            speech = text
        if phase is None:
            return None

        key = (self._instruction_index, phase)
        if key in self._fired:
            return None
        self._fired.add(key)
        return GuidancePrompt(
            instruction_index=self._instruction_index,
            phase=phase,  # type: ignore[arg-type]
            text=speech,
            distance_m=float(distance_m),
            interrupt=phase == "EXECUTE",
        )

    def _reset_progress(self) -> None:
        self._segment_index = 0
        self._instruction_index = 0
        self._off_route = False
        self._off_route_since: Optional[float] = None
        self._fired: Set[Tuple[int, str]] = set()
