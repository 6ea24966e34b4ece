import math

import pytest

from drivetelemetry.geometry.route import closest_point_on_segment, snap_to_route
from drivetelemetry.geometry.simplify import simplify_path
from drivetelemetry.navigation.guidance import REROUTE_TEXT, NavigatorConfig, RouteNavigator
from drivetelemetry.navigation.instructions import clean_route_instruction
from drivetelemetry.routing.base import RouteError
from drivetelemetry.routing.osrm import parse_osrm_route
from drivetelemetry.speed_estimation.math import haversine_m, offset_latlng
from drivetelemetry.utils.types import RouteGeometry, RouteInstruction

ORIGIN = (45.0, 7.0)


def _straight_route(n: int = 11, step_m: float = 100.0, turn_text: str = "Turn left onto Main St") -> RouteGeometry:
    coords = tuple(offset_latlng(ORIGIN, step_m * i, 0.0) for i in range(n))
    return RouteGeometry(
        coordinates=coords,
        instructions=(RouteInstruction(text=turn_text, index=n - 1),),
        total_distance_m=step_m * (n - 1),
    )


def _arc(n: int = 20) -> list:
    return [(45.0 + 0.01 * math.sin(math.pi * i / (n - 1)), 7.0 + 0.01 * math.cos(math.pi * i / (n - 1))) for i in range(n)]


def test_simplify_keeps_endpoints_of_collinear_run() -> None:
    pts = [(45.0 + 0.0001 * i, 7.0) for i in range(50)]
    out = simplify_path(pts, 5.0)
    assert out == [pts[0], pts[-1]]


def test_simplify_zero_tolerance_is_identity_on_convex_arc() -> None:
    pts = _arc()
    assert simplify_path(pts, 0.0) == pts


def test_simplify_infinite_tolerance_keeps_two_points() -> None:
    pts = _arc()
    out = simplify_path(pts, float("inf"))
    assert out == [pts[0], pts[-1]]


def test_simplify_short_inputs_are_copied() -> None:
    pts = [(45.0, 7.0), (45.1, 7.1)]
    out = simplify_path(pts, 5.0)
    assert out == pts
    assert out is not pts
    assert simplify_path([], 5.0) == []


def test_simplify_handles_very_long_paths() -> None:
    pts = [(45.0 + 0.00001 * i, 7.0 + 0.0001 * math.sin(i / 10.0)) for i in range(20000)]
    out = simplify_path(pts, 5.0)
    assert out[0] == pts[0]
    assert out[-1] == pts[-1]
    assert 2 < len(out) < len(pts)


def test_closest_point_on_segment_clamps() -> None:
    a = ORIGIN
    b = offset_latlng(ORIGIN, 100.0, 0.0)
    p = offset_latlng(ORIGIN, 150.0, 30.0)
    q, t = closest_point_on_segment(p, a, b)
    assert t == 1.0
    assert haversine_m(q, b) < 1e-6


def test_snap_to_route_reports_perpendicular_distance() -> None:
    route = _straight_route()
    p = offset_latlng(ORIGIN, 250.0, 50.0)
    snap = snap_to_route(p, route.coordinates, 0)
    assert snap is not None
    assert snap.matched_segment_index == 2
    assert abs(snap.distance_to_snap_m - 50.0) < 0.05


def test_off_route_triggers_single_reroute() -> None:
    nav = RouteNavigator(NavigatorConfig.from_dict({}))
    nav.set_route(_straight_route())
    off = offset_latlng(ORIGIN, 250.0, 50.0)

    updates = [nav.update(float(t), off) for t in range(0, 10)]
    reroutes = [u for u in updates if u.reroute_requested]
    assert len(reroutes) == 1
    assert reroutes[0].prompts[0].phase == "REROUTE"
    assert reroutes[0].prompts[0].text == REROUTE_TEXT
    assert reroutes[0].prompts[0].interrupt
    assert nav.is_off_route

    back = nav.update(10.0, offset_latlng(ORIGIN, 300.0, 2.0))
    assert not back.off_route
    assert not nav.is_off_route


def test_short_excursion_does_not_reroute() -> None:
    nav = RouteNavigator(NavigatorConfig.from_dict({}))
    nav.set_route(_straight_route())
    off = offset_latlng(ORIGIN, 250.0, 50.0)
    updates = [nav.update(float(t), off) for t in range(0, 3)]
    updates.append(nav.update(3.0, offset_latlng(ORIGIN, 260.0, 1.0)))
    assert not any(u.reroute_requested for u in updates)


def test_off_route_relocates_anywhere_on_route() -> None:
    nav = RouteNavigator(NavigatorConfig.from_dict({}))
    nav.set_route(_straight_route(n=30))
    off = offset_latlng(ORIGIN, 250.0, 60.0)
    for t in range(0, 6):
        nav.update(float(t), off)
    assert nav.is_off_route
    far = nav.update(6.0, offset_latlng(ORIGIN, 2500.0, 3.0))
    assert far.snap is not None
    assert far.snap.matched_segment_index >= 24
    assert not nav.is_off_route


def test_guidance_checkpoints_fire_once_each() -> None:
    nav = RouteNavigator(NavigatorConfig.from_dict({}))
    nav.set_route(_straight_route())

    prompts = []
    for t, east in enumerate([0.0, 500.0, 505.0, 800.0, 965.0, 970.0]):
        prompts.extend(nav.update(float(t), offset_latlng(ORIGIN, east, 0.0)).prompts)

    assert [p.phase for p in prompts] == ["PREP_1", "APPROACH", "NEAR", "EXECUTE"]
    assert prompts[0].text == "In 1 kilometer, Turn left on Main St"
    assert prompts[1].text == "In 500 meters, Turn left on Main St"
    assert prompts[3].text == "Turn left on Main St"
    assert prompts[3].interrupt
    assert not prompts[1].interrupt


def test_clean_route_instruction() -> None:
    assert clean_route_instruction("<b>Turn left</b> onto Main St") == "Turn left on Main St"
    assert clean_route_instruction("Head north on Elm") == "Head on Elm"
    assert clean_route_instruction("At the roundabout, take the 2nd exit") == "Roundabout: 2nd Exit"
    assert clean_route_instruction("") == ""


def _osrm_payload() -> dict:
    return {
        "code": "Ok",
        "routes": [
            {
                "distance": 157.0,
                "duration": 20.0,
                "geometry": {"type": "LineString", "coordinates": [[7.0, 45.0], [7.001, 45.0], [7.002, 45.0]]},
                "legs": [
                    {
                        "steps": [
                            {"name": "Elm", "distance": 78.0, "maneuver": {"type": "depart", "location": [7.0, 45.0]}},
                            {
                                "name": "Main St",
                                "distance": 79.0,
                                "maneuver": {"type": "turn", "modifier": "left", "location": [7.001, 45.0]},
                            },
                            {"name": "", "distance": 0.0, "maneuver": {"type": "arrive", "location": [7.002, 45.0]}},
                        ]
                    }
                ],
            }
        ],
    }


def test_parse_osrm_route_swaps_to_lat_lng_and_anchors_steps() -> None:
    route = parse_osrm_route(_osrm_payload())
    assert route.coordinates[0] == (45.0, 7.0)
    assert [i.index for i in route.instructions] == [0, 1, 2]
    assert route.instructions[1].text == "Turn left onto Main St"
    assert route.instructions[2].text == "Arrive at destination"
    assert abs(route.total_distance_m - 157.0) < 1e-9


def test_parse_osrm_route_rejects_failures() -> None:
    with pytest.raises(RouteError):
        parse_osrm_route({"code": "NoRoute", "message": "Impossible route"})
