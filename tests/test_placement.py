from __future__ import annotations

import pytest

from o3measure.controller.placement import Outcome, PlacementKind, PlacementState, PlacementStateMachine
from o3measure.model.errors import DegenerateInput, IncompleteInput, InvalidTransition
from o3measure.model.geometry_primitives import Point

POINTS = [Point(0, 1, 0), Point(0.5, 1, 0), Point(0.5, 0.8, 0), Point(0, 0.8, 0)]


def _machine(kind: PlacementKind = PlacementKind.OBJECT_DEFINITION, target: int = 3, **kwargs) -> PlacementStateMachine:
    return PlacementStateMachine(kind, target, **kwargs)


def _feed(machine: PlacementStateMachine, count: int, start_ms: int = 0, step_ms: int = 1000) -> None:
    for i in range(count):
        assert machine.submit_point(POINTS[i], start_ms + i * step_ms)


def test_exact_target_count_reaches_preview():
    for target in (1, 2, 3, 4):
        machine = _machine(PlacementKind.ANCHOR_PLACEMENT, target)
        machine.start()
        _feed(machine, target)
        assert machine.state == PlacementState.PREVIEW
        assert machine.point_count == target


def test_submit_in_preview_is_rejected_without_mutation():
    machine = _machine()
    machine.start()
    _feed(machine, 3)
    before = machine.points
    with pytest.raises(InvalidTransition):
        machine.submit_point(POINTS[3], 10_000)
    assert machine.points == before
    assert machine.state == PlacementState.PREVIEW


def test_submit_in_idle_is_rejected():
    machine = _machine()
    with pytest.raises(InvalidTransition):
        machine.submit_point(POINTS[0], 0)
    assert machine.point_count == 0


def test_start_twice_is_a_noop():
    machine = _machine()
    assert machine.start()
    machine.submit_point(POINTS[0], 0)
    assert not machine.start()
    assert machine.point_count == 1
    assert machine.state == PlacementState.COLLECTING


def test_finalize_with_two_of_three_points():
    machine = _machine()
    machine.start()
    _feed(machine, 2)
    with pytest.raises(IncompleteInput) as excinfo:
        machine.finalize(lambda pts: pts)
    assert excinfo.value.have == 2
    assert excinfo.value.need == 3
    assert excinfo.value.code == "IncompleteInput"
    assert machine.state == PlacementState.COLLECTING
    assert machine.point_count == 2


def test_finalize_hands_points_and_returns_to_idle():
    machine = _machine()
    machine.start()
    _feed(machine, 3)
    received = machine.finalize(lambda pts: list(pts))
    assert received == POINTS[:3]
    assert machine.state == PlacementState.IDLE
    assert machine.point_count == 0
    assert machine.last_outcome == Outcome.FINALIZED


def test_failed_finalize_keeps_preview():
    machine = _machine()
    machine.start()
    _feed(machine, 3)

    def boom(points):
        raise DegenerateInput("bad points")

    with pytest.raises(DegenerateInput):
        machine.finalize(boom)
    assert machine.state == PlacementState.PREVIEW
    assert machine.points == tuple(POINTS[:3])


def test_reset_asymmetry_between_kinds():
    obj = _machine(PlacementKind.OBJECT_DEFINITION, 3)
    obj.start()
    _feed(obj, 2)
    obj.reset()
    assert obj.state == PlacementState.COLLECTING
    assert obj.point_count == 0

    wall = _machine(PlacementKind.WALL_CALIBRATION, 3)
    wall.start()
    _feed(wall, 3)
    wall.reset()
    assert wall.state == PlacementState.COLLECTING

    anchors = _machine(PlacementKind.ANCHOR_PLACEMENT, 2)
    anchors.start()
    _feed(anchors, 1)
    anchors.reset()
    assert anchors.state == PlacementState.IDLE
    assert anchors.point_count == 0


def test_reset_and_cancel_require_active_session():
    machine = _machine()
    with pytest.raises(InvalidTransition):
        machine.reset()
    with pytest.raises(InvalidTransition):
        machine.cancel()


def test_cancel_discards_points():
    machine = _machine()
    machine.start()
    _feed(machine, 2)
    machine.cancel()
    assert machine.state == PlacementState.IDLE
    assert machine.point_count == 0
    assert machine.last_outcome == Outcome.CANCELLED


def test_debounce_drops_rapid_submissions():
    machine = _machine(debounce_ms=1000)
    machine.start()
    assert machine.submit_point(POINTS[0], 5000)
    assert not machine.submit_point(POINTS[1], 5400)
    assert not machine.submit_point(POINTS[1], 5999)
    assert machine.point_count == 1
    assert machine.submit_point(POINTS[1], 6000)
    assert machine.point_count == 2


def test_debounce_survives_reset():
    machine = _machine(debounce_ms=1000)
    machine.start()
    assert machine.submit_point(POINTS[0], 0)
    machine.reset()
    assert not machine.submit_point(POINTS[0], 500)
    assert machine.submit_point(POINTS[0], 1000)


def test_never_holds_more_than_target():
    machine = _machine(target=3, debounce_ms=0)
    machine.start()
    for i in range(3):
        machine.submit_point(POINTS[i], i)
    for extra in range(5):
        with pytest.raises(InvalidTransition):
            machine.submit_point(POINTS[3], 100 + extra)
    assert machine.point_count == 3


def test_replace_points_goes_to_preview():
    machine = _machine(PlacementKind.ANCHOR_PLACEMENT, 2)
    machine.start()
    machine.replace_points(POINTS[:2])
    assert machine.state == PlacementState.PREVIEW

    machine.replace_points(POINTS[:4], target_count=4)
    assert machine.target_count == 4
    assert machine.point_count == 4

    with pytest.raises(IncompleteInput):
        machine.replace_points(POINTS[:3])
    assert machine.point_count == 4


def test_set_target_count_rules():
    machine = _machine(PlacementKind.ANCHOR_PLACEMENT, 2)
    machine.set_target_count(4)
    machine.start()
    _feed(machine, 2)
    machine.set_target_count(3)
    assert machine.target_count == 3
    with pytest.raises(InvalidTransition):
        machine.set_target_count(2)
    with pytest.raises(ValueError):
        machine.set_target_count(0)


def test_listener_sees_every_transition():
    seen = []
    machine = _machine(listener=lambda m, outcome: seen.append((outcome, m.state, m.point_count)))
    machine.start()
    _feed(machine, 3)
    machine.reset()
    machine.cancel()
    assert seen == [
        (Outcome.STARTED, PlacementState.COLLECTING, 0),
        (Outcome.POINT_ADDED, PlacementState.COLLECTING, 1),
        (Outcome.POINT_ADDED, PlacementState.COLLECTING, 2),
        (Outcome.READY, PlacementState.PREVIEW, 3),
        (Outcome.RESET, PlacementState.COLLECTING, 0),
        (Outcome.CANCELLED, PlacementState.IDLE, 0),
    ]
