from __future__ import annotations

import math

import pytest

from o3measure.app.state import CalibrationStore
from o3measure.controller.drag import DragProjectionController
from o3measure.model.entities import Anchor, SpatialObject
from o3measure.model.errors import InvalidTransition, NoIntersection, ObjectNotFound
from o3measure.model.geometry_primitives import Plane, Point, Vector
from o3measure.model.geometry_utils import signed_distance_to_plane
from o3measure.model.plane_fitter import fit_plane
from o3measure.model.rectangle import reconstruct


def _assert_close(actual: float, expected: float, eps: float = 1e-9) -> None:
    assert abs(float(actual) - float(expected)) <= eps


WALL = Plane(Point(0, 0, -2), Vector(0, 0, 1))


def _store_with_frame() -> tuple[CalibrationStore, SpatialObject]:
    store = CalibrationStore()
    rect = reconstruct(Point(0, 1, -2), Point(0.5, 1, -2), Point(0.5, 0.8, -2))
    obj = store.add_object(SpatialObject.from_rectangle(rect, object_id="object_frame"))
    return store, obj


def test_drag_moves_center_and_keeps_dimensions():
    store, obj = _store_with_frame()
    drag = DragProjectionController(store)

    hit = drag.begin_drag(obj.id, Point(0.3, 0.95, 0), Vector(0, 0, -1), WALL)
    _assert_close(hit.z, -2.0)
    assert drag.active

    center = drag.update_drag(Point(1.3, 1.45, 0), Vector(0, 0, -1))
    _assert_close(center.x, 1.25)
    _assert_close(center.y, 1.4)
    _assert_close(center.z, -2.0)

    moved = store.get_object(obj.id)
    _assert_close(moved.width, 0.5)
    _assert_close(moved.height, 0.2)
    assert moved.basis == obj.basis
    _assert_close(moved.corners[0].x, 1.0)
    _assert_close(moved.corners[0].y, 1.5)

    final = drag.end_drag()
    assert final == center
    assert not drag.active


def test_drag_result_stays_on_plane_for_many_rays():
    store, obj = _store_with_frame()
    plane = fit_plane(Point(-1, 2, -2.5), Point(1, 2, -1.5), Point(1, 0, -1.5))
    drag = DragProjectionController(store)
    drag.begin_drag(obj.id, Point(0, 1, 1), Vector(0, 0, -1), plane)

    for i in range(40):
        angle = math.radians(i * 9)
        ray_dir = Vector(0.3 * math.cos(angle), 0.3 * math.sin(angle), -1.0)
        center = drag.update_drag(Point(0.1 * i, 1.0, 1.0), ray_dir)
        assert abs(signed_distance_to_plane(center, plane)) < 1e-6
        current = store.get_object(obj.id)
        _assert_close(current.width, 0.5)
        _assert_close(current.height, 0.2)


def test_grab_offset_has_no_normal_component():
    store, obj = _store_with_frame()
    # Object sits 5 cm in front of the drag plane
    plane = Plane(Point(0, 0, -2.05), Vector(0, 0, 1))
    drag = DragProjectionController(store)
    drag.begin_drag(obj.id, Point(0.25, 0.9, 0), Vector(0, 0, -1), plane)
    _assert_close(drag.grab_offset.dot(plane.normal), 0.0)

    center = drag.update_drag(Point(0.25, 0.9, 0), Vector(0, 0, -1))
    _assert_close(center.z, -2.05)


def test_begin_drag_failures_leave_state_untouched():
    store, obj = _store_with_frame()
    drag = DragProjectionController(store)

    with pytest.raises(ObjectNotFound):
        drag.begin_drag("object_missing", Point(0, 0, 0), Vector(0, 0, -1), WALL)
    with pytest.raises(NoIntersection):
        drag.begin_drag(obj.id, Point(0, 0, 0), Vector(1, 0, 0), WALL)
    assert not drag.active

    store.set_object_locked(obj.id, True)
    with pytest.raises(InvalidTransition):
        drag.begin_drag(obj.id, Point(0, 0, 0), Vector(0, 0, -1), WALL)
    assert not drag.active


def test_update_drag_parallel_ray_does_not_move_object():
    store, obj = _store_with_frame()
    drag = DragProjectionController(store)
    drag.begin_drag(obj.id, Point(0.25, 0.9, 0), Vector(0, 0, -1), WALL)
    before = store.get_object(obj.id).center
    with pytest.raises(NoIntersection):
        drag.update_drag(Point(0, 0, 0), Vector(0, 1, 0))
    assert store.get_object(obj.id).center == before
    assert drag.active


def test_second_begin_and_idle_update_are_rejected():
    store, obj = _store_with_frame()
    drag = DragProjectionController(store)
    with pytest.raises(InvalidTransition):
        drag.update_drag(Point(0, 0, 0), Vector(0, 0, -1))
    assert drag.end_drag() is None

    drag.begin_drag(obj.id, Point(0.25, 0.9, 0), Vector(0, 0, -1), WALL)
    with pytest.raises(InvalidTransition):
        drag.begin_drag(obj.id, Point(0.25, 0.9, 0), Vector(0, 0, -1), WALL)


def test_anchors_follow_the_object():
    store, obj = _store_with_frame()
    anchor = Anchor(id="anchor_1", object_id=obj.id, local_position=Point(0.1, 0.0, 0.001))
    store.set_anchors(obj.id, [anchor])

    drag = DragProjectionController(store)
    drag.begin_drag(obj.id, Point(0.25, 0.9, 0), Vector(0, 0, -1), WALL)
    drag.update_drag(Point(0.75, 0.4, 0), Vector(0, 0, -1))

    moved = store.get_object(obj.id)
    world = moved.anchor_world_position(moved.anchors[0])
    _assert_close(world.x, 0.85)
    _assert_close(world.y, 0.4)


def test_idle_update_with_plane_is_rejected_and_keeps_no_plane():
    store, _ = _store_with_frame()
    drag = DragProjectionController(store)
    with pytest.raises(InvalidTransition):
        drag.update_drag(Point(0, 0, 0), Vector(0, 0, -1), WALL)
    assert drag.plane is None
    assert not drag.active
