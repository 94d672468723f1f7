from __future__ import annotations

import pytest

from o3measure.app.state import CalibrationStore
from o3measure.model.entities import Anchor, SpatialObject, WallCalibration
from o3measure.model.errors import ObjectNotFound
from o3measure.model.geometry_primitives import Point
from o3measure.model.plane_fitter import build_basis, fit_plane
from o3measure.model.rectangle import reconstruct


def _assert_close(actual: float, expected: float, eps: float = 1e-9) -> None:
    assert abs(float(actual) - float(expected)) <= eps


def _frame(object_id: str = "object_a") -> SpatialObject:
    rect = reconstruct(Point(0, 1, -2), Point(0.5, 1, -2), Point(0.5, 0.8, -2))
    return SpatialObject.from_rectangle(rect, object_id=object_id)


def _record(store: CalibrationStore) -> dict:
    events = {"created": [], "updated": [], "deleted": [], "anchors": [], "wall": [], "paths": []}
    store.object_created.connect(lambda obj: events["created"].append(obj.id))
    store.object_updated.connect(lambda object_id, obj: events["updated"].append(object_id))
    store.object_deleted.connect(lambda object_id: events["deleted"].append(object_id))
    store.anchors_completed.connect(lambda object_id, anchors: events["anchors"].append((object_id, len(anchors))))
    store.wall_changed.connect(lambda wall: events["wall"].append(wall.is_calibrated))
    store.state_changed.connect(lambda path, value: events["paths"].append(path))
    return events


def test_add_get_delete_emit_signals():
    store = CalibrationStore()
    events = _record(store)

    obj = store.add_object(_frame())
    assert store.get_object("object_a") is obj
    assert store.has_object("object_a")
    assert events["created"] == ["object_a"]

    store.set_anchors(obj.id, [Anchor(id="anchor_1", object_id=obj.id, local_position=Point(0, 0, 0.001))])
    assert events["anchors"] == [("object_a", 1)]

    removed = store.delete_object(obj.id)
    assert len(removed.anchors) == 1
    assert events["deleted"] == ["object_a"]
    assert not store.has_object("object_a")
    assert "objects" in events["paths"]


def test_unknown_ids_raise_object_not_found():
    store = CalibrationStore()
    with pytest.raises(ObjectNotFound) as excinfo:
        store.get_object("nope")
    assert excinfo.value.code == "ObjectNotFound"
    with pytest.raises(ObjectNotFound):
        store.delete_object("nope")
    with pytest.raises(ObjectNotFound):
        store.set_object_locked("nope", True)


def test_duplicate_ids_and_foreign_anchors_are_rejected():
    store = CalibrationStore()
    store.add_object(_frame())
    with pytest.raises(ValueError):
        store.add_object(_frame())
    with pytest.raises(ValueError):
        store.set_anchors("object_a", [Anchor(id="x", object_id="object_b", local_position=Point(0, 0, 0))])
    assert store.get_object("object_a").anchors == []


def test_calibrate_reset_and_adjust_wall():
    store = CalibrationStore()
    events = _record(store)
    p1, p2, p3 = Point(-1, 2, -2), Point(1, 2, -2), Point(1, 0, -2)

    # Hidden walls are not adjusted
    assert not store.adjust_wall(1)

    wall = store.calibrate_wall(fit_plane(p1, p2, p3), build_basis(p1, p2, p3))
    assert wall.is_calibrated
    assert wall.visible
    _assert_close(wall.width, 4.0)

    assert store.adjust_wall(1)
    # The fitted normal points along -z for this winding
    _assert_close(store.wall.plane.point.z, -2.01)
    assert store.adjust_wall(-1)
    _assert_close(store.wall.plane.point.z, -2.0)

    store.reset_wall()
    assert not store.wall.is_calibrated
    assert events["wall"] == [True, True, True, False]


def test_dotted_path_read_and_update():
    store = CalibrationStore()
    store.add_object(_frame())

    assert store.get_state("calibration.wall.isCalibrated") is False
    _assert_close(store.get_state("objects.object_a.width"), 0.5)
    assert store.get_state("objects.missing.width") is None

    store.update_state("objects.object_a.locked", True)
    assert store.get_object("object_a").locked
    store.update_state("objects.object_a.visible", False)
    assert not store.get_object("object_a").visible
    store.update_state("calibration.wall.visible", True)
    assert store.wall.visible

    with pytest.raises(KeyError):
        store.update_state("objects.object_a.width", 3.0)
    with pytest.raises(ObjectNotFound):
        store.update_state("objects.missing.locked", True)


def test_load_and_clear():
    store = CalibrationStore()
    events = _record(store)
    wall = WallCalibration(is_calibrated=True, visible=True)
    store.load(wall, [_frame("object_a"), _frame("object_b")])
    assert [o.id for o in store.objects] == ["object_a", "object_b"]
    assert events["created"] == ["object_a", "object_b"]
    assert store.wall is wall

    store.clear()
    assert store.objects == []
    assert not store.wall.is_calibrated
    assert sorted(events["deleted"]) == ["object_a", "object_b"]
