from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, Signal

from o3measure.model.entities import Anchor, SpatialObject, WallCalibration
from o3measure.model.errors import ObjectNotFound
from o3measure.model.geometry_primitives import Basis, Plane, Point

logger = logging.getLogger(__name__)


class CalibrationStore(QObject):
    """
    Single owner of the wall calibration and the defined objects.

    Components get the store injected and mutate it only through the typed
    methods below; every mutation emits the matching signal. The dotted-path
    `get_state`/`update_state` pair exists for external subscribers only.
    """
    wall_changed = Signal(object)
    object_created = Signal(object)
    object_updated = Signal(str, object)
    object_deleted = Signal(str)
    anchors_completed = Signal(str, object)
    state_changed = Signal(str, object)

    def __init__(self) -> None:
        super().__init__()
        self._wall = WallCalibration()
        self._objects: Dict[str, SpatialObject] = {}

    # ---- Wall ----
    @property
    def wall(self) -> WallCalibration:
        return self._wall

    def calibrate_wall(
        self,
        plane: Plane,
        basis: Basis,
        width: Optional[float] = None,
        height: Optional[float] = None
    ) -> WallCalibration:
        self._wall = WallCalibration(
            plane=plane,
            basis=basis,
            width=self._wall.width if width is None else width,
            height=self._wall.height if height is None else height,
            is_calibrated=True,
            visible=True,
            adjustment_step=self._wall.adjustment_step,
        )
        logger.info(f"Wall calibrated at {plane.point} with normal {plane.normal}")
        self._emit_wall()
        return self._wall

    def reset_wall(self) -> None:
        self._wall = WallCalibration(adjustment_step=self._wall.adjustment_step)
        logger.info("Wall calibration reset")
        self._emit_wall()

    def set_wall_visible(self, visible: bool) -> None:
        self._wall.visible = visible
        self._emit_wall()

    def adjust_wall(self, direction: int) -> bool:
        """Nudge the wall along its normal by one adjustment step per unit of `direction`."""
        if not self._wall.visible:
            logger.info("Wall adjustment ignored, wall is not visible")
            return False
        self._wall = self._wall.nudged(direction)
        logger.info(f"Wall adjusted to {self._wall.plane.point}")
        self._emit_wall()
        return True

    def _emit_wall(self) -> None:
        self.wall_changed.emit(self._wall)
        self.state_changed.emit("calibration.wall", self._wall.to_dict())

    # ---- Objects ----
    @property
    def objects(self) -> List[SpatialObject]:
        return list(self._objects.values())

    def get_object(self, object_id: str) -> SpatialObject:
        try:
            return self._objects[object_id]
        except KeyError:
            raise ObjectNotFound(object_id) from None

    def has_object(self, object_id: str) -> bool:
        return object_id in self._objects

    def add_object(self, obj: SpatialObject) -> SpatialObject:
        if obj.id in self._objects:
            raise ValueError(f"Object with id '{obj.id}' already exists.")
        self._objects[obj.id] = obj
        logger.info(f"Object created: {obj.id} ({obj.width:.3f} x {obj.height:.3f} m)")
        self.object_created.emit(obj)
        self._emit_objects()
        return obj

    def move_object(self, object_id: str, center: Point, corners: Sequence[Point]) -> SpatialObject:
        """Translate an object. Width, height and basis are never touched."""
        obj = self.get_object(object_id)
        if len(corners) < 3:
            raise ValueError(f"Need at least 3 corners, got {len(corners)}.")
        obj.center = center
        obj.corners = (corners[0], corners[1], corners[2])
        self.object_updated.emit(object_id, obj)
        self._emit_objects()
        return obj

    def set_anchors(self, object_id: str, anchors: Sequence[Anchor]) -> SpatialObject:
        obj = self.get_object(object_id)
        foreign = [a.id for a in anchors if a.object_id != object_id]
        if foreign:
            raise ValueError(f"Anchors {foreign} do not belong to object '{object_id}'.")
        obj.anchors = list(anchors)
        logger.info(f"{len(anchors)} anchors saved on {object_id}")
        self.anchors_completed.emit(object_id, list(obj.anchors))
        self.object_updated.emit(object_id, obj)
        self._emit_objects()
        return obj

    def set_object_visible(self, object_id: str, visible: bool) -> SpatialObject:
        obj = self.get_object(object_id)
        obj.visible = visible
        self.object_updated.emit(object_id, obj)
        self._emit_objects()
        return obj

    def set_object_locked(self, object_id: str, locked: bool) -> SpatialObject:
        obj = self.get_object(object_id)
        obj.locked = locked
        self.object_updated.emit(object_id, obj)
        self._emit_objects()
        return obj

    def delete_object(self, object_id: str) -> SpatialObject:
        """Remove an object together with its anchors."""
        obj = self._objects.pop(object_id, None)
        if obj is None:
            raise ObjectNotFound(object_id)
        logger.info(f"Object deleted: {object_id} ({len(obj.anchors)} anchors dropped)")
        self.object_deleted.emit(object_id)
        self._emit_objects()
        return obj

    def _emit_objects(self) -> None:
        self.state_changed.emit("objects", self._objects_snapshot())

    # ---- Bulk ----
    def load(self, wall: WallCalibration, objects: Sequence[SpatialObject]) -> None:
        """Replace the whole session (used when loading from disk)."""
        self._wall = wall
        self._objects = {obj.id: obj for obj in objects}
        logger.info(f"Store loaded: {len(self._objects)} objects, wall calibrated={wall.is_calibrated}")
        self._emit_wall()
        for obj in self._objects.values():
            self.object_created.emit(obj)
        self._emit_objects()

    def clear(self) -> None:
        for object_id in list(self._objects):
            self.delete_object(object_id)
        self.reset_wall()

    # ---- Dotted path adapter (external boundary) ----
    def _objects_snapshot(self) -> Dict[str, Any]:
        return {object_id: obj.to_dict() for object_id, obj in self._objects.items()}

    def snapshot(self) -> Dict[str, Any]:
        return {
            "calibration": {"wall": self._wall.to_dict()},
            "objects": self._objects_snapshot(),
        }

    def get_state(self, path: Optional[str] = None) -> Any:
        """Read a JSON-compatible value by dotted path, e.g. 'calibration.wall.width'."""
        node: Any = self.snapshot()
        if not path:
            return node
        for part in path.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return None
        return node

    def update_state(self, path: str, value: Any) -> None:
        """
        Apply an external dotted-path update by mapping it onto a typed mutation.

        Supported paths:
            calibration.wall.visible
            objects.<id>.visible
            objects.<id>.locked
        """
        parts: Tuple[str, ...] = tuple(path.split("."))
        if parts == ("calibration", "wall", "visible"):
            self.set_wall_visible(bool(value))
        elif len(parts) == 3 and parts[0] == "objects" and parts[2] == "visible":
            self.set_object_visible(parts[1], bool(value))
        elif len(parts) == 3 and parts[0] == "objects" and parts[2] == "locked":
            self.set_object_locked(parts[1], bool(value))
        else:
            raise KeyError(f"Unsupported state path '{path}'")
