"""
Spatial Entities (Data Model)
=============================
This module defines the persisted entities of a calibration session.

Why is this file needed?
------------------------
1. State Management: The wall calibration, the defined objects and their
   anchors are the only things the store owns.
2. Persistence: These objects serialize to the JSON-compatible records
   handed to storage, and load back from them.
3. Decoupling: Flows create entities; the store owns them; everything else
   refers to them by id.

Classes:
    Anchor: A mounting point in its object's local plane coordinates.
    SpatialObject: A rectangle defined by three corners on the wall.
    WallCalibration: The calibrated wall plane.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Tuple
import uuid

from o3measure.config import (
    ANCHOR_COLORS,
    DEFAULT_WALL_HEIGHT,
    DEFAULT_WALL_POSITION,
    DEFAULT_WALL_WIDTH,
    WALL_ADJUSTMENT_STEP,
)
from o3measure.model.geometry_primitives import Basis, Plane, Point, Vector
from o3measure.model.geometry_utils import basis_to_euler_degrees
from o3measure.model.plane_fitter import build_basis, fourth_corner
from o3measure.model.rectangle import Rectangle

logger = logging.getLogger(__name__)

OBJECT_TYPE = "rectangle"


def new_object_id() -> str:
    return f"object_{uuid.uuid4().hex[:12]}"


def new_anchor_id() -> str:
    return f"anchor_{uuid.uuid4().hex[:12]}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Anchor:
    """
    A mounting point owned by a SpatialObject.
    `local_position` is (right, up) relative to the object center; z is the
    fixed anti z-fighting offset.
    """
    id: str
    object_id: str
    local_position: Point
    color_index: int = 0

    @property
    def color(self) -> str:
        return ANCHOR_COLORS[self.color_index % len(ANCHOR_COLORS)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "objectId": self.object_id,
            "position": self.local_position.to_dict(),
            "color": self.color,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any], index: int = 0) -> Anchor:
        color = data.get("color")
        color_index = ANCHOR_COLORS.index(color) if color in ANCHOR_COLORS else index % len(ANCHOR_COLORS)
        return Anchor(
            id=str(data["id"]),
            object_id=str(data["objectId"]),
            local_position=Point.from_dict(data.get("position", {})),
            color_index=color_index,
        )


@dataclass
class SpatialObject:
    """
    A rectangular object on the wall.
    Dimensions and orientation are fixed at creation; dragging only changes
    `center` and `corners`, anchor completion only changes `anchors`.
    """
    id: str
    corners: Tuple[Point, Point, Point]
    width: float
    height: float
    center: Point
    basis: Basis
    anchors: List[Anchor] = field(default_factory=list)
    visible: bool = True
    locked: bool = False
    created_at: str = field(default_factory=_now_iso)

    @property
    def fourth_corner(self) -> Point:
        p1, p2, p3 = self.corners
        return fourth_corner(p1, p2, p3)

    @property
    def rotation_deg(self) -> Vector:
        return basis_to_euler_degrees(self.basis)

    def anchor_world_position(self, anchor: Anchor) -> Point:
        return self.basis.local_to_world(self.center, anchor.local_position)

    @staticmethod
    def from_rectangle(rect: Rectangle, object_id: Optional[str] = None) -> SpatialObject:
        return SpatialObject(
            id=object_id or new_object_id(),
            corners=rect.corners,
            width=rect.width,
            height=rect.height,
            center=rect.center,
            basis=rect.basis,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": OBJECT_TYPE,
            "points": [p.to_dict() for p in self.corners],
            "width": self.width,
            "height": self.height,
            "center": self.center.to_dict(),
            "rotation": self.rotation_deg.to_dict(),
            "anchors": [a.to_dict() for a in self.anchors],
            "visible": self.visible,
            "locked": self.locked,
            "createdAt": self.created_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> SpatialObject:
        """
        Rebuild an object from its persisted record.
        The basis comes from the stored corner points; `rotation` is ignored.
        """
        obj_type = data.get("type", OBJECT_TYPE)
        if obj_type != OBJECT_TYPE:
            raise ValueError(f"Unsupported object type '{obj_type}'.")

        points = [Point.from_dict(p) for p in data["points"]]
        if len(points) != 3:
            raise ValueError(f"Object record needs 3 points, got {len(points)}.")
        p1, p2, p3 = points

        return SpatialObject(
            id=str(data["id"]),
            corners=(p1, p2, p3),
            width=float(data["width"]),
            height=float(data["height"]),
            center=Point.from_dict(data["center"]),
            basis=build_basis(p1, p2, p3),
            anchors=[Anchor.from_dict(a, i) for i, a in enumerate(data.get("anchors", []))],
            visible=bool(data.get("visible", True)),
            locked=bool(data.get("locked", False)),
            created_at=str(data.get("createdAt") or _now_iso()),
        )


def _default_plane() -> Plane:
    return Plane(point=Point(*DEFAULT_WALL_POSITION), normal=Vector(0.0, 0.0, 1.0))


@dataclass
class WallCalibration:
    """The calibrated wall. Starts uncalibrated at the default wall pose."""
    plane: Plane = field(default_factory=_default_plane)
    basis: Basis = field(default_factory=Basis.identity)
    width: float = DEFAULT_WALL_WIDTH
    height: float = DEFAULT_WALL_HEIGHT
    is_calibrated: bool = False
    visible: bool = False
    adjustment_step: float = WALL_ADJUSTMENT_STEP

    def nudged(self, direction: int) -> WallCalibration:
        """Copy moved along its own normal by `direction` adjustment steps."""
        offset = self.plane.normal * (self.adjustment_step * direction)
        return replace(self, plane=Plane(point=self.plane.point + offset, normal=self.plane.normal))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isCalibrated": self.is_calibrated,
            "visible": self.visible,
            "width": self.width,
            "height": self.height,
            "plane": self.plane.to_dict(),
            "basis": self.basis.to_dict(),
            "position": self.plane.point.to_dict(),
            "rotation": basis_to_euler_degrees(self.basis).to_dict(),
            "adjustmentFactor": self.adjustment_step,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> WallCalibration:
        wall = WallCalibration(
            width=float(data.get("width", DEFAULT_WALL_WIDTH)),
            height=float(data.get("height", DEFAULT_WALL_HEIGHT)),
            is_calibrated=bool(data.get("isCalibrated", False)),
            visible=bool(data.get("visible", False)),
            adjustment_step=float(data.get("adjustmentFactor", WALL_ADJUSTMENT_STEP)),
        )
        if "plane" in data:
            wall.plane = Plane.from_dict(data["plane"])
        if "basis" in data:
            wall.basis = Basis.from_dict(data["basis"])
        return wall
