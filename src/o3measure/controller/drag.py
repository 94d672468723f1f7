"""
Plane-constrained dragging of placed objects.
"""
from __future__ import annotations

import logging
from typing import Optional, TYPE_CHECKING

from o3measure.config import PLANE_SNAP_TOLERANCE
from o3measure.model.errors import InvalidTransition
from o3measure.model.geometry_primitives import Plane, Point, Vector
from o3measure.model.geometry_utils import ray_plane_intersection, signed_distance_to_plane
from o3measure.model.rectangle import corners_from_center

if TYPE_CHECKING:
    from o3measure.app.state import CalibrationStore

logger = logging.getLogger(__name__)


class DragProjectionController:
    """
    Keeps a grabbed object on the wall plane while the pointer ray moves.

    Only the object's center and corners change; width, height and basis are
    read from the object and never written.
    """

    def __init__(self, store: CalibrationStore, snap_tolerance: float = PLANE_SNAP_TOLERANCE) -> None:
        self.store = store
        self.snap_tolerance = snap_tolerance
        self.grabbed_object_id: Optional[str] = None
        self.grab_offset: Vector = Vector(0.0, 0.0, 0.0)
        self.plane: Optional[Plane] = None
        self._last_center: Optional[Point] = None

    @property
    def active(self) -> bool:
        return self.grabbed_object_id is not None

    def begin_drag(self, object_id: str, ray_origin: Point, ray_dir: Vector, plane: Plane) -> Point:
        """
        Grab an object where the pointer ray meets `plane`.

        Returns:
            The grab point on the plane.

        Raises:
            ObjectNotFound: Unknown object id.
            InvalidTransition: A drag is already active or the object is locked.
            NoIntersection: The ray misses the plane.
        """
        if self.active:
            raise InvalidTransition("begin_drag", "dragging", f"already dragging '{self.grabbed_object_id}'")

        obj = self.store.get_object(object_id)
        if obj.locked:
            raise InvalidTransition("begin_drag", "locked", f"object '{object_id}' is locked")

        hit = ray_plane_intersection(ray_origin, ray_dir, plane)

        # Keep only the in-plane part of the offset so the dragged center lands on the plane
        offset = obj.center - hit
        offset = offset - plane.normal * offset.dot(plane.normal)

        self.grabbed_object_id = object_id
        self.grab_offset = offset
        self.plane = plane
        self._last_center = obj.center
        logger.debug(f"Drag started on {object_id} at {hit}, offset {offset}")
        return hit

    def update_drag(self, ray_origin: Point, ray_dir: Vector, plane: Optional[Plane] = None) -> Point:
        """
        Move the grabbed object to follow the pointer ray.

        Returns:
            The new object center, always on the plane.

        Raises:
            InvalidTransition: No drag is active.
            NoIntersection: The ray misses the plane; the object is not moved.
        """
        if self.active and plane is not None:
            self.plane = plane
        drag_plane = self.plane
        if not self.active or drag_plane is None:
            raise InvalidTransition("update_drag", "idle")

        hit = ray_plane_intersection(ray_origin, ray_dir, drag_plane)
        new_center = hit + self.grab_offset

        # Never let drift from repeated ray math accumulate
        distance = signed_distance_to_plane(new_center, drag_plane)
        if abs(distance) > self.snap_tolerance:
            logger.debug(f"Re-clamping dragged center, {distance * 1000:.2f} mm off plane")
            new_center = new_center - drag_plane.normal * distance

        obj = self.store.get_object(self.grabbed_object_id)
        corners = corners_from_center(new_center, obj.width, obj.height, obj.basis)
        self.store.move_object(obj.id, new_center, corners)
        self._last_center = new_center
        return new_center

    def end_drag(self) -> Optional[Point]:
        """Release the object; returns its final center (None if nothing was grabbed)."""
        final_center = self._last_center if self.active else None
        if self.active:
            logger.debug(f"Drag ended on {self.grabbed_object_id} at {final_center}")
        self.grabbed_object_id = None
        self.grab_offset = Vector(0.0, 0.0, 0.0)
        self.plane = None
        self._last_center = None
        return final_center
