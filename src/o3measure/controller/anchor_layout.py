"""
Anchor layout: world <-> object-local conversion and the default anchor
templates for 1 to 4 anchors.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

from o3measure.config import ANCHOR_Z_OFFSET, MAX_ANCHORS, MIN_ANCHORS
from o3measure.model.entities import SpatialObject
from o3measure.model.geometry_primitives import Plane, Point
from o3measure.model.geometry_utils import project_onto_plane

# Normalized (0-1) positions; (0.5, 0.5) is the object center
ANCHOR_TEMPLATES: Dict[int, Tuple[Tuple[float, float], ...]] = {
    1: ((0.5, 0.5),),
    2: ((0.5, 0.25), (0.5, 0.75)),
    3: ((0.5, 0.2), (0.2, 0.8), (0.8, 0.8)),
    4: ((0.2, 0.2), (0.8, 0.2), (0.8, 0.8), (0.2, 0.8)),
}


def object_plane(obj: SpatialObject) -> Plane:
    return Plane(point=obj.center, normal=obj.basis.forward)


def to_local(world_point: Point, obj: SpatialObject) -> Point:
    """
    Express a world position in the object's own plane coordinates.

    The point is projected onto the object plane and measured along
    (right, up) from the object center; z is the fixed anchor offset.
    """
    on_plane = project_onto_plane(world_point, object_plane(obj))
    local = obj.basis.world_to_local(obj.center, on_plane)
    return Point(local.x, local.y, ANCHOR_Z_OFFSET)


def to_world(local_point: Point, obj: SpatialObject) -> Point:
    """Inverse of `to_local`, including the z offset along the object's forward axis."""
    return obj.basis.local_to_world(obj.center, local_point)


def normalized_template(count: int) -> Tuple[Tuple[float, float], ...]:
    if not MIN_ANCHORS <= count <= MAX_ANCHORS:
        raise ValueError(f"Anchor count must be between {MIN_ANCHORS} and {MAX_ANCHORS}, got {count}")
    return ANCHOR_TEMPLATES[count]


def auto_layout(count: int, width: float, height: float) -> List[Point]:
    """
    Deterministic default anchor positions in object-local space.

    Args:
        count: Number of anchors (1-4).
        width: Object width (m).
        height: Object height (m).

    Returns:
        `count` points ((nx - 0.5) * width, (ny - 0.5) * height, ANCHOR_Z_OFFSET).

    Raises:
        ValueError: If `count` is outside 1-4.
    """
    return [
        Point((nx - 0.5) * width, (ny - 0.5) * height, ANCHOR_Z_OFFSET)
        for nx, ny in normalized_template(count)
    ]
