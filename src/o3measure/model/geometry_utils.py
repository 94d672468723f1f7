from __future__ import annotations

from typing import Iterable, TYPE_CHECKING

from math import degrees
import numpy as np
from scipy.spatial.transform import Rotation

from o3measure.config import EULER_ORDER, PARALLEL_EPS
from o3measure.model.errors import NoIntersection
from o3measure.model.geometry_primitives import Basis, Plane, Point, Vector

if TYPE_CHECKING:
    from numpy import typing as npt


def meters_to_cm(meters: float, precision: int = 1) -> float:
    """Convert a measurement in meters to centimeters, rounded for display."""
    return round(meters * 100.0, precision)


def centroid(points: Iterable[Point]) -> Point:
    pts = np.array([p.to_array() for p in points], dtype=np.float64)
    if pts.size == 0:
        return Point(0.0, 0.0, 0.0)
    return Point.from_array(pts.mean(axis=0))


def signed_distance_to_plane(point: Point, plane: Plane) -> float:
    """Signed distance of `point` from `plane`, positive on the side the normal points to."""
    return (point - plane.point).dot(plane.normal)


def project_onto_plane(point: Point, plane: Plane) -> Point:
    """Orthogonal projection of `point` onto `plane`."""
    return point - plane.normal * signed_distance_to_plane(point, plane)


def ray_plane_intersection(
    origin: Point,
    direction: Vector,
    plane: Plane,
    *,
    eps: float = PARALLEL_EPS
    ) -> Point:
    """
    Intersect the ray P(t) = origin + t * direction (t >= 0) with a plane.

    Args:
        origin: Start of the ray (pointer / controller position).
        direction: Ray direction; normalized internally.
        plane: Target plane.
        eps: Tolerance on |n . d| below which the ray is treated as parallel.

    Returns:
        The intersection point.

    Raises:
        NoIntersection: If the ray is parallel to the plane (within `eps`),
            has no direction, or the plane lies behind the ray origin.
    """
    d = direction.normalize()
    if d.magnitude == 0.0:
        raise NoIntersection("Ray has no direction")

    denom = plane.normal.dot(d)
    if abs(denom) < eps:
        raise NoIntersection("Ray is parallel to the plane")

    t = plane.normal.dot(plane.point - origin) / denom
    if t < 0.0:
        raise NoIntersection("Plane is behind the ray origin")

    return origin + d * t


def angle_deviation_deg(p1: Point, p2: Point, p3: Point) -> float:
    """
    Deviation (degrees) of the corner angle at p2 from a right angle.

    This is the residual of the parallelogram-closure assumption: 0 for a
    perfect rectangle, growing with tracking noise.
    """
    a = p1 - p2
    b = p3 - p2
    if a.magnitude == 0.0 or b.magnitude == 0.0:
        return 0.0
    return abs(degrees(a.angle_to(b)) - 90.0)


def basis_to_rotation(basis: Basis) -> Rotation:
    return Rotation.from_matrix(basis.to_matrix())


def basis_to_euler_degrees(basis: Basis) -> Vector:
    """
    One-way export of a basis to intrinsic XYZ Euler angles in degrees.

    The result is lossy near gimbal lock and must never be turned back into
    a basis.
    """
    x, y, z = basis_to_rotation(basis).as_euler(EULER_ORDER, degrees=True)
    return Vector(float(x), float(y), float(z))


def basis_to_quaternion(basis: Basis) -> npt.NDArray[np.float64]:
    """Scalar-last quaternion (x, y, z, w) of the basis rotation."""
    return basis_to_rotation(basis).as_quat()
