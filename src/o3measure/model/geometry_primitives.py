"""
Geometric Primitives for spatial calibration.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Union, TYPE_CHECKING
import numpy as np
import math

if TYPE_CHECKING:
    import numpy.typing as npt


@dataclass(frozen=True)
class Vector:
    """
    A vector in 3D space representing direction and magnitude.
    """
    x: float
    y: float
    z: float = 0.0

    def __add__(self, other: Vector) -> Vector:
        return Vector(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector) -> Vector:
        return Vector(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> Vector:
        return Vector(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Vector:
        if scalar == 0.0: raise ZeroDivisionError
        return Vector(self.x / scalar, self.y / scalar, self.z / scalar)

    def __neg__(self) -> Vector:
        return Vector(-self.x, -self.y, -self.z)

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    def normalize(self) -> Vector:
        mag = self.magnitude
        if mag == 0.0: return Vector(0.0, 0.0, 0.0)
        return self / mag

    def dot(self, other: Vector) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector) -> Vector:
        return Vector(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x
        )

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y, self.z])

    def angle_to(self, other: Vector) -> float:
        """Returns the angle in radians between this vector and another."""
        return math.atan2(self.cross(other).magnitude, self.dot(other))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Vector:
        return Vector(float(data.get("x", 0.0)), float(data.get("y", 0.0)), float(data.get("z", 0.0)))


@dataclass(frozen=True)
class Point:
    """A simple geometric point in 3D space. Immutable once captured."""
    x: float
    y: float
    z: float = 0.0

    def __add__(self, other: Vector) -> Point:
        # Point + Vector = Point (Translation)
        if isinstance(other, Vector):
            return Point(self.x + other.x, self.y + other.y, self.z + other.z)
        raise TypeError("Can only add a Vector to a Point.")

    def __sub__(self, other: Union[Vector, Point]) -> Union[Vector, Point]:
        # Point - Point = Vector (Direction)
        if isinstance(other, Point):
            return Vector(self.x - other.x, self.y - other.y, self.z - other.z)
        # Point - Vector = Point (Inverse translation)
        if isinstance(other, Vector):
            return Point(self.x - other.x, self.y - other.y, self.z - other.z)
        raise TypeError("Can only subtract a Vector or Point to a Point.")

    def distance_to(self, other: Point) -> float:
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2)

    def to_array(self) -> npt.NDArray[np.float64]:
        return np.array([self.x, self.y, self.z])

    @staticmethod
    def from_array(arr: npt.ArrayLike) -> Point:
        x, y, z = (float(v) for v in np.asarray(arr, dtype=np.float64).reshape(3))
        return Point(x, y, z)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Point:
        return Point(float(data.get("x", 0.0)), float(data.get("y", 0.0)), float(data.get("z", 0.0)))


@dataclass(frozen=True)
class Plane:
    """
    An infinite plane through `point` with unit-length `normal`.
    Created by the plane fitter; never built from a zero normal.
    """
    point: Point
    normal: Vector

    def to_dict(self) -> Dict[str, Any]:
        return {"point": self.point.to_dict(), "normal": self.normal.to_dict()}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Plane:
        return Plane(point=Point.from_dict(data["point"]), normal=Vector.from_dict(data["normal"]))


@dataclass(frozen=True)
class Basis:
    """
    Orthonormal right-handed orientation (right, up, forward).

    The basis is the canonical orientation of every wall and object;
    Euler angles and quaternions are only ever derived from it.
    """
    right: Vector
    up: Vector
    forward: Vector

    @staticmethod
    def identity() -> Basis:
        return Basis(Vector(1.0, 0.0, 0.0), Vector(0.0, 1.0, 0.0), Vector(0.0, 0.0, 1.0))

    def to_matrix(self) -> npt.NDArray[np.float64]:
        """3x3 rotation matrix with the basis vectors as columns."""
        return np.column_stack((self.right.to_array(), self.up.to_array(), self.forward.to_array()))

    def is_orthonormal(self, tol: float = 1e-9) -> bool:
        m = self.to_matrix()
        return bool(np.allclose(m.T @ m, np.eye(3), atol=tol) and np.linalg.det(m) > 0.0)

    def local_to_world(self, origin: Point, local: Point) -> Point:
        """Map (right, up, forward) coordinates around `origin` into world space."""
        return origin + (self.right * local.x + self.up * local.y + self.forward * local.z)

    def world_to_local(self, origin: Point, world: Point) -> Point:
        d = world - origin
        return Point(d.dot(self.right), d.dot(self.up), d.dot(self.forward))

    def to_dict(self) -> Dict[str, Any]:
        return {"right": self.right.to_dict(), "up": self.up.to_dict(), "forward": self.forward.to_dict()}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Basis:
        return Basis(
            right=Vector.from_dict(data["right"]),
            up=Vector.from_dict(data["up"]),
            forward=Vector.from_dict(data["forward"]),
        )

