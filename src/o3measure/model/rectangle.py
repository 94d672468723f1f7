"""
Rectangle reconstruction from three corner samples.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Tuple

from o3measure.config import DEGENERACY_EPS
from o3measure.model.errors import DegenerateRectangle
from o3measure.model.geometry_primitives import Basis, Point, Vector
from o3measure.model.geometry_utils import angle_deviation_deg, basis_to_euler_degrees, centroid
from o3measure.model.plane_fitter import build_basis, fourth_corner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rectangle:
    """Result of `reconstruct`. Pure value, derived entirely from the three corners."""
    corners: Tuple[Point, Point, Point]
    fourth_corner: Point
    width: float
    height: float
    center: Point
    basis: Basis
    angle_deviation_deg: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def rotation_deg(self) -> Vector:
        """Derived Euler export (display only)."""
        return basis_to_euler_degrees(self.basis)


def reconstruct(p1: Point, p2: Point, p3: Point, *, eps: float = DEGENERACY_EPS) -> Rectangle:
    """
    Reconstruct a rectangle from top-left, top-right and bottom-right corners.

    The fourth corner closes the parallelogram (p4 = p1 + (p3 - p2)); no
    correction is applied when the corner at p2 is not square, the residual
    is reported in `angle_deviation_deg` instead.

    Raises:
        DegenerateRectangle: If the top or right edge has zero length.
        DegenerateInput: If the three points are collinear.
    """
    width = p1.distance_to(p2)
    height = p2.distance_to(p3)
    if width <= eps or height <= eps:
        logger.warning(f"Rejected rectangle with zero-length edge (width={width}, height={height})")
        raise DegenerateRectangle(f"Zero-length edge (width={width:.6f}, height={height:.6f})")

    p4 = fourth_corner(p1, p2, p3)
    basis = build_basis(p1, p2, p3, eps=eps)

    return Rectangle(
        corners=(p1, p2, p3),
        fourth_corner=p4,
        width=width,
        height=height,
        center=centroid((p1, p2, p3, p4)),
        basis=basis,
        angle_deviation_deg=angle_deviation_deg(p1, p2, p3),
    )


def corners_from_center(center: Point, width: float, height: float, basis: Basis) -> Tuple[Point, Point, Point, Point]:
    """
    Rebuild the four corners (top-left, top-right, bottom-right, bottom-left)
    of a rectangle of fixed size and orientation around `center`.
    """
    half_w = basis.right * (width / 2.0)
    half_h = basis.up * (height / 2.0)
    return (
        center - half_w + half_h,
        center + half_w + half_h,
        center + half_w - half_h,
        center - half_w - half_h,
    )
