"""
Plane Fitting
=============
Derives a plane and an orientation basis from three user-picked points.

Why is this file needed?
------------------------
1. Wall calibration: the wall plane is fitted from three points tapped on the wall.
2. Object orientation: every rectangle's basis is built from its three corners.

Functions:
    fit_plane: Point + unit normal through three points.
    build_basis: Orthonormal (right, up, forward) from three ordered corners.
"""
from __future__ import annotations

import logging

from o3measure.config import DEGENERACY_EPS
from o3measure.model.errors import DegenerateInput
from o3measure.model.geometry_primitives import Basis, Plane, Point, Vector

logger = logging.getLogger(__name__)


def fourth_corner(p1: Point, p2: Point, p3: Point) -> Point:
    """Close the parallelogram: p4 = p1 + (p3 - p2)."""
    return p1 + (p3 - p2)


def _check_not_collinear(p1: Point, p2: Point, p3: Point, eps: float) -> Vector:
    v1 = p2 - p1
    v2 = p3 - p1
    n = v1.cross(v2)
    # Relative test so the tolerance does not depend on the scale of the input
    scale = max(v1.magnitude * v2.magnitude, 1.0)
    if n.magnitude < eps * scale:
        logger.warning(f"Rejected degenerate point triple: {p1}, {p2}, {p3}")
        raise DegenerateInput("Points are collinear or coincident")
    return n


def fit_plane(p1: Point, p2: Point, p3: Point, *, eps: float = DEGENERACY_EPS) -> Plane:
    """
    Fit the plane through three non-collinear points.

    The plane point is `p1` and the normal is normalize((p2 - p1) x (p3 - p1)),
    so its sign follows the winding of the input.

    Raises:
        DegenerateInput: If |(p2 - p1) x (p3 - p1)| is below `eps`.
    """
    n = _check_not_collinear(p1, p2, p3, eps)
    return Plane(point=p1, normal=n.normalize())


def build_basis(p1: Point, p2: Point, p3: Point, *, eps: float = DEGENERACY_EPS) -> Basis:
    """
    Build the orientation basis of the rectangle p1 (top-left), p2 (top-right),
    p3 (bottom-right).

    right = normalize(p2 - p1), up = normalize(p1 - p4) orthogonalised against
    right, forward = right x up. The input points are not modified; when the
    corner at p2 is not square, only `up` is straightened.
    """
    _check_not_collinear(p1, p2, p3, eps)
    p4 = fourth_corner(p1, p2, p3)

    right = (p2 - p1).normalize()
    up_raw = (p1 - p4).normalize()
    up = (up_raw - right * up_raw.dot(right)).normalize()
    forward = right.cross(up).normalize()
    return Basis(right=right, up=up, forward=forward)
