"""
Configuration & Global Constants
================================
This module serves as the central registry for the tunable constants of the
calibration engine.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (debounce windows, tolerances,
   offsets) from being scattered throughout the geometry and state code.
2. Consistency: Flows, the drag controller and the store all read the same
   tolerances, so a change here changes the whole engine at once.

Exports:
    DEBOUNCE_MS (int): Default minimum time between accepted point submissions.
    PLANE_SNAP_TOLERANCE (float): Distance (m) above which a dragged center is re-clamped.
    ANCHOR_Z_OFFSET (float): Local z of every anchor (anti z-fighting, not depth).
"""
from typing import Tuple

# Point collection
DEBOUNCE_MS: int = 1000
ANCHOR_DEBOUNCE_MS: int = 500

# Geometry tolerances
DEGENERACY_EPS: float = 1e-9  # |cross| / |edge| below this is treated as collinear / zero length
PARALLEL_EPS: float = 1e-6  # |n . d| below this means the ray is parallel to the plane
PLANE_SNAP_TOLERANCE: float = 0.001  # 1 mm

# Anchors
ANCHOR_Z_OFFSET: float = 0.001
MIN_ANCHORS: int = 1
MAX_ANCHORS: int = 4
DEFAULT_ANCHOR_COUNT: int = 2
ANCHOR_COLORS: Tuple[str, ...] = ("#F4B400", "#DB4437", "#4285F4", "#0F9D58")

# Wall
DEFAULT_WALL_WIDTH: float = 4.0
DEFAULT_WALL_HEIGHT: float = 3.0
DEFAULT_WALL_POSITION: Tuple[float, float, float] = (0.0, 1.0, -2.0)
WALL_ADJUSTMENT_STEP: float = 0.01  # 1 cm per nudge

# Euler export order (intrinsic, matches the renderer)
EULER_ORDER: str = "XYZ"
