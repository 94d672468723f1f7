"""
Point Collection State Machine
==============================
A generic sequencer that turns a stream of raw 3D points into a complete,
validated point set.

Why is this file needed?
------------------------
1. Safety: Every transition goes through one function, so no state can ever
   hold more than `target_count` points, whatever the caller does.
2. Reuse: Wall calibration, object definition and anchor placement all run
   the same machine, parameterized by a PlacementKind.
3. Noise: Gesture input double-triggers; submissions inside the debounce
   window are dropped, not queued.

Classes:
    PlacementKind: Which flow owns the machine.
    PlacementState: IDLE -> COLLECTING -> PREVIEW -> IDLE.
    PlacementStateMachine: The sequencer itself.
"""
from __future__ import annotations

from enum import StrEnum
import logging
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from o3measure.config import DEBOUNCE_MS
from o3measure.model.errors import IncompleteInput, InvalidTransition
from o3measure.model.geometry_primitives import Point

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlacementKind(StrEnum):
    OBJECT_DEFINITION = "object-definition"
    ANCHOR_PLACEMENT = "anchor-placement"
    WALL_CALIBRATION = "wall-calibration"


class PlacementState(StrEnum):
    IDLE = "idle"
    COLLECTING = "collecting"
    PREVIEW = "preview"


class Outcome(StrEnum):
    """What the last transition did; FINALIZED and CANCELLED rest in IDLE."""
    STARTED = "started"
    POINT_ADDED = "point-added"
    READY = "ready"
    RESET = "reset"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


# Object-like flows re-enter point collection on reset, anchors go back to idle
_RESET_TO_IDLE = {PlacementKind.ANCHOR_PLACEMENT}

TransitionListener = Callable[["PlacementStateMachine", Outcome], None]


class PlacementStateMachine:
    def __init__(
        self,
        kind: PlacementKind,
        target_count: int,
        *,
        debounce_ms: int = DEBOUNCE_MS,
        listener: Optional[TransitionListener] = None
    ) -> None:
        if target_count < 1:
            raise ValueError(f"target_count must be positive, got {target_count}")
        self.kind = kind
        self._target_count = target_count
        self.debounce_ms = debounce_ms
        self.listener = listener

        self._state = PlacementState.IDLE
        self._points: List[Point] = []
        self._last_accepted_ms: Optional[int] = None
        self.last_outcome: Optional[Outcome] = None

    # ---- Read-only view ----
    @property
    def state(self) -> PlacementState:
        return self._state

    @property
    def target_count(self) -> int:
        return self._target_count

    @property
    def points(self) -> Tuple[Point, ...]:
        return tuple(self._points)

    @property
    def point_count(self) -> int:
        return len(self._points)

    @property
    def is_active(self) -> bool:
        return self._state != PlacementState.IDLE

    def __repr__(self) -> str:
        return (f"PlacementStateMachine(kind={self.kind}, state={self._state}, "
                f"points={len(self._points)}/{self._target_count})")

    # ---- Transitions ----
    def start(self) -> bool:
        """IDLE -> COLLECTING(0). Returns False (no-op) if a session is already running."""
        if self._state != PlacementState.IDLE:
            logger.info(f"{self.kind}: start ignored, already {self._state}")
            return False
        self._transition(PlacementState.COLLECTING, [], Outcome.STARTED)
        return True

    def submit_point(self, point: Point, timestamp_ms: int) -> bool:
        """
        Append a point while collecting.

        Returns:
            True if accepted, False if dropped by the debounce window.

        Raises:
            InvalidTransition: If the machine is not collecting.
        """
        if self._state != PlacementState.COLLECTING:
            raise InvalidTransition("submit_point", self._state)

        if self._last_accepted_ms is not None and timestamp_ms - self._last_accepted_ms < self.debounce_ms:
            logger.debug(f"{self.kind}: point dropped, {timestamp_ms - self._last_accepted_ms} ms after last")
            return False
        self._last_accepted_ms = timestamp_ms

        points = self._points + [point]
        if len(points) == self._target_count:
            self._transition(PlacementState.PREVIEW, points, Outcome.READY)
        else:
            self._transition(PlacementState.COLLECTING, points, Outcome.POINT_ADDED)
        return True

    def replace_points(self, points: Sequence[Point], *, target_count: Optional[int] = None) -> None:
        """
        Load a complete point set at once (auto-layout) and go to PREVIEW.
        `target_count` switches the target in the same transition.
        """
        if self._state not in (PlacementState.COLLECTING, PlacementState.PREVIEW):
            raise InvalidTransition("replace_points", self._state)
        need = self._target_count if target_count is None else target_count
        if len(points) != need:
            raise IncompleteInput(have=len(points), need=need)
        self._target_count = need
        self._transition(PlacementState.PREVIEW, list(points), Outcome.READY)

    def reset(self) -> None:
        """Discard collected points; object-like flows keep collecting, anchors return to IDLE."""
        if self._state == PlacementState.IDLE:
            raise InvalidTransition("reset", self._state)
        target = PlacementState.IDLE if self.kind in _RESET_TO_IDLE else PlacementState.COLLECTING
        self._transition(target, [], Outcome.RESET)

    def cancel(self) -> None:
        if self._state == PlacementState.IDLE:
            raise InvalidTransition("cancel", self._state)
        self._transition(PlacementState.IDLE, [], Outcome.CANCELLED)

    def finalize(self, handler: Callable[[Tuple[Point, ...]], T]) -> T:
        """
        Hand the collected points to `handler` and return to IDLE.

        If `handler` raises, the machine stays in PREVIEW with its points.

        Raises:
            IncompleteInput: If called outside PREVIEW.
        """
        if self._state != PlacementState.PREVIEW:
            raise IncompleteInput(have=len(self._points), need=self._target_count)
        result = handler(tuple(self._points))
        self._transition(PlacementState.IDLE, [], Outcome.FINALIZED)
        return result

    def set_target_count(self, count: int) -> None:
        if count < 1:
            raise ValueError(f"target_count must be positive, got {count}")
        collecting_below = self._state == PlacementState.COLLECTING and len(self._points) < count
        if self._state != PlacementState.IDLE and not collecting_below:
            raise InvalidTransition("set_target_count", self._state,
                                    f"{len(self._points)} points already collected")
        self._target_count = count
        logger.debug(f"{self.kind}: target count set to {count}")

    def _transition(self, state: PlacementState, points: List[Point], outcome: Outcome) -> None:
        if len(points) > self._target_count:
            raise InvalidTransition(outcome, self._state,
                                    f"{len(points)} points exceed target {self._target_count}")
        previous = self._state
        self._state = state
        self._points = points
        self.last_outcome = outcome
        logger.debug(f"{self.kind}: {previous} -> {state} ({outcome}, {len(points)}/{self._target_count})")
        if self.listener is not None:
            self.listener(self, outcome)
