"""
Placement Flows
===============
Wraps the point-collection state machine for the three user flows and
connects it to the CalibrationStore.

Why is this file needed?
------------------------
1. Boundary: The state machine and geometry raise typed errors; the flows
   catch them, log them and turn them into StatusUpdates for the UI. No
   expected error escapes a flow method.
2. Signals: Every transition and every rejected action is reported through
   the `status_changed` Qt signal.
3. Persistence: Finalized point sets become store entities (wall
   calibration, objects, anchors).

Classes:
    WallCalibrationFlow: Three wall points -> calibrated wall plane.
    ObjectDefinitionFlow: Three corners -> SpatialObject.
    AnchorPlacementFlow: 1-4 points (or auto-layout) -> anchors on an object.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from PySide6.QtCore import QObject, Signal

from o3measure.app.events import PointEvent, StatusUpdate
from o3measure.config import ANCHOR_DEBOUNCE_MS, DEBOUNCE_MS, DEFAULT_ANCHOR_COUNT
from o3measure.controller.anchor_layout import auto_layout, normalized_template, to_local, to_world
from o3measure.controller.placement import Outcome, PlacementKind, PlacementState, PlacementStateMachine
from o3measure.model.entities import Anchor, SpatialObject, new_anchor_id
from o3measure.model.errors import AnchorCountMismatch, CalibrationError, InvalidTransition
from o3measure.model.geometry_primitives import Point
from o3measure.model.geometry_utils import meters_to_cm
from o3measure.model.plane_fitter import build_basis, fit_plane
from o3measure.model.rectangle import reconstruct

if TYPE_CHECKING:
    from o3measure.app.state import CalibrationStore

logger = logging.getLogger(__name__)

READY_HINT = 'Click "Complete" to save or "Reset" to start over.'


class PlacementFlow(QObject):
    """Common plumbing: state machine ownership, error boundary, status reporting."""
    status_changed = Signal(object)

    KIND: PlacementKind = PlacementKind.OBJECT_DEFINITION

    def __init__(self, store: CalibrationStore, target_count: int, debounce_ms: int = DEBOUNCE_MS) -> None:
        super().__init__()
        self.store = store
        self.machine = PlacementStateMachine(
            self.KIND, target_count, debounce_ms=debounce_ms, listener=self._on_transition
        )
        self.last_status: Optional[StatusUpdate] = None

    @property
    def is_active(self) -> bool:
        return self.machine.is_active

    # ---- Commands ----
    def start(self) -> StatusUpdate:
        return self._guard("start", self._start)

    def _start(self) -> None:
        if not self.machine.start():
            raise InvalidTransition("start", self.machine.state, "session already in progress")

    def submit(self, event: PointEvent) -> StatusUpdate:
        def _submit() -> Optional[StatusUpdate]:
            if not self.machine.submit_point(event.position, event.timestamp_ms):
                # Debounced: not a transition, nothing is emitted
                return self._status("Ignoring point, too soon after the last one")
            return None
        return self._guard("submit", _submit)

    def reset(self) -> StatusUpdate:
        return self._guard("reset", self.machine.reset)

    def cancel(self) -> StatusUpdate:
        return self._guard("cancel", self.machine.cancel)

    def finalize(self) -> StatusUpdate:
        return self._guard("finalize", lambda: self.machine.finalize(self._commit))

    # ---- Hooks ----
    def _commit(self, points: Tuple[Point, ...]) -> object:
        """Subclass hook: turn the finalized points into stored entities."""
        raise NotImplementedError

    def _message(self, outcome: Outcome) -> str:
        """Subclass hook: user-facing text for a transition."""
        raise NotImplementedError

    def _dimensions_cm(self, outcome: Outcome) -> Optional[Tuple[float, float]]:
        return None

    # ---- Status plumbing ----
    def _on_transition(self, machine: PlacementStateMachine, outcome: Outcome) -> None:
        status = StatusUpdate(
            kind=str(self.KIND),
            state=str(machine.state),
            point_count=machine.point_count,
            message=self._message(outcome),
            dimensions_cm=self._dimensions_cm(outcome),
        )
        self._publish(status)

    def _status(self, message: str, error: Optional[str] = None) -> StatusUpdate:
        return StatusUpdate(
            kind=str(self.KIND),
            state=str(self.machine.state),
            point_count=self.machine.point_count,
            message=message,
            error=error,
        )

    def _report(self, message: str, error: Optional[str] = None) -> StatusUpdate:
        status = self._status(message, error)
        self._publish(status)
        return status

    def _publish(self, status: StatusUpdate) -> None:
        self.last_status = status
        self.status_changed.emit(status)

    def _guard(self, action: str, fn: Callable[[], object]) -> StatusUpdate:
        before = self.last_status
        try:
            result = fn()
        except InvalidTransition as e:
            logger.info(f"{self.KIND}: {e}")
            return self._report(str(e), e.code)
        except CalibrationError as e:
            logger.warning(f"{self.KIND}: {action} failed: {e}")
            return self._report(str(e), e.code)
        if isinstance(result, StatusUpdate):
            return result
        if self.last_status is before or self.last_status is None:
            return self._status(f"{action} done")
        return self.last_status


class WallCalibrationFlow(PlacementFlow):
    KIND = PlacementKind.WALL_CALIBRATION

    _PROMPTS = ("Place the first wall point", "Place the second wall point", "Place the third wall point")

    def __init__(self, store: CalibrationStore, debounce_ms: int = DEBOUNCE_MS) -> None:
        super().__init__(store, target_count=3, debounce_ms=debounce_ms)

    def _commit(self, points: Tuple[Point, ...]) -> object:
        p1, p2, p3 = points
        plane = fit_plane(p1, p2, p3)
        basis = build_basis(p1, p2, p3)
        return self.store.calibrate_wall(plane, basis)

    def _message(self, outcome: Outcome) -> str:
        count = self.machine.point_count
        if outcome == Outcome.READY:
            return f"WALL READY! {READY_HINT}"
        if outcome == Outcome.FINALIZED:
            return "Wall calibrated"
        if outcome == Outcome.CANCELLED:
            return "Wall calibration cancelled"
        if outcome == Outcome.RESET:
            return f"Wall calibration reset. {self._PROMPTS[0]}"
        return self._PROMPTS[min(count, len(self._PROMPTS) - 1)]

    def reset_wall(self) -> StatusUpdate:
        self.store.reset_wall()
        return self._report("Wall calibration reset")

    def adjust_wall(self, direction: int) -> StatusUpdate:
        if not self.store.adjust_wall(direction):
            return self._report("Show the wall before adjusting it", InvalidTransition.__name__)
        label = "farther" if direction > 0 else "closer"
        return self._report(f"Wall moved {label}")


class ObjectDefinitionFlow(PlacementFlow):
    KIND = PlacementKind.OBJECT_DEFINITION

    _PROMPTS = (
        "Place the first corner point (top left)",
        "Place the second corner point (top right)",
        "Place the third corner point (bottom right)",
    )

    def __init__(self, store: CalibrationStore, debounce_ms: int = DEBOUNCE_MS) -> None:
        super().__init__(store, target_count=3, debounce_ms=debounce_ms)
        self.last_object: Optional[SpatialObject] = None

    def _commit(self, points: Tuple[Point, ...]) -> object:
        rect = reconstruct(*points)
        if rect.angle_deviation_deg > 5.0:
            logger.info(f"Corner at top right deviates {rect.angle_deviation_deg:.1f} deg from square")
        obj = SpatialObject.from_rectangle(rect)
        self.store.add_object(obj)
        self.last_object = obj
        return obj

    def _preview_dimensions(self) -> Optional[Tuple[float, float]]:
        points = self.machine.points
        if len(points) < 3:
            return None
        return meters_to_cm(points[0].distance_to(points[1])), meters_to_cm(points[1].distance_to(points[2]))

    def _dimensions_cm(self, outcome: Outcome) -> Optional[Tuple[float, float]]:
        if outcome == Outcome.READY:
            return self._preview_dimensions()
        if outcome == Outcome.FINALIZED and self.last_object is not None:
            return meters_to_cm(self.last_object.width), meters_to_cm(self.last_object.height)
        return None

    def _message(self, outcome: Outcome) -> str:
        if outcome == Outcome.READY:
            dims = self._preview_dimensions()
            if dims is None:
                return f"OBJECT READY! {READY_HINT}"
            return f"OBJECT READY! {dims[0]:.1f}×{dims[1]:.1f} cm. {READY_HINT}"
        if outcome == Outcome.FINALIZED:
            return "Object defined successfully"
        if outcome == Outcome.CANCELLED:
            return "Object definition cancelled"
        if outcome == Outcome.RESET:
            return f"Object definition reset. {self._PROMPTS[0]}"
        return self._PROMPTS[min(self.machine.point_count, len(self._PROMPTS) - 1)]

    def delete_object(self, object_id: str) -> StatusUpdate:
        def _delete() -> StatusUpdate:
            self.store.delete_object(object_id)
            return self._report("Object deleted")
        return self._guard("delete", _delete)


class AnchorPlacementFlow(PlacementFlow):
    KIND = PlacementKind.ANCHOR_PLACEMENT

    def __init__(
        self,
        store: CalibrationStore,
        anchor_count: int = DEFAULT_ANCHOR_COUNT,
        debounce_ms: int = ANCHOR_DEBOUNCE_MS
    ) -> None:
        normalized_template(anchor_count)
        super().__init__(store, target_count=anchor_count, debounce_ms=debounce_ms)
        self.anchor_count = anchor_count
        self.object_id: Optional[str] = None
        self.last_anchors: List[Anchor] = []
        self._auto_locals: Optional[List[Point]] = None

    def start(self, object_id: Optional[str] = None) -> StatusUpdate:  # type: ignore[override]
        def _start() -> None:
            if self.machine.is_active:
                raise InvalidTransition("start", self.machine.state, "session already in progress")
            if object_id is None:
                raise InvalidTransition("start", self.machine.state, "no object selected")
            self.store.get_object(object_id)
            self.machine.set_target_count(self.anchor_count)
            self.object_id = object_id
            self.machine.start()
        return self._guard("start", _start)

    def set_anchor_count(self, count: int) -> StatusUpdate:
        try:
            normalized_template(count)
        except ValueError as e:
            logger.warning(f"{self.KIND}: {e}")
            return self._report(str(e), "InvalidAnchorCount")

        def _set() -> Optional[StatusUpdate]:
            state = self.machine.state
            placed = self.machine.point_count
            if state == PlacementState.COLLECTING and placed > count:
                raise InvalidTransition("set_anchor_count", state,
                                        f"{placed} anchors already placed, reset to place {count}")
            self.anchor_count = count
            logger.info(f"{self.KIND}: anchor count updated to {count}")
            if state == PlacementState.IDLE:
                self.machine.set_target_count(count)
                return self._report(f"Anchor count set to {count}")
            if state == PlacementState.COLLECTING:
                if placed == count:
                    # Already enough anchors: go straight to the preview
                    self.machine.replace_points(self.machine.points, target_count=count)
                    return None
                self.machine.set_target_count(count)
                return self._report(f"Pinch to place {count} anchors on the object")
            if self._auto_locals is not None:
                return self.auto_place()
            if placed != count:
                return self._report(f"Anchor count set to {count}, the {placed} placed anchors no longer "
                                    f"match. Click \"Reset\" to place them again.")
            return self._report(f"Anchor count set to {count}")
        return self._guard("set_anchor_count", _set)

    def auto_place(self) -> StatusUpdate:
        def _auto() -> None:
            if not self.machine.is_active or self.object_id is None:
                raise InvalidTransition("auto_place", self.machine.state, "no object selected")
            obj = self.store.get_object(self.object_id)
            locals_ = auto_layout(self.anchor_count, obj.width, obj.height)
            self._auto_locals = locals_
            self.machine.replace_points([to_world(p, obj) for p in locals_], target_count=self.anchor_count)
        return self._guard("auto_place", _auto)

    def _commit(self, points: Tuple[Point, ...]) -> object:
        if len(points) != self.anchor_count:
            raise AnchorCountMismatch(have=len(points), need=self.anchor_count)
        if self.object_id is None:
            raise InvalidTransition("finalize", self.machine.state, "no object selected")
        obj = self.store.get_object(self.object_id)

        if self._auto_locals is not None and len(self._auto_locals) == len(points):
            locals_ = list(self._auto_locals)
        else:
            locals_ = [to_local(p, obj) for p in points]

        anchors = [
            Anchor(id=new_anchor_id(), object_id=obj.id, local_position=local, color_index=i)
            for i, local in enumerate(locals_)
        ]
        self.store.set_anchors(obj.id, anchors)
        self.last_anchors = anchors
        return anchors

    def _on_transition(self, machine: PlacementStateMachine, outcome: Outcome) -> None:
        super()._on_transition(machine, outcome)
        if outcome in (Outcome.POINT_ADDED, Outcome.RESET):
            self._auto_locals = None
        if machine.state == PlacementState.IDLE:
            self.object_id = None
            self._auto_locals = None

    def _message(self, outcome: Outcome) -> str:
        count = self.machine.point_count
        if outcome == Outcome.STARTED:
            return f"Pinch to place {self.machine.target_count} anchors on the object"
        if outcome == Outcome.POINT_ADDED:
            remaining = self.machine.target_count - count
            return (f"Placed {count} anchor{'s' if count > 1 else ''}. "
                    f"Place {remaining} more anchor{'s' if remaining > 1 else ''}.")
        if outcome == Outcome.READY:
            return f"All {count} anchors placed. {READY_HINT}"
        if outcome == Outcome.FINALIZED:
            return "Anchors saved successfully"
        if outcome == Outcome.CANCELLED:
            return "Anchor placement cancelled"
        return "Anchors reset"
