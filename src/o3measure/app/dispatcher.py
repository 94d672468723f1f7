"""
Event Dispatcher
================
Routes input events and menu commands to the placement flows and the drag
controller.

Why is this file needed?
------------------------
1. Routing: Point events go to the flow of the selected mode; commands go
   to whichever flow owns them.
2. Exclusion: A placement session and a drag can never run at the same
   time. Drags are refused while any session is active; points are refused
   while a drag is active.
3. Boundary: Like the flows, the dispatcher never lets a calibration error
   escape; it answers every event with a StatusUpdate.
"""
from __future__ import annotations

from enum import StrEnum
import logging
from typing import Dict, Optional

from PySide6.QtCore import QObject, Signal

from o3measure.app.events import CommandKind, ControlCommand, DragEvent, PointEvent, StatusUpdate
from o3measure.app.state import CalibrationStore
from o3measure.config import ANCHOR_DEBOUNCE_MS, DEBOUNCE_MS
from o3measure.controller.anchor_layout import object_plane
from o3measure.controller.drag import DragProjectionController
from o3measure.controller.flows import (
    AnchorPlacementFlow,
    ObjectDefinitionFlow,
    PlacementFlow,
    WallCalibrationFlow,
)
from o3measure.model.errors import CalibrationError, InvalidTransition
from o3measure.model.geometry_primitives import Plane

logger = logging.getLogger(__name__)

DRAG_KIND = "drag"


class Mode(StrEnum):
    WALL = "wall"
    OBJECT = "object"
    ANCHOR = "anchor"


class EventDispatcher(QObject):
    status_changed = Signal(object)

    def __init__(
        self,
        store: CalibrationStore,
        debounce_ms: int = DEBOUNCE_MS,
        anchor_debounce_ms: int = ANCHOR_DEBOUNCE_MS
    ) -> None:
        super().__init__()
        self.store = store
        self.wall_flow = WallCalibrationFlow(store, debounce_ms=debounce_ms)
        self.object_flow = ObjectDefinitionFlow(store, debounce_ms=debounce_ms)
        self.anchor_flow = AnchorPlacementFlow(store, debounce_ms=anchor_debounce_ms)
        self.drag = DragProjectionController(store)
        self.mode = Mode.OBJECT

        self._flows: Dict[Mode, PlacementFlow] = {
            Mode.WALL: self.wall_flow,
            Mode.OBJECT: self.object_flow,
            Mode.ANCHOR: self.anchor_flow,
        }
        for flow in self._flows.values():
            flow.status_changed.connect(self.status_changed.emit)

    # ---- Queries ----
    @property
    def current_flow(self) -> PlacementFlow:
        return self._flows[self.mode]

    @property
    def active_flow(self) -> Optional[PlacementFlow]:
        for flow in self._flows.values():
            if flow.is_active:
                return flow
        return None

    # ---- Mode ----
    def select_mode(self, mode: Mode) -> StatusUpdate:
        mode = Mode(mode)
        active = self.active_flow
        if active is not None and active is not self._flows[mode]:
            return self._refuse(f"Finish or cancel the {active.KIND} session first", flow=active)
        if self.drag.active:
            return self._refuse("Release the dragged object first")
        self.mode = mode
        logger.debug(f"Mode selected: {mode}")
        return StatusUpdate(
            kind=str(self.current_flow.KIND),
            state=str(self.current_flow.machine.state),
            point_count=self.current_flow.machine.point_count,
            message=f"{mode.capitalize()} mode",
        )

    # ---- Points ----
    def handle_point(self, event: PointEvent) -> StatusUpdate:
        if self.drag.active:
            return self._refuse("Point ignored while dragging", flow=self.current_flow)
        return self.current_flow.submit(event)

    # ---- Commands ----
    def handle_command(self, command: ControlCommand) -> StatusUpdate:
        kind = command.kind
        logger.debug(f"Command: {kind} (value={command.value}, object={command.object_id})")

        if kind == CommandKind.START:
            return self._start(command)
        if kind == CommandKind.RESET:
            return self.current_flow.reset()
        if kind == CommandKind.CANCEL:
            return self.current_flow.cancel()
        if kind == CommandKind.FINALIZE:
            return self.current_flow.finalize()
        if kind == CommandKind.SET_ANCHOR_COUNT:
            if command.value is None:
                return self._refuse("Anchor count missing", flow=self.anchor_flow)
            return self.anchor_flow.set_anchor_count(command.value)
        if kind == CommandKind.AUTO_PLACE_ANCHORS:
            return self.anchor_flow.auto_place()
        if kind == CommandKind.RESET_WALL:
            if self.wall_flow.is_active:
                return self._refuse("Wall calibration in progress", flow=self.wall_flow)
            return self.wall_flow.reset_wall()
        if kind == CommandKind.ADJUST_WALL:
            return self.wall_flow.adjust_wall(1 if command.value is None else command.value)
        if kind == CommandKind.DELETE_OBJECT:
            return self._delete(command.object_id)
        raise ValueError(f"Unhandled command: {kind}")

    def _start(self, command: ControlCommand) -> StatusUpdate:
        if self.drag.active:
            return self._refuse("Release the dragged object first", flow=self.current_flow)
        active = self.active_flow
        if active is not None and active is not self.current_flow:
            return self._refuse(f"Finish or cancel the {active.KIND} session first", flow=active)
        if self.mode == Mode.ANCHOR:
            return self.anchor_flow.start(command.object_id)
        return self.current_flow.start()

    def _delete(self, object_id: Optional[str]) -> StatusUpdate:
        if object_id is None:
            return self._refuse("No object selected", flow=self.object_flow)
        if self.drag.grabbed_object_id == object_id:
            return self._refuse("Release the object before deleting it", flow=self.object_flow)
        if self.anchor_flow.object_id == object_id:
            return self._refuse("Anchor placement in progress on this object", flow=self.object_flow)
        return self.object_flow.delete_object(object_id)

    # ---- Drag ----
    def begin_drag(self, object_id: str, event: DragEvent, plane: Optional[Plane] = None) -> StatusUpdate:
        active = self.active_flow
        if active is not None:
            return self._refuse(f"Dragging disabled during {active.KIND}")
        try:
            if plane is None:
                plane = self._drag_plane(object_id)
            hit = self.drag.begin_drag(object_id, event.ray_origin, event.ray_dir, plane)
        except CalibrationError as e:
            return self._drag_failed(e)
        return self._drag_status(f"Dragging {object_id} from {hit}")

    def update_drag(self, event: DragEvent) -> StatusUpdate:
        try:
            center = self.drag.update_drag(event.ray_origin, event.ray_dir)
        except CalibrationError as e:
            return self._drag_failed(e)
        return self._drag_status(f"Moved {self.drag.grabbed_object_id} to {center}")

    def end_drag(self) -> StatusUpdate:
        object_id = self.drag.grabbed_object_id
        center = self.drag.end_drag()
        if center is None:
            return self._drag_status("Nothing to release")
        return self._drag_status(f"Released {object_id} at {center}")

    def _drag_plane(self, object_id: str) -> Plane:
        """The calibrated wall, or the object's own plane before the wall is calibrated."""
        wall = self.store.wall
        if wall.is_calibrated:
            return wall.plane
        return object_plane(self.store.get_object(object_id))

    def _drag_status(self, message: str, error: Optional[str] = None) -> StatusUpdate:
        status = StatusUpdate(
            kind=DRAG_KIND,
            state="dragging" if self.drag.active else "idle",
            point_count=0,
            message=message,
            error=error,
        )
        self.status_changed.emit(status)
        return status

    def _drag_failed(self, error: CalibrationError) -> StatusUpdate:
        if isinstance(error, InvalidTransition):
            logger.info(f"Drag refused: {error}")
        else:
            logger.warning(f"Drag failed: {error}")
        return self._drag_status(str(error), error.code)

    def _refuse(self, message: str, flow: Optional[PlacementFlow] = None) -> StatusUpdate:
        """Report a refused event without touching any state; `flow=None` reports on the drag."""
        logger.info(f"Refused: {message}")
        if flow is None:
            return self._drag_status(message, InvalidTransition.__name__)
        status = StatusUpdate(
            kind=str(flow.KIND),
            state=str(flow.machine.state),
            point_count=flow.machine.point_count,
            message=message,
            error=InvalidTransition.__name__,
        )
        self.status_changed.emit(status)
        return status
