"""
Event records exchanged with the external collaborators
(hand tracking, pointer input, menus, UI status display).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Dict, Optional, Tuple

from o3measure.model.geometry_primitives import Point, Vector


class Hand(StrEnum):
    LEFT = "left"
    RIGHT = "right"


class CommandKind(StrEnum):
    START = "start"
    RESET = "reset"
    CANCEL = "cancel"
    FINALIZE = "finalize"
    SET_ANCHOR_COUNT = "set-anchor-count"
    AUTO_PLACE_ANCHORS = "auto-place-anchors"
    RESET_WALL = "reset-wall"
    ADJUST_WALL = "adjust-wall"
    DELETE_OBJECT = "delete-object"


@dataclass(frozen=True)
class PointEvent:
    position: Point
    source_hand: Hand = Hand.RIGHT
    timestamp_ms: int = 0

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PointEvent:
        return PointEvent(
            position=Point.from_dict(data["position"]),
            source_hand=Hand(data.get("hand", Hand.RIGHT)),
            timestamp_ms=int(data.get("timestampMs", 0)),
        )


@dataclass(frozen=True)
class DragEvent:
    ray_origin: Point
    ray_dir: Vector
    timestamp_ms: int = 0

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> DragEvent:
        return DragEvent(
            ray_origin=Point.from_dict(data["rayOrigin"]),
            ray_dir=Vector.from_dict(data["rayDir"]),
            timestamp_ms=int(data.get("timestampMs", 0)),
        )


@dataclass(frozen=True)
class ControlCommand:
    """
    A menu command. `value` carries the anchor count for SET_ANCHOR_COUNT and
    the direction (+1 farther, -1 closer) for ADJUST_WALL.
    """
    kind: CommandKind
    value: Optional[int] = None
    object_id: Optional[str] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ControlCommand:
        value = data.get("value")
        return ControlCommand(
            kind=CommandKind(data["command"]),
            value=None if value is None else int(value),
            object_id=data.get("objectId"),
        )


@dataclass(frozen=True)
class StatusUpdate:
    """Emitted after every transition and every rejected action, for UI display."""
    kind: str
    state: str
    point_count: int
    message: str
    dimensions_cm: Optional[Tuple[float, float]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
