"""
Error kinds of the calibration engine.

Every failure leaves prior state untouched; callers at the flow boundary
catch these, log them and report them in a StatusUpdate.
"""
from __future__ import annotations

from typing import Optional


class CalibrationError(Exception):
    """Base class for all recoverable engine errors."""

    @property
    def code(self) -> str:
        return type(self).__name__


class DegenerateInput(CalibrationError):
    """Source points are collinear or coincident."""


class DegenerateRectangle(DegenerateInput):
    """A rectangle edge has zero length."""


class IncompleteInput(CalibrationError):
    def __init__(self, have: int, need: int) -> None:
        self.have = have
        self.need = need
        super().__init__(f"Need {need} points, only have {have}")


class InvalidTransition(CalibrationError):
    def __init__(self, action: str, state: str, detail: Optional[str] = None) -> None:
        self.action = action
        self.state = state
        msg = f"Action '{action}' is not permitted in state '{state}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class ObjectNotFound(CalibrationError):
    def __init__(self, object_id: str) -> None:
        self.object_id = object_id
        super().__init__(f"Object '{object_id}' not found")


class NoIntersection(CalibrationError):
    """The pointer ray does not hit the plane."""


class AnchorCountMismatch(CalibrationError):
    def __init__(self, have: int, need: int) -> None:
        self.have = have
        self.need = need
        super().__init__(f"Need {need} anchors, have {have}")
