"""
Session Replay
==============
Runs a recorded event script through the dispatcher, without any headset or
renderer attached, and persists the resulting session.

Why is this file needed?
------------------------
It acts as the "Dependency Injection" root for headless use. It:
1. Configures logging.
2. Instantiates the CalibrationStore and the EventDispatcher.
3. Feeds every scripted event to the dispatcher and logs the status replies.
4. Saves the session (HDF5 and/or JSON).

Script format (JSON):
    {"events": [
        {"type": "mode", "mode": "wall"},
        {"type": "command", "command": "start"},
        {"type": "point", "position": {"x": 0, "y": 1, "z": -2}, "timestampMs": 0},
        {"type": "drag-begin", "objectIndex": 0, "rayOrigin": {...}, "rayDir": {...}},
        {"type": "drag-update", "rayOrigin": {...}, "rayDir": {...}},
        {"type": "drag-end"}
    ]}
Objects are referenced by "objectId" or by creation order with "objectIndex".

Usage:
    $ python -m o3measure replay script.json --save session.h5 --json session.json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

from o3measure.app.dispatcher import EventDispatcher, Mode
from o3measure.app.events import ControlCommand, DragEvent, PointEvent, StatusUpdate
from o3measure.app.state import CalibrationStore
from o3measure.logging_config import setup_logging
from o3measure.model.io import IOManager

logger = logging.getLogger(__name__)


def _resolve_object_id(data: Dict[str, Any], store: CalibrationStore) -> Optional[str]:
    if data.get("objectId"):
        return str(data["objectId"])
    if "objectIndex" in data:
        objects = store.objects
        index = int(data["objectIndex"])
        if 0 <= index < len(objects):
            return objects[index].id
        logger.warning(f"objectIndex {index} out of range ({len(objects)} objects)")
    return None


def replay_events(dispatcher: EventDispatcher, events: Sequence[Dict[str, Any]]) -> List[StatusUpdate]:
    """
    Feed scripted events to the dispatcher in order.

    Args:
        dispatcher: Target dispatcher (and through it, its store).
        events: Decoded event records.

    Returns:
        The StatusUpdate answering each event.
    """
    statuses: List[StatusUpdate] = []
    store = dispatcher.store

    for number, data in enumerate(events):
        event_type = data.get("type")
        if event_type == "mode":
            status = dispatcher.select_mode(Mode(data["mode"]))
        elif event_type == "point":
            status = dispatcher.handle_point(PointEvent.from_dict(data))
        elif event_type == "command":
            command = ControlCommand.from_dict(data)
            if command.object_id is None and "objectIndex" in data:
                command = ControlCommand(command.kind, command.value, _resolve_object_id(data, store))
            status = dispatcher.handle_command(command)
        elif event_type == "drag-begin":
            object_id = _resolve_object_id(data, store)
            if object_id is None:
                raise ValueError(f"Event {number}: drag-begin needs objectId or objectIndex")
            status = dispatcher.begin_drag(object_id, DragEvent.from_dict(data))
        elif event_type == "drag-update":
            status = dispatcher.update_drag(DragEvent.from_dict(data))
        elif event_type == "drag-end":
            status = dispatcher.end_drag()
        else:
            raise ValueError(f"Event {number}: unknown type '{event_type}'")

        level = logging.INFO if status.ok else logging.WARNING
        logger.log(level, f"[{number}] {status.kind}/{status.state} ({status.point_count}): {status.message}")
        statuses.append(status)

    return statuses


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="o3measure", description="Wall calibration and object anchoring engine.")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a recorded event script.")
    replay.add_argument("script", help="Path to the event script (JSON).")
    replay.add_argument("--save", metavar="OUT.h5", help="Save the resulting session as HDF5.")
    replay.add_argument("--json", metavar="OUT.json", dest="json_out", help="Export the resulting session as JSON.")
    replay.add_argument("--debug", action="store_true", help="Verbose logging.")
    replay.add_argument("--log-file", metavar="PATH", help="Also write the log to a file.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # 1. Setup Logging (Console + Optional File)
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO, log_file=args.log_file)

    # 2. Load the script
    with open(args.script, "r", encoding="utf-8") as fh:
        script = json.load(fh)
    events = script["events"] if isinstance(script, dict) else script

    # 3. Initialize the Data Model and the dispatcher
    store = CalibrationStore()
    dispatcher = EventDispatcher(store)

    # 4. Replay
    statuses = replay_events(dispatcher, events)
    failed = sum(1 for s in statuses if not s.ok)
    logger.info(f"Replayed {len(statuses)} events, {failed} refused; {len(store.objects)} objects defined")

    # 5. Persist
    if args.save:
        IOManager.save_session(store, args.save)
    if args.json_out:
        IOManager.export_json(store, args.json_out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
