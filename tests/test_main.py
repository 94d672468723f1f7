from __future__ import annotations

import json
import logging

from o3measure.logging_config import setup_logging
from o3measure.main import main


def _point(x: float, y: float, z: float, t: int) -> dict:
    return {"type": "point", "position": {"x": x, "y": y, "z": z}, "timestampMs": t}


SCRIPT = {
    "events": [
        {"type": "mode", "mode": "object"},
        {"type": "command", "command": "start"},
        _point(0, 1, -2, 0),
        _point(0.5, 1, -2, 1000),
        _point(0.5, 0.8, -2, 2000),
        {"type": "command", "command": "finalize"},
        {"type": "mode", "mode": "anchor"},
        {"type": "command", "command": "start", "objectIndex": 0},
        {"type": "command", "command": "auto-place-anchors"},
        {"type": "command", "command": "finalize"},
        {"type": "drag-begin", "objectIndex": 0,
         "rayOrigin": {"x": 0.25, "y": 0.9, "z": 0}, "rayDir": {"x": 0, "y": 0, "z": -1}},
        {"type": "drag-update",
         "rayOrigin": {"x": 1.25, "y": 0.9, "z": 0}, "rayDir": {"x": 0, "y": 0, "z": -1}},
        {"type": "drag-end"},
    ]
}


def test_replay_writes_session(tmp_path):
    script = tmp_path / "script.json"
    script.write_text(json.dumps(SCRIPT), encoding="utf-8")
    out_json = tmp_path / "session.json"
    out_h5 = tmp_path / "session.h5"

    code = main(["replay", str(script), "--json", str(out_json), "--save", str(out_h5)])
    assert code == 0
    assert out_h5.exists()

    data = json.loads(out_json.read_text(encoding="utf-8"))
    (obj,) = data["objects"]
    assert len(obj["anchors"]) == 2
    assert abs(obj["center"]["x"] - 1.25) < 1e-9
    assert abs(obj["width"] - 0.5) < 1e-9


def test_setup_logging_file_records_debug(tmp_path):
    log_file = tmp_path / "replay.log"
    logger = setup_logging("warning", log_file=str(log_file))
    assert len(logger.handlers) == 2
    logging.getLogger("o3measure.controller.placement").debug("transition trace")
    for handler in logger.handlers:
        handler.flush()
    assert "transition trace" in log_file.read_text(encoding="utf-8")

    logger = setup_logging(logging.INFO)
    assert len(logger.handlers) == 1
