"""
Input/Output Manager (HDF5)
Handles saving and loading the calibration session (wall + objects) to .h5
files, and the plain JSON export used by external tools.
"""
from __future__ import annotations

import json
import logging
from importlib.metadata import version, PackageNotFoundError
from typing import Any, Dict, List, Tuple, TYPE_CHECKING

import h5py
import numpy as np

from o3measure.model.entities import SpatialObject, WallCalibration

if TYPE_CHECKING:
    from o3measure.app.state import CalibrationStore

# Get module logger
logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("o3measure")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"

# HDF5 attributes are limited to 64 KB; larger JSON goes into a dataset
_ATTR_LIMIT = 60000


def _write_json(group: h5py.Group, name: str, payload: Any) -> None:
    text = json.dumps(payload)
    if len(text) > _ATTR_LIMIT:
        logger.info(f"'{name}' is large ({len(text)} bytes), using dataset")
        group.create_dataset(name, data=np.void(text.encode('utf-8')))
    else:
        group.attrs[name] = text


def _read_json(group: h5py.Group, name: str) -> Any:
    if name in group:
        text = bytes(group[name][()]).decode('utf-8')
    elif name in group.attrs:
        text = group.attrs[name]
        if isinstance(text, bytes):
            text = text.decode('utf-8')
    else:
        return None
    return json.loads(text)


class IOManager:
    @staticmethod
    def session_to_dict(store: CalibrationStore) -> Dict[str, Any]:
        return {
            "version": APP_VERSION,
            "calibration": {"wall": store.wall.to_dict()},
            "objects": [obj.to_dict() for obj in store.objects],
        }

    @staticmethod
    def session_from_dict(data: Dict[str, Any]) -> Tuple[WallCalibration, List[SpatialObject]]:
        wall_data = data.get("calibration", {}).get("wall")
        wall = WallCalibration.from_dict(wall_data) if wall_data else WallCalibration()
        objects = [SpatialObject.from_dict(item) for item in data.get("objects", [])]
        return wall, objects

    @staticmethod
    def save_session(store: CalibrationStore, filepath: str) -> None:
        logger.info(f"Saving session to: {filepath}")
        try:
            with h5py.File(filepath, "w") as f:
                f.attrs["version"] = APP_VERSION

                # --- 1. WALL ---
                grp_cal = f.create_group("calibration")
                _write_json(grp_cal, "wall", store.wall.to_dict())

                # --- 2. OBJECTS ---
                # One JSON record per object keeps the file readable without this package
                grp_obj = f.create_group("objects")
                for index, obj in enumerate(store.objects):
                    grp_item = grp_obj.create_group(f"{index:04d}")
                    grp_item.attrs["id"] = obj.id
                    _write_json(grp_item, "record", obj.to_dict())
                    grp_item.create_dataset(
                        "corners", data=np.array([c.to_array() for c in obj.corners], dtype=np.float64)
                    )

            logger.info(f"Session saved to: {filepath} ({len(store.objects)} objects)")

        except Exception as e:
            logger.exception(f"Failed to save session: {e}")
            raise e

    @staticmethod
    def load_session(store: CalibrationStore, filepath: str) -> None:
        logger.info(f"Loading session from: {filepath}")
        if not h5py.is_hdf5(filepath):
            msg = f"File '{filepath}' is not a valid HDF5 file."
            logger.error(msg)
            raise ValueError(msg)

        try:
            with h5py.File(filepath, "r") as f:
                file_version = f.attrs.get("version", "unknown")
                if file_version != APP_VERSION:
                    logger.warning(f"Session was written by version {file_version}, running {APP_VERSION}")

                wall = WallCalibration()
                if "calibration" in f:
                    wall_data = _read_json(f["calibration"], "wall")
                    if wall_data:
                        wall = WallCalibration.from_dict(wall_data)

                objects: List[SpatialObject] = []
                if "objects" in f:
                    grp_obj = f["objects"]
                    for key in sorted(grp_obj.keys()):
                        record = _read_json(grp_obj[key], "record")
                        if record is None:
                            logger.warning(f"Object group '{key}' has no record, skipped")
                            continue
                        objects.append(SpatialObject.from_dict(record))

            store.load(wall, objects)
            logger.info(f"Session loaded: {len(objects)} objects")

        except Exception as e:
            logger.exception(f"Failed to load session: {e}")
            raise e

    @staticmethod
    def export_json(store: CalibrationStore, filepath: str) -> None:
        logger.info(f"Exporting session JSON to: {filepath}")
        with open(filepath, "w", encoding="utf-8") as fh:
            json.dump(IOManager.session_to_dict(store), fh, indent=2)

    @staticmethod
    def import_json(store: CalibrationStore, filepath: str) -> None:
        logger.info(f"Importing session JSON from: {filepath}")
        with open(filepath, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        wall, objects = IOManager.session_from_dict(data)
        store.load(wall, objects)
