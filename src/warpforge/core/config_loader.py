"""JSON config file loading utilities."""

import json
import logging
from pathlib import Path
from typing import Any

from warpforge.camera.intrinsics import CameraIntrinsics
from warpforge.constants import CONFIG_DIR
from warpforge.core.state import OptimisationConfig

logger = logging.getLogger(__name__)


def load_json(path: Path) -> Any:
    """Load and return parsed JSON from a file."""
    with open(path) as f:
        return json.load(f)


def load_config(name: str, config_dir: Path = CONFIG_DIR) -> Any:
    """Load a config file from assets/config/."""
    return load_json(config_dir / name)


def load_optimisation_config(
    name: str = "optimisation.json", config_dir: Path = CONFIG_DIR,
) -> OptimisationConfig:
    """Load solver/energy settings.  Falls back to defaults on failure."""
    try:
        data = load_config(name, config_dir)
        return OptimisationConfig.from_dict(data.get("optimisation", data))
    except (FileNotFoundError, ValueError, TypeError) as e:
        logger.warning("Optimisation config %s unusable, using defaults: %s", name, e)
        return OptimisationConfig()


def load_intrinsics(name: str = "camera.json", config_dir: Path = CONFIG_DIR) -> CameraIntrinsics:
    """Load camera intrinsics ({fx, fy, cx, cy}).  Missing keys are an error."""
    data = load_config(name, config_dir)
    intr = data.get("intrinsics", data)
    try:
        return CameraIntrinsics(
            fx=float(intr["fx"]), fy=float(intr["fy"]),
            cx=float(intr["cx"]), cy=float(intr["cy"]),
        )
    except KeyError as e:
        raise ValueError(f"Camera config {name} missing intrinsic {e}") from e
