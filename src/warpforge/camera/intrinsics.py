"""Pinhole camera intrinsics with projection and back-projection."""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from warpforge.constants import DEFAULT_CX, DEFAULT_CY, DEFAULT_FX, DEFAULT_FY
from warpforge.core.math_utils import Vec3


@dataclass(frozen=True)
class CameraIntrinsics:
    """Focal lengths and principal point, in pixels."""
    fx: float = DEFAULT_FX
    fy: float = DEFAULT_FY
    cx: float = DEFAULT_CX
    cy: float = DEFAULT_CY

    def __post_init__(self):
        if self.fx <= 0 or self.fy <= 0:
            raise ValueError(f"Focal lengths must be positive, got fx={self.fx} fy={self.fy}")

    def project(self, point: Vec3) -> Optional[tuple[float, float]]:
        """Camera-space point -> (u, v) pixel coordinates.

        u follows x with (fx, cx), v follows y with (fy, cy).  Returns None
        for points on or behind the image plane (z <= 0) or non-finite input.
        """
        x, y, z = (float(c) for c in point[:3])
        if not np.isfinite(z) or z <= 0.0:
            return None
        u = self.fx * x / z + self.cx
        v = self.fy * y / z + self.cy
        if not (np.isfinite(u) and np.isfinite(v)):
            return None
        return u, v

    def reproject(self, u: float, v: float, depth: float) -> Optional[Vec3]:
        """Pixel + depth -> camera-space point.  None for depth <= 0."""
        if not np.isfinite(depth) or depth <= 0.0:
            return None
        return np.array([
            depth * (u - self.cx) / self.fx,
            depth * (v - self.cy) / self.fy,
            depth,
        ], dtype=np.float64)

    def as_matrix(self) -> np.ndarray:
        """3x3 calibration matrix K."""
        return np.array([
            [self.fx, 0.0, self.cx],
            [0.0, self.fy, self.cy],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)
