"""Live-frame vertex map: per-pixel camera-space points from a depth image."""

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from warpforge.camera.intrinsics import CameraIntrinsics
from warpforge.core.math_utils import Vec3


class DepthFrame:
    """Read-only (height, width, 3) vertex map, row-major, indexed [row, col].

    Pixels without a measurement hold NaN.  The frame is shared by every data
    term of a pass and never written during evaluation.
    """

    def __init__(self, vertices: NDArray[np.float64]):
        v = np.array(vertices, dtype=np.float64)
        if v.ndim != 3 or v.shape[2] != 3:
            raise ValueError(f"vertex map must be (H, W, 3), got {v.shape}")
        v.setflags(write=False)
        self._vertices = v

    @classmethod
    def from_depth(cls, depth: NDArray, intrinsics: CameraIntrinsics) -> "DepthFrame":
        """Back-project a (height, width) depth image; depth <= 0 becomes no-data."""
        d = np.asarray(depth, dtype=np.float64)
        if d.ndim != 2:
            raise ValueError(f"depth image must be (H, W), got {d.shape}")
        h, w = d.shape
        cols, rows = np.meshgrid(np.arange(w, dtype=np.float64), np.arange(h, dtype=np.float64))
        valid = np.isfinite(d) & (d > 0)
        z = np.where(valid, d, np.nan)
        x = z * (cols - intrinsics.cx) / intrinsics.fx
        y = z * (rows - intrinsics.cy) / intrinsics.fy
        return cls(np.stack([x, y, z], axis=-1))

    @property
    def width(self) -> int:
        return self._vertices.shape[1]

    @property
    def height(self) -> int:
        return self._vertices.shape[0]

    @property
    def vertices(self) -> NDArray[np.float64]:
        return self._vertices

    def contains(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def vertex_at(self, row: int, col: int) -> Optional[Vec3]:
        """Live vertex at pixel (row, col), or None outside the frame."""
        if not self.contains(row, col):
            return None
        return self._vertices[row, col]

    def depth_at(self, row: int, col: int) -> Optional[float]:
        """Measured depth at (row, col); None outside the frame or without data."""
        vertex = self.vertex_at(row, col)
        if vertex is None:
            return None
        z = float(vertex[2])
        if not np.isfinite(z) or z <= 0.0:
            return None
        return z
