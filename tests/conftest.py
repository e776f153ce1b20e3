"""Shared fixtures: camera, live frames and small warp fields."""

import numpy as np
import pytest

from warpforge.camera.depth_frame import DepthFrame
from warpforge.camera.intrinsics import CameraIntrinsics
from warpforge.graph.warp_field import WarpField


@pytest.fixture
def intrinsics() -> CameraIntrinsics:
    return CameraIntrinsics(fx=525.0, fy=525.0, cx=320.0, cy=240.0)


def make_plane_frame(intrinsics: CameraIntrinsics, depth: float = 1.0,
                     width: int = 640, height: int = 480) -> DepthFrame:
    """Live frame of a fronto-parallel plane at *depth*."""
    return DepthFrame.from_depth(np.full((height, width), depth), intrinsics)


@pytest.fixture
def plane_frame(intrinsics) -> DepthFrame:
    return make_plane_frame(intrinsics, 1.0)


@pytest.fixture
def frame_at(intrinsics):
    """Factory: plane frame at a given depth."""
    return lambda depth: make_plane_frame(intrinsics, depth)


# Four nodes around the optical axis, 5 cm apart, just in front of z=1.
SQUARE_NODES = np.array([
    [-0.05, -0.05, 0.998],
    [0.05, -0.05, 0.998],
    [-0.05, 0.05, 0.998],
    [0.05, 0.05, 0.998],
])


@pytest.fixture
def square_field() -> WarpField:
    return WarpField(SQUARE_NODES, neighbours=4, radius=0.05)


@pytest.fixture
def line_field() -> WarpField:
    """Six nodes along x, K=3."""
    xs = np.linspace(-0.1, 0.1, 6)
    return WarpField(np.column_stack([xs, np.zeros(6), np.ones(6)]), neighbours=3, radius=0.05)
