"""Camera model and live depth frames."""

from warpforge.camera.intrinsics import CameraIntrinsics
from warpforge.camera.depth_frame import DepthFrame

__all__ = ["CameraIntrinsics", "DepthFrame"]
