"""Data term: point-to-plane alignment of a warped canonical point with the live frame.

For one correspondence:
  1. skip if the canonical vertex or normal holds no-data (NaN) markers
  2. DQ-blend the K candidate node transforms and warp vertex and normal
  3. project the warped vertex with the pinhole model
  4. read the measured depth at that pixel of the live frame
  5. back-project (u, v, depth) to a camera-space point
  6. r = n_warped . (p_warped - p_observed)
  7. apply the Tukey penalty with cutoff c

Any step that has nothing to work with (no-data point, z <= 0, pixel off
the frame, no depth measured there) makes the evaluation fail: the term
returns None and is skipped for that iteration.
"""

from typing import Optional, Sequence

import numpy as np

from warpforge.camera.depth_frame import DepthFrame
from warpforge.camera.intrinsics import CameraIntrinsics
from warpforge.constants import PARAMETER_BLOCK_SIZE, TUKEY_CUTOFF
from warpforge.core.math_utils import has_no_data
from warpforge.graph.warp_field import Correspondence, WarpField
from warpforge.optimisation.cost_function import CostFunction
from warpforge.optimisation.robust import tukey_penalty


class DataEnergyTerm(CostFunction):
    """One residual per correspondence; one parameter block per neighbour node."""

    kind = "data"

    def __init__(
        self,
        correspondence: Correspondence,
        frame: DepthFrame,
        intrinsics: CameraIntrinsics,
        tukey_cutoff: float = TUKEY_CUTOFF,
    ):
        super().__init__([PARAMETER_BLOCK_SIZE] * correspondence.neighbours, num_residuals=1)
        self.correspondence = correspondence
        self.frame = frame
        self.intrinsics = intrinsics
        self.tukey_cutoff = tukey_cutoff

    @property
    def node_indices(self) -> np.ndarray:
        return self.correspondence.node_indices

    @property
    def has_data(self) -> bool:
        c = self.correspondence
        return not (has_no_data(c.canonical_vertex) or has_no_data(c.canonical_normal))

    def point_to_plane(self, blocks: Sequence[np.ndarray]) -> Optional[float]:
        """Unpenalised residual, or None when evaluation fails."""
        if not self.has_data:
            return None
        c = self.correspondence

        dq = WarpField.blend(blocks, c.weights)
        point = dq.transform_point(c.canonical_vertex)
        normal = dq.transform_normal(c.canonical_normal)

        pixel = self.intrinsics.project(point)
        if pixel is None:
            return None
        u, v = pixel

        # vertex map is [row, col]: row follows v, col follows u
        row, col = int(round(v)), int(round(u))
        depth = self.frame.depth_at(row, col)
        if depth is None:
            return None

        observed = self.intrinsics.reproject(u, v, depth)
        if observed is None:
            return None
        return float(np.dot(normal, point - observed))

    def evaluate(self, blocks):
        self.check_blocks(blocks)
        r = self.point_to_plane(blocks)
        if r is None:
            return None
        return np.array([tukey_penalty(r, self.tukey_cutoff)], dtype=np.float64)
