"""Regularisation term: penalise neighbour motion that disagrees with the local consensus.

For a neighbourhood of K nodes the candidate transforms are blended into one
consensus transform T_i (weighted sums of rotation and translation
quaternions, rotation decoded through roll/pitch/yaw).  Each neighbour j is
then moved both by the consensus and by its own transform, both mapped
through the inverse camera pose:

    T_ic = inverse_pose @ T_i          T_jc = inverse_pose @ T_j
    d_j  = || T_ic p_j - T_jc p_j ||

and the residual is sum_j w_j * huber(d_j).
"""

from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from warpforge.constants import (
    HUBER_DELTA, PARAMETER_BLOCK_SIZE, ROTATION_SLOTS, TRANSLATION_SLOTS, WEIGHT_SUM_TOLERANCE,
)
from warpforge.core.errors import ContractViolation
from warpforge.core.math_utils import (
    Mat4,
    mat4_from_euler, mat4_identity, mat4_rigid, mat4_translation, quat_normalize, quat_to_euler,
    transform_point,
)
from warpforge.optimisation.cost_function import CostFunction
from warpforge.optimisation.robust import huber_loss


class RegularisationEnergyTerm(CostFunction):
    """One residual per graph-node neighbourhood; K blocks of 8 slots."""

    kind = "regularisation"

    def __init__(
        self,
        node_positions: NDArray[np.float64],
        node_indices: Sequence[int],
        weights: Sequence[float],
        inverse_pose: Optional[Mat4] = None,
        huber_delta: float = HUBER_DELTA,
    ):
        idx = np.array(node_indices, dtype=np.int64).ravel()
        w = np.array(weights, dtype=np.float64).ravel()
        if idx.shape != w.shape:
            raise ContractViolation(
                f"need one weight per neighbour, got {idx.size} indices and {w.size} weights"
            )
        if w.sum() > 1.0 + WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"blend weights must sum to at most 1, got {w.sum():.6g}")
        n_nodes = len(node_positions)
        bad = idx[(idx < 0) | (idx >= n_nodes)]
        if bad.size:
            raise ContractViolation(
                f"neighbour handles {bad.tolist()} out of range for a graph of {n_nodes} nodes"
            )
        super().__init__([PARAMETER_BLOCK_SIZE] * idx.size, num_residuals=1)

        idx.setflags(write=False)
        w.setflags(write=False)
        self._node_indices = idx
        self.weights = w
        self.points = np.array(node_positions, dtype=np.float64)[idx]
        self.points.setflags(write=False)

        pose = mat4_identity() if inverse_pose is None else np.array(inverse_pose, dtype=np.float64)
        if pose.shape != (4, 4):
            raise ValueError(f"inverse_pose must be 4x4, got {pose.shape}")
        pose.setflags(write=False)
        self.inverse_pose = pose
        self.huber_delta = huber_delta

    @property
    def node_indices(self) -> np.ndarray:
        return self._node_indices

    def consensus_transform(self, blocks: Sequence[np.ndarray]) -> Mat4:
        """Blend the neighbour blocks into one rigid transform."""
        rotation_sum = np.zeros(4, dtype=np.float64)
        translation_sum = np.zeros(4, dtype=np.float64)
        pivot = np.asarray(blocks[0][ROTATION_SLOTS])
        for block, w in zip(blocks, self.weights):
            q = np.asarray(block[ROTATION_SLOTS], dtype=np.float64)
            # q and -q are the same rotation; keep them on one hemisphere
            sign = -1.0 if np.dot(q, pivot) < 0.0 else 1.0
            rotation_sum += sign * w * quat_normalize(q)
            translation_sum += w * np.asarray(block[TRANSLATION_SLOTS], dtype=np.float64)

        roll, pitch, yaw = quat_to_euler(quat_normalize(rotation_sum))
        return mat4_translation(*translation_sum[:3]) @ mat4_from_euler(roll, pitch, yaw)

    def distances(self, blocks: Sequence[np.ndarray]) -> np.ndarray:
        """Per-neighbour divergence between consensus and individual motion."""
        t_ic = self.inverse_pose @ self.consensus_transform(blocks)
        out = np.empty(len(blocks), dtype=np.float64)
        for j, block in enumerate(blocks):
            t_j = mat4_rigid(
                quat_normalize(np.asarray(block[ROTATION_SLOTS], dtype=np.float64)),
                np.asarray(block[TRANSLATION_SLOTS], dtype=np.float64)[:3],
            )
            t_jc = self.inverse_pose @ t_j
            p = self.points[j]
            out[j] = np.linalg.norm(transform_point(t_ic, p) - transform_point(t_jc, p))
        return out

    def evaluate(self, blocks):
        self.check_blocks(blocks)
        total = 0.0
        for w, d in zip(self.weights, self.distances(blocks)):
            total += w * huber_loss(float(d), self.huber_delta)
        return np.array([total], dtype=np.float64)
