"""Deformation graph ("warp field"): node arena, kNN queries and DQ blending.

Node transforms live in one (N, 8) float64 arena, one parameter block per
node laid out as [rx, ry, rz, rw, tx, ty, tz, tw] (rotation quaternion, then
translation as a pure quaternion with tw == 0).  Everything that reads or
writes a node transform, the solver included, goes through views into this
arena, so an in-place update is seen by every term sharing the node.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from warpforge.constants import (
    KNN_NEIGHBOURS, NODE_RADIUS, PARAMETER_BLOCK_SIZE, ROTATION_SLOTS, TRANSLATION_SLOTS,
    WEIGHT_SUM_TOLERANCE,
)
from warpforge.core.dual_quaternion import DualQuaternion, blend
from warpforge.core.errors import ContractViolation
from warpforge.core.math_utils import Quat, Vec3, quat_identity, quat_normalize

logger = logging.getLogger(__name__)


@dataclass
class DeformationNode:
    """A graph node.  All three arrays are views into the warp field arena."""
    position: NDArray[np.float64]      # (3,) canonical position, read-only view
    rotation: NDArray[np.float64]      # (4,) [x, y, z, w]
    translation: NDArray[np.float64]   # (4,) [tx, ty, tz, 0]

    @property
    def transform(self) -> DualQuaternion:
        return DualQuaternion.from_rotation_translation(self.rotation, self.translation[:3])


def _frozen_copy(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class Correspondence:
    """Canonical point <-> live observation, with its K graph neighbours.

    Arrays are copied at construction and made read-only, so a correspondence
    owns its data for the whole pass.
    """
    canonical_vertex: NDArray[np.float64]
    canonical_normal: NDArray[np.float64]
    live_vertex: NDArray[np.float64]
    live_normal: NDArray[np.float64]
    node_indices: NDArray[np.int64]
    weights: NDArray[np.float64]

    def __post_init__(self):
        for name in ("canonical_vertex", "canonical_normal", "live_vertex", "live_normal"):
            arr = _frozen_copy(getattr(self, name), np.float64)
            if arr.shape != (3,):
                raise ValueError(f"{name} must have shape (3,), got {arr.shape}")
            object.__setattr__(self, name, arr)
        idx = _frozen_copy(self.node_indices, np.int64).ravel()
        w = _frozen_copy(self.weights, np.float64).ravel()
        if idx.shape != w.shape:
            raise ValueError(
                f"need one weight per neighbour, got {idx.size} indices and {w.size} weights"
            )
        if w.sum() > 1.0 + WEIGHT_SUM_TOLERANCE:
            raise ValueError(f"blend weights must sum to at most 1, got {w.sum():.6g}")
        object.__setattr__(self, "node_indices", idx)
        object.__setattr__(self, "weights", w)

    @property
    def neighbours(self) -> int:
        return int(self.node_indices.size)


class WarpField:
    """Sparse deformation graph with an arena of per-node rigid transforms."""

    def __init__(
        self,
        positions: NDArray,
        neighbours: int = KNN_NEIGHBOURS,
        radius: float = NODE_RADIUS,
    ):
        pos = np.array(positions, dtype=np.float64).reshape(-1, 3)
        if len(pos) == 0:
            raise ValueError("A warp field needs at least one node")
        if neighbours < 1:
            raise ValueError(f"neighbours must be >= 1, got {neighbours}")
        if neighbours > len(pos):
            raise ValueError(
                f"neighbours ({neighbours}) exceeds the number of graph nodes ({len(pos)})"
            )
        pos.setflags(write=False)
        self._positions = pos
        self.neighbours = int(neighbours)
        self.radius = float(radius)

        self._parameters = np.zeros((len(pos), PARAMETER_BLOCK_SIZE), dtype=np.float64)
        self._parameters[:, ROTATION_SLOTS] = quat_identity()
        self._tree = cKDTree(pos)
        logger.debug("Warp field: %d nodes, K=%d, radius=%.4f", len(pos), neighbours, radius)

    # ── Arena access ──

    def __len__(self) -> int:
        return len(self._positions)

    @property
    def positions(self) -> NDArray[np.float64]:
        return self._positions

    @property
    def parameters(self) -> NDArray[np.float64]:
        """The (N, 8) parameter arena itself (not a copy)."""
        return self._parameters

    def check_handle(self, handle: int) -> int:
        h = int(handle)
        if not 0 <= h < len(self._positions):
            raise ContractViolation(
                f"node handle {handle} out of range for a graph of {len(self._positions)} nodes"
            )
        return h

    def node(self, handle: int) -> DeformationNode:
        h = self.check_handle(handle)
        block = self._parameters[h]
        return DeformationNode(
            position=self._positions[h],
            rotation=block[ROTATION_SLOTS],
            translation=block[TRANSLATION_SLOTS],
        )

    def set_node_transform(self, handle: int, rotation: Quat, translation: Vec3) -> None:
        """Write a node's transform into the arena in place."""
        block = self._parameters[self.check_handle(handle)]
        block[ROTATION_SLOTS] = quat_normalize(np.asarray(rotation, dtype=np.float64))
        block[4:7] = np.asarray(translation, dtype=np.float64)[:3]
        block[7] = 0.0

    def normalise_rotations(self) -> None:
        """Project rotations back onto unit quaternions and zero tw, in place."""
        rot = self._parameters[:, ROTATION_SLOTS]
        norms = np.linalg.norm(rot, axis=1)
        degenerate = norms < 1e-10
        if degenerate.any():
            logger.warning("Resetting %d degenerate node rotations to identity", int(degenerate.sum()))
            rot[degenerate] = quat_identity()
            norms[degenerate] = 1.0
        rot /= norms[:, None]
        self._parameters[:, 7] = 0.0

    # ── Neighbourhood queries ──

    def _gaussian(self, dist: np.ndarray) -> np.ndarray:
        """Blend weights exp(-d^2 / 2r^2), normalised to sum to 1.

        If every neighbour is so far away that all weights underflow, the
        neighbours share the weight equally.
        """
        w = np.exp(-(dist ** 2) / (2.0 * self.radius ** 2))
        total = w.sum()
        if total <= 0.0:
            return np.full(w.shape, 1.0 / w.size)
        return w / total

    def knn(self, point: Vec3) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
        """K nearest node handles and their Gaussian blend weights (summing to 1)."""
        dist, idx = self._tree.query(np.asarray(point, dtype=np.float64), k=self.neighbours)
        dist = np.atleast_1d(dist)
        idx = np.atleast_1d(idx).astype(np.int64)
        return idx, self._gaussian(dist)

    def node_neighbourhood(self, handle: int) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
        """The K nearest *other* nodes of a node, with Gaussian weights.

        Graphs with K or fewer nodes have fewer than K other nodes; the node
        itself then fills the remaining slots at distance 0 and takes part in
        the weighted consensus like any other neighbour.
        """
        h = self.check_handle(handle)
        k = min(self.neighbours + 1, len(self))
        dist, idx = self._tree.query(self._positions[h], k=k)
        dist = np.atleast_1d(dist)
        idx = np.atleast_1d(idx).astype(np.int64)
        keep = idx != h
        idx, dist = idx[keep][:self.neighbours], dist[keep][:self.neighbours]
        if idx.size < self.neighbours:
            pad = self.neighbours - idx.size
            idx = np.concatenate([idx, np.full(pad, h, dtype=np.int64)])
            dist = np.concatenate([dist, np.zeros(pad)])
        return idx, self._gaussian(dist)

    def correspondence(
        self,
        canonical_vertex: Vec3,
        canonical_normal: Vec3,
        live_vertex: Vec3,
        live_normal: Vec3,
    ) -> Correspondence:
        """Pair a canonical point with a live observation using the graph's kNN."""
        query = np.nan_to_num(np.asarray(canonical_vertex, dtype=np.float64))
        idx, w = self.knn(query)
        return Correspondence(
            canonical_vertex=canonical_vertex,
            canonical_normal=canonical_normal,
            live_vertex=live_vertex,
            live_normal=live_normal,
            node_indices=idx,
            weights=w,
        )

    # ── Blending ──

    @staticmethod
    def blend(blocks: Sequence[np.ndarray], weights: Sequence[float]) -> DualQuaternion:
        """Blend candidate node blocks into one dual-quaternion transform."""
        return blend([DualQuaternion.from_block(b) for b in blocks], weights)

    def blend_nodes(self, handles: Sequence[int], weights: Sequence[float]) -> DualQuaternion:
        """Blend the arena's current transforms for *handles*."""
        return self.blend([self._parameters[self.check_handle(h)] for h in handles], weights)

    def warp_points(
        self,
        points: NDArray,
        normals: Optional[NDArray] = None,
    ) -> NDArray[np.float64] | tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Warp canonical points (and normals) through the current arena."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        out = np.empty_like(pts)
        nrm_in = None if normals is None else np.asarray(normals, dtype=np.float64).reshape(-1, 3)
        nrm_out = None if nrm_in is None else np.empty_like(nrm_in)
        for i, p in enumerate(pts):
            idx, w = self.knn(p)
            dq = self.blend_nodes(idx, w)
            out[i] = dq.transform_point(p)
            if nrm_out is not None:
                nrm_out[i] = dq.transform_normal(nrm_in[i])
        if nrm_out is None:
            return out
        return out, nrm_out
