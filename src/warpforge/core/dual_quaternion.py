"""Unit dual quaternions for rigid transforms and dual-quaternion blending (DQB).

A rigid transform (R, t) is stored as a real part q_r (rotation quaternion
[x, y, z, w]) and a dual part q_d = 0.5 * t * q_r, with t the pure
quaternion [tx, ty, tz, 0].  Blending several transforms as a weighted sum
of dual quaternions followed by normalisation interpolates rotations
properly, avoiding the volume collapse of linear matrix blending.
"""

from typing import Sequence

import numpy as np

from warpforge.constants import ROTATION_SLOTS, TRANSLATION_SLOTS
from warpforge.core.math_utils import (
    Mat4, Quat, Vec3,
    mat4_rigid, quat_conjugate, quat_identity, quat_multiply, quat_normalize,
    quat_rotate_vec3,
)


def _pure(t: Vec3) -> Quat:
    return np.array([t[0], t[1], t[2], 0.0], dtype=np.float64)


class DualQuaternion:
    """Rigid transform as a dual quaternion (real, dual)."""

    __slots__ = ("real", "dual")

    def __init__(self, real: Quat, dual: Quat):
        self.real = np.asarray(real, dtype=np.float64)
        self.dual = np.asarray(dual, dtype=np.float64)

    @classmethod
    def identity(cls) -> "DualQuaternion":
        return cls(quat_identity(), np.zeros(4, dtype=np.float64))

    @classmethod
    def from_rotation_translation(cls, rotation: Quat, translation: Vec3) -> "DualQuaternion":
        q_r = quat_normalize(np.asarray(rotation, dtype=np.float64))
        q_d = 0.5 * quat_multiply(_pure(translation), q_r)
        return cls(q_r, q_d)

    @classmethod
    def from_block(cls, block: np.ndarray) -> "DualQuaternion":
        """Decode an 8-slot node parameter block [rx, ry, rz, rw, tx, ty, tz, tw]."""
        return cls.from_rotation_translation(
            block[ROTATION_SLOTS], block[TRANSLATION_SLOTS][:3],
        )

    @property
    def rotation(self) -> Quat:
        return quat_normalize(self.real)

    @property
    def translation(self) -> Vec3:
        """Translation vector: 2 * q_d * conj(q_r), for a normalised DQ."""
        t = 2.0 * quat_multiply(self.dual, quat_conjugate(self.real))
        return t[:3]

    def normalized(self) -> "DualQuaternion":
        n = float(np.linalg.norm(self.real))
        if n < 1e-12:
            return DualQuaternion.identity()
        return DualQuaternion(self.real / n, self.dual / n)

    def transform_point(self, p: Vec3) -> Vec3:
        dq = self.normalized()
        return quat_rotate_vec3(dq.real, np.asarray(p, dtype=np.float64)) + dq.translation

    def transform_normal(self, n: Vec3) -> Vec3:
        return quat_rotate_vec3(self.rotation, np.asarray(n, dtype=np.float64))

    def to_matrix(self) -> Mat4:
        dq = self.normalized()
        return mat4_rigid(dq.real, dq.translation)

    def to_block(self) -> np.ndarray:
        dq = self.normalized()
        block = np.zeros(8, dtype=np.float64)
        block[ROTATION_SLOTS] = dq.real
        block[4:7] = dq.translation
        return block

    def __repr__(self) -> str:
        return f"DualQuaternion(real={self.real.tolist()}, dual={self.dual.tolist()})"


def blend(transforms: Sequence[DualQuaternion], weights: Sequence[float]) -> DualQuaternion:
    """Dual-quaternion blend: normalised weighted sum of *transforms*.

    Each real part is flipped onto the hemisphere of the first transform so
    that q and -q (the same rotation) reinforce rather than cancel.
    Weights are used as given.
    """
    if len(transforms) != len(weights):
        raise ValueError(
            f"blend needs one weight per transform, got {len(transforms)} and {len(weights)}"
        )
    if not transforms:
        return DualQuaternion.identity()

    pivot = transforms[0].real
    real = np.zeros(4, dtype=np.float64)
    dual = np.zeros(4, dtype=np.float64)
    for dq, w in zip(transforms, weights):
        sign = -1.0 if np.dot(dq.real, pivot) < 0.0 else 1.0
        real += sign * w * dq.real
        dual += sign * w * dq.dual
    return DualQuaternion(real, dual).normalized()
