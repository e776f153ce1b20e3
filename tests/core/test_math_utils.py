"""Tests for math_utils module."""

import math

import numpy as np
import pytest

from warpforge.core.math_utils import (
    vec3, mat4_identity, mat4_translation, mat4_rotation_x, mat4_rotation_y,
    mat4_rotation_z, mat4_from_quaternion, mat4_from_euler, mat4_rigid,
    quat_identity, quat_from_axis_angle,
    quat_multiply, quat_conjugate, quat_normalize, quat_rotate_vec3, quat_to_euler,
    normalize, has_no_data, transform_point,
)


def test_mat4_translation():
    p = transform_point(mat4_translation(1, 2, 3), vec3(0, 0, 0))
    np.testing.assert_array_almost_equal(p, [1, 2, 3])


def test_mat4_rotation_axes():
    np.testing.assert_array_almost_equal(
        transform_point(mat4_rotation_x(np.pi / 2), vec3(0, 1, 0)), [0, 0, 1], decimal=10)
    np.testing.assert_array_almost_equal(
        transform_point(mat4_rotation_y(np.pi / 2), vec3(0, 0, 1)), [1, 0, 0], decimal=10)
    np.testing.assert_array_almost_equal(
        transform_point(mat4_rotation_z(np.pi / 2), vec3(1, 0, 0)), [0, 1, 0], decimal=10)


def test_quat_identity_rotates_nothing():
    v = vec3(0.3, -1.2, 4.0)
    np.testing.assert_array_equal(quat_rotate_vec3(quat_identity(), v), v)


def test_quat_from_axis_angle():
    q = quat_from_axis_angle(vec3(0, 1, 0), np.pi / 2)
    v = quat_rotate_vec3(q, vec3(0, 0, 1))
    np.testing.assert_array_almost_equal(v, [1, 0, 0], decimal=10)


def test_quat_multiply_inverse():
    q = quat_from_axis_angle(vec3(1, 1, 0), 0.7)
    np.testing.assert_array_almost_equal(quat_multiply(q, quat_conjugate(q)), quat_identity())


def test_quat_normalize_degenerate():
    np.testing.assert_array_equal(quat_normalize(np.zeros(4)), quat_identity())


def test_mat4_from_quaternion_matches_rotate():
    q = quat_from_axis_angle(vec3(1, 2, 3), 0.9)
    v = vec3(1, 2, 3)
    np.testing.assert_array_almost_equal(
        quat_rotate_vec3(q, v), transform_point(mat4_from_quaternion(q), v), decimal=10)


def test_mat4_rigid_rotates_then_translates():
    q = quat_from_axis_angle(vec3(0, 0, 1), np.pi / 2)
    m = mat4_rigid(q, vec3(0, 0, 5))
    np.testing.assert_array_almost_equal(transform_point(m, vec3(1, 0, 0)), [0, 1, 5])


@pytest.mark.parametrize("axis,angle", [
    ((1, 0, 0), 0.4),
    ((0, 1, 0), -0.8),
    ((0, 0, 1), 2.5),
    ((1, 2, 3), 1.1),
])
def test_euler_roundtrip_matches_quaternion(axis, angle):
    q = quat_from_axis_angle(vec3(*axis), angle)
    roll, pitch, yaw = quat_to_euler(q)
    np.testing.assert_array_almost_equal(
        mat4_from_euler(roll, pitch, yaw), mat4_from_quaternion(q), decimal=10)


def test_quat_to_euler_gimbal_lock_clamps_pitch():
    q = quat_from_axis_angle(vec3(0, 1, 0), np.pi / 2)
    _, pitch, _ = quat_to_euler(q)
    assert pitch == pytest.approx(np.pi / 2)


def test_quat_to_euler_out_of_domain_sine_is_clamped():
    # Slightly non-unit quaternion pushes sin(pitch) past 1; asin would raise.
    q = np.array([0.0, 0.7072, 0.0, 0.7072])
    _, pitch, _ = quat_to_euler(q)
    assert pitch == math.pi / 2
    _, pitch, _ = quat_to_euler(np.array([0.0, -0.7072, 0.0, 0.7072]))
    assert pitch == -math.pi / 2


def test_normalize_zero():
    np.testing.assert_array_equal(normalize(vec3(0, 0, 0)), [0, 0, 0])


def test_has_no_data():
    assert has_no_data([np.nan, 0.0, 1.0])
    assert has_no_data([0.0, 0.0, np.nan])
    assert not has_no_data([0.0, 0.0, 1.0])


def test_mat4_identity():
    np.testing.assert_array_equal(mat4_identity(), np.eye(4))
