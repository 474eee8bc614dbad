import math

import numpy as np
import pytest

from pbdsim.engine.utils import (
    clamp,
    cot_angle,
    make_transform,
    normalize,
    numerical_gradient,
    quat_from_axis_angle,
    quat_multiply,
    quat_to_matrix,
    safe_acos,
    transform_points,
)


def test_clamp_and_safe_acos():
    assert clamp(2.0, -1.0, 1.0) == 1.0
    assert clamp(-3.0, -1.0, 1.0) == -1.0
    assert clamp(0.25, -1.0, 1.0) == 0.25
    assert safe_acos(1.0 + 1e-12) == 0.0
    assert safe_acos(-1.0 - 1e-12) == pytest.approx(math.pi)


def test_normalize_handles_zero():
    unit, length = normalize(np.array([3.0, 0.0, 4.0]))
    assert length == 5.0
    assert np.allclose(unit, [0.6, 0.0, 0.8])
    unit, length = normalize(np.zeros(3))
    assert length == 0.0
    assert np.array_equal(unit, np.zeros(3))


def test_cot_angle():
    assert cot_angle(np.array([1.0, 0.0, 0.0]), np.array([1.0, 1.0, 0.0])) == pytest.approx(1.0)
    assert cot_angle(np.array([1.0, 0.0, 0.0]), np.array([0.0, 2.0, 0.0])) == pytest.approx(0.0)
    assert cot_angle(np.array([1.0, 0.0, 0.0]), np.array([2.0, 0.0, 0.0])) == 0.0


def test_quaternion_rotation():
    q = quat_from_axis_angle((0.0, 0.0, 2.0), math.pi / 2)
    R = quat_to_matrix(q)
    assert np.allclose(R @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])
    assert np.allclose(R @ R.T, np.identity(3))
    assert np.allclose(quat_to_matrix(quat_multiply(q, q)) @ [1.0, 0.0, 0.0], [-1.0, 0.0, 0.0])
    assert np.allclose(quat_from_axis_angle((0.0, 0.0, 0.0), 1.0), [1.0, 0.0, 0.0, 0.0])


def test_transform_points():
    q = quat_from_axis_angle((0.0, 1.0, 0.0), math.pi)
    T = make_transform((1.0, 2.0, 3.0), q)
    X = transform_points(T, [[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]])
    assert np.allclose(X, [[0.0, 2.0, 3.0], [1.0, 2.0, 3.0]])
    assert np.allclose(make_transform(), np.identity(4))


def test_numerical_gradient_of_quadratic():
    A = np.array([[2.0, 1.0], [1.0, 3.0]])

    def fn(q):
        return 0.5 * float(q.reshape(-1) @ A @ q.reshape(-1))

    q = np.array([[0.5, -1.0]])
    g = numerical_gradient(fn, q)
    assert g.shape == q.shape
    assert np.allclose(g.reshape(-1), A @ q.reshape(-1), atol=1e-8)
    assert q.tolist() == [[0.5, -1.0]]
