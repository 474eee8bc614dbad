"""Small vector, quaternion and numerical helpers used by the constraints."""

import math

import numpy as np

# Cross products shorter than this leave the normal undefined.
TINY_CROSS = 1e-30


def clamp(x, lo, hi):
    return lo if x < lo else hi if x > hi else x


def safe_acos(x: float) -> float:
    return math.acos(clamp(x, -1.0, 1.0))


def cross3(a, b):
    """Cross product of two 3-vectors; cheaper than ``np.cross`` for one pair."""
    return np.array([
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    ])


def norm3(a) -> float:
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


def normalize(a, eps: float = TINY_CROSS):
    """Return ``(a / |a|, |a|)``; the zero vector when ``|a| < eps``."""
    length = norm3(a)
    if length < eps:
        return np.zeros(3), length
    return a / length, length


def cot_angle(a, b) -> float:
    """Cotangent of the angle between ``a`` and ``b``; 0 when undefined."""
    sin = norm3(cross3(a, b))
    cos = float(np.dot(a, b))
    with np.errstate(divide="ignore", invalid="ignore"):
        cot = np.float64(cos) / np.float64(sin)
    return float(cot) if math.isfinite(cot) else 0.0


# ----- Quaternions (w, x, y, z) ----------------------------------------------

def quat_from_axis_angle(axis, angle: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    n = np.linalg.norm(axis)
    if n < TINY_CROSS:
        return np.array([1.0, 0.0, 0.0, 0.0])
    s = math.sin(0.5 * angle) / n
    return np.array([math.cos(0.5 * angle), axis[0] * s, axis[1] * s, axis[2] * s])


def quat_multiply(q, r) -> np.ndarray:
    w0, x0, y0, z0 = q
    w1, x1, y1, z1 = r
    return np.array([
        w0 * w1 - x0 * x1 - y0 * y1 - z0 * z1,
        w0 * x1 + x0 * w1 + y0 * z1 - z0 * y1,
        w0 * y1 - x0 * z1 + y0 * w1 + z0 * x1,
        w0 * z1 + x0 * y1 - y0 * x1 + z0 * w1,
    ])


def quat_to_matrix(q) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64)
    w, x, y, z = q / np.linalg.norm(q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - w * z), 2 * (x * z + w * y)],
        [2 * (x * y + w * z), 1 - 2 * (x * x + z * z), 2 * (y * z - w * x)],
        [2 * (x * z - w * y), 2 * (y * z + w * x), 1 - 2 * (x * x + y * y)],
    ])


def make_transform(translation=(0.0, 0.0, 0.0), rotation=None) -> np.ndarray:
    """4x4 rigid transform; ``rotation`` is a quaternion (w, x, y, z) or None."""
    T = np.identity(4)
    if rotation is not None:
        T[:3, :3] = quat_to_matrix(rotation)
    T[:3, 3] = np.asarray(translation, dtype=np.float64)
    return T


def transform_points(T, X) -> np.ndarray:
    T = np.asarray(T, dtype=np.float64)
    X = np.asarray(X, dtype=np.float64)
    return X @ T[:3, :3].T + T[:3, 3]


def numerical_gradient(fn, q, delta: float = 1e-6) -> np.ndarray:
    """Central-difference gradient of scalar ``fn`` at ``q`` (any shape)."""
    q = np.array(q, dtype=np.float64)
    grad = np.zeros_like(q)
    flat = q.reshape(-1)
    g = grad.reshape(-1)
    for k in range(flat.size):
        orig = flat[k]
        flat[k] = orig + delta
        plus = fn(q)
        flat[k] = orig - delta
        minus = fn(q)
        flat[k] = orig
        g[k] = (plus - minus) / (2.0 * delta)
    return grad
