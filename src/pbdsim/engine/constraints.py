import math
from dataclasses import KW_ONLY, dataclass, field
from typing import ClassVar, Tuple

import numpy as np

from .errors import ConfigurationError, ConstraintArityError, TopologyError
from .logutil import get_logger
from .params import Algorithm, check_stiffness
from .utils import TINY_CROSS, clamp, cot_angle, cross3, norm3, safe_acos

logger = get_logger(__name__)

# Projections whose generalised inverse mass falls below this are skipped.
GRAD_EPS = 1e-12
# 1 - cos^2 of the dihedral angle below which the bending gradient is zero.
FLAT_EPS = 1e-20
MIN_REST_AREA = 1e-12


@dataclass(eq=False)
class Constraint:
    """Scalar positional constraint C(q) = 0 (or C(q) >= 0 when unilateral).

    ``indices`` are rows of the engine's :class:`ParticleSet`. Subclasses
    implement ``value`` and ``grad`` on the ``(arity, 3)`` array of the
    referenced predicted positions.
    """

    arity: ClassVar[int] = 0
    unilateral: ClassVar[bool] = False

    indices: Tuple[int, ...]
    _: KW_ONLY
    stiffness: float = 1.0
    compliance: float = 0.0
    dt: float = 1.0 / 60.0
    lamb: float = field(default=0.0, init=False)
    _idx: np.ndarray = field(init=False, repr=False)
    _nan_reported: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        idx = tuple(int(i) for i in np.atleast_1d(self.indices))
        if len(idx) != self.arity:
            raise ConstraintArityError(
                f"{type(self).__name__} takes {self.arity} particles, got {len(idx)}"
            )
        if len(set(idx)) != len(idx):
            raise ConstraintArityError(f"{type(self).__name__} has repeated particles {idx}")
        check_stiffness(self.stiffness, self.compliance)
        self.indices = idx
        self._idx = np.array(idx, dtype=np.intp)

    def value(self, q: np.ndarray) -> float:
        raise NotImplementedError

    def grad(self, q: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def evaluate(self, P: np.ndarray) -> float:
        return self.value(P[self._idx])

    def _report_nan(self, what: str):
        if not self._nan_reported:
            logger.warning("%s on particles %s produced a non-finite %s; skipping",
                           type(self).__name__, self.indices, what)
            self._nan_reported = True

    def project(self, P: np.ndarray, W: np.ndarray, algorithm: Algorithm) -> bool:
        """Move the referenced rows of ``P`` towards C = 0.

        Returns False when the constraint was skipped (satisfied unilateral,
        degenerate gradient or non-finite value).
        """
        idx = self._idx
        q = P[idx]
        C = self.value(q)
        if not math.isfinite(C):
            self._report_nan("value")
            return False
        if self.unilateral and C >= 0.0:
            return False
        g = self.grad(q)
        if not np.all(np.isfinite(g)):
            self._report_nan("gradient")
            return False
        w = W[idx]
        s = float(np.dot(w, np.sum(g * g, axis=1)))
        if s < GRAD_EPS:
            return False

        if algorithm is Algorithm.PBD:
            dl = -self.stiffness * C / s
        else:
            alpha = self.compliance / (self.dt * self.dt)
            dl = (-C - alpha * self.lamb) / (s + alpha)
            self.lamb += dl
        P[idx] += (w * dl)[:, None] * g
        return True


# --------- Distance (edge length) ---------
@dataclass(eq=False)
class DistanceConstraint(Constraint):
    arity = 2
    rest: float

    @classmethod
    def from_rest(cls, X, i, j, **kw):
        return cls((i, j), float(np.linalg.norm(X[i] - X[j])), **kw)

    def value(self, q):
        return norm3(q[0] - q[1]) - self.rest

    def grad(self, q):
        d = q[0] - q[1]
        L = norm3(d)
        if L < TINY_CROSS:
            return np.zeros((2, 3))
        n = d / L
        return np.stack([n, -n])


# --------- Bending (dihedral around edge q0-q1) ---------
def _wing_normals(q):
    e = q[1] - q[0]
    a = q[2] - q[0]
    b = q[3] - q[0]
    return e, a, b, cross3(e, a), cross3(e, b)


def dihedral_angle(q) -> float:
    """Angle between the triangles (q0, q1, q2) and (q0, q1, q3); NaN if degenerate."""
    _, _, _, n1, n2 = _wing_normals(q)
    l1, l2 = norm3(n1), norm3(n2)
    if l1 < TINY_CROSS or l2 < TINY_CROSS:
        return math.nan
    return safe_acos(float(np.dot(n1, n2)) / (l1 * l2))


@dataclass(eq=False)
class DihedralBendingConstraint(Constraint):
    """Dihedral bending; q0, q1 span the shared edge, q2, q3 are the wing tips."""

    arity = 4
    rest_angle: float

    @classmethod
    def from_rest(cls, X, i, j, k, l, **kw):
        angle = dihedral_angle(np.asarray(X)[[i, j, k, l]])
        if math.isnan(angle):
            raise TopologyError(f"degenerate triangle at bending edge ({i}, {j})")
        return cls((i, j, k, l), angle, **kw)

    def value(self, q):
        return dihedral_angle(q) - self.rest_angle

    def grad(self, q):
        e, a, b, n1, n2 = _wing_normals(q)
        l1, l2 = norm3(n1), norm3(n2)
        if l1 < TINY_CROSS or l2 < TINY_CROSS:
            return np.zeros((4, 3))
        u1 = n1 / l1
        u2 = n2 / l2
        d = clamp(float(np.dot(u1, u2)), -1.0, 1.0)
        s2 = 1.0 - d * d
        if s2 < FLAT_EPS:
            return np.zeros((4, 3))

        # d(cos)/d(n1), d(cos)/d(n2), then through n1 = e x a and n2 = e x b
        g1 = (u2 - d * u1) / l1
        g2 = (u1 - d * u2) / l2
        de = cross3(a, g1) + cross3(b, g2)
        da = cross3(g1, e)
        db = cross3(g2, e)
        dcos = np.stack([-(de + da + db), de, da, db])
        return (-1.0 / math.sqrt(s2)) * dcos


# --------- Isometric bending (quadratic model) ---------
def isometric_bending_matrix(q) -> np.ndarray:
    """Rest matrix Q of the quadratic bending energy for a flat-rest wing pair."""
    x0, x1, x2, x3 = q
    e0 = x1 - x0
    e1 = x2 - x0
    e2 = x3 - x0
    e3 = x2 - x1
    e4 = x3 - x1
    c01 = cot_angle(e0, e1)
    c02 = cot_angle(e0, e2)
    c03 = cot_angle(-e0, e3)
    c04 = cot_angle(-e0, e4)
    # A0 + A1
    area = 0.5 * (norm3(cross3(e0, e1)) + norm3(cross3(e0, e2)))
    if area < MIN_REST_AREA:
        raise TopologyError("degenerate wing pair for isometric bending")
    K = np.array([c03 + c04, c01 + c02, -c01 - c03, -c02 - c04])
    return (3.0 / area) * np.outer(K, K)


@dataclass(eq=False)
class IsometricBendingConstraint(Constraint):
    arity = 4
    Q: np.ndarray

    def __post_init__(self):
        super().__post_init__()
        self.Q = np.asarray(self.Q, dtype=np.float64).reshape(4, 4)

    @classmethod
    def from_rest(cls, X, i, j, k, l, **kw):
        Q = isometric_bending_matrix(np.asarray(X)[[i, j, k, l]])
        return cls((i, j, k, l), Q, **kw)

    def value(self, q):
        return 0.5 * float(np.sum(self.Q * (q @ q.T)))

    def grad(self, q):
        return self.Q @ q


# --------- Continuum triangle (St. Venant-Kirchhoff strain energy) ---------
@dataclass(eq=False)
class ContinuumTriangleConstraint(Constraint):
    """Membrane strain of one triangle; C = rest_area * Psi(E) with E the Green strain."""

    arity = 3
    rest_inv: np.ndarray
    rest_area: float
    youngs_modulus: float = 1.0
    poisson_ratio: float = 0.3

    def __post_init__(self):
        super().__post_init__()
        self.rest_inv = np.asarray(self.rest_inv, dtype=np.float64).reshape(2, 2)
        if not self.rest_area >= MIN_REST_AREA:
            raise TopologyError(f"triangle {self.indices} has zero rest area")
        if self.youngs_modulus <= 0.0 or not 0.0 <= self.poisson_ratio < 0.5:
            raise ConfigurationError("youngs_modulus must be > 0 and poisson_ratio in [0, 0.5)")

    @classmethod
    def from_rest(cls, X, i, j, k, **kw):
        x0, x1, x2 = np.asarray(X, dtype=np.float64)[[i, j, k]]
        e1 = x1 - x0
        e2 = x2 - x0
        n = cross3(e1, e2)
        area = 0.5 * norm3(n)
        if area < MIN_REST_AREA:
            raise TopologyError(f"triangle ({i}, {j}, {k}) has zero rest area")
        u = e1 / norm3(e1)
        v = cross3(n / norm3(n), u)
        Dm = np.array([[e1 @ u, e2 @ u], [e1 @ v, e2 @ v]])
        return cls((i, j, k), np.linalg.inv(Dm), area, **kw)

    @property
    def mu(self) -> float:
        return self.youngs_modulus / (2.0 * (1.0 + self.poisson_ratio))

    @property
    def lame_lambda(self) -> float:
        nu = self.poisson_ratio
        return self.youngs_modulus * nu / (1.0 - nu * nu)

    def _strain(self, q):
        Ds = np.column_stack((q[1] - q[0], q[2] - q[0]))
        F = Ds @ self.rest_inv
        E = 0.5 * (F.T @ F - np.identity(2))
        return F, E

    def value(self, q):
        _, E = self._strain(q)
        tr = E[0, 0] + E[1, 1]
        psi = self.mu * float(np.sum(E * E)) + 0.5 * self.lame_lambda * tr * tr
        return self.rest_area * psi

    def grad(self, q):
        F, E = self._strain(q)
        tr = E[0, 0] + E[1, 1]
        P = F @ (2.0 * self.mu * E + self.lame_lambda * tr * np.identity(2))
        H = self.rest_area * (P @ self.rest_inv.T)
        return np.stack([-(H[:, 0] + H[:, 1]), H[:, 0], H[:, 1]])


# --------- Fixed point ---------
@dataclass(eq=False)
class FixedPointConstraint(Constraint):
    arity = 1
    target: np.ndarray

    def __post_init__(self):
        super().__post_init__()
        self.target = np.array(self.target, dtype=np.float64).reshape(3)

    @classmethod
    def from_rest(cls, X, i, **kw):
        return cls((i,), X[i], **kw)

    def value(self, q):
        return norm3(q[0] - self.target)

    def grad(self, q):
        d = q[0] - self.target
        L = norm3(d)
        if L < TINY_CROSS:
            return np.zeros((1, 3))
        return (d / L)[None, :]


# --------- Contact vs a half-space ---------
@dataclass(eq=False)
class EnvironmentalCollisionConstraint(Constraint):
    """Keeps one particle on the positive side of ``normal . x = offset``."""

    arity = 1
    unilateral = True
    normal: np.ndarray
    offset: float

    def __post_init__(self):
        super().__post_init__()
        n = np.array(self.normal, dtype=np.float64).reshape(3)
        length = norm3(n)
        if length < TINY_CROSS:
            raise ConfigurationError("collision normal must be non-zero")
        self.normal = n / length
        self.offset = float(self.offset)

    def value(self, q):
        return float(self.normal @ q[0]) - self.offset

    def grad(self, q):
        return self.normal[None, :].copy()
