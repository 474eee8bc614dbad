from dataclasses import dataclass

import numpy as np

from .errors import ConfigurationError


def _readonly(a: np.ndarray) -> np.ndarray:
    view = a.view()
    view.flags.writeable = False
    return view


class Particle:
    """Read-only view of one particle inside a :class:`ParticleSet`."""

    __slots__ = ("_owner", "index")

    def __init__(self, owner: "ParticleSet", index: int):
        self._owner = owner
        self.index = index

    @property
    def x(self) -> np.ndarray:
        return _readonly(self._owner.x[self.index])

    @property
    def p(self) -> np.ndarray:
        return _readonly(self._owner.p[self.index])

    @property
    def v(self) -> np.ndarray:
        return _readonly(self._owner.v[self.index])

    @property
    def f(self) -> np.ndarray:
        return _readonly(self._owner.f[self.index])

    @property
    def m(self) -> float:
        return float(self._owner.m[self.index])

    @property
    def w(self) -> float:
        return float(self._owner.w[self.index])

    def __repr__(self):
        return f"Particle(index={self.index}, x={self.x.tolist()}, w={self.w})"


@dataclass(eq=False)
class ParticleSet:
    """Contiguous particle storage; constraints refer to rows by index."""

    x: np.ndarray
    v: np.ndarray
    m: np.ndarray
    w: np.ndarray
    p: np.ndarray
    f: np.ndarray

    @classmethod
    def empty(cls) -> "ParticleSet":
        z3 = np.zeros((0, 3), dtype=np.float64)
        z1 = np.zeros(0, dtype=np.float64)
        return cls(z3.copy(), z3.copy(), z1.copy(), z1.copy(), z3.copy(), z3.copy())

    @classmethod
    def from_positions(cls, x, v=None, m=1.0) -> "ParticleSet":
        ps = cls.empty()
        ps.extend(x, v, m)
        return ps

    def __len__(self):
        return self.x.shape[0]

    def __getitem__(self, i) -> Particle:
        n = len(self)
        i = int(i)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError(f"particle index {i} out of range for {n} particles")
        return Particle(self, i)

    def __iter__(self):
        for i in range(len(self)):
            yield Particle(self, i)

    def extend(self, x, v=None, m=1.0) -> range:
        """Append particles at rest positions ``x``; returns their indices."""
        x = np.asarray(x, dtype=np.float64).reshape(-1, 3)
        k = x.shape[0]
        v = np.zeros_like(x) if v is None else np.asarray(v, dtype=np.float64).reshape(k, 3)
        m = np.broadcast_to(np.asarray(m, dtype=np.float64), (k,)).copy()
        if not np.all(np.isfinite(m)) or np.any(m <= 0.0):
            raise ConfigurationError("particle masses must be positive and finite")

        start = len(self)
        self.x = np.concatenate([self.x, x])
        self.p = np.concatenate([self.p, x])
        self.v = np.concatenate([self.v, v])
        self.f = np.concatenate([self.f, np.zeros_like(x)])
        self.m = np.concatenate([self.m, m])
        self.w = np.concatenate([self.w, 1.0 / m])
        return range(start, start + k)

    def add(self, x, v=None, m=1.0) -> int:
        return self.extend(x, v, m).start

    def pin(self, indices):
        """Make particles immovable (``w = 0``); their mass is kept."""
        self.w[np.asarray(indices, dtype=np.intp)] = 0.0

    @property
    def pinned(self) -> np.ndarray:
        return self.w == 0.0
