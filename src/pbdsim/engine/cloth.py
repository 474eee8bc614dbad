from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from .constraints import (
    ContinuumTriangleConstraint,
    DihedralBendingConstraint,
    DistanceConstraint,
    IsometricBendingConstraint,
)
from .errors import ConfigurationError
from .logutil import get_logger
from .mesh import build_adjacency, check_triangles, make_square_grid
from .params import check_stiffness
from .particles import ParticleSet
from .utils import transform_points

logger = get_logger(__name__)

AIR_DENSITY = 1.225  # kg / m^3


class InPlaneStrategy(Enum):
    EDGE_DISTANCE = "edge_distance"
    CONTINUUM_TRIANGLE = "continuum_triangle"


class OutOfPlaneStrategy(Enum):
    NONE = "none"
    DIHEDRAL = "dihedral"
    ISOMETRIC_BENDING = "isometric_bending"


@dataclass
class ClothParams:
    resolution: int = 50
    in_plane_stiffness: float = 1.0
    in_plane_compliance: float = 0.0
    out_of_plane_stiffness: float = 1.0
    out_of_plane_compliance: float = 0.0
    transform: np.ndarray = field(default_factory=lambda: np.identity(4))
    in_plane_strategy: InPlaneStrategy = InPlaneStrategy.EDGE_DISTANCE
    out_of_plane_strategy: OutOfPlaneStrategy = OutOfPlaneStrategy.ISOMETRIC_BENDING

    # None = 1.0 per vertex; otherwise spread uniformly over the vertices
    total_mass: float | None = None
    youngs_modulus: float = 1.0
    poisson_ratio: float = 0.3
    drag_coefficient: float = 1.0
    lift_coefficient: float = 0.0

    def __post_init__(self):
        self.in_plane_strategy = InPlaneStrategy(self.in_plane_strategy)
        self.out_of_plane_strategy = OutOfPlaneStrategy(self.out_of_plane_strategy)
        self.transform = np.asarray(self.transform, dtype=np.float64)
        self.validate()

    def validate(self):
        if int(self.resolution) != self.resolution or self.resolution < 2:
            raise ConfigurationError(f"resolution must be an integer >= 2, got {self.resolution}")
        check_stiffness(self.in_plane_stiffness, self.in_plane_compliance)
        check_stiffness(self.out_of_plane_stiffness, self.out_of_plane_compliance)
        if self.transform.shape != (4, 4):
            raise ConfigurationError("transform must be a 4x4 affine matrix")
        if self.total_mass is not None and not self.total_mass > 0.0:
            raise ConfigurationError(f"total_mass must be positive, got {self.total_mass}")


class ClothSimObject:
    """Particles and constraints for one triangulated cloth.

    The cloth appends its vertices to ``particles`` and stores the global
    indices, so ``constraints`` can be registered with the engine as is.
    """

    def __init__(self, particles: ParticleSet, params: ClothParams, dt: float,
                 verts=None, faces=None):
        self.params = params
        self.dt = float(dt)
        self._particles = particles
        if verts is None:
            verts, faces = make_square_grid(params.resolution)
        verts = transform_points(params.transform, verts)
        faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        check_triangles(verts, faces)
        edges, bends = build_adjacency(faces)

        n = len(verts)
        mass = 1.0 if params.total_mass is None else params.total_mass / n
        self.indices = np.asarray(particles.extend(verts, m=mass), dtype=np.int64)
        off = int(self.indices[0])
        self.triangles = faces + off
        self.edges = np.asarray(edges, dtype=np.int64).reshape(-1, 2) + off
        self.bends = np.asarray(bends, dtype=np.int64).reshape(-1, 4) + off

        self.constraints = []
        self._add_in_plane()
        self._add_out_of_plane()
        logger.info("cloth built: %d vertices, %d triangles, %d constraints (%s + %s)",
                    n, len(self.triangles), len(self.constraints),
                    params.in_plane_strategy.value, params.out_of_plane_strategy.value)

    def _add_in_plane(self):
        p = self.params
        X = self._particles.x
        kw = dict(stiffness=p.in_plane_stiffness, compliance=p.in_plane_compliance, dt=self.dt)
        if p.in_plane_strategy is InPlaneStrategy.EDGE_DISTANCE:
            for i, j in self.edges:
                self.constraints.append(DistanceConstraint.from_rest(X, i, j, **kw))
        else:
            for i, j, k in self.triangles:
                self.constraints.append(ContinuumTriangleConstraint.from_rest(
                    X, i, j, k,
                    youngs_modulus=p.youngs_modulus, poisson_ratio=p.poisson_ratio, **kw))

    def _add_out_of_plane(self):
        p = self.params
        if p.out_of_plane_strategy is OutOfPlaneStrategy.NONE:
            return
        cls = (DihedralBendingConstraint
               if p.out_of_plane_strategy is OutOfPlaneStrategy.DIHEDRAL
               else IsometricBendingConstraint)
        X = self._particles.x
        kw = dict(stiffness=p.out_of_plane_stiffness, compliance=p.out_of_plane_compliance,
                  dt=self.dt)
        for i, j, k, l in self.bends:
            self.constraints.append(cls.from_rest(X, i, j, k, l, **kw))

    def positions(self) -> np.ndarray:
        return self._particles.x[self.indices].copy()

    def local_triangles(self) -> np.ndarray:
        return self.triangles - int(self.indices[0])

    def apply_aerodynamic_forces(self, wind=(0.0, 0.0, 0.0), drag_coefficient=None,
                                 lift_coefficient=None, air_density=AIR_DENSITY):
        """Add drag and lift of every triangle to the particle forces.

        Per triangle ``F = -0.5 rho |v| (Cd (v.n) n + Cl (v - (v.n) n)) A``,
        with ``v`` the centroid velocity relative to ``wind``; a third of ``F``
        goes to each vertex.
        """
        cd = self.params.drag_coefficient if drag_coefficient is None else drag_coefficient
        cl = self.params.lift_coefficient if lift_coefficient is None else lift_coefficient
        ps = self._particles
        tri = self.triangles
        a = ps.x[tri[:, 0]]
        b = ps.x[tri[:, 1]]
        c = ps.x[tri[:, 2]]
        v_rel = ps.v[tri].mean(axis=1) - np.asarray(wind, dtype=np.float64)

        n = np.cross(b - a, c - a)
        n_len = np.linalg.norm(n, axis=1)
        area = 0.5 * n_len
        n_hat = n / np.where(n_len > 1e-30, n_len, 1.0)[:, None]

        vn = np.sum(v_rel * n_hat, axis=1)
        v_normal = vn[:, None] * n_hat
        v_tangent = v_rel - v_normal
        speed = np.linalg.norm(v_rel, axis=1)
        F = -0.5 * air_density * (speed * area)[:, None] * (cd * v_normal + cl * v_tangent)

        share = F / 3.0
        np.add.at(ps.f, tri[:, 0], share)
        np.add.at(ps.f, tri[:, 1], share)
        np.add.at(ps.f, tri[:, 2], share)
