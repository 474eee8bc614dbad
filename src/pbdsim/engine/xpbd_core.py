import math
from itertools import chain
from typing import List

import numpy as np

from .constraints import Constraint
from .errors import ConfigurationError
from .logutil import get_logger
from .params import EngineParams
from .particles import ParticleSet

logger = get_logger(__name__)


class AbstractEngine:
    """Fixed-rate PBD/XPBD time stepper.

    Subclasses populate the scene in :meth:`initialize_scene` and may override
    the per-substep hooks :meth:`set_external_forces`,
    :meth:`generate_collision_constraints` and :meth:`update_velocities`.

    Each substep integrates external forces, predicts positions, rebuilds the
    transient (collision) constraints, then runs ``constraint_iterations``
    Gauss-Seidel sweeps: persistent constraints first, transient ones after,
    both in registration order. Velocities are recovered from the position
    change before the positions are committed.
    """

    def __init__(self, params: EngineParams | None = None):
        self.params = params if params is not None else EngineParams()
        self.particles = ParticleSet.empty()
        self.constraints: List[Constraint] = []
        self.transient_constraints: List[Constraint] = []
        self._time = 0.0
        self._frame = 0
        self._step = 0
        self._initialized = False

    # ----- hooks ---------------------------------------------------------
    def initialize_scene(self):
        raise NotImplementedError

    def set_external_forces(self):
        ps = self.particles
        ps.f[:] = ps.m[:, None] * np.asarray(self.params.gravity, dtype=np.float64)

    def generate_collision_constraints(self):
        pass

    def update_velocities(self):
        decay = self.params.velocity_decay
        if decay < 1.0:
            self.particles.v *= math.exp(math.log(decay) * self.params.dt_physics)

    # ----- observers -----------------------------------------------------
    @property
    def current_time(self) -> float:
        return self._time

    @property
    def frame_index(self) -> int:
        return self._frame

    @property
    def step_index(self) -> int:
        return self._step

    @property
    def delta_physics_time(self) -> float:
        return self.params.dt_physics

    @property
    def delta_frame_time(self) -> float:
        return self.params.dt_frame

    @property
    def substeps_per_frame(self) -> int:
        return self.params.substeps

    def positions(self) -> np.ndarray:
        return self.particles.x.copy()

    def velocities(self) -> np.ndarray:
        return self.particles.v.copy()

    # ----- driving -------------------------------------------------------
    def initialize(self):
        if self._initialized:
            return
        self.initialize_scene()
        self._check_indices(self.constraints)
        self._initialized = True
        logger.info("scene initialised: %d particles, %d constraints, %s",
                    len(self.particles), len(self.constraints), self.params.algorithm.name)

    def _check_indices(self, constraints):
        n = len(self.particles)
        for c in constraints:
            if c._idx.size and (c._idx.min() < 0 or c._idx.max() >= n):
                raise ConfigurationError(
                    f"{type(c).__name__} references particles {c.indices} outside 0..{n - 1}"
                )

    def proceed_frame(self):
        """Advance the simulation by one frame (``substeps_per_frame`` steps)."""
        self.initialize()
        for _ in range(self.params.substeps):
            self.step()
        self._frame += 1
        logger.debug("frame %d done at t=%.6f", self._frame, self._time)

    def step(self):
        """Advance one physics substep."""
        self.initialize()
        ps = self.particles
        dt = self.params.dt_physics
        algorithm = self.params.algorithm

        self.set_external_forces()
        ps.v += ps.f / ps.m[:, None] * dt
        ps.p[:] = ps.x + ps.v * dt
        pinned = ps.w == 0.0
        ps.p[pinned] = ps.x[pinned]

        self.transient_constraints.clear()
        self.generate_collision_constraints()
        self._check_indices(self.transient_constraints)

        for c in chain(self.constraints, self.transient_constraints):
            c.lamb = 0.0
        for _ in range(self.params.constraint_iterations):
            for c in self.constraints:
                c.project(ps.p, ps.w, algorithm)
            for c in self.transient_constraints:
                c.project(ps.p, ps.w, algorithm)

        ps.v[:] = (ps.p - ps.x) / dt
        ps.x[:] = ps.p
        self.update_velocities()

        self.transient_constraints.clear()
        self._step += 1
        self._time = self._step * dt
