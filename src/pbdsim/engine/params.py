from dataclasses import dataclass
from enum import Enum
import math

from .errors import ConfigurationError


class Algorithm(Enum):
    PBD = "pbd"
    XPBD = "xpbd"


# Tolerance for dt_frame being a whole number of physics steps.
FRAME_MULTIPLE_TOL = 1e-9


@dataclass(frozen=True)
class EngineParams:
    dt_physics: float = 1.0 / 60.0
    dt_frame: float = 1.0 / 60.0
    constraint_iterations: int = 10
    velocity_iterations: int = 0
    algorithm: Algorithm = Algorithm.XPBD

    # Fraction of velocity kept after one simulated second (1.0 = no damping)
    velocity_decay: float = 1.0
    gravity: tuple = (0.0, -9.8, 0.0)

    def __post_init__(self):
        if not isinstance(self.algorithm, Algorithm):
            try:
                object.__setattr__(self, "algorithm", Algorithm(str(self.algorithm).lower()))
            except ValueError:
                raise ConfigurationError(f"Unknown algorithm: {self.algorithm!r}") from None
        self.validate()

    def validate(self):
        if not (self.dt_physics > 0.0 and math.isfinite(self.dt_physics)):
            raise ConfigurationError(f"dt_physics must be positive, got {self.dt_physics}")
        if not (self.dt_frame > 0.0 and math.isfinite(self.dt_frame)):
            raise ConfigurationError(f"dt_frame must be positive, got {self.dt_frame}")
        n = round(self.dt_frame / self.dt_physics)
        if n < 1 or abs(n * self.dt_physics - self.dt_frame) > FRAME_MULTIPLE_TOL:
            raise ConfigurationError(
                f"dt_frame={self.dt_frame} is not a multiple of dt_physics={self.dt_physics}"
            )
        if int(self.constraint_iterations) != self.constraint_iterations or self.constraint_iterations < 1:
            raise ConfigurationError("constraint_iterations must be an integer >= 1")
        if int(self.velocity_iterations) != self.velocity_iterations or self.velocity_iterations < 0:
            raise ConfigurationError("velocity_iterations must be an integer >= 0")
        if not (0.0 < self.velocity_decay <= 1.0):
            raise ConfigurationError(f"velocity_decay must lie in (0, 1], got {self.velocity_decay}")
        if len(self.gravity) != 3:
            raise ConfigurationError("gravity must have three components")

    @property
    def substeps(self) -> int:
        return int(round(self.dt_frame / self.dt_physics))


def check_stiffness(stiffness: float, compliance: float):
    """Shared range check for PBD stiffness and XPBD compliance."""
    if not (0.0 < stiffness <= 1.0):
        raise ConfigurationError(f"stiffness must lie in (0, 1], got {stiffness}")
    if not (compliance >= 0.0 and math.isfinite(compliance)):
        raise ConfigurationError(f"compliance must be >= 0, got {compliance}")
