"""PBD/XPBD engine, constraint library and cloth builder."""

from .params import Algorithm, EngineParams
from .errors import ConfigurationError, TopologyError, ConstraintArityError
from .particles import Particle, ParticleSet
from .constraints import (
    Constraint,
    DistanceConstraint,
    DihedralBendingConstraint,
    IsometricBendingConstraint,
    ContinuumTriangleConstraint,
    FixedPointConstraint,
    EnvironmentalCollisionConstraint,
)
from .collisions import build_sphere_contacts, build_plane_contacts
from .xpbd_core import AbstractEngine
from .mesh import make_square_grid, build_adjacency
from .cloth import ClothParams, ClothSimObject, InPlaneStrategy, OutOfPlaneStrategy

__all__ = [
    "Algorithm",
    "EngineParams",
    "ConfigurationError",
    "TopologyError",
    "ConstraintArityError",
    "Particle",
    "ParticleSet",
    "Constraint",
    "DistanceConstraint",
    "DihedralBendingConstraint",
    "IsometricBendingConstraint",
    "ContinuumTriangleConstraint",
    "FixedPointConstraint",
    "EnvironmentalCollisionConstraint",
    "build_sphere_contacts",
    "build_plane_contacts",
    "AbstractEngine",
    "make_square_grid",
    "build_adjacency",
    "ClothParams",
    "ClothSimObject",
    "InPlaneStrategy",
    "OutOfPlaneStrategy",
]
