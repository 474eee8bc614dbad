class ConfigurationError(ValueError):
    """Invalid engine, cloth or constraint configuration."""


class TopologyError(ValueError):
    """Mesh cannot be simulated (non-manifold edge, degenerate triangle)."""


class ConstraintArityError(ValueError):
    """A constraint received the wrong number of particle indices."""
