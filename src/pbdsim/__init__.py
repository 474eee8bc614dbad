"""Position-based cloth and soft-body simulation."""

from .engine import *  # noqa: F401,F403
from .engine import __all__

__version__ = "0.1.0"
