import logging
import os

_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"


def get_logger(name: str = "pbdsim") -> logging.Logger:
    """Return a logger below the ``pbdsim`` root.

    The handler is added once; the level is re-read from ``PBDSIM_LOG_LEVEL``
    (default ``WARNING``) on every call.
    """
    root = logging.getLogger("pbdsim")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    level_name = os.getenv("PBDSIM_LOG_LEVEL", "WARNING").upper()
    root.setLevel(getattr(logging, level_name, logging.WARNING))
    if name == "pbdsim":
        return root
    return logging.getLogger(name)
