import os
import time
from pathlib import Path

import numpy as np
import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow",
        action="store_true",
        help="Run full-resolution cloth scenarios",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "slow: full-resolution scenarios (minutes of runtime)",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-slow"):
        return
    skip = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip)


_RUN_LOG = "pytest_run_times.log"


def pytest_sessionstart(session):
    session._start_time = time.time()


def pytest_sessionfinish(session, exitstatus):
    duration = time.time() - session._start_time
    log_file = Path(session.config.rootpath) / _RUN_LOG
    history = int(os.environ.get("PYTEST_RUN_TIME_HISTORY", "50"))
    line = f"{time.strftime('%Y-%m-%d %H:%M:%S')} {duration:.2f}"

    lines = log_file.read_text().splitlines() if log_file.exists() else []
    lines.append(line)
    lines = lines[-history:]
    log_file.write_text("\n".join(lines) + "\n")

    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_line("Recent pytest run times:")
        for entry in lines[-5:]:
            reporter.write_line(f"  {entry}")


# ---------------------------------------------------------------------------
# Shared geometry
# ---------------------------------------------------------------------------

@pytest.fixture
def wing_pair():
    """Two flat triangles sharing the edge (0,0,0)-(0,1,0)."""
    return np.array([
        [0.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [-0.5, 0.5, 0.0],
        [+0.5, 0.5, 0.0],
    ])


@pytest.fixture
def rest_triangle():
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
    ])


def _unit_ball(rng, shape):
    d = rng.normal(size=shape)
    d /= np.linalg.norm(d, axis=-1, keepdims=True)
    r = rng.uniform(size=shape[:-1] + (1,)) ** (1.0 / 3.0)
    return d * r


@pytest.fixture
def unit_ball():
    """Sampler of uniform points inside the unit ball: ``unit_ball(rng, shape)``."""
    return _unit_ball
