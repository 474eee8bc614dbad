import numpy as np
import pytest

from pbdsim.demo.run_cloth_demo import (
    SPHERE_RADIUS,
    FrameCache,
    MovingSphereClothEngine,
    build_parser,
    make_engine,
    main,
    sphere_center,
)
from pbdsim.engine.cloth import ClothParams, OutOfPlaneStrategy
from pbdsim.engine.params import Algorithm, EngineParams
from pbdsim.engine.utils import make_transform

PENETRATION_LIMIT = 0.45


def _run_moving_sphere(resolution, frames, iterations, pin_with_inverse_mass=False,
                       out_of_plane=OutOfPlaneStrategy.NONE):
    params = EngineParams(constraint_iterations=iterations, algorithm=Algorithm.XPBD,
                          velocity_decay=0.95)
    cloth_params = ClothParams(
        resolution=resolution,
        in_plane_compliance=0.0,
        out_of_plane_stiffness=0.1,
        out_of_plane_compliance=5e4,
        transform=make_transform((0.0, 2.0, 1.0)),
        out_of_plane_strategy=out_of_plane,
    )
    engine = MovingSphereClothEngine(params, cloth_params,
                                     pin_with_inverse_mass=pin_with_inverse_mass)
    engine.initialize()
    pins = engine.particles.x[engine.pinned].copy()

    closest = np.inf
    for _ in range(frames):
        engine.proceed_frame()
        X = engine.cloth.positions()
        dist = np.linalg.norm(X - sphere_center(engine.current_time), axis=1)
        closest = min(closest, float(dist.min()))
        assert closest >= PENETRATION_LIMIT
        assert np.all(np.isfinite(X))
    return engine, pins, closest


def _edge_strain(engine):
    X = engine.particles.x
    strains = [abs(c.evaluate(X)) / c.rest for c in engine.cloth.constraints[:len(engine.cloth.edges)]]
    return np.array(strains)


def test_sphere_motion():
    assert np.array_equal(sphere_center(0.0), [0.0, 1.0, 0.0])
    assert np.array_equal(sphere_center(1.8), [0.0, 1.0, 0.0])
    assert np.allclose(sphere_center(2.3), [0.0, 1.0, 0.5])


def test_cloth_drapes_over_moving_sphere():
    engine, pins, closest = _run_moving_sphere(resolution=8, frames=126, iterations=20)
    assert len(engine.pinned) == 2
    # the sphere is already moving at the end of the run
    assert engine.current_time > 2.0
    # the cloth reached the sphere
    assert closest < SPHERE_RADIUS + 0.1
    assert np.max(_edge_strain(engine)) < 0.05
    assert np.allclose(engine.particles.x[engine.pinned], pins, atol=1e-2)


def test_inverse_mass_pins_hold_exactly():
    engine, pins, _ = _run_moving_sphere(resolution=6, frames=60, iterations=10,
                                         pin_with_inverse_mass=True,
                                         out_of_plane=OutOfPlaneStrategy.ISOMETRIC_BENDING)
    assert np.array_equal(engine.particles.x[engine.pinned], pins)
    assert np.all(engine.particles.w[engine.pinned] == 0.0)


@pytest.mark.slow
def test_full_resolution_drape():
    engine, pins, _ = _run_moving_sphere(resolution=50, frames=300, iterations=10,
                                         out_of_plane=OutOfPlaneStrategy.ISOMETRIC_BENDING)
    assert np.mean(_edge_strain(engine)) < 0.05


def test_frame_cache_round_trip(tmp_path):
    cache = FrameCache([[0, 1, 2]])
    cache.submit(0.0, np.zeros((3, 3)))
    cache.submit(0.5, np.ones((3, 3)))
    path = tmp_path / "frames.npz"
    cache.save(str(path))
    data = np.load(path)
    assert data["times"].tolist() == [0.0, 0.5]
    assert data["positions"].shape == (2, 3, 3)
    assert data["triangles"].tolist() == [[0, 1, 2]]


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.frames == 300
    assert args.resolution == 50
    assert args.algorithm == "xpbd"
    assert args.in_plane == "edge_distance"
    assert args.out_of_plane == "isometric_bending"
    assert not args.pin_inverse_mass
    assert args.velocity_iterations == 5
    assert make_engine(args).params.velocity_iterations == 5
    args = build_parser().parse_args(["--velocity-iterations", "2"])
    assert make_engine(args).params.velocity_iterations == 2


def test_demo_exports_frames(tmp_path):
    path = tmp_path / "cloth.npz"
    cache = main(["--frames", "3", "--resolution", "4", "--export-npz", str(path)])
    assert len(cache.frames) == 4
    data = np.load(path)
    assert data["positions"].shape == (4, 16, 3)
    assert data["triangles"].shape == (18, 3)
    assert data["times"][-1] == pytest.approx(3.0 / 60.0)


def test_demo_with_pbd_and_substeps(tmp_path):
    cache = main(["--frames", "2", "--resolution", "3", "--algorithm", "pbd",
                  "--substeps", "2", "--in-plane", "continuum_triangle",
                  "--out-of-plane", "dihedral", "--pin-inverse-mass"])
    assert len(cache.frames) == 3
    assert cache.times[-1] == pytest.approx(4.0 / 60.0)
