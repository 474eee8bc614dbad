import numpy as np

from .constraints import EnvironmentalCollisionConstraint


def build_sphere_contacts(X, center, radius, tolerance=0.0, **kw):
    """Collision constraints for particles near a sphere.

    Candidates are found in one vectorised pass over ``X`` (particles closer
    than ``radius + tolerance`` to ``center``); each gets a half-space
    constraint tangent to the sphere at its projection. ``kw`` is forwarded to
    :class:`EnvironmentalCollisionConstraint` (stiffness, compliance, dt).
    """
    center = np.asarray(center, dtype=np.float64)
    d = X - center
    dist = np.linalg.norm(d, axis=1)
    hit = np.nonzero((dist < radius + tolerance) & (dist > 1e-12))[0]
    if hit.size == 0:
        return []
    normals = d[hit] / dist[hit, None]
    offsets = normals @ center + radius
    return [
        EnvironmentalCollisionConstraint((int(i),), n, float(o), **kw)
        for i, n, o in zip(hit, normals, offsets)
    ]


def build_plane_contacts(X, normal, offset, tolerance=0.0, **kw):
    """Collision constraints for particles within ``tolerance`` of a plane or behind it."""
    n = np.asarray(normal, dtype=np.float64)
    n = n / np.linalg.norm(n)
    C = X @ n - offset
    hit = np.nonzero(C < tolerance)[0]
    return [EnvironmentalCollisionConstraint((int(i),), n, float(offset), **kw) for i in hit]
