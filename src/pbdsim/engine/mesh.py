import numpy as np

from .errors import ConfigurationError, TopologyError


def make_square_grid(resolution: int, size: float = 2.0, dtype=np.float64):
    """Square cloth patch in the XZ plane, centred at the origin.

    Returns (verts, faces): ``resolution**2`` vertices laid out row-major
    (z outer, x inner) and two triangles per grid cell.
    """
    n = int(resolution)
    if n != resolution or n < 2:
        raise ConfigurationError(f"grid resolution must be an integer >= 2, got {resolution}")
    t = np.linspace(-0.5 * size, 0.5 * size, n)
    xx, zz = np.meshgrid(t, t)
    verts = np.zeros((n * n, 3), dtype=dtype)
    verts[:, 0] = xx.ravel()
    verts[:, 2] = zz.ravel()

    r, c = np.meshgrid(np.arange(n - 1), np.arange(n - 1), indexing="ij")
    a = (r * n + c).ravel()
    b = a + 1
    d = a + n
    e = d + 1
    faces = np.empty((2 * a.size, 3), dtype=np.int32)
    faces[0::2] = np.column_stack([a, d, b])
    faces[1::2] = np.column_stack([b, d, e])
    return verts, faces


def triangle_areas(verts, faces):
    a = verts[faces[:, 0]]
    b = verts[faces[:, 1]]
    c = verts[faces[:, 2]]
    return 0.5 * np.linalg.norm(np.cross(b - a, c - a), axis=1)


def check_triangles(verts, faces, min_area: float = 1e-12):
    """Raise :class:`TopologyError` for bad indices or zero-area triangles."""
    faces = np.asarray(faces)
    if faces.ndim != 2 or faces.shape[1] != 3:
        raise TopologyError("faces must be an (n, 3) array of vertex indices")
    if faces.size and (faces.min() < 0 or faces.max() >= len(verts)):
        raise TopologyError("face index out of range")
    if faces.size and np.any(np.sort(faces, axis=1)[:, 1:] == np.sort(faces, axis=1)[:, :-1]):
        raise TopologyError("triangle repeats a vertex")
    areas = triangle_areas(verts, faces)
    bad = np.nonzero(~(areas >= min_area))[0]
    if bad.size:
        raise TopologyError(f"triangle {int(bad[0])} has zero rest area")


def build_adjacency(faces):
    """Undirected edges and bending quadruples of a triangle mesh.

    Edges come out in order of first appearance while walking the triangles,
    endpoints sorted. Each edge shared by exactly two triangles yields
    ``(i, j, k, l)`` where ``k`` is opposite the edge in the first triangle and
    ``l`` in the second.
    """
    edge2tris = {}
    for t_idx, (i, j, k) in enumerate(faces):
        for e in [(i, j), (j, k), (k, i)]:
            e_sorted = tuple(sorted((int(e[0]), int(e[1]))))
            edge2tris.setdefault(e_sorted, []).append((t_idx, (int(i), int(j), int(k))))
    edges = []
    bends = []
    for (i, j), tris in edge2tris.items():
        if len(tris) > 2:
            raise TopologyError(f"non-manifold edge ({i}, {j}) shared by {len(tris)} triangles")
        edges.append((i, j))
        if len(tris) == 2:
            (_, tri1), (_, tri2) = tris
            k = [v for v in tri1 if v not in (i, j)][0]
            l = [v for v in tri2 if v not in (i, j)][0]
            bends.append((i, j, k, l))
    return edges, bends
