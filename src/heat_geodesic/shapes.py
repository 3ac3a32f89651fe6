"""Procedural test meshes.

All generators return a `TriMesh` with counter-clockwise faces (seen from
outside for closed shapes, from +z for planar ones).
"""
from __future__ import annotations

import logging
from typing import Dict, List, Tuple

import numpy as np

from .mesh import TriMesh

_LOGGER = logging.getLogger(__name__)

_TETRA_FACES = [[0, 1, 2], [0, 3, 1], [0, 2, 3], [1, 3, 2]]

_ICOSA_FACES = [
    [0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
    [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
    [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
    [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1],
]  # fmt: skip


def tetrahedron(side: float = 1.0) -> TriMesh:
    """Regular tetrahedron with edge length `side`, centered at the origin."""
    verts = np.array(
        [[1.0, 1.0, 1.0], [1.0, -1.0, -1.0], [-1.0, 1.0, -1.0], [-1.0, -1.0, 1.0]]
    )
    verts *= side / (2.0 * np.sqrt(2.0))
    return TriMesh(verts, _TETRA_FACES)


def _icosahedron_arrays(radius: float) -> Tuple[np.ndarray, np.ndarray]:
    t = (1.0 + np.sqrt(5.0)) / 2.0
    verts = np.array(
        [
            [-1, t, 0], [1, t, 0], [-1, -t, 0], [1, -t, 0],
            [0, -1, t], [0, 1, t], [0, -1, -t], [0, 1, -t],
            [t, 0, -1], [t, 0, 1], [-t, 0, -1], [-t, 0, 1],
        ],
        dtype=float,
    )  # fmt: skip
    verts *= radius / np.linalg.norm(verts[0])
    return verts, np.array(_ICOSA_FACES, dtype=np.int64)


def icosahedron(radius: float = 1.0) -> TriMesh:
    """Regular icosahedron inscribed in a sphere of the given radius."""
    verts, faces = _icosahedron_arrays(radius)
    return TriMesh(verts, faces)


def icosphere(subdivisions: int = 2, radius: float = 1.0) -> TriMesh:
    """Sphere approximation by repeated 1-to-4 subdivision of an icosahedron.

    Every new midpoint is pushed onto the sphere. After ``k`` subdivisions
    the mesh has ``10 * 4**k + 2`` vertices and ``20 * 4**k`` faces.

    Args:
        subdivisions (int): Number of refinement rounds (>= 0).
        radius (float): Sphere radius.

    Returns:
        TriMesh: The subdivided sphere.
    """
    if subdivisions < 0:
        raise ValueError(f"subdivisions must be >= 0; got {subdivisions}")

    verts_arr, faces_arr = _icosahedron_arrays(radius)
    verts: List[np.ndarray] = list(verts_arr)
    faces = faces_arr.tolist()

    for _ in range(subdivisions):
        midpoint: Dict[Tuple[int, int], int] = {}

        def mid(a: int, b: int) -> int:
            key = (a, b) if a < b else (b, a)
            idx = midpoint.get(key)
            if idx is None:
                p = 0.5 * (verts[a] + verts[b])
                verts.append(p * (radius / np.linalg.norm(p)))
                idx = len(verts) - 1
                midpoint[key] = idx
            return idx

        refined = []
        for a, b, c in faces:
            ab, bc, ca = mid(a, b), mid(b, c), mid(c, a)
            refined.extend([[a, ab, ca], [b, bc, ab], [c, ca, bc], [ab, bc, ca]])
        faces = refined

    _LOGGER.debug(
        "icosphere: subdivisions=%d -> %d vertices, %d faces",
        subdivisions,
        len(verts),
        len(faces),
    )
    return TriMesh(np.asarray(verts), faces)


def grid(nx: int, ny: int, size: Tuple[float, float] = (1.0, 1.0)) -> TriMesh:
    """Planar rectangular grid in the z=0 plane.

    Vertex ``(i, j)`` (``0 <= i <= nx``, ``0 <= j <= ny``) has index
    ``j * (nx + 1) + i`` and sits at ``(i * size[0] / nx, j * size[1] / ny)``.
    Each cell is split along the diagonal from ``(i, j)`` to ``(i+1, j+1)``.
    """
    if nx < 1 or ny < 1:
        raise ValueError(f"grid needs at least one cell per axis; got {nx}x{ny}")
    xs = np.linspace(0.0, size[0], nx + 1)
    ys = np.linspace(0.0, size[1], ny + 1)
    X, Y = np.meshgrid(xs, ys)
    verts = np.column_stack((X.ravel(), Y.ravel(), np.zeros(X.size)))

    i, j = np.meshgrid(np.arange(nx), np.arange(ny))
    v00 = (j * (nx + 1) + i).ravel()
    v10 = v00 + 1
    v01 = v00 + (nx + 1)
    v11 = v01 + 1
    faces = np.concatenate(
        (np.column_stack((v00, v10, v11)), np.column_stack((v00, v11, v01)))
    )
    return TriMesh(verts, faces)


def hexagonal_disk(rings: int = 1, spacing: float = 1.0) -> TriMesh:
    """Flat hexagon of equilateral triangles around a center vertex.

    Lattice point ``(a, b)`` sits at ``spacing * (a + b/2, b * sqrt(3)/2)``
    and is kept when its hexagonal distance ``max(|a|, |b|, |a + b|)`` is at
    most `rings`. ``rings=1`` gives the six-triangle fan around vertex 0.
    Vertices are ordered by ring, the center first.
    """
    if rings < 1:
        raise ValueError(f"rings must be >= 1; got {rings}")

    def ring_of(a: int, b: int) -> int:
        return max(abs(a), abs(b), abs(a + b))

    lattice = [
        (a, b)
        for a in range(-rings, rings + 1)
        for b in range(-rings, rings + 1)
        if ring_of(a, b) <= rings
    ]
    lattice.sort(key=lambda ab: (ring_of(*ab), ab))
    index = {ab: k for k, ab in enumerate(lattice)}

    faces = []
    # anchors outside the hexagon still own triangles that lie inside it
    span = range(-rings - 1, rings + 1)
    anchors = [(a, b) for a in span for b in span]
    for a, b in anchors:
        up = ((a, b), (a + 1, b), (a, b + 1))
        down = ((a + 1, b), (a + 1, b + 1), (a, b + 1))
        for tri in (up, down):
            if all(p in index for p in tri):
                faces.append([index[p] for p in tri])

    lat = np.asarray(lattice, dtype=float)
    verts = np.column_stack(
        (
            spacing * (lat[:, 0] + 0.5 * lat[:, 1]),
            spacing * (np.sqrt(3.0) / 2.0) * lat[:, 1],
            np.zeros(len(lattice)),
        )
    )
    return TriMesh(verts, faces)
