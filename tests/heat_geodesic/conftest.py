from __future__ import annotations
import pytest

import numpy as np

import heat_geodesic as hg
from heat_geodesic import shapes
from heat_geodesic.mesh import TriMesh


@pytest.fixture(autouse=True)
def _restore_tolerances():
    """Each test starts and ends with the environment default tolerances."""
    hg.reset()
    yield
    hg.reset()


@pytest.fixture
def simple_triangle_mesh():
    """
    Provides a TriMesh with a single right triangle:
        v0 = [0, 0, 0]
        v1 = [1, 0, 0]
        v2 = [0, 1, 0]
    """
    verts = np.array(
        [
            [0.0, 0.0, 0.0],  # v0
            [1.0, 0.0, 0.0],  # v1
            [0.0, 1.0, 0.0],  # v2
        ]
    )
    faces = np.array([[0, 1, 2]])  # One triangle
    return TriMesh(verts, faces)


@pytest.fixture
def two_triangle_square():
    """
    Unit square split into two triangles along the diagonal (0-2):
      v3 (0,1) ---- v2 (1,1)
        |          /   |
        |       /      |
        |    /         |
      v0 (0,0) ---- v1 (1,0)
    """
    verts = np.array(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
    )
    faces = np.array([[0, 1, 2], [0, 2, 3]])
    return TriMesh(verts, faces)


@pytest.fixture
def tetra():
    """Regular tetrahedron with unit edges."""
    return shapes.tetrahedron(1.0)


@pytest.fixture
def icosahedron():
    return shapes.icosahedron()


@pytest.fixture
def sphere():
    """Icosphere with 162 vertices on the unit sphere."""
    return shapes.icosphere(2)


@pytest.fixture
def disk():
    """Flat hexagonal disk with two rings of equilateral triangles."""
    return shapes.hexagonal_disk(2)


@pytest.fixture
def plane():
    """6x6 planar grid on the unit square."""
    return shapes.grid(6, 6)
