"""Unit tests for the mass, Laplacian, gradient and divergence operators."""

import logging

import numpy as np
import pytest
import scipy.sparse as sp
from numpy.testing import assert_allclose

from heat_geodesic import shapes
from heat_geodesic.errors import DegenerateGeometryError, NonManifoldTopologyError
from heat_geodesic.mesh import TriMesh
from heat_geodesic.operators import (
    average_edge_length,
    build_cotan_laplacian,
    build_mass_matrix,
    compute_divergence,
    compute_face_areas,
    compute_gradient,
    corner_cotangents,
    diffusion_timestep,
    normalize_field,
)


@pytest.fixture
def sliver_mesh():
    """A good triangle plus a collinear one sharing edge (0, 1)."""
    verts = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [2.0, 0.0, 0.0]])
    return TriMesh(verts, [[0, 1, 2], [0, 3, 1]])


# ----------------------------------------------------------------------------- mass


def test_face_areas(simple_triangle_mesh, sphere):
    assert_allclose(compute_face_areas(simple_triangle_mesh), [0.5])

    p0, p1, p2 = sphere.face_corners()
    expected = 0.5 * np.linalg.norm(np.cross(p1 - p0, p2 - p0), axis=1)
    assert_allclose(compute_face_areas(sphere), expected, rtol=1e-10)


def test_mass_matrix_single_triangle(simple_triangle_mesh):
    M, areas = build_mass_matrix(simple_triangle_mesh)

    assert sp.issparse(M)
    assert M.shape == (3, 3)
    assert_allclose(M.toarray(), np.eye(3) / 6.0)
    assert_allclose(areas, [0.5])


def test_mass_matrix_sums_to_total_area(sphere, disk):
    for mesh in (sphere, disk):
        M, areas = build_mass_matrix(mesh)
        diag = M.diagonal()
        assert (diag > 0).all()
        assert M.nnz == mesh.n_verts
        assert_allclose(diag.sum(), areas.sum(), rtol=1e-12)


def test_mass_matrix_unreferenced_vertex_raises():
    verts = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [3.0, 3.0, 0.0]])
    mesh = TriMesh(verts, [[0, 1, 2]])
    with pytest.raises(DegenerateGeometryError):
        build_mass_matrix(mesh)


def test_mass_matrix_degenerate_only_vertex_raises(sliver_mesh, caplog):
    # vertex 3 only touches the collinear face
    with caplog.at_level(logging.WARNING, logger="heat_geodesic.operators"):
        with pytest.raises(DegenerateGeometryError):
            build_mass_matrix(sliver_mesh)
    assert "degenerate" in caplog.text


# ------------------------------------------------------------------------ laplacian


def test_corner_cotangents_right_triangle(simple_triangle_mesh):
    cots = corner_cotangents(simple_triangle_mesh)
    assert_allclose(cots, [[0.0, 1.0, 1.0]], atol=1e-15)


def test_corner_cotangents_degenerate_face_zeroed(sliver_mesh):
    cots = corner_cotangents(sliver_mesh)
    assert np.isfinite(cots).all()
    assert_allclose(cots[1], 0.0)


def test_laplacian_single_triangle_one_sided(simple_triangle_mesh):
    L = build_cotan_laplacian(simple_triangle_mesh)
    expected = np.array(
        [
            [-1.0, 0.5, 0.5],
            [0.5, -0.5, 0.0],
            [0.5, 0.0, -0.5],
        ]
    )
    assert_allclose(L.toarray(), expected, atol=1e-15)


def test_laplacian_interior_edge_averages_cotangents(two_triangle_square):
    L = build_cotan_laplacian(two_triangle_square).toarray()
    # diagonal (0, 2) is opposite two right angles
    assert_allclose(L[0, 2], 0.0, atol=1e-15)
    # boundary edges see a single 45 degree angle
    assert_allclose(L[0, 1], 0.5)
    assert_allclose(L[2, 3], 0.5)
    # (1, 3) is not an edge
    assert L[1, 3] == 0.0


def test_laplacian_symmetric_zero_row_sums(sphere, disk, plane):
    for mesh in (sphere, disk, plane):
        L = build_cotan_laplacian(mesh)
        assert L.shape == (mesh.n_verts, mesh.n_verts)
        assert abs(L - L.T).max() == 0.0
        assert_allclose(np.asarray(L.sum(axis=1)).ravel(), 0.0, atol=1e-12)


def test_laplacian_negative_semidefinite(sphere):
    L = build_cotan_laplacian(sphere).toarray()
    eigvals = np.linalg.eigvalsh(L)
    assert eigvals.max() < 1e-10
    # a single connected component: one zero eigenvalue
    assert np.count_nonzero(np.abs(eigvals) < 1e-10) == 1


def test_laplacian_linear_precision_in_plane():
    mesh = shapes.grid(5, 4, size=(2.0, 1.0))
    L = build_cotan_laplacian(mesh)
    phi = 3.0 * mesh.verts[:, 0] - 2.0 * mesh.verts[:, 1] + 1.0
    interior = np.setdiff1d(np.arange(mesh.n_verts), mesh.boundary_vertices())
    assert_allclose((L @ phi)[interior], 0.0, atol=1e-12)


def test_laplacian_reject_boundary(plane, icosahedron):
    with pytest.raises(NonManifoldTopologyError):
        build_cotan_laplacian(plane, boundary="reject")
    L = build_cotan_laplacian(icosahedron, boundary="reject")
    assert L.nnz == icosahedron.n_verts + 2 * 30


def test_laplacian_unknown_policy(plane):
    with pytest.raises(ValueError):
        build_cotan_laplacian(plane, boundary="dirichlet")


def test_laplacian_equilateral_weights(tetra):
    L = build_cotan_laplacian(tetra).toarray()
    w = 1.0 / np.sqrt(3.0)
    expected = w * (np.ones((4, 4)) - 4.0 * np.eye(4))
    assert_allclose(L, expected, rtol=1e-12)


# ------------------------------------------------------------------------ statistics


def test_average_edge_length(tetra):
    assert_allclose(average_edge_length(tetra), 1.0)
    assert_allclose(average_edge_length(shapes.tetrahedron(2.5)), 2.5)

    square = shapes.grid(1, 1)
    assert_allclose(average_edge_length(square), (2.0 + np.sqrt(2.0)) / 3.0)


def test_diffusion_timestep(tetra):
    assert_allclose(diffusion_timestep(tetra), 1.0)
    assert_allclose(diffusion_timestep(shapes.tetrahedron(2.0), m=0.5), 2.0)
    for bad in (0.0, -1.0, np.inf, np.nan):
        with pytest.raises(ValueError):
            diffusion_timestep(tetra, bad)


# -------------------------------------------------------------------------- gradient


def test_gradient_linear_field_planar(simple_triangle_mesh):
    mesh = simple_triangle_mesh
    u = 1.0 + 2.0 * mesh.verts[:, 0] + 3.0 * mesh.verts[:, 1]
    grad = compute_gradient(mesh, u, compute_face_areas(mesh))
    assert grad.shape == (1, 3)
    assert_allclose(grad, [[2.0, 3.0, 0.0]], atol=1e-12)


def test_gradient_linear_field_is_tangential_projection(sphere):
    a = np.array([0.3, -1.2, 0.7])
    u = sphere.verts @ a
    grad = compute_gradient(sphere, u, compute_face_areas(sphere))
    n = sphere.normals
    expected = a - (n @ a)[:, None] * n
    assert_allclose(grad, expected, atol=1e-10)
    assert_allclose(np.einsum("ij,ij->i", grad, n), 0.0, atol=1e-10)


def test_gradient_of_constant_is_zero(sphere, disk):
    for mesh in (sphere, disk):
        grad = compute_gradient(mesh, np.full(mesh.n_verts, 4.2), compute_face_areas(mesh))
        assert_allclose(grad, 0.0, atol=1e-12)


def test_gradient_degenerate_face_is_zero(sliver_mesh, caplog):
    areas = compute_face_areas(sliver_mesh)
    assert areas[1] == 0.0
    with caplog.at_level(logging.WARNING, logger="heat_geodesic.operators"):
        grad = compute_gradient(sliver_mesh, [0.0, 1.0, 2.0, 3.0], areas)
    assert np.isfinite(grad).all()
    assert_allclose(grad[1], 0.0)
    assert_allclose(grad[0], [1.0, 2.0, 0.0], atol=1e-12)
    assert "zero gradient" in caplog.text


def test_gradient_tiny_field_keeps_direction(simple_triangle_mesh):
    mesh = simple_triangle_mesh
    u = 1e-20 * (1.0 + 2.0 * mesh.verts[:, 0] + 3.0 * mesh.verts[:, 1])
    grad = compute_gradient(mesh, u, compute_face_areas(mesh))
    assert_allclose(grad, [[2e-20, 3e-20, 0.0]], rtol=1e-10, atol=0.0)


def test_gradient_flat_face_is_zero(simple_triangle_mesh, caplog):
    # values equal up to round-off carry no direction
    areas = compute_face_areas(simple_triangle_mesh)
    u = [1.0, 1.0 + 1e-14, 1.0 - 1e-14]
    with caplog.at_level(logging.DEBUG, logger="heat_geodesic.operators"):
        grad = compute_gradient(simple_triangle_mesh, u, areas)
    assert np.all(grad == 0.0)
    assert "flat face" in caplog.text

    grad = compute_gradient(simple_triangle_mesh, np.zeros(3), areas)
    assert np.all(grad == 0.0)


def test_gradient_shape_mismatch(simple_triangle_mesh):
    areas = compute_face_areas(simple_triangle_mesh)
    with pytest.raises(ValueError):
        compute_gradient(simple_triangle_mesh, [1.0, 2.0], areas)
    with pytest.raises(ValueError):
        compute_gradient(simple_triangle_mesh, [1.0, 2.0, 3.0], [0.5, 0.5])


# ------------------------------------------------------------------------- normalize


def test_normalize_field_unit_rows():
    X = np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 2.0]])
    out = normalize_field(X)
    assert_allclose(np.linalg.norm(out, axis=1), 1.0)
    assert_allclose(out[0], [0.6, 0.8, 0.0])


def test_normalize_field_degenerate_policies():
    X = np.array([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [1e-14, 0.0, 0.0]])
    with pytest.raises(DegenerateGeometryError):
        normalize_field(X)

    # only the exact zero row is degenerate by default
    out = normalize_field(X, on_degenerate="zero")
    assert_allclose(out, [[1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])

    out = normalize_field(X, on_degenerate="zero", tol=1e-12)
    assert_allclose(out, [[1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]])


def test_normalize_field_rows_judged_independently():
    X = np.array([[0.0, 3.0, 4.0], [1e-20, 0.0, 0.0], [0.0, -2e-200, 2e-200]])
    out = normalize_field(X)
    assert_allclose(np.linalg.norm(out, axis=1), 1.0)
    assert_allclose(out[0], [0.0, 0.6, 0.8])
    assert_allclose(out[1], [1.0, 0.0, 0.0])
    assert_allclose(out[2], [0.0, -np.sqrt(0.5), np.sqrt(0.5)])


def test_normalize_field_non_finite_row():
    X = np.array([[1.0, 0.0, 0.0], [np.nan, 0.0, 0.0], [np.inf, 1.0, 0.0]])
    out = normalize_field(X, on_degenerate="zero")
    assert_allclose(out, [[1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]])


def test_normalize_field_all_zero():
    out = normalize_field(np.zeros((4, 3)), on_degenerate="zero")
    assert_allclose(out, 0.0)


def test_normalize_field_bad_input():
    with pytest.raises(ValueError):
        normalize_field(np.ones((3, 2)))
    with pytest.raises(ValueError):
        normalize_field(np.ones((3, 3)), on_degenerate="skip")
    with pytest.raises(ValueError):
        normalize_field(np.ones((3, 3)), tol=-1.0)


# ------------------------------------------------------------------------ divergence


def test_divergence_of_zero_field(sphere):
    div = compute_divergence(sphere, np.zeros((sphere.n_faces, 3)))
    assert div.shape == (sphere.n_verts,)
    assert_allclose(div, 0.0)


def test_divergence_sums_to_zero(sphere, disk):
    rng = np.random.default_rng(0)
    for mesh in (sphere, disk):
        X = rng.normal(size=(mesh.n_faces, 3))
        div = compute_divergence(mesh, X)
        assert_allclose(div.sum(), 0.0, atol=1e-10)


def test_divergence_of_gradient_equals_laplacian(sphere, disk):
    rng = np.random.default_rng(1)
    for mesh in (sphere, disk):
        phi = rng.normal(size=mesh.n_verts)
        grad = compute_gradient(mesh, phi, compute_face_areas(mesh))
        L = build_cotan_laplacian(mesh)
        assert_allclose(compute_divergence(mesh, grad), L @ phi, atol=1e-10)


def test_divergence_constant_planar_field_vanishes_inside(plane):
    X = np.tile([1.0, 2.0, 0.0], (plane.n_faces, 1))
    div = compute_divergence(plane, X)
    interior = np.setdiff1d(np.arange(plane.n_verts), plane.boundary_vertices())
    assert_allclose(div[interior], 0.0, atol=1e-12)


def test_divergence_shape_mismatch(plane):
    with pytest.raises(ValueError):
        compute_divergence(plane, np.zeros((plane.n_faces + 1, 3)))
