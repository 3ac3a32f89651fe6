"""Discrete differential operators on triangle meshes.

This module provides:
  - Face areas (Heron) and the lumped mass matrix (one third of the incident
    area per vertex).
  - Corner cotangents and the cotangent Laplacian assembled from one-ring
    traversals.
  - Average edge length and the diffusion timestep derived from it.
  - Per-face gradient of a vertex scalar field, row-wise normalization of a
    face vector field, and per-vertex divergence of a face vector field.

Sign convention: the Laplacian has positive off-diagonal weights and a
negative diagonal (every row sums to zero), so it is negative semi-definite,
and ``compute_divergence(mesh, compute_gradient(mesh, phi, areas))`` equals
``L @ phi`` for every vertex field ``phi``.
"""
from __future__ import annotations

import logging
from typing import Any, Tuple
from numpy.typing import ArrayLike, NDArray

import numpy as np
import scipy.sparse as sp

from .config import tolerances
from .errors import DegenerateGeometryError, NonManifoldTopologyError
from .mesh import TriMesh
from .vector import cotan, dot

_LOGGER = logging.getLogger(__name__)


def compute_face_areas(mesh: TriMesh) -> NDArray[Any]:
    """Compute triangle areas with Heron's formula.

    Faces whose area falls below ``degenerate_area_tol`` times the largest
    area are reported and get an area of exactly 0.

    Args:
        mesh (TriMesh): Input mesh.

    Returns:
        NDArray[Any]: Areas, shape (n_faces,).
    """
    lengths = mesh.edge_lengths()
    a, b, c = lengths[:, 0], lengths[:, 1], lengths[:, 2]
    s = 0.5 * (a + b + c)
    # round-off can push the product slightly below zero for slivers
    areas = np.sqrt(np.maximum(s * (s - a) * (s - b) * (s - c), 0.0))

    max_area = float(np.max(areas))
    deg = areas <= tolerances().degenerate_area_tol * max_area
    if np.any(deg):
        _LOGGER.warning(
            "compute_face_areas: %d degenerate triangle(s) with near-zero area.",
            int(np.count_nonzero(deg)),
        )
        areas[deg] = 0.0

    _LOGGER.debug(
        "compute_face_areas: n=%d  min=%.6g  max=%.6g  total=%.6g",
        areas.size,
        float(np.min(areas)),
        max_area,
        float(np.sum(areas)),
    )
    return areas


def build_mass_matrix(mesh: TriMesh) -> Tuple[sp.csr_matrix, NDArray[Any]]:
    """Assemble the diagonal (lumped) mass matrix.

    ``M[i, i]`` is one third of the total area of the faces incident to
    vertex ``i``. The face areas are returned as well so later stages can use
    them without recomputing.

    Args:
        mesh (TriMesh): Input mesh.

    Returns:
        Tuple[sp.csr_matrix, NDArray[Any]]: (M, face_areas).

    Raises:
        DegenerateGeometryError: If some vertex has zero incident area.
    """
    areas = compute_face_areas(mesh)

    mass = np.zeros(mesh.n_verts, dtype=float)
    # every corner of a face receives a third of its area
    np.add.at(mass, mesh.faces.ravel(), np.repeat(areas / 3.0, 3))

    empty = np.flatnonzero(mass <= 0.0)
    if empty.size:
        _LOGGER.error(
            "build_mass_matrix: %d vertex(es) with zero incident area, first %s.",
            empty.size,
            empty[:5].tolist(),
        )
        raise DegenerateGeometryError(
            f"{empty.size} vertex(es) have zero dual-cell area "
            f"(e.g. {empty[:5].tolist()}); the heat system would be singular"
        )

    M = sp.diags(mass, format="csr")
    _LOGGER.debug(
        "build_mass_matrix: n=%d  min=%.6g  max=%.6g  trace=%.6g",
        mass.size,
        float(mass.min()),
        float(mass.max()),
        float(mass.sum()),
    )
    return M, areas


def corner_cotangents(mesh: TriMesh) -> NDArray[Any]:
    """Cotangent of the interior angle at every face corner, shape (n_faces, 3).

    Corners of degenerate faces get 0 so that they drop out of the Laplacian
    and the divergence.
    """
    p = mesh.face_corners()
    cots = np.empty((mesh.n_faces, 3), dtype=float)
    for k in range(3):
        cots[:, k] = cotan(p[(k + 1) % 3] - p[k], p[(k + 2) % 3] - p[k])

    bad = ~np.all(np.isfinite(cots), axis=1)
    areas2 = np.linalg.norm(np.cross(p[1] - p[0], p[2] - p[0]), axis=1)
    bad |= areas2 <= tolerances().degenerate_area_tol * float(np.max(areas2))
    if np.any(bad):
        _LOGGER.warning(
            "corner_cotangents: %d degenerate triangle(s); their cotangents set to 0.",
            int(np.count_nonzero(bad)),
        )
        cots[bad] = 0.0
    return cots


def build_cotan_laplacian(mesh: TriMesh, *, boundary: str = "neumann") -> sp.csr_matrix:
    """Assemble the symmetric cotangent Laplacian.

    Each vertex's one-ring is walked in angular order; for every incident
    corner the two edges leaving the vertex receive half the cotangent of the
    angle opposite them. Interior edges therefore get ``(cot a + cot b) / 2``
    and boundary edges the one-sided ``cot a / 2``. The diagonal is set to the
    negated off-diagonal row sum.

    Args:
        mesh (TriMesh): Input mesh with current topology.
        boundary (str): "neumann" accepts open one-rings, "reject" raises on them.

    Returns:
        sp.csr_matrix: L, shape (n_verts, n_verts).

    Raises:
        NonManifoldTopologyError: On non-manifold vertices, or on boundary
            vertices when `boundary` is "reject".
    """
    if boundary not in ("neumann", "reject"):
        raise ValueError(f"boundary must be 'neumann' or 'reject'; got {boundary!r}")

    n = mesh.n_verts
    faces = mesh.faces
    cots = corner_cotangents(mesh)

    rows: list[int] = []
    cols: list[int] = []
    data: list[float] = []
    n_open = 0

    for v in range(n):
        ring = mesh.one_ring(v)
        if not ring.closed:
            if boundary == "reject":
                _LOGGER.error("build_cotan_laplacian: vertex %d lies on a boundary.", v)
                raise NonManifoldTopologyError(
                    f"One-ring of vertex {v} is open (boundary) and boundaries are rejected"
                )
            n_open += 1
        for f, c in ring.corners:
            nxt = (c + 1) % 3
            prv = (c + 2) % 3
            rows.extend((v, v))
            cols.extend((int(faces[f, nxt]), int(faces[f, prv])))
            data.extend((0.5 * cots[f, prv], 0.5 * cots[f, nxt]))

    # duplicates (one per incident face) are summed on conversion
    off = sp.coo_matrix((data, (rows, cols)), shape=(n, n), dtype=float).tocsr()
    diag = -np.asarray(off.sum(axis=1)).ravel()
    L = (off + sp.diags(diag)).tocsr()

    _LOGGER.debug(
        "build_cotan_laplacian: n=%d nnz=%d open_rings=%d boundary=%s",
        n,
        L.nnz,
        n_open,
        boundary,
    )
    return L


def average_edge_length(mesh: TriMesh) -> float:
    """Mean edge length, counting every edge once per incident face.

    Returns:
        float: ``sum(perimeter / 2) / (1.5 * n_faces)``.
    """
    half_perimeters = mesh.edge_lengths().sum(axis=1) / 2.0
    return float(half_perimeters.sum() / (1.5 * mesh.n_faces))


def diffusion_timestep(mesh: TriMesh, m: float = 1.0) -> float:
    """Return ``m * h**2`` with ``h`` the average edge length.

    Raises:
        ValueError: If `m` is not positive and finite.
    """
    if not (np.isfinite(m) and m > 0.0):
        raise ValueError(f"m must be positive and finite; got {m!r}")
    h = average_edge_length(mesh)
    t = float(m) * h * h
    _LOGGER.debug("diffusion_timestep: h=%.6g m=%.6g t=%.6g", h, m, t)
    return t


def compute_gradient(
    mesh: TriMesh, u: ArrayLike, face_areas: ArrayLike
) -> NDArray[Any]:
    """Compute the gradient of a vertex scalar field on every face.

    For a face with unit normal ``n``, area ``A`` and edge vectors ``e_k``
    opposite its corners (in winding order),
    ``grad u = sum_k u_k (n x e_k) / (2 A)``. The result lies in the face
    plane and is exact for fields linear over the face. Degenerate faces get
    the zero vector, and so do flat faces, whose three values differ by at
    most ``flat_face_tol`` times their own largest magnitude. Flatness is
    judged per face so that faces far from a heat source, where ``u`` is tiny
    but still varies, keep their gradient.

    Args:
        mesh (TriMesh): Input mesh with current normals.
        u (ArrayLike): Vertex values, shape (n_verts,).
        face_areas (ArrayLike): Face areas from `build_mass_matrix`.

    Returns:
        NDArray[Any]: Gradients, shape (n_faces, 3).
    """
    u_arr = np.asarray(u, dtype=float).reshape(-1)
    areas = np.asarray(face_areas, dtype=float).reshape(-1)
    if u_arr.shape[0] != mesh.n_verts:
        raise ValueError(
            f"compute_gradient: field length {u_arr.shape[0]} != n_verts {mesh.n_verts}"
        )
    if areas.shape[0] != mesh.n_faces:
        raise ValueError(
            f"compute_gradient: face_areas length {areas.shape[0]} != n_faces {mesh.n_faces}"
        )

    e = mesh.edge_vectors()  # (F, 3, 3)
    rotated = np.cross(mesh.normals[:, None, :], e)  # n x e_k, (F, 3, 3)
    u_f = u_arr[mesh.faces]
    weighted = np.einsum("fk,fkj->fj", u_f, rotated)

    spread = np.ptp(u_f, axis=1)
    flat = spread <= tolerances().flat_face_tol * np.max(np.abs(u_f), axis=1)

    valid = areas > 0.0
    keep = valid & ~flat
    grad = np.zeros((mesh.n_faces, 3), dtype=float)
    grad[keep] = weighted[keep] / (2.0 * areas[keep])[:, None]

    if not np.all(valid):
        _LOGGER.warning(
            "compute_gradient: %d degenerate face(s) given a zero gradient.",
            int(np.count_nonzero(~valid)),
        )
    if np.any(flat & valid):
        _LOGGER.debug(
            "compute_gradient: %d flat face(s) given a zero gradient.",
            int(np.count_nonzero(flat & valid)),
        )
    _LOGGER.debug(
        "compute_gradient: faces=%d max|grad|=%.6g",
        mesh.n_faces,
        float(np.max(np.linalg.norm(grad, axis=1))),
    )
    return grad


def normalize_field(
    field: ArrayLike,
    *,
    on_degenerate: str = "raise",
    tol: float = 0.0,
) -> NDArray[Any]:
    """Scale every row of a face vector field to unit length.

    A row is degenerate when its norm is non-finite or not larger than `tol`.
    Rows are judged on their own, never against the other rows, so a field
    whose magnitudes span many orders keeps every direction.

    Args:
        field (ArrayLike): Vectors, shape (n, 3).
        on_degenerate (str): "raise" or "zero" (degenerate rows become 0).
        tol (float): Absolute norm threshold; by default only exact zeros
            are degenerate.

    Returns:
        NDArray[Any]: Unit vectors (or zero rows), shape (n, 3).

    Raises:
        DegenerateGeometryError: If a row is degenerate and `on_degenerate`
            is "raise".
    """
    if on_degenerate not in ("raise", "zero"):
        raise ValueError(f"on_degenerate must be 'raise' or 'zero'; got {on_degenerate!r}")
    X = np.asarray(field, dtype=float)
    if X.ndim != 2 or X.shape[1] != 3:
        raise ValueError(f"normalize_field: expected shape (n, 3); got {X.shape}")
    if not tol >= 0.0:
        raise ValueError(f"normalize_field: tol must be >= 0; got {tol!r}")

    # rows are rescaled by their largest entry so tiny vectors do not underflow
    amax = np.max(np.abs(X), axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        scaled = X / amax[:, None]
        unit_mag = np.linalg.norm(scaled, axis=1)
        mag = amax * unit_mag
    bad = ~np.isfinite(mag) | (mag <= tol)

    out = np.zeros_like(X)
    good = ~bad
    out[good] = scaled[good] / unit_mag[good][:, None]

    if np.any(bad):
        count = int(np.count_nonzero(bad))
        if on_degenerate == "raise":
            _LOGGER.error("normalize_field: %d row(s) with zero norm.", count)
            raise DegenerateGeometryError(
                f"{count} vector(s) have zero length and cannot be normalized "
                f"(first index {int(np.flatnonzero(bad)[0])})"
            )
        _LOGGER.warning("normalize_field: %d zero-norm row(s) set to 0.", count)
    return out


def compute_divergence(mesh: TriMesh, field: ArrayLike) -> NDArray[Any]:
    """Compute the integrated divergence of a face vector field at every vertex.

    For a vertex ``v`` at corner ``c`` of a face with field value ``X``, let
    ``e1`` and ``e2`` be the edges from ``v`` to the next and previous corners
    and ``theta1``, ``theta2`` the angles opposite them. The corner
    contributes ``(cot(theta1) * e1.X + cot(theta2) * e2.X) / 2`` and the
    contributions of all corners around ``v`` are summed.

    Args:
        mesh (TriMesh): Input mesh.
        field (ArrayLike): Face vectors, shape (n_faces, 3).

    Returns:
        NDArray[Any]: Divergence, shape (n_verts,).
    """
    X = np.asarray(field, dtype=float)
    if X.shape != (mesh.n_faces, 3):
        raise ValueError(
            f"compute_divergence: expected shape ({mesh.n_faces}, 3); got {X.shape}"
        )

    p = mesh.face_corners()
    cots = corner_cotangents(mesh)
    div = np.zeros(mesh.n_verts, dtype=float)

    for c in range(3):
        nxt = (c + 1) % 3
        prv = (c + 2) % 3
        e1 = p[nxt] - p[c]
        e2 = p[prv] - p[c]
        contrib = 0.5 * (cots[:, prv] * dot(e1, X) + cots[:, nxt] * dot(e2, X))
        np.add.at(div, mesh.faces[:, c], contrib)

    _LOGGER.debug(
        "compute_divergence: verts=%d min=%.6g max=%.6g sum=%.3e",
        mesh.n_verts,
        float(div.min()),
        float(div.max()),
        float(div.sum()),
    )
    return div
