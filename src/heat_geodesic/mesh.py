"""Module defining the TriMesh class for 3D triangular surface meshes.

This module provides:
  - Construction from vertex and face arrays, with index validation.
  - Per-face unit normals, edge vectors and edge lengths.
  - Vertex-face and face-face adjacency, boundary edge detection.
  - Angular one-ring traversal around a vertex.

It is the mesh collaborator consumed by the heat-method operators.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, NamedTuple, Tuple
from numpy.typing import ArrayLike, NDArray

import numpy as np

from .errors import NonManifoldTopologyError

_LOGGER = logging.getLogger(__name__)


class OneRing(NamedTuple):
    """Faces around a vertex in angular order.

    Attributes:
        vertex: The center vertex.
        corners: ``(face, corner)`` pairs; ``faces[face, corner] == vertex``.
        closed: False when the walk ran into boundary edges on both sides.
    """

    vertex: int
    corners: List[Tuple[int, int]]
    closed: bool


class TriMesh:
    """Handle 3D triangular surface meshes.

    Vertices and faces are addressed by dense integer indices. Faces must list
    their vertices in a uniform winding order (counter-clockwise seen from
    outside); the gradient operator relies on it.

    Args:
        verts (ArrayLike): Vertex coordinates (n_verts×3).
        faces (ArrayLike): Triangle vertex indices (n_faces×3).

    Attributes:
        verts (NDArray[Any]): Vertex array, shape (n_verts, 3).
        faces (NDArray[Any]): Triangle indices, shape (n_faces, 3).
        normals (NDArray[Any]): Unit face normals, shape (n_faces, 3).
        vertex_faces (List[List[Tuple[int, int]]]): Vertex→[(face, corner)].
        face_faces (NDArray[Any]): Face across edge ``(faces[f, k],
            faces[f, (k + 1) % 3])``, or -1 on a boundary; shape (n_faces, 3).
        boundary_edges (List[Tuple[int, int]]): Edges used by exactly one face.
    """

    verts: NDArray[Any]
    faces: NDArray[Any]
    normals: NDArray[Any]
    vertex_faces: List[List[Tuple[int, int]]]
    face_faces: NDArray[Any]
    boundary_edges: List[Tuple[int, int]]

    def __init__(self, verts: ArrayLike, faces: ArrayLike) -> None:
        """Initialize mesh from vertex and face arrays.

        Raises:
            ValueError: If array shapes or face indices are invalid.
            NonManifoldTopologyError: If an edge is shared by more than two faces.
        """
        verts_arr = np.array(verts, dtype=float)
        faces_arr = np.array(faces, dtype=np.int64)

        if verts_arr.ndim != 2 or verts_arr.shape[1] != 3:
            raise ValueError(f"verts must be (n_verts, 3); got {verts_arr.shape}")
        if faces_arr.ndim != 2 or faces_arr.shape[1] != 3:
            raise ValueError(f"faces must be (n_faces, 3); got {faces_arr.shape}")
        if faces_arr.shape[0] == 0 or verts_arr.shape[0] == 0:
            raise ValueError("TriMesh: empty mesh (no vertices or no faces).")
        if not np.all(np.isfinite(verts_arr)):
            raise ValueError("TriMesh: vertex coordinates must be finite.")
        if (faces_arr < 0).any() or (faces_arr >= verts_arr.shape[0]).any():
            _LOGGER.error("TriMesh: faces contain out-of-range vertex indices.")
            raise ValueError("Faces contain out-of-range vertex indices.")

        repeated = (
            (faces_arr[:, 0] == faces_arr[:, 1])
            | (faces_arr[:, 1] == faces_arr[:, 2])
            | (faces_arr[:, 2] == faces_arr[:, 0])
        )
        if np.any(repeated):
            _LOGGER.error(
                "TriMesh: %d face(s) reference the same vertex twice.",
                int(np.count_nonzero(repeated)),
            )
            raise ValueError("Faces must reference three distinct vertices.")

        self.verts = verts_arr
        self.faces = faces_arr

        self.update_normals()
        self.update_topology()

        _LOGGER.info(
            "TriMesh initialized with %d vertices and %d triangles",
            self.n_verts,
            self.n_faces,
        )

    def __repr__(self) -> str:
        """Return a string representation of the mesh."""
        return (
            f"TriMesh(n_verts={self.n_verts}, n_faces={self.n_faces}, "
            f"n_boundary_edges={len(self.boundary_edges)})"
        )

    @property
    def n_verts(self) -> int:
        """Number of vertices."""
        return int(self.verts.shape[0])

    @property
    def n_faces(self) -> int:
        """Number of triangles."""
        return int(self.faces.shape[0])

    @property
    def is_closed(self) -> bool:
        """True when no edge lies on a boundary."""
        return not self.boundary_edges

    # ------------------------------------------------------------------ geometry

    def face_corners(self) -> Tuple[NDArray[Any], NDArray[Any], NDArray[Any]]:
        """Return the positions of corners 0, 1 and 2 of every face."""
        return (
            self.verts[self.faces[:, 0]],
            self.verts[self.faces[:, 1]],
            self.verts[self.faces[:, 2]],
        )

    def edge_vectors(self) -> NDArray[Any]:
        """Edge vectors opposite each corner, shape (n_faces, 3, 3).

        ``e[:, k] = p_{k+2} - p_{k+1}`` (indices mod 3), so that the three
        edges run around the face in winding order.
        """
        p0, p1, p2 = self.face_corners()
        return np.stack((p2 - p1, p0 - p2, p1 - p0), axis=1)

    def edge_lengths(self) -> NDArray[Any]:
        """Lengths of the edges opposite each corner, shape (n_faces, 3)."""
        return np.linalg.norm(self.edge_vectors(), axis=2)

    def update_normals(self) -> None:
        """Compute unit face normals and store them in `self.normals`."""
        p0, p1, p2 = self.face_corners()
        n = np.cross(p1 - p0, p2 - p0)
        nn = np.linalg.norm(n, axis=1)
        safe = np.where(nn > 0.0, nn, 1.0)
        normals = n / safe[:, None]

        deg_mask = nn <= 0.0
        if np.any(deg_mask):
            # Zero-out degenerate triangle normals to avoid NaNs
            normals[deg_mask] = 0.0
            _LOGGER.warning(
                "update_normals: %d degenerate triangle(s) with zero area; normals set to 0.",
                int(np.count_nonzero(deg_mask)),
            )

        self.normals = normals
        _LOGGER.debug("update_normals: computed %d face normals", self.n_faces)

    # ------------------------------------------------------------------ topology

    def update_topology(self) -> None:
        """Build vertex-face and face-face adjacency and find boundary edges.

        Raises:
            NonManifoldTopologyError: If an edge is shared by more than two faces.
        """
        n_verts = self.n_verts
        n_faces = self.n_faces

        vertex_faces: List[List[Tuple[int, int]]] = [[] for _ in range(n_verts)]
        edge_uses: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}

        for f in range(n_faces):
            tri = [int(i) for i in self.faces[f]]
            for k in range(3):
                vertex_faces[tri[k]].append((f, k))
                a, b = tri[k], tri[(k + 1) % 3]
                key = (a, b) if a < b else (b, a)
                edge_uses.setdefault(key, []).append((f, k))

        face_faces = np.full((n_faces, 3), -1, dtype=np.int64)
        boundary_edges: List[Tuple[int, int]] = []
        nonmanifold_edges: List[Tuple[int, int]] = []
        misoriented = 0

        for key, uses in edge_uses.items():
            if len(uses) == 1:
                boundary_edges.append(key)
            elif len(uses) == 2:
                (f1, k1), (f2, k2) = uses
                face_faces[f1, k1] = f2
                face_faces[f2, k2] = f1
                # consistent winding traverses a shared edge in opposite directions
                if self.faces[f1, k1] == self.faces[f2, k2]:
                    misoriented += 1
            else:
                nonmanifold_edges.append(key)

        if nonmanifold_edges:
            _LOGGER.error(
                "update_topology: %d non-manifold edge(s) (used by >2 faces), first %s.",
                len(nonmanifold_edges),
                nonmanifold_edges[0],
            )
            raise NonManifoldTopologyError(
                f"{len(nonmanifold_edges)} edge(s) are shared by more than two faces, "
                f"e.g. {nonmanifold_edges[0]}"
            )

        if misoriented:
            _LOGGER.warning(
                "update_topology: %d interior edge(s) with inconsistent winding; "
                "gradients will have wrong signs on the affected faces.",
                misoriented,
            )

        self.vertex_faces = vertex_faces
        self.face_faces = face_faces
        self.boundary_edges = boundary_edges

        _LOGGER.debug(
            "update_topology: faces=%d -> edges=%d, boundary_edges=%d.",
            n_faces,
            len(edge_uses),
            len(boundary_edges),
        )

    def boundary_vertices(self) -> NDArray[Any]:
        """Sorted indices of the vertices touching a boundary edge."""
        if not self.boundary_edges:
            return np.zeros(0, dtype=np.int64)
        return np.unique(np.asarray(self.boundary_edges, dtype=np.int64).ravel())

    def _across(self, f: int, a: int, b: int) -> int:
        """Return the face sharing edge {a, b} with face `f` (or -1)."""
        tri = self.faces[f]
        for k in range(3):
            u, w = int(tri[k]), int(tri[(k + 1) % 3])
            if (u == a and w == b) or (u == b and w == a):
                return int(self.face_faces[f, k])
        raise ValueError(f"Edge ({a}, {b}) is not an edge of face {f}")

    def _third(self, f: int, a: int, b: int) -> int:
        """Return the vertex of face `f` that is neither `a` nor `b`."""
        for w in self.faces[f]:
            if w != a and w != b:
                return int(w)
        raise ValueError(f"Face {f} has no vertex besides {a} and {b}")

    def _walk(
        self, v: int, start: int, exit_vertex: int, corner_of: Dict[int, int]
    ) -> Tuple[List[Tuple[int, int]], bool]:
        """Cross edges around `v` starting from `start` through (v, exit_vertex).

        Returns the faces reached after `start` and whether the walk came back
        to `start`.
        """
        corners: List[Tuple[int, int]] = []
        f, w = start, exit_vertex
        while True:
            g = self._across(f, v, w)
            if g < 0:
                return corners, False
            if g == start:
                return corners, True
            if g not in corner_of or len(corners) >= len(corner_of):
                _LOGGER.error("one_ring(%d): walk left the vertex star at face %d.", v, g)
                raise NonManifoldTopologyError(
                    f"One-ring walk around vertex {v} does not stay in its star"
                )
            corners.append((g, corner_of[g]))
            w = self._third(g, v, w)
            f = g

    def one_ring(self, v: int) -> OneRing:
        """Enumerate the faces around vertex `v` in angular order.

        The walk starts at the first incident face and repeatedly crosses the
        edge shared with the next face until it returns to the start. If it
        reaches a boundary edge, it walks the other way from the start and the
        two halves are joined, giving an open fan ordered from one boundary
        edge to the other.

        Args:
            v (int): Vertex index.

        Returns:
            OneRing: Ordered ``(face, corner)`` pairs and whether the fan closes.

        Raises:
            NonManifoldTopologyError: If `v` has no incident face, or its
                incident faces do not form a single fan.
        """
        incident = self.vertex_faces[v]
        if not incident:
            _LOGGER.error("one_ring(%d): isolated vertex.", v)
            raise NonManifoldTopologyError(f"Vertex {v} has no incident face")

        corner_of = {f: c for f, c in incident}
        start_f, start_c = incident[0]
        tri = self.faces[start_f]
        nxt = int(tri[(start_c + 1) % 3])
        prv = int(tri[(start_c + 2) % 3])

        forward, closed = self._walk(v, start_f, nxt, corner_of)
        corners = [(start_f, start_c)] + forward
        if not closed:
            backward, back_closed = self._walk(v, start_f, prv, corner_of)
            if back_closed:
                raise NonManifoldTopologyError(
                    f"One-ring walk around vertex {v} is inconsistent"
                )
            corners = list(reversed(backward)) + corners

        if len(corners) != len(incident):
            _LOGGER.error(
                "one_ring(%d): walk reached %d of %d incident faces (multiple fans).",
                v,
                len(corners),
                len(incident),
            )
            raise NonManifoldTopologyError(
                f"Faces around vertex {v} form more than one fan "
                f"({len(corners)} of {len(incident)} reached)"
            )

        return OneRing(vertex=v, corners=corners, closed=closed)
