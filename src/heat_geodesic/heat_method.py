"""Heat-method geodesic distance on triangle meshes.

The pipeline follows Crane, Weischedel and Wardetzky, "Geodesics in Heat":

  1. Integrate the heat flow ``(M - t L) u = u0`` for a short time
     ``t = m * h**2``.
  2. Evaluate the normalized direction field ``X = -grad u / |grad u|``.
  3. Solve the Poisson equation ``L phi = div X``.

``L`` is singular (constants lie in its kernel), so ``phi`` is fixed at the
vertex carrying the largest initial heat and the SPD system ``-L_aa phi_a =
-div_a`` is solved on the remaining vertices.

`HeatMethod` caches the operators and factorizations of a fixed mesh so that
repeated queries with different sources only pay for the two back-solves.
`compute_geodesic_distance` is the one-shot version.
"""
from __future__ import annotations

import copy
import logging
from types import TracebackType
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type
from numpy.typing import ArrayLike, NDArray

import numpy as np
import scipy.sparse as sp

from .mesh import TriMesh
from .observers import Observer, StageEvent
from .operators import (
    build_cotan_laplacian,
    build_mass_matrix,
    compute_divergence,
    compute_gradient,
    diffusion_timestep,
    normalize_field,
)
from .parameters import Parameters
from .solver import SPDFactorization

_LOGGER = logging.getLogger(__name__)


class HeatMethod:
    """Reusable heat-method distance solver for one mesh.

    Args:
        mesh (TriMesh): Surface mesh. Its topology and normals are refreshed
            on the first query and must not change afterwards (call `reset`
            if they do).
        params (Optional[Parameters]): Algorithm settings; defaults to
            `Parameters()`.
        observers (Optional[Iterable[Observer]]): Stage observers.

    Attributes:
        mass (sp.csr_matrix | None): Lumped mass matrix, once built.
        laplacian (sp.csr_matrix | None): Cotangent Laplacian, once built.
        face_areas (NDArray[Any] | None): Face areas, once built.
        timestep (float | None): Diffusion time, once built.
    """

    def __init__(
        self,
        mesh: TriMesh,
        params: Optional[Parameters] = None,
        observers: Optional[Iterable[Observer]] = None,
    ) -> None:
        self.mesh = mesh
        self.params = params if params is not None else Parameters()
        self.params.validate()
        self._observers: List[Observer] = list(observers or [])

        self.mass: Optional[sp.csr_matrix] = None
        self.laplacian: Optional[sp.csr_matrix] = None
        self.face_areas: Optional[NDArray[Any]] = None
        self.timestep: Optional[float] = None
        self._heat_system: Optional[sp.csr_matrix] = None
        self._heat_factor: Optional[SPDFactorization] = None
        self._poisson: Dict[int, SPDFactorization] = {}
        self._poisson_systems: Dict[int, sp.csr_matrix] = {}

    def __repr__(self) -> str:
        return f"HeatMethod(mesh={self.mesh!r}, params={self.params!r})"

    def add_observer(self, observer: Observer) -> None:
        """Register an additional stage observer."""
        self._observers.append(observer)

    def _emit(self, stage: str, value: Any) -> None:
        if not self._observers:
            return
        event = StageEvent(stage=stage, value=value)
        for obs in self._observers:
            obs(event)

    def reset(self) -> None:
        """Drop cached operators and release the factorizations."""
        if self._heat_factor is not None:
            self._heat_factor.release()
        for factor in self._poisson.values():
            factor.release()
        self.mass = None
        self.laplacian = None
        self.face_areas = None
        self.timestep = None
        self._heat_system = None
        self._heat_factor = None
        self._poisson = {}
        self._poisson_systems = {}

    close = reset

    def __enter__(self) -> HeatMethod:
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.reset()

    # ------------------------------------------------------------------ setup

    def _prepare(self) -> None:
        """Build mass, Laplacian, timestep and the heat factorization once."""
        if self._heat_factor is not None:
            return

        self.mesh.update_topology()
        self.mesh.update_normals()

        M, areas = build_mass_matrix(self.mesh)
        L = build_cotan_laplacian(self.mesh, boundary=self.params.boundary)
        t = diffusion_timestep(self.mesh, self.params.m)

        A = (M - t * L).tocsr()
        factor = SPDFactorization(A, label="heat system")

        self.mass, self.face_areas, self.laplacian, self.timestep = M, areas, L, t
        self._heat_system = A
        self._heat_factor = factor

    def _poisson_factor(self, pin: int) -> SPDFactorization:
        factor = self._poisson.get(pin)
        if factor is None:
            assert self.laplacian is not None
            active = np.flatnonzero(np.arange(self.mesh.n_verts) != pin)
            A = -self.laplacian[active, :][:, active]
            factor = SPDFactorization(A, label="poisson system")
            self._poisson[pin] = factor
            self._poisson_systems[pin] = A
        return factor

    # ------------------------------------------------------------------ queries

    def _validate_initial_condition(self, initial_condition: ArrayLike) -> NDArray[Any]:
        u0 = np.asarray(initial_condition, dtype=float).reshape(-1)
        if u0.shape[0] != self.mesh.n_verts:
            raise ValueError(
                f"initial_condition has length {u0.shape[0]}; "
                f"mesh has {self.mesh.n_verts} vertices"
            )
        if not np.all(np.isfinite(u0)):
            raise ValueError("initial_condition must be finite")
        if not np.any(u0 != 0.0):
            raise ValueError("initial_condition must have at least one non-zero entry")
        return u0

    def compute(self, initial_condition: ArrayLike) -> NDArray[Any]:
        """Compute the distance field for a heat impulse.

        Args:
            initial_condition (ArrayLike): Initial heat per vertex, shape
                (n_verts,); the sources are its non-zero entries.

        Returns:
            NDArray[Any]: Approximate geodesic distance per vertex. With the
            "source" baseline the vertex holding the largest initial heat has
            distance 0; with "min" the smallest distance is 0.

        Raises:
            ValueError: On a malformed initial condition.
            DegenerateGeometryError: On zero-area vertices, or vanishing
                gradients under the "raise" policy.
            NonManifoldTopologyError: On non-manifold meshes, or boundaries
                under the "reject" policy.
            FactorizationError: If either linear system cannot be factorized.
        """
        u0 = self._validate_initial_condition(initial_condition)
        self._prepare()
        assert self._heat_factor is not None and self.face_areas is not None

        self._emit("mass", self.mass)
        self._emit("laplacian", self.laplacian)
        self._emit("timestep", self.timestep)
        self._emit("heat_system", self._heat_system)

        u = self._heat_factor.solve(u0)
        _LOGGER.debug("heat: min=%.6g max=%.6g", float(u.min()), float(u.max()))
        self._emit("heat", u)

        grad = compute_gradient(self.mesh, u, self.face_areas)
        self._emit("gradient", grad)

        X = normalize_field(-grad, on_degenerate=self.params.degenerate_gradient)
        self._emit("direction", X)

        div = compute_divergence(self.mesh, X)
        self._emit("divergence", div)

        pin = int(np.argmax(u0))
        phi = np.zeros(self.mesh.n_verts, dtype=float)
        if self.mesh.n_verts > 1:
            factor = self._poisson_factor(pin)
            self._emit("poisson_system", self._poisson_systems[pin])
            active = np.flatnonzero(np.arange(self.mesh.n_verts) != pin)
            phi[active] = factor.solve(-div[active])

        if self.params.baseline == "min":
            phi -= phi.min()

        _LOGGER.debug(
            "distance: pin=%d baseline=%s min=%.6g max=%.6g",
            pin,
            self.params.baseline,
            float(phi.min()),
            float(phi.max()),
        )
        self._emit("distance", phi)
        return phi

    def distance_from_sources(self, sources: Sequence[int] | int) -> NDArray[Any]:
        """Distance to a set of source vertices, each given unit heat.

        Raises:
            ValueError: If `sources` is empty or holds an out-of-range index.
        """
        idx = np.atleast_1d(np.asarray(sources, dtype=np.int64))
        if idx.size == 0:
            raise ValueError("sources must not be empty")
        if (idx < 0).any() or (idx >= self.mesh.n_verts).any():
            raise ValueError(f"sources contain out-of-range vertex indices: {idx.tolist()}")
        u0 = np.zeros(self.mesh.n_verts, dtype=float)
        u0[idx] = 1.0
        return self.compute(u0)


def compute_geodesic_distance(
    mesh: TriMesh,
    initial_condition: ArrayLike,
    m: Optional[float] = None,
    *,
    params: Optional[Parameters] = None,
    observers: Optional[Iterable[Observer]] = None,
) -> NDArray[Any]:
    """Compute heat-method geodesic distances with freshly built operators.

    Args:
        mesh (TriMesh): Surface mesh.
        initial_condition (ArrayLike): Initial heat per vertex (n_verts,).
        m (Optional[float]): Timestep multiplier; overrides ``params.m`` when
            given (the default `Parameters` use 1.0).
        params (Optional[Parameters]): Algorithm settings.
        observers (Optional[Iterable[Observer]]): Stage observers.

    Returns:
        NDArray[Any]: Distance per vertex.
    """
    p = copy.copy(params) if params is not None else Parameters()
    if m is not None:
        p.m = m
    with HeatMethod(mesh, p, observers) as solver:
        return solver.compute(initial_condition)
