"""The heat_geodesic package computes geodesic distances on triangle meshes.

This package offers:
  - The Heat Method (diffuse, normalize the gradient, solve a Poisson problem).
  - Discrete operators on surface meshes: lumped mass matrix, cotangent
    Laplacian, per-face gradient and per-vertex divergence.
  - A sparse symmetric positive-definite factorization with pivot checks.

Submodules:
  - config: Numerical tolerances and package log level.
  - errors: Exception hierarchy.
  - heat_method: HeatMethod solver and compute_geodesic_distance.
  - mesh: TriMesh with adjacency and one-ring traversal.
  - observers: Stage events, recorder and logging observer.
  - operators: Mass, Laplacian, statistics, gradient, normalization, divergence.
  - parameters: Algorithm settings.
  - shapes: Procedural test meshes.
  - solver: SPDFactorization and solve_spd.
  - vector: Row-wise 3D vector helpers.

Classes:
  HeatMethod, OneRing, Parameters, SPDFactorization, StageEvent,
  StageRecorder, LoggingObserver, TriMesh
"""

from .config import (
    config,
    configure,
    reset,
    set_log_level,
    tolerances,
    use,
    Tolerances,
)
from .errors import (
    DegenerateGeometryError,
    FactorizationError,
    HeatMethodError,
    NonManifoldTopologyError,
)

from heat_geodesic.heat_method import HeatMethod, compute_geodesic_distance
from heat_geodesic.mesh import OneRing, TriMesh
from heat_geodesic.observers import LoggingObserver, StageEvent, StageRecorder
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
from heat_geodesic.parameters import Parameters
from heat_geodesic.solver import SPDFactorization, solve_spd
from heat_geodesic import shapes

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "HeatMethod",
    "OneRing",
    "Parameters",
    "SPDFactorization",
    "TriMesh",
    "compute_geodesic_distance",
    "solve_spd",
    # Operators
    "average_edge_length",
    "build_cotan_laplacian",
    "build_mass_matrix",
    "compute_divergence",
    "compute_face_areas",
    "compute_gradient",
    "corner_cotangents",
    "diffusion_timestep",
    "normalize_field",
    # Observers
    "LoggingObserver",
    "StageEvent",
    "StageRecorder",
    # Errors
    "DegenerateGeometryError",
    "FactorizationError",
    "HeatMethodError",
    "NonManifoldTopologyError",
    # Configuration
    "Tolerances",
    "config",
    "configure",
    "reset",
    "set_log_level",
    "tolerances",
    "use",
    # Meshes
    "shapes",
]
