"""Exception types raised by the heat-method pipeline.

All failures are detected next to the operator that produces them and are
propagated unchanged through `HeatMethod`; the pipeline never returns a
partial result.
"""


class HeatMethodError(Exception):
    """Base class for every error raised by heat_geodesic."""


class DegenerateGeometryError(HeatMethodError, ValueError):
    """Geometry too degenerate to continue.

    Raised for vertices whose incident faces all have zero area (zero mass
    entry) and for vector fields with zero-length rows when the caller asked
    for such rows to be rejected.
    """


class NonManifoldTopologyError(HeatMethodError, ValueError):
    """Topology the one-ring traversal cannot handle.

    Raised for edges shared by more than two faces, vertices whose incident
    faces form more than one fan, and open one-rings when boundaries are
    rejected.
    """


class FactorizationError(HeatMethodError, RuntimeError):
    """A linear system could not be factorized as symmetric positive definite."""
