"""Module defining the Parameters class for configuring the heat method.

This module provides the Parameters class, which holds the algorithm settings
read by `HeatMethod`.
"""

import math

_BOUNDARY_POLICIES = ("neumann", "reject")
_BASELINES = ("source", "min")
_DEGENERATE_GRADIENT_POLICIES = ("zero", "raise")


class Parameters:
    """Holds settings for a heat-method geodesic distance computation.

    Attributes:
        m (float): Diffusion time scale; the timestep is ``m * h**2`` with
            ``h`` the average edge length.
        boundary (str): "neumann" uses one-sided cotangent weights on boundary
            edges; "reject" raises on any open one-ring.
        baseline (str): "source" returns 0 at the pinned source vertex; "min"
            shifts the field so its minimum is 0.
        degenerate_gradient (str): What to do with faces whose heat gradient
            vanishes: "zero" gives them no direction, "raise" aborts.

    Notes:
        - Larger `m` smooths the distance field and improves conditioning of
          the heat system at the cost of accuracy near the source.
        - The pinned source is the vertex with the largest initial condition.
    """

    def __init__(self) -> None:
        self.m = 1.0
        self.boundary = "neumann"
        self.baseline = "source"
        self.degenerate_gradient = "zero"

    def __repr__(self) -> str:
        return (
            f"Parameters(m={self.m!r}, boundary={self.boundary!r}, "
            f"baseline={self.baseline!r}, degenerate_gradient={self.degenerate_gradient!r})"
        )

    def validate(self) -> None:
        """Check every setting.

        Raises:
            ValueError: On a non-positive `m` or an unknown policy name.
        """
        if not (isinstance(self.m, (int, float)) and math.isfinite(self.m) and self.m > 0):
            raise ValueError(f"m must be positive and finite; got {self.m!r}")
        if self.boundary not in _BOUNDARY_POLICIES:
            raise ValueError(
                f"boundary must be one of {_BOUNDARY_POLICIES}; got {self.boundary!r}"
            )
        if self.baseline not in _BASELINES:
            raise ValueError(f"baseline must be one of {_BASELINES}; got {self.baseline!r}")
        if self.degenerate_gradient not in _DEGENERATE_GRADIENT_POLICIES:
            raise ValueError(
                "degenerate_gradient must be one of "
                f"{_DEGENERATE_GRADIENT_POLICIES}; got {self.degenerate_gradient!r}"
            )
