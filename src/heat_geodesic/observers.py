"""Stage observers for the heat-method pipeline.

An observer is any callable taking a `StageEvent`. `HeatMethod` calls every
registered observer once per pipeline stage, in order, with the intermediate
result of that stage. Observers must not modify the value they receive.

Stages, in pipeline order:
    mass, laplacian, timestep, heat_system, heat, gradient, direction,
    divergence, poisson_system, distance
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import numpy as np
import scipy.sparse as sp

_LOGGER = logging.getLogger(__name__)

STAGES = (
    "mass",
    "laplacian",
    "timestep",
    "heat_system",
    "heat",
    "gradient",
    "direction",
    "divergence",
    "poisson_system",
    "distance",
)


@dataclass(frozen=True)
class StageEvent:
    """Intermediate result published at a stage boundary.

    Attributes:
        stage: One of `STAGES`.
        value: The stage output (sparse matrix, array or float).
    """

    stage: str
    value: Any


Observer = Callable[[StageEvent], None]


def summarize(value: Any) -> str:
    """Short human-readable description of a stage value."""
    if sp.issparse(value):
        return f"sparse {value.shape[0]}x{value.shape[1]} nnz={value.nnz}"
    if isinstance(value, np.ndarray):
        if value.size == 0:
            return f"array shape={value.shape}"
        return (
            f"array shape={value.shape} min={float(np.min(value)):.6g} "
            f"max={float(np.max(value)):.6g}"
        )
    return repr(value)


class StageRecorder:
    """Observer that keeps every event it receives.

    Useful for inspecting intermediate fields::

        rec = StageRecorder()
        compute_geodesic_distance(mesh, u0, observers=[rec])
        heat = rec["heat"]
    """

    def __init__(self) -> None:
        self.events: List[StageEvent] = []

    def __call__(self, event: StageEvent) -> None:
        self.events.append(event)

    @property
    def stages(self) -> List[str]:
        """Stage names in the order they were seen."""
        return [e.stage for e in self.events]

    def as_dict(self) -> Dict[str, Any]:
        """Latest value of each stage."""
        return {e.stage: e.value for e in self.events}

    def __getitem__(self, stage: str) -> Any:
        for e in reversed(self.events):
            if e.stage == stage:
                return e.value
        raise KeyError(stage)

    def clear(self) -> None:
        self.events.clear()


class LoggingObserver:
    """Observer that writes one log line per stage.

    Args:
        logger: Target logger; defaults to this module's logger.
        level: Logging level of the emitted lines.
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO) -> None:
        self.logger = logger or _LOGGER
        self.level = level

    def __call__(self, event: StageEvent) -> None:
        self.logger.log(self.level, "stage %-14s %s", event.stage, summarize(event.value))
