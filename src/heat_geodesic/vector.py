"""Row-wise 3D vector helpers used by the mesh operators.

Every function accepts either a single 3-vector or a stack of them with shape
(..., 3) and works along the last axis, so the operators can evaluate all
faces or corners in one call.
"""
from __future__ import annotations

import logging
from typing import Any
from numpy.typing import ArrayLike, NDArray

import numpy as np

from .errors import DegenerateGeometryError

_LOGGER = logging.getLogger(__name__)


def dot(a: ArrayLike, b: ArrayLike) -> NDArray[Any]:
    """Dot product along the last axis."""
    return np.einsum("...i,...i->...", np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def cross(a: ArrayLike, b: ArrayLike) -> NDArray[Any]:
    """Cross product along the last axis."""
    return np.cross(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def norm(v: ArrayLike) -> NDArray[Any]:
    """Euclidean norm along the last axis."""
    return np.linalg.norm(np.asarray(v, dtype=float), axis=-1)


def normalize(v: ArrayLike) -> NDArray[Any]:
    """Return `v` scaled to unit length along the last axis.

    Raises:
        DegenerateGeometryError: If any vector has zero (or non-finite) length.
    """
    arr = np.asarray(v, dtype=float)
    mag = np.asarray(norm(arr))
    bad = ~(np.isfinite(mag) & (mag > 0.0))
    if np.any(bad):
        _LOGGER.error(
            "normalize: %d zero-magnitude vector(s); cannot normalize",
            int(np.count_nonzero(bad)),
        )
        raise DegenerateGeometryError("Cannot normalize a zero-magnitude vector")
    return arr / mag[..., None]


def cotan(v0: ArrayLike, v1: ArrayLike) -> NDArray[Any]:
    """Cotangent of the angle between `v0` and `v1`.

    Computed as ``(v0 . v1) / |v0 x v1|``. Parallel vectors give an infinite
    (or NaN) result; callers that may see collapsed triangles mask those
    entries themselves.
    """
    a = np.asarray(v0, dtype=float)
    b = np.asarray(v1, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return dot(a, b) / norm(cross(a, b))
