"""Sparse symmetric positive-definite factorization.

SciPy ships no sparse Cholesky, so `SPDFactorization` runs SuperLU in
symmetric mode with diagonal pivoting. With a symmetric row/column permutation
the factorization is ``P A P^T = L U`` with ``U = D L^T``; the system is
positive definite exactly when every pivot in ``D`` is positive, which is
checked before any solve.
"""
from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Optional, Type
from numpy.typing import ArrayLike, NDArray

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import splu

from .config import tolerances
from .errors import FactorizationError

_LOGGER = logging.getLogger(__name__)


def _check_symmetric(A: sp.csc_matrix, label: str, tol: float) -> None:
    scale = float(abs(A).max()) if A.nnz else 0.0
    asym = float(abs(A - A.T).max()) if A.nnz else 0.0
    if asym > tol * max(scale, np.finfo(float).tiny):
        _LOGGER.error(
            "%s: matrix is not symmetric (max|A-A^T|=%.3e, max|A|=%.3e).",
            label,
            asym,
            scale,
        )
        raise FactorizationError(f"{label}: matrix is not symmetric")


class SPDFactorization:
    """LDL^T-style factorization of a sparse symmetric positive-definite matrix.

    The factor owns a private CSC copy of the matrix. Use it as a context
    manager to release the factor once the solve is done::

        with SPDFactorization(A, label="heat") as factor:
            u = factor.solve(b)

    Args:
        A (sp.spmatrix | ArrayLike): Square symmetric matrix.
        label (str): Name used in log lines and error messages.

    Raises:
        ValueError: If `A` is not square or has non-finite entries.
        FactorizationError: If `A` is not symmetric, is singular, or has a
            non-positive pivot.
    """

    def __init__(self, A: Any, *, label: str = "system") -> None:
        tol = tolerances()
        self.label = label
        mat = sp.csc_matrix(A, dtype=float, copy=True)

        if mat.shape[0] != mat.shape[1]:
            raise ValueError(f"{label}: matrix must be square; got {mat.shape}")
        if mat.shape[0] == 0:
            raise ValueError(f"{label}: empty matrix")
        if not np.all(np.isfinite(mat.data)):
            _LOGGER.error("%s: matrix has non-finite entries.", label)
            raise ValueError(f"{label}: matrix has non-finite entries")
        if tol.check_symmetry:
            _check_symmetric(mat, label, tol.symmetry_tol)

        try:
            lu = splu(
                mat,
                permc_spec="MMD_AT_PLUS_A",
                diag_pivot_thresh=0.0,
                options={"SymmetricMode": True},
            )
        except RuntimeError as exc:
            _LOGGER.error("%s: factorization failed: %s", label, exc)
            raise FactorizationError(f"{label}: factorization failed ({exc})") from exc

        if not np.array_equal(lu.perm_r, lu.perm_c):
            _LOGGER.error("%s: zero diagonal pivot; row pivoting was required.", label)
            raise FactorizationError(
                f"{label}: matrix is not positive definite (zero diagonal pivot)"
            )

        pivots = lu.U.diagonal()
        scale = float(np.max(np.abs(pivots)))
        bad = pivots <= tol.pivot_tol * scale
        if np.any(bad):
            _LOGGER.error(
                "%s: %d non-positive pivot(s) (min=%.3e, max=%.3e).",
                label,
                int(np.count_nonzero(bad)),
                float(np.min(pivots)),
                scale,
            )
            raise FactorizationError(f"{label}: matrix is not positive definite")

        self._lu: Optional[Any] = lu
        self.shape = mat.shape

        _LOGGER.debug(
            "%s: factorized n=%d nnz(A)=%d nnz(L)=%d nnz(U)=%d pivots in [%.3e, %.3e]",
            label,
            mat.shape[0],
            mat.nnz,
            lu.L.nnz,
            lu.U.nnz,
            float(np.min(pivots)),
            scale,
        )

    @property
    def released(self) -> bool:
        """True once `release` has been called."""
        return self._lu is None

    def solve(self, b: ArrayLike) -> NDArray[Any]:
        """Solve ``A x = b``.

        Raises:
            ValueError: If `b` has the wrong length or the factor was released.
            FactorizationError: If the solution is not finite.
        """
        if self._lu is None:
            raise ValueError(f"{self.label}: factorization already released")
        rhs = np.asarray(b, dtype=float).reshape(-1)
        if rhs.shape[0] != self.shape[0]:
            raise ValueError(
                f"{self.label}: rhs length {rhs.shape[0]} != system size {self.shape[0]}"
            )
        x = self._lu.solve(rhs)
        if not np.all(np.isfinite(x)):
            _LOGGER.error("%s: solve produced non-finite values.", self.label)
            raise FactorizationError(f"{self.label}: solve produced non-finite values")
        return x

    def release(self) -> None:
        """Drop the factor."""
        self._lu = None

    def __enter__(self) -> SPDFactorization:
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.release()


def solve_spd(A: Any, b: ArrayLike, *, label: str = "system") -> NDArray[Any]:
    """Factorize `A`, solve ``A x = b`` and release the factor."""
    with SPDFactorization(A, label=label) as factor:
        return factor.solve(b)
