"""Global configuration for heat-geodesic numerical tolerances.

This module provides a package-wide configuration surface for the tolerances
used by the operators and the sparse solver, initialized from environment
variables and adjustable at runtime (globally or within a context manager).
It also owns the package log level.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import contextlib
import logging
import os
from typing import Any, Iterator


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
_LOGGER = logging.getLogger("heat_geodesic.config")
_PACKAGE_LOGGER = logging.getLogger("heat_geodesic")


def _parse_log_level(val: str | int | None, default: int = logging.WARNING) -> int:
    """Parse a logging level string or int into a `logging` level constant.

    Args:
        val: The desired level (e.g., "DEBUG", 10). May be None.
        default: Fallback level if `val` cannot be parsed.

    Returns:
        An integer logging level (e.g., logging.DEBUG).
    """
    if val is None:
        return default
    if isinstance(val, int):
        return val
    lvl = getattr(logging, str(val).strip().upper(), None)
    if isinstance(lvl, int):
        return lvl
    return default


def set_log_level(level: str | int = "WARNING") -> None:
    """Set the package logger level programmatically.

    Args:
        level: A standard logging level name or integer.
    """
    _PACKAGE_LOGGER.setLevel(_parse_log_level(level))


# Default level can be overridden by env.
set_log_level(os.getenv("HEAT_GEODESIC_LOGLEVEL", "WARNING"))


# -----------------------------------------------------------------------------
# Env helpers
# -----------------------------------------------------------------------------
def bool_env(varname: str, default: bool) -> bool:
    """Read an environment variable and interpret it as a boolean.

    True values: 'y', 'yes', 't', 'true', 'on', '1'.
    False values: 'n', 'no', 'f', 'false', 'off', '0'.

    Args:
        varname: The name of the environment variable.
        default: The default value if the variable is unset.

    Returns:
        A boolean value parsed from the environment.
    """
    val = os.getenv(varname, str(default))
    val = val.lower()
    if val in ("y", "yes", "t", "true", "on", "1"):
        return True
    if val in ("n", "no", "f", "false", "off", "0"):
        return False
    raise ValueError(f"invalid truth value {val!r} for environment {varname!r}")


def float_env(varname: str, default: float) -> float:
    """Read an environment variable and interpret it as a float.

    Args:
        varname: The name of the environment variable.
        default: The default value if the variable is unset.

    Returns:
        The float value parsed from the environment.
    """
    return float(os.getenv(varname, str(default)))


# -----------------------------------------------------------------------------
# Tolerances
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Tolerances:
    """Numerical tolerances shared by the operators and the solver.

    Attributes:
        pivot_tol: Relative threshold under which an LDL^T pivot is treated
            as non-positive (system not positive definite).
        flat_face_tol: Relative threshold (w.r.t. the largest magnitude among
            a face's three values) under which the spread of a scalar field
            over that face counts as no variation.
        degenerate_area_tol: Relative threshold (w.r.t. the largest face area)
            under which a face is considered degenerate.
        symmetry_tol: Relative threshold on ``max|A - A^T| / max|A|``.
        check_symmetry: Whether the solver verifies symmetry before factoring.
    """

    pivot_tol: float = 1e-14
    flat_face_tol: float = 1e-10
    degenerate_area_tol: float = 1e-12
    symmetry_tol: float = 1e-10
    check_symmetry: bool = True


def _tolerances_from_env() -> Tolerances:
    """Build `Tolerances` from HEAT_GEODESIC_* environment variables."""
    defaults = Tolerances()
    tol = Tolerances(
        pivot_tol=float_env("HEAT_GEODESIC_PIVOT_TOL", defaults.pivot_tol),
        flat_face_tol=float_env("HEAT_GEODESIC_FLAT_FACE_TOL", defaults.flat_face_tol),
        degenerate_area_tol=float_env(
            "HEAT_GEODESIC_DEGENERATE_AREA_TOL", defaults.degenerate_area_tol
        ),
        symmetry_tol=float_env("HEAT_GEODESIC_SYMMETRY_TOL", defaults.symmetry_tol),
        check_symmetry=bool_env("HEAT_GEODESIC_CHECK_SYMMETRY", defaults.check_symmetry),
    )
    _LOGGER.debug("Tolerances from environment: %s", tol)
    return tol


def _validate(tol: Tolerances) -> None:
    for f in fields(tol):
        if f.name == "check_symmetry":
            continue
        val = getattr(tol, f.name)
        if not (val >= 0.0 and val < 1.0):
            _LOGGER.error("Invalid tolerance %s=%r", f.name, val)
            raise ValueError(f"{f.name} must lie in [0, 1); got {val!r}")


# -----------------------------------------------------------------------------
# Config singleton
# -----------------------------------------------------------------------------
class Config:
    """Global configuration for heat-geodesic.

    Holds the active `Tolerances`. Code reads them through `config.tolerances`
    (or the module-level `tolerances()`), so overrides applied with
    `configure` or `use` are seen everywhere.
    """

    def __init__(self) -> None:
        """Initialize config using environment defaults."""
        self._tolerances: Tolerances = _tolerances_from_env()
        _validate(self._tolerances)
        _LOGGER.info("Config initialized: %s", self._tolerances)

    @property
    def tolerances(self) -> Tolerances:
        """Return the active tolerances."""
        return self._tolerances

    def configure(self, **overrides: Any) -> Config:
        """Replace selected tolerances.

        Args:
            **overrides: Field names of `Tolerances` and their new values.

        Returns:
            The `Config` instance (for chaining).

        Raises:
            ValueError: If a field name is unknown or a value is out of range.
        """
        known = {f.name for f in fields(Tolerances)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            _LOGGER.error("configure: unknown tolerance(s) %s", unknown)
            raise ValueError(f"Unknown tolerance(s): {', '.join(unknown)}")
        new = replace(self._tolerances, **overrides)
        _validate(new)
        _LOGGER.info("Reconfiguring tolerances: %s", overrides)
        self._tolerances = new
        return self

    def reset(self) -> Config:
        """Restore the environment defaults."""
        self._tolerances = _tolerances_from_env()
        _validate(self._tolerances)
        return self

    @contextlib.contextmanager
    def use(self, **overrides: Any) -> Iterator[Tolerances]:
        """Temporarily override tolerances within a context manager.

        Args:
            **overrides: Field names of `Tolerances` and their new values.

        Yields:
            The temporary `Tolerances`. The previous ones are restored on exit.
        """
        prev = self._tolerances
        try:
            self.configure(**overrides)
            yield self._tolerances
        finally:
            self._tolerances = prev
            _LOGGER.info("Restored previous tolerances: %s", prev)


# Singleton & forwards
config = Config()


def tolerances() -> Tolerances:
    """Return the active tolerances (module-level)."""
    return config.tolerances


def configure(**overrides: Any) -> Config:
    """Replace selected tolerances (module-level)."""
    return config.configure(**overrides)


def use(**overrides: Any) -> contextlib.AbstractContextManager[Tolerances]:
    """Temporarily override tolerances within a context manager (module-level)."""
    return config.use(**overrides)


def reset() -> Config:
    """Restore the environment default tolerances (module-level)."""
    return config.reset()
