"""
Numerical tools related to equilibria of 2d dynamics (jacobians, stability classification).

Finding the equilibria is left to the caller, these functions only check and classify given points.
"""

import warnings
import numpy as np
import numdifftools as nd
from typing import Literal, Sequence

from qpot.drift.drift import DriftField
from qpot.errors import NumericalWarning
from qpot.log import logger

STABLE = "stable"
SADDLE = "saddle"
UNSTABLE = "unstable"


def jacobian(drift: DriftField, point: tuple[float, float], step: float | None = None) -> np.ndarray:
    """
    Numerical 2x2 jacobian of the drift at point.
    """

    def f(xy):
        return np.array(drift.evaluate(xy[0], xy[1]), dtype=float)

    return nd.Jacobian(f, step=step)(np.asarray(point, dtype=float))


def is_negative_definite(M):
    return np.all(np.linalg.eigvals(M).real < 0)


def classify_equilibrium(
    drift: DriftField, point: tuple[float, float], step: float | None = None
) -> Literal["stable", "saddle", "unstable"]:
    """
    Classifies the point p according to the jacobian of the drift:
        - Stable:
            all jacobian eigenvalues have negative real-values
        - Saddle:
            one eigenvalue with a positive and one with a negative real-value
        - Unstable:
            anything else
    """
    jac = jacobian(drift, point, step=step)

    if is_negative_definite(jac):
        return STABLE

    real_parts = np.linalg.eigvals(jac).real
    if real_parts.min() < 0 < real_parts.max():
        return SADDLE

    return UNSTABLE


def classify_equilibria(
    drift: DriftField, points: Sequence[tuple[float, float]], step: float | None = None
) -> dict[str, list[tuple[float, float]]]:
    """
    Classifies a list of equilibria into stable, saddle and unstable points.
    """
    d: dict[str, list[tuple[float, float]]] = {STABLE: [], SADDLE: [], UNSTABLE: []}

    for p in points:
        d[classify_equilibrium(drift, p, step=step)].append(p)

    return d


def check_stable_equilibrium(
    drift: DriftField,
    point: tuple[float, float],
    drift_scale: float,
    step: float | None = None,
    rtol: float = 1e-3,
) -> bool:
    """
    Warns if point doesn't look like a stable equilibrium of the drift.

    Parameters:
        drift_scale (float):
            typical drift magnitude, e.g the maximum over the grid. The drift at the point
            must be smaller than rtol * drift_scale.

    Returns:
        True if the point passed both checks.
    """
    f1, f2 = drift.evaluate(float(point[0]), float(point[1]))
    residual = float(np.hypot(f1, f2))

    if not np.isfinite(residual) or residual > rtol * drift_scale:
        msg = f"Start point {tuple(point)} is not an equilibrium: |drift| = {residual:.3g}"
        logger.warning(msg)
        warnings.warn(msg, NumericalWarning, stacklevel=3)
        return False

    kind = classify_equilibrium(drift, point, step=step)
    if kind != STABLE:
        msg = f"Start point {tuple(point)} is a {kind} equilibrium, the quasi-potential is defined for stable ones"
        logger.warning(msg)
        warnings.warn(msg, NumericalWarning, stacklevel=3)
        return False

    return True
