"""
Decomposition of the drift into the gradient of the quasi-potential and an orthogonal remainder:

.. math::

    f = -\\nabla \\Phi + r, \\qquad \\nabla \\Phi \\cdot r = 0
"""

import warnings
import numpy as np
import pandas as pd

from qpot.drift.drift import DriftField
from qpot.errors import InvalidDomain, NumericalWarning
from qpot.grid import Domain, Surface
from qpot.log import logger

# orthogonality tolerance, relative to the cell size over the domain size:
_default_rtol_factor = 20.0


class VectorFieldDecomposition:
    """
    Three co-registered (nx, ny, 2) vector fields: the drift, the gradient part -grad(phi) and the remainder.

    Unpacks as a tuple:

    .. code-block:: python

        drift, gradient, remainder = decompose_vector_field(surface, drift_field)
    """

    def __init__(
        self,
        surface: Surface,
        drift: np.ndarray,
        gradient: np.ndarray,
        remainder: np.ndarray,
        orthogonality_error: np.ndarray,
        violations: np.ndarray,
    ) -> None:
        self.surface = surface
        self.domain = surface.domain
        self.drift = drift
        self.gradient = gradient
        self.remainder = remainder
        self.orthogonality_error = orthogonality_error
        self.violations = violations

        for arr in (self.drift, self.gradient, self.remainder, self.orthogonality_error, self.violations):
            arr.flags.writeable = False

    def __iter__(self):
        return iter((self.drift, self.gradient, self.remainder))

    def n_violations(self) -> int:
        return int(self.violations.sum())

    def to_frame(self) -> pd.DataFrame:
        """
        Long format dataframe with one row per node.
        """
        X, Y = self.domain.meshgrid()
        return pd.DataFrame(
            {
                "x": X.ravel(),
                "y": Y.ravel(),
                "phi": self.surface.values.ravel(),
                "drift_x": self.drift[..., 0].ravel(),
                "drift_y": self.drift[..., 1].ravel(),
                "gradient_x": self.gradient[..., 0].ravel(),
                "gradient_y": self.gradient[..., 1].ravel(),
                "remainder_x": self.remainder[..., 0].ravel(),
                "remainder_y": self.remainder[..., 1].ravel(),
                "orthogonality_error": self.orthogonality_error.ravel(),
            }
        )


def decompose_vector_field(
    surface: Surface,
    drift: DriftField,
    domain: Domain | None = None,
    rtol: float | None = None,
    atol: float | None = None,
) -> VectorFieldDecomposition:
    """
    Splits the drift into -grad(phi) and the remainder drift + grad(phi).

    The gradient uses centered differences in the interior and one-sided differences at the edges.
    Vectors at undefined cells, or next to them, are NaN.

    The invariant |g.r| < rtol * (|g| |r| + atol) is checked at interior nodes, violations raise a
    NumericalWarning (they point at an inaccurate surface), and are kept on the result.

    Args:
        surface (Surface): a local or global quasi-potential.
        drift (DriftField): the drift the surface was computed from.
        domain (Domain | None, optional): must match the surface domain. Defaults to surface.domain.
        rtol (float | None, optional): relative tolerance. Defaults to 20 * max(hx, hy) / min(x span, y span).
        atol (float | None, optional): absolute term, in squared drift units.
            Defaults to max(hx, hy) / min(x span, y span) * max |drift|^2.

    Returns:
        VectorFieldDecomposition: iterable as (drift, gradient, remainder).
    """
    domain = domain or surface.domain
    if surface.domain != domain:
        raise InvalidDomain(f"Surface is defined over {surface.domain}, expected {domain}")

    f1, f2 = drift.sample(domain)
    drift_field = np.stack([f1, f2], axis=-1)

    dphi_dx, dphi_dy = np.gradient(surface.values, domain.hx, domain.hy, edge_order=1)
    gradient = -np.stack([dphi_dx, dphi_dy], axis=-1)
    remainder = drift_field - gradient

    relative_cell = max(domain.hx, domain.hy) / min(
        domain.x_bounds[1] - domain.x_bounds[0], domain.y_bounds[1] - domain.y_bounds[0]
    )
    if rtol is None:
        rtol = _default_rtol_factor * relative_cell
    if atol is None:
        drift_norm = np.hypot(f1, f2)
        scale = float(np.nanmax(drift_norm)) if np.isfinite(drift_norm).any() else 0.0
        atol = relative_cell * scale**2

    dot = np.sum(gradient * remainder, axis=-1)
    norms = np.linalg.norm(gradient, axis=-1) * np.linalg.norm(remainder, axis=-1)
    with np.errstate(invalid="ignore", divide="ignore"):
        orthogonality_error = np.abs(dot) / (norms + atol)

    interior = np.zeros(domain.shape, dtype=bool)
    interior[1:-1, 1:-1] = True
    checked = interior & np.isfinite(orthogonality_error)
    violations = checked & (orthogonality_error >= rtol)

    logger.debug(
        "decomposed %s: %d nodes checked, rtol=%.3g, atol=%.3g", domain, int(checked.sum()), rtol, atol
    )

    if violations.any():
        worst = np.unravel_index(np.nanargmax(np.where(violations, orthogonality_error, np.nan)), domain.shape)
        msg = (
            f"Gradient and remainder aren't orthogonal at {int(violations.sum())} of {int(checked.sum())} nodes "
            f"(worst {orthogonality_error[worst]:.3g} at {domain.index_to_point(*worst)}, tolerance {rtol:.3g}). "
            f"The quasi-potential surface may be inaccurate."
        )
        logger.warning(msg)
        warnings.warn(msg, NumericalWarning, stacklevel=2)

    return VectorFieldDecomposition(
        surface=surface,
        drift=drift_field,
        gradient=gradient,
        remainder=remainder,
        orthogonality_error=orthogonality_error,
        violations=violations,
    )
