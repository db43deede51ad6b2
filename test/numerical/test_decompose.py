import numpy as np
import pytest

from qpot.drift.example_drifts import rotated_double_well_drift, rotational_drift, rotational_potential
from qpot.errors import InvalidDomain, NumericalWarning
from qpot.grid import Domain, Surface
from qpot.numerical import (
    VectorFieldDecomposition,
    decompose_vector_field,
    solve_local,
    solve_local_basins,
    stitch_global,
)

DOMAIN = Domain((-1, 1), (-1, 1), 41, 41)


def _interior(arr):
    return arr[1:-1, 1:-1]


def test_analytic_surface():
    X, Y = DOMAIN.meshgrid()
    surface = Surface(rotational_potential(X, Y), DOMAIN)

    result = decompose_vector_field(surface, rotational_drift())
    assert isinstance(result, VectorFieldDecomposition)
    assert result.n_violations() == 0

    drift, gradient, remainder = result
    assert drift.shape == gradient.shape == remainder.shape == (41, 41, 2)
    assert np.allclose(drift, gradient + remainder)

    # -grad((x^2 + y^2)/2) and the rotation (-y, x):
    assert np.allclose(_interior(gradient[..., 0]), _interior(-X))
    assert np.allclose(_interior(gradient[..., 1]), _interior(-Y))
    assert np.allclose(_interior(remainder[..., 0]), _interior(-Y))
    assert np.allclose(_interior(remainder[..., 1]), _interior(X))


def test_inaccurate_surface_warns():
    X, Y = DOMAIN.meshgrid()
    surface = Surface(2 * X**2 + 0.1 * Y**2, DOMAIN)

    with pytest.warns(NumericalWarning, match="aren't orthogonal"):
        result = decompose_vector_field(surface, rotational_drift())

    assert result.n_violations() > 0
    assert not result.violations[0].any()  # edges aren't checked


def test_computed_surface():
    surface = solve_local(rotational_drift(), (0.0, 0.0), DOMAIN, update_radius=10)
    result = decompose_vector_field(surface, rotational_drift())
    assert result.n_violations() <= 0.02 * 39 * 39

    X, Y = DOMAIN.meshgrid()
    inner = _interior((X**2 + Y**2 > 0.1**2) & (X**2 + Y**2 < 0.9**2))
    assert np.median(np.abs(_interior(result.remainder[..., 0]) + _interior(Y))[inner]) < 0.05
    assert np.median(np.abs(_interior(result.remainder[..., 1]) - _interior(X))[inner]) < 0.05


def test_computed_nonlinear_surface():
    domain = Domain((-2, 2), (-1.5, 1.5), 81, 61)
    drift = rotated_double_well_drift()
    local_surfaces = solve_local_basins(drift, [(-1.0, 0.0), (1.0, 0.0)], domain)
    surface = stitch_global(local_surfaces, [(0.0, 0.0)], drift=drift)

    result = decompose_vector_field(surface, drift)
    assert result.n_violations() <= 0.05 * 79 * 59

    # the remainder is the rotation along the level sets of x^4/4 - x^2/2 + y^2/2:
    X, Y = domain.meshgrid()
    inner = _interior((np.abs(X) < 1.6) & (np.abs(Y) < 1.1))
    assert np.median(np.abs(_interior(result.remainder[..., 0]) + _interior(Y))[inner]) < 0.05
    assert np.median(np.abs(_interior(result.remainder[..., 1]) - _interior(X**3 - X))[inner]) < 0.05



def test_undefined_cells():
    X, Y = DOMAIN.meshgrid()
    surface = Surface(rotational_potential(X, Y), DOMAIN, defined=X < 0.5)

    result = decompose_vector_field(surface, rotational_drift())
    assert np.all(np.isnan(result.gradient[X > 0.6]))
    assert np.all(np.isfinite(result.gradient[X < 0.35]))
    assert result.n_violations() == 0


def test_to_frame():
    X, Y = DOMAIN.meshgrid()
    frame = decompose_vector_field(Surface(rotational_potential(X, Y), DOMAIN), rotational_drift()).to_frame()
    assert len(frame) == 41 * 41
    assert {"x", "y", "phi", "gradient_x", "remainder_y", "orthogonality_error"} <= set(frame.columns)


def test_domain_mismatch():
    X, Y = DOMAIN.meshgrid()
    surface = Surface(rotational_potential(X, Y), DOMAIN)
    with pytest.raises(InvalidDomain):
        decompose_vector_field(surface, rotational_drift(), domain=Domain((-1, 1), (-1, 1), 21, 21))
