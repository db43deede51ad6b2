import numpy as np
import pytest

from qpot.drift import ExpressionDrift, FunctionDrift
from qpot.drift.example_drifts import get_drifts, may_holling_drift, MAY_HOLLING_STABLE, MAY_HOLLING_SADDLE
from qpot.grid import Domain


def test_expression_matches_literal_model():
    """
    The parametrized model evaluates like the model written out with numbers.
    """
    literal = ExpressionDrift(
        x_rhs="1.54*x*(1.0-(x/10.14)) - (y*x*x)/(1.0 + x*x)",
        y_rhs="((0.476*x*x*y)/(1 + x*x)) - 0.112590*y*y",
    )
    parametrized = may_holling_drift()

    x = np.random.uniform(0, 10, size=50)
    y = np.random.uniform(0, 10, size=50)

    assert np.allclose(literal(x, y), parametrized(x, y))


def test_power_operator_and_parameter_names():
    # gamma / beta are sympy functions unless bound as parameters:
    drift = ExpressionDrift("beta*x^2", "gamma - y", parameters={"beta": 2.0, "gamma": 1.0})
    f1, f2 = drift.evaluate(3.0, 0.5)
    assert np.isclose(f1, 18.0)
    assert np.isclose(f2, 0.5)


@pytest.mark.parametrize(
    "x_rhs, y_rhs, parameters",
    [
        ("a*x", "-y", None),  # unbound parameter
        ("x*(", "-y", None),  # syntax
        ("x", "-y", {"x": 1.0}),  # state variable as a parameter
    ],
)
def test_invalid_expressions(x_rhs, y_rhs, parameters):
    with pytest.raises(ValueError):
        ExpressionDrift(x_rhs, y_rhs, parameters)


def test_constant_component_is_broadcast():
    domain = Domain((0, 1), (0, 1), 4, 5)
    f1, f2 = ExpressionDrift("1", "-y").sample(domain)
    assert f1.shape == f2.shape == (4, 5)
    assert np.all(f1 == 1.0)


def test_function_drift():
    domain = Domain((0, 1), (0, 1), 4, 5)
    X, Y = domain.meshgrid()

    joint = FunctionDrift(lambda x, y: (x - x**3, -y))
    split = FunctionDrift(lambda x, y: x - x**3, lambda x, y: -y)

    for drift in (joint, split):
        f1, f2 = drift.sample(domain)
        assert np.allclose(f1, X - X**3)
        assert np.allclose(f2, -Y)


@pytest.mark.parametrize("drift", get_drifts())
def test_sample_shapes(drift):
    domain = Domain((-1, 1), (-1, 1), 7, 9)
    f1, f2 = drift.sample(domain)
    assert f1.shape == f2.shape == domain.shape
    assert np.all(np.isfinite(f1)) and np.all(np.isfinite(f2))


def test_may_holling_equilibria():
    drift = may_holling_drift()
    for point in [*MAY_HOLLING_STABLE, MAY_HOLLING_SADDLE]:
        assert np.hypot(*drift(*point)) < 5e-3
