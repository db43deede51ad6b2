"""
Drift fields with known equilibria, and in some cases a known quasi-potential.
"""

from qpot.drift.expression import ExpressionDrift


"""
Getter functions for drifts:
"""


def get_drifts():
    return [
        may_holling_drift(),
        double_well_drift(),
        quadratic_gradient_drift(),
        rotational_drift(),
        rotated_double_well_drift(),
    ]


"""
Ecological models:
"""

# equilibria of may_holling_drift with the default parameters:
MAY_HOLLING_STABLE = [(1.4049, 2.8081), (4.9040, 4.0619)]
MAY_HOLLING_SADDLE = (4.2008, 4.0039)


def may_holling_drift(
    alpha: float = 1.54,
    beta: float = 10.14,
    delta: float = 1.0,
    gamma: float = 0.476,
    kappa: float = 1.0,
    mu: float = 0.112590,
) -> ExpressionDrift:
    """
    Consumer-resource model with logistic growth of the resource (x) and a type III
    functional response of the consumer (y).

    With the default parameters the model has two stable equilibria (see MAY_HOLLING_STABLE)
    separated by a saddle (MAY_HOLLING_SADDLE).
    """
    return ExpressionDrift(
        x_rhs="alpha*x*(1.0 - x/beta) - (delta*x^2*y)/(kappa + x^2)",
        y_rhs="(gamma*x^2*y)/(kappa + x^2) - mu*y^2",
        parameters={"alpha": alpha, "beta": beta, "delta": delta, "gamma": gamma, "kappa": kappa, "mu": mu},
    )


"""
Synthetic models with an analytic quasi-potential:
"""


def double_well_drift() -> ExpressionDrift:
    """
    Gradient of U = x^4/4 - x^2/2 + y^2/2, stable points at (-1, 0) and (1, 0), saddle at (0, 0).

    The quasi-potential of each basin is U + 1/4.
    """
    return ExpressionDrift(x_rhs="x - x^3", y_rhs="-y")


def double_well_potential(x, y):
    return x**4 / 4 - x**2 / 2 + y**2 / 2 + 0.25


def rotated_double_well_drift(omega: float = 1.0) -> ExpressionDrift:
    """
    The double well plus a rotation omega * (-dU/dy, dU/dx) along its level sets.

    Same equilibria (the saddle stays a saddle) and the same quasi-potential as :func:`double_well_drift`,
    with a nonlinear remainder field.
    """
    return ExpressionDrift(
        x_rhs="x - x^3 - omega*y",
        y_rhs="-y + omega*(x^3 - x)",
        parameters={"omega": omega},
    )


def quadratic_gradient_drift(a: float = 0.0, b: float = 0.0) -> ExpressionDrift:
    """
    Gradient of U = (x-a)^2 + (y-b)^2, the quasi-potential is U itself.
    """
    return ExpressionDrift(x_rhs="-2*(x - a)", y_rhs="-2*(y - b)", parameters={"a": a, "b": b})


def rotational_drift(omega: float = 1.0) -> ExpressionDrift:
    """
    -grad((x^2 + y^2)/2) plus a rotation omega*(-y, x) orthogonal to it.

    The quasi-potential is (x^2 + y^2)/2 for every omega, and the remainder field is the rotation.
    """
    return ExpressionDrift(x_rhs="-x - omega*y", y_rhs="omega*x - y", parameters={"omega": omega})


def rotational_potential(x, y):
    return (x**2 + y**2) / 2
