"""
Drift fields given as arithmetic expressions over x, y and named parameters.

Expressions are parsed and compiled once; evaluating the drift is a plain numpy call.
"""

from tokenize import TokenError
from typing import Mapping
import sympy
from sympy.parsing.sympy_parser import parse_expr, standard_transformations, convert_xor

from qpot.drift.drift import DriftField

_transformations = standard_transformations + (convert_xor,)  # allow "x^2"


class ExpressionDrift(DriftField):
    """
    A drift field defined by two expressions, e.g:

    .. code-block:: python

        ExpressionDrift(
            x_rhs="alpha*x*(1 - x/beta) - (delta*x^2*y)/(kappa + x^2)",
            y_rhs="(gamma*x^2*y)/(kappa + x^2) - mu*y^2",
            parameters={"alpha": 1.54, "beta": 10.14, "delta": 1.0, "gamma": 0.476, "kappa": 1.0, "mu": 0.11259},
        )
    """

    def __init__(self, x_rhs: str, y_rhs: str, parameters: Mapping[str, float] | None = None) -> None:
        """
        Parameters:
            x_rhs, y_rhs (str):
                right hand sides of dx/dt and dy/dt

            parameters (Mapping[str, float], optional):
                values for every symbol other than x and y

        Raises:
            ValueError: if an expression can't be parsed or has symbols without a value.
        """
        self.x_rhs = x_rhs
        self.y_rhs = y_rhs
        self.parameters = dict(parameters or {})

        for name in ("x", "y"):
            if name in self.parameters:
                raise ValueError(f"'{name}' is a state variable and can't be a parameter")

        self._x, self._y = sympy.symbols("x y")

        # explicit symbols so parameter names like "beta" or "gamma" aren't read as sympy functions:
        local_dict = {name: sympy.Symbol(name) for name in self.parameters}
        local_dict.update({"x": self._x, "y": self._y})

        self.expressions = tuple(self._parse(rhs, local_dict) for rhs in (x_rhs, y_rhs))

        self._f = sympy.lambdify((self._x, self._y), list(self.expressions), modules="numpy")

    def _parse(self, rhs: str, local_dict: dict) -> sympy.Expr:
        try:
            expr = parse_expr(rhs, local_dict=local_dict, transformations=_transformations)
        except (SyntaxError, TypeError, TokenError, sympy.SympifyError) as e:
            raise ValueError(f"Could not parse drift expression '{rhs}': {e}") from e

        expr = expr.subs({local_dict[name]: value for name, value in self.parameters.items()})

        unbound = expr.free_symbols - {self._x, self._y}
        if unbound:
            raise ValueError(f"Expression '{rhs}' has symbols without a value: {sorted(str(s) for s in unbound)}")

        return expr

    def __repr__(self) -> str:
        return f"ExpressionDrift(x_rhs={self.x_rhs!r}, y_rhs={self.y_rhs!r}, parameters={self.parameters})"

    def evaluate(self, x, y):
        f1, f2 = self._f(x, y)
        return f1, f2
