"""
Base class for all drift fields.

A drift field is the deterministic skeleton (f1(x, y), f2(x, y)) of the 2-d SDE.
"""

from abc import ABC, abstractmethod
from typing import Callable
import numpy as np

from qpot.grid.domain import Domain


class DriftField(ABC):
    """
    Capability interface for the drift of a 2-d SDE.

    Implementations must be pure and must broadcast over numpy arrays: the solvers sample the
    field once, over all grid nodes, in a single call.
    """

    @abstractmethod
    def evaluate(self, x, y) -> tuple[np.ndarray, np.ndarray]:
        """
        Returns the two drift components at (x, y). x and y may be floats or arrays of equal shape.
        """
        raise NotImplementedError

    def __call__(self, x, y) -> tuple[np.ndarray, np.ndarray]:
        return self.evaluate(x, y)

    def sample(self, domain: Domain) -> tuple[np.ndarray, np.ndarray]:
        """
        Samples the drift on every node of the domain.

        Returns:
            (f1, f2): float arrays with shape domain.shape
        """
        X, Y = domain.meshgrid()
        return self.sample_at(X, Y)

    def sample_at(self, x: np.ndarray, y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Evaluates the drift and broadcasts constant components to the shape of x.
        """
        x, y = np.asarray(x, dtype=float), np.asarray(y, dtype=float)
        f1, f2 = self.evaluate(x, y)
        f1, f2, _ = np.broadcast_arrays(np.asarray(f1, dtype=float), np.asarray(f2, dtype=float), x)
        return np.array(f1, dtype=float), np.array(f2, dtype=float)


class FunctionDrift(DriftField):
    """
    Wraps python callables.

    Examples:

        >>> FunctionDrift(lambda x, y: (-x, -y))
        >>> FunctionDrift(lambda x, y: x - x**3, lambda x, y: -y)
    """

    def __init__(self, f: Callable, fy: Callable | None = None) -> None:
        """
        Parameters:
            f (Callable):
                either f(x, y) -> (f1, f2), or the first component f1(x, y) when fy is provided

            fy (Callable, optional):
                the second component f2(x, y)
        """
        self.f = f
        self.fy = fy

    def evaluate(self, x, y):
        if self.fy is None:
            return self.f(x, y)
        return self.f(x, y), self.fy(x, y)
