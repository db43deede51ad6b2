"""
Quasi-potentials of two dimensional stochastic differential equations.

The main entry points:
    - :func:`solve_local` quasi-potential of one basin (ordered upwind method)
    - :func:`stitch_global` merge local surfaces into a global one
    - :func:`decompose_vector_field` gradient / remainder decomposition of the drift
"""

from qpot.drift import DriftField, FunctionDrift, ExpressionDrift
from qpot.errors import QPotError, InvalidDomain, DegenerateGeometry, AlignmentError, NumericalWarning
from qpot.grid import Domain, Surface, LocalSurface, GlobalSurface
from qpot.numerical import (
    solve_local,
    solve_local_basins,
    stitch_global,
    decompose_vector_field,
    VectorFieldDecomposition,
)

__all__ = [
    "DriftField",
    "FunctionDrift",
    "ExpressionDrift",
    "QPotError",
    "InvalidDomain",
    "DegenerateGeometry",
    "AlignmentError",
    "NumericalWarning",
    "Domain",
    "Surface",
    "LocalSurface",
    "GlobalSurface",
    "solve_local",
    "solve_local_basins",
    "stitch_global",
    "decompose_vector_field",
    "VectorFieldDecomposition",
]
