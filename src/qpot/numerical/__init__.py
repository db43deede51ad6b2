"""
Modules that perform numerical computations.
    - :mod:`ordered_upwind.py` the compiled ordered upwind kernel.
    - :mod:`local.py` quasi-potential of a single basin, and of several basins in parallel.
    - :mod:`stitch.py` aligning and merging local surfaces into a global one.
    - :mod:`decompose.py` splitting the drift into a gradient and an orthogonal remainder.
    - :mod:`equilibria.py` jacobians and stability of equilibria.
"""

from .local import solve_local, solve_local_basins
from .stitch import stitch_global, least_squares_offsets, lowest_saddle_offsets
from .decompose import decompose_vector_field, VectorFieldDecomposition
from .equilibria import classify_equilibrium, classify_equilibria

__all__ = [
    "solve_local",
    "solve_local_basins",
    "stitch_global",
    "least_squares_offsets",
    "lowest_saddle_offsets",
    "decompose_vector_field",
    "VectorFieldDecomposition",
    "classify_equilibrium",
    "classify_equilibria",
]
