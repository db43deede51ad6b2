"""
Scalar surfaces over a Domain: local (one basin) and global (stitched) quasi-potentials.

Cells the computation never reached are *undefined*. They are tagged by the boolean ``defined`` mask
and exposed as masked entries of :attr:`Surface.masked`, never as a numeric sentinel.
"""

import numpy as np
import pandas as pd
from scipy.interpolate import RegularGridInterpolator

from qpot.grid.domain import Domain


def _read_only(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


class Surface:
    """
    A dense (nx, ny) array of values over a :class:`~qpot.grid.Domain`.
    """

    def __init__(self, values: np.ndarray, domain: Domain, defined: np.ndarray | None = None) -> None:
        """
        Parameters:
            values (np.ndarray):
                array with shape domain.shape. Non-finite entries are treated as undefined.

            domain (Domain):
                the domain the values were computed over

            defined (np.ndarray, optional):
                boolean array with shape domain.shape, False for undefined cells.
                Defaults to the finite entries of values.
        """
        values = np.array(values, dtype=float)
        if values.shape != domain.shape:
            raise ValueError(f"Expected values with shape {domain.shape}, got {values.shape}")

        if defined is None:
            defined = np.isfinite(values)
        else:
            defined = np.array(defined, dtype=bool) & np.isfinite(values)

        values[~defined] = np.nan

        self.domain = domain
        self._values = _read_only(values)
        self._defined = _read_only(defined)

    @property
    def values(self) -> np.ndarray:
        """
        Raw values, NaN where undefined. Prefer :attr:`masked` for computations.
        """
        return self._values

    @property
    def defined(self) -> np.ndarray:
        return self._defined

    @property
    def masked(self) -> np.ma.MaskedArray:
        return np.ma.masked_array(self._values, mask=~self._defined)

    @property
    def shape(self) -> tuple[int, int]:
        return self.domain.shape

    def is_complete(self) -> bool:
        return bool(self._defined.all())

    def value_at(self, x: float, y: float) -> float | None:
        """
        Value at the node nearest to (x, y), or None if that node is undefined.
        """
        i, j = self.domain.point_to_index(x, y)
        if not self._defined[i, j]:
            return None
        return float(self._values[i, j])

    def interpolate(self, points: np.ndarray) -> np.ndarray:
        """
        Bilinear interpolation of the surface.

        Parameters:
            points (np.ndarray):
                array with shape (..., 2) of x,y coordinates

        Returns:
            values with shape points.shape[:-1], NaN outside the domain or next to undefined cells.
        """
        interpolator = RegularGridInterpolator(
            (self.domain.xs, self.domain.ys),
            self._values,
            method="linear",
            bounds_error=False,
            fill_value=np.nan,
        )
        return interpolator(np.asarray(points, dtype=float))

    def to_frame(self) -> pd.DataFrame:
        """
        Long format dataframe with columns x, y, phi (NaN where undefined).
        """
        X, Y = self.domain.meshgrid()
        return pd.DataFrame({"x": X.ravel(), "y": Y.ravel(), "phi": self._values.ravel()})


class LocalSurface(Surface):
    """
    The quasi-potential of a single basin, anchored at a stable equilibrium.
    """

    def __init__(
        self,
        values: np.ndarray,
        domain: Domain,
        start: tuple[float, float],
        defined: np.ndarray | None = None,
        seed_index: tuple[int, int] | None = None,
        parents: np.ndarray | None = None,
        n_accepted: int | None = None,
        stopped_at_boundary: bool = False,
    ) -> None:
        """
        Parameters:
            values, domain, defined:
                see :class:`Surface`

            start (tuple[float, float]):
                the equilibrium coordinate the surface is anchored to

            seed_index (tuple[int, int], optional):
                the node seeded with zero. Defaults to the node nearest to start.

            parents (np.ndarray, optional):
                array with shape (nx, ny, 2) of flat node indices that produced each value (-1 when unused)

            n_accepted (int, optional):
                number of nodes the solver accepted. Defaults to the number of defined nodes.

            stopped_at_boundary (bool):
                True if the front expansion stopped when it first touched the domain edge.
        """
        super().__init__(values, domain, defined)
        self.start = (float(start[0]), float(start[1]))
        self.seed_index = seed_index or domain.point_to_index(*self.start)
        self.parents = None if parents is None else _read_only(np.asarray(parents))
        self.n_accepted = int(self.defined.sum()) if n_accepted is None else n_accepted
        self.stopped_at_boundary = stopped_at_boundary

    @property
    def seed_point(self) -> tuple[float, float]:
        return self.domain.index_to_point(*self.seed_index)

    @property
    def seed_offset(self) -> float:
        """
        Distance between the start coordinate and the seeded node.
        """
        sx, sy = self.seed_point
        return float(np.hypot(self.start[0] - sx, self.start[1] - sy))

    @property
    def approximate(self) -> bool:
        """
        True when the seeded node is farther than half a cell from the start coordinate.
        """
        return self.seed_offset > 0.5 * min(self.domain.hx, self.domain.hy)


class GlobalSurface(Surface):
    """
    Local surfaces shifted by per-basin offsets and merged by a pointwise minimum.
    """

    def __init__(
        self,
        values: np.ndarray,
        domain: Domain,
        offsets: np.ndarray,
        anchors: pd.DataFrame | None = None,
        residuals: np.ndarray | None = None,
        defined: np.ndarray | None = None,
    ) -> None:
        """
        Parameters:
            values, domain, defined:
                see :class:`Surface`

            offsets (np.ndarray):
                the additive offset applied to each local surface

            anchors (pd.DataFrame, optional):
                one row per (unstable point, basin) pair with the raw and aligned values

            residuals (np.ndarray, optional):
                discontinuity left at each anchor equation after alignment
        """
        super().__init__(values, domain, defined)
        self.offsets = _read_only(np.array(offsets, dtype=float))
        self.anchors = anchors if anchors is not None else pd.DataFrame()
        self.residuals = _read_only(np.zeros(0) if residuals is None else np.array(residuals, dtype=float))
