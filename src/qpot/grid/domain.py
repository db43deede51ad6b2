"""
The rectangular domain and its regular mesh.

Arrays defined over a domain have shape (nx, ny) and are indexed [i, j], i along x and j along y.
"""

import math
import numpy as np

from qpot.errors import InvalidDomain

_4_CONNECTED = ((-1, 0), (1, 0), (0, -1), (0, 1))
_8_CONNECTED = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))


class Domain:
    """
    An axis aligned rectangle [x_lo, x_hi] x [y_lo, y_hi] discretized into nx x ny nodes.
    """

    def __init__(
        self,
        x_bounds: tuple[float, float],
        y_bounds: tuple[float, float],
        nx: int,
        ny: int,
    ) -> None:
        """
        Parameters:
            x_bounds (tuple[float, float]):
                lower and upper limits of the x axis

            y_bounds (tuple[float, float]):
                lower and upper limits of the y axis

            nx, ny (int):
                number of nodes along each axis (including both end points)

        Raises:
            InvalidDomain: if the bounds are degenerate or the resolution is smaller than 2.
        """
        x_lo, x_hi = (float(b) for b in x_bounds)
        y_lo, y_hi = (float(b) for b in y_bounds)

        if not all(math.isfinite(b) for b in (x_lo, x_hi, y_lo, y_hi)):
            raise InvalidDomain(f"Domain bounds must be finite, got x={x_bounds}, y={y_bounds}")
        if not x_lo < x_hi:
            raise InvalidDomain(f"Expected x_lo < x_hi, got x_bounds={x_bounds}")
        if not y_lo < y_hi:
            raise InvalidDomain(f"Expected y_lo < y_hi, got y_bounds={y_bounds}")
        if int(nx) != nx or int(ny) != ny or nx < 2 or ny < 2:
            raise InvalidDomain(f"Expected integer resolution nx, ny >= 2, got nx={nx}, ny={ny}")

        self.x_bounds = (x_lo, x_hi)
        self.y_bounds = (y_lo, y_hi)
        self.nx = int(nx)
        self.ny = int(ny)

    def __repr__(self) -> str:
        return f"Domain(x_bounds={self.x_bounds}, y_bounds={self.y_bounds}, nx={self.nx}, ny={self.ny})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Domain):
            return NotImplemented
        return (
            self.x_bounds == other.x_bounds
            and self.y_bounds == other.y_bounds
            and self.nx == other.nx
            and self.ny == other.ny
        )

    def __hash__(self) -> int:
        return hash((self.x_bounds, self.y_bounds, self.nx, self.ny))

    @property
    def shape(self) -> tuple[int, int]:
        return (self.nx, self.ny)

    @property
    def hx(self) -> float:
        return (self.x_bounds[1] - self.x_bounds[0]) / (self.nx - 1)

    @property
    def hy(self) -> float:
        return (self.y_bounds[1] - self.y_bounds[0]) / (self.ny - 1)

    @property
    def xs(self) -> np.ndarray:
        return np.linspace(*self.x_bounds, self.nx)

    @property
    def ys(self) -> np.ndarray:
        return np.linspace(*self.y_bounds, self.ny)

    def meshgrid(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Returns:
            (X, Y): coordinates of all nodes, each with shape (nx, ny)
        """
        return np.meshgrid(self.xs, self.ys, indexing="ij")

    def index_to_point(self, i: int, j: int) -> tuple[float, float]:
        return (self.x_bounds[0] + i * self.hx, self.y_bounds[0] + j * self.hy)

    def point_to_index(self, x: float, y: float) -> tuple[int, int]:
        """
        Index of the node nearest to (x, y). Points outside the domain are clamped to the edge.
        """
        i = int(round((x - self.x_bounds[0]) / self.hx))
        j = int(round((y - self.y_bounds[0]) / self.hy))
        return (min(max(i, 0), self.nx - 1), min(max(j, 0), self.ny - 1))

    def contains(self, x: float, y: float, strict: bool = False) -> bool:
        """
        Whether (x, y) is inside the domain. With strict=True points on the boundary are excluded.
        """
        (x_lo, x_hi), (y_lo, y_hi) = self.x_bounds, self.y_bounds
        if strict:
            return (x_lo < x < x_hi) and (y_lo < y < y_hi)
        return (x_lo <= x <= x_hi) and (y_lo <= y <= y_hi)

    def is_boundary_index(self, i: int, j: int) -> bool:
        return i == 0 or j == 0 or i == self.nx - 1 or j == self.ny - 1

    def neighbors(self, i: int, j: int, connectivity: int = 8) -> list[tuple[int, int]]:
        """
        In-domain neighbors of node (i, j), 4 or 8 connected.
        """
        if connectivity == 4:
            offsets = _4_CONNECTED
        elif connectivity == 8:
            offsets = _8_CONNECTED
        else:
            raise ValueError(f"Invalid argument: connectivity={connectivity}")

        return [
            (i + di, j + dj) for di, dj in offsets if (0 <= i + di < self.nx) and (0 <= j + dj < self.ny)
        ]

    def validate_start(self, x: float, y: float) -> tuple[int, int]:
        """
        Checks that (x, y) can seed a front expansion and returns its nearest node.

        A start on (or snapped onto) the boundary would stop the front the moment it's accepted,
        so it's rejected rather than producing a partially filled grid.

        Raises:
            InvalidDomain: if the point is outside or on the boundary, or its nearest node is a boundary node.
        """
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidDomain(f"Start point must be finite, got ({x}, {y})")

        if not self.contains(x, y, strict=True):
            raise InvalidDomain(
                f"Start point ({x}, {y}) is outside or on the boundary of "
                f"x_bounds={self.x_bounds}, y_bounds={self.y_bounds}"
            )

        i, j = self.point_to_index(x, y)
        if self.is_boundary_index(i, j):
            raise InvalidDomain(
                f"Start point ({x}, {y}) snaps to boundary node {(i, j)} at {self.index_to_point(i, j)}. "
                f"Enlarge the bounds x_bounds={self.x_bounds}, y_bounds={self.y_bounds} or refine the mesh."
            )

        return i, j
