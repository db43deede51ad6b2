import numpy as np
import pytest

from qpot.errors import InvalidDomain
from qpot.grid import Domain


@pytest.mark.parametrize(
    "x_bounds, y_bounds, nx, ny",
    [
        ((1, 1), (0, 1), 10, 10),  # degenerate x
        ((1, 0), (0, 1), 10, 10),  # reversed x
        ((0, 1), (2, -2), 10, 10),  # reversed y
        ((0, 1), (0, 1), 1, 10),  # single node
        ((0, 1), (0, 1), 10, 0),
        ((0, np.inf), (0, 1), 10, 10),
    ],
)
def test_invalid_domain(x_bounds, y_bounds, nx, ny):
    with pytest.raises(InvalidDomain):
        Domain(x_bounds, y_bounds, nx, ny)


def test_spacing_and_coordinates():
    domain = Domain((-1, 1), (0, 3), 21, 31)

    assert domain.shape == (21, 31)
    assert np.isclose(domain.hx, 0.1)
    assert np.isclose(domain.hy, 0.1)

    X, Y = domain.meshgrid()
    assert X.shape == Y.shape == (21, 31)
    assert np.isclose(X[20, 0], 1.0) and np.isclose(Y[0, 30], 3.0)

    assert np.allclose(domain.index_to_point(10, 5), (0.0, 0.5))
    assert domain.point_to_index(0.01, 0.51) == (10, 5)

    # outside points are clamped:
    assert domain.point_to_index(-5, 10) == (0, 30)


def test_neighbors():
    domain = Domain((0, 1), (0, 1), 5, 5)

    assert len(domain.neighbors(2, 2, connectivity=4)) == 4
    assert len(domain.neighbors(2, 2, connectivity=8)) == 8
    assert sorted(domain.neighbors(0, 0, connectivity=8)) == [(0, 1), (1, 0), (1, 1)]

    with pytest.raises(ValueError):
        domain.neighbors(2, 2, connectivity=6)


def test_equality():
    assert Domain((0, 1), (0, 1), 5, 5) == Domain((0.0, 1.0), (0, 1), 5, 5)
    assert Domain((0, 1), (0, 1), 5, 5) != Domain((0, 1), (0, 1), 5, 6)


@pytest.mark.parametrize(
    "point",
    [
        (0.0, 0.5),  # on the left edge
        (0.5, 1.0),  # on the top edge
        (1.5, 0.5),  # outside
        (0.01, 0.5),  # inside, but snaps to the edge node
        (np.nan, 0.5),
    ],
)
def test_validate_start_rejects_boundary(point):
    domain = Domain((0, 1), (0, 1), 11, 11)
    with pytest.raises(InvalidDomain):
        domain.validate_start(*point)


def test_validate_start():
    domain = Domain((0, 1), (0, 1), 11, 11)
    assert domain.validate_start(0.42, 0.18) == (4, 2)
