import numpy as np
import pytest

from qpot.drift.example_drifts import double_well_drift, double_well_potential
from qpot.errors import AlignmentError, InvalidDomain, NumericalWarning
from qpot.grid import Domain, GlobalSurface, LocalSurface
from qpot.numerical import least_squares_offsets, lowest_saddle_offsets, solve_local_basins, stitch_global

DOMAIN = Domain((-2, 2), (-1.4, 1.4), 21, 15)
SADDLE = (0.0, 0.0)


def _well(side, scale=1.0, defined=None, domain=DOMAIN, width=1.0):
    """
    Double well surface, zero at (side * width, 0) and raised by x^2/2 past the saddle so the other well isn't zero.
    """
    X, Y = domain.meshgrid()
    past_saddle = np.maximum(-side * X / width, 0)
    values = scale * (double_well_potential(X / width, Y) + 0.5 * past_saddle**2)
    return LocalSurface(values, domain, start=(side * width, 0.0), defined=defined)


def _two_basins(**kwargs):
    return [_well(-1, **kwargs), _well(1, scale=2.0)]


def _top_basin():
    # zero at (0, 1), flat at the saddle:
    X, Y = DOMAIN.meshgrid()
    return LocalSurface(X**2 + (Y**2 - 1) ** 2, DOMAIN, start=(0.0, 1.0))


def test_two_basins():
    g = stitch_global(_two_basins(), [SADDLE])

    assert isinstance(g, GlobalSurface)
    assert g.is_complete()
    # raw values at the saddle are 0.25 and 0.5, the deeper basin is the second one:
    assert np.allclose(g.offsets, [0.25, 0.0])
    assert np.isclose(g.values[15, 7], 0.0)
    assert np.isclose(g.values[5, 7], 0.25)
    assert np.isclose(g.values.min(), 0.0)
    assert np.allclose(g.residuals, 0.0)

    assert list(g.anchors.columns) == ["point", "x", "y", "basin", "raw_value", "offset", "aligned_value"]
    assert np.allclose(g.anchors["raw_value"], [0.25, 0.5])
    aligned = g.anchors["aligned_value"]
    assert aligned.max() - aligned.min() < 1e-12


def test_single_basin_is_unchanged():
    local = _well(-1)
    g = stitch_global([local], [])
    assert np.array_equal(g.values, local.values)
    assert np.array_equal(g.offsets, [0.0])
    assert len(g.anchors) == 0


def test_undefined_cells_are_merged():
    X, _ = DOMAIN.meshgrid()
    left = _well(-1, defined=X <= 0.1)
    right = _well(1, scale=2.0, defined=X >= -0.1)

    g = stitch_global([left, right], [SADDLE])
    assert g.is_complete()
    assert np.isclose(g.values[0, 0], double_well_potential(-2.0, -1.4) + 0.25)


def test_alignment_policies():
    pairs = [(0, 1, 1.0, 2.0, 0), (1, 2, 1.0, 1.0, 1), (0, 2, 3.0, 1.0, 2)]
    assert np.allclose(least_squares_offsets(3, pairs), [0.0, 0.0, 1.0])
    assert np.allclose(lowest_saddle_offsets(3, pairs), [0.0, -1.0, -1.0])


def test_policy_argument():
    g = stitch_global(_two_basins(), [SADDLE], policy="lowest_saddle")
    assert np.allclose(g.offsets, [0.25, 0.0])

    g = stitch_global(_two_basins(), [SADDLE], policy=lambda n, pairs: np.arange(n, dtype=float))
    assert np.allclose(g.offsets, [0.0, 1.0])

    with pytest.raises(ValueError):
        stitch_global(_two_basins(), [SADDLE], policy="median")


def test_explicit_adjacency():
    surfaces = [*_two_basins(), _top_basin()]

    # the top basin has the highest raw value at the saddle, so it is only used when named:
    default = stitch_global(surfaces[:2], [SADDLE])
    assert set(default.anchors["basin"]) == {0, 1}

    g = stitch_global(surfaces, [SADDLE], adjacency={0: [0, 1, 2]})
    assert list(g.anchors["basin"]) == [0, 1, 2]
    assert len(g.residuals) == 3
    assert np.allclose(g.residuals, 0.0)
    assert np.allclose(g.anchors["aligned_value"], g.anchors["aligned_value"].iloc[0])


@pytest.mark.parametrize(
    "unstable_points, kwargs, match",
    [
        ([(2.5, 0.0)], {}, "outside"),
        ([(0.1, 0.0)], {"tolerance": 0.01}, "farther"),
        ([SADDLE], {"adjacency": {0: [0, 2]}}, "undefined"),
        ([(1.2, 0.6)], {}, "isn't on a separatrix"),
        ([(-0.6, 0.8)], {}, "isn't on a separatrix"),
    ],
)
def test_alignment_errors(unstable_points, kwargs, match):
    with pytest.raises(AlignmentError, match=match):
        stitch_global(_two_basins(), unstable_points, **kwargs)


def test_unstable_point_next_to_one_basin():
    X, _ = DOMAIN.meshgrid()
    surfaces = [_well(-1), _well(1, defined=X >= 0.7)]
    with pytest.raises(AlignmentError, match="expected at least 2"):
        stitch_global(surfaces, [SADDLE])


def test_disconnected_basins():
    surfaces = [*_two_basins(), _top_basin()]
    with pytest.raises(AlignmentError, match="aren't connected"):
        stitch_global(surfaces, [SADDLE])


@pytest.mark.parametrize(
    "unstable_points, match",
    [
        ([(1.0, 0.0)], "stable equilibrium"),
        ([(0.6, 0.0)], "not an equilibrium"),
    ],
)
def test_unstable_points_checked_against_drift(unstable_points, match):
    g = stitch_global(_two_basins(), [SADDLE], drift=double_well_drift())
    assert np.allclose(g.offsets, [0.25, 0.0])

    with pytest.raises(AlignmentError, match=match):
        stitch_global(_two_basins(), unstable_points, drift=double_well_drift())


def test_invalid_inputs():
    with pytest.raises(ValueError):
        stitch_global([], [])

    other = _well(-1, domain=Domain((-2, 2), (-1.4, 1.4), 21, 29))
    with pytest.raises(InvalidDomain):
        stitch_global([_well(1), other], [SADDLE])


def test_shallow_basin_warning():
    # wells one cell away from the saddle:
    narrow = [_well(-1, width=0.2), _well(1, scale=2.0, width=0.2)]
    with pytest.warns(NumericalWarning, match="Refine the grid"):
        stitch_global(narrow, [SADDLE])


@pytest.fixture(scope="module")
def double_well_locals():
    domain = Domain((-2, 2), (-1.5, 1.5), 81, 61)
    return solve_local_basins(double_well_drift(), [(-1.0, 0.0), (1.0, 0.0)], domain)


def test_double_well(double_well_locals):
    domain = double_well_locals[0].domain
    g = stitch_global(double_well_locals, [SADDLE], drift=double_well_drift())

    X, Y = domain.meshgrid()
    region = (np.abs(X) <= 1.5) & (np.abs(Y) <= 1.0)
    err = np.abs(g.values - double_well_potential(X, Y))[region]

    assert g.is_complete()
    assert err.max() < 0.05
    assert min(g.value_at(-1.0, 0.0), g.value_at(1.0, 0.0)) == 0.0
    assert max(g.value_at(-1.0, 0.0), g.value_at(1.0, 0.0)) < 0.02
    assert g.value_at(0.0, 0.0) == pytest.approx(0.25, abs=0.02)


def test_double_well_point_inside_a_basin(double_well_locals):
    with pytest.raises(AlignmentError, match="isn't on a separatrix"):
        stitch_global(double_well_locals, [(1.3, 1.2)])
