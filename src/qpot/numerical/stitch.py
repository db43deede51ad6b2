"""
Stitching local quasi-potentials into a single global surface.

Every local surface is zero at its own equilibrium. Stitching finds an additive offset per basin so that
neighboring basins agree at the unstable points (saddles) on the separatrix between them, and then takes the
pointwise minimum of the shifted surfaces.
"""

import warnings
import numpy as np
import pandas as pd
from typing import Callable, Literal, Mapping, Sequence

from qpot.drift.drift import DriftField
from qpot.errors import AlignmentError, InvalidDomain, NumericalWarning
from qpot.grid import Domain, GlobalSurface, LocalSurface
from qpot.log import logger
from qpot.numerical.equilibria import STABLE, classify_equilibrium

# (basin_i, basin_j, raw value of i at the point, raw value of j at the point, index of the unstable point)
Pair = tuple[int, int, float, float, int]

AlignmentPolicy = Callable[[int, Sequence[Pair]], np.ndarray]

# an unstable point is an equilibrium if |drift| is below this fraction of the largest drift on the grid:
_equilibrium_rtol = 1e-3


"""
Alignment policies:
"""


def least_squares_offsets(n_basins: int, pairs: Sequence[Pair]) -> np.ndarray:
    """
    Offsets minimizing the sum of squared discontinuities over all anchor equations
    off_i + phi_i(u) = off_j + phi_j(u).
    """
    A = np.zeros((len(pairs) + 1, n_basins))
    rhs = np.zeros(len(pairs) + 1)
    for row, (i, j, phi_i, phi_j, _) in enumerate(pairs):
        A[row, i] = 1.0
        A[row, j] = -1.0
        rhs[row] = phi_j - phi_i

    # fix the free constant, the merged surface is shifted to a zero minimum anyway:
    A[-1, 0] = 1.0

    offsets, *_ = np.linalg.lstsq(A, rhs, rcond=None)
    return offsets


def lowest_saddle_offsets(n_basins: int, pairs: Sequence[Pair]) -> np.ndarray:
    """
    Aligns basins along a spanning tree of anchors, cheapest first.

    Anchors are visited in ascending order of the larger of their two raw values (ties: order of the unstable
    points, then basin indices). The first anchor connecting two groups of basins fixes their relative offset,
    later anchors between the same groups are ignored.
    """
    group = list(range(n_basins))
    offsets = np.zeros(n_basins)

    for i, j, phi_i, phi_j, _ in sorted(pairs, key=lambda p: (max(p[2], p[3]), p[4], p[0], p[1])):
        gi, gj = group[i], group[j]
        if gi == gj:
            continue
        # shift group gj so that off_j + phi_j == off_i + phi_i
        shift = offsets[i] + phi_i - (offsets[j] + phi_j)
        for b in range(n_basins):
            if group[b] == gj:
                offsets[b] += shift
                group[b] = gi

    return offsets


_policies: dict[str, AlignmentPolicy] = {
    "least_squares": least_squares_offsets,
    "lowest_saddle": lowest_saddle_offsets,
}


def _get_policy(policy: str | AlignmentPolicy) -> AlignmentPolicy:
    if callable(policy):
        return policy
    if policy not in _policies:
        raise ValueError(f"Invalid argument: policy={policy}, expected one of {list(_policies)} or a callable")
    return _policies[policy]


"""
Stitching:
"""


def stitch_global(
    local_surfaces: Sequence[LocalSurface],
    unstable_points: Sequence[tuple[float, float]],
    domain: Domain | None = None,
    adjacency: Mapping[int, Sequence[int]] | None = None,
    policy: Literal["least_squares", "lowest_saddle"] | AlignmentPolicy = "least_squares",
    tolerance: float | None = None,
    drift: DriftField | None = None,
) -> GlobalSurface:
    """
    Merges local quasi-potentials into a global one.

    Parameters:
        local_surfaces (Sequence[LocalSurface]):
            one surface per basin, all over the same domain

        unstable_points (Sequence[tuple[float, float]]):
            saddles / unstable equilibria on the separatrices between basins

        domain (Domain, optional):
            the shared domain. Defaults to the domain of the first surface.

        adjacency (Mapping[int, Sequence[int]], optional):
            maps the index of an unstable point to the indices of the basins whose separatrix it lies on.
            Defaults to the two basins with the lowest raw values at the point.

        policy (str | Callable):
            how offsets are chosen when anchors disagree:
                - "least_squares": minimize the total squared discontinuity at the anchors
                - "lowest_saddle": align along the cheapest anchors, ignore the rest
                - a callable (n_basins, pairs) -> offsets, see :func:`least_squares_offsets`

        tolerance (float, optional):
            maximal distance between an unstable point and its nearest node. Defaults to half a cell diagonal.
            Every adjacent surface must also have a critical point within max(2 * tolerance, one cell diagonal)
            of that node.

        drift (DriftField, optional):
            when given, every unstable point must also be an equilibrium of the drift that isn't stable.

    Raises:
        InvalidDomain: surfaces over different domains.
        AlignmentError: an unstable point that is outside the domain, isn't adjacent to two defined
            surfaces, or doesn't lie on a separatrix between them. Basins that aren't connected by any
            unstable point.

    Returns:
        GlobalSurface: zero at its minimum, undefined where no local surface is defined.
    """
    if len(local_surfaces) == 0:
        raise ValueError("Expected at least one local surface")

    domain = domain or local_surfaces[0].domain
    for k, surface in enumerate(local_surfaces):
        if surface.domain != domain:
            raise InvalidDomain(f"Local surface {k} is defined over {surface.domain}, expected {domain}")

    if tolerance is None:
        tolerance = 0.5 * float(np.hypot(domain.hx, domain.hy))

    align = _get_policy(policy)
    n_basins = len(local_surfaces)

    if drift is not None:
        _check_unstable_equilibria(drift, unstable_points, domain)

    anchors, pairs = _collect_anchors(local_surfaces, unstable_points, domain, adjacency, tolerance)
    _check_connected(n_basins, pairs)

    offsets = np.asarray(align(n_basins, pairs), dtype=float) if n_basins > 1 else np.zeros(1)

    # pointwise minimum over the basins defined at each node:
    stack = np.ma.stack([s.masked + off for s, off in zip(local_surfaces, offsets)])
    merged = stack.min(axis=0)

    defined = ~np.ma.getmaskarray(merged)
    if defined.any():
        minimum = float(merged.min())
        merged = merged - minimum
        offsets = offsets - minimum

    residuals = np.array([(offsets[i] + phi_i) - (offsets[j] + phi_j) for i, j, phi_i, phi_j, _ in pairs])

    if len(anchors):
        anchors["offset"] = offsets[anchors["basin"].to_numpy()]
        anchors["aligned_value"] = anchors["raw_value"] + anchors["offset"]

    logger.debug("stitched %d basins, offsets %s", n_basins, offsets)
    if len(residuals):
        logger.debug("max discontinuity at anchors: %.3g", np.abs(residuals).max())

    _check_resolution(local_surfaces, pairs)

    return GlobalSurface(
        values=np.ma.filled(merged.astype(float), np.nan),
        domain=domain,
        offsets=offsets,
        anchors=anchors,
        residuals=residuals,
        defined=defined,
    )


def _collect_anchors(
    local_surfaces: Sequence[LocalSurface],
    unstable_points: Sequence[tuple[float, float]],
    domain: Domain,
    adjacency: Mapping[int, Sequence[int]] | None,
    tolerance: float,
) -> tuple[pd.DataFrame, list[Pair]]:
    """
    Reads the raw value of every basin at every unstable point and builds the anchor equations.
    """
    rows = []
    pairs: list[Pair] = []
    critical_reach = max(2 * tolerance, float(np.hypot(domain.hx, domain.hy)))

    for k, (x, y) in enumerate(unstable_points):
        if not domain.contains(x, y):
            raise AlignmentError(
                f"Unstable point {k} = ({x}, {y}) is outside x_bounds={domain.x_bounds}, y_bounds={domain.y_bounds}"
            )

        i, j = domain.point_to_index(x, y)
        node_x, node_y = domain.index_to_point(i, j)
        if np.hypot(x - node_x, y - node_y) > tolerance:
            raise AlignmentError(
                f"Unstable point {k} = ({x}, {y}) is farther than {tolerance:.3g} from its nearest node {(node_x, node_y)}"
            )

        raw = {b: float(s.values[i, j]) for b, s in enumerate(local_surfaces) if s.defined[i, j]}

        if adjacency is not None and k in adjacency:
            basins = [int(b) for b in adjacency[k]]
            missing = [b for b in basins if b not in raw]
            if missing:
                raise AlignmentError(f"Local surfaces {missing} are undefined at unstable point {k} = ({x}, {y})")
        else:
            basins = sorted(raw, key=lambda b: (raw[b], b))[:2]

        if len(basins) < 2:
            raise AlignmentError(
                f"Unstable point {k} = ({x}, {y}) is adjacent to {len(basins)} local surface(s), expected at least 2"
            )

        for b in basins:
            offset = _critical_point_offset(local_surfaces[b], i, j)
            if offset is not None and offset > critical_reach:
                raise AlignmentError(
                    f"Unstable point {k} = ({x}, {y}) isn't on a separatrix of local surface {b}: the nearest "
                    f"critical point of the surface is {offset:.3g} away from node {(node_x, node_y)}"
                )

        for b in basins:
            rows.append({"point": k, "x": x, "y": y, "basin": b, "raw_value": raw[b]})

        for m, bi in enumerate(basins):
            for bj in basins[m + 1 :]:
                pairs.append((bi, bj, raw[bi], raw[bj], k))

    anchors = pd.DataFrame(rows, columns=["point", "x", "y", "basin", "raw_value"])
    return anchors, pairs


def _critical_point_offset(surface: LocalSurface, i: int, j: int) -> float | None:
    """
    Distance from node (i, j) to the critical point of the local quadratic model of the surface
    (one newton step with centered differences).

    Every quasi-potential has a vanishing gradient at equilibria, a point elsewhere has no critical point nearby.
    Returns None if the 3x3 block around the node isn't interior and defined.
    """
    domain = surface.domain
    if not (0 < i < domain.nx - 1 and 0 < j < domain.ny - 1):
        return None
    if not surface.defined[i - 1 : i + 2, j - 1 : j + 2].all():
        return None

    phi = surface.values
    hx, hy = domain.hx, domain.hy

    gradient = np.array(
        [
            (phi[i + 1, j] - phi[i - 1, j]) / (2 * hx),
            (phi[i, j + 1] - phi[i, j - 1]) / (2 * hy),
        ]
    )
    hxy = (phi[i + 1, j + 1] - phi[i + 1, j - 1] - phi[i - 1, j + 1] + phi[i - 1, j - 1]) / (4 * hx * hy)
    hessian = np.array(
        [
            [(phi[i + 1, j] - 2 * phi[i, j] + phi[i - 1, j]) / hx**2, hxy],
            [hxy, (phi[i, j + 1] - 2 * phi[i, j] + phi[i, j - 1]) / hy**2],
        ]
    )

    # directions with less than 1% of the largest curvature are treated as flat:
    step, *_ = np.linalg.lstsq(hessian, -gradient, rcond=1e-2)
    return float(np.hypot(*step))


def _check_unstable_equilibria(
    drift: DriftField, unstable_points: Sequence[tuple[float, float]], domain: Domain
) -> None:
    f1, f2 = drift.sample(domain)
    magnitudes = np.hypot(f1, f2)
    scale = float(np.nanmax(magnitudes)) if np.isfinite(magnitudes).any() else 1.0
    step = min(domain.hx, domain.hy) / 10

    for k, (x, y) in enumerate(unstable_points):
        residual = float(np.hypot(*drift.evaluate(float(x), float(y))))
        if not np.isfinite(residual) or residual > _equilibrium_rtol * (scale or 1.0):
            raise AlignmentError(f"Unstable point {k} = ({x}, {y}) is not an equilibrium: |drift| = {residual:.3g}")
        if classify_equilibrium(drift, (x, y), step=step) == STABLE:
            raise AlignmentError(f"Unstable point {k} = ({x}, {y}) is a stable equilibrium, not on a separatrix")


def _check_connected(n_basins: int, pairs: Sequence[Pair]) -> None:
    group = list(range(n_basins))

    def find(b):
        while group[b] != b:
            group[b] = group[group[b]]
            b = group[b]
        return b

    for i, j, *_ in pairs:
        group[find(i)] = find(j)

    roots = {find(b) for b in range(n_basins)}
    if len(roots) > 1:
        components = sorted(sorted(b for b in range(n_basins) if find(b) == r) for r in roots)
        raise AlignmentError(f"Basins {components} aren't connected by any unstable point, offsets are undetermined")


def _check_resolution(local_surfaces: Sequence[LocalSurface], pairs: Sequence[Pair]) -> None:
    """
    Warns about basins whose barrier isn't larger than the variation of phi across the cells next to the seed.
    """
    barriers: dict[int, float] = {}
    for i, j, phi_i, phi_j, _ in pairs:
        barriers[i] = min(barriers.get(i, np.inf), phi_i)
        barriers[j] = min(barriers.get(j, np.inf), phi_j)

    for b, barrier in barriers.items():
        surface = local_surfaces[b]
        i0, j0 = surface.seed_index
        neighbors = surface.domain.neighbors(i0, j0, connectivity=8)
        first_ring = [surface.values[n] for n in neighbors if surface.defined[n]]
        if first_ring and barrier <= max(first_ring):
            msg = (
                f"Basin {b} of {surface.start} has a barrier of {barrier:.3g}, not larger than the variation "
                f"across one cell ({max(first_ring):.3g}). Refine the grid to resolve this basin."
            )
            logger.warning(msg)
            warnings.warn(msg, NumericalWarning, stacklevel=3)
