"""
Local quasi-potentials: one ordered upwind solve per stable equilibrium.
"""

import warnings
import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm
from typing import Literal, Sequence

from qpot.drift.drift import DriftField
from qpot.errors import DegenerateGeometry, NumericalWarning
from qpot.grid import Domain, LocalSurface
from qpot.log import logger
from qpot.numerical.equilibria import check_stable_equilibrium
from qpot.numerical.ordered_upwind import ACCEPTED, ordered_upwind

# update radius, in cells:
_default_update_radius = 10


def solve_local(
    drift: DriftField,
    start: tuple[float, float],
    domain: Domain,
    update_radius: float = _default_update_radius,
    diffusion: np.ndarray | None = None,
    boundary: Literal["continue", "stop"] = "continue",
    check_equilibrium: bool = True,
) -> LocalSurface:
    """
    Computes the quasi-potential of the basin of the stable equilibrium start.

    Args:
        drift (DriftField): the deterministic skeleton of the SDE.
        start (tuple[float, float]): a stable equilibrium strictly inside the domain.
        domain (Domain): bounds and resolution of the grid.
        update_radius (float, optional): a newly accepted node updates considered nodes up to this many cells away. Defaults to 10.
        diffusion (np.ndarray | None, optional): constant 2x2 diffusion matrix. Defaults to the identity.
        boundary (Literal[&quot;continue&quot;, &quot;stop&quot;], optional): keep expanding until every node is accepted, or stop
            the moment the front touches the domain edge. Defaults to "continue".
        check_equilibrium (bool, optional): warn if start isn't a stable equilibrium of the drift. Defaults to True.

    Raises:
        InvalidDomain: start is outside the domain, on its boundary or snaps to a boundary node.
        DegenerateGeometry: a node could only be reached with a non-finite value.

    Returns:
        LocalSurface: zero at the node nearest to start, undefined where the front didn't reach.
    """
    domain.validate_start(*start)
    bx, by = drift.sample(domain)

    if check_equilibrium:
        _check_start(drift, start, domain, bx, by)

    return _solve_sampled(bx, by, start, domain, update_radius, diffusion, boundary)


def solve_local_basins(
    drift: DriftField,
    starts: Sequence[tuple[float, float]],
    domain: Domain,
    n_jobs: int | None = None,
    verbose: bool = False,
    update_radius: float = _default_update_radius,
    diffusion: np.ndarray | None = None,
    boundary: Literal["continue", "stop"] = "continue",
    check_equilibrium: bool = True,
) -> list[LocalSurface]:
    """
    Solves each basin independently, in parallel threads.

    The drift is sampled once and shared read-only. Each solve owns its own state arrays.

    Args:
        starts (Sequence[tuple[float, float]]): one stable equilibrium per basin.
        n_jobs (int | None, optional): number of threads, see joblib.Parallel. Defaults to one thread per basin.
        verbose (bool, optional): show a progress bar. Defaults to False.

        See :func:`solve_local` for the remaining arguments.

    Returns:
        list[LocalSurface]: in the order of starts.
    """
    for start in starts:
        domain.validate_start(*start)

    bx, by = drift.sample(domain)

    if check_equilibrium:
        for start in starts:
            _check_start(drift, start, domain, bx, by)

    n_jobs = n_jobs or max(len(starts), 1)
    results = Parallel(n_jobs=n_jobs, prefer="threads", return_as="generator")(
        delayed(_solve_sampled)(bx, by, start, domain, update_radius, diffusion, boundary) for start in starts
    )

    # results arrive in the order of starts, the bar advances as each solve finishes:
    return list(tqdm(results, total=len(starts), disable=not verbose, desc="basins"))


def _check_start(drift: DriftField, start, domain: Domain, bx: np.ndarray, by: np.ndarray) -> None:
    magnitudes = np.hypot(bx, by)
    scale = float(np.nanmax(magnitudes)) if np.isfinite(magnitudes).any() else 1.0
    check_stable_equilibrium(drift, start, drift_scale=scale or 1.0, step=min(domain.hx, domain.hy) / 10)


def _inverse_diffusion(diffusion: np.ndarray | None) -> np.ndarray:
    if diffusion is None:
        return np.eye(2)

    diffusion = np.asarray(diffusion, dtype=float)
    if diffusion.shape != (2, 2):
        raise ValueError(f"Expected a 2x2 diffusion matrix, got shape {diffusion.shape}")
    if not np.allclose(diffusion, diffusion.T) or np.any(np.linalg.eigvalsh(diffusion) <= 0):
        raise ValueError(f"Diffusion matrix must be symmetric positive definite, got {diffusion.tolist()}")

    return np.ascontiguousarray(np.linalg.inv(diffusion))


def _solve_sampled(
    bx: np.ndarray,
    by: np.ndarray,
    start: tuple[float, float],
    domain: Domain,
    update_radius: float,
    diffusion: np.ndarray | None,
    boundary: str,
) -> LocalSurface:
    if boundary not in ("continue", "stop"):
        raise ValueError(f"Invalid argument: boundary={boundary}")
    if update_radius < 2:
        raise ValueError(f"update_radius must be at least 2 cells, got {update_radius}")

    i0, j0 = domain.validate_start(*start)
    metric = _inverse_diffusion(diffusion)

    logger.debug("solving basin of %s on %s, update radius %s", start, domain, update_radius)

    phi, status, parents, n_accepted, failed, boundary_node = ordered_upwind(
        np.ascontiguousarray(bx, dtype=np.float64),
        np.ascontiguousarray(by, dtype=np.float64),
        domain.hx,
        domain.hy,
        i0,
        j0,
        float(update_radius),
        metric,
        boundary == "stop",
    )

    if failed >= 0:
        i, j = divmod(int(failed), domain.ny)
        raise DegenerateGeometry(
            f"No local update gives a finite value at node {(i, j)} = {domain.index_to_point(i, j)}, "
            f"basin of {tuple(start)}. Check the drift for non-finite values."
        )

    surface = LocalSurface(
        values=phi,
        domain=domain,
        start=start,
        defined=status == ACCEPTED,
        seed_index=(i0, j0),
        parents=parents,
        n_accepted=int(n_accepted),
        stopped_at_boundary=boundary_node >= 0,
    )

    logger.debug("basin of %s: accepted %d / %d nodes", start, n_accepted, phi.size)

    if surface.approximate:
        logger.info(
            "start %s is %.3g away from the seeded node %s, the surface is approximate",
            start,
            surface.seed_offset,
            surface.seed_point,
        )

    if surface.stopped_at_boundary:
        i, j = divmod(int(boundary_node), domain.ny)
        msg = (
            f"Front of the basin of {tuple(start)} reached the domain edge at {domain.index_to_point(i, j)} "
            f"after {n_accepted} of {phi.size} nodes. The remaining nodes are undefined."
        )
        logger.warning(msg)
        warnings.warn(msg, NumericalWarning, stacklevel=3)

    return surface
