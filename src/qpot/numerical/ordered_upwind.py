"""
Compiled ordered upwind method for the quasi-potential of a single basin.

Nodes move from FAR to CONSIDERED (tentative value, kept in a min-heap) to ACCEPTED (final).
The CONSIDERED node with the smallest tentative value is accepted next, and only CONSIDERED nodes within
the update radius of the newly accepted node are re-examined.

The local cost of moving along a displacement d under drift b is

.. math::

    \\frac{1}{2} \\left( |b|_A |d|_A - \\langle b, d \\rangle_A \\right)

with A the inverse diffusion matrix. The cost of a segment integrates it along the segment with a composite
simpson rule, sampling the drift about once per cell.

Note:
    These functions are not considered in codecov because it doesn't support numba.
    But, they are tested through :func:`qpot.numerical.local.solve_local`.
"""

import math
import numpy as np
from numba import jit

FAR = 0
CONSIDERED = 1
ACCEPTED = 2

# 8-connected neighborhood:
_DI = np.array([-1, -1, -1, 0, 0, 1, 1, 1], dtype=np.int64)
_DJ = np.array([-1, 0, 1, -1, 1, -1, 0, 1], dtype=np.int64)

# golden section search over the interpolation parameter of a triangle update:
_GOLDEN = (math.sqrt(5.0) - 1.0) / 2.0
_S_TOLERANCE = 1e-4
_MAX_GOLDEN_ITERATIONS = 40

# simpson subintervals span two cells, so the drift is sampled about once per cell along a segment:
_CELLS_PER_SUBINTERVAL = 2.0


"""
Indexed binary heap ordered by (phi, flat index):
"""


@jit(nopython=True)
def _less(phi, a, b):  # pragma: no cover
    return phi[a] < phi[b] or (phi[a] == phi[b] and a < b)


@jit(nopython=True)
def _sift_up(heap, pos, phi, k):  # pragma: no cover
    node = heap[k]
    while k > 0:
        parent = (k - 1) >> 1
        other = heap[parent]
        if not _less(phi, node, other):
            break
        heap[k] = other
        pos[other] = k
        k = parent
    heap[k] = node
    pos[node] = k


@jit(nopython=True)
def _sift_down(heap, pos, phi, k, size):  # pragma: no cover
    node = heap[k]
    while True:
        child = 2 * k + 1
        if child >= size:
            break
        if child + 1 < size and _less(phi, heap[child + 1], heap[child]):
            child += 1
        if not _less(phi, heap[child], node):
            break
        heap[k] = heap[child]
        pos[heap[k]] = k
        k = child
    heap[k] = node
    pos[node] = k


@jit(nopython=True)
def _heap_push(heap, pos, phi, node, size):  # pragma: no cover
    heap[size] = node
    pos[node] = size
    _sift_up(heap, pos, phi, size)
    return size + 1


@jit(nopython=True)
def _heap_pop(heap, pos, phi, size):  # pragma: no cover
    top = heap[0]
    pos[top] = -1
    size -= 1
    if size > 0:
        heap[0] = heap[size]
        pos[heap[0]] = 0
        _sift_down(heap, pos, phi, 0, size)
    return top, size


"""
Local updates. Positions are in grid units (u = i, v = j), displacements are scaled by hx, hy.
"""


@jit(nopython=True)
def _drift_at(bx, by, u, v):  # pragma: no cover
    """
    Bilinear interpolation of the sampled drift at grid position (u, v).
    """
    nx, ny = bx.shape
    i = int(math.floor(u))
    j = int(math.floor(v))
    i = min(max(i, 0), nx - 2)
    j = min(max(j, 0), ny - 2)
    a = u - i
    c = v - j

    w00 = (1.0 - a) * (1.0 - c)
    w10 = a * (1.0 - c)
    w01 = (1.0 - a) * c
    w11 = a * c

    f1 = w00 * bx[i, j] + w10 * bx[i + 1, j] + w01 * bx[i, j + 1] + w11 * bx[i + 1, j + 1]
    f2 = w00 * by[i, j] + w10 * by[i + 1, j] + w01 * by[i, j + 1] + w11 * by[i + 1, j + 1]
    return f1, f2


@jit(nopython=True)
def _action(f1, f2, d1, d2, metric):  # pragma: no cover
    m00, m01, m10, m11 = metric[0, 0], metric[0, 1], metric[1, 0], metric[1, 1]
    ff = f1 * (m00 * f1 + m01 * f2) + f2 * (m10 * f1 + m11 * f2)
    dd = d1 * (m00 * d1 + m01 * d2) + d2 * (m10 * d1 + m11 * d2)
    fd = f1 * (m00 * d1 + m01 * d2) + f2 * (m10 * d1 + m11 * d2)
    cost = 0.5 * (math.sqrt(ff * dd) - fd)
    if cost < 0.0:  # rounding, cauchy-schwarz guarantees cost >= 0
        return 0.0
    return cost


@jit(nopython=True)
def _n_subintervals(du, dv):  # pragma: no cover
    """
    Number of simpson subintervals for a segment spanning (du, dv) cells, about one drift sample per cell.
    """
    length = math.sqrt(du * du + dv * dv)
    return max(1, int(math.ceil(length / _CELLS_PER_SUBINTERVAL)))


@jit(nopython=True)
def _segment_action(us, vs, uy, vy, n, hx, hy, bx, by, metric):  # pragma: no cover
    """
    Composite simpson rule for the action of the straight segment (us, vs) -> (uy, vy), with n subintervals.
    """
    d1 = (uy - us) * hx
    d2 = (vy - vs) * hy
    m = 2 * n
    total = 0.0
    for k in range(m + 1):
        t = k / m
        f1, f2 = _drift_at(bx, by, us + t * (uy - us), vs + t * (vy - vs))
        if k == 0 or k == m:
            w = 1.0
        elif k % 2 == 1:
            w = 4.0
        else:
            w = 2.0
        total += w * _action(f1, f2, d1, d2, metric)
    return total / (3.0 * m)


@jit(nopython=True)
def _one_point(phi0, u0, v0, uy, vy, hx, hy, bx, by, metric):  # pragma: no cover
    n = _n_subintervals(uy - u0, vy - v0)
    return phi0 + _segment_action(u0, v0, uy, vy, n, hx, hy, bx, by, metric)


@jit(nopython=True)
def _triangle_cost(s, n, phi0, phi1, u0, v0, u1, v1, uy, vy, hx, hy, bx, by, metric):  # pragma: no cover
    us = u0 + s * (u1 - u0)
    vs = v0 + s * (v1 - v0)
    return (1.0 - s) * phi0 + s * phi1 + _segment_action(us, vs, uy, vy, n, hx, hy, bx, by, metric)


@jit(nopython=True)
def _triangle_update(phi0, phi1, u0, v0, u1, v1, uy, vy, hx, hy, bx, by, metric):  # pragma: no cover
    """
    Minimizes the cost of reaching y from a point on the segment x0-x1 over the interpolation parameter.

    The number of quadrature subintervals is fixed per triangle, so the cost is continuous in s.
    Returns inf for colinear triangles, the caller keeps the one-point update in that case.
    """
    cross = (u1 - u0) * (vy - v0) - (v1 - v0) * (uy - u0)
    if cross == 0.0:  # exact, positions are integers
        return math.inf

    n = max(_n_subintervals(uy - u0, vy - v0), _n_subintervals(uy - u1, vy - v1))

    a = 0.0
    b = 1.0
    c = b - _GOLDEN * (b - a)
    d = a + _GOLDEN * (b - a)
    fc = _triangle_cost(c, n, phi0, phi1, u0, v0, u1, v1, uy, vy, hx, hy, bx, by, metric)
    fd = _triangle_cost(d, n, phi0, phi1, u0, v0, u1, v1, uy, vy, hx, hy, bx, by, metric)

    for _ in range(_MAX_GOLDEN_ITERATIONS):
        if b - a < _S_TOLERANCE:
            break
        if fc <= fd:
            b = d
            d = c
            fd = fc
            c = b - _GOLDEN * (b - a)
            fc = _triangle_cost(c, n, phi0, phi1, u0, v0, u1, v1, uy, vy, hx, hy, bx, by, metric)
        else:
            a = c
            c = d
            fc = fd
            d = a + _GOLDEN * (b - a)
            fd = _triangle_cost(d, n, phi0, phi1, u0, v0, u1, v1, uy, vy, hx, hy, bx, by, metric)

    return _triangle_cost(0.5 * (a + b), n, phi0, phi1, u0, v0, u1, v1, uy, vy, hx, hy, bx, by, metric)


"""
Front bookkeeping:
"""


@jit(nopython=True)
def _within(di, dj, hx, hy, reach2):  # pragma: no cover
    return (di * hx) ** 2 + (dj * hy) ** 2 <= reach2


@jit(nopython=True)
def _has_open_neighbor(status, nx, ny, i, j):  # pragma: no cover
    for k in range(8):
        ii = i + _DI[k]
        jj = j + _DJ[k]
        if 0 <= ii < nx and 0 <= jj < ny and status[ii * ny + jj] != ACCEPTED:
            return True
    return False


@jit(nopython=True)
def _refresh_front(status, front, nx, ny, i, j):  # pragma: no cover
    """
    Recomputes the accepted-front flag of node (i, j) and its accepted neighbors.
    """
    front[i * ny + j] = _has_open_neighbor(status, nx, ny, i, j)
    for k in range(8):
        ii = i + _DI[k]
        jj = j + _DJ[k]
        if 0 <= ii < nx and 0 <= jj < ny and status[ii * ny + jj] == ACCEPTED:
            front[ii * ny + jj] = _has_open_neighbor(status, nx, ny, ii, jj)


@jit(nopython=True)
def _triangles_around(
    x0, y, phi, front, parents, nx, ny, hx, hy, reach2, bx, by, metric
):  # pragma: no cover
    """
    Triangle updates of y on every front segment (x0, x1) with x1 an 8-neighbor of x0 within reach of y.

    Returns True if phi[y] decreased.
    """
    i0 = x0 // ny
    j0 = x0 % ny
    iy = y // ny
    jy = y % ny
    improved = False
    for k in range(8):
        i1 = i0 + _DI[k]
        j1 = j0 + _DJ[k]
        if not (0 <= i1 < nx and 0 <= j1 < ny):
            continue
        x1 = i1 * ny + j1
        if not front[x1]:
            continue
        if not _within(iy - i1, jy - j1, hx, hy, reach2):
            continue
        val = _triangle_update(
            phi[x0], phi[x1], float(i0), float(j0), float(i1), float(j1), float(iy), float(jy), hx, hy, bx, by, metric
        )
        if val < phi[y]:
            phi[y] = val
            parents[y, 0] = x0
            parents[y, 1] = x1
            improved = True
    return improved


@jit(nopython=True)
def _update_from(x0, y, phi, front, parents, nx, ny, hx, hy, reach2, bx, by, metric):  # pragma: no cover
    """
    One-point update of y from the newly accepted x0, then triangle updates through x0.
    """
    i0 = x0 // ny
    j0 = x0 % ny
    iy = y // ny
    jy = y % ny
    improved = False

    val = _one_point(phi[x0], float(i0), float(j0), float(iy), float(jy), hx, hy, bx, by, metric)
    if val < phi[y]:
        phi[y] = val
        parents[y, 0] = x0
        parents[y, 1] = -1
        improved = True

    if _triangles_around(x0, y, phi, front, parents, nx, ny, hx, hy, reach2, bx, by, metric):
        improved = True

    return improved


@jit(nopython=True)
def _initialize_considered(y, phi, front, parents, nx, ny, hx, hy, wi, wj, reach2, bx, by, metric):  # pragma: no cover
    """
    Tentative value of a node entering the CONSIDERED set.

    The best one-point update over the accepted front within reach is found first (ties keep the lowest index),
    then triangle updates are tried on the front segments adjacent to that node.
    """
    iy = y // ny
    jy = y % ny
    best = math.inf
    best_node = -1
    for i in range(max(0, iy - wi), min(nx, iy + wi + 1)):
        for j in range(max(0, jy - wj), min(ny, jy + wj + 1)):
            x0 = i * ny + j
            if not front[x0]:
                continue
            if not _within(iy - i, jy - j, hx, hy, reach2):
                continue
            val = _one_point(phi[x0], float(i), float(j), float(iy), float(jy), hx, hy, bx, by, metric)
            if val < best:
                best = val
                best_node = x0

    if best_node < 0:
        return

    if best < phi[y]:
        phi[y] = best
        parents[y, 0] = best_node
        parents[y, 1] = -1

    _triangles_around(best_node, y, phi, front, parents, nx, ny, hx, hy, reach2, bx, by, metric)


"""
Main loop:
"""


@jit(nopython=True, nogil=True)
def ordered_upwind(bx, by, hx, hy, i0, j0, radius, metric, stop_at_boundary):  # pragma: no cover
    """
    Computes the quasi-potential of the basin whose equilibrium is nearest to node (i0, j0).

    Parameters:
        bx, by (np.ndarray):
            drift components sampled on the grid nodes, shape (nx, ny)

        hx, hy (float):
            grid spacing

        i0, j0 (int):
            the seeded node, valued 0

        radius (float):
            update radius in units of max(hx, hy)

        metric (np.ndarray):
            2x2 inverse diffusion matrix

        stop_at_boundary (bool):
            stop as soon as a node on the domain edge is accepted

    Returns:
        phi (np.ndarray): (nx, ny) values, inf where not accepted
        status (np.ndarray): (nx, ny) FAR / CONSIDERED / ACCEPTED
        parents (np.ndarray): (nx, ny, 2) flat indices of the nodes that produced each value, -1 when unused
        n_accepted (int): number of accepted nodes
        failed (int): flat index of a node that could only be reached with a non-finite value, -1 otherwise
        boundary_node (int): flat index of the edge node that stopped the expansion, -1 otherwise
    """
    nx, ny = bx.shape
    n = nx * ny

    phi = np.full(n, np.inf)
    status = np.zeros(n, dtype=np.int8)
    front = np.zeros(n, dtype=np.bool_)
    parents = np.full((n, 2), -1, dtype=np.int64)
    heap = np.empty(n, dtype=np.int64)
    pos = np.full(n, -1, dtype=np.int64)

    reach = radius * max(hx, hy)
    reach2 = reach * reach
    wi = int(math.ceil(reach / hx))
    wj = int(math.ceil(reach / hy))

    seed = i0 * ny + j0
    phi[seed] = 0.0
    status[seed] = CONSIDERED
    size = _heap_push(heap, pos, phi, seed, 0)

    n_accepted = 0
    failed = -1
    boundary_node = -1

    while size > 0:
        node, size = _heap_pop(heap, pos, phi, size)
        if not math.isfinite(phi[node]):
            failed = node
            break

        status[node] = ACCEPTED
        n_accepted += 1
        i = node // ny
        j = node % ny
        _refresh_front(status, front, nx, ny, i, j)

        if stop_at_boundary and (i == 0 or j == 0 or i == nx - 1 or j == ny - 1):
            boundary_node = node
            break

        # re-examine considered nodes within reach of the new front node:
        for ii in range(max(0, i - wi), min(nx, i + wi + 1)):
            for jj in range(max(0, j - wj), min(ny, j + wj + 1)):
                y = ii * ny + jj
                if status[y] != CONSIDERED:
                    continue
                if not _within(ii - i, jj - j, hx, hy, reach2):
                    continue
                if _update_from(node, y, phi, front, parents, nx, ny, hx, hy, reach2, bx, by, metric):
                    _sift_up(heap, pos, phi, pos[y])

        # far neighbors join the considered set:
        for k in range(8):
            ii = i + _DI[k]
            jj = j + _DJ[k]
            if not (0 <= ii < nx and 0 <= jj < ny):
                continue
            y = ii * ny + jj
            if status[y] != FAR:
                continue
            status[y] = CONSIDERED
            _initialize_considered(y, phi, front, parents, nx, ny, hx, hy, wi, wj, reach2, bx, by, metric)
            size = _heap_push(heap, pos, phi, y, size)

    return (
        phi.reshape((nx, ny)),
        status.reshape((nx, ny)),
        parents.reshape((nx, ny, 2)),
        n_accepted,
        failed,
        boundary_node,
    )
