"""
Code for computing deterministic trajectories of the drift (the skeleton of the SDE).
"""

import numpy as np
from scipy.integrate import odeint

from qpot.drift.drift import DriftField


def compute_trajectory(drift: DriftField, start: tuple[float, float], odeint_timepoints: np.ndarray) -> np.ndarray:
    """
    Returns:
        array with shape (len(odeint_timepoints), 2) of x,y positions
    """
    f = _construct_f_for_odeint(drift)
    return odeint(f, np.asarray(start, dtype=float), odeint_timepoints, rtol=1e-8, atol=1e-10)


def _construct_f_for_odeint(drift: DriftField):
    def f(xy, t):
        f1, f2 = drift.evaluate(xy[0], xy[1])
        return [float(f1), float(f2)]

    return f
