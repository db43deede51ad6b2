import numpy as np

from qpot.drift.example_drifts import rotational_drift, double_well_drift
from qpot.simulate import compute_trajectory


def test_trajectory_converges_to_equilibrium():
    t = np.linspace(0, 20, 201)
    traj = compute_trajectory(rotational_drift(), (0.8, 0.0), t)

    assert traj.shape == (201, 2)
    assert np.allclose(traj[0], (0.8, 0.0))
    assert np.linalg.norm(traj[-1]) < 1e-6


def test_trajectory_stays_in_basin():
    t = np.linspace(0, 30, 301)
    traj = compute_trajectory(double_well_drift(), (0.2, 0.5), t)
    assert np.allclose(traj[-1], (1.0, 0.0), atol=1e-4)
