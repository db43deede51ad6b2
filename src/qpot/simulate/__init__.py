from .deterministic import compute_trajectory

__all__ = ["compute_trajectory"]
