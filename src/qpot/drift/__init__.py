from .drift import DriftField, FunctionDrift
from .expression import ExpressionDrift

__all__ = ["DriftField", "FunctionDrift", "ExpressionDrift"]
