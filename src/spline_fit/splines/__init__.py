"""Splines module: immutable B-spline curves and their evaluation."""

from .curve import SplineCurve, MAX_DIMENSION
from .evaluation import evaluate

__all__ = [
    "SplineCurve",
    "MAX_DIMENSION",
    "evaluate",
]
