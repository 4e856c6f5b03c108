"""Least-squares B-spline curve fitting on top of FITPACK."""

from .errors import (
    EvaluationError,
    SearchNotConverged,
    SolverError,
    SolverStatus,
    SplineFitError,
    ValidationError,
    ValidationReason,
)
from .splines import SplineCurve, evaluate
from .fitting import (
    CurveFit,
    CurveKind,
    FitRequest,
    SmoothingSearch,
    smoothing_spline_optimize,
)

__version__ = "0.1.0"

__all__ = [
    "SplineCurve",
    "evaluate",
    "FitRequest",
    "CurveKind",
    "CurveFit",
    "SmoothingSearch",
    "smoothing_spline_optimize",
    # Errors
    "SplineFitError",
    "ValidationError",
    "ValidationReason",
    "SolverError",
    "SolverStatus",
    "SearchNotConverged",
    "EvaluationError",
]
