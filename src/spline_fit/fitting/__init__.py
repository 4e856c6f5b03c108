"""Fitting module: requests, solver sessions, and smoothing search."""

from .request import FitRequest, CurveKind, max_constraint_stack
from .modes import (
    FitMode,
    Interpolating,
    LeastSquaresFixedKnots,
    Smoothing,
    SmoothingContinue,
)
from .session import BufferLayout, FitSession
from .solver import FitpackSolver, SolverBackend, SolverReport, SolverTask
from .fitter import CurveFit, cardinal_knots
from .search import SearchStep, SmoothingSearch, smoothing_spline_optimize

__all__ = [
    # Requests
    "FitRequest",
    "CurveKind",
    "max_constraint_stack",
    # Fit modes
    "FitMode",
    "Interpolating",
    "LeastSquaresFixedKnots",
    "Smoothing",
    "SmoothingContinue",
    # Solver
    "BufferLayout",
    "FitSession",
    "FitpackSolver",
    "SolverBackend",
    "SolverReport",
    "SolverTask",
    # Orchestration
    "CurveFit",
    "cardinal_knots",
    "SearchStep",
    "SmoothingSearch",
    "smoothing_spline_optimize",
]
