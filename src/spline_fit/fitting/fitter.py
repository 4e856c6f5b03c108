"""Curve fit orchestration.

``CurveFit`` turns a validated FitRequest into solver calls: it sizes the
session buffers, translates a fit mode into a solver task and smoothing
target, checks the solver status and trims the result into a SplineCurve.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from ..errors import SolverError, ValidationError, ValidationReason
from ..splines.curve import SplineCurve
from .modes import (
    FitMode,
    Interpolating,
    LeastSquaresFixedKnots,
    Smoothing,
    SmoothingContinue,
)
from .request import CurveKind, FitRequest
from .session import FitSession
from .solver import FitpackSolver, SolverBackend, SolverReport, SolverTask


def cardinal_knots(u: np.ndarray, k: int, dt: float) -> np.ndarray:
    """Uniform knot vector for a cardinal spline.

    Interior knots are integer multiples of ``dt`` lying strictly inside
    ``(u[0], u[-1])``; the boundary knots ``u[0]`` and ``u[-1]`` are repeated
    k + 1 times.

    Raises:
        ValidationError: If ``dt`` is not positive, or fewer than two interior
            knots fit inside the data range.
    """
    dt = float(dt)
    if not np.isfinite(dt) or dt <= 0:
        raise ValidationError(
            ValidationReason.CARDINAL_SPACING,
            f"cardinal spline spacing must be positive, got {dt}"
        )

    u_begin, u_end = float(u[0]), float(u[-1])
    tb = np.ceil(u_begin / dt) * dt
    if tb <= u_begin:
        tb += dt
    te = np.floor(u_end / dt) * dt
    if te >= u_end:
        te -= dt

    n_intervals = int(round((te - tb) / dt))
    if n_intervals <= 0:
        raise ValidationError(
            ValidationReason.CARDINAL_SPACING,
            f"cardinal spline spacing too large: select smaller interval "
            f"(dt={dt}, data range [{u_begin}, {u_end}])"
        )

    interior = tb + dt * np.arange(n_intervals + 1)
    return np.concatenate([
        np.full(k + 1, u_begin),
        interior,
        np.full(k + 1, u_end),
    ])


class CurveFit:
    """Fit B-spline curves to a FitRequest.

    One CurveFit owns one FitSession, reused across repeated solver calls,
    so a smoothing fit can be refined with ``smooth_more`` without
    reallocating buffers.

    Example:
        >>> request = FitRequest.function(x, y, k=3)
        >>> curve = CurveFit(request).smoothing_spline(rms=0.05)

    Attributes:
        request: The validated request.
        solver: Solver backend (FitpackSolver by default).
        session: Working buffers of this fit.
    """

    def __init__(self, request: FitRequest, solver: SolverBackend | None = None):
        self.request = request
        self.solver = solver if solver is not None else FitpackSolver()
        self.session = FitSession(request)

        # per-dimension derivative arrays, shape (dim, D)
        self._begin = _per_dimension(request.begin_constraints)
        self._end = _per_dimension(request.end_constraints)

    @property
    def rms(self) -> float | None:
        """rms residual of the current fit."""
        return self.session.rms

    @property
    def knot_count(self) -> int:
        """Number of knots of the current fit (0 before the first fit)."""
        return self.session.n

    def run(self, mode: FitMode) -> SolverReport:
        """Run the solver once in the given mode.

        Returns:
            SolverReport of the call; the session holds the new fit.

        Raises:
            ValidationError: If the mode does not apply to this request.
            SolverError: If the solver reports a hard error.
        """
        task, s, knots = self._translate(mode)
        kind = self.request.kind

        if kind is CurveKind.FUNCTION:
            report = self.solver.fit_function(self.session, task, s, knots)
        elif kind is CurveKind.PARAMETRIC:
            report = self.solver.fit_parametric(
                self.session, task, s, knots, self._begin, self._end
            )
        else:
            report = self.solver.fit_closed(self.session, task, s, knots)

        if not report.status.is_success:
            raise SolverError(report.status, knot_count=report.knot_count)
        return report

    def _translate(self, mode: FitMode) -> tuple[SolverTask, float, np.ndarray | None]:
        """Map a fit mode to (task, s, knots)."""
        m = self.request.n_samples

        if isinstance(mode, LeastSquaresFixedKnots):
            self._check_knots(mode.knots)
            return SolverTask.FIXED_KNOTS, 0.0, mode.knots
        if isinstance(mode, Interpolating):
            return SolverTask.NEW, 0.0, None
        if isinstance(mode, Smoothing):
            return SolverTask.NEW, m * mode.target_rms ** 2, None
        if isinstance(mode, SmoothingContinue):
            return SolverTask.CONTINUE, m * mode.target_rms ** 2, None

        raise ValidationError(
            ValidationReason.UNSUPPORTED_MODE, f"unknown fit mode: {mode!r}"
        )

    def _check_knots(self, knots: np.ndarray) -> None:
        k = self.request.k
        if self.request.kind is CurveKind.CLOSED:
            raise ValidationError(
                ValidationReason.UNSUPPORTED_MODE,
                "fixed knot fits are not supported for closed curves"
            )
        if len(knots) < 2 * k + 2:
            raise ValidationError(
                ValidationReason.KNOT_VECTOR,
                f"need at least {2 * k + 2} knots for degree {k}, got {len(knots)}"
            )
        if len(knots) > self.session.layout.nest:
            raise ValidationError(
                ValidationReason.KNOT_VECTOR,
                f"{len(knots)} knots exceed the buffer capacity "
                f"nest={self.session.layout.nest}"
            )

    def curve(self) -> SplineCurve:
        """Return the current fit as an immutable SplineCurve."""
        return self.session.to_curve()

    def least_squares_spline(self, knots: np.ndarray) -> SplineCurve:
        """Weighted least-squares spline on a fixed knot vector.

        The boundary knots are pinned to the first and last parameter value.
        """
        self.run(LeastSquaresFixedKnots(knots))
        return self.curve()

    def cardinal_spline(self, dt: float) -> SplineCurve:
        """Weighted least-squares spline with equidistant knots.

        Interior knots are ``dt`` apart and aligned to integer multiples
        of it; they cover the range within the bounds of the parameter.
        """
        knots = cardinal_knots(self.request.u, self.request.k, dt)
        return self.least_squares_spline(knots)

    def interpolating_spline(self) -> SplineCurve:
        """Spline passing through every sample."""
        self.run(Interpolating())
        return self.curve()

    def smoothing_spline(self, rms: float) -> SplineCurve:
        """Spline with a minimal number of knots and rms error below ``rms``.

        Refine it with ``smooth_more``.
        """
        self.run(Smoothing(rms))
        return self.curve()

    def smooth_more(self, rms: float) -> SplineCurve:
        """Repeat a smoothing fit with a new target, starting from the
        current knots."""
        self.run(SmoothingContinue(rms))
        return self.curve()

    def smoothing_spline_optimize(
        self,
        rms_start: float,
        converged: Callable[[int, int, float, float], bool],
        rms_scale_ratio: float = 0.8,
        n_iter: int = 40
    ) -> SplineCurve:
        """Best-fit smoothing spline by decreasing the rms target.

        See ``SmoothingSearch`` for the algorithm.
        """
        from .search import SmoothingSearch

        search = SmoothingSearch(n_iter=n_iter, rms_scale_ratio=rms_scale_ratio)
        return search.run(self, rms_start, converged)

    def __repr__(self) -> str:
        return (
            f"CurveFit(kind={self.request.kind.name}, m={self.request.n_samples}, "
            f"k={self.request.k}, dim={self.request.dim}, n={self.knot_count})"
        )


def _per_dimension(stack: np.ndarray | None) -> np.ndarray | None:
    """Flatten a (D, dim) derivative stack into per-dimension rows (dim, D)."""
    if stack is None:
        return None
    return np.ascontiguousarray(stack.T)
