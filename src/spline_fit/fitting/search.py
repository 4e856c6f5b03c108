"""Smoothing-spline search over a decreasing rms target.

The solver takes an error budget, not a knot count. Decreasing the rms
target never decreases the knot count, so the search tightens the budget
step by step, each step continuing from the previous knots, until a
caller-supplied predicate accepts the trade-off between rms error and
representation size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from ..errors import SearchNotConverged, SolverStatus
from ..splines.curve import SplineCurve
from .modes import Smoothing, SmoothingContinue

if TYPE_CHECKING:
    from .fitter import CurveFit

logger = logging.getLogger(__name__)

# converged(knot_count, delta_knots, rms, delta_rms) -> bool
ConvergenceTest = Callable[[int, int, float, float], bool]


@dataclass
class SearchStep:
    """One iteration of the smoothing search.

    Attributes:
        iteration: Iteration number, starting at 1.
        target_rms: rms target passed to the solver.
        knot_count: Knots of the resulting fit.
        delta_knots: Knots added in this iteration.
        rms: Achieved rms error.
        delta_rms: rms improvement in this iteration.
        status: Solver status.
    """
    iteration: int
    target_rms: float
    knot_count: int
    delta_knots: int
    rms: float
    delta_rms: float
    status: SolverStatus


@dataclass
class SmoothingSearch:
    """Iterative search for a smoothing spline.

    1. Fit a smoothing spline with target ``rms_start``.
    2. Up to ``n_iter`` times, fit again with target ``rms * rms_scale_ratio``
       (rms being the error achieved by the previous fit), continuing from
       the previous knots.
    3. When ``converged(knot_count, delta_knots, rms, delta_rms)`` holds,
       refit from scratch at the previous achieved rms, so the final shrink
       cannot overshoot, and return that curve.

    Attributes:
        n_iter: Maximum number of tightening iterations.
        rms_scale_ratio: Factor applied to the rms target at each step.
        history: Steps of the last run.
    """
    n_iter: int = 40
    rms_scale_ratio: float = 0.8
    history: list[SearchStep] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        if self.n_iter < 1:
            raise ValueError(f"n_iter must be at least 1, got {self.n_iter}")
        if not 0 < self.rms_scale_ratio < 1:
            raise ValueError(
                f"rms_scale_ratio must be in (0, 1), got {self.rms_scale_ratio}"
            )

    def run(
        self,
        fit: CurveFit,
        rms_start: float,
        converged: ConvergenceTest
    ) -> SplineCurve:
        """Run the search on a CurveFit.

        Raises:
            SolverError: As soon as any solver call reports a hard error.
            SearchNotConverged: If ``converged`` never holds within n_iter.
        """
        self.history = []
        report = fit.run(Smoothing(rms_start))
        knot_count = report.knot_count
        rms = fit.rms

        for iteration in range(1, self.n_iter + 1):
            knots_prev, rms_prev = knot_count, rms
            target = rms * self.rms_scale_ratio

            report = fit.run(SmoothingContinue(target))
            knot_count, rms = report.knot_count, fit.rms

            step = SearchStep(
                iteration=iteration,
                target_rms=target,
                knot_count=knot_count,
                delta_knots=knot_count - knots_prev,
                rms=rms,
                delta_rms=rms_prev - rms,
                status=report.status,
            )
            self.history.append(step)
            logger.debug(
                "iteration %d: target=%.6g knots=%d (%+d) rms=%.6g (%+.3g)",
                iteration, target, knot_count, step.delta_knots,
                rms, -step.delta_rms
            )

            if converged(knot_count, step.delta_knots, rms, step.delta_rms):
                fit.run(Smoothing(rms_prev))
                logger.info(
                    "smoothing search converged after %d iterations: "
                    "%d knots, rms=%.6g", iteration, fit.knot_count, fit.rms
                )
                return fit.curve()

        raise SearchNotConverged(self.n_iter, knot_count, rms)


def smoothing_spline_optimize(
    fit: CurveFit,
    rms_start: float,
    converged: ConvergenceTest,
    rms_scale_ratio: float = 0.8,
    n_iter: int = 40
) -> SplineCurve:
    """Best-fit smoothing spline by decreasing the rms target.

    Args:
        fit: The CurveFit to drive.
        rms_start: Initial rms target.
        converged: Predicate on (knot_count, delta_knots, rms, delta_rms).
        rms_scale_ratio: Target reduction per step.
        n_iter: Maximum number of iterations.

    Returns:
        The accepted SplineCurve.
    """
    search = SmoothingSearch(n_iter=n_iter, rms_scale_ratio=rms_scale_ratio)
    return search.run(fit, rms_start, converged)
