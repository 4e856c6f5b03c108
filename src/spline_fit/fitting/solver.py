"""Solver boundary: adaptive least-squares spline fitting.

The orchestrator only depends on the ``SolverBackend`` contract: given a
session, a task and a smoothing target (or a fixed knot vector), the solver
writes knots and coefficients into the session buffers and reports
``(status, knot_count, fp)``. The knot placement itself is a black box.

``FitpackSolver`` calls scipy's FITPACK wrapper directly: ``parcur`` for
functions (one coordinate) and open curves, ``clocur`` for closed ones.
The scratch arrays it works in belong to the session, which is what lets
a later call continue from the knots of the previous one.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

import numpy as np
from scipy.interpolate import _fitpack

from ..errors import SolverError, SolverStatus
from .constraints import augment_knots, constrained_least_squares
from .session import FitSession

logger = logging.getLogger(__name__)


class SolverTask(Enum):
    """FITPACK ``iopt`` values."""
    FIXED_KNOTS = -1  # least squares on the supplied knots
    NEW = 0           # smoothing spline from scratch
    CONTINUE = 1      # smoothing spline starting from the previous knots


@dataclass(frozen=True)
class SolverReport:
    """Outcome of one solver call.

    Attributes:
        status: Solver status.
        knot_count: Number of knots of the returned spline.
        fp: Weighted sum of squared residuals.
    """
    status: SolverStatus
    knot_count: int
    fp: float


class SolverBackend(ABC):
    """Abstract least-squares spline solver."""

    @abstractmethod
    def fit_function(
        self,
        session: FitSession,
        task: SolverTask,
        s: float,
        knots: np.ndarray | None = None
    ) -> SolverReport:
        """Fit a scalar curve y(x).

        Args:
            session: Session holding the request and the output buffers.
            task: Solver task.
            s: Target weighted sum of squared residuals.
            knots: Full knot vector for ``SolverTask.FIXED_KNOTS``.

        Returns:
            SolverReport. On success the session buffers hold the fit.
        """
        ...

    @abstractmethod
    def fit_parametric(
        self,
        session: FitSession,
        task: SolverTask,
        s: float,
        knots: np.ndarray | None = None,
        begin: np.ndarray | None = None,
        end: np.ndarray | None = None
    ) -> SolverReport:
        """Fit an open parametric curve.

        ``begin`` and ``end`` hold per-dimension derivative values at the
        first and last parameter, shape (dim, D), order 0 first.
        """
        ...

    @abstractmethod
    def fit_closed(
        self,
        session: FitSession,
        task: SolverTask,
        s: float,
        knots: np.ndarray | None = None
    ) -> SolverReport:
        """Fit a closed periodic parametric curve."""
        ...


class FitpackSolver(SolverBackend):
    """SolverBackend backed by scipy's FITPACK wrappers.

    ``SolverTask.CONTINUE`` resumes from the knots and scratch arrays left
    in the session by its last smoothing run. A session without such a run
    (fresh, or last fitted on fixed knots) starts a new one instead.
    """

    def fit_function(self, session, task, s, knots=None):
        # parcur on one coordinate solves curfit's problem with the same
        # workspace, and its wrapper is handed the knot count to resume from
        task = self._resolve(session, task)
        return self._parcur(session, session.request.points, task, s, knots, per=0)

    def fit_parametric(self, session, task, s, knots=None, begin=None, end=None):
        task = self._resolve(session, task)
        report = self._parcur(session, session.request.points, task, s, knots, per=0)

        if report.status.is_success and (begin is not None or end is not None):
            report = self._apply_constraints(session, task, s, report, begin, end)
        return report

    def fit_closed(self, session, task, s, knots=None):
        points = session.request.points.copy()
        # clocur needs the closing point to repeat the first one exactly
        points[-1] = points[0]
        task = self._resolve(session, task)
        return self._parcur(session, points, task, s, knots, per=1)

    def _parcur(
        self,
        session: FitSession,
        points: np.ndarray,
        task: SolverTask,
        s: float,
        knots: np.ndarray | None,
        per: int
    ) -> SolverReport:
        request = session.request
        k, dim = request.k, request.dim
        u = np.array(request.u)

        if task is SolverTask.FIXED_KNOTS:
            t_in = np.array(knots, dtype=float)
        elif task is SolverTask.CONTINUE:
            t_in = session.solver_knots[:session.solver_n].copy()
        else:
            t_in = np.empty(0)

        try:
            t, c, info = _fitpack._parcur(
                np.ravel(points), np.array(request.weights), u, u[0], u[-1],
                k, task.value, 1, s, t_in, session.layout.nest,
                session.workspace, session.int_workspace, per
            )
        except (TypeError, ValueError) as exc:
            session.forget_solver_state()
            raise SolverError(SolverStatus.INVALID_INPUT, str(exc)) from exc

        t = np.asarray(t, dtype=float)
        n = len(t)
        coefficients = np.asarray(c, dtype=float)
        if coefficients.size == dim * (n - k - 1):
            coefficients = coefficients.reshape(dim, n - k - 1)
        return self._finish(
            session, task, s, t, coefficients, info['fp'], info['ier'],
            info['wrk'], info['iwrk']
        )

    def _apply_constraints(
        self,
        session: FitSession,
        task: SolverTask,
        s: float,
        report: SolverReport,
        begin: np.ndarray | None,
        end: np.ndarray | None
    ) -> SolverReport:
        """Refit the stored spline with end point derivative constraints.

        Knots are added next to each constrained end before the refit; the
        solver's own knots stay in the session for continuation.
        """
        request = session.request
        begin, end = session.set_end_conditions(begin, end)
        t = augment_knots(
            session.knots[:session.n].copy(), request.k, request.u,
            begin_order=None if begin is None else begin.shape[1] - 1,
            end_order=None if end is None else end.shape[1] - 1,
            interpolate=task is not SolverTask.FIXED_KNOTS and s == 0,
            fixed=task is SolverTask.FIXED_KNOTS,
            capacity=session.layout.nest,
        )

        result = constrained_least_squares(
            request.u, request.points, request.weights, t, request.k, begin, end
        )
        if result is None:
            logger.debug(
                "end point constraints infeasible with %d knots", len(t)
            )
            return SolverReport(SolverStatus.INVALID_INPUT, len(t), report.fp)

        coefficients, fp = result
        session.store(t, coefficients, fp, report.status)
        return SolverReport(report.status, len(t), fp)

    @staticmethod
    def _resolve(session: FitSession, task: SolverTask) -> SolverTask:
        if task is SolverTask.CONTINUE and not session.can_continue:
            logger.debug("no smoothing run to continue from, starting a new one")
            return SolverTask.NEW
        return task

    @staticmethod
    def _finish(
        session: FitSession,
        task: SolverTask,
        s: float,
        t: np.ndarray,
        coefficients: np.ndarray,
        fp: float,
        ier: int,
        workspace: np.ndarray | None = None,
        int_workspace: np.ndarray | None = None
    ) -> SolverReport:
        status = SolverStatus.from_code(ier)
        n = len(t)
        if n > session.layout.nest:
            status = SolverStatus.OUT_OF_STORAGE

        if status.is_success:
            session.store(t, coefficients, fp, status)
        if status.is_success and task is not SolverTask.FIXED_KNOTS:
            session.keep_solver_state(t, workspace, int_workspace)
        else:
            # FITPACK cannot continue after fixed knots or a failed run
            session.forget_solver_state()

        logger.debug(
            "%s task=%s s=%.6g -> %s, %d knots, fp=%.6g",
            session.request.kind.name, task.name, s, status.name, n, fp
        )
        return SolverReport(status, n, float(fp))
