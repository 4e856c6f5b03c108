"""Error taxonomy for curve fitting and evaluation."""

from __future__ import annotations

from enum import Enum, auto


class SolverStatus(Enum):
    """Status codes reported by the FITPACK curve solvers.

    Non-positive values are successful returns, positive values are errors.
    """
    LEAST_SQUARES_BOUND = -2  # LSQ polynomial, fp below the smoothing target
    INTERPOLATING = -1        # Interpolating spline, fp = 0
    NORMAL = 0                # Smoothing spline with fp ~ s
    OUT_OF_STORAGE = 1        # nest too small, or s too small
    SMOOTHING_TOO_TIGHT = 2   # s too small for the requested tolerance
    ITERATION_LIMIT = 3       # maxit reached while searching for fp = s
    INVALID_INPUT = 10        # Input data violates solver requirements

    @classmethod
    def from_code(cls, code: int) -> SolverStatus:
        """Map a raw solver return code to a status.

        Unknown codes are reported as invalid input.
        """
        try:
            return cls(int(code))
        except ValueError:
            return cls.INVALID_INPUT

    @property
    def is_success(self) -> bool:
        return self.value <= 0

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]


_STATUS_MESSAGES = {
    SolverStatus.LEAST_SQUARES_BOUND: (
        "normal return for weighted least squares spline, "
        "fp upper bound for smoothing factor"
    ),
    SolverStatus.INTERPOLATING: "normal return for interpolating spline",
    SolverStatus.NORMAL: "normal return",
    SolverStatus.OUT_OF_STORAGE: (
        "out of storage space; nest too small (m/2) or s too small"
    ),
    SolverStatus.SMOOTHING_TOO_TIGHT: "smoothing spline error, s too small",
    SolverStatus.ITERATION_LIMIT: (
        "reached iteration limit (20) for finding smoothing spline; s too small"
    ),
    SolverStatus.INVALID_INPUT: "invalid input data",
}


class ValidationReason(Enum):
    """Which structural check a fit request failed."""
    DEGREE = auto()
    DIMENSION = auto()
    SAMPLE_COUNT = auto()
    PARAMETER_ORDER = auto()
    COORDINATE_SIZE = auto()
    COORDINATE_VALUE = auto()
    WEIGHTS_SIZE = auto()
    WEIGHTS_NOT_POSITIVE = auto()
    CONSTRAINT_ORDER = auto()
    CONSTRAINT_SHAPE = auto()
    CARDINAL_SPACING = auto()
    CLOSED_CURVE_MISMATCH = auto()
    KNOT_VECTOR = auto()
    RMS_TARGET = auto()
    UNSUPPORTED_MODE = auto()


class SplineFitError(Exception):
    """Base class for all errors raised by spline_fit."""


class ValidationError(SplineFitError, ValueError):
    """A fit request is structurally invalid.

    Always raised before the solver is invoked.

    Attributes:
        reason: The check that failed.
    """

    def __init__(self, reason: ValidationReason, message: str):
        super().__init__(message)
        self.reason = reason


class SolverError(SplineFitError, RuntimeError):
    """The solver reported a hard error.

    Attributes:
        status: Status returned by the solver.
        knot_count: Active knot count when the error was reported.
    """

    def __init__(
        self,
        status: SolverStatus,
        detail: str | None = None,
        knot_count: int | None = None
    ):
        message = f"{status.name} ({status.value}): {status.message}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.status = status
        self.knot_count = knot_count


class SearchNotConverged(SplineFitError, RuntimeError):
    """The smoothing search exhausted its iteration budget.

    Attributes:
        n_iter: Number of iterations performed.
        knot_count: Knot count of the last fit.
        rms: rms error of the last fit.
    """

    def __init__(self, n_iter: int, knot_count: int, rms: float):
        super().__init__(
            f"smoothing_spline not converged after {n_iter} iterations "
            f"(last fit: {knot_count} knots, rms={rms:.6g})"
        )
        self.n_iter = n_iter
        self.knot_count = knot_count
        self.rms = rms


class EvaluationError(SplineFitError, ValueError):
    """A spline cannot be evaluated at the requested points."""
