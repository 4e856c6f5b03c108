"""Fit requests and their structural validation.

Every check here runs before the solver is invoked, so a request that
constructs successfully is structurally acceptable to the solver.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum, auto

import numpy as np

from ..errors import ValidationError, ValidationReason
from ..splines.curve import MAX_DIMENSION

CLOSED_CURVE_TOLERANCE = 1e-10
PARAMETRIC_DEGREES = (1, 3, 5)
MAX_FUNCTION_DEGREE = 5


class CurveKind(Enum):
    """Kind of curve to fit."""
    FUNCTION = auto()    # y(x), FITPACK curfit
    PARAMETRIC = auto()  # p(u) with optional end constraints, FITPACK concur
    CLOSED = auto()      # periodic p(u), FITPACK clocur


def max_constraint_stack(k: int) -> int:
    """Maximum number of derivative vectors (order 0 first) per end point."""
    return (k + 1) // 2 + 1


@dataclass(frozen=True, eq=False)
class FitRequest:
    """Validated input for a curve fit.

    Prefer the ``function``, ``parametric`` and ``closed`` constructors,
    which also accept flat point-major coordinate arrays.

    Attributes:
        kind: Curve kind.
        u: Parameter values (x for functions), strictly increasing, shape (m,).
        points: Coordinates, shape (m, dim).
        k: Spline degree.
        weights: Positive weights, shape (m,). Defaults to ones.
        begin_constraints: Derivatives at u[0], shape (D, dim), row j holding
            the derivative of order j.
        end_constraints: Derivatives at u[-1], same layout.
    """
    kind: CurveKind
    u: np.ndarray
    points: np.ndarray
    k: int = 3
    weights: np.ndarray | None = None
    begin_constraints: np.ndarray | None = None
    end_constraints: np.ndarray | None = None

    def __post_init__(self) -> None:
        self._check_degree()

        u = np.array(self.u, dtype=float)
        if u.ndim != 1:
            raise ValidationError(
                ValidationReason.SAMPLE_COUNT,
                f"parameter values must be 1D, got shape {u.shape}"
            )
        m = len(u)
        if m < 2:
            raise ValidationError(
                ValidationReason.SAMPLE_COUNT,
                f"need at least 2 parameter values, got {m}"
            )
        if m <= self.k:
            raise ValidationError(
                ValidationReason.SAMPLE_COUNT,
                f"need more than k={self.k} samples, got {m}"
            )
        if not np.all(np.isfinite(u)) or np.any(np.diff(u) <= 0):
            raise ValidationError(
                ValidationReason.PARAMETER_ORDER,
                "parameter values must be finite and strictly increasing"
            )

        points = np.array(self.points, dtype=float)
        if points.ndim == 1:
            points = points.reshape(-1, 1)
        if points.ndim != 2 or points.shape[0] != m:
            raise ValidationError(
                ValidationReason.COORDINATE_SIZE,
                f"incorrect size of coordinate array: expected {m} points, "
                f"got shape {points.shape}"
            )
        if not np.all(np.isfinite(points)):
            bad = int(np.argmax(~np.all(np.isfinite(points), axis=1)))
            raise ValidationError(
                ValidationReason.COORDINATE_VALUE,
                f"coordinates must be finite, point {bad} is {points[bad].tolist()}"
            )
        dim = points.shape[1]
        _check_dimension(dim)
        if self.kind is CurveKind.FUNCTION and dim != 1:
            raise ValidationError(
                ValidationReason.DIMENSION,
                f"function fits take scalar ordinates, got {dim} dimensions"
            )

        if self.weights is None:
            weights = np.ones(m)
        else:
            weights = np.array(self.weights, dtype=float)
        if weights.shape != (m,):
            raise ValidationError(
                ValidationReason.WEIGHTS_SIZE,
                f"wrong size for weights array: expected {m}, got {weights.shape}"
            )
        if not np.all(weights > 0) or not np.all(np.isfinite(weights)):
            raise ValidationError(
                ValidationReason.WEIGHTS_NOT_POSITIVE,
                "all weights must be positive and finite"
            )

        begin = self._check_constraints(self.begin_constraints, dim, 'begin')
        end = self._check_constraints(self.end_constraints, dim, 'end')

        if self.kind is CurveKind.CLOSED:
            gap = np.abs(points[0] - points[-1])
            if np.any(gap > CLOSED_CURVE_TOLERANCE):
                d = int(np.argmax(gap))
                raise ValidationError(
                    ValidationReason.CLOSED_CURVE_MISMATCH,
                    f"closed curves require first and last points to coincide, "
                    f"but dimension {d} differs: {points[0, d]} vs {points[-1, d]}"
                )

        for name, value in (
            ('u', u), ('points', points), ('weights', weights),
            ('begin_constraints', begin), ('end_constraints', end),
        ):
            if value is not None:
                value.flags.writeable = False
            object.__setattr__(self, name, value)

    def _check_degree(self) -> None:
        k = self.k
        if int(k) != k:
            raise ValidationError(
                ValidationReason.DEGREE, f"degree must be an integer, got {k}"
            )
        if self.kind is CurveKind.FUNCTION:
            if not 1 <= k <= MAX_FUNCTION_DEGREE:
                raise ValidationError(
                    ValidationReason.DEGREE,
                    f"degree must be between 1 and {MAX_FUNCTION_DEGREE}, got {k}"
                )
        elif k not in PARAMETRIC_DEGREES:
            raise ValidationError(
                ValidationReason.DEGREE,
                f"degree must be one of {PARAMETRIC_DEGREES}, got {k}"
            )
        object.__setattr__(self, 'k', int(k))

    def _check_constraints(
        self,
        stack: np.ndarray | None,
        dim: int,
        which: str
    ) -> np.ndarray | None:
        if stack is None:
            return None
        if self.kind is not CurveKind.PARAMETRIC:
            raise ValidationError(
                ValidationReason.UNSUPPORTED_MODE,
                f"{which} constraints are only supported for open parametric curves"
            )

        stack = np.array(stack, dtype=float)
        if stack.ndim == 1 and len(stack) % dim == 0:
            stack = stack.reshape(-1, dim)
        if stack.ndim != 2 or stack.shape[1] != dim or len(stack) == 0:
            raise ValidationError(
                ValidationReason.CONSTRAINT_SHAPE,
                f"{which} constraints must have shape (D, {dim}), got {stack.shape}"
            )
        if not np.all(np.isfinite(stack)):
            raise ValidationError(
                ValidationReason.COORDINATE_VALUE,
                f"{which} constraints must be finite"
            )

        limit = max_constraint_stack(self.k)
        if len(stack) > limit:
            raise ValidationError(
                ValidationReason.CONSTRAINT_ORDER,
                f"too many {which} derivative constraints supplied: "
                f"{len(stack)} > {limit} for degree {self.k}"
            )
        return stack

    @classmethod
    def function(
        cls,
        x: np.ndarray,
        y: np.ndarray,
        k: int = 3,
        w: np.ndarray | None = None
    ) -> FitRequest:
        """Request for a scalar curve y(x); x must be strictly increasing."""
        y = np.asarray(y, dtype=float)
        if y.ndim != 1:
            raise ValidationError(
                ValidationReason.COORDINATE_SIZE,
                f"y must be 1D, got shape {y.shape}"
            )
        return cls(CurveKind.FUNCTION, x, y, k=k, weights=w)

    @classmethod
    def parametric(
        cls,
        u: np.ndarray,
        points: np.ndarray,
        k: int = 3,
        dim: int | None = None,
        w: np.ndarray | None = None,
        begin: np.ndarray | None = None,
        end: np.ndarray | None = None
    ) -> FitRequest:
        """Request for an open parametric curve p(u).

        Args:
            u: Curve parameter, strictly increasing, shape (m,).
            points: Coordinates, shape (m, dim), or flat point-major
                ``[x0, y0, x1, y1, ...]`` together with ``dim``.
            k: Degree, one of 1, 3, 5.
            dim: Dimension; required for flat coordinate arrays.
            w: Optional positive weights, shape (m,).
            begin: Optional derivative stack at u[0], shape (D, dim).
            end: Optional derivative stack at u[-1], shape (D, dim).
        """
        points = _as_points(points, len(np.atleast_1d(u)), dim)
        return cls(
            CurveKind.PARAMETRIC, u, points, k=k, weights=w,
            begin_constraints=begin, end_constraints=end
        )

    @classmethod
    def closed(
        cls,
        u: np.ndarray,
        points: np.ndarray,
        k: int = 3,
        dim: int | None = None,
        w: np.ndarray | None = None
    ) -> FitRequest:
        """Request for a closed periodic curve; first and last points coincide."""
        points = _as_points(points, len(np.atleast_1d(u)), dim)
        return cls(CurveKind.CLOSED, u, points, k=k, weights=w)

    def with_weights(self, weights: np.ndarray) -> FitRequest:
        return dataclasses.replace(self, weights=weights)

    def with_begin_constraints(self, stack: np.ndarray) -> FitRequest:
        return dataclasses.replace(self, begin_constraints=stack)

    def with_end_constraints(self, stack: np.ndarray) -> FitRequest:
        return dataclasses.replace(self, end_constraints=stack)

    @property
    def n_samples(self) -> int:
        return len(self.u)

    @property
    def dim(self) -> int:
        return self.points.shape[1]

    @property
    def has_constraints(self) -> bool:
        return self.begin_constraints is not None or self.end_constraints is not None

    @property
    def begin_order(self) -> int:
        """Highest constrained derivative order at u[0] (0 if unconstrained)."""
        if self.begin_constraints is None:
            return 0
        return len(self.begin_constraints) - 1

    @property
    def end_order(self) -> int:
        """Highest constrained derivative order at u[-1] (0 if unconstrained)."""
        if self.end_constraints is None:
            return 0
        return len(self.end_constraints) - 1

    def __repr__(self) -> str:
        return (
            f"FitRequest(kind={self.kind.name}, m={self.n_samples}, "
            f"dim={self.dim}, k={self.k})"
        )


def _check_dimension(dim: int) -> None:
    if not 1 <= dim <= MAX_DIMENSION:
        raise ValidationError(
            ValidationReason.DIMENSION,
            f"dimension should be between 1 and {MAX_DIMENSION}, got {dim}"
        )


def _as_points(points: np.ndarray, m: int, dim: int | None) -> np.ndarray:
    """Coerce coordinates to shape (m, dim)."""
    points = np.asarray(points, dtype=float)
    if dim is not None:
        _check_dimension(dim)

    if points.ndim == 1:
        dim = 1 if dim is None else dim
        if len(points) != m * dim:
            raise ValidationError(
                ValidationReason.COORDINATE_SIZE,
                f"incorrect size of coordinate array: expected {m} * {dim} = "
                f"{m * dim} values, got {len(points)}"
            )
        return points.reshape(m, dim)

    if points.ndim == 2 and dim is not None and points.shape[1] != dim:
        raise ValidationError(
            ValidationReason.COORDINATE_SIZE,
            f"coordinate array has {points.shape[1]} columns, expected {dim}"
        )
    return points
