"""Fit modes understood by the curve fit orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np

from ..errors import ValidationError, ValidationReason


def _check_rms(target_rms: float) -> float:
    target_rms = float(target_rms)
    if not np.isfinite(target_rms) or target_rms < 0:
        raise ValidationError(
            ValidationReason.RMS_TARGET,
            f"target rms must be finite and non-negative, got {target_rms}"
        )
    return target_rms


@dataclass(frozen=True, eq=False)
class LeastSquaresFixedKnots:
    """Weighted least-squares spline on a caller-supplied knot vector."""
    knots: np.ndarray

    def __post_init__(self) -> None:
        knots = np.array(self.knots, dtype=float)
        if knots.ndim != 1 or not np.all(np.isfinite(knots)):
            raise ValidationError(
                ValidationReason.KNOT_VECTOR,
                "knot vector must be 1D and finite"
            )
        if np.any(np.diff(knots) < 0):
            raise ValidationError(
                ValidationReason.KNOT_VECTOR,
                "knot vector must be non-decreasing"
            )
        knots.flags.writeable = False
        object.__setattr__(self, 'knots', knots)


@dataclass(frozen=True)
class Interpolating:
    """Spline through every sample (target residual exactly zero)."""


@dataclass(frozen=True)
class Smoothing:
    """Spline with the fewest knots whose rms residual is within target_rms."""
    target_rms: float

    def __post_init__(self) -> None:
        object.__setattr__(self, 'target_rms', _check_rms(self.target_rms))


@dataclass(frozen=True)
class SmoothingContinue:
    """Like Smoothing, but continue from the knots of the previous call."""
    target_rms: float

    def __post_init__(self) -> None:
        object.__setattr__(self, 'target_rms', _check_rms(self.target_rms))


FitMode = Union[LeastSquaresFixedKnots, Interpolating, Smoothing, SmoothingContinue]
