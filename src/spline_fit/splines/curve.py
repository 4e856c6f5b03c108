"""Immutable B-spline curve representation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from scipy.interpolate import BSpline

from .evaluation import evaluate

MAX_DIMENSION = 10


@dataclass(frozen=True, eq=False)
class SplineCurve:
    """B-spline curve in knot/coefficient form.

    Coefficients are stored as ``dim`` contiguous segments, one per output
    dimension, each of length ``len(t) - k - 1``. A scalar curve y(x) is a
    curve with ``dim == 1``.

    Attributes:
        t: Knot vector, non-decreasing, shape (n,).
        c: Coefficients, shape (dim * (n - k - 1),).
        k: Spline degree.
        dim: Number of output dimensions (1 to 10).
        rms_error: rms residual of the fit that produced the curve, if known.
    """
    t: np.ndarray
    c: np.ndarray
    k: int = 3
    dim: int = 1
    rms_error: float | None = None

    def __post_init__(self) -> None:
        t = np.array(self.t, dtype=float)
        c = np.array(self.c, dtype=float)

        if t.ndim != 1 or c.ndim != 1:
            raise ValueError(
                f"t and c must be 1D, got shapes {t.shape} and {c.shape}"
            )
        if int(self.k) != self.k or self.k < 1:
            raise ValueError(f"degree k must be a positive integer, got {self.k}")
        if int(self.dim) != self.dim or not 1 <= self.dim <= MAX_DIMENSION:
            raise ValueError(
                f"dim should be between 1 and {MAX_DIMENSION}, got {self.dim}"
            )

        n_coef = len(t) - int(self.k) - 1
        if n_coef < 0 or len(c) != self.dim * n_coef:
            raise ValueError(
                f"len(c) must equal dim * (len(t) - k - 1) = "
                f"{self.dim} * ({len(t)} - {self.k} - 1), got {len(c)}"
            )
        if np.any(np.diff(t) < 0):
            raise ValueError("knot vector t must be non-decreasing")

        t.flags.writeable = False
        c.flags.writeable = False
        object.__setattr__(self, 't', t)
        object.__setattr__(self, 'c', c)
        object.__setattr__(self, 'k', int(self.k))
        object.__setattr__(self, 'dim', int(self.dim))
        if self.rms_error is not None:
            object.__setattr__(self, 'rms_error', float(self.rms_error))

    @property
    def n_knots(self) -> int:
        """Number of knots, including boundary padding."""
        return len(self.t)

    @property
    def n_coefficients(self) -> int:
        """Number of coefficients per dimension."""
        return len(self.t) - self.k - 1

    @property
    def domain(self) -> tuple[float, float]:
        """Parameter interval on which the curve is defined."""
        return (float(self.t[self.k]), float(self.t[-self.k - 1]))

    def coefficients_by_dim(self) -> np.ndarray:
        """Return coefficients as an array of shape (dim, n_coefficients)."""
        return self.c.reshape(self.dim, self.n_coefficients)

    def evaluate(self, x: np.ndarray | float) -> np.ndarray:
        """Evaluate the curve at strictly increasing parameter values.

        Values outside the domain are clamped to the boundary.

        Args:
            x: Parameter value(s).

        Returns:
            Shape (m,) for dim == 1, otherwise (m, dim).
        """
        return evaluate(self.t, self.c, self.k, self.dim, x)

    def __call__(self, x: np.ndarray | float) -> np.ndarray:
        return self.evaluate(x)

    def to_bspline(self) -> BSpline:
        """Return an equivalent scipy BSpline (values have shape (..., dim))."""
        coef = self.coefficients_by_dim().T
        if self.dim == 1:
            coef = coef[:, 0]
        return BSpline(self.t, coef, self.k, extrapolate=False)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = {
            't': self.t.tolist(),
            'c': self.c.tolist(),
            'k': self.k,
            'dim': self.dim,
        }
        if self.rms_error is not None:
            data['rms_error'] = self.rms_error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> SplineCurve:
        """Build a curve from a dictionary produced by ``to_dict``."""
        return cls(
            t=data['t'],
            c=data['c'],
            k=data['k'],
            dim=data['dim'],
            rms_error=data.get('rms_error'),
        )

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> SplineCurve:
        return cls.from_dict(json.loads(text))

    def save(self, path: Path | str) -> None:
        """Save the curve to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path | str) -> SplineCurve:
        """Load a curve from a JSON file."""
        with open(path) as f:
            return cls.from_dict(json.load(f))

    def __repr__(self) -> str:
        rms = f", rms={self.rms_error:.4g}" if self.rms_error is not None else ""
        return (
            f"SplineCurve(k={self.k}, dim={self.dim}, "
            f"n_knots={self.n_knots}{rms})"
        )
