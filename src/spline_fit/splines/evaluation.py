"""De Boor evaluation of B-spline curves.

Query points are processed in increasing order with a knot-interval index
that only moves forward, so evaluating m points on a curve with n knots
costs O(m + n) interval searches in total. Points outside the curve domain
``[t[k], t[n-k-1]]`` are clamped to the nearest boundary.
"""

from __future__ import annotations

import numpy as np

from ..errors import EvaluationError


def evaluate(
    t: np.ndarray,
    c: np.ndarray,
    k: int,
    dim: int,
    x: np.ndarray | float
) -> np.ndarray:
    """Evaluate a B-spline curve at strictly increasing parameter values.

    Args:
        t: Knot vector, shape (n,).
        c: Coefficients, ``dim`` contiguous segments of length n-k-1.
        k: Spline degree.
        dim: Number of curve dimensions.
        x: Query parameter values, strictly increasing.

    Returns:
        Curve values, shape (m,) for dim == 1, otherwise (m, dim). Rows are
        points, so ``values.ravel()`` gives the point-major interleaved layout.

    Raises:
        EvaluationError: If the queries are not strictly increasing, or the
            knot vector cannot support a degree-k spline.
    """
    t = np.asarray(t, dtype=float)
    c = np.asarray(c, dtype=float)
    x = np.atleast_1d(np.asarray(x, dtype=float))

    if x.ndim != 1:
        raise EvaluationError(f"query points must be 1D, got shape {x.shape}")
    if not np.all(np.isfinite(x)):
        raise EvaluationError("query points must be finite")
    if x.size > 1 and np.any(np.diff(x) <= 0):
        raise EvaluationError("query points must be strictly increasing")

    n = len(t)
    if n < 2 * k + 2:
        raise EvaluationError(
            f"knot vector of length {n} is too short for degree {k}: "
            f"need at least {2 * k + 2} knots"
        )
    if np.any(np.diff(t) < 0):
        raise EvaluationError("knot vector must be non-decreasing")

    n_coef = n - k - 1
    if len(c) != dim * n_coef:
        raise EvaluationError(
            f"expected {dim * n_coef} coefficients for {n} knots, "
            f"degree {k} and {dim} dimension(s), got {len(c)}"
        )

    lower, upper = t[k], t[n_coef]
    if not lower < upper:
        raise EvaluationError(
            f"degenerate knot vector: empty domain [{lower}, {upper}]"
        )

    # Row j holds coefficient j for every dimension
    coef = c.reshape(dim, n_coef).T
    values = np.empty((x.size, dim))
    d = np.empty((k + 1, dim))
    last = n_coef - 1
    i = k

    for q, xq in enumerate(np.clip(x, lower, upper)):
        while i < last and t[i + 1] <= xq:
            i += 1

        d[:] = coef[i - k:i + 1]
        for r in range(1, k + 1):
            for j in range(k, r - 1, -1):
                left = t[j + i - k]
                alpha = (xq - left) / (t[j + 1 + i - r] - left)
                d[j] = (1.0 - alpha) * d[j - 1] + alpha * d[j]

        values[q] = d[k]

    if dim == 1:
        return values[:, 0]
    return values
