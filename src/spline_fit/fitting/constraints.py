"""End point derivative constraints for open parametric curves.

Given a knot vector, the coefficients are found by weighted least squares
subject to the linear equality constraints

    d^j p / du^j (u[0])  = begin[:, j],   j = 0 .. ib
    d^j p / du^j (u[-1]) = end[:, j],     j = 0 .. ie

The constraints are eliminated with a null-space parameterization: a
particular solution c0 satisfies them, and the free part lives in the null
space of the constraint matrix.

Knots placed for the unconstrained problem leave too few coefficients near
the ends to carry the derivative conditions, so ``augment_knots`` inserts
extra knots there first.
"""

from __future__ import annotations

import numpy as np
from scipy.interpolate import BSpline
from scipy.linalg import lstsq, null_space


def constraint_system(
    t: np.ndarray,
    k: int,
    u_begin: float,
    u_end: float,
    begin: np.ndarray | None = None,
    end: np.ndarray | None = None
) -> tuple[np.ndarray, np.ndarray]:
    """Build the linear constraint system C @ coef = d.

    Args:
        t: Knot vector.
        k: Degree.
        u_begin: Parameter of the first sample.
        u_end: Parameter of the last sample.
        begin: Per-dimension derivative values at u_begin, shape (dim, D).
        end: Per-dimension derivative values at u_end, shape (dim, D).

    Returns:
        Tuple (C, d) with shapes (n_constraints, n_coef) and
        (n_constraints, dim).
    """
    n_coef = len(t) - k - 1
    basis = BSpline(t, np.eye(n_coef), k, extrapolate=True)

    rows = []
    values = []
    for point, stack in ((u_begin, begin), (u_end, end)):
        if stack is None:
            continue
        for order in range(stack.shape[1]):
            rows.append(basis(point, nu=order))
            values.append(stack[:, order])

    return np.array(rows), np.array(values)


def constrained_least_squares(
    u: np.ndarray,
    points: np.ndarray,
    weights: np.ndarray,
    t: np.ndarray,
    k: int,
    begin: np.ndarray | None = None,
    end: np.ndarray | None = None
) -> tuple[np.ndarray, float] | None:
    """Fit coefficients on fixed knots subject to end point constraints.

    Args:
        u: Parameter values, shape (m,).
        points: Coordinates, shape (m, dim).
        weights: Positive weights, shape (m,).
        t: Knot vector.
        k: Degree.
        begin: Per-dimension derivatives at u[0], shape (dim, D), or None.
        end: Per-dimension derivatives at u[-1], shape (dim, D), or None.

    Returns:
        Tuple (coefficients, fp) with coefficients of shape (dim, n_coef) and
        fp the weighted sum of squared residuals, or None if the constraints
        cannot be met with this knot vector.
    """
    n_coef = len(t) - k - 1
    basis = BSpline(t, np.eye(n_coef), k, extrapolate=True)
    design = basis(u)

    C, d = constraint_system(t, k, u[0], u[-1], begin, end)
    if len(C) > n_coef:
        return None

    c0 = lstsq(C, d)[0]
    scale = max(1.0, float(np.max(np.abs(d))))
    if not np.allclose(C @ c0, d, rtol=0.0, atol=1e-8 * scale):
        return None

    A = weights[:, None] * design
    target = weights[:, None] * points - A @ c0
    Z = null_space(C)
    if Z.shape[1] == 0:
        coef = c0
    else:
        coef = c0 + Z @ lstsq(A @ Z, target)[0]

    residual = weights[:, None] * (points - design @ coef)
    return coef.T, float(np.sum(residual ** 2))


def augment_knots(
    t: np.ndarray,
    k: int,
    u: np.ndarray,
    begin_order: int | None = None,
    end_order: int | None = None,
    interpolate: bool = False,
    fixed: bool = False,
    capacity: int | None = None
) -> np.ndarray:
    """Insert knots next to the constrained end points.

    An end constrained up to derivative order ``j`` gets ``max(0, j - 1)``
    extra knots in its outermost knot interval, or ``j`` for interpolating
    fits, so the derivative conditions have coefficients of their own and
    the data rows can still be met exactly. Smoothing fits split the
    interval evenly. Interpolating fits take the data parameters nearest
    to the end, which keeps the collocation matrix nonsingular.

    Whatever the mode, knots are added until there are at least as many
    coefficients as conditions. With ``fixed`` only that shortfall is
    filled, leaving caller supplied knots alone otherwise.

    Args:
        t: Knot vector.
        k: Degree.
        u: Parameter values, shape (m,).
        begin_order: Highest constrained order at u[0], None if free.
        end_order: Highest constrained order at u[-1], None if free.
        interpolate: Whether the fit interpolates the data.
        fixed: Whether the knots were supplied by the caller.
        capacity: Maximum number of knots of the result.

    Returns:
        The augmented knot vector (``t`` itself if nothing was added).
    """
    orders = (begin_order, end_order)
    extra = [0, 0]
    if not fixed:
        for side, order in enumerate(orders):
            if order is not None:
                extra[side] = order if interpolate else max(0, order - 1)

    n_conditions = sum(order + 1 for order in orders if order is not None)
    shortfall = n_conditions - (len(t) + sum(extra) - k - 1)
    sides = [side for side, order in enumerate(orders) if order is not None]
    while shortfall > 0 and sides:
        side = min(sides, key=lambda s: extra[s])
        extra[side] += 1
        shortfall -= 1

    if capacity is not None:
        room = max(0, capacity - len(t))
        while sum(extra) > room:
            extra[int(extra[1] > extra[0])] -= 1

    if extra[0]:
        t = _insert_at_begin(t, k, u, extra[0], interpolate)
    if extra[1]:
        # mirror, insert at the begin, mirror back
        t = -_insert_at_begin(-t[::-1], k, -u[::-1], extra[1], interpolate)[::-1]
    return t


def _insert_at_begin(
    t: np.ndarray,
    k: int,
    u: np.ndarray,
    count: int,
    use_data: bool
) -> np.ndarray:
    """Insert ``count`` knots into the first nonempty knot interval."""
    lo, hi = t[k], t[k + 1]
    new = np.empty(0)
    if use_data:
        inside = u[(u > lo) & (u < hi)]
        new = inside[:count]
    remaining = count - len(new)
    if remaining:
        start = new[-1] if len(new) else lo
        step = (hi - start) / (remaining + 1)
        new = np.concatenate([new, start + step * np.arange(1, remaining + 1)])
    return np.concatenate([t[:k + 1], new, t[k + 1:]])
