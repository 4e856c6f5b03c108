"""Solver buffer sizing and per-fit working state.

FITPACK writes knots and coefficients into caller-allocated arrays whose
sizes follow closed-form formulas. Undersized buffers make the solver fail,
oversized ones only waste memory. The coefficient buffer uses the solver's
raw layout: ``dim`` segments of stride ``n`` (the active knot count), each
segment ending in ``k + 1`` unused slots.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.interpolate import _dfitpack

from ..errors import SolverStatus
from ..splines.curve import SplineCurve
from .request import CurveKind, FitRequest

# integer type of the FITPACK work arrays
FITPACK_INT = _dfitpack.types.intvar.dtype


@dataclass(frozen=True)
class BufferLayout:
    """Buffer sizes for one fit.

    Attributes:
        nest: Knot buffer capacity (maximum number of knots).
        n_coefficients: Coefficient buffer capacity, nest * dim.
        workspace: Length of the floating point scratch array.
        int_workspace: Length of the integer scratch array.
        constraint_workspace: Length of the end point derivative buffer
            (constrained parametric fits only).
    """
    nest: int
    n_coefficients: int
    workspace: int
    int_workspace: int
    constraint_workspace: int = 0

    @classmethod
    def for_function(cls, m: int, k: int) -> BufferLayout:
        """Layout for a scalar curve fit (curfit)."""
        nest = m + k + 1
        return cls(
            nest=nest,
            n_coefficients=nest,
            workspace=m * (k + 1) + nest * (7 + 3 * k),
            int_workspace=nest,
        )

    @classmethod
    def for_parametric(
        cls,
        m: int,
        k: int,
        dim: int,
        begin_order: int = 0,
        end_order: int = 0
    ) -> BufferLayout:
        """Layout for an open parametric curve fit (concur)."""
        nest = (
            m + k + 1 + 2 * (k - 1)
            + max(0, begin_order - 1) + max(0, end_order - 1)
        )
        return cls(
            nest=nest,
            n_coefficients=nest * dim,
            workspace=m * (k + 1) + nest * (6 + dim + 3 * k),
            int_workspace=nest,
            constraint_workspace=2 * (k + 1) * dim,
        )

    @classmethod
    def for_closed(cls, m: int, k: int, dim: int) -> BufferLayout:
        """Layout for a closed periodic curve fit (clocur)."""
        nest = m + 2 * k
        return cls(
            nest=nest,
            n_coefficients=nest * dim,
            workspace=m * (k + 1) + nest * (7 + dim + 5 * k),
            int_workspace=nest,
        )

    @classmethod
    def for_request(cls, request: FitRequest) -> BufferLayout:
        m, k, dim = request.n_samples, request.k, request.dim
        if request.kind is CurveKind.FUNCTION:
            return cls.for_function(m, k)
        if request.kind is CurveKind.CLOSED:
            return cls.for_closed(m, k, dim)
        return cls.for_parametric(
            m, k, dim, request.begin_order, request.end_order
        )


class FitSession:
    """Mutable working state of one fit.

    Buffers are allocated once and reused across repeated solver calls.
    ``to_curve`` trims them into an immutable SplineCurve.

    The session also owns the solver's scratch state. FITPACK keeps the
    knots of its last smoothing run and the data it needs to continue from
    them in ``workspace``, ``int_workspace`` and ``solver_knots``; a
    continuation call reads them back, so two sessions never share it.

    Attributes:
        request: The validated request being fitted.
        layout: Buffer sizes.
        knots: Knot buffer of the stored fit, capacity ``layout.nest``.
        coefficients: Coefficient buffer in raw solver layout.
        n: Active knot count (0 until a fit has been stored).
        fp: Weighted sum of squared residuals of the stored fit.
        status: Solver status of the stored fit.
        workspace: Floating point solver scratch, ``layout.workspace`` long.
        int_workspace: Integer solver scratch, ``layout.int_workspace`` long.
        solver_knots: Knots of the last smoothing run, capacity ``layout.nest``.
        solver_n: Active length of ``solver_knots``; 0 when there is no
            smoothing run to continue from.
    """

    def __init__(self, request: FitRequest, layout: BufferLayout | None = None):
        self.request = request
        self.layout = layout if layout is not None else BufferLayout.for_request(request)
        self.knots = np.zeros(self.layout.nest)
        self.coefficients = np.zeros(self.layout.n_coefficients)
        self.n = 0
        self.fp: float | None = None
        self.status: SolverStatus | None = None

        self.workspace = np.zeros(self.layout.workspace)
        self.int_workspace = np.zeros(self.layout.int_workspace, dtype=FITPACK_INT)
        self.solver_knots = np.zeros(self.layout.nest)
        self.solver_n = 0
        self._end_buffer = np.zeros(self.layout.constraint_workspace)

    @property
    def m(self) -> int:
        return self.request.n_samples

    @property
    def k(self) -> int:
        return self.request.k

    @property
    def dim(self) -> int:
        return self.request.dim

    @property
    def has_fit(self) -> bool:
        return self.n > 0

    @property
    def rms(self) -> float | None:
        """rms residual sqrt(fp / m) of the stored fit."""
        if self.fp is None:
            return None
        return float(np.sqrt(max(self.fp, 0.0) / self.m))

    @property
    def can_continue(self) -> bool:
        """True if a smoothing run left state to continue from."""
        return self.solver_n > 0

    def keep_solver_state(
        self,
        t: np.ndarray,
        workspace: np.ndarray | None = None,
        int_workspace: np.ndarray | None = None
    ) -> None:
        """Save the knots and scratch arrays of a smoothing run.

        Solver wrappers that hand back shortened copies of the scratch
        arrays have them copied into the front of the session buffers.
        """
        n = len(t)
        self.solver_knots[:n] = t
        self.solver_n = n
        if workspace is not None and workspace is not self.workspace:
            self.workspace[:len(workspace)] = workspace
        if int_workspace is not None and int_workspace is not self.int_workspace:
            self.int_workspace[:len(int_workspace)] = int_workspace

    def forget_solver_state(self) -> None:
        self.solver_n = 0

    def set_end_conditions(
        self,
        begin: np.ndarray | None,
        end: np.ndarray | None
    ) -> tuple[np.ndarray | None, np.ndarray | None]:
        """Copy end point derivative stacks into the constraint buffer.

        Args:
            begin: Per-dimension derivatives at u[0], shape (dim, D), or None.
            end: Per-dimension derivatives at u[-1], shape (dim, D), or None.

        Returns:
            The two stacks as views of the buffer (None where unconstrained).

        Raises:
            ValueError: If the layout has no constraint buffer or a stack is
                deeper than k + 1.
        """
        k, dim = self.k, self.dim
        if len(self._end_buffer) != 2 * dim * (k + 1):
            raise ValueError("this session has no end point constraint buffer")

        buffer = self._end_buffer.reshape(2, dim, k + 1)
        buffer[:] = 0.0
        views = []
        for side, stack in enumerate((begin, end)):
            if stack is None:
                views.append(None)
                continue
            depth = stack.shape[1]
            if depth > k + 1:
                raise ValueError(
                    f"{depth} derivative orders exceed degree {k} + 1"
                )
            buffer[side, :, :depth] = stack
            views.append(buffer[side, :, :depth])
        return views[0], views[1]

    def store(
        self,
        t: np.ndarray,
        coefficients: np.ndarray,
        fp: float,
        status: SolverStatus
    ) -> None:
        """Write a solver result into the session buffers.

        Args:
            t: Knot vector, length n <= nest.
            coefficients: Shape (dim, n - k - 1).
            fp: Weighted sum of squared residuals.
            status: Solver status.
        """
        t = np.asarray(t, dtype=float)
        n = len(t)
        if n > self.layout.nest:
            raise ValueError(
                f"{n} knots do not fit a buffer of capacity {self.layout.nest}"
            )
        n_coef = n - self.k - 1
        coefficients = np.asarray(coefficients, dtype=float).reshape(self.dim, n_coef)

        self.knots[:n] = t
        self.knots[n:] = 0.0
        self.coefficients[:] = 0.0
        raw = self.coefficients[:n * self.dim].reshape(self.dim, n)
        raw[:, :n_coef] = coefficients

        self.n = n
        self.fp = float(fp)
        self.status = status

    def to_curve(self) -> SplineCurve:
        """Trim the buffers to the active length and build a SplineCurve.

        Raises:
            RuntimeError: If no fit has been stored yet.
        """
        if not self.has_fit:
            raise RuntimeError("No fit stored. Run the solver first.")

        n, k, dim = self.n, self.k, self.dim
        t = self.knots[:n].copy()
        # drop the k + 1 unused trailing slots of every segment
        c = self.coefficients[:n * dim].reshape(dim, n)[:, :n - k - 1].ravel()
        return SplineCurve(t, c, k=k, dim=dim, rms_error=self.rms)

    def __repr__(self) -> str:
        return (
            f"FitSession(kind={self.request.kind.name}, nest={self.layout.nest}, "
            f"n={self.n}, rms={self.rms})"
        )
