"""Problem, objective, and state definitions."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np
import numpy.typing as npt

from .exceptions import DimensionMismatchError, UnsupportedHessianModeError


class HessianMode(Enum):
    """Representation of a Hessian matrix."""

    DENSE = "dense"
    DIAGONAL = "diagonal"
    INVERSE = "inverse"


@dataclass
class Hessian:
    """Hessian of an objective function, tagged by its representation.

    Parameters
    ----------
     mode : HessianMode
        Which of the fields below holds the Hessian.
     dense : n-by-n matrix, optional
        The full (symmetric) Hessian, when mode is DENSE.
     diagonal : vector of length n, optional
        The diagonal of the Hessian, when mode is DIAGONAL.
     inverse : n-by-n matrix, optional
        The inverse of the Hessian, when mode is INVERSE.

    """

    mode: HessianMode = HessianMode.DIAGONAL
    dense: Optional[npt.NDArray[np.float64]] = None
    diagonal: Optional[npt.NDArray[np.float64]] = None
    inverse: Optional[npt.NDArray[np.float64]] = None

    @classmethod
    def from_dense(cls, H: npt.NDArray[np.float64]) -> "Hessian":
        """Wrap a dense Hessian."""
        return cls(mode=HessianMode.DENSE, dense=np.asarray(H, dtype=np.float64))

    @classmethod
    def from_diagonal(cls, eta: npt.NDArray[np.float64]) -> "Hessian":
        """Wrap a diagonal Hessian."""
        return cls(
            mode=HessianMode.DIAGONAL, diagonal=np.asarray(eta, dtype=np.float64)
        )

    def submatrix(self, indices: list[int]) -> "Hessian":
        """Restrict the Hessian to rows and columns `indices`.

        The result has the same mode as self: a dense sub-block for DENSE, a sub-vector
        for DIAGONAL. Other modes cannot be restricted this way.

        """
        if self.mode == HessianMode.DENSE:
            if self.dense is None:
                raise ValueError("Dense Hessian not specified.")
            return Hessian(mode=self.mode, dense=self.dense[np.ix_(indices, indices)])

        if self.mode == HessianMode.DIAGONAL:
            if self.diagonal is None:
                raise ValueError("Diagonal Hessian not specified.")
            return Hessian(mode=self.mode, diagonal=self.diagonal[indices])

        raise UnsupportedHessianModeError(
            "Only dense or diagonal Hessian matrices can be used to build the reduced "
            "KKT system.",
            mode=self.mode,
        )

    def is_finite(self) -> bool:
        """Check the active representation for non-finite entries."""
        if self.mode == HessianMode.DENSE:
            values = self.dense
        elif self.mode == HessianMode.DIAGONAL:
            values = self.diagonal
        else:
            values = self.inverse

        return values is not None and bool(np.all(np.isfinite(values)))


@dataclass
class ObjectiveResult:
    """Objective function evaluated at a point.

    Parameters
    ----------
     val : float
        Objective value.
     grad : vector
        Gradient of the objective.
     hessian : Hessian
        Hessian of the objective.

    """

    val: float
    grad: npt.NDArray[np.float64]
    hessian: Hessian = field(default_factory=Hessian)

    def is_finite(self) -> bool:
        """Determine whether the value, gradient and Hessian entries are finite.

        A Hessian without entries is not checked.

        """
        if self.hessian.mode == HessianMode.DENSE:
            values = self.hessian.dense
        elif self.hessian.mode == HessianMode.DIAGONAL:
            values = self.hessian.diagonal
        else:
            values = None

        return (
            bool(np.isfinite(self.val))
            and bool(np.all(np.isfinite(self.grad)))
            and (values is None or bool(np.all(np.isfinite(values))))
        )


ObjectiveFunction = Callable[[npt.NDArray[np.float64]], ObjectiveResult]


class OptimumProblem:
    r"""Optimization problem with linear equality constraints and bounds.

    Class for describing problems of the form:
           minimize    f(x)
           subject to  A * x = b
                       l <= x <= u.

    The Newton solver only honours the lower bounds; the simplex solver honours both.

    Parameters
    ----------
     objective : Callable
        Function mapping x to an ObjectiveResult (value, gradient, and Hessian).
     A : m-by-n matrix
        Equality constraint matrix. Should have full row rank.
     b : vector of length m
        Right-hand side of equality constraints.
     l : vector of length n, optional
        Lower bounds. Defaults to zero.
     u : vector of length n, optional
        Upper bounds. Defaults to +inf.
     c : vector of length n, optional
        Linear cost used by the simplex solver. If not specified, the simplex solver
        uses the gradient of the objective at the initial guess.

    """

    def __init__(
        self,
        objective: ObjectiveFunction,
        A: npt.NDArray[np.float64],
        b: npt.NDArray[np.float64],
        l: Optional[npt.NDArray[np.float64]] = None,
        u: Optional[npt.NDArray[np.float64]] = None,
        c: Optional[npt.NDArray[np.float64]] = None,
    ) -> None:
        self.objective = objective
        self.A = np.asarray(A, dtype=np.float64)
        self.b = np.asarray(b, dtype=np.float64)
        n = self.A.shape[-1]
        self.l = np.zeros(n) if l is None else np.asarray(l, dtype=np.float64)
        self.u = np.full(n, np.inf) if u is None else np.asarray(u, dtype=np.float64)
        self.c = None if c is None else np.asarray(c, dtype=np.float64)

    @property
    def num_variables(self) -> int:
        """Count variables."""
        return self.A.shape[1]

    @property
    def num_equality_constraints(self) -> int:
        """Count equality constraints."""
        return self.A.shape[0]

    def validate(self) -> None:
        """Check that the dimensions of A, b, and the bounds agree."""
        if self.A.ndim != 2:
            raise DimensionMismatchError(f"A must be a matrix; got {self.A.ndim=:}.")

        m, n = self.A.shape
        if self.b.ndim != 1 or self.b.shape[0] != m:
            raise DimensionMismatchError(
                f"Dimension mismatch: {self.b.shape=:}; expected ({m},)."
            )

        if self.l.ndim != 1 or self.l.shape[0] != n:
            raise DimensionMismatchError(
                f"Dimension mismatch: {self.l.shape=:}; expected ({n},)."
            )

        if self.u.ndim != 1 or self.u.shape[0] != n:
            raise DimensionMismatchError(
                f"Dimension mismatch: {self.u.shape=:}; expected ({n},)."
            )

        if self.c is not None and (self.c.ndim != 1 or self.c.shape[0] != n):
            raise DimensionMismatchError(
                f"Dimension mismatch: {self.c.shape=:}; expected ({n},)."
            )

        if m > n:
            raise DimensionMismatchError(
                f"More equality constraints than variables ({m} > {n})."
            )


@dataclass
class OptimumState:
    """Iterate of an optimization algorithm.

    Parameters
    ----------
     x : vector
        Primal variables.
     y : vector
        Lagrange multipliers of the equality constraints.
     z : vector
        Lagrange multipliers of the lower bounds.
     f : ObjectiveResult, optional
        Objective evaluated at x.

    """

    x: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    y: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    z: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    f: Optional[ObjectiveResult] = None
