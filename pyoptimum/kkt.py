"""KKT linear system solver."""

import time
from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np
import numpy.typing as npt
from scipy import linalg

from .exceptions import NewtonStepError, UnsupportedHessianModeError
from .numerical_helpers import solve_diagonal, solve_kkt_system
from .problem import Hessian, HessianMode


@dataclass
class KktOptions:
    """KKT solver settings.

    Parameters
    ----------
    method : {"lu", "svd"}, default="lu"
        Factorization of the assembled system when the Hessian is dense. "lu" uses an LU
        decomposition with partial pivoting; "svd" uses a pseudo-inverse, which is
        slower but tolerates a rank-deficient constraint matrix. Diagonal Hessians
        always use block elimination and ignore this setting.
    rank_tolerance : float, default=1e-12
        Relative threshold below which singular values are treated as zero when
        `method="svd"`.

    """

    method: Literal["lu", "svd"] = "lu"
    rank_tolerance: float = 1e-12


@dataclass
class KktMatrix:
    """Left-hand side of the KKT system.

    Parameters
    ----------
     H : Hessian
        Hessian of the objective restricted to the free variables.
     A : p-by-M matrix
        Equality constraint matrix restricted to the free variables.
     x : vector of length M
        Current values of the free variables.
     z : vector of length M
        Current bound multipliers of the free variables.

    """

    H: Hessian
    A: npt.NDArray[np.float64]
    x: npt.NDArray[np.float64]
    z: npt.NDArray[np.float64]


@dataclass
class KktVector:
    """Right-hand side of the KKT system."""

    rx: npt.NDArray[np.float64]
    ry: npt.NDArray[np.float64]
    rz: npt.NDArray[np.float64]


@dataclass
class KktSolution:
    """Solution of the KKT system."""

    dx: npt.NDArray[np.float64]
    dy: npt.NDArray[np.float64]
    dz: npt.NDArray[np.float64]

    def is_finite(self) -> bool:
        """Determine whether every component of the solution is finite."""
        return (
            bool(np.all(np.isfinite(self.dx)))
            and bool(np.all(np.isfinite(self.dy)))
            and bool(np.all(np.isfinite(self.dz)))
        )


@dataclass
class KktResult:
    """Timing and status of the last decompose/solve calls."""

    succeeded: bool = False
    time_decompose: float = 0.0
    time_solve: float = 0.0


class KktSolver:
    r"""Solve KKT systems arising in Newton's method.

    The system is:
           _       _   _    _     _    _
          | H   A^T | | dx |   | rx |
          | A    0  | | dy | = | ry |,
           -       -   -    -     -    -
    together with dz = (rz - Z * dx) / X, where X = diag(x) and Z = diag(z).

    Usage is split in two steps so that a factorization can be reused: `decompose`
    factorizes the matrix and `solve` computes the solution for a right-hand side.

    Parameters
    ----------
     options : KktOptions, optional
        Solver settings.

    """

    def __init__(self, options: Optional[KktOptions] = None) -> None:
        self.options: KktOptions = KktOptions() if options is None else options
        self._result = KktResult()
        self._lhs: Optional[KktMatrix] = None
        self._lu: Optional[tuple] = None
        self._pinv: Optional[npt.NDArray[np.float64]] = None

    def set_options(self, options: KktOptions) -> None:
        """Update settings."""
        self.options = options

    def result(self) -> KktResult:
        """Status and timings of the last calls to `decompose` and `solve`."""
        return self._result

    def decompose(self, lhs: KktMatrix) -> None:
        """Factorize the KKT matrix.

        Parameters
        ----------
         lhs : KktMatrix
            The matrix to factorize.

        Raises
        ------
         UnsupportedHessianModeError: if the Hessian is neither dense nor diagonal.
         NewtonStepError: if the matrix cannot be factorized.

        """
        start_time = time.time()
        self._result = KktResult()
        self._lhs = lhs
        self._lu = None
        self._pinv = None

        p, M = lhs.A.shape
        if lhs.H.mode == HessianMode.DENSE:
            if lhs.H.dense is None or lhs.H.dense.shape != (M, M):
                raise ValueError(f"Dimension mismatch: expected a ({M}, {M}) Hessian.")

            K = np.zeros((M + p, M + p))
            K[0:M, 0:M] = lhs.H.dense
            K[0:M, M:] = lhs.A.T
            K[M:, 0:M] = lhs.A
            if not np.all(np.isfinite(K)):
                raise NewtonStepError("KKT matrix has non-finite entries.")

            if M + p == 0:
                self._pinv = np.zeros((0, 0))
            elif self.options.method == "lu":
                lu, piv = linalg.lu_factor(K)
                if np.any(np.diag(lu) == 0.0):
                    raise NewtonStepError("KKT matrix is singular.")
                self._lu = (lu, piv)
            elif self.options.method == "svd":
                U, s, Vh = linalg.svd(K)
                cutoff = self.options.rank_tolerance * (s[0] if s.size else 0.0)
                rank = int(np.sum(s > cutoff))
                s_inv = np.zeros_like(s)
                s_inv[0:rank] = 1.0 / s[0:rank]
                self._pinv = (Vh.T * s_inv) @ U.T
            else:
                raise ValueError(f"Unknown KKT method: {self.options.method}")

        elif lhs.H.mode == HessianMode.DIAGONAL:
            if lhs.H.diagonal is None or lhs.H.diagonal.shape != (M,):
                raise ValueError(
                    f"Dimension mismatch: expected ({M},) Hessian diagonal."
                )

            if not np.all(lhs.H.diagonal > 0):
                raise NewtonStepError("Hessian is not strictly positive definite.")

        else:
            raise UnsupportedHessianModeError(
                "KKT solver only accepts dense or diagonal Hessian matrices.",
                mode=lhs.H.mode,
            )

        self._result.time_decompose = time.time() - start_time

    def solve(self, rhs: KktVector) -> KktSolution:
        """Solve the KKT system factorized by the last call to `decompose`.

        Parameters
        ----------
         rhs : KktVector
            Right-hand side.

        Returns
        -------
         sol : KktSolution
            The solution.

        """
        if self._lhs is None:
            raise ValueError("Call decompose before solve.")

        start_time = time.time()
        lhs = self._lhs
        p, M = lhs.A.shape
        if rhs.rx.shape != (M,) or rhs.ry.shape != (p,):
            raise ValueError(
                "Dimension mismatch between KKT matrix and right-hand side."
            )

        if lhs.H.mode == HessianMode.DIAGONAL:
            dx, dy = solve_kkt_system(
                lhs.A,
                rhs.rx,
                hessian_solve=solve_diagonal,
                r=rhs.ry,
                eta=lhs.H.diagonal,
            )
        else:
            r = np.concatenate([rhs.rx, rhs.ry])
            if self._lu is not None:
                sol = linalg.lu_solve(self._lu, r)
            else:
                sol = self._pinv @ r
            dx = sol[0:M]
            dy = sol[M:]

        # Free variables sitting exactly at zero have no complementarity row.
        dz = np.divide(
            rhs.rz - lhs.z * dx, lhs.x, out=np.zeros_like(dx), where=lhs.x != 0.0
        )

        self._result.time_solve = time.time() - start_time
        self._result.succeeded = True
        return KktSolution(dx=dx, dy=dy, dz=dz)
