"""Active-set primal Newton solver."""

import time
from typing import List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from .exceptions import NewtonStepError
from .kkt import KktMatrix, KktSolution, KktSolver, KktVector
from .numerical_helpers import (
    fraction_to_the_boundary,
    multi_kahan_sum,
    solve_least_squares,
)
from .optimization import OptimumOptions, OptimumResult, OptimumSolverBase
from .outputter import Outputter
from .problem import (
    Hessian,
    HessianMode,
    ObjectiveFunction,
    ObjectiveResult,
    OptimumProblem,
    OptimumState,
)


def clamp_to_bounds(
    x: npt.NDArray[np.float64], l: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """Resize x to the length of l (filling with zeros), then raise it to l."""
    if x.shape[0] != l.shape[0]:
        x = np.zeros(l.shape[0])
    return np.where(x > l, x, l)


def regularize_objective(
    objective: ObjectiveFunction,
    D: npt.NDArray[np.float64],
    rho: float,
) -> ObjectiveFunction:
    r"""Add a Tikhonov penalty to an objective.

    The regularized objective is:
        f(x) + 0.5 * rho * \| D * x \|^2,
    so that the gradient gains rho * D^2 * x and the Hessian gains diag(rho * D^2).

    Parameters
    ----------
     objective : Callable
        The objective to regularize.
     D : vector
        Per-variable scaling.
     rho : float
        Penalty weight.

    Returns
    -------
     regularized : Callable
        The regularized objective.

    """
    D2 = D * D

    def regularized(x: npt.NDArray[np.float64]) -> ObjectiveResult:
        f = objective(x)
        Dx = D * x
        if f.hessian.mode == HessianMode.DIAGONAL and f.hessian.diagonal is not None:
            hessian = Hessian.from_diagonal(f.hessian.diagonal + rho * D2)
        elif f.hessian.mode == HessianMode.DENSE and f.hessian.dense is not None:
            hessian = Hessian.from_dense(f.hessian.dense + np.diag(rho * D2))
        else:
            # Rejected later, when the reduced KKT system is built.
            hessian = f.hessian

        return ObjectiveResult(
            val=f.val + 0.5 * rho * np.dot(Dx, Dx),
            grad=f.grad + rho * D2 * x,
            hessian=hessian,
        )

    return regularized


class ActiveSetNewtonSolver(OptimumSolverBase):
    r"""Solve an optimization problem using an active-set primal Newton method.

    Class for solving problems of the form:
           minimize    f(x)
           subject to  A * x = b
                       x >= l.

    The variables are partitioned into free variables, F, and variables pinned at their
    lower bound, L. Each iteration takes a Newton step on the equality-constrained
    problem in the free variables, with the pinned variables held fixed:
           _         _   _    _     _                  _
          | H_F  A_F^T | | dx |   | -(g_F - A_F^T * y) |
          | A_F    0   | | dy | = |     -(A * x - b)   |.
           -         -   -    -     -                  -
    The step is shortened by the fraction-to-the-boundary rule so that x_F stays above
    its bounds; the variable that blocks the step becomes pinned. Conversely, a pinned
    variable whose bound multiplier, z_i = g_i - A_i^T * y, is negative is released,
    one per iteration, starting with the most negative. If the Newton step would drive
    the released variable straight back below its bound, the release is undone, the
    step is recomputed on the previous free set, and the variable stays pinned until
    the iterate has moved.

    Notes
    -----
    Each call to `solve` owns the working vectors stored on the instance (the partition
    and the corresponding submatrices), so a single instance must not be used from
    several threads at once. Use `clone` to obtain an independent solver.

    """

    def __init__(self) -> None:
        self.kkt = KktSolver()
        self.outputter = Outputter()
        self.ifree: List[int] = []
        self.ilower: List[int] = []
        self.x_free: npt.NDArray[np.float64] = np.zeros(0)
        self.g_free: npt.NDArray[np.float64] = np.zeros(0)
        self.A_free: npt.NDArray[np.float64] = np.zeros((0, 0))
        self.A_lower: npt.NDArray[np.float64] = np.zeros((0, 0))
        self.H_free: Optional[Hessian] = None
        self.h: npt.NDArray[np.float64] = np.zeros(0)
        self.dual_initialized = False
        self.ireleased: Optional[int] = None
        self.release_position = 0
        self.z_released = 0.0
        self.iblocked: List[int] = []

    def solve(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: Optional[OptimumOptions] = None,
    ) -> OptimumResult:
        """Solve optimization problem.

        Parameters
        ----------
         problem : OptimumProblem
            The problem definition. Upper bounds, if any, are ignored.
         state : OptimumState
            Initial guess. Updated in place with the final iterate. The initial guess
            need not satisfy A * x = b, but components below their bound are raised to
            it, and convergence is only guaranteed from points strictly above the
            bounds. Infeasibility of A * x = b, x >= l is not detected: such a problem
            ends with a failed Newton step or without converging. Use
            `OptimumSolver.solve` with feasible_start=True to have it reported.
         options : OptimumOptions, optional
            Solver settings.

        Returns
        -------
         res : OptimumResult
            The outcome of the calculation.

        Raises
        ------
         DimensionMismatchError: if the sizes of A, b, and l are inconsistent.
         UnsupportedHessianModeError: if the objective returns a Hessian that is
            neither dense nor diagonal.

        """
        if options is None:
            options = OptimumOptions()

        problem.validate()

        rho = options.regularization
        if rho > 0.0:
            x0 = clamp_to_bounds(np.asarray(state.x, dtype=np.float64), problem.l)
            D = np.ones_like(x0)
            D[x0 > 0.0] = 1.0 / np.sqrt(x0[x0 > 0.0])
            problem = OptimumProblem(
                objective=regularize_objective(problem.objective, D, rho),
                A=problem.A,
                b=problem.b,
                l=problem.l,
                u=problem.u,
                c=problem.c,
            )

        return self.minimize(problem, state, options)

    def minimize(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: OptimumOptions,
    ) -> OptimumResult:
        """Run the active-set iterations on a validated problem."""
        start_time = time.time()
        self.outputter = Outputter(options.output)
        self.kkt.set_options(options.kkt)
        result = OptimumResult()

        A, l = problem.A, problem.l
        m, n = A.shape

        state.x = clamp_to_bounds(np.asarray(state.x, dtype=np.float64), l)
        state.y = np.asarray(state.y, dtype=np.float64)
        state.z = np.asarray(state.z, dtype=np.float64)
        if state.y.shape[0] != m:
            state.y = np.zeros(m)
        if state.z.shape[0] != n:
            state.z = np.zeros(n)

        self.ilower = [ii for ii in range(n) if state.x[ii] == l[ii]]
        self.ifree = [ii for ii in range(n) if state.x[ii] != l[ii]]
        self.x_free = state.x[self.ifree].copy()
        self.update_submatrices(A)
        self.dual_initialized = False
        self.iblocked = []

        self.update_state(problem, state)
        self.output_header(state, result)

        while True:
            result.iterations += 1
            if result.iterations > options.max_iterations:
                result.iterations = options.max_iterations
                result.message = (
                    f"Newton's method did not converge in {options.max_iterations} "
                    "iterations."
                )
                break

            if not state.f.is_finite():
                result.message = "Objective value, gradient or Hessian is not finite."
                break

            try:
                sol = self.compute_newton_step(state, result)
                if self.ireleased is not None and sol.dx[-1] < 0.0:
                    # The released variable would be pinned again with alpha = 0.
                    self.undo_release(problem, state)
                    sol = self.compute_newton_step(state, result)
            except NewtonStepError as e:
                result.message = f"Failed to calculate Newton step: {e}"
                break

            if not sol.is_finite():
                result.message = "Newton step is not finite."
                break

            alpha = self.update_iterates(problem, state, sol)
            self.update_state(problem, state)
            if not state.f.is_finite():
                result.message = "Objective value, gradient or Hessian is not finite."
                break

            errorf, errorh = self.update_errors(state, result)
            self.output_state(state, result, errorf, errorh, alpha)

            if result.error < options.tolerance:
                result.succeeded = True
                result.message = (
                    "Newton's method completed successfully to the desired tolerance."
                )
                break

        result.time = time.time() - start_time
        if options.output.active:
            print(f"  {result.message} ({1000 * result.time:.03f} ms)")

        return result

    def update_submatrices(self, A: npt.NDArray[np.float64]) -> None:
        """Split the columns of A into free and pinned."""
        self.A_free = A[:, self.ifree]
        self.A_lower = A[:, self.ilower]

    def update_state(self, problem: OptimumProblem, state: OptimumState) -> None:
        """Evaluate the objective and residuals, and release a pinned variable.

        After this call, state.f holds the objective at the current point, self.h the
        equality residual, state.z the bound multipliers of the pinned variables, and
        self.g_free and self.H_free the gradient and Hessian over the free variables.
        At most one pinned variable is released per call: the one with the most
        negative bound multiplier among those not blocked by `undo_release`.

        """
        A, b, l = problem.A, problem.b, problem.l
        x, y, z = state.x, state.y, state.z
        self.ireleased = None

        x[self.ifree] = self.x_free
        x[self.ilower] = l[self.ilower]

        f = problem.objective(x)
        state.f = f
        self.h = multi_kahan_sum(A, x) - b
        if not f.is_finite():
            return

        # Only the first call on a zero multiplier estimate triggers this.
        if not self.dual_initialized and np.linalg.norm(y) == 0.0:
            y[:] = solve_least_squares(self.A_free.T, f.grad[self.ifree])
            self.dual_initialized = True

        z_lower = f.grad[self.ilower] - self.A_lower.T @ y
        z[:] = 0.0
        z[self.ilower] = z_lower

        candidates = [
            kk for kk, ii in enumerate(self.ilower) if ii not in self.iblocked
        ]
        if len(candidates) > 0:
            iminz = min(candidates, key=lambda kk: z_lower[kk])
            if z_lower[iminz] < 0.0:
                ii = self.ilower.pop(iminz)
                self.ifree.append(ii)
                self.x_free = np.append(self.x_free, l[ii])
                z[ii] = 0.0
                self.update_submatrices(A)
                self.ireleased = ii
                self.release_position = iminz
                self.z_released = float(z_lower[iminz])

        self.g_free = f.grad[self.ifree]
        self.H_free = f.hessian.submatrix(self.ifree)

    def undo_release(self, problem: OptimumProblem, state: OptimumState) -> None:
        """Pin the variable released by the last `update_state` call again.

        The variable returns to its old position in L and is blocked from release
        until the iterate moves.

        """
        ii = self.ifree.pop()
        self.x_free = self.x_free[:-1]
        self.ilower.insert(self.release_position, ii)
        state.z[ii] = self.z_released
        self.iblocked.append(ii)
        self.ireleased = None

        self.update_submatrices(problem.A)
        self.g_free = state.f.grad[self.ifree]
        self.H_free = state.f.hessian.submatrix(self.ifree)

    def compute_newton_step(
        self, state: OptimumState, result: OptimumResult
    ) -> KktSolution:
        """Calculate the Newton step over the free variables.

        Returns
        -------
         sol : KktSolution
            The step for the free variables, dx, and for the equality multipliers, dy,
            such that y + dy is the multiplier estimate at x + dx.

        """
        z_free = np.zeros(len(self.ifree))
        lhs = KktMatrix(H=self.H_free, A=self.A_free, x=self.x_free, z=z_free)
        rhs = KktVector(
            rx=-(self.g_free - self.A_free.T @ state.y),
            ry=-self.h,
            rz=np.zeros(len(self.ifree)),
        )

        try:
            self.kkt.decompose(lhs)
            sol = self.kkt.solve(rhs)
        finally:
            kkt_result = self.kkt.result()
            result.time_linear_systems += kkt_result.time_decompose
            result.time_linear_systems += kkt_result.time_solve

        # The symmetric KKT system is written in terms of -dy.
        return KktSolution(dx=sol.dx, dy=-sol.dy, dz=sol.dz)

    def update_iterates(
        self, problem: OptimumProblem, state: OptimumState, sol: KktSolution
    ) -> float:
        """Take the largest step along sol that keeps x_F above its bounds.

        Returns
        -------
         alpha : float
            The step length. If a variable reached its bound, it becomes pinned.

        """
        l_free = problem.l[self.ifree]
        alpha, ilimiting = fraction_to_the_boundary(
            self.x_free - l_free, sol.dx, tau=1.0
        )

        # Round-off must not push a variable below its bound.
        self.x_free = np.maximum(self.x_free + alpha * sol.dx, l_free)
        state.y += alpha * sol.dy
        state.x[self.ifree] = self.x_free
        if alpha > 0.0 and (np.any(sol.dx != 0.0) or np.any(sol.dy != 0.0)):
            self.iblocked = []

        if ilimiting is not None:
            self.ilower.append(self.ifree.pop(ilimiting))
            self.x_free = np.delete(self.x_free, ilimiting)
            self.update_submatrices(problem.A)

        return alpha

    def update_errors(
        self, state: OptimumState, result: OptimumResult
    ) -> Tuple[float, float]:
        """Calculate optimality and feasibility residuals."""
        errorf = float(
            np.max(np.abs(self.g_free - self.A_free.T @ state.y), initial=0.0)
        )
        errorh = float(np.max(np.abs(self.h), initial=0.0))
        result.error = max(errorf, errorh)
        result.errors.append(result.error)
        return errorf, errorh

    def output_header(self, state: OptimumState, result: OptimumResult) -> None:
        """Print column names and the initial state."""
        if not self.outputter.active:
            return

        options = self.outputter.options
        self.outputter.add_entry("iter")
        self.outputter.add_entries(options.xprefix, len(state.x), options.xnames)
        self.outputter.add_entries(options.yprefix, len(state.y), options.ynames)
        self.outputter.add_entries(options.zprefix, len(state.z), options.znames)
        for entry in ["f(x)", "h(x)", "errorf", "errorh", "error", "alpha"]:
            self.outputter.add_entry(entry)
        self.outputter.output_header()

        self.outputter.add_value(result.iterations)
        self.outputter.add_values(state.x)
        self.outputter.add_values(state.y)
        self.outputter.add_values(state.z)
        self.outputter.add_value(state.f.val)
        self.outputter.add_value(float(np.max(np.abs(self.h), initial=0.0)))
        self.outputter.add_values(["---"] * 4)
        self.outputter.output_state()

    def output_state(
        self,
        state: OptimumState,
        result: OptimumResult,
        errorf: float,
        errorh: float,
        alpha: float,
    ) -> None:
        """Print the state at the end of an iteration."""
        if not self.outputter.active:
            return

        self.outputter.add_value(result.iterations)
        self.outputter.add_values(state.x)
        self.outputter.add_values(state.y)
        self.outputter.add_values(state.z)
        self.outputter.add_value(state.f.val)
        self.outputter.add_value(errorh)
        self.outputter.add_value(errorf)
        self.outputter.add_value(errorh)
        self.outputter.add_value(result.error)
        self.outputter.add_value(alpha)
        self.outputter.output_state()
