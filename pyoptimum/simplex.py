"""Simplex solver for linear programs with equality constraints and bounds."""

import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import numpy.typing as npt
from scipy import linalg

from .numerical_helpers import multi_kahan_sum
from .optimization import OptimumOptions, OptimumResult, OptimumSolverBase
from .outputter import Outputter
from .problem import OptimumProblem, OptimumState


def basis_solve(
    lu: Optional[tuple], rhs: npt.NDArray[np.float64], trans: int = 0
) -> npt.NDArray[np.float64]:
    """Solve B * v = rhs, or B^T * v = rhs, with a factorized basis.

    An empty basis (no equality constraints) is represented by lu=None.
    """
    if lu is None:
        return np.zeros(0)
    return linalg.lu_solve(lu, rhs, trans=trans)


@dataclass
class SimplexState:
    """Basis and iterate of the simplex method.

    The vectors include one artificial variable per equality constraint, appended after
    the problem variables.

    Parameters
    ----------
     x : vector
        Current vertex.
     y : vector
        Lagrange multipliers of the equality constraints.
     zl, zu : vectors
        Reduced costs of the nonbasic variables at their lower bound (zl) and the
        negated reduced costs of those at their upper bound (zu). Both are nonnegative
        at an optimal vertex, and zero for the other variables.
     ibasic : List[int]
        Basic variables, in the order of the columns of the basis matrix.
     ilower, iupper : List[int]
        Nonbasic variables at their lower and upper bounds.

    """

    x: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    y: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    zl: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    zu: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros(0))
    ibasic: List[int] = field(default_factory=list)
    ilower: List[int] = field(default_factory=list)
    iupper: List[int] = field(default_factory=list)


class SimplexSolver(OptimumSolverBase):
    r"""Solve linear programs with a bounded-variable primal simplex method.

    Class for solving problems of the form:
           minimize    c^T * x
           subject to  A * x = b
                       l <= x <= u,
    where l is finite and u may be infinite.

    The method runs in two phases. Phase I (`feasible`) appends one artificial variable
    per constraint, starting from the vertex where every problem variable sits at its
    lower bound, and minimizes the sum of the artificials. If that sum reaches zero,
    the current vertex is feasible for the original problem. Phase II (`simplex`) then
    minimizes c^T * x from that vertex, with the artificials fixed at zero.

    Entering variables are chosen by Bland's rule (smallest index with a profitable
    reduced cost), which rules out cycling on degenerate vertices.

    """

    pivot_tolerance: float = 1e-12

    def __init__(self) -> None:
        self.outputter = Outputter()
        self.simplex_state: Optional[SimplexState] = None
        self.A: npt.NDArray[np.float64] = np.zeros((0, 0))
        self.b: npt.NDArray[np.float64] = np.zeros(0)
        self.l: npt.NDArray[np.float64] = np.zeros(0)
        self.u: npt.NDArray[np.float64] = np.zeros(0)
        self.num_variables = 0

    def solve(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: Optional[OptimumOptions] = None,
    ) -> OptimumResult:
        """Find a feasible vertex, then minimize the linear objective from it.

        Parameters
        ----------
         problem : OptimumProblem
            The problem definition. See `simplex` for the choice of cost vector.
         state : OptimumState
            Initial guess. Updated in place with the final vertex and multipliers.
         options : OptimumOptions, optional
            Solver settings.

        Returns
        -------
         res : OptimumResult
            Combined outcome of both phases.

        """
        phase1_res = self.feasible(problem, state, options)
        if not phase1_res.succeeded:
            return phase1_res

        phase2_res = self.simplex(problem, state, options)
        phase2_res.iterations += phase1_res.iterations
        phase2_res.time += phase1_res.time
        phase2_res.time_linear_systems += phase1_res.time_linear_systems
        phase2_res.errors = phase1_res.errors + phase2_res.errors
        return phase2_res

    def feasible(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: Optional[OptimumOptions] = None,
    ) -> OptimumResult:
        """Find a vertex satisfying A * x = b and l <= x <= u.

        Parameters
        ----------
         problem : OptimumProblem
            The problem definition. The objective is not used.
         state : OptimumState
            Updated in place: state.x is set to the feasible vertex.
         options : OptimumOptions, optional
            Solver settings.

        Returns
        -------
         res : OptimumResult
            The outcome of the calculation. If the problem is infeasible, succeeded is
            False and error is the residual max |A * x - b| at the best vertex found.

        """
        if options is None:
            options = OptimumOptions()

        start_time = time.time()
        problem.validate()
        if not np.all(np.isfinite(problem.l)):
            raise ValueError("The simplex solver requires finite lower bounds.")
        if np.any(problem.u < problem.l):
            raise ValueError("Upper bounds must not be smaller than lower bounds.")

        A, b, l, u = problem.A, problem.b, problem.l, problem.u
        m, n = A.shape
        self.outputter = Outputter(options.output)
        result = OptimumResult()

        # Start with every variable at its lower bound and artificials absorbing the
        # residual, so that the initial basis is diag(sign(r)).
        x = l.copy()
        r = b - multi_kahan_sum(A, x)
        signs = np.where(r >= 0.0, 1.0, -1.0)

        self.num_variables = n
        self.A = np.hstack([A, np.diag(signs)])
        self.b = b.copy()
        self.l = np.concatenate([l, np.zeros(m)])
        self.u = np.concatenate([u, np.full(m, np.inf)])
        sstate = SimplexState(
            x=np.concatenate([x, np.abs(r)]),
            y=np.zeros(m),
            zl=np.zeros(n + m),
            zu=np.zeros(n + m),
            ibasic=list(range(n, n + m)),
            ilower=list(range(n)),
            iupper=[],
        )
        self.simplex_state = None

        c = np.concatenate([np.zeros(n), np.ones(m)])
        self.output_header()
        optimal = self.iterate(sstate, c, phase=1, options=options, result=result)

        infeasibility = float(np.sum(sstate.x[n:]))
        threshold = options.tolerance * max(1.0, float(np.max(np.abs(b), initial=0.0)))
        state.x = sstate.x[0:n].copy()
        result.error = float(
            np.max(np.abs(multi_kahan_sum(A, state.x) - b), initial=0.0)
        )
        if optimal and infeasibility <= threshold:
            # Artificials are kept, fixed at zero, so that phase II can start from the
            # current basis even if some of them are still basic.
            self.u[n:] = 0.0
            sstate.x[n:] = 0.0
            self.simplex_state = sstate
            result.succeeded = True
            result.message = "Simplex method found a feasible point."
        elif optimal:
            result.message = (
                f"Problem is infeasible: sum of artificial variables was "
                f"{infeasibility:.03g} > {threshold:.03g}"
            )

        result.time = time.time() - start_time
        if options.output.active:
            print(f"  {result.message} ({1000 * result.time:.03f} ms)")

        return result

    def simplex(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: Optional[OptimumOptions] = None,
    ) -> OptimumResult:
        """Minimize c^T * x starting from the vertex found by `feasible`.

        The cost vector is problem.c if specified; otherwise it is the gradient of the
        objective at state.x, i.e. the objective is linearized at the current point.

        Parameters
        ----------
         problem : OptimumProblem
            The problem definition. Must be the problem passed to `feasible`.
         state : OptimumState
            Updated in place with the optimal vertex, the equality multipliers (y) and
            the reduced costs (z = c - A^T * y).
         options : OptimumOptions, optional
            Solver settings.

        Returns
        -------
         res : OptimumResult
            The outcome of the calculation. If the problem is unbounded, succeeded is
            False.

        Raises
        ------
         ValueError: if `feasible` has not found a feasible vertex for this problem.

        """
        if options is None:
            options = OptimumOptions()

        start_time = time.time()
        problem.validate()
        sstate = self.simplex_state
        n = self.num_variables
        if (
            sstate is None
            or problem.A.shape != (self.A.shape[0], n)
            or not np.array_equal(problem.A, self.A[:, 0:n])
            or not np.array_equal(problem.b, self.b)
        ):
            raise ValueError(
                "No feasible basis available for this problem; call feasible first."
            )

        if problem.c is not None:
            c = problem.c
        else:
            x0 = np.where(state.x > problem.l, state.x, problem.l)
            c = problem.objective(x0).grad
        m = problem.num_equality_constraints
        c_ext = np.concatenate([c, np.zeros(m)])

        self.outputter = Outputter(options.output)
        result = OptimumResult()
        self.output_header()
        optimal = self.iterate(sstate, c_ext, phase=2, options=options, result=result)

        state.x = sstate.x[0:n].copy()
        state.y = sstate.y.copy()
        state.z = c - problem.A.T @ state.y
        primal_error = float(
            np.max(np.abs(multi_kahan_sum(problem.A, state.x) - problem.b), initial=0.0)
        )
        result.error = max(primal_error, result.error)
        if optimal:
            result.succeeded = True
            result.message = "Simplex method found an optimal vertex."

        result.time = time.time() - start_time
        if options.output.active:
            print(f"  {result.message} ({1000 * result.time:.03f} ms)")

        return result

    def iterate(
        self,
        sstate: SimplexState,
        c: npt.NDArray[np.float64],
        phase: int,
        options: OptimumOptions,
        result: OptimumResult,
    ) -> bool:
        """Pivot until no nonbasic variable has a profitable reduced cost.

        Parameters
        ----------
         sstate : SimplexState
            The starting basis. Updated in place.
         c : vector
            Cost vector, including the artificial variables.
         phase : int
            1 or 2; only used for output.
         options : OptimumOptions
            Solver settings.
         result : OptimumResult
            Updated in place with iteration counts, timings, and a message on failure.

        Returns
        -------
         optimal : bool
            True if an optimal vertex was found, False if the problem is unbounded or
            the iteration limit was reached.

        """
        A, b, l, u = self.A, self.b, self.l, self.u
        x = sstate.x
        tol = options.tolerance
        while True:
            st = time.time()
            lu = linalg.lu_factor(A[:, sstate.ibasic]) if sstate.ibasic else None
            nonbasic = sstate.ilower + sstate.iupper
            x[sstate.ibasic] = basis_solve(lu, b - A[:, nonbasic] @ x[nonbasic])
            y = basis_solve(lu, c[sstate.ibasic], trans=1)
            result.time_linear_systems += time.time() - st

            d = c - A.T @ y
            sstate.y = y
            sstate.zl = np.zeros_like(x)
            sstate.zu = np.zeros_like(x)
            sstate.zl[sstate.ilower] = d[sstate.ilower]
            sstate.zu[sstate.iupper] = -d[sstate.iupper]

            # Fixed variables, including the artificials in phase II, never enter.
            candidates = [
                j for j in sstate.ilower if d[j] < -tol and u[j] > l[j]
            ] + [j for j in sstate.iupper if d[j] > tol and u[j] > l[j]]
            dual_infeasibility = max([abs(d[j]) for j in candidates], default=0.0)
            result.error = dual_infeasibility
            result.errors.append(dual_infeasibility)
            self.output_state(result.iterations, phase, float(np.dot(c, x)), result)

            if not candidates:
                return True

            result.iterations += 1
            if result.iterations > options.max_iterations:
                result.iterations = options.max_iterations
                result.message = (
                    f"Simplex method did not converge in {options.max_iterations} "
                    "iterations."
                )
                return False

            q = min(candidates)
            sigma = 1.0 if d[q] < 0.0 else -1.0

            st = time.time()
            w = basis_solve(lu, A[:, q])
            result.time_linear_systems += time.time() - st

            # Ratio test; a bound flip of the entering variable is the default.
            delta = -sigma * w
            t_max = u[q] - l[q]
            leaving: Optional[int] = None
            leaving_bound = "lower"
            for k, jb in enumerate(sstate.ibasic):
                if delta[k] < -self.pivot_tolerance:
                    t = (x[jb] - l[jb]) / -delta[k]
                    bound = "lower"
                elif delta[k] > self.pivot_tolerance:
                    t = (u[jb] - x[jb]) / delta[k]
                    bound = "upper"
                else:
                    continue

                t = max(t, 0.0)
                if t < t_max or (
                    t == t_max and leaving is not None and jb < sstate.ibasic[leaving]
                ):
                    t_max = t
                    leaving = k
                    leaving_bound = bound

            if not np.isfinite(t_max):
                result.message = "Problem is unbounded."
                return False

            x[q] += sigma * t_max
            x[sstate.ibasic] += delta * t_max

            if q in sstate.ilower:
                sstate.ilower.remove(q)
            else:
                sstate.iupper.remove(q)

            if leaving is None:
                if sigma > 0.0:
                    x[q] = u[q]
                    sstate.iupper.append(q)
                else:
                    x[q] = l[q]
                    sstate.ilower.append(q)
                continue

            jb = sstate.ibasic[leaving]
            sstate.ibasic[leaving] = q
            if leaving_bound == "lower":
                x[jb] = l[jb]
                sstate.ilower.append(jb)
            else:
                x[jb] = u[jb]
                sstate.iupper.append(jb)

    def output_header(self) -> None:
        """Print column names."""
        if not self.outputter.active:
            return

        for entry in ["iter", "phase", "c^T x", "error"]:
            self.outputter.add_entry(entry)
        self.outputter.output_header()

    def output_state(
        self, iteration: int, phase: int, objective: float, result: OptimumResult
    ) -> None:
        """Print the state at the current vertex."""
        if not self.outputter.active:
            return

        self.outputter.add_values([iteration, phase, objective, result.error])
        self.outputter.output_state()
