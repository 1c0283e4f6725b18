"""Front end selecting an optimization method."""

import copy
from enum import Enum
from typing import Optional

from .newton import ActiveSetNewtonSolver
from .optimization import OptimumOptions, OptimumResult, OptimumSolverBase
from .problem import OptimumProblem, OptimumState
from .simplex import SimplexSolver


class OptimumMethod(Enum):
    """Available optimization methods."""

    ACTNEWTON = "actnewton"
    SIMPLEX = "simplex"


class OptimumSolver:
    """Solve optimization problems with a chosen method.

    Parameters
    ----------
     method : OptimumMethod, default=OptimumMethod.ACTNEWTON
        ACTNEWTON minimizes a smooth objective subject to A * x = b and x >= l, while
        SIMPLEX minimizes a linear cost subject to A * x = b and l <= x <= u.

    Examples
    --------
    >>> problem = OptimumProblem(SquaredL2(v), A, b)
    >>> state = OptimumState(x=x0)
    >>> res = OptimumSolver(OptimumMethod.ACTNEWTON).solve(problem, state)

    """

    def __init__(self, method: OptimumMethod = OptimumMethod.ACTNEWTON) -> None:
        self.method = method
        self.solver: OptimumSolverBase
        if method == OptimumMethod.ACTNEWTON:
            self.solver = ActiveSetNewtonSolver()
        elif method == OptimumMethod.SIMPLEX:
            self.solver = SimplexSolver()
        else:
            raise ValueError(f"Unknown optimization method: {method}")

        self.simplex = SimplexSolver()

    def solve(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: Optional[OptimumOptions] = None,
        feasible_start: bool = False,
    ) -> OptimumResult:
        """Solve optimization problem.

        Parameters
        ----------
         problem : OptimumProblem
            The problem definition.
         state : OptimumState
            Initial guess. Updated in place with the final iterate.
         options : OptimumOptions, optional
            Solver settings.
         feasible_start : bool, default=False
            If True and the method is ACTNEWTON, first replace state.x by a point
            satisfying A * x = b and x >= l, found by the simplex phase I. If that
            fails, its result is returned without running Newton's method.

        Returns
        -------
         res : OptimumResult
            The outcome of the calculation.

        """
        if not feasible_start or self.method == OptimumMethod.SIMPLEX:
            return self.solver.solve(problem, state, options)

        phase1_res = self.feasible(problem, state, options)
        if not phase1_res.succeeded:
            return phase1_res

        res = self.solver.solve(problem, state, options)
        res.time += phase1_res.time
        res.time_linear_systems += phase1_res.time_linear_systems
        return res

    def feasible(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: Optional[OptimumOptions] = None,
    ) -> OptimumResult:
        """Find a point satisfying A * x = b and l <= x <= u.

        See `SimplexSolver.feasible`.

        """
        return self.simplex.feasible(problem, state, options)

    def clone(self) -> "OptimumSolver":
        """Create an independent copy of this solver."""
        return copy.deepcopy(self)
