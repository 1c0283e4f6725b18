"""Base optimization classes."""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes

from .kkt import KktOptions
from .problem import OptimumProblem, OptimumState


@dataclass
class OutputOptions:
    """Settings for the tabular iteration log.

    Parameters
    ----------
    active : bool, default=False
        If True, print a table row with the state of the solver at each iteration.
    xprefix, yprefix, zprefix : str
        Column prefixes for the primal variables, equality multipliers, and bound
        multipliers. Columns are named e.g. x[0], x[1], ...
    xnames, ynames, znames : List[str], optional
        Column names to use instead of the prefixes.
    width : int, default=12
        Width of each column.
    precision : int, default=6
        Number of significant digits printed for floating point values.
    separator : str, default="|"
        Column separator.

    """

    active: bool = False
    xprefix: str = "x"
    yprefix: str = "y"
    zprefix: str = "z"
    xnames: Optional[List[str]] = None
    ynames: Optional[List[str]] = None
    znames: Optional[List[str]] = None
    width: int = 12
    precision: int = 6
    separator: str = "|"


@dataclass
class OptimumOptions:
    r"""Optimization settings.

    Parameters
    ----------
    tolerance : float, default=1e-6
        The solver stops successfully once the largest of the optimality residual,
        max |g_F - A_F^T * y|, and the feasibility residual, max |A * x - b|, is below
        this threshold. The simplex solver uses it as the threshold on reduced costs and
        on the phase I infeasibility.
    max_iterations : int, default=100
        The maximum number of iterations. This guards against infinite loops and
        over-computation in the case where convergence is slow.
    regularization : float, default=0.0
        Weight rho of the penalty 0.5 * rho * \| D * x \|^2 added to the objective by
        the Newton solver, where D = 1 / sqrt(x0). Zero disables the penalty.
    output : OutputOptions
        Settings for the tabular iteration log.
    kkt : KktOptions
        Settings for the KKT solver.

    """

    tolerance: float = 1e-6
    max_iterations: int = 100
    regularization: float = 0.0
    output: OutputOptions = field(default_factory=OutputOptions)
    kkt: KktOptions = field(default_factory=KktOptions)


@dataclass
class OptimumResult:
    """Wrapper for the result of an optimization calculation.

    Parameters
    ----------
     succeeded : bool
        True if the solver converged to the desired tolerance.
     iterations : int
        Number of iterations performed.
     error : float
        Final residual. See OptimumOptions.tolerance.
     time : float
        Wall time of the whole calculation, in seconds.
     time_linear_systems : float
        Wall time spent decomposing and solving linear systems, in seconds.
     errors : List[float]
        Residual at each iteration.
     message : str
        Summary of result.

    """

    succeeded: bool = False
    iterations: int = 0
    error: float = np.inf
    time: float = 0.0
    time_linear_systems: float = 0.0
    errors: List[float] = field(default_factory=list)
    message: str = ""

    def plot_convergence(self, ax: Optional[Axes] = None) -> Axes:
        """Plot convergence."""
        if ax is None:
            _, ax = plt.subplots()

        ax.plot(
            [ii + 1 for ii in range(len(self.errors))], self.errors, marker="o"
        )
        ax.set_yscale("log")
        ax.set_xlabel("Iteration")
        ax.set_ylabel("Residual")
        return ax


class OptimumSolverBase(ABC):
    """Base class for an optimizer."""

    @abstractmethod
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
            The problem definition.
         state : OptimumState
            Initial guess. Updated in place with the final iterate.
         options : OptimumOptions, optional
            Solver settings.

        Returns
        -------
         res : OptimumResult
            The outcome of the calculation.

        """

    def clone(self) -> "OptimumSolverBase":
        """Create an independent copy of this solver, including its working state."""
        return copy.deepcopy(self)
