"""Constrained optimization with active-set Newton and simplex methods."""

from .exceptions import (
    DimensionMismatchError,
    NewtonStepError,
    UnsupportedHessianModeError,
)
from .kkt import KktMatrix, KktOptions, KktResult, KktSolution, KktSolver, KktVector
from .newton import ActiveSetNewtonSolver
from .objectives import (
    KLDivergence,
    LinearObjective,
    Objective,
    QuadraticObjective,
    SquaredL2,
)
from .optimization import (
    OptimumOptions,
    OptimumResult,
    OptimumSolverBase,
    OutputOptions,
)
from .outputter import Outputter
from .problem import (
    Hessian,
    HessianMode,
    ObjectiveResult,
    OptimumProblem,
    OptimumState,
)
from .simplex import SimplexSolver, SimplexState
from .solver import OptimumMethod, OptimumSolver

__all__ = [
    "OptimumSolver",
    "OptimumMethod",
    "ActiveSetNewtonSolver",
    "SimplexSolver",
    "SimplexState",
    "OptimumSolverBase",
    "OptimumProblem",
    "OptimumState",
    "OptimumOptions",
    "OptimumResult",
    "OutputOptions",
    "Outputter",
    "Hessian",
    "HessianMode",
    "ObjectiveResult",
    "Objective",
    "LinearObjective",
    "QuadraticObjective",
    "SquaredL2",
    "KLDivergence",
    "KktSolver",
    "KktOptions",
    "KktMatrix",
    "KktVector",
    "KktSolution",
    "KktResult",
    "DimensionMismatchError",
    "NewtonStepError",
    "UnsupportedHessianModeError",
]
