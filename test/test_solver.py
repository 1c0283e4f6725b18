"""Test solver front end."""

import numpy as np
import pytest

from pyoptimum.newton import ActiveSetNewtonSolver
from pyoptimum.objectives import KLDivergence, LinearObjective, SquaredL2
from pyoptimum.optimization import OptimumOptions
from pyoptimum.problem import OptimumProblem, OptimumState
from pyoptimum.simplex import SimplexSolver
from pyoptimum.solver import OptimumMethod, OptimumSolver


def test_dispatch() -> None:
    assert isinstance(OptimumSolver().solver, ActiveSetNewtonSolver)
    assert isinstance(
        OptimumSolver(OptimumMethod.ACTNEWTON).solver, ActiveSetNewtonSolver
    )
    assert isinstance(OptimumSolver(OptimumMethod.SIMPLEX).solver, SimplexSolver)


def test_newton_feasible_start() -> None:
    """The simplex phase I provides a starting point for Newton's method."""
    problem = OptimumProblem(SquaredL2(np.zeros(2)), A=np.array([[1.0, 1.0]]), b=[1.0])
    state = OptimumState(x=np.array([5.0, 5.0]))

    res = OptimumSolver(OptimumMethod.ACTNEWTON).solve(
        problem, state, feasible_start=True
    )
    assert res.succeeded
    np.testing.assert_allclose(state.x, [0.5, 0.5], rtol=1e-8, atol=1e-8)


def test_infeasible_start_reported() -> None:
    """x_0 + x_1 = 1 cannot be satisfied with x_0 >= 2."""
    problem = OptimumProblem(
        LinearObjective(np.ones(2)),
        A=np.array([[1.0, 1.0]]),
        b=[1.0],
        l=np.array([2.0, 0.0]),
    )
    state = OptimumState()

    res = OptimumSolver().solve(problem, state, feasible_start=True)
    assert not res.succeeded
    assert "infeasible" in res.message

    res = OptimumSolver().feasible(problem, state)
    assert not res.succeeded


def test_simplex_method() -> None:
    c = np.array([1.0, 2.0, 0.5])
    problem = OptimumProblem(
        LinearObjective(c), A=np.array([[1.0, 1.0, 1.0]]), b=[2.0], c=c
    )
    state = OptimumState()

    res = OptimumSolver(OptimumMethod.SIMPLEX).solve(problem, state)
    assert res.succeeded
    np.testing.assert_allclose(state.x, [0.0, 0.0, 2.0], atol=1e-12)


def test_kl_divergence_interior() -> None:
    """Minimize the KL divergence to v subject to a single linear constraint."""
    v = np.array([1.0, 2.0, 3.0])
    A = np.array([[1.0, 1.0, 1.0]])
    problem = OptimumProblem(KLDivergence(v), A=A, b=[3.0])
    state = OptimumState(x=np.ones(3))

    res = OptimumSolver().solve(problem, state, OptimumOptions(tolerance=1e-10))
    assert res.succeeded
    # Stationarity: log(x / v) = y, so x is proportional to v
    np.testing.assert_allclose(state.x, v / 2.0, rtol=1e-8, atol=1e-8)
    np.testing.assert_allclose(state.y, [np.log(0.5)], rtol=1e-8, atol=1e-8)


def test_clone_is_independent() -> None:
    problem = OptimumProblem(
        SquaredL2(np.array([3.0, 0.0])), A=np.array([[1.0, 1.0]]), b=[1.0]
    )
    solver = OptimumSolver()
    res = solver.solve(problem, OptimumState(x=np.array([0.5, 0.5])))
    assert res.succeeded

    clone = solver.clone()
    assert clone.solver is not solver.solver
    assert clone.solver.ilower == solver.solver.ilower

    clone.solver.ilower.append(99)
    assert 99 not in solver.solver.ilower


def test_unknown_method() -> None:
    with pytest.raises(ValueError):
        OptimumSolver("interior point")
