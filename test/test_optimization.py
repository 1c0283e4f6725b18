"""Test result and option classes."""

import matplotlib.pyplot as plt
import numpy as np

from pyoptimum.newton import ActiveSetNewtonSolver
from pyoptimum.objectives import SquaredL2
from pyoptimum.optimization import OptimumOptions, OptimumResult
from pyoptimum.problem import OptimumProblem, OptimumState


def test_options_defaults() -> None:
    options = OptimumOptions()
    assert options.tolerance == 1e-6
    assert options.max_iterations == 100
    assert options.regularization == 0.0
    assert not options.output.active
    assert options.kkt.method == "lu"

    # Nested settings are not shared between instances
    other = OptimumOptions()
    other.output.active = True
    assert not options.output.active


def test_result_defaults() -> None:
    res = OptimumResult()
    assert not res.succeeded
    assert res.iterations == 0
    assert np.isinf(res.error)
    assert res.errors == []


def test_plot_convergence() -> None:
    problem = OptimumProblem(
        SquaredL2(np.array([3.0, 0.0])), A=np.array([[1.0, 1.0]]), b=[1.0]
    )
    res = ActiveSetNewtonSolver().solve(problem, OptimumState(x=np.array([0.5, 0.5])))
    assert res.succeeded

    fig, ax = plt.subplots()
    # The last residual may be exactly zero, which a log scale cannot show.
    res.errors = [max(e, 1e-16) for e in res.errors]
    assert res.plot_convergence(ax) is ax
    assert ax.get_yscale() == "log"
    assert len(ax.lines[0].get_xdata()) == res.iterations
    plt.close(fig)
