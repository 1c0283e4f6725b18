"""Test objective functions."""

import numpy as np
import pytest

from pyoptimum.objectives import (
    KLDivergence,
    LinearObjective,
    QuadraticObjective,
    SquaredL2,
)
from pyoptimum.problem import HessianMode


def finite_difference_gradient(f, x, h=1e-6):
    grad = np.zeros_like(x)
    for ii in range(len(x)):
        e = np.zeros_like(x)
        e[ii] = h
        grad[ii] = (f.evaluate(x + e) - f.evaluate(x - e)) / (2 * h)
    return grad


def finite_difference_hessian(f, x, h=1e-6):
    H = np.zeros((len(x), len(x)))
    for ii in range(len(x)):
        e = np.zeros_like(x)
        e[ii] = h
        H[:, ii] = (f.gradient(x + e) - f.gradient(x - e)) / (2 * h)
    return H


def dense(hessian):
    if hessian.mode == HessianMode.DENSE:
        return hessian.dense
    return np.diag(hessian.diagonal)


@pytest.mark.parametrize("seed,M", [(101, 5), (201, 20), (301, 1)])
def test_squared_l2(seed: int, M: int) -> None:
    np.random.seed(seed)
    v = np.random.rand(M) + 1.0
    x = np.random.rand(M) + 1.0

    for f in [SquaredL2(v), SquaredL2()]:
        res = f(x)
        assert res.hessian.mode == HessianMode.DIAGONAL
        np.testing.assert_allclose(
            res.grad, finite_difference_gradient(f, x), rtol=1e-6, atol=1e-6
        )
        np.testing.assert_allclose(
            dense(res.hessian), finite_difference_hessian(f, x), rtol=1e-6, atol=1e-6
        )

    assert SquaredL2(v)(v).val == 0.0
    assert SquaredL2()(np.ones(M)).val == 0.0


@pytest.mark.parametrize("seed,M", [(102, 5), (202, 20), (302, 1)])
def test_kl_divergence(seed: int, M: int) -> None:
    np.random.seed(seed)
    v = np.random.rand(M) + 1.0
    x = np.random.rand(M) + 1.0

    for f in [KLDivergence(v), KLDivergence()]:
        res = f(x)
        assert res.is_finite()
        np.testing.assert_allclose(
            res.grad, finite_difference_gradient(f, x), rtol=1e-6, atol=1e-6
        )
        np.testing.assert_allclose(
            dense(res.hessian), finite_difference_hessian(f, x), rtol=1e-6, atol=1e-6
        )

    assert KLDivergence(v)(v).val == pytest.approx(0.0)


def test_kl_divergence_not_finite() -> None:
    """The divergence is undefined for non-positive x."""
    res = KLDivergence()(np.array([1.0, -1.0]))
    assert not res.is_finite()


@pytest.mark.parametrize("seed,M", [(103, 5), (203, 20)])
def test_quadratic(seed: int, M: int) -> None:
    np.random.seed(seed)
    X = np.random.randn(M, M)
    H = X @ X.T
    g = np.random.randn(M)
    x = np.random.randn(M)

    f = QuadraticObjective(H, g)
    res = f(x)
    assert res.hessian.mode == HessianMode.DENSE
    assert res.val == pytest.approx(0.5 * x @ H @ x + g @ x)
    np.testing.assert_allclose(
        res.grad, finite_difference_gradient(f, x), rtol=1e-5, atol=1e-5
    )
    np.testing.assert_allclose(res.hessian.dense, H)

    np.testing.assert_allclose(QuadraticObjective(H)(x).grad, H @ x)


def test_linear() -> None:
    c = np.array([1.0, -2.0, 3.0])
    x = np.array([1.0, 1.0, 1.0])
    res = LinearObjective(c)(x)
    assert res.val == 2.0
    np.testing.assert_array_equal(res.grad, c)
    np.testing.assert_array_equal(res.hessian.diagonal, np.zeros(3))
