"""Test KKT solver."""

import numpy as np
import pytest

from pyoptimum.exceptions import NewtonStepError, UnsupportedHessianModeError
from pyoptimum.kkt import KktMatrix, KktOptions, KktSolver, KktVector
from pyoptimum.problem import Hessian, HessianMode


def random_problem(seed: int, M: int, p: int):
    np.random.seed(seed)
    X = np.random.randn(M, M)
    H = X @ X.T + M * np.eye(M)
    A = np.random.randn(p, M)
    x = np.random.rand(M) + 0.5
    z = np.random.randn(M)
    rhs = KktVector(rx=np.random.randn(M), ry=np.random.randn(p), rz=np.random.randn(M))
    return H, A, x, z, rhs


def check_solution(H, A, x, z, rhs, sol) -> None:
    # Verify H * dx + A^T * dy = rx
    np.testing.assert_allclose(H @ sol.dx + A.T @ sol.dy, rhs.rx, rtol=1e-8, atol=1e-8)

    # Verify A * dx = ry
    np.testing.assert_allclose(A @ sol.dx, rhs.ry, rtol=1e-8, atol=1e-8)

    # Verify Z * dx + X * dz = rz
    np.testing.assert_allclose(z * sol.dx + x * sol.dz, rhs.rz, rtol=1e-8, atol=1e-8)


@pytest.mark.parametrize("method", ["lu", "svd"])
@pytest.mark.parametrize(
    "seed,M,p",
    [
        (101, 100, 20),
        (201, 50, 5),
        (301, 13, 3),
        (401, 10, 0),
    ],
)
def test_kkt_dense(seed: int, M: int, p: int, method: str) -> None:
    """Test dense KKT solve by checking the equations."""
    H, A, x, z, rhs = random_problem(seed, M, p)
    solver = KktSolver(KktOptions(method=method))
    solver.decompose(KktMatrix(H=Hessian.from_dense(H), A=A, x=x, z=z))
    sol = solver.solve(rhs)

    check_solution(H, A, x, z, rhs, sol)
    assert sol.is_finite()

    res = solver.result()
    assert res.succeeded
    assert res.time_decompose >= 0.0
    assert res.time_solve >= 0.0


@pytest.mark.parametrize(
    "seed,M,p",
    [
        (102, 100, 20),
        (202, 200, 30),
        (302, 13, 3),
        (402, 10, 0),
    ],
)
def test_kkt_diagonal(seed: int, M: int, p: int) -> None:
    """Test diagonal KKT solve against the dense one."""
    _, A, x, z, rhs = random_problem(seed, M, p)
    eta = np.random.rand(M) + 1.0

    solver = KktSolver()
    solver.decompose(KktMatrix(H=Hessian.from_diagonal(eta), A=A, x=x, z=z))
    sol = solver.solve(rhs)
    check_solution(np.diag(eta), A, x, z, rhs, sol)

    dense_solver = KktSolver()
    dense_solver.decompose(KktMatrix(H=Hessian.from_dense(np.diag(eta)), A=A, x=x, z=z))
    dense_sol = dense_solver.solve(rhs)
    np.testing.assert_allclose(sol.dx, dense_sol.dx, rtol=1e-8, atol=1e-8)
    np.testing.assert_allclose(sol.dy, dense_sol.dy, rtol=1e-8, atol=1e-8)


def test_kkt_factorization_reused() -> None:
    """One decomposition serves several right-hand sides."""
    H, A, x, z, rhs = random_problem(103, 20, 4)
    solver = KktSolver()
    solver.decompose(KktMatrix(H=Hessian.from_dense(H), A=A, x=x, z=z))
    check_solution(H, A, x, z, rhs, solver.solve(rhs))

    rhs2 = KktVector(rx=-rhs.rx, ry=2.0 * rhs.ry, rz=np.zeros(20))
    check_solution(H, A, x, z, rhs2, solver.solve(rhs2))


def test_kkt_svd_rank_deficient() -> None:
    """The pseudo-inverse tolerates a repeated constraint."""
    np.random.seed(104)
    M = 8
    X = np.random.randn(M, M)
    H = X @ X.T + np.eye(M)
    a = np.random.randn(M)
    A = np.vstack([a, a])
    x = np.ones(M)
    z = np.zeros(M)
    rhs = KktVector(rx=np.random.randn(M), ry=np.array([1.0, 1.0]), rz=np.zeros(M))

    solver = KktSolver(KktOptions(method="svd"))
    solver.decompose(KktMatrix(H=Hessian.from_dense(H), A=A, x=x, z=z))
    sol = solver.solve(rhs)
    check_solution(H, A, x, z, rhs, sol)


def test_kkt_dz_zero_where_x_zero() -> None:
    """Variables sitting at zero get no bound multiplier step."""
    eta = np.array([1.0, 2.0])
    A = np.array([[1.0, 1.0]])
    x = np.array([0.0, 1.0])
    z = np.array([1.0, 1.0])
    rhs = KktVector(rx=np.array([1.0, 0.0]), ry=np.array([0.0]), rz=np.zeros(2))

    solver = KktSolver()
    solver.decompose(KktMatrix(H=Hessian.from_diagonal(eta), A=A, x=x, z=z))
    sol = solver.solve(rhs)
    assert sol.dz[0] == 0.0
    assert sol.dz[1] == pytest.approx(-sol.dx[1])


def test_kkt_unsupported_mode() -> None:
    """Only dense and diagonal Hessians are accepted."""
    H = Hessian(mode=HessianMode.INVERSE, inverse=np.eye(2))
    solver = KktSolver()
    with pytest.raises(UnsupportedHessianModeError):
        solver.decompose(
            KktMatrix(H=H, A=np.ones((1, 2)), x=np.ones(2), z=np.zeros(2))
        )


def test_kkt_not_positive_definite() -> None:
    """A diagonal Hessian with a zero entry cannot be eliminated."""
    solver = KktSolver()
    with pytest.raises(NewtonStepError):
        solver.decompose(
            KktMatrix(
                H=Hessian.from_diagonal(np.array([1.0, 0.0])),
                A=np.ones((1, 2)),
                x=np.ones(2),
                z=np.zeros(2),
            )
        )


def test_kkt_singular_dense() -> None:
    """A zero KKT matrix has no LU decomposition."""
    solver = KktSolver()
    with pytest.raises(NewtonStepError):
        solver.decompose(
            KktMatrix(
                H=Hessian.from_dense(np.zeros((2, 2))),
                A=np.zeros((0, 2)),
                x=np.ones(2),
                z=np.zeros(2),
            )
        )


def test_kkt_solve_before_decompose() -> None:
    solver = KktSolver()
    with pytest.raises(ValueError):
        solver.solve(KktVector(rx=np.zeros(2), ry=np.zeros(0), rz=np.zeros(2)))
