"""Numerical linear algebra routines."""

from collections.abc import Callable
from typing import Any, Optional, Tuple

import numpy as np
import numpy.typing as npt
from scipy import linalg

from .exceptions import NewtonStepError


def solve_diagonal(
    b: npt.NDArray[np.float64],
    eta: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Solve H * x = b.

    Solves a linear system of equations where H is diagonal,
       H = diag(eta).
    Because of this structure, we can solve the system in linear time.

    Parameters
    ----------
     b : npt.NDArray[np.float64]
        Right hand side. Can be either a vector or a matrix, in which case we solve the
        system for each column of b.
     eta : npt.NDArray[np.float64]
        Diagonal elements of H.

    Returns
    -------
     x : npt.NDArray[np.float64]
        The solution.

    """
    if not np.all(eta > 0):
        raise NewtonStepError("Hessian is not strictly positive definite.")

    if b.ndim == 1:
        if b.shape != eta.shape:
            raise ValueError("b and eta must have the same length.")
        return b / eta
    elif b.ndim == 2:
        if b.shape[0] != eta.shape[0]:
            raise ValueError("Number of rows in b must match length of eta.")
        return b / eta[:, np.newaxis]
    else:
        raise ValueError("b must be either a 1D or 2D NumPy array.")


def solve_least_squares(
    M: npt.NDArray[np.float64],
    b: npt.NDArray[np.float64],
    rank_tolerance: float = 1e-10,
) -> npt.NDArray[np.float64]:
    r"""Find the minimum-norm x minimizing \| M * x - b \|_2.

    Parameters
    ----------
     M : npt.NDArray[np.float64]
        Coefficient matrix. Need not be square nor full rank.
     b : npt.NDArray[np.float64]
        Right hand side.
     rank_tolerance : float, optional
        Singular values below this threshold are treated as zero.

    Returns
    -------
     x : npt.NDArray[np.float64]
        The solution.

    Notes
    -----
    If M = U * s * Vh, then M * x = b becomes s * Vh * x = U^T * b, so that
    x = Vh^T * (U^T * b) / s, restricting the division to the numerical rank of M.

    """
    if M.shape[0] != b.shape[0]:
        raise ValueError("Dimension mismatch: b should have one entry per row of M.")

    if M.size == 0:
        return np.zeros(M.shape[1])

    U, s, Vh = linalg.svd(M, full_matrices=False)
    rank = int(np.sum(s > rank_tolerance))
    s_inv = np.zeros_like(s)
    s_inv[0:rank] = 1.0 / s[0:rank]
    return Vh.T @ (s_inv * (U.T @ b))


def solve_kkt_system(
    A: npt.NDArray[np.float64],
    g: npt.NDArray[np.float64],
    hessian_solve: Callable[..., npt.NDArray[np.float64]],
    r: Optional[npt.NDArray[np.float64]] = None,
    **kwargs: Any,
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Solve a KKT system of equations.

    Parameters
    ----------
     A : p-by-M matrix.
        Parameter.
     g : vector of length M
        Right-hand-side, upper block.
     hessian_solve : Callable
        A function that solves H * x = y. The first argument to hessian_solve will be y.
        Additional arguments will be passed via **kwargs.
     r : vector of length p, optional
        Right-hand-side, lower block. Defaults to zero.
     kwargs
        Extra arguments to pass to hessian_solve.

    Returns
    -------
     delta_x : vector of length M
        Solution to system. See Notes.
     nu : vector of length p
        Solution to system. See Notes.

    Notes
    -----
    Solves:
           _       _   _       _     _   _
          | H   A^T | | delta_x |   |  g  |
          | A    0  | |   nu    | = |  r  |
           -       -   -       -     -   -
    where H is the Hessian.

    When we can solve systems H * x = y in O(M) time, we can exploit the Schur
    complement and the matrix inversion lemma to calculate delta_x in O(p^3 + p^2*M)
    time, were p is the number of rows in A.

    Per the discussion in Boyd and Vandenberghe (2004), Algorithm C.4 (page
    673):
      1. Form B = H^{-1} * A^T and b = H^{-1} * g. This corresponds to p+1 solves. We
         use `hessian_solve` to solve each system in O(M) time, for O((p+1) * M) time
         total.
      2. Form S = -A * B and c = r - A * b. Since A is p-by-M and B is M-by-p, forming
         S involves p^2 dot products of length M, which takes (p^2 * M) time. Forming c
         takes O(p * M) time.
      3. Solve S * nu = c via Cholesky decomposition. (S is negative definite, so we
         instead solve -S * nu = -c.) This takes O(p^3) time.
         a. If A is not full rank, S won't be, either. We can typically still solve the
            system using the Singular Value Decomposition (SVD) instead of the Cholesky
            decomposition.
      4. Solve H * delta_x = g - A^T * nu. This takes O(p*M) time to form the RHS, then
         O(M) time to compute delta_x.
    In total, that's O(M * p^2 + p^3), the time being dominated by forming S.

    """
    p, M = A.shape
    if len(g) != M:
        raise ValueError(
            "Dimension mismatch: g should have one entry for each column of A."
        )

    if r is None:
        r = np.zeros(p)
    elif len(r) != p:
        raise ValueError(
            "Dimension mismatch: r should have one entry for each row of A."
        )

    if p == 0:
        return hessian_solve(g, **kwargs), np.zeros(0)

    # Step 1: form B = H^{-1} * A^T and b = H^{-1} * g
    B = hessian_solve(A.T, **kwargs)
    b = hessian_solve(g, **kwargs)

    # Step 2: form -S = A * B and -c = A * b - r
    neg_S = A @ B
    neg_c = A @ b - r

    # Step 3: Solve -S * nu = -c
    try:
        c, lower = linalg.cho_factor(neg_S, lower=True)
        nu = linalg.cho_solve((c, lower), neg_c)
    except np.linalg.LinAlgError:
        # A is not full rank (or the free set is too small to span its rows).
        U, s, Vh = linalg.svd(neg_S, full_matrices=False)
        rank = int(np.sum(s > 1e-10))
        U_r = U[:, 0:rank]
        if not np.allclose(U_r @ (U_r.T @ neg_c), neg_c):
            raise NewtonStepError(
                "KKT system did not have a solution, because A is not full rank."
            ) from None

        s_inv = np.zeros_like(s)
        s_inv[0:rank] = 1.0 / s[0:rank]
        nu = Vh.T @ (s_inv * (U.T @ neg_c))

    # Step 4: Solve H * delta_x = g - A^T * nu
    delta_x = hessian_solve(g - (A.T @ nu), **kwargs)

    return delta_x, nu


def multi_kahan_sum(
    A: npt.NDArray[np.float64], x: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """Calculate A * x with compensated summation.

    Each row of A * x is accumulated column by column using Kahan's algorithm, which
    carries the rounding error of each partial sum into the next addition. This keeps
    the residual A * x - b accurate when the terms of a row nearly cancel, e.g. when A
    mixes very large and very small coefficients.

    Parameters
    ----------
     A : m-by-n matrix
        Coefficient matrix.
     x : vector of length n
        Vector to multiply.

    Returns
    -------
     res : vector of length m
        The product.

    """
    m, n = A.shape
    if x.shape[0] != n:
        raise ValueError("Dimension mismatch: x should have one entry per column of A.")

    res = np.zeros(m)
    comp = np.zeros(m)
    for j in range(n):
        y = A[:, j] * x[j] - comp
        t = res + y
        comp = (t - res) - y
        res = t

    return res


def fraction_to_the_boundary(
    p: npt.NDArray[np.float64],
    dp: npt.NDArray[np.float64],
    tau: float = 1.0,
) -> Tuple[float, Optional[int]]:
    """Calculate the largest step keeping p + alpha * dp >= (1 - tau) * p.

    Parameters
    ----------
     p : vector
        Distance of each variable to its bound. Should be non-negative.
     dp : vector
        Step direction.
     tau : float, optional
        Fraction of the distance to the boundary we are willing to travel. With
        tau = 1, the step may take a variable exactly to its bound.

    Returns
    -------
     alpha : float
        Step length in [0, 1].
     ilimiting : int or None
        The first index attaining alpha, i.e. the variable that reaches its bound at
        this step length, or None if no variable blocks the full step.

    """
    if p.shape != dp.shape:
        raise ValueError("Dimension mismatch: p and dp must have the same shape.")

    decreasing = np.flatnonzero(dp < 0.0)
    if decreasing.size == 0:
        return 1.0, None

    trial = -tau * p[decreasing] / dp[decreasing]
    ii = int(np.argmin(trial))
    if trial[ii] >= 1.0:
        return 1.0, None

    return max(0.0, float(trial[ii])), int(decreasing[ii])
