"""Objective functions."""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
import numpy.typing as npt

from .problem import Hessian, ObjectiveResult


class Objective(ABC):
    """Abstract base class for objective functions.

    An objective is a callable mapping x to an ObjectiveResult, the value, gradient and
    Hessian of the function at x, and can be used directly as
    `OptimumProblem.objective`. Subclasses implement `evaluate`, `gradient` and
    `hessian`.

    """

    def __call__(self, x: npt.NDArray[np.float64]) -> ObjectiveResult:
        return ObjectiveResult(
            val=self.evaluate(x), grad=self.gradient(x), hessian=self.hessian(x)
        )

    @abstractmethod
    def evaluate(self, x: npt.NDArray[np.float64]) -> float:
        """Evaluate objective."""

    @abstractmethod
    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """Calculate gradient."""

    @abstractmethod
    def hessian(self, x: npt.NDArray[np.float64]) -> Hessian:
        """Calculate Hessian."""


class LinearObjective(Objective):
    """Objective f(x) = c^T * x.

    The Hessian is zero, so the Newton solver needs a positive `regularization` to
    make the KKT system nonsingular. The simplex solver uses c directly.

    """

    def __init__(self, c: npt.NDArray[np.float64]) -> None:
        self.c = np.asarray(c, dtype=float)

    def evaluate(self, x: npt.NDArray[np.float64]) -> float:
        return float(np.dot(self.c, x))

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        return self.c.copy()

    def hessian(self, x: npt.NDArray[np.float64]) -> Hessian:
        return Hessian.from_diagonal(np.zeros_like(self.c))


class QuadraticObjective(Objective):
    """Objective f(x) = 0.5 * x^T * H * x + g^T * x.

    Parameters
    ----------
     H : npt.NDArray[np.float64]
        Symmetric n-by-n matrix.
     g : npt.NDArray[np.float64], optional
        Linear term. Defaults to zero.

    """

    def __init__(
        self, H: npt.NDArray[np.float64], g: Optional[npt.NDArray[np.float64]] = None
    ) -> None:
        self.H = np.asarray(H, dtype=float)
        self.g = np.zeros(self.H.shape[0]) if g is None else np.asarray(g, dtype=float)

    def evaluate(self, x: npt.NDArray[np.float64]) -> float:
        return float(0.5 * np.dot(x, self.H @ x) + np.dot(self.g, x))

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        return self.H @ x + self.g

    def hessian(self, x: npt.NDArray[np.float64]) -> Hessian:
        return Hessian.from_dense(self.H)


class SquaredL2(Objective):
    r"""Objective f(x) = \| x - v \|_2^2.

    In this case, the gradient is 2 * (x - v), and the Hessian is 2 * I.

    Parameters
    ----------
     v : npt.NDArray[np.float64], optional
        The target. If not specified, we will assume that v is a vector of all ones.

    """

    def __init__(self, v: Optional[npt.NDArray[np.float64]] = None) -> None:
        self.v = v

    def evaluate(self, x: npt.NDArray[np.float64]) -> float:
        d = x - (1.0 if self.v is None else self.v)
        return float(np.dot(d, d))

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        return 2.0 * (x - (1.0 if self.v is None else self.v))

    def hessian(self, x: npt.NDArray[np.float64]) -> Hessian:
        return Hessian.from_diagonal(np.full_like(x, 2.0, dtype=float))


class KLDivergence(Objective):
    r"""Objective f(x) = KL Divergence between x and v.

    In this case, f(x) = \sum_{i=1}^n x_i * log(x_i / v_i) - x_i + v_i, so the
    gradient is log(x / v) and the Hessian is diag(1 / x). Up to constants this is the
    Gibbs energy of an ideal mixture, and is only defined for x > 0: the objective is
    non-finite elsewhere, which solvers report as a failure.

    Parameters
    ----------
     v : npt.NDArray[np.float64], optional
        The reference point. If not specified, we will assume that v is a vector of
        all ones.

    """

    def __init__(self, v: Optional[npt.NDArray[np.float64]] = None) -> None:
        self.v = v

    def evaluate(self, x: npt.NDArray[np.float64]) -> float:
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.v is None:
                return float(np.sum(x * np.log(x) - x + 1.0))
            else:
                return float(np.sum(x * (np.log(x) - np.log(self.v)) - x + self.v))

    def gradient(self, x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.v is None:
                return np.log(x)
            else:
                return np.log(x) - np.log(self.v)

    def hessian(self, x: npt.NDArray[np.float64]) -> Hessian:
        with np.errstate(divide="ignore"):
            return Hessian.from_diagonal(1.0 / x)
