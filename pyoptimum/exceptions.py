"""Custom exceptions."""


class NewtonStepError(Exception):
    """Raised when we cannot calculate Newton step."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __str__(self) -> str:
        """Pretty-print error."""
        return self.message


class UnsupportedHessianModeError(ValueError):
    """Raised when the Hessian representation cannot be used to build a KKT system.

    This signals a configuration mistake by the caller (e.g. an objective returning an
    inverse Hessian to a solver that needs the Hessian itself), so it is raised rather
    than reported as an unsuccessful result.

    """

    def __init__(self, message: str, mode: object = None) -> None:
        self.message = message
        self.mode = mode

    def __str__(self) -> str:
        """Pretty-print error."""
        if self.mode is None:
            return self.message
        return f"{self.message} (mode = {self.mode})"


class DimensionMismatchError(ValueError):
    """Raised when A, b, and the bounds of a problem have inconsistent sizes."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __str__(self) -> str:
        """Pretty-print error."""
        return self.message
