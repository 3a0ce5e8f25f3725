"""
Exceptions raised by the samplers and coordinate readers.
"""

from typing import Optional


class CoordinateFileError(OSError):
    """A coordinate file could not be opened."""

    def __init__(self, filename, reason: str = ""):
        message = f"Unable to open the file {filename}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.filename = str(filename)
        self.reason = reason

    def __str__(self) -> str:
        return self.args[0]


class CoordinateFormatError(ValueError):
    """A coordinate file is malformed or shorter than expected."""

    def __init__(self, filename, message: str, line_number: Optional[int] = None):
        location = f"{filename}:{line_number}" if line_number is not None else str(filename)
        super().__init__(f"{location}: {message}")
        self.filename = str(filename)
        self.line_number = line_number


class ConvergenceError(ArithmeticError):
    """
    Numerical integration did not converge.

    Attributes:
        estimate: last trapezoidal estimate
        delta: absolute change between the last two refinement levels
        steps: number of refinement levels performed
    """

    def __init__(self, estimate: float, delta: float, steps: int):
        super().__init__(
            f"Integration did not converge after {steps} steps "
            f"(estimate={estimate!r}, delta={delta!r})"
        )
        self.estimate = estimate
        self.delta = delta
        self.steps = steps


class DegenerateDistributionError(ValueError):
    """The cumulative table cannot be inverted (zero mass or zero-width interval)."""

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index
