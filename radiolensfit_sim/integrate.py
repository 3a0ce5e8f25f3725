"""
Adaptive numerical integration of probability densities.

Implements the extended trapezoidal rule with successive doubling of the
number of interior points. Each refinement level only evaluates the newly
introduced midpoints and reuses the previous estimate.
"""

import logging
from typing import Callable

import numpy as np

from .errors import ConvergenceError


logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1.0e-5
DEFAULT_MAX_STEPS = 30
DEFAULT_MIN_STEPS = 5


def cdf(pdf: Callable[[float], float], b: float,
        tolerance: float = DEFAULT_TOLERANCE,
        max_steps: int = DEFAULT_MAX_STEPS,
        min_steps: int = DEFAULT_MIN_STEPS) -> float:
    """
    Cumulative distribution function: integral of pdf from 0 to b.

    The density is assumed to vanish at 0, so the first trapezoid only
    needs pdf(b).

    Args:
        pdf: Single-argument density function
        b: Upper integration bound
        tolerance: Relative change between two levels accepted as converged
        max_steps: Maximum number of refinement levels
        min_steps: Levels performed before convergence is tested

    Returns:
        The integral estimate

    Raises:
        ConvergenceError: if max_steps levels are exhausted
    """
    if max_steps < 2:
        raise ValueError(f"max_steps must be at least 2, got: {max_steps}")

    s = 0.5 * b * float(pdf(b))
    previous = 0.0

    for step in range(2, max_steps + 1):
        n_new = 1 << (step - 2)
        spacing = b / n_new
        midpoints = 0.5 * spacing + spacing * np.arange(n_new)

        total = 0.0
        for x in midpoints:
            total += float(pdf(float(x)))
        s = 0.5 * (s + spacing * total)

        # Skip the first levels to avoid spurious early convergence
        if step > min_steps:
            if abs(s - previous) < tolerance * abs(previous) or (s == 0.0 and previous == 0.0):
                return s
        previous_delta = abs(s - previous)
        previous = s

    logger.error(f"CDF: too many steps integrating up to b={b} (estimate={s}, delta={previous_delta})")
    raise ConvergenceError(estimate=s, delta=previous_delta, steps=max_steps)
