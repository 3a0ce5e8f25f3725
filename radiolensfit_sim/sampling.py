"""
Random variates from tabulated cumulative distributions.

A cumulative table F[0..N] is built on N+1 equally spaced abscissas, then
uniform draws are mapped back through the table by linear interpolation.
The table is rebuilt on every call.
"""

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Tuple

import numpy as np

from .distributions import E_MAX, e_pdf
from .errors import DegenerateDistributionError
from .integrate import DEFAULT_MAX_STEPS, DEFAULT_TOLERANCE, cdf


logger = logging.getLogger(__name__)

DEFAULT_TABLE_SIZE = 1000


def _fill_table(value_at: Callable[[int], float], table_size: int,
                parallel: bool = False,
                max_workers: Optional[int] = None) -> np.ndarray:
    """
    Fill F[1..N] with value_at(i); F[0] is 0.

    With parallel=True the indices are split into contiguous blocks, one per
    worker thread, so each thread writes a disjoint slice.
    """
    table = np.zeros(table_size + 1, dtype=np.float64)
    indices = np.arange(1, table_size + 1)

    def fill(block: np.ndarray) -> None:
        for i in block:
            table[i] = value_at(int(i))

    if parallel and table_size > 1:
        n_workers = max_workers or os.cpu_count() or 1
        blocks = [b for b in np.array_split(indices, n_workers) if b.size]
        with ThreadPoolExecutor(max_workers=len(blocks)) as executor:
            # Consume the iterator so worker exceptions propagate
            list(executor.map(fill, blocks))
    else:
        fill(indices)

    return table


def _check_table(table: np.ndarray, cf_range: float) -> None:
    if not math.isfinite(cf_range) or cf_range <= 0.0:
        raise DegenerateDistributionError(
            f"Cumulative distribution has no mass over the range (CFrange={cf_range})"
        )
    steps = np.diff(table)
    if np.any(steps < 0):
        bad = int(np.argmax(steps < 0)) + 1
        raise ValueError(f"Cumulative table decreases at index {bad}")


def build_cdf_table(cdf_func: Callable[[float, float], float], param: float,
                    min_value: float, max_value: float,
                    table_size: int = DEFAULT_TABLE_SIZE,
                    parallel: bool = False,
                    max_workers: Optional[int] = None) -> Tuple[np.ndarray, float]:
    """
    Tabulate a known cumulative function over [min_value, max_value].

    Returns:
        (F, CFrange) with F[i] = cdf_func(param, x_i) - cdf_func(param, min_value)
    """
    if table_size < 1:
        raise ValueError(f"table_size must be at least 1, got: {table_size}")
    if not max_value > min_value:
        raise ValueError(f"Empty range: [{min_value}, {max_value}]")

    # linspace keeps the last abscissa exactly at max_value so F[N] == CFrange
    abscissas = np.linspace(min_value, max_value, table_size + 1)
    cf_min = float(cdf_func(param, min_value))
    cf_range = float(cdf_func(param, max_value)) - cf_min

    table = _fill_table(
        lambda i: float(cdf_func(param, float(abscissas[i]))) - cf_min,
        table_size, parallel, max_workers,
    )
    return table, cf_range


def build_integrated_table(pdf: Callable[[float], float], upper: float,
                           table_size: int = DEFAULT_TABLE_SIZE,
                           parallel: bool = False,
                           max_workers: Optional[int] = None,
                           tolerance: float = DEFAULT_TOLERANCE,
                           max_steps: int = DEFAULT_MAX_STEPS) -> np.ndarray:
    """Tabulate the integral of a density over [0, upper] by numerical quadrature."""
    if table_size < 1:
        raise ValueError(f"table_size must be at least 1, got: {table_size}")
    if not upper > 0.0:
        raise ValueError(f"upper must be positive, got: {upper}")

    step = upper / table_size
    table = _fill_table(
        lambda i: cdf(pdf, i * step, tolerance=tolerance, max_steps=max_steps),
        table_size, parallel, max_workers,
    )
    # Each entry is a separate quadrature converged only to a relative
    # tolerance, so flat stretches of the density jitter by rounding noise
    return np.maximum.accumulate(table)


def invert_table(table: np.ndarray, u: np.ndarray,
                 lower: float, step: float) -> np.ndarray:
    """
    Map cumulative values back to abscissas.

    For each u, k is the smallest index with F[k] >= u and the result is
    interpolated linearly between abscissas k-1 and k. A u that sits on a
    flat stretch of the table (F[k] == F[k-1] == u) maps to the last
    abscissa of that stretch, where the density becomes nonzero.

    Raises:
        DegenerateDistributionError: if the table has no mass at all
    """
    table = np.asarray(table, dtype=np.float64)
    u = np.asarray(u, dtype=np.float64)
    n = table.size - 1

    if not table[n] > table[0]:
        raise DegenerateDistributionError(
            f"Cumulative table is flat (F[0]={table[0]}, F[N]={table[n]})", index=n
        )

    # Binary search over the monotone table; same result as a linear scan
    k = np.searchsorted(table, u, side="left")
    k = np.clip(k, 1, n)

    low = table[k - 1]
    width = table[k] - low
    flat = width <= 0.0
    values = lower + step * (k - 1) + step * (u - low) / np.where(flat, 1.0, width)

    if np.any(flat):
        plateau_end = np.clip(np.searchsorted(table, u, side="right") - 1, 0, n)
        values = np.where(flat, lower + step * plateau_end, values)

    return values


def generate_random_data(cdf_func: Callable[[float, float], float], param: float,
                         nr: int, min_value: float, max_value: float,
                         rng: Optional[np.random.Generator] = None,
                         table_size: int = DEFAULT_TABLE_SIZE,
                         parallel: bool = False,
                         max_workers: Optional[int] = None,
                         out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Draw nr values in [min_value, max_value] distributed according to cdf_func.

    Args:
        cdf_func: Cumulative distribution function cdf_func(param, x)
        param: Parameter passed through to cdf_func
        nr: Number of values to draw
        min_value, max_value: Sampling range
        rng: Uniform random source (default: a fresh numpy Generator)
        table_size: Number of table intervals N
        parallel: Build the table with a thread pool
        max_workers: Thread pool size (default: CPU count)
        out: Optional buffer of length nr filled in place

    Returns:
        Array of nr samples, in generation order
    """
    if nr < 0:
        raise ValueError(f"nr must be non-negative, got: {nr}")
    if out is not None and out.shape != (nr,):
        raise ValueError(f"out must have shape ({nr},), got: {out.shape}")

    rng = np.random.default_rng() if rng is None else rng

    table, cf_range = build_cdf_table(
        cdf_func, param, min_value, max_value, table_size, parallel, max_workers
    )
    _check_table(table, cf_range)

    step = (max_value - min_value) / table_size
    u = rng.random(nr) * cf_range
    values = invert_table(table, u, min_value, step)

    logger.debug(f"Drew {nr} values in [{min_value}, {max_value}] from a {table_size}-interval table")

    if out is None:
        return values
    out[:] = values
    return out


def generate_ellipticity(ne: int, n_points: int,
                         rng: Optional[np.random.Generator] = None,
                         pdf: Callable[[float], float] = e_pdf,
                         e_max: float = E_MAX,
                         table_size: int = DEFAULT_TABLE_SIZE,
                         parallel: bool = False,
                         max_workers: Optional[int] = None,
                         tolerance: float = DEFAULT_TOLERANCE,
                         max_steps: int = DEFAULT_MAX_STEPS) -> Tuple[np.ndarray, np.ndarray]:
    """
    Generate ellipticity components on rings of antipodal pairs.

    Each of the ne galaxies gets a modulus |e| drawn from pdf over
    [0, e_max]. Around the circle of that radius, n_points angles spaced by
    pi/n_points start at a uniform random phase; every point is followed by
    its 180-degree rotation, which cancels first-order shape noise.

    Returns:
        (e1, e2), each of length 2 * ne * n_points
    """
    if ne < 0:
        raise ValueError(f"ne must be non-negative, got: {ne}")
    if n_points < 1:
        raise ValueError(f"n_points must be at least 1, got: {n_points}")

    rng = np.random.default_rng() if rng is None else rng

    table = build_integrated_table(
        pdf, e_max, table_size, parallel, max_workers, tolerance, max_steps
    )
    cf_range = float(table[-1])
    _check_table(table, cf_range)

    step = e_max / table_size
    module = invert_table(table, rng.random(ne) * cf_range, 0.0, step)
    module = np.clip(module, 0.0, e_max)

    phi_0 = 2.0 * np.pi * rng.random(ne)
    phi = phi_0[:, np.newaxis] + (np.pi / n_points) * np.arange(n_points)

    n_total = 2 * ne * n_points
    e1 = np.empty(n_total, dtype=np.float64)
    e2 = np.empty(n_total, dtype=np.float64)
    e1[0::2] = (module[:, np.newaxis] * np.cos(phi)).ravel()
    e2[0::2] = (module[:, np.newaxis] * np.sin(phi)).ravel()
    e1[1::2] = -e1[0::2]
    e2[1::2] = -e2[0::2]

    logger.debug(f"Generated {n_total} ellipticities for {ne} galaxies ({n_points} points per ring)")

    return e1, e2
