"""
Readers for interferometer uv-coordinate files.

Two formats are supported:
- single epoch: one "index x y" triple per line (whitespace or comma
  separated, '#' comment lines)
- multi epoch: two parallel files holding u and v, one value per line,
  time-major (all baselines of epoch 0, then epoch 1, ...)
"""

import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np

from .errors import CoordinateFileError, CoordinateFormatError


logger = logging.getLogger(__name__)

_DELIMITERS = re.compile(r"[\s,]+")


@dataclass
class UVCoordinates:
    """Coordinates read from a single-epoch file, in file order."""
    x: np.ndarray
    y: np.ndarray
    lenu: float  # max |x|
    lenv: float  # max |y|

    @property
    def count(self) -> int:
        return int(self.x.size)


@dataclass
class BaselineCoordinates:
    """
    Thresholded multi-epoch baselines.

    x and y are laid out baseline-major: baseline i at epoch nt is stored at
    i * ntimes + nt.
    """
    x: np.ndarray
    y: np.ndarray
    nbaselines: int       # retained baselines per epoch
    ntimes: int
    max_baseline: float   # longest retained baseline at epoch 0
    grid_extent: Optional[float]  # ceil(max |u|, |v|), None when not computed
    baseline_index: np.ndarray    # input indices of the retained baselines


def _open(path: Path):
    try:
        return open(path, "r")
    except OSError as e:
        logger.error(f"Unable to open the file {path}")
        raise CoordinateFileError(path, e.strerror or str(e)) from e


def _tokens(line: str) -> List[str]:
    return [t for t in _DELIMITERS.split(line.strip()) if t]


def _to_float(token: str, path: Path, line_number: int) -> float:
    try:
        return float(token)
    except ValueError:
        raise CoordinateFormatError(path, f"not a number: {token!r}", line_number) from None


def read_coords_oskar(path, ncoords: Optional[int] = None) -> UVCoordinates:
    """
    Read "index x y" coordinates, keeping file order.

    Args:
        path: Coordinate file
        ncoords: Maximum number of coordinates to read (None = all)

    Returns:
        UVCoordinates with lenu/lenv set to the largest absolute x/y

    Raises:
        CoordinateFileError: if the file cannot be opened
        CoordinateFormatError: if a coordinate field is not numeric
    """
    path = Path(path)
    if ncoords is not None and ncoords < 0:
        raise ValueError(f"ncoords must be non-negative, got: {ncoords}")

    xs: List[float] = []
    ys: List[float] = []

    with _open(path) as f:
        for line_number, line in enumerate(f, start=1):
            if ncoords is not None and len(xs) >= ncoords:
                break

            tokens = _tokens(line)
            if not tokens or tokens[0].startswith('#'):
                continue
            if len(tokens) < 3:
                logger.debug(f"{path}:{line_number}: skipping incomplete row")
                continue

            # tokens[0] is the coordinate index, not needed for file-ordered arrays
            xs.append(_to_float(tokens[1], path, line_number))
            ys.append(_to_float(tokens[2], path, line_number))

    x = np.asarray(xs, dtype=np.float64)
    y = np.asarray(ys, dtype=np.float64)
    lenu = float(np.max(np.abs(x))) if x.size else 0.0
    lenv = float(np.max(np.abs(y))) if y.size else 0.0

    logger.info(f"Read {x.size} coordinates from {path} (lenu={lenu}, lenv={lenv})")

    return UVCoordinates(x=x, y=y, lenu=lenu, lenv=lenv)


def _read_column(path: Path, count: int) -> np.ndarray:
    """Read the first field of the first count data lines."""
    with _open(path) as f:
        try:
            # One row past count tells whether the file carries trailing data
            values = np.loadtxt(f, comments='#', usecols=0, max_rows=count + 1,
                                ndmin=1, dtype=np.float64)
        except ValueError as e:
            raise CoordinateFormatError(path, str(e)) from e

    if values.size < count:
        raise CoordinateFormatError(path, f"expected {count} values, found {values.size}")
    if values.size > count:
        logger.warning(f"{path}: ignoring values beyond the first {count}")

    return values[:count]


def read_coord_ska(u_path, v_path, ntimes: int, nbaselines: int,
                   threshold: float,
                   compute_grid_extent: bool = True) -> BaselineCoordinates:
    """
    Read u and v files and keep only baselines longer than threshold.

    The baselines to keep are chosen from their epoch-0 length and the same
    selection is applied to every epoch.

    Args:
        u_path, v_path: Parallel files with one value per line, time-major
        ntimes: Number of epochs
        nbaselines: Number of baselines per epoch in the files
        threshold: Minimum baseline length (exclusive)
        compute_grid_extent: Also compute ceil(max |coordinate|) for gridding

    Returns:
        BaselineCoordinates in baseline-major / time-minor order

    Raises:
        CoordinateFileError: if either file cannot be opened
        CoordinateFormatError: if a file holds fewer than ntimes*nbaselines values
    """
    u_path = Path(u_path)
    v_path = Path(v_path)
    if ntimes < 1:
        raise ValueError(f"ntimes must be at least 1, got: {ntimes}")
    if nbaselines < 1:
        raise ValueError(f"nbaselines must be at least 1, got: {nbaselines}")

    num_coords = ntimes * nbaselines
    uu = _read_column(u_path, num_coords).reshape(ntimes, nbaselines)
    vv = _read_column(v_path, num_coords).reshape(ntimes, nbaselines)

    modulus = np.hypot(uu[0], vv[0])
    index = np.flatnonzero(modulus > threshold)
    max_baseline = float(modulus[index].max()) if index.size else 0.0

    # (ntimes, kept) -> (kept, ntimes), flattened so each baseline's epochs are contiguous
    x = np.ascontiguousarray(uu[:, index].T).ravel()
    y = np.ascontiguousarray(vv[:, index].T).ravel()

    grid_extent = None
    if compute_grid_extent:
        largest = max(float(np.max(np.abs(x))), float(np.max(np.abs(y)))) if x.size else 0.0
        grid_extent = float(math.ceil(largest))

    logger.info(
        f"Kept {index.size} of {nbaselines} baselines above {threshold} "
        f"over {ntimes} epochs (max baseline {max_baseline:.3f})"
    )

    return BaselineCoordinates(
        x=x,
        y=y,
        nbaselines=int(index.size),
        ntimes=ntimes,
        max_baseline=max_baseline,
        grid_extent=grid_extent,
        baseline_index=index,
    )
