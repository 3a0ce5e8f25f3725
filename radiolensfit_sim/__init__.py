"""
radiolensfit_sim - Galaxy population and uv coverage for radio weak-lensing simulations

Draws galaxy scalelengths and ellipticities by inverse-CDF sampling and
reads interferometer baseline coordinate files for the simulation grid.
"""

__version__ = "0.1.0"
__author__ = "radiolensfit_sim contributors"

from .config import SimulationConfig
from .coordinates import BaselineCoordinates, UVCoordinates, read_coord_ska, read_coords_oskar
from .errors import (
    ConvergenceError,
    CoordinateFileError,
    CoordinateFormatError,
    DegenerateDistributionError,
)
from .integrate import cdf
from .sampling import generate_ellipticity, generate_random_data
from .simulate import PopulationSimulator

__all__ = [
    "SimulationConfig",
    "PopulationSimulator",
    "cdf",
    "generate_random_data",
    "generate_ellipticity",
    "read_coords_oskar",
    "read_coord_ska",
    "UVCoordinates",
    "BaselineCoordinates",
    "ConvergenceError",
    "CoordinateFileError",
    "CoordinateFormatError",
    "DegenerateDistributionError",
]
