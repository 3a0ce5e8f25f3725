"""
Configuration handling for galaxy population simulation.

Parses YAML config files and validates parameters.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import yaml


_INT_FIELDS = (
    'n_rings', 'points_per_ring', 'table_size', 'integration_max_steps',
    'max_workers', 'ncoords', 'ntimes', 'nbaselines',
)


def _as_int(key: str, value) -> int:
    """Coerce a count field, rejecting booleans and fractional values."""
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"{key} must be an integer, got: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got: {value!r}") from None


@dataclass
class SimulationConfig:
    """Configuration for a simulated galaxy population."""

    # Required
    n_rings: int  # galaxies drawn from the ellipticity prior

    # Ellipticity
    points_per_ring: int = 1  # each point also gets its antipodal partner
    e_max: float = 0.804

    # Scalelength (arcsec)
    scalelength_min: float = 0.3
    scalelength_max: float = 3.5
    scalelength_scale: float = 1.0

    # Cumulative tables
    table_size: int = 1000
    integration_tolerance: float = 1.0e-5
    integration_max_steps: int = 30
    parallel_tables: bool = False
    max_workers: Optional[int] = None

    # Single-epoch coordinates ("index x y" per line)
    coords_file: Optional[Path] = None
    ncoords: Optional[int] = None

    # Multi-epoch baselines (one value per line, time-major)
    u_file: Optional[Path] = None
    v_file: Optional[Path] = None
    ntimes: Optional[int] = None
    nbaselines: Optional[int] = None
    baseline_threshold: float = 0.0
    compute_grid_extent: bool = True

    # Output
    output: Path = Path("population.npz")
    seed: Optional[int] = None    # Random seed for reproducibility

    @property
    def n_sources(self) -> int:
        """Number of sources: two antipodal points per ring position."""
        return 2 * self.n_rings * self.points_per_ring

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "SimulationConfig":
        """Load configuration from YAML file."""
        yaml_path = Path(yaml_path)

        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            config_dict = yaml.safe_load(f)

        if not isinstance(config_dict, dict):
            raise ValueError(f"Config file does not contain a mapping: {yaml_path}")

        return cls.from_dict(config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "SimulationConfig":
        """Create config from dictionary."""
        config_dict = dict(config_dict)

        if config_dict.get('n_rings') is None:
            raise ValueError("Missing required config fields: ['n_rings']")

        for key in _INT_FIELDS:
            if config_dict.get(key) is not None:
                config_dict[key] = _as_int(key, config_dict[key])

        for key in ('n_rings', 'points_per_ring', 'table_size', 'integration_max_steps'):
            if config_dict.get(key) is not None and config_dict[key] < 1:
                raise ValueError(f"{key} must be at least 1, got: {config_dict[key]}")

        smin = float(config_dict.get('scalelength_min', cls.scalelength_min))
        smax = float(config_dict.get('scalelength_max', cls.scalelength_max))
        if smin < 0 or smax <= smin:
            raise ValueError(
                f"Invalid scalelength range: [{smin}, {smax}]"
            )

        if float(config_dict.get('scalelength_scale', cls.scalelength_scale)) <= 0:
            raise ValueError("scalelength_scale must be positive")

        e_max = float(config_dict.get('e_max', cls.e_max))
        if e_max <= 0 or e_max >= 1:
            raise ValueError(f"e_max must be between 0 and 1, got: {e_max}")

        # u and v files go together and need the grid shape
        has_u = config_dict.get('u_file') is not None
        has_v = config_dict.get('v_file') is not None
        if has_u != has_v:
            raise ValueError("u_file and v_file must be given together")
        if has_u:
            missing = [k for k in ('ntimes', 'nbaselines') if config_dict.get(k) is None]
            if missing:
                raise ValueError(f"Missing config fields for baseline files: {missing}")

        # Convert paths
        for key in ('coords_file', 'u_file', 'v_file', 'output'):
            if config_dict.get(key) is not None:
                config_dict[key] = Path(config_dict[key])

        # Filter to only valid fields
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_dict = {k: v for k, v in config_dict.items() if k in valid_fields}

        return cls(**filtered_dict)

    def validate_inputs(self) -> None:
        """Validate that the configured coordinate files exist."""
        for path in (self.coords_file, self.u_file, self.v_file):
            if path is not None and not path.is_file():
                raise FileNotFoundError(f"Coordinate file not found: {path}")


def generate_example_config(output_path: str | Path = "config.yaml") -> None:
    """Generate an example configuration file."""

    example = """\
# radiolensfit_sim Configuration File
# ===================================

# Required: number of galaxies drawn from the ellipticity prior
n_rings: 500

# Points per ring; each point is paired with its antipodal partner,
# so the population has 2 * n_rings * points_per_ring sources
points_per_ring: 2

# Optional: Distribution ranges
# e_max: 0.804             # Maximum ellipticity modulus
# scalelength_min: 0.3     # arcsec
# scalelength_max: 3.5     # arcsec
# scalelength_scale: 1.0   # scale parameter a of p(r) ~ r exp(-(r/a)^(4/3))

# Optional: Cumulative table construction
# table_size: 1000             # Number of table intervals
# integration_tolerance: 1e-5  # Relative convergence of the trapezoidal rule
# integration_max_steps: 30
# parallel_tables: false       # Fill tables with a thread pool
# max_workers: 8

# Optional: Single-epoch coordinates ("index x y" per line)
# coords_file: /path/to/uv_coords.txt
# ncoords: 100000

# Optional: Multi-epoch baselines (one value per line, time-major)
# u_file: /path/to/uu.txt
# v_file: /path/to/vv.txt
# ntimes: 60
# nbaselines: 130816
# baseline_threshold: 0.0      # Keep baselines longer than this at epoch 0
# compute_grid_extent: true

# Output
# output: population.npz
# seed: 42                     # Random seed for reproducibility
"""

    output_path = Path(output_path)
    with open(output_path, 'w') as f:
        f.write(example)

    print(f"Example config written to: {output_path}")
