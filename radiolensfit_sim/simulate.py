"""
Galaxy population simulation driver.

Draws scalelengths and ellipticities for the configured population, reads
the configured uv coordinates and writes everything to a single .npz file.
"""

import numpy as np
from pathlib import Path
from typing import Optional, Dict, Any, Callable, List, Tuple
import logging

from tqdm import tqdm

from .config import SimulationConfig
from .coordinates import (
    BaselineCoordinates,
    UVCoordinates,
    read_coord_ska,
    read_coords_oskar,
)
from .distributions import e_pdf, scalelength_cdf
from .sampling import generate_ellipticity, generate_random_data


logger = logging.getLogger(__name__)


class PopulationSimulator:
    """
    Generate the source population and uv coverage for one simulation.

    Handles:
    - Scalelength sampling from a closed-form cumulative distribution
    - Ellipticity sampling on antipodal rings
    - Single-epoch and thresholded multi-epoch coordinate reading
    - Progress reporting
    """

    def __init__(self, config: SimulationConfig):
        """
        Initialize the simulator.

        Args:
            config: SimulationConfig object with all parameters
        """
        self.config = config
        self.config.validate_inputs()

        self.rng = np.random.default_rng(config.seed)

        # Populated by run()
        self.scalelength: Optional[np.ndarray] = None
        self.e1: Optional[np.ndarray] = None
        self.e2: Optional[np.ndarray] = None
        self.uv: Optional[UVCoordinates] = None
        self.baselines: Optional[BaselineCoordinates] = None

        self.stats: Dict[str, Any] = {
            'n_sources': 0,
            'scalelength_mean': 0.0,
            'ellipticity_rms': 0.0,
            'n_coords': 0,
            'lenu': 0.0,
            'lenv': 0.0,
            'nbaselines': 0,
            'max_baseline': 0.0,
            'grid_extent': None,
        }

    def _generate_scalelengths(self) -> None:
        cfg = self.config
        self.scalelength = generate_random_data(
            scalelength_cdf,
            cfg.scalelength_scale,
            cfg.n_sources,
            cfg.scalelength_min,
            cfg.scalelength_max,
            rng=self.rng,
            table_size=cfg.table_size,
            parallel=cfg.parallel_tables,
            max_workers=cfg.max_workers,
        )
        self.stats['n_sources'] = int(self.scalelength.size)
        self.stats['scalelength_mean'] = float(np.mean(self.scalelength)) if self.scalelength.size else 0.0
        logger.info(f"Scalelengths: {self.scalelength.size} sources, mean {self.stats['scalelength_mean']:.4f}")

    def _generate_ellipticities(self) -> None:
        cfg = self.config
        self.e1, self.e2 = generate_ellipticity(
            cfg.n_rings,
            cfg.points_per_ring,
            rng=self.rng,
            pdf=e_pdf,
            e_max=cfg.e_max,
            table_size=cfg.table_size,
            parallel=cfg.parallel_tables,
            max_workers=cfg.max_workers,
            tolerance=cfg.integration_tolerance,
            max_steps=cfg.integration_max_steps,
        )
        modulus = np.hypot(self.e1, self.e2)
        self.stats['ellipticity_rms'] = float(np.sqrt(np.mean(modulus ** 2))) if modulus.size else 0.0
        logger.info(f"Ellipticities: {self.e1.size} components, rms |e| {self.stats['ellipticity_rms']:.4f}")

    def _read_coordinates(self) -> None:
        cfg = self.config
        if cfg.coords_file is not None:
            self.uv = read_coords_oskar(cfg.coords_file, cfg.ncoords)
            self.stats['n_coords'] = self.uv.count
            self.stats['lenu'] = self.uv.lenu
            self.stats['lenv'] = self.uv.lenv

        if cfg.u_file is not None:
            self.baselines = read_coord_ska(
                cfg.u_file,
                cfg.v_file,
                cfg.ntimes,
                cfg.nbaselines,
                cfg.baseline_threshold,
                compute_grid_extent=cfg.compute_grid_extent,
            )
            self.stats['nbaselines'] = self.baselines.nbaselines
            self.stats['max_baseline'] = self.baselines.max_baseline
            self.stats['grid_extent'] = self.baselines.grid_extent

    def _stages(self) -> List[Tuple[str, Callable[[], None]]]:
        stages = [
            ("scalelength", self._generate_scalelengths),
            ("ellipticity", self._generate_ellipticities),
        ]
        if self.config.coords_file is not None or self.config.u_file is not None:
            stages.append(("coordinates", self._read_coordinates))
        return stages

    def _save(self) -> None:
        """Write all generated arrays to the output file."""
        arrays: Dict[str, np.ndarray] = {
            'scalelength': self.scalelength,
            'e1': self.e1,
            'e2': self.e2,
        }
        if self.uv is not None:
            arrays['uv_x'] = self.uv.x
            arrays['uv_y'] = self.uv.y
        if self.baselines is not None:
            arrays['baseline_u'] = self.baselines.x
            arrays['baseline_v'] = self.baselines.y
            arrays['baseline_index'] = self.baselines.baseline_index

        output = Path(self.config.output)
        if output.parent != Path('.'):
            output.parent.mkdir(parents=True, exist_ok=True)
        np.savez(output, **arrays)
        logger.info(f"Population written to: {output}")

    def run(self, show_progress: bool = True) -> Dict[str, Any]:
        """
        Run the simulation.

        Args:
            show_progress: Whether to show progress bar

        Returns:
            Dictionary with simulation statistics
        """
        logger.info("Starting population simulation")
        logger.info(f"Rings: {self.config.n_rings}, points per ring: {self.config.points_per_ring}")

        iterator = tqdm(self._stages(), desc="Simulating", unit="stage",
                        disable=not show_progress)

        for name, stage in iterator:
            iterator.set_postfix({'stage': name})
            stage()

        self._save()

        logger.info("Simulation complete!")
        return self.stats


def simulate_population(config_path: str | Path, show_progress: bool = True) -> Dict[str, Any]:
    """
    Convenience function to run a simulation from a config file.

    Args:
        config_path: Path to YAML config file
        show_progress: Whether to show progress bar

    Returns:
        Simulation statistics
    """
    config = SimulationConfig.from_yaml(config_path)
    simulator = PopulationSimulator(config)
    return simulator.run(show_progress=show_progress)
