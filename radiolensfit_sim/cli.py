"""
Command-line interface for radiolensfit_sim.

Usage:
    lensfit-sim config.yaml
    lensfit-sim --help
    lensfit-sim --generate-config
"""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import SimulationConfig, generate_example_config
from .errors import ConvergenceError, CoordinateFormatError, DegenerateDistributionError
from .simulate import PopulationSimulator


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def main(argv=None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog='lensfit-sim',
        description='Generate a synthetic galaxy population and uv coverage for radio weak-lensing simulations.',
        epilog='Example: lensfit-sim config.yaml'
    )

    parser.add_argument(
        'config',
        nargs='?',
        help='Path to YAML configuration file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )

    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Suppress progress bar'
    )

    parser.add_argument(
        '--generate-config',
        action='store_true',
        help='Generate an example configuration file'
    )

    parser.add_argument(
        '--output-config',
        default='config.yaml',
        help='Output path for generated config (default: config.yaml)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    args = parser.parse_args(argv)

    # Handle generate-config mode
    if args.generate_config:
        generate_example_config(args.output_config)
        return 0

    # Require config file if not generating
    if args.config is None:
        parser.error("config file is required (or use --generate-config)")

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        # Load config
        config_path = Path(args.config)
        if not config_path.exists():
            logger.error(f"Config file not found: {config_path}")
            return 1

        config = SimulationConfig.from_yaml(config_path)

        logger.info(f"radiolensfit_sim v{__version__}")
        logger.info(f"Config: {config_path}")

        simulator = PopulationSimulator(config)
        stats = simulator.run(show_progress=not args.quiet)

        # Print summary
        print("\n" + "=" * 50)
        print("SIMULATION COMPLETE")
        print("=" * 50)
        print(f"Output:             {config.output}")
        print(f"Sources:            {stats['n_sources']:,}")
        print(f"Mean scalelength:   {stats['scalelength_mean']:.4f}")
        print(f"RMS ellipticity:    {stats['ellipticity_rms']:.4f}")
        if config.coords_file is not None:
            print("-" * 50)
            print(f"Coordinates read:   {stats['n_coords']:,}")
            print(f"Max |u|, |v|:       {stats['lenu']:.3f}, {stats['lenv']:.3f}")
        if config.u_file is not None:
            print("-" * 50)
            print(f"Baselines kept:     {stats['nbaselines']:,}")
            print(f"Max baseline:       {stats['max_baseline']:.3f}")
            if stats['grid_extent'] is not None:
                print(f"Grid extent:        {stats['grid_extent']:.0f}")
        print("=" * 50)

        return 0

    except OSError as e:
        logger.error(str(e))
        return 1
    except ConvergenceError as e:
        logger.error(f"Table construction failed: {e}")
        return 1
    except DegenerateDistributionError as e:
        logger.error(f"Cannot sample distribution: {e}")
        return 1
    except CoordinateFormatError as e:
        logger.error(f"Invalid coordinate file: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
