#!/usr/bin/env python3
import argparse
import dataclasses
import logging
from pathlib import Path

import numpy as np

from sakura_flow.bed import BathymetryBed
from sakura_flow.config import load_config
from sakura_flow.sediment import Sediment
from sakura_flow.simulation import run_sakura
from sakura_flow.visualization import create_visualization, plot_total_deposit

# Setup basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

QUICK_DURATION = 1800.0


def run_floods(config, make_figures=True):
    """Runs every flood of the configuration in turn over one bathymetry profile."""
    output_dir = Path(config.output_dir) / config.experiment_name
    output_dir.mkdir(parents=True, exist_ok=True)

    sed = Sediment.from_config(config.sediment)
    bed = BathymetryBed.from_config(config.bathymetry, config.dx, config.sediment.bottom_fraction,
                                    config.flow)
    bed_initial = bed.copy()
    logger.info(f"Bathymetry of {bed.len} nodes from {bed.x[0]:.0f}m to {bed.x[-1]:.0f}m")

    total_deposit = np.zeros((sed.n_grains, bed.len))
    results = []

    for i, flood in enumerate(config.floods):
        if config.reset_bathymetry and i > 0:
            bed.reset_from(bed_initial)
        bed.set_width(flood.width)

        logger.info(f"Flood {i + 1} of {len(config.floods)}")
        result = run_sakura(flood, bed.x, bed.width, sed, config.flow, bed,
                            config.dt, config.output_interval)
        total_deposit += result.deposit
        results.append(result)

        if make_figures:
            create_visualization(result, bed, bed_initial, output_dir / f"flood_{i:03d}.png",
                                 f"{config.experiment_name} flood {i + 1}")

    if make_figures:
        plot_total_deposit(bed.x, total_deposit, bed_initial, bed,
                           output_dir / "total_deposit.png", config.experiment_name)

    save_final_metrics(output_dir, config, bed, total_deposit, results)
    return results


def save_final_metrics(output_dir, config, bed, total_deposit, results):
    """Saves the summary, the deposit and the final bathymetry as text files."""
    np.savetxt(output_dir / "deposit.csv",
               np.column_stack([bed.x, total_deposit.T]),
               delimiter=",",
               header="x," + ",".join(f"grain_{n}" for n in range(len(total_deposit))))
    np.savetxt(output_dir / "bathymetry.csv",
               np.column_stack([bed.x, bed.depth, bed.width]),
               delimiter=",", header="x,depth,width")

    metrics_file = output_dir / "summary_metrics.txt"
    with open(metrics_file, 'w') as f:
        f.write(f"Simulation: {config.experiment_name}\n")
        f.write(f"Floods: {len(results)}\n")
        for i, result in enumerate(results):
            mb = result.mass_balance
            f.write(f"Flood {i + 1}: {result.state.value}, {result.n_steps} steps, "
                    f"t={result.time:.1f}s, head at {result.x_head:.1f}m\n")
            f.write(f"  Mass in: {mb.mass_in:.6g}kg, eroded: {mb.eroded:.6g}kg, "
                    f"deposited: {mb.deposited:.6g}kg, suspended: {mb.suspended:.6g}kg, "
                    f"lost: {mb.lost:.6g}kg\n")
            f.write(f"  Mass balance error: {mb.relative_error:.4%}\n")
            f.write(f"  Negative thickness events: {result.n_negative_thickness}\n")
        f.write(f"Max deposit thickness: {np.max(total_deposit.sum(axis=0)):.4f}m\n")
        f.write(f"Total deposit volume: {np.sum(total_deposit.sum(axis=0) * bed.width * bed.dx):.4g}m^3\n")

    logger.info(f"Results written to {output_dir}")


def main(argv=None):
    """Main function to run the sakura simulation."""
    parser = argparse.ArgumentParser(description="Run a 1-D turbidity current (sakura) simulation.")
    parser.add_argument(
        '--config',
        type=Path,
        default=Path('configs/default.yaml'),
        help='Path to the configuration YAML file.'
    )
    parser.add_argument(
        '--name',
        type=str,
        help='Override the experiment name from the config file.'
    )
    parser.add_argument(
        '--reset-bathymetry',
        action='store_true',
        help='Restore the initial bathymetry before each flood.'
    )
    parser.add_argument(
        '--quick',
        action='store_true',
        help='Run a quick simulation with shortened floods for testing.'
    )
    parser.add_argument(
        '--no-figures',
        action='store_true',
        help='Skip the matplotlib figures.'
    )
    args = parser.parse_args(argv)

    # Load configuration from file
    if not args.config.exists():
        logger.error(f"Configuration file not found at: {args.config}")
        return 1

    try:
        config = load_config(args.config)
    except ValueError as e:
        logger.error(str(e))
        return 1

    # Override experiment name if provided via command line
    if args.name:
        config.experiment_name = args.name
        logger.info(f"Experiment name set to '{config.experiment_name}' via command line.")

    if args.reset_bathymetry:
        config.reset_bathymetry = True

    # Override config for a quick run
    if args.quick:
        logger.info("Running in --quick mode.")
        config.floods = [dataclasses.replace(flood, duration=min(flood.duration, QUICK_DURATION))
                         for flood in config.floods]
        config.experiment_name = f"{config.experiment_name}_quick_test"

    run_floods(config, make_figures=not args.no_figures)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
