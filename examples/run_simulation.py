#!/usr/bin/env python3
"""Run the highway planner in closed loop against simulated traffic.

Example:
    python examples/run_simulation.py --scenario scenarios/blocked_lead.yaml
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from tabulate import tabulate

from highway_planner.config import load_config
from highway_planner.simulation import HighwayRunner, build_track


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description='Run the highway path planner in closed loop'
    )
    parser.add_argument(
        '--scenario',
        type=str,
        default='scenarios/highway_default.yaml',
        help='Path to scenario configuration file'
    )
    parser.add_argument(
        '--cycles',
        type=int,
        default=None,
        help='Number of planning cycles (overrides config)'
    )
    parser.add_argument(
        '--output',
        type=str,
        default=None,
        help='Output directory (overrides config)'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    args = parser.parse_args()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=args.log_level
    )

    logger.info(f"Loading scenario from {args.scenario}")
    config = load_config(args.scenario)

    if args.output is not None:
        config.output_path = args.output

    track = build_track(config)
    runner = HighwayRunner(track, config)

    logger.info("Starting run")
    records = runner.run(n_cycles=args.cycles)

    logger.info("Saving results")
    metrics = runner.save_results()

    print(tabulate(list(metrics.items()), headers=['metric', 'value'], tablefmt='github'))

    if metrics['collision']:
        logger.error(f"Collision: closest same-lane gap {metrics['min_gap']:.2f}m")
    else:
        logger.success(f"No collisions in {len(records)} cycles")


if __name__ == '__main__':
    main()
