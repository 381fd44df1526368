"""Command-line interface for EMDForge.

This module provides CLI commands for running the configured sweep
experiments, validating and planning configurations, and listing the
available experiments.

Example:
    $ emdforge run examples/configs/frequency_sweep.yml --workers 4
    $ emdforge run config.yml --experiment amplitude --quiet
    $ emdforge validate config.yml
    $ emdforge plan config.yml
    $ emdforge list-experiments
"""

import argparse
import contextlib
import signal
import sys
from pathlib import Path
from typing import Iterator, Optional, Sequence

from emdforge.config.schema import ExperimentConfig
from emdforge.core.batch_executor import BatchExecutor, format_summary
from emdforge.core.conditions import SweepVariable


def load_config_file(config_path: str) -> ExperimentConfig:
    """Load and parse a YAML experiment configuration.

    Args:
        config_path: Path to YAML configuration file.

    Returns:
        Parsed configuration.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: For duplicate or unknown keys and malformed values.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return ExperimentConfig.from_file(path)


@contextlib.contextmanager
def stop_on_interrupt(executor: BatchExecutor) -> Iterator[None]:
    """Turn Ctrl-C into a stop request while ``executor`` runs.

    The sweep in progress fills its remaining slots with cancelled markers
    and the experiments already completed are kept.
    """
    def handle(signum, frame):
        print("\nStopping after the current condition...", file=sys.stderr)
        executor.request_stop()

    previous = signal.signal(signal.SIGINT, handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def cmd_run(args: argparse.Namespace) -> int:
    """Run the configured experiments and print a fit summary.

    Ctrl-C stops the run after the current condition; the summary of the
    completed experiments is still printed.

    Args:
        args: Command-line arguments with config, experiment, device,
            workers and quiet.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        config = load_config_file(args.config)
        executor = BatchExecutor(
            config,
            device=args.device,
            max_workers=args.workers,
            verbose=False if args.quiet else None,
        )
        if not config.select_experiments(args.experiment):
            print("No experiments enabled; nothing to run", file=sys.stderr)
            return 1

        with stop_on_interrupt(executor):
            summary = executor.execute(args.experiment)
        print()
        print(format_summary(summary["results"], summary["fits"]))
        if summary["cancelled"]:
            print("Run was cancelled before completion", file=sys.stderr)
            return 1
        return 0

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error running experiments: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a YAML configuration without running.

    Args:
        args: Command-line arguments with config path.

    Returns:
        Exit code (0 for valid, 1 for invalid).
    """
    try:
        print(f"Validating {args.config}...")
        config = load_config_file(args.config).validate()
        print("Configuration is valid")
        print(f"  Detectors: {config.array.n_detectors} "
              f"(baseline {config.array.baseline_deg:g} deg, tau {config.array.tau:g} s)")
        print(f"  Simulation: {config.simulation.duration:g} s at dt={config.simulation.dt:g} s "
              f"on {config.simulation.device}")
        enabled = config.enabled_experiments()
        print(f"  Experiments: {', '.join(v.value for v in enabled) or 'none'}")
        return 0

    except FileNotFoundError as e:
        print(f"{e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error validating config: {e}", file=sys.stderr)
        return 1


def cmd_plan(args: argparse.Namespace) -> int:
    """Show what ``run`` would simulate.

    Args:
        args: Command-line arguments with config path and experiment.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        config = load_config_file(args.config)
        executor = BatchExecutor(config, verbose=False)
        plan = executor.plan(args.experiment)
        if not plan:
            print("No experiments enabled")
            return 0

        total = 0
        print(f"Execution plan for {args.config}:")
        for item in plan:
            low, high = item["value_range"]
            print(f"  {item['experiment']}: {item['n_values']} values "
                  f"from {low:.4g} to {high:.4g} {item['units']}")
            print(f"    head conditions: {item['head_conditions']}, "
                  f"conditions: {item['n_conditions']}, gratings: {item['n_gratings']}")
            print(f"    {item['steps_per_condition']} steps and "
                  f"{item['samples_per_condition']} output samples per condition")
            total += item["n_conditions"]
        print(f"Total conditions: {total}")
        return 0

    except Exception as e:
        print(f"Error planning experiments: {e}", file=sys.stderr)
        return 1


def cmd_list_experiments(args: argparse.Namespace) -> int:
    """List the available sweep experiments.

    Args:
        args: Command-line arguments (unused).

    Returns:
        Exit code (0 for success).
    """
    descriptions = {
        SweepVariable.FREQUENCY: "oscillation frequency (Hz); sweep.frequencies",
        SweepVariable.AMPLITUDE: "oscillation amplitude (deg); sweep.amplitudes",
        SweepVariable.SPATIAL_PERIOD: (
            "grating spatial period (deg); sweep.spatial_periods or "
            "sweep.spatial_frequencies"
        ),
    }
    print("Available experiments:")
    for variable in SweepVariable:
        print(f"  - {variable.value}: {descriptions[variable]}")
    print("\nUse 'emdforge run CONFIG --experiment NAME' to run a single experiment")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog='emdforge',
        description='EMDForge: motion detector array frequency-response sweeps'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    experiment_names = [v.value for v in SweepVariable]

    # Run command
    run_parser = subparsers.add_parser(
        'run',
        help='Run the experiments of a YAML config'
    )
    run_parser.add_argument(
        'config',
        help='Path to YAML configuration file'
    )
    run_parser.add_argument(
        '--experiment',
        action='append',
        choices=experiment_names,
        help='Run only this experiment (repeatable; default: enabled experiments)'
    )
    run_parser.add_argument(
        '--device',
        choices=['cpu', 'cuda', 'mps'],
        help='Override device from config'
    )
    run_parser.add_argument(
        '--workers',
        type=int,
        help='Number of worker threads (default: from config)'
    )
    run_parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress progress output'
    )

    # Validate command
    validate_parser = subparsers.add_parser(
        'validate',
        help='Validate YAML config without running'
    )
    validate_parser.add_argument(
        'config',
        help='Path to YAML configuration file'
    )

    # Plan command
    plan_parser = subparsers.add_parser(
        'plan',
        help='Show the conditions a config would simulate'
    )
    plan_parser.add_argument(
        'config',
        help='Path to YAML configuration file'
    )
    plan_parser.add_argument(
        '--experiment',
        action='append',
        choices=experiment_names,
        help='Plan only this experiment (repeatable)'
    )

    # List experiments command
    subparsers.add_parser(
        'list-experiments',
        help='List available sweep experiments'
    )

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Route to command handlers
    commands = {
        'run': cmd_run,
        'validate': cmd_validate,
        'plan': cmd_plan,
        'list-experiments': cmd_list_experiments,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
