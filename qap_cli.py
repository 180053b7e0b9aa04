#!/usr/bin/env python3
"""
Solve a Quadratic Assignment Problem with the qap_ga genetic algorithm.

The run config names the instance (a QAPLIB .dat file under
instance.path, or inline instance.flow / instance.distance matrices),
the output folder, and optional GA settings and seed. The best
assignment is written to <output.root>/result.yaml and the
per-generation trace to <output.root>/history.csv.

Usage:
    python3 qap_cli.py run_config.yaml
    python3 qap_cli.py --config run_config.yaml
    python3 qap_cli.py --help

Examples:
    # Solve the bundled 6-facility QAPLIB instance
    python3 qap_cli.py examples/toy6_run.yaml

    # Solve a 3-facility instance given inline in the run config
    python3 qap_cli.py examples/inline_run.yaml

GA defaults live in qap_ga/qap_ga_config.yaml. Exit status is 0 on a
completed search and 1 on a config, instance or runtime error.
"""

import sys
from pathlib import Path
from typing import List, Optional

project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def config_path_from_args(args: List[str]) -> Optional[str]:
    """
    Extract the run config path from command-line arguments.

    Returns:
        The path, or None when help was requested or nothing was given
    """
    if not args or args[0] in ('-h', '--help', 'help'):
        return None

    if args[0].startswith('--config='):
        return args[0].split('=', 1)[1] or None
    if args[0] == '--config':
        return args[1] if len(args) > 1 else None
    return args[0]


def main():
    """Run one QAP search from the config named on the command line."""
    args = sys.argv[1:]
    config_path = config_path_from_args(args)

    if config_path is None:
        print(__doc__)
        help_requested = bool(args) and args[0] in ('-h', '--help', 'help')
        sys.exit(0 if help_requested else 1)

    try:
        from qap_ga.cli import run_from_config
        result = run_from_config(config_path)
    except KeyboardInterrupt:
        print("\n\nSearch interrupted by user")
        sys.exit(1)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)

    print(f"Best assignment: {result.best.assignment.tolist()} (cost {result.best_fitness})")


if __name__ == '__main__':
    main()
