#!/usr/bin/env python3
"""
laborer CLI Interface

Command-line interface for running build stages.
"""

import sys
import argparse
import logging
from typing import List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from laborer.config import load_settings
from laborer.pipeline import (
    LaborerPipeline,
    LaborerPipelineError,
    StageOptions,
    current_run_config,
    enable_fail_on_error,
    enable_verbose_stats,
    exit_code,
)
from laborer.pipeline.models import StageKind, StageResult
from laborer.pipeline.stages import list_stages, resolve_kind

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logger = logging.getLogger("laborer")

console = Console()


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="laborer",
        description="laborer - Build pipeline for SCSS/TypeScript web projects",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full build
  laborer clean style client-typescript server-typescript client-bundle

  # Compile both TypeScript trees at once and fail on any diagnostic
  laborer --parallel --fail-on-error client-typescript server-typescript

  # Run all test suites
  laborer utils-test models-test client-test server-test

  # Rebuild bundles on change and print bundle stats
  laborer --stats client-bundle-watch
        """
    )

    parser.add_argument(
        'stages',
        nargs='*',
        help='Stages to run, in order (see --list)'
    )

    parser.add_argument(
        '--list',
        action='store_true',
        help='List the available stages and exit'
    )

    parser.add_argument(
        '--root',
        default='.',
        help='Project root containing src/, typings/ and laborer.yml (default: current directory)'
    )

    parser.add_argument(
        '--stats',
        action='store_true',
        help='Print a bundle summary after every bundle completion'
    )

    parser.add_argument(
        '--fail-on-error',
        action='store_true',
        help='Exit with status 1 when any stage reports diagnostics'
    )

    parser.add_argument(
        '--parallel',
        action='store_true',
        help='Run the given stages concurrently instead of in order'
    )

    parser.add_argument(
        '--declaration',
        action='store_true',
        help='Also emit TypeScript declaration files'
    )

    parser.add_argument(
        '--style-name',
        default='main.css',
        help='File name of the compiled stylesheet (default: main.css)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    return parser.parse_args(argv)


def _list_stages() -> None:
    table = Table(title="Stages")
    table.add_column("Stage", style="cyan", no_wrap=True)
    table.add_column("Diagnostics file", style="yellow")
    for kind in list_stages():
        table.add_row(kind.value, kind.diagnostics_class or "-")
    console.print(table)


def _summarize(results: List[StageResult]) -> None:
    table = Table(title="Build summary")
    table.add_column("Stage", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Problems", justify="right")
    table.add_column("Outputs", justify="right")
    table.add_column("Time", justify="right")

    for result in results:
        if result.fatal:
            status = "[red]fatal[/red]"
        elif result.skipped:
            status = "[dim]skipped[/dim]"
        elif result.ok:
            status = "[green]ok[/green]"
        else:
            status = "[yellow]problems[/yellow]" if result.diagnostics else "[red]failed[/red]"
        duration = f"{result.duration_seconds:.2f}s" if result.duration_seconds is not None else "-"
        table.add_row(result.kind.value, status, str(len(result.diagnostics)), str(len(result.outputs)), duration)

    console.print(table)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_arguments(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.list:
        _list_stages()
        return 0

    if not args.stages:
        logger.error("No stages given. Use --list to see the available stages.")
        return 2

    try:
        kinds: List[StageKind] = [resolve_kind(name) for name in args.stages]
    except KeyError as exc:
        logger.error("%s", exc.args[0])
        return 2

    if args.stats:
        enable_verbose_stats()
    if args.fail_on_error:
        enable_fail_on_error()

    options = StageOptions(declaration=args.declaration, style_name=args.style_name)

    try:
        settings = load_settings(args.root)
        pipeline = LaborerPipeline(settings=settings, config=current_run_config(), options=options)
        results = pipeline.run(kinds, parallel=args.parallel)
    except LaborerPipelineError as exc:
        logger.error("Pipeline failed: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130

    _summarize(results)
    return exit_code(results)


if __name__ == '__main__':
    sys.exit(main())
