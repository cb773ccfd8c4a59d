"""CLI entry point for the test orchestration engine."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from testweave.config import ProjectConfig, load_config
from testweave.executor.errors import ConfigError
from testweave.executor.runner import TestRunner
from testweave.executor.types import UnitCategory


def configure_logging(level: str) -> None:
    """Send log records to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


async def run(
    config: ProjectConfig,
    category: Optional[str] = None,
    write_report: Optional[bool] = None,
    max_concurrency: Optional[int] = None,
) -> int:
    """Run the discovered tests and return the process exit code."""
    runner = TestRunner(config)
    units = runner.discover(category)
    if not units:
        logger.error(f"No tests found in {config.test_dir}")
        return 1

    report = await runner.run_units(units, max_concurrency=max_concurrency)

    if write_report if write_report is not None else config.reporting.enabled:
        runner.reporter.write_json(report)
        print(runner.reporter.render_console(report))

    return report.exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="testweave",
        description="Run independent test units concurrently with retries",
    )
    parser.add_argument(
        "--type",
        dest="category",
        choices=[c.value for c in UnitCategory if c != UnitCategory.UNKNOWN],
        help="Only run tests of this type",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        default=None,
        help="Write the JSON report and print the detailed console report",
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Maximum number of tests running at once",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to testweave.toml (default: search the working directory)",
    )
    parser.add_argument(
        "--test-dir",
        type=Path,
        help="Directory to discover tests in (overrides the config)",
    )
    parser.add_argument(
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.max_concurrency is not None and args.max_concurrency < 1:
        print("--max-concurrency must be at least 1", file=sys.stderr)
        sys.exit(2)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)

    if args.test_dir is not None:
        config = config.model_copy(update={"test_dir": str(args.test_dir)})

    configure_logging(args.log_level or config.logging.level)

    exit_code = asyncio.run(
        run(
            config,
            category=args.category,
            write_report=args.report,
            max_concurrency=args.max_concurrency,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
