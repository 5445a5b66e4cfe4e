"""Command-line interface for pullchain."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.pretty import Pretty

from . import __version__
from .errors import ConfigError, PullchainError
from .logging_config import setup_logging
from .models.config import FetchOptions, FilterSpec, PipelineConfig, TerminalPolicy
from .models.events import EventType
from .pipeline import Pipeline, collect


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="pullchain",
        description="Fetch a URL or local path and run it through a chain of filters",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extract title and links from a page
  pullchain https://example.com -f title -f links

  # Filters with parameters (JSON after '=')
  pullchain https://example.com -f 'select={"selector": "h2"}'

  # Local files, directories and .zip archives
  pullchain README.md -f uppercase
  pullchain bundle.zip -f 'files={"pattern": "**/*.md"}'

  # Custom filter from a module or file
  pullchain page.html -f myfilters.py:word_count

  # Run a pipeline described in YAML
  pullchain --config pipeline.yaml
        """,
    )

    parser.add_argument("locator", nargs="?", help="URL or filesystem path to fetch")
    parser.add_argument("--version", action="version", version=f"pullchain {__version__}")
    parser.add_argument("--config", "-c", type=Path, help="YAML pipeline configuration file")
    parser.add_argument("--name", "-n", help="Pipeline name reported on exit (default: locator)")
    parser.add_argument(
        "--filter",
        "-f",
        dest="filters",
        action="append",
        default=[],
        metavar="NAME[=JSON]",
        help="Filter to apply, in order (repeatable)",
    )
    parser.add_argument(
        "--continue-after-terminal",
        action="store_true",
        help="Keep running filters registered after a terminal filter",
    )

    fetch_group = parser.add_argument_group("fetch options")
    fetch_group.add_argument(
        "--header",
        "-H",
        dest="headers",
        action="append",
        default=[],
        metavar="NAME:VALUE",
        help="Request header (repeatable)",
    )
    fetch_group.add_argument("--timeout", type=float, help="Request timeout in seconds")
    fetch_group.add_argument("--proxy", help="HTTP proxy URL")
    fetch_group.add_argument("--extract-dir", type=Path, help="Directory to extract archives into")

    output_group = parser.add_argument_group("output")
    output_group.add_argument("--json", action="store_true", help="Print the result as JSON")
    output_group.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    output_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides config)",
    )
    output_group.add_argument("--log-file", type=Path, help="Also log to this file")

    return parser


def parse_filter(value: str) -> FilterSpec:
    """Parse 'name' or 'name=<json params>' into a FilterSpec."""
    name, sep, raw_params = value.partition("=")
    params: Any = None
    if sep:
        try:
            params = json.loads(raw_params)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON params for filter '{name}': {e}") from e
    return FilterSpec(name=name.strip(), params=params)


def parse_header(value: str) -> tuple[str, str]:
    """Parse 'Name: value' into a header pair."""
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise ConfigError(f"Invalid header '{value}', expected NAME:VALUE")
    return name.strip(), header_value.strip()


def build_config(args: argparse.Namespace) -> PipelineConfig:
    """Combine the optional YAML config with command-line arguments."""
    if args.config:
        config = PipelineConfig.from_yaml_file(args.config)
    elif args.locator:
        config = PipelineConfig(locator=args.locator)
    else:
        raise ConfigError("Please provide a locator or --config")

    update: dict[str, Any] = {}
    if args.locator:
        update["locator"] = args.locator
    if args.name:
        update["name"] = args.name
    if args.filters:
        update["filters"] = list(config.filters) + [parse_filter(f) for f in args.filters]
    if args.continue_after_terminal:
        update["terminal_policy"] = TerminalPolicy.CONTINUE
    if args.verbose:
        update["log_level"] = "DEBUG"
    if args.log_level:
        update["log_level"] = args.log_level
    if args.log_file:
        update["log_file"] = args.log_file

    overrides: dict[str, Any] = {}
    if args.headers:
        overrides["headers"] = dict(parse_header(h) for h in args.headers)
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.proxy:
        overrides["proxy"] = args.proxy
    if args.extract_dir:
        overrides["extract_dir"] = args.extract_dir
    if overrides:
        options: FetchOptions = config.options.merged(overrides)
        update["options"] = options

    return config.model_copy(update=update) if update else config


def run_pipeline(config: PipelineConfig, as_json: bool = False) -> int:
    """Run a configured pipeline and print its results."""
    console = Console()
    err_console = Console(stderr=True)

    try:
        pipeline = Pipeline.from_config(config)
    except PullchainError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        return 2

    if not as_json:

        def show(type: str, data: Any) -> None:
            console.print(f"[bold cyan]{type}[/bold cyan]")
            console.print(data if isinstance(data, str) else Pretty(data))

        pipeline.on(EventType.PARSED, show)
        pipeline.on(EventType.EXIT, lambda name: err_console.print(f"[green]Done:[/green] {name}"))

    result = asyncio.run(collect(pipeline))

    if as_json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    elif result.error is not None:
        err_console.print(f"[red]Error:[/red] {result.error}")

    return 0 if result.succeeded else 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except PullchainError as e:
        Console(stderr=True).print(f"[red]Configuration error:[/red] {e}")
        return 2

    setup_logging(
        level=config.log_level,
        log_file=str(config.log_file) if config.log_file else None,
    )

    return run_pipeline(config, as_json=args.json)


if __name__ == "__main__":
    sys.exit(main())
