from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

import yaml
from rich.console import Console
from rich.table import Table

from .config import AppConfig, load_config
from .destination_builder import SegmentChain
from .errors import ConfigError
from .logging_utils import configure_logging, render_fields_block, resolve_level
from .processor import Processor
from .segments import describe, segment_type_name
from .utils import load_yaml_file
from .validation import validate_config_data
from .validation_output import ValidationFormatter
from .version import __version__

LOGGER = logging.getLogger(__name__)
CONSOLE = Console()

DEFAULT_CONFIG_PATH = "dcim-sort.yaml"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

LOG_LEVEL_CHOICES = ("DEBUG", "INFO", "WARNING", "ERROR")


def _default_config_path() -> Path:
    return Path(os.getenv("DCIM_SORT_CONFIG", DEFAULT_CONFIG_PATH))


def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVEL_CHOICES,
        default=None,
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write full debug logs to this file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcim-sort",
        description="Sort camera folders into directories built from file metadata.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=_default_config_path(),
        help="Path to the YAML configuration (default: $DCIM_SORT_CONFIG or ./dcim-sort.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Sort the source directory (default)")
    _add_logging_arguments(run_parser)
    run_parser.add_argument("--dry-run", action="store_true", help="Log what would happen without touching files")
    run_parser.add_argument("--source", type=Path, default=None, help="Override settings.source_dir")
    run_parser.add_argument("--destination", type=Path, default=None, help="Override settings.destination_dir")

    validate_parser = subparsers.add_parser("validate-config", help="Validate the configuration file")
    validate_parser.add_argument("--no-suggestions", action="store_true", help="Hide fix suggestions")

    subparsers.add_parser("show-config", help="Describe both segment chains and the duplicate policy")
    return parser


def _configure_from_args(args: argparse.Namespace) -> None:
    level = resolve_level(getattr(args, "log_level", None), verbose=getattr(args, "verbose", False))
    configure_logging(level, getattr(args, "log_file", None))


def _load_or_report(path: Path) -> Optional[AppConfig]:
    try:
        return load_config(path)
    except FileNotFoundError:
        LOGGER.error(render_fields_block("Configuration Not Found", {"Path": path}))
    except yaml.YAMLError as exc:
        LOGGER.error(render_fields_block("Configuration Is Not Valid YAML", {"Path": path, "Error": exc}))
    except ConfigError as exc:
        LOGGER.error(render_fields_block("Invalid Configuration", {"Path": path, "Error": exc}))
    return None


def run_sort(args: argparse.Namespace) -> int:
    try:
        _configure_from_args(args)
    except ValueError as exc:
        CONSOLE.print(f"[bold red]Invalid logging options:[/bold red] {exc}")
        return EXIT_CONFIG_ERROR
    config = _load_or_report(args.config)
    if config is None:
        return EXIT_CONFIG_ERROR

    settings = config.settings
    if getattr(args, "dry_run", False):
        settings.dry_run = True
    if getattr(args, "source", None) is not None:
        settings.source_dir = args.source
    if getattr(args, "destination", None) is not None:
        settings.destination_dir = args.destination

    LOGGER.info(
        render_fields_block(
            "Starting Run",
            {
                "Version": __version__,
                "Source": settings.source_dir,
                "Destination": settings.destination_dir,
                "Operation": settings.operation,
                "Duplicates": config.context.policy.describe(),
                "Dry Run": settings.dry_run,
            },
        )
    )
    stats = Processor(config).process_all()
    return EXIT_FAILURE if stats.errors else EXIT_OK


def run_validate_config(args: argparse.Namespace) -> int:
    config_path: Path = args.config
    try:
        data = load_yaml_file(config_path)
    except FileNotFoundError:
        CONSOLE.print(f"[bold red]Configuration file not found:[/bold red] {config_path}")
        return EXIT_FAILURE
    except yaml.YAMLError as exc:
        CONSOLE.print(f"[bold red]Failed to load configuration:[/bold red] {exc}")
        return EXIT_FAILURE

    report = validate_config_data(data)
    ValidationFormatter(console=CONSOLE, show_suggestions=not args.no_suggestions).format_report(report)
    return EXIT_OK if report.is_valid else EXIT_FAILURE


def _chain_table(chain: SegmentChain) -> Table:
    table = Table(title=f"{chain.tag.value.title()} chain", show_lines=False)
    table.add_column("Index", justify="right", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Settings", overflow="fold")
    for segment in chain.segments:
        table.add_row(str(segment.index), segment_type_name(segment), describe(segment))
    if not chain.segments:
        table.add_row("", "(empty)", "files are placed in the destination root")
    return table


def run_show_config(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except FileNotFoundError:
        CONSOLE.print(f"[bold red]Configuration file not found:[/bold red] {args.config}")
        return EXIT_CONFIG_ERROR
    except (yaml.YAMLError, ConfigError) as exc:
        CONSOLE.print(f"[bold red]Failed to load configuration:[/bold red] {exc}")
        return EXIT_CONFIG_ERROR

    context = config.context
    CONSOLE.print(_chain_table(context.supported))
    CONSOLE.print(_chain_table(context.fallback))
    CONSOLE.print(f"Duplicate resolution: [bold]{context.policy.describe()}[/bold]")
    return EXIT_OK


COMMANDS: Dict[str, Callable[[argparse.Namespace], int]] = {
    "run": run_sort,
    "validate-config": run_validate_config,
    "show-config": run_show_config,
}


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        # Bare invocation sorts with the default run options.
        args = parser.parse_args([*(argv if argv is not None else sys.argv[1:]), "run"])
    return COMMANDS[args.command](args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
