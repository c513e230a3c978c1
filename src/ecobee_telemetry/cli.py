"""
Command-line interface for ecobee telemetry ingestion.

Provides commands for:
- poll: Fetch new runtime data from the ecobee API and push it
- process: Push a saved runtime report file
- convert: Push ecobee CSV export files
- status: Show the stored checkpoint
- init: Create an ecobee.yaml template
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .checkpoint import CheckpointStore
from .core.config import (
    DEFAULT_CONFIG_PATH,
    LoggingConfig,
    TelemetryConfiguration,
    generate_config_template,
)
from .core.errors import EcobeeTelemetryError
from .pipeline import TelemetryPipeline


console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, config: Optional[LoggingConfig] = None) -> None:
    """Configure logging with rich handler."""
    if verbose:
        level = logging.DEBUG
    elif config is not None:
        level = logging.getLevelName(config.level)
        if not isinstance(level, int):
            level = logging.INFO
    else:
        level = logging.INFO

    handlers = [RichHandler(console=console, rich_tracebacks=True)]
    if config is not None and config.file:
        file_handler = logging.FileHandler(Path(config.file).expanduser(), encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_parser() -> argparse.ArgumentParser:
    """Create the main CLI parser."""
    parser = argparse.ArgumentParser(
        prog="ecobee-telemetry",
        description="Push ecobee thermostat runtime data to InfluxDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ecobee-telemetry init                         # Write ecobee.yaml template
  ecobee-telemetry poll                         # Fetch and push new runtime data
  ecobee-telemetry poll --force                 # Fetch even without a new revision
  ecobee-telemetry process reports/runtime.json # Push a saved report
  ecobee-telemetry convert --data-path ~/Downloads --prefix report-
  ecobee-telemetry status
""",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help=f"Configuration file (default: ./{DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    poll_parser = subparsers.add_parser(
        "poll",
        help="Fetch new runtime data from the ecobee API and push it",
    )
    poll_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Fetch a report even if the runtime revision is unchanged",
    )

    process_parser = subparsers.add_parser(
        "process",
        help="Push a saved runtime report without touching the checkpoint",
    )
    process_parser.add_argument("file", type=Path, help="Runtime report JSON file")

    convert_parser = subparsers.add_parser(
        "convert",
        help="Push ecobee CSV export files",
    )
    convert_parser.add_argument(
        "--data-path",
        type=Path,
        default=None,
        help="Directory holding export files (default: csv_import.data_path)",
    )
    convert_parser.add_argument(
        "--prefix",
        default=None,
        help="Only files whose name starts with this (default: csv_import.data_prefix)",
    )

    subparsers.add_parser("status", help="Show the stored checkpoint")

    init_parser = subparsers.add_parser("init", help="Create an ecobee.yaml template")
    init_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite an existing file",
    )

    return parser


def _load_config(args: argparse.Namespace) -> TelemetryConfiguration:
    return TelemetryConfiguration.load(args.config)


def run_poll(args: argparse.Namespace, config: TelemetryConfiguration) -> int:
    """Fetch new runtime data and push it."""
    errors = config.validate(for_polling=True)
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  • {error}")
        return 1

    result = TelemetryPipeline(config).poll(force=args.force)
    if not result.fetched:
        console.print(f"[dim]Nothing to do: {result.message}[/dim]")
        return 0

    console.print(
        f"[green]✓[/green] {result.rows_emitted} rows pushed "
        f"({result.batches_pushed} batches, {result.rows_skipped} rows skipped)"
    )
    if result.checkpoint:
        console.print(f"  Checkpoint: {result.checkpoint}")
    return 0


def run_process(args: argparse.Namespace, config: TelemetryConfiguration) -> int:
    """Push a saved runtime report."""
    if not args.file.exists():
        console.print(f"[red]Error:[/red] Report file not found: {args.file}")
        return 1

    result = TelemetryPipeline(config).process_file(args.file)
    console.print(
        f"[green]✓[/green] {args.file.name}: {result.rows_emitted} rows pushed, "
        f"{result.rows_skipped} skipped"
    )
    return 0


def run_convert(args: argparse.Namespace, config: TelemetryConfiguration) -> int:
    """Push CSV export files."""
    result = TelemetryPipeline(config).convert_exports(
        data_path=args.data_path,
        prefix=args.prefix,
    )

    console.print(
        f"[green]✓[/green] {len(result.processed)} files processed, "
        f"{result.rows_emitted} rows pushed"
    )
    if result.rejected:
        console.print(f"[yellow]{len(result.rejected)} files rejected:[/yellow]")
        for path in result.rejected:
            console.print(f"  • {path.name}")
    return 0


def run_status(args: argparse.Namespace, config: TelemetryConfiguration) -> int:
    """Show the stored checkpoint."""
    store = CheckpointStore(config.state.directory)
    if not store.exists():
        console.print(f"[yellow]No checkpoint yet[/yellow] ({store.path})")
        return 0

    checkpoint = store.load()
    table = Table(title="ecobee Checkpoint")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Thermostat", checkpoint.thermostat_id or "[dim]not set[/dim]")
    table.add_row("Name", checkpoint.name or "[dim]unknown[/dim]")
    table.add_row("Connected", "[green]yes[/green]" if checkpoint.connected else "[red]no[/red]")
    table.add_row("Thermostat revision", checkpoint.thermostat_revision)
    table.add_row("Alerts revision", checkpoint.alerts_revision)
    table.add_row("Runtime revision", checkpoint.runtime_revision)
    table.add_row("Interval revision", checkpoint.interval_revision)
    table.add_row("Last data (GMT)", checkpoint.last_data or "[dim]none[/dim]")
    table.add_row("Updated", checkpoint.updated_at or "")
    table.add_row("State file", str(store.path))

    console.print(table)
    return 0


def run_init(args: argparse.Namespace) -> int:
    """Write an ecobee.yaml template."""
    path = args.config or DEFAULT_CONFIG_PATH
    if path.exists() and not args.force:
        console.print(f"[yellow]{path} already exists.[/yellow] Use --force to overwrite.")
        return 1

    path.write_text(generate_config_template(), encoding="utf-8")
    console.print(f"[green]✓[/green] Created {path}")
    console.print("Set ECOBEE_API_KEY in .env and fill in thermostat_id.")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "init":
        setup_logging(args.verbose)
        return run_init(args)

    commands = {
        "poll": run_poll,
        "process": run_process,
        "convert": run_convert,
        "status": run_status,
    }

    try:
        config = _load_config(args)
    except EcobeeTelemetryError as e:
        setup_logging(args.verbose)
        logger.error(f"Cannot load configuration: {e}")
        return 1

    setup_logging(args.verbose, config.logging)
    try:
        return commands[args.command](args, config)
    except EcobeeTelemetryError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
