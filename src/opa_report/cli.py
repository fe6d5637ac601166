"""
Command-line interface for OPA Report.

Provides commands for reporting the running version and checking for
newer upstream releases.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from opa_report import __version__
from opa_report.config import SERVICE_URL_ENV, Config
from opa_report.errors import ReportError
from opa_report.instance_id import get_instance_id, instance_id_path, reset_instance_id
from opa_report.reporter import Options, Reporter, as_pairs, is_outdated, is_set

console = Console()


def setup_logging(level: str, log_file: str | None = None) -> None:
    """Configure logging with rich handler."""
    handlers: list[logging.Handler] = [RichHandler(console=console, rich_tracebacks=True)]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
    )


@click.group()
@click.version_option(version=__version__, prog_name="opa-report")
@click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "-V",
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """
    OPA Report - Version reporting for OPA.

    Report the running version to the telemetry service and check for
    newer releases.
    """
    ctx.ensure_object(dict)

    ctx.obj["config"] = Config.load(config)

    cfg: Config = ctx.obj["config"]
    setup_logging("DEBUG" if verbose else cfg.log_level, cfg.log_file)
    ctx.obj["verbose"] = verbose


@main.command()
@click.option(
    "--format",
    "-f",
    type=click.Choice(["json", "pretty"]),
    default="pretty",
    help="Output format",
)
@click.pass_context
def check(ctx: click.Context, format: str) -> None:
    """
    Report the running version and check for updates.

    Sends a single report to the telemetry service and shows the
    latest upstream release it knows about.
    """
    config: Config = ctx.obj["config"]

    if not config.telemetry_enabled:
        console.print("[yellow]Telemetry is disabled. Skipping version check.[/]")
        return

    instance_id = get_instance_id(config.data_dir)

    try:
        with Reporter(instance_id, Options(service_url=config.service_url)) as reporter, Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Reporting to {reporter.service_url}...", total=None)
            response = reporter.send_report()
            progress.update(task, completed=True)
    except ReportError as e:
        console.print(f"[red]✗ Version check failed: {e}[/]")
        sys.exit(1)

    if format == "json":
        console.print_json(json.dumps(dict(as_pairs(response))))
        return

    if not is_set(response):
        console.print("[dim]No release information returned.[/]")
        return

    _display_release(response)

    if is_outdated(response):
        console.print()
        console.print(f"[yellow]OPA {__version__} is out of date.[/]")
    elif ctx.obj["verbose"]:
        console.print()
        console.print("[green]✓ OPA is up to date[/]")


def _display_release(response) -> None:
    """Display the release information as a table."""
    table = Table(title="Latest Release", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    for label, value in as_pairs(response):
        table.add_row(label, value)

    console.print(table)


@main.command("version", short_help="Display version information")
def version() -> None:
    """Display version information for OPA Report."""
    console.print()
    console.print(
        Panel.fit(
            f"[bold blue]OPA Report[/]\nVersion: [cyan]{__version__}[/]",
            border_style="blue",
            title="Version Information",
        )
    )
    console.print()

    table = Table(show_header=False, box=None)
    table.add_column("Component", style="dim", width=20)
    table.add_column("Version", style="cyan")

    table.add_row("OPA Report", __version__)
    table.add_row("Python", sys.version.split()[0])

    console.print(table)
    console.print()


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show current configuration."""
    config: Config = ctx.obj["config"]

    console.print()
    console.print(
        Panel.fit(
            "[bold]OPA Report Status[/]",
            border_style="blue",
        )
    )

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Service URL", config.resolved_service_url)
    table.add_row("Telemetry Enabled", "Yes" if config.telemetry_enabled else "No")
    table.add_row("Instance ID File", str(instance_id_path(config.data_dir)))
    table.add_row("Log Level", config.log_level)

    console.print(table)


@main.command()
@click.argument("output_path", type=click.Path(path_type=Path))
def init_config(output_path: Path) -> None:
    """
    Generate a sample configuration file.

    Creates a YAML configuration file with all available options
    and helpful comments.
    """
    sample_config = f"""# OPA Report Configuration

# Telemetry settings
telemetry:
  # Base URL of the telemetry service ({SERVICE_URL_ENV} takes precedence)
  url: null

  # Enable/disable version reporting
  enabled: true

# Storage settings
storage:
  # Directory holding the persistent instance ID
  data_dir: /var/lib/opa-report

# Logging
logging:
  # Log level: DEBUG, INFO, WARNING, ERROR
  level: INFO

  # Log file path (null = stderr only)
  file: null
"""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(sample_config)
    console.print(f"[green]✓ Configuration file created: {output_path}[/]")
    console.print()
    console.print("Next steps:")
    console.print("  1. Edit the configuration file if you run your own telemetry service")
    console.print("  2. Run a version check: [cyan]opa-report check[/]")


@main.command("instance-id")
@click.option(
    "--reset",
    is_flag=True,
    help="Reset the instance ID (generates a new UUID)",
)
@click.pass_context
def instance_id(ctx: click.Context, reset: bool) -> None:
    """
    Display or reset the persistent instance ID.

    The instance ID is a UUID sent with every version report.
    """
    config: Config = ctx.obj["config"]

    if reset:
        if not click.confirm(
            "Resetting the instance ID will make this installation appear as a new "
            "instance to the telemetry service. Continue?"
        ):
            console.print("[yellow]Cancelled[/]")
            return

        new_id = reset_instance_id(config.data_dir)
        console.print(f"[green]✓[/] Instance ID reset to: [cyan]{new_id}[/]")
    else:
        console.print(f"[bold]Instance ID:[/] [cyan]{get_instance_id(config.data_dir)}[/]")


if __name__ == "__main__":
    main()
