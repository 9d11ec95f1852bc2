"""
Tracer Autoconfig CLI

Command-line interface for inspecting tracing configuration.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .assembler import ComponentAssembler
from .config import ENV_VARS, TracingConfig, create_default_config, load_config
from .reporters import CompositeReporter
from .tracer import Tracer


console = Console()


def _load(config_path: Optional[str]) -> TracingConfig:
    if config_path:
        return load_config(config_path)
    return TracingConfig.from_env()


@click.group()
@click.version_option(__version__, prog_name="tracer-autoconfig")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Log assembly decisions")
@click.pass_context
def cli(ctx, config_path: str, verbose: bool):
    """Tracer Autoconfig - build a tracing client from configuration"""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)


@cli.command()
@click.option("--path", "-p", default="tracing.yaml", type=click.Path(), help="File to write")
def init(path: str):
    """Initialize a new configuration file."""
    config_path = Path(path)

    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    config_path.write_text(create_default_config())
    console.print(f"[green]✓[/green] Created {config_path}")
    console.print("\nEdit the file, then check what it builds with:")
    console.print(f"  [cyan]tracer-autoconfig -c {config_path} show[/cyan]")


@cli.command()
@click.pass_context
def show(ctx):
    """Assemble the tracer and show its components."""
    config_path = ctx.obj.get("config_path")

    try:
        config = _load(config_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]✗[/red] Invalid configuration: {e}")
        sys.exit(1)

    if not config.enabled:
        console.print("[yellow]Tracing is disabled[/yellow]")
        return

    try:
        tracer = ComponentAssembler(config).assemble()
    except Exception as e:
        console.print(f"[red]✗[/red] Failed to assemble tracer: {e}")
        sys.exit(1)

    if not isinstance(tracer, Tracer):
        console.print(Panel(
            f"Tracer supplied by resolver: [cyan]{tracer!r}[/cyan]",
            title="Tracer"
        ))
        return

    try:
        headers = ", ".join(sorted(tracer.propagator.fields))
        console.print(Panel(
            f"Service: [bold]{tracer.service_name}[/bold]\n"
            f"Sampler: [cyan]{tracer.sampler.get_description()}[/cyan]\n"
            f"Propagation headers: {headers}",
            title="Tracer"
        ))

        reporters = tracer.reporter.reporters if isinstance(tracer.reporter, CompositeReporter) else (tracer.reporter,)
        if not reporters:
            console.print("[yellow]No reporters configured: spans are not exported[/yellow]")
            return

        table = Table(title="Reporters")
        table.add_column("#", justify="right")
        table.add_column("Reporter", style="cyan")
        table.add_column("Details")

        for i, reporter in enumerate(reporters, 1):
            sender = getattr(reporter, "sender", None)
            table.add_row(str(i), type(reporter).__name__, repr(sender) if sender is not None else "")

        console.print(table)
    finally:
        tracer.close()


@cli.command()
def env():
    """List recognized environment variables."""
    table = Table(title="Environment Variables")
    table.add_column("Variable", style="cyan")
    table.add_column("Setting")

    for var, key in ENV_VARS.items():
        table.add_row(var, key)

    console.print(table)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
