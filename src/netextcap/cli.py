"""CLI entry point for netextcap."""

import json
import sys
import time
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .core.config import get_config
from .core.exceptions import ValidationError
from .core.utils import parse_extra_args, setup_logging
from .extcap import (
    CapabilityQuery,
    CaptureSession,
    InterfaceRecord,
    InterfaceRegistry,
    SessionManager,
    discover_interfaces,
)

console = Console()


def print_error(message: str) -> None:
    """Print error message in red."""
    console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print success message in green."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print warning message in yellow."""
    console.print(f"[yellow]Warning:[/yellow] {message}")


def _discover(ctx: click.Context) -> list[InterfaceRecord]:
    """Run a discovery pass into the context's registry."""
    return discover_interfaces(
        ctx.obj["config"].extcap.helper_dir, registry=ctx.obj["registry"]
    )


@click.group()
@click.version_option(version=__version__, prog_name="netextcap")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--helper-dir",
    type=click.Path(file_okay=False, resolve_path=True, path_type=Path),
    help="Directory containing capture-helper programs",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, helper_dir: Path | None) -> None:
    """netextcap - discover and run external capture-helper programs."""
    ctx.ensure_object(dict)
    config = get_config()
    config.verbose = verbose or config.verbose
    if helper_dir is not None:
        config.extcap.helper_dir = helper_dir
    setup_logging(config.verbose)
    ctx.obj["config"] = config
    ctx.obj["registry"] = InterfaceRegistry()


@main.command()
@click.option("--output", "-o", type=click.Path(), help="Output file (JSON)")
@click.pass_context
def interfaces(ctx: click.Context, output: str | None) -> None:
    """List interfaces offered by capture helpers."""
    helper_dir = ctx.obj["config"].extcap.helper_dir
    console.print(f"[bold]Probing helpers in {helper_dir}...[/bold]")

    records = _discover(ctx)

    if not records:
        console.print("[yellow]No helper interfaces found.[/yellow]")
        return

    table = Table(title=f"Helper Interfaces ({len(records)})")
    table.add_column("Interface", style="cyan")
    table.add_column("Description", style="green")
    table.add_column("Helper", style="magenta")

    for record in records:
        table.add_row(record.name, record.display, Path(record.extcap).name)

    console.print(table)

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "helper_dir": str(helper_dir),
            "interfaces": [r.to_dict() for r in records],
        }
        with open(output_path, "w") as f:
            json.dump(data, f, indent=2)
        print_success(f"Results saved to {output_path}")


@main.command()
@click.argument("interface")
@click.pass_context
def dlts(ctx: click.Context, interface: str) -> None:
    """List link-layer types of a helper interface."""
    _discover(ctx)
    result = CapabilityQuery(registry=ctx.obj["registry"]).list_link_types(interface)

    if not result.ok:
        print_error(str(result.error))
        sys.exit(1)

    table = Table(title=f"Link Types for {interface}")
    table.add_column("DLT", style="cyan", justify="right")
    table.add_column("Name", style="green")
    table.add_column("Description", style="yellow")

    for link_type in result.capabilities.data_link_types:
        table.add_row(str(link_type.dlt), link_type.name, link_type.description)

    console.print(table)


@main.command()
@click.argument("interface")
@click.pass_context
def config(ctx: click.Context, interface: str) -> None:
    """Show configuration arguments a helper interface accepts."""
    _discover(ctx)
    result = CapabilityQuery(registry=ctx.obj["registry"]).get_configuration(interface)

    if not result.ok:
        print_error(str(result.error))
        sys.exit(1)

    table = Table(title=f"Configuration for {interface}")
    table.add_column("Flag", style="cyan")
    table.add_column("Description", style="green")
    table.add_column("Type", style="yellow")
    table.add_column("Default", style="magenta")
    table.add_column("Values")

    for argument in result.arguments:
        values = ", ".join(
            f"{v.value}{'*' if v.is_default else ''}" for v in argument.values
        )
        table.add_row(
            argument.call,
            argument.display,
            argument.arg_type.value,
            argument.default or "-",
            values or "-",
        )

    console.print(table)


@main.command()
@click.argument("interface")
@click.option(
    "--arg",
    "-a",
    "extra_args",
    multiple=True,
    help="Extra helper argument as KEY=VALUE or KEY (repeatable)",
)
@click.option("--duration", type=float, default=None, help="Stop after N seconds")
@click.pass_context
def capture(
    ctx: click.Context,
    interface: str,
    extra_args: tuple[str, ...],
    duration: float | None,
) -> None:
    """Start a helper capture and expose its channel until interrupted."""
    try:
        args = parse_extra_args(extra_args)
    except ValidationError as e:
        print_error(str(e))
        sys.exit(1)

    _discover(ctx)
    manager = SessionManager(registry=ctx.obj["registry"])
    session = CaptureSession()

    if manager.add_interface(session, interface, args) is None:
        print_error(f"No helper provides interface {interface}")
        sys.exit(1)

    try:
        if not manager.init_interfaces(session):
            print_error(f"Could not create capture channel for {interface}")
            sys.exit(1)

        for options in session:
            console.print(
                Panel(
                    f"Channel: {options.extcap_fifo}\nHelper:  {options.extcap}\n"
                    f"PID:     {options.extcap_pid}",
                    title=f"Capturing on {options.name}",
                )
            )
            if not options.has_process:
                print_warning("Helper did not start")

        deadline = time.monotonic() + duration if duration is not None else None
        try:
            while manager.running(session):
                if deadline is not None and time.monotonic() >= deadline:
                    break
                time.sleep(0.2)
        except KeyboardInterrupt:
            console.print("[dim]Interrupted[/dim]")
    finally:
        manager.cleanup(session)

    print_success("Capture session closed")


if __name__ == "__main__":
    main()
