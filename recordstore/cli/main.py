"""Main CLI entry point and application setup."""

import logging
from dataclasses import dataclass
from pathlib import Path

import click
from click.exceptions import Exit
from rich.console import Console

from recordstore import __version__
from recordstore.config import StoreConfig, load_config
from recordstore.drivers.registry import build_registry
from recordstore.service import RecordService

from .commands import delete, drivers, get, put, search


@dataclass
class Context:
    """CLI context that holds shared resources."""

    service: RecordService
    config: StoreConfig
    console: Console
    debug: bool = False


def setup_logging(
    verbose: bool = False, quiet: bool = False, debug: bool = False
) -> None:
    """Configure logging based on CLI flags."""
    if quiet:
        level = logging.WARNING
    elif verbose or debug:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s"
        if not debug
        else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_console(no_color: bool = False, width: int | None = None) -> Console:
    """Create Rich console with appropriate settings."""
    return Console(
        no_color=no_color,
        width=width or 120,
        highlight=not no_color,
        color_system=None if no_color else "auto",
    )


class RecordStoreGroup(click.Group):
    """Custom group that reports errors without tracebacks."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except KeyboardInterrupt:
            console = getattr(ctx.obj, "console", None) if ctx.obj else None
            if console:
                console.print("[yellow]Interrupted[/yellow]")
            ctx.exit(130)
        except (click.ClickException, click.Abort, Exit, SystemExit):
            raise
        except Exception as e:
            debug = getattr(ctx.obj, "debug", False) if ctx.obj else False
            if debug:
                raise
            console = getattr(ctx.obj, "console", None) if ctx.obj else None
            if console:
                console.print(f"[red]Error:[/red] {e}")
            else:
                click.echo(f"Error: {e}", err=True)
            ctx.exit(1)


@click.group(cls=RecordStoreGroup)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--debug", is_flag=True, help="Enable debug mode with full tracebacks")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--driver", help="Storage driver to use (overrides config)")
@click.option(
    "--node",
    "-n",
    "nodes",
    multiple=True,
    help="Storage endpoint as host:port (repeatable, overrides config)",
)
@click.version_option(
    version=__version__,
    prog_name="recordstore",
    message="recordstore version %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    no_color: bool,
    debug: bool,
    config: Path | None,
    driver: str | None,
    nodes: tuple[str, ...],
) -> None:
    """Record storage over pluggable backends.

    Reads, writes and searches records in Elasticsearch or Redis through
    one driver interface.
    """
    setup_logging(verbose=verbose, quiet=quiet, debug=debug)
    console = create_console(no_color=no_color)

    store_config = load_config(config)
    if driver:
        store_config.driver = driver
    if nodes:
        store_config.nodes = list(nodes)

    registry = build_registry(store_config)
    endpoints = store_config.endpoint_nodes()
    service = RecordService(registry, store_config.driver, endpoints)
    ctx.call_on_close(service.close)

    ctx.obj = Context(
        service=service, config=store_config, console=console, debug=debug
    )


cli.add_command(drivers)
cli.add_command(put)
cli.add_command(get)
cli.add_command(delete)
cli.add_command(search)


def main() -> None:
    """Console script entry point."""
    cli()
