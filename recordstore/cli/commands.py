"""Record CLI commands."""

from datetime import datetime, timezone

import click
import msgspec
from rich.table import Table

from recordstore.core.errors import RecordNotFoundError
from recordstore.core.models import DEFAULT_SEARCH_LIMIT, Database, Record


def get_service(ctx):
    """Get the record service from context."""
    return ctx.obj.service


def parse_pairs(pairs: tuple[str, ...], option: str) -> dict[str, str]:
    """Parse FIELD=VALUE arguments into a mapping."""
    result = {}
    for pair in pairs:
        field, sep, value = pair.partition("=")
        if not sep or not field:
            raise click.BadParameter(f"Expected FIELD=VALUE, got {pair!r}", param_hint=option)
        result[field] = value
    return result


def format_timestamp(value: int) -> str:
    """Render unix seconds for display."""
    if not value:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _find(service, database: Database, record_id: str) -> Record | None:
    try:
        return service.read(database, record_id)
    except RecordNotFoundError:
        return None


def _print_record(console, record: Record) -> None:
    console.print_json(msgspec.json.encode(record.to_document()).decode("utf-8"))


@click.command()
@click.pass_context
def drivers(ctx: click.Context) -> None:
    """List available storage drivers."""
    console = ctx.obj.console
    selected = ctx.obj.config.driver

    for name in get_service(ctx).drivers():
        marker = "[green]*[/green]" if name == selected else " "
        console.print(f"{marker} {name}")


@click.command()
@click.argument("name")
@click.argument("table")
@click.argument("record_id", metavar="ID")
@click.argument("fields", nargs=-1)
@click.pass_context
def put(
    ctx: click.Context, name: str, table: str, record_id: str, fields: tuple[str, ...]
) -> None:
    """Create or replace a record.

    Fields are given as FIELD=VALUE pairs. Replacing a record keeps its
    original creation time.
    """
    console = ctx.obj.console
    service = get_service(ctx)
    database = Database(name=name, table=table)

    existing = _find(service, database, record_id)
    record = Record(
        id=record_id,
        data=parse_pairs(fields, "FIELDS"),
        created=existing.created if existing else 0,
    )

    if existing:
        service.update(database, record)
        console.print(f"[green]✓[/green] Updated {record_id} in {database}")
    else:
        service.create(database, record)
        console.print(f"[green]✓[/green] Created {record_id} in {database}")


@click.command()
@click.argument("name")
@click.argument("table")
@click.argument("record_id", metavar="ID")
@click.pass_context
def get(ctx: click.Context, name: str, table: str, record_id: str) -> None:
    """Show a record as JSON."""
    database = Database(name=name, table=table)
    record = _find(get_service(ctx), database, record_id)
    if record is None:
        raise click.ClickException(f"Record not found: {record_id}")

    _print_record(ctx.obj.console, record)


@click.command()
@click.argument("name")
@click.argument("table")
@click.argument("record_id", metavar="ID")
@click.pass_context
def delete(ctx: click.Context, name: str, table: str, record_id: str) -> None:
    """Delete a record if it exists."""
    database = Database(name=name, table=table)
    get_service(ctx).delete(database, record_id)
    ctx.obj.console.print(f"[green]✓[/green] Deleted {record_id} from {database}")


@click.command()
@click.argument("name")
@click.argument("table")
@click.option(
    "--term", "-t", "terms", multiple=True, help="FIELD=VALUE filter (repeatable)"
)
@click.option(
    "--limit", "-l", type=int, default=DEFAULT_SEARCH_LIMIT, help="Maximum results"
)
@click.option("--offset", type=int, default=0, help="Skip first N results")
@click.option("--reverse", "-r", is_flag=True, help="Newest first")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def search(
    ctx: click.Context,
    name: str,
    table: str,
    terms: tuple[str, ...],
    limit: int,
    offset: int,
    reverse: bool,
    output_format: str,
) -> None:
    """Search records ordered by creation time."""
    console = ctx.obj.console
    database = Database(name=name, table=table)

    records = get_service(ctx).search(
        database, parse_pairs(terms, "--term"), limit, offset, reverse
    )

    if output_format == "json":
        documents = [record.to_document() for record in records]
        console.print_json(msgspec.json.encode(documents).decode("utf-8"))
        return

    if not records:
        console.print("[yellow]No records found[/yellow]")
        return

    table_view = Table(title=f"{database} ({len(records)} records)")
    table_view.add_column("ID", style="cyan", no_wrap=True)
    table_view.add_column("Created")
    table_view.add_column("Updated")
    table_view.add_column("Data")

    for record in records:
        table_view.add_row(
            record.id,
            format_timestamp(record.created),
            format_timestamp(record.updated),
            msgspec.json.encode(record.data).decode("utf-8"),
        )

    console.print(table_view)
