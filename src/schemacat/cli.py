"""
Command-line interface for schemacat.
"""

import asyncio
import sys
import xml.etree.ElementTree as ET
from contextlib import asynccontextmanager
from functools import wraps
from pathlib import Path
from typing import AsyncIterator, List, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .catalogue.postgres import PostgresCatalogueStore
from .catalogue.store import CatalogueStore
from .config import DatabaseConnection, SchemacatConfig
from .database.connection import ConnectionPool
from .exceptions import CatalogueError
from .importers.dacpac import DacpacParser
from .importers.reconciler import CatalogueReconciler, ConflictPolicy, ImportResult
from .importers.rows import ImportRow
from .importers.workbook import WorkbookParser


console = Console()

POLICY_CHOICE = click.Choice([policy.value for policy in ConflictPolicy])


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except CatalogueError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
        except ET.ParseError as e:
            console.print(f"[red]Error:[/red] Malformed model document: {escape(str(e))}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
    return wrapper


def _load_config(path: Optional[str]) -> SchemacatConfig:
    config = SchemacatConfig.from_yaml(path) if path else SchemacatConfig()
    if config.debug or click.get_current_context().find_root().obj.get("debug"):
        config.logging.level = "DEBUG"
    config.logging.configure()
    return config


@asynccontextmanager
async def _open_store(config: SchemacatConfig) -> AsyncIterator[CatalogueStore]:
    """Connect to the configured catalogue database."""
    connection = config.require_database().to_connection_config()
    async with ConnectionPool(connection) as pool:
        yield PostgresCatalogueStore(pool)


async def _reconcile(
    config: SchemacatConfig,
    rows: List[ImportRow],
    policy: ConflictPolicy,
    dry_run: bool,
) -> ImportResult:
    async with _open_store(config) as store:
        reconciler = CatalogueReconciler(store)
        return await reconciler.import_rows(rows, policy=policy, dry_run=dry_run)


def _run_import(
    config: SchemacatConfig,
    rows: List[ImportRow],
    policy: Optional[str],
    dry_run: Optional[bool],
) -> None:
    resolved_policy = ConflictPolicy(policy) if policy else config.imports.default_policy
    resolved_dry_run = config.imports.dry_run if dry_run is None else dry_run

    mode = "[yellow]dry run[/yellow]" if resolved_dry_run else "[red]commit[/red]"
    console.print(f"Importing {len(rows)} rows ({resolved_policy.value}, {mode})")

    result = asyncio.run(_reconcile(config, rows, resolved_policy, resolved_dry_run))
    _display_result(result, resolved_dry_run)
    if result.has_errors:
        sys.exit(1)


@click.group()
@click.version_option(__version__)
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def main(ctx, debug):
    """schemacat: Schema catalogue import and reconciliation."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="schemacat-config.yaml",
    help="Output configuration file path",
)
@handle_errors
def init(output: str):
    """Initialize a new schemacat configuration file."""
    if Path(output).exists():
        if not click.confirm(f"Configuration file {output} already exists. Overwrite?"):
            return

    _create_default_config().to_yaml(output)
    console.print(f"[green]✓[/green] Configuration file created: {output}")
    console.print("\n[yellow]Next steps:[/yellow]")
    console.print("1. Edit the database section of the configuration file")
    console.print(f"2. Run: schemacat setup-store --config {output}")
    console.print(f"3. Run: schemacat import-dacpac MODEL.dacpac --config {output} ...")


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def validate_config(config: str):
    """Validate configuration file."""
    console.print(f"Validating configuration: {config}")
    schemacat_config = SchemacatConfig.from_yaml(config)
    console.print("[green]✓[/green] Configuration is valid")
    _display_config_summary(schemacat_config)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@handle_errors
def setup_store(config: str):
    """Create the catalogue tables in the configured database."""
    schemacat_config = _load_config(config)

    async def run_setup():
        async with _open_store(schemacat_config) as store:
            return await store.setup_schema()

    for table_name in asyncio.run(run_setup()):
        console.print(f"[green]✓[/green] {table_name}")


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.option("--server", "-s", required=True, help="Server the model belongs to")
@click.option("--database", "-d", required=True, help="Database the model describes")
@handle_errors
def preview_dacpac(archive: str, server: str, database: str):
    """Show the columns a DACPAC would import."""
    rows = DacpacParser().parse(Path(archive).read_bytes(), server, database)
    _display_rows(rows)


@main.command()
@click.argument("workbook", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@handle_errors
def preview_workbook(workbook: str, config: Optional[str]):
    """Show the rows, warnings and unknown headers of a legacy workbook."""
    schemacat_config = _load_config(config)
    parsed = _workbook_parser(schemacat_config).parse(Path(workbook).read_bytes())
    _display_rows(parsed.rows)
    _display_unrecognised(parsed.unrecognised_headers)


@main.command()
@click.argument("archive", type=click.Path(exists=True, dir_okay=False))
@click.option("--server", "-s", required=True, help="Server the model belongs to")
@click.option("--database", "-d", required=True, help="Database the model describes")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option("--policy", "-p", type=POLICY_CHOICE, help="Conflict resolution policy")
@click.option(
    "--dry-run/--commit",
    default=None,
    help="Only report the changes, or write them (default from config)",
)
@handle_errors
def import_dacpac(
    archive: str,
    server: str,
    database: str,
    config: str,
    policy: Optional[str],
    dry_run: Optional[bool],
):
    """Import the columns of a DACPAC into the catalogue."""
    schemacat_config = _load_config(config)
    rows = DacpacParser().parse(Path(archive).read_bytes(), server, database)
    _run_import(schemacat_config, rows, policy, dry_run)


@main.command()
@click.argument("workbook", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option("--policy", "-p", type=POLICY_CHOICE, help="Conflict resolution policy")
@click.option(
    "--dry-run/--commit",
    default=None,
    help="Only report the changes, or write them (default from config)",
)
@handle_errors
def import_workbook(
    workbook: str,
    config: str,
    policy: Optional[str],
    dry_run: Optional[bool],
):
    """Import a legacy catalogue workbook into the catalogue."""
    schemacat_config = _load_config(config)
    parsed = _workbook_parser(schemacat_config).parse(Path(workbook).read_bytes())
    _display_unrecognised(parsed.unrecognised_headers)
    if parsed.warnings:
        console.print(f"[yellow]{len(parsed.warnings)} rows carry warnings and will be skipped[/yellow]")
    _run_import(schemacat_config, parsed.rows, policy, dry_run)


def _workbook_parser(config: SchemacatConfig) -> WorkbookParser:
    return WorkbookParser(
        worksheet_name=config.imports.worksheet_name,
        default_schema=config.imports.default_schema,
    )


def _create_default_config() -> SchemacatConfig:
    """Create a default configuration with placeholders."""
    return SchemacatConfig(
        database=DatabaseConnection(
            host="${POSTGRES_HOST}",
            port=5432,
            database="${POSTGRES_DB}",
            user="${POSTGRES_USER}",
            password="${POSTGRES_PASSWORD}",
        ),
    )


def _display_config_summary(config: SchemacatConfig):
    """Display a summary of the configuration."""
    summary = Table(title="Configuration Summary")
    summary.add_column("Setting", style="cyan")
    summary.add_column("Value", style="green")

    if config.database:
        summary.add_row("Database", f"{config.database.host}:{config.database.port}/{config.database.database}")
    else:
        summary.add_row("Database", "[yellow]not configured[/yellow]")
    summary.add_row("Default policy", config.imports.default_policy.value)
    summary.add_row("Dry run by default", str(config.imports.dry_run))
    summary.add_row("Worksheet", config.imports.worksheet_name)
    summary.add_row("Log level", config.logging.level)

    console.print(summary)


def _display_rows(rows: List[ImportRow]):
    table = Table(title=f"Import Rows ({len(rows)})")
    table.add_column("Server", style="cyan")
    table.add_column("Database", style="cyan")
    table.add_column("Schema.Table", style="magenta")
    table.add_column("Column", style="green")
    table.add_column("Type")
    table.add_column("DAO")
    table.add_column("API")
    table.add_column("Load")
    table.add_column("Rows", justify="right")
    table.add_column("Warning", style="yellow")

    for row in rows:
        table.add_row(
            row.server_name,
            row.database_name,
            f"{row.schema_name}.{row.table_name}",
            row.column_name,
            row.persistence_kind.value,
            "✓" if row.in_analysis else "",
            "✓" if row.added_by_api else "",
            "✓" if row.selected_for_load else "",
            "" if row.estimated_row_count is None else f"{row.estimated_row_count:,}",
            row.warning or "",
        )

    console.print(table)


def _display_unrecognised(headers: List[str]):
    if headers:
        console.print(f"[yellow]Unrecognised headers:[/yellow] {', '.join(headers)}")


def _display_result(result: ImportResult, dry_run: bool):
    title = "Import Result (dry run)" if dry_run else "Import Result"
    table = Table(title=title)
    table.add_column("Change", style="cyan")
    table.add_column("Count", justify="right", style="green")

    table.add_row("Tables added", str(result.tables_added))
    table.add_row("Columns added", str(result.columns_added))
    table.add_row("Columns updated", str(result.columns_updated))
    table.add_row("Columns removed", str(result.columns_removed))
    table.add_row("Columns skipped", str(result.columns_skipped))
    table.add_row("Rows rejected", str(result.rows_rejected))

    console.print(table)

    for error in result.errors:
        console.print(f"[red]✗[/red] {escape(error)}")


if __name__ == "__main__":
    main()
