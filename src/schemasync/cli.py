"""
Command-line interface for schemasync.
"""

import asyncio
import sys
from functools import wraps
from typing import Dict

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import SchemaSyncConfig, setup_logging
from .exceptions import ConfigurationError, SchemaSyncError
from .runner import MigrationOutcome, MigrationRunner
from .schema.differ import ChangeSet
from .schema.reconciler import SchemaReconciler
from .store import InMemorySchemaStore, RestSchemaStore


console = Console()


def handle_errors(func):
    """Decorator to handle errors gracefully in CLI commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SchemaSyncError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted by user[/yellow]")
            sys.exit(0)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/red] {e}")
            if "--debug" in sys.argv:
                import traceback
                traceback.print_exc()
            sys.exit(1)
    return wrapper


def _load_config(ctx: click.Context, path: str) -> SchemaSyncConfig:
    config = SchemaSyncConfig.from_yaml(path)
    if ctx.obj.get("debug"):
        config.logging.level = "DEBUG"
    setup_logging(config.logging)
    return config


@click.group()
@click.version_option(__version__)
@click.option(
    "--debug", is_flag=True, help="Enable debug mode"
)
@click.pass_context
def main(ctx, debug):
    """schemasync: declarative schema reconciliation for Parse-style backends."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Apply changes to an in-memory copy of the live schemas only",
)
@click.pass_context
@handle_errors
def migrate(ctx, config: str, dry_run: bool):
    """Reconcile live schemas with the declared schemas."""
    schemasync_config = _load_config(ctx, config)
    console.print(f"[blue]Migrating schemas...[/blue]")
    console.print(f"Config: {config}")
    console.print(f"Environment: {schemasync_config.environment}")
    if dry_run:
        console.print("[yellow]DRY RUN MODE - live schemas will not be changed[/yellow]")

    async def run_migration():
        async with RestSchemaStore(schemasync_config.store) as live_store:
            store = live_store
            if dry_run:
                store = InMemorySchemaStore(await live_store.get_all_schemas())

            reconciler = SchemaReconciler.from_config(store, schemasync_config)
            runner = MigrationRunner.from_config(reconciler, schemasync_config)
            outcome = await runner.run()
            return outcome, store

    outcome, store = asyncio.run(run_migration())
    _display_outcome(outcome)

    if dry_run and isinstance(store, InMemorySchemaStore):
        _display_dry_run_calls(store)

    if outcome.should_exit(schemasync_config.is_production):
        sys.exit(1)


@main.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    required=True,
    help="Configuration file path",
)
@click.pass_context
@handle_errors
def plan(ctx, config: str):
    """Show the changes a migration would apply."""
    schemasync_config = _load_config(ctx, config)

    async def run_plan():
        async with RestSchemaStore(schemasync_config.store) as store:
            reconciler = SchemaReconciler.from_config(store, schemasync_config)
            return await reconciler.plan()

    change_sets = asyncio.run(run_plan())
    _display_plan(change_sets)


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

    try:
        schemasync_config = SchemaSyncConfig.from_yaml(config)

        console.print("[green]✓[/green] Configuration is valid")

        # Display configuration summary
        _display_config_summary(schemasync_config)

    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)


def _display_outcome(outcome: MigrationOutcome):
    """Display the result of a migration run."""
    if outcome.success:
        console.print(
            f"[green]✓[/green] Schemas migrated "
            f"(attempts: {outcome.attempts})"
        )
    else:
        console.print(
            f"[red]✗[/red] Schema migration failed after {outcome.attempts} "
            f"attempt(s): {outcome.error}"
        )

    result = outcome.result
    if result is None:
        return

    console.print(f"  Classes created: {len(result.classes_created)}")
    console.print(f"  Classes updated: {len(result.classes_updated)}")
    console.print(f"  Classes secured: {len(result.classes_secured)}")
    console.print(f"  Changes applied: {result.successful_changes}")
    if result.failed_changes:
        console.print(f"  [red]Changes failed: {result.failed_changes}[/red]")

    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")


def _display_dry_run_calls(store: InMemorySchemaStore):
    """Display the calls a dry run would have made."""
    table = Table(title="Dry Run Calls")
    table.add_column("Call", style="cyan")
    table.add_column("Class", style="magenta")
    table.add_column("Fields")
    table.add_column("Indexes")

    for call in store.mutating_calls():
        table.add_row(
            call.method,
            call.class_name or "",
            ", ".join(call.fields) or "-",
            ", ".join(call.indexes) or "-",
        )

    console.print(table)


def _display_plan(change_sets: Dict[str, ChangeSet]):
    """Display planned changes per class."""
    table = Table(title="Planned Schema Changes")
    table.add_column("Class", style="cyan")
    table.add_column("Change")

    for class_name, changes in change_sets.items():
        lines = changes.describe()
        if not lines:
            table.add_row(class_name, "[green]up to date[/green]")
            continue
        for i, line in enumerate(lines):
            table.add_row(class_name if i == 0 else "", line)

    console.print(table)


def _display_config_summary(config: SchemaSyncConfig):
    """Display configuration summary."""
    console.print(f"\n[bold]Environment:[/bold] {config.environment}")
    console.print(f"[bold]Server:[/bold] {config.store.server_url}")

    policy = config.migrations
    console.print(
        f"[bold]Policy:[/bold] strict={policy.strict}, "
        f"delete_extra_fields={policy.delete_extra_fields}, "
        f"recreate_modified_fields={policy.recreate_modified_fields}, "
        f"delete_extra_indexes={policy.delete_extra_indexes}"
    )

    table = Table(title="Declared Schemas")
    table.add_column("Class", style="cyan")
    table.add_column("Fields", justify="right")
    table.add_column("Indexes", justify="right")
    table.add_column("Permissions")

    for schema in policy.schemas:
        table.add_row(
            schema.class_name,
            str(len(schema.fields or {})),
            str(len(schema.indexes or {})),
            "declared" if schema.class_level_permissions else "[yellow]default[/yellow]",
        )

    console.print(table)


if __name__ == "__main__":
    main()
