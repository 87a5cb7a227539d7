"""Command line interface for database migrations."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, NoReturn, Optional, TypeVar

import typer

from saas_data.core.exceptions import AppException
from saas_data.core.logging import setup_logging
from saas_data.core.settings import DatabaseTarget, Settings, get_settings
from saas_data.database.connection_manager import ConnectionManager
from saas_data.database.migrations.executor import MigrationExecutor

T = TypeVar("T")

app = typer.Typer(
    help="saas-data - database migrations for PostgreSQL and MongoDB",
    no_args_is_help=True,
)

TargetArg = typer.Argument(..., help="Database target.")
NameArg = typer.Argument(..., help="Migration name (converted to PascalCase).")
MigrationsPathOpt = typer.Option(
    None,
    "--migrations-path",
    "-m",
    help="Root migrations directory (overrides MIGRATIONS_PATH).",
)


# ==============================================================================
# HELPERS
# ==============================================================================

def _settings(migrations_path: Optional[str]) -> Settings:
    settings = get_settings()
    if migrations_path:
        settings = settings.model_copy(update={"MIGRATIONS_PATH": migrations_path})
    return settings


def _die(exc: AppException) -> NoReturn:
    """Print an application error and exit with code 1."""
    typer.secho(f"Error: {exc.message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(1) from exc


def _run(
    settings: Settings,
    work: Callable[[MigrationExecutor], Awaitable[T]],
    connect: bool = True,
) -> T:
    """Run ``work`` with an executor, opening connections when needed."""

    async def _main() -> T:
        if not connect:
            return await work(MigrationExecutor(settings=settings))
        async with ConnectionManager(settings) as connections:
            return await work(MigrationExecutor(connections))

    try:
        return asyncio.run(_main())
    except AppException as e:
        _die(e)


def _echo_file_result(result: Any) -> None:
    if result.created:
        typer.secho(f"Created {result.path}", fg=typer.colors.GREEN)
    else:
        typer.echo("No changes detected; no migration written.")


# ==============================================================================
# COMMANDS
# ==============================================================================

@app.callback()
def _init() -> None:
    """Configure logging from settings."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)


@app.command()
def run(
    target: DatabaseTarget = TargetArg,
    migrations_path: Optional[str] = MigrationsPathOpt,
) -> None:
    """Apply every pending migration of a target."""
    result = _run(_settings(migrations_path), lambda ex: ex.run_migrations(target))
    if not result.count:
        typer.echo(f"No pending migrations for {target.value}.")
        return
    for name in result.applied:
        typer.secho(f"Applied {name}", fg=typer.colors.GREEN)
    typer.echo(f"{result.count} migration(s) applied to {target.value}.")


@app.command()
def revert(
    target: DatabaseTarget = TargetArg,
    migrations_path: Optional[str] = MigrationsPathOpt,
) -> None:
    """Revert the most recently executed migration of a target."""
    name = _run(_settings(migrations_path), lambda ex: ex.revert_last_migration(target))
    typer.secho(f"Reverted {name}", fg=typer.colors.YELLOW)


@app.command()
def generate(
    target: DatabaseTarget = TargetArg,
    name: str = NameArg,
    migrations_path: Optional[str] = MigrationsPathOpt,
) -> None:
    """Write a migration from the difference between entities and the database."""
    result = _run(_settings(migrations_path), lambda ex: ex.generate_migration(target, name))
    _echo_file_result(result)


@app.command()
def create(
    target: DatabaseTarget = TargetArg,
    name: str = NameArg,
    migrations_path: Optional[str] = MigrationsPathOpt,
) -> None:
    """Write a blank migration."""
    result = _run(
        _settings(migrations_path),
        lambda ex: ex.create_migration(target, name),
        connect=False,
    )
    _echo_file_result(result)


@app.command()
def status(
    target: DatabaseTarget = TargetArg,
    migrations_path: Optional[str] = MigrationsPathOpt,
) -> None:
    """Show executed and pending migrations of a target."""
    report = _run(_settings(migrations_path), lambda ex: ex.get_migration_status(target))
    typer.echo(f"Executed ({len(report.executed)}):")
    for name in report.executed:
        typer.secho(f"  {name}", fg=typer.colors.GREEN)
    typer.echo(f"Pending ({len(report.pending)}):")
    for name in report.pending:
        typer.secho(f"  {name}", fg=typer.colors.YELLOW)


@app.command()
def history(
    target: DatabaseTarget = TargetArg,
    migrations_path: Optional[str] = MigrationsPathOpt,
) -> None:
    """Show every recorded migration attempt of a target."""
    records = _run(_settings(migrations_path), lambda ex: ex.get_migration_history(target))
    if not records:
        typer.echo(f"No migration history for {target.value}.")
        return
    for record in records:
        color = typer.colors.GREEN if record.status == "success" else typer.colors.RED
        line = (
            f"{record.executed_at.isoformat()}  {record.direction:<4}  "
            f"{record.status:<7}  {record.duration_ms:>9.1f}ms  {record.name}"
        )
        if record.error:
            line += f"  ({record.error})"
        typer.secho(line, fg=color)


if __name__ == "__main__":
    app()
