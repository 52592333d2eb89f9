#!/usr/bin/env python3
"""AutoInspect management CLI.

Runs the inspection service, manages its PostgreSQL schema, bootstraps a
business admin and inspects or replays the field client's offline queue.
"""

import asyncio
import os
import subprocess
import sys

import click


def _run(args: list[str], *, replace: bool = False) -> None:
    click.echo(
        f"  {click.style('>', dim=True)} {click.style(' '.join(args), dim=True)}\n"
    )
    if replace:
        os.execvp(args[0], args)
    result = subprocess.run(args)
    if result.returncode != 0:
        click.echo(
            f"  {click.style('✗', fg='red')} exited with code {result.returncode}"
        )
        sys.exit(result.returncode)


def _ok(text: str) -> None:
    click.echo(f"  {click.style('✓', fg='green')} {text}")


def _fail(text: str) -> None:
    click.echo(f"  {click.style('✗', fg='red')} {text}")
    sys.exit(1)


def _header(text: str) -> None:
    click.echo(f"\n  {click.style(text, fg='cyan', bold=True)}\n")


@click.group()
def cli() -> None:
    """Manage the AutoInspect service and the local field client state."""


@cli.command()
@click.argument("uvicorn_args", nargs=-1)
def app(uvicorn_args: tuple[str, ...]) -> None:
    """Serve the inspection API (jobs, negotiation, realtime feed) with reload."""
    _header("Starting AutoInspect API")
    _run(
        ["uv", "run", "uvicorn", "src.app:app", "--reload", *uvicorn_args], replace=True
    )


@cli.group()
def db() -> None:
    """Manage the inspection database (PostgreSQL + alembic)."""


@db.command()
def up() -> None:
    """Start the inspection database container."""
    _header("Starting inspection database")
    _run(["docker", "compose", "up", "-d"])
    _ok("Inspection database is running")


@db.command()
def down() -> None:
    """Stop the inspection database container."""
    _header("Stopping inspection database")
    _run(["docker", "compose", "down"])
    _ok("Inspection database stopped")


@db.command()
def migrate() -> None:
    """Create or upgrade the jobs, offers and push token tables."""
    _header("Upgrading inspection schema")
    _run(["uv", "run", "alembic", "upgrade", "head"])
    _ok("Inspection schema is at head")


@db.command()
@click.argument("message", default="auto")
def revision(message: str) -> None:
    """Autogenerate a schema migration from the current models."""
    _header(f"Generating migration: {message}")
    _run(["uv", "run", "alembic", "revision", "--autogenerate", "-m", message])
    _ok("Migration generated")


@cli.command("create-admin")
@click.option("--business", "business_name", required=True)
@click.option("--name", required=True)
@click.option("--email", required=True)
@click.password_option()
def create_admin(business_name: str, name: str, email: str, password: str) -> None:
    """Create a business together with its first admin."""
    from src.base.db import async_session
    from src.user.staff import StaffError, create_business_admin

    async def _create() -> None:
        async with async_session() as session:
            await create_business_admin(
                session,
                business_name=business_name,
                name=name,
                email=email,
                password=password,
            )
            await session.commit()

    _header(f"Creating admin {email}")
    try:
        asyncio.run(_create())
    except StaffError as exc:
        _fail(str(exc))
    _ok(f"Admin created for {business_name}")


@cli.group()
def queue() -> None:
    """Inspect and replay this device's offline queue."""


@queue.command()
def status() -> None:
    """List queued offline actions."""
    from src.client.network import NetworkMonitor
    from src.client.queue import ActionExecutor, OfflineQueue, PendingAction
    from src.client.storage import LocalStore

    class _Unused(ActionExecutor):
        async def execute(self, action: PendingAction) -> None:
            raise RuntimeError("status does not replay actions")

    store = LocalStore()
    pending = OfflineQueue(
        store=store, monitor=NetworkMonitor(online=False), executor=_Unused()
    ).pending
    _header(f"{len(pending)} queued action(s) in {store.path}")
    for action in pending:
        click.echo(
            f"  {action.enqueued_at:%Y-%m-%d %H:%M:%S}  {action.type.value:<18}"
            f" retries={action.retry_count}  {action.id}"
        )


@queue.command()
@click.option("--user", "identity", required=True, help="X-User value, name:email")
def sync(identity: str) -> None:
    """Replay queued actions against the service now."""
    from src.client import create_field_client

    async def _sync() -> None:
        field_client = create_field_client(identity)
        try:
            if not await field_client.monitor.probe():
                _fail("Service is unreachable, nothing synced")
            report = await field_client.queue.sync()
        finally:
            await field_client.aclose()
        _ok(
            f"{report.synced} synced, {report.failed} failed, "
            f"{report.dropped} dropped, {report.remaining} remaining"
        )

    _header("Syncing offline actions")
    asyncio.run(_sync())


@cli.command()
@click.argument("pytest_args", nargs=-1)
def test(pytest_args: tuple[str, ...]) -> None:
    """Run pytest."""
    _header("Running tests")
    _run(["uv", "run", "pytest", "tests/", "-v", *pytest_args], replace=True)


@cli.command()
def lint() -> None:
    """Run mypy."""
    _header("Running mypy")
    _run(["uv", "run", "mypy", "."])
    _ok("Type check passed")


if __name__ == "__main__":
    cli()
