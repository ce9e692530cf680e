"""
Maintenance command line for Portal APR.

Usage::

    portal-apr create-admin --rut 11.111.111-1 --email admin@apr.cl ...
    portal-apr sync-payments --watch
    portal-apr serve --reload

Every command opens its own database session from ``DATABASE_URL``. Tests
pass another session factory through the click context object.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import click
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_apr.core.database import async_session_maker
from portal_apr.core.database.entities.users import UserRole
from portal_apr.core.errors import PortalError
from portal_apr.core.logging_config import get_logger, setup_logging
from portal_apr.server.core.config import settings
from portal_apr.server.services.auth import AuthService
from portal_apr.server.services.overdue import check_and_notify_overdue
from portal_apr.server.services.reconciliation import AutoSyncWorker, ReconciliationService
from portal_apr.server.services.tarifas import TarifaService

logger = get_logger(__name__)

T = TypeVar("T")


def _run(ctx: click.Context, job: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run ``job`` with a fresh session, turning domain errors into click errors."""
    session_factory: async_sessionmaker[AsyncSession] = ctx.obj["session_factory"]

    async def runner() -> T:
        async with session_factory() as session:
            return await job(session)

    try:
        return asyncio.run(runner())
    except PortalError as e:
        raise click.ClickException(e.message) from e


@click.group()
@click.option("--log-level", default=None, help="Override PORTAL_APR_LOG_LEVEL")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Portal APR maintenance commands."""
    setup_logging(log_level=log_level, enable_file=False)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("session_factory", async_session_maker)


@cli.command("create-admin")
@click.option("--rut", required=True)
@click.option("--email", required=True)
@click.option("--nombres", required=True)
@click.option("--apellidos", required=True)
@click.option("--password", required=True, prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--super", "is_super", is_flag=True, help="Create a super_admin (can answer chat)")
@click.pass_context
def create_admin(
    ctx: click.Context, rut: str, email: str, nombres: str, apellidos: str, password: str, is_super: bool
) -> None:
    """Create an administrator account."""
    role = UserRole.SUPER_ADMIN if is_super else UserRole.ADMIN

    async def job(session: AsyncSession) -> Any:
        return await AuthService(session).create_user(
            rut=rut, nombres=nombres, apellidos=apellidos, email=email, password=password, role=role
        )

    user = _run(ctx, job)
    click.echo(f"[OK] {role.value} created: id={user.id}, rut={user.rut}, email={user.email}")


@cli.command("reset-password")
@click.option("--identifier", required=True, help="RUT (any format) or email")
@click.option("--password", required=True, prompt=True, hide_input=True, confirmation_prompt=True)
@click.pass_context
def reset_password(ctx: click.Context, identifier: str, password: str) -> None:
    """Set a user's password directly."""

    async def job(session: AsyncSession) -> Any:
        service = AuthService(session)
        user = await service.find_by_identifier(identifier)
        if user is None:
            raise click.ClickException(f"No user matches {identifier!r}")
        return await service.set_password(user, password)

    user = _run(ctx, job)
    click.echo(f"[OK] Password updated for {user.rut}")


@cli.command("fix-tarifa-activa")
@click.pass_context
def fix_tarifa_activa(ctx: click.Context) -> None:
    """Leave only the most recent active tariff active."""

    async def job(session: AsyncSession) -> Any:
        return await TarifaService(session).enforce_single_active()

    keeper = _run(ctx, job)
    if keeper is None:
        click.echo("[WARN] There is no active tariff.")
    else:
        click.echo(f"[OK] Active tariff: {keeper.nombre} (id={keeper.id})")


@cli.command("sync-debt")
@click.pass_context
def sync_debt(ctx: click.Context) -> None:
    """Recalculate every socio's debt from their overdue boletas."""

    async def job(session: AsyncSession) -> Any:
        return await ReconciliationService(session).sync_user_debt()

    result = _run(ctx, job)
    click.echo(
        f"[OK] {result.users_processed} socios processed, {result.users_with_changes} updated. "
        f"Total debt: {result.total_debt_before} -> {result.total_debt_after}"
    )
    for error in result.errors:
        click.echo(f"[ERROR] user {error.user_id}: {error.error}", err=True)


@cli.command("sync-payments")
@click.option("--watch", is_flag=True, help="Keep running, one pass every AUTO_SYNC_INTERVAL_SECONDS")
@click.pass_context
def sync_payments(ctx: click.Context, watch: bool) -> None:
    """Mark paid the boletas of completed payments."""
    if not watch:

        async def job(session: AsyncSession) -> Any:
            return await ReconciliationService(session).auto_sync_pass()

        click.echo(f"[OK] {_run(ctx, job)} boleta(s) updated")
        return

    worker = AutoSyncWorker(ctx.obj["session_factory"], settings.jobs.auto_sync_interval_seconds)

    async def watch_loop() -> None:
        worker.start()
        try:
            await asyncio.Event().wait()
        finally:
            await worker.stop()

    click.echo(f"Watching for unsynced payments every {settings.jobs.auto_sync_interval_seconds}s (Ctrl+C to stop)")
    try:
        asyncio.run(watch_loop())
    except KeyboardInterrupt:
        click.echo(f"Stopped after {worker.passes} pass(es)")


@cli.command("check-overdue")
@click.pass_context
def check_overdue(ctx: click.Context) -> None:
    """Mark overdue boletas and notify their socios."""

    async def job(session: AsyncSession) -> Any:
        return await check_and_notify_overdue(session)

    updated, notified = _run(ctx, job)
    click.echo(f"[OK] {updated} boleta(s) marked overdue, {notified} notification(s) sent")


@cli.command("serve")
@click.option("--host", default=None, help="Defaults to PORTAL_APR_SERVER_HOST")
@click.option("--port", default=None, type=int, help="Defaults to PORTAL_APR_SERVER_PORT")
@click.option("--reload", is_flag=True)
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "portal_apr.server.main:app",
        host=host or settings.server_host,
        port=port or settings.server_port,
        reload=reload,
    )


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
