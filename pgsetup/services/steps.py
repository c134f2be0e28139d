from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from pgsetup.models import (
    Flavor,
    RESERVE_CONNECTIONS,
    SHOW_MAX_CONNECTIONS_SQL,
    alter_buckets_config_owner_sql,
    alter_role_connection_limit_sql,
    create_buckets_config_sql,
)
from pgsetup.proc import CommandResult, execute
from pgsetup.services.connection_limit import compute_connection_limit, parse_max_connections
from pgsetup.services.context import ProvisioningContext
from pgsetup.services.errors import PgSetupException
from pgsetup.services.retry import YieldControl, next_tick, retry_until_success
from pgsetup.services.sentinel import SentinelGate

StepFn = Callable[[ProvisioningContext], Awaitable[None]]


@dataclass(frozen=True)
class ProvisioningStep:
    name: str
    run: StepFn


async def _run_admin_command(ctx: ProvisioningContext, argv: list[str]) -> CommandResult:
    ctx.log.info("Executing command cmd=%s argv=%s", argv[0], argv)
    return await asyncio.to_thread(execute, argv, runner=ctx.runner)


def _target_args(ctx: ProvisioningContext) -> list[str]:
    return ["-h", ctx.primary.address, "-p", str(ctx.primary.port)]


async def wait_until_ready(ctx: ProvisioningContext, *, yield_control: YieldControl = next_tick) -> None:
    """Probe the primary with a trivial query until it answers."""
    argv = [
        "psql",
        "-U", ctx.settings.admin_user,
        "-d", "postgres",
        *_target_args(ctx),
        "-c", "SELECT now() AS when;",
    ]

    async def probe() -> bool:
        result = await _run_admin_command(ctx, argv)
        if not result.ok:
            ctx.log.warning("Database not yet ready: %s", result.as_log_fields())
        return result.ok

    attempts = await retry_until_success(probe, yield_control=yield_control)
    ctx.log.info("Database is now ready after %s attempt(s)", attempts)


async def create_role(ctx: ProvisioningContext) -> None:
    """Create the non-superuser service role.

    The role may create databases but neither roles nor superusers. createuser
    does not tell "already exists" apart from other failures in its exit
    status, so a failure is assumed to be a rerun and is not propagated; steps
    that need the role fail later if it really is missing.
    """
    role = ctx.settings.role
    argv = [
        "createuser",
        "-U", ctx.settings.admin_user,
        *_target_args(ctx),
        "-d", "-S", "-R",
        role,
    ]
    result = await _run_admin_command(ctx, argv)
    if result.ok:
        ctx.log.info("Created new %s role", role)
        return
    ctx.log.warning(
        "Failed to create %r role; continuing under the assumption that it already exists: %s",
        role,
        result.as_log_fields(),
    )


async def set_connection_limit(ctx: ProvisioningContext) -> None:
    """Cap the service role's connections below the server's max_connections.

    Only applies to the manta flavor. Any doubt about the server capacity skips
    the limit with a warning; failing to apply a computed limit is an error.
    """
    if ctx.flavor is not Flavor.MANTA:
        ctx.log.debug("Skipping connection limit for flavor=%s", ctx.flavor.value)
        return

    role = ctx.settings.role
    not_applied = f"role property 'rolconnlimit' not applied to {role!r}"
    try:
        rows = await ctx.db.query(SHOW_MAX_CONNECTIONS_SQL)
    except PgSetupException as exc:
        ctx.log.warning("Unable to retrieve postgres max_connections (%s); %s", exc, not_applied)
        return

    capacity = parse_max_connections(rows)
    if capacity is None:
        ctx.log.warning("No usable max_connections result returned (rows=%r); %s", rows, not_applied)
        return

    limit = compute_connection_limit(capacity)
    if limit is None:
        ctx.log.warning(
            "Maximum allowed postgres connections is not above the reserve "
            "(max_connections=%s reserve_connections=%s); %s",
            capacity,
            RESERVE_CONNECTIONS,
            not_applied,
        )
        return

    await ctx.db.query(alter_role_connection_limit_sql(role, limit))
    ctx.log.info("Set %s role connection limit to %s", role, limit)


async def create_database(ctx: ProvisioningContext) -> None:
    """Create the service database owned by the service role.

    Databases cannot be created conditionally, so failure is treated like
    create_role: most likely it already exists.
    """
    database = ctx.settings.database
    argv = [
        "createdb",
        "-U", ctx.settings.admin_user,
        "-T", "template0",
        "--locale=C",
        "-E", "UNICODE",
        "-O", ctx.settings.role,
        *_target_args(ctx),
        database,
    ]
    result = await _run_admin_command(ctx, argv)
    if result.ok:
        ctx.log.info("Created new %r database", database)
        return
    ctx.log.warning("Failed to create %r database: %s", database, result.as_log_fields())


async def create_table(ctx: ProvisioningContext) -> None:
    await ctx.db.query(create_buckets_config_sql())


async def change_table_owner(ctx: ProvisioningContext) -> None:
    await ctx.db.query(alter_buckets_config_owner_sql(ctx.settings.role))


def write_sentinel(gate: SentinelGate) -> StepFn:
    async def _write_sentinel(ctx: ProvisioningContext) -> None:
        await asyncio.to_thread(gate.commit)

    return _write_sentinel


def build_steps(gate: SentinelGate, *, yield_control: YieldControl = next_tick) -> list[ProvisioningStep]:
    async def _wait_until_ready(ctx: ProvisioningContext) -> None:
        await wait_until_ready(ctx, yield_control=yield_control)

    return [
        ProvisioningStep("wait-until-ready", _wait_until_ready),
        ProvisioningStep("create-role", create_role),
        ProvisioningStep("set-connection-limit", set_connection_limit),
        ProvisioningStep("create-database", create_database),
        ProvisioningStep("create-table", create_table),
        ProvisioningStep("change-table-owner", change_table_owner),
        ProvisioningStep("write-sentinel", write_sentinel(gate)),
    ]
