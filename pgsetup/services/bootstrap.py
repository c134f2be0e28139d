from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncEngine

from pgsetup.config import Settings
from pgsetup.db import QueryExecutor, create_pool
from pgsetup.logging_config import ContextLogger
from pgsetup.models import EXIT_FAILURE, EXIT_NODAEMON, PrimaryDescriptor
from pgsetup.proc import CommandRunner
from pgsetup.resolver import PrimaryResolver
from pgsetup.services.context import ProvisioningContext
from pgsetup.services.errors import PgSetupException
from pgsetup.services.pipeline import ProvisioningPipeline, setup_postgres
from pgsetup.services.retry import YieldControl, next_tick
from pgsetup.services.sentinel import SentinelGate
from pgsetup.services.steps import build_steps

logger = logging.getLogger(__name__)

PoolFactory = Callable[[PrimaryDescriptor, Settings], AsyncEngine]


class BootstrapController:
    """One provisioning run, from primary discovery to exit status.

    Several instances may race to provision the same cluster; every step is
    safe to rerun, so that is fine. If the primary changes during the run the
    admin commands or queries fail and the run exits with a failure; the
    service supervisor restarts the program, which discovers the new primary.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        resolver: PrimaryResolver,
        pool_factory: PoolFactory = create_pool,
        runner: CommandRunner | None = None,
        gate: SentinelGate | None = None,
        yield_control: YieldControl = next_tick,
    ) -> None:
        self._settings = settings
        self._resolver = resolver
        self._pool_factory = pool_factory
        self._runner = runner
        self._gate = gate or SentinelGate(settings.sentinel_path)
        self._yield_control = yield_control
        self.pipeline = ProvisioningPipeline(build_steps(self._gate, yield_control=yield_control))

    async def run(self) -> int:
        logger.info("Fetching primary state")
        self._resolver.start()
        try:
            primary = await self._resolver.wait_for_primary()
        except PgSetupException as exc:
            logger.error("Failed to discover a database primary: %s", exc)
            return EXIT_FAILURE
        finally:
            self._resolver.stop()

        log = ContextLogger(
            logger,
            {"primary": str(primary), "flavor": self._settings.flavor.value},
        )
        try:
            engine = self._pool_factory(primary, self._settings)
        except Exception:
            log.exception("Failed to create connection pool")
            return EXIT_FAILURE
        db = QueryExecutor(engine, log=log)
        ctx = ProvisioningContext(
            primary=primary,
            settings=self._settings,
            db=db,
            log=log,
            runner=self._runner,
        )
        try:
            await setup_postgres(ctx, gate=self._gate, pipeline=self.pipeline)
        except PgSetupException as exc:
            log.error("Failed to set up postgres: %s", exc)
            return EXIT_FAILURE
        except Exception:
            log.exception("Failed to set up postgres")
            return EXIT_FAILURE
        finally:
            await db.close()

        log.info("Successfully set up postgres")
        return EXIT_NODAEMON
