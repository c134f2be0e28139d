from __future__ import annotations

import asyncio
import logging

from pgsetup.models import PrimaryDescriptor
from pgsetup.services.errors import DiscoveryException

logger = logging.getLogger(__name__)


class PrimaryResolver:
    """Long-lived notifier announcing writable primaries.

    Only the first announcement after `start()` is delivered to
    `wait_for_primary()`; later ones are logged and dropped.
    """

    def __init__(self) -> None:
        self._first: asyncio.Future[PrimaryDescriptor] | None = None

    def _future(self) -> asyncio.Future[PrimaryDescriptor]:
        if self._first is None:
            self._first = asyncio.get_running_loop().create_future()
        return self._first

    def start(self) -> None:
        self._future()
        logger.info("Started primary discovery (%s)", type(self).__name__)

    def stop(self) -> None:
        first = self._future()
        if not first.done():
            first.set_exception(DiscoveryException("primary discovery stopped before a primary was announced"))
        logger.debug("Stopped primary discovery (%s)", type(self).__name__)

    def _announce(self, primary: PrimaryDescriptor) -> bool:
        first = self._future()
        if first.done():
            logger.debug("Ignoring primary announcement after the first: %s", primary)
            return False
        logger.info("Primary available: %s", primary)
        first.set_result(primary)
        return True

    async def wait_for_primary(self) -> PrimaryDescriptor:
        return await asyncio.shield(self._future())


class StaticPrimaryResolver(PrimaryResolver):
    """Announces one configured primary on the loop iteration after start()."""

    def __init__(self, primary: PrimaryDescriptor) -> None:
        super().__init__()
        self._primary = primary

    def start(self) -> None:
        super().start()
        asyncio.get_running_loop().call_soon(self._announce, self._primary)
