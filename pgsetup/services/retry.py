from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Attempt = Callable[[], Awaitable[bool]]
YieldControl = Callable[[], Awaitable[None]]


async def next_tick() -> None:
    await asyncio.sleep(0)


async def retry_until_success(attempt: Attempt, *, yield_control: YieldControl = next_tick) -> int:
    """Call `attempt` until it returns True and return the number of calls.

    There is no attempt cap and no backoff: between two attempts control goes
    back to the scheduler once through `yield_control`.
    """
    attempts = 0
    while True:
        attempts += 1
        if await attempt():
            return attempts
        logger.debug("Attempt %s did not succeed; rescheduling", attempts)
        await yield_control()
