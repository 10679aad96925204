from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from uptime_engine.utils.exceptions import StorageError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def retry_write(
    operation: str,
    write: Callable[[], Awaitable[T]],
    retries: int = 3,
    base_delay: float = 0.5,
) -> T:
    """
    Run a storage write, retrying ``StorageError`` with exponential backoff.

    The last error is re-raised once ``retries`` extra attempts are used up.
    """
    attempt = 0
    while True:
        try:
            return await write()
        except StorageError as exc:
            if attempt >= retries:
                logger.error(
                    "storage_write_failed",
                    operation=operation,
                    attempts=attempt + 1,
                    error=str(exc),
                )
                raise
            backoff = base_delay * (2**attempt + random.uniform(0, 1))
            logger.warning(
                "storage_write_retry",
                operation=operation,
                attempt=attempt + 1,
                backoff_seconds=round(backoff, 2),
                error=str(exc),
            )
            attempt += 1
            await asyncio.sleep(backoff)
