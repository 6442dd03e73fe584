from __future__ import annotations

import asyncio
from logging import Logger
from typing import Any, Callable, Mapping, TypeVar

from oracle_relay.utils.logger import log_debug

T = TypeVar("T")


async def to_thread_limited(
    fn: Callable[..., T],
    *args: Any,
    limiter: asyncio.Semaphore | None = None,
    logger: Logger | None = None,
    context: Mapping[str, Any] | None = None,
    op: str | None = None,
    **kwargs: Any,
) -> T:
    """Run a blocking call in a worker thread, optionally bounded by `limiter`.

    Exceptions from `fn` propagate unchanged.
    """
    if logger is not None and op is not None:
        log_debug(logger, "asyncio.to_thread", op=op, **dict(context or {}))
    if limiter is None:
        return await asyncio.to_thread(fn, *args, **kwargs)
    async with limiter:
        return await asyncio.to_thread(fn, *args, **kwargs)
