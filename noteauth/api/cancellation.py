"""Abort outbound provider calls when the inbound client goes away."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from fastapi import Request

from noteauth.core.errors import ClientDisconnectedError
from noteauth.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DISCONNECT_POLL_INTERVAL = 0.25


async def run_until_disconnected(
    request: Request,
    call: Awaitable[T],
    *,
    poll_interval: float = DISCONNECT_POLL_INTERVAL,
) -> T:
    """Await ``call``, cancelling it if the client disconnects first."""
    task = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("client_disconnected", path=request.url.path)
                raise ClientDisconnectedError()
    finally:
        if not task.done():
            task.cancel()
