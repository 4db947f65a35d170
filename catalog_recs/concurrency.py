"""Concurrent fan-out of repository queries."""

from __future__ import annotations
import asyncio
from typing import Any, Awaitable


async def gather_or_cancel(*aws: Awaitable[Any]) -> list[Any]:
    """
    Like asyncio.gather(), but when one awaitable fails the others are
    cancelled and awaited before the error propagates, so no query keeps
    running (or holding a pool connection) after its request has failed.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
