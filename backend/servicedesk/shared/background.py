from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import anyio

logger = logging.getLogger(__name__)

_pending: set[asyncio.Task[Any]] = set()


def schedule_background(factory: Callable[[], Awaitable[Any]], *, name: str) -> None:
    """Run ``factory()`` after the response without ever failing the caller."""

    async def _spawn() -> None:
        try:
            await factory()
        except Exception as exc:  # noqa: BLE001
            logger.warning("background_task_failed", extra={"extra": {"task": name, "reason": type(exc).__name__}})

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        anyio.from_thread.run(_spawn)
    else:
        task = loop.create_task(_spawn(), name=name)
        _pending.add(task)
        task.add_done_callback(_pending.discard)


async def drain_background(timeout: float = 5.0) -> None:
    if not _pending:
        return
    await asyncio.wait(list(_pending), timeout=timeout)
