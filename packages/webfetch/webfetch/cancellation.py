"""协作式取消：CancellationToken + run_cancellable（取消时中断进行中的请求/读 body）。"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Optional, TypeVar

from webfetch.errors import WebCancelledError

T = TypeVar("T")


class CancellationToken:
    """调用方持有；cancel() 后所有检查点抛 WebCancelledError。"""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise WebCancelledError("Request cancelled.")

    async def wait(self) -> None:
        await self._event.wait()


async def run_cancellable(awaitable: Awaitable[T], token: Optional[CancellationToken]) -> T:
    """等待 awaitable；token 先触发则 cancel 该任务并抛 WebCancelledError。"""
    if token is None:
        return await awaitable
    token.raise_if_cancelled()
    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()
    if task in done:
        return task.result()
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    raise WebCancelledError("Request cancelled.")
