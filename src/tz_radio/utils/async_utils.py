"""Async bridge for blocking calls (DNS lookups, settings file IO)."""

from __future__ import annotations

import asyncio
import atexit
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_IO_EXECUTOR = ThreadPoolExecutor(max_workers=2, thread_name_prefix="tz-radio-io")


@atexit.register
def _shutdown_io_executor() -> None:
    _IO_EXECUTOR.shutdown(wait=False, cancel_futures=True)


def _submit(func: Callable[..., T], args: tuple[Any, ...], kwargs: dict[str, Any]):
    if not callable(func):
        raise TypeError("func must be callable")
    loop = asyncio.get_running_loop()
    if kwargs:
        return loop.run_in_executor(_IO_EXECUTOR, partial(func, *args, **kwargs))
    return loop.run_in_executor(_IO_EXECUTOR, func, *args)


async def run_blocking(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run blocking callable on the IO executor and await its result."""
    future = _submit(func, args, kwargs)
    # Some environments can miss thread->loop wakeups for executor completion.
    # Polling with a short timeout keeps completion deterministic.
    while True:
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=0.1)
        except asyncio.TimeoutError:
            continue


async def run_blocking_bounded(
    timeout_s: float, func: Callable[..., T], /, *args: Any
) -> T:
    """Like `run_blocking`, but give up after `timeout_s` with `TimeoutError`.

    The worker thread keeps running to completion; only the wait is bounded.
    """
    future = _submit(func, args, {})
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_s
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise TimeoutError(f"{getattr(func, '__name__', 'call')} timed out")
        try:
            return await asyncio.wait_for(
                asyncio.shield(future), timeout=min(0.1, remaining)
            )
        except asyncio.TimeoutError:
            continue
