from __future__ import annotations

import asyncio
from typing import Any, Callable, TypeVar

from ..storage import StoreUnavailable
from .errors import TransientIOError

T = TypeVar("T")


async def run_blocking(
    fn: Callable[..., T],
    *args: Any,
    timeout: float | None = None,
) -> T:
    """Run a synchronous store/directory call in a worker thread.

    Timeouts and adapter I/O failures surface as ``TransientIOError``; domain
    errors such as ``ScopeNotFound`` pass through untouched.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout)
    except asyncio.TimeoutError as exc:
        name = getattr(fn, "__qualname__", repr(fn))
        raise TransientIOError(f"{name} timed out after {timeout}s") from exc
    except (StoreUnavailable, ConnectionError) as exc:
        raise TransientIOError(str(exc)) from exc
