"""
Async offloading for engine operations.

The computations are short and CPU-bound, but callers see them as
asynchronous results: work runs on a worker thread so the caller's event
loop is never occupied. A caller that stops waiting (timeout, cancellation)
does not interrupt the worker, so a started transition always completes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TypeVar

from loguru import logger

from companion.core.errors import CompanionError, ComputationError

T = TypeVar("T")


async def run_operation(operation: str, fn: Callable[..., T], *args, **kwargs) -> T:
    """
    Run fn on a worker thread and return its result.

    Engine errors (ValidationError, NotFoundError, ...) propagate unchanged.
    Anything else is logged and re-raised as ComputationError.

    Args:
        operation: Human-readable operation name for logs and errors
        fn: Synchronous callable doing the work
    """
    try:
        return await asyncio.to_thread(fn, *args, **kwargs)
    except CompanionError:
        raise
    except Exception as exc:
        logger.exception(f"Unexpected failure during {operation}")
        raise ComputationError(operation, f"Failed to {operation}: {exc}") from exc
