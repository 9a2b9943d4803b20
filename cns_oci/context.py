"""Utilities for context tracing and cancellation checkpoints."""

import asyncio
import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator

from .exceptions import OperationCanceledError

_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


trace: contextvars.ContextVar[list[str]] = contextvars.ContextVar("trace")


@contextmanager
def trace_context(name: str) -> Generator[None, None, None]:
    stack = trace.get([])
    token = trace.set(stack + [name])
    label = " > ".join(stack + [name])
    t1 = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    finally:
        t2 = perf_counter()
        trace.reset(token)
        _LOGGER.debug("[Trace] < %s (%0.2fs)", label, (t2 - t1))


async def checkpoint(stage: str) -> None:
    """Yield to the event loop and surface a pending cancellation.

    A cancellation requested for the current task is delivered here and
    reported as an `OperationCanceledError` naming the stage that was about
    to start, with the `asyncio.CancelledError` chained as its cause.
    """
    try:
        await asyncio.sleep(0)
    except asyncio.CancelledError as err:
        raise OperationCanceledError(stage) from err
    # A cancellation delivered at an earlier checkpoint stays in effect.
    if (task := asyncio.current_task()) is not None and task.cancelling():
        raise OperationCanceledError(stage)
