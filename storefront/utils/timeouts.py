"""Time-boxing helpers for collaborator calls."""
import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


class StepTimeout(Exception):
    """A time-boxed step did not finish in time."""

    def __init__(self, label: str, seconds: float):
        super().__init__(f"{label} timed out after {seconds}s")
        self.label = label
        self.seconds = seconds


async def time_boxed(awaitable: Awaitable[T], seconds: float, label: str) -> T:
    """
    Await with a deadline. The loser is cancelled and its result discarded.

    Raises:
        StepTimeout: deadline exceeded
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError:
        raise StepTimeout(label, seconds) from None
