"""Minimal observable state container shared by the cart and auth stores."""

from collections.abc import Callable
from typing import Generic, TypeVar

from storefront.logging import get_logger

logger = get_logger(__name__)

S = TypeVar("S")

Listener = Callable[[S], None]


class Store(Generic[S]):
    """
    Holds one immutable state snapshot and notifies subscribers on change.

    Subclasses replace the snapshot through `_set_state`; readers only ever
    see whole snapshots.
    """

    def __init__(self, initial_state: S):
        self._state = initial_state
        self._listeners: list[Listener] = []

    def get_state(self) -> S:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: S) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                # A broken view must not break the store
                logger.exception(f"{type(self).__name__} listener failed")
