"""In-process activity event source."""

from __future__ import annotations

import itertools
from typing import Callable

from .models import Consumer


class ActivityHub:
    """Routes activity signals for a consumer to the callbacks subscribed to it."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, tuple[Consumer, Callable[[], None]]] = {}

    def subscribe(self, consumer: Consumer, callback: Callable[[], None]) -> int:
        subscription_id = next(self._ids)
        self._subscriptions[subscription_id] = (consumer, callback)
        return subscription_id

    def unsubscribe(self, subscription_id: int) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    def notify(self, consumer: Consumer) -> int:
        """Fire every callback registered for ``consumer``; return how many fired."""

        callbacks = [callback for owner, callback in self._subscriptions.values() if owner == consumer]
        for callback in callbacks:
            callback()
        return len(callbacks)

    def __len__(self) -> int:
        return len(self._subscriptions)


__all__ = ["ActivityHub"]
