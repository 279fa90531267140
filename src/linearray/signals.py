"""Broadcast signal channel with explicit subscriber lists."""

from __future__ import annotations

import logging
import uuid

from .models import Signal, SignalHandler

logger = logging.getLogger(__name__)


class SignalBus:
    """
    Broadcast channel for lifecycle and domain signals.

    Subscribers register interest in a signal name and are called in
    subscription order when a signal with that name is published. All
    calls happen on the event loop thread, so no locking is needed.

    Example:
        bus = SignalBus()

        def on_truncate(signal: Signal) -> None:
            print(f"Lost {signal.data['delta']} bytes")

        sub_id = bus.subscribe("truncate", on_truncate)
        bus.publish(Signal(name="truncate", source="app.log", data={"delta": 12}))
        bus.unsubscribe(sub_id)
    """

    def __init__(self) -> None:
        # Map of signal name -> list of (subscription_id, handler) tuples
        self._subscribers: dict[str, list[tuple[str, SignalHandler]]] = {}

    def subscribe(self, name: str, handler: SignalHandler) -> str:
        """
        Subscribe to signals with the given name.

        Args:
            name: Signal name (e.g., "close")
            handler: Callable receiving the Signal

        Returns:
            Subscription ID for unsubscribing
        """
        subscription_id = str(uuid.uuid4())
        self._subscribers.setdefault(name, []).append((subscription_id, handler))

        logger.debug(
            "Subscribed to signal",
            extra={
                "signal_name": name,
                "subscription_id": subscription_id,
                "total_subscribers": len(self._subscribers[name]),
            },
        )
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """
        Remove a subscription.

        Returns:
            True if unsubscribed, False if ID not found
        """
        for subscribers in self._subscribers.values():
            for i, (sub_id, _) in enumerate(subscribers):
                if sub_id == subscription_id:
                    subscribers.pop(i)
                    return True
        return False

    def publish(self, signal: Signal) -> None:
        """
        Deliver a signal to all current subscribers synchronously.

        A handler that raises is logged and does not prevent the
        remaining handlers from running.
        """
        # Snapshot so handlers may unsubscribe while being called
        subscribers = list(self._subscribers.get(signal.name, []))

        if not subscribers:
            logger.debug("No subscribers for signal", extra={"signal_name": signal.name})
            return

        for subscription_id, handler in subscribers:
            try:
                handler(signal)
            except Exception as e:
                logger.error(
                    "Signal handler raised exception",
                    extra={
                        "signal_name": signal.name,
                        "subscription_id": subscription_id,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )

    def subscriber_count(self, name: str | None = None) -> int:
        """Number of subscribers for ``name``, or across all names."""
        if name is not None:
            return len(self._subscribers.get(name, []))
        return sum(len(subs) for subs in self._subscribers.values())
