"""Unit tests for SignalBus implementation."""

from linearray.models import Signal
from linearray.signals import SignalBus


class TestSignalBusBasics:
    """Test basic SignalBus functionality."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.bus = SignalBus()

    def test_subscribe_returns_id(self) -> None:
        """Test that subscribe returns a unique subscription ID."""
        sub_id1 = self.bus.subscribe("open", lambda s: None)
        sub_id2 = self.bus.subscribe("open", lambda s: None)

        assert isinstance(sub_id1, str)
        assert sub_id1 != sub_id2
        assert self.bus.subscriber_count("open") == 2

    def test_unsubscribe(self) -> None:
        """Test unsubscribing existing and unknown subscriptions."""
        sub_id = self.bus.subscribe("close", lambda s: None)

        assert self.bus.unsubscribe(sub_id) is True
        assert self.bus.unsubscribe(sub_id) is False
        assert self.bus.subscriber_count("close") == 0

    def test_publish_without_subscribers(self) -> None:
        """Test publishing with nobody listening does not raise."""
        self.bus.publish(Signal(name="stat", source="test"))

    def test_publish_in_subscription_order(self) -> None:
        """Test handlers run in the order they subscribed."""
        calls: list[str] = []
        self.bus.subscribe("truncate", lambda s: calls.append("first"))
        self.bus.subscribe("truncate", lambda s: calls.append("second"))
        self.bus.subscribe("close", lambda s: calls.append("other"))

        self.bus.publish(Signal(name="truncate", source="test", data={"delta": 3}))

        assert calls == ["first", "second"]

    def test_handler_exception_isolated(self) -> None:
        """Test a failing handler does not stop the others."""
        received: list[Signal] = []

        def broken(signal: Signal) -> None:
            raise RuntimeError("boom")

        self.bus.subscribe("open", broken)
        self.bus.subscribe("open", received.append)

        signal = Signal(name="open", source="test", data={"fd": 3})
        self.bus.publish(signal)

        assert received == [signal]

    def test_unsubscribe_during_publish(self) -> None:
        """Test a handler may unsubscribe itself while being called."""
        calls: list[int] = []
        sub_ids: list[str] = []

        def once(signal: Signal) -> None:
            calls.append(1)
            self.bus.unsubscribe(sub_ids[0])

        sub_ids.append(self.bus.subscribe("close", once))
        self.bus.publish(Signal(name="close", source="test"))
        self.bus.publish(Signal(name="close", source="test"))

        assert calls == [1]

    def test_total_subscriber_count(self) -> None:
        """Test counting across all names."""
        self.bus.subscribe("open", lambda s: None)
        self.bus.subscribe("close", lambda s: None)

        assert self.bus.subscriber_count() == 2

