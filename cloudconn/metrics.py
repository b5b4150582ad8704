"""Process-wide counters for control message handling."""

from __future__ import annotations

import threading


class Counter:
    """A monotonically increasing, thread-safe counter."""

    def __init__(self, name: str, help: str = "") -> None:
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def inc(self, amount: float = 1.0) -> float:
        """Add ``amount`` and return the new value; negative amounts are rejected."""
        if amount < 0:
            raise ValueError("counter cannot decrease")
        with self._lock:
            self._value += amount
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0.0

    def __repr__(self) -> str:
        return f"Counter(name={self.name!r}, value={self.value})"


_CONTROL_MESSAGE_RECEIVED = Counter(
    "cloud_connector_control_message_received_from_kafka_count",
    "The number of control messages received from the kafka topic",
)


def control_message_received_counter() -> Counter:
    """Return the counter of control messages received from kafka."""
    return _CONTROL_MESSAGE_RECEIVED