"""
Observable state

Thread-safe holder for the small pieces of state that background work shares
with observers (loading flag, scan flag, scan progress). Replaces bare mutable
attributes with a value that can be read, replaced and subscribed to.
"""
import logging
import threading
from typing import Callable, Generic, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObservableValue(Generic[T]):
    """
    A value guarded by a lock that notifies subscribers on every change.

    Subscribers are called synchronously, outside the lock, in the thread
    that performed the update. A failing subscriber is logged and skipped so
    that it cannot abort the publishing work.
    """

    def __init__(self, initial: T, *, name: str = "value"):
        self._value = initial
        self._name = name
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self.get()

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value
            subscribers = list(self._subscribers)
        self._notify(subscribers, value)

    def compare_and_set(self, expected: T, value: T) -> bool:
        """Atomically replace the value only if it currently equals ``expected``."""
        with self._lock:
            if self._value != expected:
                return False
            self._value = value
            subscribers = list(self._subscribers)
        self._notify(subscribers, value)
        return True

    def _notify(self, subscribers: list[Callable[[T], None]], value: T) -> None:
        for callback in subscribers:
            try:
                callback(value)
            except Exception as exc:
                logger.error(f"Subscriber for {self._name} failed: {exc}", exc_info=True)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a callback for future updates.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def __repr__(self) -> str:
        return f"<ObservableValue({self._name}={self.get()!r})>"
