"""In-process change feed for live daily log observers."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import UUID

from thalilens.domain.ledger import DailyLog

LogObserver = Callable[[DailyLog | None], None]
LogKey = tuple[UUID, str]

_logger = logging.getLogger(__name__)


@dataclass
class LogChangeFeed:
    """Registry of observers keyed by (user id, date key)."""

    _observers: dict[LogKey, dict[int, LogObserver]] = field(default_factory=dict)
    _next_token: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def register(self, key: LogKey, observer: LogObserver) -> Callable[[], None]:
        """Add an observer and return a callable that removes it."""
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._observers.setdefault(key, {})[token] = observer

        def unsubscribe() -> None:
            with self._lock:
                observers = self._observers.get(key)
                if observers is None:
                    return
                observers.pop(token, None)
                if not observers:
                    self._observers.pop(key, None)

        return unsubscribe

    def publish(self, key: LogKey, log: DailyLog | None) -> None:
        """Deliver a new state to every observer of ``key``."""
        with self._lock:
            observers = list(self._observers.get(key, {}).values())
        for observer in observers:
            notify(observer, log)

    def observer_count(self, key: LogKey) -> int:
        """Return the number of live observers for ``key``."""
        with self._lock:
            return len(self._observers.get(key, {}))


def notify(observer: LogObserver, log: DailyLog | None) -> None:
    """Call one observer; its failure must not affect the writer."""
    try:
        observer(log)
    except Exception:
        _logger.exception("Daily log observer failed")
