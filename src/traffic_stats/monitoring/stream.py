from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from traffic_stats.monitoring.counters import CounterReader
from traffic_stats.monitoring.dispatch import Dispatcher
from traffic_stats.monitoring.monitor import RateMonitor
from traffic_stats.monitoring.rate import RateSample

Payload = dict[str, int]
Subscriber = Callable[[Payload], None]


@dataclass(frozen=True)
class SubscriptionHandle:
    id: int


class SpeedStream:
    """
    Push stream of ``{"uploadSpeed", "downloadSpeed"}`` payloads.

    The first subscriber starts the underlying monitor and the last one to
    leave stops it, which also discards the baseline.
    """

    def __init__(self, monitor: RateMonitor) -> None:
        self.monitor = monitor
        self.monitor.sink = self._publish
        self._log = logging.getLogger("traffic_stats.stream")
        self._subs_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._subscribers: dict[int, Subscriber] = {}
        self._ids = itertools.count(1)

    @classmethod
    def create(
        cls,
        reader: CounterReader,
        *,
        dispatcher: Dispatcher | None = None,
        **monitor_kwargs: Any,
    ) -> "SpeedStream":
        return cls(RateMonitor(reader, dispatcher=dispatcher, **monitor_kwargs))

    @property
    def subscriber_count(self) -> int:
        with self._subs_lock:
            return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> SubscriptionHandle:
        with self._lifecycle_lock:
            with self._subs_lock:
                handle = SubscriptionHandle(id=next(self._ids))
                was_empty = not self._subscribers
                self._subscribers[handle.id] = callback
            if was_empty:
                self._log.info("first subscriber; starting monitor")
                self.monitor.start()
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        with self._lifecycle_lock:
            with self._subs_lock:
                removed = self._subscribers.pop(handle.id, None)
                now_empty = not self._subscribers
            if removed is not None and now_empty:
                self._log.info("last subscriber left; stopping monitor")
                self.monitor.stop()

    def close(self) -> None:
        with self._lifecycle_lock:
            with self._subs_lock:
                self._subscribers.clear()
            self.monitor.stop()

    def _publish(self, sample: RateSample) -> None:
        payload = sample.to_payload()
        with self._subs_lock:
            subscribers = list(self._subscribers.values())
        for callback in subscribers:
            try:
                callback(dict(payload))
            except Exception:
                self._log.exception("subscriber raised while handling payload")
