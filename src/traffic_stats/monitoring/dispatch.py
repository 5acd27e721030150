from __future__ import annotations

import queue
from abc import ABC, abstractmethod
from typing import Callable

Delivery = Callable[[], None]


class Dispatcher(ABC):
    """Runs sample deliveries in the execution context the sink needs."""

    @abstractmethod
    def submit(self, fn: Delivery) -> None:
        ...


class InlineDispatcher(Dispatcher):
    def submit(self, fn: Delivery) -> None:
        fn()


class QueueDispatcher(Dispatcher):
    """Buffers deliveries until the consuming thread drains them."""

    def __init__(self) -> None:
        self._q: "queue.Queue[Delivery]" = queue.Queue()

    def submit(self, fn: Delivery) -> None:
        self._q.put(fn)

    def pending(self) -> int:
        return self._q.qsize()

    def run_pending(self) -> int:
        ran = 0
        while True:
            try:
                fn = self._q.get_nowait()
            except queue.Empty:
                return ran
            fn()
            ran += 1

    def drain(self, timeout: float | None = None) -> bool:
        """Block for one delivery and run it; False when none arrived in time."""
        try:
            fn = self._q.get(timeout=timeout)
        except queue.Empty:
            return False
        fn()
        return True
