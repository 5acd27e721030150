from __future__ import annotations

import logging
import threading
from typing import Callable

from traffic_stats.core.constants import DEFAULT_INTERVAL_SECONDS, MAX_REASONABLE_KBPS
from traffic_stats.core.exceptions import CounterReadError
from traffic_stats.core.utils import monotonic_ms
from traffic_stats.monitoring.counters import ZERO_COUNTERS, CounterReader, CumulativeCounters
from traffic_stats.monitoring.dispatch import Dispatcher, InlineDispatcher
from traffic_stats.monitoring.rate import ZERO_SAMPLE, RateSample, derive_sample

Sink = Callable[[RateSample], None]


class RateMonitor:
    """
    Samples cumulative counters once per interval and pushes a RateSample to
    the sink. The first tick after start() only records a baseline and
    reports zero.
    """

    def __init__(
        self,
        reader: CounterReader,
        sink: Sink | None = None,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_reasonable_kbps: int = MAX_REASONABLE_KBPS,
        dispatcher: Dispatcher | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if max_reasonable_kbps <= 0:
            raise ValueError("max_reasonable_kbps must be > 0")
        self.reader = reader
        self.sink = sink
        self.interval_seconds = float(interval_seconds)
        self.max_reasonable_kbps = int(max_reasonable_kbps)
        self.dispatcher = dispatcher or InlineDispatcher()

        self._log = logging.getLogger("traffic_stats.monitor")
        self._state_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._previous: CumulativeCounters | None = None
        self._is_first = True
        self._thread: threading.Thread | None = None
        self._stop: threading.Event | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    @property
    def baseline(self) -> CumulativeCounters | None:
        with self._state_lock:
            return self._previous

    def start(self) -> None:
        with self._lifecycle_lock:
            self._stop_locked()
            stop = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(stop,), name="rate-monitor", daemon=True
            )
            with self._state_lock:
                self._reset_state()
            self._stop = stop
            self._thread = thread
            thread.start()
        self._log.info("monitoring started", extra={"interval_seconds": self.interval_seconds})

    def stop(self) -> None:
        with self._lifecycle_lock:
            stopped = self._stop_locked()
        if stopped:
            self._log.info("monitoring stopped")

    def sample(self) -> RateSample:
        current = self._read()
        with self._state_lock:
            return self._advance(current)

    # ----------------- internals -----------------

    def _reset_state(self) -> None:
        self._previous = None
        self._is_first = True

    def _stop_locked(self) -> bool:
        thread, stop = self._thread, self._stop
        if thread is None or stop is None:
            return False
        with self._state_lock:
            stop.set()
            self._reset_state()
        self._thread = None
        self._stop = None
        # stop() may be called by a sink running on the tick thread itself.
        if thread is not threading.current_thread():
            thread.join(timeout=self.interval_seconds + 1.0)
            if thread.is_alive():
                self._log.warning("tick thread did not exit in time")
        return True

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval_seconds):
            self._tick(stop)

    def _tick(self, stop: threading.Event) -> None:
        start_ms = monotonic_ms()
        current = self._read()
        with self._state_lock:
            if stop.is_set():
                return
            sample = self._advance(current)
        self._log.debug(
            "tick",
            extra={
                "download_kbps": sample.download_kbps,
                "upload_kbps": sample.upload_kbps,
                "elapsed_ms": round(monotonic_ms() - start_ms, 3),
            },
        )
        if not stop.is_set():
            self._deliver(sample, stop)

    def _read(self) -> CumulativeCounters:
        try:
            return self.reader.read()
        except CounterReadError as exc:
            self._log.warning("counter read failed; using zero counters", extra={"error": str(exc)})
        except Exception:
            self._log.exception("counter reader raised; using zero counters")
        return ZERO_COUNTERS

    def _advance(self, current: CumulativeCounters) -> RateSample:
        previous = self._previous
        if self._is_first or previous is None:
            self._previous = current
            self._is_first = False
            self._log.debug(
                "baseline set",
                extra={"bytes_received": current.bytes_received, "bytes_sent": current.bytes_sent},
            )
            return ZERO_SAMPLE

        if current.bytes_received < previous.bytes_received:
            self._log.info("download counter reset detected")
        if current.bytes_sent < previous.bytes_sent:
            self._log.info("upload counter reset detected")

        sample = derive_sample(
            current,
            previous,
            interval_seconds=self.interval_seconds,
            max_kbps=self.max_reasonable_kbps,
        )
        self._previous = current
        return sample

    def _deliver(self, sample: RateSample, stop: threading.Event) -> None:
        sink = self.sink
        if sink is None:
            return

        def _call() -> None:
            # queued deliveries from a stopped run are dropped
            if stop.is_set():
                return
            try:
                sink(sample)
            except Exception:
                self._log.exception("sink raised while handling sample")

        try:
            self.dispatcher.submit(_call)
        except Exception:
            self._log.exception("dispatcher rejected sample delivery")
