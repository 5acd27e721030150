from __future__ import annotations

import itertools
import threading
import time

from traffic_stats.monitoring.counters import CounterReader, CumulativeCounters
from traffic_stats.monitoring.dispatch import QueueDispatcher
from traffic_stats.monitoring.monitor import RateMonitor
from traffic_stats.monitoring.rate import RateSample
from traffic_stats.monitoring.stream import SpeedStream, SubscriptionHandle


class _SteadyReader(CounterReader):
    def __init__(self) -> None:
        self._n = itertools.count()

    def read(self) -> CumulativeCounters:
        n = next(self._n)
        return CumulativeCounters(bytes_received=n * 2000, bytes_sent=n * 1000)


def _idle_stream() -> SpeedStream:
    # long interval: lifecycle tests never see a tick
    return SpeedStream(RateMonitor(_SteadyReader(), interval_seconds=60))


def test_subscriber_count_drives_monitor_lifecycle() -> None:
    stream = _idle_stream()
    assert not stream.monitor.is_running

    h1 = stream.subscribe(lambda _p: None)
    assert stream.monitor.is_running
    h2 = stream.subscribe(lambda _p: None)
    assert stream.subscriber_count == 2
    assert h1 != h2

    stream.unsubscribe(h1)
    assert stream.monitor.is_running
    stream.unsubscribe(h2)
    assert not stream.monitor.is_running
    assert stream.subscriber_count == 0


def test_unsubscribe_unknown_handle_is_noop() -> None:
    stream = _idle_stream()
    handle = stream.subscribe(lambda _p: None)
    stream.unsubscribe(SubscriptionHandle(id=999))
    assert stream.monitor.is_running
    stream.unsubscribe(handle)
    stream.unsubscribe(handle)
    assert not stream.monitor.is_running


def test_resubscribe_starts_from_fresh_baseline() -> None:
    stream = _idle_stream()
    handle = stream.subscribe(lambda _p: None)
    stream.monitor.sample()
    stream.monitor.sample()
    assert stream.monitor.baseline is not None
    stream.unsubscribe(handle)
    assert stream.monitor.baseline is None

    handle = stream.subscribe(lambda _p: None)
    try:
        assert stream.monitor.sample() == RateSample(0, 0)
    finally:
        stream.unsubscribe(handle)


def test_payload_fanned_out_to_every_subscriber() -> None:
    stream = _idle_stream()
    got_a: list[dict[str, int]] = []
    got_b: list[dict[str, int]] = []
    ha = stream.subscribe(got_a.append)
    hb = stream.subscribe(got_b.append)
    try:
        assert stream.monitor.sink is not None
        stream.monitor.sink(RateSample(download_kbps=8, upload_kbps=1))
    finally:
        stream.close()
    assert got_a == [{"uploadSpeed": 1, "downloadSpeed": 8}]
    assert got_b == got_a
    assert not stream.monitor.is_running
    stream.unsubscribe(ha)
    stream.unsubscribe(hb)


def test_failing_subscriber_does_not_block_others() -> None:
    stream = _idle_stream()
    got: list[dict[str, int]] = []

    def _bad(_payload: dict[str, int]) -> None:
        raise RuntimeError("subscriber failure")

    stream.subscribe(_bad)
    stream.subscribe(got.append)
    try:
        stream.monitor.sink(RateSample(download_kbps=3, upload_kbps=4))  # type: ignore[misc]
    finally:
        stream.close()
    assert got == [{"uploadSpeed": 4, "downloadSpeed": 3}]


def test_live_stream_emits_baseline_then_rates() -> None:
    stream = SpeedStream.create(_SteadyReader(), interval_seconds=0.01)
    got: list[dict[str, int]] = []
    done = threading.Event()

    def _on_payload(payload: dict[str, int]) -> None:
        got.append(payload)
        if len(got) >= 2:
            done.set()

    handle = stream.subscribe(_on_payload)
    try:
        assert done.wait(timeout=5)
    finally:
        stream.unsubscribe(handle)
    assert got[0] == {"uploadSpeed": 0, "downloadSpeed": 0}
    assert got[1] == {"uploadSpeed": 800, "downloadSpeed": 1600}


def test_resubscriber_never_sees_previous_run_payloads() -> None:
    dispatcher = QueueDispatcher()
    stream = SpeedStream.create(_SteadyReader(), dispatcher=dispatcher, interval_seconds=0.01)

    handle = stream.subscribe(lambda _p: None)
    deadline = time.monotonic() + 5
    while dispatcher.pending() < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    stream.unsubscribe(handle)
    assert dispatcher.pending() >= 3

    got: list[dict[str, int]] = []
    handle = stream.subscribe(got.append)
    try:
        deadline = time.monotonic() + 5
        while len(got) < 2 and time.monotonic() < deadline:
            dispatcher.drain(timeout=0.05)
    finally:
        stream.unsubscribe(handle)
    assert got[:2] == [
        {"uploadSpeed": 0, "downloadSpeed": 0},
        {"uploadSpeed": 800, "downloadSpeed": 1600},
    ]
