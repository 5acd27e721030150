from __future__ import annotations

from dataclasses import dataclass

from traffic_stats.core.constants import (
    BITS_PER_BYTE,
    BITS_PER_KILOBIT,
    DEFAULT_INTERVAL_SECONDS,
    MAX_REASONABLE_KBPS,
    PAYLOAD_DOWNLOAD_KEY,
    PAYLOAD_UPLOAD_KEY,
)
from traffic_stats.core.utils import clamp
from traffic_stats.monitoring.counters import CumulativeCounters


@dataclass(frozen=True)
class RateSample:
    download_kbps: int
    upload_kbps: int

    def to_payload(self) -> dict[str, int]:
        return {
            PAYLOAD_UPLOAD_KEY: int(self.upload_kbps),
            PAYLOAD_DOWNLOAD_KEY: int(self.download_kbps),
        }


ZERO_SAMPLE = RateSample(download_kbps=0, upload_kbps=0)


def rate_kbps(
    current: int,
    previous: int,
    *,
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    max_kbps: int = MAX_REASONABLE_KBPS,
) -> int:
    """
    Throughput over one nominal interval, truncated to whole kbps. At the
    default one-second interval this is ``delta * 8 // 1000``.

    A counter that went backwards is read as a reset and reports 0; the bytes
    moved across the reset are not recovered.
    """
    if current < previous:
        return 0
    # whole milliseconds keep the division in integers
    interval_ms = max(1, round(interval_seconds * 1000))
    kbps = ((current - previous) * BITS_PER_BYTE * 1000) // (BITS_PER_KILOBIT * interval_ms)
    return clamp(kbps, 0, max_kbps)


def derive_sample(
    current: CumulativeCounters,
    previous: CumulativeCounters,
    *,
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    max_kbps: int = MAX_REASONABLE_KBPS,
) -> RateSample:
    return RateSample(
        download_kbps=rate_kbps(
            current.bytes_received,
            previous.bytes_received,
            interval_seconds=interval_seconds,
            max_kbps=max_kbps,
        ),
        upload_kbps=rate_kbps(
            current.bytes_sent,
            previous.bytes_sent,
            interval_seconds=interval_seconds,
            max_kbps=max_kbps,
        ),
    )
