from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

import psutil

from traffic_stats.core.config import MonitorConfig
from traffic_stats.core.constants import DEFAULT_INTERFACES
from traffic_stats.core.exceptions import CounterReadError


@dataclass(frozen=True)
class CumulativeCounters:
    bytes_received: int
    bytes_sent: int

    def __post_init__(self) -> None:
        if self.bytes_received < 0 or self.bytes_sent < 0:
            raise ValueError("cumulative counters must be non-negative")


ZERO_COUNTERS = CumulativeCounters(bytes_received=0, bytes_sent=0)


class CounterReader(ABC):
    """Source of cumulative byte counters summed over the relevant interfaces."""

    @abstractmethod
    def read(self) -> CumulativeCounters:
        """Return current totals. Raises CounterReadError if the OS query fails."""


class InterfaceCounterReader(CounterReader):
    def __init__(self, interfaces: Iterable[str] = DEFAULT_INTERFACES, *, nowrap: bool = False) -> None:
        self.interfaces = tuple(interfaces)
        self.nowrap = bool(nowrap)
        self._log = logging.getLogger("traffic_stats.counters")

    @classmethod
    def from_config(cls, cfg: MonitorConfig) -> "InterfaceCounterReader":
        return cls(cfg.interfaces, nowrap=cfg.nowrap)

    def per_interface(self) -> dict[str, CumulativeCounters]:
        """Counters for every interface the OS reports, allow-listed or not."""
        try:
            stats = psutil.net_io_counters(pernic=True, nowrap=self.nowrap)
        except (OSError, psutil.Error) as exc:
            raise CounterReadError(f"net_io_counters failed: {exc}") from exc
        return {
            name: CumulativeCounters(bytes_received=int(s.bytes_recv), bytes_sent=int(s.bytes_sent))
            for name, s in (stats or {}).items()
        }

    def read(self) -> CumulativeCounters:
        received = 0
        sent = 0
        matched = 0
        for name, c in self.per_interface().items():
            if name not in self.interfaces:
                continue
            matched += 1
            received += c.bytes_received
            sent += c.bytes_sent
            self._log.debug(
                "interface counters",
                extra={"iface": name, "bytes_received": c.bytes_received, "bytes_sent": c.bytes_sent},
            )
        if not matched:
            self._log.debug("no allow-listed interface present", extra={"interfaces": list(self.interfaces)})
            return ZERO_COUNTERS
        self._log.debug("total counters", extra={"bytes_received": received, "bytes_sent": sent})
        return CumulativeCounters(bytes_received=received, bytes_sent=sent)
