from __future__ import annotations


class TrafficStatsError(Exception):
    """Base error for traffic-stats."""


class ConfigError(TrafficStatsError):
    pass


class CounterReadError(TrafficStatsError):
    pass
