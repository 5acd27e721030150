from __future__ import annotations

import argparse
import os
import sys
import time

from traffic_stats.core.config import load_config
from traffic_stats.core.constants import OVERRIDES_ENV_VAR
from traffic_stats.core.exceptions import ConfigError, CounterReadError
from traffic_stats.monitoring.counters import InterfaceCounterReader
from traffic_stats.monitoring.monitor import RateMonitor


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="doctor")
    p.add_argument("--config", type=str, default=None)
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])

    try:
        cfg = load_config(args.config, overrides_json=os.getenv(OVERRIDES_ENV_VAR))
    except ConfigError as exc:
        print(f"[FAIL] Config: {exc}")
        return 2
    print(f"[OK] Config loaded (interval={cfg.monitor.interval_seconds:g}s, max={cfg.monitor.max_reasonable_kbps} kbps)")

    reader = InterfaceCounterReader.from_config(cfg.monitor)
    try:
        all_ifaces = reader.per_interface()
    except CounterReadError as exc:
        print(f"[FAIL] Counter read: {exc}")
        return 2

    print(f"[OK] Interfaces reported: {len(all_ifaces)}")
    for name, c in sorted(all_ifaces.items()):
        mark = "*" if name in reader.interfaces else " "
        print(f"  {mark} {name}: received={c.bytes_received} sent={c.bytes_sent}")

    matched = [n for n in reader.interfaces if n in all_ifaces]
    if not matched:
        print(f"[FAIL] None of the allow-listed interfaces exist: {', '.join(reader.interfaces)}")
        return 2
    print(f"[OK] Allow-listed interfaces present: {', '.join(matched)}")

    monitor = RateMonitor(reader, **cfg.monitor_kwargs())
    monitor.sample()
    time.sleep(cfg.monitor.interval_seconds)
    s = monitor.sample()
    print(f"[OK] Sample: download={s.download_kbps} kbps upload={s.upload_kbps} kbps")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
