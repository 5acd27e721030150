from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys

from traffic_stats.core.config import AppConfig, load_config
from traffic_stats.core.constants import OVERRIDES_ENV_VAR
from traffic_stats.core.exceptions import ConfigError
from traffic_stats.core.utils import env_flag, platform_summary, setup_logging
from traffic_stats.monitoring.counters import InterfaceCounterReader
from traffic_stats.monitoring.dispatch import QueueDispatcher
from traffic_stats.monitoring.stream import SpeedStream
from traffic_stats.ui.widgets import fmt_kbps


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="traffic-stats")
    p.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    p.add_argument("--no-ui", action="store_true", help="Print samples instead of running the TUI")
    p.add_argument("--log-level", type=str, default=None)
    p.add_argument("--count", type=int, default=None, help="Stop after N samples (headless only)")
    p.add_argument("--json", action="store_true", help="Print raw payloads as JSON lines")
    return p.parse_args(argv)


def build_stream(config: AppConfig, dispatcher: QueueDispatcher) -> SpeedStream:
    reader = InterfaceCounterReader.from_config(config.monitor)
    return SpeedStream.create(reader, dispatcher=dispatcher, **config.monitor_kwargs())


def format_payload(payload: dict[str, int], *, as_json: bool) -> str:
    if as_json:
        return json.dumps(payload, separators=(",", ":"))
    return f"down {fmt_kbps(payload['downloadSpeed'])} | up {fmt_kbps(payload['uploadSpeed'])}"


def run_headless(stream: SpeedStream, dispatcher: QueueDispatcher, *, count: int | None, as_json: bool) -> None:
    log = logging.getLogger("traffic_stats")
    stop_requested = False
    printed = 0

    def _handle_sig(signum: int, _frame: object) -> None:
        nonlocal stop_requested
        if stop_requested:
            return
        stop_requested = True
        log.warning("shutdown requested", extra={"signal": signum})

    def _print(payload: dict[str, int]) -> None:
        nonlocal printed
        printed += 1
        print(format_payload(payload, as_json=as_json), flush=True)

    prev_int = signal.signal(signal.SIGINT, _handle_sig)
    prev_term = signal.signal(signal.SIGTERM, _handle_sig)

    handle = stream.subscribe(_print)
    try:
        while not stop_requested and (count is None or printed < count):
            dispatcher.drain(timeout=0.25)
    finally:
        stream.unsubscribe(handle)
        signal.signal(signal.SIGINT, prev_int)
        signal.signal(signal.SIGTERM, prev_term)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    try:
        config = load_config(args.config, overrides_json=os.getenv(OVERRIDES_ENV_VAR))
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR)
        logging.getLogger("traffic_stats").error("invalid configuration: %s", exc)
        return 2

    setup_logging(
        config.logging.log_dir,
        level=args.log_level or config.logging.level,
        file_logging=config.logging.file_logging,
    )
    log = logging.getLogger("traffic_stats")
    log.info(
        "starting",
        extra={"platform": dict(platform_summary()), "interfaces": list(config.monitor.interfaces)},
    )

    dispatcher = QueueDispatcher()
    stream = build_stream(config, dispatcher)

    headless = args.no_ui or not config.ui.enabled or env_flag("TRAFFIC_STATS_HEADLESS")
    try:
        if headless:
            run_headless(stream, dispatcher, count=args.count, as_json=args.json)
        else:
            from traffic_stats.ui.app import TrafficStatsApp

            TrafficStatsApp(stream=stream, dispatcher=dispatcher, config=config).run()
    finally:
        stream.close()

    log.info("stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
