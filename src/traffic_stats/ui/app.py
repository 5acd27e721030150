from __future__ import annotations

from textual.app import App
from textual.containers import Vertical
from textual.widgets import Footer, Header, Static

from traffic_stats.core.config import AppConfig
from traffic_stats.monitoring.dispatch import QueueDispatcher
from traffic_stats.monitoring.stream import SpeedStream, SubscriptionHandle
from traffic_stats.ui.widgets import fmt_interfaces, fmt_kbps

DRAIN_INTERVAL_SECONDS = 0.1


class TrafficStatsApp(App):
    CSS = """
    Screen { padding: 1; }
    #speeds { height: 3; text-style: bold; }
    #status { text-style: italic; }
    """

    BINDINGS = [
        ("q", "quit_app", "Quit"),
    ]

    def __init__(self, *, stream: SpeedStream, dispatcher: QueueDispatcher, config: AppConfig) -> None:
        super().__init__()
        self.stream = stream
        self.dispatcher = dispatcher
        self.config = config
        self._handle: SubscriptionHandle | None = None
        self._samples = 0

    def compose(self):
        yield Header(show_clock=True)
        with Vertical():
            yield Static("", id="speeds")
            yield Static("", id="status")
        yield Footer()

    def on_mount(self) -> None:
        self._render_speeds(None, None)
        self.query_one("#status", Static).update(
            f"Interfaces: {fmt_interfaces(self.config.monitor.interfaces)} | "
            f"Interval: {self.config.monitor.interval_seconds:g}s | waiting for baseline"
        )
        # Samples are produced on the monitor thread and applied here.
        self.set_interval(DRAIN_INTERVAL_SECONDS, self.dispatcher.run_pending)
        self._handle = self.stream.subscribe(self._on_payload)

    def _on_payload(self, payload: dict[str, int]) -> None:
        self._samples += 1
        self._render_speeds(payload.get("downloadSpeed"), payload.get("uploadSpeed"))
        self.query_one("#status", Static).update(
            f"Interfaces: {fmt_interfaces(self.config.monitor.interfaces)} | "
            f"Interval: {self.config.monitor.interval_seconds:g}s | samples: {self._samples}"
        )

    def _render_speeds(self, download: int | None, upload: int | None) -> None:
        self.query_one("#speeds", Static).update(
            f"Download: {fmt_kbps(download)}    Upload: {fmt_kbps(upload)}"
        )

    def action_quit_app(self) -> None:
        self._release()
        self.exit()

    def on_unmount(self) -> None:
        self._release()

    def _release(self) -> None:
        if self._handle is not None:
            self.stream.unsubscribe(self._handle)
            self._handle = None
