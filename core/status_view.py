"""Label rendering for status snapshots at the presentation boundary."""

from __future__ import annotations

from typing import Callable

from core.status_models import LatencyClass, StatusSnapshot, StatusUpdate


LabelWriter = Callable[[str, str], None]

_LATENCY_TEXT = {
    LatencyClass.EXCELLENT: "Excellent",
    LatencyClass.GOOD: "Good",
    LatencyClass.FAIR: "Fair",
    LatencyClass.POOR: "Poor",
    LatencyClass.UNKNOWN: "Unknown",
    LatencyClass.NO_RESPONSE: "No response",
    LatencyClass.ERROR: "Error",
    LatencyClass.NOT_APPLICABLE: "-",
}


def status_label(snapshot: StatusSnapshot) -> str:
    return "✓ Connected" if snapshot.connected else "✗ Disconnected"


def toggle_label(snapshot: StatusSnapshot) -> str:
    return "Disconnect" if snapshot.connected else "Connect"


def port_label(snapshot: StatusSnapshot) -> str:
    if snapshot.connected and snapshot.forwarded_port:
        return f"Port: {snapshot.forwarded_port}"
    return "Port: Not forwarded"


def region_label(snapshot: StatusSnapshot) -> str:
    return f"Region: {snapshot.region_name or 'Unknown'}"


def latency_label(snapshot: StatusSnapshot) -> str:
    text = _LATENCY_TEXT[snapshot.latency_class]
    if snapshot.connected and snapshot.latency_ms is not None:
        return f"Latency: {text} ({snapshot.latency_ms:.0f} ms)"
    return f"Latency: {text}"


def killswitch_label(snapshot: StatusSnapshot) -> str:
    return "Kill switch: On" if snapshot.killswitch_enabled else "Kill switch: Off"


def tooltip(snapshot: StatusSnapshot) -> str:
    if not snapshot.connected:
        return "Disconnected"
    text = snapshot.region_name or "Connected"
    if snapshot.forwarded_port:
        text += f" • Port: {snapshot.forwarded_port}"
    return text


LABELS: dict[str, Callable[[StatusSnapshot], str]] = {
    "status": status_label,
    "toggle": toggle_label,
    "port": port_label,
    "region": region_label,
    "latency": latency_label,
    "killswitch": killswitch_label,
    "tooltip": tooltip,
}


class StatusView:
    """Keep rendered labels and rewrite only the ones whose text changed."""

    def __init__(self, writer: LabelWriter) -> None:
        self._writer = writer
        self._rendered: dict[str, str] = {}

    @property
    def rendered(self) -> dict[str, str]:
        return dict(self._rendered)

    def __call__(self, update: StatusUpdate) -> None:
        self.render(update.snapshot)

    def render(self, snapshot: StatusSnapshot) -> list[str]:
        written: list[str] = []
        for name, build in LABELS.items():
            text = build(snapshot)
            if self._rendered.get(name) == text:
                continue
            self._rendered[name] = text
            self._writer(name, text)
            written.append(name)
        return written
