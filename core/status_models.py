"""Models for aggregated VPN status."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import time


class LatencyClass(str, Enum):
    """Latency classification for the tunnel."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    UNKNOWN = "unknown"
    NO_RESPONSE = "no_response"
    ERROR = "error"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True)
class LatencySample:
    """Latency class with the measured round trip when one was parsed."""

    latency_class: LatencyClass
    latency_ms: float | None = None

    @classmethod
    def from_ms(cls, latency_ms: float) -> "LatencySample":
        if latency_ms < 50:
            latency_class = LatencyClass.EXCELLENT
        elif latency_ms < 100:
            latency_class = LatencyClass.GOOD
        elif latency_ms < 200:
            latency_class = LatencyClass.FAIR
        else:
            latency_class = LatencyClass.POOR
        return cls(latency_class=latency_class, latency_ms=latency_ms)


NOT_APPLICABLE = LatencySample(LatencyClass.NOT_APPLICABLE)


@dataclass(frozen=True)
class RegionMarker:
    """Parsed contents of the region marker file."""

    region_id: str | None = None
    hostname: str | None = None

    @classmethod
    def parse(cls, text: str) -> "RegionMarker":
        values: dict[str, str] = {}
        for line in text.splitlines():
            key, sep, value = line.strip().partition("=")
            if not sep:
                continue
            value = value.strip()
            if value:
                values.setdefault(key.strip(), value.split()[0])
        return cls(region_id=values.get("region_id"), hostname=values.get("hostname"))


DISPLAY_FIELDS = (
    "connected",
    "forwarded_port",
    "region_name",
    "latency_class",
    "latency_ms",
    "killswitch_enabled",
)


@dataclass(frozen=True)
class StatusSnapshot:
    """One fully populated aggregation of every external status signal."""

    connected: bool
    forwarded_port: int | None
    region_name: str | None
    latency: LatencySample
    killswitch_enabled: bool
    generated_at: float = field(default_factory=time.time)

    @property
    def latency_class(self) -> LatencyClass:
        return self.latency.latency_class

    @property
    def latency_ms(self) -> float | None:
        return self.latency.latency_ms

    def changed_fields(self, previous: "StatusSnapshot | None") -> frozenset[str]:
        """Return display fields that differ from ``previous``."""

        if previous is None:
            return frozenset(DISPLAY_FIELDS)
        return frozenset(
            name
            for name in DISPLAY_FIELDS
            if getattr(self, name) != getattr(previous, name)
        )


@dataclass(frozen=True)
class StatusUpdate:
    """Snapshot published to listeners along with what changed."""

    snapshot: StatusSnapshot
    changed_fields: frozenset[str]
