"""Status aggregation across all probes with change detection."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
import time
from typing import Any, Callable, Mapping

from core.logging import logger
from core.process import CommandRunner
from core.status_models import (
    NOT_APPLICABLE,
    LatencyClass,
    LatencySample,
    StatusSnapshot,
    StatusUpdate,
)
from services.probes import (
    probe_forwarded_port,
    probe_killswitch,
    probe_latency,
    probe_link,
    probe_region,
)
from services.region_catalog import RegionCatalogCache


StatusListener = Callable[[StatusUpdate], None]

DEFAULT_KILLSWITCH_LIST = ["sudo", "-n", "nft", "list", "tables"]


@dataclass(frozen=True)
class ProbeSettings:
    """Where each probe reads its signal from."""

    interface: str = "pia"
    forwarded_port_path: Path = Path("/var/lib/pia/forwarded_port")
    region_marker_path: Path = Path("/var/lib/pia/region.txt")
    latency_host: str = "10.0.0.243"
    latency_timeout_s: float = 2.0
    killswitch_table: str = "pia_killswitch"
    killswitch_list_command: list[str] = field(
        default_factory=lambda: list(DEFAULT_KILLSWITCH_LIST)
    )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ProbeSettings":
        paths_cfg = config.get("paths") or {}
        latency_cfg = config.get("latency") or {}
        commands_cfg = config.get("commands") or {}
        return cls(
            interface=str((config.get("vpn") or {}).get("interface", cls.interface)),
            forwarded_port_path=Path(paths_cfg.get("forwarded_port", cls.forwarded_port_path)),
            region_marker_path=Path(paths_cfg.get("region_marker", cls.region_marker_path)),
            latency_host=str(latency_cfg.get("host", cls.latency_host)),
            latency_timeout_s=float(latency_cfg.get("timeout_s", cls.latency_timeout_s)),
            killswitch_table=str(
                (config.get("killswitch") or {}).get("table", cls.killswitch_table)
            ),
            killswitch_list_command=list(
                commands_cfg.get("killswitch_list") or DEFAULT_KILLSWITCH_LIST
            ),
        )


class StatusAggregator:
    """Run the probe set and publish immutable snapshots to listeners."""

    def __init__(
        self,
        runner: CommandRunner,
        settings: ProbeSettings,
        catalog: RegionCatalogCache | None = None,
    ) -> None:
        self._runner = runner
        self._settings = settings
        self._catalog = catalog
        self._lock = asyncio.Lock()
        self._latest: StatusSnapshot | None = None
        self._listeners: list[StatusListener] = []
        self._cycles = 0

    @property
    def latest(self) -> StatusSnapshot | None:
        return self._latest

    @property
    def cycles(self) -> int:
        return self._cycles

    def register_listener(self, listener: StatusListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unregister_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def aggregate(self) -> StatusSnapshot:
        """Run every probe and return a fresh snapshot; never raises."""

        async with self._lock:
            snapshot = await self._collect()
            previous = self._latest
            self._latest = snapshot
            self._cycles += 1
            changed = snapshot.changed_fields(previous)
        if changed:
            logger.debug("[Aggregator] Changed fields: %s", ", ".join(sorted(changed)))
            self._publish(StatusUpdate(snapshot=snapshot, changed_fields=changed))
        return snapshot

    async def _collect(self) -> StatusSnapshot:
        settings = self._settings
        catalog = self._catalog.catalog if self._catalog is not None else None
        connected = await probe_link(self._runner, settings.interface)

        probes = [
            probe_forwarded_port(settings.forwarded_port_path),
            probe_region(settings.region_marker_path, catalog),
            probe_killswitch(
                self._runner,
                settings.killswitch_list_command,
                settings.killswitch_table,
            ),
        ]
        if connected:
            probes.append(
                probe_latency(self._runner, settings.latency_host, settings.latency_timeout_s)
            )
        results = await asyncio.gather(*probes, return_exceptions=True)
        port, region_name, killswitch = (
            None if isinstance(value, BaseException) else value for value in results[:3]
        )
        latency = NOT_APPLICABLE
        if connected:
            latency = results[3]
            if isinstance(latency, BaseException):
                latency = LatencySample(LatencyClass.ERROR)

        return StatusSnapshot(
            connected=connected,
            forwarded_port=port if connected else None,
            region_name=region_name,
            latency=latency,
            killswitch_enabled=bool(killswitch),
            generated_at=time.time(),
        )

    def _publish(self, update: StatusUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception as exc:
                logger.exception("[Aggregator] Status listener failed: %s", exc)
