"""Application runtime wiring and lifecycle helpers."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Mapping

from core.logging import logger
from core.process import CommandRunner
from core.status_models import StatusSnapshot
from services.change_notifier import ChangeNotifier
from services.orchestrator import Orchestrator, OrchestratorSettings
from services.probes import probe_interface_exists, probe_killswitch, probe_link
from services.readiness_poller import ReadinessPoller
from services.region_catalog import RegionCatalogCache
from services.status_aggregator import ProbeSettings, StatusAggregator
from services.vpn_controls import ControlSettings, VpnControls
from storage.carry_over import CarryOverMarker


class VpnStatusApp:
    """Own one instance of every engine component, wired together."""

    def __init__(self, config: Mapping[str, Any], marker_path: Path) -> None:
        timing_cfg = config.get("timing") or {}
        readiness_cfg = config.get("readiness") or {}
        catalog_cfg = config.get("catalog") or {}
        paths_cfg = config.get("paths") or {}

        self.runner = CommandRunner(timeout_s=float(timing_cfg.get("command_timeout_s", 30.0)))
        self.probe_settings = ProbeSettings.from_config(config)
        self.catalog = RegionCatalogCache(
            str(catalog_cfg.get("url", "")),
            timeout_s=float(catalog_cfg.get("timeout_s", 10.0)),
        )
        self.aggregator = StatusAggregator(self.runner, self.probe_settings, self.catalog)
        self.controls = VpnControls(self.runner, ControlSettings.from_config(config))
        self.marker = CarryOverMarker(marker_path)
        self.poller = ReadinessPoller(
            interface_ready=self._interface_ready,
            enable_killswitch=self.controls.enable_killswitch,
            marker=self.marker,
            refresh=self.aggregator.aggregate,
            retry_delay_s=float(readiness_cfg.get("retry_delay_s", 3.0)),
        )
        self.orchestrator = Orchestrator(
            controls=self.controls,
            poller=self.poller,
            marker=self.marker,
            refresh=self.aggregator.aggregate,
            killswitch_enabled=self._killswitch_enabled,
            link_connected=self._link_connected,
            settings=OrchestratorSettings.from_config(config),
        )
        watch_command = (config.get("commands") or {}).get("watch")
        self.notifier = ChangeNotifier(
            self.aggregator.aggregate,
            Path(paths_cfg.get("state_dir", "/var/lib/pia")),
            watch_command=watch_command,
        )
        self._resume_task: asyncio.Task[object] | None = None

    async def start(self) -> StatusSnapshot:
        """Load the catalog, start watching and publish the first snapshot."""

        await self.catalog.load()
        await self.notifier.start()
        snapshot = await self.aggregator.aggregate()
        if self.marker.exists():
            self._resume_task = asyncio.create_task(self.orchestrator.resume_pending_rearm())
        return snapshot

    async def stop(self) -> None:
        self.orchestrator.cancel()
        task, self._resume_task = self._resume_task, None
        if task is not None:
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.info("[App] Pending kill-switch restore interrupted by shutdown")
            except Exception as exc:
                logger.exception("[App] Kill-switch restore failed: %s", exc)
        await self.notifier.stop()

    def refresh(self) -> None:
        """User-triggered refresh, e.g. when the status view is opened."""

        self.notifier.request_refresh()

    async def run_forever(self) -> None:
        await self.start()
        logger.info("[App] Status engine running")
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def _interface_ready(self) -> bool:
        return await probe_interface_exists(self.runner, self.probe_settings.interface)

    async def _link_connected(self) -> bool:
        return await probe_link(self.runner, self.probe_settings.interface)

    async def _killswitch_enabled(self) -> bool:
        return await probe_killswitch(
            self.runner,
            self.probe_settings.killswitch_list_command,
            self.probe_settings.killswitch_table,
        )
