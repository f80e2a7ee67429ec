"""Sequenced connection-lifecycle operations with single-flight control."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Sequence

from core.logging import log_operation_result, logger
from services.readiness_poller import ReadinessPoller, RearmOutcome
from services.vpn_controls import VpnControls
from storage.carry_over import CarryOverMarker


StepAction = Callable[[], Awaitable[bool]]


class OperationOutcome(str, Enum):
    """How an operation request ended."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Step:
    """One discrete state of an operation.

    A failing gating step stops the sequence; any other failure is logged
    and the sequence moves on.
    """

    name: str
    action: StepAction
    gating: bool = False


@dataclass(frozen=True)
class StepRecord:
    name: str
    ok: bool
    gating: bool


@dataclass(frozen=True)
class OperationResult:
    """Immutable record of one operation request."""

    operation: str
    outcome: OperationOutcome
    steps: tuple[StepRecord, ...] = ()
    failed_step: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is OperationOutcome.COMPLETED

    @property
    def step_names(self) -> list[str]:
        return [record.name for record in self.steps]


async def run_steps(
    operation: str,
    steps: Sequence[Step],
    cancel_event: asyncio.Event | None = None,
) -> OperationResult:
    """Execute ``steps`` strictly in order."""

    records: list[StepRecord] = []
    for step in steps:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("[Orchestrator] %s cancelled before %s", operation, step.name)
            return OperationResult(operation, OperationOutcome.CANCELLED, tuple(records))
        try:
            ok = bool(await step.action())
        except Exception as exc:  # noqa: BLE001 - a step failure is an outcome, not a crash
            logger.exception("[Orchestrator] %s step %s raised: %s", operation, step.name, exc)
            ok = False
        records.append(StepRecord(name=step.name, ok=ok, gating=step.gating))
        if ok:
            logger.debug("[Orchestrator] %s: %s ok", operation, step.name)
            continue
        if step.gating:
            logger.error("[Orchestrator] %s aborted: %s failed", operation, step.name)
            return OperationResult(
                operation,
                OperationOutcome.ABORTED,
                tuple(records),
                failed_step=step.name,
            )
        logger.warning("[Orchestrator] %s: %s failed; continuing", operation, step.name)
    return OperationResult(operation, OperationOutcome.COMPLETED, tuple(records))


@dataclass(frozen=True)
class OrchestratorSettings:
    """Settle delays and retry budget for operation sequences."""

    disconnect_settle_s: float = 2.0
    connect_settle_s: float = 2.0
    reconnect_settle_s: float = 8.0
    link_down_settle_s: float = 2.0
    killswitch_settle_s: float = 1.0
    rearm_attempts: int = 5

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "OrchestratorSettings":
        timing_cfg = config.get("timing") or {}
        readiness_cfg = config.get("readiness") or {}
        return cls(
            disconnect_settle_s=float(
                timing_cfg.get("disconnect_settle_s", cls.disconnect_settle_s)
            ),
            connect_settle_s=float(timing_cfg.get("connect_settle_s", cls.connect_settle_s)),
            reconnect_settle_s=float(timing_cfg.get("reconnect_settle_s", cls.reconnect_settle_s)),
            link_down_settle_s=float(timing_cfg.get("link_down_settle_s", cls.link_down_settle_s)),
            killswitch_settle_s=float(
                timing_cfg.get("killswitch_settle_s", cls.killswitch_settle_s)
            ),
            rearm_attempts=int(readiness_cfg.get("max_attempts", cls.rearm_attempts)),
        )


class Orchestrator:
    """Run one lifecycle operation at a time against the external VPN stack.

    A request made while another operation is in flight is rejected. Every
    accepted operation ends with a re-aggregation, whatever its outcome.
    """

    def __init__(
        self,
        *,
        controls: VpnControls,
        poller: ReadinessPoller,
        marker: CarryOverMarker,
        refresh: Callable[[], Awaitable[object]],
        killswitch_enabled: Callable[[], Awaitable[bool]],
        link_connected: Callable[[], Awaitable[bool]],
        settings: OrchestratorSettings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._controls = controls
        self._poller = poller
        self._marker = marker
        self._refresh = refresh
        self._killswitch_enabled = killswitch_enabled
        self._link_connected = link_connected
        self._settings = settings or OrchestratorSettings()
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._cancel_event: asyncio.Event | None = None
        self._current: str | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def current_operation(self) -> str | None:
        return self._current

    def cancel(self) -> bool:
        """Stop scheduling further steps of the in-flight operation."""

        if self._cancel_event is None:
            return False
        logger.info("[Orchestrator] Cancellation requested for %s", self._current)
        self._cancel_event.set()
        return True

    async def disconnect(self) -> OperationResult:
        return await self._execute("disconnect", self._disconnect_steps)

    async def connect(self) -> OperationResult:
        return await self._execute("connect", self._connect_steps)

    async def toggle_connection(self) -> OperationResult:
        if await self._link_connected():
            return await self.disconnect()
        return await self.connect()

    async def reconnect(self) -> OperationResult:
        return await self._execute("reconnect", self._reconnect_steps)

    async def switch_region(self, region_id: str) -> OperationResult:
        return await self._execute(
            "switch_region",
            lambda cancel_event: self._switch_region_steps(region_id, cancel_event),
        )

    async def find_fastest_server(self) -> OperationResult:
        return await self._execute("find_fastest_server", self._find_fastest_steps)

    async def toggle_killswitch(self) -> OperationResult:
        return await self._execute("toggle_killswitch", self._toggle_killswitch_steps)

    async def resume_pending_rearm(self) -> OperationResult | None:
        """Finish a kill-switch restore left behind by a previous run."""

        if not self._marker.exists():
            return None
        logger.info("[Orchestrator] Pending kill-switch restore found at %s", self._marker.path)
        return await self._execute(
            "resume_rearm",
            lambda cancel_event: [self._rearm_step(cancel_event)],
        )

    async def _execute(
        self,
        operation: str,
        build_steps: Callable[[asyncio.Event], list[Step]],
    ) -> OperationResult:
        if self._lock.locked():
            logger.warning(
                "[Orchestrator] Rejected %s: %s still in flight",
                operation,
                self._current,
            )
            return OperationResult(operation, OperationOutcome.REJECTED)

        async with self._lock:
            cancel_event = asyncio.Event()
            self._cancel_event = cancel_event
            self._current = operation
            logger.info("[Orchestrator] Starting %s", operation)
            try:
                result = await run_steps(operation, build_steps(cancel_event), cancel_event)
                await self._refresh_after(operation)
            finally:
                self._cancel_event = None
                self._current = None
        log_operation_result(result.operation, result.outcome.value, result.failed_step)
        return result

    async def _refresh_after(self, operation: str) -> None:
        try:
            await self._refresh()
        except Exception as exc:  # noqa: BLE001 - display refresh is best effort
            logger.warning("[Orchestrator] Refresh after %s failed: %s", operation, exc)

    def _delay_step(self, name: str, delay_s: float) -> Step:
        async def _wait() -> bool:
            await self._sleep(delay_s)
            return True

        return Step(name, _wait)

    def _carry_over_steps(self) -> list[Step]:
        armed: list[bool] = []

        async def _persist_marker() -> bool:
            if not await self._killswitch_enabled():
                return True
            armed.append(True)
            return self._marker.set()

        async def _disable_killswitch() -> bool:
            if not armed:
                return True
            return await self._controls.disable_killswitch()

        return [
            Step("persist_carry_over", _persist_marker),
            Step("disable_killswitch", _disable_killswitch),
            Step("pause_watchdog", self._controls.pause_watchdog),
        ]

    def _rearm_step(self, cancel_event: asyncio.Event) -> Step:
        async def _rearm() -> bool:
            if not self._marker.exists():
                return True
            outcome = await self._poller.wait_and_enable_killswitch(
                self._settings.rearm_attempts,
                cancel_event=cancel_event,
            )
            return outcome in {RearmOutcome.ENABLED, RearmOutcome.CANCELLED}

        return Step("rearm_killswitch", _rearm)

    def _reconnect_tail(self, settle_s: float, cancel_event: asyncio.Event) -> list[Step]:
        return [
            self._delay_step("settle", settle_s),
            Step("resume_watchdog", self._controls.resume_watchdog),
            self._rearm_step(cancel_event),
        ]

    def _disconnect_steps(self, _cancel_event: asyncio.Event) -> list[Step]:
        return [
            *self._carry_over_steps(),
            Step("stop_port_forward", self._controls.stop_port_forward),
            Step("link_down", self._controls.link_down, gating=True),
            self._delay_step("settle", self._settings.disconnect_settle_s),
        ]

    def _connect_steps(self, cancel_event: asyncio.Event) -> list[Step]:
        return [
            Step("link_up", self._controls.link_up, gating=True),
            *self._reconnect_tail(self._settings.connect_settle_s, cancel_event),
        ]

    def _reconnect_steps(self, cancel_event: asyncio.Event) -> list[Step]:
        return [
            Step("restart_vpn", self._controls.restart_vpn),
            *self._reconnect_tail(self._settings.reconnect_settle_s, cancel_event),
        ]

    def _switch_region_steps(self, region_id: str, cancel_event: asyncio.Event) -> list[Step]:
        async def _set_region() -> bool:
            return await self._controls.set_credential("PREFERRED_REGION", region_id)

        async def _disable_autoconnect() -> bool:
            return await self._controls.set_credential("AUTOCONNECT", "false")

        return [
            *self._carry_over_steps(),
            Step("set_preferred_region", _set_region, gating=True),
            Step("disable_autoconnect", _disable_autoconnect, gating=True),
            Step("restore_credentials_mode", self._controls.restore_credentials_mode),
            Step("restart_vpn", self._controls.restart_vpn),
            *self._reconnect_tail(self._settings.reconnect_settle_s, cancel_event),
        ]

    def _find_fastest_steps(self, cancel_event: asyncio.Event) -> list[Step]:
        async def _enable_autoconnect() -> bool:
            return await self._controls.set_credential("AUTOCONNECT", "true")

        return [
            *self._carry_over_steps(),
            Step("enable_autoconnect", _enable_autoconnect, gating=True),
            Step("link_down", self._controls.link_down),
            self._delay_step("link_down_settle", self._settings.link_down_settle_s),
            Step("restart_vpn", self._controls.restart_vpn),
            *self._reconnect_tail(self._settings.reconnect_settle_s, cancel_event),
        ]

    def _toggle_killswitch_steps(self, _cancel_event: asyncio.Event) -> list[Step]:
        async def _toggle() -> bool:
            if await self._killswitch_enabled():
                return await self._controls.disable_killswitch()
            return await self._controls.enable_killswitch()

        return [
            Step("toggle_killswitch", _toggle, gating=True),
            self._delay_step("settle", self._settings.killswitch_settle_s),
        ]
