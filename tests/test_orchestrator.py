"""Tests for orchestrated lifecycle operations."""

from __future__ import annotations

import asyncio
from pathlib import Path

from services.orchestrator import (
    OperationOutcome,
    Orchestrator,
    OrchestratorSettings,
    Step,
    run_steps,
)
from services.readiness_poller import ReadinessPoller
from storage.carry_over import CarryOverMarker


class _FakeControls:
    def __init__(
        self,
        *,
        fail: set[str] | None = None,
        blocks: dict[str, asyncio.Event] | None = None,
    ) -> None:
        self.calls: list[str] = []
        self._fail = fail or set()
        self._blocks = blocks or {}

    async def _do(self, name: str) -> bool:
        self.calls.append(name)
        if name in self._blocks:
            await self._blocks[name].wait()
        return name not in self._fail

    async def restart_vpn(self) -> bool:
        return await self._do("restart_vpn")

    async def link_up(self) -> bool:
        return await self._do("link_up")

    async def link_down(self) -> bool:
        return await self._do("link_down")

    async def stop_port_forward(self) -> bool:
        return await self._do("stop_port_forward")

    async def pause_watchdog(self) -> bool:
        return await self._do("pause_watchdog")

    async def resume_watchdog(self) -> bool:
        return await self._do("resume_watchdog")

    async def enable_killswitch(self) -> bool:
        return await self._do("enable_killswitch")

    async def disable_killswitch(self) -> bool:
        return await self._do("disable_killswitch")

    async def set_credential(self, key: str, value: str) -> bool:
        return await self._do(f"set {key}={value}")

    async def restore_credentials_mode(self) -> bool:
        return await self._do("chmod_credentials")


class _Harness:
    def __init__(
        self,
        tmp_path: Path,
        controls: _FakeControls,
        *,
        killswitch_on: bool = False,
        connected: bool = True,
    ) -> None:
        self.controls = controls
        self.marker = CarryOverMarker(tmp_path / "killswitch.restore")
        self.refreshes = 0
        self.sleeps: list[float] = []
        self.killswitch_on = killswitch_on
        self.connected = connected
        self.poller = ReadinessPoller(
            interface_ready=self._interface_ready,
            enable_killswitch=controls.enable_killswitch,
            marker=self.marker,
            refresh=self._refresh,
            sleep=self._sleep,
        )
        self.orchestrator = Orchestrator(
            controls=controls,
            poller=self.poller,
            marker=self.marker,
            refresh=self._refresh,
            killswitch_enabled=self._killswitch_enabled,
            link_connected=self._link_connected,
            settings=OrchestratorSettings(
                disconnect_settle_s=2.0,
                reconnect_settle_s=8.0,
                link_down_settle_s=2.0,
                killswitch_settle_s=1.0,
            ),
            sleep=self._sleep,
        )

    async def _interface_ready(self) -> bool:
        return True

    async def _killswitch_enabled(self) -> bool:
        return self.killswitch_on

    async def _link_connected(self) -> bool:
        return self.connected

    async def _refresh(self) -> None:
        self.refreshes += 1

    async def _sleep(self, delay_s: float) -> None:
        self.sleeps.append(delay_s)


def test_disconnect_carries_killswitch_over(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, _FakeControls(), killswitch_on=True)

    result = asyncio.run(harness.orchestrator.disconnect())

    assert result.outcome is OperationOutcome.COMPLETED
    assert harness.controls.calls == [
        "disable_killswitch",
        "pause_watchdog",
        "stop_port_forward",
        "link_down",
    ]
    assert result.step_names[0] == "persist_carry_over"
    assert harness.marker.exists()
    assert harness.sleeps == [2.0]
    assert harness.refreshes == 1


def test_disconnect_without_killswitch_leaves_no_marker(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, _FakeControls(), killswitch_on=False)

    asyncio.run(harness.orchestrator.disconnect())

    assert "disable_killswitch" not in harness.controls.calls
    assert not harness.marker.exists()


def test_non_gating_failure_does_not_abort(tmp_path: Path) -> None:
    harness = _Harness(tmp_path, _FakeControls(fail={"pause_watchdog"}))

    result = asyncio.run(harness.orchestrator.disconnect())

    assert result.outcome is OperationOutcome.COMPLETED
    assert "link_down" in harness.controls.calls


def test_switch_region_aborts_when_first_edit_fails(tmp_path: Path) -> None:
    controls = _FakeControls(fail={"set PREFERRED_REGION=ca_toronto"})
    harness = _Harness(tmp_path, controls)

    result = asyncio.run(harness.orchestrator.switch_region("ca_toronto"))

    assert result.outcome is OperationOutcome.ABORTED
    assert result.failed_step == "set_preferred_region"
    assert "set AUTOCONNECT=false" not in controls.calls
    assert "restart_vpn" not in controls.calls
    assert harness.refreshes == 1


def test_switch_region_aborts_when_second_edit_fails(tmp_path: Path) -> None:
    controls = _FakeControls(fail={"set AUTOCONNECT=false"})
    harness = _Harness(tmp_path, controls)

    result = asyncio.run(harness.orchestrator.switch_region("ca_toronto"))

    assert result.failed_step == "disable_autoconnect"
    assert "restart_vpn" not in controls.calls


def test_switch_region_full_sequence_rearms_killswitch(tmp_path: Path) -> None:
    controls = _FakeControls()
    harness = _Harness(tmp_path, controls, killswitch_on=True)

    result = asyncio.run(harness.orchestrator.switch_region("ca_toronto"))

    assert result.outcome is OperationOutcome.COMPLETED
    assert controls.calls == [
        "disable_killswitch",
        "pause_watchdog",
        "set PREFERRED_REGION=ca_toronto",
        "set AUTOCONNECT=false",
        "chmod_credentials",
        "restart_vpn",
        "resume_watchdog",
        "enable_killswitch",
    ]
    assert harness.sleeps == [8.0]
    assert not harness.marker.exists()
    # one from the poller on success, one closing the sequence
    assert harness.refreshes == 2


def test_failed_restart_still_resumes_watchdog_and_rearms(tmp_path: Path) -> None:
    controls = _FakeControls(fail={"restart_vpn"})
    harness = _Harness(tmp_path, controls, killswitch_on=True)

    result = asyncio.run(harness.orchestrator.switch_region("ca_toronto"))

    assert result.outcome is OperationOutcome.COMPLETED
    assert controls.calls[-3:] == ["restart_vpn", "resume_watchdog", "enable_killswitch"]
    assert not harness.marker.exists()


def test_reconnect_with_failed_restart_resumes_watchdog(tmp_path: Path) -> None:
    controls = _FakeControls(fail={"restart_vpn"})
    harness = _Harness(tmp_path, controls)

    result = asyncio.run(harness.orchestrator.reconnect())

    assert result.failed_step is None
    assert controls.calls == ["restart_vpn", "resume_watchdog"]
    assert [record.ok for record in result.steps][0] is False


def test_reconnect_without_marker_skips_rearm(tmp_path: Path) -> None:
    controls = _FakeControls()
    harness = _Harness(tmp_path, controls)

    result = asyncio.run(harness.orchestrator.reconnect())

    assert result.ok
    assert controls.calls == ["restart_vpn", "resume_watchdog"]
    assert result.step_names == ["restart_vpn", "settle", "resume_watchdog", "rearm_killswitch"]


def test_find_fastest_aborts_before_link_down(tmp_path: Path) -> None:
    controls = _FakeControls(fail={"set AUTOCONNECT=true"})
    harness = _Harness(tmp_path, controls)

    result = asyncio.run(harness.orchestrator.find_fastest_server())

    assert result.failed_step == "enable_autoconnect"
    assert "link_down" not in controls.calls
    assert "restart_vpn" not in controls.calls


def test_find_fastest_sequence(tmp_path: Path) -> None:
    controls = _FakeControls()
    harness = _Harness(tmp_path, controls)

    result = asyncio.run(harness.orchestrator.find_fastest_server())

    assert result.ok
    assert controls.calls == [
        "pause_watchdog",
        "set AUTOCONNECT=true",
        "link_down",
        "restart_vpn",
        "resume_watchdog",
    ]
    assert harness.sleeps == [2.0, 8.0]


def test_toggle_killswitch_follows_current_state(tmp_path: Path) -> None:
    controls = _FakeControls()
    harness = _Harness(tmp_path, controls, killswitch_on=True)

    asyncio.run(harness.orchestrator.toggle_killswitch())
    harness.killswitch_on = False
    asyncio.run(harness.orchestrator.toggle_killswitch())

    assert controls.calls == ["disable_killswitch", "enable_killswitch"]
    assert harness.sleeps == [1.0, 1.0]
    assert harness.refreshes == 2


def test_toggle_connection_picks_operation(tmp_path: Path) -> None:
    controls = _FakeControls()
    harness = _Harness(tmp_path, controls, connected=False)

    result = asyncio.run(harness.orchestrator.toggle_connection())

    assert result.operation == "connect"
    assert controls.calls[0] == "link_up"


def test_second_operation_is_rejected_while_one_is_in_flight(tmp_path: Path) -> None:
    async def _scenario():
        release = asyncio.Event()
        controls = _FakeControls(blocks={"restart_vpn": release})
        harness = _Harness(tmp_path, controls, killswitch_on=True)
        switch = asyncio.create_task(harness.orchestrator.switch_region("ca_toronto"))
        while "restart_vpn" not in controls.calls:
            await asyncio.sleep(0)
        assert harness.orchestrator.busy
        assert harness.orchestrator.current_operation == "switch_region"
        rejected = await harness.orchestrator.reconnect()
        release.set()
        completed = await switch
        return rejected, completed, controls, harness

    rejected, completed, controls, harness = asyncio.run(_scenario())

    assert rejected.outcome is OperationOutcome.REJECTED
    assert rejected.steps == ()
    assert completed.outcome is OperationOutcome.COMPLETED
    assert controls.calls.count("restart_vpn") == 1
    assert not harness.orchestrator.busy


def test_cancel_stops_remaining_steps(tmp_path: Path) -> None:
    async def _scenario():
        release = asyncio.Event()
        controls = _FakeControls(blocks={"restart_vpn": release})
        harness = _Harness(tmp_path, controls)
        task = asyncio.create_task(harness.orchestrator.reconnect())
        while "restart_vpn" not in controls.calls:
            await asyncio.sleep(0)
        assert harness.orchestrator.cancel() is True
        release.set()
        return await task, controls, harness

    result, controls, harness = asyncio.run(_scenario())

    assert result.outcome is OperationOutcome.CANCELLED
    assert controls.calls == ["restart_vpn"]
    assert harness.sleeps == []
    assert harness.refreshes == 1
    assert harness.orchestrator.cancel() is False


def test_resume_pending_rearm(tmp_path: Path) -> None:
    controls = _FakeControls()
    harness = _Harness(tmp_path, controls)

    assert asyncio.run(harness.orchestrator.resume_pending_rearm()) is None

    harness.marker.set()
    result = asyncio.run(harness.orchestrator.resume_pending_rearm())

    assert result is not None and result.ok
    assert controls.calls == ["enable_killswitch"]
    assert not harness.marker.exists()


def test_run_steps_treats_exceptions_as_failures() -> None:
    ran: list[str] = []

    async def _ok() -> bool:
        ran.append("ok")
        return True

    async def _boom() -> bool:
        raise RuntimeError("helper crashed")

    result = asyncio.run(
        run_steps(
            "demo",
            [Step("first", _boom), Step("second", _ok), Step("gate", _boom, gating=True), Step("never", _ok)],
        )
    )

    assert result.outcome is OperationOutcome.ABORTED
    assert result.failed_step == "gate"
    assert ran == ["ok"]
    assert [record.ok for record in result.steps] == [False, True, False]
