"""Named external actions against the VPN stack."""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Mapping

from core.logging import logger
from core.process import CommandResult, CommandRunner


DEFAULT_COMMANDS: dict[str, list[str]] = {
    "vpn_restart": ["sudo", "-n", "systemctl", "restart", "pia-vpn.service"],
    "link_up": ["sudo", "-n", "wg-quick", "up", "{interface}"],
    "link_down": ["sudo", "-n", "wg-quick", "down", "{interface}"],
    "port_forward_stop": ["sudo", "-n", "systemctl", "stop", "pia-port-forward.service"],
    "watchdog_pause": [
        "sudo", "-n", "systemctl", "kill", "--signal=SIGSTOP", "pia-watchdog.service",
    ],
    "watchdog_resume": [
        "sudo", "-n", "systemctl", "kill", "--signal=SIGCONT", "pia-watchdog.service",
    ],
    "killswitch_enable": ["sudo", "-n", "/usr/local/bin/pia-killswitch", "enable"],
    "killswitch_disable": ["sudo", "-n", "/usr/local/bin/pia-killswitch", "disable"],
    "credentials_edit": ["sudo", "-n", "sed", "-i"],
    "credentials_chmod": ["sudo", "-n", "chmod", "644"],
}

_SAFE_VALUE = re.compile(r"^[A-Za-z0-9_-]+$")
_SAFE_KEY = re.compile(r"^[A-Z][A-Z0-9_]*$")


@dataclass(frozen=True)
class ControlSettings:
    """Command vocabulary and targets for the external helpers."""

    interface: str = "pia"
    credentials_path: str = "/etc/pia-credentials"
    commands: Mapping[str, list[str]] = field(default_factory=lambda: dict(DEFAULT_COMMANDS))

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ControlSettings":
        commands = dict(DEFAULT_COMMANDS)
        for key, value in (config.get("commands") or {}).items():
            if key in commands and isinstance(value, list) and value:
                commands[key] = [str(item) for item in value]
        return cls(
            interface=str((config.get("vpn") or {}).get("interface", cls.interface)),
            credentials_path=str(
                (config.get("paths") or {}).get("credentials", cls.credentials_path)
            ),
            commands=commands,
        )


class VpnControls:
    """Issue one external action and report success by exit status."""

    def __init__(self, runner: CommandRunner, settings: ControlSettings) -> None:
        self._runner = runner
        self._settings = settings

    @property
    def interface(self) -> str:
        return self._settings.interface

    async def restart_vpn(self) -> bool:
        return await self._run_named("vpn_restart")

    async def link_up(self) -> bool:
        return await self._run_named("link_up")

    async def link_down(self) -> bool:
        return await self._run_named("link_down")

    async def stop_port_forward(self) -> bool:
        return await self._run_named("port_forward_stop")

    async def pause_watchdog(self) -> bool:
        return await self._run_named("watchdog_pause")

    async def resume_watchdog(self) -> bool:
        return await self._run_named("watchdog_resume")

    async def enable_killswitch(self) -> bool:
        return await self._run_named("killswitch_enable")

    async def disable_killswitch(self) -> bool:
        return await self._run_named("killswitch_disable")

    async def set_credential(self, key: str, value: str) -> bool:
        """Rewrite one ``KEY=value`` line of the credentials store."""

        if not _SAFE_KEY.match(key) or not _SAFE_VALUE.match(value):
            logger.error("[Controls] Refusing unsafe credentials edit %s=%r", key, value)
            return False
        expression = f"s/^{key}=.*/{key}={value}/"
        argv = [
            *self._settings.commands["credentials_edit"],
            expression,
            self._settings.credentials_path,
        ]
        return self._report("credentials_edit", await self._runner.run(argv))

    async def restore_credentials_mode(self) -> bool:
        argv = [*self._settings.commands["credentials_chmod"], self._settings.credentials_path]
        return self._report("credentials_chmod", await self._runner.run(argv))

    async def _run_named(self, name: str) -> bool:
        argv = [
            part.replace("{interface}", self._settings.interface)
            for part in self._settings.commands[name]
        ]
        return self._report(name, await self._runner.run(argv))

    def _report(self, name: str, result: CommandResult) -> bool:
        if result.ok:
            logger.debug("[Controls] %s succeeded", name)
        else:
            logger.warning(
                "[Controls] %s failed (exit %s): %s",
                name,
                result.returncode,
                result.stderr.strip() or "no output",
            )
        return result.ok
