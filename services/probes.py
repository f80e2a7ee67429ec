"""Read-only probes that each yield one attribute of VPN state."""

from __future__ import annotations

import asyncio
from pathlib import Path
import re

from core.logging import logger
from core.process import CommandRunner
from core.status_models import LatencyClass, LatencySample, RegionMarker
from services.region_catalog import RegionCatalog, resolve_region_name


_PING_TIME = re.compile(r"time[=<]\s*([\d.]+)\s*ms")
_PING_NO_REPLY = 1


async def probe_link(runner: CommandRunner, interface: str) -> bool:
    """Connected iff the interface exists and carries an IPv4 address."""

    try:
        result = await runner.run(["ip", "addr", "show", interface])
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        logger.debug("[Probe] link probe failed: %s", exc)
        return False
    return result.ok and "inet " in result.stdout


async def probe_interface_exists(runner: CommandRunner, interface: str) -> bool:
    """Return whether the interface is present, with or without an address."""

    try:
        result = await runner.run(["ip", "link", "show", interface])
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        logger.debug("[Probe] interface probe failed: %s", exc)
        return False
    return result.ok


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def parse_forwarded_port(text: str) -> int | None:
    tokens = text.split()
    if not tokens:
        return None
    try:
        port = int(tokens[0])
    except ValueError:
        return None
    if 0 <= port <= 65535:
        return port
    return None


async def probe_forwarded_port(path: Path) -> int | None:
    try:
        text = await asyncio.to_thread(_read_text, path)
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        logger.debug("[Probe] port probe failed: %s", exc)
        return None
    if text is None:
        return None
    return parse_forwarded_port(text)


async def probe_region(path: Path, catalog: RegionCatalog | None) -> str | None:
    try:
        text = await asyncio.to_thread(_read_text, path)
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        logger.debug("[Probe] region probe failed: %s", exc)
        return None
    if text is None:
        return None
    return resolve_region_name(RegionMarker.parse(text), catalog)


def classify_ping_output(returncode: int, output: str) -> LatencySample:
    """Bucket one ping reply into a latency sample."""

    if returncode == _PING_NO_REPLY:
        return LatencySample(LatencyClass.NO_RESPONSE)
    if returncode != 0:
        return LatencySample(LatencyClass.ERROR)
    match = _PING_TIME.search(output)
    if match is None:
        return LatencySample(LatencyClass.UNKNOWN)
    try:
        latency_ms = float(match.group(1))
    except ValueError:
        return LatencySample(LatencyClass.UNKNOWN)
    return LatencySample.from_ms(latency_ms)


async def probe_latency(runner: CommandRunner, host: str, timeout_s: float) -> LatencySample:
    """Send exactly one echo request to ``host``."""

    wait_s = max(1, int(round(timeout_s)))
    try:
        result = await runner.run(
            ["ping", "-n", "-c", "1", "-W", str(wait_s), host],
            timeout_s=wait_s + 1.0,
        )
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        logger.debug("[Probe] latency probe failed: %s", exc)
        return LatencySample(LatencyClass.ERROR)
    return classify_ping_output(result.returncode, result.stdout)


def killswitch_table_listed(output: str, table: str) -> bool:
    for line in output.splitlines():
        words = line.split()
        if words and words[0] == "table" and words[-1] == table:
            return True
    return False


async def probe_killswitch(
    runner: CommandRunner,
    list_command: list[str],
    table: str,
) -> bool:
    """Mirror the firewall helper state for display; failures read as disabled."""

    try:
        result = await runner.run(list_command)
    except Exception as exc:  # noqa: BLE001 - probe should not raise
        logger.debug("[Probe] kill-switch probe failed: %s", exc)
        return False
    if not result.ok:
        return False
    return killswitch_table_listed(result.stdout, table)
