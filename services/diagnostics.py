"""Diagnostics routines for the external VPN tooling."""

from __future__ import annotations

from pathlib import Path
import shutil
from typing import Callable, Iterable

from diagnostics.models import DiagnosticResult, DiagnosticStatus


REQUIRED_TOOLS = ("ip", "ping", "sudo")
OPTIONAL_TOOLS = ("inotifywait", "nft", "wg-quick", "systemctl", "sed")


def probe(
    state_dir: Path | None = None,
    which: Callable[[str], str | None] = shutil.which,
    required: Iterable[str] = REQUIRED_TOOLS,
    optional: Iterable[str] = OPTIONAL_TOOLS,
) -> DiagnosticResult:
    """Check that the commands the probes and controls invoke are installed.

    Args:
        state_dir: Directory the change notifier watches.
        which: Lookup used to resolve commands, replaceable in tests.
        required: Commands without which status cannot be read.
        optional: Commands whose absence only disables some features.

    Returns:
        Diagnostic result indicating tool readiness.
    """

    name = "services"
    missing_required = [tool for tool in required if which(tool) is None]
    missing_optional = [tool for tool in optional if which(tool) is None]

    if missing_required:
        return DiagnosticResult(
            name=name,
            status=DiagnosticStatus.FAIL,
            details=f"Missing required tools: {', '.join(missing_required)}",
        )

    notes: list[str] = []
    if missing_optional:
        notes.append(f"missing optional tools: {', '.join(missing_optional)}")
    if state_dir is not None and not state_dir.is_dir():
        notes.append(f"state directory {state_dir} not found")
    if notes:
        return DiagnosticResult(name=name, status=DiagnosticStatus.WARN, details="; ".join(notes))

    return DiagnosticResult(
        name=name,
        status=DiagnosticStatus.PASS,
        details="All external tools available",
    )
