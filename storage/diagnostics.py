"""Diagnostics routines for the storage subsystem."""

from __future__ import annotations

from pathlib import Path

from diagnostics.models import DiagnosticResult, DiagnosticStatus
from storage.controller import CARRY_OVER_MARKER_NAME, StorageController


def probe(base_dir: Path | None = None) -> DiagnosticResult:
    """Run a storage probe to validate the state and log directories.

    Args:
        base_dir: Optional base directory for offline testing.

    Returns:
        Diagnostic result indicating storage readiness.
    """

    name = "storage"
    try:
        if base_dir is None:
            info = StorageController.get_instance().get_storage_info()
            var_dir = info.var_dir
            log_dir = info.log_dir
            marker = info.carry_over_marker
        else:
            var_dir = base_dir / "var"
            log_dir = base_dir / "log"
            marker = var_dir / CARRY_OVER_MARKER_NAME

        var_dir.mkdir(parents=True, exist_ok=True)
        log_dir.mkdir(parents=True, exist_ok=True)

        sentinel = var_dir / "diagnostics_probe.txt"
        sentinel.write_text("ok", encoding="utf-8")
        sentinel.unlink(missing_ok=True)
        if marker.exists():
            return DiagnosticResult(
                name=name,
                status=DiagnosticStatus.WARN,
                details=f"Kill-switch restore pending ({marker})",
            )

        details = f"State directory writable at {var_dir}"
        return DiagnosticResult(name=name, status=DiagnosticStatus.PASS, details=details)
    except OSError as exc:
        details = f"Filesystem access failed: {exc}"
        return DiagnosticResult(name=name, status=DiagnosticStatus.FAIL, details=details)
