"""Diagnostics helpers for the VPN status engine."""

from diagnostics.models import DiagnosticResult, DiagnosticStatus, overall_status
from diagnostics.runner import format_results, run_diagnostics

__all__ = [
    "DiagnosticResult",
    "DiagnosticStatus",
    "format_results",
    "overall_status",
    "run_diagnostics",
]
