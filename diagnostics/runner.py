"""Diagnostics runner utilities."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from core.logging import logger
from diagnostics.models import DiagnosticResult, DiagnosticStatus, overall_status


DiagnosticProbe = Callable[[], DiagnosticResult]


def format_results(results: Sequence[DiagnosticResult]) -> str:
    """Return a plain-text report with one line per probe and a verdict."""

    rule = "-" * 60
    lines = ["VPN status diagnostics", rule]
    lines.extend(f"[{result.status.value}] {result.name}: {result.details}" for result in results)
    lines.append(rule)
    lines.append(f"Overall: {overall_status(results).value} ({len(results)} checks)")
    return "\n".join(lines)


def run_diagnostics(probes: Iterable[DiagnosticProbe]) -> list[DiagnosticResult]:
    """Run every probe in order.

    A probe that raises is reported as FAIL and the remaining probes still run.
    """

    results: list[DiagnosticResult] = []
    for probe in probes:
        name = getattr(probe, "__name__", "unknown_probe")
        try:
            result = probe()
        except Exception as exc:  # noqa: BLE001 - one broken probe must not hide the rest
            logger.exception("[Diagnostics] Probe %s raised", name)
            result = DiagnosticResult(
                name=name,
                status=DiagnosticStatus.FAIL,
                details=f"Probe raised exception: {exc}",
            )
        results.append(result)
    return results
