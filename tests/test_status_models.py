"""Tests for status snapshot models."""

from __future__ import annotations

import pytest

from core.status_models import (
    NOT_APPLICABLE,
    LatencyClass,
    LatencySample,
    RegionMarker,
    StatusSnapshot,
)


def _snapshot(**overrides) -> StatusSnapshot:
    values = {
        "connected": True,
        "forwarded_port": 41234,
        "region_name": "CA Toronto",
        "latency": LatencySample.from_ms(30.0),
        "killswitch_enabled": True,
        "generated_at": 1.0,
    }
    values.update(overrides)
    return StatusSnapshot(**values)


@pytest.mark.parametrize(
    ("latency_ms", "expected"),
    [
        (30.0, LatencyClass.EXCELLENT),
        (75.0, LatencyClass.GOOD),
        (150.0, LatencyClass.FAIR),
        (250.0, LatencyClass.POOR),
        (49.9, LatencyClass.EXCELLENT),
        (50.0, LatencyClass.GOOD),
        (200.0, LatencyClass.POOR),
    ],
)
def test_latency_buckets(latency_ms: float, expected: LatencyClass) -> None:
    sample = LatencySample.from_ms(latency_ms)

    assert sample.latency_class is expected
    assert sample.latency_ms == latency_ms


def test_region_marker_reads_either_key() -> None:
    marker = RegionMarker.parse("hostname=sydney428\nregion_id=aus\n")

    assert marker.region_id == "aus"
    assert marker.hostname == "sydney428"


def test_region_marker_tolerates_missing_keys_and_noise() -> None:
    marker = RegionMarker.parse("# written by pia-vpn\nip=1.2.3.4\nhostname=\n")

    assert marker.region_id is None
    assert marker.hostname is None


def test_changed_fields_ignores_generation_time() -> None:
    previous = _snapshot(generated_at=1.0)
    current = _snapshot(generated_at=2.0)

    assert current.changed_fields(previous) == frozenset()


def test_changed_fields_reports_only_differences() -> None:
    previous = _snapshot()
    current = _snapshot(forwarded_port=50000, killswitch_enabled=False)

    assert current.changed_fields(previous) == {"forwarded_port", "killswitch_enabled"}


def test_first_snapshot_reports_every_field() -> None:
    current = _snapshot(connected=False, forwarded_port=None, latency=NOT_APPLICABLE)

    assert "connected" in current.changed_fields(None)
    assert "latency_class" in current.changed_fields(None)
