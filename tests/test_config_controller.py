"""Tests for configuration loading and normalization."""

from __future__ import annotations

from pathlib import Path

from config.controller import ConfigController


def _reset_singletons() -> None:
    ConfigController._instance = None


def test_packaged_defaults_used_without_local_config(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    cfg = ConfigController.get_instance().get_config()
    assert cfg["vpn"]["interface"] == "pia"
    assert cfg["paths"]["forwarded_port"] == "/var/lib/pia/forwarded_port"
    assert cfg["readiness"]["max_attempts"] == 5
    assert cfg["commands"]["killswitch_list"] == ["sudo", "-n", "nft", "list", "tables"]
    _reset_singletons()


def test_override_merges_and_normalizes(tmp_path: Path, monkeypatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text(
        "\n".join(
            [
                "vpn:",
                "  interface: wg0",
                "paths:",
                "  state_dir: /srv/pia",
                "timing:",
                "  reconnect_settle_s: 4",
            ]
        ),
        encoding="utf-8",
    )
    (config_dir / "override.yaml").write_text(
        "\n".join(
            [
                "timing:",
                "  reconnect_settle_s: -3",
                "readiness:",
                "  max_attempts: 0",
                "commands:",
                "  vpn_restart: systemctl restart vpn",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    cfg = ConfigController.get_instance().get_config()
    assert cfg["vpn"]["interface"] == "wg0"
    assert cfg["paths"]["forwarded_port"] == "/srv/pia/forwarded_port"
    assert cfg["paths"]["region_marker"] == "/srv/pia/region.txt"
    assert cfg["timing"]["reconnect_settle_s"] == 0.0
    assert cfg["timing"]["disconnect_settle_s"] == 2.0
    assert cfg["readiness"]["max_attempts"] == 1
    assert cfg["commands"]["vpn_restart"] == ["systemctl", "restart", "vpn"]
    assert cfg["file_logging_enabled"] is False
    _reset_singletons()


def test_loading_config_never_writes_files(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    _reset_singletons()

    ConfigController.get_instance().load_config()

    assert list(tmp_path.iterdir()) == []
    _reset_singletons()
