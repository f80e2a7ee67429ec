"""Configuration controller for YAML-based settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


PACKAGED_DEFAULT = Path(__file__).with_name("default.yaml")


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem paths for configuration files."""

    config_dir: Path
    config_file: Path
    override_file: Path


class ConfigController:
    """Singleton controller for loading and updating configuration."""

    _instance: "ConfigController | None" = None

    def __init__(self, config_file: str = "default.yaml") -> None:
        if ConfigController._instance is not None:
            raise RuntimeError("You cannot create another ConfigController class")

        config_dir = Path("config")
        self.paths = ConfigPaths(
            config_dir=config_dir,
            config_file=config_dir / config_file,
            override_file=config_dir / "override.yaml",
        )
        self.config: dict[str, Any] = {}
        self.load_config()

    @classmethod
    def get_instance(cls) -> "ConfigController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self) -> None:
        """Load configuration from default and override YAML files."""

        config_file = self.paths.config_file
        if not config_file.exists():
            config_file = PACKAGED_DEFAULT
        with config_file.open("r", encoding="utf-8") as file:
            config = yaml.safe_load(file) or {}

        if self.paths.override_file.exists():
            with self.paths.override_file.open("r", encoding="utf-8") as file:
                override_config = yaml.safe_load(file) or {}
            if override_config:
                config = self._deep_merge(config, override_config)

        self.config = self._normalize_config(config)

    def get_config(self) -> dict[str, Any]:
        """Return the currently loaded configuration."""

        return dict(self.config)

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge dictionaries, overriding base values with override values."""

        merged = dict(base)
        for key, value in override.items():
            if (
                key in merged
                and isinstance(merged[key], dict)
                and isinstance(value, dict)
            ):
                merged[key] = self._deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _normalize_config(self, config: dict[str, Any]) -> dict[str, Any]:
        """Fill in defaults for every section the engine reads."""

        normalized = dict(config)

        vpn_cfg = dict(normalized.get("vpn") or {})
        vpn_cfg["interface"] = str(vpn_cfg.get("interface", "pia"))
        normalized["vpn"] = vpn_cfg

        paths_cfg = dict(normalized.get("paths") or {})
        state_dir = str(paths_cfg.get("state_dir", "/var/lib/pia"))
        paths_cfg["state_dir"] = state_dir
        paths_cfg["forwarded_port"] = str(
            paths_cfg.get("forwarded_port", f"{state_dir}/forwarded_port")
        )
        paths_cfg["region_marker"] = str(paths_cfg.get("region_marker", f"{state_dir}/region.txt"))
        paths_cfg["credentials"] = str(paths_cfg.get("credentials", "/etc/pia-credentials"))
        normalized["paths"] = paths_cfg

        latency_cfg = dict(normalized.get("latency") or {})
        latency_cfg["host"] = str(latency_cfg.get("host", "10.0.0.243"))
        latency_cfg["timeout_s"] = float(latency_cfg.get("timeout_s", 2.0))
        normalized["latency"] = latency_cfg

        killswitch_cfg = dict(normalized.get("killswitch") or {})
        killswitch_cfg["table"] = str(killswitch_cfg.get("table", "pia_killswitch"))
        normalized["killswitch"] = killswitch_cfg

        timing_cfg = dict(normalized.get("timing") or {})
        for key, default in (
            ("disconnect_settle_s", 2.0),
            ("connect_settle_s", 2.0),
            ("reconnect_settle_s", 8.0),
            ("link_down_settle_s", 2.0),
            ("killswitch_settle_s", 1.0),
            ("command_timeout_s", 30.0),
        ):
            timing_cfg[key] = max(0.0, float(timing_cfg.get(key, default)))
        normalized["timing"] = timing_cfg

        readiness_cfg = dict(normalized.get("readiness") or {})
        readiness_cfg["max_attempts"] = max(1, int(readiness_cfg.get("max_attempts", 5)))
        readiness_cfg["retry_delay_s"] = max(0.0, float(readiness_cfg.get("retry_delay_s", 3.0)))
        normalized["readiness"] = readiness_cfg

        catalog_cfg = dict(normalized.get("catalog") or {})
        catalog_cfg["url"] = str(
            catalog_cfg.get("url", "https://serverlist.piaservers.net/vpninfo/servers/v7")
        )
        catalog_cfg["timeout_s"] = float(catalog_cfg.get("timeout_s", 10.0))
        normalized["catalog"] = catalog_cfg

        commands_cfg = dict(normalized.get("commands") or {})
        for key, value in commands_cfg.items():
            if isinstance(value, str):
                commands_cfg[key] = value.split()
            elif isinstance(value, list):
                commands_cfg[key] = [str(item) for item in value]
        normalized["commands"] = commands_cfg

        normalized["logging_level"] = str(normalized.get("logging_level", "INFO"))
        normalized["file_logging_enabled"] = bool(normalized.get("file_logging_enabled", False))
        normalized["log_max_bytes"] = max(0, int(normalized.get("log_max_bytes", 1_000_000)))
        normalized["log_backups"] = max(0, int(normalized.get("log_backups", 3)))
        return normalized
