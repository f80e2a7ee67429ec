"""Local state directories for logs and durable markers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from config import ConfigController


CARRY_OVER_MARKER_NAME = "killswitch.restore"


@dataclass(frozen=True)
class StorageInfo:
    """Resolved storage locations."""

    var_dir: Path
    log_dir: Path
    log_file: Path
    carry_over_marker: Path


class StorageController:
    """Singleton controller for local state storage."""

    _instance: "StorageController | None" = None

    def __init__(self) -> None:
        if StorageController._instance is not None:
            raise RuntimeError("You cannot create another StorageController class")

        self.config_controller = ConfigController.get_instance()
        self.config = self.config_controller.get_config()

        var_dir, log_dir = self._resolve_storage_dirs()
        self.var_dir = var_dir
        self.log_dir = log_dir
        StorageController._instance = self

    @classmethod
    def get_instance(cls) -> "StorageController":
        """Return the singleton instance of the controller."""

        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def get_log_file_path(self) -> Path:
        """Return the log file path, creating its directory."""

        self.log_dir.mkdir(parents=True, exist_ok=True)
        return self.log_dir / "pia-status.log"

    def get_carry_over_marker_path(self) -> Path:
        """Return the kill-switch carry-over marker path."""

        return self.var_dir / CARRY_OVER_MARKER_NAME

    def get_storage_info(self) -> StorageInfo:
        """Return the resolved storage locations."""

        return StorageInfo(
            var_dir=self.var_dir,
            log_dir=self.log_dir,
            log_file=self.log_dir / "pia-status.log",
            carry_over_marker=self.get_carry_over_marker_path(),
        )

    def _resolve_storage_dirs(self) -> tuple[Path, Path]:
        """Resolve storage directories from configuration."""

        storage_config = self.config.get("storage", {})
        var_dir = storage_config.get("var_dir", self.config.get("var_dir", "./var/"))
        log_dir = storage_config.get("log_dir", self.config.get("log_dir", "./log/"))

        return Path(var_dir).expanduser(), Path(log_dir).expanduser()
