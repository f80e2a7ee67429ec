"""Durable kill-switch carry-over marker."""

from __future__ import annotations

from pathlib import Path

from core.logging import logger


class CarryOverMarker:
    """File-backed flag: present means the kill switch must be restored.

    The file outlives the process so that a restore interrupted by a restart
    is picked up again on the next start.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def set(self) -> bool:
        """Create the marker; returns False if it could not be written."""

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.touch()
        except OSError as exc:
            logger.warning("[Marker] Could not write %s: %s", self._path, exc)
            return False
        return True

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("[Marker] Could not remove %s: %s", self._path, exc)
