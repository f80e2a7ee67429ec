"""Directory change watcher that schedules debounced status refreshes."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Sequence

from core.logging import logger


DEFAULT_WATCH_COMMAND = ["inotifywait", "-m", "-q", "-e", "modify,create"]

RefreshCallback = Callable[[], Awaitable[object]]


class ChangeNotifier:
    """Coalesce filesystem events and manual triggers into single refreshes.

    At most one refresh is pending at any time. Requests that arrive while
    one is pending are folded into it; requests that arrive while a refresh
    is running schedule exactly one follow-up so no change is missed.
    """

    def __init__(
        self,
        refresh: RefreshCallback,
        watch_dir: Path,
        *,
        watch_command: Sequence[str] | None = None,
    ) -> None:
        self._refresh = refresh
        self._watch_dir = watch_dir
        self._watch_command = list(watch_command or DEFAULT_WATCH_COMMAND)
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._pending = False
        self._rerun = False
        self._enabled = False
        self._events_seen = 0

    @property
    def watching(self) -> bool:
        return self._enabled

    @property
    def events_seen(self) -> int:
        return self._events_seen

    async def start(self) -> bool:
        """Start the directory watch; returns False when it is unavailable."""

        if self._enabled:
            return True
        if not self._watch_dir.is_dir():
            logger.warning(
                "[Notifier] Watch directory %s missing; refreshing on demand only.",
                self._watch_dir,
            )
            return False
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._watch_command,
                str(self._watch_dir),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.warning("[Notifier] Directory watch unavailable (%s); refreshing on demand only.", exc)
            self._process = None
            return False

        self._enabled = True
        self._reader_task = asyncio.create_task(self._read_events(self._process))
        logger.info("[Notifier] Watching %s for changes", self._watch_dir)
        return True

    async def stop(self) -> None:
        self._enabled = False
        process = self._process
        self._process = None
        if process is not None and process.returncode is None:
            try:
                process.terminate()
                await asyncio.wait_for(process.wait(), timeout=2.0)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
        for task in (self._reader_task, self._refresh_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reader_task = None
        self._refresh_task = None

    def request_refresh(self) -> None:
        """Schedule one refresh on the next loop iteration."""

        if self._pending:
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            self._rerun = True
            return
        self._pending = True
        asyncio.get_running_loop().call_soon(self._launch_refresh)

    def _launch_refresh(self) -> None:
        self._refresh_task = asyncio.create_task(self._run_refresh())

    async def _run_refresh(self) -> None:
        self._pending = False
        try:
            await self._refresh()
        except Exception as exc:  # noqa: BLE001 - keep watching after a failed refresh
            logger.exception("[Notifier] Refresh failed: %s", exc)
        if self._rerun:
            self._rerun = False
            self._pending = True
            asyncio.get_running_loop().call_soon(self._launch_refresh)

    async def _read_events(self, process: asyncio.subprocess.Process) -> None:
        stream = process.stdout
        if stream is None:
            self._enabled = False
            return
        try:
            while True:
                line = await stream.readline()
                if not line:
                    break
                self._events_seen += 1
                self.request_refresh()
        except Exception as exc:  # noqa: BLE001 - degrade to on-demand refresh
            logger.warning("[Notifier] Watch read error: %s", exc)
        if self._enabled:
            logger.warning("[Notifier] Directory watch ended; refreshing on demand only.")
        self._enabled = False
