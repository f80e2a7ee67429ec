"""Async execution of external commands that report via exit status."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Sequence

from core.logging import logger


EXIT_NOT_RUNNABLE = 127
EXIT_TIMED_OUT = -1


@dataclass(frozen=True)
class CommandResult:
    """Completion record for one external command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Run argv lists as asyncio subprocesses without blocking the loop."""

    def __init__(self, *, timeout_s: float = 30.0) -> None:
        self._timeout_s = max(0.1, float(timeout_s))

    async def run(self, argv: Sequence[str], *, timeout_s: float | None = None) -> CommandResult:
        """Run ``argv`` to completion and return its exit status and output.

        Spawn failures and timeouts come back as failed results rather than
        exceptions so callers only ever inspect ``returncode``.
        """

        argv = tuple(argv)
        timeout = self._timeout_s if timeout_s is None else max(0.1, float(timeout_s))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.debug("[Command] %s could not start: %s", argv[0] if argv else "?", exc)
            return CommandResult(argv=argv, returncode=EXIT_NOT_RUNNABLE, stderr=str(exc))

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("[Command] %s timed out after %.1fs", " ".join(argv), timeout)
            return CommandResult(argv=argv, returncode=EXIT_TIMED_OUT, stderr="timed out")

        result = CommandResult(
            argv=argv,
            returncode=process.returncode if process.returncode is not None else EXIT_TIMED_OUT,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        if not result.ok:
            logger.debug(
                "[Command] %s exited with %s: %s",
                " ".join(argv),
                result.returncode,
                result.stderr.strip(),
            )
        return result
