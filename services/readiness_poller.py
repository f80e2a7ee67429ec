"""Bounded wait for the tunnel before re-arming the kill switch."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable

from core.logging import logger
from storage.carry_over import CarryOverMarker


class RearmOutcome(str, Enum):
    """Terminal result of one readiness poll."""

    ENABLED = "enabled"
    EXHAUSTED = "exhausted"
    ALREADY_RUNNING = "already_running"
    CANCELLED = "cancelled"


class ReadinessPoller:
    """Wait for the interface, then enable the kill switch, up to N attempts.

    Success and exhaustion both consume the carry-over marker. Only one poll
    runs at a time; a second call while one is outstanding is a no-op.
    """

    def __init__(
        self,
        *,
        interface_ready: Callable[[], Awaitable[bool]],
        enable_killswitch: Callable[[], Awaitable[bool]],
        marker: CarryOverMarker,
        refresh: Callable[[], Awaitable[object]],
        retry_delay_s: float = 3.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._interface_ready = interface_ready
        self._enable_killswitch = enable_killswitch
        self._marker = marker
        self._refresh = refresh
        self._retry_delay_s = max(0.0, retry_delay_s)
        self._sleep = sleep
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    async def wait_and_enable_killswitch(
        self,
        max_attempts: int = 5,
        cancel_event: asyncio.Event | None = None,
    ) -> RearmOutcome:
        if self._active:
            logger.info("[Readiness] Re-arm already in progress; ignoring request.")
            return RearmOutcome.ALREADY_RUNNING
        self._active = True
        try:
            return await self._poll(max(1, int(max_attempts)), cancel_event)
        finally:
            self._active = False

    async def _poll(self, max_attempts: int, cancel_event: asyncio.Event | None) -> RearmOutcome:
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                await self._sleep(self._retry_delay_s)
            if cancel_event is not None and cancel_event.is_set():
                logger.info("[Readiness] Cancelled; kill-switch restore left pending.")
                return RearmOutcome.CANCELLED

            if not await self._interface_ready():
                logger.info(
                    "[Readiness] Interface not up yet (attempt %s/%s)",
                    attempt,
                    max_attempts,
                )
                continue

            if await self._enable_killswitch():
                self._marker.clear()
                logger.info("[Readiness] Kill switch re-armed (attempt %s/%s)", attempt, max_attempts)
                await self._refresh()
                return RearmOutcome.ENABLED

            logger.warning(
                "[Readiness] Kill-switch enable failed (attempt %s/%s)",
                attempt,
                max_attempts,
            )

        self._marker.clear()
        logger.warning(
            "[Readiness] Gave up re-arming the kill switch after %s attempts.",
            max_attempts,
        )
        return RearmOutcome.EXHAUSTED
