"""Countdown timer driving a quiz session through a command channel."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from tvc_engine.client.config import client_settings

logger = logging.getLogger(__name__)


class TimerCommandKind(str, Enum):
    TICK = "tick"
    LOW_TIME = "low_time"
    EXPIRED = "expired"


@dataclass(slots=True, frozen=True)
class TimerCommand:
    kind: TimerCommandKind
    remaining_seconds: int


class CountdownTimer:
    """One-second countdown owned by a single quiz session.

    The timer never calls into the session. It posts :class:`TimerCommand`
    messages on ``channel``: one ``TICK`` per second, at most one
    ``LOW_TIME`` and at most one ``EXPIRED``. Cancelling it posts nothing.
    """

    def __init__(
        self,
        channel: asyncio.Queue[TimerCommand],
        *,
        warning_at: int = client_settings.LOW_TIME_WARNING_SECONDS,
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._channel = channel
        self._warning_at = warning_at
        self._interval = interval
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._warned = False
        self._expired = False
        self.duration_seconds = 0
        self.remaining_seconds = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def expired(self) -> bool:
        return self._expired

    @property
    def elapsed_seconds(self) -> int:
        return self.duration_seconds - self.remaining_seconds

    def start(self, duration_seconds: int) -> None:
        if self._task is not None:
            raise RuntimeError("Timer already started")
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        self.duration_seconds = duration_seconds
        self.remaining_seconds = duration_seconds
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Timer started", extra={"duration_seconds": duration_seconds})

    async def _run(self) -> None:
        while self.remaining_seconds > 0:
            await self._sleep(self._interval)
            # Compared before the decrement: a test exactly warning_at long warns.
            if not self._warned and self.remaining_seconds == self._warning_at:
                self._warned = True
                self._post(TimerCommandKind.LOW_TIME)
            self.remaining_seconds -= 1
            self._post(TimerCommandKind.TICK)
        self._expired = True
        self._post(TimerCommandKind.EXPIRED)
        logger.debug("Timer expired", extra={"duration_seconds": self.duration_seconds})

    def _post(self, kind: TimerCommandKind) -> None:
        self._channel.put_nowait(TimerCommand(kind=kind, remaining_seconds=self.remaining_seconds))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        self.cancel()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> CountdownTimer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
