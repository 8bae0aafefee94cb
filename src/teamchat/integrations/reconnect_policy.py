"""Reconnection policy: one exclusive, cancellable timer per client.

The baseline strategy retries after a fixed delay, forever, until a connect
succeeds or the owner cancels. The ``backoff`` strategy doubles the delay per
consecutive attempt up to a cap, adds jitter to spread reconnect storms, and
can stop after ``max_attempts``.
"""

from __future__ import annotations

import asyncio
import random

from collections.abc import Callable

from teamchat.core.constants import (
    RECONNECT_DELAY,
    RECONNECT_JITTER,
    RECONNECT_MAX_DELAY,
    ReconnectStrategy,
    Settings,
)
from teamchat.utils.logger import TransportLogger, logger as default_logger
from teamchat.utils.metrics import reconnects_scheduled_total


class ReconnectPolicy:
    """Schedules reconnection attempts on the running event loop.

    Scheduling replaces any pending timer rather than stacking a second one.
    ``cancel()`` is synchronous, so once it returns no attempt can fire.
    """

    def __init__(
        self,
        delay: float = RECONNECT_DELAY,
        strategy: ReconnectStrategy = "fixed",
        max_delay: float = RECONNECT_MAX_DELAY,
        jitter: float = RECONNECT_JITTER,
        max_attempts: int | None = None,
        log: TransportLogger | None = None,
    ) -> None:
        if delay <= 0:
            raise ValueError("delay must be positive")
        if strategy not in ("fixed", "backoff"):
            raise ValueError(f"Unknown reconnect strategy: {strategy}")

        self.delay = delay
        self.strategy = strategy
        self.max_delay = max(max_delay, delay)
        self.jitter = jitter
        self.max_attempts = max_attempts
        self._log = log or default_logger
        self._handle: asyncio.TimerHandle | None = None
        self._attempts = 0

    @classmethod
    def from_settings(cls, settings: Settings, log: TransportLogger | None = None) -> ReconnectPolicy:
        return cls(
            delay=settings.reconnect_delay,
            strategy=settings.reconnect_strategy,
            max_delay=settings.reconnect_max_delay,
            jitter=settings.reconnect_jitter,
            max_attempts=settings.reconnect_max_attempts,
            log=log,
        )

    @property
    def pending(self) -> bool:
        """True while a timer is armed and has not fired."""
        return self._handle is not None

    @property
    def attempts(self) -> int:
        """Consecutive attempts scheduled since the last reset."""
        return self._attempts

    @property
    def exhausted(self) -> bool:
        return self.max_attempts is not None and self._attempts >= self.max_attempts

    def next_delay(self) -> float:
        """Delay for the next attempt under the configured strategy."""
        if self.strategy == "fixed":
            return self.delay

        base = min(self.delay * (2**self._attempts), self.max_delay)
        return base + base * self.jitter * random.random()

    def schedule(self, callback: Callable[[], None]) -> bool:
        """Arm the timer to run ``callback`` once, replacing any pending timer.

        Returns:
            False when the attempt cap is reached and nothing was scheduled.
        """
        self.cancel()

        if self.exhausted:
            self._log.error(f"Giving up after {self._attempts} reconnection attempts")
            return False

        delay = self.next_delay()
        self._attempts += 1
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback)
        reconnects_scheduled_total.inc()
        self._log.info(f"Reconnecting in {delay:.2f}s (attempt {self._attempts})")
        return True

    def cancel(self) -> None:
        """Disarm the pending timer, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def reset(self) -> None:
        """Forget previous attempts after a successful connection."""
        self.cancel()
        self._attempts = 0

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()


__all__ = ["ReconnectPolicy"]
