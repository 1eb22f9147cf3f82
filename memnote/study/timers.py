"""
Cooperative timers for study sessions.

Sessions run on a single logical thread. The only suspension points are
timers (failed-card requeue, auto-play phases), so every timer a session
schedules goes through a TimerGroup that can cancel all of them at once
when the session restarts, changes its card set, or closes.

Any object with ``call_later(delay_seconds, callback)`` returning a handle
with ``cancel()`` is a TimerHost; ``asyncio`` event loops qualify.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerHost(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


def running_loop_host() -> TimerHost:
    """
    The running asyncio loop.

    Raises:
        RuntimeError: Outside a running loop; pass an explicit host instead
    """
    return asyncio.get_running_loop()


class TimerGroup:
    """
    Tracks the pending timers owned by one session.

    Fired timers forget themselves; ``cancel_all`` cancels whatever is
    still pending. A callback only runs if its timer was neither
    cancelled nor outlived its group.
    """

    def __init__(self, host: TimerHost | None = None):
        self._host = host
        self._pending: dict[int, TimerHandle] = {}
        self._next_key = 0

    @property
    def host(self) -> TimerHost:
        if self._host is None:
            self._host = running_loop_host()
        return self._host

    @property
    def pending(self) -> int:
        """Number of timers that have not fired or been cancelled."""
        return len(self._pending)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> int:
        """
        Schedule ``callback`` after ``delay_ms`` milliseconds.

        Returns:
            Key usable with ``cancel``
        """
        key = self._next_key
        self._next_key += 1

        def fire() -> None:
            # Cancelled (or group reset) between scheduling and firing
            if self._pending.pop(key, None) is None:
                return
            callback()

        self._pending[key] = self.host.call_later(max(0.0, delay_ms) / 1000.0, fire)
        return key

    def cancel(self, key: int) -> None:
        handle = self._pending.pop(key, None)
        if handle is not None:
            handle.cancel()

    def cancel_all(self) -> int:
        """Cancel every pending timer, returning how many were cancelled."""
        handles = list(self._pending.values())
        self._pending.clear()
        for handle in handles:
            handle.cancel()
        return len(handles)
