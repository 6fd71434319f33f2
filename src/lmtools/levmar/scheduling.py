"""
Schedulers deciding when the next fitting iteration runs.

The fitter never loops on its own: after each iteration it hands a
callback to its scheduler. Hosts pick the scheduler that matches their
runtime, or drive iterations themselves with :class:`ManualScheduler`.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import deque


class Scheduler(ABC):
    """Run callbacks one at a time, some time after they are scheduled."""

    @abstractmethod
    def schedule(self, callback):
        """Queue ``callback`` and return a handle usable with :meth:`cancel`."""

    @abstractmethod
    def cancel(self, handle):
        """Drop a pending callback. Unknown or already run handles are ignored."""


class _Handle:
    __slots__ = ('callback', 'cancelled')

    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False


class ManualScheduler(Scheduler):
    """Callbacks run only when the host calls :meth:`run_pending`.

    Useful from a GUI timer, a game loop or a test that wants to inspect
    the fitter between iterations.
    """

    def __init__(self):
        self._queue = deque()

    def schedule(self, callback):
        handle = _Handle(callback)
        self._queue.append(handle)
        return handle

    def cancel(self, handle):
        if handle is not None:
            handle.cancelled = True

    @property
    def pending(self):
        return sum(1 for h in self._queue if not h.cancelled)

    def run_pending(self):
        """Run the callbacks queued so far; returns how many ran.

        Callbacks scheduled while running wait for the next call.
        """
        ran = 0
        for _ in range(len(self._queue)):
            handle = self._queue.popleft()
            if not handle.cancelled:
                handle.callback()
                ran += 1
        return ran

    def run_until_idle(self, max_rounds=None):
        """Keep calling :meth:`run_pending` until nothing is queued."""
        rounds = 0
        while self.pending and (max_rounds is None or rounds < max_rounds):
            self.run_pending()
            rounds += 1
        return rounds


class ImmediateScheduler(ManualScheduler):
    """Run callbacks straight away, draining the queue iteratively.

    Scheduling from inside a callback does not recurse; the new callback
    runs once the current one returns.
    """

    def __init__(self):
        super().__init__()
        self._running = False

    def schedule(self, callback):
        handle = super().schedule(callback)
        if not self._running:
            self._running = True
            try:
                self.run_until_idle()
            finally:
                self._running = False
                self._queue.clear()
        return handle


class AsyncioScheduler(Scheduler):
    """One callback per event-loop turn via ``loop.call_soon``."""

    def __init__(self, loop=None):
        self._loop = loop

    @property
    def loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, callback):
        return self.loop.call_soon(callback)

    def cancel(self, handle):
        if handle is not None:
            handle.cancel()


__all__ = ['Scheduler', 'ManualScheduler', 'ImmediateScheduler', 'AsyncioScheduler']
