"""Graceful shutdown — cancellation signals plus a live-task counter.

Long-running work (such as a subscription receive loop) registers with
``GracefulShutdown.add()`` and receives a ``CancellationSignal``. When the
process is asked to stop, every signal is cancelled and ``shutdown()``
waits until each registered unit called ``done()``.

Usage::

    shutdown = GracefulShutdown()

    async def worker() -> None:
        signal = shutdown.add()
        try:
            await signal.wait()
        finally:
            shutdown.done()

    asyncio.create_task(worker())
    await shutdown.run()
"""

from __future__ import annotations

import asyncio
import logging
import signal as signals
import weakref

from .exceptions import ShutdownTimeoutError

logger = logging.getLogger(__name__)


class CancellationSignal:
    """Cooperative cancellation flag that can be awaited."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        """Block until the signal is cancelled."""
        await self._event.wait()


class GracefulShutdown:
    """Process-wide shutdown coordinator."""

    def __init__(self) -> None:
        # Units hold their own signal; finished ones drop out.
        self._signals: weakref.WeakSet[CancellationSignal] = weakref.WeakSet()
        self._pending = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> int:
        """Number of registered units that did not call ``done()`` yet."""
        return self._pending

    def add(self) -> CancellationSignal:
        """Register a unit of work and return its cancellation signal."""
        signal = CancellationSignal()
        self._signals.add(signal)
        self._pending += 1
        self._idle.clear()
        return signal

    def done(self) -> None:
        """Mark one registered unit as finished."""
        if self._pending <= 0:
            raise RuntimeError("done() called more often than add()")
        self._pending -= 1
        if self._pending == 0:
            self._idle.set()

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Cancel every signal and wait for all units to finish."""
        for signal in list(self._signals):
            signal.cancel()
        try:
            await asyncio.wait_for(self._idle.wait(), timeout)
        except asyncio.TimeoutError as e:
            raise ShutdownTimeoutError(timeout, self._pending) from e

    async def run(self, delay: float = 0.0, timeout: float = 30.0) -> None:
        """Block until SIGINT/SIGTERM, then shut down.

        *delay* postpones the shutdown after the signal was received, giving
        load balancers time to stop routing traffic.
        """
        loop = asyncio.get_running_loop()
        received = asyncio.Event()
        for sig in (signals.SIGINT, signals.SIGTERM):
            loop.add_signal_handler(sig, received.set)
        try:
            await received.wait()
        finally:
            for sig in (signals.SIGINT, signals.SIGTERM):
                loop.remove_signal_handler(sig)

        logger.info("Shutdown request received")
        if delay > 0:
            logger.info("Waiting %ss before shutting down", delay)
            await asyncio.sleep(delay)
        await self.shutdown(timeout)
