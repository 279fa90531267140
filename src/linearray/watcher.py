"""Polling file change notification.

FileWatcher stats a path at a fixed interval and publishes a ``change``
signal whenever its size or modification time differs from the previous
poll. Stat failures are published as an ``error`` signal and stop polling.
"""

from __future__ import annotations

import asyncio
import logging

import aiofiles.os

from .errors import StatError
from .models import Signal, StatSnapshot
from .signals import SignalBus

logger = logging.getLogger(__name__)


class FileWatcher:
    """Background task that turns stat changes into ``change`` signals.

    Attributes:
        path: File being watched.
        poll_interval: Seconds between polls.
        signals: Bus publishing ``change`` (data: snapshot) and ``error`` (data: error).
    """

    def __init__(self, path: str, poll_interval: float = 0.1):
        self.path = path
        self.poll_interval = poll_interval
        self.signals = SignalBus()
        self._last: StatSnapshot | None = None
        self._task: asyncio.Task | None = None
        self._running = False

    async def _stat(self) -> StatSnapshot:
        try:
            return StatSnapshot.from_stat(await aiofiles.os.stat(self.path))
        except OSError as e:
            raise StatError(self.path, e) from e

    async def start(self, initial: StatSnapshot | None = None) -> None:
        """
        Start polling.

        Args:
            initial: Snapshot to compare the first poll against; stat'd now if omitted

        Raises:
            RuntimeError: If the watcher is already running
            StatError: If the initial stat fails
        """
        if self._running:
            raise RuntimeError("FileWatcher is already running")

        self._last = initial if initial is not None else await self._stat()
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.debug(f"Watching {self.path} every {self.poll_interval}s")

    async def stop(self, timeout: float = 1.0) -> None:
        """Stop polling and wait for the task to exit."""
        if not self._running:
            return
        self._running = False

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except TimeoutError:
                logger.warning(f"Watcher for {self.path} did not stop within timeout")
            except asyncio.CancelledError:
                pass
        logger.debug(f"Stopped watching {self.path}")

    async def _poll_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.poll_interval)
            try:
                snapshot = await self._stat()
            except StatError as e:
                logger.error(f"Stopped watching {self.path}: {e}")
                self._running = False
                self.signals.publish(Signal(name="error", source=self.path, data={"error": e}))
                return

            if snapshot.changed_from(self._last):
                self._last = snapshot
                self.signals.publish(
                    Signal(name="change", source=self.path, data={"snapshot": snapshot})
                )
