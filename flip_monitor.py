# -*- coding: utf-8 -*-
"""
Flip Monitor for standalone use of the safe time trigger.

Plays the role of the sequencer host: once per tick it asks the trigger
whether to flip, and runs the flip when it should. The trigger itself owns
no timer; the cadence lives here.
"""

import asyncio
import logging
import threading
from typing import Callable, Optional

from flip_interfaces import FlipContext, ProgressSink
from safe_time_trigger import SafeTimeTrigger


class FlipMonitor:
    """Drives a SafeTimeTrigger from an asyncio tick loop.

    Attributes:
        MIN_TICK: Shortest accepted tick interval (seconds).
    """

    MIN_TICK = 0.1

    def __init__(
        self,
        trigger: SafeTimeTrigger,
        context_provider: Optional[Callable[[], Optional[FlipContext]]] = None,
        tick_seconds: float = 1.0,
        logger: Optional[logging.Logger] = None,
        progress: ProgressSink = None
    ):
        """Initialize the monitor.

        Args:
            trigger: Trigger to drive.
            context_provider: Returns the current sequence context (target).
            tick_seconds: Seconds between should_trigger() calls.
            logger: Logger instance.
            progress: Progress sink forwarded to the flip.
        """
        self._trigger = trigger
        self._context_provider = context_provider
        self._tick_seconds = max(float(tick_seconds), self.MIN_TICK)
        self._logger = logger or logging.getLogger(__name__)
        self._progress = progress

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.flip_count = 0
        self.failure_count = 0

    @property
    def tick_seconds(self) -> float:
        return self._tick_seconds

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    async def tick(self, token: threading.Event) -> bool:
        """Evaluate the trigger once and flip if it fires.

        Returns:
            True if a flip was executed on this tick.
        """
        if not await self._trigger.should_trigger():
            return False

        context = self._context_provider() if self._context_provider is not None else None
        try:
            await self._trigger.execute(context, self._progress, token)
            self.flip_count += 1
        except Exception as ex:
            # Already logged and notified by the trigger
            self.failure_count += 1
            self._logger.debug(f"Flip failed on this tick: {ex}")
        return True

    async def run(self, token: threading.Event) -> None:
        """Tick until the token is set.

        Args:
            token: Cancellation token; also handed to each flip.
        """
        self._logger.info(f"Flip monitor started ({self._tick_seconds:g}s tick) - {self._trigger}")
        self._trigger.attach()
        try:
            while not token.is_set():
                try:
                    await self.tick(token)
                except Exception as ex:
                    self._logger.error(f"Flip monitor tick error: {ex}")
                await asyncio.sleep(self._tick_seconds)
        finally:
            self._trigger.detach()
            self._logger.info("Flip monitor stopped")

    def start(self) -> bool:
        """Run the monitor on a background thread with its own event loop.

        Returns:
            True if started (or already running).
        """
        if self.running:
            self._logger.debug("Flip monitor already running")
            return True

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=lambda: asyncio.run(self.run(self._stop_event)),
            name="FlipMonitor",
            daemon=True
        )
        self._thread.start()
        return True

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background thread started by start()."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
