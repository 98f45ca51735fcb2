# server/timers.py
"""Timer service for the KOTH scheduler."""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class TimerHandle:
    """Cancellation handle for a scheduled callback."""

    timer_id: int
    delay: float
    repeating: bool = False


class TimerManager:
    """Schedules one-shot and repeating callbacks as asyncio tasks."""

    def __init__(self):
        self._tasks: Dict[int, asyncio.Task] = {}
        self._ids = itertools.count(1)

    def schedule_once(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Run callback once after delay seconds.

        Args:
            delay: Seconds to wait.
            callback: Async function to call when the timer expires.

        Returns:
            Handle for cancel().
        """
        handle = TimerHandle(next(self._ids), delay)

        async def timer_task():
            try:
                await asyncio.sleep(delay)
                # No longer cancellable once it fires
                self._tasks.pop(handle.timer_id, None)
                await callback()
            except asyncio.CancelledError:
                pass  # Timer was cancelled, don't fire
            except Exception:
                logger.exception("Timer %d callback failed", handle.timer_id)
            finally:
                self._tasks.pop(handle.timer_id, None)

        self._tasks[handle.timer_id] = asyncio.create_task(timer_task())
        return handle

    def schedule_repeating(self, interval: float, callback: TimerCallback) -> TimerHandle:
        """Run callback every interval seconds until cancelled."""
        handle = TimerHandle(next(self._ids), interval, repeating=True)

        async def repeating_task():
            try:
                while handle.timer_id in self._tasks:
                    await asyncio.sleep(interval)
                    try:
                        await callback()
                    except Exception:
                        logger.exception("Repeating timer %d callback failed", handle.timer_id)
            except asyncio.CancelledError:
                pass
            finally:
                self._tasks.pop(handle.timer_id, None)

        self._tasks[handle.timer_id] = asyncio.create_task(repeating_task())
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> bool:
        """Cancel a timer if it is still pending.

        Returns:
            True if a timer was cancelled, False if there was nothing to cancel.
        """
        if handle is None:
            return False
        task = self._tasks.pop(handle.timer_id, None)
        if task is None:
            return False
        # A callback cancelling its own timer just unregisters it
        if task is not asyncio.current_task():
            task.cancel()
        return True

    def cancel_all(self) -> None:
        """Cancel all active timers."""
        if not self._tasks:
            return
        current = asyncio.current_task()
        for task in self._tasks.values():
            if task is not current:
                task.cancel()
        self._tasks.clear()

    def is_active(self, handle: Optional[TimerHandle]) -> bool:
        """Check if a timer is still pending."""
        return handle is not None and handle.timer_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)
