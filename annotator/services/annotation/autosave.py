"""
Autosave scheduling

Two independent triggers call the same save function:
- a debounced save, fired once edits have paused for ``delay`` seconds
- a periodic save every ``interval`` seconds, only when changes are pending

A failed save is logged and leaves the changes marked unsaved, so the next
trigger retries them.
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Set

from ... import config
from .events import ANNOTATIONS_CHANGED, EventBus

logger = logging.getLogger(__name__)

SaveCallback = Callable[[], Any]  # may return an awaitable


class AutosaveScheduler:
    """Debounced plus periodic saving on an asyncio event loop"""

    def __init__(
        self,
        save: SaveCallback,
        delay: float = config.AUTOSAVE_DELAY,
        interval: float = config.AUTOSAVE_INTERVAL,
    ):
        """
        Initialize scheduler

        Args:
            save: Function persisting the current state (sync or async)
            delay: Quiet period after the last change before saving
            interval: Period of the background save check
        """
        self._save = save
        self.delay = delay
        self.interval = interval

        self._generation = 0
        self._saved_generation = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._debounce: Optional[asyncio.TimerHandle] = None
        self._periodic: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

        self.save_count = 0
        self.failure_count = 0

    @property
    def dirty(self) -> bool:
        """True if there are changes no successful save has covered yet"""
        return self._generation != self._saved_generation

    @property
    def running(self) -> bool:
        return self._loop is not None

    def attach(self, events: EventBus) -> Callable[[], None]:
        """Mark dirty on every annotation change; returns the unsubscribe handle"""
        return events.on(ANNOTATIONS_CHANGED, self.mark_dirty)

    def mark_dirty(self, _event: Any = None) -> None:
        """Record a change and restart the debounce window"""
        self._generation += 1
        if self._loop is None:
            return
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self._loop.call_later(self.delay, self._debounce_fired)

    async def start(self) -> None:
        """Begin scheduling on the running event loop"""
        if self._loop is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._periodic = self._loop.create_task(self._periodic_loop())
        if self.dirty:
            self._debounce = self._loop.call_later(self.delay, self._debounce_fired)

    async def stop(self, flush: bool = True) -> None:
        """
        Stop scheduling

        Args:
            flush: Save pending changes one last time
        """
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        if self._periodic is not None:
            self._periodic.cancel()
            try:
                await self._periodic
            except asyncio.CancelledError:
                pass
            self._periodic = None
        if self._pending:
            await asyncio.gather(*self._pending)
        self._loop = None
        if flush and self.dirty:
            await self.save_now()

    def cancel(self) -> None:
        """
        Stop scheduling immediately, without a final save

        Usable from synchronous code. Saves still in flight are cancelled and
        their changes stay dirty.
        """
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        if self._periodic is not None:
            self._periodic.cancel()
            self._periodic = None
        for task in list(self._pending):
            task.cancel()
        self._loop = None

    async def save_now(self) -> bool:
        """
        Save immediately (saves never overlap)

        Returns:
            True if the save succeeded
        """
        async with self._lock:
            generation = self._generation
            try:
                result = self._save()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self.failure_count += 1
                logger.exception("Autosave failed; changes stay marked unsaved")
                return False
            # Changes made while saving stay dirty
            self._saved_generation = generation
            self.save_count += 1
            logger.debug(f"Autosaved (generation {generation})")
            return True

    def _debounce_fired(self) -> None:
        self._debounce = None
        task = self._loop.create_task(self.save_now())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _periodic_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.dirty:
                await self.save_now()
