"""
Tests for change notifications and autosave scheduling
"""
import asyncio

from annotator.services.annotation import (
    ANNOTATIONS_CHANGED,
    AutosaveScheduler,
    BoxAnnotation,
    EventBus,
)


class TestEventBus:
    """Tests for the publish / subscribe bus"""

    def test_emit_and_unsubscribe(self):
        """Test listeners receive payloads until they unsubscribe"""
        bus = EventBus()
        received = []
        unsubscribe = bus.on("topic", received.append)

        bus.emit("topic", 1)
        unsubscribe()
        bus.emit("topic", 2)

        assert received == [1]
        assert bus.listener_count("topic") == 0

    def test_failing_listener_isolated(self):
        """Test one failing listener does not stop the others"""
        bus = EventBus()
        received = []

        def broken(_payload):
            raise RuntimeError("boom")

        bus.on("topic", broken)
        bus.on("topic", received.append)
        bus.emit("topic", "x")

        assert received == ["x"]

    def test_unsubscribe_while_emitting(self):
        """Test a listener may remove itself during dispatch"""
        bus = EventBus()
        calls = []
        handles = {}

        def once(payload):
            calls.append(payload)
            handles["once"]()

        handles["once"] = bus.on("topic", once)
        bus.emit("topic", 1)
        bus.emit("topic", 2)

        assert calls == [1]


class TestAutosave:
    """Tests for debounced and periodic saving"""

    def test_debounce_coalesces(self):
        """Test rapid changes produce a single save after the quiet window"""
        saves = []

        async def scenario():
            scheduler = AutosaveScheduler(lambda: saves.append(1), delay=0.05, interval=10)
            await scheduler.start()
            for _ in range(5):
                scheduler.mark_dirty()
                await asyncio.sleep(0.01)
            await asyncio.sleep(0.15)
            await scheduler.stop(flush=False)
            return scheduler

        scheduler = asyncio.run(scenario())

        assert saves == [1]
        assert not scheduler.dirty

    def test_periodic_saves_only_when_dirty(self):
        """Test the periodic timer saves pending changes and idles otherwise"""
        saves = []

        async def scenario():
            scheduler = AutosaveScheduler(lambda: saves.append(1), delay=10, interval=0.03)
            await scheduler.start()
            await asyncio.sleep(0.1)
            assert saves == []
            scheduler.mark_dirty()
            await asyncio.sleep(0.1)
            await scheduler.stop(flush=False)

        asyncio.run(scenario())

        assert saves == [1]

    def test_failed_save_stays_dirty(self):
        """Test a failing save is counted and retried later"""
        attempts = []

        def save():
            attempts.append(1)
            if len(attempts) == 1:
                raise OSError("disk full")

        async def scenario():
            scheduler = AutosaveScheduler(save, delay=10, interval=10)
            scheduler.mark_dirty()
            first = await scheduler.save_now()
            dirty_after_failure = scheduler.dirty
            second = await scheduler.save_now()
            return scheduler, first, dirty_after_failure, second

        scheduler, first, dirty_after_failure, second = asyncio.run(scenario())

        assert (first, dirty_after_failure, second) == (False, True, True)
        assert scheduler.failure_count == 1
        assert scheduler.save_count == 1
        assert not scheduler.dirty

    def test_async_save(self):
        """Test async save callbacks are awaited"""
        saves = []

        async def save():
            await asyncio.sleep(0)
            saves.append(1)

        async def scenario():
            scheduler = AutosaveScheduler(save)
            scheduler.mark_dirty()
            await scheduler.stop(flush=True)

        asyncio.run(scenario())

        assert saves == [1]

    def test_store_changes_mark_dirty(self, store):
        """Test attaching to a store's bus tracks its edits"""
        scheduler = AutosaveScheduler(lambda: None)
        unsubscribe = scheduler.attach(store.events)

        store.add(BoxAnnotation(x=0, y=0, width=20, height=20))
        assert scheduler.dirty

        unsubscribe()
        assert store.events.listener_count(ANNOTATIONS_CHANGED) == 0

    def test_cancel_stops_both_triggers(self):
        """Test cancel() drops the pending debounce and the periodic task"""
        saves = []

        async def scenario():
            scheduler = AutosaveScheduler(lambda: saves.append(1), delay=0.02, interval=0.02)
            await scheduler.start()
            scheduler.mark_dirty()
            scheduler.cancel()
            await asyncio.sleep(0.1)
            others = asyncio.all_tasks() - {asyncio.current_task()}
            return scheduler, others

        scheduler, others = asyncio.run(scenario())

        assert saves == []
        assert not scheduler.running
        assert scheduler.dirty
        assert others == set()
