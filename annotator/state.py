"""
Editor context for the annotator

Holds everything the editor works on for one project: the open image's
store, tool state machine, render cache and autosave scheduler. Passed
explicitly to whoever needs it; there is no module-level state.
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Set, Tuple

from PIL import Image

from .services.annotation import AnnotationStore, AutosaveScheduler, ImageRecord, Project
from .services.canvas import CoordinateTransformer, OverlayRenderer, RenderCache, ToolStateMachine

logger = logging.getLogger(__name__)

PersistCallback = Callable[[Project, ImageRecord], Any]  # may return an awaitable


@dataclass
class EditorContext:
    """
    Editing session over one project

    Example:
        context = EditorContext(project, persist=save_to_disk)
        machine = context.open_image(image_id)
        ...
        context.close_image()
    """
    project: Project
    persist: Optional[PersistCallback] = None
    viewport: Tuple[int, int] = (1280, 720)

    image_id: Optional[str] = field(default=None, init=False)
    store: Optional[AnnotationStore] = field(default=None, init=False)
    machine: Optional[ToolStateMachine] = field(default=None, init=False)
    cache: Optional[RenderCache] = field(default=None, init=False)
    renderer: Optional[OverlayRenderer] = field(default=None, init=False)
    autosave: Optional[AutosaveScheduler] = field(default=None, init=False)
    _detach_autosave: Optional[Callable[[], None]] = field(default=None, init=False, repr=False)
    _final_saves: Set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    @property
    def is_open(self) -> bool:
        return self.image_id is not None

    def open_image(self, image_id: str) -> ToolStateMachine:
        """
        Start editing an image, closing (and saving) the current one first

        Raises:
            KeyError: If the project has no such image
        """
        record = self.project.get_image(image_id)
        if self.is_open:
            self.close_image()

        store = AnnotationStore(
            annotations=[a.copy() for a in record.annotations],
            next_id=record.next_annotation_id,
        )
        self.project.attach_store(image_id, store)
        transformer = CoordinateTransformer(
            image_width=record.width,
            image_height=record.height,
            rotation=record.rotation,
        ).fitted(*self.viewport)

        self.image_id = image_id
        self.store = store
        self.machine = ToolStateMachine(store, transformer, self.project.classes, self.project.project_type)
        self.cache = RenderCache(store)
        self.renderer = OverlayRenderer(self.project.classes, self.cache)
        self.autosave = AutosaveScheduler(self.save)
        self._detach_autosave = self.autosave.attach(store.events)

        logger.info(f"Opened image {image_id} ({record.width}x{record.height}, {len(store)} annotations)")
        return self.machine

    def save(self) -> Any:
        """
        Write the open store back into the project and persist it

        Returns:
            Whatever the persist callback returns (None without one)
        """
        record = self.project.sync_open_image()
        if record is None or self.persist is None:
            return None
        return self.persist(self.project, record)

    def render(self) -> Image.Image:
        """Overlay for the current view"""
        if not self.is_open:
            raise RuntimeError("No image is open")
        return self.renderer.render(
            self.store,
            self.machine.transformer,
            selected_id=self.machine.selected_id,
            preview=self.machine.tool.preview(),
        )

    def close_image(self) -> Optional[asyncio.Task]:
        """
        Stop editing the open image

        Autosave is cancelled and unsaved changes are saved one last time. An
        async persist callback runs as a task on the running event loop, or
        to completion when there is no loop.

        Returns:
            The final save task, if one was scheduled on a running loop
        """
        if not self.is_open:
            return None
        self.machine.close()
        self.autosave.cancel()
        try:
            result = self.save() if self.autosave.dirty else None
        finally:
            self._detach_autosave()
            self.cache.detach()
            self.project.detach_store()
            logger.info(f"Closed image {self.image_id}")

            self.image_id = None
            self.store = None
            self.machine = None
            self.cache = None
            self.renderer = None
            self.autosave = None
            self._detach_autosave = None
        return self._finish_save(result)

    def _finish_save(self, result: Any) -> Optional[asyncio.Task]:
        if not inspect.isawaitable(result):
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(_wait_for(result))
            return None
        task = loop.create_task(_wait_for(result))
        self._final_saves.add(task)
        task.add_done_callback(self._final_saves.discard)
        return task

    async def start_autosave(self) -> None:
        if self.autosave is not None:
            await self.autosave.start()

    async def stop_autosave(self, flush: bool = True) -> None:
        """Stop autosave for the open image and wait for saves left by closed ones"""
        if self.autosave is not None:
            await self.autosave.stop(flush=flush)
        if self._final_saves:
            await asyncio.gather(*self._final_saves)


async def _wait_for(awaitable: Awaitable) -> Any:
    return await awaitable
