"""
Annotation Store

Owns the annotations of the image being edited: id assignment, hit testing,
bounded undo / redo, and change notifications. It never renders.
"""
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Tuple

from ... import config
from ...errors import AnnotationNotFoundError, DegenerateAnnotationError
from .events import ANNOTATIONS_CHANGED, AnnotationEvent, ChangeKind, ChangeSource, EventBus
from .geometry import bounds_contain
from .models import Annotation, MaskAnnotation

logger = logging.getLogger(__name__)


@dataclass
class _Change:
    """Snapshot pair for one annotation; None means 'did not exist'"""
    annotation_id: int
    before: Optional[Annotation]
    after: Optional[Annotation]


@dataclass
class _HistoryEntry:
    """One undoable operation (possibly touching several annotations)"""
    label: str
    changes: List[_Change]


class AnnotationStore:
    """
    Annotations of one image keyed by id

    Iteration order is creation order (ascending id), which is also the
    drawing order; hit testing prefers the most recently created annotation.
    """

    def __init__(
        self,
        annotations: Iterable[Annotation] = (),
        next_id: int = 1,
        history_limit: Optional[int] = None,
        events: Optional[EventBus] = None,
    ):
        """
        Initialize store

        Args:
            annotations: Existing annotations (already carrying ids)
            next_id: Next id to hand out; raised past existing ids if needed
            history_limit: Number of undoable operations kept
                (defaults to config.HISTORY_LIMIT)
            events: Bus to publish changes on (a private one if None)
        """
        self._annotations: Dict[int, Annotation] = {}
        for annotation in sorted(annotations, key=lambda a: a.id):
            self._annotations[annotation.id] = annotation
        highest = max(self._annotations, default=0)
        self.next_id = max(next_id, highest + 1)

        self.history_limit = config.HISTORY_LIMIT if history_limit is None else history_limit
        self._undo: Deque[_HistoryEntry] = deque(maxlen=self.history_limit)
        self._redo: List[_HistoryEntry] = []
        self.events = events if events is not None else EventBus()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._annotations.values()))

    def __contains__(self, annotation_id: int) -> bool:
        return annotation_id in self._annotations

    def get(self, annotation_id: int) -> Annotation:
        """
        Get an annotation by id

        Raises:
            AnnotationNotFoundError: If no annotation has this id
        """
        try:
            return self._annotations[annotation_id]
        except KeyError:
            raise AnnotationNotFoundError(annotation_id) from None

    def all(self) -> List[Annotation]:
        return list(self._annotations.values())

    def by_class(self, class_id: int) -> List[Annotation]:
        return [a for a in self._annotations.values() if a.class_id == class_id]

    def find_at(self, x: float, y: float, tolerance: float = 0.0) -> Optional[Annotation]:
        """
        Topmost annotation under an image-space point

        Bounding boxes are checked first; only candidates that pass go through
        the exact per-type test. Among hits the highest id wins.

        Args:
            x, y: Image-space point
            tolerance: Hit slack in image pixels

        Returns:
            Annotation or None
        """
        for annotation_id in sorted(self._annotations, reverse=True):
            annotation = self._annotations[annotation_id]
            if not bounds_contain(annotation.bounds(), x, y, tolerance):
                continue
            if annotation.contains(x, y, tolerance):
                return annotation
        return None

    def to_list(self) -> List[Dict[str, Any]]:
        """Serialize every annotation to the persisted schema"""
        return [a.to_dict() for a in self._annotations.values()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, annotation: Annotation) -> Annotation:
        """
        Add a new annotation and assign its id

        Raises:
            DegenerateAnnotationError: If the geometry is below the minimum size
                or empty
        """
        annotation.normalize()
        if annotation.is_degenerate():
            raise DegenerateAnnotationError(f"Refusing degenerate {annotation.type.value} annotation")

        annotation.id = self.next_id
        self.next_id += 1
        self._annotations[annotation.id] = annotation

        self._record("add", [_Change(annotation.id, None, annotation.copy())])
        self._notify(ChangeKind.ADDED, [annotation.id])
        logger.debug(f"Added {annotation.type.value} annotation {annotation.id}")
        return annotation

    def update(self, annotation_id: int, patch: Dict[str, Any], record: bool = True) -> Annotation:
        """
        Set fields of an annotation

        Args:
            annotation_id: Annotation to change
            patch: Field name -> new value
            record: Push a history entry. Live drags pass False and call
                record_update() once on release.

        Raises:
            AnnotationNotFoundError: If the id is unknown
            ValueError: If the patch names a field the annotation does not have
        """
        annotation = self.get(annotation_id)
        allowed = annotation.editable_fields()
        unknown = [name for name in patch if name not in allowed]
        if unknown:
            raise ValueError(
                f"Unknown field(s) for {annotation.type.value}: {', '.join(unknown)}. "
                f"Available: {', '.join(allowed)}"
            )

        before = annotation.copy() if record else None
        for name, value in patch.items():
            setattr(annotation, name, value)
        annotation.normalize()

        if record:
            self._record("update", [_Change(annotation_id, before, annotation.copy())])
        self._notify(ChangeKind.UPDATED, [annotation_id])
        return annotation

    def record_update(self, annotation_id: int, before: Annotation) -> None:
        """
        Record an edit already applied in place as one undoable step

        Args:
            annotation_id: Edited annotation
            before: Snapshot taken before the edit started
        """
        annotation = self.get(annotation_id)
        annotation.normalize()
        self._record("update", [_Change(annotation_id, before.copy(), annotation.copy())])
        self._notify(ChangeKind.UPDATED, [annotation_id])

    def remove(self, annotation_id: int) -> None:
        """
        Delete an annotation (mask pixel buffers are released)

        Raises:
            AnnotationNotFoundError: If the id is unknown
        """
        annotation = self.get(annotation_id)
        self._record("remove", [_Change(annotation_id, annotation.copy(), None)])
        self._discard(annotation_id)
        self._notify(ChangeKind.REMOVED, [annotation_id])

    def remove_class(self, class_id: int) -> List[int]:
        """
        Delete every annotation of a class as a single undoable step

        Returns:
            Ids of the removed annotations
        """
        doomed = [a for a in self._annotations.values() if a.class_id == class_id]
        if not doomed:
            return []
        self._record("remove_class", [_Change(a.id, a.copy(), None) for a in doomed])
        removed = [a.id for a in doomed]
        for annotation_id in removed:
            self._discard(annotation_id)
        self._notify(ChangeKind.REMOVED, removed)
        return removed

    def _discard(self, annotation_id: int) -> None:
        annotation = self._annotations.pop(annotation_id)
        if isinstance(annotation, MaskAnnotation):
            annotation.raster.release()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        """
        Revert the most recent operation

        Returns:
            False if there was nothing to undo
        """
        if not self._undo:
            return False
        entry = self._undo.pop()
        self._apply([(c.annotation_id, c.before) for c in reversed(entry.changes)], ChangeSource.UNDO)
        self._redo.append(entry)
        return True

    def redo(self) -> bool:
        """
        Re-apply the most recently undone operation

        Returns:
            False if there was nothing to redo
        """
        if not self._redo:
            return False
        entry = self._redo.pop()
        self._apply([(c.annotation_id, c.after) for c in entry.changes], ChangeSource.REDO)
        self._undo.append(entry)
        return True

    def clear_history(self) -> None:
        self._undo.clear()
        self._redo.clear()

    def _record(self, label: str, changes: List[_Change]) -> None:
        # deque(maxlen) drops the oldest entry on overflow
        self._undo.append(_HistoryEntry(label, changes))
        self._redo.clear()

    def _apply(self, states: List[Tuple[int, Optional[Annotation]]], source: ChangeSource) -> None:
        """Set each annotation to a snapshot state, then notify per change kind"""
        by_kind: Dict[ChangeKind, List[int]] = {}
        reinserted = False
        for annotation_id, state in states:
            exists = annotation_id in self._annotations
            if state is None:
                if exists:
                    self._discard(annotation_id)
                    by_kind.setdefault(ChangeKind.REMOVED, []).append(annotation_id)
                continue
            self._annotations[annotation_id] = state.copy()
            if exists:
                by_kind.setdefault(ChangeKind.UPDATED, []).append(annotation_id)
            else:
                reinserted = True
                by_kind.setdefault(ChangeKind.ADDED, []).append(annotation_id)

        if reinserted:
            # Restore creation order
            self._annotations = dict(sorted(self._annotations.items()))

        for kind, ids in by_kind.items():
            self._notify(kind, ids, source)

    def _notify(self, kind: ChangeKind, ids: List[int], source: ChangeSource = ChangeSource.EDIT) -> None:
        self.events.emit(ANNOTATIONS_CHANGED, AnnotationEvent(kind, tuple(ids), source))
