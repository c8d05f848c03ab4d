"""
Annotation Service

Provides the annotation data model, the per-image store with undo / redo,
project-level class management and autosave scheduling.

Usage:
    from annotator.services.annotation import AnnotationStore, BoxAnnotation

    store = AnnotationStore()
    box = store.add(BoxAnnotation(class_id=0, x=10, y=10, width=50, height=30))

    # Hit testing returns the most recently created annotation under a point
    hit = store.find_at(20, 20)

    store.undo()
    store.redo()

    # Persisted shape: {"id", "type", "class", "data"}
    entries = store.to_list()
    loaded = load_annotations(entries, image_size=(200, 100))
"""
from .models import (
    Annotation,
    AnnotationClass,
    AnnotationType,
    BoxAnnotation,
    ImageRecord,
    Keypoint,
    KeypointAnnotation,
    MaskAnnotation,
    OrientedBoxAnnotation,
    Point,
    PolygonAnnotation,
    UNKNOWN_CLASS,
    Visibility,
    load_annotations,
    resolve_class,
)
from .raster import MaskRaster
from .skeletons import Skeleton, available_presets, create_from_preset
from .events import ANNOTATIONS_CHANGED, AnnotationEvent, ChangeKind, ChangeSource, EventBus
from .store import AnnotationStore
from .project import Project, ProjectType
from .autosave import AutosaveScheduler

__all__ = [
    "Annotation",
    "AnnotationClass",
    "AnnotationType",
    "BoxAnnotation",
    "OrientedBoxAnnotation",
    "PolygonAnnotation",
    "MaskAnnotation",
    "KeypointAnnotation",
    "Keypoint",
    "Point",
    "Visibility",
    "ImageRecord",
    "UNKNOWN_CLASS",
    "load_annotations",
    "resolve_class",
    "MaskRaster",
    "Skeleton",
    "available_presets",
    "create_from_preset",
    "ANNOTATIONS_CHANGED",
    "AnnotationEvent",
    "ChangeKind",
    "ChangeSource",
    "EventBus",
    "AnnotationStore",
    "Project",
    "ProjectType",
    "AutosaveScheduler",
]
