"""
Project: class list and image records

Handles cross-image operations, chiefly deleting a class together with every
annotation that references it.
"""
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ... import config
from .models import AnnotationClass, AnnotationType, ImageRecord, resolve_class
from .skeletons import Skeleton, create_from_preset
from .store import AnnotationStore

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[int], bool]


class ProjectType(str, Enum):
    """Annotation kind a project is created for"""
    BBOX = "bbox"
    OBB = "obb"
    POLYGON = "polygon"
    MASK = "mask"
    KEYPOINTS = "keypoints"

    @property
    def annotation_type(self) -> AnnotationType:
        return AnnotationType(self.value)


class Project:
    """
    Classes and images of one annotation project

    The image currently open in the editor is edited through an attached
    AnnotationStore; every query and cascade goes through that store for the
    open image so its undo history and notifications stay consistent.
    """

    def __init__(
        self,
        name: str = "untitled",
        project_type: ProjectType = ProjectType.BBOX,
        classes: Optional[List[AnnotationClass]] = None,
        images: Optional[List[ImageRecord]] = None,
    ):
        self.name = name
        self.project_type = ProjectType(project_type)
        self.classes: List[AnnotationClass] = list(classes or [])
        self.images: Dict[str, ImageRecord] = {img.id: img for img in images or []}
        self._open_image_id: Optional[str] = None
        self._open_store: Optional[AnnotationStore] = None

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    def add_class(
        self,
        name: str,
        color: str = config.DEFAULT_CLASS_COLOR,
        skeleton: Optional[Skeleton] = None,
    ) -> AnnotationClass:
        """
        Add a class with the next free id

        Keypoint projects get the default skeleton preset when none is given.
        """
        if skeleton is None and self.project_type == ProjectType.KEYPOINTS:
            skeleton = create_from_preset(config.DEFAULT_SKELETON_PRESET)
        if skeleton is not None:
            problem = skeleton.validate()
            if problem:
                raise ValueError(f"Invalid skeleton for class '{name}': {problem}")

        class_id = max((c.id for c in self.classes), default=-1) + 1
        annotation_class = AnnotationClass(id=class_id, name=name, color=color, skeleton=skeleton)
        self.classes.append(annotation_class)
        return annotation_class

    def get_class(self, class_id: int) -> AnnotationClass:
        """Class by id, or UNKNOWN_CLASS for stale references"""
        return resolve_class(self.classes, class_id)

    def has_class(self, class_id: int) -> bool:
        return any(c.id == class_id for c in self.classes)

    def class_usage(self, class_id: int) -> int:
        """Number of annotations referencing a class across every image"""
        return sum(self.usage_by_image(class_id).values())

    def usage_by_image(self, class_id: int) -> Dict[str, int]:
        """Image id -> number of annotations referencing the class (non-zero only)"""
        usage = {}
        for image_id, record in self.images.items():
            if image_id == self._open_image_id and self._open_store is not None:
                count = len(self._open_store.by_class(class_id))
            else:
                count = sum(1 for a in record.annotations if a.class_id == class_id)
            if count:
                usage[image_id] = count
        return usage

    def delete_class(self, class_id: int, confirm: Optional[ConfirmCallback] = None) -> bool:
        """
        Delete a class and every annotation that references it

        The confirmation callback is never called when nothing references the
        class, and is called exactly once otherwise.

        Args:
            class_id: Class to delete
            confirm: Called with the reference count; returning False aborts.
                Without one, a referenced class is never deleted.

        Returns:
            True if the class was deleted

        Raises:
            KeyError: If the class does not exist
        """
        if not self.has_class(class_id):
            raise KeyError(f"Unknown class: {class_id}")

        usage = self.usage_by_image(class_id)
        total = sum(usage.values())
        if total:
            if confirm is None:
                logger.warning(f"Class {class_id} is used by {total} annotation(s); deletion needs confirmation")
                return False
            if not confirm(total):
                return False

        for image_id in usage:
            record = self.images[image_id]
            if image_id == self._open_image_id and self._open_store is not None:
                self._open_store.remove_class(class_id)
            record.annotations = [a for a in record.annotations if a.class_id != class_id]
            record.touch()

        # In place: the editor shares this list
        self.classes[:] = [c for c in self.classes if c.id != class_id]
        logger.info(f"Deleted class {class_id} and {total} annotation(s) from {len(usage)} image(s)")
        return True

    def dangling_references(self) -> Dict[str, List[int]]:
        """
        Annotations whose class no longer exists

        Returns:
            Image id -> annotation ids (images without dangling references omitted)
        """
        known = {c.id for c in self.classes}
        dangling = {}
        for image_id, record in self.images.items():
            if image_id == self._open_image_id and self._open_store is not None:
                annotations = self._open_store.all()
            else:
                annotations = record.annotations
            ids = [a.id for a in annotations if a.class_id not in known]
            if ids:
                dangling[image_id] = ids
        return dangling

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def add_image(self, record: ImageRecord) -> ImageRecord:
        self.images[record.id] = record
        return record

    def get_image(self, image_id: str) -> ImageRecord:
        return self.images[image_id]

    def remove_image(self, image_id: str) -> None:
        if image_id == self._open_image_id:
            self.detach_store()
        del self.images[image_id]

    @property
    def open_image_id(self) -> Optional[str]:
        return self._open_image_id

    def attach_store(self, image_id: str, store: AnnotationStore) -> None:
        """Register the store editing an image's annotations"""
        if image_id not in self.images:
            raise KeyError(f"Unknown image: {image_id}")
        self._open_image_id = image_id
        self._open_store = store

    def detach_store(self) -> None:
        self._open_image_id = None
        self._open_store = None

    def sync_open_image(self) -> Optional[ImageRecord]:
        """
        Copy the open store's annotations back into its image record

        Returns:
            The updated record, or None if no image is open
        """
        if self._open_store is None:
            return None
        record = self.images[self._open_image_id]
        record.annotations = [a.copy() for a in self._open_store]
        record.next_annotation_id = self._open_store.next_id
        record.touch()
        return record

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.project_type.value,
            "classes": [c.to_dict() for c in self.classes],
            "images": [img.to_dict() for img in self.images.values()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            name=data.get("name", "untitled"),
            project_type=ProjectType(data.get("type", ProjectType.BBOX.value)),
            classes=[AnnotationClass.from_dict(c) for c in data.get("classes", [])],
            images=[ImageRecord.from_dict(img) for img in data.get("images", [])],
        )

