"""
Annotation Data Models

Dataclasses for annotations (a tagged union over the five geometry kinds),
annotation classes and image records.
"""
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

from ... import config
from .geometry import (
    EMPTY_BOUNDS,
    Bounds,
    bounds_contain,
    bounds_of,
    distance,
    normalize_angle,
    point_in_polygon,
    polygon_area,
    rect_corners,
    to_local,
)
from .raster import MaskRaster
from .skeletons import Skeleton, create_from_preset

logger = logging.getLogger(__name__)

ImageSize = Tuple[int, int]  # width, height


class AnnotationType(str, Enum):
    """Geometry kind tag used in the persisted schema"""
    BBOX = "bbox"
    OBB = "obb"
    POLYGON = "polygon"
    MASK = "mask"
    KEYPOINTS = "keypoints"


class Visibility(IntEnum):
    """COCO-style keypoint visibility flag"""
    ABSENT = 0
    OCCLUDED = 1
    VISIBLE = 2

    def next(self) -> "Visibility":
        """Cycle visible -> occluded -> absent -> visible"""
        return {
            Visibility.VISIBLE: Visibility.OCCLUDED,
            Visibility.OCCLUDED: Visibility.ABSENT,
            Visibility.ABSENT: Visibility.VISIBLE,
        }[self]


@dataclass
class Point:
    """2D point with x, y coordinates"""
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "Point":
        return cls(x=data["x"], y=data["y"])

    @classmethod
    def coerce(cls, value: Union["Point", Mapping[str, float], Sequence[float]]) -> "Point":
        """Accept a Point, an {x, y} mapping or an [x, y] pair"""
        if isinstance(value, Point):
            return value
        if isinstance(value, Mapping):
            return cls(x=float(value["x"]), y=float(value["y"]))
        x, y = value
        return cls(x=float(x), y=float(y))

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class Keypoint:
    """
    One joint of a keypoint instance

    Unplaced joints have no coordinates and are always ABSENT.
    """
    x: Optional[float] = None
    y: Optional[float] = None
    visibility: Visibility = Visibility.ABSENT

    def __post_init__(self):
        self.visibility = Visibility(int(self.visibility))

    @property
    def is_placed(self) -> bool:
        return self.x is not None and self.y is not None

    @property
    def is_labeled(self) -> bool:
        return self.is_placed and self.visibility > Visibility.ABSENT

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "visibility": int(self.visibility)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Keypoint":
        if not isinstance(data, Mapping):
            raise ValueError(f"Keypoint must be an object, got {type(data).__name__}")
        x, y = data.get("x"), data.get("y")
        return cls(
            x=None if x is None else float(x),
            y=None if y is None else float(y),
            visibility=data.get("visibility", Visibility.VISIBLE if x is not None else Visibility.ABSENT),
        )


# Annotation type tag -> concrete class, filled by Annotation.__init_subclass__
_ANNOTATION_TYPES: Dict[AnnotationType, Type["Annotation"]] = {}


@dataclass
class Annotation(ABC):
    """
    Base class for all annotation geometries

    All geometry is stored in unrotated image space. Concrete subclasses set
    the ``type`` tag and register themselves for deserialization.

    Attributes:
        id: Store-assigned identifier, unique within an image and never reused
        class_id: Reference into the project's class list (may be stale)
    """
    id: int = 0
    class_id: int = 0

    type: ClassVar[AnnotationType]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        annotation_type = cls.__dict__.get("type")
        if annotation_type is not None:
            _ANNOTATION_TYPES[annotation_type] = cls

    @abstractmethod
    def bounds(self) -> Bounds:
        """Axis-aligned bounds (x, y, width, height) in image space"""

    @abstractmethod
    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        """Exact hit test for an image-space point"""

    @abstractmethod
    def is_degenerate(self) -> bool:
        """True if the geometry is too small or empty to be committed"""

    @abstractmethod
    def translate(self, dx: float, dy: float) -> None:
        """Move the geometry by an image-space offset"""

    @abstractmethod
    def data_dict(self) -> Dict[str, Any]:
        """Type-specific ``data`` payload of the persisted schema"""

    @classmethod
    @abstractmethod
    def from_data(cls, data: Dict[str, Any], image_size: Optional[ImageSize] = None) -> "Annotation":
        """Build an annotation (without id / class) from a ``data`` payload"""

    def normalize(self) -> None:
        """Restore geometry invariants after fields were assigned directly"""

    @classmethod
    def editable_fields(cls) -> List[str]:
        """Field names an update patch may set"""
        return [f.name for f in fields(cls) if f.name != "id" and not f.name.startswith("_")]

    def copy(self) -> "Annotation":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "class": self.class_id,
            "data": self.data_dict(),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any], image_size: Optional[ImageSize] = None) -> "Annotation":
        """
        Deserialize any annotation from the persisted schema

        Args:
            data: {"id", "type", "class", "data"} dictionary
            image_size: (width, height) of the owning image, used by masks

        Returns:
            Concrete Annotation subclass instance

        Raises:
            ValueError: If the type tag is unknown or the payload is malformed
            KeyError: If a required field is missing
        """
        annotation_type = AnnotationType(data["type"])
        annotation_cls = _ANNOTATION_TYPES[annotation_type]
        annotation = annotation_cls.from_data(data["data"], image_size=image_size)
        annotation.id = int(data.get("id", 0))
        annotation.class_id = int(data["class"])
        return annotation


@dataclass
class BoxAnnotation(Annotation):
    """Axis-aligned box; width and height are never negative"""
    type: ClassVar[AnnotationType] = AnnotationType.BBOX

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    def __post_init__(self):
        self.normalize()

    def normalize(self) -> None:
        # Boxes dragged up/left arrive with negative extents
        if self.width < 0:
            self.x += self.width
            self.width = -self.width
        if self.height < 0:
            self.y += self.height
            self.height = -self.height

    def bounds(self) -> Bounds:
        return (self.x, self.y, self.width, self.height)

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        return bounds_contain(self.bounds(), x, y, tolerance)

    def is_degenerate(self) -> bool:
        return self.width <= config.MIN_BOX_SIZE or self.height <= config.MIN_BOX_SIZE

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy

    def corners(self) -> List[Tuple[float, float]]:
        return [
            (self.x, self.y),
            (self.x + self.width, self.y),
            (self.x + self.width, self.y + self.height),
            (self.x, self.y + self.height),
        ]

    def data_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_data(cls, data: Dict[str, Any], image_size: Optional[ImageSize] = None) -> "BoxAnnotation":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass
class OrientedBoxAnnotation(Annotation):
    """
    Rotated rectangle given by center, size and angle

    The angle is in degrees, clockwise on screen, normalized to [0, 360).
    """
    type: ClassVar[AnnotationType] = AnnotationType.OBB

    cx: float = 0.0
    cy: float = 0.0
    width: float = 0.0
    height: float = 0.0
    angle: float = 0.0

    def __post_init__(self):
        self.normalize()

    def normalize(self) -> None:
        self.width = abs(self.width)
        self.height = abs(self.height)
        self.angle = normalize_angle(self.angle)

    def corners(self) -> List[Tuple[float, float]]:
        return rect_corners(self.cx, self.cy, self.width, self.height, self.angle)

    def bounds(self) -> Bounds:
        return bounds_of(self.corners())

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        lx, ly = to_local(x, y, self.cx, self.cy, self.angle)
        return abs(lx) <= self.width / 2 + tolerance and abs(ly) <= self.height / 2 + tolerance

    def is_degenerate(self) -> bool:
        return self.width <= config.MIN_OBB_SIZE or self.height <= config.MIN_OBB_SIZE

    def translate(self, dx: float, dy: float) -> None:
        self.cx += dx
        self.cy += dy

    def rotate(self, degrees: float) -> None:
        self.angle = normalize_angle(self.angle + degrees)

    def data_dict(self) -> Dict[str, Any]:
        return {
            "cx": self.cx,
            "cy": self.cy,
            "width": self.width,
            "height": self.height,
            "angle": self.angle,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any], image_size: Optional[ImageSize] = None) -> "OrientedBoxAnnotation":
        return cls(
            cx=float(data["cx"]),
            cy=float(data["cy"]),
            width=float(data["width"]),
            height=float(data["height"]),
            angle=float(data.get("angle", 0.0)),
        )


@dataclass
class PolygonAnnotation(Annotation):
    """Ordered vertex list; closed polygons need at least 3 vertices"""
    type: ClassVar[AnnotationType] = AnnotationType.POLYGON

    points: List[Point] = field(default_factory=list)
    closed: bool = True

    def __post_init__(self):
        self.normalize()

    def normalize(self) -> None:
        self.points = [Point.coerce(p) for p in self.points]

    def vertices(self) -> List[Tuple[float, float]]:
        return [p.as_tuple() for p in self.points]

    def bounds(self) -> Bounds:
        return bounds_of(self.vertices())

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        vertices = self.vertices()
        if self.closed and len(vertices) >= 3 and point_in_polygon(x, y, vertices):
            return True
        return tolerance > 0 and any(distance(x, y, vx, vy) <= tolerance for vx, vy in vertices)

    def is_degenerate(self) -> bool:
        vertices = self.vertices()
        return len(vertices) < config.MIN_POLYGON_POINTS or polygon_area(vertices) == 0

    def translate(self, dx: float, dy: float) -> None:
        for p in self.points:
            p.x += dx
            p.y += dy

    def vertex_at(self, x: float, y: float, tolerance: float) -> Optional[int]:
        """Index of the vertex within tolerance of (x, y), nearest first"""
        best, best_dist = None, tolerance
        for i, p in enumerate(self.points):
            d = distance(x, y, p.x, p.y)
            if d <= best_dist:
                best, best_dist = i, d
        return best

    def data_dict(self) -> Dict[str, Any]:
        return {"points": [[p.x, p.y] for p in self.points], "closed": self.closed}

    @classmethod
    def from_data(cls, data: Dict[str, Any], image_size: Optional[ImageSize] = None) -> "PolygonAnnotation":
        return cls(
            points=[Point.coerce(p) for p in data["points"]],
            closed=bool(data.get("closed", True)),
        )


@dataclass
class MaskAnnotation(Annotation):
    """Freehand mask backed by a coverage raster"""
    type: ClassVar[AnnotationType] = AnnotationType.MASK

    raster: MaskRaster = field(default_factory=MaskRaster)
    _bounds: Optional[Bounds] = field(default=None, init=False, repr=False, compare=False)

    def normalize(self) -> None:
        self._bounds = None

    def bounds(self) -> Bounds:
        if self._bounds is None:
            raster_bounds = self.raster.bounds()
            self._bounds = EMPTY_BOUNDS if raster_bounds is None else tuple(float(v) for v in raster_bounds)
        return self._bounds

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        return self.raster.contains(x, y)

    def is_degenerate(self) -> bool:
        return self.raster.is_empty()

    def translate(self, dx: float, dy: float) -> None:
        # Rasters move in whole pixels
        self.raster.translate(round(dx), round(dy))
        self._bounds = None

    def copy(self) -> "MaskAnnotation":
        return MaskAnnotation(id=self.id, class_id=self.class_id, raster=self.raster.copy())

    def data_dict(self) -> Dict[str, Any]:
        return self.raster.to_data()

    @classmethod
    def from_data(cls, data: Dict[str, Any], image_size: Optional[ImageSize] = None) -> "MaskAnnotation":
        return cls(raster=MaskRaster.from_data(data, image_size=image_size))


@dataclass
class KeypointAnnotation(Annotation):
    """
    One skeleton instance

    Joint order follows the class skeleton. The instance box is derived from
    the placed joints and is never stored independently.
    """
    type: ClassVar[AnnotationType] = AnnotationType.KEYPOINTS

    keypoints: List[Keypoint] = field(default_factory=list)

    def __post_init__(self):
        self.normalize()

    def normalize(self) -> None:
        self.keypoints = [
            kp if isinstance(kp, Keypoint) else Keypoint.from_dict(kp) for kp in self.keypoints
        ]

    @classmethod
    def empty(cls, num_keypoints: int, **kwargs) -> "KeypointAnnotation":
        """Instance with every joint unplaced"""
        return cls(keypoints=[Keypoint() for _ in range(num_keypoints)], **kwargs)

    def placed(self) -> List[Tuple[float, float]]:
        return [(kp.x, kp.y) for kp in self.keypoints if kp.is_placed]

    def bounds(self) -> Bounds:
        return bounds_of(self.placed())

    def contains(self, x: float, y: float, tolerance: float = 0.0) -> bool:
        if self.keypoint_at(x, y, tolerance) is not None:
            return True
        bx, by, bw, bh = self.bounds()
        return bw > 0 and bh > 0 and bounds_contain((bx, by, bw, bh), x, y)

    def keypoint_at(self, x: float, y: float, radius: float) -> Optional[int]:
        """Index of the placed joint within radius of (x, y), nearest first"""
        best, best_dist = None, radius
        for i, kp in enumerate(self.keypoints):
            if not kp.is_placed:
                continue
            d = distance(x, y, kp.x, kp.y)
            if d <= best_dist:
                best, best_dist = i, d
        return best

    def is_degenerate(self) -> bool:
        return not any(kp.is_labeled for kp in self.keypoints)

    def translate(self, dx: float, dy: float) -> None:
        for kp in self.keypoints:
            if kp.is_placed:
                kp.x += dx
                kp.y += dy

    def data_dict(self) -> Dict[str, Any]:
        placed = self.placed()
        bbox = None
        if placed:
            x, y, w, h = bounds_of(placed)
            bbox = {"x": x, "y": y, "width": w, "height": h}
        return {"keypoints": [kp.to_dict() for kp in self.keypoints], "bbox": bbox}

    @classmethod
    def from_data(cls, data: Dict[str, Any], image_size: Optional[ImageSize] = None) -> "KeypointAnnotation":
        return cls(keypoints=[Keypoint.from_dict(kp) for kp in data["keypoints"]])


@dataclass
class AnnotationClass:
    """
    Project-level label

    Attributes:
        id: Identifier referenced by annotations
        name: Display name
        color: Hex color used for drawing
        skeleton: Joint topology for keypoint projects
    """
    id: int
    name: str
    color: str = config.DEFAULT_CLASS_COLOR
    skeleton: Optional[Skeleton] = None

    def get_skeleton(self) -> Skeleton:
        """Class skeleton, falling back to the default preset"""
        if self.skeleton is not None:
            return self.skeleton
        return create_from_preset(config.DEFAULT_SKELETON_PRESET)

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "name": self.name, "color": self.color}
        if self.skeleton is not None:
            data["skeleton"] = self.skeleton.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationClass":
        skeleton = data.get("skeleton")
        return cls(
            id=int(data["id"]),
            name=data["name"],
            color=data.get("color", config.DEFAULT_CLASS_COLOR),
            skeleton=Skeleton.from_dict(skeleton) if skeleton else None,
        )


UNKNOWN_CLASS = AnnotationClass(
    id=config.UNKNOWN_CLASS_ID,
    name=config.UNKNOWN_CLASS_NAME,
    color=config.UNKNOWN_CLASS_COLOR,
)


def resolve_class(classes: Iterable[AnnotationClass], class_id: int) -> AnnotationClass:
    """Find a class by id, degrading to UNKNOWN_CLASS for stale references"""
    for cls in classes:
        if cls.id == class_id:
            return cls
    return UNKNOWN_CLASS


def load_annotations(entries: Iterable[Dict[str, Any]], image_size: Optional[ImageSize] = None) -> List[Annotation]:
    """
    Deserialize a list of persisted annotations

    Corrupt entries are logged and skipped; the rest are kept.

    Args:
        entries: Persisted annotation dictionaries
        image_size: (width, height) of the owning image

    Returns:
        Successfully loaded annotations, in input order
    """
    annotations = []
    for index, entry in enumerate(entries):
        try:
            annotations.append(Annotation.from_dict(entry, image_size=image_size))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping corrupt annotation #{index}: {e}")
    return annotations


@dataclass
class ImageRecord:
    """
    An image with its annotations

    Attributes:
        id: Unique identifier for the image
        blob: Encoded image bytes (never modified after creation)
        width: Image width in pixels
        height: Image height in pixels
        rotation: Display rotation in degrees; geometry stays unrotated
        annotations: Annotations in creation order
        timestamp: Last modification time
        next_annotation_id: Next id the annotation counter hands out
        name: Original file name
    """
    id: str = field(default_factory=lambda: f"img_{uuid.uuid4().hex[:6]}")
    blob: bytes = b""
    width: int = 0
    height: int = 0
    rotation: int = 0
    annotations: List[Annotation] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    next_annotation_id: int = 1
    name: str = ""

    def __post_init__(self):
        self._assign_missing_ids()

    @property
    def size(self) -> ImageSize:
        return (self.width, self.height)

    def _assign_missing_ids(self) -> None:
        """Give fresh ids to annotations without one (or with a duplicate)"""
        seen = set()
        highest = max((a.id for a in self.annotations), default=0)
        self.next_annotation_id = max(self.next_annotation_id, highest + 1)
        for annotation in self.annotations:
            if annotation.id <= 0 or annotation.id in seen:
                annotation.id = self.next_annotation_id
                self.next_annotation_id += 1
            seen.add(annotation.id)

    def class_ids(self) -> List[int]:
        return [a.class_id for a in self.annotations]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "timestamp": self.timestamp.isoformat(),
            "next_annotation_id": self.next_annotation_id,
            "annotations": [a.to_dict() for a in self.annotations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], blob: bytes = b"") -> "ImageRecord":
        width, height = int(data.get("width", 0)), int(data.get("height", 0))
        return cls(
            id=data["id"],
            blob=blob,
            width=width,
            height=height,
            rotation=int(data.get("rotation", 0)),
            annotations=load_annotations(data.get("annotations", []), image_size=(width, height)),
            timestamp=datetime.fromisoformat(data["timestamp"]) if "timestamp" in data else datetime.now(),
            next_annotation_id=int(data.get("next_annotation_id", 1)),
            name=data.get("name", ""),
        )

    def touch(self) -> None:
        self.timestamp = datetime.now()

