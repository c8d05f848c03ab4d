"""
Type definitions for the augmentation service
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from PIL import Image

from ... import config
from ..annotation.models import Annotation


@dataclass(frozen=True)
class AugmentationConfig:
    """
    One augmentation recipe

    Geometry is applied in order: horizontal flip, vertical flip, rotation
    about the image center (clockwise, degrees). Photometric values are
    signed offsets in [-100, 100]; 0 leaves the channel unchanged.
    """
    flip_horizontal: bool = False
    flip_vertical: bool = False
    rotation: float = 0.0
    brightness: int = 0
    contrast: int = 0
    saturation: int = 0

    def validate(self) -> None:
        """
        Raises:
            ValueError: If a value is out of range
        """
        if not math.isfinite(self.rotation):
            raise ValueError(f"Rotation must be a finite number, got {self.rotation}")
        limit = config.PHOTOMETRIC_RANGE
        for name in ("brightness", "contrast", "saturation"):
            value = getattr(self, name)
            if not -limit <= value <= limit:
                raise ValueError(f"{name} must be in [-{limit}, {limit}], got {value}")

    @property
    def has_geometry(self) -> bool:
        return self.flip_horizontal or self.flip_vertical or self.rotation % 360 != 0

    @property
    def has_photometric(self) -> bool:
        return bool(self.brightness or self.contrast or self.saturation)

    @property
    def is_identity(self) -> bool:
        return not self.has_geometry and not self.has_photometric

    def suffix(self) -> str:
        """
        File name suffix describing the recipe

        e.g. '_fh_r90_bp20_cm10'; '_aug' when nothing is applied
        """
        parts = []
        if self.flip_horizontal:
            parts.append("fh")
        if self.flip_vertical:
            parts.append("fv")
        if self.rotation:
            rotation = int(self.rotation) if float(self.rotation).is_integer() else self.rotation
            parts.append(f"r{rotation}")
        for prefix, value in (("b", self.brightness), ("c", self.contrast), ("s", self.saturation)):
            if value:
                parts.append(f"{prefix}{'p' if value > 0 else 'm'}{abs(value)}")
        return "_" + "_".join(parts) if parts else "_aug"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
            "rotation": self.rotation,
            "brightness": self.brightness,
            "contrast": self.contrast,
            "saturation": self.saturation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AugmentationConfig":
        return cls(
            flip_horizontal=bool(data.get("flip_horizontal", False)),
            flip_vertical=bool(data.get("flip_vertical", False)),
            rotation=float(data.get("rotation", 0.0)),
            brightness=int(data.get("brightness", 0)),
            contrast=int(data.get("contrast", 0)),
            saturation=int(data.get("saturation", 0)),
        )


@dataclass
class AugmentationResult:
    """
    Output of one augmentation

    Attributes:
        blob: PNG-encoded transformed image
        width: Output width in pixels
        height: Output height in pixels
        image: Decoded transformed image
        annotations: Re-derived annotations (ids and classes preserved;
            annotations that left the canvas are dropped)
        dropped: Ids of the dropped annotations
    """
    blob: bytes
    width: int
    height: int
    image: Optional[Image.Image] = None
    annotations: List[Annotation] = field(default_factory=list)
    dropped: List[int] = field(default_factory=list)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)
