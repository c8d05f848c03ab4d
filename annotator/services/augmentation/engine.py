"""
Augmentation engine

Decodes an image blob, applies one recipe to pixels and annotations, and
encodes the result as PNG. The synchronous apply() is the whole operation;
the async wrappers move it off the event loop and serialize jobs per image.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from io import BytesIO
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence, Union

import numpy as np
from PIL import Image

from ...errors import ImageDecodeError
from ...utils import image_to_png_bytes
from ..annotation.models import Annotation
from .geometry import build_affine, transform_annotations, warp_pixels
from .photometric import adjust
from .types import AugmentationConfig, AugmentationResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class AugmentationJob:
    """One image of a batch run"""
    image_id: str
    blob: bytes
    annotations: List[Annotation] = field(default_factory=list)


@dataclass
class BatchReport:
    """
    Outcome of a batch run

    Attributes:
        results: image id -> result, for every image that completed
        failed: Ids of images whose blob could not be decoded
        cancelled: True if the run stopped early on the cancel event
    """
    results: Dict[str, AugmentationResult] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    cancelled: bool = False


def decode_image(blob: bytes) -> Image.Image:
    """
    Decode an image blob

    Raises:
        ImageDecodeError: If the blob is not a readable image
    """
    try:
        image = Image.open(BytesIO(blob))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e
    return image


def _working_mode(image: Image.Image, augmentation: AugmentationConfig) -> str:
    # Free rotation exposes canvas corners that must stay transparent
    if augmentation.rotation % 90 != 0:
        return "RGBA"
    return "RGBA" if "A" in image.getbands() or "transparency" in image.info else "RGB"


class AugmentationEngine:
    """
    Applies augmentation recipes to images and their annotations

    The source blob and annotations are never modified; every call returns
    new objects.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def apply(
        self,
        image: Union[bytes, Image.Image],
        augmentation: AugmentationConfig,
        annotations: Sequence[Annotation] = (),
    ) -> AugmentationResult:
        """
        Apply one recipe

        Args:
            image: Encoded image blob or decoded image
            augmentation: Recipe
            annotations: Annotations of the image (not modified)

        Returns:
            AugmentationResult with the PNG blob and re-derived annotations

        Raises:
            ImageDecodeError: If the blob cannot be decoded
            ValueError: If the recipe is invalid
        """
        augmentation.validate()
        if isinstance(image, (bytes, bytearray)):
            image = decode_image(bytes(image))

        mode = _working_mode(image, augmentation)
        pixels = np.array(image.convert(mode))
        width, height = image.size

        if augmentation.has_geometry:
            matrix, out_w, out_h = build_affine(width, height, augmentation)
            pixels = warp_pixels(pixels, matrix, out_w, out_h)
            kept, dropped = transform_annotations(annotations, matrix, out_w, out_h)
        else:
            out_w, out_h = width, height
            kept, dropped = [annotation.copy() for annotation in annotations], []

        if augmentation.has_photometric:
            pixels = adjust(pixels, augmentation.brightness, augmentation.contrast, augmentation.saturation)

        result_image = Image.fromarray(np.ascontiguousarray(pixels))
        blob = image_to_png_bytes(result_image)
        logger.debug(f"Augmented {width}x{height} -> {out_w}x{out_h} with {augmentation.suffix()}")

        return AugmentationResult(
            blob=blob,
            width=out_w,
            height=out_h,
            image=result_image,
            annotations=kept,
            dropped=dropped,
        )

    @asynccontextmanager
    async def _image_lock(self, image_id: str) -> AsyncIterator[None]:
        """Hold the image's lock; it is dropped once no job uses or awaits it"""
        lock = self._locks.setdefault(image_id, asyncio.Lock())
        self._lock_users[image_id] = self._lock_users.get(image_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[image_id] -= 1
            if not self._lock_users[image_id]:
                del self._lock_users[image_id]
                del self._locks[image_id]

    async def apply_async(
        self,
        image_id: str,
        image: Union[bytes, Image.Image],
        augmentation: AugmentationConfig,
        annotations: Sequence[Annotation] = (),
    ) -> AugmentationResult:
        """
        Run apply() in a worker thread

        Jobs for the same image id wait for each other; different images may
        overlap.
        """
        async with self._image_lock(image_id):
            return await asyncio.to_thread(self.apply, image, augmentation, list(annotations))

    async def run_batch(
        self,
        jobs: Sequence[AugmentationJob],
        augmentation: AugmentationConfig,
        cancel: Optional[asyncio.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> BatchReport:
        """
        Augment images one after another

        Cancellation is checked between images; an image already in progress
        always completes. An undecodable image is reported in `failed` and
        the run continues with the next one.

        Args:
            jobs: Images to process
            augmentation: Recipe applied to every image
            cancel: Event that stops the run before the next image
            progress: Called as progress(done, total) after each image

        Returns:
            BatchReport
        """
        augmentation.validate()
        report = BatchReport()
        total = len(jobs)

        for done, job in enumerate(jobs, start=1):
            if cancel is not None and cancel.is_set():
                logger.info(f"Batch cancelled after {done - 1}/{total} images")
                report.cancelled = True
                break

            try:
                report.results[job.image_id] = await self.apply_async(
                    job.image_id, job.blob, augmentation, job.annotations
                )
            except ImageDecodeError as e:
                logger.error(f"Skipping image {job.image_id}: {e}")
                report.failed.append(job.image_id)

            if progress is not None:
                progress(done, total)
            # Let the UI run between images
            await asyncio.sleep(0)

        return report
