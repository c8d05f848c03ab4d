"""
Shared pytest fixtures for augmentation tests
"""
import numpy as np
import pytest
from PIL import Image

from annotator.services.annotation import (
    BoxAnnotation,
    Keypoint,
    KeypointAnnotation,
    MaskRaster,
    MaskAnnotation,
    OrientedBoxAnnotation,
    PolygonAnnotation,
    Visibility,
)
from annotator.utils import image_to_png_bytes


@pytest.fixture
def marked_image():
    """200x100 black RGB image with a red 10x10 block in the top-left corner"""
    array = np.zeros((100, 200, 3), dtype=np.uint8)
    array[0:10, 0:10] = (255, 0, 0)
    return Image.fromarray(array)


@pytest.fixture
def marked_blob(marked_image):
    return image_to_png_bytes(marked_image)


@pytest.fixture
def sample_box():
    return BoxAnnotation(id=1, class_id=0, x=10, y=10, width=50, height=30)


@pytest.fixture
def sample_annotations(sample_box):
    """One annotation of every kind on a 200x100 image"""
    keypoints = KeypointAnnotation(id=4, class_id=0, keypoints=[
        Keypoint(20, 20, Visibility.VISIBLE),
        Keypoint(30, 40, Visibility.OCCLUDED),
        Keypoint(),
    ])
    raster = MaskRaster.from_polygon([(100, 20), (140, 20), (140, 60), (100, 60)], image_size=(200, 100))
    return [
        sample_box,
        OrientedBoxAnnotation(id=2, class_id=1, cx=150, cy=50, width=60, height=20, angle=0),
        PolygonAnnotation(id=3, class_id=1, points=[(0, 0), (40, 0), (20, 30)]),
        keypoints,
        MaskAnnotation(id=5, class_id=0, raster=raster),
    ]
