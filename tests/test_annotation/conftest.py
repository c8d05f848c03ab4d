"""
Shared pytest fixtures for annotation tests
"""
import pytest

from annotator.services.annotation import (
    AnnotationClass,
    AnnotationStore,
    BoxAnnotation,
    ImageRecord,
    MaskRaster,
    PolygonAnnotation,
    Project,
    ProjectType,
)


@pytest.fixture
def sample_classes():
    """Two project classes"""
    return [
        AnnotationClass(id=0, name="cat", color="#ff0000"),
        AnnotationClass(id=1, name="dog", color="#00ff00"),
    ]


@pytest.fixture
def sample_box():
    """Box well above the minimum size"""
    return BoxAnnotation(class_id=0, x=10, y=10, width=50, height=30)


@pytest.fixture
def sample_polygon():
    """Triangle"""
    return PolygonAnnotation(class_id=1, points=[(0, 0), (40, 0), (20, 30)])


@pytest.fixture
def store():
    """Empty store with a short history"""
    return AnnotationStore(history_limit=5)


@pytest.fixture
def painted_raster():
    """Mask raster with one dab on a 200x100 image"""
    raster = MaskRaster(image_size=(200, 100))
    raster.paint(50, 50, 10)
    return raster


@pytest.fixture
def sample_project(sample_classes):
    """Bbox project with three images referencing both classes"""
    images = [
        ImageRecord(id="img_a", width=200, height=100, annotations=[
            BoxAnnotation(id=1, class_id=0, x=10, y=10, width=20, height=20),
            BoxAnnotation(id=2, class_id=1, x=50, y=10, width=20, height=20),
        ]),
        ImageRecord(id="img_b", width=200, height=100, annotations=[
            BoxAnnotation(id=1, class_id=0, x=10, y=10, width=20, height=20),
        ]),
        ImageRecord(id="img_c", width=200, height=100, annotations=[
            BoxAnnotation(id=1, class_id=1, x=10, y=10, width=20, height=20),
        ]),
    ]
    return Project(name="pets", project_type=ProjectType.BBOX, classes=sample_classes, images=images)
