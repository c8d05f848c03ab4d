"""
Shared pytest fixtures for canvas tests
"""
import pytest

from annotator.services.annotation import AnnotationClass, AnnotationStore, ProjectType
from annotator.services.canvas import CoordinateTransformer, PointerEvent, ToolStateMachine


@pytest.fixture
def classes():
    """Two classes; the first is the default drawing class"""
    return [
        AnnotationClass(id=0, name="cat", color="#ff0000"),
        AnnotationClass(id=1, name="dog", color="#0000ff"),
    ]


@pytest.fixture
def identity_view():
    """200x100 image shown at zoom 1 without pan, so canvas == image space"""
    return CoordinateTransformer(image_width=200, image_height=100, viewport_width=200, viewport_height=100)


@pytest.fixture
def make_machine(classes, identity_view):
    """Factory for a machine over a fresh store"""
    def factory(project_type=ProjectType.BBOX, class_list=None):
        store = AnnotationStore()
        return ToolStateMachine(
            store,
            identity_view,
            classes if class_list is None else class_list,
            project_type,
        )
    return factory


@pytest.fixture
def drag():
    """Press at start, move to end in a few steps, release"""
    def perform(machine, start, end, steps=3, **kwargs):
        machine.pointer_down(PointerEvent(*start, **kwargs))
        for i in range(1, steps + 1):
            x = start[0] + (end[0] - start[0]) * i / steps
            y = start[1] + (end[1] - start[1]) * i / steps
            machine.pointer_move(PointerEvent(x, y, **kwargs))
        machine.pointer_up(PointerEvent(*end, **kwargs))
    return perform


@pytest.fixture
def click():
    """Press and release at one point"""
    def perform(machine, x, y, **kwargs):
        machine.pointer_down(PointerEvent(x, y, **kwargs))
        machine.pointer_up(PointerEvent(x, y, **kwargs))
    return perform
