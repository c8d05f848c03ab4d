"""
Tests for the tool state machine and the editing tools
"""
import pytest

from annotator.errors import InvariantViolation
from annotator.services.annotation import (
    BoxAnnotation,
    KeypointAnnotation,
    MaskAnnotation,
    OrientedBoxAnnotation,
    PolygonAnnotation,
    ProjectType,
    Visibility,
)
from annotator.services.annotation.events import PRESENTATION_CHANGED
from annotator.services.canvas import Button, KeyEvent, PointerEvent, ToolState


class TestMachineBasics:
    """Tests for tool switching, classes and input routing"""

    def test_tools_follow_project_type(self, make_machine):
        """Test only the project type's tools are offered"""
        machine = make_machine(ProjectType.POLYGON)

        assert machine.available_tools == ("polygon", "select", "pan")
        assert machine.tool.name == "polygon"
        with pytest.raises(ValueError, match="Available tools"):
            machine.set_tool("bbox")

    def test_class_shortcut(self, make_machine):
        """Test number keys pick classes by position"""
        machine = make_machine()

        assert machine.current_class_id == 0
        assert machine.key("2")
        assert machine.current_class_id == 1
        assert not machine.key("9")

    def test_double_pointer_down(self, make_machine):
        """Test a second press without a release is refused"""
        machine = make_machine()
        machine.pointer_down(PointerEvent(10, 10))

        with pytest.raises(InvariantViolation):
            machine.pointer_down(PointerEvent(20, 20))

    def test_middle_button_pans(self, make_machine, drag):
        """Test middle-drag pans from any tool and restores the state"""
        machine = make_machine()
        drag(machine, (10, 10), (30, 40), button=Button.MIDDLE)

        assert machine.transformer.pan_x == pytest.approx(20)
        assert machine.transformer.pan_y == pytest.approx(30)
        assert machine.state == ToolState.IDLE
        assert len(machine.store) == 0

    def test_pan_tool(self, make_machine, drag):
        """Test the pan tool drags the view"""
        machine = make_machine()
        machine.set_tool("pan")
        drag(machine, (0, 0), (-15, 5))

        assert machine.transformer.pan_x == pytest.approx(-15)
        assert machine.transformer.pan_y == pytest.approx(5)

    def test_presentation_events(self, make_machine):
        """Test state changes are published as presentation snapshots"""
        machine = make_machine()
        states = []
        machine.events.on(PRESENTATION_CHANGED, states.append)

        machine.set_tool("select")
        machine.set_tool("select")

        assert len(states) == 1
        assert states[0].tool == "select"
        assert states[0].tools == ("bbox", "select", "pan")

    def test_wheel_zoom(self, make_machine):
        """Test wheel zoom updates the presented zoom"""
        machine = make_machine()
        machine.wheel(-100, 50, 50)

        assert machine.presentation().zoom == pytest.approx(1.1)


class TestBoxTool:
    """Tests for drawing axis-aligned boxes"""

    def test_drag_commits_box(self, make_machine, drag):
        """Test a drag creates and selects a box of the current class"""
        machine = make_machine()
        drag(machine, (10, 10), (60, 40))

        boxes = machine.store.all()
        assert len(boxes) == 1
        box = boxes[0]
        assert isinstance(box, BoxAnnotation)
        assert box.bounds() == pytest.approx((10, 10, 50, 30))
        assert box.class_id == 0
        assert machine.selected_id == box.id
        assert machine.state == ToolState.IDLE

    def test_reverse_drag_normalized(self, make_machine, drag):
        """Test dragging up-left gives a positive-size box"""
        machine = make_machine()
        drag(machine, (60, 40), (10, 10))

        assert machine.store.all()[0].bounds() == pytest.approx((10, 10, 50, 30))

    def test_tiny_drag_discarded(self, make_machine, drag):
        """Test boxes below the minimum size are not created"""
        machine = make_machine()
        drag(machine, (10, 10), (13, 13))

        assert len(machine.store) == 0
        assert not machine.store.can_undo

    def test_no_classes(self, make_machine, drag):
        """Test creation tools do nothing without classes"""
        machine = make_machine(class_list=[])
        drag(machine, (10, 10), (60, 40))

        assert len(machine.store) == 0
        assert machine.current_class_id is None

    def test_tool_switch_discards(self, make_machine):
        """Test switching tools mid-draw drops the uncommitted box"""
        machine = make_machine()
        machine.pointer_down(PointerEvent(10, 10))
        machine.pointer_move(PointerEvent(60, 60))
        assert machine.state == ToolState.DRAWING
        assert machine.tool.preview() is not None

        machine.set_tool("select")
        machine.pointer_up(PointerEvent(60, 60))

        assert len(machine.store) == 0
        assert machine.state == ToolState.IDLE

    def test_undo_redo_keys(self, make_machine, drag):
        """Test ctrl+z and ctrl+shift+z"""
        machine = make_machine()
        drag(machine, (10, 10), (60, 40))

        machine.key(KeyEvent("z", ctrl=True))
        assert len(machine.store) == 0
        assert machine.selected_id is None

        machine.key(KeyEvent("z", ctrl=True, shift=True))
        assert len(machine.store) == 1

    def test_zoomed_view_maps_to_image(self, make_machine, drag, identity_view):
        """Test pointer input is converted to image space"""
        machine = make_machine()
        machine.set_transformer(identity_view.zoom_to(2.0, (0, 0)))
        drag(machine, (20, 20), (120, 80))

        assert machine.store.all()[0].bounds() == pytest.approx((10, 10, 50, 30))


class TestOrientedBoxTool:
    """Tests for oriented boxes"""

    def test_drag_then_rotate(self, make_machine, drag):
        """Test boxes start axis-aligned and r / R rotate them"""
        machine = make_machine(ProjectType.OBB)
        drag(machine, (20, 20), (80, 60))

        obb = machine.store.all()[0]
        assert isinstance(obb, OrientedBoxAnnotation)
        assert (obb.cx, obb.cy, obb.width, obb.height, obb.angle) == pytest.approx((50, 40, 60, 40, 0))

        machine.set_tool("select")
        assert machine.key("r")
        assert obb.angle == pytest.approx(15)
        assert machine.key("R")
        assert machine.key("R")
        assert obb.angle == pytest.approx(345)

        machine.undo()
        assert machine.store.get(obb.id).angle == pytest.approx(0)


class TestPolygonTool:
    """Tests for polygon drawing"""

    def test_snap_closes(self, make_machine, click):
        """Test clicking near the first vertex closes the polygon"""
        machine = make_machine(ProjectType.POLYGON)
        for x, y in [(10, 10), (60, 10), (60, 60)]:
            click(machine, x, y)
        assert machine.state == ToolState.DRAWING

        click(machine, 12, 11)

        polygons = machine.store.all()
        assert len(polygons) == 1
        assert isinstance(polygons[0], PolygonAnnotation)
        assert polygons[0].vertices() == [(10, 10), (60, 10), (60, 60)]
        assert machine.state == ToolState.IDLE

    def test_enter_needs_three_points(self, make_machine, click):
        """Test Enter with two vertices keeps drawing"""
        machine = make_machine(ProjectType.POLYGON)
        click(machine, 10, 10)
        click(machine, 60, 10)

        assert machine.key("Enter")
        assert len(machine.store) == 0
        assert machine.tool.points == [(10, 10), (60, 10)]

        click(machine, 60, 60)
        machine.key("Enter")
        assert len(machine.store) == 1

    def test_escape_discards(self, make_machine, click):
        """Test Escape drops the polygon being drawn"""
        machine = make_machine(ProjectType.POLYGON)
        click(machine, 10, 10)
        click(machine, 60, 10)
        machine.key("Escape")

        assert not machine.tool.busy
        assert len(machine.store) == 0


class TestKeypointTool:
    """Tests for skeleton joint placement"""

    def test_sequential_placement(self, make_machine, click):
        """Test clicks fill consecutive joints of one instance"""
        machine = make_machine(ProjectType.KEYPOINTS)
        click(machine, 10, 10)
        click(machine, 20, 20)

        instances = machine.store.all()
        assert len(instances) == 1
        instance = instances[0]
        assert isinstance(instance, KeypointAnnotation)
        assert len(instance.keypoints) == 17
        assert (instance.keypoints[0].x, instance.keypoints[0].y) == (10, 10)
        assert (instance.keypoints[1].x, instance.keypoints[1].y) == (20, 20)
        assert not instance.keypoints[2].is_placed
        assert machine.selected_joint == 1

    def test_visibility_cycle(self, make_machine, click):
        """Test t cycles the selected joint's visibility"""
        machine = make_machine(ProjectType.KEYPOINTS)
        click(machine, 10, 10)
        instance = machine.store.all()[0]

        assert machine.key("t")
        assert instance.keypoints[0].visibility == Visibility.OCCLUDED
        machine.key("t")
        assert instance.keypoints[0].visibility == Visibility.ABSENT

    def test_new_instance(self, make_machine, click):
        """Test n makes the next click start another instance"""
        machine = make_machine(ProjectType.KEYPOINTS)
        click(machine, 10, 10)
        machine.key("n")
        click(machine, 50, 50)

        instances = machine.store.all()
        assert len(instances) == 2
        assert (instances[1].keypoints[0].x, instances[1].keypoints[0].y) == (50, 50)

    def test_tab_skips_joint(self, make_machine, click):
        """Test Tab advances without placing"""
        machine = make_machine(ProjectType.KEYPOINTS)
        machine.key("Tab")
        click(machine, 10, 10)

        instance = machine.store.all()[0]
        assert not instance.keypoints[0].is_placed
        assert instance.keypoints[1].is_placed


class TestMaskTool:
    """Tests for mask painting"""

    def test_stroke_commits_on_enter(self, make_machine, drag):
        """Test nothing is stored until Enter"""
        machine = make_machine(ProjectType.MASK)
        assert machine.state == ToolState.MASKING
        assert machine.presentation().show_mask_controls

        drag(machine, (50, 50), (80, 50))
        assert len(machine.store) == 0

        machine.key("Enter")
        masks = machine.store.all()
        assert len(masks) == 1
        assert isinstance(masks[0], MaskAnnotation)
        assert masks[0].contains(65, 50)
        assert not masks[0].contains(65, 80)

    def test_new_instance_starts_fresh_mask(self, make_machine, drag):
        """Test 'n' commits and the next stroke paints a separate mask"""
        machine = make_machine(ProjectType.MASK)
        drag(machine, (30, 30), (50, 30))
        machine.key("n")
        assert len(machine.store) == 1
        assert machine.tool.busy is False

        drag(machine, (130, 60), (150, 60))
        machine.key("Enter")

        first, second = machine.store.all()
        assert first.id != second.id
        assert first.contains(40, 30) and not first.contains(140, 60)
        assert second.contains(140, 60) and not second.contains(40, 30)

    def test_stroke_size_independent_of_zoom(self, make_machine, drag, identity_view):
        """Test the brush covers the same image area at any zoom"""
        flat = make_machine(ProjectType.MASK)
        drag(flat, (50, 50), (80, 50))
        flat.key("Enter")

        zoomed = make_machine(ProjectType.MASK)
        zoomed.set_transformer(identity_view.zoom_to(2.0, anchor=(0, 0)))
        # Canvas (100, 100)..(160, 100) is image (50, 50)..(80, 50) at zoom 2
        drag(zoomed, (100, 100), (160, 100))
        zoomed.key("Enter")

        assert zoomed.transformer.zoom == pytest.approx(2.0)
        assert zoomed.store.all()[0].bounds() == pytest.approx(flat.store.all()[0].bounds())

    def test_escape_discards(self, make_machine, drag):
        """Test Escape drops the working mask"""
        machine = make_machine(ProjectType.MASK)
        drag(machine, (50, 50), (80, 50))
        machine.key("Escape")
        machine.key("Enter")

        assert len(machine.store) == 0

    def test_brush_keys(self, make_machine):
        """Test ] and [ resize the brush within its bounds"""
        machine = make_machine(ProjectType.MASK)

        machine.key("]")
        assert machine.brush_size == 25
        machine.key("[")
        machine.key("[")
        assert machine.brush_size == 15
        machine.set_brush_size(1)
        assert machine.presentation().brush_size == 5

    def test_edit_and_erase(self, make_machine, drag):
        """Test double-click loads a mask and erasing it fully deletes it"""
        machine = make_machine(ProjectType.MASK)
        drag(machine, (50, 50), (80, 50))
        machine.key("Enter")
        mask_id = machine.store.all()[0].id

        machine.set_tool("select")
        machine.double_click(PointerEvent(65, 50))
        assert machine.tool.name == "mask"
        assert machine.tool.editing_id == mask_id

        machine.key("e")
        machine.set_brush_size(100)
        drag(machine, (50, 50), (80, 50))
        # Still stored until commit
        assert machine.store.get(mask_id).contains(65, 50)

        machine.key("Enter")
        assert len(machine.store) == 0

        machine.undo()
        assert machine.store.get(mask_id).contains(65, 50)


class TestSelectTool:
    """Tests for moving, resizing and deleting"""

    @pytest.fixture
    def machine(self, make_machine, drag):
        machine = make_machine()
        drag(machine, (10, 10), (60, 40))
        machine.set_tool("select")
        return machine

    def test_move_single_undo_step(self, machine, drag):
        """Test a drag moves the box and undoes in one step"""
        drag(machine, (30, 25), (40, 35), steps=5)
        box = machine.store.all()[0]
        assert box.bounds() == pytest.approx((20, 20, 50, 30))

        machine.undo()
        assert machine.store.get(box.id).bounds() == pytest.approx((10, 10, 50, 30))
        assert len(machine.store) == 1

    def test_resize_handle(self, machine, drag):
        """Test dragging the south-east handle resizes"""
        machine.pointer_down(PointerEvent(60, 40))
        assert machine.presentation().handle.position == "se"
        machine.pointer_move(PointerEvent(80, 60))
        machine.pointer_up(PointerEvent(80, 60))

        assert machine.store.all()[0].bounds() == pytest.approx((10, 10, 70, 50))

    def test_resize_onto_opposite_edge(self, machine):
        """Test a resize that collapses the box is reverted on release"""
        machine.pointer_down(PointerEvent(60, 25))
        assert machine.presentation().handle.position == "e"
        machine.pointer_move(PointerEvent(35, 25))
        machine.pointer_move(PointerEvent(10, 25))
        machine.pointer_up(PointerEvent(10, 25))

        box = machine.store.all()[0]
        assert not box.is_degenerate()
        assert box.bounds() == pytest.approx((10, 10, 50, 30))

        # Nothing was recorded; undo removes the box itself
        machine.undo()
        assert len(machine.store) == 0

    def test_escape_restores(self, machine):
        """Test Escape mid-drag puts the box back"""
        machine.pointer_down(PointerEvent(30, 25))
        machine.pointer_move(PointerEvent(50, 45))
        assert machine.state == ToolState.EDITING

        machine.key("Escape")
        machine.pointer_up(PointerEvent(50, 45))

        assert machine.store.all()[0].bounds() == pytest.approx((10, 10, 50, 30))
        assert machine.state == ToolState.IDLE

    def test_click_empty_clears_selection(self, machine, click):
        """Test clicking nothing deselects"""
        click(machine, 150, 80)

        assert machine.selected_id is None

    def test_delete_key(self, machine):
        """Test Delete removes the selected annotation"""
        assert machine.key("Delete")

        assert len(machine.store) == 0
        assert machine.selected_id is None
        assert not machine.key("Delete")
