"""
Keypoint placement tool

Clicks place the current joint of the selected skeleton instance and advance
to the next joint. With no keypoint instance selected, the first click
creates one.

Keys:
    n    start a new instance with the next click
    Tab  skip to the next joint
    t    cycle visibility of the selected joint
"""
import logging
from typing import TYPE_CHECKING, Optional

from ...annotation.models import Keypoint, KeypointAnnotation, Visibility
from .base import Button, CreationTool, KeyEvent, PointerEvent

if TYPE_CHECKING:
    from ..machine import ToolStateMachine

logger = logging.getLogger(__name__)


def cycle_joint_visibility(machine: "ToolStateMachine") -> bool:
    """
    Cycle visible -> occluded -> absent for the selected joint

    Returns:
        True if a joint was selected and changed
    """
    instance = machine.selected_annotation()
    joint = machine.selected_joint
    if not isinstance(instance, KeypointAnnotation) or joint is None or joint >= len(instance.keypoints):
        return False
    if not instance.keypoints[joint].is_placed:
        return False

    keypoints = [Keypoint(kp.x, kp.y, kp.visibility) for kp in instance.keypoints]
    keypoints[joint].visibility = keypoints[joint].visibility.next()
    machine.store.update(instance.id, {"keypoints": keypoints})
    logger.debug(f"Joint {joint} visibility -> {keypoints[joint].visibility.name}")
    return True


class KeypointTool(CreationTool):
    """Place skeleton joints one click at a time"""

    name = "keypoint"

    def __init__(self, machine):
        super().__init__(machine)
        self.current_index = 0

    def _instance(self) -> Optional[KeypointAnnotation]:
        selected = self.machine.selected_annotation()
        return selected if isinstance(selected, KeypointAnnotation) else None

    def _joint_count(self, instance: Optional[KeypointAnnotation]) -> int:
        skeleton_size = len(self.machine.current_class.get_skeleton()) if self.machine.current_class else 0
        if instance is None:
            return skeleton_size
        return max(len(instance.keypoints), skeleton_size)

    def on_pointer_down(self, x: float, y: float, event: PointerEvent) -> None:
        if event.button != Button.PRIMARY or not self.can_start():
            return

        instance = self._instance()
        count = self._joint_count(instance)
        if count == 0:
            logger.warning("The selected class has no skeleton joints")
            return
        index = self.current_index % count

        if instance is None:
            new_instance = KeypointAnnotation.empty(count, class_id=self.machine.current_class_id)
            new_instance.keypoints[index] = Keypoint(x, y, Visibility.VISIBLE)
            if self.machine.commit(new_instance) is None:
                return
        else:
            keypoints = [Keypoint(kp.x, kp.y, kp.visibility) for kp in instance.keypoints]
            keypoints.extend(Keypoint() for _ in range(count - len(keypoints)))
            keypoints[index] = Keypoint(x, y, Visibility.VISIBLE)
            self.machine.store.update(instance.id, {"keypoints": keypoints})

        self.machine.selected_joint = index
        self.current_index = (index + 1) % count

    def on_key(self, event: KeyEvent) -> bool:
        if event.key == "n":
            self.new_instance()
            return True
        if event.key == "Tab":
            count = self._joint_count(self._instance())
            if count:
                self.current_index = (self.current_index + 1) % count
            return True
        if event.key == "t":
            return cycle_joint_visibility(self.machine)
        return False

    def new_instance(self) -> None:
        """The next click starts a new skeleton instance"""
        self.machine.clear_selection()
        self.current_index = 0

    def current_joint_name(self) -> Optional[str]:
        if self.machine.current_class is None:
            return None
        names = self.machine.current_class.get_skeleton().keypoints
        return names[self.current_index % len(names)] if names else None
