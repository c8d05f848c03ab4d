"""
Skeleton definitions and presets for keypoint classes

A skeleton is the fixed joint/edge topology shared by every keypoint
instance of a class. Instances never carry their own skeleton.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

Connection = Tuple[int, int]


@dataclass
class Skeleton:
    """
    Ordered joint names plus an edge list of joint-index pairs

    Attributes:
        keypoints: Joint names, in instance order
        connections: Pairs of joint indices drawn as bones
        preset: Preset id this skeleton was created from ("custom" otherwise)
    """
    keypoints: List[str] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)
    preset: str = "custom"

    def __post_init__(self):
        self.connections = [(int(a), int(b)) for a, b in self.connections]

    def __len__(self) -> int:
        return len(self.keypoints)

    def validate(self) -> Optional[str]:
        """
        Validate skeleton structure

        Returns:
            None if valid, otherwise a description of the first problem found
        """
        if not self.keypoints:
            return "Keypoints list is required and must not be empty"
        n = len(self.keypoints)
        for a, b in self.connections:
            if not (0 <= a < n and 0 <= b < n):
                return f"Invalid connection: [{a}, {b}]"
        return None

    @property
    def is_valid(self) -> bool:
        return self.validate() is None

    def clone(self) -> "Skeleton":
        return Skeleton(
            keypoints=list(self.keypoints),
            connections=list(self.connections),
            preset=self.preset,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keypoints": list(self.keypoints),
            "connections": [list(c) for c in self.connections],
            "preset": self.preset,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Skeleton":
        return cls(
            keypoints=list(data["keypoints"]),
            connections=[tuple(c) for c in data.get("connections", [])],
            preset=data.get("preset", "custom"),
        )


def _chain(start: int, length: int) -> List[Connection]:
    """Consecutive connections start..start+length"""
    return [(start + i, start + i + 1) for i in range(length)]


PRESETS: Dict[str, Dict[str, Any]] = {
    # Human pose
    "coco-17": {
        "name": "COCO 17 Keypoints",
        "description": "Standard COCO human pose (17 points)",
        "category": "human",
        "keypoints": [
            "nose",
            "left_eye", "right_eye",
            "left_ear", "right_ear",
            "left_shoulder", "right_shoulder",
            "left_elbow", "right_elbow",
            "left_wrist", "right_wrist",
            "left_hip", "right_hip",
            "left_knee", "right_knee",
            "left_ankle", "right_ankle",
        ],
        "connections": [
            (0, 1), (0, 2), (1, 3), (2, 4),
            (5, 6), (5, 7), (7, 9), (6, 8), (8, 10),
            (5, 11), (6, 12), (11, 12),
            (11, 13), (13, 15), (12, 14), (14, 16),
        ],
    },
    "mediapipe-pose-33": {
        "name": "MediaPipe Pose (33 points)",
        "description": "Full body with hands and face landmarks",
        "category": "human",
        "keypoints": [
            "nose", "left_eye_inner", "left_eye", "left_eye_outer",
            "right_eye_inner", "right_eye", "right_eye_outer",
            "left_ear", "right_ear", "mouth_left", "mouth_right",
            "left_shoulder", "right_shoulder",
            "left_elbow", "right_elbow",
            "left_wrist", "right_wrist",
            "left_pinky", "right_pinky",
            "left_index", "right_index",
            "left_thumb", "right_thumb",
            "left_hip", "right_hip",
            "left_knee", "right_knee",
            "left_ankle", "right_ankle",
            "left_heel", "right_heel",
            "left_foot_index", "right_foot_index",
        ],
        "connections": [
            (0, 1), (1, 2), (2, 3), (0, 4), (4, 5), (5, 6),
            (2, 7), (5, 8), (0, 9), (0, 10),
            (11, 12),
            (11, 13), (13, 15), (15, 17), (15, 19), (15, 21),
            (12, 14), (14, 16), (16, 18), (16, 20), (16, 22),
            (11, 23), (12, 24), (23, 24),
            (23, 25), (25, 27), (27, 29), (27, 31),
            (24, 26), (26, 28), (28, 30), (28, 32),
        ],
    },
    "openpose-body-25": {
        "name": "OpenPose Body (25 points)",
        "description": "OpenPose full body model",
        "category": "human",
        "keypoints": [
            "nose", "neck",
            "right_shoulder", "right_elbow", "right_wrist",
            "left_shoulder", "left_elbow", "left_wrist",
            "mid_hip", "right_hip", "right_knee", "right_ankle",
            "left_hip", "left_knee", "left_ankle",
            "right_eye", "left_eye", "right_ear", "left_ear",
            "left_big_toe", "left_small_toe", "left_heel",
            "right_big_toe", "right_small_toe", "right_heel",
        ],
        "connections": [
            (0, 1), (0, 15), (0, 16), (15, 17), (16, 18),
            (1, 2), (2, 3), (3, 4),
            (1, 5), (5, 6), (6, 7),
            (1, 8),
            (8, 9), (9, 10), (10, 11),
            (8, 12), (12, 13), (13, 14),
            (11, 22), (11, 23), (11, 24),
            (14, 19), (14, 20), (14, 21),
        ],
    },
    # Hand
    "mediapipe-hand-21": {
        "name": "MediaPipe Hand (21 points)",
        "description": "Detailed hand landmarks",
        "category": "hand",
        "keypoints": [
            "wrist",
            "thumb_cmc", "thumb_mcp", "thumb_ip", "thumb_tip",
            "index_mcp", "index_pip", "index_dip", "index_tip",
            "middle_mcp", "middle_pip", "middle_dip", "middle_tip",
            "ring_mcp", "ring_pip", "ring_dip", "ring_tip",
            "pinky_mcp", "pinky_pip", "pinky_dip", "pinky_tip",
        ],
        "connections": [
            (0, 1), (0, 5), (0, 9), (0, 13), (0, 17),
            (1, 2), (2, 3), (3, 4),
            (5, 6), (6, 7), (7, 8),
            (9, 10), (10, 11), (11, 12),
            (13, 14), (14, 15), (15, 16),
            (17, 18), (18, 19), (19, 20),
            (5, 9), (9, 13), (13, 17),
        ],
    },
    # Face
    "mediapipe-face-basic": {
        "name": "Face Basic (10 points)",
        "description": "Simple face landmarks",
        "category": "face",
        "keypoints": [
            "left_eye", "right_eye",
            "nose_tip",
            "mouth_left", "mouth_right",
            "left_ear", "right_ear",
            "chin",
            "forehead_left", "forehead_right",
        ],
        "connections": [
            (0, 1), (0, 2), (1, 2), (2, 7), (3, 4),
            (0, 5), (1, 6), (0, 8), (1, 9),
        ],
    },
    "facial-landmarks-68": {
        "name": "Facial Landmarks 68",
        "description": "dlib 68-point face model",
        "category": "face",
        "keypoints": (
            [f"jaw_{i}" for i in range(17)]
            + [f"left_eyebrow_{i}" for i in range(5)]
            + [f"right_eyebrow_{i}" for i in range(5)]
            + [f"nose_bridge_{i}" for i in range(4)]
            + [f"nose_tip_{i}" for i in range(5)]
            + [f"left_eye_{i}" for i in range(6)]
            + [f"right_eye_{i}" for i in range(6)]
            + [f"outer_mouth_{i}" for i in range(12)]
            + [f"inner_mouth_{i}" for i in range(8)]
        ),
        "connections": (
            _chain(0, 16)
            + _chain(17, 4)
            + _chain(22, 4)
            + _chain(27, 3)
            + _chain(31, 4) + [(31, 35)]
            + _chain(36, 5) + [(36, 41)]
            + _chain(42, 5) + [(42, 47)]
            + _chain(48, 11) + [(48, 59)]
            + _chain(60, 7) + [(60, 67)]
        ),
    },
    # Animal
    "animal-quadruped": {
        "name": "Animal Quadruped",
        "description": "Generic quadruped animal (dog, cat, horse)",
        "category": "animal",
        "keypoints": [
            "nose", "left_eye", "right_eye",
            "left_ear", "right_ear",
            "neck", "back", "tail_base", "tail_tip",
            "left_front_shoulder", "left_front_elbow", "left_front_paw",
            "right_front_shoulder", "right_front_elbow", "right_front_paw",
            "left_back_hip", "left_back_knee", "left_back_paw",
            "right_back_hip", "right_back_knee", "right_back_paw",
        ],
        "connections": [
            (0, 1), (0, 2), (1, 3), (2, 4),
            (5, 6), (6, 7), (7, 8),
            (5, 9), (9, 10), (10, 11),
            (5, 12), (12, 13), (13, 14),
            (7, 15), (15, 16), (16, 17),
            (7, 18), (18, 19), (19, 20),
        ],
    },
    "custom": {
        "name": "Custom Skeleton",
        "description": "Define your own keypoints and connections",
        "category": "custom",
        "keypoints": [],
        "connections": [],
    },
}

CATEGORY_NAMES = {
    "human": "Human Pose",
    "hand": "Hand",
    "face": "Face",
    "animal": "Animal",
    "custom": "Custom",
}


def available_presets() -> List[str]:
    """Get ids of all skeleton presets"""
    return list(PRESETS.keys())


def presets_by_category(category: str) -> List[str]:
    """Get ids of presets in a category ('human', 'hand', 'face', 'animal', 'custom')"""
    return [preset_id for preset_id, preset in PRESETS.items() if preset["category"] == category]


def create_from_preset(preset_id: str) -> Skeleton:
    """
    Create a fresh skeleton from a preset

    Args:
        preset_id: Preset identifier (e.g., 'coco-17')

    Returns:
        New Skeleton instance (safe to mutate)

    Raises:
        ValueError: If the preset does not exist
    """
    if preset_id not in PRESETS:
        available = ', '.join(PRESETS.keys())
        raise ValueError(f"Unknown skeleton preset: '{preset_id}'. Available presets: {available}")

    preset = PRESETS[preset_id]
    return Skeleton(
        keypoints=list(preset["keypoints"]),
        connections=list(preset["connections"]),
        preset=preset_id,
    )
