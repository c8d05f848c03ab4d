"""
Configuration settings for the annotation canvas and augmentation engine
"""
import os

# View settings
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_STEP = 1.2  # Keyboard / button zoom factor
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9
FIT_MARGIN = 0.9  # Fraction of the viewport used when fitting an image

# Annotation thresholds (image pixels)
MIN_BOX_SIZE = 5.0
MIN_OBB_SIZE = 10.0
MIN_POLYGON_POINTS = 3

# Interaction tolerances (canvas pixels, divided by zoom before use)
HANDLE_SIZE = 6.0
ROTATION_HANDLE_OFFSET = 30.0
ROTATION_HANDLE_THRESHOLD = 12.0
POLYGON_SNAP_DISTANCE = 10.0
KEYPOINT_HIT_RADIUS = 8.0
OBB_ROTATE_STEP = 15.0  # Degrees per r / R key press

# Mask brush settings (image pixels)
DEFAULT_BRUSH_SIZE = 20
MIN_BRUSH_SIZE = 5
MAX_BRUSH_SIZE = 100
BRUSH_SIZE_STEP = 5
MASK_COVERAGE_THRESHOLD = 128  # Coverage at or above this counts as inside

# Undo history (number of mutating operations kept)
HISTORY_LIMIT = int(os.getenv('ANNOTATOR_HISTORY_LIMIT', '50'))

# Autosave timing (seconds)
# AUTOSAVE_DELAY is the quiet window after the last change; AUTOSAVE_INTERVAL
# bounds the maximum data loss window when edits never pause
AUTOSAVE_DELAY = float(os.getenv('ANNOTATOR_AUTOSAVE_DELAY', '3.0'))
AUTOSAVE_INTERVAL = float(os.getenv('ANNOTATOR_AUTOSAVE_INTERVAL', '30.0'))

# Classes
DEFAULT_SKELETON_PRESET = "coco-17"
UNKNOWN_CLASS_ID = -1
UNKNOWN_CLASS_NAME = "unknown"
UNKNOWN_CLASS_COLOR = "#9e9e9e"
DEFAULT_CLASS_COLOR = "#ff0000"

# Augmentation
PHOTOMETRIC_RANGE = 100  # brightness / contrast / saturation span [-100, 100]
LETTERBOX_STANDARD_SIZES = [416, 640, 800, 1024, 1280]
LETTERBOX_STRIDE = 32
