"""
Plane geometry helpers shared by annotations, tools and augmentation
"""
import math
from typing import Iterable, List, Sequence, Tuple

Bounds = Tuple[float, float, float, float]  # x, y, width, height

EMPTY_BOUNDS: Bounds = (0.0, 0.0, 0.0, 0.0)


def rotate_point(x: float, y: float, cx: float, cy: float, angle: float) -> Tuple[float, float]:
    """
    Rotate a point around a center

    Positive angles rotate clockwise on screen (y axis points down).

    Args:
        x, y: Point to rotate
        cx, cy: Rotation center
        angle: Angle in degrees

    Returns:
        Rotated (x, y)
    """
    rad = math.radians(angle)
    cos = math.cos(rad)
    sin = math.sin(rad)
    dx = x - cx
    dy = y - cy
    return cx + dx * cos - dy * sin, cy + dx * sin + dy * cos


def normalize_angle(angle: float) -> float:
    """Normalize an angle in degrees to [0, 360)"""
    angle = math.fmod(angle, 360.0)
    if angle < 0:
        angle += 360.0
    # fmod of a tiny negative value can land exactly on 360.0
    return 0.0 if angle >= 360.0 else angle


def bounds_of(points: Iterable[Tuple[float, float]]) -> Bounds:
    """Axis-aligned bounds (x, y, width, height) of a point set"""
    points = list(points)
    if not points:
        return EMPTY_BOUNDS
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    x_min, y_min = min(xs), min(ys)
    return (x_min, y_min, max(xs) - x_min, max(ys) - y_min)


def bounds_contain(bounds: Bounds, x: float, y: float, tolerance: float = 0.0) -> bool:
    """Check if a point lies within (tolerance-expanded) bounds"""
    bx, by, bw, bh = bounds
    return (bx - tolerance <= x <= bx + bw + tolerance
            and by - tolerance <= y <= by + bh + tolerance)


def bounds_intersect(a: Bounds, b: Bounds) -> bool:
    """Check if two bounds overlap with positive area"""
    ax, ay, aw, ah = a
    bx, by, bw, bh = b
    return ax < bx + bw and bx < ax + aw and ay < by + bh and by < ay + ah


def clip_bounds(bounds: Bounds, width: float, height: float) -> Bounds:
    """Clip bounds to the rectangle [0, width] x [0, height]"""
    x, y, w, h = bounds
    x0 = min(max(x, 0.0), width)
    y0 = min(max(y, 0.0), height)
    x1 = min(max(x + w, 0.0), width)
    y1 = min(max(y + h, 0.0), height)
    return (x0, y0, x1 - x0, y1 - y0)


def point_in_polygon(x: float, y: float, points: Sequence[Tuple[float, float]]) -> bool:
    """Point-in-polygon test (ray casting)"""
    inside = False
    j = len(points) - 1
    for i in range(len(points)):
        xi, yi = points[i]
        xj, yj = points[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def polygon_area(points: Sequence[Tuple[float, float]]) -> float:
    """Unsigned polygon area (shoelace formula)"""
    area = 0.0
    n = len(points)
    for i in range(n):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % n]
        area += x1 * y2 - x2 * y1
    return abs(area) / 2.0


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.hypot(x2 - x1, y2 - y1)


def rect_corners(cx: float, cy: float, width: float, height: float, angle: float) -> List[Tuple[float, float]]:
    """Corners of a rectangle rotated about its center, clockwise from top-left"""
    hw = width / 2
    hh = height / 2
    local = [(-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh)]
    return [rotate_point(cx + lx, cy + ly, cx, cy, angle) for lx, ly in local]


def to_local(x: float, y: float, cx: float, cy: float, angle: float) -> Tuple[float, float]:
    """Express a point in the frame of a rectangle centered at (cx, cy) rotated by angle"""
    lx, ly = rotate_point(x, y, cx, cy, -angle)
    return lx - cx, ly - cy
