"""
Geometry helpers for decoded pattern pieces

Bounds, quarter-turn rotation about the bbox center and the
axis-aligned rectangle test used for collision detection.
"""

from typing import List, Sequence, Tuple

from shapely.affinity import affine_transform
from shapely.geometry import MultiPoint

from .models import Bounds, Point


# Exact (cos, sin) per quarter turn; avoids float drift from math.cos
QUARTER_TURNS = {
    0: (1, 0),
    90: (0, 1),
    180: (-1, 0),
    270: (0, -1),
}

ROTATIONS: Tuple[int, ...] = (0, 90, 180, 270)

Rect = Tuple[float, float, float, float]


def compute_bounds(points: Sequence[Point]) -> Bounds:
    """
    Bounding box of a point list.

    An empty list yields an all-zero box; callers treat zero-area bounds
    as a valid piece.
    """
    if not points:
        return Bounds()
    minx, miny, maxx, maxy = MultiPoint([(p.x, p.y) for p in points]).bounds
    return Bounds(
        min_x=minx,
        min_y=miny,
        max_x=maxx,
        max_y=maxy,
        width=maxx - minx,
        height=maxy - miny,
    )


def rotate_points(points: Sequence[Point], angle: int) -> Tuple[List[Point], Bounds]:
    """Rotate points about their bbox center by 0/90/180/270 degrees"""
    angle = int(angle) % 360
    if angle not in QUARTER_TURNS:
        raise ValueError(f"Rotation must be a quarter turn, got {angle}")

    bounds = compute_bounds(points)
    if angle == 0 or not points:
        return [Point(x=p.x, y=p.y) for p in points], bounds

    cos, sin = QUARTER_TURNS[angle]
    cx = (bounds.min_x + bounds.max_x) / 2
    cy = (bounds.min_y + bounds.max_y) / 2

    # x' = cos*x - sin*y + cx - cos*cx + sin*cy
    # y' = sin*x + cos*y + cy - sin*cx - cos*cy
    xoff = cx - cos * cx + sin * cy
    yoff = cy - sin * cx - cos * cy
    rotated = affine_transform(
        MultiPoint([(p.x, p.y) for p in points]),
        [cos, -sin, sin, cos, xoff, yoff],
    )
    new_points = [Point(x=g.x, y=g.y) for g in rotated.geoms]
    return new_points, compute_bounds(new_points)


def rotate(piece, angle: int) -> Tuple[List[Point], Bounds]:
    """Rotate any object carrying a ``points`` list; the piece itself is left untouched"""
    return rotate_points(piece.points, angle)


def absolute_rect(bounds: Bounds, position: Point) -> Rect:
    """Placed rectangle (x0, y0, x1, y1) of a piece whose bbox corner sits at position"""
    return (
        position.x,
        position.y,
        position.x + bounds.width,
        position.y + bounds.height,
    )


def rects_overlap(a: Rect, b: Rect) -> bool:
    """True when both axes overlap with positive extent; shared edges do not count"""
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]
