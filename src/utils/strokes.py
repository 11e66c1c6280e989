"""Stroke ID generation and point-list helpers.

Provides:
    - Unique stroke/stone IDs: make_stroke_id(ts) → "stroke-1760791512345-ab12cd34"
    - Point conversion: points_to_records() ↔ records_to_points()
    - Bounding box of a point list (ring-pass proximity tests)

Point records are the flat persisted form {"x": ..., "y": ...}; in memory a
stroke keeps a tuple of (x, y) float pairs. The "y" key holds the world z
coordinate (the garden plane is 2D).
"""

import uuid
from typing import Dict, Iterable, List, Sequence, Tuple

Point = Tuple[float, float]


def make_stroke_id(timestamp_ms: float) -> str:
    """Generate a unique stroke ID.

    Parameters
    ----------
    timestamp_ms : float
        Creation time in milliseconds

    Returns
    -------
    str
        "stroke-<ms>-<8 hex chars>"; the uuid4 suffix keeps IDs unique when
        two strokes finish within the same millisecond

    Examples
    --------
    >>> make_stroke_id(1760791512345.0)
    'stroke-1760791512345-a3f5b2c1'
    """
    return f"stroke-{int(timestamp_ms)}-{uuid.uuid4().hex[:8]}"


def make_stone_id(timestamp_ms: float) -> str:
    """Generate a unique stone ID ("stone-<ms>-<6 hex chars>")."""
    return f"stone-{int(timestamp_ms)}-{uuid.uuid4().hex[:6]}"


def points_to_records(points: Iterable[Sequence[float]]) -> List[Dict[str, float]]:
    """Convert (x, y) pairs to [{"x": x, "y": y}, ...]."""
    return [{'x': float(p[0]), 'y': float(p[1])} for p in points]


def records_to_points(records: Iterable[Dict[str, float]]) -> Tuple[Point, ...]:
    """Convert [{"x": x, "y": y}, ...] to a tuple of (x, y) pairs."""
    return tuple((float(r['x']), float(r['y'])) for r in records)


def points_bbox(points: Sequence[Sequence[float]]) -> Tuple[float, float, float, float]:
    """Axis-aligned bounding box (xmin, ymin, xmax, ymax).

    Returns (0, 0, 0, 0) for an empty list.
    """
    if len(points) == 0:
        return (0.0, 0.0, 0.0, 0.0)
    xs = [float(p[0]) for p in points]
    ys = [float(p[1]) for p in points]
    return (min(xs), min(ys), max(xs), max(ys))
