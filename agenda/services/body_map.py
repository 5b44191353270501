"""Editing helpers for the Byosen body-map point list."""

import math
from typing import List, Optional

from ..models import BodyMapPoint

# Normalized distance under which a tap removes an existing mark (~3.5%)
TOGGLE_THRESHOLD = 0.035


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def toggle_point(
    points: List[BodyMapPoint],
    x: float,
    y: float,
    view: Optional[str] = None,
    threshold: float = TOGGLE_THRESHOLD,
) -> List[BodyMapPoint]:
    """
    Remove the first mark near (x, y) on the same view, or add a new one.

    Returns:
        A new list; the input is left untouched
    """
    x, y = _clamp(x), _clamp(y)
    for index, point in enumerate(points):
        if point.view != view:
            continue
        if math.hypot(point.x - x, point.y - y) < threshold:
            return points[:index] + points[index + 1:]
    return points + [BodyMapPoint(x=x, y=y, view=view)]


def undo_point(points: List[BodyMapPoint]) -> List[BodyMapPoint]:
    """Drop the most recent mark."""
    return points[:-1]


def clear_points() -> List[BodyMapPoint]:
    return []
