"""
Bounding box normalization and clamping.

Providers disagree on box field names (x/left, y/top, width/w, height/h);
everything is normalized to `BoundingBox` in PDF points.
"""

import math
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from .schemas.job import BoundingBox
from .schemas.pipeline import (
    DEFAULT_FONT_SIZE,
    DEFAULT_PAGE_HEIGHT,
    DEFAULT_PAGE_WIDTH,
    PreparedPage,
)

FALLBACK_LEFT = 48
FALLBACK_TOP_PADDING = 72
FALLBACK_BOTTOM_PADDING = 24
FALLBACK_LINE_GAP = 6
FALLBACK_LINE_HEIGHT = DEFAULT_FONT_SIZE * 1.8


def _first(mapping: Mapping[str, Any], *names: str, default: Any = 0) -> Any:
    for name in names:
        value = mapping.get(name)
        if value is not None:
            return value
    return default


def as_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_bounding_box(raw: Any) -> Optional[BoundingBox]:
    """
    Coerce a provider box into a `BoundingBox`.

    Returns None for missing or non-numeric input. Coordinates are floored at
    zero and sizes at one point.
    """
    if raw is None:
        return None
    if isinstance(raw, BoundingBox):
        return raw
    if not isinstance(raw, Mapping):
        return None

    x = as_float(_first(raw, "x", "left"))
    y = as_float(_first(raw, "y", "top"))
    width = as_float(_first(raw, "width", "w"))
    height = as_float(_first(raw, "height", "h"))
    if x is None or y is None or width is None or height is None:
        return None

    rotation = as_float(raw.get("rotation")) if raw.get("rotation") is not None else None

    return BoundingBox(
        x=max(0.0, x),
        y=max(0.0, y),
        width=max(1.0, width),
        height=max(1.0, height),
        rotation=rotation,
    )


def clamp_bounding_box(box: BoundingBox, page: Optional[PreparedPage]) -> BoundingBox:
    """Keep a box inside `[0, page.width] x [0, page.height]`."""
    if page is None:
        return box
    max_width = page.width or DEFAULT_PAGE_WIDTH
    max_height = page.height or DEFAULT_PAGE_HEIGHT

    x = max(0.0, min(box.x, max_width))
    y = max(0.0, min(box.y, max_height))
    width = max(0.0, min(box.width, max_width - x))
    height = max(0.0, min(box.height, max_height - y))
    return box.model_copy(update={"x": x, "y": y, "width": width, "height": height})


def fallback_bounding_box(index: int, page: Optional[PreparedPage] = None) -> BoundingBox:
    """Estimated top-to-bottom box for the index-th block of a page without geometry."""
    page_width = page.width if page else DEFAULT_PAGE_WIDTH
    page_height = page.height if page else DEFAULT_PAGE_HEIGHT

    y = min(
        page_height - FALLBACK_LINE_HEIGHT - FALLBACK_BOTTOM_PADDING,
        FALLBACK_TOP_PADDING + index * (FALLBACK_LINE_HEIGHT + FALLBACK_LINE_GAP),
    )
    return BoundingBox(
        x=FALLBACK_LEFT,
        y=y,
        width=max(100, page_width - 2 * FALLBACK_LEFT),
        height=FALLBACK_LINE_HEIGHT,
    )


def bounding_box_from_vertices(vertices: Sequence[Mapping[str, Any]]) -> Optional[BoundingBox]:
    """Axis aligned box around a polygon given as `[{x, y}, ...]` (missing axes count as 0)."""
    if not vertices:
        return None
    points = np.array(
        [[float(v.get("x", 0) or 0), float(v.get("y", 0) or 0)] for v in vertices if isinstance(v, Mapping)]
    )
    if points.size == 0:
        return None

    min_x, min_y = np.min(points, axis=0)
    max_x, max_y = np.max(points, axis=0)
    return BoundingBox(
        x=float(min_x),
        y=float(min_y),
        width=float(max(1.0, max_x - min_x)),
        height=float(max(1.0, max_y - min_y)),
    )
