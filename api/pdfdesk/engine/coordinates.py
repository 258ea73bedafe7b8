"""
Conversions between the three coordinate spaces used by the editor.

* PDF page space: origin bottom-left, unscaled points.
* Bitmap / screen space: origin top-left, pixels at a render scale.
* Percentage space: origin top-left, fractions of the page width/height.

Nothing here clamps; callers clamp into whatever range they need.
"""

from typing import Tuple

Point = Tuple[float, float]


def to_pdf_space(
    x_percent: float,
    y_percent: float,
    page_width_pt: float,
    page_height_pt: float,
    item_height_pt: float = 0.0,
) -> Point:
    # the anchor is the item's top-left on screen, its bottom-left in PDF space
    x_pt = x_percent * page_width_pt
    y_pt = page_height_pt - y_percent * page_height_pt - item_height_pt
    return x_pt, y_pt


def click_to_percent(
    click_x: float,
    click_y: float,
    canvas_origin: Point,
    canvas_size: Tuple[float, float],
) -> Point:
    origin_x, origin_y = canvas_origin
    width, height = canvas_size
    if width <= 0 or height <= 0:
        raise ValueError(f"canvas size must be positive, got {width}x{height}")
    return (click_x - origin_x) / width, (click_y - origin_y) / height


def bitmap_to_pdf_point(px: float, py: float, page_height_pt: float, scale: float) -> Point:
    """Pixel point of a page rendered at ``scale`` -> PDF point."""
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    return px / scale, page_height_pt - py / scale


def pdf_to_bitmap_point(x_pt: float, y_pt: float, page_height_pt: float, scale: float) -> Point:
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")
    return x_pt * scale, (page_height_pt - y_pt) * scale


def rect_to_percent(
    rect: Tuple[float, float, float, float],
    page_width_pt: float,
    page_height_pt: float,
) -> Tuple[float, float, float, float]:
    """PDF rect ``(x0, y0, x1, y1)`` -> ``(x%, y%, w%, h%)`` anchored top-left."""
    x0, y0, x1, y1 = rect
    left, right = min(x0, x1), max(x0, x1)
    bottom, top = min(y0, y1), max(y0, y1)
    return (
        left / page_width_pt,
        (page_height_pt - top) / page_height_pt,
        (right - left) / page_width_pt,
        (top - bottom) / page_height_pt,
    )
