"""
Watermark geometry and per-page text templating.

Page space has its origin at the bottom-left corner. Anchors are given as
fractions of the page with the vertical fraction measured from the top, so the
vertical axis is inverted when converting to page space.
"""

import math
import re
from typing import Tuple

_PADDED_PAGE = re.compile(r"\{page:(\d+)\}")


def anchor_point(page_width: float, page_height: float,
                 anchor_x: float, anchor_y: float) -> Tuple[float, float]:
    """Page-space coordinates of an anchor given as (left, top) fractions."""
    return page_width * anchor_x, page_height * (1 - anchor_y)


def place(page_width: float, page_height: float, anchor_x: float, anchor_y: float,
          rotation: float, width: float, height: float) -> Tuple[float, float]:
    """
    Computes the lower-left draw origin for a box of ``width`` x ``height``.

    Drawing the box at the returned origin and rotating it counter-clockwise by
    ``rotation`` degrees about that same origin puts the box's center on the
    anchor point.
    """
    center_x, center_y = anchor_point(page_width, page_height, anchor_x, anchor_y)
    rad = math.radians(rotation)
    cos, sin = math.cos(rad), math.sin(rad)

    v_x, v_y = width / 2, height / 2
    rotated_x = v_x * cos - v_y * sin
    rotated_y = v_x * sin + v_y * cos
    return center_x - rotated_x, center_y - rotated_y


def visual_center(origin_x: float, origin_y: float, rotation: float,
                  width: float, height: float) -> Tuple[float, float]:
    """Inverse of ``place``: where the box's center ends up after rotation."""
    rad = math.radians(rotation)
    cos, sin = math.cos(rad), math.sin(rad)
    v_x, v_y = width / 2, height / 2
    return origin_x + v_x * cos - v_y * sin, origin_y + v_x * sin + v_y * cos


def expand_placeholders(text: str, page_number: int, total_pages: int) -> str:
    """
    Expands ``{page}``, ``{total}`` and ``{page:NN}`` for one page.

    ``page_number`` is 1-based. ``{page:NN}`` zero-pads the page number to NN
    digits; the width is used as written.
    """
    text = text.replace("{page}", str(page_number))
    text = text.replace("{total}", str(total_pages))
    return _PADDED_PAGE.sub(lambda m: str(page_number).zfill(int(m.group(1))), text)
