"""Normalization of captured window images into protocol pixel buffers."""

from __future__ import annotations

import logging
from typing import Optional

from PIL import Image

logger = logging.getLogger(__name__)

BYTES_PER_PIXEL = 4


def title_bar_height(image_width: int, image_height: int, width: int, height: int) -> int:
    """Rows above the content area, inferred from the display aspect ratio."""

    rows = image_height - image_width * height // width
    return min(max(rows, 0), image_height)


def normalize_frame(image: Image.Image, width: int, height: int) -> Optional[bytes]:
    """Crop the title bar off ``image`` and render it as ``width x height`` RGBX.

    Returns ``width * height * 4`` bytes, or None when there is nothing to draw.
    """

    if width <= 0 or height <= 0:
        return None

    top = title_bar_height(image.width, image.height, width, height)
    if top >= image.height or image.width == 0:
        logger.error("Failed to crop image of size %s", image.size)
        return None

    content = image.crop((0, top, image.width, image.height))
    if content.size != (width, height):
        content = content.resize((width, height), Image.Resampling.BILINEAR)
    return content.convert("RGB").convert("RGBX").tobytes()
