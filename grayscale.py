"""Load an image as a grid of 8-bit luminance values.

This module uses Pillow to open an input image, convert it to grayscale and
materialize the pixels row by row so the texture encoder can walk them in
order.
"""
from __future__ import annotations

import logging
import os

from PIL import Image

from texture_toolkit import Grid

logger = logging.getLogger(__name__)


def image_to_grid(img: Image.Image) -> Grid:
    """Convert ``img`` to grayscale (mode ``L``) and return its rows."""
    grayscale = img if img.mode == "L" else img.convert("L")
    width, height = grayscale.size
    px = grayscale.load()
    return [[px[x, y] for x in range(width)] for y in range(height)]


def load_grayscale(input_path: os.PathLike[str] | str) -> Grid:
    """Open ``input_path`` and return its luminance grid."""
    with Image.open(input_path) as img:
        grid = image_to_grid(img)
    logger.debug("loaded %s as %dx%d grayscale", input_path, len(grid[0]) if grid else 0, len(grid))
    return grid
