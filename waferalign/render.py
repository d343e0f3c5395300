"""Drawing helpers for visual alignment reports.

Every function works on numpy arrays: grayscale images have shape
(height, width) and colour images shape (height, width, 3), both uint8.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from waferalign.types import AlignmentResult

_GAP_PX = 10
_LINE_THICKNESS = 3
_GREEN = (0, 255, 0)
_RED = (255, 0, 0)
_BRIGHTER = {
    _GREEN: (50, 255, 50),
    _RED: (255, 50, 50),
}

Size = Union[int, Sequence[int]]


def _to_rgb(gray: np.ndarray) -> np.ndarray:
    gray = np.asarray(gray, dtype=np.uint8)
    return np.repeat(gray[:, :, None], 3, axis=2)


def side_by_side(img1: np.ndarray, img2: np.ndarray) -> np.ndarray:
    """Place two grayscale images next to each other on white, 10 px apart."""
    h1, w1 = img1.shape[:2]
    h2, w2 = img2.shape[:2]
    canvas = np.full((max(h1, h2), w1 + w2 + _GAP_PX, 3), 255, dtype=np.uint8)
    canvas[:h1, :w1] = _to_rgb(img1)
    offset = w1 + _GAP_PX
    canvas[:h2, offset : offset + w2] = _to_rgb(img2)
    return canvas


def draw_rectangle(
    image: np.ndarray,
    location: tuple[int, int],
    width: int,
    height: int,
    color: Sequence[int],
) -> None:
    """Draw a 3-pixel-thick rectangle outline onto an RGB image in place.

    Pure green and pure red are drawn in slightly brighter shades; parts of
    the outline outside the image are clipped.
    """
    x, y = int(location[0]), int(location[1])
    width, height = int(width), int(height)
    colour = tuple(int(c) for c in color)
    bright = np.array(_BRIGHTER.get(colour, colour), dtype=np.uint8)
    img_h, img_w = image.shape[:2]

    cols = np.arange(x, x + width)
    cols = cols[(cols >= 0) & (cols < img_w)]
    rows = np.arange(y, y + height)
    rows = rows[(rows >= 0) & (rows < img_h)]

    for t in range(_LINE_THICKNESS):
        if cols.size:
            for row in (y - t, y + t, y + height - t, y + height + t):
                if 0 <= row < img_h:
                    image[row, cols] = bright
        if rows.size:
            for col in (x - t, x + t, x + width - t, x + width + t):
                if 0 <= col < img_w:
                    image[rows, col] = bright


def _patch_dims(patch_size: Size) -> tuple[int, int]:
    if isinstance(patch_size, (int, np.integer)):
        return int(patch_size), int(patch_size)
    width, height = patch_size
    return int(width), int(height)


def alignment_overlay(
    sem_image: np.ndarray,
    patch_location: tuple[int, int],
    patch_size: Size,
    result: AlignmentResult,
) -> np.ndarray:
    """The search image in colour with the true patch outlined green and the
    detected location outlined red.

    ``patch_size`` is either a side length or a (width, height) pair.
    """
    overlay = _to_rgb(sem_image)
    width, height = _patch_dims(patch_size)
    draw_rectangle(overlay, patch_location, width, height, _GREEN)
    loc = result.location
    draw_rectangle(overlay, (loc.x, loc.y), loc.width, loc.height, _RED)
    return overlay


def error_heatmap(original: np.ndarray, transformed: np.ndarray) -> np.ndarray:
    """Per-pixel absolute difference over the common area, red for large
    differences and blue for small ones."""
    height = min(original.shape[0], transformed.shape[0])
    width = min(original.shape[1], transformed.shape[1])
    a = np.asarray(original[:height, :width], dtype=np.int16)
    b = np.asarray(transformed[:height, :width], dtype=np.int16)
    diff = np.abs(a - b).astype(np.uint8)
    heatmap = np.zeros((height, width, 3), dtype=np.uint8)
    heatmap[:, :, 0] = diff
    heatmap[:, :, 2] = 255 - diff
    return heatmap