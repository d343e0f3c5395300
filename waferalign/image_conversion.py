"""Loading grayscale images and checking their dimensions."""

from __future__ import annotations

import os
from pathlib import Path

import numpy as np
from PIL import Image

DEFAULT_MIN_SIZE = 10
DEFAULT_MAX_SIZE = 10000


def load_image(path: str | os.PathLike[str]) -> np.ndarray:
    """Load an image file as an 8-bit grayscale array of shape (height, width)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image file does not exist: {path}")
    with Image.open(path) as img:
        gray = np.array(img.convert("L"), dtype=np.uint8)
    validate_image_size(gray)
    return gray


def validate_image_size(
    image: np.ndarray,
    min_size: int = DEFAULT_MIN_SIZE,
    max_size: int = DEFAULT_MAX_SIZE,
) -> None:
    """Raise ValueError unless both sides lie within [min_size, max_size]."""
    height, width = image.shape[:2]
    if width < min_size or height < min_size:
        raise ValueError(
            f"Image too small: {width}x{height}, minimum: {min_size}x{min_size}"
        )
    if width > max_size or height > max_size:
        raise ValueError(
            f"Image too large: {width}x{height}, maximum: {max_size}x{max_size}"
        )