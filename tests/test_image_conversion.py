import numpy as np
import pytest
from PIL import Image

from waferalign.image_conversion import load_image, validate_image_size


def test_load_grayscale_round_trip(tmp_path):
    data = (np.arange(20 * 30) % 256).astype(np.uint8).reshape(20, 30)
    path = tmp_path / "gray.png"
    Image.fromarray(data, mode="L").save(path)
    loaded = load_image(path)
    assert loaded.dtype == np.uint8
    assert loaded.shape == (20, 30)
    assert np.array_equal(loaded, data)


def test_load_color_becomes_two_dimensional(tmp_path):
    rgb = np.full((12, 15, 3), 100, dtype=np.uint8)
    path = tmp_path / "color.png"
    Image.fromarray(rgb, mode="RGB").save(path)
    loaded = load_image(str(path))
    assert loaded.shape == (12, 15)
    assert int(loaded[0, 0]) == 100


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="does not exist"):
        load_image(tmp_path / "nope.png")


def test_load_rejects_tiny_image(tmp_path):
    path = tmp_path / "tiny.png"
    Image.fromarray(np.zeros((5, 5), dtype=np.uint8)).save(path)
    with pytest.raises(ValueError, match="Image too small: 5x5, minimum: 10x10"):
        load_image(path)


def test_validate_too_large_with_custom_limit():
    with pytest.raises(ValueError, match="Image too large: 30x20, maximum: 25x25"):
        validate_image_size(np.zeros((20, 30)), 10, 25)


def test_validate_accepts_boundaries():
    image = np.zeros((10, 25))
    assert validate_image_size(image, 10, 25) is None
    with pytest.raises(ValueError):
        validate_image_size(image, 11, 25)