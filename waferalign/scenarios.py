"""Test scenarios: synthetic perturbations applied to image patches."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Union

import numpy as np

_MIN_PATCH_VARIANCE = 100.0
_PATCH_ATTEMPTS = 100
_BACKGROUND = 128
_GAUSSIAN_RADIUS = 0.5
_GAUSSIAN_SUPPORT = 3.0


@dataclass(frozen=True)
class NoNoise:
    def __str__(self) -> str:
        return "None"


@dataclass(frozen=True)
class GaussianNoise:
    """Uniform noise in [-sigma, sigma] added to every pixel."""

    sigma: float

    def __str__(self) -> str:
        return f"Gaussian {{ sigma: {float(self.sigma)!r} }}"


@dataclass(frozen=True)
class SaltPepper:
    """Each pixel becomes black or white with probability ``density``."""

    density: float

    def __str__(self) -> str:
        return f"SaltPepper {{ density: {float(self.density)!r} }}"


@dataclass(frozen=True)
class BlurNoise:
    """Blur approximated by a box filter of radius ``int(2 * sigma)``."""

    sigma: float

    def __str__(self) -> str:
        return f"GaussianBlur {{ sigma: {float(self.sigma)!r} }}"


@dataclass(frozen=True)
class Brightness:
    """Constant brightness offset."""

    delta: int

    def __str__(self) -> str:
        return f"Brightness {{ delta: {int(self.delta)} }}"


Noise = Union[NoNoise, GaussianNoise, SaltPepper, BlurNoise, Brightness]


@dataclass(frozen=True)
class Scenario:
    """A named combination of geometric change and noise."""

    name: str
    noise: Noise = NoNoise()
    rotation_deg: float = 0.0
    translation: tuple[int, int] = (0, 0)
    scale_factor: float = 1.0


def default_scenarios() -> list[Scenario]:
    return [
        Scenario("clean"),
        Scenario("translation_5px", translation=(5, 5)),
        Scenario("translation_10px", translation=(10, -10)),
        Scenario("rotation_10deg", rotation_deg=10.0),
        Scenario("rotation_30deg", rotation_deg=30.0),
        Scenario("gaussian_noise", noise=GaussianNoise(5.0)),
        Scenario("salt_pepper", noise=SaltPepper(0.005)),
        Scenario("gaussian_blur", noise=BlurNoise(1.5)),
        Scenario("brightness_change", noise=Brightness(20)),
        Scenario("scale_120", scale_factor=1.2),
    ]


def select_scenarios(names: Iterable[str] | None = None) -> list[Scenario]:
    """All default scenarios, or those whose names are given, in default order."""
    scenarios = default_scenarios()
    if names is None:
        return scenarios
    wanted = set(names)
    return [s for s in scenarios if s.name in wanted]


def patch_variance(patch: np.ndarray) -> float:
    """Population variance of the pixel values."""
    return float(np.var(patch.astype(np.float64)))


def extract_good_patches(
    image: np.ndarray, patch_size: int, count: int
) -> list[tuple[np.ndarray, int, int]]:
    """Pick up to ``count`` textured square patches on a deterministic grid.

    Returns (patch, x, y) triples; raises ValueError when none is textured enough.
    """
    height, width = image.shape[:2]
    margin = patch_size // 2
    x_range = width - patch_size - margin if width > patch_size + margin else 1
    y_range = height - patch_size - margin if height > patch_size + margin else 1

    patches: list[tuple[np.ndarray, int, int]] = []
    for attempt in range(_PATCH_ATTEMPTS):
        x = margin + (attempt * 47) % x_range
        y = margin + (attempt * 37) % y_range
        patch = image[y : y + patch_size, x : x + patch_size]
        if patch.size == 0:
            continue
        if patch_variance(patch) > _MIN_PATCH_VARIANCE:
            patches.append((patch.copy(), x, y))
            if len(patches) >= count:
                break

    if not patches:
        raise ValueError("No suitable patches found with sufficient texture")
    return patches


def _sample(image: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    height, width = image.shape[:2]
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)
    inside = (xs >= 0.0) & (ys >= 0.0) & (xs < width) & (ys < height)
    xc = np.where(inside, xs, 0.0)
    yc = np.where(inside, ys, 0.0)

    x1 = np.floor(xc).astype(np.intp)
    y1 = np.floor(yc).astype(np.intp)
    x2 = np.minimum(x1 + 1, width - 1)
    y2 = np.minimum(y1 + 1, height - 1)
    fx = xc - x1
    fy = yc - y1

    values = image.astype(np.float64)
    interpolated = (
        values[y1, x1] * (1 - fx) * (1 - fy)
        + values[y1, x2] * fx * (1 - fy)
        + values[y2, x1] * (1 - fx) * fy
        + values[y2, x2] * fx * fy
    )
    rounded = np.clip(np.floor(interpolated + 0.5), 0, 255).astype(np.uint8)
    return np.where(inside, rounded, np.uint8(_BACKGROUND)).astype(np.uint8)


def bilinear_sample(image: np.ndarray, x: float, y: float) -> int:
    """Bilinearly interpolated value at (x, y); mid-gray outside the image."""
    return int(_sample(image, np.array(x), np.array(y)))


def rotate_image(image: np.ndarray, angle_deg: float) -> np.ndarray:
    """Rotate about the image centre, keeping size; uncovered pixels are mid-gray."""
    angle = math.radians(angle_deg)
    cos_a, sin_a = math.cos(angle), math.sin(angle)
    height, width = image.shape[:2]
    cx, cy = width / 2.0, height / 2.0
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float64)
    xc, yc = xs - cx, ys - cy
    x_rot = xc * cos_a + yc * sin_a + cx
    y_rot = -xc * sin_a + yc * cos_a + cy
    return _sample(image, x_rot, y_rot)


def box_blur(image: np.ndarray, radius: int) -> np.ndarray:
    """Mean over a (2r+1)-square window clipped at the borders, rounded down."""
    if radius == 0:
        return image.copy()
    height, width = image.shape[:2]
    integral = np.zeros((height + 1, width + 1), dtype=np.int64)
    integral[1:, 1:] = image.astype(np.int64).cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(height)
    cols = np.arange(width)
    top = np.clip(rows - radius, 0, height)
    bottom = np.clip(rows + radius + 1, 0, height)
    left = np.clip(cols - radius, 0, width)
    right = np.clip(cols + radius + 1, 0, width)

    sums = (
        integral[np.ix_(bottom, right)]
        - integral[np.ix_(top, right)]
        - integral[np.ix_(bottom, left)]
        + integral[np.ix_(top, left)]
    )
    counts = np.outer(bottom - top, right - left)
    return (sums // counts).astype(np.uint8)


def apply_noise(
    image: np.ndarray, noise: Noise, rng: np.random.Generator | None = None
) -> np.ndarray:
    """Return a noisy copy of ``image``."""
    rng = rng if rng is not None else np.random.default_rng()
    if isinstance(noise, NoNoise):
        return image.copy()
    if isinstance(noise, GaussianNoise):
        offsets = rng.random(image.shape) * 2.0 - 1.0
        noisy = image.astype(np.float64) + offsets * noise.sigma
        return np.clip(noisy, 0.0, 255.0).astype(np.uint8)
    if isinstance(noise, SaltPepper):
        hit = rng.random(image.shape) < noise.density
        white = rng.random(image.shape) < 0.5
        result = image.copy()
        result[hit] = np.where(white[hit], 255, 0).astype(np.uint8)
        return result
    if isinstance(noise, BlurNoise):
        return box_blur(image, int(noise.sigma * 2.0))
    if isinstance(noise, Brightness):
        return np.clip(image.astype(np.int64) + int(noise.delta), 0, 255).astype(np.uint8)
    raise TypeError(f"Unknown noise type: {noise!r}")


def _resample_weights(src: int, dst: int) -> np.ndarray:
    ratio = src / dst
    sratio = max(ratio, 1.0)
    support = _GAUSSIAN_SUPPORT * sratio
    centers = (np.arange(dst) + 0.5) * ratio
    left = np.clip(np.floor(centers - support), 0, src - 1)
    right = np.clip(np.ceil(centers + support), left + 1, src)
    idx = np.arange(src)
    dist = (idx[None, :] - (centers[:, None] - 0.5)) / sratio
    mask = (idx[None, :] >= left[:, None]) & (idx[None, :] < right[:, None])
    weights = np.exp(-(dist**2) / (2 * _GAUSSIAN_RADIUS**2)) * mask
    sums = weights.sum(axis=1, keepdims=True)
    return weights / np.where(sums == 0.0, 1.0, sums)


def _gaussian_resize(image: np.ndarray, new_width: int, new_height: int) -> np.ndarray:
    if new_width <= 0 or new_height <= 0:
        raise ValueError(f"Cannot resize to {new_width}x{new_height}")
    height, width = image.shape[:2]
    wy = _resample_weights(height, new_height)
    wx = _resample_weights(width, new_width)
    resized = wy @ image.astype(np.float64) @ wx.T
    return np.clip(np.floor(resized + 0.5), 0, 255).astype(np.uint8)


def apply_transformation_and_noise(
    patch: np.ndarray, scenario: Scenario, rng: np.random.Generator | None = None
) -> np.ndarray:
    """Scale, rotate and add noise to ``patch`` as the scenario describes."""
    result = patch.copy()
    if abs(scenario.scale_factor - 1.0) > 0.01:
        height, width = patch.shape[:2]
        result = _gaussian_resize(
            result, int(width * scenario.scale_factor), int(height * scenario.scale_factor)
        )
    if abs(scenario.rotation_deg) > 0.1:
        result = rotate_image(result, scenario.rotation_deg)
    return apply_noise(result, scenario.noise, rng)