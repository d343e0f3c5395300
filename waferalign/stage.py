"""Ready-made pipeline stages: alignment, augmentation, preprocessing, validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

import numpy as np
from scipy import ndimage

from waferalign.builder import ImageData, ImagePair, ResultData
from waferalign.traits import AlignmentAlgorithm, ImageAugmentation, PipelineStage


class AlignmentStage(PipelineStage):
    """Runs an alignment algorithm on an ImagePair."""

    def __init__(self, algorithm: AlignmentAlgorithm) -> None:
        self.algorithm = algorithm

    def execute(self, data: Any) -> ResultData:
        if not isinstance(data, ImagePair):
            raise TypeError("AlignmentStage requires ImagePair input")
        return ResultData(self.algorithm.align(data.search, data.patch))

    def stage_name(self) -> str:
        return self.algorithm.name


class AugmentationStage(PipelineStage):
    """Applies an image augmentation to an image."""

    def __init__(self, augmentation: ImageAugmentation) -> None:
        self.augmentation = augmentation

    def execute(self, data: Any) -> ImageData:
        if not isinstance(data, ImageData):
            raise TypeError("AugmentationStage requires Image input")
        return ImageData(self.augmentation.apply(data.image).image)

    def stage_name(self) -> str:
        return "Augmentation"


@dataclass(frozen=True)
class GaussianBlur:
    sigma: float


@dataclass(frozen=True)
class HistogramEqualization:
    pass


@dataclass(frozen=True)
class Normalize:
    pass


@dataclass(frozen=True)
class Resize:
    scale: float


PreprocessOp = Union[GaussianBlur, HistogramEqualization, Normalize, Resize]


def _cast_like(values: np.ndarray, dtype: np.dtype) -> np.ndarray:
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        return np.clip(np.rint(values), info.min, info.max).astype(dtype)
    return values.astype(dtype)


def _gaussian_blur(image: np.ndarray, sigma: float) -> np.ndarray:
    if sigma <= 0:
        raise ValueError("Gaussian blur sigma must be positive")
    extent = 3 if image.dtype == np.uint8 else 4
    ksize = int(round(sigma * extent * 2 + 1)) | 1
    radius = (ksize - 1) // 2
    sigmas = [sigma, sigma] + [0.0] * (image.ndim - 2)
    blurred = ndimage.gaussian_filter(
        image.astype(np.float64), sigma=sigmas, mode="mirror", truncate=radius / sigma
    )
    return _cast_like(blurred, image.dtype)


def _equalize_hist(image: np.ndarray) -> np.ndarray:
    if image.dtype != np.uint8 or image.ndim != 2:
        raise ValueError("Histogram equalization requires an 8-bit single-channel image")
    if image.size == 0:
        return image.copy()
    hist = np.bincount(image.ravel(), minlength=256)
    first = int(np.flatnonzero(hist)[0])
    total = image.size
    if hist[first] == total:
        return np.full_like(image, first)
    cdf = np.cumsum(hist)
    scale = 255.0 / (total - hist[first])
    lut = np.clip(np.rint((cdf - hist[first]) * scale), 0, 255).astype(np.uint8)
    lut[: first + 1] = 0
    return lut[image]


def _normalize(image: np.ndarray) -> np.ndarray:
    values = image.astype(np.float64)
    if values.size == 0:
        return image.copy()
    low, high = float(values.min()), float(values.max())
    span = high - low
    scale = 255.0 / span if span > np.finfo(np.float64).eps else 0.0
    return _cast_like(values * scale - low * scale, image.dtype)


def _linear_coords(dst: int, src: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    pos = (np.arange(dst) + 0.5) * (src / dst) - 0.5
    pos = np.clip(pos, 0.0, src - 1)
    low = np.floor(pos).astype(np.intp)
    high = np.minimum(low + 1, src - 1)
    return low, high, pos - low


def _resize(image: np.ndarray, scale: float) -> np.ndarray:
    height, width = image.shape[:2]
    new_w = int(width * scale)
    new_h = int(height * scale)
    if new_w <= 0 or new_h <= 0:
        raise ValueError(f"Resize to {new_w}x{new_h} is not possible")
    values = image.astype(np.float64)
    extra = (1,) * (image.ndim - 2)
    y0, y1, fy = _linear_coords(new_h, height)
    x0, x1, fx = _linear_coords(new_w, width)
    fy = fy.reshape((-1, 1) + extra)
    fx = fx.reshape((1, -1) + extra)
    top = values[y0][:, x0] * (1 - fx) + values[y0][:, x1] * fx
    bottom = values[y1][:, x0] * (1 - fx) + values[y1][:, x1] * fx
    return _cast_like(top * (1 - fy) + bottom * fy, image.dtype)


class PreprocessingStage(PipelineStage):
    """Applies a sequence of preprocessing operations to an image."""

    def __init__(self, operations: list[PreprocessOp] | None = None) -> None:
        self.operations: list[PreprocessOp] = list(operations or [])

    def add_operation(self, op: PreprocessOp) -> PreprocessingStage:
        self.operations.append(op)
        return self

    def execute(self, data: Any) -> ImageData:
        if not isinstance(data, ImageData):
            raise TypeError("PreprocessingStage requires Image input")
        image = data.image
        for op in self.operations:
            image = self._apply(image, op)
        return ImageData(image)

    def stage_name(self) -> str:
        return "Preprocessing"

    @staticmethod
    def _apply(image: np.ndarray, op: PreprocessOp) -> np.ndarray:
        if isinstance(op, GaussianBlur):
            return _gaussian_blur(image, op.sigma)
        if isinstance(op, HistogramEqualization):
            return _equalize_hist(image)
        if isinstance(op, Normalize):
            return _normalize(image)
        if isinstance(op, Resize):
            return _resize(image, op.scale)
        raise TypeError(f"Unknown preprocessing operation: {op!r}")


class ValidationStage(PipelineStage):
    """Rejects alignment results whose confidence is below a threshold."""

    def __init__(self, min_confidence: float = 0.5, max_error_pixels: float = 10.0) -> None:
        self.min_confidence = min_confidence
        self.max_error_pixels = max_error_pixels

    def with_min_confidence(self, confidence: float) -> ValidationStage:
        self.min_confidence = confidence
        return self

    def with_max_error(self, error: float) -> ValidationStage:
        self.max_error_pixels = error
        return self

    def execute(self, data: Any) -> ResultData:
        if not isinstance(data, ResultData):
            raise TypeError("ValidationStage requires AlignmentResult input")
        if data.result.confidence < self.min_confidence:
            raise ValueError(
                f"Alignment confidence {data.result.confidence} "
                f"below threshold {self.min_confidence}"
            )
        return data

    def stage_name(self) -> str:
        return "Validation"