import numpy as np
import pytest

from waferalign.builder import ImageData, ImagePair, ResultData
from waferalign.stage import (
    AlignmentStage,
    AugmentationStage,
    GaussianBlur,
    HistogramEqualization,
    Normalize,
    PreprocessingStage,
    Resize,
    ValidationStage,
)
from waferalign.traits import AlignmentAlgorithm, ImageAugmentation
from waferalign.types import AlignmentResult, AugmentedImage, GroundTruth, Rect, TransformParams


class CornerFinder(AlignmentAlgorithm):
    @property
    def name(self):
        return "Corner"

    def align(self, search_image, patch):
        h, w = patch.shape
        return AlignmentResult(self.name, location=Rect(0, 0, w, h), confidence=0.9)


class Flip(ImageAugmentation):
    def apply(self, image):
        return AugmentedImage(
            image=image[:, ::-1].copy(),
            original=image,
            ground_truth=GroundTruth(Rect(), TransformParams()),
        )

    def get_inverse_transform(self):
        return None

    def description(self):
        return "flip"

    def get_params(self):
        return {}


def _textured():
    rng = np.random.default_rng(3)
    return rng.integers(0, 256, size=(20, 24), dtype=np.uint8)


def test_alignment_stage():
    stage = AlignmentStage(CornerFinder())
    out = stage.execute(ImagePair(np.zeros((30, 30)), np.zeros((5, 8))))
    assert out.result.location == Rect(0, 0, 8, 5)
    assert stage.stage_name() == "Corner"
    with pytest.raises(TypeError, match="ImagePair"):
        stage.execute(ImageData(np.zeros((3, 3))))


def test_augmentation_stage():
    stage = AugmentationStage(Flip())
    image = _textured()
    out = stage.execute(ImageData(image))
    np.testing.assert_array_equal(out.image, image[:, ::-1])
    assert stage.stage_name() == "Augmentation"
    with pytest.raises(TypeError):
        stage.execute(ResultData(AlignmentResult("a")))


def test_normalize_stretches_to_full_range():
    image = np.array([[50, 100], [150, 60]], dtype=np.uint8)
    out = PreprocessingStage().add_operation(Normalize()).execute(ImageData(image)).image
    assert out.dtype == np.uint8
    assert out.min() == 0 and out.max() == 255
    assert out[0, 0] == 0 and out[1, 0] == 255


def test_normalize_constant_image_is_zero():
    image = np.full((4, 4), 77, dtype=np.uint8)
    out = PreprocessingStage([Normalize()]).execute(ImageData(image)).image
    assert not out.any()


def test_histogram_equalization_two_levels():
    image = np.array([[10, 200], [10, 200]], dtype=np.uint8)
    out = PreprocessingStage([HistogramEqualization()]).execute(ImageData(image)).image
    np.testing.assert_array_equal(out, np.array([[0, 255], [0, 255]], dtype=np.uint8))


def test_histogram_equalization_preserves_order():
    image = _textured()
    out = PreprocessingStage([HistogramEqualization()]).execute(ImageData(image)).image
    order = np.argsort(image.ravel(), kind="stable")
    assert np.all(np.diff(out.ravel()[order].astype(int)) >= 0)
    with pytest.raises(ValueError):
        PreprocessingStage([HistogramEqualization()]).execute(
            ImageData(image.astype(np.float32))
        )


def test_gaussian_blur_smooths():
    image = _textured()
    out = PreprocessingStage([GaussianBlur(sigma=1.5)]).execute(ImageData(image)).image
    assert out.shape == image.shape and out.dtype == image.dtype
    assert out.astype(float).var() < image.astype(float).var()
    flat = np.full((8, 8), 90, dtype=np.uint8)
    blurred = PreprocessingStage([GaussianBlur(sigma=2.0)]).execute(ImageData(flat)).image
    np.testing.assert_array_equal(blurred, flat)


def test_resize_shapes_and_constant():
    image = np.full((20, 24), 33, dtype=np.uint8)
    half = PreprocessingStage([Resize(scale=0.5)]).execute(ImageData(image)).image
    assert half.shape == (10, 12)
    double = PreprocessingStage([Resize(scale=2.0)]).execute(ImageData(image)).image
    assert double.shape == (40, 48)
    assert np.all(double == 33)
    with pytest.raises(ValueError):
        PreprocessingStage([Resize(scale=0.01)]).execute(ImageData(image))


def test_operations_apply_in_order():
    image = _textured()
    stage = PreprocessingStage().add_operation(Resize(scale=0.5)).add_operation(Normalize())
    out = stage.execute(ImageData(image)).image
    assert out.shape == (10, 12)
    assert out.max() == 255
    assert stage.stage_name() == "Preprocessing"
    with pytest.raises(TypeError):
        stage.execute(ImagePair(image, image))


def test_validation_stage():
    stage = ValidationStage()
    good = ResultData(AlignmentResult("a", confidence=0.8))
    assert stage.execute(good) is good
    with pytest.raises(ValueError, match="below threshold 0.5"):
        stage.execute(ResultData(AlignmentResult("a", confidence=0.3)))
    strict = ValidationStage().with_min_confidence(0.9).with_max_error(2.0)
    assert strict.max_error_pixels == 2.0
    with pytest.raises(ValueError):
        strict.execute(good)
    assert stage.stage_name() == "Validation"
    with pytest.raises(TypeError):
        stage.execute(ImageData(np.zeros((2, 2))))