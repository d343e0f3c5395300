import numpy as np
import pytest

from waferalign.traits import (
    AlgorithmConfig,
    AlignmentAlgorithm,
    ComplexityClass,
    ImageAugmentation,
    Metric,
    ParameterInfo,
    ParameterRange,
    ParameterType,
    PipelineStage,
)
from waferalign.types import AlignmentResult, Rect


class _Fixed(AlignmentAlgorithm):
    @property
    def name(self):
        return "Fixed"

    def align(self, search_image, patch):
        h, w = patch.shape
        return AlignmentResult(self.name).with_location(Rect(1, 2, w, h))


class _Echo(PipelineStage):
    def execute(self, data):
        return data

    def stage_name(self):
        return "Echo"


class _XError(Metric):
    @property
    def name(self):
        return "x_error"

    def compute(self, ground_truth, predicted):
        return abs(ground_truth.location.x - predicted.location.x)


def test_algorithm_defaults():
    algo = _Fixed()
    assert algo.supports_gpu() is False
    assert algo.estimated_complexity() is ComplexityClass.MEDIUM
    assert algo.get_parameters() == {}
    assert algo.configure(AlgorithmConfig().with_param("a", 1)) is None


def test_preprocess_returns_equal_copy():
    image = np.arange(9, dtype=np.uint8).reshape(3, 3)
    out = AlignmentAlgorithm.preprocess(_Fixed(), image)
    assert np.array_equal(out, image)
    out[0, 0] = 200
    assert image[0, 0] == 0


def test_align_uses_patch_size():
    result = _Fixed().align(np.zeros((20, 20)), np.zeros((4, 6)))
    assert result.location == Rect(1, 2, 6, 4)


def test_abstract_classes_cannot_be_instantiated():
    for cls in (AlignmentAlgorithm, PipelineStage, ImageAugmentation, Metric):
        with pytest.raises(TypeError):
            cls()


def test_stage_defaults():
    stage = _Echo()
    assert PipelineStage.can_parallelize(stage) is False
    assert stage.execute(5) == 5
    assert stage.stage_name() == "Echo"


def test_metric_defaults_and_compute():
    metric = _XError()
    gt = AlignmentResult("gt").with_location(Rect(10, 0, 1, 1))
    pred = AlignmentResult("p").with_location(Rect(7, 0, 1, 1))
    assert metric.higher_is_better() is True
    assert metric.compute(gt, pred) == 3


def test_complexity_ordering():
    default = AlignmentAlgorithm.estimated_complexity(_Fixed())
    assert ComplexityClass.LOW < default < ComplexityClass.HIGH
    assert max(ComplexityClass.LOW, ComplexityClass.HIGH) is ComplexityClass.HIGH


def test_config_get_and_missing():
    config = AlgorithmConfig().with_param("threshold", 0.5).with_param("levels", [1, 2])
    assert config.get("threshold") == 0.5
    assert config.get("missing") is None
    levels = config.get("levels")
    levels.append(3)
    assert config.get("levels") == [1, 2]


def test_parameter_info_holds_fields():
    info = ParameterInfo(
        "mode", "matching mode", "ncc", ParameterType.CHOICE, None, ("ncc", "ssd")
    )
    ranged = ParameterInfo("n", "count", 5, ParameterType.INTEGER, ParameterRange(1, 10))
    assert info.choices == ("ncc", "ssd")
    assert ranged.range.maximum == 10
    assert ranged.choices == ()