import json

import numpy as np
import pytest

import waferalign.types as wt


def test_new_result_defaults():
    result = wt.AlignmentResult("NCC")
    assert result.algorithm_name == "NCC"
    assert result.location == wt.Rect(0, 0, 0, 0)
    assert result.score == 0.0
    assert result.confidence == 0.0
    assert result.execution_time_ms == 0.0
    assert result.metadata == {}
    assert result.transformation is None


def test_builder_methods_chain():
    rect = wt.Rect(3, 4, 16, 16)
    result = (
        wt.AlignmentResult("SSD")
        .with_location(rect)
        .with_score(0.75)
        .with_confidence(0.5)
        .with_metadata("peak", 12)
    )
    assert result.location == rect
    assert result.location is not rect
    assert result.score == 0.75
    assert result.confidence == 0.5
    assert result.metadata == {"peak": 12}


def test_separate_results_do_not_share_metadata():
    a = wt.AlignmentResult("a").with_metadata("k", 1)
    b = wt.AlignmentResult("b")
    assert "k" in a.metadata
    assert "k" not in b.metadata


def test_to_dict_layout():
    result = wt.AlignmentResult("ORB").with_location(wt.Rect(1, 2, 3, 4))
    data = result.to_dict()
    assert data["location"] == {"x": 1, "y": 2, "width": 3, "height": 4}
    assert data["algorithm_name"] == "ORB"
    assert data["transformation"] is None


def test_round_trip_through_json():
    result = wt.AlignmentResult("SIFT").with_location(wt.Rect(10, 20, 32, 32))
    result.score = 0.9
    result.confidence = 0.8
    result.execution_time_ms = 12.5
    result.metadata["matches"] = [1, 2, 3]
    result.transformation = wt.TransformParams((1.5, -2.0), 10.0, 1.2, (0.1, 0.2))
    restored = wt.AlignmentResult.from_dict(json.loads(json.dumps(result.to_dict())))
    assert restored == result


def test_round_trip_without_skew():
    params = wt.TransformParams((0.0, 3.0), 0.0, 1.0, None)
    assert wt.TransformParams.from_dict(params.to_dict()) == params


def test_ground_truth_round_trip():
    truth = wt.GroundTruth(wt.Rect(5, 6, 7, 8), wt.TransformParams((1.0, 2.0), 3.0, 1.0), {"a": 1})
    assert wt.GroundTruth.from_dict(truth.to_dict()) == truth


def test_transform_normalises_matrix():
    t = wt.Transform([[1, 0, 0], [0, 1, 0], [0, 0, 1]], wt.TransformType.TRANSLATION)
    assert t.matrix[2] == (0.0, 0.0, 1.0)
    assert t.transform_type is wt.TransformType.TRANSLATION


def test_transform_rejects_bad_shape():
    with pytest.raises(ValueError):
        wt.Transform([[1, 0], [0, 1]], wt.TransformType.AFFINE)


def test_pipeline_context_defaults_are_independent():
    a = wt.PipelineContext()
    b = wt.PipelineContext()
    a.stage_timings.append(wt.StageTime("blur", 1.0))
    a.messages.append(wt.PipelineMessage(wt.MessageLevel.ERROR, "blur", "boom"))
    assert b.stage_timings == []
    assert b.messages == []
    assert a.messages[0].level.value == "Error"


def test_augmented_image_and_test_case_hold_arrays():
    img = np.zeros((4, 4), dtype=np.uint8)
    truth = wt.GroundTruth(wt.Rect(), wt.TransformParams())
    aug = wt.AugmentedImage(img, img.copy(), truth)
    case = wt.TestCase("c", img, img, wt.AlignmentResult("gt"))
    assert aug.augmentations_applied == []
    assert case.augmentations == []
    assert case.ground_truth.algorithm_name == "gt"


def test_benchmark_result_defaults():
    bench = wt.BenchmarkResult("NCC", "case1", False)
    assert bench.error_message is None
    assert bench.metrics == {}