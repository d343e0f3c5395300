import json
from datetime import datetime, timezone

import pytest

from waferalign.reports import (
    PatchInfo,
    PerformanceMetrics,
    RunReport,
    TransformationInfo,
    VisualOutputs,
    aggregated_statistics,
    algorithm_log,
    calculate_performance_metrics,
    summary_markdown,
)
from waferalign.scenarios import Brightness, Scenario
from waferalign.types import AlignmentResult, Rect, TransformParams

WHEN = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _result(x=10, y=20, size=32, confidence=0.9, time_ms=1.5, name="NCC"):
    return (
        AlignmentResult(name, execution_time_ms=time_ms)
        .with_location(Rect(x, y, size, size))
        .with_confidence(confidence)
        .with_score(0.8)
    )


def _report(algorithm, error, time_ms, success, size=32, scenario="clean", test_id="t"):
    return RunReport(
        test_id=test_id,
        session_id="session",
        correlation_id="corr",
        algorithm_name=algorithm,
        original_image_path="image.png",
        patch_info=PatchInfo((size, size), (10, 20), "patch.png"),
        transformation_applied=TransformationInfo.from_scenario(Scenario(scenario), "t.png"),
        alignment_result=_result(name=algorithm, time_ms=time_ms),
        visual_outputs=VisualOutputs("o.png", "s.png", "h.png"),
        performance_metrics=PerformanceMetrics(error, time_ms, 0.9, success),
        log_file_path="run.log",
    )


def test_exact_detection_has_zero_error_and_succeeds():
    metrics = calculate_performance_metrics(_result(), (10, 20), 32, 5.0, 0.5)
    assert metrics.translation_error_px == 0.0
    assert metrics.success is True
    assert metrics.processing_time_ms == 1.5
    assert metrics.confidence_score == pytest.approx(0.9)


def test_offset_detection_error():
    metrics = calculate_performance_metrics(_result(x=13, y=24), (10, 20), 32, 5.0, 0.5)
    assert metrics.translation_error_px == pytest.approx(5.0)
    assert metrics.success is False


def test_low_confidence_fails():
    metrics = calculate_performance_metrics(_result(confidence=0.3), (10, 20), 32, 5.0, 0.5)
    assert metrics.success is False


def test_report_round_trip_through_json():
    report = _report("NCC", 1.25, 2.0, True)
    report.alignment_result.transformation = TransformParams((1.0, 2.0), 0.5, 1.1, (0.1, 0.2))
    restored = RunReport.from_dict(json.loads(json.dumps(report.to_dict())))
    assert restored == report


def test_transformation_info_from_scenario():
    info = TransformationInfo.from_scenario(
        Scenario("brightness_change", noise=Brightness(20)), "p.png"
    )
    assert info.noise_type == "Brightness { delta: 20 }"
    assert info.noise_parameters == "brightness_change"
    assert info.scale_factor == 1.0


def test_summary_markdown_contents():
    reports = [_report("NCC", 1.0, 2.0, True, test_id="a"), _report("ORB", 3.0, 4.0, False)]
    text = summary_markdown(reports, "abc", WHEN)
    assert "**Generated:** 2024-01-02 03:04:05 UTC\n" in text
    assert "**Session ID:** abc\n" in text
    assert "**Total Tests:** 2\n" in text
    assert "#### Test: a\n" in text
    assert text.count("✅") == 1
    assert text.count("❌") == 1
    assert text.index("### NCC") < text.index("### ORB")


def test_aggregated_statistics_orders_and_selects():
    reports = [
        _report("ORB", 3.0, 1.0, True, size=64, scenario="salt_pepper"),
        _report("NCC", 1.0, 2.0, True),
        _report("NCC", 2.0, 3.0, False),
    ]
    stats = aggregated_statistics(reports, WHEN)
    assert stats["total_tests"] == 3
    names = [s["algorithm"] for s in stats["algorithm_stats"]]
    assert names == ["NCC", "ORB"]
    ncc = stats["algorithm_stats"][0]
    assert ncc["min_error"] == 1.0
    assert ncc["max_error"] == 2.0
    assert ncc["success_count"] == 1
    assert ncc["algorithm_type"] == "Template Matching"
    assert stats["algorithm_stats"][1]["algorithm_type"] == "Feature-based"
    summary = stats["summary"]
    assert summary["best_accuracy_algorithm"] == "NCC"
    assert summary["fastest_algorithm"] == "ORB"
    assert summary["highest_success_rate_algorithm"] == "ORB"
    assert stats["test_configuration"]["patch_sizes"] == [32, 64]
    assert stats["test_configuration"]["scenarios"] == ["clean", "salt_pepper"]
    json.dumps(stats)


def test_aggregated_statistics_empty():
    stats = aggregated_statistics([], WHEN)
    assert stats["algorithm_stats"] == []
    assert stats["summary"]["best_accuracy_algorithm"] == "No data"
    assert stats["summary"]["fastest_time"] == 0.0


def test_algorithm_log_sections():
    result = _result().with_metadata("k", "v")
    scenario = Scenario("brightness_change", noise=Brightness(20))
    log = algorithm_log("t1", "NCC", scenario, "corr-1", result, (10, 20), 32, WHEN)
    lines = log.splitlines()
    assert lines[0] == "=== Algorithm Execution Log ==="
    assert "Test ID: t1" in lines
    assert "Correlation ID: corr-1" in lines
    assert "Noise Type: Brightness { delta: 20 }" in lines
    assert "Success Threshold: <= 10 pixels" in lines
    assert "Test Result: PASSED" in lines
    assert 'k: "v"' in lines
    assert lines[-1] == "=== End of Log ==="
    assert log.endswith("\n")


def test_algorithm_log_failure_and_optional_sections():
    result = _result(x=200, y=200, time_ms=0.0)
    log = algorithm_log("t2", "NCC", Scenario("clean"), None, result, (10, 20), 32, WHEN)
    assert "Test Result: FAILED" in log
    assert "Correlation ID" not in log
    assert "=== Performance Metrics ===" not in log
    assert "=== Algorithm Metadata ===" not in log
    assert "=== Transformation Parameters ===" not in log
    assert f"Timestamp: {WHEN.isoformat()}" in log