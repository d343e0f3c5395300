"""Per-test reports, success metrics, summaries and execution logs."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence
from uuid import UUID

from waferalign.scenarios import Scenario
from waferalign.types import AlignmentResult

_LOG_SUCCESS_THRESHOLD_PX = 10.0
_NO_DATA = "No data"
_TEMPLATE_MARKERS = ("NCC", "SSD", "CCORR")
_FEATURE_MARKERS = ("SIFT", "ORB", "AKAZE")


@dataclass
class PatchInfo:
    """Size and location of the patch cut from the search image."""

    size: tuple[int, int]
    location: tuple[int, int]
    patch_path: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": list(self.size),
            "location": list(self.location),
            "patch_path": self.patch_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PatchInfo:
        w, h = data["size"]
        x, y = data["location"]
        return cls((int(w), int(h)), (int(x), int(y)), str(data["patch_path"]))


@dataclass
class TransformationInfo:
    """The perturbation applied to the patch before alignment."""

    noise_type: str
    noise_parameters: str
    rotation_deg: float
    translation: tuple[int, int]
    scale_factor: float
    transformed_patch_path: str

    @classmethod
    def from_scenario(cls, scenario: Scenario, transformed_patch_path: str) -> TransformationInfo:
        return cls(
            noise_type=str(scenario.noise),
            noise_parameters=scenario.name,
            rotation_deg=float(scenario.rotation_deg),
            translation=(int(scenario.translation[0]), int(scenario.translation[1])),
            scale_factor=float(scenario.scale_factor),
            transformed_patch_path=str(transformed_patch_path),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "noise_type": self.noise_type,
            "noise_parameters": self.noise_parameters,
            "rotation_deg": self.rotation_deg,
            "translation": list(self.translation),
            "scale_factor": self.scale_factor,
            "transformed_patch_path": self.transformed_patch_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransformationInfo:
        tx, ty = data["translation"]
        return cls(
            noise_type=str(data["noise_type"]),
            noise_parameters=str(data["noise_parameters"]),
            rotation_deg=float(data["rotation_deg"]),
            translation=(int(tx), int(ty)),
            scale_factor=float(data["scale_factor"]),
            transformed_patch_path=str(data["transformed_patch_path"]),
        )


@dataclass
class VisualOutputs:
    """Paths of the images rendered for one test."""

    overlay_result_path: str
    side_by_side_path: str
    error_heatmap_path: str

    def to_dict(self) -> dict[str, str]:
        return {
            "overlay_result_path": self.overlay_result_path,
            "side_by_side_path": self.side_by_side_path,
            "error_heatmap_path": self.error_heatmap_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VisualOutputs:
        return cls(
            overlay_result_path=str(data["overlay_result_path"]),
            side_by_side_path=str(data["side_by_side_path"]),
            error_heatmap_path=str(data["error_heatmap_path"]),
        )


@dataclass
class PerformanceMetrics:
    translation_error_px: float
    processing_time_ms: float
    confidence_score: float
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "translation_error_px": self.translation_error_px,
            "processing_time_ms": self.processing_time_ms,
            "confidence_score": self.confidence_score,
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PerformanceMetrics:
        return cls(
            translation_error_px=float(data["translation_error_px"]),
            processing_time_ms=float(data["processing_time_ms"]),
            confidence_score=float(data["confidence_score"]),
            success=bool(data["success"]),
        )


@dataclass
class RunReport:
    """Everything recorded about one algorithm run on one perturbed patch."""

    test_id: str
    session_id: str
    correlation_id: str
    algorithm_name: str
    original_image_path: str
    patch_info: PatchInfo
    transformation_applied: TransformationInfo
    alignment_result: AlignmentResult
    visual_outputs: VisualOutputs
    performance_metrics: PerformanceMetrics
    log_file_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping of this report."""
        return {
            "test_id": self.test_id,
            "session_id": self.session_id,
            "correlation_id": self.correlation_id,
            "algorithm_name": self.algorithm_name,
            "original_image_path": self.original_image_path,
            "patch_info": self.patch_info.to_dict(),
            "transformation_applied": self.transformation_applied.to_dict(),
            "alignment_result": self.alignment_result.to_dict(),
            "visual_outputs": self.visual_outputs.to_dict(),
            "performance_metrics": self.performance_metrics.to_dict(),
            "log_file_path": self.log_file_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunReport:
        log_path = data.get("log_file_path")
        return cls(
            test_id=str(data["test_id"]),
            session_id=str(data["session_id"]),
            correlation_id=str(data["correlation_id"]),
            algorithm_name=str(data["algorithm_name"]),
            original_image_path=str(data["original_image_path"]),
            patch_info=PatchInfo.from_dict(data["patch_info"]),
            transformation_applied=TransformationInfo.from_dict(data["transformation_applied"]),
            alignment_result=AlignmentResult.from_dict(data["alignment_result"]),
            visual_outputs=VisualOutputs.from_dict(data["visual_outputs"]),
            performance_metrics=PerformanceMetrics.from_dict(data["performance_metrics"]),
            log_file_path=str(log_path) if log_path is not None else None,
        )


def calculate_performance_metrics(
    result: AlignmentResult,
    patch_location: tuple[int, int],
    patch_size: int,
    translation_accuracy_px: float,
    min_confidence: float,
) -> PerformanceMetrics:
    """Score a result by the distance between the expected and detected patch centres.

    A run succeeds when that distance is below ``translation_accuracy_px`` and
    the confidence is above ``min_confidence``.
    """
    expected_x = patch_location[0] + patch_size / 2.0
    expected_y = patch_location[1] + patch_size / 2.0
    loc = result.location
    actual_x = loc.x + loc.width / 2.0
    actual_y = loc.y + loc.height / 2.0
    error = math.hypot(actual_x - expected_x, actual_y - expected_y)
    success = error < translation_accuracy_px and result.confidence > min_confidence
    return PerformanceMetrics(
        translation_error_px=error,
        processing_time_ms=float(result.execution_time_ms),
        confidence_score=float(result.confidence),
        success=success,
    )


def _group_by_algorithm(reports: Iterable[RunReport]) -> dict[str, list[RunReport]]:
    groups: dict[str, list[RunReport]] = {}
    for report in reports:
        groups.setdefault(report.algorithm_name, []).append(report)
    return groups


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _format_generated(generated_at: datetime | None) -> str:
    return (generated_at or _now()).strftime("%Y-%m-%d %H:%M:%S UTC")


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def summary_markdown(
    reports: Sequence[RunReport],
    session_id: str,
    generated_at: datetime | None = None,
) -> str:
    """Markdown report with a per-algorithm table followed by every test's details."""
    parts = [
        "# 🔬 Comprehensive Algorithm Performance Report\n\n",
        f"**Generated:** {_format_generated(generated_at)}\n",
        f"**Session ID:** {session_id}\n",
        f"**Total Tests:** {len(reports)}\n\n",
        "**Note:** Aggregated statistics are available in `aggregated_statistics.json`\n\n",
        "## 📊 Algorithm Performance Summary\n\n",
        "| Algorithm | Tests | Success Rate | Avg Time (ms) | Avg Translation Error (px) |\n",
        "|-----------|-------|--------------|---------------|---------------------------|\n",
    ]
    groups = _group_by_algorithm(reports)

    for name, group in groups.items():
        metrics = [r.performance_metrics for r in group]
        success_rate = sum(m.success for m in metrics) / len(metrics) * 100.0
        avg_time = _mean([m.processing_time_ms for m in metrics])
        avg_error = _mean([m.translation_error_px for m in metrics])
        parts.append(
            f"| {name} | {len(group)} | {success_rate:.1f}% | {avg_time:.1f} | {avg_error:.2f} |\n"
        )

    parts.append("\n## 🎯 Detailed Results\n\n")
    for name, group in groups.items():
        parts.append(f"### {name}\n\n")
        for report in group:
            m = report.performance_metrics
            w, h = report.patch_info.size
            parts += [
                f"#### Test: {report.test_id}\n",
                f"- **Patch Size:** {w}x{h}\n",
                f"- **Transformation:** {report.transformation_applied.noise_parameters}\n",
                f"- **Processing Time:** {m.processing_time_ms:.2f}ms\n",
                f"- **Translation Error:** {m.translation_error_px:.2f}px\n",
                f"- **Confidence:** {m.confidence_score:.3f}\n",
                f"- **Success:** {'✅' if m.success else '❌'}\n",
                "\n",
            ]
    return "".join(parts)


def _classify(name: str) -> tuple[str, str]:
    if any(marker in name for marker in _TEMPLATE_MARKERS):
        return "Template Matching", "Pattern Correlation"
    if any(marker in name for marker in _FEATURE_MARKERS):
        return "Feature-based", "Feature Reliability"
    return "Unknown", "Unknown"


def aggregated_statistics(
    reports: Sequence[RunReport], generated_at: datetime | None = None
) -> dict[str, Any]:
    """Per-algorithm statistics, sorted by mean translation error, with best performers."""
    stats: list[dict[str, Any]] = []
    for name, group in _group_by_algorithm(reports).items():
        metrics = [r.performance_metrics for r in group]
        errors = [m.translation_error_px for m in metrics]
        success_count = sum(1 for m in metrics if m.success)
        algorithm_type, confidence_type = _classify(name)
        stats.append(
            {
                "algorithm": name,
                "total_tests": len(group),
                "avg_confidence": _mean([m.confidence_score for m in metrics]),
                "avg_translation_error": _mean(errors),
                "avg_time_ms": _mean([m.processing_time_ms for m in metrics]),
                "min_error": min(errors),
                "max_error": max(errors),
                "success_count": success_count,
                "success_rate": success_count / len(group) * 100.0,
                "confidence_type": confidence_type,
                "algorithm_type": algorithm_type,
            }
        )

    stats.sort(key=lambda s: s["avg_translation_error"])

    if stats:
        best = min(stats, key=lambda s: s["avg_translation_error"])
        fastest = min(stats, key=lambda s: s["avg_time_ms"])
        # Among equal success rates the last one wins.
        top = stats[0]
        for s in stats[1:]:
            if s["success_rate"] >= top["success_rate"]:
                top = s
        summary = {
            "best_accuracy_algorithm": best["algorithm"],
            "best_accuracy_error": best["avg_translation_error"],
            "fastest_algorithm": fastest["algorithm"],
            "fastest_time": fastest["avg_time_ms"],
            "highest_success_rate_algorithm": top["algorithm"],
            "highest_success_rate": top["success_rate"],
        }
    else:
        summary = {
            "best_accuracy_algorithm": _NO_DATA,
            "best_accuracy_error": 0.0,
            "fastest_algorithm": _NO_DATA,
            "fastest_time": 0.0,
            "highest_success_rate_algorithm": _NO_DATA,
            "highest_success_rate": 0.0,
        }

    return {
        "generated_at": _format_generated(generated_at),
        "total_tests": len(reports),
        "test_configuration": {
            "patch_sizes": sorted({r.patch_info.size[0] for r in reports}),
            "scenarios": sorted({r.transformation_applied.noise_parameters for r in reports}),
        },
        "algorithm_stats": stats,
        "summary": summary,
    }


def _display_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def algorithm_log(
    test_id: str,
    algorithm_name: str,
    scenario: Scenario,
    correlation_id: UUID | str | None,
    result: AlignmentResult,
    patch_location: tuple[int, int],
    patch_size: int,
    timestamp: datetime | None = None,
) -> str:
    """Human-readable log of one algorithm run and its error analysis."""
    px, py = int(patch_location[0]), int(patch_location[1])
    size = int(patch_size)
    tx, ty = int(scenario.translation[0]), int(scenario.translation[1])
    expected_x, expected_y = px + tx, py + ty
    loc = result.location

    lines = [
        "=== Algorithm Execution Log ===",
        f"Test ID: {test_id}",
        f"Algorithm: {algorithm_name}",
        f"Scenario: {scenario.name}",
    ]
    if correlation_id is not None:
        lines.append(f"Correlation ID: {correlation_id}")
    lines += [
        f"Timestamp: {(timestamp or _now()).isoformat()}",
        "================================",
        "",
        "=== Ground Truth Information ===",
        f"Original Patch Location: ({px}, {py})",
        f"Original Patch Size: {size}x{size}",
        f"Patch Center: ({px + size // 2}, {py + size // 2})",
        "",
        "=== Test Scenario Details ===",
        f"Noise Type: {scenario.noise}",
        f"Rotation: {_display_number(scenario.rotation_deg)}°",
        f"Translation: ({tx}, {ty})",
        f"Scale Factor: {_display_number(scenario.scale_factor)}",
        "",
        f"Expected Location After Transform: ({expected_x}, {expected_y})",
        "",
        "=== Algorithm Results ===",
        f"Score: {result.score:.6f}",
        f"Confidence: {result.confidence:.6f}",
        f"Detected Location: ({loc.x}, {loc.y})",
        f"Detected Size: ({loc.width}, {loc.height})",
        f"Execution Time: {result.execution_time_ms:.3f}ms",
        f"Algorithm Used: {result.algorithm_name}",
        "",
    ]

    error_x = loc.x - expected_x
    error_y = loc.y - expected_y
    total_error = math.hypot(error_x, error_y)
    passed = total_error <= _LOG_SUCCESS_THRESHOLD_PX
    lines += [
        "=== Error Analysis ===",
        f"Detection Error X: {error_x} pixels",
        f"Detection Error Y: {error_y} pixels",
        f"Total Translation Error: {total_error:.2f} pixels",
        "Success Threshold: <= 10 pixels",
        f"Test Result: {'PASSED' if passed else 'FAILED'}",
    ]

    transform = result.transformation
    if transform is not None:
        lines += [
            "",
            "=== Transformation Parameters ===",
            f"Translation: ({transform.translation[0]:.3f}, {transform.translation[1]:.3f})",
            f"Rotation: {transform.rotation_degrees:.3f}°",
            f"Scale: {transform.scale:.6f}",
        ]
        if transform.skew is not None:
            lines.append(f"Skew: ({transform.skew[0]:.6f}, {transform.skew[1]:.6f})")

    if result.metadata:
        lines += ["", "=== Algorithm Metadata ==="]
        lines += [f"{key}: {_json(value)}" for key, value in result.metadata.items()]

    if result.execution_time_ms > 0.0:
        lines += [
            "",
            "=== Performance Metrics ===",
            f"Total Execution Time: {result.execution_time_ms:.3f}ms",
        ]
        for key, label in (
            ("feature_detection_ms", "Feature Detection Time"),
            ("matching_ms", "Feature Matching Time"),
            ("verification_ms", "Verification Time"),
        ):
            if key in result.metadata:
                lines.append(f"{label}: {_json(result.metadata[key])}")

    lines += ["", "=== End of Log ==="]
    return "\n".join(lines) + "\n"