"""Visual end-to-end testing of alignment algorithms on a real search image."""

from __future__ import annotations

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

import numpy as np
from PIL import Image

from waferalign.builder import new_correlation_id, set_correlation_id
from waferalign.render import alignment_overlay, error_heatmap, side_by_side
from waferalign.reports import (
    PatchInfo,
    RunReport,
    TransformationInfo,
    VisualOutputs,
    aggregated_statistics,
    algorithm_log,
    calculate_performance_metrics,
    summary_markdown,
)
from waferalign.scenarios import (
    Scenario,
    apply_transformation_and_noise,
    extract_good_patches,
    select_scenarios,
)
from waferalign.traits import AlignmentAlgorithm
from waferalign.types import AlignmentResult, TransformParams

logger = logging.getLogger(__name__)

DEFAULT_PATCH_SIZES = (32, 64, 128)
PATCHES_PER_SIZE = 3


def _save_image(array: np.ndarray, path: Path) -> None:
    Image.fromarray(np.asarray(array, dtype=np.uint8)).save(path)


def _write_json(path: Path, data: object) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def _success_rate(successes: int, total: int) -> float:
    return successes / total * 100.0 if total > 0 else 0.0


class VisualTester:
    """Runs every algorithm on perturbed patches of an image and writes visual reports."""

    def __init__(
        self,
        output_dir: str | os.PathLike[str],
        algorithms: Sequence[AlignmentAlgorithm],
        translation_accuracy_px: float = 10.0,
        min_confidence: float = 0.5,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.algorithms = list(algorithms)
        self.translation_accuracy_px = float(translation_accuracy_px)
        self.min_confidence = float(min_confidence)
        self.rng = rng if rng is not None else np.random.default_rng()

    def run_comprehensive_test(
        self,
        image_path: str | os.PathLike[str],
        patch_sizes: Iterable[int] | None = None,
        scenarios: Iterable[str] | None = None,
    ) -> list[RunReport]:
        """Test all algorithms on patches of every size under every selected scenario.

        Writes per-test images, logs and JSON reports, a Markdown summary,
        aggregated statistics and session metadata into the output directory.
        """
        image_path = Path(image_path)
        session_id = uuid.uuid4()
        session_correlation_id = new_correlation_id()
        (self.output_dir / "logs" / f"session_{session_id}").mkdir(parents=True, exist_ok=True)

        logger.info(
            "Starting comprehensive visual test session: session_id=%s correlation_id=%s "
            "image=%s output_dir=%s",
            session_id,
            session_correlation_id,
            image_path,
            self.output_dir,
        )

        with Image.open(image_path) as img:
            sem_image = np.array(img.convert("L"), dtype=np.uint8)
        height, width = sem_image.shape
        logger.info("Loaded search image: width=%d height=%d", width, height)

        sizes = [int(s) for s in (patch_sizes if patch_sizes is not None else DEFAULT_PATCH_SIZES)]
        selected = select_scenarios(list(scenarios) if scenarios is not None else None)

        reports: list[RunReport] = []
        for patch_size in sizes:
            patches = extract_good_patches(sem_image, patch_size, PATCHES_PER_SIZE)
            for index, (patch, x, y) in enumerate(patches, start=1):
                base_id = f"{patch_size}x{patch_size}_patch{index}"
                for scenario in selected:
                    transformed = apply_transformation_and_noise(patch, scenario, self.rng)
                    for algorithm in self.algorithms:
                        correlation_id = uuid.uuid4()
                        set_correlation_id(correlation_id)
                        test_id = f"{base_id}_{scenario.name}_{algorithm.name}"
                        report = self._run_single_test(
                            test_id,
                            str(session_id),
                            correlation_id,
                            image_path,
                            sem_image,
                            patch,
                            (x, y),
                            transformed,
                            scenario,
                            algorithm,
                        )
                        reports.append(report)

        total = len(reports)
        successes = sum(1 for r in reports if r.performance_metrics.success)
        logger.info(
            "Visual test session completed: session_id=%s total_tests=%d successful_tests=%d",
            session_id,
            total,
            successes,
        )

        now = datetime.now(timezone.utc)
        _write_json(self.output_dir / "aggregated_statistics.json", aggregated_statistics(reports, now))
        (self.output_dir / "SUMMARY_REPORT.md").write_text(
            summary_markdown(reports, str(session_id), now), encoding="utf-8"
        )
        _write_json(
            self.output_dir / f"session_{session_id}_metadata.json",
            {
                "session_id": str(session_id),
                "correlation_id": str(session_correlation_id),
                "total_tests": total,
                "successful_tests": successes,
                "success_rate": _success_rate(successes, total),
                "algorithms_tested": [a.name for a in self.algorithms],
                "patch_sizes": sizes,
                "timestamp": now.isoformat(),
            },
        )
        return reports

    def _run_single_test(
        self,
        test_id: str,
        session_id: str,
        correlation_id: uuid.UUID,
        image_path: Path,
        sem_image: np.ndarray,
        patch: np.ndarray,
        patch_location: tuple[int, int],
        transformed: np.ndarray,
        scenario: Scenario,
        algorithm: AlignmentAlgorithm,
    ) -> RunReport:
        test_dir = self.output_dir / test_id
        test_dir.mkdir(parents=True, exist_ok=True)
        log_path = test_dir / f"{algorithm.name.lower()}_algorithm.log"

        patch_path = test_dir / "1_original_patch.png"
        _save_image(patch, patch_path)
        transformed_path = test_dir / "2_transformed_patch.png"
        _save_image(transformed, transformed_path)

        result = algorithm.align(sem_image, transformed)
        self._record_displacement(result, patch_location)

        patch_h, patch_w = patch.shape[:2]
        side_path = test_dir / "3_side_by_side.png"
        _save_image(side_by_side(patch, transformed), side_path)
        overlay_path = test_dir / "4_alignment_overlay.png"
        _save_image(alignment_overlay(sem_image, patch_location, (patch_w, patch_h), result), overlay_path)
        heatmap_path = test_dir / "5_error_heatmap.png"
        _save_image(error_heatmap(patch, transformed), heatmap_path)

        metrics = calculate_performance_metrics(
            result,
            patch_location,
            patch_w,
            self.translation_accuracy_px,
            self.min_confidence,
        )
        log_path.write_text(
            algorithm_log(
                test_id,
                algorithm.name,
                scenario,
                correlation_id,
                result,
                patch_location,
                patch_w,
            ),
            encoding="utf-8",
        )

        report = RunReport(
            test_id=test_id,
            session_id=session_id,
            correlation_id=str(correlation_id),
            algorithm_name=algorithm.name,
            original_image_path=str(image_path),
            patch_info=PatchInfo(
                size=(patch_w, patch_h),
                location=(int(patch_location[0]), int(patch_location[1])),
                patch_path=str(patch_path),
            ),
            transformation_applied=TransformationInfo.from_scenario(scenario, str(transformed_path)),
            alignment_result=result,
            visual_outputs=VisualOutputs(
                overlay_result_path=str(overlay_path),
                side_by_side_path=str(side_path),
                error_heatmap_path=str(heatmap_path),
            ),
            performance_metrics=metrics,
            log_file_path=str(log_path),
        )
        _write_json(test_dir / "test_report.json", report.to_dict())
        logger.info(
            "Test completed: test_id=%s success=%s confidence=%.3f",
            test_id,
            metrics.success,
            result.confidence,
        )
        return report

    @staticmethod
    def _record_displacement(result: AlignmentResult, patch_location: tuple[int, int]) -> None:
        displacement = (
            float(result.location.x - patch_location[0]),
            float(result.location.y - patch_location[1]),
        )
        if result.transformation is not None:
            result.transformation.translation = displacement
        else:
            result.transformation = TransformParams(
                translation=displacement, rotation_degrees=0.0, scale=1.0, skew=None
            )