"""Alignment algorithms built from other algorithms."""

from __future__ import annotations

import copy
import logging
import time
from enum import Enum
from typing import Sequence

import numpy as np

from waferalign.traits import AlignmentAlgorithm, ComplexityClass
from waferalign.types import AlignmentResult, Rect

logger = logging.getLogger(__name__)

_MAJORITY_TOLERANCE_PX = 5


class CoarseToFineAlgorithm(AlignmentAlgorithm):
    """Runs a coarse search, then refines it inside a window around the coarse hit."""

    def __init__(
        self,
        coarse: AlignmentAlgorithm,
        fine: AlignmentAlgorithm,
        search_radius: int = 20,
    ) -> None:
        self.coarse = coarse
        self.fine = fine
        self.search_radius = int(search_radius)

    def with_search_radius(self, radius: int) -> CoarseToFineAlgorithm:
        self.search_radius = int(radius)
        return self

    @property
    def name(self) -> str:
        return "CoarseToFine"

    def align(self, search_image: np.ndarray, patch: np.ndarray) -> AlignmentResult:
        start = time.perf_counter()
        coarse_result = self.coarse.align(search_image, patch)
        coarse_rect = coarse_result.location

        rows, cols = search_image.shape[:2]
        radius = self.search_radius
        roi_x = max(coarse_rect.x - radius, 0)
        roi_y = max(coarse_rect.y - radius, 0)
        roi_width = min(coarse_rect.width + 2 * radius, cols - roi_x)
        roi_height = min(coarse_rect.height + 2 * radius, rows - roi_y)
        if roi_width <= 0 or roi_height <= 0:
            raise ValueError(
                f"Refinement region ({roi_x}, {roi_y}, {roi_width}, {roi_height}) "
                "lies outside the search image"
            )

        roi = np.array(
            search_image[roi_y : roi_y + roi_height, roi_x : roi_x + roi_width], copy=True
        )
        fine_result = self.fine.align(roi, patch)

        fine_rect = fine_result.location
        fine_result.location = Rect(
            fine_rect.x + roi_x, fine_rect.y + roi_y, fine_rect.width, fine_rect.height
        )
        fine_result.algorithm_name = f"CoarseToFine({self.coarse.name} -> {self.fine.name})"
        fine_result.execution_time_ms = (time.perf_counter() - start) * 1000.0
        fine_result.metadata["coarse_score"] = coarse_result.score
        fine_result.metadata["coarse_location"] = coarse_result.location.to_dict()
        return fine_result

    def estimated_complexity(self) -> ComplexityClass:
        """The costlier of the two stages."""
        return ComplexityClass(
            max(self.coarse.estimated_complexity(), self.fine.estimated_complexity())
        )


class VotingStrategy(Enum):
    """How an ensemble combines the results of its members."""

    MAJORITY = "Majority"
    WEIGHTED_CONFIDENCE = "WeightedConfidence"
    MAX_CONFIDENCE = "MaxConfidence"
    AVERAGE = "Average"


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


def _highest_confidence(results: Sequence[AlignmentResult]) -> AlignmentResult:
    best = results[0]
    for result in results[1:]:
        if result.confidence >= best.confidence:
            best = result
    return best


class EnsembleAlgorithm(AlignmentAlgorithm):
    """Runs several algorithms and combines their answers by voting."""

    def __init__(
        self,
        algorithms: Sequence[AlignmentAlgorithm],
        voting_strategy: VotingStrategy = VotingStrategy.WEIGHTED_CONFIDENCE,
    ) -> None:
        self.algorithms = list(algorithms)
        self.voting_strategy = voting_strategy

    def with_voting_strategy(self, strategy: VotingStrategy) -> EnsembleAlgorithm:
        self.voting_strategy = strategy
        return self

    @property
    def name(self) -> str:
        return "Ensemble"

    def align(self, search_image: np.ndarray, patch: np.ndarray) -> AlignmentResult:
        """Combine member results; members that raise are logged and skipped."""
        start = time.perf_counter()
        results: list[AlignmentResult] = []
        for algorithm in self.algorithms:
            try:
                results.append(algorithm.align(search_image, patch))
            except Exception as exc:
                logger.warning("Algorithm %s failed: %s", algorithm.name, exc)

        if not results:
            raise RuntimeError("All algorithms in ensemble failed")

        vote = {
            VotingStrategy.MAJORITY: self._majority_vote,
            VotingStrategy.WEIGHTED_CONFIDENCE: self._weighted_confidence_vote,
            VotingStrategy.MAX_CONFIDENCE: self._max_confidence_vote,
            VotingStrategy.AVERAGE: self._average_vote,
        }[self.voting_strategy]
        result = vote(results)
        result.algorithm_name = (
            f"Ensemble({len(self.algorithms)} algorithms, {self.voting_strategy.value} voting)"
        )
        result.execution_time_ms = (time.perf_counter() - start) * 1000.0
        return result

    @staticmethod
    def _majority_vote(results: Sequence[AlignmentResult]) -> AlignmentResult:
        tol = _MAJORITY_TOLERANCE_PX
        groups: dict[tuple[int, int], list[AlignmentResult]] = {}
        for result in results:
            key = (
                _trunc_div(result.location.x, tol) * tol,
                _trunc_div(result.location.y, tol) * tol,
            )
            groups.setdefault(key, []).append(result)
        best_group = max(groups.values(), key=len)
        return copy.deepcopy(_highest_confidence(best_group))

    @classmethod
    def _weighted_confidence_vote(cls, results: Sequence[AlignmentResult]) -> AlignmentResult:
        total = sum(r.confidence for r in results)
        if total == 0.0:
            return cls._max_confidence_vote(results)

        weighted_x = sum(r.location.x * r.confidence / total for r in results)
        weighted_y = sum(r.location.y * r.confidence / total for r in results)
        weighted_score = sum(r.score * r.confidence / total for r in results)
        target_x, target_y = int(weighted_x), int(weighted_y)

        closest = min(
            results,
            key=lambda r: (r.location.x - target_x) ** 2 + (r.location.y - target_y) ** 2,
        )
        chosen = copy.deepcopy(closest)
        chosen.score = weighted_score
        return chosen

    @staticmethod
    def _max_confidence_vote(results: Sequence[AlignmentResult]) -> AlignmentResult:
        return copy.deepcopy(_highest_confidence(results))

    @staticmethod
    def _average_vote(results: Sequence[AlignmentResult]) -> AlignmentResult:
        n = len(results)
        chosen = copy.deepcopy(results[0])
        chosen.location.x = int(sum(r.location.x for r in results) / n)
        chosen.location.y = int(sum(r.location.y for r in results) / n)
        chosen.score = sum(r.score for r in results) / n
        chosen.confidence = sum(r.confidence for r in results) / n
        return chosen