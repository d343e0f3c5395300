"""Core data types shared by alignment algorithms and pipelines."""

from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np


@dataclass
class Rect:
    """Axis-aligned rectangle in image pixel coordinates."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rect:
        return cls(int(data["x"]), int(data["y"]), int(data["width"]), int(data["height"]))


@dataclass
class TransformParams:
    """Translation, rotation, scale and optional skew of an alignment."""

    translation: tuple[float, float] = (0.0, 0.0)
    rotation_degrees: float = 0.0
    scale: float = 1.0
    skew: tuple[float, float] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "translation": list(self.translation),
            "rotation_degrees": self.rotation_degrees,
            "scale": self.scale,
            "skew": list(self.skew) if self.skew is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransformParams:
        tx, ty = data["translation"]
        skew = data.get("skew")
        return cls(
            translation=(float(tx), float(ty)),
            rotation_degrees=float(data["rotation_degrees"]),
            scale=float(data["scale"]),
            skew=(float(skew[0]), float(skew[1])) if skew is not None else None,
        )


@dataclass
class AlignmentResult:
    """Standardised result produced by every alignment algorithm."""

    algorithm_name: str
    location: Rect = field(default_factory=Rect)
    score: float = 0.0
    confidence: float = 0.0
    execution_time_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)
    transformation: TransformParams | None = None

    def with_location(self, rect: Rect) -> AlignmentResult:
        self.location = dataclasses.replace(rect)
        return self

    def with_score(self, score: float) -> AlignmentResult:
        self.score = float(score)
        return self

    def with_confidence(self, confidence: float) -> AlignmentResult:
        self.confidence = float(confidence)
        return self

    def with_metadata(self, key: str, value: Any) -> AlignmentResult:
        self.metadata[str(key)] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping of this result."""
        return {
            "location": self.location.to_dict(),
            "score": self.score,
            "confidence": self.confidence,
            "execution_time_ms": self.execution_time_ms,
            "algorithm_name": self.algorithm_name,
            "metadata": copy.deepcopy(self.metadata),
            "transformation": (
                self.transformation.to_dict() if self.transformation is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlignmentResult:
        transformation = data.get("transformation")
        return cls(
            algorithm_name=str(data["algorithm_name"]),
            location=Rect.from_dict(data["location"]),
            score=float(data["score"]),
            confidence=float(data["confidence"]),
            execution_time_ms=float(data["execution_time_ms"]),
            metadata=copy.deepcopy(dict(data.get("metadata") or {})),
            transformation=(
                TransformParams.from_dict(transformation) if transformation is not None else None
            ),
        )


@dataclass
class GroundTruth:
    """Known placement of a patch, used to validate alignment output."""

    expected_location: Rect
    transformation: TransformParams
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "expected_location": self.expected_location.to_dict(),
            "transformation": self.transformation.to_dict(),
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GroundTruth:
        return cls(
            expected_location=Rect.from_dict(data["expected_location"]),
            transformation=TransformParams.from_dict(data["transformation"]),
            metadata=copy.deepcopy(dict(data.get("metadata") or {})),
        )


@dataclass
class AugmentedImage:
    """An augmented image together with its original and ground truth."""

    image: np.ndarray
    original: np.ndarray
    ground_truth: GroundTruth
    augmentations_applied: list[str] = field(default_factory=list)
    augmentation_params: dict[str, Any] = field(default_factory=dict)


class TransformType(Enum):
    TRANSLATION = "Translation"
    ROTATION = "Rotation"
    SCALE = "Scale"
    AFFINE = "Affine"
    PERSPECTIVE = "Perspective"
    ELASTIC = "Elastic"
    COMBINED = "Combined"


@dataclass
class Transform:
    """A 3x3 homogeneous transformation matrix with its kind."""

    matrix: tuple[tuple[float, float, float], ...]
    transform_type: TransformType

    def __post_init__(self) -> None:
        rows = tuple(tuple(float(v) for v in row) for row in self.matrix)
        if len(rows) != 3 or any(len(row) != 3 for row in rows):
            raise ValueError("transformation matrix must be 3x3")
        self.matrix = rows


@dataclass
class StageTime:
    stage_name: str
    duration_ms: float


class MessageLevel(Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass
class PipelineMessage:
    level: MessageLevel
    stage: str
    message: str


@dataclass
class PipelineContext:
    """Book-keeping for one pipeline execution."""

    stage_index: int = 0
    total_stages: int = 0
    stage_timings: list[StageTime] = field(default_factory=list)
    messages: list[PipelineMessage] = field(default_factory=list)
    shared_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class TestCase:
    """A benchmark case: search image, patch and expected result."""

    __test__ = False

    name: str
    search_image: np.ndarray
    patch: np.ndarray
    ground_truth: AlignmentResult
    augmentations: list[str] = field(default_factory=list)


@dataclass
class BenchmarkResult:
    """Outcome of running one algorithm on one test case."""

    algorithm_name: str
    test_case_name: str
    success: bool
    metrics: dict[str, float] = field(default_factory=dict)
    execution_time_ms: float = 0.0
    error_message: str | None = None