"""Abstract interfaces for algorithms, pipeline stages, augmentations and metrics."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

import numpy as np

from waferalign.types import AlignmentResult, AugmentedImage, Transform


class ComplexityClass(IntEnum):
    """Rough computational cost of an algorithm; ordered from cheap to costly."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3


@dataclass
class AlgorithmConfig:
    """Named parameters handed to an algorithm's ``configure``."""

    parameters: dict[str, Any] = field(default_factory=dict)

    def with_param(self, key: str, value: Any) -> AlgorithmConfig:
        self.parameters[str(key)] = value
        return self

    def get(self, key: str) -> Any:
        """Return a copy of the parameter's value, or None when it is absent."""
        if key not in self.parameters:
            return None
        return copy.deepcopy(self.parameters[key])


class ParameterType(Enum):
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    STRING = "string"
    CHOICE = "choice"


@dataclass(frozen=True)
class ParameterRange:
    """Inclusive bounds of a numeric parameter."""

    minimum: float
    maximum: float


@dataclass
class ParameterInfo:
    """Description of one tunable algorithm parameter."""

    name: str
    description: str
    default_value: Any
    value_type: ParameterType
    range: ParameterRange | None = None
    choices: tuple[str, ...] = ()


class AlignmentAlgorithm(ABC):
    """Locates a patch inside a search image."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable algorithm name."""

    def configure(self, config: AlgorithmConfig) -> None:
        """Apply configuration; the default accepts anything and changes nothing."""

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        return np.array(image, copy=True)

    @abstractmethod
    def align(self, search_image: np.ndarray, patch: np.ndarray) -> AlignmentResult:
        """Find ``patch`` in ``search_image``."""

    def supports_gpu(self) -> bool:
        return False

    def estimated_complexity(self) -> ComplexityClass:
        return ComplexityClass.MEDIUM

    def get_parameters(self) -> dict[str, ParameterInfo]:
        return {}


class PipelineStage(ABC):
    """One step of a processing pipeline."""

    @abstractmethod
    def execute(self, data: Any) -> Any:
        """Process ``data`` and return the stage output."""

    def can_parallelize(self) -> bool:
        return False

    @abstractmethod
    def stage_name(self) -> str:
        """Name used in logs and timings."""


class ImageAugmentation(ABC):
    """A perturbation applied to images to test robustness."""

    @abstractmethod
    def apply(self, image: np.ndarray) -> AugmentedImage:
        """Return the augmented image with its ground truth."""

    @abstractmethod
    def get_inverse_transform(self) -> Transform | None:
        """Inverse transform, when one exists."""

    @abstractmethod
    def description(self) -> str:
        """Human-readable description."""

    @abstractmethod
    def get_params(self) -> dict[str, Any]:
        """Parameters of this augmentation."""


class Metric(ABC):
    """Scores a predicted alignment against the ground truth."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Metric name."""

    @abstractmethod
    def compute(self, ground_truth: AlignmentResult, predicted: AlignmentResult) -> float:
        """Return the metric value."""

    def higher_is_better(self) -> bool:
        return True