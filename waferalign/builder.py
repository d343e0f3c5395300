"""Sequential pipelines of processing stages with timing and correlation tracking."""

from __future__ import annotations

import contextvars
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Union

import numpy as np

from waferalign.traits import PipelineStage
from waferalign.types import (
    AlignmentResult,
    MessageLevel,
    PipelineContext,
    PipelineMessage,
    StageTime,
)

logger = logging.getLogger(__name__)

_correlation_id: contextvars.ContextVar[uuid.UUID | None] = contextvars.ContextVar(
    "waferalign_correlation_id", default=None
)


def new_correlation_id() -> uuid.UUID:
    """Create a fresh correlation id, make it current and return it."""
    correlation_id = uuid.uuid4()
    _correlation_id.set(correlation_id)
    return correlation_id


def get_correlation_id() -> uuid.UUID | None:
    """Return the current correlation id, if any."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: uuid.UUID | None) -> None:
    """Make ``correlation_id`` the current correlation id."""
    _correlation_id.set(correlation_id)


@dataclass
class ImageData:
    """A single image flowing through a pipeline."""

    image: np.ndarray


@dataclass
class ImagePair:
    """A search image and the patch to locate inside it."""

    search: np.ndarray
    patch: np.ndarray


@dataclass
class ResultData:
    """An alignment result flowing through a pipeline."""

    result: AlignmentResult


@dataclass
class Multiple:
    """Several pipeline values carried together."""

    items: list[Any] = field(default_factory=list)


@dataclass
class Report:
    """A final report; a stage producing one ends the pipeline."""

    value: Any


PipelineData = Union[ImageData, ImagePair, ResultData, Multiple, Report]


def _size(image: np.ndarray) -> tuple[int, int]:
    height, width = image.shape[:2]
    return int(width), int(height)


def _describe_input(data: Any) -> str:
    if isinstance(data, ImageData):
        w, h = _size(data.image)
        return f"Image({w}x{h})"
    if isinstance(data, ImagePair):
        sw, sh = _size(data.search)
        pw, ph = _size(data.patch)
        return f"ImagePair(search:{sw}x{sh}, patch:{pw}x{ph})"
    if isinstance(data, ResultData):
        return "AlignmentResult"
    if isinstance(data, Multiple):
        return f"Multiple({len(data.items)})"
    if isinstance(data, Report):
        return "Report"
    return type(data).__name__


def _describe_output(data: Any) -> str:
    if isinstance(data, ResultData):
        return f"AlignmentResult(confidence: {data.result.confidence:.3f})"
    return _describe_input(data)


def _carry(item: Any) -> Any:
    """Keep images and results inside a Multiple; anything else becomes empty."""
    if isinstance(item, (ImageData, ResultData)):
        return item
    return Multiple([])


class Pipeline:
    """An executable, ordered sequence of stages."""

    def __init__(self, name: str, stages: list[PipelineStage]) -> None:
        self.name = name
        self._stages = list(stages)
        self.last_context: PipelineContext | None = None

    @property
    def num_stages(self) -> int:
        return len(self._stages)

    def execute(self, data: PipelineData) -> PipelineData:
        """Run every stage in turn and return the final output.

        A stage that returns a Report ends the run early. A failing stage's
        exception is logged, recorded in ``last_context`` and re-raised.
        """
        correlation_id = get_correlation_id() or new_correlation_id()
        logger.info(
            "Starting pipeline execution: pipeline=%s total_stages=%d correlation_id=%s",
            self.name,
            len(self._stages),
            correlation_id,
        )
        context = PipelineContext(total_stages=len(self._stages))
        self.last_context = context
        current = data

        for index, stage in enumerate(self._stages):
            context.stage_index = index
            name = stage.stage_name()
            logger.debug(
                "Executing pipeline stage: stage=%s stage_index=%d input_type=%s",
                name,
                index,
                _describe_input(current),
            )
            start = time.perf_counter()
            try:
                output = stage.execute(current)
            except Exception as exc:
                duration = (time.perf_counter() - start) * 1000.0
                logger.error(
                    "Pipeline stage failed: stage=%s duration_ms=%.3f error=%s",
                    name,
                    duration,
                    exc,
                )
                context.messages.append(
                    PipelineMessage(level=MessageLevel.ERROR, stage=name, message=str(exc))
                )
                raise
            duration = (time.perf_counter() - start) * 1000.0
            context.stage_timings.append(StageTime(stage_name=name, duration_ms=duration))
            logger.info(
                "Pipeline stage completed successfully: stage=%s duration_ms=%.3f output_type=%s",
                name,
                duration,
                _describe_output(output),
            )

            if isinstance(output, Report):
                logger.info(
                    "Pipeline execution completed with report: pipeline=%s total_duration_ms=%.3f",
                    self.name,
                    sum(t.duration_ms for t in context.stage_timings),
                )
                return output
            if isinstance(output, Multiple):
                current = Multiple([_carry(item) for item in output.items])
            elif isinstance(output, (ImageData, ResultData)):
                current = output
            else:
                raise TypeError(
                    f"Stage {name} produced an unsupported output: {type(output).__name__}"
                )

        if isinstance(current, (ImageData, ResultData)):
            final = current
        elif isinstance(current, Multiple):
            final = Multiple([_carry(item) for item in current.items])
        else:
            raise ValueError("Unexpected pipeline state")

        logger.info(
            "Pipeline execution completed successfully: pipeline=%s total_duration_ms=%.3f "
            "stages_executed=%d correlation_id=%s",
            self.name,
            sum(t.duration_ms for t in context.stage_timings),
            len(context.stage_timings),
            correlation_id,
        )
        return final


class PipelineBuilder:
    """Collects stages and builds a Pipeline."""

    def __init__(self, name: str) -> None:
        self.name = str(name)
        self._stages: list[PipelineStage] = []

    def add_stage(self, stage: PipelineStage) -> PipelineBuilder:
        self._stages.append(stage)
        return self

    def build(self) -> Pipeline:
        return Pipeline(self.name, self._stages)