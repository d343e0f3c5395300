"""Plain-text summaries of alignment results."""

from __future__ import annotations

from typing import Iterable

from waferalign.types import AlignmentResult


def _transform_fields(result: AlignmentResult) -> tuple[str, str, str]:
    transform = result.transformation
    if transform is None:
        return "(0.00, 0.00)", "0.00", "1.00"
    tx, ty = transform.translation
    return f"({tx:.2f}, {ty:.2f})", f"{transform.rotation_degrees:.2f}", f"{transform.scale:.2f}"


def format_results(results: Iterable[AlignmentResult]) -> str:
    """Render one block per result, each followed by a blank line."""
    lines = ["=== Alignment Results ==="]
    for result in results:
        translation, rotation, scale = _transform_fields(result)
        lines += [
            f"Algorithm: {result.algorithm_name}",
            f"  Translation: {translation}",
            f"  Rotation: {rotation}°",
            f"  Scale: {scale}",
            f"  Confidence: {result.confidence:.2f}",
            f"  Processing Time: {result.execution_time_ms:.2f}ms",
            "",
        ]
    return "\n".join(lines) + "\n"


def print_results(results: Iterable[AlignmentResult]) -> None:
    print(format_results(results), end="")


def format_comparison_table(results: Iterable[AlignmentResult]) -> str:
    """Render results as a Markdown comparison table."""
    lines = [
        "| Algorithm | Time (ms) | Translation | Rotation (°) | Scale | Confidence |",
        "|-----------|-----------|-------------|--------------|-------|------------|",
    ]
    for result in results:
        translation, rotation, scale = _transform_fields(result)
        lines.append(
            f"| {result.algorithm_name} | {result.execution_time_ms:.2f} | {translation} "
            f"| {rotation} | {scale} | {result.confidence:.2f} |"
        )
    return "\n".join(lines) + "\n"


def print_comparison_table(results: Iterable[AlignmentResult]) -> None:
    print(format_comparison_table(results), end="")