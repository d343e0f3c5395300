"""Robust translation/rotation/scale estimation from keypoint matches."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Sequence

_EARLY_STOP_RATIO = 0.8
_FEW_MATCHES_CONFIDENCE = 0.4
_FLOOR_CONFIDENCE = 0.3


@dataclass(frozen=True)
class KeyPoint:
    """A detected feature position with its diameter (0 when unknown)."""

    x: float
    y: float
    size: float = 0.0


@dataclass(frozen=True)
class DMatch:
    """A correspondence between keypoint ``query_idx`` in the first set and
    ``train_idx`` in the second."""

    query_idx: int
    train_idx: int
    distance: float = 0.0


@dataclass
class RansacResult:
    translation: tuple[float, float]
    rotation: float
    scale: float
    confidence: float
    inlier_count: int
    total_matches: int


_Model = tuple[float, float, float, float]


def estimate_transformation_ransac(
    kp1: Sequence[KeyPoint],
    kp2: Sequence[KeyPoint],
    matches: Sequence[DMatch],
    min_inliers: int,
    max_iterations: int,
    inlier_threshold: float,
    rng: random.Random | None = None,
) -> RansacResult:
    """Estimate the transformation mapping ``kp1`` onto ``kp2``.

    With fewer than ``min_inliers`` matches the translation is a plain average.
    """
    matches = list(matches)
    if len(matches) < min_inliers:
        return _average_few_matches(kp1, kp2, matches)

    rng = rng if rng is not None else random.Random()
    total = len(matches)
    best_count = 0
    best: _Model = (0.0, 0.0, 0.0, 1.0)

    if total >= 4:
        for _ in range(max_iterations):
            candidate = _estimate_from_sample(kp1, kp2, rng.sample(matches, 4))
            count = _count_inliers(kp1, kp2, matches, candidate, inlier_threshold)
            if count > best_count:
                best_count = count
                best = candidate
                if count / total > _EARLY_STOP_RATIO:
                    break

    ratio = best_count / total if total else 0.0
    if best_count >= min_inliers:
        confidence = min(ratio * 0.7 + 0.3, 1.0)
    else:
        confidence = _FLOOR_CONFIDENCE

    tx, ty, rotation, scale = best
    return RansacResult(
        translation=(tx, ty),
        rotation=rotation,
        scale=scale,
        confidence=confidence,
        inlier_count=best_count,
        total_matches=total,
    )


def _average_few_matches(
    kp1: Sequence[KeyPoint], kp2: Sequence[KeyPoint], matches: list[DMatch]
) -> RansacResult:
    if not matches:
        return RansacResult((0.0, 0.0), 0.0, 1.0, 0.0, 0, 0)

    pairs = [(kp1[m.query_idx], kp2[m.train_idx]) for m in matches]
    tx = sum(b.x - a.x for a, b in pairs) / len(pairs)
    ty = sum(b.y - a.y for a, b in pairs) / len(pairs)
    # Keypoint orientations are unreliable between patches, so rotation is assumed zero.
    ratios = [b.size / a.size for a, b in pairs if a.size > 0.0 and b.size > 0.0]
    scale = sum(ratios) / len(ratios) if ratios else 1.0

    return RansacResult(
        translation=(tx, ty),
        rotation=0.0,
        scale=scale,
        confidence=_FEW_MATCHES_CONFIDENCE,
        inlier_count=len(matches),
        total_matches=len(matches),
    )


def _estimate_from_sample(
    kp1: Sequence[KeyPoint], kp2: Sequence[KeyPoint], sample: Sequence[DMatch]
) -> _Model:
    if len(sample) < 2:
        raise ValueError("Need at least 2 matches for estimation")
    first, second = sample[0], sample[1]
    a1, b1 = kp1[first.query_idx], kp2[first.train_idx]
    a2, b2 = kp1[second.query_idx], kp2[second.train_idx]

    tx = b1.x - a1.x
    ty = b1.y - a1.y

    dx1, dy1 = a2.x - a1.x, a2.y - a1.y
    dx2, dy2 = b2.x - b1.x, b2.y - b1.y
    rotation = math.degrees(math.atan2(dy2, dx2) - math.atan2(dy1, dx1))

    dist1 = math.hypot(dx1, dy1)
    dist2 = math.hypot(dx2, dy2)
    scale = dist2 / dist1 if dist1 > 0.0 else 1.0
    return tx, ty, rotation, scale


def _count_inliers(
    kp1: Sequence[KeyPoint],
    kp2: Sequence[KeyPoint],
    matches: Sequence[DMatch],
    model: _Model,
    threshold: float,
) -> int:
    tx, ty, _rotation, _scale = model
    return sum(
        1
        for m in matches
        if math.hypot(
            kp1[m.query_idx].x + tx - kp2[m.train_idx].x,
            kp1[m.query_idx].y + ty - kp2[m.train_idx].y,
        )
        < threshold
    )