"""Confidence scoring utilities for research claims and runs.

Every research phase reports a confidence in [0.0, 1.0].  This module holds
the shared math:

1. **calculate_confidence** -- Weighted average of several scores.  The
   orchestrator uses it to blend the per-phase confidences of a run.
2. **combine_independent** -- Noisy-OR combination of independent pieces
   of support.  Used for claims (company candidates, employment matches)
   so that adding support can only raise the result.
3. **confidence_to_level** -- Maps a score to the ``high`` / ``medium`` /
   ``low`` tier stored with every report and shown in the dashboard.
"""

from enum import Enum


class ConfidenceLevel(Enum):
    """Human-readable confidence tiers stored with a research report."""

    LOW = "low"        # < 0.4 -- treat as unverified
    MEDIUM = "medium"  # 0.4 - 0.7 -- usable with manual checking
    HIGH = "high"      # >= 0.7 -- several independent confirmations


def calculate_confidence(
    scores: list[float],
    weights: list[float] | None = None,
) -> float:
    """Compute a weighted average confidence score.

    Args:
        scores: Individual confidence scores, each in [0.0, 1.0].
        weights: Optional weights for each score. Defaults to equal weighting.

    Returns:
        Weighted average clamped to [0.0, 1.0].

    Raises:
        ValueError: If scores is empty or lengths of scores and weights differ.
    """
    if not scores:
        raise ValueError("scores must not be empty")

    if weights is None:
        weights = [1.0] * len(scores)

    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0

    weighted_sum = sum(s * w for s, w in zip(scores, weights, strict=True))
    return max(0.0, min(1.0, weighted_sum / total_weight))


def combine_independent(supports: list[float], ceiling: float = 0.99) -> float:
    """Combine independent supporting signals with a noisy-OR.

    ``1 - prod(1 - s_i)``.  Each extra signal with ``s > 0`` strictly
    raises the result and a signal of ``0`` leaves it unchanged, so the
    combined value is monotone in the evidence set.

    Args:
        supports: Individual support strengths, each clamped to [0.0, 1.0].
        ceiling: Upper bound for the combined value.

    Returns:
        Combined confidence in [0.0, ceiling]; ``0.0`` for an empty list.
    """
    remaining_doubt = 1.0
    for support in supports:
        remaining_doubt *= 1.0 - max(0.0, min(1.0, support))
    return min(ceiling, 1.0 - remaining_doubt)


def confidence_to_level(score: float) -> ConfidenceLevel:
    """Map a numeric confidence score to a human-readable level.

    Args:
        score: Confidence score in [0.0, 1.0].

    Returns:
        Corresponding ConfidenceLevel enum member.
    """
    if score >= 0.7:
        return ConfidenceLevel.HIGH
    if score >= 0.4:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW
