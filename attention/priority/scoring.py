"""
Score aggregation and signal generation.

priority = clamp01(sum(weight[d] * score[d])) over the configured weights.
An item with no effort score contributes the neutral 0.5 to the effort term.
"""

from dataclasses import dataclass

from attention.priority.calculators import clamp01
from attention.priority.config import PriorityConfig
from attention.priority.types import PrioritySignal

NEUTRAL_EFFORT = 0.5


@dataclass(frozen=True)
class DimensionScores:
    urgency: float
    importance: float
    recency: float
    commitment: float = 0.0
    effort: float | None = None

    def value(self, dimension: str) -> float:
        score = getattr(self, dimension)
        if dimension == "effort" and score is None:
            return NEUTRAL_EFFORT
        return score


def aggregate(scores: DimensionScores, config: PriorityConfig) -> float:
    total = 0.0
    for dimension, weight in config.weights.items():
        if weight:
            total += weight * scores.value(dimension)
    return clamp01(total)


def generate_signals(
    scores: DimensionScores,
    config: PriorityConfig,
    descriptions: dict[str, str] | None = None,
) -> list[PrioritySignal]:
    """
    Urgency and importance always come first. Recency follows whenever it
    was computed; commitment and effort when the source produced them.
    A computed dimension with zero weight is emitted as ``<name>_debug``
    so tooling can tell "computed but not weighted" from "weighted".
    """
    descriptions = descriptions or {}
    signals = [
        PrioritySignal("urgency", scores.urgency, descriptions.get("urgency", "Urgency")),
        PrioritySignal("importance", scores.importance, descriptions.get("importance", "Importance")),
    ]

    extras = [("recency", scores.recency)]
    if scores.commitment > 0:
        extras.append(("commitment", scores.commitment))
    if scores.effort is not None:
        extras.append(("effort", scores.effort))

    for dimension, score in extras:
        description = descriptions.get(dimension, dimension.capitalize())
        if config.is_weighted(dimension):
            signals.append(PrioritySignal(dimension, score, description))
        else:
            signals.append(
                PrioritySignal(f"{dimension}_debug", score, f"{description} (computed, not weighted)")
            )
    return signals
