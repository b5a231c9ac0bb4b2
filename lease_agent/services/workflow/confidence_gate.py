"""Confidence-score review gate."""

from dataclasses import dataclass
from typing import Iterable, Optional

from lease_agent.models.lease_request import LeaseDocument

# Fixed policy constant; a score exactly at the threshold passes.
CONFIDENCE_THRESHOLD = 0.70


def requires_review(confidence_score: float) -> bool:
    return confidence_score < CONFIDENCE_THRESHOLD


@dataclass(frozen=True)
class GateDecision:
    """Result of evaluating the gate against the active step's documents."""

    review_required: bool
    all_passed: bool
    lowest_score: Optional[float]
    reason: str = ""


def evaluate(confidence_score: float, documents: Iterable[LeaseDocument]) -> GateDecision:
    """Evaluate an incoming score together with the scores already on file.

    ``all_passed`` is only true when every document has been scored and none is
    below the threshold.
    """
    if requires_review(confidence_score):
        return GateDecision(
            review_required=True,
            all_passed=False,
            lowest_score=confidence_score,
            reason=(
                f"Extraction confidence {confidence_score:.2f} is below the "
                f"{CONFIDENCE_THRESHOLD:.2f} review threshold"
            ),
        )

    scores = [doc.confidence_score for doc in documents]
    known = [score for score in scores if score is not None]
    lowest = min(known) if known else confidence_score
    all_passed = bool(scores) and len(known) == len(scores) and not any(
        requires_review(score) for score in known
    )
    return GateDecision(review_required=False, all_passed=all_passed, lowest_score=lowest)
