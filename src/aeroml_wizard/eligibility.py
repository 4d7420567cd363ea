"""Training eligibility derived from the dataset validation confidence score."""

import math
from enum import Enum

ELIGIBLE_THRESHOLD = 85.0
CONDITIONAL_THRESHOLD = 60.0


class EligibilityTier(str, Enum):
    """Gating tier for leaving the upload stage."""

    ELIGIBLE = "eligible"
    CONDITIONALLY_ELIGIBLE = "conditionally_eligible"
    NOT_ELIGIBLE = "not_eligible"


def classify(score: float) -> EligibilityTier:
    """Map a 0-100 confidence score to a tier.

    Lower bounds are inclusive: 85 is eligible, 60 is conditionally eligible.
    """
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValueError(f"Confidence score must be a number, got {score!r}")
    if math.isnan(score):
        raise ValueError("Confidence score must not be NaN")

    if score >= ELIGIBLE_THRESHOLD:
        return EligibilityTier.ELIGIBLE
    if score >= CONDITIONAL_THRESHOLD:
        return EligibilityTier.CONDITIONALLY_ELIGIBLE
    return EligibilityTier.NOT_ELIGIBLE


def may_proceed(tier: EligibilityTier, proceed_anyway: bool = False) -> bool:
    """Whether training may start for a tier, given the operator override."""
    if tier == EligibilityTier.ELIGIBLE:
        return True
    if tier == EligibilityTier.CONDITIONALLY_ELIGIBLE:
        return proceed_anyway
    return False
