"""
Scoring configuration for the benefit matcher.

Weights are an explicit struct passed into the matcher; there is no ambient
weight state. Overrides must name all seven criteria with positive values.
The matcher never renormalizes a partial set.
"""

from enum import Enum
from typing import Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RecommendationMode(str, Enum):
    STATEMENTS = "statements"
    GOAL_BASED = "goal_based"
    QUICK_ESTIMATE = "quick_estimate"


class ScoringWeights(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    feeAffordability: float = Field(..., gt=0)
    rewardRelevance: float = Field(..., gt=0)
    travelFit: float = Field(..., gt=0)
    categoryAlignment: float = Field(..., gt=0)
    networkAcceptance: float = Field(..., gt=0)
    eligibility: float = Field(..., gt=0)
    loyaltyPotential: float = Field(..., gt=0)


CRITERIA = tuple(ScoringWeights.model_fields)

DEFAULT_WEIGHTS = ScoringWeights(
    feeAffordability=0.20,
    rewardRelevance=0.25,
    travelFit=0.15,
    categoryAlignment=0.20,
    networkAcceptance=0.10,
    eligibility=0.05,
    loyaltyPotential=0.05,
)

WEIGHT_PRESETS: dict[RecommendationMode, ScoringWeights] = {
    RecommendationMode.STATEMENTS: DEFAULT_WEIGHTS,
    # Goal-driven flows lean on travel and category fit
    RecommendationMode.GOAL_BASED: ScoringWeights(
        feeAffordability=0.15,
        rewardRelevance=0.20,
        travelFit=0.20,
        categoryAlignment=0.25,
        networkAcceptance=0.10,
        eligibility=0.05,
        loyaltyPotential=0.05,
    ),
    # Quick estimates carry little spend detail, so fee and eligibility weigh more
    RecommendationMode.QUICK_ESTIMATE: ScoringWeights(
        feeAffordability=0.25,
        rewardRelevance=0.20,
        travelFit=0.15,
        categoryAlignment=0.15,
        networkAcceptance=0.10,
        eligibility=0.10,
        loyaltyPotential=0.05,
    ),
}


def resolve_weights(
    weights: Optional[Union[ScoringWeights, Mapping[str, float]]] = None,
    mode: Optional[RecommendationMode] = None,
) -> ScoringWeights:
    """
    Pick the weights for a scoring request.

    Explicit weights win over the mode preset. A mapping is validated as a
    complete ScoringWeights; a missing or non-positive criterion raises
    pydantic.ValidationError.
    """
    if weights is not None:
        if isinstance(weights, ScoringWeights):
            return weights
        return ScoringWeights.model_validate(dict(weights))
    if mode is not None:
        return WEIGHT_PRESETS[RecommendationMode(mode)]
    return DEFAULT_WEIGHTS
