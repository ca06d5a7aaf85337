"""
Card ranker.
Scores every catalog card and returns the top N, best first.
"""

from typing import Iterable, List, Mapping, Optional, Union

from cardmatch.config import ScoringWeights, resolve_weights
from cardmatch.matcher import score
from cardmatch.models import CardFeatures, MatchResult, UserFeatureVector, UserProfile

DEFAULT_TOP_N = 5


def rank(
    features: UserFeatureVector,
    cards: Iterable[CardFeatures],
    profile: Optional[UserProfile] = None,
    top_n: int = DEFAULT_TOP_N,
    weights: Optional[Union[ScoringWeights, Mapping[str, float]]] = None,
) -> List[MatchResult]:
    """
    Rank cards by match score.

    Sorting is stable, so cards with equal scores keep catalog order.

    Raises:
        ValueError: If top_n is negative
        pydantic.ValidationError: If a weight mapping is incomplete
    """
    if top_n < 0:
        raise ValueError(f"Invalid top_n: {top_n}. Must be >= 0.")

    # Validate once so a bad override fails before any card is scored
    resolved = resolve_weights(weights)
    results = [score(features, card, profile, resolved) for card in cards]
    results.sort(key=lambda result: result.score, reverse=True)
    return results[:top_n]
