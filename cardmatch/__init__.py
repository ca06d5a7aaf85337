"""Credit card recommendation matching engine."""

from .categories import CanonicalCategory, CANONICAL_CATEGORIES, display_name, is_canonical_category
from .config import DEFAULT_WEIGHTS, RecommendationMode, ScoringWeights, resolve_weights
from .features import FeatureDeriver, derive
from .matcher import score
from .merchants import InferenceServiceError, MerchantCategorizer
from .models import (
    CardBenefit,
    CardEligibility,
    CardFeatures,
    CategorizationResult,
    MatchResult,
    MerchantRecord,
    SelfReportedEstimate,
    Transaction,
    UserFeatureVector,
    UserPreferences,
    UserProfile,
)
from .normalizer import CategoryNormalizer, NormalizerEvent, normalize, shares_from_percentages
from .ranker import rank

__all__ = [
    "CanonicalCategory",
    "CANONICAL_CATEGORIES",
    "display_name",
    "is_canonical_category",
    "DEFAULT_WEIGHTS",
    "RecommendationMode",
    "ScoringWeights",
    "resolve_weights",
    "FeatureDeriver",
    "derive",
    "score",
    "InferenceServiceError",
    "MerchantCategorizer",
    "CardBenefit",
    "CardEligibility",
    "CardFeatures",
    "CategorizationResult",
    "MatchResult",
    "MerchantRecord",
    "SelfReportedEstimate",
    "Transaction",
    "UserFeatureVector",
    "UserPreferences",
    "UserProfile",
    "CategoryNormalizer",
    "NormalizerEvent",
    "normalize",
    "shares_from_percentages",
    "rank",
]
