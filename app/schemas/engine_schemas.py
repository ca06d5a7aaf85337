"""
API Schemas - request/response DTOs for the CardMatch HTTP surface.

Engine records (UserFeatureVector, MatchResult, CategorizationResult) are
returned as-is; these models only wrap the request payloads and the
recommendation envelope.
"""

from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

from cardmatch.categories import CanonicalCategory
from cardmatch.config import RecommendationMode
from cardmatch.models import (
    CategorizationContext,
    DeriveOptions,
    MatchResult,
    SelfReportedEstimate,
    Transaction,
    UserFeatureVector,
    UserPreferences,
    UserProfile,
)
from cardmatch.normalizer import normalize
from cardmatch.ranker import DEFAULT_TOP_N


class CategorizeRequest(BaseModel):
    merchant_name: str = Field(..., description="Raw merchant string as it appears on the statement")
    context: Optional[CategorizationContext] = Field(None, description="Optional transaction context")

    model_config = {"json_schema_extra": {"examples": [{"merchant_name": "SWIGGY*ORDER 1234", "context": {"amount": 450.0}}]}}

    @field_validator("merchant_name")
    @classmethod
    def validate_merchant_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("merchant_name must be non-empty")
        return v


class MerchantCorrectionRequest(BaseModel):
    merchant_name: str = Field(..., description="Raw merchant string to correct")
    category: str = Field(..., description="Category key or alias, e.g. 'food_dining' or 'Dining'")
    subcategory: Optional[str] = Field(None, description="Optional finer label")
    confidence: float = Field(1.0, ge=0, le=1, description="Confidence of the correction")

    @field_validator("merchant_name", "category")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be non-empty")
        return v

    @field_validator("category")
    @classmethod
    def validate_known_category(cls, v: str) -> str:
        if normalize(v) == CanonicalCategory.OTHER:
            raise ValueError("must map to a spending category other than 'other'")
        return v


class DeriveFeaturesRequest(BaseModel):
    """Inputs for feature derivation. Statements win over a self-reported estimate."""
    profile: Optional[UserProfile] = None
    preferences: Optional[UserPreferences] = None
    transactions: List[Transaction] = Field(default_factory=list)
    self_reported: Optional[SelfReportedEstimate] = None
    options: Optional[DeriveOptions] = None


class RecommendationRequest(DeriveFeaturesRequest):
    mode: Optional[RecommendationMode] = Field(None, description="Weight preset; defaults to statements weights")
    weights: Optional[dict[str, float]] = Field(
        None, description="Complete weight override naming all seven criteria"
    )
    top_n: int = Field(DEFAULT_TOP_N, ge=0, description="Number of cards to return")


class RecommendationResponse(BaseModel):
    features: UserFeatureVector
    ranked_cards: List[MatchResult]


class CategoryResponse(BaseModel):
    key: str
    display_name: str
