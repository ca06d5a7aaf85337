"""
Data models for the card matching engine.

All records are Pydantic models so they validate on construction and serialize
with `model_dump()` for the calling layer. Records produced by the engine
(UserFeatureVector, MatchResult) are frozen: a refresh replaces them.
"""

import datetime as dt
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cardmatch.categories import CanonicalCategory, empty_category_map
from cardmatch.normalizer import normalize


class FeatureSource(str, Enum):
    STATEMENTS = "statements"
    SELF_REPORT = "self_report"


class ValueKind(str, Enum):
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    TEXT = "text"


class MerchantType(str, Enum):
    SEED = "seed"
    AI_LEARNED = "ai-learned"
    USER_CORRECTED = "user-corrected"


class CategorizationSource(str, Enum):
    DATABASE_EXACT = "database-exact"
    DATABASE_FUZZY = "database-fuzzy"
    AI_POWERED = "ai-powered"
    FALLBACK = "fallback"


def _complete_category_map(value: Any) -> dict[CanonicalCategory, float]:
    # Keys fold through the normalizer; every canonical key ends up present.
    result = empty_category_map()
    for key, amount in (value or {}).items():
        category = key if isinstance(key, CanonicalCategory) else normalize(key)
        result[category] += float(amount or 0)
    return result


# =============================================================================
# Inputs from collaborators
# =============================================================================

class Transaction(BaseModel):
    """A statement line as handed over by the transaction source."""
    date: dt.date
    category: Optional[str] = None
    amount: float
    merchant: Optional[str] = None
    transaction_type: str = Field(default="debit", description="debit | credit")


class UserProfile(BaseModel):
    income_band: Optional[str] = Field(None, description="e.g. '50000-100000'")
    age_range: Optional[str] = Field(None, description="e.g. '26-35'")
    city: Optional[str] = None
    pincode: Optional[str] = None
    pay_in_full_habit: Optional[str] = Field(None, description="always | mostly | sometimes | rarely")


class UserPreferences(BaseModel):
    fee_tolerance_band: Optional[str] = None
    fee_sensitivity: Optional[str] = Field(None, description="low | medium | high")
    travel_frequency: Optional[str] = Field(None, description="rarely | occasional | frequent")
    lounge_importance: Optional[str] = Field(None, description="not_important | nice_to_have | very_important")
    reward_preference: Optional[str] = None


class SelfReportedEstimate(BaseModel):
    monthly_spend: float = Field(..., ge=0)
    spend_split: dict[str, float] = Field(default_factory=dict, description="label -> percentage or fraction")


class DeriveOptions(BaseModel):
    """Explicit overrides that win over the preference mapping tables."""
    pay_in_full_score: Optional[float] = Field(None, ge=0, le=1)
    fee_tolerance_amount: Optional[float] = Field(None, ge=0)
    amex_acceptance_risk: Optional[float] = Field(None, ge=0, le=1)


# =============================================================================
# Feature vector
# =============================================================================

class UserFeatureVector(BaseModel):
    model_config = ConfigDict(frozen=True)

    pay_in_full_score: float = Field(..., ge=0, le=1)
    fee_tolerance_amount: float = Field(..., ge=0)
    travel_intensity: float = Field(..., ge=0, le=10)
    lounge_importance: float = Field(..., ge=0, le=10)
    forex_spend_pct: float = Field(..., ge=0, le=100)
    amex_acceptance_risk: float = Field(..., ge=0, le=1)
    total_monthly_spend: float = Field(..., ge=0)
    category_spend: dict[CanonicalCategory, float] = Field(default_factory=empty_category_map)
    category_shares: dict[CanonicalCategory, float] = Field(default_factory=empty_category_map)
    confidence: float = Field(..., ge=0, le=1)
    source: FeatureSource
    months_of_coverage: int = Field(0, ge=0)
    transaction_count: int = Field(0, ge=0)
    last_statement_date: Optional[dt.date] = None
    reward_preference: Optional[str] = None

    @field_validator("category_spend", "category_shares", mode="before")
    @classmethod
    def fill_every_category(cls, v: Any) -> dict[CanonicalCategory, float]:
        return _complete_category_map(v)


# =============================================================================
# Card catalog
# =============================================================================

class CardBenefit(BaseModel):
    benefit_key: str
    benefit_type: str
    value_kind: ValueKind = ValueKind.BOOLEAN
    value: Any = None
    display_name: Optional[str] = None


class CardEligibility(BaseModel):
    min_income: Optional[float] = Field(None, ge=0)
    min_age: Optional[int] = Field(None, ge=0)
    cities: Optional[list[str]] = None


class CardFeatures(BaseModel):
    card_id: str
    name: Optional[str] = None
    issuer: str
    network: str
    annual_fee: float = Field(0, ge=0)
    waiver_rule: Optional[str] = None
    forex_markup_pct: float = Field(3.5, ge=0)
    reward_types: set[str] = Field(default_factory=set)
    benefits: list[CardBenefit] = Field(default_factory=list)
    eligibility: Optional[CardEligibility] = None
    category_badges: list[str] = Field(default_factory=list)

    @field_validator("card_id", "issuer", "network")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("card_id, issuer and network must be non-empty")
        return v.strip()

    @property
    def benefit_keys(self) -> set[str]:
        return {benefit.benefit_key for benefit in self.benefits}


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    card_id: str
    card_name: Optional[str] = None
    score: int = Field(..., ge=0, le=100)
    breakdown: dict[str, float]
    explanations: list[str] = Field(default_factory=list)


# =============================================================================
# Merchant intelligence
# =============================================================================

class MerchantRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    raw_key: str
    normalized_name: str
    canonical_name: Optional[str] = None
    category: CanonicalCategory
    subcategory: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)
    usage_count: int = Field(0, ge=0)
    keywords: set[str] = Field(default_factory=set)
    merchant_type: MerchantType = MerchantType.SEED
    last_seen_at: Optional[dt.datetime] = None


class CategorizationContext(BaseModel):
    """Optional transaction context folded into the inference prompt."""
    amount: Optional[float] = None
    transaction_type: Optional[str] = None
    date: Optional[str] = None
    recent_transactions: list[dict[str, Any]] = Field(default_factory=list)


class InferenceResult(BaseModel):
    category: str
    subcategory: Optional[str] = None
    merchant_normalized: str
    confidence: float = Field(..., ge=0, le=1)
    reasoning: Optional[str] = None

    @field_validator("merchant_normalized")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("merchant_normalized must be non-empty")
        return v.strip()


class CategorizationResult(BaseModel):
    category: CanonicalCategory
    subcategory: Optional[str] = None
    canonical_name: Optional[str] = None
    confidence: float = Field(..., ge=0, le=1)
    source: CategorizationSource
    reasoning: Optional[str] = None
