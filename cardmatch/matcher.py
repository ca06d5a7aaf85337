"""
Benefit matcher (EAV scorer).

Scores a user feature vector against a card's benefit set. Seven independent
sub-scores, each in [0, 100], are combined with a ScoringWeights struct:

    total = round_half_up(sum(sub_score * weight)), clamped to [0, 100]

Pure and deterministic: no I/O, no randomness, no shared state.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional, Union

from cardmatch.categories import CanonicalCategory
from cardmatch.config import ScoringWeights, resolve_weights
from cardmatch.models import CardEligibility, CardFeatures, MatchResult, UserFeatureVector, UserProfile

C = CanonicalCategory

# Canonical category -> benefit keys that reward spend in it
CATEGORY_BENEFIT_MAP: dict[CanonicalCategory, tuple[str, ...]] = {
    C.FOOD_DINING: ("cashback_dining", "food_delivery_boost"),
    C.GROCERIES: ("cashback_grocery",),
    C.FUEL: ("cashback_fuel",),
    C.SHOPPING_ONLINE: ("ecommerce_boost", "shopping_boost"),
    C.ENTERTAINMENT: ("entertainment_boost",),
    C.TRAVEL: ("flight_discount", "hotel_discount", "forex_markup_zero", "forex_markup_low"),
    C.FOREX: ("forex_markup_zero", "forex_markup_low"),
    C.BILLS_UTILITIES: ("cashback_utilities",),
}

# (benefit key, category whose spend must be non-zero)
REWARD_RELEVANCE_RULES: tuple[tuple[str, CanonicalCategory], ...] = (
    ("cashback_dining", C.FOOD_DINING),
    ("cashback_grocery", C.GROCERIES),
    ("cashback_fuel", C.FUEL),
    ("food_delivery_boost", C.FOOD_DINING),
    ("ecommerce_boost", C.SHOPPING_ONLINE),
)
REWARD_BASE_SCORE = 50
REWARD_MATCH_BONUS = 15

TRAVEL_BYPASS_THRESHOLD = 3
TRAVEL_BENEFIT_POINTS = (
    ("domestic_lounge", 20),
    ("intl_lounge", 20),
    ("priority_pass", 25),
    ("flight_discount", 10),
    ("hotel_discount", 10),
    ("travel_insurance", 5),
)
FOREX_SPEND_THRESHOLD_PCT = 5
FOREX_ZERO_POINTS = 20
FOREX_LOW_POINTS = 15
FOREX_LOW_MAX_MARKUP_PCT = 2

GENERAL_CASHBACK_FLOOR = 60
NEUTRAL_CATEGORY_SCORE = 50

NETWORK_SCORES = {"visa": 100, "mastercard": 100, "rupay": 95}
AMEX_NETWORKS = ("american express", "amex")
OTHER_NETWORK_SCORE = 80

INCOME_BAND_MIDPOINTS = {
    "0-25000": 12500,
    "25000-50000": 37500,
    "50000-100000": 75000,
    "100000-200000": 150000,
    "200000+": 250000,
}
DEFAULT_INCOME_MIDPOINT = 50000

AGE_RANGE_MIDPOINTS = {"18-25": 21, "26-35": 30, "36-45": 40, "46-60": 53, "60+": 65}
DEFAULT_AGE_MIDPOINT = 30

DEFAULT_ELIGIBILITY_SCORE = 80
INCOME_PENALTY = 40
AGE_PENALTY = 30
CITY_PENALTY = 20

LOYALTY_SPEND_REFERENCE = 50000


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))


# =============================================================================
# Sub-scores
# =============================================================================

def fee_affordability_score(fee_tolerance: float, annual_fee: float, waiver_rule: Optional[str] = None) -> float:
    """Step function of the effective fee against the user's tolerance."""
    if annual_fee == 0:
        return 100
    # A waiver rule is assumed achievable
    effective_fee = annual_fee * 0.5 if waiver_rule else annual_fee

    if effective_fee <= fee_tolerance * 0.5:
        return 100
    if effective_fee <= fee_tolerance:
        return 80
    if effective_fee <= fee_tolerance * 1.5:
        return 60
    if effective_fee <= fee_tolerance * 2:
        return 40
    return 20


def category_alignment_score(category_spend: Mapping[CanonicalCategory, float], card: CardFeatures) -> float:
    """Percentage of spend landing in categories the card has a matching benefit for."""
    total = sum(category_spend.values())
    if total <= 0:
        return NEUTRAL_CATEGORY_SCORE

    benefit_keys = card.benefit_keys
    aligned = sum(
        spend
        for category, spend in category_spend.items()
        if any(key in benefit_keys for key in CATEGORY_BENEFIT_MAP.get(category, ()))
    )
    alignment_pct = _clamp(aligned / total * 100)

    if "cashback_general" in benefit_keys:
        return max(alignment_pct, GENERAL_CASHBACK_FLOOR)
    return alignment_pct


def travel_fit_score(features: UserFeatureVector, card: CardFeatures) -> float:
    if features.travel_intensity < TRAVEL_BYPASS_THRESHOLD:
        # Travel perks are irrelevant for low-travel users
        return 100

    benefit_keys = card.benefit_keys
    score = sum(points for key, points in TRAVEL_BENEFIT_POINTS if key in benefit_keys)

    if features.forex_spend_pct > FOREX_SPEND_THRESHOLD_PCT:
        if "forex_markup_zero" in benefit_keys:
            score += FOREX_ZERO_POINTS
        elif "forex_markup_low" in benefit_keys and card.forex_markup_pct <= FOREX_LOW_MAX_MARKUP_PCT:
            score += FOREX_LOW_POINTS

    return _clamp(score)


def network_acceptance_score(network: str, amex_acceptance_risk: float) -> float:
    key = (network or "").strip().lower()
    if key in NETWORK_SCORES:
        return NETWORK_SCORES[key]
    if key in AMEX_NETWORKS:
        return _clamp((1 - amex_acceptance_risk) * 100)
    return OTHER_NETWORK_SCORE


def eligibility_score(eligibility: Optional[CardEligibility], profile: Optional[UserProfile]) -> float:
    if eligibility is None or profile is None:
        # Optimistic when either side has no data
        return DEFAULT_ELIGIBILITY_SCORE

    score = 100
    if eligibility.min_income and profile.income_band:
        midpoint = INCOME_BAND_MIDPOINTS.get(profile.income_band.strip(), DEFAULT_INCOME_MIDPOINT)
        if midpoint < eligibility.min_income:
            score -= INCOME_PENALTY

    if eligibility.min_age and profile.age_range:
        midpoint = AGE_RANGE_MIDPOINTS.get(profile.age_range.strip(), DEFAULT_AGE_MIDPOINT)
        if midpoint < eligibility.min_age:
            score -= AGE_PENALTY

    if eligibility.cities and profile.city:
        allowed = {city.strip().lower() for city in eligibility.cities}
        if profile.city.strip().lower() not in allowed:
            score -= CITY_PENALTY

    return max(0, score)


def reward_relevance_score(features: UserFeatureVector, card: CardFeatures) -> float:
    benefit_keys = card.benefit_keys
    score = REWARD_BASE_SCORE
    for benefit_key, category in REWARD_RELEVANCE_RULES:
        if benefit_key in benefit_keys and features.category_spend.get(category, 0) > 0:
            score += REWARD_MATCH_BONUS
    return _clamp(score)


def loyalty_potential_score(features: UserFeatureVector, card: CardFeatures) -> float:
    pif_bonus = 0.3 * features.pay_in_full_score * 100
    spend_bonus = min(30.0, 30 * features.total_monthly_spend / LOYALTY_SPEND_REFERENCE)
    milestone_bonus = 20 if "milestone_bonus" in card.benefit_keys else 0
    return _clamp(20 + pif_bonus + spend_bonus + milestone_bonus)


# =============================================================================
# Explanations
# =============================================================================

def _build_explanations(features: UserFeatureVector, card: CardFeatures, breakdown: dict[str, float]) -> list[str]:
    lines: list[str] = []

    fee = breakdown["feeAffordability"]
    if fee >= 80:
        waiver = " with easy waiver" if card.waiver_rule and card.annual_fee > 0 else ""
        lines.append(f"Fee of ₹{card.annual_fee:,.0f} fits your budget{waiver}")
    elif fee < 40:
        lines.append(f"Higher fee (₹{card.annual_fee:,.0f}) compared to your preference")

    if breakdown["rewardRelevance"] >= 70:
        lines.append("Strong rewards match your spending patterns")

    travel = breakdown["travelFit"]
    if travel >= 75 and features.travel_intensity > 6:
        lines.append("Excellent travel benefits for your frequent travel")
    elif travel < 30 and features.travel_intensity > 7:
        lines.append("Limited travel benefits despite your travel needs")

    if breakdown["categoryAlignment"] >= 75:
        lines.append("Benefits align with your top spending categories")

    if breakdown["networkAcceptance"] < 50 and card.network.strip().lower() in AMEX_NETWORKS:
        lines.append("American Express has limited acceptance in your area")

    if breakdown["eligibility"] < 60:
        lines.append("May not meet all eligibility criteria")

    return lines


# =============================================================================
# Public API
# =============================================================================

def score(
    features: UserFeatureVector,
    card: CardFeatures,
    profile: Optional[UserProfile] = None,
    weights: Optional[Union[ScoringWeights, Mapping[str, float]]] = None,
) -> MatchResult:
    """
    Compute the match score between a feature vector and one card.

    Args:
        features: Derived user feature vector
        card: Catalog entry with benefits
        profile: Optional profile for eligibility checks
        weights: Complete ScoringWeights (or mapping); defaults when omitted

    Returns:
        MatchResult with total score, per-criterion breakdown and explanations

    Raises:
        pydantic.ValidationError: If a weight mapping is incomplete or non-positive
    """
    resolved = resolve_weights(weights)

    breakdown = {
        "feeAffordability": fee_affordability_score(features.fee_tolerance_amount, card.annual_fee, card.waiver_rule),
        "rewardRelevance": reward_relevance_score(features, card),
        "travelFit": travel_fit_score(features, card),
        "categoryAlignment": category_alignment_score(features.category_spend, card),
        "networkAcceptance": network_acceptance_score(card.network, features.amex_acceptance_risk),
        "eligibility": eligibility_score(card.eligibility, profile),
        "loyaltyPotential": loyalty_potential_score(features, card),
    }
    breakdown = {criterion: float(value) for criterion, value in breakdown.items()}

    total = sum(value * getattr(resolved, criterion) for criterion, value in breakdown.items())

    return MatchResult(
        card_id=card.card_id,
        card_name=card.name,
        score=int(_clamp(round_half_up(total))),
        breakdown=breakdown,
        explanations=_build_explanations(features, card, breakdown),
    )
