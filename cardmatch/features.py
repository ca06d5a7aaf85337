"""
Feature deriver.

Aggregates a user's transactions (or a self-reported estimate) into a
UserFeatureVector with a confidence score. Statement data takes priority over
self-report; with neither, neutral defaults are used.

Scalar features come from explicit lookup tables, not continuous formulas.
"""

import logging
from typing import Iterable, Optional

from cardmatch.categories import CanonicalCategory, empty_category_map
from cardmatch.models import (
    DeriveOptions,
    FeatureSource,
    SelfReportedEstimate,
    Transaction,
    UserFeatureVector,
    UserPreferences,
    UserProfile,
)
from cardmatch.normalizer import CategoryNormalizer, default_normalizer
from cardmatch.transaction_rules import spending_transactions

logger = logging.getLogger(__name__)


# =============================================================================
# Mapping tables
# =============================================================================

PAY_IN_FULL_SCORES = {"always": 1.0, "mostly": 0.8, "sometimes": 0.5, "rarely": 0.3}
DEFAULT_PAY_IN_FULL_SCORE = 0.8

FEE_TOLERANCE_AMOUNTS = {
    "zero": 0,
    "≤1k": 1000,
    "<=1k": 1000,
    "≤5k": 5000,
    "<=5k": 5000,
    "any_if_2x_roi": 999999,
    "any_2x_roi": 999999,
}
DEFAULT_FEE_TOLERANCE = 5000

# Used only when no explicit fee tolerance band was chosen
FEE_SENSITIVITY_BASE_BY_INCOME = {
    "0-25000": 500,
    "25000-50000": 1000,
    "50000-100000": 2500,
    "100000-200000": 5000,
    "200000+": 10000,
}
FEE_SENSITIVITY_MULTIPLIERS = {"low": 2.0, "medium": 1.0, "high": 0.3}

TRAVEL_INTENSITY = {"rarely": 2, "occasional": 5, "frequent": 8}
DEFAULT_TRAVEL_INTENSITY = 5

LOUNGE_IMPORTANCE = {"not_important": 2, "nice_to_have": 5, "very_important": 9}
DEFAULT_LOUNGE_IMPORTANCE = 5

METRO_CITIES = ("Mumbai", "Delhi", "Bangalore", "Hyderabad", "Chennai", "Pune", "Kolkata")
AMEX_RISK_METRO = 0.2
AMEX_RISK_NON_METRO = 0.6

SELF_REPORT_CONFIDENCE = 0.6
NO_DATA_CONFIDENCE = 0.5
STATEMENT_BASE_CONFIDENCE = 0.6
STATEMENT_CONFIDENCE_PER_MONTH = 0.05
STATEMENT_MAX_CONFIDENCE = 0.95


def _key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def pay_in_full_score(habit: Optional[str]) -> float:
    return PAY_IN_FULL_SCORES.get(_key(habit), DEFAULT_PAY_IN_FULL_SCORE)


def fee_tolerance_amount(preferences: UserPreferences, profile: UserProfile) -> float:
    band = _key(preferences.fee_tolerance_band)
    if band in FEE_TOLERANCE_AMOUNTS:
        return float(FEE_TOLERANCE_AMOUNTS[band])

    sensitivity = _key(preferences.fee_sensitivity)
    if not band and sensitivity in FEE_SENSITIVITY_MULTIPLIERS:
        base = FEE_SENSITIVITY_BASE_BY_INCOME.get(
            (profile.income_band or "").strip(), FEE_SENSITIVITY_BASE_BY_INCOME["50000-100000"]
        )
        return base * FEE_SENSITIVITY_MULTIPLIERS[sensitivity]

    return float(DEFAULT_FEE_TOLERANCE)


def amex_acceptance_risk(city: Optional[str]) -> float:
    """Amex acceptance is assumed worse outside the metro list."""
    city_key = _key(city)
    if city_key and any(metro.lower() in city_key for metro in METRO_CITIES):
        return AMEX_RISK_METRO
    return AMEX_RISK_NON_METRO


def travel_intensity(frequency: Optional[str]) -> float:
    return float(TRAVEL_INTENSITY.get(_key(frequency), DEFAULT_TRAVEL_INTENSITY))


def lounge_importance(importance: Optional[str]) -> float:
    return float(LOUNGE_IMPORTANCE.get(_key(importance), DEFAULT_LOUNGE_IMPORTANCE))


def months_of_coverage(transactions: Iterable[Transaction]) -> int:
    """
    Calendar months spanned by the transactions, inclusive.

    Example:
        Jan 15 -> Mar 2 of the same year spans 3 months.
    """
    dates = [txn.date for txn in transactions]
    if not dates:
        return 0
    first, last = min(dates), max(dates)
    return max(1, (last.month - first.month) + 12 * (last.year - first.year) + 1)


def statement_confidence(months: int) -> float:
    return min(STATEMENT_MAX_CONFIDENCE, STATEMENT_BASE_CONFIDENCE + STATEMENT_CONFIDENCE_PER_MONTH * months)


# =============================================================================
# Deriver
# =============================================================================

class FeatureDeriver:
    """
    Builds UserFeatureVector records.

    Pattern: the normalizer is injected so callers can observe unmapped
    category events from transaction feeds.
    """

    def __init__(self, normalizer: Optional[CategoryNormalizer] = None):
        self.normalizer = normalizer or default_normalizer

    def derive(
        self,
        profile: Optional[UserProfile] = None,
        preferences: Optional[UserPreferences] = None,
        transactions: Optional[Iterable[Transaction]] = None,
        self_reported: Optional[SelfReportedEstimate] = None,
        options: Optional[DeriveOptions] = None,
    ) -> UserFeatureVector:
        profile = profile or UserProfile()
        preferences = preferences or UserPreferences()
        options = options or DeriveOptions()

        spending = spending_transactions(transactions or [])
        if spending:
            spend = self._from_statements(spending)
        elif self_reported is not None:
            spend = self._from_self_report(self_reported)
        else:
            spend = self._neutral()

        shares = spend["category_shares"]
        forex_pct = min(100.0, shares[CanonicalCategory.FOREX] * 100)

        features = UserFeatureVector(
            pay_in_full_score=_first_set(options.pay_in_full_score, pay_in_full_score(profile.pay_in_full_habit)),
            fee_tolerance_amount=_first_set(options.fee_tolerance_amount, fee_tolerance_amount(preferences, profile)),
            travel_intensity=travel_intensity(preferences.travel_frequency),
            lounge_importance=lounge_importance(preferences.lounge_importance),
            forex_spend_pct=forex_pct,
            amex_acceptance_risk=_first_set(options.amex_acceptance_risk, amex_acceptance_risk(profile.city)),
            reward_preference=preferences.reward_preference,
            **spend,
        )
        logger.info(
            "Derived features: source=%s confidence=%.2f monthly_spend=%.2f months=%s",
            features.source.value,
            features.confidence,
            features.total_monthly_spend,
            features.months_of_coverage,
        )
        return features

    def _from_statements(self, transactions: list[Transaction]) -> dict:
        totals = empty_category_map()
        for txn in transactions:
            totals[self.normalizer.normalize(txn.category)] += txn.amount

        total = sum(totals.values())
        months = months_of_coverage(transactions)
        return {
            "source": FeatureSource.STATEMENTS,
            "total_monthly_spend": total / months,
            "category_spend": {category: amount / months for category, amount in totals.items()},
            "category_shares": {category: amount / total for category, amount in totals.items()},
            "confidence": statement_confidence(months),
            "months_of_coverage": months,
            "transaction_count": len(transactions),
            "last_statement_date": max(txn.date for txn in transactions),
        }

    def _from_self_report(self, estimate: SelfReportedEstimate) -> dict:
        shares = self.normalizer.shares_from_percentages(estimate.spend_split)
        return {
            "source": FeatureSource.SELF_REPORT,
            "total_monthly_spend": estimate.monthly_spend,
            "category_spend": {category: share * estimate.monthly_spend for category, share in shares.items()},
            "category_shares": shares,
            "confidence": SELF_REPORT_CONFIDENCE,
            "months_of_coverage": 0,
        }

    @staticmethod
    def _neutral() -> dict:
        return {
            "source": FeatureSource.SELF_REPORT,
            "total_monthly_spend": 0.0,
            "category_spend": empty_category_map(),
            "category_shares": empty_category_map(),
            "confidence": NO_DATA_CONFIDENCE,
            "months_of_coverage": 0,
        }


def _first_set(override: Optional[float], fallback: float) -> float:
    return fallback if override is None else override


def derive(
    profile: Optional[UserProfile] = None,
    preferences: Optional[UserPreferences] = None,
    transactions: Optional[Iterable[Transaction]] = None,
    self_reported: Optional[SelfReportedEstimate] = None,
    options: Optional[DeriveOptions] = None,
) -> UserFeatureVector:
    return FeatureDeriver().derive(profile, preferences, transactions, self_reported, options)
