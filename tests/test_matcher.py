"""
Unit tests for cardmatch/matcher.py and cardmatch/config.py
Tests each sub-score, the weighted total and the explanation lines.
"""

import pytest
from pydantic import ValidationError

from cardmatch.config import DEFAULT_WEIGHTS, WEIGHT_PRESETS, RecommendationMode, ScoringWeights, resolve_weights
from cardmatch.features import derive
from cardmatch.matcher import (
    category_alignment_score,
    eligibility_score,
    fee_affordability_score,
    network_acceptance_score,
    reward_relevance_score,
    round_half_up,
    score,
    travel_fit_score,
)
from cardmatch.models import CardBenefit, CardEligibility, CardFeatures, SelfReportedEstimate, UserPreferences, UserProfile



def make_card(card_id="card", benefits=(), annual_fee=0, network="Visa", **kwargs):
    return CardFeatures(
        card_id=card_id,
        name=kwargs.pop("name", card_id.title()),
        issuer=kwargs.pop("issuer", "Test Bank"),
        network=network,
        annual_fee=annual_fee,
        benefits=[CardBenefit(benefit_key=key, benefit_type="rewards") for key in benefits],
        **kwargs,
    )


def make_features(travel="rarely", spend=None, city=None, **prefs):
    spend = spend or {}
    total = sum(spend.values())
    estimate = SelfReportedEstimate(
        monthly_spend=total,
        spend_split={label: amount / total * 100 for label, amount in spend.items()} if total else {},
    )
    return derive(
        profile=UserProfile(city=city),
        preferences=UserPreferences(travel_frequency=travel, **prefs),
        self_reported=estimate,
    )


class TestFeeAffordability:
    def test_zero_fee_is_always_100(self):
        assert fee_affordability_score(0, 0) == 100
        assert fee_affordability_score(0, 0, "Spend ₹1L") == 100

    def test_step_function(self):
        assert fee_affordability_score(5000, 2500) == 100
        assert fee_affordability_score(5000, 5000) == 80
        assert fee_affordability_score(5000, 7500) == 60
        assert fee_affordability_score(5000, 10000) == 40
        assert fee_affordability_score(5000, 10001) == 20

    def test_waiver_halves_effective_fee(self):
        assert fee_affordability_score(1000, 2000) == 40
        assert fee_affordability_score(1000, 2000, "Spend ₹2L in a year") == 80

    def test_zero_tolerance_with_fee(self):
        assert fee_affordability_score(0, 499) == 20


class TestCategoryAlignment:
    def test_dining_heavy_user_with_dining_card_scores_100(self):
        features = make_features(spend={"Dining": 10000})
        card = make_card(benefits=["cashback_dining"])
        assert category_alignment_score(features.category_spend, card) == 100

    def test_partial_alignment(self):
        features = make_features(spend={"Dining": 6000, "Fuel": 4000})
        card = make_card(benefits=["cashback_fuel"])
        assert category_alignment_score(features.category_spend, card) == pytest.approx(40)

    def test_zero_spend_is_neutral(self):
        features = make_features()
        assert category_alignment_score(features.category_spend, make_card(benefits=["cashback_dining"])) == 50

    def test_general_cashback_floor(self):
        features = make_features(spend={"Fuel": 1000})
        card = make_card(benefits=["cashback_general"])
        assert category_alignment_score(features.category_spend, card) == 60


class TestTravelFit:
    def test_low_travel_bypasses_perks(self):
        features = make_features(travel="rarely")
        assert travel_fit_score(features, make_card()) == 100

    def test_travel_points_accumulate_and_cap(self):
        features = make_features(travel="frequent")
        card = make_card(
            benefits=["domestic_lounge", "intl_lounge", "priority_pass", "flight_discount", "hotel_discount", "travel_insurance"]
        )
        assert travel_fit_score(features, card) == 90
        assert travel_fit_score(features, make_card(benefits=["priority_pass"])) == 25

    def test_forex_bonus_needs_forex_spend(self):
        card = make_card(benefits=["forex_markup_zero"])
        no_forex = make_features(travel="frequent", spend={"Dining": 1000})
        heavy_forex = make_features(travel="frequent", spend={"Dining": 800, "International": 200})

        assert travel_fit_score(no_forex, card) == 0
        assert travel_fit_score(heavy_forex, card) == 20

    def test_low_markup_bonus_requires_markup_at_most_two(self):
        features = make_features(travel="frequent", spend={"International": 100})
        assert travel_fit_score(features, make_card(benefits=["forex_markup_low"], forex_markup_pct=2.0)) == 15
        assert travel_fit_score(features, make_card(benefits=["forex_markup_low"], forex_markup_pct=3.5)) == 0


class TestNetworkAndEligibility:
    def test_network_scores(self):
        assert network_acceptance_score("Visa", 0.6) == 100
        assert network_acceptance_score("mastercard", 0.6) == 100
        assert network_acceptance_score("RuPay", 0.6) == 95
        assert network_acceptance_score("Diners Club", 0.6) == 80

    def test_amex_uses_acceptance_risk(self):
        assert network_acceptance_score("American Express", 0.2) == pytest.approx(80)
        assert network_acceptance_score("Amex", 0.6) == pytest.approx(40)

    def test_missing_side_is_optimistic(self):
        assert eligibility_score(None, UserProfile()) == 80
        assert eligibility_score(CardEligibility(min_income=100000), None) == 80

    def test_penalties_stack(self):
        eligibility = CardEligibility(min_income=100000, min_age=25, cities=["Mumbai"])
        profile = UserProfile(income_band="25000-50000", age_range="18-25", city="Indore")
        assert eligibility_score(eligibility, profile) == 10

    def test_city_comparison_is_case_insensitive(self):
        eligibility = CardEligibility(cities=["Mumbai"])
        assert eligibility_score(eligibility, UserProfile(city=" mumbai ")) == 100

    def test_unknown_income_band_uses_default_midpoint(self):
        eligibility = CardEligibility(min_income=60000)
        assert eligibility_score(eligibility, UserProfile(income_band="unknown")) == 60


class TestRewardRelevance:
    def test_base_without_matches(self):
        assert reward_relevance_score(make_features(), make_card(benefits=["cashback_dining"])) == 50

    def test_each_matching_rule_adds_fifteen(self):
        features = make_features(spend={"Dining": 500, "Groceries": 500, "Fuel": 500})
        card = make_card(benefits=["cashback_dining", "cashback_grocery", "cashback_fuel", "food_delivery_boost"])
        assert reward_relevance_score(features, card) == 100


class TestWeights:
    def test_presets_sum_to_one(self):
        for weights in WEIGHT_PRESETS.values():
            assert sum(weights.model_dump().values()) == pytest.approx(1.0)

    def test_explicit_weights_win_over_mode(self):
        custom = DEFAULT_WEIGHTS.model_copy(update={"travelFit": 0.5})
        assert resolve_weights(custom, RecommendationMode.GOAL_BASED) is custom

    def test_mode_preset(self):
        assert resolve_weights(mode="quick_estimate") == WEIGHT_PRESETS[RecommendationMode.QUICK_ESTIMATE]

    def test_incomplete_override_rejected(self):
        with pytest.raises(ValidationError):
            resolve_weights({"feeAffordability": 1.0})

    def test_non_positive_override_rejected(self):
        weights = DEFAULT_WEIGHTS.model_dump()
        weights["eligibility"] = 0
        with pytest.raises(ValidationError):
            ScoringWeights.model_validate(weights)

    def test_unknown_criterion_rejected(self):
        weights = DEFAULT_WEIGHTS.model_dump()
        weights["vibes"] = 0.1
        with pytest.raises(ValidationError):
            ScoringWeights.model_validate(weights)


class TestScore:
    def test_round_half_up(self):
        assert round_half_up(58.5) == 59
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4999) == 2

    def test_neutral_user_plain_card(self):
        """
        fee 100, reward 50, travel 0, category 50, network 100,
        eligibility 80, loyalty 44 -> 58.7 -> 59 with default weights.
        """
        features = derive(preferences=UserPreferences(travel_frequency="occasional"))
        result = score(features, make_card(card_id="plain", name="Plain"))

        assert result.score == 59
        assert result.card_name == "Plain"
        assert result.breakdown["feeAffordability"] == 100
        assert result.breakdown["travelFit"] == 0
        assert result.breakdown["loyaltyPotential"] == pytest.approx(44)
        assert result.explanations == ["Fee of ₹0 fits your budget"]

    def test_scores_and_breakdown_stay_in_bounds(self):
        features = make_features(travel="frequent", spend={"Dining": 90000, "International": 10000})
        card = make_card(
            benefits=["cashback_dining", "food_delivery_boost", "priority_pass", "forex_markup_zero", "milestone_bonus"],
            annual_fee=50000,
        )
        result = score(features, card, UserProfile(income_band="0-25000"))

        assert 0 <= result.score <= 100
        assert all(0 <= value <= 100 for value in result.breakdown.values())
        assert set(result.breakdown) == set(ScoringWeights.model_fields)

    def test_weights_change_total(self):
        features = make_features(travel="frequent")
        card = make_card(benefits=["priority_pass"])

        fee_heavy = DEFAULT_WEIGHTS.model_copy(
            update={"feeAffordability": 0.94, "rewardRelevance": 0.01, "travelFit": 0.01, "categoryAlignment": 0.01,
                    "networkAcceptance": 0.01, "eligibility": 0.01, "loyaltyPotential": 0.01}
        )
        assert score(features, card, weights=fee_heavy).score > score(features, card).score

    def test_explanations(self):
        features = make_features(travel="frequent", city="Indore", spend={"Dining": 1000})
        card = make_card(
            benefits=["cashback_dining", "food_delivery_boost", "domestic_lounge", "intl_lounge", "priority_pass", "hotel_discount"],
            network="American Express",
            annual_fee=20000,
        )
        result = score(features, card, UserProfile(income_band="0-25000", age_range="18-25"))
        lines = result.explanations

        assert "Higher fee (₹20,000) compared to your preference" in lines
        assert "Strong rewards match your spending patterns" in lines
        assert "Excellent travel benefits for your frequent travel" in lines
        assert "Benefits align with your top spending categories" in lines
        assert "American Express has limited acceptance in your area" in lines

    def test_waiver_explanation(self):
        features = make_features()
        card = make_card(annual_fee=1000, waiver_rule="Spend ₹1L in a year")
        assert "Fee of ₹1,000 fits your budget with easy waiver" in score(features, card).explanations

    def test_deterministic(self):
        features = make_features(travel="frequent", spend={"Dining": 500, "Fuel": 500})
        card = make_card(benefits=["cashback_fuel", "domestic_lounge"], annual_fee=999)
        assert score(features, card) == score(features, card)
