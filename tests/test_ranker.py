"""
Unit tests for cardmatch/ranker.py
"""

import pytest
from pydantic import ValidationError

from cardmatch.features import derive
from cardmatch.models import CardBenefit, CardFeatures, SelfReportedEstimate, UserPreferences
from cardmatch.ranker import rank


def _card(card_id, benefits=(), annual_fee=0):
    return CardFeatures(
        card_id=card_id,
        name=card_id.upper(),
        issuer="Test Bank",
        network="Visa",
        annual_fee=annual_fee,
        benefits=[CardBenefit(benefit_key=key, benefit_type="rewards") for key in benefits],
    )


@pytest.fixture
def features():
    return derive(
        preferences=UserPreferences(travel_frequency="rarely"),
        self_reported=SelfReportedEstimate(monthly_spend=30000, spend_split={"Dining": 70, "Fuel": 30}),
    )


@pytest.fixture
def catalog():
    return [
        _card("plain"),
        _card("dining", benefits=["cashback_dining", "food_delivery_boost"]),
        _card("expensive", benefits=["cashback_dining"], annual_fee=50000),
        _card("plain-twin"),
        _card("fuel", benefits=["cashback_fuel"]),
    ]


class TestRank:
    def test_best_card_first(self, features, catalog):
        results = rank(features, catalog)

        assert results[0].card_id == "dining"
        scores = [result.score for result in results]
        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_catalog_order(self, features, catalog):
        results = rank(features, catalog)
        ids = [result.card_id for result in results]

        assert ids.index("plain") < ids.index("plain-twin")

    def test_top_n_truncates(self, features, catalog):
        assert len(rank(features, catalog, top_n=2)) == 2
        assert len(rank(features, catalog, top_n=50)) == len(catalog)
        assert rank(features, catalog, top_n=0) == []

    def test_negative_top_n_rejected(self, features, catalog):
        with pytest.raises(ValueError):
            rank(features, catalog, top_n=-1)

    def test_empty_catalog(self, features):
        assert rank(features, []) == []

    def test_ranking_is_deterministic(self, features, catalog):
        assert rank(features, catalog) == rank(features, catalog)

    def test_bad_weights_fail_before_scoring(self, features, catalog):
        with pytest.raises(ValidationError):
            rank(features, catalog, weights={"travelFit": 1.0})
