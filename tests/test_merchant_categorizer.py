"""
Test Suite: Tiered merchant categorization

Covers the three lookup tiers against a real SQLite knowledge store:
1. Exact match returns the stored answer
2. Fuzzy match applies the 0.8 confidence penalty
3. Inference answers are learned when confident, and failures degrade to "other"
"""

import unittest
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.db import Base
from app.models.merchant_intelligence import MerchantIntelligence
from app.services.knowledge_store import SqlMerchantKnowledgeStore
from cardmatch.categories import CanonicalCategory
from cardmatch.merchants import InferenceServiceError, MerchantCategorizer, derive_keywords, merchant_key
from cardmatch.models import (
    CategorizationContext,
    CategorizationSource,
    InferenceResult,
    MerchantRecord,
    MerchantType,
)


def _swiggy_answer(*args, **kwargs):
    return InferenceResult(
        category="food_dining",
        subcategory="food_delivery",
        merchant_normalized="Swiggy",
        confidence=0.9,
        reasoning="Food delivery platform",
    )


class TestMerchantKeys:
    def test_merchant_key_trims_and_lowercases(self):
        assert merchant_key("  SWIGGY   Bangalore ") == "swiggy bangalore"
        assert merchant_key("") == ""

    def test_derive_keywords(self):
        assert derive_keywords("swiggy*order", "Swiggy Instamart") == {"swiggy*order", "swiggy", "instamart"}


class MerchantCategorizerTests(unittest.TestCase):
    def setUp(self):
        engine = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=engine)
        self.Session = sessionmaker(bind=engine)
        self.db = self.Session()

        self.store = SqlMerchantKnowledgeStore(self.db)
        self.inference = MagicMock()
        self.inference.infer.side_effect = _swiggy_answer
        self.categorizer = MerchantCategorizer(self.store, self.inference)

    def tearDown(self):
        self.db.close()

    def _seed(self, raw_key, normalized, category, confidence=0.95, keywords=None):
        self.store.insert_missing([
            MerchantRecord(
                raw_key=raw_key,
                normalized_name=normalized,
                canonical_name=normalized,
                category=category,
                confidence=confidence,
                keywords=keywords if keywords is not None else derive_keywords(raw_key, normalized),
                merchant_type=MerchantType.SEED,
            )
        ])

    def test_unknown_merchant_is_learned_then_found_exactly(self):
        # First call: inference tier, learned at confidence 0.9
        first = self.categorizer.categorize("Swiggy")
        self.assertEqual(first.category, CanonicalCategory.FOOD_DINING)
        self.assertEqual(first.source, CategorizationSource.AI_POWERED)
        self.assertEqual(first.reasoning, "Food delivery platform")

        # Second call: exact tier, no inference call
        second = self.categorizer.categorize("swiggy")
        self.assertEqual(second.category, CanonicalCategory.FOOD_DINING)
        self.assertEqual(second.source, CategorizationSource.DATABASE_EXACT)
        self.assertAlmostEqual(second.confidence, 0.9)
        self.assertEqual(self.inference.infer.call_count, 1)

        stored = self.store.get("swiggy")
        self.assertEqual(stored.merchant_type, MerchantType.AI_LEARNED)
        self.assertEqual(stored.usage_count, 2)

    def test_exact_match_is_case_and_whitespace_insensitive(self):
        self._seed("zomato", "Zomato", CanonicalCategory.FOOD_DINING)

        result = self.categorizer.categorize("  ZOMATO ")

        self.assertEqual(result.source, CategorizationSource.DATABASE_EXACT)
        self.assertEqual(result.canonical_name, "Zomato")
        self.inference.infer.assert_not_called()

    def test_fuzzy_match_applies_penalty(self):
        self._seed("bigbasket", "BigBasket", CanonicalCategory.GROCERIES, confidence=0.9)

        result = self.categorizer.categorize("BIGBASKET BANGALORE")

        self.assertEqual(result.source, CategorizationSource.DATABASE_FUZZY)
        self.assertEqual(result.category, CanonicalCategory.GROCERIES)
        self.assertAlmostEqual(result.confidence, 0.72)
        self.inference.infer.assert_not_called()

    def test_fuzzy_match_by_keyword(self):
        self._seed("hpcl fuel station", "HP Petrol Pump", CanonicalCategory.FUEL, keywords={"hpcl fuel station", "hpcl"})

        result = self.categorizer.categorize("HPCL")

        self.assertEqual(result.source, CategorizationSource.DATABASE_FUZZY)
        self.assertEqual(result.category, CanonicalCategory.FUEL)

    def test_fuzzy_prefers_first_stored_candidate(self):
        self._seed("amazon shopping", "Amazon Shopping", CanonicalCategory.SHOPPING_ONLINE, keywords=set())
        self._seed("amazon prime video", "Amazon Prime Video", CanonicalCategory.ENTERTAINMENT, keywords=set())

        result = self.categorizer.categorize("amazon")

        self.assertEqual(result.category, CanonicalCategory.SHOPPING_ONLINE)

    def test_other_records_are_skipped(self):
        self._seed("mystery", "Mystery", CanonicalCategory.OTHER)

        result = self.categorizer.categorize("mystery")

        self.assertEqual(result.source, CategorizationSource.AI_POWERED)
        self.inference.infer.assert_called_once()

    def test_low_confidence_answer_is_not_learned(self):
        self.inference.infer.side_effect = None
        self.inference.infer.return_value = InferenceResult(
            category="shopping_online", merchant_normalized="Kiosk 42", confidence=0.5
        )

        result = self.categorizer.categorize("KIOSK 42")

        self.assertEqual(result.source, CategorizationSource.AI_POWERED)
        self.assertAlmostEqual(result.confidence, 0.5)
        self.assertIsNone(self.store.get("kiosk 42"))

    def test_inferred_category_alias_is_normalized(self):
        self.inference.infer.side_effect = None
        self.inference.infer.return_value = InferenceResult(
            category="Dining Out", merchant_normalized="Barbeque Nation", confidence=0.85
        )

        result = self.categorizer.categorize("BARBEQUE NATION")

        self.assertEqual(result.category, CanonicalCategory.FOOD_DINING)
        self.assertEqual(self.store.get("barbeque nation").category, CanonicalCategory.FOOD_DINING)

    def test_inference_failure_falls_back(self):
        self.inference.infer.side_effect = InferenceServiceError("timeout")

        result = self.categorizer.categorize("Unknown Vendor 9")

        self.assertEqual(result.category, CanonicalCategory.OTHER)
        self.assertEqual(result.confidence, 0.0)
        self.assertEqual(result.source, CategorizationSource.FALLBACK)
        self.assertIsNone(self.store.get("unknown vendor 9"))

    def test_context_is_passed_to_inference(self):
        context = CategorizationContext(amount=450.0, transaction_type="debit")

        self.categorizer.categorize("Swiggy", context)

        self.inference.infer.assert_called_once_with("Swiggy", context)

    def test_empty_name_rejected(self):
        with self.assertRaises(ValueError):
            self.categorizer.categorize("   ")

    def test_correction_overrides_learned_answer(self):
        self.categorizer.categorize("Swiggy")

        corrected = self.categorizer.record_correction("SWIGGY", "Groceries", subcategory="instamart")

        self.assertEqual(corrected.category, CanonicalCategory.GROCERIES)
        self.assertEqual(corrected.merchant_type, MerchantType.USER_CORRECTED)
        self.assertEqual(corrected.confidence, 1.0)

        result = self.categorizer.categorize("swiggy")
        self.assertEqual(result.category, CanonicalCategory.GROCERIES)
        self.assertEqual(result.subcategory, "instamart")
        self.assertEqual(result.source, CategorizationSource.DATABASE_EXACT)

    def test_correction_to_unmapped_category_is_rejected(self):
        self.categorizer.categorize("Swiggy")

        with self.assertRaises(ValueError):
            self.categorizer.record_correction("Swiggy", "xyzzy")
        with self.assertRaises(ValueError):
            self.categorizer.record_correction("Swiggy", "Other")

        stored = self.store.get("swiggy")
        self.assertEqual(stored.category, CanonicalCategory.FOOD_DINING)
        self.assertEqual(stored.merchant_type, MerchantType.AI_LEARNED)


class TestCategorizerWithMockStore:
    """Tier routing against a mocked store, as the categorizer sees its collaborators."""

    def test_fuzzy_tier_skipped_when_exact_hits(self):
        store = MagicMock()
        store.find_exact.return_value = MerchantRecord(
            raw_key="ola cabs", normalized_name="Ola Cabs", category=CanonicalCategory.FUEL, confidence=0.9
        )
        categorizer = MerchantCategorizer(store, MagicMock())

        result = categorizer.categorize("Ola Cabs")

        assert result.source == CategorizationSource.DATABASE_EXACT
        store.find_fuzzy.assert_not_called()
        store.record_hit.assert_called_once()

    def test_learning_record_shape(self):
        store = MagicMock()
        store.find_exact.return_value = None
        store.find_fuzzy.return_value = []
        inference = MagicMock()
        inference.infer.side_effect = _swiggy_answer

        MerchantCategorizer(store, inference).categorize("SWIGGY")

        learned = store.upsert_learned.call_args.args[0]
        assert learned.raw_key == "swiggy"
        assert learned.usage_count == 1
        assert learned.merchant_type == MerchantType.AI_LEARNED
        assert learned.confidence == pytest.approx(0.9)
