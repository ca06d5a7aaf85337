"""
Merchant categorizer.

Resolves a raw merchant name to a canonical category through a tiered lookup:

1. Exact match in the knowledge store (stored confidence)
2. Fuzzy match by keyword or substring (confidence x 0.8)
3. Inference service fallback; confident answers (>= 0.7) are learned so the
   next identical lookup resolves in tier 1

The knowledge store and the inference service are collaborators injected at
construction. Inference failures never propagate: the caller always receives
a usable, if low-confidence, answer.
"""

import logging
from typing import List, Optional, Protocol

from cardmatch.categories import CanonicalCategory
from cardmatch.models import (
    CategorizationContext,
    CategorizationResult,
    CategorizationSource,
    InferenceResult,
    MerchantRecord,
    MerchantType,
)
from cardmatch.normalizer import CategoryNormalizer, default_normalizer

logger = logging.getLogger(__name__)

FUZZY_CONFIDENCE_PENALTY = 0.8
LEARNING_CONFIDENCE_THRESHOLD = 0.7
FUZZY_CANDIDATE_LIMIT = 5


class InferenceServiceError(Exception):
    """Raised by inference services on timeout, transport or parse failure."""


class MerchantKnowledgeStore(Protocol):
    def find_exact(self, raw_key: str) -> Optional[MerchantRecord]: ...

    def find_fuzzy(self, raw_key: str, limit: int = FUZZY_CANDIDATE_LIMIT) -> List[MerchantRecord]: ...

    def record_hit(self, record: MerchantRecord) -> None: ...

    def upsert_learned(self, record: MerchantRecord) -> MerchantRecord: ...

    def upsert_correction(self, record: MerchantRecord) -> MerchantRecord: ...


class MerchantInference(Protocol):
    def infer(self, merchant_name: str, context: Optional[CategorizationContext] = None) -> InferenceResult: ...


def merchant_key(name: str) -> str:
    """Lookup key for a merchant: trimmed and lowercased."""
    return " ".join((name or "").split()).lower()


def derive_keywords(raw_key: str, normalized_name: str) -> set[str]:
    return {raw_key, *normalized_name.lower().split()}


class MerchantCategorizer:
    """
    Tiered merchant categorization.

    Usage:
        categorizer = MerchantCategorizer(store, inference)
        result = categorizer.categorize("SWIGGY*ORDER 1234")
    """

    def __init__(
        self,
        store: MerchantKnowledgeStore,
        inference: MerchantInference,
        normalizer: Optional[CategoryNormalizer] = None,
    ):
        self.store = store
        self.inference = inference
        self.normalizer = normalizer or default_normalizer

    def categorize(
        self,
        merchant_raw_name: str,
        context: Optional[CategorizationContext] = None,
    ) -> CategorizationResult:
        key = merchant_key(merchant_raw_name)
        if not key:
            raise ValueError("merchant name must be non-empty")

        # Tier 1: exact
        exact = self.store.find_exact(key)
        if exact is not None and exact.category != CanonicalCategory.OTHER:
            self.store.record_hit(exact)
            logger.info("Exact merchant match %r -> %s", key, exact.category.value)
            return self._from_record(exact, exact.confidence, CategorizationSource.DATABASE_EXACT)

        # Tier 2: fuzzy, first candidate in store order
        candidates = [
            record
            for record in self.store.find_fuzzy(key, FUZZY_CANDIDATE_LIMIT)
            if record.category != CanonicalCategory.OTHER
        ]
        if candidates:
            best = candidates[0]
            self.store.record_hit(best)
            logger.info(
                "Fuzzy merchant match %r -> %s (%d candidates)", key, best.canonical_name, len(candidates)
            )
            return self._from_record(
                best, best.confidence * FUZZY_CONFIDENCE_PENALTY, CategorizationSource.DATABASE_FUZZY
            )

        # Tier 3: inference
        return self._infer(merchant_raw_name, key, context)

    def record_correction(
        self,
        merchant: str,
        category: str,
        confidence: float = 1.0,
        subcategory: Optional[str] = None,
    ) -> MerchantRecord:
        """Store a user-verified category for a merchant, replacing any learned answer."""
        key = merchant_key(merchant)
        if not key:
            raise ValueError("merchant name must be non-empty")
        resolved = self.normalizer.normalize(category)
        if resolved == CanonicalCategory.OTHER:
            # Exact lookups skip "other" records
            raise ValueError(f"category {category!r} does not map to a spending category")

        record = MerchantRecord(
            raw_key=key,
            normalized_name=merchant.strip(),
            canonical_name=merchant.strip(),
            category=resolved,
            subcategory=subcategory,
            confidence=confidence,
            keywords=derive_keywords(key, merchant),
            merchant_type=MerchantType.USER_CORRECTED,
        )
        logger.info("User correction for %r -> %s", key, record.category.value)
        return self.store.upsert_correction(record)

    def _infer(
        self,
        merchant_raw_name: str,
        key: str,
        context: Optional[CategorizationContext],
    ) -> CategorizationResult:
        try:
            inferred = self.inference.infer(merchant_raw_name.strip(), context)
        except InferenceServiceError as e:
            logger.warning("Merchant inference failed for %r: %s. Using fallback.", key, e)
            return CategorizationResult(
                category=CanonicalCategory.OTHER,
                confidence=0.0,
                source=CategorizationSource.FALLBACK,
            )

        category = self.normalizer.normalize(inferred.category)
        logger.info(
            "Inferred merchant %r -> %s (confidence %.2f)", key, category.value, inferred.confidence
        )

        if inferred.confidence >= LEARNING_CONFIDENCE_THRESHOLD and category != CanonicalCategory.OTHER:
            self.store.upsert_learned(
                MerchantRecord(
                    raw_key=key,
                    normalized_name=inferred.merchant_normalized,
                    canonical_name=inferred.merchant_normalized,
                    category=category,
                    subcategory=inferred.subcategory,
                    confidence=inferred.confidence,
                    usage_count=1,
                    keywords=derive_keywords(key, inferred.merchant_normalized),
                    merchant_type=MerchantType.AI_LEARNED,
                )
            )
            logger.info("Learned merchant %r", inferred.merchant_normalized)

        return CategorizationResult(
            category=category,
            subcategory=inferred.subcategory,
            canonical_name=inferred.merchant_normalized,
            confidence=inferred.confidence,
            source=CategorizationSource.AI_POWERED,
            reasoning=inferred.reasoning,
        )

    @staticmethod
    def _from_record(record: MerchantRecord, confidence: float, source: CategorizationSource) -> CategorizationResult:
        return CategorizationResult(
            category=record.category,
            subcategory=record.subcategory,
            canonical_name=record.canonical_name or record.normalized_name,
            confidence=confidence,
            source=source,
        )
