from __future__ import annotations

import json
import logging
from typing import Iterable, Mapping, Optional

from pydantic import ValidationError

from app.services.catalog_service import CatalogService
from app.services.errors import ServiceError
from cardmatch.config import RecommendationMode, resolve_weights
from cardmatch.features import FeatureDeriver
from cardmatch.models import (
    DeriveOptions,
    MatchResult,
    SelfReportedEstimate,
    Transaction,
    UserFeatureVector,
    UserPreferences,
    UserProfile,
)
from cardmatch.ranker import DEFAULT_TOP_N, rank

logger = logging.getLogger(__name__)


class RecommendationService:
    def __init__(self, catalog: CatalogService, deriver: Optional[FeatureDeriver] = None):
        self.catalog = catalog
        self.deriver = deriver or FeatureDeriver()

    def derive_features(
        self,
        *,
        profile: Optional[UserProfile] = None,
        preferences: Optional[UserPreferences] = None,
        transactions: Optional[Iterable[Transaction]] = None,
        self_reported: Optional[SelfReportedEstimate] = None,
        options: Optional[DeriveOptions] = None,
    ) -> UserFeatureVector:
        return self.deriver.derive(profile, preferences, transactions, self_reported, options)

    def recommend(
        self,
        *,
        profile: Optional[UserProfile] = None,
        preferences: Optional[UserPreferences] = None,
        transactions: Optional[Iterable[Transaction]] = None,
        self_reported: Optional[SelfReportedEstimate] = None,
        options: Optional[DeriveOptions] = None,
        mode: Optional[RecommendationMode] = None,
        weights: Optional[Mapping[str, float]] = None,
        top_n: int = DEFAULT_TOP_N,
    ) -> tuple[UserFeatureVector, list[MatchResult]]:
        """Return (features, ranked_cards) for one user.

        Rules:
        - Features come from statements when any spending transaction is present,
          otherwise from the self-reported estimate.
        - Explicit weights win over the mode preset and must name all seven criteria.
        - Every catalog card is scored; ties keep catalog order.
        """
        if top_n < 0:
            raise ServiceError(400, "VALIDATION_ERROR", "Invalid request payload.", {"field": "top_n", "reason": "Must be >= 0."})

        try:
            resolved = resolve_weights(weights, mode)
        except ValidationError as e:
            raise ServiceError(
                400,
                "VALIDATION_ERROR",
                "Invalid scoring weights.",
                {"field": "weights", "errors": json.loads(e.json())},
            )

        features = self.derive_features(
            profile=profile,
            preferences=preferences,
            transactions=transactions,
            self_reported=self_reported,
            options=options,
        )
        ranked = rank(features, self.catalog.get_catalog(), profile, top_n, resolved)
        logger.info(
            "Ranked %d cards (mode=%s, top=%s)",
            len(ranked),
            RecommendationMode(mode).value if mode else "default",
            ranked[0].card_id if ranked else None,
        )
        return features, ranked
