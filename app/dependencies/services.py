from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.dependencies.db import get_db
from app.services.catalog_service import CatalogService
from app.services.inference_service import OpenAIMerchantInference
from app.services.knowledge_store import SqlMerchantKnowledgeStore
from app.services.recommendation_service import RecommendationService
from cardmatch.merchants import MerchantCategorizer


@lru_cache
def get_catalog_service() -> CatalogService:
    # One catalog per process; the JSON file is read on first use.
    return CatalogService()


def get_merchant_categorizer(db: Session = Depends(get_db)) -> MerchantCategorizer:
    # Creates a categorizer over the request's session and the shared LLM client.
    return MerchantCategorizer(SqlMerchantKnowledgeStore(db), OpenAIMerchantInference())


def get_recommendation_service(
    catalog: CatalogService = Depends(get_catalog_service),
) -> RecommendationService:
    return RecommendationService(catalog)
