from .catalog_service import CatalogService
from .errors import ServiceError
from .inference_service import OpenAIMerchantInference
from .knowledge_store import SqlMerchantKnowledgeStore
from .recommendation_service import RecommendationService
from .seed_service import seed_merchant_knowledge

__all__ = [
    "CatalogService",
    "ServiceError",
    "OpenAIMerchantInference",
    "SqlMerchantKnowledgeStore",
    "RecommendationService",
    "seed_merchant_knowledge",
]
