from .merchants import router as merchants_router
from .features import router as features_router
from .recommendation import router as recommendation_router
from .categories import router as categories_router

__all__ = [
    "merchants_router",
    "features_router",
    "recommendation_router",
    "categories_router",
]
