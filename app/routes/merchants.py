"""
Merchant Routes - categorization and user corrections.

Endpoints:
- POST /api/v1/merchants/categorize - Resolve a raw merchant name to a canonical category
- POST /api/v1/merchants/corrections - Record a user-verified category for a merchant
"""

from fastapi import APIRouter, Depends, status

from app.dependencies.services import get_merchant_categorizer
from app.schemas.engine_schemas import CategorizeRequest, MerchantCorrectionRequest
from cardmatch.merchants import MerchantCategorizer
from cardmatch.models import CategorizationResult, MerchantRecord

router = APIRouter(
    prefix="/api/v1/merchants",
    tags=["merchants"]
)


@router.post("/categorize", response_model=CategorizationResult)
def categorize_merchant(
    request: CategorizeRequest,
    categorizer: MerchantCategorizer = Depends(get_merchant_categorizer),
) -> CategorizationResult:
    """
    Categorize a merchant through the knowledge store, then the LLM.

    Never fails on inference problems: an unreachable model yields
    category "other" with confidence 0 and source "fallback".

    Example:
        POST /api/v1/merchants/categorize
        {"merchant_name": "SWIGGY*ORDER 1234", "context": {"amount": 450.0}}
    """
    return categorizer.categorize(request.merchant_name, request.context)


@router.post("/corrections", response_model=MerchantRecord, status_code=status.HTTP_201_CREATED)
def correct_merchant(
    request: MerchantCorrectionRequest,
    categorizer: MerchantCategorizer = Depends(get_merchant_categorizer),
) -> MerchantRecord:
    return categorizer.record_correction(
        request.merchant_name,
        request.category,
        confidence=request.confidence,
        subcategory=request.subcategory,
    )
