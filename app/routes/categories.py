from fastapi import APIRouter

from app.schemas.engine_schemas import CategoryResponse
from cardmatch.categories import CANONICAL_CATEGORIES, display_name

router = APIRouter(
    prefix="/api/v1/categories",
    tags=["categories"]
)


@router.get("", response_model=list[CategoryResponse])
def list_categories():
    return [
        CategoryResponse(key=category.value, display_name=display_name(category))
        for category in CANONICAL_CATEGORIES
    ]
