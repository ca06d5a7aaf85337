from fastapi import APIRouter, Depends

from app.dependencies.services import get_recommendation_service
from app.schemas.engine_schemas import DeriveFeaturesRequest
from app.services.recommendation_service import RecommendationService
from cardmatch.models import UserFeatureVector

router = APIRouter(
    prefix="/api/v1/features",
    tags=["features"]
)


@router.post("/derive", response_model=UserFeatureVector)
def derive_features(
    request: DeriveFeaturesRequest,
    service: RecommendationService = Depends(get_recommendation_service),
) -> UserFeatureVector:
    """Build the user feature vector from statements or a self-reported estimate."""
    return service.derive_features(
        profile=request.profile,
        preferences=request.preferences,
        transactions=request.transactions,
        self_reported=request.self_reported,
        options=request.options,
    )
