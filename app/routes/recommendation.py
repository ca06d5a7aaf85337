from __future__ import annotations

from fastapi import APIRouter, Depends

from app.dependencies.services import get_recommendation_service
from app.schemas.engine_schemas import RecommendationRequest, RecommendationResponse
from app.services.recommendation_service import RecommendationService


router = APIRouter(prefix="/api/v1", tags=["recommendation"])


@router.post("/recommendations", response_model=RecommendationResponse)
def get_recommendations(
    request: RecommendationRequest,
    service: RecommendationService = Depends(get_recommendation_service),
):
    """Rank catalog cards for a user.

    Must-have behavior:
    - Derives features from the payload (statements first, then self-report).
    - Scores every catalog card and returns the top_n, best first.
    - Weight overrides must name all seven criteria (400 otherwise).
    """
    features, ranked = service.recommend(
        profile=request.profile,
        preferences=request.preferences,
        transactions=request.transactions,
        self_reported=request.self_reported,
        options=request.options,
        mode=request.mode,
        weights=request.weights,
        top_n=request.top_n,
    )
    return RecommendationResponse(features=features, ranked_cards=ranked)
