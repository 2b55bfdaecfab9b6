"""
AI product recommendation endpoint.

The model is asked for a JSON list of products, dosages and reasons.
When it can't deliver, the response still has the same shape: a single
entry named "Error" explaining that recommendations are unavailable.
"""

import logging
from typing import Optional

from fastapi import APIRouter, status
from pydantic import Field

from ...core.recommendations.advisor import build_request_for_pool
from ...core.recommendations.models import (
    AlgaeLevel,
    RecommendationRequest,
    RecommendationResponse,
)
from ..dependencies import AuthenticatedUser, ProductAdvisorDep, RecordRepositoryDep, UserIdDep
from ..schemas import CamelModel

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class RecommendationRequestModel(CamelModel):
    """
    Pool conditions for a recommendation.

    Pass clientId and poolId to fill size, type, last treatment and pH
    from a stored pool; explicit values still win.
    """
    pool_size: Optional[float] = Field(None, description="Pool volume in liters")
    pool_type: Optional[str] = None
    last_treatment: Optional[str] = None
    algae_level: AlgaeLevel
    ph_level: Optional[float] = None
    client_id: Optional[str] = None
    pool_id: Optional[str] = None


class RecommendationModel(CamelModel):
    product_name: str
    dosage: str
    reason: str


class RecommendationResponseModel(CamelModel):
    recommended_products: list[RecommendationModel]

    @classmethod
    def from_response(cls, response: RecommendationResponse) -> "RecommendationResponseModel":
        return cls(recommended_products=[
            RecommendationModel(
                product_name=item.product_name,
                dosage=item.dosage,
                reason=item.reason,
            )
            for item in response.recommended_products
        ])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=RecommendationResponseModel,
    status_code=status.HTTP_200_OK,
    summary="Get product recommendations",
    description="Invalid input is rejected with 422 before the model is called.",
)
async def recommend_products(
    request: RecommendationRequestModel,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
    advisor: ProductAdvisorDep,
) -> RecommendationResponseModel:
    if request.client_id and request.pool_id:
        pool = repository.get_pool(user_id, request.client_id, request.pool_id)
        recommendation_request = build_request_for_pool(
            pool,
            last_treatment=request.last_treatment,
            algae_level=request.algae_level,
            ph_level=request.ph_level,
        )
        if request.pool_size is not None:
            recommendation_request.pool_size = request.pool_size
        if request.pool_type:
            recommendation_request.pool_type = request.pool_type
    else:
        recommendation_request = RecommendationRequest(
            pool_size=request.pool_size,
            pool_type=request.pool_type or "",
            last_treatment=request.last_treatment or "",
            algae_level=request.algae_level,
            ph_level=request.ph_level,
        )

    logger.info(
        "Requesting recommendations",
        extra={"user_id": user_id, "pool_id": request.pool_id},
    )

    response = await advisor.recommend(recommendation_request)
    return RecommendationResponseModel.from_response(response)
