"""
AI product recommendations: the contract and the advisor service.
"""

from .advisor import (
    ProductAdvisor,
    TextModelClient,
    build_request_for_pool,
    validate_recommendation_request,
)
from .models import (
    ERROR_PRODUCT_NAME,
    AlgaeLevel,
    Recommendation,
    RecommendationRequest,
    RecommendationResponse,
)

__all__ = [
    "ProductAdvisor",
    "TextModelClient",
    "build_request_for_pool",
    "validate_recommendation_request",
    "ERROR_PRODUCT_NAME",
    "AlgaeLevel",
    "Recommendation",
    "RecommendationRequest",
    "RecommendationResponse",
]
