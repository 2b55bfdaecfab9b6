"""
Request and response shapes for AI product recommendations.

Neither side is ever persisted: a request is built per submission and the
response is discarded once it has been shown.
"""

from dataclasses import dataclass, field
from enum import Enum


ERROR_PRODUCT_NAME = "Error"


class AlgaeLevel(Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class RecommendationRequest:
    """Pool conditions the technician reports for a recommendation."""
    pool_size: float  # liters
    pool_type: str
    last_treatment: str
    algae_level: AlgaeLevel
    ph_level: float


@dataclass
class Recommendation:
    product_name: str
    dosage: str
    reason: str


@dataclass
class RecommendationResponse:
    recommended_products: list[Recommendation] = field(default_factory=list)

    @classmethod
    def unavailable(cls) -> "RecommendationResponse":
        """The response given whenever the generator can't be used."""
        return cls(recommended_products=[
            Recommendation(
                product_name=ERROR_PRODUCT_NAME,
                dosage="N/A",
                reason=(
                    "Could not generate recommendations at this time. "
                    "Recommendations are temporarily unavailable, please try again later."
                ),
            )
        ])

    @property
    def is_error(self) -> bool:
        return any(
            item.product_name == ERROR_PRODUCT_NAME
            for item in self.recommended_products
        )
