"""
Product recommendation logic and prompt management.

The advisor owns the request/response contract. The actual chemistry
reasoning is delegated to a text model that is told to answer with a
fixed JSON schema; this module validates what goes out and normalizes
what comes back.

The prompts are here, not in config, because they're core business logic.
"""

import json
import logging
from typing import Optional, Protocol

from ..pools.models import Pool
from ..validation import RecordValidationError, ValidationResult
from .models import (
    AlgaeLevel,
    Recommendation,
    RecommendationRequest,
    RecommendationResponse,
)


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class TextModelClient(Protocol):
    """
    Interface for text-generation clients.

    The advisor doesn't know or care whether this is Claude or a fake
    used in tests.
    """

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Send one prompt and return the model's text reply."""
        ...


class RecommendationParseError(Exception):
    """Raised when the model's reply doesn't match the output schema."""
    pass


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """You are an expert pool maintenance advisor. Based on the pool characteristics you are given, recommend products, their dosage, and the reasoning behind each recommendation.

Ensure the recommendations are safe and effective for the given pool type and conditions. Scale every dosage to the pool volume.

Respond ONLY with a JSON object of this exact shape, with no prose before or after it:
{"recommendedProducts": [{"productName": "...", "dosage": "...", "reason": "..."}]}

Return an empty list if the pool needs no products."""


USER_PROMPT_TEMPLATE = """Pool Size: {pool_size} liters
Pool Type: {pool_type}
Last Treatment: {last_treatment}
Algae Level: {algae_level}
pH Level: {ph_level}"""


# ---------------------------------------------------------------------------
# Input Validation
# ---------------------------------------------------------------------------

MIN_PH = 6.0
MAX_PH = 8.0


def validate_recommendation_request(
    request: RecommendationRequest,
) -> ValidationResult[RecommendationRequest]:
    """Check the form fields a recommendation needs. Every bad field is reported."""
    errors = {}
    if request.pool_size is None or request.pool_size <= 0:
        errors["pool_size"] = "Pool size must be greater than zero."
    if not (request.pool_type or "").strip():
        errors["pool_type"] = "Pool type is required."
    if not (request.last_treatment or "").strip():
        errors["last_treatment"] = "Describe the most recent treatment."
    if request.ph_level is None or not MIN_PH <= request.ph_level <= MAX_PH:
        errors["ph_level"] = f"pH must be between {MIN_PH} and {MAX_PH}."
    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(value=request)


# ---------------------------------------------------------------------------
# Advisor Service
# ---------------------------------------------------------------------------

class ProductAdvisor:
    """
    Builds recommendation requests and forwards them to the text model.

    One attempt per call. Any failure past input validation turns into
    the synthetic "unavailable" response, so callers always get a list.
    Without a text client every valid request gets that response.
    """

    def __init__(self, text_client: Optional[TextModelClient]) -> None:
        self._text_client = text_client

    async def recommend(self, request: RecommendationRequest) -> RecommendationResponse:
        """
        Get product recommendations for one pool.

        Raises RecordValidationError for bad input, before anything is sent.
        Never raises once the request has been dispatched.
        """
        validation = validate_recommendation_request(request)
        if not validation.is_valid:
            raise RecordValidationError(validation.errors)

        if self._text_client is None:
            logger.warning("Recommendations requested but no text model is configured")
            return RecommendationResponse.unavailable()

        user_prompt = USER_PROMPT_TEMPLATE.format(
            pool_size=_format_number(request.pool_size),
            pool_type=request.pool_type.strip(),
            last_treatment=request.last_treatment.strip(),
            algae_level=request.algae_level.value,
            ph_level=_format_number(request.ph_level),
        )

        try:
            raw_response = await self._text_client.complete(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=user_prompt,
            )
            response = self._parse_response(raw_response)
        except Exception as e:
            logger.error(
                "Recommendation generation failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            return RecommendationResponse.unavailable()

        logger.info(
            "Recommendations generated",
            extra={"count": len(response.recommended_products)},
        )
        return response

    def _parse_response(self, raw_response: str) -> RecommendationResponse:
        """Parse the model's JSON reply into a response, or raise."""
        payload = _extract_json_object(raw_response)

        items = payload.get("recommendedProducts", payload.get("recommended_products"))
        if not isinstance(items, list):
            raise RecommendationParseError("Reply has no recommendedProducts list")

        recommendations = []
        for item in items:
            if not isinstance(item, dict):
                raise RecommendationParseError("Recommendation entry is not an object")

            name = _text(item.get("productName", item.get("product_name")))
            if not name:
                # A dosage for an unnamed product is useless to a technician
                continue

            recommendations.append(Recommendation(
                product_name=name,
                dosage=_text(item.get("dosage")),
                reason=_text(item.get("reason")),
            ))

        return RecommendationResponse(recommended_products=recommendations)


def build_request_for_pool(
    pool: Pool,
    last_treatment: Optional[str],
    algae_level: AlgaeLevel,
    ph_level: Optional[float] = None,
) -> RecommendationRequest:
    """
    Fill a request from a stored pool.

    Falls back to the pool's own last treatment and pH reading when the
    form leaves them blank.
    """
    return RecommendationRequest(
        pool_size=pool.volume or 0,
        pool_type=pool.material.value if pool.material else pool.shape.value,
        last_treatment=last_treatment or pool.last_treatment or "",
        algae_level=algae_level,
        ph_level=ph_level if ph_level is not None else pool.ph,
    )


def _extract_json_object(raw_response: str) -> dict:
    text = (raw_response or "").strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise RecommendationParseError("Reply contains no JSON object")

    try:
        payload = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise RecommendationParseError(f"Reply is not valid JSON: {e}")

    if not isinstance(payload, dict):
        raise RecommendationParseError("Reply is not a JSON object")
    return payload


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _format_number(value: float) -> str:
    return f"{value:.10g}"
