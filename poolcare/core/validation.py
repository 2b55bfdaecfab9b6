"""
Form validation for records.

Each validator returns a ValidationResult instead of raising, so callers
can show every field error at once. A result is either valid (and carries
the checked value) or holds a field -> message mapping.
"""

import re
from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from .pools.models import Client, Pool, Product, Visit, VolumeMode


T = TypeVar("T")

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


@dataclass
class ValidationResult(Generic[T]):
    value: Optional[T] = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class RecordValidationError(Exception):
    """Raised by the write path when a record fails validation."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        super().__init__(
            "; ".join(f"{name}: {message}" for name, message in errors.items())
        )


def _result(value: T, errors: dict[str, str]) -> ValidationResult[T]:
    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(value=value)


def validate_client(client: Client) -> ValidationResult[Client]:
    errors = {}
    if len(client.name.strip()) < 2:
        errors["name"] = "Name must have at least 2 characters."
    if len(client.neighborhood.strip()) < 2:
        errors["neighborhood"] = "Neighborhood must have at least 2 characters."
    if client.email and "@" not in client.email:
        errors["email"] = "Email address is not valid."
    return _result(client, errors)


def validate_pool(pool: Pool) -> ValidationResult[Pool]:
    errors = {}
    if not pool.client_id:
        errors["client_id"] = "Pool must belong to a client."
    if not pool.name.strip():
        errors["name"] = "Name is required."

    for name in ("length", "width", "average_depth", "filter_pressure", "filter_capacity"):
        value = getattr(pool, name)
        if value is not None and value < 0:
            errors[name] = "Must not be negative."

    for name in ("chlorine", "alkalinity", "calcium_hardness"):
        value = getattr(pool, name)
        if value is not None and value < 0:
            errors[name] = "Reading must not be negative."
    if pool.ph is not None and not 0 <= pool.ph <= 14:
        errors["ph"] = "pH must be between 0 and 14."

    if pool.volume_mode == VolumeMode.MANUAL:
        if pool.volume is None or pool.volume <= 0:
            errors["volume"] = "Manual volume must be a positive number of liters."
    return _result(pool, errors)


def validate_visit(visit: Visit) -> ValidationResult[Visit]:
    errors = {}
    if not visit.client_id:
        errors["client_id"] = "Select a client."
    if not visit.pool_id:
        errors["pool_id"] = "Select a pool."
    if not TIME_PATTERN.match(visit.time or ""):
        errors["time"] = "Invalid time format (HH:MM)."
    seen = set()
    for usage in visit.products_used:
        if usage.product_id in seen:
            errors["products_used"] = f"Product {usage.product_id} is listed twice."
        seen.add(usage.product_id)
    return _result(visit, errors)


def validate_product(product: Product) -> ValidationResult[Product]:
    errors = {}
    if len(product.name.strip()) < 2:
        errors["name"] = "Name must have at least 2 characters."
    if product.cost < 0:
        errors["cost"] = "Cost must not be negative."
    if product.stock < 0:
        errors["stock"] = "Stock must not be negative."
    return _result(product, errors)

