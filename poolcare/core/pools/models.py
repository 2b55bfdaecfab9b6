"""
Domain models for pool-maintenance records.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs. Translation to stored documents
lives in the infrastructure layer.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class PoolShape(Enum):
    """Pool geometry. Circular pools read `length` as the diameter."""
    QUADRILATERAL = "quadrilateral"
    CIRCULAR = "circular"
    OVAL = "oval"


class VolumeMode(Enum):
    """
    How the pool volume is maintained.

    AUTO volumes are always derived from geometry. MANUAL volumes are
    whatever the technician typed in, and geometry is ignored for volume.
    """
    AUTO = "auto"
    MANUAL = "manual"


class PoolMaterial(Enum):
    FIBER = "fiber"
    MASONRY = "masonry"
    VINYL = "vinyl"


class WaterQuality(Enum):
    GREEN = "green"
    CLOUDY = "cloudy"
    CRYSTAL_CLEAR = "crystal-clear"


class FilterType(Enum):
    SAND = "sand"
    CARTRIDGE = "cartridge"
    POLYESTER = "polyester"


class VisitStatus(Enum):
    """
    Lifecycle of a maintenance visit.

    PENDING is the only state with outgoing transitions. Cancelling a
    visit means skipping it; visits are never removed.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class PaymentStatus(Enum):
    PAID = "paid"
    PENDING = "pending"


class InvalidTransitionError(Exception):
    """Raised when a visit is moved between states that aren't connected."""
    pass


@dataclass
class Client:
    """A customer of the pool-maintenance business."""
    name: str
    id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    neighborhood: str = ""
    start_date: Optional[date] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    pool_ids: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Pool:
    """
    A physical pool belonging to one client.

    Chemical readings are optional because a pool can be registered
    before its first visit.
    """
    client_id: str
    name: str
    id: Optional[str] = None
    shape: PoolShape = PoolShape.QUADRILATERAL
    length: Optional[float] = None
    width: Optional[float] = None
    average_depth: Optional[float] = None
    volume: Optional[int] = None  # liters
    volume_mode: VolumeMode = VolumeMode.AUTO
    ph: Optional[float] = None
    chlorine: Optional[float] = None
    alkalinity: Optional[float] = None
    calcium_hardness: Optional[float] = None
    material: Optional[PoolMaterial] = None
    has_stains: bool = False
    has_scale: bool = False
    water_quality: Optional[WaterQuality] = None
    filter_type: Optional[FilterType] = None
    last_filter_change: Optional[date] = None
    filter_pressure: Optional[float] = None
    filter_capacity: Optional[float] = None
    last_treatment: Optional[str] = None
    updated_at: Optional[datetime] = None


@dataclass
class ProductUsage:
    """A quantity of one catalog product consumed during a visit."""
    product_id: str
    quantity: int = 1

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError("Quantity must be at least 1")


@dataclass
class Visit:
    """A scheduled or finished maintenance service against one pool."""
    client_id: str
    pool_id: str
    scheduled_date: date
    time: str  # "HH:MM"
    id: Optional[str] = None
    user_id: Optional[str] = None
    client_name: str = ""
    status: VisitStatus = VisitStatus.PENDING
    completed_at: Optional[datetime] = None
    products_used: list[ProductUsage] = field(default_factory=list)
    notes: Optional[str] = None
    calendar_event_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    def complete(
        self,
        products_used: Optional[list[ProductUsage]] = None,
        completed_at: Optional[datetime] = None,
    ) -> None:
        """Mark the visit as done, optionally recording the products used."""
        self._require_pending(VisitStatus.COMPLETED)
        self.status = VisitStatus.COMPLETED
        self.completed_at = completed_at or datetime.utcnow()
        if products_used is not None:
            self.products_used = list(products_used)

    def skip(self) -> None:
        """Skip the visit. Skipped visits carry no product usage."""
        self._require_pending(VisitStatus.SKIPPED)
        self.status = VisitStatus.SKIPPED
        self.products_used = []

    def replace_products(self, products_used: list[ProductUsage]) -> None:
        if self.status == VisitStatus.SKIPPED:
            raise InvalidTransitionError("Cannot record products on a skipped visit")
        self.products_used = list(products_used)

    @property
    def products_quantity(self) -> int:
        return sum(usage.quantity for usage in self.products_used)

    def _require_pending(self, target: VisitStatus) -> None:
        if self.status != VisitStatus.PENDING:
            raise InvalidTransitionError(
                f"Cannot move visit from {self.status.value} to {target.value}"
            )


@dataclass
class Product:
    """A catalog item (chemical or equipment)."""
    name: str
    cost: float
    stock: int = 0
    id: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Payment:
    """An invoice for a client. Read-only for this service."""
    client_id: str
    amount: float
    date: date
    status: PaymentStatus = PaymentStatus.PENDING
    id: Optional[str] = None
    client_name: str = ""


@dataclass
class GoogleCredentials:
    """OAuth tokens a user granted for calendar sync."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expiry: Optional[int] = None  # epoch milliseconds

    @property
    def is_connected(self) -> bool:
        return bool(self.refresh_token)
