"""
Request and response models shared by the routers.

The front end speaks camelCase JSON; every model accepts and emits
camelCase aliases while still accepting snake_case field names.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.pools.models import (
    Client,
    FilterType,
    Pool,
    PoolMaterial,
    PoolShape,
    ProductUsage,
    Visit,
    VisitStatus,
    VolumeMode,
    WaterQuality,
)
from ..core.scheduling.calendar import CalendarSyncResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Clients and Pools
# ---------------------------------------------------------------------------

class ClientRequest(CamelModel):
    name: str = Field(max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    neighborhood: str = ""
    start_date: Optional[date] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None

    def to_client(self, client_id: Optional[str] = None) -> Client:
        return Client(id=client_id, **self.model_dump())


class ClientResponse(CamelModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    neighborhood: str = ""
    start_date: Optional[date] = None
    notes: Optional[str] = None
    avatar_url: Optional[str] = None
    pool_ids: list[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_client(cls, client: Client) -> "ClientResponse":
        return cls.model_validate(client, from_attributes=True)


class PoolRequest(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    shape: PoolShape = PoolShape.QUADRILATERAL
    length: Optional[float] = None
    width: Optional[float] = None
    average_depth: Optional[float] = None
    volume: Optional[int] = Field(None, description="Liters; only kept in manual mode")
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

    def to_pool(self, client_id: str, pool_id: Optional[str] = None) -> Pool:
        return Pool(client_id=client_id, id=pool_id, **self.model_dump())


class PoolResponse(PoolRequest):
    id: str
    client_id: str
    updated_at: Optional[datetime] = None

    @classmethod
    def from_pool(cls, pool: Pool) -> "PoolResponse":
        return cls.model_validate(pool, from_attributes=True)


# ---------------------------------------------------------------------------
# Visits
# ---------------------------------------------------------------------------

class ProductUsageModel(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)

    def to_usage(self) -> ProductUsage:
        return ProductUsage(product_id=self.product_id, quantity=self.quantity)


class VisitRequest(CamelModel):
    client_id: str
    pool_id: str
    scheduled_date: date = Field(alias="date")
    time: str = Field(description="Local start time, HH:MM")
    notes: Optional[str] = None
    products_used: list[ProductUsageModel] = []

    def to_visit(self, visit_id: Optional[str] = None) -> Visit:
        return Visit(
            id=visit_id,
            client_id=self.client_id,
            pool_id=self.pool_id,
            scheduled_date=self.scheduled_date,
            time=self.time,
            notes=self.notes,
            products_used=[usage.to_usage() for usage in self.products_used],
        )


class VisitResponse(CamelModel):
    id: str
    client_id: str
    pool_id: str
    client_name: str = ""
    scheduled_date: date = Field(alias="date")
    time: str
    status: VisitStatus
    completed_at: Optional[datetime] = None
    products_used: list[ProductUsageModel] = []
    notes: Optional[str] = None
    google_calendar_event_id: Optional[str] = None

    @classmethod
    def from_visit(cls, visit: Visit) -> "VisitResponse":
        return cls(
            id=visit.id,
            client_id=visit.client_id,
            pool_id=visit.pool_id,
            client_name=visit.client_name,
            scheduled_date=visit.scheduled_date,
            time=visit.time,
            status=visit.status,
            completed_at=visit.completed_at,
            products_used=[
                ProductUsageModel(product_id=u.product_id, quantity=u.quantity)
                for u in visit.products_used
            ],
            notes=visit.notes,
            google_calendar_event_id=visit.calendar_event_id,
        )


class CalendarSyncResponse(CamelModel):
    status: str
    event_id: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_result(cls, result: CalendarSyncResult) -> "CalendarSyncResponse":
        return cls(status=result.status.value, event_id=result.event_id, message=result.message)
