"""
Snowflake repository for pool-maintenance records.

Translates between the domain dataclasses and the JSON documents kept by
DocumentStore. Documents are laid out per user:

    users/{uid}                                  (Google credentials)
    users/{uid}/clients/{client_id}
    users/{uid}/clients/{client_id}/pools/{pool_id}
    users/{uid}/clients/{client_id}/visits/{visit_id}
    products/{product_id}
    payments/{payment_id}

The repository never decides create-vs-update; that is the
synchronizer's job. It only reads, inserts and overwrites.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional

from poolcare.core.pools.models import (
    Client,
    FilterType,
    GoogleCredentials,
    Payment,
    PaymentStatus,
    Pool,
    PoolMaterial,
    PoolShape,
    Product,
    ProductUsage,
    Visit,
    VisitStatus,
    VolumeMode,
    WaterQuality,
)
from poolcare.core.scheduling.sync import RecordNotFoundError

from .documents import ChangeFeed, DocumentStore, SnowflakeConnection


logger = logging.getLogger(__name__)


USERS = "users"
PRODUCTS = "products"
PAYMENTS = "payments"


def clients_path(user_id: str) -> str:
    return f"{USERS}/{user_id}/clients"


def pools_path(user_id: str, client_id: str) -> str:
    return f"{clients_path(user_id)}/{client_id}/pools"


def visits_path(user_id: str, client_id: str) -> str:
    return f"{clients_path(user_id)}/{client_id}/visits"


class RecordRepository(DocumentStore):
    """
    Repository for client, pool, visit, product and payment documents.

    Reads raise RecordNotFoundError when the document is missing, and so
    do overwrites of documents that were deleted in the meantime.
    """

    def __init__(
        self,
        connection: SnowflakeConnection,
        change_feed: Optional[ChangeFeed] = None,
    ) -> None:
        super().__init__(connection, change_feed)

    # -- Clients ------------------------------------------------------------

    def get_client(self, user_id: str, client_id: str) -> Client:
        document = self.get(clients_path(user_id), client_id)
        if document is None:
            raise RecordNotFoundError(f"Client {client_id} not found")
        return _client_from_document(document)

    def list_clients(self, user_id: str) -> list[Client]:
        documents = self.list_collection(clients_path(user_id))
        return sorted(
            (_client_from_document(doc) for doc in documents),
            key=lambda client: client.name.lower(),
        )

    def insert_client(self, user_id: str, client: Client) -> str:
        return self.insert(clients_path(user_id), _client_to_document(client))

    def update_client(self, user_id: str, client: Client) -> None:
        self._replace_or_raise(
            clients_path(user_id), client.id, _client_to_document(client), "Client"
        )

    def add_pool_reference(self, user_id: str, client_id: str, pool_id: str) -> None:
        client = self.get_client(user_id, client_id)
        if pool_id not in client.pool_ids:
            client.pool_ids.append(pool_id)
            self.update_client(user_id, client)

    def remove_pool_reference(self, user_id: str, client_id: str, pool_id: str) -> None:
        client = self.get_client(user_id, client_id)
        if pool_id in client.pool_ids:
            client.pool_ids.remove(pool_id)
            self.update_client(user_id, client)

    # -- Pools --------------------------------------------------------------

    def get_pool(self, user_id: str, client_id: str, pool_id: str) -> Pool:
        document = self.get(pools_path(user_id, client_id), pool_id)
        if document is None:
            raise RecordNotFoundError(f"Pool {pool_id} not found")
        return _pool_from_document(document, client_id)

    def list_pools(self, user_id: str, client_id: str) -> list[Pool]:
        return [
            _pool_from_document(doc, client_id)
            for doc in self.list_collection(pools_path(user_id, client_id))
        ]

    def insert_pool(self, user_id: str, pool: Pool) -> str:
        return self.insert(pools_path(user_id, pool.client_id), _pool_to_document(pool))

    def update_pool(self, user_id: str, pool: Pool) -> None:
        self._replace_or_raise(
            pools_path(user_id, pool.client_id), pool.id, _pool_to_document(pool), "Pool"
        )

    def delete_pool(self, user_id: str, client_id: str, pool_id: str) -> None:
        if not self.delete(pools_path(user_id, client_id), pool_id):
            raise RecordNotFoundError(f"Pool {pool_id} not found")

    # -- Visits -------------------------------------------------------------

    def get_visit(self, user_id: str, visit_id: str) -> Visit:
        found = self.find_in_group(f"{clients_path(user_id)}/%/visits", visit_id)
        if found is None or not _owned_by(found[0], user_id):
            raise RecordNotFoundError(f"Visit {visit_id} not found")
        return _visit_from_document(found[1])

    def list_visits(
        self,
        user_id: str,
        on_date: Optional[date] = None,
        status: Optional[VisitStatus] = None,
    ) -> list[Visit]:
        visits = [
            _visit_from_document(doc)
            for path, doc in self.list_group(f"{clients_path(user_id)}/%/visits")
            if _owned_by(path, user_id)
        ]
        if on_date is not None:
            visits = [v for v in visits if v.scheduled_date == on_date]
        if status is not None:
            visits = [v for v in visits if v.status == status]
        return sorted(visits, key=lambda v: (v.scheduled_date, v.time))

    def insert_visit(self, user_id: str, visit: Visit) -> str:
        return self.insert(visits_path(user_id, visit.client_id), _visit_to_document(visit))

    def update_visit(self, user_id: str, visit: Visit) -> None:
        self._replace_or_raise(
            visits_path(user_id, visit.client_id), visit.id, _visit_to_document(visit), "Visit"
        )

    def move_visit(self, user_id: str, from_client_id: str, visit: Visit) -> None:
        """Re-file a visit under visit.client_id, keeping its id."""
        with self.transaction():
            if not self.delete(visits_path(user_id, from_client_id), visit.id):
                raise RecordNotFoundError(f"Visit {visit.id} not found")
            self.upsert(visits_path(user_id, visit.client_id), visit.id, _visit_to_document(visit))

    # -- Products -----------------------------------------------------------

    def get_product(self, product_id: str) -> Product:
        document = self.get(PRODUCTS, product_id)
        if document is None:
            raise RecordNotFoundError(f"Product {product_id} not found")
        return _product_from_document(document)

    def list_products(self) -> list[Product]:
        return sorted(
            (_product_from_document(doc) for doc in self.list_collection(PRODUCTS)),
            key=lambda product: product.name.lower(),
        )

    def insert_product(self, product: Product) -> str:
        return self.insert(PRODUCTS, _product_to_document(product))

    def update_product(self, product: Product) -> None:
        self._replace_or_raise(PRODUCTS, product.id, _product_to_document(product), "Product")

    def delete_product(self, product_id: str) -> None:
        if not self.delete(PRODUCTS, product_id):
            raise RecordNotFoundError(f"Product {product_id} not found")

    # -- Payments -----------------------------------------------------------

    def list_payments(
        self,
        user_id: str,
        status: Optional[PaymentStatus] = None,
    ) -> list[Payment]:
        payments = [
            _payment_from_document(doc)
            for doc in self.list_collection(PAYMENTS)
            if doc.get("user_id") == user_id
        ]
        if status is not None:
            payments = [p for p in payments if p.status == status]
        return sorted(payments, key=lambda p: p.date, reverse=True)

    def insert_payment(self, user_id: str, payment: Payment) -> str:
        """Payments are created by billing; this exists for seeding and tests."""
        document = _payment_to_document(payment)
        document["user_id"] = user_id
        return self.insert(PAYMENTS, document)

    # -- Google credentials -------------------------------------------------

    def get_credentials(self, user_id: str) -> GoogleCredentials:
        document = self.get(USERS, user_id) or {}
        return GoogleCredentials(
            access_token=document.get("google_access_token"),
            refresh_token=document.get("google_refresh_token"),
            token_expiry=document.get("google_token_expiry"),
        )

    def save_credentials(self, user_id: str, credentials: GoogleCredentials) -> None:
        document = self.get(USERS, user_id) or {}
        document.update({
            "google_access_token": credentials.access_token,
            "google_refresh_token": credentials.refresh_token,
            "google_token_expiry": credentials.token_expiry,
        })
        self.upsert(USERS, user_id, document)
        logger.info("Stored Google credentials", extra={"user_id": user_id})

    def clear_credentials(self, user_id: str) -> None:
        self.save_credentials(user_id, GoogleCredentials())

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _replace_or_raise(
        self,
        collection_path: str,
        document_id: Optional[str],
        data: dict,
        kind: str,
    ) -> None:
        if not document_id or not self.replace(collection_path, document_id, data):
            raise RecordNotFoundError(f"{kind} {document_id} not found")


# ---------------------------------------------------------------------------
# Document Translation
# ---------------------------------------------------------------------------

def _owned_by(collection_path: str, user_id: str) -> bool:
    # LIKE treats "_" in the user id as a wildcard, so confirm the prefix
    return collection_path.startswith(clients_path(user_id) + "/")


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _enum_value(member) -> Optional[str]:
    return member.value if member is not None else None


def _client_to_document(client: Client) -> dict:
    return {
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "address": client.address,
        "neighborhood": client.neighborhood,
        "start_date": _iso(client.start_date),
        "notes": client.notes,
        "avatar_url": client.avatar_url,
        "pool_ids": list(client.pool_ids),
        "created_at": _iso(client.created_at),
        "updated_at": _iso(client.updated_at),
    }


def _client_from_document(document: dict) -> Client:
    return Client(
        id=document["id"],
        name=document.get("name", ""),
        email=document.get("email"),
        phone=document.get("phone"),
        address=document.get("address"),
        neighborhood=document.get("neighborhood") or "",
        start_date=_parse_date(document.get("start_date")),
        notes=document.get("notes"),
        avatar_url=document.get("avatar_url"),
        pool_ids=list(document.get("pool_ids") or []),
        created_at=_parse_datetime(document.get("created_at")),
        updated_at=_parse_datetime(document.get("updated_at")),
    )


def _pool_to_document(pool: Pool) -> dict:
    return {
        "client_id": pool.client_id,
        "name": pool.name,
        "shape": pool.shape.value,
        "length": pool.length,
        "width": pool.width,
        "average_depth": pool.average_depth,
        "volume": pool.volume,
        "volume_mode": pool.volume_mode.value,
        "ph": pool.ph,
        "chlorine": pool.chlorine,
        "alkalinity": pool.alkalinity,
        "calcium_hardness": pool.calcium_hardness,
        "material": _enum_value(pool.material),
        "has_stains": pool.has_stains,
        "has_scale": pool.has_scale,
        "water_quality": _enum_value(pool.water_quality),
        "filter_type": _enum_value(pool.filter_type),
        "last_filter_change": _iso(pool.last_filter_change),
        "filter_pressure": pool.filter_pressure,
        "filter_capacity": pool.filter_capacity,
        "last_treatment": pool.last_treatment,
        "updated_at": _iso(pool.updated_at),
    }


def _pool_from_document(document: dict, client_id: str) -> Pool:
    material = document.get("material")
    water_quality = document.get("water_quality")
    filter_type = document.get("filter_type")

    return Pool(
        id=document["id"],
        client_id=document.get("client_id") or client_id,
        name=document.get("name", ""),
        shape=PoolShape(document.get("shape") or PoolShape.QUADRILATERAL.value),
        length=document.get("length"),
        width=document.get("width"),
        average_depth=document.get("average_depth"),
        volume=document.get("volume"),
        volume_mode=VolumeMode(document.get("volume_mode") or VolumeMode.AUTO.value),
        ph=document.get("ph"),
        chlorine=document.get("chlorine"),
        alkalinity=document.get("alkalinity"),
        calcium_hardness=document.get("calcium_hardness"),
        material=PoolMaterial(material) if material else None,
        has_stains=bool(document.get("has_stains")),
        has_scale=bool(document.get("has_scale")),
        water_quality=WaterQuality(water_quality) if water_quality else None,
        filter_type=FilterType(filter_type) if filter_type else None,
        last_filter_change=_parse_date(document.get("last_filter_change")),
        filter_pressure=document.get("filter_pressure"),
        filter_capacity=document.get("filter_capacity"),
        last_treatment=document.get("last_treatment"),
        updated_at=_parse_datetime(document.get("updated_at")),
    )


def _visit_to_document(visit: Visit) -> dict:
    return {
        "user_id": visit.user_id,
        "client_id": visit.client_id,
        "pool_id": visit.pool_id,
        "client_name": visit.client_name,
        "date": visit.scheduled_date.isoformat(),
        "time": visit.time,
        "status": visit.status.value,
        "completed_at": _iso(visit.completed_at),
        "products_used": [
            {"product_id": usage.product_id, "quantity": usage.quantity}
            for usage in visit.products_used
        ],
        "notes": visit.notes,
        "google_calendar_event_id": visit.calendar_event_id,
        "updated_at": _iso(visit.updated_at),
    }


def _visit_from_document(document: dict) -> Visit:
    return Visit(
        id=document["id"],
        user_id=document.get("user_id"),
        client_id=document["client_id"],
        pool_id=document["pool_id"],
        client_name=document.get("client_name") or "",
        scheduled_date=date.fromisoformat(document["date"]),
        time=document.get("time", "00:00"),
        status=VisitStatus(document.get("status") or VisitStatus.PENDING.value),
        completed_at=_parse_datetime(document.get("completed_at")),
        products_used=[
            ProductUsage(product_id=item["product_id"], quantity=item.get("quantity", 1))
            for item in document.get("products_used") or []
        ],
        notes=document.get("notes"),
        calendar_event_id=document.get("google_calendar_event_id"),
        updated_at=_parse_datetime(document.get("updated_at")),
    )


def _product_to_document(product: Product) -> dict:
    return {
        "name": product.name,
        "description": product.description,
        "cost": product.cost,
        "stock": product.stock,
    }


def _product_from_document(document: dict) -> Product:
    return Product(
        id=document["id"],
        name=document.get("name", ""),
        description=document.get("description"),
        cost=float(document.get("cost") or 0),
        stock=int(document.get("stock") or 0),
    )


def _payment_to_document(payment: Payment) -> dict:
    return {
        "client_id": payment.client_id,
        "client_name": payment.client_name,
        "amount": payment.amount,
        "date": payment.date.isoformat(),
        "status": payment.status.value,
    }


def _payment_from_document(document: dict) -> Payment:
    return Payment(
        id=document["id"],
        client_id=document.get("client_id", ""),
        client_name=document.get("client_name") or "",
        amount=float(document.get("amount") or 0),
        date=date.fromisoformat(document["date"]),
        status=PaymentStatus(document.get("status") or PaymentStatus.PENDING.value),
    )
