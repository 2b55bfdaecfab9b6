"""
Record synchronization for clients, pools, visits and products.

The synchronizer is the single write path for records. It resolves
create-vs-update from whether a record already carries an id, recomputes
derived fields (pool volume) before writing, and keeps the client's list
of pool ids in step with the pool documents.

Concurrent saves of the same record are last-write-wins. There is no
version check.
"""

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Protocol

from ..pools.models import (
    Client,
    GoogleCredentials,
    Payment,
    PaymentStatus,
    Pool,
    Product,
    ProductUsage,
    Visit,
    VisitStatus,
    WaterQuality,
)
from ..pools.volume import apply_volume
from ..validation import (
    RecordValidationError,
    ValidationResult,
    validate_client,
    validate_pool,
    validate_product,
    validate_visit,
)


logger = logging.getLogger(__name__)


class RecordNotFoundError(Exception):
    """Raised when a requested record doesn't exist."""
    pass


class BackReferenceError(Exception):
    """
    Raised when a new pool can't be linked to its client.

    The pool write is rolled back with the failed link, so no orphan pool
    is left behind.
    """

    def __init__(self, client_id: str, message: str) -> None:
        self.client_id = client_id
        super().__init__(message)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class RecordStore(Protocol):
    """
    Persistence operations the synchronizer needs.

    Reads raise RecordNotFoundError for missing records. Writes made
    inside transaction() are committed together or not at all.
    """

    def transaction(self) -> AbstractContextManager: ...

    def get_client(self, user_id: str, client_id: str) -> Client: ...
    def list_clients(self, user_id: str) -> list[Client]: ...
    def insert_client(self, user_id: str, client: Client) -> str: ...
    def update_client(self, user_id: str, client: Client) -> None: ...

    def get_pool(self, user_id: str, client_id: str, pool_id: str) -> Pool: ...
    def list_pools(self, user_id: str, client_id: str) -> list[Pool]: ...
    def insert_pool(self, user_id: str, pool: Pool) -> str: ...
    def update_pool(self, user_id: str, pool: Pool) -> None: ...
    def delete_pool(self, user_id: str, client_id: str, pool_id: str) -> None: ...
    def add_pool_reference(self, user_id: str, client_id: str, pool_id: str) -> None: ...
    def remove_pool_reference(self, user_id: str, client_id: str, pool_id: str) -> None: ...

    def get_visit(self, user_id: str, visit_id: str) -> Visit: ...
    def list_visits(
        self,
        user_id: str,
        on_date: Optional[date] = None,
        status: Optional[VisitStatus] = None,
    ) -> list[Visit]: ...
    def insert_visit(self, user_id: str, visit: Visit) -> str: ...
    def update_visit(self, user_id: str, visit: Visit) -> None: ...
    def move_visit(self, user_id: str, from_client_id: str, visit: Visit) -> None: ...

    def get_product(self, product_id: str) -> Product: ...
    def list_products(self) -> list[Product]: ...
    def insert_product(self, product: Product) -> str: ...
    def update_product(self, product: Product) -> None: ...
    def delete_product(self, product_id: str) -> None: ...

    def list_payments(
        self,
        user_id: str,
        status: Optional[PaymentStatus] = None,
    ) -> list[Payment]: ...

    def get_credentials(self, user_id: str) -> GoogleCredentials: ...
    def save_credentials(self, user_id: str, credentials: GoogleCredentials) -> None: ...
    def clear_credentials(self, user_id: str) -> None: ...


@dataclass
class PoolReadings:
    """Water state measured during a visit."""
    ph: Optional[float] = None
    chlorine: Optional[float] = None
    alkalinity: Optional[float] = None
    calcium_hardness: Optional[float] = None
    has_stains: bool = False
    has_scale: bool = False
    water_quality: Optional[WaterQuality] = None


# ---------------------------------------------------------------------------
# Synchronizer Service
# ---------------------------------------------------------------------------

class RecordSynchronizer:
    """
    Write path for one user's records.

    Every save returns the record as stored, including any id the store
    assigned, so a follow-up save in the same session updates instead of
    inserting again.
    """

    def __init__(self, store: RecordStore, user_id: str) -> None:
        self._store = store
        self._user_id = user_id

    # -- Clients ------------------------------------------------------------

    def save_client(self, client: Client) -> Client:
        _raise_if_invalid(validate_client(client))
        client.updated_at = datetime.utcnow()

        if client.id:
            existing = self._store.get_client(self._user_id, client.id)
            # The pool list is owned by pool saves, never by the client form
            client.pool_ids = existing.pool_ids
            client.created_at = existing.created_at
            self._store.update_client(self._user_id, client)
            logger.info("Client updated", extra={"client_id": client.id})
        else:
            client.created_at = client.updated_at
            client.pool_ids = []
            client.id = self._store.insert_client(self._user_id, client)
            logger.info("Client created", extra={"client_id": client.id})

        return client

    # -- Pools --------------------------------------------------------------

    def save_pool(self, pool: Pool) -> Pool:
        apply_volume(pool)
        _raise_if_invalid(validate_pool(pool))
        pool.updated_at = datetime.utcnow()

        if pool.id:
            self._store.update_pool(self._user_id, pool)
            logger.info("Pool updated", extra={"pool_id": pool.id})
            return pool

        # Parent must exist before we write a child under it
        self._store.get_client(self._user_id, pool.client_id)

        try:
            with self._store.transaction():
                pool.id = self._store.insert_pool(self._user_id, pool)
                try:
                    self._store.add_pool_reference(self._user_id, pool.client_id, pool.id)
                except Exception as e:
                    logger.error(
                        "Failed to link pool to client",
                        extra={"client_id": pool.client_id, "error": str(e)},
                    )
                    raise BackReferenceError(
                        pool.client_id,
                        f"Pool could not be linked to client {pool.client_id}: {e}",
                    ) from e
        except BackReferenceError:
            pool.id = None
            raise

        logger.info(
            "Pool created",
            extra={"pool_id": pool.id, "client_id": pool.client_id, "volume": pool.volume},
        )
        return pool

    def delete_pool(self, client_id: str, pool_id: str) -> None:
        """
        Remove a pool and unlink it from its client.

        Visits recorded against the pool are kept as history.
        """
        with self._store.transaction():
            self._store.delete_pool(self._user_id, client_id, pool_id)
            self._store.remove_pool_reference(self._user_id, client_id, pool_id)
        logger.info("Pool deleted", extra={"pool_id": pool_id, "client_id": client_id})

    def record_visit_readings(
        self,
        visit_id: str,
        readings: PoolReadings,
        products_used: Optional[list[ProductUsage]] = None,
    ) -> tuple[Visit, Pool]:
        """
        Store the readings taken during a visit on its pool, and
        optionally replace the visit's product list.
        """
        visit = self._store.get_visit(self._user_id, visit_id)
        pool = self._store.get_pool(self._user_id, visit.client_id, visit.pool_id)

        pool.ph = readings.ph
        pool.chlorine = readings.chlorine
        pool.alkalinity = readings.alkalinity
        pool.calcium_hardness = readings.calcium_hardness
        pool.has_stains = readings.has_stains
        pool.has_scale = readings.has_scale
        pool.water_quality = readings.water_quality

        if products_used is not None:
            visit.replace_products(products_used)

        with self._store.transaction():
            pool = self.save_pool(pool)
            if products_used is not None:
                visit = self._write_visit(visit)

        return visit, pool

    # -- Visits -------------------------------------------------------------

    def save_visit(self, visit: Visit) -> Visit:
        _raise_if_invalid(validate_visit(visit))
        visit.user_id = self._user_id

        previous_client_id = None
        if visit.id:
            existing = self._store.get_visit(self._user_id, visit.id)
            # Status and calendar link only change through their own operations
            visit.status = existing.status
            visit.completed_at = existing.completed_at
            visit.calendar_event_id = existing.calendar_event_id
            if visit.status == VisitStatus.SKIPPED:
                visit.products_used = []
            if existing.client_id != visit.client_id:
                previous_client_id = existing.client_id
                visit.client_name = ""

        if not visit.client_name:
            client = self._store.get_client(self._user_id, visit.client_id)
            visit.client_name = client.name

        if previous_client_id is None:
            return self._write_visit(visit)

        visit.updated_at = datetime.utcnow()
        self._store.move_visit(self._user_id, previous_client_id, visit)
        logger.info(
            "Visit moved to another client",
            extra={
                "visit_id": visit.id,
                "from_client_id": previous_client_id,
                "client_id": visit.client_id,
            },
        )
        return visit

    def complete_visit(
        self,
        visit_id: str,
        products_used: Optional[list[ProductUsage]] = None,
    ) -> Visit:
        visit = self._store.get_visit(self._user_id, visit_id)
        visit.complete(products_used)
        # TODO: decrement product stock once the business settles on when usage counts
        return self._write_visit(visit)

    def skip_visit(self, visit_id: str) -> Visit:
        visit = self._store.get_visit(self._user_id, visit_id)
        visit.skip()
        return self._write_visit(visit)

    def update_visit_products(self, visit_id: str, products_used: list[ProductUsage]) -> Visit:
        visit = self._store.get_visit(self._user_id, visit_id)
        visit.replace_products(products_used)
        return self._write_visit(visit)

    def link_calendar_event(self, visit: Visit, event_id: str) -> Visit:
        visit.calendar_event_id = event_id
        return self._write_visit(visit)

    def _write_visit(self, visit: Visit) -> Visit:
        visit.updated_at = datetime.utcnow()
        if visit.id:
            self._store.update_visit(self._user_id, visit)
            logger.info(
                "Visit updated",
                extra={"visit_id": visit.id, "status": visit.status.value},
            )
        else:
            visit.id = self._store.insert_visit(self._user_id, visit)
            logger.info(
                "Visit scheduled",
                extra={"visit_id": visit.id, "date": visit.scheduled_date.isoformat()},
            )
        return visit

    # -- Products -----------------------------------------------------------

    def save_product(self, product: Product) -> Product:
        _raise_if_invalid(validate_product(product))
        if product.id:
            self._store.update_product(product)
        else:
            product.id = self._store.insert_product(product)
        logger.info("Product saved", extra={"product_id": product.id})
        return product

    def delete_product(self, product_id: str) -> None:
        self._store.delete_product(product_id)
        logger.info("Product deleted", extra={"product_id": product_id})


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.is_valid:
        raise RecordValidationError(result.errors)
