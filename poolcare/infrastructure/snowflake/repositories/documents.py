"""
Hierarchical document storage on Snowflake.

Records are stored as JSON documents in a single table, addressed by a
collection path ("users/{uid}/clients") and a document id. Nested
collections are just longer paths, so a client's pools live under
"users/{uid}/clients/{client_id}/pools".

The store also owns the change feed: listeners registered on a path are
told about every committed write at or below that path.
"""

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Generator, Optional, Protocol
from uuid import uuid4


logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the document table can't be read or written."""
    pass


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    collection_path STRING NOT NULL,
    document_id STRING NOT NULL,
    data VARIANT,
    created_at TIMESTAMP_NTZ,
    updated_at TIMESTAMP_NTZ,
    PRIMARY KEY (collection_path, document_id)
)
"""


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "POOLCARE"
    schema: str = "RECORDS"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


# ---------------------------------------------------------------------------
# Change Feed
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DocumentChange:
    """A committed write to one document."""
    kind: str  # "added", "modified" or "removed"
    collection_path: str
    document_id: str
    data: Optional[dict] = None

    @property
    def path(self) -> str:
        return f"{self.collection_path}/{self.document_id}"


ChangeListener = Callable[[DocumentChange], None]


class Subscription:
    """
    Handle for a registered listener.

    Call unsubscribe() when the consumer goes away, or use the handle as
    a context manager to scope the registration.
    """

    def __init__(self, feed: "ChangeFeed", path: str, listener: ChangeListener) -> None:
        self._feed = feed
        self.path = path.strip("/")
        self.listener = listener
        self.active = True

    def matches(self, change: DocumentChange) -> bool:
        return change.path == self.path or change.path.startswith(self.path + "/")

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class ChangeFeed:
    """Fan-out of committed document changes to path listeners."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, path: str, listener: ChangeListener) -> Subscription:
        subscription = Subscription(self, path, listener)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug("Listener subscribed", extra={"path": subscription.path})
        return subscription

    def publish(self, change: DocumentChange) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(change)]

        for subscription in targets:
            try:
                subscription.listener(change)
            except Exception as e:
                # The write is already committed; a broken listener must not undo it
                logger.warning(
                    "Change listener failed",
                    extra={"path": change.path, "error": str(e)},
                )

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


# ---------------------------------------------------------------------------
# Document Store
# ---------------------------------------------------------------------------

class DocumentStore:
    """
    Generic document operations over a Snowflake connection.

    Writes outside transaction() commit immediately. Inside it, they are
    committed (and published to the change feed) when the outermost
    transaction block exits cleanly, or rolled back if it raises.
    """

    def __init__(
        self,
        connection: SnowflakeConnection,
        change_feed: Optional[ChangeFeed] = None,
    ) -> None:
        self._conn = connection
        self._feed = change_feed or ChangeFeed()
        self._depth = 0
        self._pending: list[DocumentChange] = []

    @property
    def change_feed(self) -> ChangeFeed:
        return self._feed

    def subscribe(self, path: str, listener: ChangeListener) -> Subscription:
        return self._feed.subscribe(path, listener)

    def create_schema(self) -> None:
        """Create the documents table if it doesn't exist yet."""
        self._execute_write(SCHEMA_SQL, ())

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        outermost = self._depth == 0
        if outermost:
            cursor = self._conn.cursor()
            try:
                cursor.execute("BEGIN")
            finally:
                cursor.close()

        self._depth += 1
        try:
            yield
        except Exception:
            self._depth -= 1
            if outermost:
                self._conn.rollback()
                self._pending.clear()
                logger.debug("Transaction rolled back")
            raise
        else:
            self._depth -= 1
            if outermost:
                self._conn.commit()
                self._flush_changes()

    # -- Reads --------------------------------------------------------------

    def get(self, collection_path: str, document_id: str) -> Optional[dict]:
        row = self._fetch("""
            SELECT document_id, data
            FROM documents
            WHERE collection_path = %s AND document_id = %s
        """, (collection_path, document_id), one=True)

        if not row:
            return None
        return self._to_document(row[0], row[1])

    def list_collection(self, collection_path: str) -> list[dict]:
        rows = self._fetch("""
            SELECT document_id, data
            FROM documents
            WHERE collection_path = %s
            ORDER BY created_at
        """, (collection_path,))

        return [self._to_document(row[0], row[1]) for row in rows]

    def list_group(self, path_pattern: str) -> list[tuple[str, dict]]:
        """
        List documents across every collection matching a LIKE pattern.

        Example: "users/u1/clients/%/visits" lists every visit of user u1.
        """
        rows = self._fetch("""
            SELECT collection_path, document_id, data
            FROM documents
            WHERE collection_path LIKE %s
            ORDER BY created_at
        """, (path_pattern,))

        return [(row[0], self._to_document(row[1], row[2])) for row in rows]

    def find_in_group(self, path_pattern: str, document_id: str) -> Optional[tuple[str, dict]]:
        """Find one document by id across collections matching a LIKE pattern."""
        row = self._fetch("""
            SELECT collection_path, document_id, data
            FROM documents
            WHERE collection_path LIKE %s AND document_id = %s
            LIMIT 1
        """, (path_pattern, document_id), one=True)

        if not row:
            return None
        return row[0], self._to_document(row[1], row[2])

    # -- Writes -------------------------------------------------------------

    def insert(self, collection_path: str, data: dict) -> str:
        """Insert a new document and return the id assigned to it."""
        document_id = uuid4().hex
        now = datetime.utcnow()
        body = self._strip_id(data)

        self._execute_write("""
            INSERT INTO documents (collection_path, document_id, data, created_at, updated_at)
            SELECT %s, %s, PARSE_JSON(%s), %s, %s
        """, (collection_path, document_id, json.dumps(body), now, now))

        self._record_change(DocumentChange("added", collection_path, document_id, body))
        return document_id

    def replace(self, collection_path: str, document_id: str, data: dict) -> bool:
        """
        Overwrite an existing document's fields.

        Returns False if no document with that id exists.
        """
        body = self._strip_id(data)
        rowcount = self._execute_write("""
            UPDATE documents
            SET data = PARSE_JSON(%s), updated_at = %s
            WHERE collection_path = %s AND document_id = %s
        """, (json.dumps(body), datetime.utcnow(), collection_path, document_id))

        if rowcount:
            self._record_change(DocumentChange("modified", collection_path, document_id, body))
        return bool(rowcount)

    def upsert(self, collection_path: str, document_id: str, data: dict) -> None:
        """Write a document under a caller-chosen id, creating it if needed."""
        if self.get(collection_path, document_id) is None:
            body = self._strip_id(data)
            now = datetime.utcnow()
            self._execute_write("""
                INSERT INTO documents (collection_path, document_id, data, created_at, updated_at)
                SELECT %s, %s, PARSE_JSON(%s), %s, %s
            """, (collection_path, document_id, json.dumps(body), now, now))
            self._record_change(DocumentChange("added", collection_path, document_id, body))
        else:
            self.replace(collection_path, document_id, data)

    def delete(self, collection_path: str, document_id: str) -> bool:
        rowcount = self._execute_write("""
            DELETE FROM documents
            WHERE collection_path = %s AND document_id = %s
        """, (collection_path, document_id))

        if rowcount:
            self._record_change(DocumentChange("removed", collection_path, document_id))
        return bool(rowcount)

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _execute_write(self, query: str, params: tuple) -> int:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            rowcount = cursor.rowcount
            if self._depth == 0:
                self._conn.commit()
            return rowcount or 0
        except Exception as e:
            logger.error(
                "Document write failed",
                extra={"error": str(e), "collection_path": params[0] if params else None},
            )
            raise StoreError(f"Document write failed: {e}") from e
        finally:
            cursor.close()

    def _fetch(self, query: str, params: tuple, one: bool = False):
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchone() if one else cursor.fetchall()
        except Exception as e:
            logger.error(
                "Document read failed",
                extra={"error": str(e), "collection_path": params[0] if params else None},
            )
            raise StoreError(f"Document read failed: {e}") from e
        finally:
            cursor.close()

    def _record_change(self, change: DocumentChange) -> None:
        if self._depth == 0:
            self._feed.publish(change)
        else:
            self._pending.append(change)

    def _flush_changes(self) -> None:
        pending, self._pending = self._pending, []
        for change in pending:
            self._feed.publish(change)

    def _strip_id(self, data: dict) -> dict:
        return {key: value for key, value in data.items() if key != "id"}

    def _to_document(self, document_id: str, variant_data: Any) -> dict:
        document = self._parse_variant_json(variant_data) or {}
        document["id"] = document_id
        return document

    def _parse_variant_json(self, variant_data: Any) -> Optional[dict]:
        """
        Parse Snowflake VARIANT data that might be a string or already parsed.

        snowflake-connector-python returns VARIANT as a JSON string; the
        mock connection hands back whatever was stored.
        """
        if not variant_data:
            return None

        if isinstance(variant_data, str):
            try:
                parsed = json.loads(variant_data)
            except json.JSONDecodeError as e:
                logger.error(
                    "Failed to parse VARIANT JSON string",
                    extra={"variant_data": variant_data[:100], "error": str(e)},
                )
                return None
        else:
            parsed = variant_data

        if not isinstance(parsed, dict):
            logger.warning(
                "Document data is not an object",
                extra={"type": type(parsed).__name__},
            )
            return None
        return dict(parsed)
