"""
Snowflake database connection management.

Provides the connection factory used by the document store, plus a mock
connection with in-memory storage for local development and tests.

Using the repository pattern means most code never touches this module
directly - it goes through RecordRepository which handles the translation
between domain models and stored documents.
"""

import copy
import logging
import re
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from .repositories.documents import SnowflakeConfig, SnowflakeConnection, StoreError

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(StoreError):
    """Raised when Snowflake connection fails."""
    pass


def _load_private_key(key_path: str):
    """
    Load private key from file for key-pair authentication.

    Snowflake wants the key as DER bytes, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    with open(key_path, 'rb') as key_file:
        private_key = serialization.load_pem_private_key(
            key_file.read(),
            password=None,
            backend=default_backend()
        )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Uses key-pair auth when private_key_path is set, password auth
    otherwise. Autocommit is turned off so the document store controls
    transaction boundaries.
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    conn = None
    try:
        connect_params = {
            'account': config.account,
            'user': config.user,
            'database': config.database,
            'schema': config.schema,
            'warehouse': config.warehouse,
            'role': config.role,
            'autocommit': False,
            'client_session_keep_alive': True,
        }

        if config.private_key_path:
            logger.info("Using key-pair authentication for Snowflake")
            connect_params['private_key'] = _load_private_key(config.private_key_path)
        elif config.password:
            logger.info("Using password authentication for Snowflake")
            connect_params['password'] = config.password
        else:
            raise SnowflakeConnectionError(
                "Either password or private_key_path must be provided"
            )

        conn = snowflake.connector.connect(**connect_params)

        logger.debug(
            "Established Snowflake connection",
            extra={
                "account": config.account,
                "database": config.database,
                "schema": config.schema,
            }
        )

        yield conn

    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    finally:
        if conn:
            try:
                conn.close()
                logger.debug("Closed Snowflake connection")
            except Exception as e:
                logger.warning(
                    "Error closing Snowflake connection",
                    extra={"error": str(e)}
                )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

def like_to_regex(pattern: str) -> re.Pattern:
    """Translate a SQL LIKE pattern into an anchored regex."""
    parts = []
    for char in pattern:
        if char == '%':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return re.compile('^' + ''.join(parts) + '$')


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support the
    document store's queries, matched by their shape.
    """

    def __init__(self, connection: "MockSnowflakeConnection") -> None:
        self._conn = connection
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = ' '.join(query.upper().split())
        self._results = []
        self._rowcount = 0

        if query_upper == 'BEGIN':
            self._conn._begin()
        elif query_upper.startswith('CREATE'):
            pass
        elif query_upper.startswith('SELECT'):
            self._handle_select(query_upper, params or ())
        elif query_upper.startswith('INSERT INTO DOCUMENTS'):
            self._handle_insert(params or ())
        elif query_upper.startswith('UPDATE DOCUMENTS'):
            self._handle_update(params or ())
        elif query_upper.startswith('DELETE FROM DOCUMENTS'):
            self._handle_delete(params or ())
        else:
            raise ValueError(f"Mock cursor can't handle query: {query_upper[:60]}")

        return self

    def _handle_select(self, query: str, params: tuple) -> None:
        storage = self._conn._storage
        ordered = sorted(storage.items(), key=lambda item: item[1]['seq'])

        if 'COLLECTION_PATH LIKE' in query:
            regex = like_to_regex(params[0])
            rows = [
                (path, doc_id, row['data'])
                for (path, doc_id), row in ordered
                if regex.match(path)
            ]
            if 'DOCUMENT_ID = %S' in query:
                rows = [row for row in rows if row[1] == params[1]][:1]
            self._results = rows

        elif 'DOCUMENT_ID = %S' in query:
            row = storage.get((params[0], params[1]))
            self._results = [(params[1], row['data'])] if row else []

        else:
            self._results = [
                (doc_id, row['data'])
                for (path, doc_id), row in ordered
                if path == params[0]
            ]

    def _handle_insert(self, params: tuple) -> None:
        path, doc_id, data = params[0], params[1], params[2]
        with self._conn._lock:
            if (path, doc_id) in self._conn._storage:
                raise ValueError(f"Duplicate key: {path}/{doc_id}")
            self._conn._remember((path, doc_id))
            self._conn._storage[(path, doc_id)] = {'data': data, 'seq': self._conn._next_seq()}
        self._rowcount = 1

    def _handle_update(self, params: tuple) -> None:
        data, _, path, doc_id = params
        with self._conn._lock:
            row = self._conn._storage.get((path, doc_id))
            if row:
                self._conn._remember((path, doc_id))
                row['data'] = data
                self._rowcount = 1

    def _handle_delete(self, params: tuple) -> None:
        with self._conn._lock:
            self._conn._remember((params[0], params[1]))
            if self._conn._storage.pop((params[0], params[1]), None) is not None:
                self._rowcount = 1

    def fetchone(self):
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        return self._results

    def close(self) -> None:
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Keeps documents in a dict keyed by (collection_path, document_id).
    One instance is shared by every request in mock mode, so transactions
    are tracked per thread: BEGIN opens an undo log for the calling
    thread, and rollback restores only the documents that thread changed.
    Writes other threads made in the meantime survive the rollback.

    Not suitable for production, but fine for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        self._storage: dict[tuple[str, str], dict] = {}
        self._undo_logs: dict[int, dict[tuple[str, str], Optional[dict]]] = {}
        self._lock = threading.RLock()
        self._seq = 0

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self)

    def commit(self) -> None:
        with self._lock:
            self._undo_logs.pop(threading.get_ident(), None)
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        with self._lock:
            undo_log = self._undo_logs.pop(threading.get_ident(), {})
            for key, previous in undo_log.items():
                if previous is None:
                    self._storage.pop(key, None)
                else:
                    self._storage[key] = previous
        logger.debug("Mock connection rollback", extra={"restored": len(undo_log)})

    def close(self) -> None:
        logger.debug("Mock connection close")

    def _begin(self) -> None:
        with self._lock:
            self._undo_logs[threading.get_ident()] = {}

    def _remember(self, key: tuple[str, str]) -> None:
        # Only the value from before the transaction's first write is kept
        undo_log = self._undo_logs.get(threading.get_ident())
        if undo_log is not None and key not in undo_log:
            undo_log[key] = copy.deepcopy(self._storage.get(key))

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    # Helper method for testing
    def _document_count(self) -> int:
        return len(self._storage)


@contextmanager
def get_mock_snowflake_connection() -> Generator[MockSnowflakeConnection, None, None]:
    """Provide a mock Snowflake connection backed by memory."""
    conn = MockSnowflakeConnection()
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Create Snowflake connection based on configuration.

    Args:
        config: Snowflake configuration (required if not mock_mode)
        mock_mode: If True, return mock connection for testing

    Yields:
        SnowflakeConnection implementation (real or mock)
    """
    if mock_mode:
        with get_mock_snowflake_connection() as conn:
            yield conn
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
