# =============================================================================
# invoice_core/offline/local_database.py
# Local SQLite Record Store for Offline Operations
# =============================================================================
"""
LocalDatabase - SQLite-backed store of schema-less records per collection.

Features:
- One table per declared collection, keyed by ``id``
- Records stored as JSON field maps, index fields mirrored into columns
- Versioned, additive schema upgrades (PRAGMA user_version)
- Explicit destructive recovery (force_upgrade)
- Inert mode: when the store cannot be opened every read returns empty
  and every write is a no-op; ``last_error`` says why
- Thread-safe operations
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union
import logging

import numpy as np
import pandas as pd

from invoice_core.config import DEFAULT_DB_PATH
from invoice_core.errors import LocalStoreUnavailableError
from invoice_core.offline.schema import COLLECTIONS, SCHEMA_VERSION, CollectionSpec

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"
_TYPE_KEY = "__invoice_type__"
_VALUE_KEY = "__invoice_value__"

_DECODERS = {
    "datetime": datetime.fromisoformat,
    "date": date.fromisoformat,
    "decimal": Decimal,
}


def _tagged(type_name: str, value: str) -> Dict[str, str]:
    return {_TYPE_KEY: type_name, _VALUE_KEY: value}


def _json_default(value: Any) -> Any:
    """Encode values json does not know natively."""
    # datetime subclasses date, so it is checked first
    if isinstance(value, datetime):
        return _tagged("datetime", value.isoformat())
    if isinstance(value, date):
        return _tagged("date", value.isoformat())
    if isinstance(value, Decimal):
        return _tagged("decimal", str(value))
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.bool_):
        return bool(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_object_hook(obj: Dict[str, Any]) -> Any:
    if obj.keys() != {_TYPE_KEY, _VALUE_KEY}:
        return obj
    type_name, value = obj[_TYPE_KEY], obj[_VALUE_KEY]
    if not isinstance(type_name, str) or not isinstance(value, str):
        return obj
    decoder = _DECODERS.get(type_name)
    if decoder is None:
        return obj
    try:
        return decoder(value)
    except (ValueError, InvalidOperation):
        logger.warning(f"Undecodable {type_name} value kept as stored: {value!r}")
        return obj


def encode_record(record: Dict[str, Any]) -> str:
    return json.dumps(record, default=_json_default)


def decode_record(payload: str) -> Dict[str, Any]:
    return json.loads(payload, object_hook=_json_object_hook)


def _index_column(field_name: str) -> str:
    return f"idx_{field_name}"


class LocalDatabase:
    """
    Local SQLite record store, the on-device cache of the remote service.

    Usage:
        store = LocalDatabase(Path("local_data/invoices.db"))
        store.open()
        store.put("clients", {"id": "c1", "companyId": "co1", "name": "Acme"})
        store.get_all_by_index("clients", "companyId", "co1")
    """

    def __init__(
        self,
        db_path: Union[Path, str, None] = None,
        collections: Optional[Dict[str, CollectionSpec]] = None,
        schema_version: int = SCHEMA_VERSION,
    ):
        """
        Args:
            db_path: Database file, or ":memory:" for a throwaway store
            collections: Declared collections (defaults to the app schema)
            schema_version: Version the declared collections correspond to
        """
        if db_path is None:
            db_path = DEFAULT_DB_PATH
        self.db_path = db_path if db_path == MEMORY_PATH else Path(db_path)
        self.collections = collections or COLLECTIONS
        self.schema_version = schema_version
        self.last_error: Optional[LocalStoreUnavailableError] = None
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_available(self) -> bool:
        """Whether the store is open and usable."""
        return self._conn is not None

    def open(self) -> bool:
        """
        Open the database and run any pending additive upgrade.

        Failures are logged and leave the store inert instead of raising.

        Returns:
            True if the store is usable
        """
        with self._lock:
            if self._conn is not None:
                return True

            conn = None
            try:
                if self.db_path != MEMORY_PATH:
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row

                persisted = conn.execute("PRAGMA user_version").fetchone()[0]
                if persisted > self.schema_version:
                    raise LocalStoreUnavailableError(
                        f"Local schema version {persisted} is newer than supported "
                        f"version {self.schema_version}",
                        db_path=str(self.db_path),
                        details={"persisted_version": persisted},
                    )
                if persisted < self.schema_version:
                    self._upgrade(conn, persisted)

                self._conn = conn
                self.last_error = None
                logger.info(f"Local database opened at: {self.db_path} (schema v{self.schema_version})")
                return True

            except (sqlite3.Error, OSError, LocalStoreUnavailableError) as e:
                if conn is not None:
                    conn.close()
                if isinstance(e, LocalStoreUnavailableError):
                    self.last_error = e
                else:
                    self.last_error = LocalStoreUnavailableError(
                        f"Could not open local database: {e}",
                        db_path=str(self.db_path),
                    )
                logger.error(f"Local database unavailable: {self.last_error}")
                return False

    def _upgrade(self, conn: sqlite3.Connection, from_version: int) -> None:
        """Create missing tables, index columns and indexes. Never drops data."""
        logger.info(f"Upgrading local schema v{from_version} -> v{self.schema_version}")
        with conn:
            for spec in self.collections.values():
                conn.execute(
                    f'CREATE TABLE IF NOT EXISTS "{spec.name}" ('
                    "id TEXT PRIMARY KEY, data_json TEXT NOT NULL)"
                )
                existing = {row["name"] for row in conn.execute(f'PRAGMA table_info("{spec.name}")')}

                for field_name in spec.indexes:
                    column = _index_column(field_name)
                    if column not in existing:
                        conn.execute(f'ALTER TABLE "{spec.name}" ADD COLUMN "{column}"')
                        conn.execute(
                            f'UPDATE "{spec.name}" SET "{column}" = json_extract(data_json, ?)',
                            [f'$."{field_name}"'],
                        )
                    conn.execute(
                        f'CREATE INDEX IF NOT EXISTS "ix_{spec.name}_{field_name}" '
                        f'ON "{spec.name}" ("{column}")'
                    )
                logger.debug(f"Created/verified collection: {spec.name}")

            conn.execute(f"PRAGMA user_version = {int(self.schema_version)}")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def force_upgrade(self) -> bool:
        """
        Delete the whole local database and recreate it empty.

        Every unsynced mutation on this device is lost. Only call this from an
        explicit user recovery action.

        Returns:
            True if the recreated store is usable
        """
        with self._lock:
            logger.warning(f"Forcing local database reset: {self.db_path}")
            self.close()

            if self.db_path != MEMORY_PATH:
                for suffix in ("", "-journal", "-wal", "-shm"):
                    candidate = Path(f"{self.db_path}{suffix}")
                    try:
                        candidate.unlink()
                    except FileNotFoundError:
                        continue
                    except OSError as e:
                        logger.error(f"Could not delete {candidate}: {e}")

            self.last_error = None
            opened = self.open()
            if opened:
                logger.info("Local database reset complete")
            return opened

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        with self._lock:
            conn = self._conn
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    # =========================================================================
    # GENERIC RECORD OPERATIONS
    # =========================================================================

    def _spec(self, collection: str) -> Optional[CollectionSpec]:
        spec = self.collections.get(collection)
        if spec is None:
            logger.warning(f"Ignoring operation on undeclared collection: {collection}")
        return spec

    def _row_values(self, spec: CollectionSpec, record: Dict[str, Any]) -> List[Any]:
        values = [record["id"], encode_record(record)]
        for field_name in spec.indexes:
            value = record.get(field_name)
            values.append(value if isinstance(value, (str, int, float)) or value is None else str(value))
        return values

    def _upsert_sql(self, spec: CollectionSpec) -> str:
        columns = ["id", "data_json"] + [f'"{_index_column(f)}"' for f in spec.indexes]
        placeholders = ", ".join("?" for _ in columns)
        return f'INSERT OR REPLACE INTO "{spec.name}" ({", ".join(columns)}) VALUES ({placeholders})'

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Get a record by id, None when missing."""
        with self._lock:
            spec = self._spec(collection)
            if self._conn is None or spec is None:
                return None
            row = self._conn.execute(
                f'SELECT data_json FROM "{spec.name}" WHERE id = ?',
                [record_id],
            ).fetchone()
            return decode_record(row["data_json"]) if row else None

    def get_all(self, collection: str, order_by: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Get every record of a collection.

        Args:
            collection: Collection name
            order_by: Optional index field to sort by (ascending, then insertion order)
        """
        with self._lock:
            spec = self._spec(collection)
            if self._conn is None or spec is None:
                return []

            query = f'SELECT data_json FROM "{spec.name}"'
            if order_by and order_by in spec.indexes:
                query += f' ORDER BY "{_index_column(order_by)}" ASC, rowid ASC'
            else:
                query += " ORDER BY rowid ASC"

            return [decode_record(row["data_json"]) for row in self._conn.execute(query)]

    def get_all_by_index(self, collection: str, field_name: str, value: Any) -> List[Dict[str, Any]]:
        """
        Get records whose ``field_name`` equals ``value``.

        Declared index fields use the indexed column; any other field falls
        back to a filtered scan. Never returns None.
        """
        with self._lock:
            spec = self._spec(collection)
            if self._conn is None or spec is None:
                return []

            if field_name in spec.indexes:
                rows = self._conn.execute(
                    f'SELECT data_json FROM "{spec.name}" '
                    f'WHERE "{_index_column(field_name)}" = ? ORDER BY rowid ASC',
                    [value],
                )
                return [decode_record(row["data_json"]) for row in rows]

            logger.debug(f"No index on {collection}.{field_name}, scanning")
            return [r for r in self.get_all(collection) if r.get(field_name) == value]

    def put(self, collection: str, record: Dict[str, Any]) -> None:
        """Insert or fully replace a record keyed by its id."""
        self.put_many(collection, [record])

    def put_many(self, collection: str, records: Iterable[Dict[str, Any]]) -> int:
        """
        Insert or replace several records in one transaction.

        Returns:
            Number of records written
        """
        with self._lock:
            spec = self._spec(collection)
            if self._conn is None or spec is None:
                return 0

            rows = []
            for record in records:
                if not isinstance(record.get("id"), str) or not record["id"]:
                    logger.warning(f"Skipping record without id in {collection}")
                    continue
                rows.append(self._row_values(spec, record))

            if rows:
                with self.transaction() as conn:
                    conn.executemany(self._upsert_sql(spec), rows)
            return len(rows)

    def delete(self, collection: str, record_id: str) -> None:
        """Delete a record; no-op when absent."""
        with self._lock:
            spec = self._spec(collection)
            if self._conn is None or spec is None:
                return
            with self.transaction() as conn:
                conn.execute(f'DELETE FROM "{spec.name}" WHERE id = ?', [record_id])

    def count(self, collection: str) -> int:
        """Number of records in a collection."""
        with self._lock:
            spec = self._spec(collection)
            if self._conn is None or spec is None:
                return 0
            row = self._conn.execute(f'SELECT COUNT(*) AS count FROM "{spec.name}"').fetchone()
            return row["count"] if row else 0

    # =========================================================================
    # PANDAS INTEGRATION
    # =========================================================================

    def to_dataframe(
        self,
        collection: str,
        field_name: Optional[str] = None,
        value: Any = None,
    ) -> pd.DataFrame:
        """
        Load cached records into a pandas DataFrame (for reporting views).

        Args:
            collection: Collection name
            field_name: Optional equality filter field
            value: Value for the equality filter

        Returns:
            DataFrame with one row per record, empty when nothing is cached
        """
        if field_name is not None:
            records = self.get_all_by_index(collection, field_name, value)
        else:
            records = self.get_all(collection)
        return pd.DataFrame.from_records(records) if records else pd.DataFrame()
