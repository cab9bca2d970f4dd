"""
Key-value storage module.
Flat namespaced key-value stores backing the saved forms collection.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional
import json
import logging
import os
import tempfile

from psycopg2 import pool
import psycopg2.extras as extras
from psycopg2.extensions import connection as Connection
from pydantic import ValidationError

from formbuilder.config import Settings, settings as default_settings
from formbuilder.core.exceptions import StorageException
from formbuilder.schemas.form_schema import FormSchema

logger = logging.getLogger(__name__)

SAVED_FORMS_KEY = "savedForms"


class KeyValueStore(ABC):
    """A flat key-value store scoped to one namespace."""

    def __init__(self, namespace: str):
        self.namespace = namespace

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the JSON value stored under key, or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Replace the value stored under key."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; missing keys are ignored."""

    def close(self) -> None:
        """Release backend resources."""


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store for tests and ephemeral runs."""

    def __init__(self, namespace: str = "formBuilder"):
        super().__init__(namespace)
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        # Stored serialized so callers never share references with the store
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Store backed by one JSON document on disk.

    The document maps namespace -> key -> value and is rewritten whole on
    every change through a temp file and an atomic replace.
    """

    def __init__(self, path: str, namespace: str = "formBuilder"):
        super().__init__(namespace)
        self.path = Path(path)

    def _read_document(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read storage file {self.path}: {str(e)}")
            raise StorageException(f"Failed to read storage file: {str(e)}", details={"path": str(self.path)})
        if not isinstance(document, dict):
            raise StorageException("Storage file is not a JSON object", details={"path": str(self.path)})
        return document

    def _write_document(self, document: Dict[str, Dict[str, Any]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to write storage file {self.path}: {str(e)}")
            raise StorageException(f"Failed to write storage file: {str(e)}", details={"path": str(self.path)})

    def get(self, key: str) -> Optional[Any]:
        return self._read_document().get(self.namespace, {}).get(key)

    def set(self, key: str, value: Any) -> None:
        document = self._read_document()
        document.setdefault(self.namespace, {})[key] = value
        self._write_document(document)

    def delete(self, key: str) -> None:
        document = self._read_document()
        if key in document.get(self.namespace, {}):
            del document[self.namespace][key]
            self._write_document(document)


class PostgresKeyValueStore(KeyValueStore):
    """Store backed by a `kv_store` table in PostgreSQL."""

    def __init__(self, dsn: str, namespace: str = "formBuilder", pool_size: int = 5):
        super().__init__(namespace)
        try:
            self._pool = pool.SimpleConnectionPool(minconn=1, maxconn=pool_size, dsn=dsn)
            logger.info("Key-value store connection pool initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize key-value store pool: {str(e)}")
            raise StorageException(f"Key-value store pool initialization failed: {str(e)}")
        self._ensure_table()

    @contextmanager
    def get_connection(self) -> Generator[Connection, None, None]:
        """
        Get a pooled connection, committing on success.

        Yields:
            Database connection
        """
        connection = None
        try:
            connection = self._pool.getconn()
            yield connection
            connection.commit()
        except Exception as e:
            if connection:
                connection.rollback()
            logger.error(f"Key-value store error: {str(e)}")
            raise StorageException(f"Key-value store operation failed: {str(e)}")
        finally:
            if connection:
                self._pool.putconn(connection)

    def _ensure_table(self) -> None:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        namespace VARCHAR(100) NOT NULL,
                        key VARCHAR(255) NOT NULL,
                        value JSONB NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (namespace, key)
                    )
                """)
            finally:
                cursor.close()

    def get(self, key: str) -> Optional[Any]:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "SELECT value FROM kv_store WHERE namespace = %s AND key = %s",
                    (self.namespace, key)
                )
                result = cursor.fetchone()
            finally:
                cursor.close()

        if not result:
            return None
        value = result[0]
        return json.loads(value) if isinstance(value, str) else value

    def set(self, key: str, value: Any) -> None:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    INSERT INTO kv_store (namespace, key, value)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (namespace, key)
                    DO UPDATE SET value = EXCLUDED.value, updated_at = CURRENT_TIMESTAMP
                    """,
                    (self.namespace, key, extras.Json(value))
                )
            finally:
                cursor.close()

    def delete(self, key: str) -> None:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    "DELETE FROM kv_store WHERE namespace = %s AND key = %s",
                    (self.namespace, key)
                )
            finally:
                cursor.close()

    def close(self) -> None:
        self._pool.closeall()
        logger.info("Key-value store connection pool closed")


def create_key_value_store(config: Settings = None) -> KeyValueStore:
    """Build the store selected by STORAGE_BACKEND."""
    config = config or default_settings
    backend = config.STORAGE_BACKEND
    if backend == "memory":
        return InMemoryKeyValueStore(config.STORAGE_NAMESPACE)
    if backend == "postgres":
        return PostgresKeyValueStore(config.DATABASE_URL, config.STORAGE_NAMESPACE, config.DB_POOL_SIZE)
    return JsonFileKeyValueStore(config.STORAGE_PATH, config.STORAGE_NAMESPACE)


class SavedFormsRepository:
    """Reads and rewrites the saved forms collection as one stored entry."""

    def __init__(self, store: KeyValueStore, key: str = SAVED_FORMS_KEY):
        self.store = store
        self.key = key

    def load_all(self) -> List[FormSchema]:
        """
        Read the saved collection.

        Records that no longer validate are skipped so one bad record does
        not hide the rest.
        """
        records = self.store.get(self.key)
        if records is None:
            return []
        if not isinstance(records, list):
            logger.warning("Saved forms entry is not a list, ignoring it")
            return []

        forms: List[FormSchema] = []
        for index, record in enumerate(records):
            try:
                forms.append(FormSchema.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping malformed saved form at index {index}: {str(e)}")
        return forms

    def save_all(self, forms: List[FormSchema]) -> None:
        self.store.set(self.key, [form.to_record() for form in forms])
