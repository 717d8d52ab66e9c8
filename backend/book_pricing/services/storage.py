"""String-keyed JSON blob stores used by the matrix store and parameter provider.

Values are opaque strings here; callers encode and decode JSON themselves so that
a malformed value can be reported per key instead of failing the whole read.
"""
import logging
import threading
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete as sa_delete, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, col, select

from book_pricing.db.session import get_engine, get_session
from book_pricing.models.setting import Setting

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Persistence layer unreachable, timed out or refused the operation."""


class SettingsStore:
    """Key-value store on the `pricing_settings` table."""

    def __init__(self, engine=None):
        self.engine = engine or get_engine()

    def create_tables(self) -> None:
        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to create settings table: {e}") from e

    def get(self, key: str) -> Optional[str]:
        try:
            with get_session(self.engine) as session:
                row = session.get(Setting, key)
                return row.setting_value if row is not None else None
        except SQLAlchemyError as e:
            logger.exception("Settings read failed key=%s", key)
            raise StorageError(f"read failed for {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with get_session(self.engine) as session:
                row = session.get(Setting, key)
                if row is None:
                    row = Setting(setting_key=key, setting_value=value)
                else:
                    row.setting_value = value
                session.add(row)
                session.commit()
        except SQLAlchemyError as e:
            logger.exception("Settings write failed key=%s", key)
            raise StorageError(f"write failed for {key}: {e}") from e

    def delete(self, key: str) -> bool:
        return self.delete_many([key]) > 0

    def delete_many(self, keys: Iterable[str]) -> int:
        keys = list(keys)
        if not keys:
            return 0
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sa_delete(Setting).where(col(Setting.setting_key).in_(keys)))
                return result.rowcount or 0
        except SQLAlchemyError as e:
            logger.exception("Settings bulk delete failed count=%s", len(keys))
            raise StorageError(f"delete failed: {e}") from e

    def list_keys(self, prefix: str) -> List[str]:
        try:
            with get_session(self.engine) as session:
                stmt = select(Setting.setting_key).where(
                    col(Setting.setting_key).startswith(prefix, autoescape=True)
                )
                return sorted(session.exec(stmt).all())
        except SQLAlchemyError as e:
            logger.exception("Settings listing failed prefix=%s", prefix)
            raise StorageError(f"list failed for prefix {prefix}: {e}") from e

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("Settings store ping failed: %s", e)
            return False


class InMemoryStore:
    """Thread-safe dict store (local dev and tests)."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        return self.delete_many([key]) > 0

    def delete_many(self, keys: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._data.pop(key, None) is not None:
                    removed += 1
        return removed

    def list_keys(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def ping(self) -> bool:
        return True
