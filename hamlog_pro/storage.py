"""Persistence layer: a small key-value store on SQLite, and what we keep in it.

The database lives in the user's data directory by default, and can be
overridden via the HAMLOG_DB_PATH environment variable. SQLModel/SQLAlchemy 2.x
are used for ORM-style access.

The contact log is stored as a single JSON document under ``hamlog_qsos`` and
the user settings under ``hamlog_settings``.
"""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from platformdirs import user_data_dir
from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .errors import StorageError
from .models import QSO, coerce_contact, now_utc
from .settings import UserSettings

APP_NAME = "HamLog Pro"
DB_ENV_VAR = "HAMLOG_DB_PATH"

CONTACTS_KEY = "hamlog_qsos"
SETTINGS_KEY = "hamlog_settings"


class KeyValueStore(Protocol):
    """Anything with byte-valued get/set by string key."""

    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...


class KVEntry(SQLModel, table=True):
    """One stored value."""

    __tablename__ = "kv_entry"

    key: str = Field(primary_key=True)
    value: bytes
    updated_at: datetime = Field(default_factory=now_utc)


def _default_db_path() -> Path:
    """Return the default location of the SQLite database file."""
    data_dir = Path(user_data_dir(appname=APP_NAME, appauthor=False))
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "hamlog.sqlite3"


def get_db_path() -> Path:
    """Resolve the active database path, honoring HAMLOG_DB_PATH if set."""
    env = os.getenv(DB_ENV_VAR)
    if env:
        p = Path(env).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    return _default_db_path()


@contextmanager
def session_scope(engine: Engine):
    """Context manager yielding a Session; rolls back on errors."""
    session = Session(engine)
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class SQLiteKeyValueStore:
    """KeyValueStore backed by the ``kv_entry`` table of a SQLite file.

    Raises StorageError if the database cannot be opened or queried.
    """

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.path = Path(db_path) if db_path is not None else get_db_path()
        try:
            self.engine = create_engine(
                f"sqlite:///{self.path}",
                echo=False,
                connect_args={
                    "check_same_thread": False,  # shared with the sync worker thread
                    "timeout": 30,  # SQLite busy timeout
                },
            )
            SQLModel.metadata.create_all(self.engine)
        except Exception as e:
            raise StorageError(f"Failed to open database {self.path}: {e}") from e

    def get(self, key: str) -> Optional[bytes]:
        try:
            with session_scope(self.engine) as session:
                entry = session.get(KVEntry, key)
                return bytes(entry.value) if entry is not None else None
        except Exception as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        try:
            with session_scope(self.engine) as session:
                entry = session.get(KVEntry, key)
                if entry is None:
                    entry = KVEntry(key=key, value=value)
                else:
                    entry.value = value
                    entry.updated_at = now_utc()
                session.add(entry)
                session.commit()
        except Exception as e:
            raise StorageError(f"Failed to write {key!r}: {e}") from e

    def delete(self, key: str) -> bool:
        """Remove ``key``, returning True if it existed."""
        try:
            with session_scope(self.engine) as session:
                entry = session.get(KVEntry, key)
                if entry is None:
                    return False
                session.delete(entry)
                session.commit()
                return True
        except Exception as e:
            raise StorageError(f"Failed to delete {key!r}: {e}") from e

    def keys(self) -> List[str]:
        try:
            with session_scope(self.engine) as session:
                return list(session.exec(select(KVEntry.key).order_by(KVEntry.key)))
        except Exception as e:
            raise StorageError(f"Failed to list keys: {e}") from e

    def close(self) -> None:
        self.engine.dispose()


def dump_contacts(contacts: Sequence[QSO]) -> bytes:
    return json.dumps(
        [q.model_dump(mode="json") for q in contacts], ensure_ascii=False
    ).encode("utf-8")


def parse_contacts(raw: bytes) -> List[QSO]:
    """Decode a stored contact document.

    Records are validated one by one through the boundary coercion so logs
    written with the older camelCase field names still load.
    """
    try:
        items = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageError(f"Stored contact log is corrupt: {e}") from e
    if not isinstance(items, list):
        raise StorageError("Stored contact log is not a list")
    return [coerce_contact(item) for item in items]


def save_contacts(store: KeyValueStore, contacts: Sequence[QSO]) -> None:
    store.set(CONTACTS_KEY, dump_contacts(contacts))


def load_contacts(store: KeyValueStore) -> List[QSO]:
    """Return the stored contact log, or an empty list if none was saved yet."""
    raw = store.get(CONTACTS_KEY)
    if raw is None:
        return []
    return parse_contacts(raw)


def save_settings(store: KeyValueStore, settings: UserSettings) -> None:
    store.set(SETTINGS_KEY, settings.model_dump_json().encode("utf-8"))


def load_settings(store: KeyValueStore) -> UserSettings:
    """Return the stored settings, or the defaults if none were saved yet."""
    raw = store.get(SETTINGS_KEY)
    if raw is None:
        return UserSettings()
    try:
        return UserSettings.model_validate_json(raw)
    except ValidationError as e:
        raise StorageError(f"Stored settings are invalid: {e}") from e
