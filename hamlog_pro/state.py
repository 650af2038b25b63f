"""The logbook state container.

LogbookState owns the current contact list and settings and is the single
writer to the key-value store. The reconciliation functions stay pure; they
are handed a snapshot through ``update`` and their result is persisted before
it becomes visible.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterable, List, Optional, TypeVar

from .models import QSO, normalize_callsign
from .settings import UserSettings
from .storage import KeyValueStore, load_contacts, load_settings, save_contacts, save_settings

T = TypeVar("T")


class LogbookState:
    """Contacts and settings, loaded from and saved to a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        contacts: Optional[Iterable[QSO]] = None,
        settings: Optional[UserSettings] = None,
    ) -> None:
        self.store = store
        self._contacts: List[QSO] = list(contacts or [])
        self._settings = settings or UserSettings()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, store: KeyValueStore) -> "LogbookState":
        return cls(store, load_contacts(store), load_settings(store))

    @property
    def contacts(self) -> List[QSO]:
        """A snapshot copy of the current log."""
        with self._lock:
            return list(self._contacts)

    @property
    def settings(self) -> UserSettings:
        return self._settings

    def update(self, fn: Callable[[List[QSO]], T]) -> T:
        """Apply ``fn`` to a snapshot of the log and persist what it returns.

        ``fn`` returns either the new contact list or an object with a
        ``contacts`` attribute (such as a ReconciliationResult). If ``fn``
        or the save raises, the state is left unchanged.
        """
        with self._lock:
            result = fn(list(self._contacts))
            new_contacts = list(getattr(result, "contacts", result))
            save_contacts(self.store, new_contacts)
            self._contacts = new_contacts
            return result

    def add(self, qso: QSO) -> QSO:
        """Log a new contact at the top of the list."""
        self.update(lambda current: [qso] + current)
        return qso

    def remove(self, contact_id: str) -> bool:
        """Delete a contact by id, returning True if it existed."""
        found = False

        def _drop(current: List[QSO]) -> List[QSO]:
            nonlocal found
            kept = [q for q in current if q.id != contact_id]
            found = len(kept) != len(current)
            return kept

        self.update(_drop)
        return found

    def clear(self) -> int:
        """Delete the whole log, returning how many contacts were removed."""
        removed = 0

        def _empty(current: List[QSO]) -> List[QSO]:
            nonlocal removed
            removed = len(current)
            return []

        self.update(_empty)
        return removed

    def set_settings(self, settings: UserSettings) -> None:
        with self._lock:
            save_settings(self.store, settings)
            self._settings = settings


def search_contacts(
    contacts: Iterable[QSO],
    *,
    call: Optional[str] = None,
    band: Optional[str] = None,
    mode: Optional[str] = None,
    grid: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[QSO]:
    """Filter contacts; ``call`` is a case-insensitive substring match, the
    others must match exactly (ignoring case). Input order is preserved.
    """
    c = normalize_callsign(call) if call else None
    out: List[QSO] = []
    for q in contacts:
        if c and c not in q.callsign:
            continue
        if band and q.band.lower() != band.strip().lower():
            continue
        if mode and q.mode.upper() != mode.strip().upper():
            continue
        if grid and (q.grid or "").upper() != grid.strip().upper():
            continue
        out.append(q)
        if limit is not None and len(out) >= limit:
            break
    return out
