"""Logbook reconciliation: merge a remote logbook into the local one.

Every contact is either local (``synced=False``) or synced (``synced=True``)
and only ever moves from the first state to the second. All functions here
are pure: they return new lists and never modify the QSOs they are given.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidInput
from .models import QSO, normalize_callsign, with_synced

DUPLICATE_WINDOW = timedelta(seconds=60)


@dataclass
class ReconciliationResult:
    """Outcome of a remote import.

    ``contacts`` is the merged log, most recent first. ``imported`` counts
    remote contacts that had no local duplicate; ``marked_synced`` counts
    unsynced local contacts now represented by a remote (synced) record.
    """

    contacts: List[QSO] = field(default_factory=list)
    imported: int = 0
    marked_synced: int = 0


def _require(contacts: Optional[Iterable[QSO]], name: str) -> List[QSO]:
    if contacts is None:
        raise InvalidInput(f"{name} contacts are required")
    return list(contacts)


def is_duplicate(a: QSO, b: QSO, window: timedelta = DUPLICATE_WINDOW) -> bool:
    """Same callsign (case-insensitive) and less than ``window`` apart."""
    if normalize_callsign(a.callsign) != normalize_callsign(b.callsign):
        return False
    return abs(a.timestamp - b.timestamp) < window


def _find_duplicate(qso: QSO, contacts: Sequence[QSO]) -> Optional[QSO]:
    return next((m for m in contacts if is_duplicate(qso, m)), None)


def sort_recent_first(contacts: Iterable[QSO]) -> List[QSO]:
    """Stable sort by timestamp, newest first; equal timestamps keep their order."""
    return sorted(contacts, key=lambda q: q.timestamp, reverse=True)


def reconcile_remote_import(
    local: Optional[Iterable[QSO]],
    remote: Optional[Iterable[QSO]],
) -> ReconciliationResult:
    """Merge ``remote`` into ``local`` and report what changed.

    The remote records win: they are kept (marked synced) and any local record
    with the same callsign within a minute of one already merged is dropped.
    Re-running with the result as ``local`` produces the same set.
    """
    local_list = _require(local, "local")
    remote_list = _require(remote, "remote")

    merged: List[QSO] = [with_synced(r) for r in remote_list]
    superseded = 0
    for qso in local_list:
        if _find_duplicate(qso, merged) is None:
            merged.append(qso)
        elif not qso.synced:
            superseded += 1

    imported = sum(1 for r in remote_list if _find_duplicate(r, local_list) is None)
    return ReconciliationResult(
        contacts=sort_recent_first(merged),
        imported=imported,
        marked_synced=superseded,
    )


def merge_remote_import(
    local: Optional[Iterable[QSO]],
    remote: Optional[Iterable[QSO]],
) -> List[QSO]:
    """Return the merged, deduplicated log, most recent first."""
    return reconcile_remote_import(local, remote).contacts


def pending_sync(local: Optional[Iterable[QSO]]) -> List[QSO]:
    """Contacts that still have to be pushed to the remote logbook."""
    return [q for q in _require(local, "local") if not q.synced]


def mark_synced_after_outbound_sync(local: Optional[Iterable[QSO]]) -> List[QSO]:
    """Mark every contact synced after a successful push; order is unchanged."""
    return [with_synced(q) for q in _require(local, "local")]


def append_unique(
    existing: Optional[Iterable[QSO]],
    incoming: Optional[Iterable[QSO]],
) -> Tuple[List[QSO], int]:
    """Add ``incoming`` contacts that do not duplicate anything already logged.

    Used for local file imports: contacts keep their own ``synced`` flag.
    Returns the new log (most recent first) and how many contacts were added.
    """
    merged = _require(existing, "existing")
    added = 0
    for qso in _require(incoming, "incoming"):
        if _find_duplicate(qso, merged) is None:
            merged.append(qso)
            added += 1
    return sort_recent_first(merged), added
