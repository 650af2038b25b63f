"""Service layer between the logbook state and the external providers.

Each flow runs in two phases: an awaited provider call bounded by a timeout,
then a synchronous merge applied through ``LogbookState.update``. A failed
provider call never touches the state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from .errors import InvalidInput, InvalidLocator, ProviderError
from .geo import locator_distance_km
from .models import QSO, coerce_contact, normalize_callsign, normalize_locator
from .providers import DirectoryLookupProvider, LookupResult, RemoteLogbookProvider
from .reconcile import (
    ReconciliationResult,
    mark_synced_after_outbound_sync,
    pending_sync,
    reconcile_remote_import,
)
from .state import LogbookState

logger = logging.getLogger(__name__)

MIN_LOOKUP_LENGTH = 3


@dataclass
class ImportReport(ReconciliationResult):
    """ReconciliationResult plus the number of remote records we could not use."""

    rejected: int = 0


async def lookup_callsign(
    provider: DirectoryLookupProvider,
    callsign: str,
    *,
    timeout: float = 10.0,
) -> Optional[LookupResult]:
    """Look up a callsign, returning None if it is too short or the provider fails.

    A failed lookup is not fatal for logging a contact, so errors are logged
    and swallowed here.
    """
    if not callsign or len(callsign.strip()) < MIN_LOOKUP_LENGTH:
        return None
    call = normalize_callsign(callsign)
    try:
        return await asyncio.wait_for(provider.lookup(call), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Directory lookup for %s timed out after %.1fs", call, timeout)
    except Exception as e:
        logger.warning("Directory lookup for %s failed: %s", call, e)
    return None


def enrich_contact(qso: QSO, lookup: Optional[LookupResult], my_locator: Optional[str]) -> QSO:
    """Return a copy of ``qso`` completed with directory details.

    Fields already set on the contact win over the lookup. The distance is
    computed between the centres of ``my_locator`` and the contact's grid and
    left as it was if either locator is missing or cannot be decoded.
    """
    data = qso.model_dump()
    if lookup is not None:
        data["name"] = data.get("name") or lookup.name
        data["qth"] = data.get("qth") or lookup.location
        data["grid"] = data.get("grid") or normalize_locator(lookup.grid)
        data["profile_image_url"] = data.get("profile_image_url") or lookup.image_url

    distance = None
    if my_locator and data.get("grid"):
        try:
            distance = locator_distance_km(my_locator, data["grid"])
        except InvalidLocator as e:
            logger.debug("No distance for %s: %s", qso.callsign, e)
    if distance is not None:
        data["distance_km"] = distance
    return QSO.model_validate(data)


async def import_remote_logbook(
    state: LogbookState,
    provider: RemoteLogbookProvider,
    *,
    timeout: float = 30.0,
) -> ImportReport:
    """Fetch the remote logbook and merge it into ``state``.

    Raises ProviderError if the fetch fails or times out; the local log is
    unchanged in that case.
    """
    try:
        raw = await asyncio.wait_for(provider.fetch_all(), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ProviderError(f"Remote logbook fetch timed out after {timeout:.1f}s") from e
    except Exception as e:
        raise ProviderError(f"Remote logbook fetch failed: {e}") from e

    remote: List[QSO] = []
    rejected = 0
    for record in raw or []:
        try:
            remote.append(coerce_contact(record, synced=True))
        except InvalidInput as e:
            rejected += 1
            logger.warning("Skipping remote record: %s", e)

    result: ReconciliationResult = state.update(
        lambda local: reconcile_remote_import(local, remote)
    )
    logger.info(
        "Remote import: %d new, %d marked synced, %d rejected, %d total",
        result.imported,
        result.marked_synced,
        rejected,
        len(result.contacts),
    )
    return ImportReport(
        contacts=result.contacts,
        imported=result.imported,
        marked_synced=result.marked_synced,
        rejected=rejected,
    )


async def push_unsynced(
    state: LogbookState,
    provider: RemoteLogbookProvider,
    *,
    timeout: float = 30.0,
) -> int:
    """Push unsynced contacts and mark them synced; return how many were pushed.

    Raises ProviderError if the provider fails, times out, or reports failure;
    no contact is marked synced in that case.
    """
    to_push = pending_sync(state.contacts)
    if not to_push:
        return 0
    try:
        ok = await asyncio.wait_for(provider.push_unsynced(to_push), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ProviderError(f"Remote logbook push timed out after {timeout:.1f}s") from e
    except Exception as e:
        raise ProviderError(f"Remote logbook push failed: {e}") from e
    if not ok:
        raise ProviderError("Remote logbook rejected the upload")

    pushed_ids = {q.id for q in to_push}

    def _mark(current: List[QSO]) -> List[QSO]:
        # Only the contacts actually pushed; anything logged meanwhile stays pending.
        pushed = [q for q in current if q.id in pushed_ids]
        marked = {q.id: q for q in mark_synced_after_outbound_sync(pushed)}
        return [marked.get(q.id, q) for q in current]

    state.update(_mark)
    logger.info("Pushed %d contacts to the remote logbook", len(to_push))
    return len(to_push)
