"""Contracts for the external services the logger talks to.

A directory lookup resolves a callsign to operator details; a remote logbook
holds the authoritative copy of the log. Both are asynchronous and may fail
or hang, so callers wrap them (see ``sync``). ``AdifFileLogbook`` is a remote
logbook kept in an ADIF file, handy for offline use and tests;
``LogbookDirectory`` answers lookups from contacts already logged.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from pydantic import field_validator
from sqlmodel import SQLModel

from .adif import dump_adif, load_adif
from .models import QSO, normalize_callsign

RemoteRecord = Union[QSO, Mapping[str, Any]]


class LookupResult(SQLModel):
    """Operator details returned by a directory lookup."""

    callsign: str
    name: Optional[str] = None
    location: Optional[str] = None
    grid: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("callsign", mode="before")
    @classmethod
    def _callsign(cls, v: Any) -> str:
        return normalize_callsign(v)


@runtime_checkable
class DirectoryLookupProvider(Protocol):
    async def lookup(self, callsign: str) -> Optional[LookupResult]: ...


@runtime_checkable
class RemoteLogbookProvider(Protocol):
    async def fetch_all(self) -> Sequence[RemoteRecord]: ...

    async def push_unsynced(self, contacts: Sequence[QSO]) -> bool: ...


class AdifFileLogbook:
    """A remote logbook stored as an ADIF file.

    ``fetch_all`` returns every record in the file (a missing file is an empty
    logbook); ``push_unsynced`` appends the given contacts to it. Records
    already in the file are kept byte for byte, including ones this logger
    cannot parse.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> List[QSO]:
        if not self.path.exists():
            return []
        text = self.path.read_text(encoding="utf-8", errors="replace")
        return load_adif(text, synced=True)

    def _append(self, contacts: Sequence[QSO]) -> None:
        if self.path.exists() and self.path.stat().st_size > 0:
            existing = self.path.read_bytes()
            if not existing.endswith(b"\n"):
                existing += b"\n"
            data = existing + dump_adif(contacts, header=False).encode("utf-8")
        else:
            data = dump_adif(contacts).encode("utf-8")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Readers see either the old file or the new one, never a partial write.
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    async def fetch_all(self) -> List[QSO]:
        return await asyncio.to_thread(self._read)

    async def push_unsynced(self, contacts: Sequence[QSO]) -> bool:
        await asyncio.to_thread(self._append, contacts)
        return True


class LogbookDirectory:
    """Directory lookup answered from contacts already in the log.

    The most recent earlier contact with the callsign provides the name, QTH
    and grid. Returns None for a callsign never worked before.
    """

    def __init__(self, contacts: Iterable[QSO]) -> None:
        self._latest: Dict[str, QSO] = {}
        for q in contacts:
            seen = self._latest.get(q.callsign)
            if seen is None or q.timestamp > seen.timestamp:
                self._latest[q.callsign] = q

    async def lookup(self, callsign: str) -> Optional[LookupResult]:
        q = self._latest.get(normalize_callsign(callsign))
        if q is None:
            return None
        return LookupResult(
            callsign=q.callsign,
            name=q.name,
            location=q.qth,
            grid=q.grid,
            image_url=q.profile_image_url,
        )
