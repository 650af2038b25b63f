"""Data models used by HamLog Pro.

QSO is the logged contact; DXSpot is a transient cluster report used to
pre-fill a new QSO. Both are SQLModel (pydantic) models without a table: the
whole contact collection is persisted as one document by the storage layer.

Records coming from outside (providers, ADIF, JSON) go through
``coerce_contact`` once, so the reconciliation code can rely on complete,
typed values.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError, field_validator
from sqlmodel import Field, SQLModel

from .errors import InvalidInput
from .geo import is_valid_locator


class Band(str, Enum):
    """Amateur radio bands offered by the logger."""

    M160 = "160m"
    M80 = "80m"
    M60 = "60m"
    M40 = "40m"
    M30 = "30m"
    M20 = "20m"
    M17 = "17m"
    M15 = "15m"
    M12 = "12m"
    M10 = "10m"
    M6 = "6m"
    M2 = "2m"
    CM70 = "70cm"
    CM23 = "23cm"


class Mode(str, Enum):
    SSB = "SSB"
    CW = "CW"
    FT8 = "FT8"
    FT4 = "FT4"
    FM = "FM"
    AM = "AM"
    RTTY = "RTTY"
    PSK31 = "PSK31"


_MODE_ALIASES = {"USB": "SSB", "LSB": "SSB"}

# Upper frequency bound (MHz, exclusive) -> band.
_BAND_EDGES = (
    (2.0, Band.M160),
    (4.0, Band.M80),
    (6.0, Band.M60),
    (8.0, Band.M40),
    (11.0, Band.M30),
    (15.0, Band.M20),
    (19.0, Band.M17),
    (22.0, Band.M15),
    (25.0, Band.M12),
    (30.0, Band.M10),
    (60.0, Band.M6),
    (150.0, Band.M2),
    (450.0, Band.CM70),
)

DEFAULT_BAND = Band.M40


def now_utc() -> datetime:
    """Return the current time as a naive UTC datetime without microseconds."""
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)


def new_contact_id() -> str:
    return uuid4().hex


def normalize_callsign(call: Optional[str]) -> str:
    """Strip and uppercase a callsign; raise InvalidInput if nothing is left."""
    if not isinstance(call, str) or not call.strip():
        raise InvalidInput("callsign is required")
    return call.strip().upper()


def normalize_locator(grid: Optional[str]) -> Optional[str]:
    """Return ``grid`` in canonical case (JN45ab) if valid, stripped otherwise."""
    if grid is None:
        return None
    g = grid.strip()
    if not g:
        return None
    if is_valid_locator(g):
        return g[:2].upper() + g[2:4] + g[4:].lower()
    return g


def to_naive_utc(value: Union[datetime, str]) -> datetime:
    """Parse an ISO timestamp (``Z`` allowed) and return it as naive UTC."""
    if isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(s)
        except ValueError as e:
            raise InvalidInput(f"unrecognized timestamp: {value!r}") from e
    if not isinstance(value, datetime):
        raise InvalidInput(f"timestamp must be a datetime, got {type(value).__name__}")
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def coerce_band(value: Union[str, Band]) -> str:
    if isinstance(value, Band):
        return value.value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for band in Band:
            if band.value == wanted:
                return band.value
    raise ValueError(f"unknown band: {value!r}")


def coerce_mode(value: Union[str, Mode]) -> str:
    if isinstance(value, Mode):
        return value.value
    if isinstance(value, str):
        wanted = value.strip().upper()
        wanted = _MODE_ALIASES.get(wanted, wanted)
        if wanted in Mode.__members__:
            return Mode[wanted].value
    raise ValueError(f"unknown mode: {value!r}")


def infer_band(freq_mhz: Union[str, float, None]) -> str:
    """Map a frequency in MHz to a band, defaulting to 40m when it cannot be placed."""
    try:
        f = float(freq_mhz)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return DEFAULT_BAND.value
    if math.isnan(f):
        return DEFAULT_BAND.value
    for upper, band in _BAND_EDGES:
        if f < upper:
            return band.value
    return DEFAULT_BAND.value


class QSO(SQLModel):
    """A single logged contact.

    Attributes
    - id: Opaque identifier (UUID hex for locally created contacts).
    - timestamp: UTC time of the contact (naive UTC).
    - callsign: Worked station, always uppercase.
    - rst_sent/rst_rcvd: Signal reports, "59" unless given.
    - band/mode/power: Radio details; band and mode are Band/Mode values.
    - name/qth/grid: Operator name, location and Maidenhead locator.
    - park_ref/summit_ref: POTA / SOTA references.
    - distance_km: Great-circle distance to the other station, when known.
    - audio_ref/profile_image_url: Attachments.
    - synced: True once the contact exists in the remote logbook.
    """

    id: str = Field(default_factory=new_contact_id)
    timestamp: datetime = Field(default_factory=now_utc)
    callsign: str

    rst_sent: str = "59"
    rst_rcvd: str = "59"
    band: str = DEFAULT_BAND.value
    mode: str = Mode.SSB.value
    power: str = "100W"

    name: Optional[str] = None
    qth: Optional[str] = None
    grid: Optional[str] = None

    park_ref: Optional[str] = None
    summit_ref: Optional[str] = None
    distance_km: Optional[int] = Field(default=None, ge=0)

    audio_ref: Optional[str] = None
    profile_image_url: Optional[str] = None
    notes: Optional[str] = None

    synced: bool = False

    @field_validator("callsign", mode="before")
    @classmethod
    def _callsign(cls, v: Any) -> str:
        return normalize_callsign(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, v: Any) -> datetime:
        return to_naive_utc(v)

    @field_validator("band", mode="before")
    @classmethod
    def _band(cls, v: Any) -> str:
        return coerce_band(v)

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, v: Any) -> str:
        return coerce_mode(v)

    @field_validator("grid", mode="before")
    @classmethod
    def _grid(cls, v: Any) -> Optional[str]:
        return normalize_locator(v)


class DXSpot(SQLModel):
    """A DX cluster report that a station is active on a frequency."""

    id: str = Field(default_factory=new_contact_id)
    dx_callsign: str
    frequency_mhz: float
    mode: str = Mode.SSB.value
    spotter_callsign: str
    time_of_day: str
    comment: Optional[str] = None


def with_synced(qso: QSO) -> QSO:
    """Return a copy of ``qso`` marked as present in the remote logbook."""
    if qso.synced:
        return qso
    return QSO.model_validate({**qso.model_dump(), "synced": True})


def contact_from_spot(spot: DXSpot, **fields: Any) -> QSO:
    """Pre-fill a new local QSO from a DX spot; ``fields`` override the defaults."""
    try:
        mode = coerce_mode(spot.mode)
    except ValueError:
        mode = Mode.SSB.value
    data: Dict[str, Any] = {
        "callsign": spot.dx_callsign,
        "band": infer_band(spot.frequency_mhz),
        "mode": mode,
    }
    data.update(fields)
    return QSO(**data)


# Loose field names seen from providers and older stored logs -> QSO fields.
_ALIASES = {
    "call": "callsign",
    "rstSent": "rst_sent",
    "rstRcvd": "rst_rcvd",
    "operatorName": "name",
    "operatorLocation": "qth",
    "locator": "grid",
    "gridLocator": "grid",
    "potaRef": "park_ref",
    "parkReference": "park_ref",
    "sotaRef": "summit_ref",
    "summitReference": "summit_ref",
    "distance": "distance_km",
    "distanceKm": "distance_km",
    "audioUrl": "audio_ref",
    "audioHandle": "audio_ref",
    "profileImage": "profile_image_url",
    "profileImageUrl": "profile_image_url",
    "start_at": "timestamp",
}

_FREQ_KEYS = ("freq", "freq_mhz", "frequency_mhz")


def coerce_contact(raw: Union[QSO, Mapping[str, Any]], *, synced: Optional[bool] = None) -> QSO:
    """Validate a loosely shaped record into a strict QSO.

    ``synced`` overrides whatever the record says. A missing band is inferred
    from a frequency field when one is present. Raises InvalidInput when the
    record cannot be turned into a QSO.
    """
    if raw is None:
        raise InvalidInput("record is required")
    if isinstance(raw, QSO):
        data: Dict[str, Any] = raw.model_dump()
    elif isinstance(raw, Mapping):
        data = {}
        for key, value in raw.items():
            if value is None:
                continue
            data[_ALIASES.get(key, key)] = value
    else:
        raise InvalidInput(f"unsupported record type: {type(raw).__name__}")

    if "timestamp" not in data:
        raise InvalidInput("record has no timestamp")
    if "band" not in data:
        freq = next((data[k] for k in _FREQ_KEYS if k in data), None)
        if freq is not None:
            data["band"] = infer_band(freq)
    if "distance_km" in data:
        try:
            data["distance_km"] = int(round(float(data["distance_km"])))
        except (TypeError, ValueError):
            data.pop("distance_km")
    if "id" in data:
        data["id"] = str(data["id"])
    if synced is not None:
        data["synced"] = synced

    try:
        return QSO.model_validate(data)
    except ValidationError as e:
        raise InvalidInput(f"invalid contact record: {e}") from e
