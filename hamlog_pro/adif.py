"""Minimal ADIF import/export helpers.

We support the fields this logger keeps. The parser is intentionally simple
and tolerant; it looks for <TAG:len>value pairs and splits on <EOR>.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .errors import InvalidInput
from .models import QSO, coerce_contact

logger = logging.getLogger(__name__)

_EOH_RE = re.compile(r"<eoh>", re.IGNORECASE)
_EOR_RE = re.compile(r"<eor>", re.IGNORECASE)

# ADIF spec: https://www.adif.org/

PROGRAM_ID = "HAMLOGPRO"

# ADIF tag -> QSO field, for the plain string fields.
FIELD_MAP = {
    "CALL": "callsign",
    "BAND": "band",
    "MODE": "mode",
    "RST_SENT": "rst_sent",
    "RST_RCVD": "rst_rcvd",
    "TX_PWR": "power",
    "NAME": "name",
    "QTH": "qth",
    "GRIDSQUARE": "grid",
    "POTA_REF": "park_ref",
    "SOTA_REF": "summit_ref",
    "DISTANCE": "distance_km",
    "COMMENT": "notes",
    "APP_HAMLOG_ID": "id",
}


def _parse_adif_record(text: str) -> Dict[str, str]:
    """Extract a dict of ADIF tag->value from a single record chunk.

    This is a best-effort parser that respects <TAG:len>value and ignores type hints.
    """
    i = 0
    n = len(text)
    rec: Dict[str, str] = {}
    while i < n:
        if text[i] != "<":
            i += 1
            continue
        j = text.find(">", i)
        if j == -1:
            break
        parts = text[i + 1 : j].split(":")
        name = parts[0].upper()
        length = None
        if len(parts) >= 2:
            try:
                length = int(parts[1])
            except ValueError:
                length = None
        i = j + 1
        if length is None:
            continue
        rec[name] = text[i : i + length]
        i += length
    return rec


def _record_timestamp(rec: Dict[str, str]) -> Optional[datetime]:
    date = rec.get("QSO_DATE")
    time = rec.get("TIME_ON")
    if not date or not time or len(date) < 8 or len(time) < 4:
        return None
    try:
        # yyyymmdd + hhmm[ss]
        return datetime(
            int(date[0:4]),
            int(date[4:6]),
            int(date[6:8]),
            int(time[0:2]),
            int(time[2:4]),
            int(time[4:6]) if len(time) >= 6 else 0,
        )
    except ValueError:
        return None


def _record_to_qso(chunk: str, synced: bool) -> Optional[QSO]:
    """Turn one ADIF record into a QSO; None for records we cannot use."""
    rec = _parse_adif_record(chunk)
    if not rec.get("CALL"):
        return None
    ts = _record_timestamp(rec)
    if ts is None:
        return None
    data: Dict[str, object] = {"timestamp": ts}
    for tag, attr in FIELD_MAP.items():
        if rec.get(tag):
            data[attr] = rec[tag]
    if "band" not in data and rec.get("FREQ"):
        data["freq"] = rec["FREQ"]
    try:
        return coerce_contact(data, synced=synced)
    except InvalidInput as e:
        logger.warning("Skipping ADIF record for %s: %s", rec.get("CALL"), e)
        return None


def load_adif(text: str, *, synced: bool = False) -> List[QSO]:
    """Parse ADIF text into a list of QSOs (best effort).

    Records without CALL, without both QSO_DATE and TIME_ON, or with values
    we cannot coerce (unknown band or mode) are skipped.
    """
    parts = _EOH_RE.split(text, maxsplit=1)
    body = parts[1] if len(parts) == 2 else text
    chunks = _EOR_RE.split(body)
    return [q for chunk in chunks if (q := _record_to_qso(chunk, synced)) is not None]


def _field(tag: str, value: str) -> str:
    return f"<{tag}:{len(value)}>{value}"


def dump_adif(qsos: Iterable[QSO], *, header: bool = True) -> str:
    """Serialize QSOs to ADIF text with a minimal header and <EOR>-terminated records.

    With ``header=False`` only the records are written, for appending to an
    existing file.
    """
    lines: List[str] = []
    if header:
        lines += [
            "HamLog Pro Export",
            _field("ADIF_VER", "3.1.4"),
            _field("PROGRAMID", PROGRAM_ID),
            "<EOH>",
        ]
    for q in qsos:
        rec: List[str] = [
            _field("QSO_DATE", q.timestamp.strftime("%Y%m%d")),
            _field("TIME_ON", q.timestamp.strftime("%H%M%S")),
        ]
        for tag, attr in FIELD_MAP.items():
            value = getattr(q, attr)
            if value is not None and value != "":
                rec.append(_field(tag, str(value)))
        rec.append("<EOR>")
        lines.append("".join(rec))
    return "\n".join(lines) + "\n"
