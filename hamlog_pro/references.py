"""Park (POTA) and summit (SOTA) reference catalogs and proximity matching.

- ``find_nearest_reference`` returns the first catalog entry within a small
  radius of a position; catalog order is part of the contract.
- ``load_catalogs`` reads an optional JSON file to replace the built-in lists.
- ``suggest_references`` picks the park and summit for the programs enabled
  in the user settings.
"""

from __future__ import annotations

import json
import logging
import math
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from platformdirs import user_config_dir
from pydantic import ValidationError
from sqlmodel import SQLModel

from .errors import InvalidInput
from .geo import Coordinate, validate_coordinate

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_DEGREES = 0.2

CONFIG_ENV_VAR = "HAMLOG_REFERENCES_CONFIG"
CONFIG_FILENAME = "references.json"


class Reference(SQLModel):
    """A catalog entry for a park or summit activation site."""

    id: str
    name: str
    latitude: float
    longitude: float

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


POTA_CATALOG: Tuple[Reference, ...] = (
    Reference(id="I-0123", name="Parco Nazionale dello Stelvio", latitude=46.50, longitude=10.50),
    Reference(id="I-0456", name="Parco Regionale dei Colli Euganei", latitude=45.31, longitude=11.71),
)

SOTA_CATALOG: Tuple[Reference, ...] = (
    Reference(id="I/LO-123", name="Monte Generoso", latitude=45.92, longitude=9.01),
    Reference(id="I/VE-045", name="Monte Grappa", latitude=45.87, longitude=11.80),
)


def find_nearest_reference(
    catalog: Optional[Iterable[Reference]],
    origin: object,
    threshold_degrees: float = DEFAULT_THRESHOLD_DEGREES,
) -> Optional[Reference]:
    """Return the first reference closer than ``threshold_degrees`` to ``origin``.

    Distance is planar in degrees, which is good enough for the small radius
    used here. Entries are tested in catalog order and the first hit wins even
    if a later entry is closer. Returns None when nothing qualifies.
    """
    if catalog is None:
        raise InvalidInput("reference catalog is required")
    if threshold_degrees is None or not threshold_degrees > 0:
        raise InvalidInput(f"threshold must be positive, got {threshold_degrees!r}")
    o = validate_coordinate(origin)
    for ref in catalog:
        d = math.sqrt((ref.latitude - o.latitude) ** 2 + (ref.longitude - o.longitude) ** 2)
        if d < threshold_degrees:
            return ref
    return None


def _config_path() -> Path:
    """Resolve the JSON catalog file path, honoring the env override."""
    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    cfg_dir = Path(user_config_dir(appname="HamLog Pro", appauthor=False))
    return cfg_dir / CONFIG_FILENAME


def _parse_catalog(raw: object) -> List[Reference]:
    if not isinstance(raw, list):
        raise ValueError("catalog must be a list")
    out: List[Reference] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError("catalog entries must be objects")
        data = dict(item)
        # Accept the short lat/lon keys used by exported catalogs.
        if "lat" in data:
            data.setdefault("latitude", data.pop("lat"))
        if "lon" in data:
            data.setdefault("longitude", data.pop("lon"))
        out.append(Reference.model_validate(data))
    return out


def load_catalogs() -> Dict[str, List[Reference]]:
    """Load the POTA and SOTA catalogs, overriding the built-ins from JSON.

    JSON shape example:
    { "pota": [{"id": "K-0001", "name": "Acadia", "lat": 44.35, "lon": -68.21}],
      "sota": [] }
    A program missing from the file keeps its built-in list. Returns the
    built-ins if the file cannot be read or parsed.
    """
    catalogs: Dict[str, List[Reference]] = {
        "pota": list(POTA_CATALOG),
        "sota": list(SOTA_CATALOG),
    }
    p = _config_path()
    try:
        if p.exists():
            with p.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError("top level must be an object")
            loaded = {k: _parse_catalog(raw[k]) for k in ("pota", "sota") if k in raw}
            catalogs.update(loaded)
    except (OSError, json.JSONDecodeError, ValueError, ValidationError) as e:
        logger.warning("Ignoring reference catalog %s: %s", p, e)
        return {"pota": list(POTA_CATALOG), "sota": list(SOTA_CATALOG)}
    return catalogs


def suggest_references(
    origin: object,
    *,
    pota_enabled: bool = True,
    sota_enabled: bool = True,
    catalogs: Optional[Dict[str, Sequence[Reference]]] = None,
    threshold_degrees: float = DEFAULT_THRESHOLD_DEGREES,
) -> Tuple[Optional[Reference], Optional[Reference]]:
    """Return (park, summit) near ``origin`` for the enabled programs."""
    if catalogs is None:
        catalogs = load_catalogs()
    park = (
        find_nearest_reference(catalogs.get("pota", ()), origin, threshold_degrees)
        if pota_enabled
        else None
    )
    summit = (
        find_nearest_reference(catalogs.get("sota", ()), origin, threshold_degrees)
        if sota_enabled
        else None
    )
    return park, summit
