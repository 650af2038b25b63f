"""Maidenhead grid locator codec and great-circle distance.

Locators are handled in their 4 character (square) and 6 character
(sub-square) forms. Decoding returns the centre of the 4 character square even
for 6 character input; the sub-square is validated but does not move the point.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Tuple

from .errors import InvalidInput, InvalidLocator

EARTH_RADIUS_KM = 6371.0

FIELD_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWX"
SUBSQUARE_LETTERS = "abcdefghijklmnopqrstuvwx"

# Only A-R describe a real field (18 x 20 degrees of longitude).
_FIELD_COUNT = 18
_SUBSQUARE_COUNT = 24


class Coordinate(NamedTuple):
    """A point on the Earth's surface in decimal degrees."""

    latitude: float
    longitude: float


def validate_coordinate(coordinate: object) -> Coordinate:
    """Return ``coordinate`` as a Coordinate, raising InvalidInput if out of range."""
    if coordinate is None:
        raise InvalidInput("coordinate is required")
    try:
        lat, lon = float(coordinate[0]), float(coordinate[1])  # type: ignore[index]
    except (TypeError, ValueError, IndexError) as e:
        raise InvalidInput(f"not a coordinate: {coordinate!r}") from e
    if math.isnan(lat) or math.isnan(lon):
        raise InvalidInput("coordinate contains NaN")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInput(f"latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise InvalidInput(f"longitude out of range: {lon}")
    return Coordinate(lat, lon)


def _split(value: float, size: float, count: int) -> Tuple[int, float]:
    """Return (index, remainder) of ``value`` in cells of ``size``, clamped to count-1."""
    index = min(int(value // size), count - 1)
    return index, value - index * size


def encode_locator(coordinate: object) -> str:
    """Encode a coordinate as a 6 character Maidenhead locator, e.g. JJ00aa.

    The north pole and the 180th meridian fall into the last field, square and
    sub-square rather than past the end of the alphabet.
    """
    c = validate_coordinate(coordinate)
    lon = c.longitude + 180.0
    lat = c.latitude + 90.0

    field_lon, lon = _split(lon, 20.0, _FIELD_COUNT)
    field_lat, lat = _split(lat, 10.0, _FIELD_COUNT)
    square_lon, lon = _split(lon, 2.0, 10)
    square_lat, lat = _split(lat, 1.0, 10)
    sub_lon, _ = _split(lon * 12.0, 1.0, _SUBSQUARE_COUNT)
    sub_lat, _ = _split(lat * 24.0, 1.0, _SUBSQUARE_COUNT)

    return (
        f"{FIELD_LETTERS[field_lon]}{FIELD_LETTERS[field_lat]}"
        f"{square_lon}{square_lat}"
        f"{SUBSQUARE_LETTERS[sub_lon]}{SUBSQUARE_LETTERS[sub_lat]}"
    )


def _parse(locator: object) -> Tuple[int, int, int, int]:
    """Validate a locator and return its field and square indices."""
    if not isinstance(locator, str):
        raise InvalidLocator(f"locator must be a string, got {type(locator).__name__}")
    loc = locator.strip()
    if len(loc) < 4:
        raise InvalidLocator(f"locator too short: {locator!r}")
    if len(loc) not in (4, 6):
        raise InvalidLocator(f"locator must have 4 or 6 characters: {locator!r}")

    field = loc[:2].upper()
    if any(ch not in FIELD_LETTERS[:_FIELD_COUNT] for ch in field):
        raise InvalidLocator(f"field letters must be A-R: {locator!r}")
    square = loc[2:4]
    if not all(ch in "0123456789" for ch in square):
        raise InvalidLocator(f"square must be two digits: {locator!r}")
    if len(loc) == 6 and any(ch not in SUBSQUARE_LETTERS for ch in loc[4:].lower()):
        raise InvalidLocator(f"sub-square letters must be a-x: {locator!r}")

    return (
        FIELD_LETTERS.index(field[0]),
        FIELD_LETTERS.index(field[1]),
        int(square[0]),
        int(square[1]),
    )


def locator_bounds(locator: str) -> Tuple[float, float, float, float]:
    """Return (south, west, north, east) of the 4 character square of ``locator``."""
    field_lon, field_lat, square_lon, square_lat = _parse(locator)
    west = field_lon * 20 - 180 + square_lon * 2
    south = field_lat * 10 - 90 + square_lat
    return float(south), float(west), float(south + 1), float(west + 2)


def decode_locator(locator: str) -> Coordinate:
    """Decode a 4 or 6 character locator to the centre of its 4 character square.

    Raises InvalidLocator for malformed input; callers are expected to fall
    back to another position rather than abort.
    """
    south, west, _, _ = locator_bounds(locator)
    return Coordinate(south + 0.5, west + 1.0)


def is_valid_locator(locator: object) -> bool:
    try:
        _parse(locator)
    except InvalidLocator:
        return False
    return True


def distance_km(a: object, b: object) -> int:
    """Great-circle distance between two coordinates, rounded to whole kilometres.

    Uses the haversine formula on a sphere of radius 6371 km. Halves round up.
    """
    p = validate_coordinate(a)
    q = validate_coordinate(b)
    d_lat = math.radians(q.latitude - p.latitude)
    d_lon = math.radians(q.longitude - p.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(p.latitude))
        * math.cos(math.radians(q.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return int(math.floor(EARTH_RADIUS_KM * c + 0.5))


def locator_distance_km(a: str, b: str) -> int:
    """Distance between the centres of two locators' squares."""
    return distance_km(decode_locator(a), decode_locator(b))
