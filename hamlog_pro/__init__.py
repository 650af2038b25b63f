"""HamLog Pro: QSO logging core with grid locators, references and remote sync."""

from importlib.metadata import PackageNotFoundError, version

from .errors import HamLogError, InvalidInput, InvalidLocator, ProviderError, StorageError
from .geo import Coordinate, decode_locator, distance_km, encode_locator
from .models import QSO
from .reconcile import mark_synced_after_outbound_sync, merge_remote_import
from .references import find_nearest_reference

__all__ = [
    "__version__",
    "Coordinate",
    "HamLogError",
    "InvalidInput",
    "InvalidLocator",
    "ProviderError",
    "QSO",
    "StorageError",
    "decode_locator",
    "distance_km",
    "encode_locator",
    "find_nearest_reference",
    "mark_synced_after_outbound_sync",
    "merge_remote_import",
]

try:
    __version__ = version("hamlog-pro")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
