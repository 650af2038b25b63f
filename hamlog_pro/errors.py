"""Exception types raised by HamLog Pro.

A missing reference near a coordinate is not an error: the matcher returns
None for that case.
"""

from __future__ import annotations


class HamLogError(Exception):
    """Base class for all HamLog Pro errors."""


class InvalidLocator(HamLogError, ValueError):
    """A Maidenhead grid locator string is malformed."""


class InvalidInput(HamLogError, ValueError):
    """A required collection, coordinate, or record field is missing or invalid."""


class ProviderError(HamLogError):
    """A directory or remote logbook provider failed or timed out."""


class StorageError(HamLogError, RuntimeError):
    """The key-value store could not be read or written."""
