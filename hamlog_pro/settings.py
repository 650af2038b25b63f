"""Operator settings persisted alongside the log."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from .geo import is_valid_locator
from .models import normalize_locator


class UserSettings(SQLModel):
    """Station and behaviour settings.

    - my_call/my_locator: The operator's station, used for distances.
    - pota_enabled/sota_enabled: Which reference programs are suggested.
    - reference_threshold_deg: Search radius for nearby references.
    - auto_sync_enabled/remote_adif: Push each new contact to the remote
      logbook file right after it is logged.
    - remote_timeout_s/lookup_timeout_s: Limits for provider calls.
    """

    my_call: str = ""
    my_locator: Optional[str] = None
    pota_enabled: bool = True
    sota_enabled: bool = True
    auto_sync_enabled: bool = False
    remote_adif: Optional[str] = None
    reference_threshold_deg: float = Field(default=0.2, gt=0)
    remote_timeout_s: float = Field(default=30.0, gt=0)
    lookup_timeout_s: float = Field(default=10.0, gt=0)

    @field_validator("my_call", mode="before")
    @classmethod
    def _my_call(cls, v: Any) -> str:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("my_locator", mode="before")
    @classmethod
    def _my_locator(cls, v: Any) -> Optional[str]:
        loc = normalize_locator(v) if isinstance(v, str) else v
        if loc is not None and not is_valid_locator(loc):
            raise ValueError(f"not a Maidenhead locator: {v!r}")
        return loc
