from __future__ import annotations

from typing import Optional

import httpx


class SiteClockError(RuntimeError):
    """Base class for errors raised inside SiteClock."""


class GeoUnavailable(SiteClockError):
    """A location fix could not be obtained."""


class PersistenceCorrupt(SiteClockError):
    """The persisted store blob could not be decoded."""


class ReportDeliveryError(SiteClockError):
    """The daily report could not be delivered."""

    def __init__(self, message: str, *, response: Optional[httpx.Response] = None) -> None:
        super().__init__(message)
        self.response = response


__all__ = ["SiteClockError", "GeoUnavailable", "PersistenceCorrupt", "ReportDeliveryError"]
