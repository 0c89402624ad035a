# app/core/errors.py
from __future__ import annotations

from typing import Optional


class DirtyThirtyError(Exception):
    """Base for every error the core raises on purpose."""


class UpstreamError(DirtyThirtyError):
    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class UpstreamTimeout(UpstreamError):
    pass


class UpstreamBadStatus(UpstreamError):
    def __init__(self, message: str, status_code: int, url: Optional[str] = None):
        super().__init__(message, url=url)
        self.status_code = status_code


class UpstreamMalformed(UpstreamError):
    """Body was not JSON, or not the shape we expected."""


class StoreUnavailable(DirtyThirtyError):
    pass


class PickRejected(DirtyThirtyError):
    """A selection broke a pick rule (locked player, unknown player, too many slots)."""
