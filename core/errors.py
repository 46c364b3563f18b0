from __future__ import annotations

from typing import Optional


class DashboardError(Exception):
    """Base class for errors raised at the dashboard boundary."""


class DataUnavailableError(DashboardError):
    """The sales CSV could not be fetched or decoded."""

    default_message = "Something went wrong while loading the sales data."

    def __init__(self, message: Optional[str] = None, *, source: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.source = source


class AuthError(DashboardError):
    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or code)
        self.code = code


class VoteError(DashboardError):
    pass
