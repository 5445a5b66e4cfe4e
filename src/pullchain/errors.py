"""Pullchain exception hierarchy.

Fetch failures and filter failures are kept apart so a listener on the
``error`` event can tell which stage of a pipeline run failed.
"""

from __future__ import annotations

from typing import Optional


class PullchainError(Exception):
    """Base exception for all pullchain failures."""


class ConfigError(PullchainError):
    """Raised for invalid pipeline configuration."""


class FetchError(PullchainError):
    """Raised when a locator cannot be turned into raw content."""

    def __init__(
        self,
        message: str,
        locator: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.locator = locator
        self.status_code = status_code


class ArchiveError(FetchError):
    """Raised when an archive cannot be extracted."""


class FilterError(PullchainError):
    """Raised when a filter signals failure or throws."""

    def __init__(
        self,
        message: str,
        filter_name: Optional[str] = None,
        index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.filter_name = filter_name
        self.index = index


class FilterNotFoundError(FilterError):
    """Raised when a filter identifier cannot be resolved."""
