"""Exception hierarchy for familycal.

Transport and parse failures are raised by the feed collaborators and caught
by the refresh service, which keeps the previously published events. Nothing
in the layout or navigation code raises.
"""

from typing import Optional


class FamilyCalError(Exception):
    """Base exception for all familycal errors."""


class ConfigError(FamilyCalError):
    """Configuration is missing or invalid.

    Raised at startup only, before the refresh and display loops run.
    """


class FeedError(FamilyCalError):
    """Base exception for feed-related errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FeedFetchError(FeedError):
    """Feed could not be fetched (unreachable or non-success status)."""


class FeedAuthError(FeedFetchError):
    """Feed rejected our credentials (401/403)."""


class FeedNetworkError(FeedFetchError):
    """Network-level failure while talking to a feed."""


class FeedTimeoutError(FeedFetchError):
    """Feed request timed out."""


class FeedParseError(FeedError):
    """Feed content could not be parsed.

    For the JSON feed this rejects the whole document.
    """
