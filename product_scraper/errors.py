"""
Exception taxonomy for the product scraper.
Attempt-level failures are retryable; an invalid query is fatal.
"""

from typing import List, Optional


class ScrapeError(Exception):
    """Base class for all scraper failures."""

    retryable = True

    def __init__(self, message: str, source_id: Optional[str] = None):
        self.source_id = source_id
        super().__init__(message)


class InvalidQueryError(ScrapeError):
    """Raised before any browser work when the search query is blank."""

    retryable = False


class NavigationTimeout(ScrapeError):
    """Navigation did not reach DOM-ready and network-quiet within its bound."""


class NetworkFailure(ScrapeError):
    """The browser could not load the page (DNS, connection reset, aborted)."""


class SessionAcquisitionFailure(ScrapeError):
    """The browser process failed to launch or could not open a page."""


class ExtractionFault(ScrapeError):
    """Unexpected failure while reading DOM state."""


class RetryExhaustedError(ScrapeError):
    """
    Raised when every attempt of a source pipeline failed.

    Attributes:
        attempts: Number of attempts that were made.
        last_error: Failure from the final attempt.
        history: Failures from every attempt, oldest first.
    """

    retryable = False

    def __init__(self, attempts: int, last_error: ScrapeError, history: List[ScrapeError],
                 source_id: Optional[str] = None):
        self.attempts = attempts
        self.last_error = last_error
        self.history = history
        super().__init__(
            f"failed after {attempts} attempt(s): {type(last_error).__name__}: {last_error}",
            source_id=source_id,
        )
