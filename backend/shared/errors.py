"""
Error taxonomy shared by the scraper, aggregator and predictor packages.

Each error carries a machine-readable code and the HTTP status the API maps it
to. ``retryable`` tells the retry executor whether a fresh browser session
could plausibly change the outcome.
"""
from __future__ import annotations

from typing import Any, Optional


class MatchScoutError(Exception):
    """Base class for all domain errors."""

    code = "MATCHSCOUT_ERROR"
    status_code = 500
    retryable = True

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class MatchNotFound(MatchScoutError):
    """The listing was searched to exhaustion without a matching row."""

    code = "MATCH_NOT_FOUND"
    status_code = 404
    retryable = False


class PageLoadError(MatchScoutError):
    """Navigation returned a status other than 2xx/304."""

    code = "PAGE_LOAD_ERROR"
    status_code = 502


class AntiBotBlocked(MatchScoutError):
    """Redirected to a challenge page that did not clear within the grace wait."""

    code = "ANTI_BOT_PROTECTION"
    status_code = 503


class ScrapingFailed(MatchScoutError):
    """Retry budget exhausted; wraps the last underlying error."""

    code = "SCRAPING_FAILED"
    status_code = 502

    def __init__(self, label: str, last_error: Optional[BaseException] = None) -> None:
        super().__init__(
            f"Failed to {label}",
            {"label": label, "original_error": str(last_error) if last_error else "Unknown error"},
        )
        self.label = label
        self.last_error = last_error


class NoDataFound(MatchScoutError):
    """A page loaded but the expected content was empty."""

    code = "NO_DATA_FOUND"
    status_code = 502


class AllPredictionsInvalid(MatchScoutError):
    """No provider produced a schema-valid prediction."""

    code = "ALL_PREDICTIONS_INVALID"
    status_code = 502


class PredictionInvalid(MatchScoutError):
    """A single provider response failed parsing or schema validation."""

    code = "PREDICTION_INVALID"
    status_code = 502
    retryable = False


class CacheUnavailable(MatchScoutError):
    """The backing store could not be read or written."""

    code = "CACHE_UNAVAILABLE"
    status_code = 503


class ConfigurationError(MatchScoutError):
    code = "CONFIGURATION_ERROR"
    status_code = 500
    retryable = False
