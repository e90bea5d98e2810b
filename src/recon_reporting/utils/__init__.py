"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    ConfigurationError,
    ResultValidationError,
    FilterError,
    ReportGenerationError,
    NothingSelectedError,
    ExportInProgressError,
    ExportCancelledError,
    MatchingServiceError,
    RateLimitedError,
    AuthorizationError,
    UnsupportedCapabilityError,
    MalformedOutputError,
)
from .logging_config import setup_logging

__all__ = [
    "ReconciliationError",
    "ConfigurationError",
    "ResultValidationError",
    "FilterError",
    "ReportGenerationError",
    "NothingSelectedError",
    "ExportInProgressError",
    "ExportCancelledError",
    "MatchingServiceError",
    "RateLimitedError",
    "AuthorizationError",
    "UnsupportedCapabilityError",
    "MalformedOutputError",
    "setup_logging",
]
