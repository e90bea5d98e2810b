"""Custom exceptions for the reconciliation reporting application."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ResultValidationError(ReconciliationError):
    """A reconciliation payload does not conform to the result model."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)


class FilterError(ReconciliationError):
    """Filter criteria could not be constructed."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating an export artifact."""

    pass


class NothingSelectedError(ReportGenerationError):
    """Export requested with every report section deselected."""

    def __init__(self, message: str = "Nothing selected: enable at least one report section"):
        super().__init__(message)


class ExportInProgressError(ReconciliationError):
    """Another export is still pending for the same report session."""

    pass


class ExportCancelledError(ReconciliationError):
    """The export was abandoned before it finished."""

    pass


class MatchingServiceError(ReconciliationError):
    """Failure reported by the external matching service."""

    user_message = "Reconciliation failed. Please try again."


class RateLimitedError(MatchingServiceError):
    """The matching service refused the call because of request quotas."""

    user_message = "The matching service is busy. Wait a moment before trying again."


class AuthorizationError(MatchingServiceError):
    """The matching service rejected our credentials."""

    user_message = "The matching service rejected the request. Check the API key."


class UnsupportedCapabilityError(MatchingServiceError):
    """The requested model or document kind is not available."""

    user_message = "The selected processing mode or document type is not supported."


class MalformedOutputError(MatchingServiceError):
    """The matching service answered with a payload we cannot use."""

    user_message = "The matching service returned an unreadable result."
