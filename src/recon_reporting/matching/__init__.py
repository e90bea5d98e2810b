"""External matching service contract."""

from .service import (
    DocumentKind,
    DocumentPayload,
    MatchingRequest,
    MatchingService,
    ProcessingMode,
    ReplayMatchingService,
    decode_response,
    error_for_status,
)

__all__ = [
    "DocumentKind",
    "DocumentPayload",
    "MatchingRequest",
    "MatchingService",
    "ProcessingMode",
    "ReplayMatchingService",
    "decode_response",
    "error_for_status",
]
