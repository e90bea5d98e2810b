"""
Contract with the external matching service.

The service receives both documents plus the schema its answer must follow,
and returns a raw JSON payload. This side never repairs that payload: it is
validated once and either accepted whole or rejected.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
import copy
import json
import logging

from ..models.schema import output_schema, parse_result
from ..models.transaction import ReconciliationResult
from ..utils.exceptions import (
    AuthorizationError,
    MalformedOutputError,
    MatchingServiceError,
    RateLimitedError,
    ResultValidationError,
    UnsupportedCapabilityError,
)

logger = logging.getLogger(__name__)


class DocumentKind(Enum):
    """How a document travels to the matching service."""

    TEXT = "text"
    BINARY = "binary"


class ProcessingMode(Enum):
    """Trade-off the matching service is asked to make."""

    FAST = "fast"
    PRECISE = "precise"


@dataclass(frozen=True)
class DocumentPayload:
    kind: DocumentKind
    payload: Union[str, bytes]


@dataclass(frozen=True)
class MatchingRequest:
    bank_document: DocumentPayload
    ledger_document: DocumentPayload
    mode: ProcessingMode = ProcessingMode.FAST
    output_schema: dict[str, Any] = field(default_factory=output_schema)


def error_for_status(status_code: int, message: str = "") -> MatchingServiceError:
    """
    Map a transport status code to a typed matching failure.

    Args:
        status_code: HTTP-style status code reported by the client
        message: Detail from the service, if any

    Returns:
        The matching MatchingServiceError subclass instance
    """
    detail = message or f"status {status_code}"
    if status_code == 429:
        return RateLimitedError(detail)
    if status_code in (401, 403):
        return AuthorizationError(detail)
    if status_code in (400, 404, 415, 501):
        return UnsupportedCapabilityError(detail)
    return MatchingServiceError(detail)


def decode_response(text: Optional[str]) -> Any:
    """
    Decode the service's JSON answer.

    Raises:
        MalformedOutputError: If the answer is empty or not JSON
    """
    if not text or not text.strip():
        raise MalformedOutputError("The matching service returned an empty response")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"Matching service response is not JSON: {e}") from e


class MatchingService(ABC):
    """Abstract base class for matching service clients."""

    @abstractmethod
    def reconcile(self, request: MatchingRequest) -> Any:
        """
        Send both documents to the service.

        Args:
            request: Documents, processing mode and output schema

        Returns:
            The decoded payload exactly as the service produced it

        Raises:
            MatchingServiceError: On any service-side failure
        """
        pass

    def run(self, request: MatchingRequest) -> ReconciliationResult:
        """
        Call the service and validate its answer.

        Raises:
            MatchingServiceError: On service failure; MalformedOutputError
                when the payload does not conform to the result model
        """
        logger.info(f"Requesting reconciliation in {request.mode.value} mode")
        try:
            payload = self.reconcile(request)
        except MatchingServiceError:
            raise
        except Exception as e:
            logger.error(f"Matching service call failed: {e}")
            raise MatchingServiceError(f"Matching service call failed: {e}") from e
        try:
            return parse_result(payload)
        except ResultValidationError as e:
            raise MalformedOutputError(str(e)) from e


class ReplayMatchingService(MatchingService):
    """
    Returns a previously recorded payload.

    Used by the CLI to report on a saved matcher answer and by tests.
    """

    def __init__(self, payload: Any, accepts_binary: bool = True):
        self._payload = payload
        self.accepts_binary = accepts_binary

    @classmethod
    def from_file(cls, path: Path) -> "ReplayMatchingService":
        logger.info(f"Loading recorded matcher output: {path}")
        return cls(decode_response(path.read_text(encoding="utf-8")))

    def reconcile(self, request: MatchingRequest) -> Any:
        if not self.accepts_binary and DocumentKind.BINARY in (
            request.bank_document.kind,
            request.ledger_document.kind,
        ):
            raise UnsupportedCapabilityError("Binary documents are not accepted by this service")
        return copy.deepcopy(self._payload)
