"""
Tests for the matching service contract.

Covers:
- Mapping transport failures to typed errors
- Decoding the service answer
- Validating the answer before it reaches a session
- Turning source documents into request payloads
"""

import json

import pytest

from recon_reporting.ingestion import NormalizedType, SourceDocument
from recon_reporting.matching import (
    DocumentKind,
    MatchingRequest,
    MatchingService,
    ProcessingMode,
    ReplayMatchingService,
    decode_response,
    error_for_status,
)
from recon_reporting.utils.exceptions import (
    AuthorizationError,
    MalformedOutputError,
    MatchingServiceError,
    RateLimitedError,
    UnsupportedCapabilityError,
)


class TestErrorForStatus:
    """Tests for status code classification."""

    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (429, RateLimitedError),
            (401, AuthorizationError),
            (403, AuthorizationError),
            (404, UnsupportedCapabilityError),
            (415, UnsupportedCapabilityError),
        ],
    )
    def test_known_statuses(self, status, error_cls):
        assert type(error_for_status(status)) is error_cls

    def test_other_statuses_are_generic(self):
        error = error_for_status(500, "upstream exploded")
        assert type(error) is MatchingServiceError
        assert str(error) == "upstream exploded"

    def test_each_kind_has_its_own_user_message(self):
        messages = {
            cls.user_message
            for cls in (
                MatchingServiceError,
                RateLimitedError,
                AuthorizationError,
                UnsupportedCapabilityError,
                MalformedOutputError,
            )
        }
        assert len(messages) == 5


class TestDecodeResponse:
    """Tests for decoding the raw answer."""

    @pytest.mark.parametrize("text", [None, "", "   \n"])
    def test_empty_answer(self, text):
        with pytest.raises(MalformedOutputError):
            decode_response(text)

    def test_invalid_json(self):
        with pytest.raises(MalformedOutputError):
            decode_response("{'summary': ")

    def test_valid_json(self):
        assert decode_response('{"matches": []}') == {"matches": []}


class TestReplayMatchingService:
    """Tests for the recorded-answer service."""

    def _request(self, binary_bank=False):
        if binary_bank:
            bank = SourceDocument("bank.pdf", NormalizedType.BINARY_DOCUMENT, b"%PDF")
        else:
            bank = SourceDocument("bank.csv", NormalizedType.TABULAR_TEXT, "a,b\n")
        ledger = SourceDocument("gl.csv", NormalizedType.TABULAR_TEXT, "c,d\n")
        return MatchingRequest(bank.to_payload(), ledger.to_payload(), ProcessingMode.PRECISE)

    def test_run_returns_validated_result(self, sample_payload):
        result = ReplayMatchingService(sample_payload).run(self._request())
        assert len(result.matches) == 4

    def test_recorded_payload_is_not_shared(self, sample_payload):
        service = ReplayMatchingService(sample_payload)
        answer = service.reconcile(self._request())
        answer["matches"].clear()
        assert len(service.run(self._request()).matches) == 4

    def test_non_conforming_answer_is_malformed(self, sample_payload):
        sample_payload["summary"]["matchedAmount"] = 0
        with pytest.raises(MalformedOutputError):
            ReplayMatchingService(sample_payload).run(self._request())

    def test_binary_documents_can_be_refused(self, sample_payload):
        service = ReplayMatchingService(sample_payload, accepts_binary=False)
        with pytest.raises(UnsupportedCapabilityError):
            service.run(self._request(binary_bank=True))

    def test_from_file(self, sample_payload, tmp_path):
        path = tmp_path / "answer.json"
        path.write_text(json.dumps(sample_payload), encoding="utf-8")
        result = ReplayMatchingService.from_file(path).run(self._request())
        assert len(result.unmatched_bank) == 3

    def test_request_carries_output_schema(self):
        assert "unmatchedLedger" in self._request().output_schema["properties"]

    def test_transport_failure_is_a_service_error(self):
        class UnreachableService(MatchingService):
            def reconcile(self, request):
                raise ConnectionError("connection reset by peer")

        with pytest.raises(MatchingServiceError) as excinfo:
            UnreachableService().run(self._request())
        assert isinstance(excinfo.value.__cause__, ConnectionError)
        assert "connection reset" in str(excinfo.value)


class TestSourceDocument:
    """Tests for ingestion hand-over."""

    def test_pdf_is_binary(self, tmp_path):
        path = tmp_path / "Statement.PDF"
        path.write_bytes(b"%PDF-1.7")
        doc = SourceDocument.from_path(path)
        assert doc.normalized_type is NormalizedType.BINARY_DOCUMENT
        assert doc.to_payload().kind is DocumentKind.BINARY

    def test_csv_is_text(self, tmp_path):
        path = tmp_path / "ledger.csv"
        path.write_text("Date,Amount\n2024-03-01,12.50\n", encoding="utf-8")
        payload = SourceDocument.from_path(path).to_payload()
        assert payload.kind is DocumentKind.TEXT
        assert payload.payload.startswith("Date,Amount")
