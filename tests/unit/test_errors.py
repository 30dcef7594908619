"""Tests for seqpub/lib/errors.py - structured exception hierarchy."""

import pytest

from seqpub.lib.errors import (
    BudgetExceeded,
    ConfigurationError,
    DiscoveryError,
    IntegrityError,
    PublishError,
    TransferError,
)


class TestPublishError:
    """Tests for base PublishError class."""

    def test_basic_message(self):
        error = PublishError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"

    def test_with_product(self):
        error = PublishError("Publication failed", product="26291_1#1")
        assert "[26291_1#1]" in str(error)
        assert "Publication failed" in str(error)

    def test_with_details_and_suggestion(self):
        error = PublishError(
            "Archive unavailable",
            details={"host": "archive.example.org"},
            suggestion="Check the endpoint URL",
        )
        assert "host: archive.example.org" in str(error)
        assert "Suggestion: Check the endpoint URL" in str(error)

    def test_to_dict(self):
        error = PublishError(
            "Test error",
            product="p1",
            details={"key": "value"},
            suggestion="Fix it",
        )
        assert error.to_dict() == {
            "error_type": "PublishError",
            "message": "Test error",
            "product": "p1",
            "details": {"key": "value"},
            "suggestion": "Fix it",
        }


class TestSubclasses:
    def test_all_are_publish_errors(self):
        for cls in (ConfigurationError, DiscoveryError, IntegrityError, TransferError):
            assert issubclass(cls, PublishError)
        assert isinstance(BudgetExceeded(3, 2), PublishError)

    def test_configuration_error_fields(self):
        error = ConfigurationError("Bad format", field="file_format", value="sam")
        assert error.field == "file_format"
        assert error.details == {"field": "file_format", "value": "sam"}

    def test_discovery_error_candidates(self):
        error = DiscoveryError("Ambiguous", pattern=r"x\.json$", candidates=["a/x.json", "b/x.json"])
        assert error.candidates == ["a/x.json", "b/x.json"]
        assert error.details["matches"] == 2
        assert "a/x.json, b/x.json" in str(error)

    def test_discovery_error_no_match(self):
        error = DiscoveryError("Missing", pattern="x", candidates=[])
        assert error.candidates == []
        assert error.details["matches"] == 0

    def test_integrity_error_cause(self):
        cause = ValueError("bad json")
        error = IntegrityError("Unparsable", file_path="/run/x.json", cause=cause)
        assert error.cause is cause
        assert error.details["cause_type"] == "ValueError"
        assert error.details["file_path"] == "/run/x.json"

    def test_transfer_error_fields(self):
        error = TransferError(
            "Archive put failed",
            operation="put",
            remote_path="/seq/1/x.cram",
            cause=OSError("disk full"),
        )
        assert error.operation == "put"
        assert error.remote_path == "/seq/1/x.cram"
        assert "disk full" in str(error)

    def test_budget_exceeded_message(self):
        error = BudgetExceeded(4, 3)
        assert error.count == 4
        assert error.max_errors == 3
        assert "4 errors (maximum 3)" in str(error)
        assert error.suggestion

    def test_catchable_as_base(self):
        with pytest.raises(PublishError):
            raise IntegrityError("boom")
