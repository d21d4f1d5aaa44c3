"""Tests for api/base.py - Unified API response format."""

from datetime import timezone

from api.base import (
    success_response,
    error_response,
    ErrorCodes,
)


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"foo": "bar"})
        assert resp.success is True
        assert resp.data == {"foo": "bar"}
        assert resp.error is None

    def test_request_id_generated(self):
        resp = success_response({})
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_request_id_passed_through(self):
        resp = success_response({}, request_id="req-1")
        assert resp.meta.request_id == "req-1"

    def test_timestamp_is_utc(self):
        resp = success_response({})
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("TEST_ERROR", "Something went wrong")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "TEST_ERROR"
        assert resp.error.message == "Something went wrong"
        assert resp.error.details is None

    def test_details(self):
        resp = error_response(
            ErrorCodes.CONFIGURATION_INCOMPLETE, "Billing configuration incomplete",
            {"missing": ["iban"]},
        )
        assert resp.error.details == {"missing": ["iban"]}

    def test_request_id_generated(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_timestamp_is_utc(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.timestamp.tzinfo == timezone.utc

    def test_json_dump(self):
        dumped = error_response("ERR", "msg", request_id="req-1").model_dump(mode="json")
        assert dumped["meta"]["request_id"] == "req-1"
        assert isinstance(dumped["meta"]["timestamp"], str)


class TestErrorCodes:

    def test_has_internal_error(self):
        assert ErrorCodes.INTERNAL_ERROR == "INTERNAL_ERROR"

    def test_has_not_found(self):
        assert ErrorCodes.NOT_FOUND == "NOT_FOUND"

    def test_has_validation_error(self):
        assert ErrorCodes.VALIDATION_ERROR == "VALIDATION_ERROR"

    def test_has_not_authenticated(self):
        assert ErrorCodes.NOT_AUTHENTICATED == "NOT_AUTHENTICATED"

    def test_has_billing_codes(self):
        assert ErrorCodes.CONFIGURATION_INCOMPLETE == "CONFIGURATION_INCOMPLETE"
        assert ErrorCodes.INVALID_AMOUNT == "INVALID_AMOUNT"
        assert ErrorCodes.SEQUENCE_COLLISION == "SEQUENCE_COLLISION"
        assert ErrorCodes.NO_BUDGET_DATA == "NO_BUDGET_DATA"
