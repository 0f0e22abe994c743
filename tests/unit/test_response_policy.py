"""
Unit tests for response classification
"""

import httpx
import pytest
from ingestion.extractors.response_policy import (
    ResponseCategory,
    RetryAction,
    action_for,
    backoff_delay,
    classify,
    classify_exception,
    classify_status,
    error_code_from_body,
    parse_retry_after,
)


def status_category(status, privileged=False, cursor_supplied=False, error_code=None):
    return classify_status(
        status,
        privileged=privileged,
        cursor_supplied=cursor_supplied,
        error_code=error_code
    )


class TestClassifyStatus:

    @pytest.mark.parametrize("status", [200, 201, 204])
    def test_success(self, status):
        assert status_category(status) is ResponseCategory.SUCCESS

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_on_fallback_endpoint(self, status):
        assert status_category(status, privileged=False) is ResponseCategory.AUTH

    @pytest.mark.parametrize("status", [401, 403])
    def test_credential_expired_on_privileged_endpoint(self, status):
        assert status_category(status, privileged=True) is ResponseCategory.CREDENTIAL_EXPIRED

    def test_cursor_expired_needs_a_cursor(self):
        assert status_category(400, cursor_supplied=True, error_code="CURSOR_EXPIRED") is ResponseCategory.CURSOR_EXPIRED
        assert status_category(400, cursor_supplied=False, error_code="CURSOR_EXPIRED") is ResponseCategory.UNKNOWN

    def test_other_bad_request_is_unknown(self):
        assert status_category(400, cursor_supplied=True, error_code="INVALID_LIMIT") is ResponseCategory.UNKNOWN

    def test_rate_limited(self):
        assert status_category(429) is ResponseCategory.RATE_LIMITED

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_are_transient(self, status):
        assert status_category(status) is ResponseCategory.TRANSIENT

    @pytest.mark.parametrize("status", [404, 405, 409, 422])
    def test_other_client_errors_are_unknown(self, status):
        assert status_category(status) is ResponseCategory.UNKNOWN

    def test_auth_wins_over_cursor_expiry(self):
        assert status_category(401, privileged=True, cursor_supplied=True, error_code="CURSOR_EXPIRED") \
            is ResponseCategory.CREDENTIAL_EXPIRED


class TestClassifyException:

    @pytest.mark.parametrize("exc", [
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        httpx.ConnectTimeout("slow"),
        httpx.RemoteProtocolError("reset"),
    ])
    def test_transport_errors_are_transient(self, exc):
        assert classify_exception(exc) is ResponseCategory.TRANSIENT

    def test_other_errors_are_unknown(self):
        assert classify_exception(httpx.TooManyRedirects("loop")) is ResponseCategory.UNKNOWN
        assert classify_exception(RuntimeError("bug")) is ResponseCategory.UNKNOWN


class TestActions:

    def test_every_category_has_an_action(self):
        for category in ResponseCategory:
            assert isinstance(action_for(category), RetryAction)

    def test_action_table(self):
        assert action_for(ResponseCategory.SUCCESS) is RetryAction.RETURN
        assert action_for(ResponseCategory.AUTH) is RetryAction.FAIL
        assert action_for(ResponseCategory.CREDENTIAL_EXPIRED) is RetryAction.FAIL
        assert action_for(ResponseCategory.CURSOR_EXPIRED) is RetryAction.RESTART_FROM_HEAD
        assert action_for(ResponseCategory.RATE_LIMITED) is RetryAction.WAIT_AND_RETRY
        assert action_for(ResponseCategory.TRANSIENT) is RetryAction.BACKOFF_AND_RETRY
        assert action_for(ResponseCategory.UNKNOWN) is RetryAction.FAIL


class TestHelpers:

    def test_parse_retry_after(self):
        assert parse_retry_after(httpx.Headers({"Retry-After": "5"})) == 5
        assert parse_retry_after(httpx.Headers({})) == 60
        assert parse_retry_after(httpx.Headers({"Retry-After": "soon"})) == 60
        assert parse_retry_after(httpx.Headers({"Retry-After": "-3"})) == 0

    def test_backoff_delays(self):
        assert [backoff_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]
        assert backoff_delay(2, base_delay=0.5) == 1.0

    def test_error_code_from_body(self):
        assert error_code_from_body({"code": "CURSOR_EXPIRED"}) == "CURSOR_EXPIRED"
        assert error_code_from_body({"error": {"code": "CURSOR_EXPIRED"}}) == "CURSOR_EXPIRED"
        assert error_code_from_body({"message": "nope"}) is None
        assert error_code_from_body(None) is None
        assert error_code_from_body("text") is None


class TestClassify:

    def test_dispatches_on_outcome(self):
        kwargs = {"privileged": True, "cursor_supplied": True}

        assert classify(200, **kwargs) is ResponseCategory.SUCCESS
        assert classify(403, **kwargs) is ResponseCategory.CREDENTIAL_EXPIRED
        assert classify(400, error_code="CURSOR_EXPIRED", **kwargs) is ResponseCategory.CURSOR_EXPIRED
        assert classify(httpx.ReadTimeout("slow"), **kwargs) is ResponseCategory.TRANSIENT
