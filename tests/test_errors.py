"""
Transport error classification tests.
"""
import pytest

from voice_agent.errors import (
    TransportError,
    TransportErrorCategory,
    classify_transport_error,
    user_message,
)


class TestStatusClassification:
    """The HTTP status decides the category when there is one."""

    @pytest.mark.parametrize(
        "status,category",
        [
            (400, TransportErrorCategory.BAD_REQUEST),
            (401, TransportErrorCategory.AUTH_FAILED),
            (403, TransportErrorCategory.AUTH_FAILED),
            (404, TransportErrorCategory.BAD_REQUEST),
            (429, TransportErrorCategory.RATE_LIMITED),
            (500, TransportErrorCategory.SERVER_ERROR),
            (503, TransportErrorCategory.SERVER_ERROR),
            (529, TransportErrorCategory.OVERLOADED),
        ],
    )
    def test_status(self, status, category):
        error = TransportError(f"API error: {status}", status=status)
        assert classify_transport_error(error) == category

    def test_status_wins_over_message(self):
        """Test that a misleading message does not override the status."""
        error = TransportError("connection reset while overloaded", status=401)
        assert classify_transport_error(error) == TransportErrorCategory.AUTH_FAILED


class TestKeywordClassification:
    """Errors without a status are matched on their message."""

    def test_network_error(self):
        assert classify_transport_error(TransportError("Network error: timed out")) == TransportErrorCategory.NETWORK_ERROR
        assert classify_transport_error(Exception("Connection refused")) == TransportErrorCategory.NETWORK_ERROR

    def test_builtin_network_exceptions(self):
        assert classify_transport_error(TimeoutError()) == TransportErrorCategory.NETWORK_ERROR
        assert classify_transport_error(ConnectionResetError()) == TransportErrorCategory.NETWORK_ERROR

    def test_stream_error_overloaded(self):
        error = TransportError("Stream error: Overloaded")
        assert classify_transport_error(error) == TransportErrorCategory.OVERLOADED

    def test_auth_keywords(self):
        assert classify_transport_error(Exception("invalid x-api-key: api key rejected")) == TransportErrorCategory.AUTH_FAILED

    def test_unknown(self):
        assert classify_transport_error(Exception("something odd")) == TransportErrorCategory.UNKNOWN_ERROR


def test_transport_error_keeps_status_and_message():
    """str(error) is what the engine shows as state.error."""
    error = TransportError("API error: 529", status=529)
    assert str(error) == "API error: 529"
    assert error.status == 529


def test_user_message():
    assert "API key" in user_message(TransportErrorCategory.AUTH_FAILED)
    assert user_message(TransportErrorCategory.UNKNOWN_ERROR) == "Something went wrong. Please try again."
