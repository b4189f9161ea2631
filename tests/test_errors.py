"""Tests for the error hierarchy."""

from __future__ import annotations

from arequest import QueryStringError, RequestError, ResponseError, ResultCode, TransferError


def test_request_error_str() -> None:
    """Test that URL and cause are appended to the message."""
    cause = OSError("refused")
    error = RequestError("Request failed", cause=cause, url="http://h/")

    assert str(error) == "Request failed | URL: http://h/ | Caused by: OSError: refused"


def test_transfer_error_keeps_code() -> None:
    """Test that TransferError carries its result code."""
    error = TransferError("Unsupported scheme: ftp", code=ResultCode.UNSUPPORTED_PROTOCOL)

    assert error.code == ResultCode.UNSUPPORTED_PROTOCOL
    assert str(error) == "Unsupported scheme: ftp"
    assert isinstance(error, RequestError)


def test_response_error_str() -> None:
    """Test that the status is reported before the URL."""
    error = ResponseError("HTTP error 404: Not Found", status=404, url="http://h/x")

    assert str(error) == "HTTP error 404: Not Found | Status: 404 | URL: http://h/x"


def test_query_string_error_is_value_error() -> None:
    """Test that codec errors can be caught as ValueError."""
    assert issubclass(QueryStringError, ValueError)
    assert issubclass(QueryStringError, RequestError)
