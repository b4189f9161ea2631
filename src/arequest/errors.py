"""Error hierarchy for arequest.

The client never raises for transport or HTTP failures: those reach the
completion callback as an error string and a status code. The exceptions
below are raised on request through :class:`~arequest.types.Result`, by the
query-string codec, and inside transport providers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .transport import ResultCode


class RequestError(Exception):
    """Base exception for all arequest errors.

    Attributes:
        message: Human-readable error description.
        cause: The exception this error was raised from, if any.
        url: The URL of the call, if known.

    """

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize RequestError.

        Args:
            message: Human-readable error description.
            cause: The exception this error was raised from.
            url: The URL of the call.

        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.url = url

    def _details(self) -> list[str]:
        details = []
        if self.url:
            details.append(f"URL: {self.url}")
        if self.cause:
            details.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")
        return details

    def __str__(self) -> str:
        """Return the message followed by any details."""
        return " | ".join([self.message, *self._details()])


class TransferError(RequestError):
    """The transfer failed before a complete response was received.

    Covers name resolution, connection, TLS, protocol and body I/O failures.

    Attributes:
        code: Transport result code, if the failure maps to one.

    """

    def __init__(
        self,
        message: str,
        *,
        code: ResultCode | int | None = None,
        cause: BaseException | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize TransferError.

        Args:
            message: Human-readable error description.
            code: Transport result code.
            cause: The exception this error was raised from.
            url: The URL of the call.

        """
        super().__init__(message, cause=cause, url=url)
        self.code = code


class ResponseError(RequestError):
    """A response arrived with a 4xx or 5xx status.

    Attributes:
        status: HTTP status code.

    """

    def __init__(
        self,
        message: str,
        *,
        status: int,
        url: str | None = None,
    ) -> None:
        """Initialize ResponseError.

        Args:
            message: Human-readable error description.
            status: HTTP status code.
            url: The URL of the call.

        """
        super().__init__(message, url=url)
        self.status = status

    def _details(self) -> list[str]:
        return [f"Status: {self.status}", *super()._details()]


class QueryStringError(RequestError, ValueError):
    """Text cannot be percent-encoded or decoded."""
