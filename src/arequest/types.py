"""Request and response types for arequest.

This module provides dataclasses for request options, request bodies,
response metadata and call results.
"""

from __future__ import annotations

import dataclasses
import http
import typing as t
from collections.abc import Mapping
from dataclasses import dataclass, field

from aiohttp import hdrs

from .errors import ResponseError, TransferError
from .querystring import stringify

# HTTP method type - reuses aiohttp's method string constants
HttpMethod = str

BODY_METHODS = frozenset(
    {hdrs.METH_POST, hdrs.METH_PUT, hdrs.METH_PATCH, hdrs.METH_DELETE},
)
SUPPORTED_METHODS = BODY_METHODS | {hdrs.METH_GET}

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class RequestOptions:
    """Per-call request options.

    Options left as None fall back to the client's configured defaults.

    Attributes:
        url: Target URL. Leading/trailing whitespace and NULs are removed.
        data: For GET, a mapping (or query string) merged into the URL query.
            For POST/PUT/PATCH/DELETE, the request body: text or bytes are
            sent verbatim, a mapping is form-encoded. Overrides ``form``.
        form: Mapping form-encoded as the request body.
        header: Request headers, sent in iteration order.
        useragent: User-Agent header value.
        followlocation: Whether to follow redirects.
        ssl_verifypeer: Whether to verify the server's TLS certificate.

    """

    url: str | None = None
    data: str | bytes | Mapping[str, t.Any] | None = None
    form: Mapping[str, t.Any] | None = None
    header: dict[str, str] = field(default_factory=dict)
    useragent: str | None = None
    followlocation: bool | None = None
    ssl_verifypeer: bool | None = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, t.Any]) -> RequestOptions:
        """Build options from a plain mapping with the same keys.

        Args:
            options: Mapping such as ``{"url": "http://example.com"}``.

        Returns:
            RequestOptions: The options value.

        Raises:
            TypeError: If the mapping contains an unknown key.

        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            msg = f"Unknown request option(s): {', '.join(unknown)}"
            raise TypeError(msg)
        return cls(**options)


@dataclass(frozen=True)
class RawBody:
    """Request body sent exactly as given."""

    content: str | bytes

    def encode(self) -> str | bytes:
        """Return the payload."""
        return self.content


@dataclass(frozen=True)
class FormBody:
    """Request body built by form-encoding a mapping."""

    fields: Mapping[str, t.Any]

    def encode(self) -> str:
        """Return the ``application/x-www-form-urlencoded`` payload."""
        return stringify(self.fields)


Body = RawBody | FormBody | None


@dataclass(frozen=True)
class ResponseInfo:
    """Snapshot of transfer metadata taken at completion.

    After a transport failure, fields the transport could not determine hold
    empty values.

    Attributes:
        effective_url: Last URL used, after any redirects.
        status_code: HTTP status of the final response, 0 if none was received.
        total_time: Duration of the whole transfer in seconds.
        connect_time: Seconds until the connection was established.
        content_type: Content-Type of the response, if any.
        local_ip: Local address of the connection.
        local_port: Local port of the connection.
        request_size: Bytes sent in requests, headers included.

    """

    effective_url: str = ""
    status_code: int = 0
    total_time: float = 0.0
    connect_time: float = 0.0
    content_type: str | None = None
    local_ip: str = ""
    local_port: int = 0
    request_size: int = 0


class Result(t.NamedTuple):
    """Terminal result of a call, as passed to the completion callback."""

    error: str
    info: ResponseInfo
    body: str

    @property
    def ok(self) -> bool:
        """Whether the transfer completed without a transport error."""
        return not self.error

    def raise_for_error(self) -> None:
        """Raise if the transfer failed at the transport level.

        Raises:
            TransferError: If ``error`` is set.

        """
        if self.error:
            raise TransferError(self.error, url=self.info.effective_url or None)

    def raise_for_status(self) -> None:
        """Raise if the transfer failed or the response has an error status.

        Raises:
            TransferError: If ``error`` is set.
            ResponseError: If the HTTP status is 400 or above.

        """
        self.raise_for_error()
        status = self.info.status_code
        if status >= http.HTTPStatus.BAD_REQUEST:
            try:
                reason = http.HTTPStatus(status).phrase
            except ValueError:
                reason = "Unknown"
            msg = f"HTTP error {status}: {reason}"
            raise ResponseError(msg, url=self.info.effective_url or None, status=status)


Callback = t.Callable[[str, ResponseInfo, str], object]
