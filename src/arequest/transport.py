"""Transport provider contract.

A transport provider creates configurable transfer handles and multi handles
that execute them. The facade only talks to these protocols, so any engine
can be plugged in; :mod:`arequest.aiohttp_transport` is the default one.
"""

from __future__ import annotations

import enum
import typing as t


class TransferOption(enum.Enum):
    """Options that can be set on a transfer handle.

    Attributes:
        URL: Target URL (str).
        HTTPGET: Issue a GET request (bool).
        POST: Issue a POST request (bool).
        CUSTOMREQUEST: Verb to send instead of GET/POST (str).
        POSTFIELDS: Request body (str or bytes).
        HTTPHEADER: Header lines formatted as ``"Name: Value"`` (list[str]).
        USERAGENT: User-Agent header value (str).
        FOLLOWLOCATION: Follow redirect responses (bool).
        SSL_VERIFYPEER: Verify the peer's TLS certificate (bool).
        WRITEFUNCTION: Called with each received body chunk (Callable[[bytes], None]).

    """

    URL = "url"
    HTTPGET = "httpget"
    POST = "post"
    CUSTOMREQUEST = "customrequest"
    POSTFIELDS = "postfields"
    HTTPHEADER = "httpheader"
    USERAGENT = "useragent"
    FOLLOWLOCATION = "followlocation"
    SSL_VERIFYPEER = "ssl_verifypeer"
    WRITEFUNCTION = "writefunction"


class InfoKey(enum.Enum):
    """Metadata available from a completed transfer handle."""

    EFFECTIVE_URL = "effective_url"
    RESPONSE_CODE = "response_code"
    TOTAL_TIME = "total_time"
    CONNECT_TIME = "connect_time"
    CONTENT_TYPE = "content_type"
    LOCAL_IP = "local_ip"
    LOCAL_PORT = "local_port"
    REQUEST_SIZE = "request_size"


class ResultCode(enum.IntEnum):
    """Outcome of a transfer, numbered like libcurl's result codes."""

    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 3
    COULDNT_RESOLVE_HOST = 6
    COULDNT_CONNECT = 7
    WRITE_ERROR = 23
    OPERATION_TIMEDOUT = 28
    SSL_CONNECT_ERROR = 35
    TOO_MANY_REDIRECTS = 47
    GOT_NOTHING = 52
    RECV_ERROR = 56
    PEER_FAILED_VERIFICATION = 60


_DESCRIPTIONS = {
    ResultCode.OK: "No error",
    ResultCode.UNSUPPORTED_PROTOCOL: "Unsupported protocol",
    ResultCode.URL_MALFORMAT: "URL using bad/illegal format or missing URL",
    ResultCode.COULDNT_RESOLVE_HOST: "Couldn't resolve host name",
    ResultCode.COULDNT_CONNECT: "Couldn't connect to server",
    ResultCode.WRITE_ERROR: "Failed writing received data to disk/application",
    ResultCode.OPERATION_TIMEDOUT: "Timeout was reached",
    ResultCode.SSL_CONNECT_ERROR: "SSL connect error",
    ResultCode.TOO_MANY_REDIRECTS: "Number of redirects hit maximum amount",
    ResultCode.GOT_NOTHING: "Server returned nothing (no headers, no data)",
    ResultCode.RECV_ERROR: "Failure when receiving data from the peer",
    ResultCode.PEER_FAILED_VERIFICATION: "SSL peer certificate or SSH remote key was not OK",
}


def describe(code: int) -> str:
    """Return the human-readable text for a result code.

    Args:
        code: A :class:`ResultCode` or its integer value.

    Returns:
        str: The description, or ``"Unknown error"`` for unknown codes.

    """
    try:
        return _DESCRIPTIONS[ResultCode(code)]
    except ValueError:
        return "Unknown error"


WriteFunction = t.Callable[[bytes], None]


class Transfer(t.Protocol):
    """A single configurable request/response exchange."""

    def set_opt(self, option: TransferOption, value: t.Any) -> None:  # noqa: ANN401
        """Set an option on the transfer."""
        ...

    def get_info(self, key: InfoKey) -> t.Any:  # noqa: ANN401
        """Return metadata from a completed transfer, or None if unknown."""
        ...

    def close(self) -> None:
        """Release the resources held by the transfer."""
        ...


MessageCallback = t.Callable[[Transfer, ResultCode], None]


class Multi(t.Protocol):
    """Runs registered transfers and reports their completion asynchronously."""

    def add_handle(self, transfer: Transfer) -> None:
        """Register a configured transfer and start executing it."""
        ...

    def remove_handle(self, transfer: Transfer) -> None:
        """Unregister a transfer."""
        ...

    def on_message(self, callback: MessageCallback | None) -> None:
        """Set, or clear with None, the completion callback."""
        ...


class Transport(t.Protocol):
    """Factory for transfer and multi handles."""

    def create_transfer(self) -> Transfer:
        """Create an empty transfer handle."""
        ...

    def create_multi(self) -> Multi:
        """Create a multi handle."""
        ...

    def strerror(self, code: ResultCode) -> str:
        """Translate a result code to a human-readable string."""
        ...
