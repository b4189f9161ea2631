"""A small asynchronous HTTP client delivering one result per call to a callback."""

from .aiohttp_transport import AiohttpTransport
from .client import CallState, Client
from .config import ClientConfig
from .errors import (
    QueryStringError,
    RequestError,
    ResponseError,
    TransferError,
)
from .querystring import ParsedQuery, escape, parse, stringify, unescape
from .transport import InfoKey, ResultCode, TransferOption
from .types import FormBody, HttpMethod, RawBody, RequestOptions, ResponseInfo, Result

__all__ = [
    "AiohttpTransport",
    "CallState",
    "Client",
    "ClientConfig",
    "FormBody",
    "HttpMethod",
    "InfoKey",
    "ParsedQuery",
    "QueryStringError",
    "RawBody",
    "RequestError",
    "RequestOptions",
    "ResponseError",
    "ResponseInfo",
    "Result",
    "ResultCode",
    "TransferError",
    "TransferOption",
    "escape",
    "parse",
    "stringify",
    "unescape",
]
__version__ = "0.1.0"
