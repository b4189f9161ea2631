"""Translate request options into a configured transfer."""

from __future__ import annotations

import re
import typing as t
from collections.abc import Mapping

from aiohttp import hdrs

from .querystring import parse, stringify
from .transport import Transfer, TransferOption
from .types import (
    BODY_METHODS,
    FORM_CONTENT_TYPE,
    SUPPORTED_METHODS,
    Body,
    FormBody,
    HttpMethod,
    RawBody,
    RequestOptions,
)

if t.TYPE_CHECKING:
    from .config import ClientConfig

_URL_PADDING = re.compile(r"^[\s\ufeff\x00]+|[\s\ufeff\x00]+$")


def normalize_url(url: str | None) -> str:
    """Strip surrounding whitespace and NUL characters from a URL.

    NULs inside the URL are removed as well.

    Args:
        url: The URL as given by the caller.

    Returns:
        str: The cleaned URL, empty if none was given.

    """
    if not url:
        return ""
    return _URL_PADDING.sub("", url).replace("\x00", "")


def merge_query(
    url: str,
    data: str | bytes | Mapping[str, t.Any] | None,
) -> str:
    """Merge data into the query component of a URL.

    Values in ``data`` replace values for the same key already in the URL;
    other keys in the URL keep their place and new keys are appended.

    Args:
        url: The URL, possibly with a query and fragment.
        data: Mapping of query parameters, or a query string.

    Returns:
        str: The URL with the merged query, or without one if it is empty.

    """
    base, hash_mark, fragment = url.partition("#")
    base, _, query = base.partition("?")

    params: dict[str, t.Any] = dict(parse(query))
    if isinstance(data, bytes):
        data = data.decode()
    if isinstance(data, str):
        params.update(parse(data))
    elif data:
        params.update(data)

    qs = stringify(params)
    if qs:
        base = f"{base}?{qs}"
    return f"{base}{hash_mark}{fragment}"


def resolve_body(options: RequestOptions) -> Body:
    """Decide the request body for a POST-like call.

    ``data`` takes precedence over ``form``.

    Args:
        options: Request options.

    Returns:
        Body: The body variant, or None when no body should be sent.

    """
    if options.data is not None:
        if isinstance(options.data, str | bytes):
            return RawBody(options.data)
        return FormBody(options.data)
    if options.form is not None:
        return FormBody(options.form)
    return None


def header_lines(header: Mapping[str, str]) -> list[str]:
    """Flatten a header mapping into ``"Name: Value"`` lines, keeping order."""
    return [f"{name}: {value}" for name, value in header.items()]


class RequestConfigurator:
    """Configures transfer handles from request options.

    Attributes:
        config: Client configuration supplying per-call defaults.

    """

    def __init__(self, config: ClientConfig) -> None:
        """Initialize the configurator.

        Args:
            config: Client configuration supplying per-call defaults.

        """
        self.config = config

    def configure(
        self,
        transfer: Transfer,
        method: HttpMethod,
        options: RequestOptions,
    ) -> str:
        """Set every option the transfer needs for one call.

        Args:
            transfer: An empty transfer handle.
            method: HTTP method, one of GET, POST, PUT, PATCH and DELETE.
            options: Request options.

        Returns:
            str: The final URL set on the transfer.

        Raises:
            ValueError: If the method is not supported.

        """
        if method not in SUPPORTED_METHODS:
            msg = f"Unsupported HTTP method: {method}"
            raise ValueError(msg)

        url = normalize_url(options.url)
        header = dict(options.header or {})

        if method == hdrs.METH_GET:
            url = merge_query(url, options.data)
            transfer.set_opt(TransferOption.HTTPGET, True)  # noqa: FBT003
        elif method in BODY_METHODS:
            self._configure_body(transfer, method, options, header)

        transfer.set_opt(TransferOption.URL, url)
        transfer.set_opt(
            TransferOption.USERAGENT,
            options.useragent or self.config.useragent,
        )
        transfer.set_opt(
            TransferOption.FOLLOWLOCATION,
            self.config.followlocation if options.followlocation is None else options.followlocation,
        )
        transfer.set_opt(
            TransferOption.SSL_VERIFYPEER,
            self.config.ssl_verifypeer if options.ssl_verifypeer is None else options.ssl_verifypeer,
        )
        if header:
            transfer.set_opt(TransferOption.HTTPHEADER, header_lines(header))
        return url

    def _configure_body(
        self,
        transfer: Transfer,
        method: HttpMethod,
        options: RequestOptions,
        header: dict[str, str],
    ) -> None:
        """Set method and body options for POST, PUT, PATCH and DELETE.

        Args:
            transfer: The transfer being configured.
            method: HTTP method.
            options: Request options.
            header: Headers to send; a form Content-Type is added when missing.

        """
        transfer.set_opt(TransferOption.POST, True)  # noqa: FBT003
        if method != hdrs.METH_POST:
            transfer.set_opt(TransferOption.CUSTOMREQUEST, method)

        body = resolve_body(options)
        if body is None:
            return
        if isinstance(body, FormBody) and not any(
            name.lower() == "content-type" for name in header
        ):
            header[hdrs.CONTENT_TYPE] = FORM_CONTENT_TYPE
        transfer.set_opt(TransferOption.POSTFIELDS, body.encode())
