"""Core arequest implementation."""

from __future__ import annotations

import asyncio
import codecs
import enum
import logging
import typing as t
from collections.abc import Mapping

from aiohttp import hdrs

from .aiohttp_transport import AiohttpTransport
from .config import ClientConfig
from .configurator import RequestConfigurator, normalize_url
from .transport import InfoKey, ResultCode, TransferOption
from .types import SUPPORTED_METHODS, Callback, HttpMethod, RequestOptions, ResponseInfo, Result

if t.TYPE_CHECKING:
    from .transport import Multi, Transfer, Transport

# Module-level logger for structured logging
_logger = logging.getLogger("arequest")

Options = RequestOptions | Mapping[str, t.Any]


class CallState(enum.Enum):
    """Lifecycle of a single call."""

    IDLE = "idle"
    CONFIGURED = "configured"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"


def _coerce_options(options: Options) -> RequestOptions:
    if isinstance(options, RequestOptions):
        return options
    if isinstance(options, Mapping):
        return RequestOptions.from_mapping(options)
    msg = f"Expected RequestOptions or a mapping, got {type(options).__name__}"
    raise TypeError(msg)


def _capture_info(transfer: Transfer) -> ResponseInfo:
    """Snapshot transfer metadata, substituting empty values for unknown ones."""

    def value(key: InfoKey, default: t.Any) -> t.Any:  # noqa: ANN401
        found = transfer.get_info(key)
        return default if found is None else found

    return ResponseInfo(
        effective_url=str(value(InfoKey.EFFECTIVE_URL, "")),
        status_code=int(value(InfoKey.RESPONSE_CODE, 0)),
        total_time=float(value(InfoKey.TOTAL_TIME, 0.0)),
        connect_time=float(value(InfoKey.CONNECT_TIME, 0.0)),
        content_type=transfer.get_info(InfoKey.CONTENT_TYPE),
        local_ip=str(value(InfoKey.LOCAL_IP, "")),
        local_port=int(value(InfoKey.LOCAL_PORT, 0)),
        request_size=int(value(InfoKey.REQUEST_SIZE, 0)),
    )


class _Call:
    """A single call: one transfer/multi pair delivering one result.

    The pair is never reused. Completion releases both handles before the
    callback runs, and any later completion event is ignored.
    """

    def __init__(
        self,
        transport: Transport,
        method: HttpMethod,
        callback: Callback,
        *,
        encoding: str,
        logger: logging.Logger,
    ) -> None:
        self.state = CallState.IDLE
        self.method = method
        self.url = ""
        self._transport = transport
        self._callback = callback
        self._logger = logger
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._chunks: list[str] = []
        self._transfer = transport.create_transfer()
        self._multi: Multi | None = None

    def configure(self, configurator: RequestConfigurator, options: RequestOptions) -> None:
        """Configure the transfer and attach the body writer.

        Args:
            configurator: Configurator applying options and client defaults.
            options: Request options.

        Raises:
            ValueError: If the method is not supported. The transfer is closed.

        """
        try:
            self.url = configurator.configure(self._transfer, self.method, options)
        except Exception:
            self._transfer.close()
            raise
        self._transfer.set_opt(TransferOption.WRITEFUNCTION, self._write)
        self.state = CallState.CONFIGURED

    def submit(self) -> None:
        """Hand the transfer to a fresh multi handle.

        Raises:
            Exception: Whatever the multi handle raises on submission. The
                handles are released and no callback will fire.

        """
        self._multi = self._transport.create_multi()
        self._multi.on_message(self._on_message)
        self.state = CallState.IN_FLIGHT
        try:
            self._multi.add_handle(self._transfer)
        except Exception:
            self.state = CallState.COMPLETED
            self._release()
            raise

    def _write(self, chunk: bytes) -> None:
        self._chunks.append(self._decoder.decode(chunk))

    def _release(self) -> None:
        multi, self._multi = self._multi, None
        if multi is not None:
            multi.on_message(None)
            multi.remove_handle(self._transfer)
        self._transfer.close()

    def _on_message(self, transfer: Transfer, code: ResultCode) -> None:
        if self.state is not CallState.IN_FLIGHT or transfer is not self._transfer:
            self._logger.debug("Ignoring extra completion: %s %s", self.method, self.url)
            return
        self.state = CallState.COMPLETED

        try:
            info = _capture_info(transfer)
            self._chunks.append(self._decoder.decode(b"", final=True))
        except Exception:
            self._logger.warning(
                "Failed to collect transfer result: %s %s",
                self.method,
                self.url,
                exc_info=True,
            )
            info = ResponseInfo(effective_url=self.url)
            if code == ResultCode.OK:
                code = ResultCode.RECV_ERROR
        finally:
            body = "".join(self._chunks)
            self._chunks.clear()
            self._release()

        if code == ResultCode.OK:
            error = ""
            self._logger.debug(
                "Transfer completed: %s %s -> %d",
                self.method,
                info.effective_url,
                info.status_code,
            )
        else:
            error = self._transport.strerror(code)
            self._logger.warning("Transfer failed: %s %s -> %s", self.method, self.url, error)

        self._callback(error, info, body)


class Client:
    """Asynchronous HTTP client delivering each result to a callback.

    Every call configures one transfer, submits it and returns immediately.
    The callback later receives ``(error, info, body)`` exactly once:
    ``error`` is empty unless the transfer failed at the transport level,
    and HTTP error statuses are reported only through ``info.status_code``.

    Attributes:
        config: Configuration holding per-call defaults and the transport.

    Example:
        ```python
        def on_done(error: str, info: ResponseInfo, body: str) -> None:
            print(info.status_code, body)

        client = Client()
        client.get({"url": "http://example.com/q", "data": {"page": 2}}, on_done)
        ```

    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        """Initialize the Client with configuration settings.

        Args:
            config: Configuration object for the client. If None, uses default
                   configuration with an aiohttp transport.

        """
        self.config = config or ClientConfig()
        self._logger = self.config.logger or _logger
        self._transport = self.config.transport or AiohttpTransport(logger=self._logger)
        self._configurator = RequestConfigurator(self.config)

    def get(self, options: Options, callback: Callback | None = None) -> None:
        """Make an HTTP GET request.

        ``options.data`` is merged into the URL's query string, replacing
        values for keys already present.

        Args:
            options: Request options, or a mapping with the same keys.
            callback: Receives ``(error, info, body)`` once the transfer ends.

        """
        self._perform(hdrs.METH_GET, options, callback)

    def post(self, options: Options, callback: Callback | None = None) -> None:
        """Make an HTTP POST request.

        The body is ``options.data`` sent verbatim if set, otherwise
        ``options.form`` form-encoded, otherwise empty.

        Args:
            options: Request options, or a mapping with the same keys.
            callback: Receives ``(error, info, body)`` once the transfer ends.

        """
        self._perform(hdrs.METH_POST, options, callback)

    def put(self, options: Options, callback: Callback | None = None) -> None:
        """Make an HTTP PUT request. The body is chosen as for :meth:`post`."""
        self._perform(hdrs.METH_PUT, options, callback)

    def patch(self, options: Options, callback: Callback | None = None) -> None:
        """Make an HTTP PATCH request. The body is chosen as for :meth:`post`."""
        self._perform(hdrs.METH_PATCH, options, callback)

    def delete(self, options: Options, callback: Callback | None = None) -> None:
        """Make an HTTP DELETE request. The body is chosen as for :meth:`post`."""
        self._perform(hdrs.METH_DELETE, options, callback)

    async def request(self, method: HttpMethod, options: Options) -> Result:
        """Make an HTTP request and wait for its result.

        Args:
            method: One of GET, POST, PUT, PATCH and DELETE.
            options: Request options, or a mapping with the same keys.

        Returns:
            Result: The ``(error, info, body)`` triple.

        Raises:
            ValueError: If the method is not supported.
            RuntimeError: If the transport cannot submit the transfer.

        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Result] = loop.create_future()

        def deliver(error: str, info: ResponseInfo, body: str) -> None:
            if not future.done():
                future.set_result(Result(error, info, body))

        self._perform(method.upper(), options, deliver)
        return await future

    def _perform(
        self,
        method: HttpMethod,
        options: Options,
        callback: Callback | None,
    ) -> None:
        """Configure and submit one transfer.

        Raises:
            ValueError: If the method is not supported.
            TypeError: If the options or callback have the wrong type.

        """
        if method not in SUPPORTED_METHODS:
            msg = f"Unsupported HTTP method: {method}"
            raise ValueError(msg)
        options = _coerce_options(options)

        if callback is None:
            self._logger.debug(
                "No callback given, skipping transfer: %s %s",
                method,
                normalize_url(options.url),
            )
            return
        if not callable(callback):
            msg = f"Callback must be callable, got {type(callback).__name__}"
            raise TypeError(msg)

        call = _Call(
            self._transport,
            method,
            callback,
            encoding=self.config.encoding,
            logger=self._logger,
        )
        call.configure(self._configurator, options)
        self._logger.debug("Submitting transfer: %s %s", method, call.url)
        call.submit()
