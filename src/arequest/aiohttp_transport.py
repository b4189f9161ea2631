"""Transport provider backed by aiohttp.

Every transfer runs in its own :class:`aiohttp.ClientSession` whose connector
closes connections after use, so nothing is shared or pooled between calls.
"""

from __future__ import annotations

import asyncio
import logging
import typing as t

import aiohttp
from aiohttp import hdrs
from multidict import CIMultiDict
from yarl import URL

from .errors import TransferError
from .transport import InfoKey, ResultCode, TransferOption, describe
from .types import FORM_CONTENT_TYPE

if t.TYPE_CHECKING:
    from .transport import MessageCallback, Transfer

# Module-level logger for structured logging
_logger = logging.getLogger("arequest")

DEFAULT_MAX_REDIRECTS = 30

_SUPPORTED_SCHEMES = frozenset({"http", "https"})


class _TransferTrace:
    """Collects connect time and request size through aiohttp trace hooks."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self.started = loop.time()
        self.connect_time = 0.0
        self.request_size = 0
        self.local_address: tuple[str, int] | None = None

    def elapsed(self) -> float:
        return self._loop.time() - self.started

    def trace_config(self) -> aiohttp.TraceConfig:
        trace_config = aiohttp.TraceConfig()
        trace_config.on_connection_create_end.append(self._on_connection_create_end)
        trace_config.on_request_headers_sent.append(self._on_request_headers_sent)
        trace_config.on_request_chunk_sent.append(self._on_request_chunk_sent)
        return trace_config

    async def _on_connection_create_end(
        self,
        _session: aiohttp.ClientSession,
        _ctx: t.Any,  # noqa: ANN401
        _params: aiohttp.TraceConnectionCreateEndParams,
    ) -> None:
        # first connection only; redirects may open more
        if not self.connect_time:
            self.connect_time = self.elapsed()

    async def _on_request_headers_sent(
        self,
        _session: aiohttp.ClientSession,
        _ctx: t.Any,  # noqa: ANN401
        params: aiohttp.TraceRequestHeadersSentParams,
    ) -> None:
        lines = [f"{params.method} {params.url.raw_path_qs} HTTP/1.1"]
        lines.extend(f"{name}: {value}" for name, value in params.headers.items())
        self.request_size += len("\r\n".join(lines).encode()) + 4

    async def _on_request_chunk_sent(
        self,
        _session: aiohttp.ClientSession,
        _ctx: t.Any,  # noqa: ANN401
        params: aiohttp.TraceRequestChunkSentParams,
    ) -> None:
        self.request_size += len(params.chunk)


class _RecordingConnector(aiohttp.TCPConnector):
    """TCP connector reporting the local address of new connections to a trace."""

    def __init__(self, trace: _TransferTrace, **kwargs: t.Any) -> None:  # noqa: ANN401
        super().__init__(**kwargs)
        self._trace = trace

    async def connect(self, *args: t.Any, **kwargs: t.Any) -> aiohttp.connector.Connection:  # noqa: ANN401
        connection = await super().connect(*args, **kwargs)
        transport = connection.transport
        sockname = transport.get_extra_info("sockname") if transport is not None else None
        if sockname:
            # address of the last connection, the one that served the response
            self._trace.local_address = (sockname[0], sockname[1])
        return connection


def _result_code(exc: BaseException) -> ResultCode:  # noqa: PLR0911
    """Map an aiohttp or OS exception to a result code."""
    if isinstance(exc, TimeoutError):
        return ResultCode.OPERATION_TIMEDOUT
    if isinstance(exc, aiohttp.TooManyRedirects):
        return ResultCode.TOO_MANY_REDIRECTS
    if isinstance(exc, aiohttp.InvalidURL):
        return ResultCode.URL_MALFORMAT
    if isinstance(exc, aiohttp.ClientConnectorCertificateError):
        return ResultCode.PEER_FAILED_VERIFICATION
    if isinstance(exc, aiohttp.ClientSSLError):
        return ResultCode.SSL_CONNECT_ERROR
    if isinstance(exc, aiohttp.ClientConnectorDNSError):
        return ResultCode.COULDNT_RESOLVE_HOST
    if isinstance(exc, aiohttp.ClientConnectorError):
        return ResultCode.COULDNT_CONNECT
    if isinstance(exc, aiohttp.ServerDisconnectedError):
        return ResultCode.GOT_NOTHING
    return ResultCode.RECV_ERROR


class AiohttpTransfer:
    """Transfer handle executed with aiohttp.

    Options are stored until :meth:`perform` runs the request; metadata is
    available through :meth:`get_info` once it has finished.
    """

    def __init__(
        self,
        *,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize an empty transfer.

        Args:
            max_redirects: Maximum number of redirects followed.
            logger: Logger instance. If None, uses module logger.

        """
        self._options: dict[TransferOption, t.Any] = {}
        self._info: dict[InfoKey, t.Any] = {}
        self._max_redirects = max_redirects
        self._logger = logger or _logger

    def set_opt(self, option: TransferOption, value: t.Any) -> None:  # noqa: ANN401
        """Store an option; it takes effect when the transfer is performed."""
        self._options[option] = value

    def get_info(self, key: InfoKey) -> t.Any:  # noqa: ANN401
        """Return recorded metadata for ``key``, or None if it is unknown.

        Args:
            key: Metadata key.

        Returns:
            Any: The recorded value, or None.

        """
        return self._info.get(key)

    def close(self) -> None:
        """Discard the stored options, write function included."""
        self._options.clear()

    def _method(self) -> str:
        custom = self._options.get(TransferOption.CUSTOMREQUEST)
        if custom:
            return str(custom).upper()
        if self._options.get(TransferOption.POST):
            return hdrs.METH_POST
        return hdrs.METH_GET

    def _target(self, url: str) -> URL:
        """Validate the URL option.

        Raises:
            TransferError: If the URL is missing, malformed, or uses a scheme
                other than http or https.

        """
        try:
            target = URL(url, encoded=True)
        except (TypeError, ValueError) as e:
            msg = "Malformed URL"
            raise TransferError(msg, code=ResultCode.URL_MALFORMAT, cause=e, url=url) from e
        if not target.is_absolute() or not target.host:
            msg = "URL is missing or not absolute"
            raise TransferError(msg, code=ResultCode.URL_MALFORMAT, url=url)
        if target.scheme not in _SUPPORTED_SCHEMES:
            msg = f"Unsupported scheme: {target.scheme}"
            raise TransferError(msg, code=ResultCode.UNSUPPORTED_PROTOCOL, url=url)
        return target

    def _headers(self) -> CIMultiDict[str]:
        headers: CIMultiDict[str] = CIMultiDict()
        useragent = self._options.get(TransferOption.USERAGENT)
        if useragent:
            headers[hdrs.USER_AGENT] = useragent
        # header lines override the user agent option
        for line in self._options.get(TransferOption.HTTPHEADER) or ():
            name, _, value = line.partition(":")
            name = name.strip()
            if name:
                headers[name] = value.strip()
        return headers

    def _body(self, headers: CIMultiDict[str]) -> bytes | None:
        body = self._options.get(TransferOption.POSTFIELDS)
        if body is None:
            return None
        if hdrs.CONTENT_TYPE not in headers:
            headers[hdrs.CONTENT_TYPE] = FORM_CONTENT_TYPE
        return body.encode() if isinstance(body, str) else bytes(body)

    def _record_response(self, response: aiohttp.ClientResponse) -> None:
        self._info[InfoKey.EFFECTIVE_URL] = str(response.url)
        self._info[InfoKey.RESPONSE_CODE] = response.status
        self._info[InfoKey.CONTENT_TYPE] = response.headers.get(hdrs.CONTENT_TYPE)

    async def perform(self) -> ResultCode:
        """Execute the transfer.

        Transport failures are reported through the returned code rather
        than raised.

        Returns:
            ResultCode: ``ResultCode.OK`` or the failure code.

        """
        loop = asyncio.get_running_loop()
        trace = _TransferTrace(loop)
        url = self._options.get(TransferOption.URL) or ""
        method = self._method()
        self._info[InfoKey.EFFECTIVE_URL] = url
        self._info[InfoKey.RESPONSE_CODE] = 0

        self._logger.debug("Starting transfer: %s %s", method, url)
        try:
            await self._execute(method, url, trace)
        except TransferError as e:
            code = ResultCode(e.code) if e.code is not None else ResultCode.RECV_ERROR
            self._logger.debug("Transfer error: %s %s -> %s", method, url, e)
        except Exception as e:  # noqa: BLE001
            code = _result_code(e)
            self._logger.debug("Transfer error: %s %s -> %s: %s", method, url, type(e).__name__, e)
        else:
            code = ResultCode.OK
        finally:
            self._info[InfoKey.TOTAL_TIME] = trace.elapsed()
            self._info[InfoKey.CONNECT_TIME] = trace.connect_time
            self._info[InfoKey.REQUEST_SIZE] = trace.request_size
            if trace.local_address:
                self._info[InfoKey.LOCAL_IP] = trace.local_address[0]
                self._info[InfoKey.LOCAL_PORT] = trace.local_address[1]
        return code

    async def _execute(self, method: str, url: str, trace: _TransferTrace) -> None:
        target = self._target(url)
        headers = self._headers()
        body = self._body(headers)
        write = self._options.get(TransferOption.WRITEFUNCTION)

        connector = _RecordingConnector(trace, force_close=True)
        async with (
            aiohttp.ClientSession(
                connector=connector,
                trace_configs=[trace.trace_config()],
            ) as session,
            session.request(
                method,
                target,
                headers=headers,
                data=body,
                allow_redirects=bool(self._options.get(TransferOption.FOLLOWLOCATION, False)),
                max_redirects=self._max_redirects,
                ssl=bool(self._options.get(TransferOption.SSL_VERIFYPEER, True)),
            ) as response,
        ):
            self._record_response(response)
            async for chunk in response.content.iter_any():
                if write is None:
                    continue
                try:
                    write(chunk)
                except Exception as e:
                    msg = "Write callback failed"
                    raise TransferError(
                        msg,
                        code=ResultCode.WRITE_ERROR,
                        cause=e,
                        url=str(response.url),
                    ) from e


class AiohttpMulti:
    """Runs transfers as asyncio tasks and reports completion on the loop."""

    def __init__(
        self,
        tasks: set[asyncio.Task[None]],
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the multi handle.

        Args:
            tasks: Set keeping running transfer tasks referenced.
            logger: Logger instance. If None, uses module logger.

        """
        self._tasks = tasks
        self._handles: list[Transfer] = []
        self._callback: MessageCallback | None = None
        self._logger = logger or _logger

    def on_message(self, callback: MessageCallback | None) -> None:
        """Set or clear the completion callback."""
        self._callback = callback

    def add_handle(self, transfer: Transfer) -> None:
        """Register a transfer and schedule it on the running loop.

        Raises:
            TypeError: If the transfer was not created by AiohttpTransport.
            RuntimeError: If no event loop is running.

        """
        if not isinstance(transfer, AiohttpTransfer):
            msg = f"Expected AiohttpTransfer, got {type(transfer).__name__}"
            raise TypeError(msg)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            msg = "Transfers must be submitted from a running event loop"
            raise RuntimeError(msg) from e

        self._handles.append(transfer)
        task = loop.create_task(self._run(transfer, loop))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def remove_handle(self, transfer: Transfer) -> None:
        """Detach a transfer so its completion is no longer reported."""
        if transfer in self._handles:
            self._handles.remove(transfer)

    async def _run(
        self,
        transfer: AiohttpTransfer,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        code = await transfer.perform()
        # delivered as a loop callback so errors raised by it reach the
        # loop's exception handler instead of this task
        loop.call_soon(self._dispatch, transfer, code)

    def _dispatch(self, transfer: Transfer, code: ResultCode) -> None:
        callback = self._callback
        if callback is None or transfer not in self._handles:
            self._logger.debug("Dropping completion for detached transfer")
            return
        callback(transfer, code)


class AiohttpTransport:
    """Transport provider creating aiohttp-backed handles.

    Attributes:
        max_redirects: Maximum number of redirects a transfer follows.

    """

    def __init__(
        self,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            max_redirects: Maximum number of redirects a transfer follows.
            logger: Logger instance. If None, uses module logger.

        """
        self.max_redirects = max_redirects
        self._logger = logger or _logger
        self._tasks: set[asyncio.Task[None]] = set()

    def create_transfer(self) -> AiohttpTransfer:
        """Create an empty transfer handle."""
        return AiohttpTransfer(max_redirects=self.max_redirects, logger=self._logger)

    def create_multi(self) -> AiohttpMulti:
        """Create a multi handle sharing this transport's task set."""
        return AiohttpMulti(self._tasks, logger=self._logger)

    def strerror(self, code: ResultCode) -> str:
        """Return the human-readable description of a result code."""
        return describe(code)
