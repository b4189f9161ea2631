"""Common test fixtures for the arequest project."""

from __future__ import annotations

import socket
import typing as t

import pytest

from arequest import Client, ClientConfig, ResponseInfo, Result
from arequest.transport import InfoKey, ResultCode, TransferOption, describe

if t.TYPE_CHECKING:
    from arequest.transport import MessageCallback


class FakeTransfer:
    """Transfer handle recording options and serving canned metadata."""

    def __init__(self) -> None:
        self.options: dict[TransferOption, t.Any] = {}
        self.info: dict[InfoKey, t.Any] = {}
        self.closed = False

    def set_opt(self, option: TransferOption, value: t.Any) -> None:
        self.options[option] = value

    def get_info(self, key: InfoKey) -> t.Any:
        return self.info.get(key)

    def close(self) -> None:
        self.closed = True

    def write(self, *chunks: bytes) -> None:
        """Feed body chunks through the configured write function."""
        for chunk in chunks:
            self.options[TransferOption.WRITEFUNCTION](chunk)


class FakeMulti:
    """Multi handle that completes only when the test says so."""

    def __init__(self) -> None:
        self.handles: list[FakeTransfer] = []
        self.removed: list[FakeTransfer] = []
        self.callback: MessageCallback | None = None
        self.fail_on_add: Exception | None = None

    def on_message(self, callback: MessageCallback | None) -> None:
        self.callback = callback

    def add_handle(self, transfer: FakeTransfer) -> None:
        if self.fail_on_add is not None:
            raise self.fail_on_add
        self.handles.append(transfer)

    def remove_handle(self, transfer: FakeTransfer) -> None:
        if transfer in self.handles:
            self.handles.remove(transfer)
            self.removed.append(transfer)

    def complete(self, code: ResultCode = ResultCode.OK) -> None:
        """Fire the completion event for the registered transfer, if attached."""
        transfer = self.handles[0] if self.handles else self.removed[0]
        if self.callback is not None:
            self.callback(transfer, code)


class FakeTransport:
    """Transport provider handing out fake handles."""

    def __init__(self) -> None:
        self.transfers: list[FakeTransfer] = []
        self.multis: list[FakeMulti] = []
        self.fail_on_add: Exception | None = None

    def create_transfer(self) -> FakeTransfer:
        transfer = FakeTransfer()
        self.transfers.append(transfer)
        return transfer

    def create_multi(self) -> FakeMulti:
        multi = FakeMulti()
        multi.fail_on_add = self.fail_on_add
        self.multis.append(multi)
        return multi

    def strerror(self, code: ResultCode) -> str:
        return describe(code)

    @property
    def transfer(self) -> FakeTransfer:
        return self.transfers[-1]

    @property
    def multi(self) -> FakeMulti:
        return self.multis[-1]


class Recorder:
    """Completion callback that records every invocation."""

    def __init__(self) -> None:
        self.calls: list[Result] = []

    def __call__(self, error: str, info: ResponseInfo, body: str) -> None:
        self.calls.append(Result(error, info, body))


@pytest.fixture
def transport() -> FakeTransport:
    """Test fixture providing a fake transport provider."""
    return FakeTransport()


@pytest.fixture
def fake_client(transport: FakeTransport) -> Client:
    """Test fixture providing a Client wired to the fake transport."""
    return Client(ClientConfig(transport=transport))


@pytest.fixture
def recorder() -> Recorder:
    """Test fixture providing a recording callback."""
    return Recorder()


@pytest.fixture
def client() -> Client:
    """Test fixture providing a default instance of Client."""
    return Client()


@pytest.fixture
def closed_port() -> int:
    """Test fixture providing a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]

