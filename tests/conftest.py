"""Shared test fixtures for yeelight_lan_protocol tests."""

from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio


def make_response(
    port: int,
    device_id: Optional[str] = "0x000000000015243f",
    host: str = "127.0.0.1",
    name: str = "my_bulb",
) -> bytes:
    """Build a discovery response advertising a device at host:port."""
    lines = [
        "HTTP/1.1 200 OK",
        "Cache-Control: max-age=3600",
        "Date: ",
        "Ext: ",
        f"Location: yeelight://{host}:{port}",
        "Server: POSIX UPnP/1.0 YGLC/1",
    ]
    if device_id is not None:
        lines.append(f"id: {device_id}")
    lines += [
        "model: color",
        "fw_ver: 18",
        "support: get_prop set_default set_power toggle set_bright start_cf stop_cf set_scene cron_add cron_get cron_del set_ct_abx set_rgb",
        "power: on",
        "bright: 100",
        "color_mode: 2",
        "ct: 4000",
        "rgb: 16711680",
        "hue: 100",
        "sat: 35",
        f"name: {name}",
    ]
    return ("\r\n".join(lines) + "\r\n").encode("ascii")


class FakeBulbServer:
    """A TCP server standing in for a bulb's control port. Records every line it receives."""

    def __init__(self) -> None:
        self.lines: List[bytes] = []
        self.connections = 0
        self.port = 0
        self._server: Optional[asyncio.AbstractServer] = None
        self._writers: List[asyncio.StreamWriter] = []
        self._line_event = asyncio.Event()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                self.lines.append(line)
                self._line_event.set()
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def wait_for_lines(self, n: int, timeout: float = 2.0) -> List[bytes]:
        async def _wait() -> None:
            while len(self.lines) < n:
                self._line_event.clear()
                await self._line_event.wait()

        await asyncio.wait_for(_wait(), timeout)
        return self.lines

    async def stop(self) -> None:
        assert self._server is not None
        self._server.close()
        for writer in self._writers:
            writer.close()
        await asyncio.wait_for(self._server.wait_closed(), 2.0)


class _ResponderProtocol(asyncio.DatagramProtocol):
    def __init__(self, responder: FakeDiscoveryResponder) -> None:
        self.responder = responder
        self.transport: Optional[asyncio.DatagramTransport] = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self.responder.probes.append(data)
        assert self.transport is not None
        for payload in self.responder.responses:
            self.transport.sendto(payload, addr)


class FakeDiscoveryResponder:
    """A UDP endpoint on 127.0.0.1 that answers every probe with canned responses."""

    def __init__(self) -> None:
        self.responses: List[bytes] = []
        self.probes: List[bytes] = []
        self.port = 0
        self._transport: Optional[asyncio.BaseTransport] = None

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _ResponderProtocol(self), local_addr=("127.0.0.1", 0)
        )
        self.port = self._transport.get_extra_info("sockname")[1]

    def stop(self) -> None:
        assert self._transport is not None
        self._transport.close()


@pytest.fixture
def sample_response() -> bytes:
    """A complete discovery response for a device on the default control port."""
    return make_response(55443, host="192.168.1.239")


@pytest_asyncio.fixture
async def bulb_server():
    server = FakeBulbServer()
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def responder():
    fake = FakeDiscoveryResponder()
    await fake.start()
    yield fake
    fake.stop()


@pytest.fixture
def closed_port() -> int:
    """A local TCP port with nothing listening on it."""
    import socket

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def response_factory():
    """The make_response() builder, for tests that need responses for several devices."""
    return make_response
