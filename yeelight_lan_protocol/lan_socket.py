#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
LanSocket -- the UDP side of discovery.

A LanSocket owns one datagram socket per local address it is bound to, so a probe
can go out of every network interface and the answers can come back on any of
them. Everything that arrives is funneled into a single queue that the discovery
search drains with receive().

Subclasses create and bind the sockets in add_socket_bindings().
"""

from __future__ import annotations

import asyncio
import socket
from abc import abstractmethod

from .internal_types import *
from .pkg_logging import logger
from .exceptions import YeelightError

MAX_QUEUE_SIZE = 1000

ReceivedDatagram = Tuple['LanSocketBinding', HostAndPort, bytes]
"""(socket_binding, sender_address, payload)"""

class LanSocketBinding:
    """One bound datagram socket of a LanSocket."""

    sock: socket.socket

    local_addr: HostAndPort
    """The local address and (usually ephemeral) port the socket is bound to."""

    transport: Optional[asyncio.DatagramTransport] = None
    """Set once the socket has been handed to the event loop."""

    def __init__(self, sock: socket.socket):
        self.sock = sock
        self.local_addr = sock.getsockname()[:2]

    def sendto(self, data: bytes, addr: HostAndPort) -> None:
        logger.debug(f"Sending datagram via {self} to {addr}: {data!r}")
        if self.transport is None:
            raise YeelightError(f"{self} is not open")
        self.transport.sendto(data, addr)

    def close(self) -> None:
        if self.transport is None:
            self.sock.close()
        else:
            # closing the transport also closes the socket
            self.transport.close()
            self.transport = None

    def __str__(self) -> str:
        return f"LanSocketBinding({self.local_addr[0]}:{self.local_addr[1]})"

    def __repr__(self) -> str:
        return str(self)

class _LanSocketProtocol(asyncio.DatagramProtocol):
    """Forwards transport callbacks for one binding to its LanSocket."""

    def __init__(self, lan_socket: LanSocket, socket_binding: LanSocketBinding):
        self.lan_socket = lan_socket
        self.socket_binding = socket_binding

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        self.lan_socket.datagram_received(self.socket_binding, (addr[0], addr[1]), data)

    def error_received(self, exc: Exception) -> None:
        self.lan_socket.error_received(self.socket_binding, exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self.lan_socket.error_received(self.socket_binding, exc)


class LanSocket(AsyncContextManager['LanSocket']):
    socket_bindings: List[LanSocketBinding]

    received: asyncio.Queue[Optional[ReceivedDatagram]]
    """Datagrams from every binding, in arrival order. None marks end of stream."""

    transport_error: Optional[Exception] = None
    """The error that shut the socket down, if any. Raised by receive()."""

    is_closed: bool = False

    def __init__(self) -> None:
        self.socket_bindings = []
        self.received = asyncio.Queue(MAX_QUEUE_SIZE)

    @abstractmethod
    async def add_socket_bindings(self) -> None:
        """Creates and binds the sockets, adding each with add_socket_binding()."""
        raise NotImplementedError()

    def add_socket_binding(self, socket_binding: LanSocketBinding) -> None:
        self.socket_bindings.append(socket_binding)
        logger.debug(f"Added {socket_binding}")

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await self.add_socket_bindings()
            if len(self.socket_bindings) == 0:
                raise YeelightError("No datagram sockets were bound")
            for socket_binding in self.socket_bindings:
                transport, _ = await loop.create_datagram_endpoint(
                    lambda binding=socket_binding: _LanSocketProtocol(self, binding),
                    sock=socket_binding.sock
                  )
                # asyncio's datagram transports do not inherit from asyncio.DatagramTransport
                socket_binding.transport = transport # type: ignore[assignment]
        except BaseException:
            self.close()
            raise

    def close(self) -> None:
        if self.is_closed:
            return
        self.is_closed = True
        for socket_binding in self.socket_bindings:
            try:
                socket_binding.close()
            except OSError as e:
                logger.warning(f"Error closing {socket_binding}: {e!r}")
        self._put_end_of_stream()

    def _put_end_of_stream(self) -> None:
        try:
            self.received.put_nowait(None)
        except asyncio.QueueFull:
            # the reader will reach the end after draining the queue
            pass

    def discard_received(self) -> None:
        """Drops datagrams that are already queued, e.g. late answers to an earlier probe."""
        while not self.received.empty():
            if self.received.get_nowait() is None:
                self._put_end_of_stream()
                break

    async def receive(self) -> Optional[ReceivedDatagram]:
        """Waits for the next datagram from any binding.

        Returns None once the socket has been closed. If the socket was shut down by a
        transport error, that error is raised instead.
        """
        if self.transport_error is not None:
            raise self.transport_error
        if self.is_closed and self.received.empty():
            return None
        result = await self.received.get()
        if result is None:
            # leave the marker in place for any later receive()
            self._put_end_of_stream()
            if self.transport_error is not None:
                raise self.transport_error
        return result

    def datagram_received(self, socket_binding: LanSocketBinding, addr: HostAndPort, data: bytes) -> None:
        logger.debug(f"Received datagram from {addr} on {socket_binding}: {data!r}")
        if self.is_closed:
            return
        try:
            self.received.put_nowait((socket_binding, addr, data))
        except asyncio.QueueFull:
            logger.warning(f"Receive queue full, dropping datagram from {addr} on {socket_binding}")

    def error_received(self, socket_binding: LanSocketBinding, exc: Exception) -> None:
        """Called when a send or receive on one of the bindings fails. Shuts the whole socket down."""
        logger.info(f"Transport error on {socket_binding}: {exc!r}")
        if self.transport_error is None:
            self.transport_error = exc
        self.close()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.close()
        return False
