# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
YeelightDiscoveryClient -- A discovery client that can:

  1. Send an M-SEARCH probe to the multicast UDP address (typically 239.255.255.250:1982)
  2. Receive and parse discovery responses from devices into YeelightDevice records
  3. Collect responses until no new response arrives within a timeout, deduplicated by device id
  4. Open a control channel to every discovered device
"""

from __future__ import annotations


import asyncio
import ipaddress
import socket
import sys

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    YEELIGHT_MULTICAST_ADDRESS,
    YEELIGHT_DISCOVERY_PORT,
    YEELIGHT_SEARCH_TARGET,
    DEFAULT_DISCOVERY_TIMEOUT,
  )
from .exceptions import YeelightError, DiscoveryError, ResponseParseError, ControlChannelError
from .lan_socket import LanSocket, LanSocketBinding
from .response_parser import parse_discovery_response
from .device import YeelightDevice
from .bulb import YeelightBulb
from .util import get_local_ip_addresses, encode_http_header

def encode_discovery_probe(
        multicast_address: str=YEELIGHT_MULTICAST_ADDRESS,
        multicast_port: int=YEELIGHT_DISCOVERY_PORT,
        search_target: str=YEELIGHT_SEARCH_TARGET,
      ) -> bytes:
    """Returns the M-SEARCH request that asks devices of type `search_target` to identify themselves."""
    return (
        b'M-SEARCH * HTTP/1.1\r\n' +
        encode_http_header('HOST', f"{multicast_address}:{multicast_port}") +
        encode_http_header('MAN', '"ssdp:discover"') +
        encode_http_header('ST', search_target)
      )

class DiscoverySearch(
        AsyncContextManager['DiscoverySearch'],
        AsyncIterable[YeelightDevice]
      ):
    """Manages a single discovery probe on a YeelightDiscoveryClient and the responses to it
       within an AsyncContextManager/AsyncIterable interface.

       Devices are yielded as their responses arrive and are not deduplicated; a device that
       answers twice is yielded twice. Responses that cannot be parsed are logged and skipped.
    """

    discovery_client: YeelightDiscoveryClient
    timeout: float
    max_responses: int

    def __init__(
            self,
            discovery_client: YeelightDiscoveryClient,
            timeout: Optional[float]=None,
            max_responses: int=0,
          ):
        """Create an async context manager/iterable that sends a discovery probe and returns the
        parsed responses as they arrive.

        Parameters:
            discovery_client: The client whose sockets are used to send the probe and receive responses.
            timeout:          The maximum time (in seconds) to wait for each response. The wait restarts
                                after every received datagram; the search ends when nothing arrives within
                                the timeout. Defaults to discovery_client.timeout.
            max_responses:    The maximum number of valid responses to return. If 0 (the default), all
                                responses are returned.

        Usage:
            async with DiscoverySearch(discovery_client, ...) as search:
                async for device in search:
                    print(device)
        """
        self.discovery_client = discovery_client
        self.timeout = discovery_client.timeout if timeout is None else timeout
        self.max_responses = max_responses

    async def __aenter__(self) -> DiscoverySearch:
        # anything still queued belongs to an earlier probe
        self.discovery_client.discard_received()
        self.discovery_client.send_probe()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        return False

    async def iter_responses(self) -> AsyncIterator[YeelightDevice]:
        n = 0
        while True:
            if self.max_responses > 0 and n >= self.max_responses:
                break
            try:
                resp_tuple = await asyncio.wait_for(self.discovery_client.receive(), self.timeout)
            except asyncio.TimeoutError:
                logger.debug(f"No discovery response within {self.timeout} seconds; assuming there are no more devices")
                break
            except OSError as e:
                raise DiscoveryError(f"Discovery socket failed while receiving: {e!r}") from e
            if resp_tuple is None:
                break
            socket_binding, addr, data = resp_tuple
            try:
                device = parse_discovery_response(data)
            except ResponseParseError as e:
                logger.warning(f"Skipping discovery response from {addr} on {socket_binding}: {e}")
                continue
            logger.debug(f"Received discovery response from {addr} on {socket_binding}: {device}")
            n += 1
            yield device

    def __aiter__(self) -> AsyncIterator[YeelightDevice]:
        return self.iter_responses()


class YeelightDiscoveryClient(LanSocket, AsyncContextManager['YeelightDiscoveryClient']):
    """
    A discovery client that can:

      1. Send a discovery probe to a multicast UDP address (typically 239.255.255.250:1982)
      2. Receive and parse discovery responses from devices
      3. Collect responses until none arrives within a timeout, and connect to each device found
    """
    timeout: float
    """The amount of time (in seconds) to wait for each response. By default,
       this is DEFAULT_DISCOVERY_TIMEOUT."""

    multicast_address: str = YEELIGHT_MULTICAST_ADDRESS
    """The multicast address to send probes to."""

    multicast_port: int = YEELIGHT_DISCOVERY_PORT
    """The multicast port to send probes to."""

    search_target: str = YEELIGHT_SEARCH_TARGET
    """The service type named in the probe."""

    bind_addresses: List[str]
    """The local IP addresses to bind to, one socket each."""

    include_loopback: bool = False
    """If True, loopback addresses will be included in the default list of local IP addresses to bind to."""

    connect_timeout: Optional[float] = None
    """Timeout (in seconds) for opening each control channel, or None to wait indefinitely."""

    _probe_addr: Optional[HostAndPort] = None

    def __init__(
            self,
            timeout: float=DEFAULT_DISCOVERY_TIMEOUT,
            multicast_address: str=YEELIGHT_MULTICAST_ADDRESS,
            multicast_port: int=YEELIGHT_DISCOVERY_PORT,
            search_target: str=YEELIGHT_SEARCH_TARGET,
            bind_addresses: Optional[Iterable[str]]=None,
            include_loopback: bool=False,
            connect_timeout: Optional[float]=None,
          ) -> None:
        super().__init__()
        self.timeout = timeout
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port
        self.search_target = search_target
        self.include_loopback = include_loopback
        self.connect_timeout = connect_timeout
        if bind_addresses is None:
            bind_addresses = get_local_ip_addresses(include_loopback=self.include_loopback)
        self.bind_addresses = list(bind_addresses)

    #@override
    async def add_socket_bindings(self) -> None:
        """Creates one UDP socket for each bind address, on an ephemeral port."""
        if len(self.bind_addresses) == 0:
            raise DiscoveryError("No local IP addresses to bind discovery sockets to")
        try:
            addrinfo = socket.getaddrinfo(self.multicast_address, self.multicast_port, type=socket.SOCK_DGRAM)[0]
        except OSError as e:
            raise DiscoveryError(f"Cannot resolve discovery address {self.multicast_address}:{self.multicast_port}: {e!r}") from e
        address_family = addrinfo[0]
        assert address_family in (socket.AF_INET, socket.AF_INET6)
        self._probe_addr = (addrinfo[4][0], addrinfo[4][1])
        logger.debug(f"Creating socket bindings to {self.bind_addresses}")
        for bind_address in self.bind_addresses:
            try:
                sock = socket.socket(address_family, socket.SOCK_DGRAM)
            except OSError as e:
                raise DiscoveryError(f"Cannot create discovery socket: {e!r}") from e
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                if sys.platform not in ( 'win32', 'cygwin' ):
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                sock.bind((bind_address, 0))
                if address_family == socket.AF_INET and ipaddress.ip_address(self._probe_addr[0]).is_multicast:
                    # send multicast out of the interface that owns the bind address
                    sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(bind_address))
            except OSError as e:
                sock.close()
                raise DiscoveryError(f"Cannot bind discovery socket to {bind_address}: {e!r}") from e
            socket_binding = LanSocketBinding(sock)
            self.add_socket_binding(socket_binding)

    def send_probe(self) -> None:
        """Sends one discovery probe through every socket binding. Raises DiscoveryError on failure."""
        assert self._probe_addr is not None
        probe = encode_discovery_probe(self.multicast_address, self.multicast_port, self.search_target)
        try:
            for socket_binding in self.socket_bindings:
                socket_binding.sendto(probe, self._probe_addr)
        except (OSError, YeelightError) as e:
            raise DiscoveryError(f"Failed to send discovery probe to {self._probe_addr}: {e!r}") from e
        logger.info(f"Sent discovery probe to {self._probe_addr[0]}:{self._probe_addr[1]} with timeout of {self.timeout} seconds")

    def search(
            self,
            timeout: Optional[float]=None,
            max_responses: int=0,
          ) -> DiscoverySearch:
        """Create an async context manager/iterable that sends a discovery probe and returns the
           parsed (but not connected) devices as their responses arrive.

        Parameters:
            timeout:       The maximum time (in seconds) to wait for each response. Defaults to self.timeout.
            max_responses: The maximum number of valid responses to return. If 0 (the default), all
                             responses are returned.

        Usage:
            async with discovery_client.search(...) as search:
                async for device in search:
                    print(device)
        """
        return DiscoverySearch(self, timeout=timeout, max_responses=max_responses)

    async def search_devices(
            self,
            timeout: Optional[float]=None,
            max_responses: int=0,
          ) -> Dict[str, YeelightDevice]:
        """Runs a search to completion and returns the discovered devices keyed by device id,
           without opening control channels. If a device responds more than once, the last
           response wins."""
        results: Dict[str, YeelightDevice] = {}
        async with self.search(timeout=timeout, max_responses=max_responses) as search:
            async for device in search:
                assert device.device_id is not None
                results[device.device_id] = device
        return results

    async def connect_devices(
            self,
            devices: Iterable[YeelightDevice],
            raise_on_connect_error: bool=False,
          ) -> Dict[str, YeelightBulb]:
        """Opens control channels to all devices concurrently.

        A device whose channel cannot be opened is logged and left out of the result. If
        raise_on_connect_error is True, the first such ControlChannelError is raised
        instead, after closing the channels that did open.
        """
        device_list = list(devices)
        results = await asyncio.gather(
            *(YeelightBulb.open(device, connect_timeout=self.connect_timeout) for device in device_list),
            return_exceptions=True
          )
        bulbs: Dict[str, YeelightBulb] = {}
        first_error: Optional[BaseException] = None
        for device, result in zip(device_list, results):
            if isinstance(result, YeelightBulb):
                assert device.device_id is not None
                bulbs[device.device_id] = result
            else:
                if isinstance(result, ControlChannelError):
                    logger.error(f"Unable to open control channel to device {device.device_id} at {device.address}:{device.port}: {result}")
                if first_error is None and (raise_on_connect_error or not isinstance(result, ControlChannelError)):
                    first_error = result
        if first_error is not None:
            for bulb in bulbs.values():
                await bulb.close()
            raise first_error
        return bulbs

    async def discover(
            self,
            timeout: Optional[float]=None,
            raise_on_connect_error: bool=False,
          ) -> Dict[str, YeelightBulb]:
        """Discovers devices and opens a control channel to each of them.

        Returns a dict of device id -> YeelightBulb. A discovery run in which no device
        answers returns an empty dict.
        """
        devices = await self.search_devices(timeout=timeout)
        bulbs = await self.connect_devices(devices.values(), raise_on_connect_error=raise_on_connect_error)
        logger.info(f"Discovered {len(bulbs)} bulb(s): {', '.join(str(b.device) for b in bulbs.values())}")
        return bulbs

    async def __aenter__(self) -> YeelightDiscoveryClient:
        try:
            await super().__aenter__()
        except DiscoveryError:
            raise
        except (OSError, YeelightError) as e:
            raise DiscoveryError(f"Unable to start discovery client: {e!r}") from e
        return self

async def discover(
        timeout: float=DEFAULT_DISCOVERY_TIMEOUT,
        raise_on_connect_error: bool=False,
        **kwargs: Any
      ) -> Dict[str, YeelightBulb]:
    """Runs a single discovery with a temporary YeelightDiscoveryClient.

    Extra keyword arguments are passed to YeelightDiscoveryClient.

    Usage:
        bulbs = await discover(timeout=2.0)
        for bulb in bulbs.values():
            await bulb.turn_on()
    """
    async with YeelightDiscoveryClient(timeout=timeout, **kwargs) as client:
        return await client.discover(raise_on_connect_error=raise_on_connect_error)
