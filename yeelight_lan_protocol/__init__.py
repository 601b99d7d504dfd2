# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package yeelight_lan_protocol discovers and controls Yeelight smart lights on a local network.

Discovery is an SSDP-like exchange: an "M-SEARCH" probe naming the "wifi_bulb" service
type is sent to the multicast group 239.255.255.250:1982, and every listening device
answers with an HTTP-like header block describing its address, identity, capabilities
and current state.

Control uses a persistent TCP connection to each device (port 55443 by default). Each
command is a line of JSON carrying a per-connection sequence number, a method name,
and a parameter list. Device results are not read; the state kept in a YeelightDevice
after a command is the state the command is assumed to have produced.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, HostAndPort

from .exceptions import (
    YeelightError,
    DiscoveryError,
    ResponseParseError,
    ControlChannelError,
    CommandSendError,
    ChannelClosedError,
    UnsupportedParamError,
  )

from .device import YeelightDevice, ColorMode
from .response_parser import parse_discovery_response, parse_location
from .control_channel import (
    ControlChannel,
    CommandParam,
    StringParam,
    IntParam,
    BoolParam,
    ParamValue,
    to_command_param,
    encode_command,
  )
from .bulb import YeelightBulb
from .lan_socket import LanSocket, LanSocketBinding, ReceivedDatagram
from .discovery import YeelightDiscoveryClient, DiscoverySearch, discover, encode_discovery_probe
from .util import CaseInsensitiveDict
from .constants import (
    YEELIGHT_MULTICAST_ADDRESS,
    YEELIGHT_DISCOVERY_PORT,
    YEELIGHT_SEARCH_TARGET,
    DEFAULT_CONTROL_PORT,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_TRANSITION_MS,
  )

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict', 'HostAndPort',
    'YeelightError', 'DiscoveryError', 'ResponseParseError', 'ControlChannelError',
    'CommandSendError', 'ChannelClosedError', 'UnsupportedParamError',
    'YeelightDevice', 'ColorMode',
    'parse_discovery_response', 'parse_location',
    'ControlChannel', 'CommandParam', 'StringParam', 'IntParam', 'BoolParam', 'ParamValue',
    'to_command_param', 'encode_command',
    'YeelightBulb',
    'LanSocket', 'LanSocketBinding', 'ReceivedDatagram',
    'YeelightDiscoveryClient', 'DiscoverySearch', 'discover', 'encode_discovery_probe',
    'CaseInsensitiveDict',
    'YEELIGHT_MULTICAST_ADDRESS', 'YEELIGHT_DISCOVERY_PORT', 'YEELIGHT_SEARCH_TARGET',
    'DEFAULT_CONTROL_PORT', 'DEFAULT_DISCOVERY_TIMEOUT', 'DEFAULT_TRANSITION_MS',
]
