# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

YEELIGHT_MULTICAST_ADDRESS = "239.255.255.250"
"""The multicast address that devices listen on for discovery probes."""

YEELIGHT_DISCOVERY_PORT = 1982
"""The port number used for UDP discovery probes."""

YEELIGHT_SEARCH_TARGET = "wifi_bulb"
"""The service type named in the ST header of a discovery probe."""

DEFAULT_CONTROL_PORT = 55443
"""The TCP control port used when a device does not advertise one."""

DEFAULT_DISCOVERY_TIMEOUT = 4.0
"""The default amount of time (in seconds) to wait for the next discovery response."""

DEFAULT_TRANSITION_MS = 500
"""The default duration (in milliseconds) of a smooth power or brightness transition."""

EFFECT_SMOOTH = "smooth"
"""The effect name that requests a gradual transition."""

METHOD_SET_POWER = "set_power"
METHOD_SET_BRIGHT = "set_bright"

COMMAND_TERMINATOR = b"\r\n"
"""Terminates every command line written to a control channel."""

MAX_NAME_LENGTH = 64
"""The maximum length (in ASCII bytes) of a user-assigned device name."""
