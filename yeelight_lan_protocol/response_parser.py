#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Parser for discovery responses.

A discovery response is HTTP-like text: a status line followed by "Name: value"
header lines, e.g.:

    HTTP/1.1 200 OK
    Cache-Control: max-age=3600
    Location: yeelight://192.168.1.239:55443
    id: 0x000000000015243f
    model: color
    fw_ver: 18
    support: get_prop set_default set_power toggle set_bright
    power: on
    bright: 100
    color_mode: 2
    ct: 4000
    rgb: 16711680
    hue: 100
    sat: 35
    name: my_bulb

Header names are matched exactly (case-sensitive) and the position of a line never
matters. Lines that are not headers, and headers that are not recognized, are
ignored. Each line is decoded separately. The Location and id headers are
required; a bad value (including invalid UTF-8) in any other header only
invalidates that one field, which is recorded in
YeelightDevice.field_errors.
"""

from __future__ import annotations

import re

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_CONTROL_PORT, MAX_NAME_LENGTH
from .exceptions import ResponseParseError
from .device import YeelightDevice, ColorMode
from .util import CaseInsensitiveDict, split_bytes_at_lf_or_crlf, split_header_line

HDR_LOCATION = "Location"
HDR_ID = "id"
HDR_CACHE_CONTROL = "Cache-Control"

_max_age_re = re.compile(r'(?:^|[ ,])max-age *= *(?P<max_age>[^ ,]*)')

class _FieldError(ValueError):
    pass

def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise _FieldError(f"not an integer: {value!r}") from e

def _parse_power(value: str) -> bool:
    if value == "on":
        return True
    if value == "off":
        return False
    raise _FieldError(f"expected 'on' or 'off': {value!r}")

def _parse_color_mode(value: str) -> ColorMode:
    mode = _parse_int(value)
    try:
        return ColorMode(mode)
    except ValueError as e:
        raise _FieldError(f"unknown color mode: {mode}") from e

def _parse_methods(value: str) -> Set[str]:
    return set(value.split())

def _parse_name(value: str) -> str:
    try:
        encoded = value.encode('ascii')
    except UnicodeEncodeError as e:
        raise _FieldError(f"name is not ASCII: {value!r}") from e
    if len(encoded) > MAX_NAME_LENGTH:
        raise _FieldError(f"name is longer than {MAX_NAME_LENGTH} bytes: {value!r}")
    return value

def _parse_refresh_interval_ms(value: str) -> int:
    m = _max_age_re.search(value)
    if m is None:
        raise _FieldError(f"no max-age directive: {value!r}")
    return _parse_int(m.group('max_age')) * 1000

_field_parsers: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "model":         ("model", str),
    "fw_ver":        ("firmware_version", _parse_int),
    "support":       ("methods", _parse_methods),
    "power":         ("power", _parse_power),
    "bright":        ("brightness", _parse_int),
    "color_mode":    ("color_mode", _parse_color_mode),
    "ct":            ("color_temperature", _parse_int),
    "rgb":           ("rgb", _parse_int),
    "hue":           ("hue", _parse_int),
    "sat":           ("saturation", _parse_int),
    "name":          ("name", _parse_name),
    HDR_CACHE_CONTROL: ("refresh_interval_ms", _parse_refresh_interval_ms),
}
"""Header name -> (YeelightDevice attribute name, value parser) for the optional fields"""

def parse_location(location: str) -> HostAndPort:
    """Splits a location such as "yeelight://192.168.1.50:55443" into (host, port).

    If no port is present, DEFAULT_CONTROL_PORT is returned. Raises ResponseParseError if
    the location has no scheme delimiter or no host, or a port that is not an integer in 1-65535.
    """
    scheme, sep, remainder = location.partition('://')
    if sep == '':
        raise ResponseParseError(f"{HDR_LOCATION} header has no scheme: {location!r}", field=HDR_LOCATION)
    remainder = remainder.rstrip('/')
    host, sep, port_str = remainder.rpartition(':')
    if sep == '':
        host, port_str = remainder, ''
    if host == '':
        raise ResponseParseError(f"{HDR_LOCATION} header has no host: {location!r}", field=HDR_LOCATION)
    if port_str == '':
        return (host, DEFAULT_CONTROL_PORT)
    try:
        port = int(port_str)
    except ValueError as e:
        raise ResponseParseError(f"{HDR_LOCATION} header has invalid port: {location!r}", field=HDR_LOCATION) from e
    if not 0 < port <= 65535:
        raise ResponseParseError(f"{HDR_LOCATION} header port is out of range: {location!r}", field=HDR_LOCATION)
    return (host, port)

def _decode_header_lines(data: Union[bytes, str]) -> List[Tuple[str, str, bool]]:
    """Returns (name, value, decoded_cleanly) for every header line, in order. Each line is
       decoded on its own; invalid UTF-8 is replaced with U+FFFD rather than rejecting
       the whole response."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    # datagrams received into a fixed-size buffer may be NUL padded
    data = data.rstrip(b'\x00')
    result: List[Tuple[str, str, bool]] = []
    for raw_line in split_bytes_at_lf_or_crlf(data):
        try:
            line = raw_line.decode('utf-8')
            clean = True
        except UnicodeDecodeError:
            line = raw_line.decode('utf-8', errors='replace')
            clean = False
        header = split_header_line(line)
        if header is not None:
            result.append((header[0], header[1], clean))
    return result

def parse_header_lines(data: Union[bytes, str]) -> List[Tuple[str, str]]:
    """Returns the (name, value) pairs of all header lines in a response, in order.
       The status line and any other non-header lines are dropped."""
    return [ (name, value) for name, value, _ in _decode_header_lines(data) ]

def parse_discovery_response(data: Union[bytes, str]) -> YeelightDevice:
    """Parses one discovery response payload into a YeelightDevice.

    Raises ResponseParseError if the payload has no Location or id header, if the
    location is malformed, or if either of them is not valid UTF-8. Invalid UTF-8 in any
    other header only invalidates that field.
    """
    decoded_lines = _decode_header_lines(data)
    header_lines = [ (name, value) for name, value, _ in decoded_lines ]
    exact_headers: Dict[str, str] = dict(header_lines)
    # a repeated header takes its last value, so only the last line decides
    decoded_cleanly: Dict[str, bool] = { name: clean for name, _, clean in decoded_lines }
    undecodable: Set[str] = { name for name, clean in decoded_cleanly.items() if not clean }
    for required in (HDR_LOCATION, HDR_ID):
        if required in undecodable:
            raise ResponseParseError(f"{required} header is not valid UTF-8", field=required)

    location = exact_headers.get(HDR_LOCATION)
    if location is None:
        raise ResponseParseError(f"Response has no {HDR_LOCATION} header", field=HDR_LOCATION)
    device_id = exact_headers.get(HDR_ID)
    if device_id is None or device_id == '':
        raise ResponseParseError(f"Response has no {HDR_ID} header", field=HDR_ID)
    address, port = parse_location(location)

    device = YeelightDevice(address, port, device_id=device_id)
    device.headers = CaseInsensitiveDict(header_lines)

    for header_name, value in exact_headers.items():
        field_parser = _field_parsers.get(header_name)
        if field_parser is None:
            continue
        attr_name, parse_value = field_parser
        try:
            if header_name in undecodable:
                raise _FieldError(f"not valid UTF-8: {value!r}")
            setattr(device, attr_name, parse_value(value))
        except _FieldError as e:
            device.field_errors[attr_name] = str(e)
            logger.warning(f"Device {device_id}: ignoring invalid {header_name} header ({attr_name}): {e}")

    return device
