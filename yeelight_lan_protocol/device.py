#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
YeelightDevice -- the in-memory record of one device's identity and last-known state.

A record is created by the discovery response parser, or from a bare address when
discovery is bypassed. The device identifier is the only key used for identity,
equality, hashing and ordering.

The power and brightness fields are updated optimistically by YeelightBulb as
soon as a command is written; no acknowledgement is ever read back, so they hold
the *assumed* state of the device rather than its confirmed state.
"""

from __future__ import annotations

from enum import IntEnum

from .internal_types import *
from .constants import DEFAULT_CONTROL_PORT
from .util import CaseInsensitiveDict

class ColorMode(IntEnum):
    """The color mode advertised in the color_mode header. It selects which of the
       mutually exclusive color fields of a YeelightDevice is meaningful."""
    DIRECT_COLOR = 1
    COLOR_TEMPERATURE = 2
    FLOW = 3


class YeelightDevice:
    address: str
    """The IP address of the device's control port"""

    port: int
    """The TCP control port"""

    _device_id: Optional[str] = None

    model: Optional[str] = None
    """The model name; e.g., "mono", "color", "stripe" """

    firmware_version: Optional[int] = None

    methods: Set[str]
    """The names of the control methods the device supports"""

    power: Optional[bool] = None
    """True if the light is on"""

    brightness: Optional[int] = None
    """Brightness percentage, nominally 1-100. Not range checked."""

    color_mode: Optional[ColorMode] = None

    color_temperature: Optional[int] = None
    """Color temperature in Kelvin. Only meaningful in COLOR_TEMPERATURE mode."""

    rgb: Optional[int] = None
    """Packed 0xRRGGBB value. Only meaningful in DIRECT_COLOR mode."""

    hue: Optional[int] = None
    """Only meaningful in FLOW mode."""

    saturation: Optional[int] = None
    """Only meaningful in FLOW mode."""

    name: Optional[str] = None
    """User-assigned name, at most 64 ASCII bytes"""

    refresh_interval_ms: Optional[int] = None
    """The interval between the device's periodic advertisements, in milliseconds"""

    headers: CaseInsensitiveDict[str]
    """Every header line of the discovery response, undecoded. Empty for records
       created from an address."""

    field_errors: Dict[str, str]
    """Attribute name -> description of why the advertised value could not be parsed"""

    def __init__(
            self,
            address: str,
            port: int=DEFAULT_CONTROL_PORT,
            device_id: Optional[str]=None,
          ) -> None:
        self.address = address
        self.port = port
        self._device_id = device_id
        self.methods = set()
        self.headers = CaseInsensitiveDict()
        self.field_errors = {}

    @classmethod
    def from_address(cls, address: str, port: int=DEFAULT_CONTROL_PORT) -> YeelightDevice:
        """Creates a minimal record for a device whose address is already known. All
           fields other than address and port are left unset."""
        return cls(address, port)

    @property
    def device_id(self) -> Optional[str]:
        """The stable device identifier (e.g., "0x000000000015243f"), or None if the
           record was created from an address."""
        return self._device_id

    @property
    def addr(self) -> HostAndPort:
        return (self.address, self.port)

    def supports(self, method: str) -> bool:
        return method in self.methods

    def active_color(self) -> Dict[str, Optional[int]]:
        """Returns the color field(s) that are meaningful for the current color mode.

        {"rgb": ...} in DIRECT_COLOR mode, {"color_temperature": ...} in COLOR_TEMPERATURE mode,
        {"hue": ..., "saturation": ...} in FLOW mode, and {} if the mode is unknown.
        """
        if self.color_mode == ColorMode.DIRECT_COLOR:
            return { "rgb": self.rgb }
        if self.color_mode == ColorMode.COLOR_TEMPERATURE:
            return { "color_temperature": self.color_temperature }
        if self.color_mode == ColorMode.FLOW:
            return { "hue": self.hue, "saturation": self.saturation }
        return {}

    def to_jsonable(self) -> JsonableDict:
        return {
            "address": self.address,
            "port": self.port,
            "id": self.device_id,
            "model": self.model,
            "firmware_version": self.firmware_version,
            "methods": sorted(self.methods),
            "power": self.power,
            "brightness": self.brightness,
            "color_mode": None if self.color_mode is None else self.color_mode.name,
            "color_temperature": self.color_temperature,
            "rgb": self.rgb,
            "hue": self.hue,
            "saturation": self.saturation,
            "name": self.name,
            "refresh_interval_ms": self.refresh_interval_ms,
        }

    def _sort_key(self) -> str:
        return '' if self._device_id is None else self._device_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, YeelightDevice):
            return NotImplemented
        if self._device_id is None or other._device_id is None:
            return self is other
        return self._device_id == other._device_id

    def __hash__(self) -> int:
        if self._device_id is None:
            return object.__hash__(self)
        return hash(self._device_id)

    def __lt__(self, other: YeelightDevice) -> bool:
        if not isinstance(other, YeelightDevice):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __str__(self) -> str:
        return (
            f"YeelightDevice(id={self.device_id!r}, address={self.address!r}, port={self.port}, "
            f"model={self.model!r}, firmware_version={self.firmware_version}, methods={sorted(self.methods)}, "
            f"power={self.power}, brightness={self.brightness}, color_mode={self.color_mode}, "
            f"color_temperature={self.color_temperature}, rgb={self.rgb}, hue={self.hue}, "
            f"saturation={self.saturation}, name={self.name!r}, refresh_interval_ms={self.refresh_interval_ms})"
          )

    def __repr__(self) -> str:
        return str(self)
