#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
YeelightBulb -- a device record paired with its open control channel, plus a few
named convenience commands built on the generic run_method() primitive.
"""

from __future__ import annotations

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    DEFAULT_CONTROL_PORT,
    DEFAULT_TRANSITION_MS,
    EFFECT_SMOOTH,
    METHOD_SET_POWER,
    METHOD_SET_BRIGHT,
  )
from .device import YeelightDevice
from .control_channel import ControlChannel, ParamValue

class YeelightBulb(AsyncContextManager['YeelightBulb']):
    device: YeelightDevice
    channel: ControlChannel

    def __init__(self, device: YeelightDevice, channel: ControlChannel):
        self.device = device
        self.channel = channel

    @classmethod
    async def open(cls, device: YeelightDevice, connect_timeout: Optional[float]=None) -> YeelightBulb:
        """Opens a control channel to a device record's address and port."""
        channel = await ControlChannel.open(device.address, device.port, connect_timeout=connect_timeout)
        return cls(device, channel)

    @classmethod
    async def connect(
            cls,
            address: str,
            port: int=DEFAULT_CONTROL_PORT,
            connect_timeout: Optional[float]=None
          ) -> YeelightBulb:
        """Connects to a bulb at a known address without running discovery. Only the
           address and port of the resulting device record are set."""
        return await cls.open(YeelightDevice.from_address(address, port), connect_timeout=connect_timeout)

    @property
    def address(self) -> str:
        return self.device.address

    @property
    def device_id(self) -> Optional[str]:
        return self.device.device_id

    async def run_method(self, method: str, params: Iterable[ParamValue]=()) -> int:
        """Sends any control method with the given parameters. Returns the command's
           sequence number. No result is read back from the device."""
        return await self.channel.send(method, params)

    async def turn_on(self, duration: int=DEFAULT_TRANSITION_MS) -> None:
        """Turns the bulb on with a smooth transition of `duration` milliseconds."""
        await self.run_method(METHOD_SET_POWER, ["on", EFFECT_SMOOTH, duration])
        self.device.power = True
        logger.info(f"turn_on(): turning on bulb {self.address}")

    async def turn_off(self, duration: int=DEFAULT_TRANSITION_MS) -> None:
        """Turns the bulb off with a smooth transition of `duration` milliseconds."""
        await self.run_method(METHOD_SET_POWER, ["off", EFFECT_SMOOTH, duration])
        self.device.power = False
        logger.info(f"turn_off(): turning off bulb {self.address}")

    async def set_brightness(self, brightness: int) -> None:
        """Sets the brightness (1-100). The value is passed through unchecked."""
        await self.run_method(METHOD_SET_BRIGHT, [brightness, EFFECT_SMOOTH, DEFAULT_TRANSITION_MS])
        self.device.brightness = brightness
        logger.info(f"set_brightness(): setting brightness to {brightness} on bulb {self.address}")

    async def close(self) -> None:
        await self.channel.close()

    async def __aenter__(self) -> YeelightBulb:
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc_val: Optional[BaseException],
            exc_tb: Optional[TracebackType]
          ) -> Optional[bool]:
        await self.close()
        return False

    def __str__(self) -> str:
        return f"YeelightBulb({self.device})"

    def __repr__(self) -> str:
        return str(self)
