#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
ControlChannel -- a persistent TCP control connection to one device.

Each command is written as a single line of compact JSON terminated by CRLF:

    {"id":0,"method":"set_power","params":["on","smooth",500]}

The id is a per-channel sequence number that starts at 0 and is incremented once
per command. Devices may write result lines back on the connection; they are not
read.

Command parameters are a closed set of variants (StringParam, IntParam, BoolParam),
each with its own encoding. Plain str, int and bool values are converted
automatically; any other type is rejected before anything is written.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod

from .internal_types import *
from .pkg_logging import logger
from .constants import DEFAULT_CONTROL_PORT, COMMAND_TERMINATOR
from .exceptions import (
    ControlChannelError,
    CommandSendError,
    ChannelClosedError,
    UnsupportedParamError,
  )

class CommandParam(ABC):
    """A single typed command parameter."""

    @abstractmethod
    def encode(self) -> str:
        """Returns the JSON text for this parameter."""
        raise NotImplementedError()

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.encode() == cast(CommandParam, other).encode()

    def __hash__(self) -> int:
        return hash((type(self), self.encode()))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.encode()})"

class StringParam(CommandParam):
    value: str

    def __init__(self, value: str):
        if not isinstance(value, str):
            raise UnsupportedParamError(f"StringParam requires a str, got {type(value).__name__}")
        self.value = value

    def encode(self) -> str:
        return json.dumps(self.value)

class IntParam(CommandParam):
    value: int

    def __init__(self, value: int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise UnsupportedParamError(f"IntParam requires an int, got {type(value).__name__}")
        self.value = value

    def encode(self) -> str:
        return str(self.value)

class BoolParam(CommandParam):
    value: bool

    def __init__(self, value: bool):
        if not isinstance(value, bool):
            raise UnsupportedParamError(f"BoolParam requires a bool, got {type(value).__name__}")
        self.value = value

    def encode(self) -> str:
        return "true" if self.value else "false"

ParamValue = Union[CommandParam, str, int, bool]

def to_command_param(value: ParamValue) -> CommandParam:
    """Converts a plain value to its CommandParam variant.

    Raises UnsupportedParamError for anything other than a CommandParam, str, int or bool.
    """
    if isinstance(value, CommandParam):
        return value
    if isinstance(value, str):
        return StringParam(value)
    # bool is a subclass of int, so it must be checked first
    if isinstance(value, bool):
        return BoolParam(value)
    if isinstance(value, int):
        return IntParam(value)
    raise UnsupportedParamError(f"Unsupported command parameter type {type(value).__name__}: {value!r}")

def encode_command(command_id: int, method: str, params: Iterable[ParamValue]=()) -> bytes:
    """Encodes one command line, including the CRLF terminator."""
    encoded_params = ",".join(to_command_param(p).encode() for p in params)
    line = f'{{"id":{command_id},"method":{json.dumps(method)},"params":[{encoded_params}]}}'
    return line.encode('utf-8') + COMMAND_TERMINATOR


class ControlChannel(AsyncContextManager['ControlChannel']):
    host: str
    port: int
    connect_timeout: Optional[float] = None

    reader: Optional[asyncio.StreamReader] = None
    """The inbound stream. Kept open but not read; device results are not consumed."""

    writer: Optional[asyncio.StreamWriter] = None

    next_id: int = 0
    """The sequence number that will be used by the next command."""

    is_broken: bool = False
    """True once a write has failed. A broken channel must be replaced by a new one."""

    is_closed: bool = False

    def __init__(self, host: str, port: int=DEFAULT_CONTROL_PORT, connect_timeout: Optional[float]=None):
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout

    @classmethod
    async def open(
            cls,
            host: str,
            port: int=DEFAULT_CONTROL_PORT,
            connect_timeout: Optional[float]=None
          ) -> ControlChannel:
        """Connects to a device's control port. Raises ControlChannelError on failure."""
        self = cls(host, port, connect_timeout=connect_timeout)
        await self.connect()
        return self

    async def connect(self) -> None:
        assert self.reader is None and self.writer is None
        logger.debug(f"Connecting to {self.host}:{self.port}")
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                self.connect_timeout
              )
        except (asyncio.TimeoutError, OSError, OverflowError, ValueError) as e:
            # OverflowError: port outside 0-65535
            raise ControlChannelError(f"Failed to connect to {self.host}:{self.port}: {e!r}") from e
        logger.info(f"{self} connected")

    async def send(self, method: str, params: Iterable[ParamValue]=()) -> int:
        """Writes one command and waits until it has been flushed to the connection.

        Returns the sequence number that was used. The sequence number is consumed even
        if the write fails, in which case CommandSendError is raised and the channel is
        marked broken.
        """
        if self.is_closed or self.is_broken or self.writer is None:
            raise ChannelClosedError(f"{self} is {'broken' if self.is_broken else 'closed'}")
        param_list = [ to_command_param(p) for p in params ]
        command_id = self.next_id
        self.next_id += 1
        data = encode_command(command_id, method, param_list)
        logger.debug(f"{self}: writing {data!r}")
        try:
            self.writer.write(data)
            await self.writer.drain()
        except (OSError, RuntimeError) as e:
            self.is_broken = True
            raise CommandSendError(f"{self}: failed to send {method} (id={command_id}): {e!r}") from e
        return command_id

    async def close(self) -> None:
        if self.is_closed:
            return
        self.is_closed = True
        try:
            if self.writer is not None:
                self.writer.close()
                await self.writer.wait_closed()
        except Exception as e:
            logger.warning(f"{self}: error while closing connection: {e!r}")
        self.writer = None
        self.reader = None
        logger.debug(f"{self} closed")

    async def __aenter__(self) -> ControlChannel:
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
        return f"ControlChannel(host={self.host}, port={self.port})"

    def __repr__(self) -> str:
        return str(self)
