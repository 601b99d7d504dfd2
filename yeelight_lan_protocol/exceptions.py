#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from typing import Optional

class YeelightError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class DiscoveryError(YeelightError):
  """A discovery socket could not be created, bound, or used to send the probe."""
  pass

class ResponseParseError(YeelightError):
  """A discovery response could not be turned into a device record."""
  field: Optional[str]

  def __init__(self, msg: str, field: Optional[str]=None):
    super().__init__(msg)
    self.field = field

class ControlChannelError(YeelightError):
  """A control channel could not be opened or used."""
  pass

class CommandSendError(ControlChannelError):
  """Writing a command failed. The channel is broken and must be reopened."""
  pass

class ChannelClosedError(ControlChannelError):
  """A command was sent on a channel that is closed or broken."""
  pass

class UnsupportedParamError(YeelightError, TypeError):
  """A command parameter is not one of the supported parameter types."""
  pass
