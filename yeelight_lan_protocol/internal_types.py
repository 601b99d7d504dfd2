# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Type hints used internally by this package.

Modules in this package import everything from here with
"from .internal_types import *".
"""

from typing import (
    Dict, List, Optional, Set, Tuple, Union, Any, Callable, Awaitable,
    Iterable, Iterator, Mapping, MutableMapping, Sequence,
    AsyncIterator, AsyncIterable, AsyncContextManager,
    TypeVar, Type, cast,
  )

from types import TracebackType

from typing_extensions import Self, SupportsIndex

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A type hint for a value that can be serialized to JSON"""

JsonableDict = Dict[str, Jsonable]
"""A type hint for a JSON object"""

HostAndPort = Tuple[str, int]
"""An (ip_address, port) tuple as used by the socket module"""

__all__ = [
    'Dict', 'List', 'Optional', 'Set', 'Tuple', 'Union', 'Any', 'Callable', 'Awaitable',
    'Iterable', 'Iterator', 'Mapping', 'MutableMapping', 'Sequence',
    'AsyncIterator', 'AsyncIterable', 'AsyncContextManager',
    'TypeVar', 'Type', 'cast',
    'TracebackType',
    'Self', 'SupportsIndex',
    'Jsonable', 'JsonableDict', 'HostAndPort',
]
