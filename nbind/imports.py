# These are imported by every module
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import List
from typing import Tuple
from typing import Union

from collections import OrderedDict
from dataclasses import dataclass
import ctypes
import enum
import inspect
import logging
import operator
import sys

# ctypes keeps its base classes private. _CData is the base of everything
# that can live in memory, _SimpleCData the base of the primitives.
DataTy = ctypes.c_uint8.__mro__[-2]
Primitive = ctypes.c_uint8.__mro__[1]

from ctypes import sizeof
from ctypes import c_bool as Bool
from ctypes import c_uint8 as U8
from ctypes import c_uint16 as U16
from ctypes import c_uint32 as U32
from ctypes import c_uint64 as U64
from ctypes import c_int8 as I8
from ctypes import c_int16 as I16
from ctypes import c_int32 as I32
from ctypes import c_int64 as I64
from ctypes import c_float as F32
from ctypes import c_double as F64

# ctypes `_type_` codes of the numeric primitives.
INT_CODES = set('bBhHiIlLqQ')
FLOAT_CODES = set('fdg')
BOOL_CODES = set('?')
NUMERIC_CODES = INT_CODES | FLOAT_CODES | BOOL_CODES


class NbindError(Exception):
    """Base of every error raised by nbind."""
