# Argument marshalling
#
# castArg tries to convert one dynamic value into one native target type. It
# never raises for a value that does not fit, it returns NOMATCH instead so a
# caller can try several candidate types in order:
#
#   ty, v = firstMatch(vm, value, [int, str, Point])
#
# The policy, in order:
# 1. native classes: the slot's registry id must equal the target's
# 2. numbers: bool, int and float convert between each other, ctypes targets
#    wrap/round the way ctypes does
# 3. everything else: the dynamic type must match (str, bytes, list, ...)

from .imports import *
from .value import DynTy, dynTy, isNative
import typing

class _NoMatch(object):
    def __repr__(self): return 'NOMATCH'
    def __bool__(self): return False

NOMATCH = _NoMatch()


class Ref(object):
    """A native class passed by reference.

    A parameter typed `Point` receives a snapshot copy of the argument, one
    typed `Ref(Point)` receives the live object (or None, unless nullable is
    False as it is for method receivers).
    """
    def __init__(self, ty, nullable=True):
        self.ty = ty
        self.nullable = nullable

    def __eq__(self, other):
        return (isinstance(other, Ref) and other.ty is self.ty
                and other.nullable == self.nullable)

    def __hash__(self): return hash((Ref, self.ty, self.nullable))

    def __repr__(self): return f"Ref({tyName(self.ty)})"


# Types that accept anything.
ANY_TYS = {None, Any, object, inspect.Parameter.empty}

def isNativeClass(ty) -> bool:
    return inspect.isclass(ty) and issubclass(ty, (ctypes.Structure, ctypes.Union))

def isNumericPrimitive(ty) -> bool:
    return (inspect.isclass(ty) and issubclass(ty, Primitive)
            and getattr(ty, '_type_', None) in NUMERIC_CODES)

def isNumericTy(ty) -> bool:
    return ty in (bool, int, float) or isNumericPrimitive(ty)

def tyName(ty) -> str:
    if ty in ANY_TYS: return 'any'
    if isinstance(ty, Ref): return repr(ty)
    return getattr(ty, '__name__', str(ty))


def castArg(vm, value: Any, ty: Any) -> Any:
    """Cast a dynamic value to ty, or return NOMATCH."""
    if ty in ANY_TYS: return value
    if isinstance(ty, Ref): return _castRef(vm, value, ty)
    ty = typing.get_origin(ty) or ty  # List[int] is a list
    if isNativeClass(ty): return _castNative(vm, value, ty)
    if isNumericTy(ty): return _castNumber(value, ty)
    return _castTag(value, ty)

def firstMatch(vm, value: Any, tys: Iterable[Any]) -> Tuple[Any, Any]:
    """Try tys in order, returning (ty, castValue) of the first match or
    (None, NOMATCH)."""
    for ty in tys:
        out = castArg(vm, value, ty)
        if out is not NOMATCH: return ty, out
    return None, NOMATCH


def _nativeSlot(vm, value, ty):
    ncls = vm.registry.byTy(ty)
    if ncls is None or not isNative(value, ncls): return None
    return value

def _castNative(vm, value, ty):
    slot = _nativeSlot(vm, value, ty)
    if slot is None: return NOMATCH
    return slot._nbMem.fetchCopy(0, ty)

def _castRef(vm, value, ref):
    if value is None: return None if ref.nullable else NOMATCH
    slot = _nativeSlot(vm, value, ref.ty)
    if slot is None: return NOMATCH
    return slot._nbObj

def _castNumber(value, ty):
    if not isinstance(value, (bool, int, float)): return NOMATCH
    code = getattr(ty, '_type_', None)
    try:
        if ty is bool or code in BOOL_CODES: out = bool(value)
        elif ty is float or code in FLOAT_CODES: out = float(value)
        else: out = int(value)  # truncates like a C cast
    except (OverflowError, ValueError):  # inf or nan into an int
        return NOMATCH
    if code is None: return out
    return ty(out).value

# Targets matched on the dynamic type tag alone.
_TAGGED = {
    type(None): DynTy.NONE,
    str: DynTy.STR,
    bytes: DynTy.BYTES,
    list: DynTy.LIST,
    tuple: DynTy.TUPLE,
    dict: DynTy.DICT,
}

def _castTag(value, ty):
    tag = _TAGGED.get(ty) if inspect.isclass(ty) else None
    if tag is not None:
        if dynTy(value) is not tag: return NOMATCH
        return bytes(value) if ty is bytes else value
    if inspect.isclass(ty) and isinstance(value, ty): return value
    return NOMATCH


def testCastNumbers():
    assert 3 == castArg(None, 3.9, int)
    assert 3.0 == castArg(None, 3, float)
    assert castArg(None, 2, bool) is True
    assert -56 == castArg(None, 200, I8)  # narrowing wraps
    assert 1.5 == castArg(None, 1.5, F64)
    assert NOMATCH is castArg(None, "3", int)
    assert NOMATCH is castArg(None, float('inf'), int)
    assert NOMATCH is castArg(None, None, F32)

def testCastTags():
    assert "hi" == castArg(None, "hi", str)
    assert b"hi" == castArg(None, bytearray(b"hi"), bytes)
    assert NOMATCH is castArg(None, 3, str)
    assert NOMATCH is castArg(None, (1,), list)
    v = object()
    assert v is castArg(None, v, Any)

def testFirstMatchOrder():
    # first match wins, later candidates are never tried
    assert (int, 7) == firstMatch(None, 7, [int, str])
    assert (str, "7") == firstMatch(None, "7", [int, str])
    assert (None, NOMATCH) == firstMatch(None, [7], [int, str])
    assert not NOMATCH

def testCastGenericContainers():
    assert [1, 2] == castArg(None, [1, 2], List[int])
    assert [1, 2] == castArg(None, [1, 2], list[int])
    assert {'a': 1} == castArg(None, {'a': 1}, Dict[str, int])
    assert (1,) == castArg(None, (1,), Tuple[int, ...])
    assert NOMATCH is castArg(None, (1, 2), List[int])
    assert NOMATCH is castArg(None, "12", list[str])
