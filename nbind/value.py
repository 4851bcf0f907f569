# Dynamic values
#
# Every value living inside a VM is a plain python object. What the
# interpreter cares about is its dynamic type, which we tag with DynTy.
#
# Native objects are the exception: the script never sees the ctypes object
# itself, only the NativeObj heap slot that owns its memory. The slot knows the
# registry id of its class, which is what the marshaller matches on.

from .imports import *


class DynTy(enum.Enum):
    NONE = enum.auto()
    BOOL = enum.auto()
    INT = enum.auto()
    FLOAT = enum.auto()
    STR = enum.auto()
    BYTES = enum.auto()
    LIST = enum.auto()
    TUPLE = enum.auto()
    DICT = enum.auto()
    NATIVE = enum.auto()
    CALLABLE = enum.auto()
    OBJECT = enum.auto()


class NativeObj(object):
    """A managed heap slot wrapping one native object.

    Script code sees instances of per-class subclasses of this type (see
    TypeRegistry.registerClass). The slot owns `_nbMem`, `_nbObj` is the live
    ctypes view into that memory and `_nbClsId` the registry id of its class.
    Slots are only created by Heap.alloc.
    """
    __slots__ = ('_nbMem', '_nbObj', '_nbClsId', '__weakref__')

    # Set on each registered subclass.
    _nbClass = None

    def __new__(cls, *args, **kwargs):
        ncls = cls._nbClass
        ctor = ncls.members.get('__new__') if ncls else None
        if ctor is None:
            raise TypeError(f"cannot create '{cls.__name__}' instances")
        from .dispatch import callBinding
        return callBinding(ncls.vm, ctor, (cls,) + args, kwargs)

    def __repr__(self):
        return f"<{type(self).__name__} object at {hex(ctypes.addressof(self._nbObj))}>"


# Ordered: bool before int since bool is an int.
_TAGS = [
    (type(None), DynTy.NONE),
    (bool, DynTy.BOOL),
    (int, DynTy.INT),
    (float, DynTy.FLOAT),
    (str, DynTy.STR),
    ((bytes, bytearray), DynTy.BYTES),
    (list, DynTy.LIST),
    (tuple, DynTy.TUPLE),
    (dict, DynTy.DICT),
    (NativeObj, DynTy.NATIVE),
]

def dynTy(value: Any) -> DynTy:
    """Return the dynamic type tag of a value."""
    for pyTy, tag in _TAGS:
        if isinstance(value, pyTy): return tag
    if callable(value): return DynTy.CALLABLE
    return DynTy.OBJECT

def isNative(value: Any, ncls: 'NativeClass' = None) -> bool:
    """Whether value is a native object (of class ncls, if given).

    Matches on the descriptor, ids are only unique within one VM.
    """
    if not isinstance(value, NativeObj): return False
    return ncls is None or type(value)._nbClass is ncls


def testDynTy():
    assert DynTy.NONE is dynTy(None)
    assert DynTy.BOOL is dynTy(True)
    assert DynTy.INT is dynTy(3)
    assert DynTy.FLOAT is dynTy(3.5)
    assert DynTy.STR is dynTy("hi")
    assert DynTy.BYTES is dynTy(bytearray(b'hi'))
    assert DynTy.TUPLE is dynTy((1,))
    assert DynTy.CALLABLE is dynTy(len)
    assert DynTy.OBJECT is dynTy(object())


def testNativeObjNeedsConstructor():
    class Bare(NativeObj): __slots__ = ()
    try:
        Bare()
        assert False
    except TypeError as e:
        assert "cannot create 'Bare'" in str(e)
