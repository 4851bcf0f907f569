from .imports import *

class OutOfBoundsError(IndexError): pass


def tyOf(v: Any):
    """Return the ctypes class of a value or class."""
    if isinstance(v, DataTy): return type(v)
    if inspect.isclass(v) and issubclass(v, DataTy): return v
    raise TypeError(f"Not representable in memory: {v}")


class Mem(object):
    """Access to raw byte memory.

    Every native object is stored inside one of these. `fetch` returns a live
    view of the bytes (mutating it mutates the memory), `fetchCopy` a
    detached snapshot.
    """

    def __init__(self, size):
        # ctypes refuses zero sized buffers.
        self.data = ctypes.create_string_buffer(max(size, 1))
        self.size = size

    def __len__(self): return self.size

    def fetch(self, ptr: int, ty: DataTy):
        ty = tyOf(ty)
        self.checkRange(ptr, ctypes.sizeof(ty))
        return ty.from_buffer(self.data, ptr)

    def fetchCopy(self, ptr: int, ty: DataTy):
        ty = tyOf(ty)
        self.checkRange(ptr, ctypes.sizeof(ty))
        return ty.from_buffer_copy(self.data, ptr)

    def store(self, ptr: int, value: DataTy):
        size = ctypes.sizeof(value)
        self.checkRange(ptr, size)
        self.data[ptr:ptr + size] = bytes(value)

    def checkRange(self, ptr: int, size: int = 0):
        if ptr < 0 or (ptr + size) > self.size:
            raise OutOfBoundsError(f"ptr={ptr} size={size} memorySize={self.size}")


def testMem():
    mem = Mem(16)
    try:
        mem.store(14, U32(42))
        assert False
    except OutOfBoundsError: pass

    mem.store(4, U32(42))
    assert 42 == mem.fetch(4, U32).value

    # ctypes ".value" updates memory in place.
    mem.store(8, U32(1))
    a = mem.fetch(8, U32)
    a.value = 32
    assert 32 == mem.fetch(8, U32).value

    # fetchCopy cancels this behavior
    b = mem.fetchCopy(8, U32)
    a.value = 42
    assert 32 == b.value, "b didn't change"
    b.value = 99
    assert 42 == a.value, "a didn't change"


def testMemStruct():
    class Pair(ctypes.Structure):
        _fields_ = [('a', I32), ('b', I32)]

    mem = Mem(sizeof(Pair))
    p = mem.fetch(0, Pair)
    p.a, p.b = 3, 4
    snap = mem.fetchCopy(0, Pair)
    p.a = 7
    assert (3, 4) == (snap.a, snap.b)
    assert 7 == mem.fetch(0, Pair).a
    mem.store(0, Pair(0, 0))
    assert (0, 0) == (p.a, p.b)
