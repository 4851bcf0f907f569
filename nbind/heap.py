from .imports import *
from .mem import Mem
from .value import NativeObj
import weakref

log = logging.getLogger(__name__)

# Optional hook on a native type, called with the native object when its slot
# is reclaimed.
DESTRUCTOR = '__del_native__'


class Heap(object):
    """The managed heap of one VM.

    Each native object gets its own slot: a NativeObj owning a Mem sized for
    the native type. The native destructor runs when the interpreter reclaims
    the slot, exactly once.
    """
    def __init__(self):
        self.allocated = 0
        self.reclaimed = 0

    @property
    def live(self): return self.allocated - self.reclaimed

    def alloc(self, ncls: 'NativeClass', pyTy: type = None) -> NativeObj:
        """Allocate a zeroed (unconstructed) slot for ncls.

        pyTy can be a script subclass of ncls.pyTy.
        """
        ty = ncls.ty
        mem = Mem(sizeof(ty))
        slot = object.__new__(pyTy or ncls.pyTy)
        slot._nbMem = mem
        slot._nbObj = mem.fetch(0, ty)
        slot._nbClsId = ncls.clsId
        # The callback must not reference the slot or it would never be
        # reclaimed.
        weakref.finalize(slot, self._reclaim, ncls.name, slot._nbObj)
        self.allocated += 1
        log.debug("alloc %s slot (%s bytes), live=%s", ncls.name, sizeof(ty), self.live)
        return slot

    def box(self, ncls: 'NativeClass', value: DataTy) -> NativeObj:
        """Allocate a slot holding a copy of value."""
        slot = self.alloc(ncls)
        slot._nbMem.store(0, value)
        return slot

    def _reclaim(self, name, obj):
        self.reclaimed += 1
        log.debug("reclaim %s slot, live=%s", name, self.live)
        dtor = getattr(type(obj), DESTRUCTOR, None)
        if dtor is not None: dtor(obj)
