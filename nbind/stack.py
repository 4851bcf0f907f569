from .imports import *

class StackUnderflowError(NbindError, IndexError): pass
class StackOverflowError(NbindError, IndexError): pass

# Compute the index into a list for a stack representation
def _si(i): return -i - 1

class Stack(list):
    """
    The value stack of a VM. It's really just a list where the indexes are
    reversed. This means:
    - pushing puts the value at s[0], moving the other values up.
    - popping gets the value at s[0] and removes it.
    - printing shows the stack in the correct order.

    Call frames are addressed from the bottom instead (see `at`), since
    nested calls keep pushing above them.
    """
    def __init__(self, data=(), maxDepth=None):
        if data: data = reversed(data)
        super().__init__(data)
        self.maxDepth = maxDepth

    def __repr__(self):
        return f"Stk{list(self)}"

    def __iter__(self):
        return super().__reversed__()

    def __reversed__(self):
        return super().__iter__()

    def _getslice(self, sl):
        assert not sl.step, "not supported"
        # reverse sl and make them negative
        start = None if sl.start is None else _si(sl.start)
        stop = None if sl.stop is None else _si(sl.stop)
        return slice(start, stop, -1)

    def __getitem__(self, index):
        try:
            if isinstance(index, slice):
                return super().__getitem__(self._getslice(index))
            else:
                return super().__getitem__(_si(index))
        except IndexError as e:
            raise StackUnderflowError(str(e))

    def push(self, value):
        if self.maxDepth is not None and len(self) >= self.maxDepth:
            raise StackOverflowError(f"value stack depth {self.maxDepth} exceeded")
        return super().append(value)

    def pop(self):
        if not len(self): raise StackUnderflowError("pop from empty value stack")
        return super().pop()

    def at(self, absIndex: int):
        """Get the value at absIndex counted from the bottom."""
        return super().__getitem__(absIndex)

    def dropTo(self, depth: int):
        """Pop values until only depth remain."""
        super().__delitem__(slice(depth, None))


def testStack():
    s = Stack(range(10))
    assert 0 == s.pop()
    s.push(0)
    assert 0 == s[0]
    assert 2 == s[2]
    assert 9 == s[-1]
    assert [0,1,2] == s[:3]
    assert [3,4] == s[3:5]
    assert 9 == s.at(0)
    s.dropTo(7)
    assert [3,4,5,6,7,8,9] == list(s)

def testStackLimits():
    s = Stack(maxDepth=2)
    try: s.pop(); assert False
    except StackUnderflowError: pass
    s.push(1); s.push(2)
    try: s.push(3); assert False
    except StackOverflowError: pass
    try: s[5]; assert False
    except StackUnderflowError: pass
