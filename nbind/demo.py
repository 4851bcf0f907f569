# Demo bindings
#
# A native Point class registered in builtins, plus two functions in __main__:
# `nonempty` takes a nullable reference, `testf` matches its argument against
# several native types. `python -m nbind` runs DEMO_SOURCE against them.

from .imports import *
from .binder import Binder
from .marshal import Ref, firstMatch
import math

log = logging.getLogger(__name__)


class Point(ctypes.Structure):
    """A point in the plane."""
    _fields_ = [('x', F64), ('y', F64)]

    # Slots reclaimed so far, see __del_native__
    destroyed = 0

    def __init__(self, x=0.0, y=0.0):
        super().__init__(x, y)

    def __del_native__(self):
        type(self).destroyed += 1

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def repr(self) -> str:
        return f"Point({self.x:g}, {self.y:g})"

    def format(self, s: str, sep: str = ' ') -> str:
        return s + sep + self.repr()

    def _same(self, other):
        log.debug("this=%s, other=%s, same=%s", hex(ctypes.addressof(self)),
                  hex(ctypes.addressof(other)), self is other)

    def add(self, other: 'Point') -> 'Point':
        self._same(other)
        return Point(self.x + other.x, self.y + other.y)

    def iadd(self, other: 'Point') -> 'Point':
        self._same(other)
        self.x += other.x
        self.y += other.y
        return self


def registerPoint(vm, module=None):
    ncls = vm.registry.registerClass(module or vm.builtins, 'Point', Point)

    def printPoint(self, s: str, sep: str = ' '):
        vm.out.write(self.format(s, sep) + '\n')

    (Binder(vm, ncls)
        .bind("half", 0.5)
        .bindConstructor(Point, [F64, F64], "__new__ (cls, x=0, y=0)")
        .bind("x", Point.x)
        .bind("y", Point.y)
        .bind("length(self)", Point.length)
        .bind("__abs__(self)", Point.length)
        .bind("__repr__(self)", Point.repr)
        .bind("__add__(self, other)", Point.add)
        .bind("__iadd__(self, other)", Point.iadd)
        .bind("append(self, other)", Point.iadd)
        .bind("format(self, s, sep=' ') -> str", Point.format)
        .bind("print(self, s, sep=' ')", printPoint)
        .finalize())
    return ncls


def nonempty(p: Ref(Point)) -> bool:
    if p is None: log.info("passed nullptr")
    else: log.info("passed %s", p.repr())
    return p is not None and p.length() > 0

def fTestf(vm, args):
    ty, v = firstMatch(vm, args[0], [int, str, Point])
    if ty is int: return f"Int: {v}"
    if ty is str: return f"String: {v}"
    if ty is Point: return v.repr()
    return "Something else"


def registerDemo(vm):
    """Register Point in builtins and the demo functions in __main__."""
    registerPoint(vm)
    (Binder(vm, vm.main)
        .bind("nonempty(p=None)", nonempty)
        .bindf("testf(o=None)", fTestf))


DEMO_SOURCE = '''\
a = Point(1, 2)
b = Point(2, 3)
print(a, '+', b, '=', a + b)
a += b
print('a is now', a, 'with length', abs(a))
p = Point(1, 1)
p.append(p)
p.print('appended to itself:')
for o in ['text', 42, p, None]:
    print(testf(o))
print(nonempty(p), nonempty(Point()), nonempty())
try:
    p.x = 'one'
except ArgumentTypeError as e:
    print('error:', e)
print('done')
'''
