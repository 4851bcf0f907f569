# The dispatcher
#
# Every bound member a script can call ends up in callBinding:
#
# - the positional and keyword arguments are matched against the signature,
#   omitted trailing parameters take their declared default
# - the resulting values are pushed on the VM value stack as one call frame and
#   exposed to native code through an ArgsView
# - for typed bindings each argument is marshalled to the native type of its
#   parameter (ArgumentTypeError if it does not fit), raw bindings get the
#   ArgsView as is
# - the result is boxed back into a dynamic value (a no-op for values that
#   already are one)
#
# The frame is popped however the call ends, so native code may re-enter the
# VM (vm.exec from inside a bound function) freely.

from .imports import *
from .marshal import NOMATCH, castArg, tyName
from .registry import Kind, MemberBinding
from .signature import Signature, parseSignature
from .stack import Stack, StackOverflowError
from .value import NativeObj

class ArgumentTypeError(NbindError, TypeError): pass
class ReturnTypeError(NbindError, TypeError): pass


class ArgsView(object):
    """A read-only view of the arguments of one call.

    Indexes are relative to the frame, the values stay on the VM stack.
    """
    __slots__ = ('_stk', 'base', '_len')

    def __init__(self, stk, base: int, length: int):
        self._stk = stk
        self.base = base
        self._len = length

    def __len__(self): return self._len

    def __getitem__(self, index):
        if isinstance(index, slice):
            return tuple(self[i] for i in range(*index.indices(self._len)))
        i = operator.index(index)
        if i < 0: i += self._len
        if not 0 <= i < self._len:
            raise IndexError(f"argument {index} out of range for {self._len} arguments")
        return self._stk.at(self.base + i)

    def __iter__(self):
        for i in range(self._len): yield self._stk.at(self.base + i)

    def __repr__(self):
        return f"ArgsView{list(self)}"


def pushFrame(vm, values: List[Any]) -> ArgsView:
    base = len(vm.stk)
    try:
        for v in values: vm.stk.push(v)
    except StackOverflowError:
        vm.stk.dropTo(base)
        raise
    return ArgsView(vm.stk, base, len(values))

def popFrame(vm, view: ArgsView):
    vm.stk.dropTo(view.base)


def bindArgs(sig: Signature, args: tuple, kwargs: dict) -> List[Any]:
    """Match call arguments to sig, filling in defaults."""
    params = sig.params
    if len(args) > len(params) and sig.star is None:
        raise ArgumentTypeError(
            f"{sig.name}() takes {len(params)} positional arguments but {len(args)} were given")
    out = list(args[:len(params)])
    kwargs = dict(kwargs)
    for name in sig.names[:len(out)]:
        if name in kwargs:
            raise ArgumentTypeError(f"{sig.name}() got multiple values for argument {name!r}")
    for p in params[len(out):]:
        if p.name in kwargs: out.append(kwargs.pop(p.name))
        elif not p.required: out.append(p.default)
        else: raise ArgumentTypeError(f"{sig.name}() missing required argument {p.name!r}")
    if kwargs:
        raise ArgumentTypeError(
            f"{sig.name}() got an unexpected keyword argument {next(iter(kwargs))!r}")
    out.extend(args[len(params):])
    return out


def marshalArgs(vm, b: MemberBinding, view: ArgsView) -> List[Any]:
    out = []
    tys = b.tys
    for i, value in enumerate(view):
        ty = tys[i] if i < len(tys) else tys[-1]
        native = castArg(vm, value, ty)
        if native is NOMATCH:
            p = b.sig.params[i] if i < len(b.sig.params) else b.sig.star
            raise ArgumentTypeError(
                f"{b.sig.name}() argument {p.name!r} must be {tyName(ty)}, "
                f"not {type(value).__name__}")
        out.append(native)
    return out


def box(vm, value: Any, view: Iterable[Any] = ()) -> Any:
    """Convert a native result into a dynamic value.

    A native object that lives inside one of the call's arguments (i.e. the
    method returned self) keeps that argument's slot. Any other native object
    is copied into a fresh slot.
    """
    if isinstance(value, Primitive): return value.value
    if isinstance(value, ctypes._Pointer):
        return box(vm, value.contents, view) if value else None
    if isinstance(value, ctypes.Array): return [box(vm, v) for v in value]
    if isinstance(value, (ctypes.Structure, ctypes.Union)):
        addr = ctypes.addressof(value)
        for arg in view:
            if (isinstance(arg, NativeObj) and type(arg._nbObj) is type(value)
                    and ctypes.addressof(arg._nbObj) == addr):
                return arg
        ncls = vm.registry.byTy(type(value))
        if ncls is None:
            raise ReturnTypeError(f"cannot return unregistered native type {type(value).__name__}")
        return vm.heap.box(ncls, value)
    return value


def callBinding(vm, b: MemberBinding, args: tuple, kwargs: dict) -> Any:
    vm.checkAlive()
    values = bindArgs(b.sig, args, kwargs)
    view = pushFrame(vm, values)
    try:
        if b.raw: result = b.fn(vm, view)
        else: result = b.fn(*marshalArgs(vm, b, view))
        return box(vm, result, view)
    finally:
        popFrame(vm, view)


def _entry(vm, b: MemberBinding, qualname: str):
    def entry(*args, **kwargs):
        return callBinding(vm, b, args, kwargs)
    entry.__name__ = b.name
    entry.__qualname__ = qualname
    entry.__doc__ = str(b.sig)
    return entry

def _fieldProperty(vm, ncls, b: MemberBinding):
    fname, fty = b.fn

    def getter(slot):
        vm.checkAlive()
        return box(vm, getattr(slot._nbObj, fname))

    def setter(slot, value):
        vm.checkAlive()
        native = castArg(vm, value, fty)
        if native is NOMATCH:
            raise ArgumentTypeError(
                f"{ncls.name}.{b.name} must be {tyName(fty)}, not {type(value).__name__}")
        setattr(slot._nbObj, fname, native)

    return property(getter, setter, doc=f"{b.name}: {tyName(fty)}")

def _computedProperty(vm, b: MemberBinding):
    getB, setB = b.fn, b.setter
    fget = lambda slot: callBinding(vm, getB, (slot,), {})
    fset = None
    if setB is not None:
        fset = lambda slot, value: callBinding(vm, setB, (slot, value), {})
    return property(fget, fset)


def expose(vm, b: MemberBinding, ncls=None, owner: str = None) -> Any:
    """Return the dynamic attribute scripts see for a binding."""
    if b.kind is Kind.CONSTANT: return b.fn
    if b.kind is Kind.FIELD: return _fieldProperty(vm, ncls, b)
    if b.kind is Kind.PROPERTY: return _computedProperty(vm, b)
    entry = _entry(vm, b, f"{owner}.{b.name}" if owner else b.name)
    if ncls is not None and b.kind is Kind.FUNCTION: return staticmethod(entry)
    return entry


def testBindArgs():
    sig = parseSignature("f(a, b=2, *rest)")
    assert [1, 2] == bindArgs(sig, (1,), {})
    assert [1, 5] == bindArgs(sig, (1,), {'b': 5})
    assert [1, 2, 3, 4] == bindArgs(sig, (1, 2, 3, 4), {})
    for args, kwargs in [((), {}), ((1,), {'a': 1}), ((1,), {'c': 3})]:
        try: bindArgs(sig, args, kwargs); assert False
        except ArgumentTypeError: pass
    try: bindArgs(parseSignature("g(a)"), (1, 2), {}); assert False
    except ArgumentTypeError as e: assert "takes 1 positional" in str(e)

def testArgsView():
    stk = Stack([9, 8])
    view = ArgsView(stk, 1, 1)
    assert 1 == len(view)
    assert 9 == view[0] == view[-1]
    assert (9,) == view[:]
    try: view[1]; assert False
    except IndexError: pass
