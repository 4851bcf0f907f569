# The binder
#
# Binder is how the host attaches native members to a registered class (or to
# a VM module):
#
#   ncls = vm.registry.registerClass(vm.builtins, 'Point', Point)
#   (Binder(vm, ncls)
#     .bindConstructor(Point, [F64, F64], "__new__(cls, x=0, y=0)")
#     .bind("x", Point.x)                           # field
#     .bind("__add__(self, other)", Point.add)      # operator
#     .bind("half", 0.5)                            # constant
#     .bindf("inspect(self, o)", inspect)           # raw dispatch
#     .finalize())
#
# Typed bindings (`bind` with a signature) take their parameter types from the
# callable's annotations, falling back to the hints written in the signature.
# The receiver of a method is always passed by reference, every other native
# class argument by value (see marshal.Ref).

from .imports import *
from .dispatch import expose
from .marshal import Ref
from .registry import Kind, MemberBinding, NativeClass, RegistrationError
from .signature import Param, Signature, SignatureError, parseSignature
from types import ModuleType
import keyword
import typing

log = logging.getLogger(__name__)


class _FieldSample(ctypes.Structure):
    _fields_ = [('a', U8)]

# The (private) descriptor type of ctypes struct fields, i.e. type(Point.x)
CField = type(_FieldSample.a)

# Parameter count (self included) of the operators we know.
OPERATOR_ARITY = {}
for _name in ['add', 'sub', 'mul', 'matmul', 'truediv', 'floordiv', 'mod',
              'pow', 'lshift', 'rshift', 'and', 'or', 'xor']:
    for _prefix in ('', 'r', 'i'):
        OPERATOR_ARITY[f'__{_prefix}{_name}__'] = 2
for _name in ['eq', 'ne', 'lt', 'le', 'gt', 'ge', 'getitem', 'delitem', 'contains']:
    OPERATOR_ARITY[f'__{_name}__'] = 2
for _name in ['neg', 'pos', 'abs', 'invert', 'len', 'bool', 'int', 'float',
              'index', 'repr', 'str', 'hash', 'iter', 'next']:
    OPERATOR_ARITY[f'__{_name}__'] = 1
OPERATOR_ARITY['__setitem__'] = 3

HINTS = {
    'any': Any, 'Any': Any, 'object': object,
    'bool': bool, 'int': int, 'float': float,
    'str': str, 'bytes': bytes, 'list': list, 'tuple': tuple, 'dict': dict,
    'Bool': Bool, 'U8': U8, 'U16': U16, 'U32': U32, 'U64': U64,
    'I8': I8, 'I16': I16, 'I32': I32, 'I64': I64, 'F32': F32, 'F64': F64,
}


def resolveHint(vm, hint: Any) -> Any:
    """Turn a type hint written as text into a type."""
    if not isinstance(hint, str): return hint
    if hint in HINTS: return HINTS[hint]
    ncls = vm.registry.lookup(hint)
    if ncls is not None: return ncls.ty
    raise RegistrationError(f"unknown type {hint!r}")

def typeHints(fn) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(fn)
    except (NameError, TypeError):
        # Annotations the defining module can't resolve stay as text.
        return dict(getattr(fn, '__annotations__', {}))

def nativeParams(fn) -> Tuple[List[inspect.Parameter], inspect.Parameter]:
    """Return the positional parameters and the *args parameter of fn."""
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError) as e:
        raise RegistrationError(f"cannot inspect the arity of {fn!r}: {e}") from e
    positional = [p for p in params if p.kind in (
        inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)]
    star = None
    for p in params:
        if p.kind is inspect.Parameter.VAR_POSITIONAL: star = p
    return positional, star

def paramTys(vm, sig: Signature, fn, receiver: Ref = None) -> List[Any]:
    """Compute the marshalling target of every parameter of sig.

    Fails if the native arity of fn is not the arity of sig.
    """
    positional, star = nativeParams(fn)
    name = getattr(fn, '__qualname__', repr(fn))
    if len(positional) != len(sig.params):
        raise RegistrationError(
            f"{sig} has {len(sig.params)} parameters but {name} takes {len(positional)}")
    if sig.star is not None and star is None:
        raise RegistrationError(f"{sig} takes *{sig.star.name} but {name} does not")
    hints = typeHints(fn)
    tys = [resolveHint(vm, hints.get(np.name, sp.hint))
           for sp, np in zip(sig.params, positional)]
    if receiver is not None: tys[0] = receiver
    if sig.star is not None:
        tys.append(resolveHint(vm, hints.get(star.name, sig.star.hint)))
    return tys

def findField(ty: type, field: CField) -> Tuple[str, Any]:
    """Return (name, ctypesTy) of a field descriptor of ty."""
    for klass in ty.__mro__:
        for entry in klass.__dict__.get('_fields_', ()):
            if getattr(ty, entry[0], None) is field: return entry[0], entry[1]
    raise RegistrationError(f"{field!r} is not a field of {ty.__name__}")

def checkName(name: str):
    if not (isinstance(name, str) and name.isidentifier()) or keyword.iskeyword(name):
        raise RegistrationError(f"invalid member name {name!r}")

def _parse(text: str) -> Signature:
    try:
        return parseSignature(text)
    except SignatureError as e:
        raise RegistrationError(str(e)) from e


class Binder(object):
    """Fluent registration of native members. Every bind returns self."""

    def __init__(self, vm, target: Union[NativeClass, ModuleType]):
        self.vm = vm
        self.ncls, self.module = None, None
        if isinstance(target, NativeClass): self.ncls = target
        elif isinstance(target, ModuleType): self.module = target
        else: raise RegistrationError(f"cannot bind into {target!r}")

    @property
    def owner(self) -> str:
        return self.ncls.name if self.ncls else self.module.__name__

    def _needClass(self, what) -> NativeClass:
        if self.ncls is None:
            raise RegistrationError(f"{what} needs a class, {self.owner} is a module")
        return self.ncls

    def _add(self, b: MemberBinding) -> 'Binder':
        self.vm.checkAlive()
        attr = expose(self.vm, b, self.ncls, self.owner)
        if self.ncls is not None: self.ncls.addMember(b, attr)
        else: self.vm.addModuleMember(self.module, b, attr)
        log.debug("bound %s %s.%s", b.kind.value, self.owner, b.name)
        return self

    def _methodKind(self, sig: Signature) -> Tuple[Kind, Ref]:
        """Return the binding kind of sig and its receiver type (if any)."""
        if sig.name == '__new__':
            raise RegistrationError(f"{sig}: use bindConstructor for __new__")
        if self.ncls is None: return Kind.FUNCTION, None
        isMethod = bool(sig.params) and sig.params[0].name == 'self'
        receiver = Ref(self.ncls.ty, nullable=False) if isMethod else None
        if sig.name in OPERATOR_ARITY:
            arity = OPERATOR_ARITY[sig.name]
            if not isMethod or len(sig.params) != arity or sig.star:
                raise RegistrationError(
                    f"{sig}: operator {sig.name} takes {arity} parameters, self first")
            return Kind.OPERATOR, receiver
        if isMethod: return Kind.METHOD, receiver
        return Kind.FUNCTION, None

    def bindConstructor(self, ty: type, argTys: List[Any], sigText: str) -> 'Binder':
        """Bind `__new__`: allocate a slot and construct ty in place."""
        ncls = self._needClass('bindConstructor')
        if ty is not ncls.ty:
            raise RegistrationError(f"constructor of {ty.__name__} bound on {ncls.fullName}")
        sig = _parse(sigText)
        if sig.name != '__new__' or not sig.params or sig.params[0].name != 'cls':
            raise RegistrationError(f"{sig}: a constructor is __new__(cls, ...)")
        if sig.star is not None or len(sig.params) - 1 != len(argTys):
            raise RegistrationError(
                f"{sig} has {len(sig.params) - 1} parameters after cls"
                f" but {len(argTys)} argument types were given")
        heap = self.vm.heap

        def construct(pyTy, *values):
            slot = heap.alloc(ncls, pyTy)
            ty.__init__(slot._nbObj, *values)
            return slot

        tys = [Any] + [resolveHint(self.vm, t) for t in argTys]
        return self._add(MemberBinding(Kind.CONSTRUCTOR, '__new__', construct, sig, tys))

    def bind(self, name: str, member: Any) -> 'Binder':
        """Bind a field, a typed method/function or a constant.

        - bind("x", Point.x): field getter/setter
        - bind("add(self, other)", Point.add): typed method
        - bind("half", 0.5): constant
        """
        if isinstance(member, CField): return self._bindField(name, member)
        if callable(member): return self._bindTyped(name, member)
        checkName(name)
        return self._add(MemberBinding(Kind.CONSTANT, name, member))

    def _bindField(self, name, field):
        ncls = self._needClass('a field')
        checkName(name)
        fname, fty = findField(ncls.ty, field)
        # Only scalars: a nested struct would be boxed as a copy.
        if not (inspect.isclass(fty) and issubclass(fty, Primitive)):
            raise RegistrationError(
                f"{ncls.fullName}.{name}: field type {fty.__name__} is not a primitive")
        return self._add(MemberBinding(Kind.FIELD, name, (fname, fty)))

    def _bindTyped(self, sigText, fn):
        sig = _parse(sigText)
        kind, receiver = self._methodKind(sig)
        tys = paramTys(self.vm, sig, fn, receiver)
        return self._add(MemberBinding(kind, sig.name, fn, sig, tys))

    def bindf(self, sigText: str, fn: Callable) -> 'Binder':
        """Bind fn(vm, args) as is: it gets the ArgsView and does its own
        marshalling (usually by probing with castArg/firstMatch)."""
        sig = _parse(sigText)
        kind, _ = self._methodKind(sig)
        try:
            inspect.signature(fn).bind(None, None)
        except (TypeError, ValueError) as e:
            raise RegistrationError(f"{sig}: {fn!r} must take (vm, args): {e}") from e
        return self._add(MemberBinding(kind, sig.name, fn, sig, raw=True))

    def bindProperty(self, name: str, getter: Callable, setter: Callable = None) -> 'Binder':
        """Bind a computed property from native getter(self) / setter(self, value)."""
        ncls = self._needClass('a property')
        checkName(name)
        receiver = Ref(ncls.ty, nullable=False)
        getSig = Signature(name, [Param('self')])
        getB = MemberBinding(Kind.METHOD, name, getter, getSig,
                             paramTys(self.vm, getSig, getter, receiver))
        setB = None
        if setter is not None:
            setSig = Signature(name, [Param('self'), Param('value')])
            setB = MemberBinding(Kind.METHOD, name, setter, setSig,
                                 paramTys(self.vm, setSig, setter, receiver))
        return self._add(MemberBinding(Kind.PROPERTY, name, getB, setter=setB))

    def finalize(self) -> Union[NativeClass, ModuleType]:
        """Freeze the class: later binds fail. Modules stay open."""
        if self.ncls is not None: return self.ncls.finalize()
        return self.module


def testFindField():
    assert ('a', U8) == findField(_FieldSample, _FieldSample.a)
    class Other(ctypes.Structure): _fields_ = [('a', U8)]
    try: findField(_FieldSample, Other.a); assert False
    except RegistrationError: pass

def testResolveHint():
    assert int is resolveHint(None, 'int')
    assert F64 is resolveHint(None, 'F64')
    assert Any is resolveHint(None, 'any')
    assert None is resolveHint(None, None)
    assert 2 == OPERATOR_ARITY['__iadd__']
    assert 1 == OPERATOR_ARITY['__repr__']
