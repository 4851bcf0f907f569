from .imports import *
from .value import NativeObj
from types import MappingProxyType, ModuleType

log = logging.getLogger(__name__)

class RegistrationError(NbindError, ValueError): pass


class Kind(enum.Enum):
    FIELD = 'field'
    METHOD = 'method'
    OPERATOR = 'operator'
    CONSTRUCTOR = 'constructor'
    PROPERTY = 'property'
    CONSTANT = 'constant'
    FUNCTION = 'function'


@dataclass
class MemberBinding:
    kind: Kind
    name: str
    fn: Any                 # native callable, ctypes field or constant value
    sig: 'Signature' = None
    tys: List[Any] = None   # marshalling target per parameter
    raw: bool = False       # bindf: fn(vm, args) does its own marshalling
    setter: Any = None      # field/property write side


def modname(mod: str, name: str) -> str:
    return mod + '.' + name if mod else name


class NativeClass(object):
    """The descriptor of one registered native class.

    pyTy is the dynamic type scripts see. Bindings are attached to it as they
    are added; finalize() freezes the member table.
    """
    def __init__(self, vm, clsId: int, module: ModuleType, name: str, ty: type):
        self.vm = vm
        self.clsId = clsId
        self.module = module
        self.name = name
        self.ty = ty
        self.members = OrderedDict()
        self.finalized = False
        self.pyTy = type(name, (NativeObj,), {
            '__slots__': (),
            '__module__': module.__name__,
            '__qualname__': name,
            '__doc__': ty.__doc__,
            '_nbClass': self,
        })

    @property
    def fullName(self): return modname(self.module.__name__, self.name)

    def addMember(self, binding: MemberBinding, attr: Any):
        if self.finalized:
            raise RegistrationError(f"{self.fullName} is finalized, cannot bind {binding.name!r}")
        if binding.name in self.members:
            raise RegistrationError(f"{self.fullName}.{binding.name} is already bound")
        self.members[binding.name] = binding
        # NativeObj.__new__ looks the constructor up in members.
        if binding.kind is not Kind.CONSTRUCTOR: setattr(self.pyTy, binding.name, attr)

    def finalize(self) -> 'NativeClass':
        if not self.finalized:
            self.members = MappingProxyType(self.members)
            self.finalized = True
            log.debug("finalized %s with %s members", self.fullName, len(self.members))
        return self

    def __repr__(self):
        return f"NativeClass({self.fullName}, id={self.clsId})"


class TypeRegistry(object):
    """The table of native classes registered with one VM.

    Lives and dies with its VM. Ids are handed out once and never reused.
    """
    def __init__(self, vm):
        self.vm = vm
        self.classes = OrderedDict()  # fullName -> NativeClass
        self._byId = {}
        self._byTy = {}
        self._nextId = 1

    def registerClass(self, module: ModuleType, name: str, ty: type) -> NativeClass:
        if not (inspect.isclass(ty) and issubclass(ty, (ctypes.Structure, ctypes.Union))):
            raise RegistrationError(f"{name}: {ty!r} is not a ctypes Structure or Union")
        full = modname(module.__name__, name)
        if full in self.classes:
            raise RegistrationError(f"Class {full} already exists")
        if ty in self._byTy:
            raise RegistrationError(f"{ty.__name__} is already registered as {self._byTy[ty].fullName}")
        ncls = NativeClass(self.vm, self._nextId, module, name, ty)
        self._nextId += 1
        self.classes[full] = ncls
        self._byId[ncls.clsId] = ncls
        self._byTy[ty] = ncls
        setattr(module, name, ncls.pyTy)
        log.debug("registered %s id=%s", full, ncls.clsId)
        return ncls

    def lookup(self, name: str, module: ModuleType = None) -> NativeClass:
        """Find a class by name, or by module and name. Returns None if absent."""
        if module is not None: return self.classes.get(modname(module.__name__, name))
        if name in self.classes: return self.classes[name]
        for ncls in self.classes.values():
            if ncls.name == name: return ncls
        return None

    def byId(self, clsId: int) -> NativeClass: return self._byId.get(clsId)

    def byTy(self, ty: type) -> NativeClass: return self._byTy.get(ty)

    def finalizeAll(self):
        for ncls in self.classes.values(): ncls.finalize()

    def clear(self):
        """Drop every descriptor. Only the VM calls this, when it is destroyed."""
        self.classes.clear()
        self._byId.clear()
        self._byTy.clear()

    def __len__(self): return len(self.classes)

    def __iter__(self): return iter(self.classes.values())


class _Sample(ctypes.Structure):
    _fields_ = [('a', I32)]

def testRegistry():
    module = ModuleType('m')
    reg = TypeRegistry(vm=None)
    a = reg.registerClass(module, 'Sample', _Sample)
    assert a is reg.lookup('Sample') is reg.lookup('m.Sample') is reg.lookup('Sample', module)
    assert a is reg.byId(a.clsId) is reg.byTy(_Sample)
    assert module.Sample is a.pyTy
    assert issubclass(a.pyTy, NativeObj)
    assert reg.lookup('Nope') is None
    try:
        reg.registerClass(module, 'Sample', _Sample)
        assert False
    except RegistrationError: pass
