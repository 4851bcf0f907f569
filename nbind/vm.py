# The VM
#
# A thin wrapper around the host interpreter. Scripts are python source run
# with compile/exec, but inside the VM's own `builtins` and `__main__` modules:
# they only see what was registered with this VM (and the python builtins).
#
# The VM owns the TypeRegistry, the managed Heap and the value stack. The
# stack is what bound calls use for their arguments (see dispatch.ArgsView),
# the host can also use it directly:
#
#   vm.push(p); vm.getattr('x')     # stack: [p.x]
#   vm.push(3); vm.push(p); vm.setattr('x')    # p.x = 3

from .imports import *
from .dispatch import ArgumentTypeError, ReturnTypeError, expose
from .heap import Heap
from .registry import Kind, MemberBinding, RegistrationError, TypeRegistry
from .signature import SignatureError, parseSignature
from .stack import Stack, StackOverflowError, StackUnderflowError
from types import ModuleType
import builtins as pybuiltins

log = logging.getLogger(__name__)

STACK_SIZE = 1024
BUILTINS = 'builtins'
MAIN = '__main__'

class VmDestroyedError(NbindError, RuntimeError): pass

# Errors scripts can catch by name.
SCRIPT_ERRORS = [
    NbindError, ArgumentTypeError, ReturnTypeError, RegistrationError,
    StackUnderflowError, StackOverflowError,
]


@dataclass(eq=False)
class Vm(object):
    stk: Stack
    heap: Heap
    stdout: Any = None  # None: sys.stdout at the time of writing
    stdin: Any = None   # None: sys.stdin at the time of reading

    registry: TypeRegistry = None
    builtins: ModuleType = None
    main: ModuleType = None
    modules: Dict[str, ModuleType] = None
    moduleMembers: Dict[str, OrderedDict] = None
    alive: bool = True

    @property
    def out(self): return self.stdout or sys.stdout

    @property
    def inp(self): return self.stdin or sys.stdin

    def checkAlive(self):
        if not self.alive: raise VmDestroyedError("the VM was destroyed")

    def newModule(self, name: str) -> ModuleType:
        self.checkAlive()
        if name in self.modules: raise RegistrationError(f"module {name} already exists")
        m = ModuleType(name)
        m.__dict__['__builtins__'] = self.builtins.__dict__
        self.modules[name] = m
        return m

    def addModuleMember(self, module: ModuleType, b: MemberBinding, attr: Any):
        members = self.moduleMembers.setdefault(module.__name__, OrderedDict())
        if b.name in members:
            raise RegistrationError(f"{module.__name__}.{b.name} is already bound")
        members[b.name] = b
        setattr(module, b.name, attr)

    # Value stack

    def push(self, value: Any):
        self.checkAlive()
        self.stk.push(value)

    def pop(self) -> Any:
        self.checkAlive()
        return self.stk.pop()

    def peek(self, i=0) -> Any:
        self.checkAlive()
        return self.stk[i]

    def getattr(self, name: str):
        """Replace the object on top of the stack with its attribute."""
        value = getattr(self.peek(), name)
        self.stk.pop()
        self.stk.push(value)

    def setattr(self, name: str):
        """Pop the object, then the value below it, and set the attribute."""
        obj, value = self.peek(0), self.peek(1)
        setattr(obj, name, value)
        self.stk.pop(); self.stk.pop()

    def pushFunction(self, sigText: str, fn: Callable):
        """Push a raw function fn(vm, args) bound to sigText."""
        try: sig = parseSignature(sigText)
        except SignatureError as e: raise RegistrationError(str(e)) from e
        self.push(expose(self, MemberBinding(Kind.FUNCTION, sig.name, fn, sig, raw=True)))

    # Execution

    def exec(self, source: str, filename: str = '<string>', module: ModuleType = None):
        """Run script source. Errors the script does not handle propagate."""
        self.checkAlive()
        self.registry.finalizeAll()
        code = compile(source, filename, 'exec')
        exec(code, (module or self.main).__dict__)

    def eval(self, source: str, module: ModuleType = None) -> Any:
        self.checkAlive()
        self.registry.finalizeAll()
        code = compile(source, '<eval>', 'eval')
        return eval(code, (module or self.main).__dict__)

    def destroy(self):
        """Drop every module, the stack and the registry.

        Native objects only referenced by the VM are reclaimed here.
        """
        if not self.alive: return
        self.alive = False
        self.stk.clear()
        for m in reversed(self.modules.values()): m.__dict__.clear()
        self.modules.clear()
        self.moduleMembers.clear()
        self.registry.clear()
        log.debug("destroyed VM, live slots=%s", self.heap.live)

    def __enter__(self): return self

    def __exit__(self, *exc):
        self.destroy()
        return False


def _scriptPrint(vm):
    def print(*values, sep=' ', end='\n', file=None, flush=False):
        pybuiltins.print(*values, sep=sep, end=end, file=file or vm.out, flush=flush)
    return print

def _scriptImport(vm):
    def __import__(name, globals=None, locals=None, fromlist=(), level=0):
        m = vm.modules.get(name)
        if m is None or level: raise ModuleNotFoundError(f"No module named {name!r}")
        return m
    return __import__

def newBuiltins(vm) -> ModuleType:
    b = ModuleType(BUILTINS)
    b.__dict__.update(vars(pybuiltins))
    b.__dict__.update(
        __name__=BUILTINS, __spec__=None, __loader__=None,
        print=_scriptPrint(vm), __import__=_scriptImport(vm))
    for err in SCRIPT_ERRORS: setattr(b, err.__name__, err)
    return b


def createVm(
        stackSize=STACK_SIZE,
        stdout=None,
        stdin=None,
    ) -> Vm:
    """Create a VM."""
    vm = Vm(stk=Stack(maxDepth=stackSize), heap=Heap(), stdout=stdout, stdin=stdin)
    vm.registry = TypeRegistry(vm)
    vm.modules = OrderedDict()
    vm.moduleMembers = {}
    vm.builtins = newBuiltins(vm)
    vm.modules[BUILTINS] = vm.builtins
    vm.main = vm.newModule(MAIN)
    log.debug("created VM, stackSize=%s", stackSize)
    return vm


def testVm():
    vm = createVm()
    vm.exec("x = 1 + 2")
    assert 3 == vm.main.x
    assert 6 == vm.eval("x * 2")
    assert vm.eval("__import__('builtins')") is vm.builtins
    vm.destroy()
    assert not vm.alive
    try: vm.exec("x = 1"); assert False
    except VmDestroyedError: pass

def testVmStack():
    vm = createVm(stackSize=4)
    vm.exec("class O: pass\no = O()")
    vm.push(5); vm.push(vm.main.o); vm.setattr('v')
    assert 5 == vm.main.o.v
    vm.push(vm.main.o); vm.getattr('v')
    assert 5 == vm.pop()
    try: vm.pop(); assert False
    except StackUnderflowError: pass
    try: vm.getattr('v'); assert False
    except StackUnderflowError: pass
