import ctypes
import gc
import io
import unittest

from nbind.binder import Binder
from nbind.demo import Point, registerDemo
from nbind.dispatch import ArgumentTypeError
from nbind.imports import F64, I32
from nbind.registry import Kind, RegistrationError
from nbind.vm import VmDestroyedError, createVm


class Pair(ctypes.Structure):
    _fields_ = [('a', I32), ('b', I32)]

    def sum(self) -> int: return self.a + self.b

class Other(ctypes.Structure):
    _fields_ = [('v', I32)]

class Wide(ctypes.Structure):
    _fields_ = [('a', F64), ('b', F64)]

class Nested(ctypes.Structure):
    _fields_ = [('pair', Pair), ('n', I32)]


def newVm(test):
    vm = createVm(stdout=io.StringIO())
    test.addCleanup(vm.destroy)
    return vm


class TestRegistry(unittest.TestCase):
    def testDuplicateName(self):
        vm = newVm(self)
        vm.registry.registerClass(vm.builtins, 'Pair', Pair)
        with self.assertRaises(RegistrationError):
            vm.registry.registerClass(vm.builtins, 'Pair', Other)

    def testDistinctNames(self):
        vm = newVm(self)
        a = vm.registry.registerClass(vm.builtins, 'Pair', Pair)
        b = vm.registry.registerClass(vm.builtins, 'Other', Other)
        assert a.clsId != b.clsId
        assert a is vm.registry.lookup('Pair')
        assert b is vm.registry.byTy(Other)
        assert 2 == len(vm.registry)

    def testSameNameOtherModule(self):
        vm = newVm(self)
        geometry = vm.newModule('geometry')
        a = vm.registry.registerClass(vm.builtins, 'Pair', Pair)
        b = vm.registry.registerClass(geometry, 'Pair', Other)
        assert a is vm.registry.lookup('Pair', vm.builtins)
        assert b is vm.registry.lookup('geometry.Pair')

    def testTypeRegisteredOnce(self):
        vm = newVm(self)
        vm.registry.registerClass(vm.builtins, 'Pair', Pair)
        with self.assertRaises(RegistrationError):
            vm.registry.registerClass(vm.builtins, 'Pair2', Pair)

    def testNotNative(self):
        vm = newVm(self)
        with self.assertRaises(RegistrationError):
            vm.registry.registerClass(vm.builtins, 'Int', I32)

    def testRegistryPerVm(self):
        vm1, vm2 = newVm(self), newVm(self)
        a = vm1.registry.registerClass(vm1.builtins, 'Pair', Pair)
        b = vm2.registry.registerClass(vm2.builtins, 'Pair', Pair)
        assert a.pyTy is not b.pyTy
        assert vm1.eval("Pair") is a.pyTy
        assert vm2.eval("Pair") is b.pyTy

    def testObjectFromOtherVm(self):
        vm1, vm2 = newVm(self), newVm(self)
        wide = vm1.registry.registerClass(vm1.builtins, 'Wide', Wide)
        other = vm2.registry.registerClass(vm2.builtins, 'Other', Other)
        # both classes get the first id of their vm
        assert wide.clsId == other.clsId
        Binder(vm1, wide).bindConstructor(Wide, [F64, F64], "__new__(cls, a=0, b=0)")
        def getv(o: Other): return o.v
        Binder(vm2, vm2.main).bind("getv(o)", getv)
        vm2.main.w = vm1.eval("Wide(1.5, 2.5)")
        with self.assertRaises(ArgumentTypeError):
            vm2.eval("getv(w)")
        assert 0 == len(vm2.stk)


class TestBinder(unittest.TestCase):
    def setUp(self):
        self.vm = newVm(self)
        self.ncls = self.vm.registry.registerClass(self.vm.builtins, 'Pair', Pair)
        self.binder = Binder(self.vm, self.ncls)

    def bindPair(self):
        return (self.binder
            .bindConstructor(Pair, [I32, I32], "__new__(cls, a=0, b=0)")
            .bind("a", Pair.a)
            .bind("b", Pair.b)
            .bind("sum(self) -> int", Pair.sum))

    def testChain(self):
        assert self.binder is self.binder.bind("zero", 0)
        self.bindPair().finalize()
        kinds = {name: b.kind for name, b in self.ncls.members.items()}
        assert Kind.CONSTANT is kinds['zero']
        assert Kind.CONSTRUCTOR is kinds['__new__']
        assert Kind.FIELD is kinds['a']
        assert Kind.METHOD is kinds['sum']
        assert 7 == self.vm.eval("Pair(3, 4).sum()")

    def testArityMismatch(self):
        with self.assertRaises(RegistrationError):
            self.binder.bind("sum(self, extra)", Pair.sum)
        with self.assertRaises(RegistrationError):
            self.binder.bindConstructor(Pair, [I32], "__new__(cls, a, b)")

    def testMalformedSignature(self):
        for sig in ["sum(self", "sum(self, 3)", "(self)", "sum(self, self)",
                    "sum(a=1, b)"]:
            with self.assertRaises(RegistrationError, msg=sig):
                self.binder.bind(sig, Pair.sum)

    def testDuplicateMember(self):
        self.binder.bind("sum(self)", Pair.sum)
        with self.assertRaises(RegistrationError):
            self.binder.bind("sum(self)", Pair.sum)
        with self.assertRaises(RegistrationError):
            self.binder.bind("sum", 3)

    def testBindAfterFinalize(self):
        self.bindPair().finalize()
        with self.assertRaises(RegistrationError):
            self.binder.bind("zero", 0)

    def testOperatorArity(self):
        with self.assertRaises(RegistrationError):
            self.binder.bind("__add__(self)", Pair.sum)
        self.binder.bind("__int__(self)", Pair.sum)
        assert Kind.OPERATOR is self.ncls.members['__int__'].kind

    def testFieldSetter(self):
        self.bindPair()
        self.vm.exec("p = Pair(1, 2)\np.a = 2.9")
        assert 2 == self.vm.main.p.a
        with self.assertRaises(ArgumentTypeError):
            self.vm.exec("p.b = 'two'")
        assert 2 == self.vm.main.p.b

    def testNestedStructField(self):
        ncls = self.vm.registry.registerClass(self.vm.builtins, 'Nested', Nested)
        binder = Binder(self.vm, ncls).bind("n", Nested.n)
        with self.assertRaises(RegistrationError):
            binder.bind("pair", Nested.pair)
        assert ['n'] == list(ncls.members)

    def testProperty(self):
        self.bindPair().bindProperty("total", Pair.sum).finalize()
        assert 3 == self.vm.eval("Pair(1, 2).total")

    def testStaticFunction(self):
        self.bindPair().bind("make(n: int)", lambda n: Pair(n, n)).finalize()
        assert 10 == self.vm.eval("Pair.make(5).sum()")

    def testModuleFunction(self):
        Binder(self.vm, self.vm.main).bind("double(n: int)", lambda n: n * 2)
        assert 8 == self.vm.eval("double(4)")
        assert 8 == self.vm.eval("double(n=4.5)")
        with self.assertRaises(ArgumentTypeError):
            self.vm.eval("double('x')")
        with self.assertRaises(RegistrationError):
            Binder(self.vm, self.vm.main).bind("double(n)", lambda n: n)

    def testUnregisteredReturn(self):
        Binder(self.vm, self.vm.main).bind("other()", lambda: Other(1))
        with self.assertRaises(TypeError):
            self.vm.eval("other()")


class TestPoint(unittest.TestCase):
    def setUp(self):
        self.out = io.StringIO()
        self.vm = createVm(stdout=self.out)
        self.addCleanup(self.vm.destroy)
        registerDemo(self.vm)

    def ex(self, source):
        self.vm.exec(source)
        return self.vm.main

    def xy(self, p): return (p.x, p.y)

    def testConstruct(self):
        m = self.ex("p = Point(3, 4)\nz = Point()\nk = Point(y=5)")
        assert (3.0, 4.0) == self.xy(m.p)
        assert (0.0, 0.0) == self.xy(m.z)
        assert (0.0, 5.0) == self.xy(m.k)
        assert 5.0 == self.vm.eval("abs(p)") == self.vm.eval("p.length()")
        assert 0.5 == self.vm.eval("Point.half")
        assert self.vm.eval("isinstance(p, Point)")
        assert "Point(3, 4)" == repr(m.p)

    def testConstructBadArgs(self):
        with self.assertRaises(ArgumentTypeError):
            self.ex("Point('a', 2)")
        with self.assertRaises(ArgumentTypeError):
            self.ex("Point(1, 2, 3)")
        with self.assertRaises(ArgumentTypeError):
            self.ex("Point(z=1)")

    def testDefaultParam(self):
        self.ex("p = Point(1.5, 2)\np.print('hi')\np.print('hi', ' ')")
        assert ["hi Point(1.5, 2)"] * 2 == self.out.getvalue().splitlines()
        assert "hi-Point(1.5, 2)" == self.vm.eval("p.format('hi', sep='-')")

    def testSelfAlias(self):
        m = self.ex("p = Point(1, 1)\nr = p.append(p)")
        assert (2.0, 2.0) == self.xy(m.p)
        assert m.r is m.p

    def testAdd(self):
        m = self.ex("a = Point(1, 2)\nb = Point(2, 3)\nc = a + b")
        assert (3.0, 5.0) == self.xy(m.c)
        assert m.c is not m.a and m.c is not m.b
        assert (1.0, 2.0) == self.xy(m.a)
        assert (2.0, 3.0) == self.xy(m.b)
        m = self.ex("orig = a\na += b\nsame = a is orig")
        assert m.same
        assert (3.0, 5.0) == self.xy(m.a)
        assert (2.0, 3.0) == self.xy(m.b)

    def testAddSelf(self):
        m = self.ex("a = Point(1, 2)\nb = a + a\na += a")
        assert (2.0, 4.0) == self.xy(m.b)
        assert (2.0, 4.0) == self.xy(m.a)

    def testDispatchOnArgType(self):
        assert "String: text" == self.vm.eval("testf('text')")
        assert "Int: 42" == self.vm.eval("testf(42)")
        assert "Point(1, 2)" == self.vm.eval("testf(Point(1, 2))")
        assert "Something else" == self.vm.eval("testf([1])")
        assert "Something else" == self.vm.eval("testf()")

    def testNonempty(self):
        assert self.vm.eval("nonempty(Point(1, 0))") is True
        assert self.vm.eval("nonempty(Point())") is False
        assert self.vm.eval("nonempty()") is False
        assert self.vm.eval("nonempty(None)") is False
        with self.assertRaises(ArgumentTypeError):
            self.vm.eval("nonempty(3)")

    def testNonemptyIsByRef(self):
        # script subclasses of a native class are still that class
        m = self.ex("class P(Point): pass\np = P(3, 4)")
        assert isinstance(m.p, m.P)
        assert self.vm.eval("nonempty(p)")

    def testErrorCatchableInScript(self):
        m = self.ex(
            "try:\n"
            "    p = Point(1, 1)\n"
            "    p.append('nope')\n"
            "except ArgumentTypeError as e:\n"
            "    caught = str(e)\n"
            "try:\n"
            "    p.x = None\n"
            "except TypeError as e:\n"
            "    caught2 = str(e)\n")
        assert "other" in m.caught
        assert "Point.x" in m.caught2
        assert (1.0, 1.0) == self.xy(m.p)

    def testDestructorOnce(self):
        gc.collect()
        before = Point.destroyed
        live = self.vm.heap.live
        self.ex("p = Point(1, 2)\nq = p")
        assert live + 1 == self.vm.heap.live
        self.ex("del p")
        gc.collect()
        assert before == Point.destroyed
        self.ex("del q")
        gc.collect()
        assert before + 1 == Point.destroyed
        gc.collect()
        assert before + 1 == Point.destroyed
        assert live == self.vm.heap.live

    def testTemporariesReclaimed(self):
        gc.collect()
        before = Point.destroyed
        self.ex("x = (Point(1, 2) + Point(3, 4)).x")
        gc.collect()
        assert 4.0 == self.vm.main.x
        assert before + 3 == Point.destroyed

    def testDestroyReclaims(self):
        gc.collect()
        before = Point.destroyed
        self.ex("p = Point()\nps = [Point(i, i) for i in range(3)]")
        testf = self.vm.main.testf
        self.vm.destroy()
        gc.collect()
        assert before + 4 == Point.destroyed
        assert 0 == self.vm.heap.live
        with self.assertRaises(VmDestroyedError):
            testf(1)

    def testReentrant(self):
        def nested(vm, args):
            vm.exec(f"inner = testf({args[0]!r})")
            return len(vm.stk)
        Binder(self.vm, self.vm.main).bindf("nested(n)", nested)
        m = self.ex("depth = nested(21)")
        assert "Int: 21" == m.inner
        assert 1 == m.depth
        assert 0 == len(self.vm.stk)


if __name__ == '__main__':
    unittest.main()
