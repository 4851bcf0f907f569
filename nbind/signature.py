# Signature strings
#
# Every bound callable is registered with a signature string such as
#
#   __new__ (cls, x=0, y=0)
#   format(self, s, sep=" ") -> str
#   testf(o=None)
#
# The grammar is a small PEG handled by parsimonious. Parameter defaults are
# literals only: numbers, strings, None, True and False.

from .imports import *
from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor
import keyword

GRAMMAR = Grammar(r"""
    sig        = _ name _ "(" _ paramlist? _ ")" _ ret? _
    paramlist  = param (_ "," _ param)* (_ ",")?
    param      = starparam / plainparam
    starparam  = "*" name
    plainparam = name hint? default?
    hint       = _ ":" _ tyname
    default    = _ "=" _ literal
    ret        = "->" _ tyname
    literal    = float / int / none / true / false / string
    float      = ~r"[-+]?(?:\d+\.\d*(?:[eE][-+]?\d+)?|\.\d+(?:[eE][-+]?\d+)?|\d+[eE][-+]?\d+)"
    int        = ~r"[-+]?(?:0[xX][0-9a-fA-F]+|0[bB][01]+|\d+)"
    none       = "None"
    true       = "True"
    false      = "False"
    string     = ~r"'[^'\n]*'" / ~r'"[^"\n]*"'
    name       = ~r"[A-Za-z_][A-Za-z0-9_]*"
    tyname     = ~r"[A-Za-z_][A-Za-z0-9_.]*(?:\[[A-Za-z0-9_., \[\]]*\])?"
    _          = ~r"\s*"
""")


class SignatureError(NbindError, ValueError): pass


class _Missing(object):
    def __repr__(self): return 'MISSING'

# Marks a parameter without a default.
MISSING = _Missing()


@dataclass
class Param:
    name: str
    default: Any = MISSING
    hint: str = None
    star: bool = False

    @property
    def required(self): return self.default is MISSING and not self.star

    def __str__(self):
        if self.star: return '*' + self.name
        out = self.name
        if self.hint: out += ': ' + self.hint
        if self.default is not MISSING: out += '=' + repr(self.default)
        return out


@dataclass
class Signature:
    name: str
    params: List[Param]
    star: Param = None
    ret: str = None

    @property
    def names(self): return [p.name for p in self.params]

    def __len__(self): return len(self.params)

    def __str__(self):
        params = list(self.params)
        if self.star: params.append(self.star)
        out = f"{self.name}({', '.join(map(str, params))})"
        if self.ret: out += ' -> ' + self.ret
        return out


def _opt(visited):
    """Unwrap an optional (`rule?`) result: parsimonious gives a list when it
    matched and the bare node when it did not."""
    if isinstance(visited, list): return visited[0]
    return None

def _many(visited):
    if isinstance(visited, list): return visited
    return []


class _SigVisitor(NodeVisitor):
    grammar = GRAMMAR

    def generic_visit(self, node, visited):
        return visited or node

    def visit_sig(self, node, visited):
        _, name, _, _, _, params, _, _, _, ret, _ = visited
        params = _opt(params) or []
        star = None
        if params and params[-1].star: star = params.pop()
        return Signature(name=name, params=params, star=star, ret=_opt(ret))

    def visit_paramlist(self, node, visited):
        first, rest, _ = visited
        return [first] + [r[3] for r in _many(rest)]

    def visit_param(self, node, visited): return visited[0]

    def visit_starparam(self, node, visited):
        return Param(name=visited[1], star=True)

    def visit_plainparam(self, node, visited):
        name, hint, default = visited
        p = Param(name=name, hint=_opt(hint))
        if isinstance(default, list): p.default = default[0]
        return p

    def visit_hint(self, node, visited): return visited[3]
    def visit_default(self, node, visited): return visited[3]
    def visit_ret(self, node, visited): return visited[2]
    def visit_literal(self, node, visited): return visited[0]

    def visit_float(self, node, visited): return float(node.text)

    def visit_int(self, node, visited):
        text = node.text
        if text.lstrip('+-')[:2].lower() in ('0x', '0b'): return int(text, 0)
        return int(text)

    def visit_none(self, node, visited): return None
    def visit_true(self, node, visited): return True
    def visit_false(self, node, visited): return False
    def visit_string(self, node, visited): return node.text[1:-1]
    def visit_name(self, node, visited): return node.text
    def visit_tyname(self, node, visited): return node.text.strip()


def parseSignature(text: str) -> Signature:
    """Parse a signature string, raising SignatureError if it is malformed."""
    try:
        sig = _SigVisitor().parse(text)
    except (ParseError, VisitationError) as e:
        raise SignatureError(f"malformed signature {text!r}: {e}") from e
    checkSignature(sig, text)
    return sig

def checkSignature(sig: Signature, text: str):
    seen = set()
    allNames = sig.names + ([sig.star.name] if sig.star else [])
    for name in [sig.name] + allNames:
        if keyword.iskeyword(name):
            raise SignatureError(f"{text!r}: {name!r} is a keyword")
    for name in allNames:
        if name in seen:
            raise SignatureError(f"{text!r}: duplicate parameter {name!r}")
        seen.add(name)
    for i, p in enumerate(sig.params):
        if p.star:
            raise SignatureError(f"{text!r}: *{p.name} must be the last parameter")
        if i and p.required and not sig.params[i - 1].required:
            raise SignatureError(
                f"{text!r}: parameter {p.name!r} without a default follows one with a default")


def testParseSimple():
    sig = parseSignature("nonempty(p=None)")
    assert "nonempty" == sig.name
    assert ["p"] == sig.names
    assert sig.params[0].default is None
    assert not sig.params[0].required
    assert sig.star is None and sig.ret is None

def testParseDefaultsAndHints():
    sig = parseSignature('__new__ (cls, x=0, y=-1.5, s: str = " ", h=0x1F) -> Point')
    assert "__new__" == sig.name
    assert ["cls", "x", "y", "s", "h"] == sig.names
    assert [MISSING, 0, -1.5, " ", 31] == [p.default for p in sig.params]
    assert "str" == sig.params[3].hint
    assert "Point" == sig.ret

def testParseStar():
    sig = parseSignature("f(a, b=True, *rest)")
    assert ["a", "b"] == sig.names
    assert "rest" == sig.star.name
    assert "f(a, b=True, *rest)" == str(sig)

def testParseEmpty():
    sig = parseSignature("  __len__ ( ) ")
    assert [] == sig.params

def testParseErrors():
    for bad in ["f(", "f(a=)", "f(a, a)", "f(a=1, b)", "f(*a, b)", "1f()",
                "f(a=[1])", "f(class)"]:
        try:
            parseSignature(bad)
            assert False, bad
        except SignatureError: pass
