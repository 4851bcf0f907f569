# Console I/O for scripts
#
# End of input is never an exception: platformGetline reports it through its
# eof flag and the `input` builtin then returns ''.

from .imports import *
import io

log = logging.getLogger(__name__)

INPUT_SIG = "input(prompt=None) -> str"


def platformGetline(stream=None) -> Tuple[str, bool]:
    """Read one line without its line ending. Returns (line, eof).

    eof is True once the stream is exhausted. A final line without a line
    ending is still returned with eof False, the next read reports eof.
    """
    line = (stream or sys.stdin).readline()
    if isinstance(line, bytes): line = line.decode('utf-8', errors='replace')
    if line == '': return '', True
    if line.endswith('\n'): line = line[:-1]
    if line.endswith('\r'): line = line[:-1]
    return line, False


def fInput(vm, args) -> str:
    """input(prompt=None) -> str: write the prompt, read one line."""
    prompt = args[0]
    if prompt is not None:
        vm.out.write(str(prompt))
        vm.out.flush()
    line, eof = platformGetline(vm.inp)
    if eof: log.debug("input: end of input")
    return line


def installInput(vm):
    """Replace the `input` builtin of vm with fInput."""
    vm.pushFunction(INPUT_SIG, fInput)
    vm.push(vm.builtins)
    vm.setattr('input')


def testPlatformGetline():
    s = io.StringIO("one\r\ntwo\nlast")
    assert ("one", False) == platformGetline(s)
    assert ("two", False) == platformGetline(s)
    assert ("last", False) == platformGetline(s)
    assert ("", True) == platformGetline(s)
    assert ("", True) == platformGetline(s)
