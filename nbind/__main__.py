"""Run a script with the demo bindings registered.

  python -m nbind [file] [-v]

Without a file the built in demo script is run. Exits with 0 on success, 1
if the script raised, 2 if the file does not exist and 3 if it cannot be read.
"""

from .imports import *
from .console import installInput
from .demo import DEMO_SOURCE, registerDemo
from .vm import createVm
import argparse
import os

log = logging.getLogger('nbind')


def parseArgs(argv=None):
    parser = argparse.ArgumentParser(prog='nbind', description=__doc__.splitlines()[0])
    parser.add_argument('file', nargs='?', help='script to run, the demo if omitted')
    parser.add_argument('-v', '--verbose', action='store_true', help='log at DEBUG')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parseArgs(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s')

    if args.file is None:
        source, filename = DEMO_SOURCE, 'demo.py'
    else:
        path = os.path.abspath(args.file)
        if not os.path.isfile(path):
            print(f"File not found: {args.file}", file=sys.stderr)
            return 2
        try:
            with open(path, encoding='utf-8') as f: source = f.read()
        except (OSError, UnicodeDecodeError) as e:
            print(f"Failed to open file: {args.file}", file=sys.stderr)
            log.debug("reading %s: %s", path, e)
            return 3
        os.chdir(os.path.dirname(path))
        filename = os.path.basename(path)

    with createVm() as vm:
        registerDemo(vm)
        installInput(vm)
        try:
            vm.exec(source, filename)
        except Exception:
            log.exception("%s failed", filename)
            return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
