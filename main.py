import contextlib
import os
import sys

from rich.pretty import pprint

from argtree import *

__prog__ = "partikle"


def build(name="partikle"):
    """
    Demo tree: partikle [-h] [-v] {help, version, run [-h] [-o FILE] [args...]}
    """
    def usage(command):
        render_help(command)

    root = Command(usage, name=name, descr="Partikle is a lightweight runtime for the web")
    root.set("version", "0.1.0")

    version_flag(root)
    help_flag(root)

    help_command(root)
    version_command(root)

    @root.command(descr="run a program", group="development commands", expect=...)
    def run(command):
        output = command.lookup("output")
        with contextlib.ExitStack() as stack:
            stream = stack.enter_context(open(output.value, "a")) if output.seen else sys.stdout
            for index, arg in enumerate(command.args):
                print(f"arg[{index}]: {arg}", file=stream)

    run.flag("o", "output", Arity.REQUIRED, "append arguments to FILE (-oFILE or --output=FILE)")
    help_flag(run)

    return root


if __name__ == '__main__':
    if os.environ.get("ARGTREE_DEBUG"):
        init_logger()
    tool = build(os.path.basename(sys.argv[0]))
    if os.environ.get("ARGTREE_DEBUG"):
        pprint(tool)
    tool.main()
