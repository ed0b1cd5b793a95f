"""
Ready-made help and version wiring for command trees.

- help_flag(command)           -h, --help     (terminating) prints the owning command's help
- version_flag(command)        -v, --version  (terminating) prints the tree's version
- help_command(parent)         "help [command ...]"  prints help for parent or a descendant
- version_command(parent)      "version"             prints the tree's version

The version string is the "version" setting, looked up through the parent chain,
so setting it once on the root is enough:

    >>> tool.set("version", "1.2.0")
"""
from .commands import Command
from .faults import UnknownCommandError
from .flags import Arity
from .rendering import render_help, render_version
from .utils import *


def help_flag(command, /):
    """
    Register a terminating -h/--help flag on `command` and return the flag.
    """
    flag = command.flag("h", "help", Arity.NONE, "print help")
    flag.callback(lambda flag: render_help(flag.command), terminates=True)
    return flag


def version_flag(command, /):
    """
    Register a terminating -v/--version flag on `command` and return the flag.
    """
    flag = command.flag("v", "version", Arity.NONE, "print version")
    flag.callback(lambda flag: render_version(flag.command), terminates=True)
    return flag


def help_command(parent, /, group=Unset):
    """
    Add a "help" child to `parent`.

    Arguments name a path of descendants ("help run" or "help data kv"); no
    arguments prints the parent's help. An unknown name fails with
    "unknown command: <name>".
    """
    def help(command):
        target = command.parent
        for name in command.args:
            if (child := target.children.get(name)) is None:
                command.fail(
                    UnknownCommandError,
                    "unknown command: %s" % name,
                    token=name,
                    hint="run '%s help' to see available commands" % target.route,
                )
                return
            target = child
        render_help(target)

    return Command(help, parent, name="help", descr="print help", group=group, expect=...)


def version_command(parent, /, group=Unset):
    """
    Add a "version" child to `parent`.
    """
    def version(command):
        render_version(command)

    return Command(version, parent, name="version", descr="print version", group=group)


__all__ = (
    "help_flag",
    "version_flag",
    "help_command",
    "version_command",
)
