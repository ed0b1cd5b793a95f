"""
Argtree command layer: build command trees and dispatch argument vectors through them.

What this module provides
- Command: a node of the command tree.
  • identity: name (unique among siblings), descr (help text), group (help section label).
  • behavior: an optional execution callback receiving the command itself.
  • parsing: a flag registry, an expected positional-argument count (the contract),
    and children (subcommands) looked up by name during delegation.
  • state: settings (inherited through the parent chain), the positional buffer
    filled by dispatch, and an error accumulator.
- Factories and helpers:
  • command(...): create a Command or a decorator that produces one.
  • invoke(obj, prompt): convenience runner for commands or plain callables.

Dispatch (one call per command on the resolved path)
    SCANNING_OPTIONS → COLLECTING_ARGS → {DELEGATING | EXECUTING} → DONE

- scanning: the command's option table is rebuilt and its arguments scanned.
  Matched flags record their argument; flags with callbacks are queued (not run).
  Unrecognized options are kept aside because a subcommand may own them.
  A missing required option argument fails immediately.
- collecting: positional tokens are kept in order.
- deciding:
  • nothing left over                       → execute
  • leftover flags, no subcommands           → "unknown option: X"
  • leftover flags, no positional            → "unexpected option: X"
  • first positional names a child           → delegate
  • otherwise the command absorbs the positionals, subject to its contract;
    leftover flags are dropped.
- delegating: the child receives the positionals after its own name followed by
  the leftover flags; its result is returned unchanged.
- executing: queued flag callbacks run in discovery order (a terminating one ends
  dispatch with success), then the command callback runs; success requires an
  empty accumulator before and after it.
- done: the option table and the transient queues are closed on every path.

Quick start
    from argtree import command, Arity, invoke

    @command(descr="toolbox")
    def tool(cmd):
        print("no subcommand given")

    verbose = tool.flag("v", "verbose", descr="talk more")

    @tool.command(expect=...)
    def run(cmd):
        print(cmd.args, cmd.lookup("verbose").value)

    if __name__ == "__main__":
        tool.main()
"""
import builtins
import difflib
import functools
import operator
import os.path
import shlex
import sys
import weakref
from collections.abc import Iterable

from .accumulator import Accumulator
from .faults import *
from .flags import Arity, Flag, FlagRegistry
from .logs import get_logger
from .scanner import OptionTable, Outcome, Scanner
from .utils import *

logger = get_logger(__name__)


class CommandType(type):
    """
    Metaclass giving commands a stable typename, read-only mirrors and reprs.

    - __typename__ is derived from the class name (camel-case split with hyphens).
    - every name in __introspectable__ becomes a read-only property over "_{name}".
    - __rich_repr__ yields the __displayable__ subset (or all introspectable names).
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": typename(name),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate and normalize command metadata in place.

    - name: non-empty string without whitespace, not starting with '-'
      (it must be reachable as a positional token).
    - descr/group: Unset or non-empty strings after trimming; become None when Unset.
    - expect: 0, a positive int bound, or Ellipsis / "..." for an unbounded contract.
    - callback: Unset or callable.

    Raises
    - TypeError / ValueError describing the offending field.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    elif name.startswith("-") or any(character.isspace() for character in name):
        raise ValueError(f"{cls.__typename__} 'name' must be a single word not starting with '-'")
    metadata["name"] = name

    for field in ("descr", "group"):
        if not isinstance(value := metadata[field], str | Unset):
            raise TypeError(f"{cls.__typename__} {field!r} must be a string")
        elif isinstance(value, str) and not (value := value.strip()):
            raise ValueError(f"{cls.__typename__} {field!r} cannot be empty")
        metadata[field] = coalesce(value)

    metadata["expect"] = _sanitize_expect(cls, metadata["expect"])

    if metadata["callback"] is not Unset and not callable(metadata["callback"]):
        raise TypeError(f"{cls.__typename__} 'callback' must be callable")


def _sanitize_expect(cls, expect, /):
    if expect is Ellipsis or expect == "...":
        return Ellipsis
    if isinstance(expect, bool) or not isinstance(expect, int):
        raise TypeError(f"{cls.__typename__} 'expect' must be an integer or ellipsis")
    if expect < 0:
        raise ValueError(f"{cls.__typename__} 'expect' must be zero or a positive integer")
    return expect


def _attach_to_parent(self, parent):
    """
    Register this command under its parent, enforcing the tree invariants.

    - a command is registered under at most one parent, exactly once.
    - names are unique among siblings.
    - a command cannot become a descendant of itself.
    """
    if not isinstance(parent, Command):
        raise TypeError(f"{type(self).__typename__} 'parent' must be a command")
    if self._parent is not Unset:
        raise ValueError(f"{type(self).__typename__} {self.name!r} is already registered under {self.parent.name!r}")
    if any(step is self for step in parent.path):
        raise ValueError(f"{type(self).__typename__} {self.name!r} cannot be registered under its own descendant")

    if parent._children.setdefault(self.name, self) is not self:
        typeof = "subcommand" if parent.parent else "command"
        raise ValueError(f"{type(self).__typename__} {typeof} name {self.name!r} is already in use")

    self._parent = weakref.ref(parent)


class DispatchPass:
    """
    Transient state of one dispatch call on one command.

    - pending: flags whose callbacks run once the command is certain to execute.
    - unhandled: raw option tokens the command did not recognize.

    Both queues only reference flags and argument tokens; closing the pass clears
    them. Dispatch uses it as a context manager so every return path closes it.
    """

    def __init__(self):
        self.pending = []
        self.unhandled = []
        self.closed = False

    def close(self):
        self.pending.clear()
        self.unhandled.clear()
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exception):
        self.close()


class Command(metaclass=CommandType):
    """
    Node of a command tree.

    Responsibilities
    - Registration: flags (flag/add_flag), children (command/add) and settings (set).
    - Lookup: inherited settings (get) and ancestor flags (lookup) through the parent chain.
    - Dispatch: run(args) resolves the single path from this command to the one that
      executes; main()/__invoke__() add reporting on top.

    Ownership
    - children are owned by their parent; the parent reference is weak, so a command
      never keeps its parent alive.

    Runtime switches
    - colorful, fancy, shell: Unset values inherit from the parent (False at the root).
    """

    __introspectable__ = (
        "name",
        "descr",
        "group",
        "expect",
        "settings",
        "children",
        "args",
    )

    __displayable__ = (
        "name",
        "descr",
        "group",
        "expect",
        "children",
    )

    def __init__(
            self,
            callback=Unset,
            /,
            parent=Unset,
            name=Unset,
            descr=Unset,
            group=Unset,
            expect=0,
            *,
            colorful=Unset,
            fancy=Unset,
            shell=Unset
    ):
        """
        Construct a command, optionally attaching it under `parent`.

        Parameters
        - callback: Callable[[Command], Any] | Unset
          Execution callback; receives this command when it executes.
        - parent: Command | Unset
          Parent under which this command is registered immediately.
        - name: str | Unset
          Defaults to the callback's __name__, then to the program name (argv[0]).
        - descr: str | Unset
          Help text; defaults to the first line of the callback's docstring.
        - group: str | Unset
          Section label used when listing this command in its parent's help.
        - expect: int | Ellipsis | "..."
          Positional-argument contract: 0 (none, the default), N (up to N, and at
          least N once the command executes), or Ellipsis (unbounded).
        - colorful, fancy, shell: bool | Unset
          Rendering and reporting switches inherited from the parent when Unset.
        """
        doc = getattr(callback, "__doc__", None) if callback is not Unset else None
        metadata = {
            "callback": callback,
            "name": coalesce(name, getattr(callback, "__name__", Unset)),
            "descr": coalesce(descr, doc.strip().splitlines()[0] if doc and doc.strip() else Unset),
            "group": group,
            "expect": expect,
        }
        if metadata["name"] is Unset:
            metadata["name"] = os.path.basename(sys.argv[0]) or "command"
        _sanitize_metadata(builtins.type(self), metadata)

        self._callback = metadata.pop("callback")
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

        self._colorful = colorful
        self._fancy = fancy
        self._shell = shell

        self._parent = Unset
        self._children = {}
        self._flags = FlagRegistry()
        self._settings = {}
        self._args = []
        self._errors = Accumulator(self)
        self._delegate = None

        if parent is not Unset:
            _attach_to_parent(self, parent)

    # ── Tree ──────────────────────────────────────────────────────────────────

    @property
    def parent(self):
        """
        Parent command, or None for a root (or when the parent no longer exists).
        """
        if self._parent is Unset:
            return None
        return self._parent()

    @property
    def root(self):
        """
        Return the topmost command in the current command hierarchy.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the full ancestry from root to this command as a tuple.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    @property
    def route(self):
        """
        Space-joined names from the root, as typed on a command line ('tool run').
        """
        return " ".join(step.name for step in self.path)

    @property
    def callback(self):
        return coalesce(self._callback)

    @property
    def delegate(self):
        """
        Child this command delegated to during its last dispatch (None if it did not).
        """
        return self._delegate

    def command(self, source=Unset, /, *args, **kwargs):
        """
        Create a subcommand under this command.

        Thin wrapper around the module-level command(...) factory that injects
        this command as the parent. Supports the direct form
        (self.command(callback, ...)) and the decorator form (@self.command(...)).
        """
        return command(source, self, *args, **kwargs)

    def add(self, child, /):
        """
        Register an existing top-level command as a child of this command.
        """
        if not isinstance(child, Command):
            raise TypeError(f"{type(self).__typename__} add() argument must be a command")
        _attach_to_parent(child, self)
        return child

    # ── Flags ─────────────────────────────────────────────────────────────────

    @property
    def flags(self):
        """
        Registered flags, in registration order.
        """
        return tuple(self._flags)

    def flag(self, short=Unset, long=Unset, /, arity=Arity.NONE, descr=Unset, *, type=str):
        """
        Register a flag on this command and return it.

        Forms
        - cmd.flag("o", "output", Arity.REQUIRED, "write to FILE")
        - cmd.flag(Flag(...))  (an unregistered flag instance)

        Raises
        - TypeError / ValueError on malformed flags, or when the short letter or
          long name is already registered on this command (setup errors).
        """
        if isinstance(short, Flag):
            flag = short
            if long is not Unset or descr is not Unset or arity is not Arity.NONE:
                raise TypeError(f"{builtins.type(self).__typename__} flag() takes no metadata with a flag instance")
        else:
            flag = Flag(short, long, arity, descr, type=type)

        if flag.command is not None:
            raise ValueError(f"flag {flag.label!r} is already registered under {flag.command.name!r}")
        self._flags.add(flag)
        flag._bind(self)
        return flag

    add_flag = flag

    def lookup(self, name, /):
        """
        Resolve a flag by spelling ('-v', '--verbose', 'v' or 'verbose') on this
        command, then on each ancestor. Returns None when nothing matches.

        Ancestor flags stay readable from descendants: a root flag scanned before
        delegation keeps its parsed value for the subcommand callback.
        """
        command = self
        while command is not None:
            if (flag := command._flags.resolve(name)) is not None:
                return flag
            command = command.parent
        return None

    # ── Settings ──────────────────────────────────────────────────────────────

    def set(self, key, value, /):
        """
        Store a string setting on this command (visible to every descendant).
        """
        if not isinstance(key, str) or not key:
            raise TypeError(f"{type(self).__typename__} setting key must be a non-empty string")
        if not isinstance(value, str):
            raise TypeError(f"{type(self).__typename__} setting {key!r} must be a string")
        self._settings[key] = value

    def get(self, key, default=None, /):
        """
        Look a setting up on this command, then on each ancestor up to the root.
        """
        command = self
        while command is not None:
            try:
                return command._settings[key]
            except KeyError:
                command = command.parent
        return default

    # ── Contract / errors ─────────────────────────────────────────────────────

    def expect_args(self, count, /):
        """
        Set the positional-argument contract (0, N or Ellipsis for any).
        """
        self._expect = _sanitize_expect(builtins.type(self), count)
        return self

    @property
    def errors(self):
        """
        This command's error accumulator.
        """
        return self._errors

    def fail(self, fault, /, *args, **options):
        """
        Push an execution error onto this command's accumulator (see Accumulator.push).
        """
        return self._errors.push(fault, *args, **options)

    # ── Runtime switches ──────────────────────────────────────────────────────

    def _inherited(self, name):
        value = getattr(self, "_" + name)
        if value is not Unset:
            return bool(value)
        parent = self.parent
        return getattr(parent, name) if parent is not None else False

    @property
    def colorful(self):
        return self._inherited("colorful")

    @property
    def fancy(self):
        return self._inherited("fancy")

    @property
    def shell(self):
        return self._inherited("shell")

    # ── Dispatch ──────────────────────────────────────────────────────────────

    def _suggest(self, token):
        suggestions = difflib.get_close_matches(token, self._children.keys(), 1)
        if suggestions:
            return "did you mean %r? you can also run '%s --help' to see available commands" % (
                suggestions[0], self.route
            )
        return "run '%s --help' to see the expected usage" % self.route

    def _dispatch(self, args):
        """
        Run the dispatch state machine for this command over `args` (argv[1:]).

        Returns True on success. Faults are pushed onto the accumulator of the
        command where they are detected; delegation returns the child's result.
        """
        self._args.clear()
        self._errors.clear()
        self._delegate = None
        self._flags.reset()

        logger.debug("%s: scanning %r", self.route, args)

        with OptionTable.build(self._flags) as table, DispatchPass() as state:
            scanner = Scanner(args, table)

            for match in scanner:
                match match.outcome:
                    case Outcome.SHORT | Outcome.LONG:
                        try:
                            match.flag._record(match.argument)
                        except (TypeError, ValueError) as exception:
                            self._errors.push(
                                InvalidOptionValueError,
                                "invalid value for option %s: %r" % (match.token, match.argument),
                                token=match.token,
                                cause=exception,
                                hint="run '%s --help' to see the expected usage" % self.route,
                            )
                            return False
                        if match.flag.has_callback:
                            logger.debug("%s: pending handler for %s", self.route, match.token)
                            state.pending.append(match.flag)
                    case Outcome.UNKNOWN:
                        logger.debug("%s: unhandled option %s", self.route, match.token)
                        state.unhandled.append(match.token)
                    case Outcome.MISSING:
                        self._errors.push(
                            MissingOptionArgumentError,
                            "missing expected argument for option: %s" % match.token,
                            token=match.token,
                            hint="pass a value (for example: %s <value>)" % match.token,
                        )
                        return False
                    case _:
                        self._errors.push(ScannerError, "unexpected: %s" % match.token, token=match.token)
                        return False

            positionals = scanner.rest
            unhandled = list(state.unhandled)

            logger.debug(
                "%s: subcommands=%s unhandled=%r args=%r",
                self.route, bool(self._children), unhandled, positionals
            )

            if not unhandled and not positionals:
                return self._execute(state)

            if unhandled and not self._children:
                self._errors.push(
                    UnknownOptionError,
                    "unknown option: %s" % unhandled[0],
                    token=unhandled[0],
                    hint="run '%s --help' to see all available options" % self.route,
                )
                return False

            if unhandled and not positionals:
                self._errors.push(
                    UnexpectedOptionError,
                    "unexpected option: %s" % unhandled[0],
                    token=unhandled[0],
                    hint="options of a subcommand go after its name (for example: %s <command> %s)" % (
                        self.route, unhandled[0]
                    ),
                )
                return False

            if (child := self._children.get(positionals[0])) is not None:
                logger.debug("%s: delegating to %s", self.route, child.name)
                self._delegate = child
                return child._dispatch(positionals[1:] + unhandled)

            if self._expect == 0:
                self._errors.push(
                    UnexpectedArgumentError,
                    "unexpected argument: %s" % positionals[0],
                    token=positionals[0],
                    hint=self._suggest(positionals[0]) if self._children else
                    "remove this value or run '%s --help' to see the expected usage" % self.route,
                )
                return False

            if self._expect is not Ellipsis and len(positionals) > self._expect:
                self._errors.push(
                    TooManyArgumentsError,
                    "too many arguments (expected up to %d, got %d)" % (self._expect, len(positionals)),
                    expected=self._expect,
                    received=len(positionals),
                    hint="remove the extra values or run '%s --help' to see the expected usage" % self.route,
                )
                return False

            self._args.extend(positionals)
            return self._execute(state)

    def _execute(self, state):
        logger.debug("%s: executing", self.route)

        for flag in state.pending:
            before = len(self._errors)
            try:
                flag()
            except Exception as exception:
                logger.debug("%s: handler for %s raised %r", self.route, flag.label, exception)
                self._errors.push(
                    DelegatedCommandError,
                    "option %s failed: %s" % (flag.label, exception),
                    cause=exception,
                    hint="check additional logs for more details",
                )
                continue
            if flag.terminates and len(self._errors) == before:
                logger.debug("%s: %s terminated dispatch", self.route, flag.label)
                return not self._errors

        if self._expect is not Ellipsis and 0 < self._expect and len(self._args) < self._expect:
            self._errors.push(
                MissingArgumentsError,
                "missing arguments (expected %d, got %d)" % (self._expect, len(self._args)),
                expected=self._expect,
                received=len(self._args),
                hint="run '%s --help' to see the expected usage" % self.route,
            )

        if self._errors:
            return False

        if self._callback is not Unset:
            try:
                self._callback(self)
            except Exception as exception:
                logger.debug("%s: callback raised %r", self.route, exception)
                self._errors.push(
                    DelegatedCommandError,
                    "command %r failed: %s" % (self.route, exception),
                    cause=exception,
                    hint="check additional logs for more details",
                )

        return not self._errors

    def run(self, args=(), /):
        """
        Dispatch `args` (arguments after this command's name) and return success.

        Nothing is printed and the process is not exited; inspect failures() on
        False.
        """
        if isinstance(args, str) or not isinstance(args, Iterable):
            raise TypeError(f"{type(self).__typename__} run() argument must be an iterable of strings")
        args = list(args)
        if not all(isinstance(arg, str) for arg in args):
            raise TypeError(f"{type(self).__typename__} run() argument must be an iterable of strings")
        return self._dispatch(args)

    def failures(self):
        """
        Drain the faults of every command on the last resolved path.

        Yields (command, fault) pairs root-first, each accumulator in discovery order.
        """
        command = self
        while command is not None:
            for fault in command._errors.drain():
                yield command, fault
            command = command._delegate

    def __invoke__(self, prompt=Unset):
        """
        Execute this command with a token stream.

        Parameters
        - prompt:
          • Unset: read tokens from sys.argv[1:].
          • str: shell-like string; will be split via shlex.split.
          • Iterable[str]: pre-tokenized sequence.

        Behavior
        - On failure, every collected fault is surfaced: printed followed by exit
          status 1 when shell is on, raised as a CommandExit otherwise.
        """
        if prompt is Unset:
            tokens = sys.argv[1:]
        elif isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            tokens = list(prompt)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("__invoke__() argument must be a string or an iterable of strings")
        else:
            raise TypeError("__invoke__() argument must be a string or an iterable of strings")

        if self.run(tokens):
            return
        faults = [fault for _, fault in self.failures()] or [CommandError("command failed", command=self)]
        trigger(faults, shell=self.shell, command=self)

    def main(self, argv=Unset, /):
        """
        Process entry point: dispatch argv (default sys.argv[1:]), print the
        faults of a failed run to stderr, and exit with status 0 or 1.
        """
        tokens = sys.argv[1:] if argv is Unset else list(argv)
        ok = self.run(tokens)
        if not ok:
            report([fault for _, fault in self.failures()])
        raise SystemExit(0 if ok else 1)


def command(source=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct callback:   cmd = command(func, parent, name="x", ...)
    - Decorator:         @command(name="x", ...) / @command
    - Bare node:         command(name="x") when used without a callable is a decorator;
                         build callback-less nodes with Command(name="x") instead.

    Parameters
    - source: Unset | Callable
    - *args, **kwargs: forwarded to Command (parent, name, descr, group, expect, ...).
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Command(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for commands or callables.

    Behavior
    - If `object` implements __invoke__, call it with prompt.
    - If `object` is a plain callable, wrap it as a Command and then invoke.
    - Otherwise, raise TypeError.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        object.__invoke__(prompt)
        return

    if callable(object):
        return invoke(command(object), prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Command",
    "DispatchPass",
    "command",
    "invoke",
)

del CommandType
