r"""
Argtree flag descriptors and per-command flag registries.

Overview
- Arity: argument arity of a flag, numbered like getopt's has_arg field
  (NONE=0, REQUIRED=1, OPTIONAL=2).
- Flag: a named, optionally-argumented switch owned by exactly one command.
  • identity: a short letter ("v" → "-v"), a long name ("version" → "--version"), or both.
  • metadata: arity, descr (help text), type (converter for the argument text).
  • behavior: an optional callback, and a `terminates` marker that makes a successful
    callback short-circuit the rest of dispatch (help/version style flags).
  • parse state: `seen`, `arg` and `value`, populated during a single dispatch pass.
- FlagRegistry: ordered collection of a command's flags, searchable by short letter
  or long name.

Validation highlights
- At least one of short/long must be provided; anything else is a setup error.
- short: a single letter or digit.
- long: r"[^\W\d_](-?[^\W_]+)*" (unicode letters allowed, no underscores, no '=').
- Within one registry, a short letter or long name may be registered once.

Quick example:
    >>> from argtree.flags import Flag, Arity
    >>> output = Flag("o", "output", Arity.REQUIRED, "write to FILE")
    >>> output.names
    ('-o', '--output')
"""
import builtins
import functools
import operator
import re
import weakref
from enum import IntEnum

from .utils import *


class Arity(IntEnum):
    """
    argument arity of a flag.

    values mirror getopt's no_argument / required_argument / optional_argument,
    so the short-option string derived from a registry reads the POSIX way:
    NONE contributes "x", REQUIRED "x:", OPTIONAL "x::".
    """
    NONE = 0
    REQUIRED = 1
    OPTIONAL = 2

    @property
    def suffix(self):
        """
        short-option specification suffix for this arity.
        """
        return ("", ":", "::")[self]


class FlagType(type):
    """
    Metaclass exposing introspectable fields as read-only properties.

    Responsibilities
    - Derive __typename__ from the class name for consistent messaging.
    - Mirror every name in __introspectable__ from its private backing field.
    - Provide stable __repr__/__rich_repr__ for diagnostics.
    """
    __introspectable__ = ()

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
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate and normalize flag metadata in place.

    Responsibilities
    - short: Unset or a single alphanumeric character (a leading '-' is tolerated and stripped).
    - long: Unset or a shell-style long name (a leading '--' is tolerated and stripped).
    - at least one of short/long must remain.
    - arity: an Arity member (plain ints 0..2 are accepted and converted).
    - descr: Unset or a non-empty string after trimming; becomes None when Unset.
    - type: callable converter for the argument text.

    Raises
    - TypeError: wrong value types, or neither short nor long given.
    - ValueError: malformed names or out of range arity.
    """
    if not isinstance(short := metadata["short"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'short' must be a string")
    elif isinstance(short, str):
        short = short.removeprefix("-")
        if len(short) != 1 or not short.isalnum():
            raise ValueError(f"{cls.__typename__} 'short' must be a single letter or digit")

    if not isinstance(long := metadata["long"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'long' must be a string")
    elif isinstance(long, str):
        long = long.strip().removeprefix("--")
        if not re.fullmatch(r"[^\W\d_](-?[^\W_]+)*", long):
            raise ValueError(f"{cls.__typename__} 'long' must be a valid shell-style option name")

    if short is Unset and long is Unset:
        raise TypeError(f"{cls.__typename__} must specify a short letter or a long name")

    metadata["short"] = coalesce(short)
    metadata["long"] = coalesce(long)

    try:
        metadata["arity"] = Arity(metadata["arity"])
    except ValueError:
        raise ValueError(f"{cls.__typename__} 'arity' must be one of NONE, REQUIRED or OPTIONAL") from None

    if not isinstance(descr := metadata["descr"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)

    if not callable(metadata["type"]):
        raise TypeError(f"{cls.__typename__} 'type' must be callable")


class Flag(metaclass=FlagType):
    """
    Named switch recognized by a specific command's option table.

    Identity is (short, long); at least one is set. Flags are immutable after
    registration except for the parse state (seen/arg/value), which the
    dispatch engine resets before scanning and records as options are matched.

    Callbacks
    - attached with callback(fn, terminates=False), directly or as a decorator.
    - invoked with the flag itself, only once it is certain the owning
      command will execute (see Command dispatch).
    - terminates=True: a successful invocation ends dispatch with success
      without running the command body.
    """

    __introspectable__ = (
        "short",
        "long",
        "arity",
        "descr",
        "type",
        "terminates",
    )

    def __init__(self, short=Unset, long=Unset, /, arity=Arity.NONE, descr=Unset, *, type=str):
        metadata = {
            "short": short,
            "long": long,
            "arity": arity,
            "descr": descr,
            "type": type,
        }
        _sanitize_metadata(builtins.type(self), metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

        self._callback = Unset
        self._terminates = False
        self._command = Unset
        self._reset()

    @property
    def names(self):
        """
        Return the dashed spellings of this flag, short form first.
        """
        return tuple(filter(None, (
            self.short and "-" + self.short,
            self.long and "--" + self.long,
        )))

    @property
    def label(self):
        """
        Human-readable spelling used in help and messages (e.g., "-o, --output").
        """
        return ", ".join(self.names)

    @property
    def command(self):
        """
        Owning command, or None while the flag is not registered (or its command is gone).
        """
        if self._command is Unset:
            return None
        return self._command()

    @property
    def has_callback(self):
        return self._callback is not Unset

    @property
    def seen(self):
        """
        True when the flag was matched during the last dispatch pass of its command.
        """
        return self._seen

    @property
    def arg(self):
        """
        Raw argument text from the last pass (None when absent).
        """
        return self._arg

    @property
    def value(self):
        """
        Parsed value from the last pass.

        - not seen               → None
        - Arity.NONE             → True
        - argument text present  → type(arg)
        - optional arg omitted   → None
        """
        return self._value

    def callback(self, callback=Unset, /, *, terminates=False):
        """
        Attach the side-effecting handler of this flag.

        Forms
        - flag.callback(fn, terminates=True) -> fn
        - @flag.callback / @flag.callback(terminates=True)

        Rules
        - callback must be callable.
        - can be set only once per flag (cannot be overridden).
        """
        if callback is Unset:
            return functools.partial(self.callback, terminates=terminates)
        if not callable(callback):
            raise TypeError(f"{type(self).__typename__} callback must be callable")
        if self._callback is not Unset:
            raise TypeError(f"{type(self).__typename__} callback cannot be overridden")
        self._callback = callback
        self._terminates = bool(terminates)
        return callback

    def _bind(self, command):
        if self._command is not Unset:
            raise ValueError(f"{type(self).__typename__} {self.label!r} is already registered")
        self._command = weakref.ref(command)

    def _reset(self):
        self._seen = False
        self._arg = None
        self._value = None

    def _record(self, arg):
        """
        Store the argument of one match; the converter runs here so that the
        short and long spellings of the flag always yield identical values.
        """
        self._seen = True
        self._arg = arg
        if self.arity is Arity.NONE:
            self._value = True
        elif arg is None:
            self._value = None
        else:
            self._value = self.type(arg)

    def __call__(self):
        """
        Invoke the callback with this flag (no-op without a callback).
        """
        if self._callback is Unset:
            return None
        return self._callback(self)


class FlagRegistry:
    """
    Ordered collection of one command's flags.

    Behavior
    - iteration follows registration order (help listing and option tables).
    - find() matches either key: a flag is returned when its short letter
      equals `short` or its long name equals `long`, first registered wins.
    - add() rejects a short letter or long name already present.
    """

    def __init__(self):
        self._flags = []
        self._shorts = {}
        self._longs = {}

    def __iter__(self):
        return iter(self._flags)

    def __len__(self):
        return len(self._flags)

    def __bool__(self):
        return bool(self._flags)

    def __repr__(self):
        return f"flag-registry({', '.join(flag.label for flag in self._flags)})"

    def add(self, flag, /):
        if not isinstance(flag, Flag):
            raise TypeError("flag-registry add() argument must be a flag")
        if flag.short and flag.short in self._shorts:
            raise ValueError(f"flag short letter {'-' + flag.short!r} is already in use")
        if flag.long and flag.long in self._longs:
            raise ValueError(f"flag long name {'--' + flag.long!r} is already in use")
        self._flags.append(flag)
        if flag.short:
            self._shorts[flag.short] = flag
        if flag.long:
            self._longs[flag.long] = flag
        return flag

    def find(self, short=None, long=None):
        """
        Return the flag registered under `short` or `long` (None when neither matches).

        The short letter is consulted first, so when a scanner result could be
        satisfied by both keys the short registration takes priority.
        """
        if short and short in self._shorts:
            return self._shorts[short]
        if long and long in self._longs:
            return self._longs[long]
        return None

    def resolve(self, name, /):
        """
        Resolve a user-facing spelling: "-x", "--name", "x" (short) or "name" (long).
        """
        if not isinstance(name, str):
            raise TypeError("flag-registry resolve() argument must be a string")
        if name.startswith("--"):
            return self.find(long=name[2:])
        if name.startswith("-"):
            return self.find(short=name[1:])
        if len(name) == 1:
            return self.find(short=name, long=name)
        return self.find(long=name)

    def reset(self):
        for flag in self._flags:
            flag._reset()


__all__ = (
    "Arity",
    "Flag",
    "FlagRegistry",
)

del FlagType
