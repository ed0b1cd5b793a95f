r"""
Argtree option tables and the POSIX/GNU-style option scanner.

What this module provides
- OptionTable: the short/long option tables of one command, built from its flag
  registry right before a dispatch pass and closed when the pass ends.
  • longopts: tuple of LongOption(name, arity, flag), in registration order.
  • shortopts: getopt specification string, e.g. ":vhf:o::"
    – leading ':' asks for missing arguments to be reported distinctly.
    – each short letter is followed by ':' (required) or '::' (optional).
- Scanner: iterates one command's argument list the way getopt_long does and
  yields a Match per option found:
  • Outcome.SHORT    a short option matched (getopt returns the letter)
  • Outcome.LONG     a long option matched (getopt returns 0 + index)
  • Outcome.UNKNOWN  unrecognized option (getopt returns '?')
  • Outcome.MISSING  required argument missing (getopt returns ':')
  • StopIteration    no more options (getopt returns -1)

GNU conventions honored
- permutation: options may follow positional tokens; positionals are kept in order
  in Scanner.rest.
- '--' ends option scanning; everything after it is positional.
- a lone '-' is positional.
- short clusters: '-abc' is '-a -b -c'; '-ofile' and '-o file' both give 'file' to a
  required '-o'; an optional short argument must be attached ('-ofile').
- long arguments: '--name=value', or the next token for required arguments only.
- unambiguous long prefixes are accepted ('--verb' for '--verbose'); an exact name wins.

Reporting of unrecognized tokens
- unknown short → '-' plus the rest of the cluster from the offending letter
  ('-ofile' stays '-ofile', '-vx' gives '-v' then '-x'), so a subcommand owning
  the letter can still read its attached argument.
- unknown long → the whole token, inline value included ('--color=auto'), so it can
  be forwarded unchanged to a subcommand.
- long option given an inline value while it takes none → reported as unknown, as
  getopt_long does.

Quick example:
    >>> table = OptionTable.build(command.flags)
    >>> with table:
    ...     scanner = Scanner(["-v", "run", "--output=x"], table)
    ...     for match in scanner: ...
    ...     scanner.rest
    ['run']
"""
from enum import Enum
from typing import NamedTuple

from .flags import Arity, FlagRegistry
from .utils import *


class LongOption(NamedTuple):
    """
    one entry of a long-option table (name without dashes).
    """
    name: str
    arity: Arity
    flag: object


class OptionTable:
    """
    Scanner tables derived from a flag registry.

    Lifecycle
    - build(registry) walks the registry in registration order; tables are never
      cached on the command because they must not outlive one dispatch call.
    - usable as a context manager; close() drops the tables and marks it closed.
    - a closed table refuses to resolve options (scanning with it is a bug).
    """

    def __init__(self, registry, longopts, shortopts, /):
        self._registry = registry
        self._longopts = tuple(longopts)
        self._shortopts = shortopts
        self._shorts = _parse_shortopts(shortopts)
        self._closed = False

    @classmethod
    def build(cls, registry, /):
        if not isinstance(registry, FlagRegistry):
            raise TypeError("option-table build() argument must be a flag registry")

        longopts = []
        shortopts = ":"

        for flag in registry:
            if flag.long:
                longopts.append(LongOption(flag.long, flag.arity, flag))
            if flag.short:
                shortopts += flag.short + flag.arity.suffix

        return cls(registry, longopts, shortopts)

    @property
    def longopts(self):
        return self._longopts

    @property
    def shortopts(self):
        return self._shortopts

    @property
    def closed(self):
        return self._closed

    def short(self, letter, /):
        """
        Return (arity, flag) for a short letter, or None when not in the table.
        """
        self._check()
        try:
            arity = self._shorts[letter]
        except KeyError:
            return None
        return arity, self._registry.find(short=letter)

    def long(self, name, /):
        """
        Resolve a long name (exact first, then unique prefix) to its LongOption.

        Returns None when the name is unknown or an ambiguous prefix.
        """
        self._check()
        for option in self._longopts:
            if option.name == name:
                return option
        candidates = {option.flag: option for option in self._longopts if option.name.startswith(name)}
        if len(candidates) == 1:
            return next(iter(candidates.values()))
        return None

    def close(self):
        self._longopts = ()
        self._shorts = {}
        self._registry = None
        self._closed = True

    def _check(self):
        if self._closed:
            raise RuntimeError("option-table is closed")

    def __enter__(self):
        return self

    def __exit__(self, *exception):
        self.close()

    def __repr__(self):
        state = "closed" if self._closed else "open"
        return f"option-table({self._shortopts!r}, {[option.name for option in self._longopts]!r}, {state})"


def _parse_shortopts(shortopts, /):
    """
    Internal: read a getopt specification string into {letter: Arity}.

    ":ab:c::" → {"a": NONE, "b": REQUIRED, "c": OPTIONAL}
    """
    shorts = {}
    index = 1 if shortopts.startswith(":") else 0
    while index < len(shortopts):
        letter = shortopts[index]
        index += 1
        colons = 0
        while index < len(shortopts) and shortopts[index] == ":" and colons < 2:
            colons += 1
            index += 1
        shorts[letter] = Arity(colons)
    return shorts


class Outcome(Enum):
    SHORT = "short"
    LONG = "long"
    UNKNOWN = "?"
    MISSING = ":"


class Match(NamedTuple):
    """
    one scanner result.

    - outcome: what kind of result this is (see Outcome).
    - flag: the resolved flag (None for UNKNOWN).
    - token: spelling as given by the user ('-o', '--output', '--unknown=1').
    - argument: option argument text, or None.
    """
    outcome: Outcome
    flag: object
    token: str
    argument: str | None


class Scanner:
    """
    getopt_long work-alike over a single command's arguments.

    The argument list excludes the command's own name (argv[0]). Iterating the
    scanner consumes options; once exhausted, `rest` holds every positional
    token in original order.
    """

    def __init__(self, args, table, /):
        if not isinstance(table, OptionTable):
            raise TypeError("scanner 'table' must be an option-table")
        self._args = list(args)
        self._table = table
        self._index = 0
        self._cluster = Unset
        self._rest = []

    @property
    def rest(self):
        return list(self._rest)

    def __iter__(self):
        return self

    def __next__(self):
        if self._cluster:
            return self._short()

        while self._index < len(self._args):
            token = self._args[self._index]
            self._index += 1

            if token == "--":
                self._rest.extend(self._args[self._index:])
                self._index = len(self._args)
                break
            if token.startswith("--"):
                return self._long(token)
            if token.startswith("-") and token != "-":
                self._cluster = (token, 1)
                return self._short()
            self._rest.append(token)

        raise StopIteration

    def _short(self):
        token, position = self._cluster
        letter = token[position]
        attached = token[position + 1:]
        self._cluster = (token, position + 1) if attached else Unset

        try:
            arity, flag = self._table.short(letter)
        except TypeError:
            self._cluster = Unset
            return Match(Outcome.UNKNOWN, None, "-" + letter + attached, None)

        match arity:
            case Arity.NONE:
                return Match(Outcome.SHORT, flag, "-" + letter, None)
            case Arity.REQUIRED:
                self._cluster = Unset
                if attached:
                    return Match(Outcome.SHORT, flag, "-" + letter, attached)
                if self._index < len(self._args):
                    self._index += 1
                    return Match(Outcome.SHORT, flag, "-" + letter, self._args[self._index - 1])
                return Match(Outcome.MISSING, flag, "-" + letter, None)
            case Arity.OPTIONAL:
                self._cluster = Unset
                return Match(Outcome.SHORT, flag, "-" + letter, attached or None)

    def _long(self, token):
        name, equals, inline = token[2:].partition("=")

        if (option := self._table.long(name)) is None:
            return Match(Outcome.UNKNOWN, None, token, None)

        spelling = "--" + option.name

        match option.arity:
            case Arity.NONE:
                if equals:
                    return Match(Outcome.UNKNOWN, None, token, None)
                return Match(Outcome.LONG, option.flag, spelling, None)
            case Arity.REQUIRED:
                if equals:
                    return Match(Outcome.LONG, option.flag, spelling, inline)
                if self._index < len(self._args):
                    self._index += 1
                    return Match(Outcome.LONG, option.flag, spelling, self._args[self._index - 1])
                return Match(Outcome.MISSING, option.flag, spelling, None)
            case Arity.OPTIONAL:
                return Match(Outcome.LONG, option.flag, spelling, inline if equals else None)


__all__ = (
    "LongOption",
    "OptionTable",
    "Outcome",
    "Match",
    "Scanner",
)
