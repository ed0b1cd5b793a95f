"""
Argtree faults (parse and execution errors) and their rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for user-facing errors, grouped
  by domain so logs and searches stay predictable.
- CommandException: base type pushed onto a command's error accumulator; carries a
  message plus options and knows how to render itself with rich.
- CommandExit: a group of faults raised when a non-shell invocation fails.
- report(): print faults to stderr in discovery order.

UX goals
- Lowercased, short, technical messages ("unknown option: --colour").
- One actionable hint per fault, pointing at '<route> --help' where it helps.

Integration
- The dispatch engine pushes parse faults; callbacks push execution faults through
  Command.fail(...) or command.errors.push(...).
- Shell-style runs (Command.main) print the faults and exit 1; library runs
  (invoke with shell=False) raise a CommandExit holding them.
"""
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import *

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the engine (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • UNKNOWN_COMMAND
    - options (1111x)
      • UNKNOWN_OPTION, UNEXPECTED_OPTION, MISSING_OPTION_ARGUMENT, INVALID_OPTION_VALUE
    - positionals (1112x)
      • UNEXPECTED_ARGUMENT, TOO_MANY_ARGUMENTS, MISSING_ARGUMENTS
    - delegated (1113x)
      • DELEGATED_ERROR (exception escaped a callback)
    - scanner (1114x)
      • SCANNER_FAILURE
    - execution (1115x)
      • COMMAND_ERROR (pushed by a callback)
    """
    # --- routing errors ---
    UNKNOWN_COMMAND             = 11101

    # --- option errors ---
    UNKNOWN_OPTION              = 11112
    UNEXPECTED_OPTION           = 11113
    MISSING_OPTION_ARGUMENT     = 11117
    INVALID_OPTION_VALUE        = 11118

    # --- positional errors ---
    UNEXPECTED_ARGUMENT         = 11121
    TOO_MANY_ARGUMENTS          = 11122
    MISSING_ARGUMENTS           = 11125

    # --- delegated errors ---
    DELEGATED_ERROR             = 11131

    # --- scanner errors ---
    SCANNER_FAILURE             = 11141

    # --- execution errors ---
    COMMAND_ERROR               = 11151

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__ to
        override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    fault carried by an error accumulator.

    attributes
    - message: human-readable, lowercased message (str(fault) returns it).
    - options: read-only mapping with rendering context, typically:
      • command: the command whose accumulator holds the fault.
      • hint: one actionable sentence.
      • token / expected / received: fault-specific payload.

    class-level defaults
    - code: FaultCode of the fault family.
    - title: short heading used when rendering.
    """
    code = FaultCode.COMMAND_ERROR
    title = "command error"

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError(f"{type(self).__name__} message must be a string")
        super().__init__(coalesce(message, self.title))
        self.message = coalesce(message, self.title)
        self.options = MappingProxyType(options)

    def __str__(self):
        return self.message

    @property
    def command(self):
        return self.options.get("command")

    @property
    def hint(self):
        return self.options.get("hint")

    def __rich__(self):
        main = __import__("__main__")
        command = self.command
        colorful = bool(getattr(command, "colorful", False))
        fancy = bool(getattr(command, "fancy", False))

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        prog = text(getattr(main, "__prog__", getattr(command, "route", "")), styler("prog-name"))

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(self.code.normalize(), styler("code")),
            " | ",
            text(self.title, styler("error-title")),
            " ]"
        )
        message = text(self.message, styler("error-message"))
        renders = [message]
        if self.hint:
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(self.hint, styler("hint"))))

        if fancy:
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)


class CommandError(CommandException):
    code = FaultCode.COMMAND_ERROR
    title = "command error"


class UnknownCommandError(CommandException):
    code = FaultCode.UNKNOWN_COMMAND
    title = "unknown command"


class UnknownOptionError(CommandException):
    code = FaultCode.UNKNOWN_OPTION
    title = "unknown option"


class UnexpectedOptionError(CommandException):
    code = FaultCode.UNEXPECTED_OPTION
    title = "unexpected option"


class MissingOptionArgumentError(CommandException):
    code = FaultCode.MISSING_OPTION_ARGUMENT
    title = "missing option argument"


class InvalidOptionValueError(CommandException):
    code = FaultCode.INVALID_OPTION_VALUE
    title = "invalid option value"


class UnexpectedArgumentError(CommandException):
    code = FaultCode.UNEXPECTED_ARGUMENT
    title = "unexpected argument"


class TooManyArgumentsError(CommandException):
    code = FaultCode.TOO_MANY_ARGUMENTS
    title = "too many arguments"


class MissingArgumentsError(CommandException):
    code = FaultCode.MISSING_ARGUMENTS
    title = "missing arguments"


class DelegatedCommandError(CommandException):
    code = FaultCode.DELEGATED_ERROR
    title = "delegated error"


class ScannerError(CommandException):
    code = FaultCode.SCANNER_FAILURE
    title = "scanner failure"


class CommandExit(ExceptionGroup):
    """
    group of faults collected from a failed dispatch.

    raised by non-shell invocations so callers (and tests) can inspect every
    fault; in shell mode the faults are printed and the process exits 1.
    """

    def __new__(cls, exceptions, **options):
        return super().__new__(cls, "bad exit", tuple(exceptions))

    def __init__(self, exceptions, **options):
        super().__init__("bad exit", tuple(exceptions))
        self.options = MappingProxyType(options)

    def derive(self, exceptions):
        return CommandExit(exceptions, **self.options)

    @property
    def messages(self):
        return tuple(str(exception) for exception in self.exceptions)


def report(faults, /, *, file=Unset):
    """
    print faults in the order given (discovery order when drained from accumulators).

    parameters
    - faults: iterable of CommandException.
    - file: optional text stream; defaults to the module's stderr console.
    """
    target = console if file is Unset else Console(file=file)
    for fault in faults:
        target.print(fault)


def trigger(faults, /, *, shell, **options):
    """
    surface the faults of a failed dispatch.

    contract
    - shell=True: print every fault to stderr and exit with status 1.
    - shell=False: raise a CommandExit holding the faults.
    """
    faults = tuple(faults)
    if not shell:
        raise CommandExit(faults, **options) from None
    report(faults)
    sys.exit(1)


__all__ = (
    "FaultCode",
    "CommandException",
    "CommandError",
    "UnknownCommandError",
    "UnknownOptionError",
    "UnexpectedOptionError",
    "MissingOptionArgumentError",
    "InvalidOptionValueError",
    "UnexpectedArgumentError",
    "TooManyArgumentsError",
    "MissingArgumentsError",
    "DelegatedCommandError",
    "ScannerError",
    "CommandExit",
    "report",
    "trigger",
)
