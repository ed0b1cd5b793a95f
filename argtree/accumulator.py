"""
Per-command error accumulator.

An Accumulator is the ordered log of faults a command collects while it is parsed
or executed. Faults are kept in discovery order and consumed in that same order;
draining and clearing are one operation.

Pushing
- push(fault): store a CommandException as-is.
- push("message", **options): wrap a plain message into a CommandError.
- push(ExceptionType, "message", **options): build a fault of the given type.
"""
from collections import deque

from .faults import CommandException, CommandError
from .utils import *


class Accumulator:
    """
    FIFO log of CommandException instances for one command.

    Truthiness reflects whether any fault is pending, so dispatch code reads as
    `if command.errors: ...`.
    """

    def __init__(self, owner=Unset, /):
        self._owner = owner
        self._faults = deque()

    def push(self, fault, /, *args, **options):
        """
        Append one fault and return it.

        Accepted shapes
        - push(CommandException instance)
        - push(str, **options)                         → CommandError
        - push(CommandException subclass, str, **options)
        """
        if self._owner is not Unset:
            options.setdefault("command", self._owner)

        if isinstance(fault, CommandException):
            if args or options.keys() - {"command"}:
                raise TypeError("accumulator push() takes no options with a fault instance")
        elif isinstance(fault, str):
            if args:
                raise TypeError("accumulator push() takes a single message")
            fault = CommandError(fault, **options)
        elif isinstance(fault, type) and issubclass(fault, CommandException):
            fault = fault(*args, **options)
        else:
            raise TypeError("accumulator push() argument must be a message or a command fault")

        self._faults.append(fault)
        return fault

    def drain(self):
        """
        Yield and remove faults in discovery order.
        """
        while self._faults:
            yield self._faults.popleft()

    def clear(self):
        self._faults.clear()

    @property
    def messages(self):
        """
        Snapshot of the pending messages (not consumed).
        """
        return tuple(str(fault) for fault in self._faults)

    def __iter__(self):
        return iter(tuple(self._faults))

    def __len__(self):
        return len(self._faults)

    def __bool__(self):
        return bool(self._faults)

    def __repr__(self):
        return f"accumulator({list(self.messages)!r})"


__all__ = (
    "Accumulator",
)
