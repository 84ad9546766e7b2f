"""
Structural errors raised by the optimizer, and the reporting hooks used by
the command line driver.

Structural errors are programmer errors: a malformed graph edge, a jump to a
label that does not exist (or exists twice), or evaluating an expression that
is not constant. The library never recovers from them, it only raises.

Reporting is based on the subscription model used by the compiler driver. To
route messages to standard error:

       with subscribe_errors(printerr):
            run_examples()

To collect error messages for the purpose of unit testing:

       errs = []
       with subscribe_errors(errs.append):
            run_examples()
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

# # # # # # # #
# EXCEPTIONS  #


class StructuralError(Exception):
    """Abstract Exception for malformed IR or misuse of the analysis."""

    def __init__(self, msg: str):
        self.message = msg
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class EdgeOutOfRange(StructuralError, IndexError):
    def __init__(self, index: int, size: int):
        self.index = index
        super().__init__(f"out of bounds: {index} (graph has {size} nodes)")


class UndefinedLabel(StructuralError):
    def __init__(self, label: Any):
        self.label = label
        super().__init__(f"label {label} is not defined")


class DuplicateLabel(StructuralError):
    def __init__(self, label: Any):
        self.label = label
        super().__init__(f"label {label} is already defined")


class NotConstant(StructuralError, ValueError):
    def __init__(self, expr: Any):
        self.expr = expr
        super().__init__(f"`{expr}` is not constant")


class VMError(Exception):
    """Failure while running lowered code."""

    def __init__(self, msg: str, pc: Optional[int] = None):
        self.message = msg
        self.pc = pc
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.pc is None:
            return self.message
        return f"{self.message} (at pc {self.pc})"


# # # # # # # #
# REPORTING   #

_subscribers: list[Callable[[str], Any]] = []
_num_errors = 0


def error(message: str | Exception, program: Optional[str] = None) -> None:
    """Report an error to all subscribers"""
    global _num_errors
    if program is None:
        errmsg = f"{message}"
    else:
        errmsg = f"{program}: {message}"
    for subscriber in _subscribers:
        subscriber(errmsg)
    _num_errors += 1


def errors_reported() -> int:
    """Return number of errors reported."""
    return _num_errors


def clear_errors() -> None:
    """Clear the total number of errors reported."""
    global _num_errors
    _num_errors = 0


@contextmanager
def subscribe_errors(handler: Callable[[str], Any]) -> Iterator[None]:
    """Context manager that allows monitoring of error messages."""
    _subscribers.append(handler)
    try:
        yield
    finally:
        _subscribers.remove(handler)
