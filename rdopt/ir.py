from __future__ import annotations

import threading
from dataclasses import dataclass
from itertools import count
from typing import Final, Iterator, Optional, TextIO, final

from .errors import NotConstant

# # # # # # # # # # #
# 64-bit Arithmetic #

BITS: Final = 64
_MASK: Final = (1 << BITS) - 1
_SIGN: Final = 1 << (BITS - 1)


def wrap(value: int) -> int:
    """Reduce 'value' to a signed 64-bit integer, with two's complement wrap-around."""
    value &= _MASK
    if value & _SIGN:
        return value - (1 << BITS)
    return value


# slots are signed: negative ones are pseudo-arguments, defined on entry
Slot = int


# # # # # #
# LABELS  #

_label_counter = count()
_label_lock = threading.Lock()


@final
@dataclass(frozen=True, slots=True)
class Label:
    """Opaque jump target. Only identity matters, there is no ordering."""

    id: int

    @staticmethod
    def new() -> Label:
        """Mint a fresh, process-unique label."""
        with _label_lock:
            return Label(next(_label_counter))

    def __str__(self) -> str:
        return f"L{self.id}"


# # # # # # # #
# EXPRESSIONS #


class Expr:
    """ABC for expression trees."""

    __slots__ = ()

    def is_const(self) -> bool:
        """True iff every leaf of this tree is an 'Int'."""
        raise NotImplementedError

    def evaluate(self) -> int:
        """Compute the value of a constant tree, wrapping at 64 bits."""
        raise NotConstant(self)

    def loads(self) -> Iterator[Slot]:
        """Slots read by this expression, leftmost first."""
        raise NotImplementedError

    def format(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.format()


@final
@dataclass(frozen=True, slots=True)
class Int(Expr):
    value: int

    def is_const(self) -> bool:
        return True

    def evaluate(self) -> int:
        return wrap(self.value)

    def loads(self) -> Iterator[Slot]:
        return iter(())

    def format(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class BinaryOp(Expr):
    """ABC for arithmetic over two child expressions."""

    left: Expr
    right: Expr

    symbol = "?"

    def is_const(self) -> bool:
        return self.left.is_const() and self.right.is_const()

    def evaluate(self) -> int:
        if not self.is_const():
            raise NotConstant(self)
        return wrap(self.apply(self.left.evaluate(), self.right.evaluate()))

    @staticmethod
    def apply(left: int, right: int) -> int:
        raise NotImplementedError

    def loads(self) -> Iterator[Slot]:
        yield from self.left.loads()
        yield from self.right.loads()

    def _format_operand(self, operand: Expr) -> str:
        return operand.format()

    def format(self) -> str:
        left = self._format_operand(self.left)
        right = self._format_operand(self.right)
        return f"{left} {self.symbol} {right}"


@final
@dataclass(frozen=True, slots=True)
class Add(BinaryOp):
    symbol = "+"

    @staticmethod
    def apply(left: int, right: int) -> int:
        return left + right


@final
@dataclass(frozen=True, slots=True)
class Mul(BinaryOp):
    symbol = "*"

    @staticmethod
    def apply(left: int, right: int) -> int:
        return left * right

    def _format_operand(self, operand: Expr) -> str:
        # '+' binds looser than '*'
        if isinstance(operand, Add):
            return f"({operand.format()})"
        return operand.format()


@final
@dataclass(frozen=True, slots=True)
class LoadCopy(Expr):
    slot: Slot

    def is_const(self) -> bool:
        return False

    def loads(self) -> Iterator[Slot]:
        yield self.slot

    def format(self) -> str:
        return f"v{self.slot}"


# # # # # # # #
# STATEMENTS  #


class Stmt:
    """ABC for statements. Statements holding an expression name it 'expr'."""

    __slots__ = ()

    @property
    def classname(self) -> str:
        return self.__class__.__name__

    @property
    def defines(self) -> Optional[Slot]:
        """Slot written by this statement, if any."""
        return None

    @property
    def target(self) -> Optional[Label]:
        """Jump target, for jumps."""
        return None

    @property
    def is_jump(self) -> bool:
        return self.target is not None

    def expressions(self) -> Iterator[Expr]:
        """Expressions evaluated by this statement."""
        return iter(())

    def format(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.format()


@final
@dataclass(frozen=True, slots=True)
class Store(Stmt):
    slot: Slot
    expr: Expr

    @property
    def defines(self) -> Slot:
        return self.slot

    def expressions(self) -> Iterator[Expr]:
        yield self.expr

    def format(self) -> str:
        return f"v{self.slot} <- {self.expr}"


@final
@dataclass(frozen=True, slots=True)
class ExprStmt(Stmt):
    expr: Expr

    def expressions(self) -> Iterator[Expr]:
        yield self.expr

    def format(self) -> str:
        return f"{self.expr};"


@final
@dataclass(frozen=True, slots=True)
class LabelStmt(Stmt):
    label: Label

    def format(self) -> str:
        return f"{self.label}:"


@final
@dataclass(frozen=True, slots=True)
class Jump(Stmt):
    label: Label

    @property
    def target(self) -> Label:
        return self.label

    def format(self) -> str:
        return f"jump {self.label}"


@final
@dataclass(frozen=True, slots=True)
class JumpIfZero(Stmt):
    expr: Expr
    label: Label

    @property
    def target(self) -> Label:
        return self.label

    def expressions(self) -> Iterator[Expr]:
        yield self.expr

    def format(self) -> str:
        return f"jump_if_zero {self.expr} -> {self.label}"


@final
@dataclass(frozen=True, slots=True)
class Print(Stmt):
    expr: Expr

    def expressions(self) -> Iterator[Expr]:
        yield self.expr

    def format(self) -> str:
        return f"print {self.expr}"


def print_code(code: list[Stmt], buf: Optional[TextIO] = None) -> None:
    """Write one numbered statement per line."""
    for i, stmt in enumerate(code):
        print(f"{i:<3} {stmt}", file=buf)
