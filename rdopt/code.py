from __future__ import annotations

from typing import Callable, Iterable, Iterator, Optional, TextIO, Type, Union

from .errors import UndefinedLabel
from .ir import (
    Expr,
    Label,
    Slot,
    Stmt,
)

# # # # # # # # # # #
# INSTRUCTION TYPES #


class Instruction:
    __slots__ = ()

    operations: dict[str, Type[Instruction]] = {}

    def __init_subclass__(cls) -> None:
        """Register instruction by opname"""
        opname = getattr(cls, "opname", None)
        if isinstance(opname, str):
            Instruction.operations[opname] = cls

    opname: str
    arguments: tuple[str, ...] = ()

    @property
    def mnemonic(self) -> str:
        return self.opname.upper()

    def as_tuple(self) -> tuple[Union[str, int, Label], ...]:
        values = (getattr(self, attr) for attr in self.arguments)
        return (self.opname,) + tuple(values)

    def format(self) -> str:
        args = (str(getattr(self, attr)) for attr in self.arguments)
        return " ".join((self.mnemonic, *args))

    def __eq__(self, other) -> bool:
        return isinstance(other, Instruction) and self.as_tuple() == other.as_tuple()

    def __hash__(self) -> int:
        return hash(self.as_tuple())

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        params = ", ".join(f"{attr}={getattr(self, attr)!r}" for attr in self.arguments)
        return f"{self.__class__.__name__}({params})"


class IntInstr(Instruction):
    """Push a literal."""

    __slots__ = ("value",)

    opname = "int"
    arguments = ("value",)

    def __init__(self, value: int):
        self.value = value


class AddInstr(Instruction):
    """Pop two values, push their sum."""

    __slots__ = ()

    opname = "add"


class MulInstr(Instruction):
    """Pop two values, push their product."""

    __slots__ = ()

    opname = "mul"


class StoreInstr(Instruction):
    """Pop a value into a variable slot."""

    __slots__ = ("slot",)

    opname = "store"
    arguments = ("slot",)

    def __init__(self, slot: Slot):
        self.slot = slot


class LoadCopyInstr(Instruction):
    """Push the value of a variable slot."""

    __slots__ = ("slot",)

    opname = "load_copy"
    arguments = ("slot",)

    def __init__(self, slot: Slot):
        self.slot = slot


class JumpInstr(Instruction):
    """Continue at 'target'. Holds a label until lowering resolves it to a pc."""

    __slots__ = ("target",)

    opname = "jump"
    arguments = ("target",)

    def __init__(self, target: Union[Label, int]):
        self.target = target


class JumpIfZeroInstr(JumpInstr):
    """Pop a value, continue at 'target' if it is zero."""

    __slots__ = ()

    opname = "jump_if_zero"


# known function ids for 'call'
PRINT = 0


class CallInstr(Instruction):
    """Call a builtin function by id."""

    __slots__ = ("id",)

    opname = "call"
    arguments = ("id",)

    def __init__(self, id: int):
        self.id = id

    def format(self) -> str:
        if self.id == PRINT:
            return "PRINT"
        return f"CALL {self.id} (unknown)"


# # # # # # # # # #
# CODE GENERATION #


class CodeGenerator:
    """
    Lower statements to stack machine instructions. Expressions are emitted
    in post-order and labels become instruction offsets.
    """

    def __init__(self) -> None:
        self.code: list[Instruction] = []
        # offset of each label
        self.labels: dict[Label, int] = {}

    def visitor(self, node: Union[Stmt, Expr]) -> Callable[..., None]:
        return getattr(self, f"visit_{node.__class__.__name__}")

    def visit(self, node: Union[Stmt, Expr]) -> None:
        self.visitor(node)(node)

    # # # # # # # #
    # EXPRESSIONS #

    def visit_Int(self, node) -> None:
        self.code.append(IntInstr(node.value))

    def visit_Add(self, node) -> None:
        self.visit(node.left)
        self.visit(node.right)
        self.code.append(AddInstr())

    def visit_Mul(self, node) -> None:
        self.visit(node.left)
        self.visit(node.right)
        self.code.append(MulInstr())

    def visit_LoadCopy(self, node) -> None:
        self.code.append(LoadCopyInstr(node.slot))

    # # # # # # # #
    # STATEMENTS  #

    def visit_Store(self, node) -> None:
        self.visit(node.expr)
        self.code.append(StoreInstr(node.slot))

    def visit_ExprStmt(self, node) -> None:
        self.visit(node.expr)

    def visit_LabelStmt(self, node) -> None:
        self.labels[node.label] = len(self.code)

    def visit_Jump(self, node) -> None:
        self.code.append(JumpInstr(node.label))

    def visit_JumpIfZero(self, node) -> None:
        self.visit(node.expr)
        self.code.append(JumpIfZeroInstr(node.label))

    def visit_Print(self, node) -> None:
        self.visit(node.expr)
        self.code.append(CallInstr(PRINT))

    def resolve(self) -> None:
        """Replace jump labels with instruction offsets"""
        for instr in self.code:
            if isinstance(instr, JumpInstr) and isinstance(instr.target, Label):
                offset = self.labels.get(instr.target)
                if offset is None:
                    raise UndefinedLabel(instr.target)
                instr.target = offset

    def generate(self, stmts: Iterable[Stmt]) -> list[Instruction]:
        for stmt in stmts:
            self.visit(stmt)
        self.resolve()
        return self.code


def ir_to_insts(stmts: Iterable[Stmt]) -> list[Instruction]:
    """Lower a statement list to VM code."""
    return CodeGenerator().generate(stmts)


def format_insts(code: list[Instruction]) -> Iterator[str]:
    width = len(str(len(code)))
    for i, instr in enumerate(code):
        yield f"{i:<{width}}  {instr.format()}"


def print_insts(code: list[Instruction], buf: Optional[TextIO] = None) -> None:
    """Write one numbered instruction per line."""
    for line in format_insts(code):
        print(line, file=buf)
