"""
Example programs, built in memory. Each builder mints fresh labels, so every
call returns an independent program.
"""
from __future__ import annotations

from typing import Callable, NamedTuple

from .ir import (
    Add,
    ExprStmt,
    Int,
    Jump,
    JumpIfZero,
    Label,
    LabelStmt,
    LoadCopy,
    Mul,
    Print,
    Slot,
    Stmt,
    Store,
)


class Example(NamedTuple):
    name: str
    description: str
    build: Callable[[], list[Stmt]]
    # values for pseudo-argument slots when running on the VM
    args: dict[Slot, int]


EXAMPLES: dict[str, Example] = {}


def example(name: str, args: dict[Slot, int] | None = None):
    def register(build: Callable[[], list[Stmt]]) -> Callable[[], list[Stmt]]:
        description = (build.__doc__ or "").strip()
        EXAMPLES[name] = Example(name, description, build, dict(args or {}))
        return build

    return register


@example("redundant-store", args={-1: 7})
def redundant_store() -> list[Stmt]:
    """The second store of v0 is the only one reaching its use."""
    return [
        # v0 = 10
        Store(0, Int(10)),
        # v0 = 40
        Store(0, Int(40)),
        # v1 = a0
        Store(1, LoadCopy(-1)),
        # v2 = v0
        Store(2, LoadCopy(0)),
        # v2 + 20 * v1
        ExprStmt(Add(LoadCopy(2), Mul(Int(20), LoadCopy(1)))),
    ]


@example("constant-fold")
def constant_fold() -> list[Stmt]:
    """Every load is constant, so the last expression folds completely."""
    return [
        Store(0, Int(10)),
        Store(0, Add(Int(40), Int(5))),
        Store(1, Int(90)),
        Store(2, LoadCopy(0)),
        ExprStmt(Add(LoadCopy(2), Mul(Int(20), LoadCopy(1)))),
    ]


@example("copy-safe")
def copy_safe() -> list[Stmt]:
    """A copy of v0 is used while v0 still holds the copied value."""
    return [
        Store(0, Int(10)),
        Store(0, Int(20)),
        Store(1, LoadCopy(0)),
        Store(2, Add(LoadCopy(1), Int(5))),
        Print(LoadCopy(2)),
    ]


@example("copy-blocked")
def copy_blocked() -> list[Stmt]:
    """v0 is overwritten between the copy into v1 and its use."""
    return [
        Store(0, Int(10)),
        Store(1, LoadCopy(0)),
        Store(0, Int(99)),
        Print(LoadCopy(1)),
    ]


@example("loop")
def loop() -> list[Stmt]:
    """Two stores of v0 meet at L0, the store of v1 is unique."""
    l0, l1 = Label.new(), Label.new()
    return [
        Store(0, Int(30)),
        Jump(l0),
        LabelStmt(l1),
        ExprStmt(Add(LoadCopy(0), LoadCopy(1))),
        Store(0, Int(5)),
        LabelStmt(l0),
        Store(1, Int(50)),
        Print(LoadCopy(1)),
    ]


@example("argument", args={-1: 12})
def argument() -> list[Stmt]:
    """Pseudo-arguments have no stores, so their loads are kept."""
    return [
        Store(1, LoadCopy(-1)),
        Print(LoadCopy(1)),
    ]


@example("countdown")
def countdown() -> list[Stmt]:
    """Print v1 while counting it down from v0, then print v0."""
    top, end = Label.new(), Label.new()
    return [
        Store(0, Int(3)),
        Store(1, LoadCopy(0)),
        LabelStmt(top),
        JumpIfZero(LoadCopy(1), end),
        Print(LoadCopy(1)),
        Store(1, Add(LoadCopy(1), Int(-1))),
        Jump(top),
        LabelStmt(end),
        Print(LoadCopy(0)),
    ]


@example("copy-chain", args={-1: 21})
def copy_chain() -> list[Stmt]:
    """A chain of copies collapses to the original argument."""
    return [
        Store(1, LoadCopy(-1)),
        Store(2, LoadCopy(1)),
        Print(Add(LoadCopy(2), LoadCopy(2))),
    ]


@example("overflow")
def overflow() -> list[Stmt]:
    """Constant folding wraps around like the VM does."""
    return [
        Store(0, Int(2**62)),
        Store(1, Mul(LoadCopy(0), Int(4))),
        Print(Add(LoadCopy(1), Int(-1))),
    ]
