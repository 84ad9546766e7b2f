from __future__ import annotations

from typing import Final

__version__: Final = "0.1.0"

from .analysis import DataFlow, Propagation, ReachingDefinitions, build_cfg, optimize
from .block import BasicBlock, segment_into_blocks
from .code import ir_to_insts, print_insts
from .errors import (
    DuplicateLabel,
    EdgeOutOfRange,
    NotConstant,
    StructuralError,
    UndefinedLabel,
    VMError,
)
from .graph import DirectedGraph
from .interpreter import Interpreter
from .ir import (
    Add,
    Expr,
    ExprStmt,
    Int,
    Jump,
    JumpIfZero,
    Label,
    LabelStmt,
    LoadCopy,
    Mul,
    Print,
    Stmt,
    Store,
    print_code,
)
