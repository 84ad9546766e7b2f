from __future__ import annotations

from itertools import chain
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from graphviz import Digraph

from .errors import UndefinedLabel
from .graph import DirectedGraph
from .ir import Jump, JumpIfZero, Label, LabelStmt, Stmt

Terminator = Union[Jump, JumpIfZero]

# # # # # #
# BLOCKS  #


class BasicBlock:
    """
    Straight-line code entered only through its label. Control leaves the
    block at its terminating jump, or at the end of the program when the
    block is the last one and has no jump.
    """

    __slots__ = ("label", "body", "jump")

    def __init__(self, label: Label):
        self.label = label
        self.body: list[Stmt] = []
        self.jump: Optional[Terminator] = None

    @property
    def name(self) -> str:
        return str(self.label)

    @property
    def terminated(self) -> bool:
        return self.jump is not None

    def jump_to(self, label: Label) -> None:
        self.jump = Jump(label)

    def instructions(self) -> Iterator[Stmt]:
        yield LabelStmt(self.label)
        yield from self.body
        if self.jump is not None:
            yield self.jump

    def format(self) -> str:
        return "\n".join(str(instr) for instr in self.instructions())

    def __repr__(self) -> str:
        return f"BasicBlock({self.name}, {len(self.body)} stmts, jump={self.jump})"


def segment_into_blocks(stmts: Iterable[Stmt]) -> list[BasicBlock]:
    """
    Split a flat statement list into basic blocks. A label reached by
    fall-through gets a synthetic jump, and code after a jump that does not
    start with a label gets a fresh one.
    """
    blocks: list[BasicBlock] = []
    current: Optional[BasicBlock] = None

    for stmt in stmts:
        match stmt:
            case LabelStmt(label):
                if current is not None and not current.terminated:
                    current.jump_to(label)
                current = BasicBlock(label)
                blocks.append(current)
            case Jump() | JumpIfZero():
                if current is None or current.terminated:
                    current = BasicBlock(Label.new())
                    blocks.append(current)
                current.jump = stmt
            case _:
                if current is None or current.terminated:
                    current = BasicBlock(Label.new())
                    blocks.append(current)
                current.body.append(stmt)

    return blocks


def flatten_blocks(blocks: Iterable[BasicBlock]) -> list[Stmt]:
    """Emit the statements of each block, in order."""
    return list(chain.from_iterable(block.instructions() for block in blocks))


# # # # # # # #
# BLOCK GRAPH #


def build_block_graph(blocks: list[BasicBlock]) -> DirectedGraph[BasicBlock]:
    """Connect blocks by their jumps, plus the fall-through of a conditional jump."""
    graph: DirectedGraph[BasicBlock] = DirectedGraph()
    index: dict[Label, int] = {}
    for block in blocks:
        index[block.label] = graph.add(block)

    for i, block in enumerate(blocks):
        if block.jump is None:
            continue
        head = index.get(block.jump.label)
        if head is None:
            raise UndefinedLabel(block.jump.label)
        graph.add_edge(i, head)

        if isinstance(block.jump, JumpIfZero) and i + 1 < len(blocks):
            graph.add_edge(i, i + 1)

    return graph


class BlockGraph:
    """Graphviz view of the basic blocks of a program."""

    def __init__(self, name: str):
        self.name = name

    def visit(self, blocks: list[BasicBlock]) -> Digraph:
        graph = build_block_graph(blocks)
        return graph.digraph(self.name, label=BasicBlock.format)

    def save(self, blocks: list[BasicBlock], directory: Path) -> Path:
        """Write the graph as '<name>.gv' inside 'directory'."""
        graph = self.visit(blocks)
        return Path(graph.save(directory=directory))
