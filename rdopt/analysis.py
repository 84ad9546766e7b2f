from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Optional, TextIO

from .errors import DuplicateLabel, UndefinedLabel
from .graph import DirectedGraph
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
    Slot,
    Stmt,
    Store,
)

Indexes = frozenset[int]
GenKill = tuple[Indexes, Indexes]

_EMPTY: Indexes = frozenset()


# # # # # # # # # # # # # #
# Control Flow Graph      #


def build_cfg(stmts: Iterable[Stmt]) -> DirectedGraph[Stmt]:
    """
    One node per statement. Each statement falls through to the next one,
    unless it is an unconditional jump, and jumps are connected to the node
    holding their label.
    """
    cfg: DirectedGraph[Stmt] = DirectedGraph()
    labels: dict[Label, int] = {}

    for stmt in stmts:
        index = cfg.add(stmt)
        if isinstance(stmt, LabelStmt):
            if stmt.label in labels:
                raise DuplicateLabel(stmt.label)
            labels[stmt.label] = index

    for index, stmt in enumerate(cfg):
        if stmt.target is not None:
            head = labels.get(stmt.target)
            if head is None:
                raise UndefinedLabel(stmt.target)
            cfg.add_edge(index, head)

        if index > 0 and not isinstance(cfg[index - 1], Jump):
            cfg.add_edge(index - 1, index)

    return cfg


# # # # # # # # # # #
# Generic Data Flow #


class NodeData:
    """Info for a statement in data flow analysis"""

    __slots__ = ("gen", "kill", "inp", "out")

    def __init__(self, gen: Indexes, kill: Indexes) -> None:
        self.gen = gen
        self.kill = kill
        # input in data flow equations
        self.inp: Indexes = _EMPTY
        # and output
        self.out: Indexes = _EMPTY

    def apply(self, data: Indexes) -> Indexes:
        """OUT = GEN | (IN - KILL)"""
        return self.gen | (data - self.kill)


class DataFlowAnalysis:
    """ABC for forward data flow analysis over a statement graph"""

    # GEN and KILL generators for each statement type
    _defs: dict[str, Callable[..., GenKill]] = {}

    def __init_subclass__(cls) -> None:
        # find GEN and KILL generators
        cls._defs = {}
        for name, attr in cls.__dict__.items():
            if name.startswith("defs_"):
                _, stmt = name.split("_", maxsplit=1)
                cls._defs[stmt] = attr

    def __init__(self, cfg: DirectedGraph[Stmt]) -> None:
        self.cfg = cfg
        self.data = [NodeData(*self.transfer(i, stmt)) for i, stmt in enumerate(cfg)]
        # number of sweeps until stable
        self.passes = 0
        self._build_in_out()

    def transfer(self, index: int, stmt: Stmt) -> GenKill:
        """Get GEN and KILL for the statement at 'index'"""
        get_defs = self._defs.get(stmt.classname, None)
        if get_defs is not None:
            return get_defs(self, index, stmt)
        else:
            return _EMPTY, _EMPTY

    def _equation(self, index: int) -> bool:
        """Data flow equations, returns whether IN or OUT changed"""
        data = self.data[index]
        changed = False

        # IN = union(OUT[p] for pred p)
        inp = _EMPTY.union(*(self.data[p].out for p in self.cfg.pred_indexes(index)))
        if inp != data.inp:
            changed = True
        data.inp = inp

        # OUT = f(IN)
        out = data.apply(inp)
        if out != data.out:
            changed = True
        data.out = out

        return changed

    def _build_in_out(self) -> None:
        """Sweep all statements in order until stable"""
        changed = True
        while changed:
            changed = False
            self.passes += 1

            for index in range(len(self.cfg)):
                changed |= self._equation(index)

    def in_set(self, index: int) -> Indexes:
        return self.data[index].inp

    def out_set(self, index: int) -> Indexes:
        return self.data[index].out

    def show(self, buf: Optional[TextIO] = None) -> None:
        """Write the IN and OUT sets for each statement (to stdout by default)"""
        for i, stmt in enumerate(self.cfg):
            inp = ",".join(str(d) for d in sorted(self.in_set(i)))
            out = ",".join(str(d) for d in sorted(self.out_set(i)))
            print(f"{i:<3} {str(stmt):<15} in={inp} out={out}", file=buf)


# # # # # # # # # # #
# Reaching Analysis #


class ReachingDefinitions(DataFlowAnalysis):
    """Find the stores that may reach each statement"""

    def __init__(self, cfg: DirectedGraph[Stmt]) -> None:
        # stores of each slot
        self.defs: dict[Slot, Indexes] = {}
        # and the stored expression
        self.def_exprs: dict[int, Expr] = {}

        for index, stmt in enumerate(cfg):
            if isinstance(stmt, Store):
                self.defs[stmt.slot] = self.defs.get(stmt.slot, _EMPTY) | {index}
                self.def_exprs[index] = stmt.expr

        super().__init__(cfg)

    def defs_Store(self, index: int, stmt: Store) -> GenKill:
        gen = frozenset((index,))
        return gen, self.defs[stmt.slot] - gen

    def definitions(self, slot: Slot) -> Indexes:
        return self.defs.get(slot, _EMPTY)

    def reaching(self, index: int, slot: Slot) -> Indexes:
        """Stores of 'slot' that reach the statement at 'index'"""
        return self.definitions(slot) & self.in_set(index)


# # # # # # # # # # # # # # # # # # # # #
# Constant and Copy Propagation         #


class _Deferred(Exception):
    """A definition is needed before the current store can be rewritten"""

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(index)


class Propagation:
    """
    Rewrite loads whose value is known from a single reaching store, either
    as a constant or as a load of another slot, and fold constant arithmetic.
    """

    def __init__(
        self, rdefs: ReachingDefinitions, *, copies: bool = True, constants: bool = True
    ) -> None:
        self.rdefs = rdefs
        self.copies = copies
        self.constants = constants
        # store values after propagation
        self._values: dict[int, Expr] = {}
        # stores being rewritten right now
        self._pending: set[int] = set()
        # inside '_resolve', missing definitions are deferred to its stack
        self._resolving = False

    def definition(self, index: int) -> Expr:
        """Value stored at 'index', already rewritten when possible"""
        value = self._values.get(index)
        if value is not None:
            return value
        if index in self._pending:
            return self.rdefs.def_exprs[index]
        if self._resolving:
            raise _Deferred(index)
        return self._resolve(index)

    def _resolve(self, index: int) -> Expr:
        """
        Rewrite the store at 'index' and every store it depends on, with an
        explicit stack instead of recursion. A store that needs an unknown
        definition is suspended, and visited again once that one is done.
        The pending set is always the stack contents.
        """
        stack = [index]
        self._pending.add(index)
        self._resolving = True
        try:
            while stack:
                top = stack[-1]
                try:
                    value = self.visit(top, self.rdefs.def_exprs[top])
                except _Deferred as deferred:
                    self._pending.add(deferred.index)
                    stack.append(deferred.index)
                    continue

                self._values[top] = value
                self._pending.discard(top)
                stack.pop()
        finally:
            self._resolving = False
            self._pending.difference_update(stack)

        return self._values[index]

    def copy_is_safe(self, use: int, store: int, source: Slot) -> bool:
        """
        A copy from 'source' made at 'store' is still valid at 'use' if every
        store of 'source' reaching 'use' already reached 'store'.

        The sets are static, so inside a loop a store reaching 'store' through
        the back edge counts as the same store reaching 'use', although at run
        time it may be a later execution of it. Such copies are accepted too.
        """
        defs = self.rdefs.definitions(source)
        at_use = self.rdefs.in_set(use) & defs
        at_store = self.rdefs.in_set(store) & defs
        return not (at_use - at_store)

    def visit(self, index: int, expr: Expr) -> Expr:
        """Rewrite 'expr' bottom-up, as evaluated at 'index'"""
        match expr:
            case Add(left, right) | Mul(left, right):
                node = expr.__class__(self.visit(index, left), self.visit(index, right))
                if node.is_const():
                    return Int(node.evaluate())
                elif node == expr:
                    return expr
                return node
            case LoadCopy():
                return self.visit_load(index, expr)
            case _:
                return expr

    def visit_load(self, index: int, load: LoadCopy) -> Expr:
        current = load
        # slots already seen in a chain of copies
        chain = {load.slot}

        while True:
            reaching = self.rdefs.reaching(index, current.slot)
            if len(reaching) != 1:
                return current

            (store,) = reaching
            value = self.definition(store)

            if self.copies and isinstance(value, LoadCopy):
                if not self.copy_is_safe(index, store, value.slot):
                    return current
                if value.slot in chain:
                    return load
                chain.add(value.slot)
                current = value
            elif self.constants and value.is_const():
                return Int(value.evaluate())
            else:
                return current

    def visit_stmt(self, index: int, stmt: Stmt) -> Stmt:
        match stmt:
            case Store():
                return replace(stmt, expr=self.definition(index))
            case ExprStmt(expr) | Print(expr) | JumpIfZero(expr, _):
                return replace(stmt, expr=self.visit(index, expr))
            case _:
                return stmt

    def rebuild(self) -> list[Stmt]:
        """Rewrite the graph payloads and return them in order"""
        cfg = self.rdefs.cfg
        for index, stmt in enumerate(cfg):
            cfg[index] = self.visit_stmt(index, stmt)
        return list(cfg)


# # # # # # # # # # # # # #
# Data Flow Optimizations #


class DataFlow:
    """Reaching definitions followed by propagation, over a statement list"""

    def __init__(
        self,
        *,
        copy_propagation: bool = True,
        constant_propagation: bool = True,
        cfg_dir: Optional[Path] = None,
    ):
        self.copy_propagation = copy_propagation
        self.constant_propagation = constant_propagation
        # where to save the CFG as a Graphviz source
        self.cfg_dir = cfg_dir

    def analyze(self, stmts: Iterable[Stmt]) -> ReachingDefinitions:
        return ReachingDefinitions(build_cfg(stmts))

    def save_cfg(self, rdefs: ReachingDefinitions, name: str) -> Path:
        """Save the CFG, annotated with IN and OUT, as a Graphviz source file"""

        def label(index: int) -> str:
            inp = ",".join(str(d) for d in sorted(rdefs.in_set(index)))
            out = ",".join(str(d) for d in sorted(rdefs.out_set(index)))
            return f"{rdefs.cfg[index]}\nin={inp} out={out}"

        positions: DirectedGraph[int] = DirectedGraph()
        for index in range(len(rdefs.cfg)):
            positions.add(index)
        for tail, head in rdefs.cfg.edges():
            positions.add_edge(tail, head)

        graph = positions.digraph(name, label=label)
        return Path(graph.save(directory=self.cfg_dir))

    def run(
        self,
        stmts: Iterable[Stmt],
        buf: Optional[TextIO] = None,
        *,
        trace: bool = True,
        name: str = "cfg",
    ) -> list[Stmt]:
        """
        Optimize 'stmts'. With 'trace', the reaching definitions of each
        statement are written to 'buf' (or stdout).
        """
        self.rdefs = rdefs = self.analyze(stmts)
        if trace:
            rdefs.show(buf)
        if self.cfg_dir is not None:
            self.save_cfg(rdefs, name)

        propagation = Propagation(
            rdefs, copies=self.copy_propagation, constants=self.constant_propagation
        )
        return propagation.rebuild()


def optimize(
    stmts: Iterable[Stmt],
    *,
    buf: Optional[TextIO] = None,
    trace: bool = True,
    copy_propagation: bool = True,
    constant_propagation: bool = True,
) -> list[Stmt]:
    """Build the CFG, solve reaching definitions and rewrite the statements."""
    opt = DataFlow(copy_propagation=copy_propagation, constant_propagation=constant_propagation)
    return opt.run(stmts, buf, trace=trace)
