from __future__ import annotations

from typing import Callable, Generic, Iterator, Optional, TypeVar

from graphviz import Digraph

from .errors import EdgeOutOfRange

T = TypeVar("T")


class DirectedGraph(Generic[T]):
    """
    Append-only graph storing one payload per node. Nodes are identified by
    their index, which is never invalidated, and edges are kept in both
    directions as sets of indexes.
    """

    __slots__ = ("nodes", "_succ", "_pred")

    def __init__(self) -> None:
        self.nodes: list[T] = []
        self._succ: list[set[int]] = []
        self._pred: list[set[int]] = []

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> T:
        return self.nodes[index]

    def __setitem__(self, index: int, value: T) -> None:
        self.nodes[index] = value

    def __iter__(self) -> Iterator[T]:
        return iter(self.nodes)

    def get(self, index: int) -> Optional[T]:
        if 0 <= index < len(self.nodes):
            return self.nodes[index]
        return None

    def add(self, value: T) -> int:
        """Append a new node and return its index."""
        self.nodes.append(value)
        self._succ.append(set())
        self._pred.append(set())
        return len(self.nodes) - 1

    def _check(self, index: int) -> None:
        if not 0 <= index < len(self.nodes):
            raise EdgeOutOfRange(index, len(self.nodes))

    def add_edge(self, tail: int, head: int) -> None:
        self._check(tail)
        self._check(head)

        self._succ[tail].add(head)
        self._pred[head].add(tail)

    def edges(self) -> Iterator[tuple[int, int]]:
        for tail, heads in enumerate(self._succ):
            for head in heads:
                yield tail, head

    def succ_indexes(self, index: int) -> Iterator[int]:
        return iter(self._succ[index])

    def pred_indexes(self, index: int) -> Iterator[int]:
        return iter(self._pred[index])

    def succ(self, index: int) -> Iterator[T]:
        return (self.nodes[i] for i in self._succ[index])

    def pred(self, index: int) -> Iterator[T]:
        return (self.nodes[i] for i in self._pred[index])

    def __repr__(self) -> str:
        nodes = ", ".join(
            f"{i}: {value!r} -> {sorted(self._succ[i])}" for i, value in enumerate(self.nodes)
        )
        return f"{self.__class__.__name__}({{{nodes}}})"

    # # # # # # # #
    # GRAPHVIZ    #

    def digraph(self, name: str, label: Callable[[T], str] = str) -> Digraph:
        """
        Build a Graphviz graph with one record node per index. Multi-line
        labels are left-aligned, one line per row.
        """
        graph = Digraph(name, filename=name + ".gv", node_attr={"shape": "record"})
        for i, value in enumerate(self.nodes):
            lines = label(value).splitlines() or [""]
            text = "\\l".join(_escape(line) for line in lines)
            if len(lines) > 1:
                text += "\\l"
            graph.node(str(i), label="{" + f"{i}|{text}" + "}")
        for tail, head in sorted(self.edges()):
            graph.edge(str(tail), str(head))
        return graph


def _escape(text: str) -> str:
    """Escape characters that are special inside record labels."""
    for char in "\\{}<>|":
        text = text.replace(char, "\\" + char)
    return text
