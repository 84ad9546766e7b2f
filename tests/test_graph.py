import pytest
from rdopt.errors import EdgeOutOfRange
from rdopt.graph import DirectedGraph


@pytest.fixture
def diamond():
    graph = DirectedGraph()
    a = graph.add(30)
    b = graph.add(10)
    c = graph.add(25)
    d = graph.add(29)
    graph.add_edge(a, b)
    graph.add_edge(a, c)
    graph.add_edge(b, c)
    graph.add_edge(c, d)
    return graph


def test_add():
    graph = DirectedGraph()
    assert graph.add(3) == 0
    assert graph.add(4) == 1

    assert len(graph) == 2
    assert graph[0] == 3
    assert list(graph.succ_indexes(0)) == []
    assert list(graph.pred_indexes(1)) == []


def test_pred(diamond):
    assert sorted(diamond.pred(2)) == [10, 30]
    assert sorted(diamond.pred_indexes(2)) == [0, 1]
    assert list(diamond.pred_indexes(0)) == []


def test_succ(diamond):
    assert sorted(diamond.succ(0)) == [10, 25]
    assert sorted(diamond.succ_indexes(0)) == [1, 2]
    assert list(diamond.succ_indexes(3)) == []


def test_pred_is_inverse_of_succ(diamond):
    for tail, head in diamond.edges():
        assert tail in set(diamond.pred_indexes(head))
    assert sorted(diamond.edges()) == [(0, 1), (0, 2), (1, 2), (2, 3)]


def test_duplicate_edges_collapse(diamond):
    diamond.add_edge(0, 1)
    diamond.add_edge(0, 1)
    assert sorted(diamond.succ_indexes(0)) == [1, 2]
    assert sorted(diamond.pred_indexes(1)) == [0]


@pytest.mark.parametrize("tail, head", [(0, 4), (4, 0), (-1, 0), (0, 100)])
def test_edge_out_of_range(diamond, tail, head):
    with pytest.raises(EdgeOutOfRange):
        diamond.add_edge(tail, head)
    # also an IndexError
    with pytest.raises(IndexError):
        diamond.add_edge(tail, head)


def test_payload_access(diamond):
    diamond[1] = 11
    assert diamond[1] == 11
    assert list(diamond) == [30, 11, 25, 29]
    assert diamond.get(3) == 29
    assert diamond.get(4) is None
    assert diamond.get(-1) is None


def test_digraph(diamond):
    graph = diamond.digraph("diamond", label=lambda n: f"value {n}\n<{n}>")
    source = graph.source

    assert graph.filename == "diamond.gv"
    for edge in ("0 -> 1", "0 -> 2", "1 -> 2", "2 -> 3"):
        assert edge in source
    # record characters are escaped
    assert "\\<30\\>" in source
