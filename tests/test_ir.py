from concurrent.futures import ThreadPoolExecutor
import pytest
from rdopt.errors import NotConstant
from rdopt.ir import (
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
    Store,
    print_code,
    wrap,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, 0),
        (-1, -1),
        (2**63 - 1, 2**63 - 1),
        (2**63, -(2**63)),
        (2**64, 0),
        (-(2**63) - 1, 2**63 - 1),
    ],
)
def test_wrap(value, expected):
    assert wrap(value) == expected


@pytest.mark.parametrize(
    "expr, const",
    [
        (Int(3), True),
        (Add(Int(1), Mul(Int(2), Int(3))), True),
        (LoadCopy(0), False),
        (Add(Int(1), LoadCopy(-1)), False),
        (Mul(Add(Int(1), Int(2)), LoadCopy(4)), False),
    ],
)
def test_is_const(expr, const):
    assert expr.is_const() is const


@pytest.mark.parametrize(
    "expr, value",
    [
        (Int(-7), -7),
        (Add(Int(2), Mul(Int(3), Int(4))), 14),
        (Mul(Add(Int(2), Int(3)), Int(4)), 20),
        (Add(Int(2**63 - 1), Int(1)), -(2**63)),
        (Mul(Int(2**32), Int(2**32)), 0),
        (Mul(Int(-1), Int(-(2**63))), -(2**63)),
    ],
)
def test_evaluate(expr, value):
    assert expr.evaluate() == value


@pytest.mark.parametrize("a, b", [(Int(5), Int(6)), (Add(Int(1), Int(2)), Mul(Int(7), Int(8)))])
def test_evaluate_is_compositional(a, b):
    assert Add(a, b).evaluate() == wrap(a.evaluate() + b.evaluate())
    assert Mul(a, b).evaluate() == wrap(a.evaluate() * b.evaluate())


@pytest.mark.parametrize("expr", [LoadCopy(0), Add(Int(1), LoadCopy(2)), Mul(LoadCopy(-1), Int(3))])
def test_evaluate_not_constant(expr):
    with pytest.raises(NotConstant):
        expr.evaluate()


def test_structural_equality():
    assert Add(Int(1), LoadCopy(2)) == Add(Int(1), LoadCopy(2))
    assert Add(Int(1), Int(2)) != Mul(Int(1), Int(2))
    assert hash(Store(0, Int(1))) == hash(Store(0, Int(1)))
    assert Store(0, Int(1)) != Store(1, Int(1))


def test_loads():
    expr = Add(LoadCopy(2), Mul(Int(20), LoadCopy(1)))
    assert list(expr.loads()) == [2, 1]
    assert list(Int(3).loads()) == []


def test_labels_are_unique():
    first, second = Label.new(), Label.new()
    assert first != second
    assert first == Label(first.id)
    assert str(first) == f"L{first.id}"


def test_labels_are_unique_across_threads():
    with ThreadPoolExecutor(max_workers=8) as pool:
        labels = list(pool.map(lambda _: Label.new(), range(1000)))
    assert len(set(labels)) == 1000


def test_statement_properties():
    label = Label.new()
    assert Store(3, Int(1)).defines == 3
    assert Print(Int(1)).defines is None
    assert Jump(label).target == label
    assert JumpIfZero(Int(0), label).target == label
    assert LabelStmt(label).target is None
    assert not ExprStmt(Int(0)).is_jump
    assert list(JumpIfZero(LoadCopy(1), label).expressions()) == [LoadCopy(1)]
    assert list(LabelStmt(label).expressions()) == []


def test_format():
    label = Label.new()
    assert str(Store(0, Add(LoadCopy(2), Mul(Int(20), LoadCopy(1))))) == "v0 <- v2 + 20 * v1"
    assert str(ExprStmt(Mul(Add(Int(1), Int(2)), LoadCopy(-1)))) == "(1 + 2) * v-1;"
    assert str(LabelStmt(label)) == f"{label}:"
    assert str(Jump(label)) == f"jump {label}"
    assert str(JumpIfZero(LoadCopy(0), label)) == f"jump_if_zero v0 -> {label}"
    assert str(Print(Int(5))) == "print 5"


def test_print_code(capsys):
    print_code([Store(0, Int(10)), Print(LoadCopy(0))])
    captured = capsys.readouterr()
    assert captured.out == "0   v0 <- 10\n1   print v0\n"
    assert captured.err == ""
