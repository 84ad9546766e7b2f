from pathlib import Path
import pytest
from rdopt import __version__
from rdopt.compiler import main
from rdopt.errors import clear_errors, error, errors_reported, subscribe_errors
from rdopt.examples import EXAMPLES, Example
from rdopt.ir import ExprStmt, Int, Jump, Label


def resolve_expected(test_name):
    expected_file = test_name + ".out"

    # get current dir
    current_dir = Path(__file__).parent.absolute()

    # get expected test file real path
    expected_path = current_dir / Path("in-out") / Path(expected_file)
    assert expected_path.exists()

    return expected_path


@pytest.mark.parametrize(
    "test_name",
    [
        "argument",
        "constant-fold",
        "copy-blocked",
        "copy-chain",
        "copy-safe",
        "overflow",
        "redundant-store",
    ],
)
def test_example(test_name, capsys):
    expected_path = resolve_expected(test_name)

    status = main([test_name])
    captured = capsys.readouterr()
    with open(expected_path) as f_ex:
        expect = f_ex.read()
    assert status == 0
    assert captured.out == expect
    assert captured.err == ""


def test_no_opt(capsys):
    with open(resolve_expected("copy-safe-noopt")) as f_ex:
        expect = f_ex.read()

    assert main(["copy-safe", "-O"]) == 0
    assert capsys.readouterr().out == expect


def test_all_examples(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    for name in EXAMPLES:
        assert f"== {name} ==" in out


def test_list(capsys):
    assert main(["--list"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == len(EXAMPLES)
    assert lines[0].split()[0] == "redundant-store"


def test_unknown_example(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["no-such-example"])
    assert exc.value.code == 2
    assert "unknown example 'no-such-example'" in capsys.readouterr().err


def test_verbose(capsys):
    assert main(["copy-safe", "-v"]) == 0
    captured = capsys.readouterr()

    assert "Reaching definitions for copy-safe:" in captured.err
    assert "2   v1 <- v0        in=1 out=1,2" in captured.err.splitlines()
    assert "default = 12, optimized = 10" in captured.err
    assert "copy-safe: printed 1 value(s)" in captured.err
    assert "in=" not in captured.out


def test_no_run(capsys):
    assert main(["countdown", "-n"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "== countdown =="
    assert lines[-1] == "8   print 3"


def test_insts(capsys):
    assert main(["copy-safe", "-i", "-n"]) == 0
    out = capsys.readouterr().out
    assert "VM code: --------------" in out
    assert "0   INT 10" in out
    assert "9   PRINT" in out


def test_blocks(capsys):
    assert main(["loop", "-b", "-n"]) == 0
    out = capsys.readouterr().out
    assert "Basic blocks: ---------" in out
    assert "v1 <- 50" in out


def test_cfg(tmp_path, capsys):
    assert main(["loop", "-n", "-c", "-o", str(tmp_path)]) == 0
    assert "Saved the CFG" in capsys.readouterr().err

    cfg_path = tmp_path / "loop.gv"
    assert cfg_path.exists()
    source = cfg_path.read_text()
    assert "in=0,4 out=0,4" in source
    assert "1 -> 5" in source


@pytest.mark.parametrize(
    "build, message",
    [
        (lambda: [Jump(Label.new())], "is not defined"),
        (lambda: [ExprStmt(Int(1))] * 501, "stack overflow"),
    ],
)
def test_errors(build, message, monkeypatch, capsys):
    monkeypatch.setitem(EXAMPLES, "broken", Example("broken", "", build, {}))

    assert main(["broken", "copy-safe"]) == 1
    captured = capsys.readouterr()
    errors = captured.err.splitlines()

    assert errors[0].startswith("broken: ")
    assert message in errors[0]
    assert errors[-1] == "1 error(s) encountered."
    # later examples still run
    assert "== copy-safe ==" in captured.out


def test_error_subscription():
    clear_errors()
    errs = []
    with subscribe_errors(errs.append):
        error("first")
        error("second", "prog")
    error("unseen")

    assert errs == ["first", "prog: second"]
    assert errors_reported() == 3
    clear_errors()
    assert errors_reported() == 0


def test_version(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    assert capsys.readouterr().out == f"rdopt {__version__}\n"


def test_blocks_graph(tmp_path, capsys):
    assert main(["countdown", "-b", "-c", "-n", "-o", str(tmp_path)]) == 0
    assert "Saved the basic blocks" in capsys.readouterr().err

    blocks_path = tmp_path / "countdown-blocks.gv"
    assert blocks_path.exists()
    assert (tmp_path / "countdown.gv").exists()
    assert "print v1" in blocks_path.read_text()
