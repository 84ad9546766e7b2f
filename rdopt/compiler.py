#!/usr/bin/env python3

# ============================================================
# rdopt -- reaching definitions optimizer
#
# This is the main program for the optimizer, which builds
# the example programs, optimizes, prints and runs them.
# ============================================================

from __future__ import annotations

import argparse
import sys
from functools import partial
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence

from result import Err, Ok

from . import __version__
from .analysis import DataFlow
from .block import BlockGraph, segment_into_blocks
from .code import ir_to_insts, print_insts
from .common import attempt
from .errors import (
    StructuralError,
    VMError,
    clear_errors,
    error,
    errors_reported,
    subscribe_errors,
)
from .examples import EXAMPLES, Example
from .interpreter import Interpreter
from .ir import Stmt, print_code


class Args(Protocol):
    examples: list[str]
    list: bool
    no_run: bool
    no_opt: bool
    blocks: bool
    insts: bool
    cfg: bool
    output: Path
    verbose: bool


def printerr(*args: Any) -> None:
    print(*args, file=sys.stderr)


class Compiler:
    """This object encapsulates the optimizer and serves as a
    facade interface to the analysis, the lowering and the VM.
    """

    def __init__(self, cl_args: Args):
        self.args = cl_args

    def _blocks(self, example: Example, code: list[Stmt]) -> None:
        blocks = segment_into_blocks(code)
        print("Basic blocks: ---------")
        for block in blocks:
            print(block.format())
        print("-----------------------")
        if self.args.cfg:
            path = BlockGraph(example.name + "-blocks").save(blocks, self.args.output)
            printerr(f"Saved the basic blocks to {path}.")

    def _opt(self, example: Example, code: list[Stmt]) -> list[Stmt]:
        cfg_dir = self.args.output if self.args.cfg else None
        opt = DataFlow(cfg_dir=cfg_dir)
        if self.args.verbose:
            printerr(f"Reaching definitions for {example.name}:")
        optcode = opt.run(code, sys.stderr, trace=self.args.verbose, name=example.name)
        if self.args.cfg:
            printerr(f"Saved the CFG to {self.args.output / (example.name + '.gv')}.")
        return optcode

    def _do_compile(self, example: Example) -> list[int]:
        """Optimizes and runs a single example, returning what it printed."""
        code = example.build()
        if self.args.blocks:
            self._blocks(example, code)

        if not self.args.no_opt:
            gencount = len(ir_to_insts(code))
            code = self._opt(example, code)
        print_code(code)

        insts = ir_to_insts(code)
        if self.args.insts:
            print("VM code: --------------")
            print_insts(insts)
            print("-----------------------")
        if self.args.verbose and not self.args.no_opt:
            printerr(f"default = {gencount}, optimized = {len(insts)}")

        if self.args.no_run:
            return []
        vm = Interpreter(args=example.args)
        return vm.run(insts)

    def compile(self) -> int:
        """Runs every selected example, returns the exit status"""
        names = self.args.examples or list(EXAMPLES)
        clear_errors()

        with subscribe_errors(printerr):
            for name in names:
                example = EXAMPLES[name]
                print(f"== {name} ==")
                result = attempt(
                    partial(self._do_compile, example), ErrorType=(StructuralError, VMError)
                )
                match result:
                    case Ok(printed):
                        if self.args.verbose and not self.args.no_run:
                            printerr(f"{name}: printed {len(printed)} value(s)")
                    case Err(err):
                        error(err, name)

            if n := errors_reported():
                printerr(f"{n} error(s) encountered.")
                return 1
        return 0


def list_examples() -> None:
    width = max(len(name) for name in EXAMPLES)
    for example in EXAMPLES.values():
        print(f"{example.name:<{width}}  {example.description}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rdopt", description="constant and copy propagation over reaching definitions"
    )
    parser.add_argument(
        "examples", nargs="*", help="examples to run (default: all of them)", metavar="EXAMPLE"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-l", "--list", help="list the examples and exit", action="store_true")
    parser.add_argument("-n", "--no-run", help="do not execute the programs", action="store_true")
    parser.add_argument("-O", "--no-opt", help="do not optimize the programs", action="store_true")
    parser.add_argument(
        "-b", "--blocks", help="print the basic blocks of each program", action="store_true"
    )
    parser.add_argument("-i", "--insts", help="print the lowered VM code", action="store_true")
    parser.add_argument(
        "-c",
        "--cfg",
        help="save the CFG (and with -b, the basic blocks) of each program to OUTPUT",
        action="store_true",
    )
    parser.add_argument(
        "-o", "--output", help="directory for the CFG files", type=Path, default=Path(".")
    )
    parser.add_argument(
        "-v",
        "--verbose",
        help="print in the stderr the reaching definitions and instruction counts",
        action="store_true",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        list_examples()
        return 0
    for name in args.examples:
        if name not in EXAMPLES:
            parser.error(f"unknown example {name!r} (see --list)")

    return Compiler(args).compile()


if __name__ == "__main__":
    sys.exit(main())
