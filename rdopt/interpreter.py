from __future__ import annotations

from typing import Final, Mapping, Optional, TextIO

from .code import (
    PRINT,
    AddInstr,
    CallInstr,
    Instruction,
    IntInstr,
    JumpIfZeroInstr,
    JumpInstr,
    LoadCopyInstr,
    MulInstr,
    StoreInstr,
)
from .errors import VMError
from .ir import Slot, wrap

STACK_SIZE: Final = 500


class Interpreter:
    """
    Runs the stack machine code produced by 'ir_to_insts'. Each instruction
    is dispatched to a method named after its opname, so

         code = [IntInstr(40), IntInstr(2), AddInstr(), CallInstr(PRINT)]

    executes self.run_int, self.run_int, self.run_add and self.run_call,
    printing 42.

    Variable slots start at zero, except for the pseudo-arguments given in
    'args'. Arithmetic wraps at 64 bits.
    """

    def __init__(
        self,
        *,
        args: Optional[Mapping[Slot, int]] = None,
        stack_size: int = STACK_SIZE,
        max_steps: Optional[int] = None,
        output: Optional[TextIO] = None,
        echo: bool = True,
    ):
        self.args = dict(args or {})
        self.stack_size = stack_size
        # abort after this many instructions, if set
        self.max_steps = max_steps
        # where printed values go (stdout by default)
        self.output = output
        self.echo = echo
        self._reset()

    def _reset(self) -> None:
        self.variables: dict[Slot, int] = {slot: wrap(v) for slot, v in self.args.items()}
        self.stack: list[int] = []
        # every value stored, per slot, in order
        self.stores: dict[Slot, list[int]] = {}
        # every value printed, in order
        self.printed: list[int] = []
        self.pc = 0
        self.steps = 0

    def _push(self, value: int) -> None:
        if len(self.stack) >= self.stack_size:
            raise VMError("stack overflow", self.pc - 1)
        self.stack.append(value)

    def _pop(self) -> int:
        if not self.stack:
            raise VMError("stack underflow", self.pc - 1)
        return self.stack.pop()

    def run(self, code: list[Instruction]) -> list[int]:
        """Run 'code' from the first instruction and return the printed values."""
        self._reset()
        self.code = code

        while self.pc < len(code):
            if self.max_steps is not None and self.steps >= self.max_steps:
                raise VMError(f"step limit of {self.max_steps} reached", self.pc)
            instr = code[self.pc]
            self.pc += 1
            self.steps += 1
            # get instruction runner
            executor = getattr(self, f"run_{instr.opname}", None)
            if executor is None:
                raise VMError(f"no run_{instr.opname}() method", self.pc - 1)
            executor(instr)

        return self.printed

    # # # # # # #
    # EXECUTION #

    def run_int(self, instr: IntInstr) -> None:
        self._push(wrap(instr.value))

    def run_add(self, _: AddInstr) -> None:
        right = self._pop()
        left = self._pop()
        self._push(wrap(left + right))

    def run_mul(self, _: MulInstr) -> None:
        right = self._pop()
        left = self._pop()
        self._push(wrap(left * right))

    def run_store(self, instr: StoreInstr) -> None:
        value = self._pop()
        self.variables[instr.slot] = value
        self.stores.setdefault(instr.slot, []).append(value)

    def run_load_copy(self, instr: LoadCopyInstr) -> None:
        self._push(self.variables.get(instr.slot, 0))

    def run_jump(self, instr: JumpInstr) -> None:
        self.pc = instr.target

    def run_jump_if_zero(self, instr: JumpIfZeroInstr) -> None:
        if self._pop() == 0:
            self.pc = instr.target

    def run_call(self, instr: CallInstr) -> None:
        if instr.id != PRINT:
            raise VMError(f"unknown function id: {instr.id}", self.pc - 1)
        value = self._pop()
        self.printed.append(value)
        if self.echo:
            print(value, file=self.output, flush=True)
