"""
cinebrew/vm.py
==============

Stack-based virtual machine for CineBrew bytecode.

Execution happens in two phases:

* **preprocess** scans the program once and records the address of every
  ``name:`` marker in the label table;
* **run** resets the operand stack, variable store, call stack and program
  counter, then fetches and dispatches instructions until the counter runs
  off the end, a ``HALT`` executes, or ``RET`` executes with no active frame.

Failure semantics
-----------------
Popping an empty operand stack raises :class:`StackUnderflowError` and
aborts the run. Every other anomaly (undefined label, undefined variable,
unknown opcode, division by zero, bad argument index, non-numeric PUSH)
is logged through :mod:`logging` and replaced by a safe default so the
program keeps going.

This module provides:

* ``VirtualMachine`` – the interpreter
* ``Frame``          – one active user-function call
* ``VMConfig``       – configuration dataclass (step ceiling, call budget, tracing)
* ``RunResult``      – how and after how many instructions a run ended
"""

from __future__ import annotations

import enum
import logging
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, TextIO

from cinebrew.builtins import BuiltinFunction, BuiltinRegistry
from cinebrew.bytecode import (
    Instruction,
    Label,
    Line,
    Opcode,
    decode,
    parse_int,
    strip_quotes,
)
from cinebrew.errors import StackUnderflowError, StepLimitExceeded

logger = logging.getLogger(__name__)

EMPTY_STACK_MARKER = "[EMPTY_STACK]"


# ===================================================================== #
#  Runtime records                                                       #
# ===================================================================== #

@dataclass(frozen=True, slots=True)
class Frame:
    """
    One active user-function invocation.

    ``base`` is the stack size before the arguments were pushed, so
    argument ``n`` lives at ``stack[base + n]``.
    """
    return_address: int
    base: int
    argc: int


class RunStatus(enum.Enum):
    COMPLETED = "completed"   # program counter ran past the last line
    HALTED = "halted"         # HALT instruction
    RETURNED = "returned"     # RET with no active frame


@dataclass(frozen=True)
class RunResult:
    status: RunStatus
    steps: int


@dataclass
class VMConfig:
    """Tuning knobs for the virtual machine."""
    max_steps: Optional[int] = None
    call_budget: int = 1000
    trace: bool = False

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.max_steps is not None and self.max_steps <= 0:
            warnings.append("max_steps must be positive")
        if self.call_budget <= 0:
            warnings.append("call_budget must be positive")
        return warnings


def _truncating_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


# ===================================================================== #
#  Virtual machine                                                       #
# ===================================================================== #

class VirtualMachine:
    """
    Label-indexed stack interpreter.

    Usage::

        vm = VirtualMachine(stdout=buffer)
        result = vm.run(["PUSH 3", "PUSH 5", "ADD", "PRINT"])
        vm.stack        # [8]
    """

    def __init__(
        self,
        builtins: Optional[Mapping[str, BuiltinFunction]] = None,
        config: Optional[VMConfig] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        self.config = config or VMConfig()
        for warning in self.config.validate():
            logger.warning("VMConfig: %s", warning)

        self._stdout = stdout
        if builtins is None:
            builtins = BuiltinRegistry.default(stdout=stdout)
        self._builtins = builtins

        # Runtime state
        self.stack: List[int] = []
        self.variables: Dict[str, int] = {}
        self.labels: Dict[str, int] = {}
        self.call_stack: List[Frame] = []
        self.pc: int = 0
        self._program: List[Line] = []
        self._stop: Optional[RunStatus] = None

        self._handlers: Dict[Opcode, Callable[[Instruction], None]] = {
            Opcode.PUSH: self._op_push,
            Opcode.ADD: self._op_add,
            Opcode.SUB: self._op_sub,
            Opcode.MUL: self._op_mul,
            Opcode.DIV: self._op_div,
            Opcode.STORE: self._op_store,
            Opcode.LOAD: self._op_load,
            Opcode.EQ: self._op_eq,
            Opcode.NE: self._op_ne,
            Opcode.GT: self._op_gt,
            Opcode.LT: self._op_lt,
            Opcode.JMP: self._op_jmp,
            Opcode.JZ: self._op_jz,
            Opcode.JNZ: self._op_jnz,
            Opcode.CALL: self._op_call,
            Opcode.LOADARG: self._op_loadarg,
            Opcode.RET: self._op_ret,
            Opcode.PRINT: self._op_print,
            Opcode.HALT: self._op_halt,
        }

    # -- State access ----------------------------------------------------
    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def running(self) -> bool:
        return self._stop is None and 0 <= self.pc < len(self._program)

    def current_frame(self) -> Optional[Frame]:
        return self.call_stack[-1] if self.call_stack else None

    # -- Loading ---------------------------------------------------------
    def load(self, program: Sequence[str]) -> None:
        """Decode *program* and build its label table."""
        self._program = decode(program)
        self._build_labels()

    def preprocess(self, program: Optional[Sequence[str]] = None) -> Dict[str, int]:
        """
        Rebuild the label table, from *program* if given, else from the
        loaded program. Returns a copy of the table.
        """
        if program is not None:
            self._program = decode(program)
        self._build_labels()
        return dict(self.labels)

    def _build_labels(self) -> None:
        self.labels = {}
        for address, line in enumerate(self._program):
            if isinstance(line, Label):
                self.labels[line.name] = address

    def reset(self) -> None:
        self.pc = 0
        self.stack = []
        self.variables = {}
        self.call_stack = []
        self._stop = None

    # -- Execution -------------------------------------------------------
    def run(self, program: Optional[Sequence[str]] = None) -> RunResult:
        """
        Execute *program* (or the loaded program) from address 0.

        Raises:
            StackUnderflowError: a pop found the operand stack empty
            StepLimitExceeded: ``config.max_steps`` instructions executed
        """
        self.preprocess(program)
        self.reset()

        limit = self.config.max_steps
        steps = 0
        while self.running:
            if limit is not None and steps >= limit:
                raise StepLimitExceeded(limit, pc=self.pc)
            self.step()
            steps += 1

        status = self._stop or RunStatus.COMPLETED
        logger.info("run finished: %s after %d instructions", status.value, steps)
        return RunResult(status=status, steps=steps)

    def step(self) -> bool:
        """Execute the instruction at ``pc``; returns whether the VM is still running."""
        if not self.running:
            return False
        line = self._program[self.pc]
        if isinstance(line, Instruction):
            self.execute(line)
        else:
            self.pc += 1
        return self.running

    def execute(self, instruction: Instruction) -> None:
        """Dispatch one decoded instruction; handlers advance ``pc`` themselves."""
        if self.config.trace:
            logger.debug("PC=%d EXEC='%s' stack=%s", self.pc, instruction, self.stack)
        handler = self._handlers.get(instruction.op) if instruction.op else None
        if handler is None:
            logger.warning("Unknown instruction '%s' at PC=%d", instruction.opcode, self.pc)
            self.pc += 1
            return
        handler(instruction)

    def call_function(self, name: str, args: Sequence[int] = ()) -> Optional[int]:
        """
        Run user function *name* to completion from outside the main run.

        The program counter and stack size are saved, the call is made as if
        ``CALL name len(args)`` had executed, and instructions are stepped
        until the callee returns or ``config.call_budget`` instructions
        have run. The saved state is then restored.

        Returns the function's result, or ``None`` if *name* has no label
        or the call did not return within the budget.
        """
        if name not in self.labels:
            return None

        saved_pc, saved_size, saved_stop = self.pc, len(self.stack), self._stop
        depth = len(self.call_stack)
        result: Optional[int] = None
        try:
            self.stack.extend(int(a) for a in args)
            self._stop = None
            self.execute(Instruction(Opcode.CALL.value, (name, str(len(args)))))

            steps = 0
            while len(self.call_stack) > depth and steps < self.config.call_budget and self.running:
                self.step()
                steps += 1

            if len(self.call_stack) == depth and len(self.stack) > saved_size:
                result = self.stack[-1]
            else:
                logger.warning(
                    "call_function('%s') did not return within %d instructions",
                    name, self.config.call_budget,
                )
        finally:
            del self.call_stack[depth:]
            self.pc = saved_pc
            del self.stack[saved_size:]
            self._stop = saved_stop
        return result

    # -- Stack helpers ---------------------------------------------------
    def push(self, value: int) -> None:
        self.stack.append(value)

    def pop(self) -> int:
        if not self.stack:
            raise StackUnderflowError(pc=self.pc)
        return self.stack.pop()

    def _jump(self, label: str) -> None:
        address = self.labels.get(label)
        if address is None:
            logger.error("Label '%s' not found at PC=%d", label, self.pc)
            self.pc += 1
            return
        self.pc = address

    def _next_instruction(self, start: int) -> int:
        """Address of the first line at or after *start* that is not a label marker."""
        i = start
        while i < len(self._program) and isinstance(self._program[i], Label):
            i += 1
        return i

    def _binary(self, fn: Callable[[int, int], int]) -> None:
        b = self.pop()
        a = self.pop()
        self.push(fn(a, b))
        self.pc += 1

    # -- Stack operations ------------------------------------------------
    def _op_push(self, ins: Instruction) -> None:
        operand = ins.operand(0)
        if operand is None:
            logger.error("PUSH requires a value at PC=%d", self.pc)
            self.pc += 1
            return

        value = parse_int(operand)
        if value is not None:
            self.push(value)
            self.pc += 1
            return

        # A non-numeric literal is only meaningful when PRINT follows it.
        literal = strip_quotes(ins.operand_text)
        address = self._next_instruction(self.pc + 1)
        following = self._program[address] if address < len(self._program) else None
        if isinstance(following, Instruction) and following.op is Opcode.PRINT:
            self.stdout.write(f"{literal}\n")
            self.pc = address + 1
            return

        logger.warning("PUSH of non-integer '%s' at PC=%d - treating as 0", operand, self.pc)
        self.push(0)
        self.pc += 1

    # -- Arithmetic ------------------------------------------------------
    def _op_add(self, ins: Instruction) -> None:
        self._binary(lambda a, b: a + b)

    def _op_sub(self, ins: Instruction) -> None:
        self._binary(lambda a, b: a - b)

    def _op_mul(self, ins: Instruction) -> None:
        self._binary(lambda a, b: a * b)

    def _op_div(self, ins: Instruction) -> None:
        b = self.pop()
        a = self.pop()
        if b == 0:
            logger.error("Division by zero at PC=%d", self.pc)
            self.push(0)
        else:
            self.push(_truncating_div(a, b))
        self.pc += 1

    # -- Variables -------------------------------------------------------
    def _op_store(self, ins: Instruction) -> None:
        name = ins.operand(0)
        if name is None:
            logger.error("STORE requires variable name at PC=%d", self.pc)
            self.pc += 1
            return
        self.variables[name] = self.pop()
        self.pc += 1

    def _op_load(self, ins: Instruction) -> None:
        name = ins.operand(0)
        if name is None:
            logger.error("LOAD requires variable name at PC=%d", self.pc)
            self.pc += 1
            return
        if name not in self.variables:
            logger.warning("Variable '%s' not found, using 0 at PC=%d", name, self.pc)
            self.push(0)
        else:
            self.push(self.variables[name])
        self.pc += 1

    # -- Comparisons -----------------------------------------------------
    def _op_eq(self, ins: Instruction) -> None:
        self._binary(lambda a, b: int(a == b))

    def _op_ne(self, ins: Instruction) -> None:
        self._binary(lambda a, b: int(a != b))

    def _op_gt(self, ins: Instruction) -> None:
        self._binary(lambda a, b: int(a > b))

    def _op_lt(self, ins: Instruction) -> None:
        self._binary(lambda a, b: int(a < b))

    # -- Control flow ----------------------------------------------------
    def _op_jmp(self, ins: Instruction) -> None:
        label = ins.operand(0)
        if label is None:
            logger.error("JMP requires label name at PC=%d", self.pc)
            self.pc += 1
            return
        self._jump(label)

    def _conditional_jump(self, ins: Instruction, when_zero: bool) -> None:
        label = ins.operand(0)
        if label is None:
            logger.error("%s requires label name at PC=%d", ins.opcode, self.pc)
            self.pc += 1
            return
        value = self.pop()
        if (value == 0) == when_zero:
            self._jump(label)
        else:
            self.pc += 1

    def _op_jz(self, ins: Instruction) -> None:
        self._conditional_jump(ins, when_zero=True)

    def _op_jnz(self, ins: Instruction) -> None:
        self._conditional_jump(ins, when_zero=False)

    def _op_halt(self, ins: Instruction) -> None:
        self._stop = RunStatus.HALTED

    # -- Functions -------------------------------------------------------
    def _op_call(self, ins: Instruction) -> None:
        name = ins.operand(0)
        if name is None:
            logger.error("CALL requires label name at PC=%d", self.pc)
            self.pc += 1
            return

        argc = parse_int(ins.operand(1)) if ins.operand(1) is not None else 0
        if argc is None or argc < 0:
            logger.warning("Invalid argument count '%s' at PC=%d, using 0", ins.operand(1), self.pc)
            argc = 0
        if argc > len(self.stack):
            raise StackUnderflowError(pc=self.pc)

        if name in self._builtins:
            args = self.stack[len(self.stack) - argc:]
            del self.stack[len(self.stack) - argc:]
            self.push(self._builtins[name](args))
            self.pc += 1
            return

        if name not in self.labels:
            logger.error("Label '%s' not found at PC=%d", name, self.pc)
            del self.stack[len(self.stack) - argc:]
            self.push(0)
            self.pc += 1
            return

        self.call_stack.append(Frame(return_address=self.pc + 1, base=len(self.stack) - argc, argc=argc))
        self.pc = self.labels[name]

    def _op_loadarg(self, ins: Instruction) -> None:
        index = parse_int(ins.operand(0))
        if index is None:
            logger.error("LOADARG requires argument index at PC=%d", self.pc)
            self.push(0)
            self.pc += 1
            return

        frame = self.current_frame()
        if frame is None:
            logger.warning("LOADARG called outside function at PC=%d", self.pc)
            self.push(0)
        elif not 0 <= index < frame.argc:
            logger.warning("Invalid argument index %d at PC=%d", index, self.pc)
            self.push(0)
        elif frame.base + index < len(self.stack):
            self.push(self.stack[frame.base + index])
        else:
            logger.warning("Argument position out of bounds at PC=%d", self.pc)
            self.push(0)
        self.pc += 1

    def _op_ret(self, ins: Instruction) -> None:
        if not self.call_stack:
            self._stop = RunStatus.RETURNED
            self.pc = len(self._program)
            return

        value = self.stack.pop() if self.stack else 0
        frame = self.call_stack.pop()
        del self.stack[frame.base:]
        self.push(value)
        self.pc = frame.return_address

    # -- I/O -------------------------------------------------------------
    def _op_print(self, ins: Instruction) -> None:
        if self.stack:
            self.stdout.write(f"{self.stack[-1]}\n")
        else:
            self.stdout.write(f"{EMPTY_STACK_MARKER}\n")
        self.pc += 1

    # -- Debugging -------------------------------------------------------
    def dump_stack(self) -> str:
        return "Stack: [" + ", ".join(str(v) for v in self.stack) + "]"

    def dump_variables(self) -> str:
        lines = ["Variables:"]
        lines.extend(f"  {name} = {value}" for name, value in sorted(self.variables.items()))
        return "\n".join(lines)
