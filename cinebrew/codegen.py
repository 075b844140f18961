#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cinebrew/codegen.py
===================

Code generator: validated AST -> textual bytecode (see :mod:`cinebrew.bytecode`).

Single pass, no intermediate form, no optimization.

Layout of the generated program
-------------------------------
1. **Main line**: top-level statements in source order
2. **Epilogue**: the ``HALT:`` marker followed by a ``HALT`` instruction
3. **Function bodies**: one ``name:`` entry label per SCENE, the body,
   then an implicit ``PUSH 0`` / ``RET`` fallthrough

Bodies are generated when their SCENE is visited, so label numbering
follows the source walk, but they are placed after the epilogue and the
main line can never fall into one.

Stack discipline
----------------
Every expression leaves exactly one value on the stack. Statements restore
the stack depth, except ``POUR`` (PRINT does not pop) and expression
statements (the value is left in place; the instruction set has no POP).

Labels come from per-prefix counters (``else.0``, ``end_if.0``, ``loop.0``,
``end_loop.0``...). The dot never appears in an identifier, so generated
labels cannot collide with SCENE entry labels. BREAK and CONTINUE allocate a
*fresh* ``end_loop`` / ``loop`` label rather than referring to the enclosing
loop, so their jumps target labels that are never defined and fall through at
run time.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from cinebrew import ast as A
from cinebrew.bytecode import Opcode
from cinebrew.errors import CodeGenError, SourceSpan
from cinebrew.visitor import ExprVisitor, StmtVisitor

logger = logging.getLogger(__name__)

HALT_LABEL = "HALT"

# operator -> (negate result, primitive)
_COMPARISONS: Dict[A.BinaryOp, Tuple[bool, Opcode]] = {
    A.BinaryOp.EQ: (False, Opcode.EQ),
    A.BinaryOp.GT: (False, Opcode.GT),
    A.BinaryOp.LT: (False, Opcode.LT),
    A.BinaryOp.NE: (True, Opcode.EQ),
    A.BinaryOp.GE: (True, Opcode.LT),
    A.BinaryOp.LE: (True, Opcode.GT),
}

_ARITHMETIC: Dict[A.BinaryOp, Opcode] = {
    A.BinaryOp.ADD: Opcode.ADD,
    A.BinaryOp.SUB: Opcode.SUB,
    A.BinaryOp.MUL: Opcode.MUL,
    A.BinaryOp.DIV: Opcode.DIV,
}


class LabelAllocator:
    """Per-prefix monotonically increasing label names."""

    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}

    def new(self, prefix: str) -> str:
        count = self._counters.get(prefix, 0)
        self._counters[prefix] = count + 1
        return f"{prefix}.{count}"

    def reset(self) -> None:
        self._counters.clear()


class BytecodeEmitter:
    """Append-only buffer of bytecode lines."""

    def __init__(self) -> None:
        self._lines: List[str] = []

    def emit(self, opcode: Opcode, *operands: object) -> None:
        """Emit one instruction line."""
        parts = [opcode.value] + [str(op) for op in operands]
        self._lines.append(" ".join(parts))

    def emit_label(self, name: str) -> None:
        self._lines.append(f"{name}:")

    def extend(self, other: BytecodeEmitter) -> None:
        self._lines.extend(other._lines)

    @property
    def lines(self) -> List[str]:
        return list(self._lines)


class CodeGenerator(ExprVisitor, StmtVisitor):
    """
    Lowers a :class:`~cinebrew.ast.Program` to bytecode lines.

    ``had_error`` / ``error`` follow the same contract as the lexer and
    parser; the generator only fails on nodes it cannot lower.
    """

    def __init__(self) -> None:
        self._labels = LabelAllocator()
        self._out = BytecodeEmitter()
        self._functions: List[BytecodeEmitter] = []
        self._params: Tuple[str, ...] = ()
        self.error: Optional[CodeGenError] = None

    @property
    def had_error(self) -> bool:
        return self.error is not None

    def generate(self, program: A.Program) -> List[str]:
        self._labels.reset()
        self._out = BytecodeEmitter()
        self._functions = []
        self._params = ()
        self.error = None

        try:
            for stmt in program.statements:
                self.visit_stmt(stmt)
        except CodeGenError as exc:
            self.error = exc
            logger.debug("code generation failed: %s", exc)
            return self._out.lines

        self._out.emit_label(HALT_LABEL)
        self._out.emit(Opcode.HALT)
        for body in self._functions:
            self._out.extend(body)
        return self._out.lines

    # ── Statements ───────────────────────────────────────────────────────

    def visit_declaration(self, node: A.Declaration) -> None:
        self.visit_expr(node.initializer)
        self._out.emit(Opcode.STORE, node.name)

    def visit_assignment(self, node: A.Assignment) -> None:
        self.visit_expr(node.value)
        self._out.emit(Opcode.STORE, node.name)

    def visit_expression_stmt(self, node: A.ExpressionStmt) -> None:
        self.visit_expr(node.expression)

    def visit_print(self, node: A.Print) -> None:
        self.visit_expr(node.expression)
        self._out.emit(Opcode.PRINT)

    def visit_if(self, node: A.If) -> None:
        self.visit_expr(node.condition)
        else_label = self._labels.new("else")
        end_label = self._labels.new("end_if")

        self._out.emit(Opcode.JZ, else_label)
        self.visit_block(node.then_branch)
        self._out.emit(Opcode.JMP, end_label)
        self._out.emit_label(else_label)
        if node.else_branch is not None:
            self.visit_block(node.else_branch)
        self._out.emit_label(end_label)

    def visit_loop(self, node: A.Loop) -> None:
        loop_label = self._labels.new("loop")
        end_label = self._labels.new("end_loop")

        self._out.emit_label(loop_label)
        self.visit_expr(node.condition)
        self._out.emit(Opcode.JZ, end_label)
        self.visit_block(node.body)
        self._out.emit(Opcode.JMP, loop_label)
        self._out.emit_label(end_label)

    def visit_break(self, node: A.Break) -> None:
        self._out.emit(Opcode.JMP, self._labels.new("end_loop"))

    def visit_continue(self, node: A.Continue) -> None:
        self._out.emit(Opcode.JMP, self._labels.new("loop"))

    def visit_return(self, node: A.Return) -> None:
        if node.value is not None:
            self.visit_expr(node.value)
        else:
            self._out.emit(Opcode.PUSH, 0)
        self._out.emit(Opcode.RET)

    def visit_block(self, node: A.Block) -> None:
        for stmt in node.statements:
            self.visit_stmt(stmt)

    def visit_function(self, node: A.Function) -> None:
        saved_out, saved_params = self._out, self._params
        self._out = BytecodeEmitter()
        self._params = node.params
        try:
            self._out.emit_label(node.name)
            self.visit_block(node.body)
            self._out.emit(Opcode.PUSH, 0)
            self._out.emit(Opcode.RET)
            self._functions.append(self._out)
        finally:
            self._out, self._params = saved_out, saved_params

    # ── Expressions ──────────────────────────────────────────────────────

    def visit_literal(self, node: A.Literal) -> None:
        if node.kind is A.LiteralKind.BOOLEAN:
            self._out.emit(Opcode.PUSH, 1 if node.value == "true" else 0)
        elif node.kind is A.LiteralKind.STRING:
            self._out.emit(Opcode.PUSH, f'"{node.value}"')
        else:
            self._out.emit(Opcode.PUSH, node.value)

    def visit_variable(self, node: A.Variable) -> None:
        if node.name in self._params:
            self._out.emit(Opcode.LOADARG, self._params.index(node.name))
        else:
            self._out.emit(Opcode.LOAD, node.name)

    def visit_binary(self, node: A.Binary) -> None:
        if node.op in _ARITHMETIC:
            self.visit_expr(node.left)
            self.visit_expr(node.right)
            self._out.emit(_ARITHMETIC[node.op])
            return

        if node.op not in _COMPARISONS:
            raise CodeGenError(
                f"Unknown binary operator: {node.op.value}", span=SourceSpan(line=node.line)
            )
        negate, primitive = _COMPARISONS[node.op]
        # 1 - r: the constant goes below the operands
        if negate:
            self._out.emit(Opcode.PUSH, 1)
        self.visit_expr(node.left)
        self.visit_expr(node.right)
        self._out.emit(primitive)
        if negate:
            self._out.emit(Opcode.SUB)

    def visit_unary(self, node: A.Unary) -> None:
        if node.op is A.UnaryOp.NEG:
            self._out.emit(Opcode.PUSH, 0)
        elif node.op is A.UnaryOp.NOT:
            self._out.emit(Opcode.PUSH, 1)
        else:
            raise CodeGenError(
                f"Unknown unary operator: {node.op.value}", span=SourceSpan(line=node.line)
            )
        self.visit_expr(node.operand)
        self._out.emit(Opcode.SUB)

    def visit_call(self, node: A.Call) -> None:
        for arg in node.arguments:
            self.visit_expr(arg)
        self._out.emit(Opcode.CALL, node.callee, len(node.arguments))


def generate(program: A.Program) -> Tuple[List[str], Optional[CodeGenError]]:
    generator = CodeGenerator()
    lines = generator.generate(program)
    return lines, generator.error
