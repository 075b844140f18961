"""
cinebrew/printer.py
===================

S-expression dump of a CineBrew AST, for debugging the front end::

    (program
      (take x (+ 3 5))
      (pour (var x)))

Nodes are converted to nested lists of :class:`sexpdata.Symbol` and atoms,
then rendered with :func:`sexpdata.dumps`. Top-level statements go on their
own line; everything below them is printed inline.
"""

from __future__ import annotations

from typing import Any, List, Union

import sexpdata
from sexpdata import Symbol

from cinebrew import ast as A
from cinebrew.visitor import ExprVisitor, StmtVisitor

NIL = Symbol("nil")

Sexp = Union[List[Any], Symbol, str, int]


class SexpBuilder(ExprVisitor, StmtVisitor):
    """AST -> nested lists."""

    # ── Statements ───────────────────────────────────────────────────────

    def visit_declaration(self, node: A.Declaration) -> Sexp:
        return [Symbol("take"), Symbol(node.name), self.visit_expr(node.initializer)]

    def visit_assignment(self, node: A.Assignment) -> Sexp:
        return [Symbol("set!"), Symbol(node.name), self.visit_expr(node.value)]

    def visit_expression_stmt(self, node: A.ExpressionStmt) -> Sexp:
        return [Symbol("expr"), self.visit_expr(node.expression)]

    def visit_print(self, node: A.Print) -> Sexp:
        return [Symbol("pour"), self.visit_expr(node.expression)]

    def visit_if(self, node: A.If) -> Sexp:
        else_branch = self.visit_block(node.else_branch) if node.else_branch is not None else NIL
        return [
            Symbol("if"),
            self.visit_expr(node.condition),
            self.visit_block(node.then_branch),
            else_branch,
        ]

    def visit_loop(self, node: A.Loop) -> Sexp:
        return [Symbol("loop"), self.visit_expr(node.condition), self.visit_block(node.body)]

    def visit_break(self, node: A.Break) -> Sexp:
        return [Symbol("break")]

    def visit_continue(self, node: A.Continue) -> Sexp:
        return [Symbol("continue")]

    def visit_return(self, node: A.Return) -> Sexp:
        if node.value is None:
            return [Symbol("shot")]
        return [Symbol("shot"), self.visit_expr(node.value)]

    def visit_block(self, node: A.Block) -> Sexp:
        return [Symbol("block")] + [self.visit_stmt(s) for s in node.statements]

    def visit_function(self, node: A.Function) -> Sexp:
        return [
            Symbol("scene"),
            Symbol(node.name),
            [Symbol(p) for p in node.params],
            self.visit_block(node.body),
        ]

    # ── Expressions ──────────────────────────────────────────────────────

    def visit_literal(self, node: A.Literal) -> Sexp:
        if node.kind is A.LiteralKind.NUMBER:
            return int(node.value)
        if node.kind is A.LiteralKind.BOOLEAN:
            return Symbol(node.value)
        return node.value

    def visit_variable(self, node: A.Variable) -> Sexp:
        return [Symbol("var"), Symbol(node.name)]

    def visit_binary(self, node: A.Binary) -> Sexp:
        return [Symbol(node.op.value), self.visit_expr(node.left), self.visit_expr(node.right)]

    def visit_unary(self, node: A.Unary) -> Sexp:
        return [Symbol(node.op.value), self.visit_expr(node.operand)]

    def visit_call(self, node: A.Call) -> Sexp:
        return [Symbol("call"), Symbol(node.callee)] + [self.visit_expr(a) for a in node.arguments]


def to_sexp(node: Union[A.Program, A.Stmt, A.Expr]) -> Sexp:
    builder = SexpBuilder()
    if isinstance(node, A.Program):
        return [Symbol("program")] + [builder.visit_stmt(s) for s in node.statements]
    if isinstance(node, (A.Literal, A.Variable, A.Binary, A.Unary, A.Call)):
        return builder.visit_expr(node)
    return builder.visit_stmt(node)


def dump_program(program: A.Program, indent: int = 2) -> str:
    """Render *program* with one top-level statement per line."""
    if not program.statements:
        return "(program)"
    builder = SexpBuilder()
    pad = " " * indent
    body = "\n".join(pad + sexpdata.dumps(builder.visit_stmt(s)) for s in program.statements)
    return f"(program\n{body})"
