#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cinebrew/visitor.py
===================

Visitor infrastructure for CineBrew AST traversal.

Provides:
- ``ExprVisitor``: one abstract ``visit_X`` per expression node
- ``StmtVisitor``: one abstract ``visit_X`` per statement node

Every method is abstract, so a visitor that forgets a node kind fails at
instantiation instead of silently skipping nodes at run time.
"""

from __future__ import annotations

import abc
from typing import Any

from cinebrew import ast as A

__all__ = [
    "ExprVisitor",
    "StmtVisitor",
]


class ExprVisitor(abc.ABC):
    """Exhaustive visitor over the expression family."""

    def visit_expr(self, node: A.Expr) -> Any:
        """Dispatch to the appropriate visit method."""
        return node.accept(self)

    @abc.abstractmethod
    def visit_literal(self, node: A.Literal) -> Any: ...

    @abc.abstractmethod
    def visit_variable(self, node: A.Variable) -> Any: ...

    @abc.abstractmethod
    def visit_binary(self, node: A.Binary) -> Any: ...

    @abc.abstractmethod
    def visit_unary(self, node: A.Unary) -> Any: ...

    @abc.abstractmethod
    def visit_call(self, node: A.Call) -> Any: ...


class StmtVisitor(abc.ABC):
    """Exhaustive visitor over the statement family."""

    def visit_stmt(self, node: A.Stmt) -> Any:
        """Dispatch to the appropriate visit method."""
        return node.accept(self)

    @abc.abstractmethod
    def visit_declaration(self, node: A.Declaration) -> Any: ...

    @abc.abstractmethod
    def visit_assignment(self, node: A.Assignment) -> Any: ...

    @abc.abstractmethod
    def visit_expression_stmt(self, node: A.ExpressionStmt) -> Any: ...

    @abc.abstractmethod
    def visit_print(self, node: A.Print) -> Any: ...

    @abc.abstractmethod
    def visit_if(self, node: A.If) -> Any: ...

    @abc.abstractmethod
    def visit_loop(self, node: A.Loop) -> Any: ...

    @abc.abstractmethod
    def visit_break(self, node: A.Break) -> Any: ...

    @abc.abstractmethod
    def visit_continue(self, node: A.Continue) -> Any: ...

    @abc.abstractmethod
    def visit_return(self, node: A.Return) -> Any: ...

    @abc.abstractmethod
    def visit_block(self, node: A.Block) -> Any: ...

    @abc.abstractmethod
    def visit_function(self, node: A.Function) -> Any: ...
