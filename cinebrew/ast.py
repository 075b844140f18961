"""cinebrew/ast.py – Abstract syntax of CineBrew programs.

Design invariants
-----------------
* Two closed node families: ``Expr`` (Literal, Variable, Binary, Unary,
  Call) and ``Stmt`` (Declaration, Assignment, ExpressionStmt, Print, If,
  Loop, Break, Continue, Return, Block, Function).  ``Program`` owns the
  ordered top-level statements.
* Every node is a frozen dataclass; children live in tuples, so a tree
  can never be mutated into a graph after the parser returns it.
* Every node records the source line it started on.
* Dispatch goes through ``accept(visitor)`` into the exhaustive visitor
  bases of :mod:`cinebrew.visitor`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Optional, Tuple, Union

if TYPE_CHECKING:
    from cinebrew.visitor import ExprVisitor, StmtVisitor


# ═══════════════════════════════════════════════════════════════════════════
#  §1  Operators and literal kinds
# ═══════════════════════════════════════════════════════════════════════════

class LiteralKind(Enum):
    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()


class BinaryOp(Enum):
    """Binary operators; the value is the source spelling."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    EQ = "=="
    NE = "!="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="

    @property
    def is_comparison(self) -> bool:
        return self in _COMPARISONS


_COMPARISONS = frozenset({BinaryOp.EQ, BinaryOp.NE, BinaryOp.GT,
                          BinaryOp.GE, BinaryOp.LT, BinaryOp.LE})


class UnaryOp(Enum):
    NEG = "-"
    NOT = "!"


# ═══════════════════════════════════════════════════════════════════════════
#  §2  Expressions
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Literal:
    """``value`` is the literal text: digits, string contents, or ``true``/``false``."""

    value: str
    kind: LiteralKind
    line: int = 0

    def accept(self, visitor: ExprVisitor) -> Any:
        return visitor.visit_literal(self)


@dataclass(frozen=True, slots=True)
class Variable:
    name: str
    line: int = 0

    def accept(self, visitor: ExprVisitor) -> Any:
        return visitor.visit_variable(self)


@dataclass(frozen=True, slots=True)
class Binary:
    left: Expr
    op: BinaryOp
    right: Expr
    line: int = 0

    def accept(self, visitor: ExprVisitor) -> Any:
        return visitor.visit_binary(self)


@dataclass(frozen=True, slots=True)
class Unary:
    op: UnaryOp
    operand: Expr
    line: int = 0

    def accept(self, visitor: ExprVisitor) -> Any:
        return visitor.visit_unary(self)


@dataclass(frozen=True, slots=True)
class Call:
    callee: str
    arguments: Tuple[Expr, ...] = ()
    line: int = 0

    def accept(self, visitor: ExprVisitor) -> Any:
        return visitor.visit_call(self)


Expr = Union[Literal, Variable, Binary, Unary, Call]


# ═══════════════════════════════════════════════════════════════════════════
#  §3  Statements
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Declaration:
    """``TAKE name = initializer;``"""

    name: str
    initializer: Expr
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_declaration(self)


@dataclass(frozen=True, slots=True)
class Assignment:
    name: str
    value: Expr
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_assignment(self)


@dataclass(frozen=True, slots=True)
class ExpressionStmt:
    expression: Expr
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_expression_stmt(self)


@dataclass(frozen=True, slots=True)
class Print:
    """``POUR expression;``"""

    expression: Expr
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_print(self)


@dataclass(frozen=True, slots=True)
class Block:
    statements: Tuple[Stmt, ...] = ()
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_block(self)


@dataclass(frozen=True, slots=True)
class If:
    condition: Expr
    then_branch: Block
    else_branch: Optional[Block] = None
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_if(self)


@dataclass(frozen=True, slots=True)
class Loop:
    """``LOOP condition { body }``, the condition is re-checked every iteration."""

    condition: Expr
    body: Block
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_loop(self)


@dataclass(frozen=True, slots=True)
class Break:
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_break(self)


@dataclass(frozen=True, slots=True)
class Continue:
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_continue(self)


@dataclass(frozen=True, slots=True)
class Return:
    """``SHOT [value];``"""

    value: Optional[Expr] = None
    line: int = 0

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_return(self)


@dataclass(frozen=True, slots=True)
class Function:
    """``SCENE name(params) { body }``"""

    name: str
    params: Tuple[str, ...]
    body: Block
    line: int = 0

    @property
    def arity(self) -> int:
        return len(self.params)

    def accept(self, visitor: StmtVisitor) -> Any:
        return visitor.visit_function(self)


Stmt = Union[
    Declaration, Assignment, ExpressionStmt, Print, If, Loop,
    Break, Continue, Return, Block, Function,
]


@dataclass(frozen=True, slots=True)
class Program:
    statements: Tuple[Stmt, ...] = ()

    def functions(self) -> Tuple[Function, ...]:
        """Top-level function definitions, in source order."""
        return tuple(s for s in self.statements if isinstance(s, Function))
