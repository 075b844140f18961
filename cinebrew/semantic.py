"""
CineBrew Semantic Analyzer

Checks a parsed program before code generation:
1. Name resolution - every read, assignment and call refers to a declared name
2. Kind checking - variables are not called, functions are not read
3. Arity checking - calls match the built-in registry or the declaring SCENE
4. Diagnostic accumulation - every error is collected; analysis never stops early

There is one flat, global name table. Blocks do not open scopes and names
cannot be shadowed. The only names visible outside that table are the
parameters of the function whose body is being checked; they can be read
but not assigned or redeclared.

Two-phase analysis:
- Phase 1 (resolve): pre-declare every top-level SCENE with its parameter
  count, so calls may precede definitions.
- Phase 2 (validate): walk every statement and expression in order.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from cinebrew import ast as A
from cinebrew.builtins import BuiltinFunction, BuiltinRegistry
from cinebrew.errors import (
    ArityMismatchError,
    CinebrewErrorCodes,
    Diagnostic,
    DiagnosticCollector,
    RedefinedSymbolError,
    SemanticError,
    SourceSpan,
    SymbolKindError,
    UndefinedSymbolError,
)
from cinebrew.visitor import ExprVisitor, StmtVisitor

logger = logging.getLogger(__name__)


# ============================================================================
# PART 1: SYMBOLS
# ============================================================================


class SymbolKind(Enum):
    VARIABLE = "variable"
    FUNCTION = "function"


@dataclass(frozen=True, slots=True)
class Symbol:
    """A declared name in the global table."""
    name: str
    kind: SymbolKind
    line: int
    param_count: int = 0


class SymbolTable:
    """
    Flat global name table.

    ``declare`` never overwrites: the first declaration of a name wins and
    the existing symbol is returned so the caller can report the clash.
    """

    def __init__(self) -> None:
        self._symbols: Dict[str, Symbol] = {}

    def declare(self, symbol: Symbol) -> Optional[Symbol]:
        existing = self._symbols.get(symbol.name)
        if existing is None:
            self._symbols[symbol.name] = symbol
        return existing

    def lookup(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def variables(self) -> List[Symbol]:
        return [s for s in self._symbols.values() if s.kind is SymbolKind.VARIABLE]

    def functions(self) -> List[Symbol]:
        return [s for s in self._symbols.values() if s.kind is SymbolKind.FUNCTION]

    def __contains__(self, name: object) -> bool:
        return name in self._symbols

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())

    def __len__(self) -> int:
        return len(self._symbols)


# ============================================================================
# PART 2: SEMANTIC ANALYZER
# ============================================================================


class SemanticAnalyzer(ExprVisitor, StmtVisitor):
    """
    Semantic analyzer for CineBrew programs.

    Break, continue and return are accepted anywhere; loop and function
    context is not verified.
    """

    def __init__(self, builtins: Optional[Mapping[str, BuiltinFunction]] = None) -> None:
        self._builtins = builtins if builtins is not None else BuiltinRegistry.default()
        self._symbols = SymbolTable()
        self._diagnostics = DiagnosticCollector()
        # (function line, parameter names) of the body being checked
        self._params: Optional[Tuple[int, Tuple[str, ...]]] = None

    def analyze(self, program: A.Program) -> SemanticResult:
        self._symbols = SymbolTable()
        self._diagnostics = DiagnosticCollector()
        self._params = None

        self._phase1_resolve(program)
        self._phase2_validate(program)

        if self._diagnostics.has_errors():
            logger.debug("semantic analysis found %d error(s)", self._diagnostics.error_count())
        return SemanticResult(
            program=program,
            symbols=self._symbols,
            diagnostics=self._diagnostics.diagnostics,
            has_errors=self._diagnostics.has_errors(),
        )

    # ========================================================================
    # Phases
    # ========================================================================

    def _phase1_resolve(self, program: A.Program) -> None:
        for func in program.functions():
            self._declare(func.name, SymbolKind.FUNCTION, func.line, func.arity)

    def _phase2_validate(self, program: A.Program) -> None:
        for stmt in program.statements:
            self.visit_stmt(stmt)

    # ========================================================================
    # Helpers
    # ========================================================================

    def _report(self, error: SemanticError) -> None:
        self._diagnostics.report_error(error)

    def _declare(self, name: str, kind: SymbolKind, line: int, param_count: int = 0) -> None:
        existing = self._symbols.declare(Symbol(name, kind, line, param_count))
        if existing is not None:
            self._report(RedefinedSymbolError(name, existing.line, span=SourceSpan(line=line)))

    def _resolve(self, name: str, expected: SymbolKind, line: int) -> Optional[Symbol]:
        symbol = self._symbols.lookup(name)
        if symbol is None:
            self._report(UndefinedSymbolError(name, expected.value, span=SourceSpan(line=line)))
            return None
        if symbol.kind is not expected:
            self._report(SymbolKindError(
                name, symbol.kind.value, expected.value, span=SourceSpan(line=line)
            ))
            return None
        return symbol

    def _is_parameter(self, name: str) -> bool:
        return self._params is not None and name in self._params[1]

    # ========================================================================
    # Statements
    # ========================================================================

    def visit_declaration(self, node: A.Declaration) -> None:
        self.visit_expr(node.initializer)
        if self._is_parameter(node.name):
            self._report(RedefinedSymbolError(
                node.name, self._params[0], span=SourceSpan(line=node.line)
            ))
            return
        self._declare(node.name, SymbolKind.VARIABLE, node.line)

    def visit_assignment(self, node: A.Assignment) -> None:
        if self._is_parameter(node.name):
            self._report(SemanticError(
                f"Cannot assign to parameter '{node.name}'",
                code=CinebrewErrorCodes.PARAMETER_ASSIGNMENT,
                span=SourceSpan(line=node.line),
            ))
        else:
            self._resolve(node.name, SymbolKind.VARIABLE, node.line)
        self.visit_expr(node.value)

    def visit_expression_stmt(self, node: A.ExpressionStmt) -> None:
        self.visit_expr(node.expression)

    def visit_print(self, node: A.Print) -> None:
        self.visit_expr(node.expression)

    def visit_if(self, node: A.If) -> None:
        self.visit_expr(node.condition)
        self.visit_block(node.then_branch)
        if node.else_branch is not None:
            self.visit_block(node.else_branch)

    def visit_loop(self, node: A.Loop) -> None:
        self.visit_expr(node.condition)
        self.visit_block(node.body)

    def visit_break(self, node: A.Break) -> None:
        pass

    def visit_continue(self, node: A.Continue) -> None:
        pass

    def visit_return(self, node: A.Return) -> None:
        if node.value is not None:
            self.visit_expr(node.value)

    def visit_block(self, node: A.Block) -> None:
        for stmt in node.statements:
            self.visit_stmt(stmt)

    def visit_function(self, node: A.Function) -> None:
        seen: Dict[str, int] = {}
        for param in node.params:
            if param in seen:
                self._report(RedefinedSymbolError(param, node.line, span=SourceSpan(line=node.line)))
            seen[param] = node.line

        saved = self._params
        self._params = (node.line, node.params)
        try:
            self.visit_block(node.body)
        finally:
            self._params = saved

    # ========================================================================
    # Expressions
    # ========================================================================

    def visit_literal(self, node: A.Literal) -> None:
        pass

    def visit_variable(self, node: A.Variable) -> None:
        if not self._is_parameter(node.name):
            self._resolve(node.name, SymbolKind.VARIABLE, node.line)

    def visit_binary(self, node: A.Binary) -> None:
        self.visit_expr(node.left)
        self.visit_expr(node.right)

    def visit_unary(self, node: A.Unary) -> None:
        self.visit_expr(node.operand)

    def visit_call(self, node: A.Call) -> None:
        span = SourceSpan(line=node.line)
        argc = len(node.arguments)

        builtin = self._builtins.get(node.callee)
        if builtin is not None:
            if argc != builtin.arity:
                self._report(ArityMismatchError(node.callee, builtin.arity, argc, builtin=True, span=span))
        else:
            symbol = self._resolve(node.callee, SymbolKind.FUNCTION, node.line)
            if symbol is not None and argc != symbol.param_count:
                self._report(ArityMismatchError(node.callee, symbol.param_count, argc, span=span))

        for arg in node.arguments:
            self.visit_expr(arg)


# ============================================================================
# PART 3: RESULTS AND ENTRY POINTS
# ============================================================================


@dataclass(frozen=True)
class SemanticResult:
    """
    Result of semantic analysis.
    """
    program: A.Program
    symbols: SymbolTable
    diagnostics: List[Diagnostic]
    has_errors: bool

    @property
    def messages(self) -> List[str]:
        """Error messages in report order, each prefixed with its source line."""
        return [f"Line {d.line}: {d.message}" for d in self.diagnostics]

    def format_diagnostics(self, *, format: str = "gcc") -> str:
        """
        Format all diagnostics as a string.

        Args:
            format: Output format - "gcc" for GCC-style, "json" for JSON
        """
        if format == "json":
            return json.dumps([d.to_dict() for d in self.diagnostics], indent=2)
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)


def analyze(
    program: A.Program,
    builtins: Optional[Mapping[str, BuiltinFunction]] = None,
) -> SemanticResult:
    """
    Perform semantic analysis on a parsed program.

    Args:
        program: The parsed program AST
        builtins: Built-in registry used for call resolution; the standard
            registry when omitted

    Returns:
        SemanticResult containing the program, symbol table, and diagnostics
    """
    return SemanticAnalyzer(builtins).analyze(program)
