"""
cinebrew/compiler.py
====================

Stage orchestrator: source text -> bytecode.

Runs lexer, parser, semantic analyzer and code generator in order and stops
at the first stage that reports a problem. Whatever stage failed, the result
carries its diagnostics (tagged with that stage) and an empty bytecode list.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Mapping, Optional

from cinebrew import ast as A
from cinebrew.builtins import BuiltinFunction, BuiltinRegistry
from cinebrew.codegen import CodeGenerator
from cinebrew.errors import CinebrewError, Diagnostic, DiagnosticCollector, NestingTooDeepError
from cinebrew.lexer import Lexer
from cinebrew.parser import Parser
from cinebrew.semantic import SemanticAnalyzer, SymbolTable
from cinebrew.tokens import KEYWORDS, Token, TokenKind

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """
    Outcome of :func:`compile_source`.

    ``tokens``, ``program`` and ``symbols`` hold the output of every stage
    that ran, which is useful for tooling even when a later stage failed.
    """
    filename: str
    bytecode: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    tokens: List[Token] = field(default_factory=list)
    program: Optional[A.Program] = None
    symbols: Optional[SymbolTable] = None

    @property
    def had_error(self) -> bool:
        return any(d.severity.is_error() for d in self.diagnostics)

    @property
    def failed_stage(self) -> Optional[str]:
        return self.diagnostics[0].stage if self.diagnostics else None

    def format_diagnostics(self, *, format: str = "gcc") -> str:
        if format == "json":
            return json.dumps([d.to_dict() for d in self.diagnostics], indent=2)
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)


def _located(diagnostics: List[Diagnostic], filename: str) -> List[Diagnostic]:
    return [replace(d, span=d.span.with_file(filename)) for d in diagnostics]


def compile_source(
    source: str,
    filename: str = "<input>",
    builtins: Optional[Mapping[str, BuiltinFunction]] = None,
) -> CompileResult:
    """
    Compile CineBrew *source* to bytecode lines.

    Args:
        source: Program text
        filename: Name used in diagnostic locations
        builtins: Registry used for call checks; the standard one if omitted

    Returns:
        CompileResult; ``had_error`` is set when any stage reported an error,
        in which case ``bytecode`` is empty.
    """
    result = CompileResult(filename=filename)
    collector = DiagnosticCollector()

    def fail(error: CinebrewError) -> CompileResult:
        collector.report_error(error)
        result.diagnostics = _located(collector.diagnostics, filename)
        logger.info("%s: %s stage failed", filename, error.phase.value)
        return result

    # 1. lexical analysis
    lexer = Lexer(source, KEYWORDS)
    result.tokens = lexer.tokenize()
    if lexer.error is not None:
        return fail(lexer.error)
    logger.debug("%s: %d tokens", filename, len(result.tokens))

    # 2-4 recurse over the tree
    try:
        return _compile_tokens(result, collector, builtins, fail)
    except RecursionError:
        result.program = None
        result.symbols = None
        return fail(NestingTooDeepError())


def _compile_tokens(
    result: CompileResult,
    collector: DiagnosticCollector,
    builtins: Optional[Mapping[str, BuiltinFunction]],
    fail: Callable[[CinebrewError], CompileResult],
) -> CompileResult:
    filename = result.filename

    # 2. syntax analysis
    parser = Parser(result.tokens)
    result.program = parser.parse()
    if parser.error is not None:
        return fail(parser.error)

    # 3. semantic analysis
    if builtins is None:
        builtins = BuiltinRegistry.default()
    semantic = SemanticAnalyzer(builtins).analyze(result.program)
    result.symbols = semantic.symbols
    if semantic.has_errors:
        collector.extend(semantic.diagnostics)
        result.diagnostics = _located(collector.diagnostics, filename)
        logger.info("%s: semantic stage failed with %d error(s)", filename, len(semantic.diagnostics))
        return result

    # 4. code generation
    generator = CodeGenerator()
    bytecode = generator.generate(result.program)
    if generator.error is not None:
        return fail(generator.error)

    result.bytecode = bytecode
    logger.info("%s: compiled to %d bytecode lines", filename, len(bytecode))
    return result


def token_listing(tokens: List[Token]) -> List[str]:
    """One line per token, EOF excluded: ``line KIND 'lexeme'``."""
    return [
        f"{tok.line:4d} {tok.kind.name:<14} {tok.lexeme!r}"
        for tok in tokens
        if tok.kind is not TokenKind.EOF
    ]
