# cinebrew/errors.py
"""
CineBrew Error Types and Diagnostics

Error handling infrastructure shared by every stage of the CineBrew
pipeline (lexer, parser, semantic analyzer, code generator, VM).

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                    │
├─────────────────────────────────────────────────────────────────────────────┤
│  CinebrewError (base)                                                       │
│  ├── LexicalError          - Tokenization failures                          │
│  ├── ParseError            - Grammar violations                             │
│  │   └── NestingTooDeepError                                                │
│  ├── SemanticError         - Name resolution and arity errors               │
│  │   ├── UndefinedSymbolError                                               │
│  │   ├── RedefinedSymbolError                                               │
│  │   ├── SymbolKindError                                                    │
│  │   └── ArityMismatchError                                                 │
│  ├── CodeGenError          - Bytecode emission failures                     │
│  └── VMError               - Fatal execution errors                         │
│      ├── StackUnderflowError                                                │
│      └── StepLimitExceeded                                                  │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error has a code of the form CB-XXXX, with XXXX in the ranges:
  - 0001-0999: Lexical errors
  - 1000-1999: Syntax errors
  - 2000-2999: Semantic errors
  - 4000-4999: Code generation errors
  - 5000-5999: Runtime errors

Stages never raise on bad *source*: the lexer and parser expose a
``had_error`` flag plus the first error, the analyzer collects every error
into a :class:`DiagnosticCollector`. Exceptions from this module are what
those stages record, and what the VM raises for fatal runtime failures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Dict, Iterable, Iterator, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR SEVERITY AND CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorSeverity(Enum):
    """Severity levels for CineBrew diagnostics."""

    ERROR = "error"

    def is_error(self) -> bool:
        return self is ErrorSeverity.ERROR


@unique
class ErrorPhase(Enum):
    """
    Pipeline stage where the error occurred.

    The value is the stage name reported alongside every diagnostic.
    """

    LEXICAL = "lexer"
    SYNTAX = "parser"
    SEMANTIC = "semantic"
    CODEGEN = "codegen"
    RUNTIME = "vm"


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorCode:
    """
    Structured error code ``CB-NNNN``.

    Codes compare equal to their string form so tests and tools can write
    ``diag.code == "CB-2001"``.
    """

    __slots__ = ("prefix", "number", "phase", "default_severity")

    def __init__(
        self,
        number: int,
        phase: ErrorPhase,
        default_severity: ErrorSeverity = ErrorSeverity.ERROR,
        prefix: str = "CB",
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.phase.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


# ───────────────────────────────────────────────────────────────────────────────
# PREDEFINED ERROR CODES
# ───────────────────────────────────────────────────────────────────────────────

class CinebrewErrorCodes:
    """Predefined error codes for the CineBrew pipeline."""

    # LEXICAL ERRORS (0001-0999)
    INVALID_CHARACTER = ErrorCode(1, ErrorPhase.LEXICAL)
    UNTERMINATED_STRING = ErrorCode(2, ErrorPhase.LEXICAL)
    UNSUPPORTED_FLOAT = ErrorCode(3, ErrorPhase.LEXICAL)

    # SYNTAX ERRORS (1000-1999)
    MISSING_TOKEN = ErrorCode(1000, ErrorPhase.SYNTAX)
    EXPECTED_EXPRESSION = ErrorCode(1001, ErrorPhase.SYNTAX)
    TOO_MANY_PARAMETERS = ErrorCode(1002, ErrorPhase.SYNTAX)
    TOO_MANY_ARGUMENTS = ErrorCode(1003, ErrorPhase.SYNTAX)
    NESTING_TOO_DEEP = ErrorCode(1004, ErrorPhase.SYNTAX)

    # SEMANTIC ERRORS (2000-2999)
    UNDEFINED_SYMBOL = ErrorCode(2000, ErrorPhase.SEMANTIC)
    REDEFINED_SYMBOL = ErrorCode(2001, ErrorPhase.SEMANTIC)
    SYMBOL_KIND_MISMATCH = ErrorCode(2002, ErrorPhase.SEMANTIC)
    ARITY_MISMATCH = ErrorCode(2003, ErrorPhase.SEMANTIC)
    PARAMETER_ASSIGNMENT = ErrorCode(2004, ErrorPhase.SEMANTIC)

    # CODE GENERATION ERRORS (4000-4999)
    UNKNOWN_OPERATOR = ErrorCode(4000, ErrorPhase.CODEGEN)

    # RUNTIME ERRORS (5000-5999)
    STACK_UNDERFLOW = ErrorCode(5000, ErrorPhase.RUNTIME)
    STEP_LIMIT = ErrorCode(5001, ErrorPhase.RUNTIME)
    VM_FAILURE = ErrorCode(5999, ErrorPhase.RUNTIME)


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE LOCATIONS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """A source position. CineBrew tracks lines only; ``line == 0`` is unknown."""

    file: str = ""
    line: int = 0

    def with_file(self, file: str) -> "SourceSpan":
        return SourceSpan(file=file, line=self.line)

    def __str__(self) -> str:
        if not self.file and self.line == 0:
            return "<unknown location>"
        parts = []
        if self.file:
            parts.append(self.file)
        if self.line > 0:
            parts.append(str(self.line))
        return ":".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# DIAGNOSTICS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Diagnostic:
    """
    One reported problem, tagged with the pipeline stage that produced it.

    Attributes:
        code: Error code (``CB-NNNN``)
        message: Human-readable description, without location prefix
        span: Source location
        severity: Defaults to the code's default severity
    """

    code: ErrorCode
    message: str
    span: SourceSpan = field(default_factory=SourceSpan)
    severity: ErrorSeverity = ErrorSeverity.ERROR

    @property
    def stage(self) -> str:
        return self.code.phase.value

    @property
    def line(self) -> int:
        return self.span.line

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code.code,
            "stage": self.stage,
            "severity": self.severity.value,
            "message": self.message,
            "file": self.span.file,
            "line": self.span.line,
        }

    def to_gcc_format(self) -> str:
        """Format as GCC-style diagnostic string."""
        return f"{self.span}: {self.severity.value}: {self.message} [{self.code}]"

    def __str__(self) -> str:
        return f"{self.stage}: Line {self.line}: {self.message}"


class DiagnosticCollector:
    """Accumulates diagnostics in report order."""

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    def report(self, diag: Diagnostic) -> None:
        self._diagnostics.append(diag)

    def report_error(self, error: "CinebrewError") -> None:
        self.report(error.to_diagnostic())

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diag in diagnostics:
            self.report(diag)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self._diagnostics if d.severity.is_error()]

    def has_errors(self) -> bool:
        return any(d.severity.is_error() for d in self._diagnostics)

    def error_count(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class CinebrewError(Exception):
    """
    Base exception for all CineBrew errors.

    Carries a code and a source span so it can be turned into a
    :class:`Diagnostic` without losing information.
    """

    default_code: ErrorCode = CinebrewErrorCodes.VM_FAILURE

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.span = span or SourceSpan()

    @property
    def phase(self) -> ErrorPhase:
        return self.code.phase

    @property
    def line(self) -> int:
        return self.span.line

    def to_diagnostic(self) -> Diagnostic:
        return Diagnostic(
            code=self.code,
            message=self.message,
            span=self.span,
            severity=self.code.default_severity,
        )

    def to_gcc_format(self) -> str:
        return self.to_diagnostic().to_gcc_format()

    def __str__(self) -> str:
        if self.span.line:
            return f"Line {self.span.line}: {self.message}"
        return self.message


# ───────────────────────────────────────────────────────────────────────────────
# LEXICAL / SYNTAX ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class LexicalError(CinebrewError):
    """Error during tokenization."""

    default_code = CinebrewErrorCodes.INVALID_CHARACTER


class ParseError(CinebrewError):
    """Grammar violation found by the recursive-descent parser."""

    default_code = CinebrewErrorCodes.MISSING_TOKEN


class NestingTooDeepError(ParseError):
    """The program nests deeper than the recursive stages can walk."""

    def __init__(self, span: Optional[SourceSpan] = None) -> None:
        super().__init__(
            "Expression nested too deeply",
            code=CinebrewErrorCodes.NESTING_TOO_DEEP,
            span=span,
        )


# ───────────────────────────────────────────────────────────────────────────────
# SEMANTIC ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class SemanticError(CinebrewError):
    """Base for name-resolution and call-checking errors."""

    default_code = CinebrewErrorCodes.UNDEFINED_SYMBOL


class UndefinedSymbolError(SemanticError):
    """Reference to a name that was never declared."""

    def __init__(self, name: str, kind: str, span: Optional[SourceSpan] = None) -> None:
        super().__init__(
            f"Undefined {kind}: '{name}'",
            code=CinebrewErrorCodes.UNDEFINED_SYMBOL,
            span=span,
        )
        self.symbol = name


class RedefinedSymbolError(SemanticError):
    """A name declared twice in the global table."""

    def __init__(self, name: str, first_line: int, span: Optional[SourceSpan] = None) -> None:
        super().__init__(
            f"Redeclaration of '{name}' (first declared at line {first_line})",
            code=CinebrewErrorCodes.REDEFINED_SYMBOL,
            span=span,
        )
        self.symbol = name
        self.first_line = first_line


class SymbolKindError(SemanticError):
    """A variable used as a function, or the reverse."""

    def __init__(
        self, name: str, actual: str, expected: str, span: Optional[SourceSpan] = None
    ) -> None:
        super().__init__(
            f"'{name}' is a {actual}, not a {expected}",
            code=CinebrewErrorCodes.SYMBOL_KIND_MISMATCH,
            span=span,
        )
        self.symbol = name


class ArityMismatchError(SemanticError):
    """Call with the wrong number of arguments."""

    def __init__(
        self,
        name: str,
        expected: int,
        got: int,
        builtin: bool = False,
        span: Optional[SourceSpan] = None,
    ) -> None:
        what = "Built-in function" if builtin else "Function"
        super().__init__(
            f"{what} '{name}' expects {expected} argument(s), but got {got}",
            code=CinebrewErrorCodes.ARITY_MISMATCH,
            span=span,
        )
        self.symbol = name
        self.expected = expected
        self.got = got


# ───────────────────────────────────────────────────────────────────────────────
# CODE GENERATION / RUNTIME ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class CodeGenError(CinebrewError):
    """The generator met a node it cannot lower."""

    default_code = CinebrewErrorCodes.UNKNOWN_OPERATOR


class VMError(CinebrewError):
    """Raised when the VM encounters an unrecoverable error."""

    default_code = CinebrewErrorCodes.VM_FAILURE

    def __init__(self, message: str, pc: int = -1, code: Optional[ErrorCode] = None) -> None:
        super().__init__(message, code=code)
        self.pc = pc

    def __str__(self) -> str:
        if self.pc >= 0:
            return f"{self.message} at PC={self.pc}"
        return self.message


class StackUnderflowError(VMError):
    """Pop on an empty operand stack."""

    default_code = CinebrewErrorCodes.STACK_UNDERFLOW

    def __init__(self, pc: int = -1) -> None:
        super().__init__("Stack underflow", pc=pc)


class StepLimitExceeded(VMError):
    """The configured instruction ceiling was reached."""

    default_code = CinebrewErrorCodes.STEP_LIMIT

    def __init__(self, limit: int, pc: int = -1) -> None:
        super().__init__(f"Step limit of {limit} instructions exceeded", pc=pc)
        self.limit = limit
