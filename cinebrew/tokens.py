"""
cinebrew/tokens.py
==================

Token kinds, the immutable :class:`Token` record produced by the lexer, and
the keyword table.

The keyword table is a read-only mapping built once at import time; the
lexer receives it explicitly (``Lexer(source, keywords=KEYWORDS)``) so a
caller can lex a dialect without touching shared state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto, unique
from types import MappingProxyType
from typing import Mapping, Optional


@unique
class TokenKind(Enum):
    # Keywords
    TAKE = auto()
    POUR = auto()
    SCENE = auto()
    SHOT = auto()
    IF = auto()
    ELSE = auto()
    LOOP = auto()
    BREAK = auto()
    CONTINUE = auto()
    TRUE = auto()
    FALSE = auto()

    # Literals
    IDENTIFIER = auto()
    NUMBER = auto()
    STRING = auto()

    # Operators
    EQUAL = auto()
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    EQUAL_EQUAL = auto()
    BANG_EQUAL = auto()
    GREATER = auto()
    GREATER_EQUAL = auto()
    LESS = auto()
    LESS_EQUAL = auto()

    # Punctuation
    SEMICOLON = auto()
    LBRACE = auto()
    RBRACE = auto()
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()

    EOF = auto()


KEYWORDS: Mapping[str, TokenKind] = MappingProxyType({
    "TAKE": TokenKind.TAKE,
    "POUR": TokenKind.POUR,
    "SCENE": TokenKind.SCENE,
    "SHOT": TokenKind.SHOT,
    "IF": TokenKind.IF,
    "ELSE": TokenKind.ELSE,
    "LOOP": TokenKind.LOOP,
    "BREAK": TokenKind.BREAK,
    "CONTINUE": TokenKind.CONTINUE,
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
})

# Statement-starting keywords, used by the parser to resynchronize.
STATEMENT_KEYWORDS = frozenset({
    TokenKind.TAKE,
    TokenKind.POUR,
    TokenKind.SCENE,
    TokenKind.IF,
    TokenKind.LOOP,
    TokenKind.BREAK,
    TokenKind.CONTINUE,
    TokenKind.SHOT,
})

COMPARISON_KINDS = frozenset({
    TokenKind.GREATER,
    TokenKind.GREATER_EQUAL,
    TokenKind.LESS,
    TokenKind.LESS_EQUAL,
    TokenKind.EQUAL_EQUAL,
    TokenKind.BANG_EQUAL,
})


@dataclass(frozen=True, slots=True)
class Token:
    """
    One lexical token.

    ``lexeme`` is the exact source slice; ``literal`` is the decoded value
    for NUMBER (digit text, sign included) and STRING (text between the
    quotes) tokens, ``None`` otherwise.
    """

    kind: TokenKind
    lexeme: str
    line: int
    literal: Optional[str] = None

    def __str__(self) -> str:
        if self.literal is not None:
            return f"{self.kind.name} {self.lexeme!r} {self.literal!r} @{self.line}"
        return f"{self.kind.name} {self.lexeme!r} @{self.line}"
