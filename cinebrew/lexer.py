"""
cinebrew/lexer.py
=================

Hand-written scanner turning CineBrew source text into a list of
:class:`~cinebrew.tokens.Token`.

The scan stops at the first lexical error. Callers must test
:attr:`Lexer.had_error` before using the output; :attr:`Lexer.error`
holds the :class:`~cinebrew.errors.LexicalError` that stopped it.
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Tuple

from cinebrew.errors import CinebrewErrorCodes, LexicalError, SourceSpan
from cinebrew.tokens import KEYWORDS, Token, TokenKind

logger = logging.getLogger(__name__)

_SINGLE_CHAR = {
    ";": TokenKind.SEMICOLON,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "{": TokenKind.LBRACE,
    "}": TokenKind.RBRACE,
    ",": TokenKind.COMMA,
    "+": TokenKind.PLUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
}

# (single form, two-character form) for operators that may take a trailing '='
_WITH_EQUAL = {
    "=": (TokenKind.EQUAL, TokenKind.EQUAL_EQUAL),
    ">": (TokenKind.GREATER, TokenKind.GREATER_EQUAL),
    "<": (TokenKind.LESS, TokenKind.LESS_EQUAL),
}


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


def _is_alpha(c: str) -> bool:
    return ("a" <= c <= "z") or ("A" <= c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


class Lexer:
    """Single-use scanner over one source string."""

    def __init__(self, source: str, keywords: Mapping[str, TokenKind] = KEYWORDS) -> None:
        self._source = source
        self._keywords = keywords
        self.tokens: List[Token] = []
        self._start = 0
        self._current = 0
        self._line = 1
        self.error: Optional[LexicalError] = None

    @property
    def had_error(self) -> bool:
        return self.error is not None

    # -- Driver ------------------------------------------------------------
    def tokenize(self) -> List[Token]:
        """Scan the whole source; the result always ends with an EOF token."""
        self.tokens = []
        self._start = self._current = 0
        self._line = 1
        self.error = None

        while not self._at_end() and self.error is None:
            self._start = self._current
            self._scan_token()

        self.tokens.append(Token(TokenKind.EOF, "", self._line))
        return self.tokens

    # -- Character access --------------------------------------------------
    def _at_end(self) -> bool:
        return self._current >= len(self._source)

    def _advance(self) -> str:
        if self._at_end():
            return "\0"
        c = self._source[self._current]
        self._current += 1
        return c

    def _peek(self) -> str:
        if self._at_end():
            return "\0"
        return self._source[self._current]

    def _peek_next(self) -> str:
        if self._current + 1 >= len(self._source):
            return "\0"
        return self._source[self._current + 1]

    def _match(self, expected: str) -> bool:
        if self._peek() != expected or self._at_end():
            return False
        self._current += 1
        return True

    # -- Token creation ----------------------------------------------------
    def _lexeme(self) -> str:
        return self._source[self._start:self._current]

    def _add(self, kind: TokenKind, literal: Optional[str] = None) -> None:
        self.tokens.append(Token(kind, self._lexeme(), self._line, literal))

    def _fail(self, message: str, code=CinebrewErrorCodes.INVALID_CHARACTER) -> None:
        self.error = LexicalError(message, code=code, span=SourceSpan(line=self._line))
        logger.debug("lexer stopped: %s", self.error)

    # -- Scanning ----------------------------------------------------------
    def _scan_token(self) -> None:
        c = self._advance()

        if c in " \r\t":
            return
        if c == "\n":
            self._line += 1
            return
        if c == "#":
            while self._peek() != "\n" and not self._at_end():
                self._advance()
            return

        kind = _SINGLE_CHAR.get(c)
        if kind is not None:
            self._add(kind)
            return

        if c in _WITH_EQUAL:
            single, double = _WITH_EQUAL[c]
            self._add(double if self._match("=") else single)
            return

        if c == "-":
            if _is_digit(self._peek()):
                self._number()
            else:
                self._add(TokenKind.MINUS)
            return

        if c == "!":
            if self._match("="):
                self._add(TokenKind.BANG_EQUAL)
            else:
                self._fail("Unexpected character '!' (did you mean '!='?)")
            return

        if c == '"':
            self._string()
        elif _is_digit(c):
            self._number()
        elif _is_alpha(c):
            self._identifier()
        else:
            self._fail(f"Unexpected character: '{c}'")

    def _string(self) -> None:
        while self._peek() != '"' and not self._at_end():
            if self._peek() == "\n":
                self._line += 1
            self._advance()

        if self._at_end():
            self._fail("Unterminated string literal", CinebrewErrorCodes.UNTERMINATED_STRING)
            return

        self._advance()  # closing quote
        self._add(TokenKind.STRING, self._source[self._start + 1:self._current - 1])

    def _number(self) -> None:
        while _is_digit(self._peek()):
            self._advance()

        if self._peek() == "." and _is_digit(self._peek_next()):
            self._advance()
            while _is_digit(self._peek()):
                self._advance()
            self._fail("Floating point numbers not yet supported", CinebrewErrorCodes.UNSUPPORTED_FLOAT)
            return

        self._add(TokenKind.NUMBER, self._lexeme())

    def _identifier(self) -> None:
        while _is_alnum(self._peek()):
            self._advance()
        text = self._lexeme()
        self._add(self._keywords.get(text, TokenKind.IDENTIFIER))



def tokenize(
    source: str, keywords: Mapping[str, TokenKind] = KEYWORDS
) -> Tuple[List[Token], Optional[LexicalError]]:
    """Scan *source*; returns the tokens and the error that stopped the scan, if any."""
    lexer = Lexer(source, keywords)
    tokens = lexer.tokenize()
    return tokens, lexer.error
