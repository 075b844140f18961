# tests/test_lexer.py
"""
Tests for the CineBrew lexer: source text → token list.
"""

import pytest

from cinebrew.errors import CinebrewErrorCodes
from cinebrew.lexer import Lexer, tokenize
from cinebrew.tokens import KEYWORDS, TokenKind


def _kinds(source: str):
    tokens, error = tokenize(source)
    assert error is None, error
    return [t.kind for t in tokens]


class TestTokenKinds:

    def test_declaration(self):
        assert _kinds("TAKE x = 3;") == [
            TokenKind.TAKE, TokenKind.IDENTIFIER, TokenKind.EQUAL,
            TokenKind.NUMBER, TokenKind.SEMICOLON, TokenKind.EOF,
        ]

    @pytest.mark.parametrize("word,kind", sorted(KEYWORDS.items()))
    def test_keywords(self, word, kind):
        assert _kinds(word) == [kind, TokenKind.EOF]

    def test_keywords_are_case_sensitive(self):
        assert _kinds("take If") == [TokenKind.IDENTIFIER, TokenKind.IDENTIFIER, TokenKind.EOF]

    @pytest.mark.parametrize("text,kind", [
        ("==", TokenKind.EQUAL_EQUAL),
        ("!=", TokenKind.BANG_EQUAL),
        (">=", TokenKind.GREATER_EQUAL),
        ("<=", TokenKind.LESS_EQUAL),
        (">", TokenKind.GREATER),
        ("<", TokenKind.LESS),
        ("=", TokenKind.EQUAL),
    ])
    def test_operators(self, text, kind):
        assert _kinds(text) == [kind, TokenKind.EOF]

    def test_punctuation(self):
        assert _kinds("(){},;+*/") == [
            TokenKind.LPAREN, TokenKind.RPAREN, TokenKind.LBRACE, TokenKind.RBRACE,
            TokenKind.COMMA, TokenKind.SEMICOLON, TokenKind.PLUS, TokenKind.STAR,
            TokenKind.SLASH, TokenKind.EOF,
        ]

    def test_empty_source_is_just_eof(self):
        tokens, error = tokenize("")
        assert error is None
        assert len(tokens) == 1
        assert tokens[0].kind is TokenKind.EOF
        assert tokens[0].line == 1

    def test_identifier_with_digits_and_underscore(self):
        tokens, _ = tokenize("_player2")
        assert tokens[0].kind is TokenKind.IDENTIFIER
        assert tokens[0].lexeme == "_player2"


class TestLiterals:

    def test_number_literal(self):
        tokens, _ = tokenize("42")
        assert tokens[0].kind is TokenKind.NUMBER
        assert tokens[0].literal == "42"

    def test_minus_before_digit_is_negative_number(self):
        tokens, _ = tokenize("-7")
        assert [t.kind for t in tokens] == [TokenKind.NUMBER, TokenKind.EOF]
        assert tokens[0].lexeme == "-7"

    def test_minus_before_space_is_operator(self):
        assert _kinds("x - 1") == [
            TokenKind.IDENTIFIER, TokenKind.MINUS, TokenKind.NUMBER, TokenKind.EOF,
        ]

    def test_string_literal_excludes_quotes(self):
        tokens, _ = tokenize('"hi there"')
        assert tokens[0].kind is TokenKind.STRING
        assert tokens[0].lexeme == '"hi there"'
        assert tokens[0].literal == "hi there"

    def test_multiline_string_counts_lines(self):
        tokens, _ = tokenize('"a\nb" x')
        assert tokens[1].line == 2


class TestLinesAndComments:

    def test_line_numbers(self):
        tokens, _ = tokenize("TAKE a = 1;\n\nPOUR a;")
        pour = next(t for t in tokens if t.kind is TokenKind.POUR)
        assert pour.line == 3

    def test_comment_runs_to_end_of_line(self):
        assert _kinds("# nothing here ;;; \nPOUR 1;") == [
            TokenKind.POUR, TokenKind.NUMBER, TokenKind.SEMICOLON, TokenKind.EOF,
        ]

    def test_eof_carries_last_line(self):
        tokens, _ = tokenize("POUR 1;\n")
        assert tokens[-1].line == 2


class TestLexicalErrors:

    def test_unexpected_character(self):
        lexer = Lexer("TAKE x = 3 @ 4;")
        tokens = lexer.tokenize()
        assert lexer.had_error
        assert lexer.error.message == "Unexpected character: '@'"
        assert lexer.error.code == CinebrewErrorCodes.INVALID_CHARACTER
        assert tokens[-1].kind is TokenKind.EOF

    def test_scan_stops_at_first_error(self):
        lexer = Lexer("a @ b $ c")
        tokens = lexer.tokenize()
        assert [t.lexeme for t in tokens[:-1]] == ["a"]
        assert "@" in lexer.error.message

    def test_lone_bang(self):
        lexer = Lexer("!x")
        lexer.tokenize()
        assert lexer.error.message == "Unexpected character '!' (did you mean '!='?)"

    def test_unterminated_string(self):
        lexer = Lexer('POUR "oops;\n')
        lexer.tokenize()
        assert lexer.error.message == "Unterminated string literal"
        assert lexer.error.code == "CB-0002"

    def test_float_rejected(self):
        lexer = Lexer("\nTAKE x = 3.14;")
        lexer.tokenize()
        assert lexer.error.message == "Floating point numbers not yet supported"
        assert lexer.error.line == 2

    def test_number_followed_by_dot_without_digit_is_not_float(self):
        lexer = Lexer("3.")
        lexer.tokenize()
        assert "Unexpected character" in lexer.error.message

