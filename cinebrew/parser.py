"""
cinebrew/parser.py
==================

Recursive-descent parser: token list -> :class:`cinebrew.ast.Program`.

Grammar (precedence low -> high)::

    program     := declaration* EOF
    declaration := "SCENE" function | "TAKE" varDecl | statement
    statement   := "POUR" expr ";" | "IF" expr block ("ELSE" block)?
                 | "LOOP" expr block | "BREAK" ";" | "CONTINUE" ";"
                 | "SHOT" expr? ";" | block
                 | IDENT "=" expr ";" | expr ";"
    expr        := additive (( ">" | ">=" | "<" | "<=" | "==" | "!=" ) additive)*
    additive    := term (( "+" | "-" ) term)*
    term        := unary (( "*" | "/" ) unary)*
    unary       := "-" unary | primary
    primary     := NUMBER | STRING | "true" | "false"
                 | IDENT ( "(" args? ")" )? | "(" expr ")"

Only the first error is recorded. Parsing carries on after it so the
caller always gets a best-effort tree; :attr:`Parser.had_error` must be
checked before the tree is trusted.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from cinebrew import ast as A
from cinebrew.errors import CinebrewErrorCodes, ErrorCode, ParseError, SourceSpan
from cinebrew.tokens import COMPARISON_KINDS, STATEMENT_KEYWORDS, Token, TokenKind

logger = logging.getLogger(__name__)

MAX_ARITY = 255

_BINARY_OPS = {
    TokenKind.PLUS: A.BinaryOp.ADD,
    TokenKind.MINUS: A.BinaryOp.SUB,
    TokenKind.STAR: A.BinaryOp.MUL,
    TokenKind.SLASH: A.BinaryOp.DIV,
    TokenKind.EQUAL_EQUAL: A.BinaryOp.EQ,
    TokenKind.BANG_EQUAL: A.BinaryOp.NE,
    TokenKind.GREATER: A.BinaryOp.GT,
    TokenKind.GREATER_EQUAL: A.BinaryOp.GE,
    TokenKind.LESS: A.BinaryOp.LT,
    TokenKind.LESS_EQUAL: A.BinaryOp.LE,
}


class Parser:
    """One-shot parser over a token list ending in EOF."""

    def __init__(self, tokens: List[Token]) -> None:
        if not tokens or tokens[-1].kind is not TokenKind.EOF:
            line = tokens[-1].line if tokens else 1
            tokens = list(tokens) + [Token(TokenKind.EOF, "", line)]
        self._tokens = tokens
        self._current = 0
        self.error: Optional[ParseError] = None

    @property
    def had_error(self) -> bool:
        return self.error is not None

    def parse(self) -> A.Program:
        statements: List[A.Stmt] = []
        while not self._at_end():
            statements.append(self._recovering_declaration())
        return A.Program(tuple(statements))

    # ── Token access ──────────────────────────────────────────────────────

    def _peek(self) -> Token:
        return self._tokens[self._current]

    def _peek_next(self) -> Token:
        if self._current + 1 >= len(self._tokens):
            return self._tokens[-1]
        return self._tokens[self._current + 1]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _at_end(self) -> bool:
        return self._peek().kind is TokenKind.EOF

    def _advance(self) -> Token:
        if not self._at_end():
            self._current += 1
        return self._previous()

    def _check(self, kind: TokenKind) -> bool:
        return not self._at_end() and self._peek().kind is kind

    def _match(self, *kinds: TokenKind) -> bool:
        for kind in kinds:
            if self._check(kind):
                self._advance()
                return True
        return False

    def _consume(self, kind: TokenKind, message: str) -> Token:
        if self._check(kind):
            return self._advance()
        self._error(self._peek(), message)
        return Token(kind, "", self._peek().line)

    # ── Error handling ────────────────────────────────────────────────────

    def _error(
        self, token: Token, message: str, code: ErrorCode = CinebrewErrorCodes.MISSING_TOKEN
    ) -> None:
        if self.error is not None:
            return
        self.error = ParseError(message, code=code, span=SourceSpan(line=token.line))
        logger.debug("parse error: %s", self.error)

    def _synchronize(self) -> None:
        """Skip to the next statement boundary."""
        self._advance()
        while not self._at_end():
            if self._previous().kind is TokenKind.SEMICOLON:
                return
            if self._peek().kind in STATEMENT_KEYWORDS:
                return
            self._advance()

    def _recovering_declaration(self) -> A.Stmt:
        start = self._current
        stmt = self._declaration()
        if self.had_error and self._current == start:
            self._synchronize()
        return stmt

    # ── Statements ────────────────────────────────────────────────────────

    def _declaration(self) -> A.Stmt:
        if self._match(TokenKind.SCENE):
            return self._function()
        if self._match(TokenKind.TAKE):
            return self._var_declaration()
        return self._statement()

    def _statement(self) -> A.Stmt:
        if self._match(TokenKind.POUR):
            return self._print()
        if self._match(TokenKind.IF):
            return self._if()
        if self._match(TokenKind.LOOP):
            return self._loop()
        if self._match(TokenKind.BREAK):
            line = self._previous().line
            self._consume(TokenKind.SEMICOLON, "Expected ';' after BREAK")
            return A.Break(line=line)
        if self._match(TokenKind.CONTINUE):
            line = self._previous().line
            self._consume(TokenKind.SEMICOLON, "Expected ';' after CONTINUE")
            return A.Continue(line=line)
        if self._match(TokenKind.SHOT):
            return self._return()
        if self._match(TokenKind.LBRACE):
            return self._block()
        return self._assignment_or_expression()

    def _var_declaration(self) -> A.Declaration:
        line = self._previous().line
        name = self._consume(TokenKind.IDENTIFIER, "Expected variable name")
        self._consume(TokenKind.EQUAL, "Expected '=' after variable name")
        initializer = self._expression()
        self._consume(TokenKind.SEMICOLON, "Expected ';' after variable declaration")
        return A.Declaration(name.lexeme, initializer, line=line)

    def _assignment_or_expression(self) -> A.Stmt:
        first = self._peek()
        if self._check(TokenKind.IDENTIFIER) and self._peek_next().kind is TokenKind.EQUAL:
            self._advance()
            self._advance()
            value = self._expression()
            self._consume(TokenKind.SEMICOLON, "Expected ';' after assignment")
            return A.Assignment(first.lexeme, value, line=first.line)

        expr = self._expression()
        self._consume(TokenKind.SEMICOLON, "Expected ';' after expression")
        return A.ExpressionStmt(expr, line=first.line)

    def _print(self) -> A.Print:
        line = self._previous().line
        expr = self._expression()
        self._consume(TokenKind.SEMICOLON, "Expected ';' after POUR statement")
        return A.Print(expr, line=line)

    def _if(self) -> A.If:
        line = self._previous().line
        condition = self._expression()
        self._consume(TokenKind.LBRACE, "Expected '{' after IF condition")
        then_branch = self._block()

        else_branch = None
        if self._match(TokenKind.ELSE):
            self._consume(TokenKind.LBRACE, "Expected '{' after ELSE")
            else_branch = self._block()
        return A.If(condition, then_branch, else_branch, line=line)

    def _loop(self) -> A.Loop:
        line = self._previous().line
        condition = self._expression()
        self._consume(TokenKind.LBRACE, "Expected '{' after LOOP condition")
        return A.Loop(condition, self._block(), line=line)

    def _return(self) -> A.Return:
        line = self._previous().line
        value = None
        if not self._check(TokenKind.SEMICOLON):
            value = self._expression()
        self._consume(TokenKind.SEMICOLON, "Expected ';' after SHOT statement")
        return A.Return(value, line=line)

    def _function(self) -> A.Function:
        line = self._previous().line
        name = self._consume(TokenKind.IDENTIFIER, "Expected function name")
        self._consume(TokenKind.LPAREN, "Expected '(' after function name")

        params: List[str] = []
        if not self._check(TokenKind.RPAREN):
            while True:
                if len(params) >= MAX_ARITY:
                    self._error(
                        self._peek(),
                        f"Cannot have more than {MAX_ARITY} parameters",
                        CinebrewErrorCodes.TOO_MANY_PARAMETERS,
                    )
                params.append(self._consume(TokenKind.IDENTIFIER, "Expected parameter name").lexeme)
                if not self._match(TokenKind.COMMA):
                    break

        self._consume(TokenKind.RPAREN, "Expected ')' after parameters")
        self._consume(TokenKind.LBRACE, "Expected '{' before function body")
        body = self._block()
        return A.Function(name.lexeme, tuple(params), body, line=line)

    def _block(self) -> A.Block:
        """Parse statements up to the closing brace; the '{' is already consumed."""
        line = self._previous().line
        statements: List[A.Stmt] = []
        while not self._check(TokenKind.RBRACE) and not self._at_end():
            statements.append(self._recovering_declaration())
        self._consume(TokenKind.RBRACE, "Expected '}' after block")
        return A.Block(tuple(statements), line=line)

    # ── Expressions ───────────────────────────────────────────────────────

    def _expression(self) -> A.Expr:
        return self._comparison()

    def _comparison(self) -> A.Expr:
        expr = self._additive()
        while self._peek().kind in COMPARISON_KINDS:
            op = self._advance()
            right = self._additive()
            expr = A.Binary(expr, _BINARY_OPS[op.kind], right, line=op.line)
        return expr

    def _additive(self) -> A.Expr:
        expr = self._term()
        while self._match(TokenKind.PLUS, TokenKind.MINUS):
            op = self._previous()
            right = self._term()
            expr = A.Binary(expr, _BINARY_OPS[op.kind], right, line=op.line)
        return expr

    def _term(self) -> A.Expr:
        expr = self._unary()
        while self._match(TokenKind.STAR, TokenKind.SLASH):
            op = self._previous()
            right = self._unary()
            expr = A.Binary(expr, _BINARY_OPS[op.kind], right, line=op.line)
        return expr

    def _unary(self) -> A.Expr:
        if self._match(TokenKind.MINUS):
            op = self._previous()
            return A.Unary(A.UnaryOp.NEG, self._unary(), line=op.line)
        return self._primary()

    def _primary(self) -> A.Expr:
        if self._match(TokenKind.NUMBER):
            tok = self._previous()
            return A.Literal(tok.literal or tok.lexeme, A.LiteralKind.NUMBER, line=tok.line)
        if self._match(TokenKind.TRUE):
            return A.Literal("true", A.LiteralKind.BOOLEAN, line=self._previous().line)
        if self._match(TokenKind.FALSE):
            return A.Literal("false", A.LiteralKind.BOOLEAN, line=self._previous().line)
        if self._match(TokenKind.STRING):
            tok = self._previous()
            return A.Literal(tok.literal or "", A.LiteralKind.STRING, line=tok.line)

        if self._match(TokenKind.IDENTIFIER):
            name = self._previous()
            if self._match(TokenKind.LPAREN):
                return self._finish_call(name)
            return A.Variable(name.lexeme, line=name.line)

        if self._match(TokenKind.LPAREN):
            expr = self._expression()
            self._consume(TokenKind.RPAREN, "Expected ')' after expression")
            return expr

        self._error(self._peek(), "Expected expression", CinebrewErrorCodes.EXPECTED_EXPRESSION)
        return A.Literal("0", A.LiteralKind.NUMBER, line=self._peek().line)

    def _finish_call(self, callee: Token) -> A.Call:
        arguments: List[A.Expr] = []
        if not self._check(TokenKind.RPAREN):
            while True:
                if len(arguments) >= MAX_ARITY:
                    self._error(
                        self._peek(),
                        f"Cannot have more than {MAX_ARITY} arguments",
                        CinebrewErrorCodes.TOO_MANY_ARGUMENTS,
                    )
                arguments.append(self._expression())
                if not self._match(TokenKind.COMMA):
                    break
        self._consume(TokenKind.RPAREN, "Expected ')' after arguments")
        return A.Call(callee.lexeme, tuple(arguments), line=callee.line)


def parse(tokens: List[Token]) -> Tuple[A.Program, Optional[ParseError]]:
    """Parse *tokens*; returns the (best-effort) program and the first error, if any."""
    parser = Parser(tokens)
    program = parser.parse()
    return program, parser.error
