"""
Recursive-descent parser for column expressions.

Grammar::

    expr     := term (('+' | '-') term)*
    term     := exponent (('*' | '/' | '%') exponent)*
    exponent := factor ('^' factor)*
    factor   := '-' factor | NUMBER | COLUMN | '(' expr ')'

``^`` is parsed LEFT-associative, so ``2^3^2`` means ``(2^3)^2 = 64``.
Checkpoints written by earlier runs depend on this reading of nested powers.
"""

from __future__ import annotations

from typing import Optional, Sequence

from sheetplot.exceptions import MismatchedParentheses, UnexpectedToken
from sheetplot.expr.lexer import Lexer, Token, TokenKind
from sheetplot.expr.nodes import BinaryOp, ColumnRef, Expr, Negate, Number

_ADDITIVE = {TokenKind.PLUS: "+", TokenKind.MINUS: "-"}
_MULTIPLICATIVE = {TokenKind.STAR: "*", TokenKind.SLASH: "/", TokenKind.PERCENT: "%"}


class Parser:
    """Builds an expression tree from a lexer's token stream."""

    def __init__(self, lexer: Lexer) -> None:
        self.lexer = lexer
        self.current: Token = lexer.next_token()

    def _advance(self) -> Token:
        token = self.current
        self.current = self.lexer.next_token()
        return token

    def _unexpected(self) -> UnexpectedToken:
        return UnexpectedToken(str(self.current), self.lexer.text, self.current.position)

    def parse(self) -> Expr:
        """Parse a complete expression; trailing tokens are an error."""
        expr = self.parse_expression()
        if self.current.kind is not TokenKind.EOF:
            raise self._unexpected()
        return expr

    def parse_expression(self) -> Expr:
        expr = self.parse_term()
        while self.current.kind in _ADDITIVE:
            op = _ADDITIVE[self._advance().kind]
            expr = BinaryOp(op, expr, self.parse_term())
        return expr

    def parse_term(self) -> Expr:
        expr = self.parse_exponent()
        while self.current.kind in _MULTIPLICATIVE:
            op = _MULTIPLICATIVE[self._advance().kind]
            expr = BinaryOp(op, expr, self.parse_exponent())
        return expr

    def parse_exponent(self) -> Expr:
        expr = self.parse_factor()
        while self.current.kind is TokenKind.CARET:
            self._advance()
            expr = BinaryOp("^", expr, self.parse_factor())
        return expr

    def parse_factor(self) -> Expr:
        token = self.current
        match token.kind:
            case TokenKind.MINUS:
                self._advance()
                return Negate(self.parse_factor())
            case TokenKind.NUMBER:
                self._advance()
                return Number(float(token.value))
            case TokenKind.COLUMN:
                self._advance()
                return ColumnRef(int(token.value))
            case TokenKind.LPAREN:
                self._advance()
                expr = self.parse_expression()
                if self.current.kind is not TokenKind.RPAREN:
                    raise MismatchedParentheses(
                        f"expected ')' to close '(' at {token.position}, found {self.current}",
                        self.lexer.text,
                        self.current.position,
                    )
                self._advance()
                return expr
            case _:
                raise self._unexpected()


def compile_expression(text: str, titles: Optional[Sequence[str]] = None) -> Expr:
    """Compile an expression string into an evaluable tree.

    Args:
        text: Expression text, e.g. ``"#1 + @price@ * 2"``
        titles: Column titles of the input table, used to resolve ``@title@``

    Returns:
        The root expression node

    Raises:
        ParseError: Any lexing or parsing failure, with a caret pointer
    """
    return Parser(Lexer(text, titles)).parse()
