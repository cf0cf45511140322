"""
Tokenizer for column expressions.

Column references come in three spellings:
- ``#3``: 1-based numeric index
- ``#C`` / ``#aa``: spreadsheet letters, case-insensitive (A = 1, AA = 27)
- ``@title@``: a column title from the input header; ``\\`` escapes the next
  character, so ``@a\\@b@`` names the column ``a@b``

Titles are resolved to indexes while lexing, so the token stream and the
resulting tree only ever carry indexes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

from sheetplot.exceptions import InvalidCharacter, InvalidColumnReference, InvalidNumber
from sheetplot.sheet.model import letters_to_index

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    NUMBER = "number"
    COLUMN = "column reference"
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    CARET = "^"
    LPAREN = "("
    RPAREN = ")"
    EOF = "end of input"


_DIGITS = "0123456789"

_SINGLE_CHAR_TOKENS = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.STAR,
    "/": TokenKind.SLASH,
    "%": TokenKind.PERCENT,
    "^": TokenKind.CARET,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
}


@dataclass(frozen=True)
class Token:
    """A lexed token.

    Attributes:
        kind: Token kind
        position: 0-based offset of the first character in the expression
        value: Parsed number for NUMBER, 1-based index for COLUMN, else None
    """

    kind: TokenKind
    position: int
    value: Union[int, float, None] = None

    def __str__(self) -> str:
        if self.kind is TokenKind.NUMBER:
            return f"number '{self.value:g}'"
        if self.kind is TokenKind.COLUMN:
            return f"column reference '#{int(self.value)}'"
        return self.kind.value


def is_constant_expression(text: str) -> bool:
    """True when ``text`` cannot reference any column (no ``#`` or ``@``)."""
    return "#" not in text and "@" not in text


class Lexer:
    """Splits an expression string into tokens on demand."""

    def __init__(self, text: str, titles: Optional[Sequence[str]] = None) -> None:
        self.text = text
        self.titles = list(titles) if titles is not None else []
        self.position = 0

    def _peek(self) -> Optional[str]:
        if self.position < len(self.text):
            return self.text[self.position]
        return None

    def tokens(self) -> List[Token]:
        """Lex the whole input, ending with an EOF token."""
        result = []
        while True:
            token = self.next_token()
            result.append(token)
            if token.kind is TokenKind.EOF:
                return result

    def next_token(self) -> Token:
        while self._peek() is not None and self._peek().isspace():
            self.position += 1

        start = self.position
        c = self._peek()
        if c is None:
            return Token(TokenKind.EOF, start)

        if c in _SINGLE_CHAR_TOKENS:
            self.position += 1
            return Token(_SINGLE_CHAR_TOKENS[c], start)
        if c == "#":
            return self._lex_column_index(start)
        if c == "@":
            return self._lex_column_title(start)
        if c in _DIGITS or c == ".":
            return self._lex_number(start)

        raise InvalidCharacter(repr(c), self.text, start)

    def _lex_number(self, start: int) -> Token:
        has_dot = False
        has_digits = False
        while (c := self._peek()) is not None:
            if c in _DIGITS:
                has_digits = True
            elif c == "." and not has_dot:
                has_dot = True
            elif c.isspace() or c in _SINGLE_CHAR_TOKENS:
                break
            else:
                raise InvalidNumber(
                    f"unexpected {c!r} in number", self.text, self.position
                )
            self.position += 1

        if not has_digits:
            raise InvalidNumber("number has no digits", self.text, start)
        return Token(TokenKind.NUMBER, start, float(self.text[start:self.position]))

    def _lex_column_index(self, start: int) -> Token:
        self.position += 1
        while (c := self._peek()) is not None and c.isascii() and c.isalnum():
            self.position += 1
        spelled = self.text[start + 1:self.position]

        if not spelled:
            raise InvalidColumnReference("empty column reference", self.text, start)
        if spelled.isalpha():
            index = letters_to_index(spelled)
        elif spelled.isdigit():
            index = int(spelled)
        else:
            raise InvalidColumnReference(f"invalid column index {spelled!r}", self.text, start)
        if index == 0:
            raise InvalidColumnReference("column indexes start at 1", self.text, start)
        return Token(TokenKind.COLUMN, start, index)

    def _lex_column_title(self, start: int) -> Token:
        self.position += 1
        chars = []
        while True:
            c = self._peek()
            if c is None:
                raise InvalidColumnReference("unterminated column title", self.text, start)
            self.position += 1
            if c == "\\":
                escaped = self._peek()
                if escaped is None:
                    raise InvalidColumnReference("unterminated column title", self.text, start)
                chars.append(escaped)
                self.position += 1
            elif c == "@":
                break
            else:
                chars.append(c)

        title = "".join(chars)
        if not title:
            raise InvalidColumnReference("empty column title", self.text, start)
        if title not in self.titles:
            raise InvalidColumnReference(
                f"unknown column title {title!r} (does the input have a header row?)",
                self.text,
                start,
            )
        index = self.titles.index(title) + 1
        logger.debug("Column title %r -> #%d", title, index)
        return Token(TokenKind.COLUMN, start, index)
