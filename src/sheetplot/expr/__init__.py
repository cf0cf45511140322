"""
Expression compiler module.

Tokenizes, parses and evaluates the small arithmetic language used for the
x and y column expressions.

Key components:
- Lexer / Token: tokenizer with ``#index``, ``#LETTERS`` and ``@title@`` references
- Number, ColumnRef, BinaryOp, Negate: the expression tree
- compile_expression: text -> tree
- evaluate_row, evaluate_columns, build_datasheet: tree -> values
"""

from .lexer import Lexer, Token, TokenKind, is_constant_expression
from .nodes import BinaryOp, ColumnRef, Expr, Negate, Number, referenced_columns, walk
from .parser import Parser, compile_expression
from .evaluate import build_datasheet, evaluate_columns, evaluate_row, evaluate_text

__all__ = [
    "Lexer",
    "Token",
    "TokenKind",
    "is_constant_expression",
    "BinaryOp",
    "ColumnRef",
    "Expr",
    "Negate",
    "Number",
    "referenced_columns",
    "walk",
    "Parser",
    "compile_expression",
    "build_datasheet",
    "evaluate_columns",
    "evaluate_row",
    "evaluate_text",
]
