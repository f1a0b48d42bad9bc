"""
Shared lexical constants for the Kaleidoscope (K) language.

Exports:
    - EOF, DEF, EXTERN, IF, THEN, ELSE, IDENT, NUMBER, CHAR: canonical token types
    - keyword_tokens: maps reserved words to their token type
    - BINOP_PRECEDENCE: read-only operator precedence table used by the parser
    - ANON_FUNCTION_NAME: backend name given to anonymous top-level expressions
"""

from types import MappingProxyType

EOF = "EOF"
DEF = "DEF"
EXTERN = "EXTERN"
IF = "IF"
THEN = "THEN"
ELSE = "ELSE"
IDENT = "IDENT"
NUMBER = "NUMBER"
CHAR = "CHAR"

token_types: tuple[str, ...] = (EOF, DEF, EXTERN, IF, THEN, ELSE, IDENT, NUMBER, CHAR)

keyword_tokens: dict[str, str] = {
    "def": DEF,
    "extern": EXTERN,
    "if": IF,
    "then": THEN,
    "else": ELSE,
}

# Characters not listed here have no binary precedence.
BINOP_PRECEDENCE = MappingProxyType(
    {
        "<": 10,
        "+": 20,
        "-": 20,
        "*": 40,
        "/": 40,
    }
)

NO_PRECEDENCE = -1

ANON_FUNCTION_NAME = "__anon_expr"

__all__ = [
    "ANON_FUNCTION_NAME",
    "BINOP_PRECEDENCE",
    "CHAR",
    "DEF",
    "ELSE",
    "EOF",
    "EXTERN",
    "IDENT",
    "IF",
    "NO_PRECEDENCE",
    "NUMBER",
    "THEN",
    "keyword_tokens",
    "token_types",
]
