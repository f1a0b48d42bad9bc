"""
Kaleidoscope (K) Language Parser

Pulls tokens lazily from a `Lexer` and builds syntax trees one top-level form
at a time.

Supported Constructs
--------------------
- Primary expressions: numbers, identifiers, calls `f(a, b)`, `( expr )`,
  and `if <cond> then <expr> else <expr>`.
- Binary operators `<`, `+`, `-`, `*`, `/`, parsed by precedence climbing.
  All operators are left-associative.
- Top-level forms: `def proto expr`, `extern proto`, and bare expressions.
- Prototypes take space-separated parameter names: `foo(a b c)`.

Parser Behavior
---------------
- One token of lookahead, held in `current`. The parser never backtracks.
- On malformed input a `ParseError` is raised and the offending token is left
  unconsumed; the driver decides how to resynchronize.

Entry Points
------------
- `parse_definition()`: `def` form, returns a FunctionNode.
- `parse_extern()`: `extern` form, returns a PrototypeNode.
- `parse_top_level_expr()`: bare expression wrapped in an anonymous FunctionNode.
- `parse_expression()`: a single expression.

Raises
------
ParseError
    Raised with a one-line diagnostic when the grammar is violated.
"""

from __future__ import annotations

from kaleido.kaleido_ast import ASTNode, FunctionNode, PrototypeNode
from kaleido.kaleido_constants import (
    BINOP_PRECEDENCE,
    CHAR,
    DEF,
    ELSE,
    EXTERN,
    IDENT,
    IF,
    NO_PRECEDENCE,
    NUMBER,
    THEN,
)
from kaleido.kaleido_errors import ParseError
from kaleido.kaleido_lexer import Lexer, Token


class Parser:
    """
    K Parser Class

    Attributes
    ----------
    lexer : Lexer
        The token source.
    current : Token
        The lookahead token. Starts as None until `advance()` is first called.
    precedence : Mapping[str, int]
        Binary operator precedence table.
    """

    def __init__(self, lexer: Lexer) -> None:
        self.lexer = lexer
        self.current: Token = None  # type: ignore[assignment]
        self.precedence = BINOP_PRECEDENCE

    def advance(self) -> Token:
        """Reads the next token into `current` and returns it."""
        self.current = self.lexer.next_token()
        return self.current

    def error(self, message: str) -> ParseError:
        return ParseError(message, self.current)

    def token_precedence(self) -> int:
        """Returns the precedence of the current token, or -1 if it is not a binary operator."""
        tok = self.current
        if tok is None or tok.type != CHAR:
            return NO_PRECEDENCE
        return self.precedence.get(tok.value, NO_PRECEDENCE)

    # Primary expressions

    def parse_number(self) -> ASTNode:
        tok = self.current
        self.advance()
        return ASTNode.number(tok.value, line=tok.line, col=tok.col)

    def parse_paren(self) -> ASTNode:
        """Parse `( expr )`."""
        self.advance()
        node = self.parse_expression()
        if not self.current.is_char(")"):
            raise self.error("Expected ')'")
        self.advance()
        return node

    def parse_identifier_or_call(self) -> ASTNode:
        """Parse a variable reference or a call with comma-separated arguments."""
        ident_tok = self.current
        name = ident_tok.value
        self.advance()

        if not self.current.is_char("("):
            return ASTNode.identifier(name, line=ident_tok.line, col=ident_tok.col)

        self.advance()
        args: list[ASTNode] = []
        if not self.current.is_char(")"):
            while True:
                args.append(self.parse_expression())
                if self.current.is_char(")"):
                    break
                if not self.current.is_char(","):
                    raise self.error("Expected ',' or ')' in argument list")
                self.advance()
        self.advance()
        return ASTNode.call(name, args, line=ident_tok.line, col=ident_tok.col)

    def parse_if(self) -> ASTNode:
        """Parse `if <cond> then <expr> else <expr>`."""
        if_tok = self.current
        self.advance()
        cond = self.parse_expression()

        if self.current.type != THEN:
            raise self.error("Expected 'then'")
        self.advance()
        then_branch = self.parse_expression()

        if self.current.type != ELSE:
            raise self.error("Expected 'else'")
        self.advance()
        else_branch = self.parse_expression()

        return ASTNode.if_(cond, then_branch, else_branch, line=if_tok.line, col=if_tok.col)

    def parse_primary(self) -> ASTNode:
        tok = self.current
        if tok.type == IDENT:
            return self.parse_identifier_or_call()
        if tok.type == NUMBER:
            return self.parse_number()
        if tok.is_char("("):
            return self.parse_paren()
        if tok.type == IF:
            return self.parse_if()
        raise self.error("Unknown token, expecting expr")

    # Binary operators

    def parse_binop_rhs(self, min_prec: int, lhs: ASTNode) -> ASTNode:
        """Fold `(op primary)*` into `lhs` while operators bind at least `min_prec`."""
        while True:
            tok_prec = self.token_precedence()
            if tok_prec < min_prec:
                return lhs

            op_tok = self.current
            self.advance()
            rhs = self.parse_primary()

            # A tighter operator after rhs takes rhs as its own left operand.
            if tok_prec < self.token_precedence():
                rhs = self.parse_binop_rhs(tok_prec + 1, rhs)

            lhs = ASTNode.binary(op_tok.value, lhs, rhs, line=op_tok.line, col=op_tok.col)

    def parse_expression(self) -> ASTNode:
        lhs = self.parse_primary()
        return self.parse_binop_rhs(0, lhs)

    # Top-level forms

    def parse_prototype(self) -> PrototypeNode:
        """Parse `name(a b c)`."""
        name_tok = self.current
        if name_tok.type != IDENT:
            raise self.error("Expected function name in prototype")
        self.advance()

        if not self.current.is_char("("):
            raise self.error("Expected '(' in prototype")

        params: list[str] = []
        while self.advance().type == IDENT:
            params.append(self.current.value)

        if not self.current.is_char(")"):
            raise self.error("Expected ')' in prototype")
        self.advance()

        return PrototypeNode(name_tok.value, params, line=name_tok.line, col=name_tok.col)

    def parse_definition(self) -> FunctionNode:
        """Parse `def proto expr`."""
        if self.current.type != DEF:
            raise self.error("Expected 'def'")
        self.advance()
        proto = self.parse_prototype()
        body = self.parse_expression()
        return FunctionNode(proto, body)

    def parse_extern(self) -> PrototypeNode:
        """Parse `extern proto`."""
        if self.current.type != EXTERN:
            raise self.error("Expected 'extern'")
        self.advance()
        return self.parse_prototype()

    def parse_top_level_expr(self) -> FunctionNode:
        """Parse a bare expression as the body of an anonymous, parameterless function."""
        tok = self.current
        body = self.parse_expression()
        return FunctionNode(PrototypeNode("", [], line=tok.line, col=tok.col), body)


__all__ = ["Parser"]
