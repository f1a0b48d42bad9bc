"""
Lexical analyzer for the Kaleidoscope (K) language.

This module converts a stream of characters into a stream of tokens, one token
at a time, using a single character of lookahead.

Classes:
    CharacterStream: Lazy character source over a string or a text file, with line/column tracking.
    Token: Represents a single token with type, value, and source location.
    Lexer: Converts a CharacterStream into a sequence of tokens.

Features:
    - Skips ASCII whitespace and `#` comments running to end of line
    - Recognizes the keywords `def`, `extern`, `if`, `then`, `else`
    - Identifiers are `[A-Za-z][A-Za-z0-9]*`
    - Numbers are maximal runs of digits and `.`, converted with C `strtod` prefix semantics
    - Any other character becomes a single CHAR token

The lexer never fails: every input ends in an EOF token.

Example:
    >>> lexer = Lexer(CharacterStream("def f(x) x+1"))
    >>> lexer.next_token()
    Token(DEF, def)

Exports:
    - CharacterStream
    - Token
    - Lexer
    - parse_number
"""

import re
from collections.abc import Iterator
from typing import Any, TextIO

from kaleido.kaleido_constants import CHAR, EOF, IDENT, NUMBER, keyword_tokens

_FLOAT_PREFIX = re.compile(r"\d*(?:\.\d*)?")


def parse_number(text: str) -> float:
    """Converts a run of digits and dots the way C `strtod` does.

    Only the longest leading prefix that forms a decimal number is used, so
    `1.2.3` yields 1.2 and a lone `.` yields 0.0.

    Args:
        text (str): The raw numeric run collected by the lexer.

    Returns:
        float: The converted value.
    """
    prefix = _FLOAT_PREFIX.match(text)
    digits = prefix.group(0) if prefix else ""
    if not digits or digits == ".":
        return 0.0
    return float(digits)


def _is_ascii_alpha(ch: str) -> bool:
    return ch.isascii() and ch.isalpha()


def _is_ascii_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


def _is_ascii_digit(ch: str) -> bool:
    return ch.isascii() and ch.isdigit()


class CharacterStream:
    """
    A utility for reading characters lazily from a string or a text file.

    Characters are pulled from the source only when needed, so an interactive
    source such as standard input blocks exactly when the lexer needs more
    input.

    Attributes:
        line (int): Line number of the next unread character (1-indexed).
        column (int): Column number of the next unread character (1-indexed).
    """

    def __init__(self, source: str | TextIO, line: int = 1, column: int = 1):
        """
        Initializes the character stream.

        Args:
            source (str | TextIO): The program text, or a file object to read from.
            line (int, optional): Starting line number. Defaults to 1.
            column (int, optional): Starting column number. Defaults to 1.
        """
        if isinstance(source, str):
            self._chars: Iterator[str] = iter(source)
        else:
            self._chars = self._read_file(source)
        self._buffer: str | None = None
        self.line = line
        self.column = column

    @staticmethod
    def _read_file(fp: TextIO) -> Iterator[str]:
        while True:
            ch = fp.read(1)
            if not ch:
                return
            yield ch

    def peek(self) -> str:
        """Returns the next character without consuming it, or "" at end of input."""
        if self._buffer is None:
            self._buffer = next(self._chars, "")
        return self._buffer

    def next(self) -> str:
        """Consumes and returns the next character, or "" at end of input."""
        ch = self.peek()
        self._buffer = None
        if ch == "\n":
            self.line += 1
            self.column = 1
        elif ch:
            self.column += 1
        return ch

    def end_of_file(self) -> bool:
        return self.peek() == ""


class Token:
    """Represents a single lexical token in the K language.

    Attributes:
        type (str): The canonical token type (e.g. 'IDENT', 'NUMBER', 'CHAR', 'EOF').
        value (Any): Identifier text, float value, punctuation character, or keyword text.
        line (int): The 1-based line number where the token starts.
        col (int): The 1-based column number where the token starts.
    """

    def __init__(self, type_: str, value: Any = None, line: int = 0, col: int = 0):
        self.type = type_
        self.value = value
        self.line = line
        self.col = col

    def is_char(self, ch: str) -> bool:
        """Returns True if this is the punctuation token for `ch`."""
        return self.type == CHAR and self.value == ch

    def __repr__(self) -> str:
        return f"Token({self.type}, {self.value})"

    def _key(self) -> tuple[Any, ...]:
        return (self.type, self.value, self.line, self.col)

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Token) and self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())


class Lexer:
    """Lexical analyzer for the K language.

    Besides returning tokens, the lexer remembers the text of the last
    identifier and the value of the last number it produced.

    Attributes:
        stream (CharacterStream): The source stream to tokenize.
        identifier_str (str): Text of the most recent identifier or keyword.
        num_val (float): Value of the most recent number.
    """

    def __init__(self, stream: CharacterStream) -> None:
        self.stream = stream
        self.identifier_str = ""
        self.num_val = 0.0

    def peek(self) -> str:
        return self.stream.peek()

    def advance(self) -> str:
        return self.stream.next()

    def skip_whitespace(self) -> None:
        """Skips ASCII whitespace."""
        while self.peek() in (" ", "\t", "\r", "\n", "\v", "\f"):
            self.advance()

    def skip_comment(self) -> None:
        """Advances through the stream until the end of a comment line."""
        while not self.stream.end_of_file() and self.peek() != "\n":
            self.advance()

    def next_token(self) -> Token:
        """Consumes and returns the next Token from the stream.

        Returns:
            Token: The next token; EOF once the input is exhausted.
        """
        while True:
            self.skip_whitespace()
            line, col = self.stream.line, self.stream.column
            ch = self.peek()

            # 1. Identifier or keyword
            if _is_ascii_alpha(ch):
                ident = self.advance()
                while _is_ascii_alnum(self.peek()):
                    ident += self.advance()
                self.identifier_str = ident
                if ident in keyword_tokens:
                    return Token(keyword_tokens[ident], ident, line, col)
                return Token(IDENT, ident, line, col)

            # 2. Number, no validation of repeated dots
            if _is_ascii_digit(ch) or ch == ".":
                num = ""
                while _is_ascii_digit(self.peek()) or self.peek() == ".":
                    num += self.advance()
                self.num_val = parse_number(num)
                return Token(NUMBER, self.num_val, line, col)

            # 3. Comment, then classify again
            if ch == "#":
                self.skip_comment()
                continue

            if ch == "":
                return Token(EOF, None, line, col)

            # 4. Anything else is single-character punctuation
            return Token(CHAR, self.advance(), line, col)

    def tokens(self) -> Iterator[Token]:
        """Yields tokens up to and including the first EOF token."""
        while True:
            tok = self.next_token()
            yield tok
            if tok.type == EOF:
                return


__all__ = ["CharacterStream", "Lexer", "Token", "parse_number"]
