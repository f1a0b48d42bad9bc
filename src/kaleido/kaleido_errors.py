"""
Exception hierarchy for the Kaleidoscope toolchain.

Every failure inside a top-level form is reported as a single-line diagnostic
by the driver, which prints ``Error: <message>`` and moves on to the next form.

Classes:
    KaleidoError: Base class for all recoverable language errors.
    ParseError: Raised by the parser on malformed input.
    CodegenError: Raised by the lowerer or the backend while emitting code.
"""

from typing import Any


class KaleidoError(Exception):
    """Base class for errors that abandon the current top-level form."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ParseError(KaleidoError, SyntaxError):
    """Raised when the token stream does not match the K grammar.

    Attributes:
        message (str): The one-line diagnostic.
        token (Any): The offending token, left unconsumed by the parser.
    """

    def __init__(self, message: str, token: Any = None) -> None:
        KaleidoError.__init__(self, message)
        self.msg = message
        self.token = token


class CodegenError(KaleidoError):
    """Raised when a syntax tree cannot be lowered to backend instructions."""


__all__ = ["CodegenError", "KaleidoError", "ParseError"]
