"""
Interactive driver for the Kaleidoscope (K) language.

A `Session` bundles everything that lives for the whole run: the lexer, the
parser and its lookahead token, the backend module/builder/engine and the
lowerer with its symbol environment. `Session.run()` reads top-level forms
until end of input and dispatches on the leading token of each one:

    EOF       stop
    ';'       skip
    'def'     parse, lower and dump a function definition
    'extern'  parse, lower and dump an extern declaration
    other     parse and lower a top-level expression, then run it (JIT) or dump it

The prompt is printed once before the first token is read and again at the
top of every iteration. Errors never stop the loop. They are printed as
`Error: <message>` on the error stream; after a parse error exactly one token
is skipped.
"""

import sys
from typing import Any, TextIO

from kaleido.emitters.llvm_emitter import LLVMEmitter
from kaleido.kaleido_ast import FunctionNode
from kaleido.kaleido_backend import HostLibrary, LLVMBackend
from kaleido.kaleido_constants import DEF, EOF, EXTERN
from kaleido.kaleido_errors import KaleidoError, ParseError
from kaleido.kaleido_lexer import CharacterStream, Lexer
from kaleido.kaleido_parser import Parser

PROMPT = "ready> "


class Session:
    """One compiler session reading K source from a single character stream.

    Attributes:
        lexer (Lexer): Token source.
        parser (Parser): Parser holding the current lookahead token.
        backend (LLVMBackend): Module, builder, optimizer and optional JIT engine.
        emitter (LLVMEmitter): Lowerer holding the symbol environment.
        out (TextIO): Stream for prompts, dumps and results.
        err (TextIO): Stream for diagnostics.
    """

    def __init__(
        self,
        source: str | TextIO,
        jit: bool = True,
        opt_level: int = 2,
        verbose: bool = False,
        prompt: bool = True,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.out: TextIO = out if out is not None else sys.stdout
        self.err: TextIO = err if err is not None else sys.stderr
        self.verbose = verbose
        self.prompt_enabled = prompt

        self.lexer = Lexer(CharacterStream(source))
        self.parser = Parser(self.lexer)
        self.backend = LLVMBackend(jit=jit, opt_level=opt_level, host=HostLibrary(self.out))
        self.emitter = LLVMEmitter(self.backend)

    @property
    def jit(self) -> bool:
        return self.backend.engine is not None

    def prompt(self) -> None:
        if self.prompt_enabled:
            self.out.write(PROMPT)
            self.out.flush()

    def report_error(self, error: Any) -> None:
        print(f"Error: {error}", file=self.err)

    def trace_ast(self, node: FunctionNode) -> None:
        if self.verbose:
            print(f"[ast] >>> {node.body.to_dict()}", file=self.out)

    def trace_ir(self, function: Any) -> None:
        if self.verbose:
            print("[ir] >>>", file=self.out)
            print(str(function).rstrip(), file=self.out)

    def handle_definition(self) -> None:
        try:
            node = self.parser.parse_definition()
        except ParseError as e:
            self.report_error(e)
            self.parser.advance()
            return
        self.trace_ast(node)
        try:
            function = self.emitter.emit(node)
        except KaleidoError as e:
            self.report_error(e)
            return
        self.trace_ir(function)
        print("Parsed a function definition", file=self.out)
        print(self.backend.dump(function).rstrip(), file=self.out)

    def handle_extern(self) -> None:
        try:
            node = self.parser.parse_extern()
        except ParseError as e:
            self.report_error(e)
            self.parser.advance()
            return
        try:
            function = self.emitter.emit(node)
            listing = self.backend.dump(function)
        except KaleidoError as e:
            self.report_error(e)
            return
        print("Parsed an extern expr", file=self.out)
        print(listing.rstrip(), file=self.out)

    def handle_top_level_expression(self) -> None:
        try:
            node = self.parser.parse_top_level_expr()
        except ParseError as e:
            self.report_error(e)
            self.parser.advance()
            return
        self.trace_ast(node)
        try:
            function = self.emitter.emit(node)
        except KaleidoError as e:
            self.report_error(e)
            return
        try:
            self.trace_ir(function)
            if self.jit:
                result = self.backend.execute(function)
                print(f"-> {result:f}", file=self.out)
            else:
                print("Parsed a top-level expr", file=self.out)
                print(self.backend.dump(function).rstrip(), file=self.out)
        except KaleidoError as e:
            self.report_error(e)
        finally:
            # The anonymous function is single-use.
            self.backend.forget(function)
            self.backend.module.erase_function(function)

    def run(self) -> None:
        """Runs the read-lower-report loop until end of input."""
        self.prompt()
        self.parser.advance()
        while True:
            self.prompt()
            tok = self.parser.current
            if tok.type == EOF:
                return
            if tok.is_char(";"):
                self.parser.advance()
            elif tok.type == DEF:
                self.handle_definition()
            elif tok.type == EXTERN:
                self.handle_extern()
            else:
                self.handle_top_level_expression()


def run_source(source: str | TextIO, **options: Any) -> Session:
    """Runs a whole program and returns the finished session."""
    session = Session(source, **options)
    session.run()
    return session


def start_repl(jit: bool = True, opt_level: int = 2, verbose: bool = False, prompt: bool = True) -> None:
    """Runs the interactive loop on standard input."""
    try:
        run_source(sys.stdin, jit=jit, opt_level=opt_level, verbose=verbose, prompt=prompt)
    except KeyboardInterrupt:
        print("", file=sys.stdout)


def main() -> None:
    start_repl()


if __name__ == "__main__":
    main()
