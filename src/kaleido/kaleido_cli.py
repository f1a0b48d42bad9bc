"""
Kaleidoscope CLI Entrypoint.

This module provides the command-line interface for the K language. With no
arguments it starts the interactive REPL on standard input, with the JIT
enabled.

Features:
    - Read source from `.k` files, inline strings, or standard input.
    - Execute top-level expressions with the JIT, or dump their IR (`--no-jit`).
    - Choose the optimization level, or disable optimization with `-O 0`.
    - Print the unoptimized IR of every function with `--verbose`.

Example usage:
    kaleido
    kaleido fib.k
    kaleido -s "def sq(x) x*x; sq(4);" --no-prompt
    kaleido --no-jit -O 0 fib.k

Functions:
    run_kaleido(source: str, is_string: bool = False, jit: bool = True, opt_level: int = 2,
                verbose: bool = False, prompt: bool = False) -> None:
        Runs a whole program from a file or string.

    main(argv: list[str] | None = None) -> int:
        Parses CLI arguments and invokes the appropriate action.
"""

import argparse
import sys

from kaleido.kaleido_repl import run_source, start_repl


def run_kaleido(
    source: str,
    is_string: bool = False,
    jit: bool = True,
    opt_level: int = 2,
    verbose: bool = False,
    prompt: bool = False,
) -> None:
    """
    Run a K program held in a `.k` file or in a string.

    Args:
        source (str): The K source code or path to a `.k` file.
        is_string (bool): If True, treats `source` as raw code instead of a file path. Defaults to False.
        jit (bool): Execute top-level expressions instead of dumping them. Defaults to True.
        opt_level (int): Optimization level, 0 disables the pipeline. Defaults to 2.
        verbose (bool): Also print the unoptimized IR of each function. Defaults to False.
        prompt (bool): Print the `ready> ` prompt between forms. Defaults to False.

    Raises:
        ValueError: If `is_string` is False and the source does not end with '.k'.
        OSError: If the file cannot be read.
    """
    if not is_string and not source.endswith(".k"):
        raise ValueError("Only .k files are supported.")

    options = {"jit": jit, "opt_level": opt_level, "verbose": verbose, "prompt": prompt}
    if is_string:
        run_source(source, **options)
        return
    with open(source, encoding="utf-8") as f:
        run_source(f, **options)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kaleido")
    parser.add_argument("source", nargs="?", help="Filename or raw source (with -s)")
    parser.add_argument(
        "-s", "--string", action="store_true", help="Interpret source as literal string"
    )
    parser.add_argument(
        "--no-jit",
        dest="jit",
        action="store_false",
        help="Dump top-level expressions instead of executing them",
    )
    parser.add_argument(
        "-O",
        "--opt-level",
        type=int,
        choices=(0, 1, 2, 3),
        default=2,
        help="Optimization level (default: 2, 0 disables optimization)",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Also print unoptimized IR"
    )
    parser.add_argument(
        "--no-prompt",
        dest="prompt",
        action="store_false",
        help="Do not print the 'ready> ' prompt",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Entry point for the K CLI.

    Without a source argument the REPL reads standard input; otherwise the
    given file or string is run as a batch. Returns the process exit code.
    """
    args = build_arg_parser().parse_args(argv)

    if args.source is None:
        start_repl(
            jit=args.jit, opt_level=args.opt_level, verbose=args.verbose, prompt=args.prompt
        )
        return 0

    try:
        run_kaleido(
            source=args.source,
            is_string=args.string,
            jit=args.jit,
            opt_level=args.opt_level,
            verbose=args.verbose,
            prompt=args.prompt,
        )
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__" and not any("pytest" in arg for arg in sys.argv):
    sys.exit(main())
