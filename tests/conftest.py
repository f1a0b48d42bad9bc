import io
import os
from typing import Any

import pytest

from kaleido.kaleido_backend import LLVMBackend
from kaleido.kaleido_repl import run_source

# Monkeypatch coverage to bypass teardown crash in act/docker
if os.getenv("COVERAGE_PROCESS_START"):
    import coverage

    coverage.process_startup()

    import coverage.collector

    def safe_stop(self: Any) -> None:
        if self in getattr(self, "_collectors", []):
            self._collectors.remove(self)

    coverage.collector.Collector.stop = safe_stop


class Transcript:
    """Captured output of one batch session."""

    def __init__(self, out: str, err: str) -> None:
        self.out = out
        self.err = err

    @property
    def results(self) -> list[str]:
        return [line for line in self.out.splitlines() if line.startswith("-> ")]

    @property
    def errors(self) -> list[str]:
        return [line for line in self.err.splitlines() if line.startswith("Error: ")]


def run_program(source: str, **options: Any) -> Transcript:
    out, err = io.StringIO(), io.StringIO()
    options.setdefault("prompt", False)
    run_source(source, out=out, err=err, **options)
    return Transcript(out.getvalue(), err.getvalue())


@pytest.fixture  # type: ignore[misc]
def run() -> Any:
    return run_program


@pytest.fixture  # type: ignore[misc]
def dump_backend() -> LLVMBackend:
    return LLVMBackend(jit=False, opt_level=0)
