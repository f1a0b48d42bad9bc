import os
import subprocess
import sys
from pathlib import Path
from typing import Any

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from kaleido import kaleido_cli

PROGRAM = "def sq(x) x*x; sq(4);"


def test_run_kaleido_string_input(capsys: pytest.CaptureFixture[str]) -> None:
    kaleido_cli.run_kaleido(PROGRAM, is_string=True)
    out = capsys.readouterr().out
    assert "Parsed a function definition" in out
    assert out.rstrip().endswith("-> 16.000000")


def test_run_kaleido_file_input(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    file_path = tmp_path / "square.k"
    file_path.write_text(PROGRAM)
    kaleido_cli.run_kaleido(str(file_path))
    assert "-> 16.000000" in capsys.readouterr().out


def test_run_kaleido_without_jit(capsys: pytest.CaptureFixture[str]) -> None:
    kaleido_cli.run_kaleido(PROGRAM, is_string=True, jit=False)
    out = capsys.readouterr().out
    assert "->" not in out
    assert "Parsed a top-level expr" in out


def test_run_kaleido_prompt(capsys: pytest.CaptureFixture[str]) -> None:
    kaleido_cli.run_kaleido("1;", is_string=True, prompt=True)
    assert capsys.readouterr().out.count("ready> ") == 4


def test_run_kaleido_rejects_non_k_file() -> None:
    with pytest.raises(ValueError, match="Only .k files are supported."):
        kaleido_cli.run_kaleido("example.txt")


def test_run_kaleido_missing_file(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        kaleido_cli.run_kaleido(str(tmp_path / "missing.k"))


def test_main_parses_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    called = {}

    def dummy_run(**kwargs: Any) -> None:
        called.update(kwargs)

    monkeypatch.setattr(kaleido_cli, "run_kaleido", dummy_run)
    assert kaleido_cli.main(["-s", "4+5;", "--no-jit", "-O", "0", "--verbose", "--no-prompt"]) == 0
    assert called == {
        "source": "4+5;",
        "is_string": True,
        "jit": False,
        "opt_level": 0,
        "verbose": True,
        "prompt": False,
    }


def test_main_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    called = {}
    monkeypatch.setattr(kaleido_cli, "run_kaleido", lambda **kwargs: called.update(kwargs))
    kaleido_cli.main(["fib.k"])
    assert called["is_string"] is False
    assert called["jit"] is True
    assert called["opt_level"] == 2
    assert called["prompt"] is True


def test_main_invalid_opt_level() -> None:
    with pytest.raises(SystemExit) as e:
        kaleido_cli.main(["-O", "7", "-s", "1;"])
    assert e.value.code == 2


def test_main_reports_bad_file(capsys: pytest.CaptureFixture[str]) -> None:
    assert kaleido_cli.main(["notes.txt"]) == 1
    assert capsys.readouterr().err == "Error: Only .k files are supported.\n"


def test_main_reports_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert kaleido_cli.main([str(tmp_path / "missing.k")]) == 1
    assert capsys.readouterr().err.startswith("Error: ")


def test_main_calls_repl_on_no_args(monkeypatch: pytest.MonkeyPatch) -> None:
    called = {}

    def fake_repl(**kwargs: Any) -> None:
        called.update(kwargs)

    monkeypatch.setattr(kaleido_cli, "start_repl", fake_repl)
    assert kaleido_cli.main(["--no-jit", "--verbose"]) == 0
    assert called == {"jit": False, "opt_level": 2, "verbose": True, "prompt": True}


def test_main_uses_sys_argv(monkeypatch: pytest.MonkeyPatch) -> None:
    called = {}
    monkeypatch.setattr(sys, "argv", ["kaleido", "-s", "1;"])
    monkeypatch.setattr(kaleido_cli, "run_kaleido", lambda **kwargs: called.update(kwargs))
    kaleido_cli.main()
    assert called["source"] == "1;"


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture], max_examples=30)  # type: ignore[misc]
@given(st.text(alphabet=st.characters(codec="ascii"), max_size=40))  # type: ignore[misc]
def test_run_kaleido_random_input_does_not_crash(source: str) -> None:
    try:
        kaleido_cli.run_kaleido(source, is_string=True, jit=False)
    except Exception:
        pytest.fail("Should not crash on random input")


def test_kaleido_cli_main_entrypoint_runs() -> None:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, ["src", env.get("PYTHONPATH")]))
    result = subprocess.run(
        [sys.executable, "-m", "kaleido.kaleido_cli", "-s", "4+5;", "--no-prompt"],
        capture_output=True,
        timeout=30,
        env=env,
    )
    assert result.returncode == 0
    assert result.stdout.decode().strip() == "-> 9.000000"
