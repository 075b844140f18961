# tests/test_cli.py
"""
Tests for the ``cinebrew`` command-line interface.
"""

import json
import logging

import pytest

from cinebrew.main import (
    EXIT_ERROR,
    EXIT_INFRA,
    EXIT_OK,
    EXIT_RUNTIME,
    _normalize_argv,
    main,
)
from tests.conftest import ARITHMETIC_CB, FACTORIAL_CB, REDECLARATION_CB


@pytest.fixture(autouse=True)
def _restore_cli_logger():
    logger = logging.getLogger("cinebrew")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def write_source(tmp_path):
    def _write(text, name="prog.cb"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write


class TestArgv:

    def test_bare_file_means_run(self):
        assert _normalize_argv(["game.cb"]) == ["run", "game.cb"]

    def test_flags_before_file(self):
        assert _normalize_argv(["-v", "game.cb"]) == ["-v", "run", "game.cb"]

    def test_explicit_command_untouched(self):
        assert _normalize_argv(["check", "game.cb"]) == ["check", "game.cb"]


class TestRun:

    def test_run(self, write_source, capsys):
        assert main(["run", write_source(ARITHMETIC_CB)]) == EXIT_OK
        assert capsys.readouterr().out == "8\n"

    def test_run_shorthand(self, write_source, capsys):
        assert main([write_source(FACTORIAL_CB)]) == EXIT_OK
        assert capsys.readouterr().out == "120\n"

    def test_compile_error(self, write_source, capsys):
        assert main(["run", write_source(REDECLARATION_CB)]) == EXIT_ERROR
        err = capsys.readouterr().err
        assert "Redeclaration of 'x'" in err
        assert "[CB-2001]" in err

    def test_missing_file(self, tmp_path):
        assert main(["run", str(tmp_path / "absent.cb")]) == EXIT_INFRA

    def test_step_limit_is_runtime_failure(self, write_source, capsys):
        path = write_source("TAKE i = 0;\nLOOP 1 { i = i + 1; }")
        assert main(["run", path, "--max-steps", "100"]) == EXIT_RUNTIME
        assert "Step limit of 100 instructions exceeded" in capsys.readouterr().err

    def test_dump_state(self, write_source, capsys):
        assert main(["run", write_source("TAKE z = 2;"), "--dump-state"]) == EXIT_OK
        err = capsys.readouterr().err
        assert "Stack: []" in err
        assert "z = 2" in err


class TestCompileAndExec:

    def test_compile_to_stdout(self, write_source, capsys):
        assert main(["compile", write_source(ARITHMETIC_CB)]) == EXIT_OK
        lines = capsys.readouterr().out.splitlines()
        assert lines[:4] == ["PUSH 3", "PUSH 5", "ADD", "STORE x"]
        assert lines[-2:] == ["HALT:", "HALT"]

    def test_compile_then_exec(self, write_source, tmp_path, capsys):
        out = tmp_path / "prog.cbc"
        assert main(["compile", write_source(FACTORIAL_CB), "-o", str(out)]) == EXIT_OK
        assert out.read_text(encoding="utf-8").startswith("PUSH 5\n")
        capsys.readouterr()

        assert main(["exec", str(out)]) == EXIT_OK
        assert capsys.readouterr().out == "120\n"

    def test_exec_underflow(self, write_source, capsys):
        path = write_source("PUSH 1\nADD\n", name="bad.cbc")
        assert main(["exec", path]) == EXIT_RUNTIME
        assert "Stack underflow at PC=1" in capsys.readouterr().err


class TestCheck:

    def test_ok(self, write_source, capsys):
        assert main(["check", write_source(ARITHMETIC_CB)]) == EXIT_OK
        assert "OK" in capsys.readouterr().out

    def test_json_diagnostics(self, write_source, capsys):
        path = write_source(REDECLARATION_CB)
        assert main(["check", path, "--format", "json"]) == EXIT_ERROR
        record = json.loads(capsys.readouterr().err.splitlines()[0])
        assert record["code"] == "CB-2001"
        assert record["line"] == 2


class TestFrontEndDumps:

    def test_tokens(self, write_source, capsys):
        assert main(["tokens", write_source("POUR 1;")]) == EXIT_OK
        out = capsys.readouterr().out.splitlines()
        assert len(out) == 3
        assert "SEMICOLON" in out[2]

    def test_tokens_lexical_error(self, write_source, capsys):
        assert main(["tokens", write_source("POUR @;")]) == EXIT_ERROR
        assert "Unexpected character: '@'" in capsys.readouterr().err

    def test_parse(self, write_source, capsys):
        assert main(["parse", write_source(ARITHMETIC_CB)]) == EXIT_OK
        assert capsys.readouterr().out.startswith("(program\n  (take x (+ 3 5))")

    def test_parse_error(self, write_source, capsys):
        assert main(["parse", write_source("POUR 1")]) == EXIT_ERROR
        assert "Expected ';' after POUR statement" in capsys.readouterr().err


class TestTopLevel:

    def test_version(self, capsys):
        assert main(["--version"]) == EXIT_OK
        assert "cinebrew" in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA
