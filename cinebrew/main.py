#!/usr/bin/env python3
"""cinebrew/main.py - CLI entry-point for the CineBrew toolchain.

Usage examples
--------------
    # Compile and run a program
    cinebrew run game.cb
    cinebrew game.cb

    # Compile to a bytecode listing
    cinebrew compile game.cb -o game.cbc

    # Run a bytecode listing
    cinebrew exec game.cbc --trace -vv

    # Check a program without generating code
    cinebrew check game.cb --format json

    # Inspect the front end
    cinebrew tokens game.cb
    cinebrew parse game.cb

Exit codes
----------
    0   Success.
    1   One or more compilation errors were reported.
    2   Infrastructure failure (missing file, unreadable input, etc.).
    3   Fatal runtime error (stack underflow, step limit exceeded).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from cinebrew import __version__
from cinebrew.compiler import CompileResult, compile_source, token_listing
from cinebrew.errors import CinebrewError, Diagnostic, VMError
from cinebrew.lexer import tokenize
from cinebrew.parser import parse
from cinebrew.printer import dump_program
from cinebrew.vm import VirtualMachine, VMConfig

_log = logging.getLogger("cinebrew")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2
EXIT_RUNTIME: int = 3

COMMANDS = ("run", "compile", "exec", "check", "tokens", "parse")


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``cinebrew`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("cinebrew")
    root.setLevel(level)
    root.addHandler(handler)


def _resolve_path(raw: str, label: str = "file") -> Path:
    """Resolve *raw* to an absolute ``Path``, raising on missing files."""
    p = Path(raw).expanduser().resolve()
    if not p.is_file():
        _log.error("%s not found: %s", label, p)
        raise SystemExit(EXIT_INFRA)
    return p


def _open_output(dest: Optional[str]) -> TextIO:
    """Return a writable text stream.

    *dest* ``None`` or ``"-"`` → ``sys.stdout``; otherwise open the path
    for writing (creating parent directories as needed).
    """
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _emit_diagnostics(diagnostics: List[Diagnostic], fmt: str, stream: TextIO) -> int:
    """Write *diagnostics* to *stream* in the chosen format.

    Returns the count of ERROR-severity diagnostics.
    """
    error_count = 0
    for diag in diagnostics:
        if diag.severity.is_error():
            error_count += 1
        if fmt == "json":
            stream.write(json.dumps(diag.to_dict()) + "\n")
        else:
            stream.write(diag.to_gcc_format() + "\n")
    return error_count


def _compile_file(args: argparse.Namespace) -> CompileResult:
    src_path = _resolve_path(args.source_file, "source file")
    source = src_path.read_text(encoding="utf-8")
    _log.info("Compiling %s", src_path)
    result = compile_source(source, filename=args.source_file)
    if result.had_error:
        _emit_diagnostics(result.diagnostics, getattr(args, "format", "gcc"), sys.stderr)
    return result


def _vm_config(args: argparse.Namespace) -> VMConfig:
    return VMConfig(max_steps=args.max_steps, trace=args.trace)


def _execute(bytecode: List[str], args: argparse.Namespace) -> int:
    vm = VirtualMachine(config=_vm_config(args))
    try:
        result = vm.run(bytecode)
    except VMError as exc:
        _log.error("Runtime error: %s", exc)
        sys.stderr.write(f"Runtime error: {exc}\n")
        return EXIT_RUNTIME
    finally:
        sys.stdout.flush()
    _log.info("Program %s after %d instructions", result.status.value, result.steps)
    if args.dump_state:
        sys.stderr.write(vm.dump_stack() + "\n")
        sys.stderr.write(vm.dump_variables() + "\n")
    return EXIT_OK


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_run(args: argparse.Namespace) -> int:
    """Compile a CineBrew source file and execute it."""
    result = _compile_file(args)
    if result.had_error:
        return EXIT_ERROR
    return _execute(result.bytecode, args)


def cmd_compile(args: argparse.Namespace) -> int:
    """Compile a CineBrew source file to a bytecode listing."""
    result = _compile_file(args)
    if result.had_error:
        _log.error("Compilation errors; aborting.")
        return EXIT_ERROR

    out = _open_output(args.output)
    try:
        for line in result.bytecode:
            out.write(line + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    if args.output not in (None, "-"):
        _log.info("Wrote %d bytecode lines to %s", len(result.bytecode), args.output)
    return EXIT_OK


def cmd_exec(args: argparse.Namespace) -> int:
    """Execute a bytecode listing produced by ``cinebrew compile``."""
    path = _resolve_path(args.bytecode_file, "bytecode file")
    bytecode = path.read_text(encoding="utf-8").splitlines()
    return _execute(bytecode, args)


def cmd_check(args: argparse.Namespace) -> int:
    """Run every compilation stage and report diagnostics only."""
    result = _compile_file(args)
    if result.had_error:
        return EXIT_ERROR
    if args.format == "json":
        sys.stdout.write("[]\n")
    else:
        sys.stdout.write(f"{args.source_file}: OK ({len(result.bytecode)} bytecode lines)\n")
    return EXIT_OK


def _front_end_error(error: CinebrewError, filename: str) -> int:
    diag = error.to_diagnostic()
    sys.stderr.write(replace(diag, span=diag.span.with_file(filename)).to_gcc_format() + "\n")
    return EXIT_ERROR


def cmd_tokens(args: argparse.Namespace) -> int:
    """Print the token stream of a source file."""
    source = _resolve_path(args.source_file, "source file").read_text(encoding="utf-8")
    tokens, error = tokenize(source)
    for line in token_listing(tokens):
        sys.stdout.write(line + "\n")
    if error is not None:
        return _front_end_error(error, args.source_file)
    return EXIT_OK


def cmd_parse(args: argparse.Namespace) -> int:
    """Parse a source file and print its AST as an S-expression."""
    source = _resolve_path(args.source_file, "source file").read_text(encoding="utf-8")
    tokens, error = tokenize(source)
    if error is not None:
        return _front_end_error(error, args.source_file)
    program, error = parse(tokens)
    if error is not None:
        return _front_end_error(error, args.source_file)

    out = _open_output(args.output)
    try:
        out.write(dump_program(program) + "\n")
    finally:
        if out is not sys.stdout:
            out.close()
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""

    parser = argparse.ArgumentParser(
        prog="cinebrew",
        description=(
            "CineBrew - compiler and stack virtual machine for the CineBrew\n"
            "teaching language."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              cinebrew game.cb
              cinebrew compile game.cb -o game.cbc
              cinebrew exec game.cbc --max-steps 100000
              cinebrew parse game.cb
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # Shared argument groups (reusable) ------------------------------------

    def _add_source_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument("source_file", metavar="FILE", help="CineBrew source file.")

    def _add_format_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-f", "--format",
            choices=["gcc", "json"],
            default="gcc",
            help="Diagnostic format (default: gcc).",
        )

    def _add_runtime_args(p: argparse.ArgumentParser) -> None:
        g = p.add_argument_group("runtime tuning")
        g.add_argument(
            "--max-steps",
            type=int,
            default=None,
            metavar="N",
            help="Abort after N executed instructions (default: unlimited).",
        )
        g.add_argument(
            "--trace",
            action="store_true",
            help="Log every dispatched instruction at DEBUG level (use with -vv).",
        )
        g.add_argument(
            "--dump-state",
            action="store_true",
            help="Print the final stack and variables to stderr.",
        )

    # --- run ---------------------------------------------------------------
    p_run = subparsers.add_parser("run", help="Compile and execute a source file.")
    _add_source_arg(p_run)
    _add_format_arg(p_run)
    _add_runtime_args(p_run)
    p_run.set_defaults(func=cmd_run)

    # --- compile -----------------------------------------------------------
    p_compile = subparsers.add_parser("compile", help="Compile a source file to bytecode.")
    _add_source_arg(p_compile)
    _add_format_arg(p_compile)
    p_compile.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Output file ("-" or omit for stdout).',
    )
    p_compile.set_defaults(func=cmd_compile)

    # --- exec --------------------------------------------------------------
    p_exec = subparsers.add_parser("exec", help="Execute a bytecode listing.")
    p_exec.add_argument("bytecode_file", metavar="BYTECODE", help="Bytecode listing.")
    _add_runtime_args(p_exec)
    p_exec.set_defaults(func=cmd_exec)

    # --- check -------------------------------------------------------------
    p_check = subparsers.add_parser("check", help="Report diagnostics without running.")
    _add_source_arg(p_check)
    _add_format_arg(p_check)
    p_check.set_defaults(func=cmd_check)

    # --- tokens ------------------------------------------------------------
    p_tokens = subparsers.add_parser("tokens", help="Print the token stream.")
    _add_source_arg(p_tokens)
    p_tokens.set_defaults(func=cmd_tokens)

    # --- parse -------------------------------------------------------------
    p_parse = subparsers.add_parser("parse", help="Print the AST as an S-expression.")
    _add_source_arg(p_parse)
    p_parse.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Output file ("-" or omit for stdout).',
    )
    p_parse.set_defaults(func=cmd_parse)

    return parser


def _normalize_argv(argv: Sequence[str]) -> List[str]:
    """``cinebrew FILE ...`` is shorthand for ``cinebrew run FILE ...``."""
    args = list(argv)
    for i, arg in enumerate(args):
        if arg.startswith("-"):
            continue
        if arg not in COMMANDS:
            args.insert(i, "run")
        break
    return args


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CineBrew CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    if argv is None:
        argv = sys.argv[1:]
    try:
        args = parser.parse_args(_normalize_argv(argv))
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except OSError as exc:
        _log.error("I/O error: %s", exc)
        return EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
