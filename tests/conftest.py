# tests/conftest.py
"""
Shared CineBrew sources and helpers for the test suite.
"""

import io

import pytest

from cinebrew.builtins import BuiltinRegistry
from cinebrew.compiler import compile_source
from cinebrew.vm import VirtualMachine, VMConfig


# ── Sources ─────────────────────────────────────────────────────────────────

ARITHMETIC_CB = """\
TAKE x = 3 + 5;
POUR x;
"""

DIVISION_CB = """\
TAKE q = 7 / 2;
POUR q;
"""

SUM_LOOP_CB = """\
TAKE sum = 0;
TAKE i = 1;
LOOP i <= 5 {
    sum = sum + i;
    i = i + 1;
}
POUR sum;
"""

IF_ELSE_CB = """\
TAKE x = 10;
IF x > 5 {
    POUR 1;
} ELSE {
    POUR 0;
}
"""

FACTORIAL_CB = """\
# recursive factorial
SCENE fact(n) {
    IF n <= 1 {
        SHOT 1;
    }
    SHOT n * fact(n - 1);
}
POUR fact(5);
"""

ADD_FUNCTION_CB = """\
SCENE add(a, b) {
    SHOT a + b;
}
TAKE r = add(7, 8);
"""

FORWARD_CALL_CB = """\
TAKE y = twice(21);
SCENE twice(v) {
    SHOT v * 2;
}
POUR y;
"""

STRING_CB = """\
POUR "hello world";
"""

BOOLEAN_CB = """\
TAKE t = true;
TAKE f = false;
POUR t;
POUR f;
"""

BUILTIN_CB = """\
TAKE m = max(3, 9);
TAKE a = abs(-4);
POUR m + a;
"""

REDECLARATION_CB = """\
TAKE x = 1;
TAKE x = 2;
"""

ARITY_CB = """\
SCENE f(a) {
    SHOT a;
}
POUR f(1, 2);
"""

UNDEFINED_CB = """\
POUR missing;
"""


# ── Helpers ─────────────────────────────────────────────────────────────────

def compile_ok(source: str):
    """Compile *source*, failing the test on any diagnostic."""
    result = compile_source(source, filename="test.cb")
    assert not result.had_error, result.format_diagnostics()
    return result.bytecode


def make_vm(stdout=None, **config):
    """VM whose built-ins and PRINT write to *stdout*."""
    out = stdout if stdout is not None else io.StringIO()
    registry = BuiltinRegistry.default(stdout=out)
    return VirtualMachine(builtins=registry, config=VMConfig(**config), stdout=out)


def run_source(source: str, **config):
    """Compile and run *source*; returns ``(vm, output_lines)``."""
    out = io.StringIO()
    vm = make_vm(out, **config)
    vm.run(compile_ok(source))
    return vm, out.getvalue().splitlines()


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def vm(output):
    return make_vm(output)
