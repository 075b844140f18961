"""
CineBrew: a small imperative teaching language.

Pipeline: source text -> :mod:`cinebrew.lexer` -> :mod:`cinebrew.parser`
-> :mod:`cinebrew.semantic` -> :mod:`cinebrew.codegen` -> textual bytecode,
executed by the stack machine in :mod:`cinebrew.vm`.

Typical use::

    from cinebrew import compile_source, VirtualMachine

    result = compile_source("TAKE x = 3 + 5; POUR x;")
    if not result.had_error:
        VirtualMachine().run(result.bytecode)
"""

from __future__ import annotations

__version__ = "1.0.0"

from cinebrew.compiler import CompileResult, compile_source
from cinebrew.vm import RunResult, VirtualMachine, VMConfig

__all__ = [
    "__version__",
    "CompileResult",
    "compile_source",
    "RunResult",
    "VirtualMachine",
    "VMConfig",
]
