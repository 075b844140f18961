#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
cinebrew/builtins.py
====================

Built-in functions callable from CineBrew programs.

The registry is a fixed, immutable table of name -> (arity, native
function). It is consumed by two stages:

- the semantic analyzer, for existence and arity checks;
- the VM, which dispatches ``CALL name argc`` to the native function
  instead of pushing a call frame.

Built-in Functions
------------------
- **I/O**: print, input
- **Math**: abs, min, max
- **Timing / randomness**: time, random
- **Input and graphics**: keyPressed, getScreenWidth, getScreenHeight,
  clearScreen, setColor, drawRectangle, drawCircle, drawLine

Input and graphics built-ins delegate to a :class:`DisplaySurface` when one
is attached to the registry. Without a surface they fall back to the
defaults of a headless 800x600 screen with no keys pressed. The VM never
talks to the surface directly.
"""

from __future__ import annotations

import logging
import random
import sys
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TextIO,
    runtime_checkable,
)

__all__ = [
    "BUILTIN_FUNCTIONS",
    "BuiltinFunction",
    "BuiltinRegistry",
    "DisplaySurface",
    "DEFAULT_SCREEN_WIDTH",
    "DEFAULT_SCREEN_HEIGHT",
]

logger = logging.getLogger(__name__)

DEFAULT_SCREEN_WIDTH = 800
DEFAULT_SCREEN_HEIGHT = 600

NativeFunction = Callable[[Sequence[int]], int]


BUILTIN_FUNCTIONS: Dict[str, Dict[str, Any]] = {
    # I/O
    "print": {"arity": 1, "description": "Write a value on its own line"},
    "input": {"arity": 0, "description": "Read an integer from the input stream"},

    # Timing / randomness
    "random": {"arity": 1, "description": "Random integer in [0, max)"},
    "time": {"arity": 0, "description": "Seconds since the epoch"},

    # Math
    "abs": {"arity": 1, "description": "Absolute value"},
    "min": {"arity": 2, "description": "Smaller of two values"},
    "max": {"arity": 2, "description": "Larger of two values"},

    # Input and graphics
    "keyPressed": {"arity": 1, "description": "1 if the key code is held down"},
    "getScreenWidth": {"arity": 0, "description": "Surface width in pixels"},
    "getScreenHeight": {"arity": 0, "description": "Surface height in pixels"},
    "clearScreen": {"arity": 0, "description": "Clear the surface"},
    "setColor": {"arity": 3, "description": "Set the drawing colour (r, g, b)"},
    "drawRectangle": {"arity": 4, "description": "Filled rectangle (x, y, w, h)"},
    "drawCircle": {"arity": 3, "description": "Filled circle (x, y, radius)"},
    "drawLine": {"arity": 4, "description": "Line (x1, y1, x2, y2)"},
}


@runtime_checkable
class DisplaySurface(Protocol):
    """Rendering collaborator used by the input and graphics built-ins."""

    def is_key_pressed(self, key_code: int) -> bool: ...
    def get_width(self) -> int: ...
    def get_height(self) -> int: ...
    def clear(self) -> None: ...
    def set_color(self, r: int, g: int, b: int) -> None: ...
    def draw_rectangle(self, x: int, y: int, width: int, height: int) -> None: ...
    def draw_circle(self, x: int, y: int, radius: int) -> None: ...
    def draw_line(self, x1: int, y1: int, x2: int, y2: int) -> None: ...


@dataclass(frozen=True)
class BuiltinFunction:
    name: str
    arity: int
    impl: NativeFunction
    description: str = ""

    def __call__(self, args: Sequence[int]) -> int:
        return int(self.impl(args))


class _NativeLibrary:
    """Implementations of the built-ins, bound to their I/O collaborators."""

    def __init__(
        self,
        surface: Optional[DisplaySurface],
        stdout: Optional[TextIO],
        stdin: Optional[TextIO],
        rng: Optional[random.Random],
        clock: Callable[[], float],
    ) -> None:
        self.surface = surface
        self._stdout = stdout
        self._stdin = stdin
        self._rng = rng or random.Random()
        self._clock = clock

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def stdin(self) -> TextIO:
        return self._stdin if self._stdin is not None else sys.stdin

    # -- I/O -------------------------------------------------------------
    def print_(self, args: Sequence[int]) -> int:
        if not args:
            self.stdout.write("[EMPTY]\n")
            return 0
        self.stdout.write(f"{args[0]}\n")
        return 0

    def input_(self, args: Sequence[int]) -> int:
        line = self.stdin.readline()
        try:
            return int(line.strip())
        except ValueError:
            logger.warning("input: %r is not an integer, using 0", line.strip())
            return 0

    # -- Timing / randomness ---------------------------------------------
    def random_(self, args: Sequence[int]) -> int:
        if not args or args[0] <= 0:
            return 0
        return self._rng.randrange(args[0])

    def time_(self, args: Sequence[int]) -> int:
        return int(self._clock())

    # -- Math ------------------------------------------------------------
    def abs_(self, args: Sequence[int]) -> int:
        return abs(args[0]) if args else 0

    def min_(self, args: Sequence[int]) -> int:
        return min(args[0], args[1]) if len(args) >= 2 else 0

    def max_(self, args: Sequence[int]) -> int:
        return max(args[0], args[1]) if len(args) >= 2 else 0

    # -- Input and graphics ----------------------------------------------
    def key_pressed(self, args: Sequence[int]) -> int:
        if self.surface is None or not args:
            return 0
        return 1 if self.surface.is_key_pressed(args[0]) else 0

    def screen_width(self, args: Sequence[int]) -> int:
        return self.surface.get_width() if self.surface is not None else DEFAULT_SCREEN_WIDTH

    def screen_height(self, args: Sequence[int]) -> int:
        return self.surface.get_height() if self.surface is not None else DEFAULT_SCREEN_HEIGHT

    def clear_screen(self, args: Sequence[int]) -> int:
        if self.surface is not None:
            self.surface.clear()
        return 0

    def set_color(self, args: Sequence[int]) -> int:
        if self.surface is not None and len(args) >= 3:
            self.surface.set_color(args[0], args[1], args[2])
        return 0

    def draw_rectangle(self, args: Sequence[int]) -> int:
        if self.surface is not None and len(args) >= 4:
            self.surface.draw_rectangle(args[0], args[1], args[2], args[3])
        return 0

    def draw_circle(self, args: Sequence[int]) -> int:
        if self.surface is not None and len(args) >= 3:
            self.surface.draw_circle(args[0], args[1], args[2])
        return 0

    def draw_line(self, args: Sequence[int]) -> int:
        if self.surface is not None and len(args) >= 4:
            self.surface.draw_line(args[0], args[1], args[2], args[3])
        return 0

    def bindings(self) -> Dict[str, NativeFunction]:
        return {
            "print": self.print_,
            "input": self.input_,
            "random": self.random_,
            "time": self.time_,
            "abs": self.abs_,
            "min": self.min_,
            "max": self.max_,
            "keyPressed": self.key_pressed,
            "getScreenWidth": self.screen_width,
            "getScreenHeight": self.screen_height,
            "clearScreen": self.clear_screen,
            "setColor": self.set_color,
            "drawRectangle": self.draw_rectangle,
            "drawCircle": self.draw_circle,
            "drawLine": self.draw_line,
        }


class BuiltinRegistry(Mapping[str, BuiltinFunction]):
    """
    Immutable name -> :class:`BuiltinFunction` table.

    Build the standard table with :meth:`default`; tests and embedders pass
    their own output stream, input stream, random source or display surface
    there instead of patching globals.
    """

    def __init__(self, functions: Mapping[str, BuiltinFunction]) -> None:
        self._functions: Mapping[str, BuiltinFunction] = MappingProxyType(dict(functions))

    @classmethod
    def default(
        cls,
        surface: Optional[DisplaySurface] = None,
        stdout: Optional[TextIO] = None,
        stdin: Optional[TextIO] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> BuiltinRegistry:
        library = _NativeLibrary(surface, stdout, stdin, rng, clock)
        functions = {
            name: BuiltinFunction(
                name=name,
                arity=BUILTIN_FUNCTIONS[name]["arity"],
                impl=impl,
                description=BUILTIN_FUNCTIONS[name]["description"],
            )
            for name, impl in library.bindings().items()
        }
        return cls(functions)

    def __getitem__(self, name: str) -> BuiltinFunction:
        return self._functions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def arity(self, name: str) -> Optional[int]:
        fn = self._functions.get(name)
        return fn.arity if fn is not None else None

    def call(self, name: str, args: Sequence[int]) -> int:
        """Invoke built-in *name*; unknown names return 0."""
        fn = self._functions.get(name)
        if fn is None:
            logger.error("Unknown built-in '%s'", name)
            return 0
        return fn(args)
