"""
cinebrew/bytecode.py
====================

The textual instruction set shared by the code generator and the VM.

A program is a sequence of lines. Each line is either an instruction::

    OPCODE operand operand ...

or a bare label marker ``name:``. Operands are separated by whitespace,
except inside double quotes, where whitespace is kept and the quotes stay
part of the operand (``PUSH "hello world"`` has the single operand
``"hello world"``). A line's position in the sequence is its address.

Lines are decoded with a PEG grammar (parsimonious) into :class:`Label` and
:class:`Instruction` records; undecodable lines become instructions with an
empty opcode, which the VM skips with a warning.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

logger = logging.getLogger(__name__)


class Opcode(enum.Enum):
    PUSH = "PUSH"
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    STORE = "STORE"
    LOAD = "LOAD"
    EQ = "EQ"
    NE = "NE"
    GT = "GT"
    LT = "LT"
    JMP = "JMP"
    JZ = "JZ"
    JNZ = "JNZ"
    CALL = "CALL"
    LOADARG = "LOADARG"
    RET = "RET"
    PRINT = "PRINT"
    HALT = "HALT"

    @classmethod
    def lookup(cls, mnemonic: str) -> Optional[Opcode]:
        return _BY_MNEMONIC.get(mnemonic)


_BY_MNEMONIC = {op.value: op for op in Opcode}


@dataclass(frozen=True, slots=True)
class Label:
    name: str

    def __str__(self) -> str:
        return f"{self.name}:"


@dataclass(frozen=True, slots=True)
class Instruction:
    """
    A decoded instruction line.

    ``operand_text`` is everything after the opcode, trimmed; the VM uses it
    for non-numeric PUSH literals, where inner spacing must survive.
    """

    opcode: str
    operands: Tuple[str, ...] = ()
    operand_text: str = ""

    @property
    def op(self) -> Optional[Opcode]:
        return Opcode.lookup(self.opcode)

    def operand(self, index: int) -> Optional[str]:
        if index < len(self.operands):
            return self.operands[index]
        return None

    def __str__(self) -> str:
        return " ".join((self.opcode,) + self.operands)


Line = Optional[Union[Label, Instruction]]


# ═══════════════════════════════════════════════════════════════════════════
#  Line grammar
# ═══════════════════════════════════════════════════════════════════════════

BYTECODE_GRAMMAR = Grammar(r'''
    line        = _ statement? _
    statement   = label / instruction
    label       = ~r'[^\s"]+:(?=\s*$)'
    instruction = opcode operands
    operands    = (ws operand)*
    operand     = ~r'(?:[^\s"]+|"[^"]*"?)+'
    opcode      = ~r'[^\s"]+'
    ws          = ~r'\s+'
    _           = ~r'\s*'
''')


class LineDecoder(NodeVisitor):
    """Builds a :class:`Label` / :class:`Instruction` from a parsed line."""

    grammar = BYTECODE_GRAMMAR

    def generic_visit(self, node, visited_children):
        """Default: return children or the node itself."""
        return visited_children or node

    def visit_line(self, node, visited_children):
        _, statement, _ = visited_children
        if isinstance(statement, list):
            return statement[0]
        return None

    def visit_statement(self, node, visited_children):
        return visited_children[0]

    def visit_label(self, node, visited_children):
        return Label(node.text[:-1])

    def visit_instruction(self, node, visited_children):
        opcode, operands = visited_children
        return Instruction(opcode, tuple(operands), node.children[1].text.strip())

    def visit_operands(self, node, visited_children):
        return [pair[1] for pair in visited_children]

    def visit_operand(self, node, visited_children):
        return node.text

    def visit_opcode(self, node, visited_children):
        return node.text


_decoder = LineDecoder()


def decode_line(text: str) -> Line:
    """Decode one bytecode line; blank lines decode to ``None``."""
    try:
        return _decoder.parse(text)
    except ParseError:
        logger.debug("undecodable bytecode line %r", text)
        return Instruction("", (), text.strip())


def decode(program: Sequence[str]) -> List[Line]:
    return [decode_line(text) for text in program]


def parse_int(text: Optional[str]) -> Optional[int]:
    """Integer value of an operand, or ``None`` when it is not a number."""
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text
