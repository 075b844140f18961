# tests/test_bytecode.py
"""
Tests for the bytecode line grammar and decoder.
"""

import pytest
from parsimonious.exceptions import ParseError

from cinebrew.bytecode import (
    BYTECODE_GRAMMAR,
    Instruction,
    Label,
    Opcode,
    decode,
    decode_line,
    parse_int,
    strip_quotes,
)


class TestGrammar:

    @pytest.mark.parametrize("text", [
        "PUSH 1",
        "loop_0:",
        "CALL add 2",
        '  PUSH "a b"  ',
        "",
    ])
    def test_accepts(self, text):
        BYTECODE_GRAMMAR.parse(text)

    def test_rejects_stray_quote_in_opcode(self):
        with pytest.raises(ParseError):
            BYTECODE_GRAMMAR.parse('"PUSH 1')


class TestDecodeLine:

    def test_label(self):
        assert decode_line("loop_0:") == Label("loop_0")

    def test_label_with_surrounding_space(self):
        assert decode_line("  end_if_3:  ") == Label("end_if_3")

    def test_instruction_without_operands(self):
        ins = decode_line("ADD")
        assert ins == Instruction("ADD", (), "")
        assert ins.op is Opcode.ADD

    def test_instruction_operands(self):
        ins = decode_line("CALL add 2")
        assert ins.operands == ("add", "2")
        assert ins.operand(0) == "add"
        assert ins.operand(2) is None

    def test_quoted_operand_keeps_spaces(self):
        ins = decode_line('PUSH "hello   world"')
        assert ins.operands == ('"hello   world"',)
        assert ins.operand_text == '"hello   world"'

    def test_extra_whitespace(self):
        assert decode_line("   STORE    x   ").operands == ("x",)

    def test_blank_line(self):
        assert decode_line("") is None
        assert decode_line("    ") is None

    def test_unknown_mnemonic_decodes(self):
        ins = decode_line("FROB 1")
        assert ins.opcode == "FROB"
        assert ins.op is None

    def test_undecodable_line_has_empty_opcode(self):
        ins = decode_line('"PUSH 1')
        assert ins.opcode == ""
        assert ins.op is None

    def test_colon_inside_instruction_is_not_label(self):
        ins = decode_line("JMP x:")
        assert isinstance(ins, Instruction)
        assert ins.operands == ("x:",)

    def test_decode_program(self):
        lines = decode(["main:", "PUSH 1", "", "PRINT"])
        assert lines[0] == Label("main")
        assert lines[2] is None
        assert [str(l) for l in lines if l is not None] == ["main:", "PUSH 1", "PRINT"]


class TestOperandHelpers:

    @pytest.mark.parametrize("text,value", [
        ("42", 42), ("-7", -7), ("0", 0), ("abc", None), ('"5"', None), (None, None),
    ])
    def test_parse_int(self, text, value):
        assert parse_int(text) == value

    def test_strip_quotes(self):
        assert strip_quotes('"hi"') == "hi"
        assert strip_quotes("hi") == "hi"
        assert strip_quotes('"') == '"'

    def test_opcode_lookup(self):
        assert Opcode.lookup("LOADARG") is Opcode.LOADARG
        assert Opcode.lookup("push") is None
