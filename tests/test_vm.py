# tests/test_vm.py
"""
Tests for the stack virtual machine, driven by hand-written bytecode.
"""

import io
import logging

import pytest

from cinebrew.errors import StackUnderflowError, StepLimitExceeded
from cinebrew.vm import Frame, RunStatus, VirtualMachine, VMConfig
from tests.conftest import make_vm


def _run(program, **config):
    out = io.StringIO()
    vm = make_vm(out, **config)
    result = vm.run(program)
    return vm, result, out.getvalue().splitlines()


class TestArithmetic:

    def test_add_and_print(self):
        vm, result, output = _run(["PUSH 3", "PUSH 5", "ADD", "PRINT"])
        assert output == ["8"]
        assert vm.stack == [8]
        assert result.status is RunStatus.COMPLETED
        assert result.steps == 4

    @pytest.mark.parametrize("a,b,op,expected", [
        (7, 2, "SUB", 5),
        (2, 7, "SUB", -5),
        (6, 7, "MUL", 42),
        (7, 2, "DIV", 3),
        (-7, 2, "DIV", -3),
        (7, -2, "DIV", -3),
        (-7, -2, "DIV", 3),
    ])
    def test_binary_operand_order(self, a, b, op, expected):
        vm, _, _ = _run([f"PUSH {a}", f"PUSH {b}", op])
        assert vm.stack == [expected]

    def test_division_by_zero_pushes_zero(self, caplog):
        with caplog.at_level(logging.ERROR, logger="cinebrew.vm"):
            vm, _, _ = _run(["PUSH 1", "PUSH 0", "DIV"])
        assert vm.stack == [0]
        assert "Division by zero" in caplog.text

    @pytest.mark.parametrize("op,a,b,expected", [
        ("EQ", 3, 3, 1), ("EQ", 3, 4, 0),
        ("NE", 3, 4, 1), ("NE", 3, 3, 0),
        ("GT", 4, 3, 1), ("GT", 3, 4, 0),
        ("LT", 3, 4, 1), ("LT", 4, 3, 0),
    ])
    def test_comparisons(self, op, a, b, expected):
        vm, _, _ = _run([f"PUSH {a}", f"PUSH {b}", op])
        assert vm.stack == [expected]

    def test_large_integers(self):
        vm, _, _ = _run(["PUSH 99999999999", "PUSH 99999999999", "MUL"])
        assert vm.stack == [99999999999 * 99999999999]


class TestVariables:

    def test_store_and_load(self):
        vm, _, _ = _run(["PUSH 4", "STORE x", "LOAD x", "LOAD x", "ADD"])
        assert vm.variables == {"x": 4}
        assert vm.stack == [8]

    def test_undefined_variable_loads_zero(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cinebrew.vm"):
            vm, _, _ = _run(["LOAD ghost"])
        assert vm.stack == [0]
        assert "Variable 'ghost' not found" in caplog.text

    def test_store_without_name(self, caplog):
        with caplog.at_level(logging.ERROR, logger="cinebrew.vm"):
            vm, _, _ = _run(["PUSH 1", "STORE"])
        assert vm.stack == [1]
        assert "STORE requires variable name" in caplog.text


class TestControlFlow:

    def test_jmp_skips(self):
        _, _, output = _run(["JMP end", "PUSH 1", "PRINT", "end:", "PUSH 2", "PRINT"])
        assert output == ["2"]

    def test_jz_pops_and_jumps_on_zero(self):
        vm, _, output = _run(["PUSH 0", "JZ skip", "PUSH 1", "PRINT", "skip:"])
        assert output == []
        assert vm.stack == []

    def test_jnz_jumps_on_nonzero(self):
        vm, _, output = _run(["PUSH 5", "JNZ skip", "PUSH 1", "PRINT", "skip:"])
        assert output == []

    def test_countdown_loop(self):
        program = [
            "PUSH 3", "STORE n",
            "top:",
            "LOAD n", "JZ done",
            "LOAD n", "PRINT", "PUSH 1", "SUB", "STORE n",
            "JMP top",
            "done:",
        ]
        vm, _, output = _run(program)
        assert output == ["3", "2", "1"]
        assert vm.variables["n"] == 0

    def test_missing_label_falls_through(self, caplog):
        with caplog.at_level(logging.ERROR, logger="cinebrew.vm"):
            _, _, output = _run(["JMP nowhere", "PUSH 7", "PRINT"])
        assert output == ["7"]
        assert "Label 'nowhere' not found" in caplog.text

    def test_halt_stops(self):
        vm, result, output = _run(["PUSH 1", "PRINT", "HALT", "PUSH 2", "PRINT"])
        assert output == ["1"]
        assert result.status is RunStatus.HALTED

    def test_top_level_ret_stops(self):
        _, result, output = _run(["RET", "PUSH 2", "PRINT"])
        assert output == []
        assert result.status is RunStatus.RETURNED

    def test_unknown_instruction_is_skipped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cinebrew.vm"):
            vm, _, _ = _run(["FROB 1", "PUSH 2"])
        assert vm.stack == [2]
        assert "Unknown instruction 'FROB'" in caplog.text

    def test_blank_lines_are_skipped(self):
        vm, _, _ = _run(["", "PUSH 1", "   "])
        assert vm.stack == [1]


class TestFunctions:

    ADD = [
        "PUSH 7", "PUSH 8", "CALL add 2", "PRINT", "HALT",
        "add:", "LOADARG 0", "LOADARG 1", "ADD", "RET",
    ]

    def test_call_and_return(self):
        vm, _, output = _run(self.ADD)
        assert output == ["15"]
        assert vm.stack == [15]
        assert vm.call_stack == []

    def test_nested_calls_restore_depth(self):
        program = [
            "PUSH 2", "CALL double 1", "CALL double 1", "HALT",
            "double:", "LOADARG 0", "LOADARG 0", "ADD", "RET",
        ]
        vm, _, _ = _run(program)
        assert vm.stack == [8]

    def test_ret_with_empty_frame_pushes_zero(self):
        vm, _, _ = _run(["CALL f 0", "HALT", "f:", "RET"])
        assert vm.stack == [0]

    def test_loadarg_outside_function(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cinebrew.vm"):
            vm, _, _ = _run(["LOADARG 0"])
        assert vm.stack == [0]
        assert "LOADARG called outside function" in caplog.text

    def test_loadarg_bad_index(self, caplog):
        program = ["PUSH 1", "CALL f 1", "HALT", "f:", "LOADARG 3", "RET"]
        with caplog.at_level(logging.WARNING, logger="cinebrew.vm"):
            vm, _, _ = _run(program)
        assert vm.stack == [0]
        assert "Invalid argument index" in caplog.text

    def test_call_unknown_label(self, caplog):
        with caplog.at_level(logging.ERROR, logger="cinebrew.vm"):
            vm, _, _ = _run(["PUSH 1", "PUSH 2", "CALL ghost 2"])
        assert vm.stack == [0]
        assert vm.call_stack == []
        assert "Label 'ghost' not found" in caplog.text

    def test_call_builtin(self):
        vm, _, _ = _run(["PUSH 3", "PUSH 9", "CALL max 2"])
        assert vm.stack == [9]

    def test_builtin_print(self):
        _, _, output = _run(["PUSH 12", "CALL print 1"])
        assert output == ["12"]

    def test_frame_records_base(self):
        vm = make_vm()
        vm.load(["PUSH 9", "PUSH 4", "CALL f 1", "f:", "HALT"])
        vm.reset()
        for _ in range(3):
            vm.step()
        assert vm.call_stack == [Frame(return_address=3, base=1, argc=1)]


class TestPrint:

    def test_print_does_not_pop(self):
        vm, _, output = _run(["PUSH 4", "PRINT", "PRINT"])
        assert output == ["4", "4"]
        assert vm.stack == [4]

    def test_print_empty_stack(self):
        _, _, output = _run(["PRINT"])
        assert output == ["[EMPTY_STACK]"]

    def test_string_literal_printed(self):
        vm, _, output = _run(['PUSH "hello world"', "PRINT"])
        assert output == ["hello world"]
        assert vm.stack == []

    def test_string_literal_print_skips_labels(self):
        _, _, output = _run(['PUSH "hi"', "mark:", "PRINT", "PUSH 1", "PRINT"])
        assert output == ["hi", "1"]

    def test_non_numeric_push_without_print(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cinebrew.vm"):
            vm, _, _ = _run(["PUSH abc", "PUSH 1", "ADD"])
        assert vm.stack == [1]
        assert "non-integer 'abc'" in caplog.text


class TestFailures:

    @pytest.mark.parametrize("program", [
        ["ADD"],
        ["PUSH 1", "SUB"],
        ["STORE x"],
        ["JZ somewhere"],
        ["CALL f 2", "f:", "RET"],
    ], ids=["add", "sub", "store", "jz", "call_argc"])
    def test_stack_underflow(self, program):
        with pytest.raises(StackUnderflowError):
            _run(program)

    def test_underflow_reports_pc(self):
        with pytest.raises(StackUnderflowError) as info:
            _run(["PUSH 1", "PRINT", "MUL"])
        assert info.value.pc == 2
        assert str(info.value) == "Stack underflow at PC=2"

    def test_step_limit(self):
        with pytest.raises(StepLimitExceeded):
            _run(["top:", "JMP top"], max_steps=50)

    def test_step_limit_not_hit(self):
        _, result, _ = _run(["PUSH 1"], max_steps=1)
        assert result.steps == 1


class TestPreprocess:

    PROGRAM = ["start:", "PUSH 1", "mid:", "PRINT", "end:"]

    def test_label_addresses(self, vm):
        assert vm.preprocess(self.PROGRAM) == {"start": 0, "mid": 2, "end": 4}

    def test_idempotent(self, vm):
        first = vm.preprocess(self.PROGRAM)
        second = vm.preprocess(self.PROGRAM)
        assert first == second
        assert vm.labels == first

    def test_duplicate_label_last_wins(self, vm):
        assert vm.preprocess(["a:", "a:"]) == {"a": 1}

    def test_run_resets_state(self, vm):
        vm.run(["PUSH 1", "STORE x"])
        vm.run(["PUSH 2"])
        assert vm.variables == {}
        assert vm.stack == [2]


class TestCallFunction:

    PROGRAM = [
        "HALT",
        "add:", "LOADARG 0", "LOADARG 1", "ADD", "RET",
        "spin:", "JMP spin",
        "bad:", "ADD", "RET",
    ]

    def test_returns_result_and_restores_state(self, vm):
        vm.run(self.PROGRAM)
        vm.stack.append(99)
        pc = vm.pc
        assert vm.call_function("add", (20, 22)) == 42
        assert vm.stack == [99]
        assert vm.pc == pc
        assert vm.call_stack == []

    def test_missing_function(self, vm):
        vm.run(self.PROGRAM)
        assert vm.call_function("nope") is None

    def test_budget_exhausted(self, caplog):
        vm = make_vm(call_budget=20)
        vm.run(self.PROGRAM)
        with caplog.at_level(logging.WARNING, logger="cinebrew.vm"):
            assert vm.call_function("spin") is None
        assert vm.call_stack == []
        assert "did not return" in caplog.text

    def test_error_in_callee_discards_its_frame(self, vm):
        vm.run(self.PROGRAM)
        with pytest.raises(StackUnderflowError):
            vm.call_function("bad")
        assert vm.call_stack == []
        assert vm.stack == []
        assert vm.call_function("add", (1, 2)) == 3


class TestConfig:

    def test_defaults(self):
        config = VMConfig()
        assert config.max_steps is None
        assert config.call_budget == 1000
        assert config.validate() == []

    def test_invalid_values_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="cinebrew.vm"):
            VirtualMachine(config=VMConfig(max_steps=0, call_budget=-1), stdout=io.StringIO())
        assert "max_steps must be positive" in caplog.text
        assert "call_budget must be positive" in caplog.text

    def test_trace_logs_each_instruction(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="cinebrew.vm"):
            _run(["PUSH 1", "PUSH 2"], trace=True)
        assert "PC=0 EXEC='PUSH 1'" in caplog.text
        assert "PC=1 EXEC='PUSH 2'" in caplog.text


class TestDebugDumps:

    def test_dump_stack(self):
        vm, _, _ = _run(["PUSH 1", "PUSH 2"])
        assert vm.dump_stack() == "Stack: [1, 2]"

    def test_dump_variables(self):
        vm, _, _ = _run(["PUSH 1", "STORE b", "PUSH 2", "STORE a"])
        assert vm.dump_variables() == "Variables:\n  a = 2\n  b = 1"
