"""
Tests for the compiler: resolution, arity and type checking, binding.
"""

import textwrap

import pytest
from fieldscript.script import (
    compile_script, compile_statement, check_script,
    Registry, CompileError, LexerError, ParserError,
    UnknownIdentifierError, ArityError, TypeMismatchError, NotAssignableError,
    StatementSequence, INT, FLOAT, STRING, CONFIG, NONE,
)
from fieldscript.script.statements import Const, Call, ToFloat, ValueRef, Arith
from fieldscript.engine.world import build_world


@pytest.fixture(scope="module")
def world():
    return build_world()


class TestSpecExamples:
    """Compile contract examples."""

    def test_vortex_two_ints(self, world):
        sequence = compile_script("vortex 1 1", world)
        assert len(sequence) == 1
        assert sequence[0].entry.name == "vortex"
        assert sequence[0].result_type == CONFIG

    def test_vortex_missing_argument(self, world):
        with pytest.raises(ArityError) as exc_info:
            compile_script("vortex 1", world)
        assert exc_info.value.index == 2
        assert exc_info.value.code == "E203"

    def test_unknown_identifier(self, world):
        with pytest.raises(UnknownIdentifierError) as exc_info:
            compile_script("bogus 1 2 3", world)
        assert exc_info.value.name == "bogus"
        assert exc_info.value.code == "E202"

    def test_error_reports_position(self, world):
        with pytest.raises(UnknownIdentifierError) as exc_info:
            compile_script("save\n  bogus 1", world, filename="run.fs")
        assert exc_info.value.span.start.line == 2
        assert exc_info.value.span.start.column == 3
        assert "run.fs:2:3" in str(exc_info.value)


class TestArity:
    """Argument count checks."""

    def test_surplus_argument(self, world):
        with pytest.raises(ArityError) as exc_info:
            compile_script("vortex 1 1 1", world)
        assert exc_info.value.index == 3

    def test_no_arguments_for_function_with_params(self, world):
        with pytest.raises(ArityError) as exc_info:
            compile_script("uniform", world)
        assert exc_info.value.index == 1

    def test_zero_argument_call(self, world):
        sequence = compile_script("interactive", world)
        assert isinstance(sequence[0].expr, Call)

    def test_nested_call_arity(self, world):
        with pytest.raises(ArityError) as exc_info:
            compile_script("m = addNoise(0.1, vortex(1))", world)
        assert exc_info.value.name == "vortex"


class TestTypes:
    """Argument type checks and promotion."""

    def test_float_for_int_parameter(self, world):
        with pytest.raises(TypeMismatchError) as exc_info:
            compile_script("vortex 1 1.5", world)
        assert exc_info.value.index == 2
        assert exc_info.value.expected == "int"
        assert exc_info.value.found == "float"

    def test_int_promoted_to_float(self, world):
        call = compile_script("uniform 1 0 0", world)[0].expr
        assert all(isinstance(a, Const) and a.type == FLOAT for a in call.args)
        assert all(isinstance(a.value, float) for a in call.args)

    def test_string_for_float(self, world):
        with pytest.raises(TypeMismatchError) as exc_info:
            compile_script('uniform 1 "x" 0', world)
        assert exc_info.value.index == 2
        assert exc_info.value.found == "string"

    def test_config_argument(self, world):
        sequence = compile_script("m = addNoise(0.1, vortex(1, 1))", world)
        value = sequence[0].expr
        assert isinstance(value, Call)
        assert isinstance(value.args[1], Call)
        assert value.args[1].entry.name == "vortex"

    def test_wrong_nested_type(self, world):
        with pytest.raises(TypeMismatchError) as exc_info:
            compile_script("m = addNoise(vortex(1, 1), 0.1)", world)
        assert exc_info.value.index == 1

    def test_value_used_as_function(self, world):
        with pytest.raises(TypeMismatchError):
            compile_script("pi(1)", world)

    def test_print_accepts_anything(self, world):
        compile_script('print "hello"\nprint 1\nprint m\nprint average', world)


class TestExpressions:
    """Arithmetic, folding and method calls."""

    def test_constant_folding(self, world):
        call = compile_script("run (2 * 1e-9)", world)[0].expr
        assert isinstance(call.args[0], Const)
        assert call.args[0].value == pytest.approx(2e-9)

    def test_named_constant_folds(self, world):
        call = compile_script("m = uniform(sin(0), cos(pi), 0)", world)[0].expr
        assert isinstance(call.args[1], Call)  # function calls are not folded
        assert call.args[2].value == 0.0

    def test_pi_is_constant(self, world):
        call = compile_script("run (pi / 2)", world)[0].expr
        assert isinstance(call.args[0], Const)

    def test_int_division_is_float(self, world):
        call = compile_script("print (1 / 2)", world)[0].expr
        assert call.args[0].value == 0.5

    def test_non_constant_int_promoted(self):
        registry = Registry()
        registry.register_function("count", lambda: 3, returns=INT)
        registry.register_function("half", lambda x: x / 2, params=[("x", FLOAT)], returns=FLOAT)
        registry.seal()
        call = compile_script("half count", registry)[0].expr
        assert isinstance(call.args[0], ToFloat)

    def test_arithmetic_on_config_rejected(self, world):
        with pytest.raises(TypeMismatchError):
            compile_script("print (vortex(1, 1) + 1)", world)

    def test_division_by_zero_deferred(self, world):
        call = compile_script("run (1 / 0)", world)[0].expr
        assert isinstance(call.args[0], Arith)

    def test_method_call(self, world):
        expr = compile_script("m = vortex(1, 1).translate(1e-9, 0, 0)", world)[0].expr
        assert expr.entry.is_method
        assert expr.entry.name == "translate"
        assert len(expr.args) == 4  # receiver first

    def test_method_alias_any_case(self, world):
        compile_script("m = uniform(1, 0, 0).ROTZ(0.5).Transl(1, 2, 3)", world)

    def test_method_on_value(self, world):
        expr = compile_script("m = m.scale(2, 2, 2)", world)[0].expr
        assert isinstance(expr.args[0], ValueRef)

    def test_unknown_method(self, world):
        with pytest.raises(UnknownIdentifierError) as exc_info:
            compile_script("m = vortex(1, 1).explode()", world)
        assert exc_info.value.code == "E205"

    def test_method_arity(self, world):
        with pytest.raises(ArityError):
            compile_script("m = vortex(1, 1).scale(2)", world)


class TestAssignment:
    """Assignments to settable values."""

    def test_assign_config(self, world):
        statement = compile_script("m = uniform(1, 0, 0)", world)[0]
        assert statement.target.name == "m"
        assert statement.result_type == NONE

    def test_assign_case_insensitive(self, world):
        assert compile_script("M = uniform(1, 0, 0)", world)[0].target.name == "m"

    def test_assign_to_function(self, world):
        with pytest.raises(NotAssignableError):
            compile_script("vortex = uniform(1, 0, 0)", world)

    def test_assign_to_constant(self, world):
        with pytest.raises(NotAssignableError) as exc_info:
            compile_script("pi = 3", world)
        assert exc_info.value.code == "E204"

    def test_assign_wrong_type(self, world):
        with pytest.raises(TypeMismatchError) as exc_info:
            compile_script("m = 1", world)
        assert exc_info.value.index == 0


class TestWholeScript:
    """Eager whole-script compilation."""

    SCRIPT = textwrap.dedent("""\
        setGridSize 32 32 1
        setCellSize 4e-9 4e-9 4e-9   # cubic cells
        m = vortex(1, 1).translate(8e-9, 0, 0)
        run 1e-12; save
        interactive
    """)

    def test_statements_in_source_order(self, world):
        sequence = compile_script(self.SCRIPT, world)
        assert isinstance(sequence, StatementSequence)
        assert [s.line for s in sequence] == [1, 2, 3, 4, 4, 5]
        assert sequence.texts()[3:5] == ["run 1e-12", "save"]

    def test_deterministic(self, world):
        assert compile_script(self.SCRIPT, world) == compile_script(self.SCRIPT, world)

    def test_deterministic_error(self, world):
        errors = []
        for _ in range(2):
            with pytest.raises(CompileError) as exc_info:
                compile_script("save\nvortex 1", world)
            errors.append(exc_info.value)
        first, second = errors
        assert type(first) is type(second) is ArityError
        assert (first.code, first.index, first.span) == (second.code, second.index, second.span)
        assert first.diagnostic.format() == second.diagnostic.format()

    def test_deterministic_bindings(self, world):
        first, second = compile_script(self.SCRIPT, world), compile_script(self.SCRIPT, world)
        assert len(first) == len(second) == 6
        for a, b in zip(first, second):
            assert (a.text, a.span, a.expr, a.target) == (b.text, b.span, b.expr, b.target)
            assert a.entry is b.entry

    def test_error_late_in_script_found_before_running(self, world):
        """An error on the last line fails the whole compile."""
        with pytest.raises(UnknownIdentifierError):
            compile_script(self.SCRIPT + "bogus\n", world)

    def test_all_errors_collected(self, world):
        with pytest.raises(CompileError) as exc_info:
            compile_script("bogus\nvortex 1\nsave\nm = 1\n", world)
        error = exc_info.value
        assert isinstance(error, UnknownIdentifierError)
        assert error.diagnostics.error_count == 3
        codes = [d.code for d in error.diagnostics.diagnostics]
        assert codes == ["E202", "E203", "E201"]

    def test_max_errors(self, world):
        with pytest.raises(CompileError) as exc_info:
            compile_script("bogus\n" * 10, world, max_errors=3)
        assert exc_info.value.diagnostics.error_count == 3

    def test_parse_errors_reported_before_resolution(self, world):
        with pytest.raises(ParserError):
            compile_script("bogus\n1 2\n", world)

    def test_lexer_error(self, world):
        with pytest.raises(LexerError) as exc_info:
            compile_script("save @", world)
        assert exc_info.value.diagnostics.error_count == 1


class TestSingleStatement:
    """Compiling injected commands."""

    def test_compile_statement(self, world):
        statement = compile_statement("m = uniform(0, 0, 1)", world, origin="http")
        assert statement.origin == "http"
        assert statement.text == "m = uniform(0, 0, 1)"

    def test_rejects_two_statements(self, world):
        with pytest.raises(ParserError):
            compile_statement("save; save", world)

    def test_rejects_empty(self, world):
        with pytest.raises(ParserError):
            compile_statement("   ", world)


class TestCheck:
    """Pure check (vet) mode."""

    def test_ok(self, world):
        result = check_script("vortex 1 1\nsave", world)
        assert not result.has_errors
        assert result.statement_count == 2

    def test_errors(self, world):
        result = check_script("vortex 1\nbogus", world)
        assert result.has_errors
        assert isinstance(result.error, ArityError)
        assert result.diagnostics.error_count == 2
        assert "E203" in result.diagnostics.format_all()
