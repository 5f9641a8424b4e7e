import pytest

from diagnostics import ErrorHandler, ErrorKind, ErrorPhase
from lexer import Lexer
from symbol_table import SymbolKind, SymbolTable
from tac import (TACGenerator, TACOp, TempAllocator, assign, binary, format_tac,
                 is_temp, load_const)


def generate(code, placeholders=False, **kwargs):
    err = ErrorHandler()
    st = SymbolTable(err)
    lexer = Lexer(st if placeholders else None, err)
    lexer.set_source(code)
    tac = TACGenerator(lexer, st, err, **kwargs).generate()
    return tac, st, err


class TestInstructions:
    def test_printable_forms(self):
        assert repr(load_const("%t0", "1.5")) == "%t0 = 1.5"
        assert repr(assign("x", "%t2")) == "x = %t2"
        assert repr(binary(TACOp.DIV, "%t1", "a", "b")) == "%t1 = a / b"

    def test_uses(self):
        assert load_const("%t0", "1").uses() == []
        assert assign("x", "y").uses() == ["y"]
        assert binary(TACOp.SUB, "d", "a", "b").uses() == ["a", "b"]

    def test_format_tac_numbers_lines(self):
        text = format_tac([load_const("%t0", "1"), assign("x", "%t0")])
        assert text == "0:\t%t0 = 1\n1:\tx = %t0"

    def test_is_temp(self):
        assert is_temp("%t12")
        assert not is_temp("t1")
        assert not is_temp("temp")


class TestTempAllocator:
    def test_monotonic_without_reuse(self):
        temps = TempAllocator()
        a = temps.acquire()
        temps.release(a)
        assert temps.acquire() == "%t1"

    def test_lifo_pool_with_reuse(self):
        temps = TempAllocator(reuse=True)
        a, b = temps.acquire(), temps.acquire()
        temps.release(a)
        temps.release(b)
        temps.release("x")
        assert temps.acquire() == b
        assert temps.acquire() == a
        assert temps.acquire() == "%t2"


class TestGeneration:
    def test_sum_of_literals(self):
        tac, st, err = generate("x = 1.5 + 2.0;")
        assert tac == [
            load_const("%t0", "1.5"),
            load_const("%t1", "2.0"),
            binary(TACOp.ADD, "%t2", "%t0", "%t1"),
            assign("x", "%t2"),
        ]
        assert err.get_all() == []
        x = st.lookup("x")
        assert x.kind is SymbolKind.VARIABLE
        assert x.type == "float"
        assert x.is_used
        assert not x.is_dummy

    def test_multiplication_binds_tighter(self):
        tac, _, _ = generate("a = 1.0; b = 2.0; c = 3.0; r = a + b * c;")
        assert tac[-3:] == [
            binary(TACOp.MUL, "%t3", "b", "c"),
            binary(TACOp.ADD, "%t4", "a", "%t3"),
            assign("r", "%t4"),
        ]

    def test_left_associative(self):
        tac, _, _ = generate("a = 1 - 2 - 3;")
        assert [repr(i) for i in tac] == [
            "%t0 = 1",
            "%t1 = 2",
            "%t2 = %t0 - %t1",
            "%t3 = 3",
            "%t4 = %t2 - %t3",
            "a = %t4",
        ]

    def test_identifier_factor_emits_nothing(self):
        tac, _, _ = generate("a = 2; b = a;")
        assert tac[-1] == assign("b", "a")
        assert len(tac) == 3

    def test_reassignment_is_not_redeclaration(self):
        tac, st, err = generate("x = 1.0;\nx = 2.0;")
        assert err.count(ErrorKind.DUPLICATE_DECLARATION) == 0
        assert err.error_count() == 0
        assert [e.name for e in st.entries()] == ["x"]
        assert st.lookup("x").decl_line == 1
        assert len(tac) == 4

    def test_undeclared_read(self):
        _, st, err = generate("y = z;")
        assert err.count(ErrorKind.UNDECLARED_IDENTIFIER) == 1
        assert "'z'" in err.get_all()[0].message
        z = st.lookup("z")
        assert z.is_dummy
        assert z.is_used
        assert z.scope_level == 0
        assert not st.lookup("y").is_dummy

    def test_undeclared_then_assigned_gets_promoted(self):
        _, st, err = generate("y = z;\nz = 1;\nw = z;")
        assert err.count(ErrorKind.UNDECLARED_IDENTIFIER) == 1
        z = st.lookup("z")
        assert not z.is_dummy
        assert z.decl_line == 2
        assert z.type == "float"

    def test_placeholders_from_lexer_are_promoted(self):
        _, st, err = generate("x = y;", placeholders=True)
        assert err.error_count() == 0
        x = st.lookup("x")
        assert not x.is_dummy
        assert x.kind is SymbolKind.VARIABLE
        assert x.address == "stk0"
        y = st.lookup("y")
        assert y.is_dummy
        assert y.kind is SymbolKind.TOKEN
        assert y.is_used

    def test_temps_persist_across_statements(self):
        tac, _, _ = generate("a = 1; b = 2;")
        assert tac == [load_const("%t0", "1"), assign("a", "%t0"),
                       load_const("%t1", "2"), assign("b", "%t1")]

    def test_reuse_temps_recycles_released_operands(self):
        tac, _, _ = generate("a = 1 + 2; b = 3 + 4;", reuse_temps=True)
        assert [repr(i) for i in tac] == [
            "%t0 = 1",
            "%t1 = 2",
            "%t2 = %t0 + %t1",
            "a = %t2",
            "%t1 = 3",
            "%t0 = 4",
            "%t3 = %t1 + %t0",
            "b = %t3",
        ]

    def test_generate_appends_to_given_list(self):
        err = ErrorHandler()
        st = SymbolTable(err)
        lexer = Lexer(err=err)
        lexer.set_source("a = 1;")
        out = [assign("pre", "x")]
        result = TACGenerator(lexer, st, err).generate(out)
        assert result is out
        assert len(out) == 3


class TestRecovery:
    def test_bad_statement_is_skipped(self):
        tac, st, err = generate("a = 1 +;\nb = 2;")
        assert tac == [load_const("%t1", "2"), assign("b", "%t1")]
        assert st.lookup("a") is None
        assert err.count(ErrorKind.SYNTAX_ERROR) == 2
        messages = [e.message for e in err.get_all()]
        assert "Expected identifier or number literal" in messages
        assert "Missing term after operator" in messages

    def test_earlier_statements_survive(self):
        tac, _, _ = generate("a = 1;\nb = * 2;\nc = a;")
        assert tac[:2] == [load_const("%t0", "1"), assign("a", "%t0")]
        assert tac[-1] == assign("c", "a")

    def test_missing_semicolon_at_eof(self):
        tac, _, err = generate("a = 1")
        assert tac == []
        assert err.get_all()[0].message == "Missing semicolon at end of statement"

    def test_missing_assign(self):
        tac, _, err = generate("a 1;\nb = 2;")
        assert [i.dest for i in tac if not i.dest.startswith("%")] == ["b"]
        first = err.get_all()[0]
        assert first.message == "Expected '=' after identifier"
        assert (first.line, first.column) == (1, 3)

    def test_leading_terminator(self):
        tac, _, err = generate("; x = 1;")
        assert err.get_all()[0].message == "Expected identifier at start of statement"
        assert tac[-1] == assign("x", "%t0")

    def test_unknown_character(self):
        tac, _, err = generate("x = 1 @ 2;\ny = 3;")
        assert err.count(ErrorKind.LEXICAL_ERROR) == 1
        assert err.count(ErrorKind.SYNTAX_ERROR) == 1
        assert [i.dest for i in tac if not i.dest.startswith("%")] == ["y"]

    def test_recovery_note_is_informational(self):
        _, _, err = generate("= 1;")
        notes = [e for e in err.get_all() if e.phase is ErrorPhase.SYNTAX]
        assert len(notes) == 2
        assert err.error_count() == 1

    @pytest.mark.parametrize("code", ["", "   \n// only a comment\n", ";;;", "x", "= = ="])
    def test_always_completes(self, code):
        tac, _, _ = generate(code)
        assert isinstance(tac, list)
