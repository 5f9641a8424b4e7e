"""
tac.py
Three-address code: instruction model and a single-pass generator.

The generator parses

    program := stmt* EOF
    stmt    := IDENT '=' expr ';'
    expr    := term (('+'|'-') term)*
    term    := factor (('*'|'/') factor)*
    factor  := IDENT | NUMBER

straight from the token stream and emits a flat instruction list while
keeping the symbol table in sync. Syntax errors are reported and the
generator resynchronizes at the next ';'.

Temporaries are spelled ``%t0``, ``%t1``, ... ('%' cannot start a source
identifier), so ``x = 1.5 + 2.0;`` lowers to

    %t0 = 1.5
    %t1 = 2.0
    %t2 = %t0 + %t1
    x = %t2
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from diagnostics import ErrorKind, ErrorPhase
from symbol_table import SymbolEntry, SymbolKind

logger = logging.getLogger(__name__)

# '%' cannot start a source identifier
TEMP_PREFIX = "%t"


def is_temp(name):
    return name is not None and name.startswith(TEMP_PREFIX)


# =====================================================
# INSTRUCTIONS
# =====================================================
class TACOp(Enum):
    LOAD_CONST = "load_const"   # dest = literal
    ASSIGN = "assign"           # dest = arg1
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"


OP_SYMBOLS = {TACOp.ADD: '+', TACOp.SUB: '-', TACOp.MUL: '*', TACOp.DIV: '/'}
TOKEN_OPS = {'PLUS': TACOp.ADD, 'MINUS': TACOp.SUB, 'STAR': TACOp.MUL, 'SLASH': TACOp.DIV}


@dataclass(frozen=True, repr=False)
class TACInstruction:
    op: TACOp
    dest: str
    arg1: Optional[str] = None
    arg2: Optional[str] = None
    literal: Optional[str] = None

    def uses(self):
        """Names read by this instruction."""
        if self.op is TACOp.LOAD_CONST:
            return []
        if self.op is TACOp.ASSIGN:
            return [self.arg1]
        return [self.arg1, self.arg2]

    def __repr__(self):
        if self.op is TACOp.LOAD_CONST:
            return f"{self.dest} = {self.literal}"
        if self.op is TACOp.ASSIGN:
            return f"{self.dest} = {self.arg1}"
        return f"{self.dest} = {self.arg1} {OP_SYMBOLS[self.op]} {self.arg2}"


def load_const(dest, literal):
    return TACInstruction(TACOp.LOAD_CONST, dest, literal=literal)


def assign(dest, src):
    return TACInstruction(TACOp.ASSIGN, dest, arg1=src)


def binary(op, dest, a, b):
    return TACInstruction(op, dest, arg1=a, arg2=b)


def format_tac(tac):
    return "\n".join(f"{i}:\t{instr!r}" for i, instr in enumerate(tac))


# =====================================================
# TEMPORARIES
# =====================================================
class TempAllocator:
    """Mints temporary names from a counter owned by one generation run.

    With ``reuse`` set, released temporaries go to a LIFO pool that is
    consulted before minting a new name.
    """

    def __init__(self, reuse=False, prefix=TEMP_PREFIX):
        self.reuse = reuse
        self.prefix = prefix
        self.counter = 0
        self._free: List[str] = []

    def acquire(self):
        if self.reuse and self._free:
            return self._free.pop()
        name = f"{self.prefix}{self.counter}"
        self.counter += 1
        return name

    def release(self, name):
        if self.reuse and name.startswith(self.prefix):
            self._free.append(name)


class ParseError(Exception):
    """Internal signal: the current statement could not be parsed."""


# =====================================================
# GENERATOR
# =====================================================
class TACGenerator:
    def __init__(self, lexer, symtab, err=None, reuse_temps=False):
        self.lexer = lexer
        self.symtab = symtab
        self.err = err
        self.temps = TempAllocator(reuse=reuse_temps)
        self.cur = lexer.get_next_token()

    # ----- token helpers -----

    def advance(self):
        tok = self.cur
        self.cur = self.lexer.get_next_token()
        return tok

    def syntax_error(self, msg):
        tok = self.cur
        if self.err is not None:
            self.err.report_error(ErrorPhase.SYNTAX, msg, tok.lineno, tok.column,
                                  kind=ErrorKind.SYNTAX_ERROR)
        raise ParseError(msg)

    # ----- program -----

    def generate(self, out=None):
        """Lower the whole token stream; never raises for bad input.

        Instructions are appended to ``out`` (a new list when omitted),
        which is also returned.
        """
        if out is None:
            out = []
        while self.cur.type != 'EOF':
            stmt = []
            try:
                self.statement(stmt)
            except ParseError:
                self.recover()
                continue
            out.extend(stmt)
        logger.debug("generated %d instructions, %d temporaries minted",
                     len(out), self.temps.counter)
        return out

    def recover(self):
        if self.err is not None:
            self.err.report_info(ErrorPhase.SYNTAX, "Skipping to next ';' on parse error",
                                 self.cur.lineno, self.cur.column)
        while self.cur.type not in ('END', 'EOF'):
            self.advance()
        if self.cur.type == 'END':
            self.advance()

    def statement(self, out):
        if self.cur.type != 'ID':
            self.syntax_error("Expected identifier at start of statement")
        lhs_tok = self.advance()
        if self.cur.type != 'ASSIGN':
            self.syntax_error("Expected '=' after identifier")
        self.advance()
        rhs = self.expression(out)
        if self.cur.type != 'END':
            self.syntax_error("Missing semicolon at end of statement")
        self.advance()

        self.declare_target(lhs_tok)
        out.append(assign(lhs_tok.value, rhs))
        # assignment counts as a reference
        self.symtab.mark_used(lhs_tok.value, lhs_tok.lineno, lhs_tok.column)

    def declare_target(self, tok):
        name = tok.value
        entry = self.symtab.lookup(name)
        if entry is None:
            self.symtab.insert(SymbolEntry(name, SymbolKind.VARIABLE, "float",
                                           self.symtab.current_scope(), decl_line=tok.lineno))
        elif entry.is_dummy:
            self.symtab.promote(name, SymbolKind.VARIABLE, "float", tok.lineno)

    # ----- expressions -----

    def expression(self, out):
        return self._fold(out, self.term, ('PLUS', 'MINUS'), "Missing term after operator")

    def term(self, out):
        return self._fold(out, self.factor, ('STAR', 'SLASH'), "Missing factor after operator")

    def _fold(self, out, operand, op_types, missing_msg):
        left = operand(out)
        while self.cur.type in op_types:
            op = TOKEN_OPS[self.advance().type]
            try:
                right = operand(out)
            except ParseError:
                self.syntax_error(missing_msg)
            dest = self.temps.acquire()
            out.append(binary(op, dest, left, right))
            self.temps.release(left)
            self.temps.release(right)
            left = dest
        return left

    def factor(self, out):
        tok = self.cur
        if tok.type == 'ID':
            self.symtab.mark_used(tok.value, tok.lineno, tok.column)
            self.advance()
            return tok.value
        if tok.type == 'NUMBER':
            dest = self.temps.acquire()
            out.append(load_const(dest, tok.value))
            self.advance()
            return dest
        self.syntax_error("Expected identifier or number literal")
