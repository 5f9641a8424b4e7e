#!/usr/bin/env python3
"""
compiler.py
Driver for the assignment-language pipeline (lexer → TAC generator →
dead code elimination), plus a small TAC interpreter and a command line.

    x = 1.5 + 2.0;
    y = x * x;

compiles to

    %t0 = 1.5
    %t1 = 2.0
    %t2 = %t0 + %t1
    x = %t2
    ...
"""

import argparse
import logging
import sys

from dce import DeadCodeEliminator, Liveness
from diagnostics import ErrorHandler, ErrorKind, ErrorPhase, FatalCompilationError
from lexer import Lexer
from settings import CompilerOptions
from symbol_table import SymbolTable
from tac import TACGenerator, TACOp, format_tac

logger = logging.getLogger(__name__)


# =====================================================
# TAC INTERPRETER
# =====================================================
def execute_tac(tac, err=None, memory=None):
    """Evaluate straight-line TAC and return the final name -> value map."""
    mem = dict(memory or {})

    def runtime_error(msg):
        if err is not None:
            err.report_error(ErrorPhase.RUNTIME, msg, kind=ErrorKind.RUNTIME_ERROR)

    def get_val(name):
        return mem.get(name, 0.0)

    for instr in tac:
        if instr.op is TACOp.LOAD_CONST:
            try:
                val = float(instr.literal)
            except ValueError:
                runtime_error(f"malformed literal {instr.literal!r} for {instr.dest}")
                val = 0.0
        elif instr.op is TACOp.ASSIGN:
            val = get_val(instr.arg1)
        else:
            a = get_val(instr.arg1)
            b = get_val(instr.arg2)
            if instr.op is TACOp.ADD:
                val = a + b
            elif instr.op is TACOp.SUB:
                val = a - b
            elif instr.op is TACOp.MUL:
                val = a * b
            elif b == 0:
                runtime_error(f"division by zero in '{instr!r}'")
                val = 0.0
            else:
                val = a / b
        mem[instr.dest] = val
    return mem


# =====================================================
# COMPILER DRIVER
# =====================================================
class Compilation:
    """State of one compilation run: diagnostics, symbols and IR."""

    def __init__(self, code, options=None):
        self.code = code
        self.options = options or CompilerOptions()
        self.err = ErrorHandler(stop_on_fatal=self.options.stop_on_fatal)
        self.symtab = SymbolTable(self.err)
        self.tokens = []
        self.tac = []
        self.optimized_tac = []
        self.memory = {}

    def run(self):
        # token listing only; the generator lexes the source itself
        self.tokens = Lexer().tokenize(self.code)

        lexer = Lexer(self.symtab if self.options.lexer_placeholders else None, self.err)
        lexer.set_source(self.code)
        generator = TACGenerator(lexer, self.symtab, self.err,
                                 reuse_temps=self.options.reuse_temps)
        self.tac = generator.generate()

        if self.options.optimize:
            eliminator = DeadCodeEliminator(self.options.liveness)
            self.optimized_tac = eliminator.eliminate(self.tac, self.symtab)
        else:
            self.optimized_tac = list(self.tac)

        self.memory = {name: value for name, value in execute_tac(self.optimized_tac, self.err).items()
                       if self.symtab.lookup(name) is not None}
        logger.info("TAC: %d -> %d instructions, %d errors",
                    len(self.tac), len(self.optimized_tac), self.err.error_count())
        return self

    def result(self):
        return {
            'tokens': [t for t in self.tokens if t.type != 'EOF'],
            'tac': self.tac,
            'optimized_tac': self.optimized_tac,
            'errors': self.err.messages(),
            'diagnostics': [e.to_dict() for e in self.err.get_all()],
            'symbol_table': self.symtab.to_dict(),
            'symbol_dump': self.symtab.dump(),
            'memory': self.memory,
        }


def compile_source(code, options=None):
    """Compile ``code`` and return a dict with tokens, TAC, optimized TAC,
    error messages, the symbol table and the interpreted named values."""
    comp = Compilation(code, options)
    try:
        comp.run()
    except FatalCompilationError:
        logger.error("compilation stopped on fatal error")
    return comp.result()


# =====================================================
# COMMAND LINE
# =====================================================
def build_arg_parser():
    ap = argparse.ArgumentParser(
        prog="minitac",
        description="Compile assignment programs to three-address code")
    ap.add_argument("source", nargs="?", help="source file (default: stdin)")
    ap.add_argument("--liveness", choices=[m.value for m in Liveness],
                    help="dead code liveness model")
    ap.add_argument("--reuse-temps", action="store_true", default=None,
                    help="recycle released temporaries")
    ap.add_argument("--placeholders", action="store_true", default=None,
                    help="let the lexer register identifier placeholders")
    ap.add_argument("--no-optimize", action="store_true",
                    help="skip dead code elimination")
    ap.add_argument("--dump-symbols", action="store_true", help="print the symbol table")
    ap.add_argument("--errors-file", help="also write diagnostics to this file")
    ap.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return ap


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    overrides = {}
    if args.liveness:
        overrides['liveness'] = args.liveness
    if args.reuse_temps:
        overrides['reuse_temps'] = True
    if args.placeholders:
        overrides['lexer_placeholders'] = True
    if args.no_optimize:
        overrides['optimize'] = False
    options = CompilerOptions.from_mapping(overrides, base=CompilerOptions.from_env())

    if args.source:
        with open(args.source, encoding="utf-8") as fh:
            code = fh.read()
    else:
        code = sys.stdin.read()

    comp = Compilation(code, options)
    try:
        comp.run()
    except FatalCompilationError:
        pass

    print("=== TAC ===")
    print(format_tac(comp.tac))
    if options.optimize:
        print("=== Optimized TAC ===")
        print(format_tac(comp.optimized_tac))
    if args.dump_symbols:
        print(comp.symtab.dump(), end="")
    comp.err.print_summary()
    if args.errors_file and not comp.err.save_to_file(args.errors_file):
        print(f"could not write {args.errors_file}", file=sys.stderr)
    return 1 if comp.err.error_count() else 0


if __name__ == '__main__':
    sys.exit(main())
