"""
lexer.py
Streaming tokenizer for assignment programs (``IDENT = expr ;``).

Usage:
    lex = Lexer(err=handler)
    lex.set_source(code)
    tok = lex.get_next_token()      # repeat until tok.type == 'EOF'

or one-shot with ``Lexer().tokenize(code)``.
"""

import re
from collections import namedtuple

from diagnostics import ErrorKind, ErrorPhase

Token = namedtuple('Token', ['type', 'value', 'lineno', 'column'])


class Lexer:
    token_specification = [
        ("COMMENT",   r'//[^\n]*'),
        ("NUMBER",    r'\d+\.\d*|\.\d+|\d+'),
        ("ID",        r'[A-Za-z_]\w*'),
        ("PLUS",      r'\+'),
        ("MINUS",     r'-'),
        ("STAR",      r'\*'),
        ("SLASH",     r'/'),
        ("ASSIGN",    r'='),
        ("END",       r';'),
        ("NEWLINE",   r'\n'),
        ("SKIP",      r'[ \t\r\f\v]+'),
        ("MISMATCH",  r'.'),
    ]
    tok_regex = '|'.join(f'(?P<{n}>{p})' for n, p in token_specification)
    master_re = re.compile(tok_regex)

    def __init__(self, symtab=None, err=None):
        self.symtab = symtab
        self.err = err
        self.code = None
        self.pos = 0
        self.lineno = 1
        self.column = 1

    def set_source(self, code):
        self.code = code
        self.pos = 0
        self.lineno = 1
        self.column = 1

    def get_next_token(self):
        if self.code is None:
            return Token('EOF', '<EOF>', 0, 0)
        while self.pos < len(self.code):
            mo = self.master_re.match(self.code, self.pos)
            kind = mo.lastgroup
            val = mo.group()
            line, col = self.lineno, self.column
            self.pos = mo.end()
            if kind == "NEWLINE":
                self.lineno += 1
                self.column = 1
                continue
            self.column += len(val)
            if kind in ("SKIP", "COMMENT"):
                continue
            if kind == "MISMATCH":
                if self.err is not None:
                    self.err.report_error(ErrorPhase.LEXICAL, f"Unrecognized symbol {val!r}",
                                          line, col, kind=ErrorKind.LEXICAL_ERROR)
                return Token('UNKNOWN', val, line, col)
            if kind == "ID" and self.symtab is not None:
                if not self.symtab.exists_in_current_scope(val):
                    self.symtab.insert_token_placeholder(val, line)
            return Token(kind, val, line, col)
        return Token('EOF', '<EOF>', self.lineno, self.column)

    def tokenize(self, code):
        self.set_source(code)
        tokens = []
        while True:
            tok = self.get_next_token()
            tokens.append(tok)
            if tok.type == 'EOF':
                return tokens
