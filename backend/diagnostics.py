"""
diagnostics.py
Error collection for every phase of the mini compiler.

Reports are recorded in order, logged immediately and never stop the
pipeline unless a non-recoverable fatal error is reported while
``stop_on_fatal`` is set.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

logger = logging.getLogger(__name__)


class ErrorPhase(Enum):
    LEXICAL = "Lexical"
    SYNTAX = "Syntax"
    SEMANTIC = "Semantic"
    RUNTIME = "Runtime"
    GENERIC = "Generic"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class ErrorKind(Enum):
    SYNTAX_ERROR = "SyntaxError"
    DUPLICATE_DECLARATION = "DuplicateDeclaration"
    UNDECLARED_IDENTIFIER = "UndeclaredIdentifier"
    LEXICAL_ERROR = "LexicalError"
    RUNTIME_ERROR = "RuntimeError"


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


class FatalCompilationError(Exception):
    """Raised when a non-recoverable fatal error is reported."""

    def __init__(self, error):
        super().__init__(str(error))
        self.error = error


@dataclass(frozen=True)
class CompilerError:
    phase: ErrorPhase
    severity: Severity
    message: str
    line: int = -1
    column: int = -1
    recoverable: bool = True
    kind: Optional[ErrorKind] = None

    def __str__(self):
        text = f"{self.phase.value} {self.severity.value}"
        if self.line >= 0:
            if self.column >= 0:
                text += f" (line {self.line}, col {self.column})"
            else:
                text += f" (line {self.line})"
        text += f": {self.message}"
        if not self.recoverable:
            text += " [non-recoverable]"
        return text

    def to_dict(self):
        return {
            "phase": self.phase.value,
            "severity": self.severity.value,
            "kind": self.kind.value if self.kind else None,
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "recoverable": self.recoverable,
        }


class ErrorHandler:
    def __init__(self, stop_on_fatal=True):
        self.errors: List[CompilerError] = []
        self.stop_on_fatal = stop_on_fatal

    def report(self, phase, severity, message, line=-1, column=-1,
               recoverable=True, kind=None):
        err = CompilerError(phase, severity, message, line, column, recoverable, kind)
        self.errors.append(err)
        logger.log(_LOG_LEVELS[severity], "%s", err)
        if not recoverable and severity is Severity.FATAL and self.stop_on_fatal:
            raise FatalCompilationError(err)
        return err

    def report_error(self, phase, message, line=-1, column=-1, recoverable=True, kind=None):
        return self.report(phase, Severity.ERROR, message, line, column, recoverable, kind)

    def report_warning(self, phase, message, line=-1, column=-1, kind=None):
        return self.report(phase, Severity.WARNING, message, line, column, True, kind)

    def report_info(self, phase, message, line=-1, column=-1):
        return self.report(phase, Severity.INFO, message, line, column, True)

    def report_fatal(self, phase, message, line=-1, column=-1, kind=None):
        return self.report(phase, Severity.FATAL, message, line, column, False, kind)

    # ----- queries -----

    def error_count(self):
        return sum(1 for e in self.errors if e.severity in (Severity.ERROR, Severity.FATAL))

    def warning_count(self):
        return sum(1 for e in self.errors if e.severity is Severity.WARNING)

    def has_fatal(self):
        return any(e.severity is Severity.FATAL for e in self.errors)

    def count(self, kind):
        return sum(1 for e in self.errors if e.kind is kind)

    def get_all(self):
        return list(self.errors)

    def messages(self):
        return [str(e) for e in self.errors]

    # ----- output -----

    def format_summary(self):
        if not self.errors:
            return "No errors or warnings\n"
        lines = [f"=== Compiler Messages ({len(self.errors)}) ==="]
        lines.extend(str(e) for e in self.errors)
        lines.append("=== End of Messages ===")
        return "\n".join(lines) + "\n"

    def print_summary(self, stream=None):
        print(self.format_summary(), end="", file=stream)

    def save_to_file(self, path):
        try:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(self.format_summary())
        except OSError as exc:
            logger.warning("could not write diagnostics to %s: %s", path, exc)
            return False
        return True

    def clear(self):
        self.errors = []
