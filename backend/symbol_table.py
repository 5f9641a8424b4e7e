"""
symbol_table.py
Scope-aware symbol table with speculative placeholder entries.

Scopes are a stack of name -> SymbolEntry maps; frame 0 is the global
frame and is never popped. Entries are immutable values: every change
(marking used, promotion, patches) replaces the stored entry, so callers
only ever hold snapshots.
"""

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Dict, List, Optional

from diagnostics import ErrorKind, ErrorPhase

logger = logging.getLogger(__name__)

GLOBAL_ADDRESS_BASE = 0x1000


class SymbolKind(Enum):
    VARIABLE = "variable"
    CONSTANT = "constant"
    FUNCTION = "function"
    BUILTIN = "builtin"
    TOKEN = "token"


class EntryState(Enum):
    PLACEHOLDER = "placeholder"   # seen, but no concrete declaration yet
    CONCRETE = "concrete"


@dataclass(frozen=True)
class SymbolEntry:
    name: str
    kind: SymbolKind = SymbolKind.VARIABLE
    type: str = "unknown"
    scope_level: int = 0
    address: str = ""
    value: Optional[str] = None
    is_state: bool = False
    is_used: bool = False
    decl_line: int = -1
    state: EntryState = EntryState.CONCRETE

    @property
    def is_dummy(self):
        return self.state is EntryState.PLACEHOLDER

    def promote(self, kind, type, decl_line):
        """Resolve a placeholder into a concrete declaration.

        Scope level and address are preserved.
        """
        if not self.is_dummy:
            raise ValueError(f"symbol '{self.name}' is already resolved")
        return replace(self, kind=kind, type=type, decl_line=decl_line,
                       state=EntryState.CONCRETE)

    def to_dict(self):
        return {
            "name": self.name,
            "kind": self.kind.value,
            "type": self.type,
            "scope": self.scope_level,
            "address": self.address,
            "value": self.value,
            "is_state": self.is_state,
            "is_used": self.is_used,
            "decl_line": self.decl_line,
            "is_dummy": self.is_dummy,
        }


@dataclass(frozen=True)
class EntryPatch:
    """Field-level change set for ``SymbolTable.update_entry``.

    ``None`` means "leave unchanged". ``promote`` resolves a placeholder.
    """
    kind: Optional[SymbolKind] = None
    type: Optional[str] = None
    value: Optional[str] = None
    is_state: Optional[bool] = None
    is_used: Optional[bool] = None
    decl_line: Optional[int] = None
    promote: bool = False

    def apply(self, entry):
        if entry.is_used and self.is_used is False:
            raise ValueError(f"cannot clear is_used on '{entry.name}'")
        if self.promote and not entry.is_dummy:
            raise ValueError(f"symbol '{entry.name}' is already resolved")
        changes = {f.name: getattr(self, f.name) for f in fields(self)
                   if f.name != "promote" and getattr(self, f.name) is not None}
        if self.promote:
            changes["state"] = EntryState.CONCRETE
        return replace(entry, **changes)


class SymbolTable:
    def __init__(self, err=None):
        self.err = err
        self._scopes: List[Dict[str, SymbolEntry]] = []
        self._next_address = 0
        self.begin_scope()

    # =====================================================
    # SCOPES
    # =====================================================
    def begin_scope(self):
        self._scopes.append({})

    def end_scope(self):
        if len(self._scopes) > 1:
            self._scopes.pop()
        else:
            logger.debug("end_scope at global scope ignored")

    def current_scope(self):
        return len(self._scopes) - 1

    # =====================================================
    # INSERTION
    # =====================================================
    def insert(self, entry):
        """Add ``entry`` to the innermost frame.

        Returns False (and reports a duplicate declaration) when the name is
        already bound in that same frame. Outer bindings are shadowed silently.
        """
        frame = self._scopes[-1]
        existing = frame.get(entry.name)
        if existing is not None:
            self._report_duplicate(existing, entry)
            return False
        entry = replace(entry, scope_level=self.current_scope())
        if not entry.address:
            entry = replace(entry, address=self._allocate_address(entry))
        frame[entry.name] = entry
        return True

    def insert_token_placeholder(self, name, line):
        if self.exists_in_current_scope(name):
            return False
        placeholder = SymbolEntry(name, SymbolKind.TOKEN, "unknown", self.current_scope(),
                                  decl_line=line, state=EntryState.PLACEHOLDER)
        return self.insert(placeholder)

    def _allocate_address(self, entry):
        index = self._next_address
        self._next_address += 1
        if entry.kind is SymbolKind.VARIABLE and (entry.is_state or entry.scope_level == 0):
            return f"0x{GLOBAL_ADDRESS_BASE + index:x}"
        return f"stk{index}"

    def _report_duplicate(self, existing, attempt):
        message = (f"Duplicate declaration of '{attempt.name}'; "
                   f"previously declared at line {existing.decl_line}")
        if self.err is not None:
            self.err.report_error(ErrorPhase.SEMANTIC, message, attempt.decl_line,
                                  kind=ErrorKind.DUPLICATE_DECLARATION)
        else:
            logger.warning("%s (current declaration line %d)", message, attempt.decl_line)

    # =====================================================
    # LOOKUP
    # =====================================================
    def _find_frame(self, name):
        for index in range(len(self._scopes) - 1, -1, -1):
            if name in self._scopes[index]:
                return index
        return None

    def lookup(self, name):
        index = self._find_frame(name)
        if index is None:
            return None
        return self._scopes[index][name]

    def lookup_local(self, name):
        return self._scopes[-1].get(name)

    def exists_in_current_scope(self, name):
        return name in self._scopes[-1]

    # =====================================================
    # UPDATES AND FLAGS
    # =====================================================
    def mark_used(self, name, line=-1, column=-1):
        index = self._find_frame(name)
        if index is not None:
            frame = self._scopes[index]
            if not frame[name].is_used:
                frame[name] = replace(frame[name], is_used=True)
            return

        message = f"Undeclared identifier '{name}' used"
        if self.err is not None:
            self.err.report_error(ErrorPhase.SEMANTIC, message, line, column,
                                  kind=ErrorKind.UNDECLARED_IDENTIFIER)
        else:
            logger.warning("%s", message)
        # repair into the global frame so the name is diagnosed only once
        dummy = SymbolEntry(name, SymbolKind.VARIABLE, "unknown", 0, is_used=True,
                            state=EntryState.PLACEHOLDER)
        self._scopes[0][name] = replace(dummy, address=self._allocate_address(dummy))

    def update_entry(self, name, patch):
        """Apply ``patch`` to ``name`` in the current scope.

        A missing name is first inserted as a variable placeholder; returns
        False only when that insert fails. A patch that would clear
        ``is_used`` or promote a concrete entry raises ValueError and leaves
        the entry unchanged.
        """
        frame = self._scopes[-1]
        if name not in frame:
            default = SymbolEntry(name, SymbolKind.VARIABLE, "unknown", self.current_scope(),
                                  state=EntryState.PLACEHOLDER)
            if not self.insert(default):
                return False
        frame[name] = patch.apply(frame[name])
        return True

    def promote(self, name, kind=SymbolKind.VARIABLE, type="float", decl_line=-1):
        """Promote the visible placeholder for ``name`` in place.

        Returns False when no placeholder is visible.
        """
        index = self._find_frame(name)
        if index is None:
            return False
        frame = self._scopes[index]
        if not frame[name].is_dummy:
            return False
        frame[name] = frame[name].promote(kind, type, decl_line)
        return True

    def get_unused_entries(self):
        unused = []
        for frame in reversed(self._scopes):
            unused.extend(e for e in frame.values() if not e.is_used)
        return unused

    # =====================================================
    # UTILITIES
    # =====================================================
    def entries(self):
        return [e for frame in self._scopes for e in frame.values()]

    def to_dict(self):
        return {str(level): [e.to_dict() for e in frame.values()]
                for level, frame in enumerate(self._scopes)}

    def dump(self):
        lines = ["=== Symbol Table Dump ==="]
        for level, frame in enumerate(self._scopes):
            lines.append(f"Scope level {level}:")
            for e in frame.values():
                line = (f"  name='{e.name}' kind='{e.kind.value}' type='{e.type}'"
                        f" addr='{e.address}' scope={e.scope_level}"
                        f" decl_line={e.decl_line}"
                        f" is_state={'yes' if e.is_state else 'no'}"
                        f" is_used={'yes' if e.is_used else 'no'}")
                if e.is_dummy:
                    line += " [DUMMY]"
                if e.value:
                    line += f" value='{e.value}'"
                lines.append(line)
        lines.append("=" * 25)
        return "\n".join(lines) + "\n"

    def clear(self):
        self._scopes = []
        self._next_address = 0
        self.begin_scope()
