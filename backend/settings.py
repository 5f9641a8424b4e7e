"""
settings.py
Options for one compilation run.

Options come from code, from a JSON mapping (HTTP API) or from MINITAC_*
environment variables (CLI and server defaults).
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace

from dce import Liveness

ENV_PREFIX = "MINITAC_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class CompilerOptions:
    liveness: Liveness = Liveness.PER_DEFINITION
    reuse_temps: bool = False
    lexer_placeholders: bool = False
    stop_on_fatal: bool = True
    optimize: bool = True

    @classmethod
    def from_mapping(cls, data, base=None):
        """Build options from a plain mapping; unknown keys raise ValueError."""
        base = base or cls()
        if data is not None and not isinstance(data, Mapping):
            raise ValueError(f"options must be a mapping, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        changes = {}
        for key, value in (data or {}).items():
            if key not in known:
                raise ValueError(f"unknown option '{key}'")
            changes[key] = _coerce(key, value)
        return replace(base, **changes)

    @classmethod
    def from_env(cls, environ=None):
        environ = os.environ if environ is None else environ
        data = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is not None:
                data[f.name] = raw
        return cls.from_mapping(data)

    def to_dict(self):
        return {
            "liveness": self.liveness.value,
            "reuse_temps": self.reuse_temps,
            "lexer_placeholders": self.lexer_placeholders,
            "stop_on_fatal": self.stop_on_fatal,
            "optimize": self.optimize,
        }


def _coerce(key, value):
    if key == "liveness":
        try:
            return Liveness(value)
        except ValueError:
            raise ValueError(f"invalid liveness {value!r}; expected 'definition' or 'name'")
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE:
        return True
    if isinstance(value, str) and value.strip().lower() in _FALSE:
        return False
    raise ValueError(f"option '{key}' expects a boolean, got {value!r}")
