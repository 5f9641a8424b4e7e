"""
dce.py
Dead code elimination over straight-line TAC.

One backward pass is enough because the IR has no control flow, and every
instruction is pure (it only binds its own destination), so an instruction
whose destination is not live can be dropped.

Two liveness models are supported:

* ``Liveness.PER_DEFINITION`` (default): a definition kills its name, so an
  assignment that is overwritten before being read is removed.
* ``Liveness.PER_NAME``: names are never killed. Once a name is live every
  earlier definition of it is kept, even ones shadowed by a later
  redefinition. This over-retains but never removes more.
"""

import logging
from enum import Enum

from tac import is_temp

logger = logging.getLogger(__name__)


class Liveness(Enum):
    PER_DEFINITION = "definition"
    PER_NAME = "name"


class DeadCodeEliminator:
    def __init__(self, liveness=Liveness.PER_DEFINITION):
        self.liveness = Liveness(liveness)

    def initial_live_set(self, tac, symtab):
        unused = {e.name for e in symtab.get_unused_entries()}
        return {instr.dest for instr in tac
                if not is_temp(instr.dest) and instr.dest not in unused}

    def eliminate(self, tac, symtab):
        """Return the instructions of ``tac`` that can affect a used name."""
        live = self.initial_live_set(tac, symtab)
        keep = [False] * len(tac)
        for i in range(len(tac) - 1, -1, -1):
            instr = tac[i]
            if instr.dest not in live:
                continue
            keep[i] = True
            if self.liveness is Liveness.PER_DEFINITION:
                live.discard(instr.dest)
            live.update(instr.uses())
        result = [instr for instr, kept in zip(tac, keep) if kept]
        logger.debug("dce (%s): kept %d of %d instructions",
                     self.liveness.value, len(result), len(tac))
        return result


def dead_code_elimination(tac, symtab, liveness=Liveness.PER_DEFINITION):
    return DeadCodeEliminator(liveness).eliminate(tac, symtab)
