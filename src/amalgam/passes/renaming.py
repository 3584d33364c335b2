"""
Symbol Renaming

Renames every symbol of a collision set at all of its definition and use
sites in the module's own symbol tables. Runs before the module's children are
walked and before any dependent rewrites its references into the module.
"""

import logging
from typing import Dict, Set

from ..analysis.module_system.module_info import ModuleUnit, Symbol

logger = logging.getLogger(__name__)


class SymbolRenamer:

    def rename(self, unit: ModuleUnit, collisions: Set[Symbol], prefix: str) -> Dict[str, str]:
        """Apply `prefix` in place; return the module's rename map (old name -> new name)."""
        renames = {symbol.name: prefix + symbol.name for symbol in collisions}
        sites = 0
        for table in (unit.defs, unit.uses):
            for occurrence, symbol in table.items():
                if symbol in collisions:
                    occurrence.text = renames[symbol.name]
                    sites += 1
        logger.debug(f"{unit.path}: renamed {len(renames)} symbols at {sites} sites with '{prefix}'")
        return renames
