"""
Symbol Collision Resolution

Computes the symbols of an inlined module that must be renamed. The set is
seeded with every module-scope declaration and closed over one relation: when
a type is in the set, any occurrence that uses the type while also defining
another symbol pulls that symbol in, so the two stay spelled alike.

The closure follows only that type-use-is-definition edge. A function that
merely calls a renamed function is not renamed itself, and longer reference
chains are not followed.
"""

import logging
from typing import List, Set

from ..analysis.module_system.module_info import ModuleUnit, Symbol, SymbolKind

logger = logging.getLogger(__name__)


class CollisionResolver:
    """Builds the collision set of one freshly loaded module."""

    def resolve(self, unit: ModuleUnit) -> Set[Symbol]:
        collisions: Set[Symbol] = set()
        pending: List[Symbol] = list(reversed(unit.declared_symbols()))
        while pending:
            symbol = pending.pop()
            if symbol in collisions:
                continue
            collisions.add(symbol)
            if symbol.kind is not SymbolKind.TYPE:
                continue
            for occurrence, used in unit.uses.items():
                if used != symbol:
                    continue
                declared = unit.defs.get(occurrence)
                if declared is not None and declared not in collisions:
                    pending.append(declared)
        logger.debug(f"{unit.path}: {len(collisions)} symbols to rename")
        return collisions
