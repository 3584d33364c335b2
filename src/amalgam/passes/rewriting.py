"""
Reference Rewriting

Rewrites a dependent module's references into an inlined dependency so they
name the dependency's renamed declarations directly:

- `mod.Name` / `pkg.mod.Name`: the qualifier and its dot become the qualifier
  sentinel (stripped at emission), `Name` becomes the renamed form
- names bound by `from pkg.mod import Name [as Alias]` are rewritten at every
  use, following re-exports through other inlined modules
- names pulled in by `from pkg.mod import *` are rewritten at every free use
"""

import ast
import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from .base import InlinedModule
from ..analysis.module_system.module_info import ModuleUnit, Occurrence, SourceFile, Symbol, SymbolKind
from ..utils.config import MODULE_SEPARATOR, QUALIFIER_SENTINEL

logger = logging.getLogger(__name__)

# Qualifier text that can be replaced wholesale: identifiers, dots, whitespace
_PLAIN_QUALIFIER = re.compile(r"[\w.\s\\]*\Z")


def _qualifier_chain(node: ast.Attribute) -> Optional[Tuple[ast.Name, List[str]]]:
    """For `a.b.c.Name`, the root Name node `a` and the intermediate attributes ['b', 'c']."""
    attrs: List[str] = []
    current = node.value
    while isinstance(current, ast.Attribute):
        attrs.append(current.attr)
        current = current.value
    if not isinstance(current, ast.Name):
        return None
    attrs.reverse()
    return current, attrs


class ReferenceRewriter:
    """
    Rewrites references from dependents into inlined modules.

    `modules` is the driver's memo; the dependency passed to `rewrite` and
    every module reachable through its re-exports must already be in it with
    their rename maps.
    """

    def __init__(self, modules: Dict[str, InlinedModule]):
        self.modules = modules

    def rewrite(self, unit: ModuleUnit, dependency: InlinedModule) -> int:
        """Rewrite `unit`'s references into `dependency`; return the number of rewritten references."""
        count = 0
        for source_file in unit.files:
            count += self._rewrite_qualified(unit, source_file, dependency)
        count += self._rewrite_imported_names(unit, dependency)
        if dependency.path in unit.star_imports:
            count += self._rewrite_star_names(unit, dependency)
        logger.debug(f"{unit.path}: rewrote {count} references into {dependency.path}")
        return count

    # ------------------------------------------------------------------
    # Name resolution across inlined modules
    # ------------------------------------------------------------------

    def resolve_name(self, module_path: str, name: str, seen: Optional[Set[Tuple[str, str]]] = None) -> Optional[str]:
        """
        Final spelling of `module_path.name` in the merged output.

        Returns None when the name does not denote a declaration the merged
        output can refer to directly (unknown names, inlined module objects).
        """
        seen = seen if seen is not None else set()
        if (module_path, name) in seen:
            return None
        seen.add((module_path, name))

        inlined = self.modules.get(module_path)
        if inlined is None:
            return None
        if name in inlined.renames:
            return inlined.renames[name]
        symbol = inlined.unit.symbols.get(name)
        if symbol is None:
            for star in sorted(inlined.unit.star_imports):
                if name in self.star_exports(star):
                    return self.resolve_name(star, name, seen)
            return None
        if not symbol.kind.is_import:
            return name
        if inlined.prefix + name in inlined.unit.import_aliases:
            return inlined.prefix + name
        if symbol.target in self.modules:
            if symbol.kind is SymbolKind.IMPORTED:
                return self.resolve_name(symbol.target, symbol.target_name, seen)
            return None
        # Bound by a kept import, which survives under the same name
        return symbol.name

    def star_exports(self, module_path: str, seen: Optional[Set[str]] = None) -> Set[str]:
        """Names `from module_path import *` binds, including names the module star-imports itself."""
        seen = seen if seen is not None else set()
        inlined = self.modules.get(module_path)
        if inlined is None or module_path in seen:
            return set()
        seen.add(module_path)
        unit = inlined.unit
        names = unit.public_names()
        if unit.exports is None:
            for star in sorted(unit.star_imports):
                names |= {name for name in self.star_exports(star, seen) if not name.startswith("_")}
        return names

    # ------------------------------------------------------------------
    # Qualified references
    # ------------------------------------------------------------------

    def _module_binding(self, unit: ModuleUnit, source_file: SourceFile, node: ast.Name) -> Optional[Symbol]:
        occurrence = source_file.node_occurrences.get(node)
        symbol = unit.uses.get(occurrence) if occurrence is not None else None
        if symbol is None or symbol.kind is not SymbolKind.MODULE:
            return None
        return symbol

    def _rewrite_qualified(self, unit: ModuleUnit, source_file: SourceFile, dependency: InlinedModule) -> int:
        imported = set(unit.import_paths)
        count = 0
        for node in source_file.walk():
            if not isinstance(node, ast.Attribute):
                continue
            chain = _qualifier_chain(node)
            if chain is None:
                continue
            root, attrs = chain
            binding = self._module_binding(unit, source_file, root)
            if binding is None:
                continue
            qualifier = MODULE_SEPARATOR.join([binding.target] + attrs)
            if qualifier != dependency.path:
                continue
            referenced = f"{qualifier}{MODULE_SEPARATOR}{node.attr}"
            if referenced in imported or referenced in self.modules:
                continue
            if not isinstance(node.ctx, ast.Load):
                logger.warning(
                    f"{source_file.path}:{node.lineno}: assignment through module "
                    f"'{dependency.path}' cannot be flattened"
                )
                continue
            if self._flatten(unit, source_file, node, root, dependency):
                count += 1
        return count

    def _flatten(self, unit: ModuleUnit, source_file: SourceFile, node: ast.Attribute,
                 root: ast.Name, dependency: InlinedModule) -> bool:
        resolved = self.resolve_name(dependency.path, node.attr)
        if resolved is None:
            logger.warning(
                f"{source_file.path}:{node.lineno}: '{node.attr}' is not a declaration of "
                f"{dependency.path}; reference left qualified"
            )
            return False
        attribute = source_file.attribute_occurrence(node)
        start = source_file.node_start(root)
        if not _PLAIN_QUALIFIER.match(source_file.text_between(start, attribute.start)):
            logger.warning(
                f"{source_file.path}:{node.lineno}: qualifier of '{node.attr}' is not a plain "
                f"dotted name; reference left qualified"
            )
            return False
        source_file.add_occurrence(start, attribute.start, text=QUALIFIER_SENTINEL + MODULE_SEPARATOR)
        attribute.text = resolved
        unit.qualified_roots.add(source_file.node_occurrences[root])
        return True

    # ------------------------------------------------------------------
    # Name and star imports
    # ------------------------------------------------------------------

    def _rewrite_imported_names(self, unit: ModuleUnit, dependency: InlinedModule) -> int:
        bindings = {
            symbol for symbol in unit.symbols.values()
            if symbol.kind is SymbolKind.IMPORTED and symbol.target == dependency.path
        }
        if not bindings:
            return 0
        resolved: Dict[Symbol, Optional[str]] = {}
        for symbol in bindings:
            resolved[symbol] = self.resolve_name(dependency.path, symbol.target_name)
            if resolved[symbol] is None:
                logger.warning(
                    f"{unit.path}: '{symbol.target_name}' imported from {dependency.path} "
                    f"is not a declaration there; '{symbol.name}' left unbound"
                )
        # A rebound import is a separate variable that starts out equal to the
        # imported one: it keeps a name of its own, bound by an alias assignment.
        prefix = self.modules[unit.path].prefix if unit.path in self.modules else ""
        for symbol in {symbol for symbol in unit.defs.values() if resolved.get(symbol) is not None}:
            local = prefix + symbol.name
            logger.warning(
                f"{unit.path}: '{symbol.name}' imported from {dependency.path} is reassigned; "
                f"it becomes '{local} = {resolved[symbol]}'"
            )
            unit.import_aliases[local] = resolved[symbol]
            resolved[symbol] = local
        count = 0
        for table in (unit.defs, unit.uses):
            for occurrence, symbol in table.items():
                name = resolved.get(symbol)
                if name is not None:
                    occurrence.text = name
                    count += 1
        return count

    def _rewrite_star_names(self, unit: ModuleUnit, dependency: InlinedModule) -> int:
        public = self.star_exports(dependency.path)
        count = 0
        for occurrence, name in unit.free_uses.items():
            if name not in public:
                continue
            resolved = self.resolve_name(dependency.path, name)
            if resolved is not None:
                occurrence.text = resolved
                count += 1
        return count

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def report_unflattened(self, unit: ModuleUnit) -> List[Occurrence]:
        """Warn about uses of inlined module objects that were not rewritten away."""
        leftovers = []
        for occurrence, symbol in unit.uses.items():
            if symbol.kind is not SymbolKind.MODULE or occurrence in unit.qualified_roots:
                continue
            if not any(path == symbol.target or path.startswith(symbol.target + MODULE_SEPARATOR)
                       for path in self.modules):
                continue
            leftovers.append(occurrence)
            logger.warning(
                f"{unit.path}:{occurrence.start[0]}: module object '{occurrence.original}' "
                f"({symbol.target}) is inlined and cannot be used as a value"
            )
        return leftovers
