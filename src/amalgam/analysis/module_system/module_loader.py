"""
Module Loader

Loads one module and builds its ModuleUnit:

- module file lookup through the PathResolver (exactly one match)
- parsing (ast) and comment collection (tokenize)
- import records with relative imports made absolute
- module-scope symbols and the def/use maps (NameResolver)
"""

import ast
import io
import logging
import tokenize
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .module_info import (
    Comment,
    CommentGroup,
    ImportRecord,
    ImportSpec,
    ModuleUnit,
    SourceFile,
    Symbol,
    SymbolKind,
)
from .path_resolver import PathResolver
from ..name_resolution import NameResolver, module_bindings, symbol_kind
from ...shared.errors import ModuleSyntaxError, RelativeImportError
from ...shared.source_location import SourceLocation
from ...utils.config import MODULE_SEPARATOR
from ...utils.io_utils import read_source_file

logger = logging.getLogger(__name__)

# Compound statements whose bodies still run at module scope
_MODULE_LEVEL_BLOCKS = (ast.If, ast.Try, ast.For, ast.AsyncFor, ast.While, ast.With, ast.AsyncWith)


def parse_source_file(path: Path, source: str) -> SourceFile:
    """Parse `source` and collect its comments."""
    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError as e:
        location = SourceLocation(str(path), e.lineno or 1, e.offset or 1)
        raise ModuleSyntaxError(f"cannot parse {path}: {e.msg}", location, source) from e
    return SourceFile(path=path, source=source, tree=tree, comment_groups=collect_comments(source))


def collect_comments(source: str) -> List[CommentGroup]:
    """Group comments: own-line comments on consecutive lines share a group."""
    groups: List[CommentGroup] = []
    tokens = tokenize.generate_tokens(io.StringIO(source).readline)
    for token in tokens:
        if token.type != tokenize.COMMENT:
            continue
        line, column = token.start
        own_line = not token.line[:column].strip()
        comment = Comment(line, column, token.end[1], token.string, own_line)
        previous = groups[-1] if groups else None
        if (own_line and previous is not None and previous.own_line
                and previous.end[0] == line - 1 and previous.start[1] == column):
            previous.comments.append(comment)
        else:
            groups.append(CommentGroup([comment]))
    return groups


def _module_level_statements(body: List[ast.stmt]) -> Iterator[Tuple[ast.stmt, bool]]:
    """Yield (statement, nested) for statements executing at module scope."""
    for stmt in body:
        yield stmt, False
        if isinstance(stmt, _MODULE_LEVEL_BLOCKS) or type(stmt).__name__ in ("TryStar", "Match"):
            for child in _block_bodies(stmt):
                for inner, _ in _module_level_statements(child):
                    yield inner, True


def is_type_checking_block(stmt: ast.stmt) -> bool:
    """`if TYPE_CHECKING:` or `if typing.TYPE_CHECKING:` without an else branch."""
    if not isinstance(stmt, ast.If) or stmt.orelse:
        return False
    test = stmt.test
    if isinstance(test, ast.Name):
        return test.id == "TYPE_CHECKING"
    return (isinstance(test, ast.Attribute) and test.attr == "TYPE_CHECKING"
            and isinstance(test.value, ast.Name) and test.value.id == "typing")


def _block_bodies(stmt: ast.stmt) -> Iterator[List[ast.stmt]]:
    for attr in ("body", "orelse", "finalbody"):
        block = getattr(stmt, attr, None)
        if block:
            yield block
    for handler in getattr(stmt, "handlers", None) or []:
        yield handler.body
    for case in getattr(stmt, "cases", None) or []:
        yield case.body


def _literal_exports(tree: ast.Module) -> Optional[List[str]]:
    """Contents of a literal `__all__ = [...]`, if the module has one."""
    for stmt in tree.body:
        if not isinstance(stmt, ast.Assign):
            continue
        if not any(isinstance(t, ast.Name) and t.id == "__all__" for t in stmt.targets):
            continue
        if isinstance(stmt.value, (ast.List, ast.Tuple)) and all(
            isinstance(e, ast.Constant) and isinstance(e.value, str) for e in stmt.value.elts
        ):
            return [e.value for e in stmt.value.elts]
    return None


class ModuleLoader:
    """
    Loads modules for the merge driver.

    The loader is stateless apart from its resolver; the driver guarantees a
    single load per distinct module path.
    """

    def __init__(self, path_resolver: PathResolver):
        self.path_resolver = path_resolver

    def load(self, module_path: str) -> ModuleUnit:
        """
        Load a module and build its symbol tables.

        Raises:
            ModuleResolutionError: the path does not resolve to exactly one file
            ModuleSyntaxError: the file does not parse
        """
        file_path = self.path_resolver.resolve(module_path)
        source_file = parse_source_file(file_path, read_source_file(file_path))
        unit = ModuleUnit(
            path=module_path,
            short_name=module_path.rsplit(MODULE_SEPARATOR, 1)[-1],
            files=[source_file],
            is_package=PathResolver.is_package_file(file_path),
        )

        bindings = self._collect_imports(unit, source_file.tree)
        for name, nodes in module_bindings(source_file.tree).items():
            kind = symbol_kind(name, nodes)
            if kind is SymbolKind.IMPORTED and name in bindings:
                unit.symbols[name] = bindings[name]
            else:
                unit.symbols[name] = Symbol(module_path, name, kind)
        unit.exports = _literal_exports(source_file.tree)

        NameResolver(unit, source_file).resolve()
        logger.debug(f"Loaded {unit} from {file_path}")
        return unit

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def _collect_imports(self, unit: ModuleUnit, tree: ast.Module) -> Dict[str, Symbol]:
        """Fill unit.imports / nested_imports / type_checking_imports / star_imports; return import-bound symbols."""
        bindings: Dict[str, Symbol] = {}
        typing_only = {
            inner for stmt in tree.body if is_type_checking_block(stmt) for inner in stmt.body
        }
        for stmt, nested in _module_level_statements(tree.body):
            if isinstance(stmt, ast.Import):
                records = self._plain_import(unit, stmt, bindings)
            elif isinstance(stmt, ast.ImportFrom):
                records = self._from_import(unit, stmt, bindings)
            else:
                continue
            if stmt in typing_only:
                unit.type_checking_imports.extend(records)
            elif nested:
                unit.nested_imports.extend(records)
            else:
                unit.imports.extend(records)
        return bindings

    def _plain_import(self, unit: ModuleUnit, stmt: ast.Import,
                      bindings: Dict[str, Symbol]) -> List[ImportRecord]:
        records = []
        for alias in stmt.names:
            records.append(ImportRecord(alias.name, ImportSpec(alias.name, None, alias.asname), stmt.lineno))
            if alias.asname:
                bindings[alias.asname] = Symbol(unit.path, alias.asname, SymbolKind.MODULE, alias.name)
            else:
                top = alias.name.split(MODULE_SEPARATOR)[0]
                bindings.setdefault(top, Symbol(unit.path, top, SymbolKind.MODULE, top))
        return records

    def _from_import(self, unit: ModuleUnit, stmt: ast.ImportFrom,
                     bindings: Dict[str, Symbol]) -> List[ImportRecord]:
        base = self._absolute_module(unit, stmt.module, stmt.level, stmt.lineno)
        records = []
        for alias in stmt.names:
            local = alias.asname or alias.name
            spec = ImportSpec(base, alias.name, alias.asname)
            if alias.name == "*":
                unit.star_imports.add(base)
                records.append(ImportRecord(base, spec, stmt.lineno))
                continue
            submodule = f"{base}{MODULE_SEPARATOR}{alias.name}"
            if self.path_resolver.exists(submodule):
                records.append(ImportRecord(submodule, spec, stmt.lineno))
                bindings[local] = Symbol(unit.path, local, SymbolKind.MODULE, submodule)
            else:
                records.append(ImportRecord(base, spec, stmt.lineno))
                bindings[local] = Symbol(unit.path, local, SymbolKind.IMPORTED, base, alias.name)
        return records

    def _absolute_module(self, unit: ModuleUnit, module: Optional[str], level: int, line: int) -> str:
        """Resolve `from ..x import y` against the importing module's package."""
        if not level:
            return module or ""
        package = unit.path if unit.is_package else unit.path.rpartition(MODULE_SEPARATOR)[0]
        parts = package.split(MODULE_SEPARATOR) if package else []
        if level - 1 > len(parts) or (level - 1 == len(parts) and not module):
            location = SourceLocation(str(unit.files[0].path), line, 1) if unit.files else None
            raise RelativeImportError(f"{'.' * level}{module or ''}", unit.path, location)
        parts = parts[:len(parts) - (level - 1)]
        if module:
            parts.append(module)
        return MODULE_SEPARATOR.join(parts)
