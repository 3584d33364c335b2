"""
Module System Types

Data structures produced by the module loader and mutated by the rename and
rewrite passes. A SourceFile is the single-owner arena for one file: passes
never touch the source text, they change Occurrence texts, and rendering
applies those edits when a declaration is emitted.
"""

import ast
import bisect
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from ...shared.errors import MergeImplementationError
from ...utils.config import FUTURE_MODULE

# (line, column): 1-based line, 0-based character column
Position = Tuple[int, int]


class SymbolKind(Enum):
    TYPE = "type"
    FUNCTION = "function"
    VARIABLE = "variable"
    CONSTANT = "constant"
    MODULE = "module"      # name bound to a module object by an import
    IMPORTED = "imported"  # name bound by `from m import name`

    @property
    def is_import(self) -> bool:
        return self in (SymbolKind.MODULE, SymbolKind.IMPORTED)


@dataclass(frozen=True)
class Symbol:
    """
    A module-scope name.

    For MODULE symbols `target` is the module path the name is bound to; for
    IMPORTED symbols `target` is the source module and `target_name` the
    attribute imported from it.
    """
    module: str
    name: str
    kind: SymbolKind
    target: Optional[str] = None
    target_name: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.module}.{self.name} ({self.kind.value})"


@dataclass(eq=False)
class Occurrence:
    """One identifier span in a source file. Hashes by identity."""
    start: Position
    end: Position
    original: str
    text: Optional[str] = None

    def __post_init__(self):
        if self.text is None:
            self.text = self.original

    @property
    def changed(self) -> bool:
        return self.text != self.original

    def restore(self) -> None:
        self.text = self.original

    def __repr__(self) -> str:
        return f"Occurrence({self.original!r}->{self.text!r} @ {self.start[0]}:{self.start[1]})"


@dataclass(frozen=True)
class Comment:
    line: int
    column: int
    end_column: int
    text: str
    own_line: bool


@dataclass
class CommentGroup:
    """Comments on consecutive lines, or a single trailing comment."""
    comments: List[Comment]

    @property
    def start(self) -> Position:
        first = self.comments[0]
        return (first.line, first.column)

    @property
    def end(self) -> Position:
        last = self.comments[-1]
        return (last.line, last.end_column)

    @property
    def own_line(self) -> bool:
        return self.comments[0].own_line


@dataclass(frozen=True)
class ImportSpec:
    """One kept import statement, normalized to a single bound name."""
    module: str
    name: Optional[str] = None
    alias: Optional[str] = None

    @property
    def binding(self) -> str:
        """Name this statement binds in the importing namespace."""
        if self.alias:
            return self.alias
        if self.name is not None:
            return self.name
        return self.module.split(".")[0]

    def render(self) -> str:
        suffix = f" as {self.alias}" if self.alias else ""
        if self.name is None:
            return f"import {self.module}{suffix}"
        return f"from {self.module} import {self.name}{suffix}"

    def sort_key(self) -> Tuple[bool, str]:
        return (self.module != FUTURE_MODULE, self.render())


@dataclass(frozen=True)
class ImportRecord:
    """A top-level import: the module path it depends on and its statement form."""
    path: str
    spec: ImportSpec
    line: int = 0


@dataclass(eq=False)
class SourceFile:
    path: Path
    source: str
    tree: ast.Module
    comment_groups: List[CommentGroup] = field(default_factory=list)
    occurrences: List[Occurrence] = field(default_factory=list)
    node_occurrences: Dict[ast.AST, Occurrence] = field(default_factory=dict)
    annotation_trees: List[ast.expr] = field(default_factory=list)  # parsed string annotations

    def __post_init__(self):
        self.lines = self.source.split("\n")
        self._line_starts = [0]
        for line in self.lines:
            self._line_starts.append(self._line_starts[-1] + len(line) + 1)

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def offset(self, pos: Position) -> int:
        line, col = pos
        return self._line_starts[line - 1] + col

    def position(self, offset: int) -> Position:
        line = bisect.bisect_right(self._line_starts, offset)
        return (line, offset - self._line_starts[line - 1])

    def char_col(self, line: int, byte_col: int) -> int:
        """ast reports UTF-8 byte columns; convert to a character column."""
        text = self.lines[line - 1] if 0 < line <= len(self.lines) else ""
        return len(text.encode("utf-8")[:byte_col].decode("utf-8", errors="replace"))

    def node_start(self, node: ast.AST) -> Position:
        return (node.lineno, self.char_col(node.lineno, node.col_offset))

    def node_end(self, node: ast.AST) -> Position:
        return (node.end_lineno, self.char_col(node.end_lineno, node.end_col_offset))

    def text_between(self, start: Position, end: Position) -> str:
        return self.source[self.offset(start):self.offset(end)]

    def find(self, pattern: str, start: Position, end: Optional[Position] = None) -> Optional[Position]:
        """Position of group 1 of `pattern` searched in [start, end)."""
        begin = self.offset(start)
        stop = self.offset(end) if end is not None else len(self.source)
        match = re.compile(pattern).search(self.source, begin, stop)
        if match is None:
            return None
        return self.position(match.start(1))

    def walk(self) -> Iterator[ast.AST]:
        """Every node of the file, including the parsed string annotations."""
        yield from ast.walk(self.tree)
        for tree in self.annotation_trees:
            yield from ast.walk(tree)

    # ------------------------------------------------------------------
    # Occurrences
    # ------------------------------------------------------------------

    def add_occurrence(self, start: Position, end: Position, text: Optional[str] = None,
                       node: Optional[ast.AST] = None) -> Occurrence:
        occurrence = Occurrence(start, end, self.text_between(start, end), text)
        self.occurrences.append(occurrence)
        if node is not None:
            self.node_occurrences[node] = occurrence
        return occurrence

    def name_occurrence(self, node: ast.Name) -> Occurrence:
        existing = self.node_occurrences.get(node)
        if existing is not None:
            return existing
        return self.add_occurrence(self.node_start(node), self.node_end(node), node=node)

    def attribute_occurrence(self, node: ast.Attribute) -> Occurrence:
        """Occurrence of the attribute name of `node` (the part after the dot)."""
        existing = self.node_occurrences.get(node)
        if existing is not None:
            return existing
        end = self.node_end(node)
        start = (end[0], end[1] - len(node.attr))
        return self.add_occurrence(start, end, node=node)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def attached_comment_group(self, line: int, column: int) -> Optional[CommentGroup]:
        """Own-line comment group ending right above `line`, aligned with the statement."""
        for group in self.comment_groups:
            if group.own_line and group.end[0] == line - 1 and group.start[1] == column:
                return group
        return None

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, start: Position, end: Position) -> str:
        """Source text of [start, end) with every changed occurrence applied."""
        begin, stop = self.offset(start), self.offset(end)
        edits = sorted(
            (self.offset(o.start), self.offset(o.end), o.text)
            for o in self.occurrences
            if o.changed and begin <= self.offset(o.start) and self.offset(o.end) <= stop
        )
        pieces: List[str] = []
        cursor = begin
        for edit_start, edit_end, text in edits:
            if edit_start < cursor:
                raise MergeImplementationError(
                    f"overlapping rewrites in {self.path} at offset {edit_start}"
                )
            pieces.append(self.source[cursor:edit_start])
            pieces.append(text)
            cursor = edit_end
        pieces.append(self.source[cursor:stop])
        return "".join(pieces)


@dataclass(eq=False)
class ModuleUnit:
    """
    One loaded module with its syntax and symbol tables.

    - path: canonical dotted path (memoization key)
    - short_name: last path segment, used for the rename prefix
    - files: parsed source files (a Python module has exactly one)
    - defs / uses: identifier occurrence -> resolved module-scope Symbol
    - free_uses: occurrences of names bound nowhere in the module
    - imports: top-level import records in source order
    - nested_imports: module-level imports inside compound statements
    - type_checking_imports: imports inside a top-level `if TYPE_CHECKING:` block
    - import_aliases: assignments emitted in place of imports whose names are rebound
    """
    path: str
    short_name: str
    files: List[SourceFile]
    is_package: bool = False
    defs: Dict[Occurrence, Symbol] = field(default_factory=dict)
    uses: Dict[Occurrence, Symbol] = field(default_factory=dict)
    free_uses: Dict[Occurrence, str] = field(default_factory=dict)
    symbols: Dict[str, Symbol] = field(default_factory=dict)
    imports: List[ImportRecord] = field(default_factory=list)
    nested_imports: List[ImportRecord] = field(default_factory=list)
    type_checking_imports: List[ImportRecord] = field(default_factory=list)
    star_imports: Set[str] = field(default_factory=set)
    exports: Optional[List[str]] = None  # literal __all__, when present
    qualified_roots: Set[Occurrence] = field(default_factory=set)
    import_aliases: Dict[str, str] = field(default_factory=dict)  # rebound import -> merged name

    @property
    def import_paths(self) -> List[str]:
        """Distinct import paths in lexicographic order."""
        return sorted({record.path for record in self.imports})

    def imports_for(self, path: str) -> List[ImportRecord]:
        return [record for record in self.imports if record.path == path]

    def declared_symbols(self) -> List[Symbol]:
        """Module-scope declarations (imports excluded), ordered by name."""
        return [self.symbols[name] for name in sorted(self.symbols)
                if not self.symbols[name].kind.is_import]

    def public_names(self) -> Set[str]:
        """Names a star import of this module binds."""
        if self.exports is not None:
            return set(self.exports)
        return {name for name in self.symbols if not name.startswith("_")}

    def occurrences(self) -> Iterator[Occurrence]:
        for source_file in self.files:
            yield from source_file.occurrences

    def __str__(self) -> str:
        return f"Module({self.path}, {len(self.symbols)} symbols, {len(self.imports)} imports)"
