"""
Name Resolution

Builds the definition and use maps of one Python module: every identifier
occurrence that binds or reads a module-scope name is recorded against that
name's Symbol. Locals, parameters and class attributes are resolved away
following Python's scoping rules:

- function, lambda and comprehension bodies are their own scopes
- class bodies are a scope that nested functions cannot see
- `global` and `nonlocal` declarations redirect a name's scope
- decorators, defaults, bases and annotations evaluate in the enclosing scope
- string annotations (forward references) are parsed and resolved like code
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Union

from .module_system.module_info import ModuleUnit, Occurrence, SourceFile, Symbol, SymbolKind

logger = logging.getLogger(__name__)

_CONSTANT_NAME = re.compile(r"[A-Z][A-Z0-9_]*\Z")

# Subscripted names whose string arguments are values, not forward references
_LITERAL_WRAPPERS = {"Literal"}


class _Local:
    """Marker: the name resolved to a non-module scope."""

_LOCAL = _Local()


# -----------------------------------------------------------------------------
# Binding collection (one scope, no descent into nested scopes)
# -----------------------------------------------------------------------------


class BindingCollector(ast.NodeVisitor):
    """Collects the names bound directly in one scope."""

    def __init__(self):
        self.bound: Dict[str, List[ast.AST]] = {}
        self.globals: Set[str] = set()
        self.nonlocals: Set[str] = set()

    def collect(self, nodes) -> "BindingCollector":
        for node in nodes:
            self.visit(node)
        return self

    def _bind(self, name: str, node: ast.AST) -> None:
        self.bound.setdefault(name, []).append(node)

    def visit_Name(self, node: ast.Name) -> None:
        if not isinstance(node.ctx, ast.Load):
            self._bind(node.id, node)

    def visit_FunctionDef(self, node) -> None:
        self._bind(node.name, node)
        for expr in _signature_expressions(node):
            self.visit(expr)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._bind(node.name, node)
        for expr in node.decorator_list + node.bases + [k.value for k in node.keywords]:
            self.visit(expr)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        for expr in _default_expressions(node.args):
            self.visit(expr)

    def _visit_comprehension(self, node) -> None:
        self.visit(node.generators[0].iter)
        # `:=` inside a comprehension binds in the enclosing scope
        for target in _walrus_targets(node):
            self._bind(target.id, target)

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self._bind(alias.asname or alias.name.split(".")[0], node)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        for alias in node.names:
            if alias.name != "*":
                self._bind(alias.asname or alias.name, node)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self._bind(node.name, node)
        self.generic_visit(node)

    def visit_Global(self, node: ast.Global) -> None:
        self.globals.update(node.names)

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self.nonlocals.update(node.names)

    def visit_MatchAs(self, node) -> None:
        if node.name:
            self._bind(node.name, node)
        self.generic_visit(node)

    def visit_MatchStar(self, node) -> None:
        if node.name:
            self._bind(node.name, node)

    def visit_MatchMapping(self, node) -> None:
        if node.rest:
            self._bind(node.rest, node)
        self.generic_visit(node)


def _walrus_targets(node: ast.AST) -> List[ast.Name]:
    """Assignment-expression targets inside a comprehension, nested comprehensions included."""
    targets = []
    pending = list(ast.iter_child_nodes(node))
    while pending:
        current = pending.pop()
        if isinstance(current, ast.Lambda):
            continue
        if isinstance(current, ast.NamedExpr) and isinstance(current.target, ast.Name):
            targets.append(current.target)
        pending.extend(ast.iter_child_nodes(current))
    return targets


def _parameter_names(args: ast.arguments) -> Set[str]:
    params = args.posonlyargs + args.args + args.kwonlyargs
    names = {arg.arg for arg in params}
    if args.vararg:
        names.add(args.vararg.arg)
    if args.kwarg:
        names.add(args.kwarg.arg)
    return names


def _default_expressions(args: ast.arguments) -> List[ast.expr]:
    return list(args.defaults) + [d for d in args.kw_defaults if d is not None]


def _annotations(args: ast.arguments) -> List[ast.expr]:
    params = args.posonlyargs + args.args + args.kwonlyargs
    params += [a for a in (args.vararg, args.kwarg) if a is not None]
    return [arg.annotation for arg in params if arg.annotation is not None]


def _signature_expressions(node) -> List[ast.expr]:
    exprs = list(node.decorator_list) + _default_expressions(node.args) + _annotations(node.args)
    if node.returns is not None:
        exprs.append(node.returns)
    return exprs


def symbol_kind(name: str, nodes: List[ast.AST]) -> SymbolKind:
    """Kind of a module-scope name from its binding sites: class/def, then imports, then assignments."""
    for node in nodes:
        if isinstance(node, ast.ClassDef):
            return SymbolKind.TYPE
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            return SymbolKind.FUNCTION
    if any(isinstance(node, (ast.Import, ast.ImportFrom)) for node in nodes):
        return SymbolKind.IMPORTED
    return SymbolKind.CONSTANT if _CONSTANT_NAME.match(name) else SymbolKind.VARIABLE


def module_bindings(tree: ast.Module) -> Dict[str, List[ast.AST]]:
    """Every module-scope name: top-level bindings plus names declared `global` in functions."""
    collector = BindingCollector().collect(tree.body)
    bound = dict(collector.bound)
    for node in ast.walk(tree):
        if isinstance(node, ast.Global):
            for name in node.names:
                bound.setdefault(name, []).append(node)
    return bound


# -----------------------------------------------------------------------------
# Scopes
# -----------------------------------------------------------------------------


@dataclass
class _Scope:
    kind: str  # "module" | "function" | "class" | "comprehension"
    bound: Set[str] = field(default_factory=set)
    globals: Set[str] = field(default_factory=set)
    nonlocals: Set[str] = field(default_factory=set)


class NameResolver(ast.NodeVisitor):
    """
    Fills `unit.defs`, `unit.uses` and `unit.free_uses` for one source file.

    `unit.symbols` must already hold the module-scope symbols, import
    bindings included.
    """

    def __init__(self, unit: ModuleUnit, source_file: SourceFile):
        self.unit = unit
        self.file = source_file
        self.scopes: List[_Scope] = [_Scope("module", set(unit.symbols))]
        self._annotation_depth = 0
        self._literal_depth = 0

    def resolve(self) -> None:
        for stmt in self.file.tree.body:
            self.visit(stmt)
        logger.debug(
            f"Resolved {self.unit.path}: {len(self.unit.defs)} defs, "
            f"{len(self.unit.uses)} uses, {len(self.unit.free_uses)} free uses"
        )

    # ------------------------------------------------------------------
    # Scope lookup
    # ------------------------------------------------------------------

    def lookup(self, name: str) -> Union[Symbol, _Local, None]:
        """Module Symbol, _LOCAL for any inner binding, None when unbound (builtin or star import)."""
        for depth, scope in enumerate(reversed(self.scopes)):
            if scope.kind == "module":
                break
            if scope.kind == "class" and depth > 0:
                continue
            if name in scope.globals:
                return self.unit.symbols.get(name)
            if name in scope.bound or name in scope.nonlocals:
                return _LOCAL
        return self.unit.symbols.get(name)

    def _record(self, occurrence: Occurrence, name: str, *, define: bool, use: bool) -> None:
        target = self.lookup(name)
        if isinstance(target, Symbol):
            if define:
                self.unit.defs[occurrence] = target
            if use:
                self.unit.uses[occurrence] = target
        elif target is None and use:
            self.unit.free_uses[occurrence] = name

    def _record_at(self, position, name: str, *, define: bool = True, use: bool = False) -> None:
        if position is None:
            logger.warning(f"{self.file.path}: could not locate identifier '{name}'")
            return
        if not isinstance(self.lookup(name), Symbol):
            return
        end = (position[0], position[1] + len(name))
        self._record(self.file.add_occurrence(position, end), name, define=define, use=use)

    def _push(self, scope: _Scope) -> None:
        self.scopes.append(scope)

    def _pop(self) -> None:
        self.scopes.pop()

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def visit_Name(self, node: ast.Name) -> None:
        target = self.lookup(node.id)
        if isinstance(target, _Local):
            return
        occurrence = self.file.name_occurrence(node)
        if occurrence.original != node.id:
            logger.warning(f"{self.file.path}:{node.lineno}: position mismatch for '{node.id}'")
            return
        is_load = isinstance(node.ctx, ast.Load)
        self._record(occurrence, node.id, define=not is_load, use=is_load)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        if isinstance(node.target, ast.Name) and isinstance(self.lookup(node.target.id), Symbol):
            occurrence = self.file.name_occurrence(node.target)
            self._record(occurrence, node.target.id, define=True, use=True)
        else:
            self.visit(node.target)
        self.visit(node.value)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        self._visit_annotation(node.annotation)
        self.visit(node.target)
        if node.value is not None:
            self.visit(node.value)

    def visit_Global(self, node: ast.Global) -> None:
        self._visit_declaration(node, "global")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._visit_declaration(node, "nonlocal")

    def _visit_declaration(self, node, keyword: str) -> None:
        start, end = self.file.node_start(node), self.file.node_end(node)
        cursor = self.file.find(rf"({keyword})\b", start, end)
        for name in node.names:
            position = self.file.find(rf"\b({re.escape(name)})\b", cursor or start, end)
            if position is not None:
                cursor = (position[0], position[1] + len(name))
            self._record_at(position, name)

    # ------------------------------------------------------------------
    # Scoped constructs
    # ------------------------------------------------------------------

    def visit_FunctionDef(self, node) -> None:
        for expr in node.decorator_list + _default_expressions(node.args):
            self.visit(expr)
        for expr in _annotations(node.args):
            self._visit_annotation(expr)
        if node.returns is not None:
            self._visit_annotation(node.returns)
        self._define_statement_name(node, r"(?:def)")

        body = BindingCollector().collect(node.body)
        self._push(_Scope(
            "function",
            _parameter_names(node.args) | set(body.bound),
            body.globals,
            body.nonlocals,
        ))
        for stmt in node.body:
            self.visit(stmt)
        self._pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for expr in node.decorator_list + node.bases:
            self.visit(expr)
        for keyword in node.keywords:
            self.visit(keyword.value)
        self._define_statement_name(node, r"(?:class)")

        body = BindingCollector().collect(node.body)
        self._push(_Scope("class", set(body.bound), body.globals, body.nonlocals))
        for stmt in node.body:
            self.visit(stmt)
        self._pop()

    def visit_Lambda(self, node: ast.Lambda) -> None:
        for expr in _default_expressions(node.args):
            self.visit(expr)
        body = BindingCollector().collect([node.body])
        self._push(_Scope("function", _parameter_names(node.args) | set(body.bound)))
        self.visit(node.body)
        self._pop()

    def _visit_comprehension(self, node) -> None:
        generators = node.generators
        self.visit(generators[0].iter)
        targets = BindingCollector().collect([g.target for g in generators])
        self._push(_Scope("comprehension", set(targets.bound)))
        for index, generator in enumerate(generators):
            self.visit(generator.target)
            if index:
                self.visit(generator.iter)
            for condition in generator.ifs:
                self.visit(condition)
        if isinstance(node, ast.DictComp):
            self.visit(node.key)
            self.visit(node.value)
        else:
            self.visit(node.elt)
        self._pop()

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.type is not None:
            self.visit(node.type)
        if node.name:
            start = self.file.node_start(node)
            limit = self.file.node_start(node.body[0]) if node.body else None
            position = self.file.find(rf"\bas\s+({re.escape(node.name)})\b", start, limit)
            self._record_at(position, node.name)
        for stmt in node.body:
            self.visit(stmt)

    def visit_MatchAs(self, node) -> None:
        if node.pattern is not None:
            self.visit(node.pattern)
        if node.name:
            start, end = self.file.node_start(node), self.file.node_end(node)
            if node.pattern is None:
                position = start
            else:
                position = self.file.find(rf"\bas\s+({re.escape(node.name)})\b", start, end)
            self._record_at(position, node.name)

    def visit_MatchStar(self, node) -> None:
        if node.name:
            start, end = self.file.node_start(node), self.file.node_end(node)
            self._record_at(self.file.find(rf"\*\s*({re.escape(node.name)})\b", start, end), node.name)

    def visit_MatchMapping(self, node) -> None:
        for key in node.keys:
            self.visit(key)
        for pattern in node.patterns:
            self.visit(pattern)
        if node.rest:
            start, end = self.file.node_start(node), self.file.node_end(node)
            self._record_at(self.file.find(rf"\*\*\s*({re.escape(node.rest)})\b", start, end), node.rest)

    def visit_Import(self, node: ast.Import) -> None:
        # Import statements are never emitted; their bindings carry no occurrences.
        pass

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        pass

    def _define_statement_name(self, node, keyword: str) -> None:
        start = self.file.node_start(node)
        limit = self.file.node_start(node.body[0]) if node.body else None
        position = self.file.find(rf"\b{keyword}\s+({re.escape(node.name)})\b", start, limit)
        self._record_at(position, node.name)

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def _visit_annotation(self, node: ast.expr) -> None:
        self._annotation_depth += 1
        try:
            self.visit(node)
        finally:
            self._annotation_depth -= 1

    def visit_Subscript(self, node: ast.Subscript) -> None:
        wrapper = node.value
        name = wrapper.attr if isinstance(wrapper, ast.Attribute) else getattr(wrapper, "id", None)
        self.visit(node.value)
        if name in _LITERAL_WRAPPERS:
            self._literal_depth += 1
            try:
                self.visit(node.slice)
            finally:
                self._literal_depth -= 1
        else:
            self.visit(node.slice)

    def visit_Constant(self, node: ast.Constant) -> None:
        if self._annotation_depth and not self._literal_depth and isinstance(node.value, str):
            self._visit_string_annotation(node)

    def _visit_string_annotation(self, node: ast.Constant) -> None:
        """
        Resolve a single-line string annotation such as "Widget" or
        "widget.Widget" as if it were written in place.

        The parsed expression is moved onto the literal's position in the file
        and kept on the SourceFile, so later passes see its names and
        attribute chains like any other code.
        """
        if node.lineno != node.end_lineno:
            return
        start, end = self.file.node_start(node), self.file.node_end(node)
        literal = self.file.text_between(start, end)
        if len(literal) < 2 or literal[0] not in "'\"" or literal[-1] != literal[0]:
            return
        if literal[1:-1] != node.value:
            # escapes, implicit concatenation or triple quotes: offsets would not line up
            return
        try:
            parsed = ast.parse(node.value.strip(), mode="eval").body
        except SyntaxError:
            return
        # byte offsets, like the ones ast reports for the file itself
        shift = node.col_offset + 1 + len(node.value) - len(node.value.lstrip())
        for inner in ast.walk(parsed):
            if isinstance(inner, (ast.expr, ast.keyword, ast.arg)):
                inner.lineno = inner.end_lineno = node.lineno
                inner.col_offset += shift
                inner.end_col_offset += shift
        self.file.annotation_trees.append(parsed)
        self.visit(parsed)
