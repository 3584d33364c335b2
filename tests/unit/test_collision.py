"""
Tests for collision sets and renaming.
"""

from pathlib import Path

from amalgam.analysis.module_system.module_info import (
    ModuleUnit,
    Occurrence,
    Symbol,
    SymbolKind,
)
from amalgam.passes.collision import CollisionResolver
from amalgam.passes.renaming import SymbolRenamer
from tests.test_utils import load_module

WIDGET = '''
"""Widgets."""
import json

LIMIT = 3


class Widget:
    def __init__(self, name):
        self.name = name


def describe(w: "Widget") -> str:
    return json.dumps(w.name)


def make(name):
    return Widget(name)
'''


def _occurrence(name: str, line: int) -> Occurrence:
    return Occurrence((line, 0), (line, len(name)), name)


class TestCollisionResolver:

    def test_seeded_with_every_declaration(self, write_package, source_root):
        write_package({"app/widget.py": WIDGET})
        unit = load_module(source_root, "app.widget")
        collisions = CollisionResolver().resolve(unit)
        assert {symbol.name for symbol in collisions} == {"LIMIT", "Widget", "describe", "make"}

    def test_imports_are_never_collisions(self, write_package, source_root):
        write_package({"app/widget.py": WIDGET})
        unit = load_module(source_root, "app.widget")
        assert all(not symbol.kind.is_import for symbol in CollisionResolver().resolve(unit))

    def test_type_use_that_defines_another_symbol(self):
        unit = ModuleUnit(path="pkg.shapes", short_name="shapes", files=[])
        shape = Symbol("pkg.shapes", "Shape", SymbolKind.TYPE)
        unit.symbols["Shape"] = shape
        # An occurrence that is both a use of Shape and the definition of `area`
        # (a field declared through its type) pulls `area` into the set.
        area = Symbol("pkg.shapes", "area", SymbolKind.VARIABLE)
        shared = _occurrence("Shape", 4)
        unit.uses[shared] = shape
        unit.defs[shared] = area
        # A plain use of a function does not.
        helper = Symbol("pkg.shapes", "helper", SymbolKind.FUNCTION)
        caller = Symbol("pkg.shapes", "caller", SymbolKind.FUNCTION)
        call = _occurrence("helper", 8)
        unit.uses[call] = helper
        unit.defs[call] = caller

        collisions = CollisionResolver().resolve(unit)
        assert collisions == {shape, area}

    def test_closure_is_transitive_over_types(self):
        unit = ModuleUnit(path="pkg.chain", short_name="chain", files=[])
        first = Symbol("pkg.chain", "First", SymbolKind.TYPE)
        second = Symbol("pkg.chain", "Second", SymbolKind.TYPE)
        third = Symbol("pkg.chain", "third", SymbolKind.VARIABLE)
        unit.symbols["First"] = first
        a, b = _occurrence("First", 1), _occurrence("Second", 2)
        unit.uses[a], unit.defs[a] = first, second
        unit.uses[b], unit.defs[b] = second, third
        assert CollisionResolver().resolve(unit) == {first, second, third}

    def test_empty_module(self):
        unit = ModuleUnit(path="pkg.empty", short_name="empty", files=[])
        assert CollisionResolver().resolve(unit) == set()


class TestSymbolRenamer:

    def test_renames_every_definition_and_use(self, write_package, source_root):
        write_package({"app/widget.py": WIDGET})
        unit = load_module(source_root, "app.widget")
        collisions = CollisionResolver().resolve(unit)
        renames = SymbolRenamer().rename(unit, collisions, "widget_")

        assert renames["Widget"] == "widget_Widget"
        assert renames["describe"] == "widget_describe"
        renamed = [o.text for o, s in list(unit.defs.items()) + list(unit.uses.items()) if s.name == "Widget"]
        assert renamed and all(text == "widget_Widget" for text in renamed)

    def test_rendered_source(self, write_package, source_root):
        write_package({"app/widget.py": WIDGET})
        unit = load_module(source_root, "app.widget")
        SymbolRenamer().rename(unit, CollisionResolver().resolve(unit), "widget_")
        source_file = unit.files[0]
        text = source_file.render((1, 0), (len(source_file.lines), 0))
        assert "class widget_Widget:" in text
        assert 'def widget_describe(w: "widget_Widget") -> str:' in text
        assert "return widget_Widget(name)" in text
        assert "widget_LIMIT = 3" in text
        # attributes, parameters and imports are untouched
        assert "self.name = name" in text
        assert "json.dumps(w.name)" in text

    def test_restore(self, write_package, source_root):
        write_package({"app/widget.py": WIDGET})
        unit = load_module(source_root, "app.widget")
        SymbolRenamer().rename(unit, CollisionResolver().resolve(unit), "widget_")
        for occurrence in unit.occurrences():
            occurrence.restore()
        source_file = unit.files[0]
        end = (len(source_file.lines), 0)
        assert source_file.render((1, 0), end) == source_file.source[:source_file.offset(end)]

    def test_empty_collision_set(self, write_package, source_root):
        write_package({"app/widget.py": WIDGET})
        unit = load_module(source_root, "app.widget")
        assert SymbolRenamer().rename(unit, set(), "widget_") == {}
        assert not any(occurrence.changed for occurrence in unit.occurrences())
