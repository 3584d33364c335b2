"""
Tests for module path resolution and module loading: file lookup,
import records, relative imports, comments and syntax errors.
"""

import pytest

from amalgam.analysis.module_system.module_info import ImportSpec, SymbolKind
from amalgam.analysis.module_system.module_loader import collect_comments
from amalgam.analysis.module_system.path_resolver import PathResolver
from amalgam.shared.errors import ModuleResolutionError, ModuleSyntaxError, RelativeImportError
from tests.test_utils import load_module


class TestPathResolver:

    def test_module_file(self, write_package, source_root):
        write_package({"app/widget.py": "X = 1\n"})
        resolved = PathResolver([source_root]).resolve("app.widget")
        assert resolved == (source_root / "app" / "widget.py").resolve()

    def test_package_init(self, write_package, source_root):
        write_package({"app/__init__.py": "X = 1\n"})
        resolved = PathResolver([source_root]).resolve("app")
        assert resolved.name == "__init__.py"
        assert PathResolver.is_package_file(resolved)

    def test_not_found(self, source_root):
        with pytest.raises(ModuleResolutionError) as exc_info:
            PathResolver([source_root]).resolve("app.missing")
        assert exc_info.value.candidates == []
        assert "not found" in exc_info.value.message
        assert "app.missing" in exc_info.value.message

    def test_ambiguous_within_one_root(self, write_package, source_root):
        write_package({"app/dup.py": "A = 1\n", "app/dup/__init__.py": "A = 2\n"})
        with pytest.raises(ModuleResolutionError) as exc_info:
            PathResolver([source_root]).resolve("app.dup")
        assert len(exc_info.value.candidates) == 2
        assert "ambiguous" in exc_info.value.message

    def test_ambiguous_across_roots(self, tmp_path):
        for name in ("one", "two"):
            (tmp_path / name / "app").mkdir(parents=True)
            (tmp_path / name / "app" / "util.py").write_text("A = 1\n")
        resolver = PathResolver([tmp_path / "one", tmp_path / "two"])
        with pytest.raises(ModuleResolutionError):
            resolver.resolve("app.util")

    def test_duplicate_roots_collapse(self, write_package, source_root):
        write_package({"app/util.py": "A = 1\n"})
        resolver = PathResolver([source_root, source_root])
        assert resolver.resolve("app.util").name == "util.py"

    def test_invalid_identifiers(self, source_root):
        assert not PathResolver([source_root]).exists("app.not-valid")
        assert not PathResolver([source_root]).exists("")


class TestImports:

    def test_import_records(self, write_package, source_root):
        write_package({
            "app/__init__.py": "",
            "app/widget.py": "W = 1\n",
            "app/main.py": """
                import json
                import os.path as osp
                from collections import OrderedDict
                from app import widget
                from app.widget import W as Width
            """,
        })
        unit = load_module(source_root, "app.main")
        assert unit.import_paths == ["app.widget", "collections", "json", "os.path"]
        assert unit.imports_for("os.path")[0].spec == ImportSpec("os.path", None, "osp")
        assert unit.imports_for("collections")[0].spec == ImportSpec("collections", "OrderedDict")

        assert unit.symbols["json"].kind is SymbolKind.MODULE
        assert unit.symbols["osp"].target == "os.path"
        assert unit.symbols["widget"].kind is SymbolKind.MODULE
        assert unit.symbols["widget"].target == "app.widget"
        width = unit.symbols["Width"]
        assert width.kind is SymbolKind.IMPORTED
        assert (width.target, width.target_name) == ("app.widget", "W")

    def test_dotted_import_binds_top_package(self, write_package, source_root):
        write_package({"app/sub/mod.py": "", "app/main.py": "import app.sub.mod\n"})
        unit = load_module(source_root, "app.main")
        assert unit.import_paths == ["app.sub.mod"]
        assert unit.symbols["app"].kind is SymbolKind.MODULE
        assert unit.symbols["app"].target == "app"

    def test_relative_imports(self, write_package, source_root):
        write_package({
            "app/__init__.py": "from . import util\n",
            "app/util.py": "def helper():\n    return 1\n",
            "app/sub/__init__.py": "",
            "app/sub/leaf.py": "from ..util import helper\nfrom .. import util\n",
        })
        leaf = load_module(source_root, "app.sub.leaf")
        assert leaf.import_paths == ["app.util"]
        assert leaf.symbols["helper"].target == "app.util"
        assert leaf.symbols["util"].kind is SymbolKind.MODULE

        package = load_module(source_root, "app")
        assert package.is_package
        assert package.import_paths == ["app.util"]

    def test_relative_import_beyond_top_level(self, write_package, source_root):
        write_package({"main.py": "from . import nothing\n"})
        with pytest.raises(RelativeImportError) as exc_info:
            load_module(source_root, "main")
        error = exc_info.value
        assert isinstance(error, ModuleResolutionError)
        assert error.path == "."
        assert error.location.line == 1
        rendered = error.render(color=False)
        assert "error[M0102]: relative import '.' in main goes beyond the top-level package" in rendered
        assert "not found" not in rendered

    def test_star_import(self, write_package, source_root):
        write_package({"app/consts.py": "PI = 3\n", "app/main.py": "from app.consts import *\n"})
        unit = load_module(source_root, "app.main")
        assert unit.star_imports == {"app.consts"}
        assert unit.import_paths == ["app.consts"]

    def test_nested_imports_are_separate(self, write_package, source_root):
        write_package({"app/main.py": """
            import os

            try:
                import ujson as json
            except ImportError:
                import json

            def load():
                import pickle
                return pickle
        """})
        unit = load_module(source_root, "app.main")
        assert unit.import_paths == ["os"]
        assert sorted(record.path for record in unit.nested_imports) == ["json", "ujson"]

    def test_type_checking_imports_are_separate(self, write_package, source_root):
        write_package({"app/main.py": """
            import typing
            from typing import TYPE_CHECKING

            if TYPE_CHECKING:
                from app.widget import Widget

            if typing.TYPE_CHECKING:
                import app.gadget
        """})
        unit = load_module(source_root, "app.main")
        assert unit.import_paths == ["typing"]
        assert sorted(record.path for record in unit.type_checking_imports) == ["app.gadget", "app.widget"]
        assert not unit.nested_imports
        assert unit.symbols["Widget"].target == "app.widget"


class TestExports:

    def test_literal_all(self, write_package, source_root):
        write_package({"app/api.py": "__all__ = ['run']\n\ndef run():\n    pass\n\ndef other():\n    pass\n"})
        unit = load_module(source_root, "app.api")
        assert unit.exports == ["run"]
        assert unit.public_names() == {"run"}

    def test_public_names_without_all(self, write_package, source_root):
        write_package({"app/api.py": "def run():\n    pass\n\n_hidden = 1\n"})
        assert load_module(source_root, "app.api").public_names() == {"run"}


class TestComments:

    def test_groups_consecutive_own_line_comments(self):
        groups = collect_comments("# one\n# two\n\n# three\nx = 1  # trailing\n")
        assert [len(group.comments) for group in groups] == [2, 1, 1]
        assert groups[0].own_line and not groups[2].own_line
        assert groups[2].start == (5, 7)

    def test_different_columns_split_groups(self):
        groups = collect_comments("def f():\n    # inner\n# outer\n    pass\n")
        assert len(groups) == 2


class TestSyntaxErrors:

    def test_syntax_error_location(self, write_package, source_root):
        write_package({"app/bad.py": "x = 1\ndef broken(:\n    pass\n"})
        with pytest.raises(ModuleSyntaxError) as exc_info:
            load_module(source_root, "app.bad")
        error = exc_info.value
        assert error.location.line == 2
        assert error.location.file.endswith("bad.py")
        rendered = error.render(color=False)
        assert "error[M0201]" in rendered
        assert "def broken(:" in rendered
