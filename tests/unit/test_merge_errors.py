"""
Tests for the error hierarchy and rustc-style diagnostic rendering.
"""

import ast
import re
from pathlib import Path

import pytest

from amalgam.analysis.module_system.module_info import Occurrence, SourceFile
from amalgam.shared.errors import (
    Error,
    FormatError,
    MergeError,
    MergeImplementationError,
    ModuleResolutionError,
    ModuleSyntaxError,
    format_diagnostic,
)
from amalgam.shared.source_location import SourceLocation

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(text: str) -> str:
    return _ANSI_ESCAPE.sub("", text)


class TestFormatDiagnostic:

    def test_location_none(self):
        out = format_diagnostic(Error(message="something failed", location=None, code="M0001"), {})
        assert out == "error[M0001]: something failed"

    def test_file_not_in_source_files(self):
        loc = SourceLocation(file="missing.py", line=1, column=1)
        out = format_diagnostic(Error(message="oops", location=loc, code="M0201"), {})
        assert "error[M0201]: oops" in out
        assert "missing.py:1:1" in out

    def test_caret_under_span(self):
        loc = SourceLocation(file="f.py", line=1, column=5, end_line=1, end_column=8)
        out = format_diagnostic(Error(message="bad", location=loc, label="here"), {"f.py": "x = foo()"})
        lines = out.split("\n")
        assert "1 | x = foo()" in out
        assert lines[-1].endswith("^^^ here")

    def test_help_and_note(self):
        err = Error(message="m", location=None, help="try this", note="fyi")
        out = format_diagnostic(err, {})
        assert "= help: try this" in out
        assert "= note: fyi" in out

    def test_color_codes(self):
        out = format_diagnostic(Error(message="m", location=None), {}, color=True)
        assert "\x1b[" in out
        assert _strip_ansi(out) == "error: m"


class TestExceptions:

    def test_hierarchy(self):
        for error in (
            ModuleResolutionError("a.b"),
            ModuleSyntaxError("bad"),
            FormatError("bad", "source"),
        ):
            assert isinstance(error, MergeError)
        assert not issubclass(MergeImplementationError, MergeError)

    def test_not_found_note(self):
        error = ModuleResolutionError("app.missing", searched=["/src"])
        rendered = error.render(color=False)
        assert "error[M0101]: module 'app.missing' not found" in rendered
        assert "searched source roots: /src" in rendered

    def test_ambiguous_lists_candidates(self):
        error = ModuleResolutionError("app.dup", candidates=["/a/dup.py", "/a/dup/__init__.py"])
        assert "ambiguous: 2 matches" in str(error)
        assert "/a/dup/__init__.py" in str(error)

    def test_str_with_location(self):
        error = MergeError("boom", SourceLocation("m.py", 3, 4))
        assert str(error) == "error[M0001]: boom\n --> m.py:3:4"

    def test_implementation_error_str(self):
        assert str(MergeImplementationError("broken")) == "[M9999] broken"

    def test_overlapping_edits(self):
        source = "value = other\n"
        source_file = SourceFile(path=Path("m.py"), source=source, tree=ast.parse(source))
        first = source_file.add_occurrence((1, 0), (1, 5), text="a")
        second = source_file.add_occurrence((1, 2), (1, 7), text="b")
        assert isinstance(first, Occurrence) and second.changed
        with pytest.raises(MergeImplementationError):
            source_file.render((1, 0), (1, 13))
