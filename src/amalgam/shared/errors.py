"""
Diagnostics

Merge failures render like compiler diagnostics: a header with the error
code, an arrow to the location, the offending line with a caret underline,
then any help and note annotations.
"""

import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .source_location import SourceLocation

_ANSI = {"bold": "\033[1m", "red": "\033[31m", "blue": "\033[34m", "cyan": "\033[36m"}
_ANSI_RESET = "\033[0m"

# token under the caret when the location has no end column
_TOKEN_AT = re.compile(r"\w+|\S")


def color_enabled() -> bool:
    """Colour is on unless NO_COLOR is set or AMALGAM_COLOR switches it off."""
    if "NO_COLOR" in os.environ:
        return False
    return os.environ.get("AMALGAM_COLOR", "").lower() not in ("0", "false", "no", "never")


@dataclass
class Error:
    """One diagnostic ready for rendering."""
    message: str
    location: Optional[SourceLocation]
    code: Optional[str] = None
    help: Optional[str] = None
    note: Optional[str] = None
    label: Optional[str] = None


class _Painter:
    def __init__(self, color: bool):
        self.color = color

    def __call__(self, text: str, *styles: str) -> str:
        if not self.color or not styles:
            return text
        return "".join(_ANSI[s] for s in styles) + text + _ANSI_RESET


def format_diagnostic(error: Error, source_files: Dict[str, str], color: bool = False) -> str:
    """
    Render one diagnostic. Without colour the output reads::

        error[M0301]: merged output is not valid Python: invalid syntax
         --> <merged main>:12:9
          |
       12 | def A_make(:
          |         ^ invalid syntax
          |
          = note: the unformatted text is kept on the exception
    """
    paint = _Painter(color)
    code = f"[{error.code}]" if error.code else ""
    lines = [paint(f"error{code}", "bold", "red") + paint(f": {error.message}", "bold")]

    loc = error.location
    width = len(str(loc.line)) if loc is not None else 1
    gutter = " " * (width + 1)
    if loc is not None:
        lines.append(paint(" " * width + "--> ", "bold", "blue") + str(loc))
        source = source_files.get(loc.file)
        if source is not None:
            lines.extend(_snippet(error, source, width, paint))

    annotations = [(kind, text) for kind, text in (("help", error.help), ("note", error.note)) if text]
    if annotations:
        lines.append(paint(gutter + "|", "bold", "blue"))
        for kind, text in annotations:
            lines.append(paint(gutter + "= ", "bold", "cyan") + paint(f"{kind}: ", "bold") + text)
    return "\n".join(lines)


def _snippet(error: Error, source: str, width: int, paint: _Painter) -> List[str]:
    """Source line of the location with its caret underline."""
    loc = error.location
    source_lines = source.split("\n")
    text = source_lines[loc.line - 1] if 0 < loc.line <= len(source_lines) else ""
    start = max(loc.column, 1) - 1
    if loc.end_column > loc.column and loc.end_line in (0, loc.line):
        length = loc.end_column - loc.column
    else:
        token = _TOKEN_AT.match(text, start)
        length = len(token.group()) if token else 1
    underline = " " * start + "^" * max(1, length)
    if error.label:
        underline += f" {error.label}"
    gutter = " " * (width + 1)
    return [
        paint(gutter + "|", "bold", "blue"),
        paint(str(loc.line).rjust(width) + " | ", "bold", "blue") + text,
        paint(gutter + "| ", "bold", "blue") + paint(underline, "bold", "red"),
    ]


# ============================================================================
# Exception Classes
# ============================================================================

class MergeError(Exception):
    """Base exception for all merge failures"""
    error_code = "M0001"

    def __init__(self, message: str, location: Optional[SourceLocation] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def diagnostic(self) -> Error:
        return Error(message=self.message, location=self.location, code=self.error_code)

    def source_files(self) -> Dict[str, str]:
        return {}

    def render(self, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else color_enabled()
        return format_diagnostic(self.diagnostic(), self.source_files(), color=use_color)

    def __str__(self):
        if self.location:
            return f"error[{self.error_code}]: {self.message}\n --> {self.location}"
        return self.message


class ModuleResolutionError(MergeError):
    """
    A module path resolved to zero or to several module files.

    `candidates` lists every file that matched; an empty list means the
    module was not found at all.
    """
    error_code = "M0101"

    def __init__(self, path: str, candidates: Sequence[str] = (), searched: Sequence[str] = ()):
        self.path = path
        self.candidates = list(candidates)
        self.searched = list(searched)
        if self.candidates:
            message = (
                f"module '{path}' is ambiguous: {len(self.candidates)} matches "
                f"({', '.join(self.candidates)})"
            )
        else:
            message = f"module '{path}' not found"
        super().__init__(message)

    def diagnostic(self) -> Error:
        note = None
        if not self.candidates and self.searched:
            note = f"searched source roots: {', '.join(self.searched)}"
        return Error(message=self.message, location=None, code=self.error_code, note=note)


class RelativeImportError(ModuleResolutionError):
    """A relative import climbs above the top-level package of its module."""
    error_code = "M0102"

    def __init__(self, path: str, importer: str, location: Optional[SourceLocation] = None):
        self.path = path
        self.importer = importer
        self.candidates = []
        self.searched = []
        MergeError.__init__(
            self, f"relative import '{path}' in {importer} goes beyond the top-level package", location
        )

    def diagnostic(self) -> Error:
        return Error(message=self.message, location=self.location, code=self.error_code)


class ModuleSyntaxError(MergeError):
    """A source file of an inlined module does not parse."""
    error_code = "M0201"

    def __init__(self, message: str, location: Optional[SourceLocation] = None,
                 source_code: Optional[str] = None):
        super().__init__(message, location)
        self.source_code = source_code

    def source_files(self) -> Dict[str, str]:
        if self.source_code is not None and self.location:
            return {self.location.file: self.source_code}
        return {}


class FormatError(MergeError):
    """
    The assembled output was rejected by the formatter.

    This signals a rename/rewrite defect, not a user error. `source` keeps
    the unformatted text for inspection.
    """
    error_code = "M0301"

    def __init__(self, message: str, source: str, location: Optional[SourceLocation] = None):
        super().__init__(message, location)
        self.source = source

    def diagnostic(self) -> Error:
        return Error(
            message=self.message,
            location=self.location,
            code=self.error_code,
            note="the unformatted text is kept on the exception (FormatError.source)",
        )

    def source_files(self) -> Dict[str, str]:
        if self.location:
            return {self.location.file: self.source}
        return {}


class MergeImplementationError(Exception):
    """
    Error in amalgam itself (not in the merged program).

    Use this for broken internal invariants, never for problems in user code.
    """
    def __init__(self, message: str, error_code: str = "M9999"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self):
        return f"[{self.error_code}] {self.message}"

    def render(self, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else color_enabled()
        error = Error(
            message=f"internal error: {self.message}",
            location=None,
            code=self.error_code,
            note="this is a bug in amalgam, not in the merged package",
        )
        return format_diagnostic(error, {}, color=use_color)
