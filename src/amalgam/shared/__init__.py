"""Shared types: source locations and the error hierarchy."""

from .errors import (
    Error,
    FormatError,
    MergeError,
    MergeImplementationError,
    ModuleResolutionError,
    ModuleSyntaxError,
    RelativeImportError,
    format_diagnostic,
)
from .source_location import SourceLocation

__all__ = [
    "Error",
    "FormatError",
    "MergeError",
    "MergeImplementationError",
    "ModuleResolutionError",
    "ModuleSyntaxError",
    "RelativeImportError",
    "SourceLocation",
    "format_diagnostic",
]
