"""Module system: path resolution, module types and module loading."""

from .module_info import (
    ImportRecord,
    ImportSpec,
    ModuleUnit,
    Occurrence,
    SourceFile,
    Symbol,
    SymbolKind,
)
from .path_resolver import PathResolver

__all__ = [
    'ImportRecord',
    'ImportSpec',
    'ModuleUnit',
    'Occurrence',
    'PathResolver',
    'SourceFile',
    'Symbol',
    'SymbolKind',
]
