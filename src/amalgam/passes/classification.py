"""
Dependency Classification

Decides, from the import path and static configuration only, whether a
dependency stays an import or is merged into the output.
"""

import sys
from enum import Enum

from ..utils.config import MergeConfig, MODULE_SEPARATOR

_STANDARD_MODULES = frozenset(getattr(sys, "stdlib_module_names", ())) | frozenset(sys.builtin_module_names)


class Disposition(Enum):
    KEEP = "keep"
    INLINE = "inline"


def _has_prefix(path: str, prefix: str) -> bool:
    """Segment-aware prefix test: `pkg` matches `pkg` and `pkg.mod`, not `pkgs`."""
    if not prefix:
        return False
    prefix = prefix.rstrip(MODULE_SEPARATOR)
    return path == prefix or path.startswith(prefix + MODULE_SEPARATOR)


def is_standard_import_path(path: str) -> bool:
    return path.split(MODULE_SEPARATOR)[0] in _STANDARD_MODULES


def is_shared_dependency(path: str, config: MergeConfig) -> bool:
    return _has_prefix(path, config.root_prefix)


def is_vendor_dependency(path: str, config: MergeConfig) -> bool:
    segments = path.split(MODULE_SEPARATOR)
    return any(marker in segments for marker in config.vendor_markers)


def is_kept_dependency(path: str, config: MergeConfig) -> bool:
    return any(_has_prefix(path, prefix) for prefix in config.keep_prefixes)


def classify(path: str, config: MergeConfig) -> Disposition:
    """
    KEEP for standard-library and explicitly kept paths, INLINE for first-party
    (root prefix) and vendored paths, KEEP for everything else.
    """
    if is_standard_import_path(path) or is_kept_dependency(path, config):
        return Disposition.KEEP
    if is_shared_dependency(path, config) or is_vendor_dependency(path, config):
        return Disposition.INLINE
    return Disposition.KEEP
