"""
Configuration constants and the merge configuration value
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

# Output defaults
DEFAULT_FILE_NAME = "plugin.py"
DEFAULT_MODULE_NAME = "main"
DEFAULT_DESTINATION_ROOT = "build"
OUTPUT_FILE_MODE = 0o666  # rw for user, group and world

# Module resolution constants
MODULE_SEPARATOR = "."
MODULE_FILE_EXTENSION = ".py"
PACKAGE_INIT_FILE = "__init__.py"
DEFAULT_VENDOR_MARKERS = ("_vendor",)
FUTURE_MODULE = "__future__"

# Rename constants
RENAME_SEPARATOR = "_"

# Stands in for a stripped qualifier until emission. NUL never appears in
# valid Python source, so stripping it cannot touch user text.
QUALIFIER_SENTINEL = "\x00inlined\x00"

# Emission constants
HEADER_TEMPLATE = '"""{name}"""'
MAX_BLANK_LINES = 2

# File encoding constants
DEFAULT_FILE_ENCODING = "utf-8"


@dataclass(frozen=True)
class MergeConfig:
    """
    Static configuration of one merge run.

    root_prefix: module prefix of first-party code (inlined)
    vendor_markers: path segments marking vendored third-party code (inlined)
    keep_prefixes: module prefixes that always stay imports
    source_roots: directories searched for module files
    module_name: name written in the output header
    formatter_command: optional external formatter reading stdin, writing stdout
    """
    root_prefix: str = ""
    vendor_markers: Tuple[str, ...] = DEFAULT_VENDOR_MARKERS
    keep_prefixes: Tuple[str, ...] = ()
    source_roots: Tuple[Path, ...] = field(default_factory=lambda: (Path.cwd(),))
    module_name: str = DEFAULT_MODULE_NAME
    formatter_command: Optional[Tuple[str, ...]] = None
