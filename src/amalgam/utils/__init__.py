"""
amalgam utilities package
"""

from .config import MergeConfig
from .io_utils import read_source_file, write_output

__all__ = ["MergeConfig", "read_source_file", "write_output"]
