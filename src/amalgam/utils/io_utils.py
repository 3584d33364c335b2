"""
Centralized file I/O utilities.

- Single place for encoding and output permissions
- Use Path.read_text()/write_text() consistently (no raw open/read)
"""

import os
from pathlib import Path
from typing import Union

from .config import DEFAULT_FILE_ENCODING, OUTPUT_FILE_MODE


def read_source_file(path: Union[Path, str]) -> str:
    """Read source file with standard encoding."""
    p = Path(path) if not isinstance(path, Path) else path
    return p.read_text(encoding=DEFAULT_FILE_ENCODING)


def write_output(path: Union[Path, str], text: str) -> Path:
    """Write merged output, creating parent directories; the file ends up group/world writable."""
    p = Path(path) if not isinstance(path, Path) else path
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding=DEFAULT_FILE_ENCODING)
    # chmod explicitly: the umask would otherwise strip the group/world bits
    os.chmod(p, OUTPUT_FILE_MODE)
    return p
