"""
Module Path Resolution

Maps dotted module paths to source files under the configured source roots:

- pkg.mod → <root>/pkg/mod.py or <root>/pkg/mod/__init__.py

Resolution must yield exactly one file. This class is stateless and can be
shared/reused.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Tuple

from ...shared.errors import ModuleResolutionError
from ...utils.config import MODULE_FILE_EXTENSION, MODULE_SEPARATOR, PACKAGE_INIT_FILE

logger = logging.getLogger(__name__)


class PathResolver:
    """Resolves dotted module paths against an ordered list of source roots."""

    def __init__(self, source_roots: Iterable[Path]):
        roots: List[Path] = []
        for root in source_roots:
            resolved = Path(root).resolve()
            if resolved not in roots:
                roots.append(resolved)
        self.source_roots: Tuple[Path, ...] = tuple(roots)

    def candidates(self, module_path: str) -> List[Path]:
        """Every file that could provide `module_path`, across all roots."""
        parts = module_path.split(MODULE_SEPARATOR)
        if not module_path or not all(part.isidentifier() for part in parts):
            return []
        found: List[Path] = []
        for root in self.source_roots:
            base = root.joinpath(*parts)
            single_file = base.parent / f"{parts[-1]}{MODULE_FILE_EXTENSION}"
            package_init = base / PACKAGE_INIT_FILE
            for candidate in (single_file, package_init):
                if candidate.is_file():
                    found.append(candidate)
        return found

    def exists(self, module_path: str) -> bool:
        return bool(self.candidates(module_path))

    def resolve(self, module_path: str) -> Path:
        """
        Resolve a module path to its single source file.

        Raises:
            ModuleResolutionError: no file, or more than one file, matches
        """
        found = self.candidates(module_path)
        if len(found) != 1:
            raise ModuleResolutionError(
                module_path,
                candidates=[str(path) for path in found],
                searched=[str(root) for root in self.source_roots],
            )
        logger.debug(f"PathResolver: {module_path} -> {found[0]}")
        return found[0]

    @staticmethod
    def is_package_file(path: Path) -> bool:
        return path.name == PACKAGE_INIT_FILE
