"""
Merge State

MergeContext is the single owner of everything a merge run mutates: the memo
of inlined modules, the kept imports and the output buffer. Only the driver's
call stack touches it; passes receive the pieces they need.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from ..analysis.module_system.module_info import ImportRecord, ImportSpec, ModuleUnit
from ..utils.config import MergeConfig, MODULE_SEPARATOR, RENAME_SEPARATOR

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class InlinedModule:
    """A module whose declarations are merged, with its rename prefix and rename map."""
    unit: ModuleUnit
    prefix: str
    renames: Dict[str, str] = field(default_factory=dict)
    is_root: bool = False

    @property
    def path(self) -> str:
        return self.unit.path


class ImportSet:
    """
    Kept imports of the whole run.

    `paths` is the deduplicated set of kept module paths; `statements()` the
    import block, one statement per line.
    """

    def __init__(self):
        self._paths: Set[str] = set()
        self._specs: Set[ImportSpec] = set()
        self._bindings: Dict[str, ImportSpec] = {}

    def add(self, record: ImportRecord) -> None:
        self._paths.add(record.path)
        spec = record.spec
        if spec in self._specs:
            return
        self._specs.add(spec)
        if spec.name == "*":
            return
        existing = self._bindings.setdefault(spec.binding, spec)
        if existing != spec and (existing.module, existing.name) != (spec.module, spec.name):
            logger.warning(
                f"kept imports bind '{spec.binding}' twice: "
                f"'{existing.render()}' and '{spec.render()}'"
            )

    @property
    def paths(self) -> List[str]:
        return sorted(self._paths)

    def statements(self) -> List[str]:
        return [spec.render() for spec in sorted(self._specs, key=ImportSpec.sort_key)]

    def __contains__(self, path: str) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)


class OutputBuffer:
    """Declaration text in emission order, one chunk per module."""

    def __init__(self):
        self._chunks: List[Tuple[str, str]] = []

    def append(self, module_path: str, text: str) -> None:
        self._chunks.append((module_path, text))

    @property
    def modules(self) -> List[str]:
        return [path for path, _ in self._chunks]

    def getvalue(self) -> str:
        return "".join(text for _, text in self._chunks)


@dataclass
class MergeContext:
    """State of one merge run."""
    config: MergeConfig
    modules: Dict[str, InlinedModule] = field(default_factory=dict)
    inlined_paths: Set[str] = field(default_factory=set)
    import_set: ImportSet = field(default_factory=ImportSet)
    output: OutputBuffer = field(default_factory=OutputBuffer)
    prefixes: Set[str] = field(default_factory=set)
    # every name the merged module binds at top level so far
    bound_names: Set[str] = field(default_factory=set)

    def reserve(self, names: Iterable[str]) -> None:
        self.bound_names.update(names)

    def allocate_prefix(self, unit: ModuleUnit, names: Iterable[str] = ()) -> str:
        """
        Rename prefix for `unit`, whose collision set holds `names`.

        `<short name>_` unless that prefix is taken or would produce a name the
        merged module already binds; then the full dotted path joined with `_`,
        numbered if even that clashes. The renamed names are reserved.
        """
        names = list(names)
        prefix = f"{unit.short_name}{RENAME_SEPARATOR}"
        fallback = unit.path.replace(MODULE_SEPARATOR, RENAME_SEPARATOR) + RENAME_SEPARATOR
        if prefix in self.prefixes:
            logger.warning(
                f"prefix '{prefix}' already used by another module; "
                f"renaming {unit.path} with '{fallback}'"
            )
            prefix = fallback
        elif self._clashes(prefix, names):
            logger.warning(
                f"renaming {unit.path} with '{prefix}' would redefine names already in the "
                f"merged module; renaming with '{fallback}'"
            )
            prefix = fallback
        counter = 2
        while prefix in self.prefixes or self._clashes(prefix, names):
            prefix = f"{fallback[:-1]}{counter}{RENAME_SEPARATOR}"
            counter += 1
        self.prefixes.add(prefix)
        self.reserve(prefix + name for name in names)
        return prefix

    def _clashes(self, prefix: str, names: List[str]) -> bool:
        return any(prefix + name in self.bound_names for name in names)
