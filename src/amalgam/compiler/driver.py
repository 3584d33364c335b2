"""
Merge Driver

Walks the import graph from a root module and merges every inlined
dependency into one module:

1. Load the root and register it in the memo (never renamed)
2. For each import path of a module, in lexicographic order:
   - KEEP: record the import statements in the import set
   - INLINE, first visit: load, resolve collisions, rename, register in the
     memo, walk its own imports, emit it
   - INLINE: rewrite the importing module's references into it
   - typing-only imports: rewrite as well when the module was inlined by then
3. Emit the module itself (post-order: dependencies come first)
4. Assemble header, imports and declarations and format the result
"""

import dataclasses
import logging
from pathlib import Path
from typing import List, Optional, Set

from .assembler import OutputAssembler
from .emitter import SourceEmitter
from ..analysis.module_system.module_info import ModuleUnit
from ..analysis.module_system.module_loader import ModuleLoader
from ..analysis.module_system.path_resolver import PathResolver
from ..passes.base import ImportSet, InlinedModule, MergeContext
from ..passes.classification import Disposition, classify
from ..passes.collision import CollisionResolver
from ..passes.renaming import SymbolRenamer
from ..passes.rewriting import ReferenceRewriter
from ..utils.config import MergeConfig, MODULE_SEPARATOR
from ..utils.io_utils import write_output

logger = logging.getLogger(__name__)


class MergeResult:
    """Result of one merge run"""
    def __init__(self, text: str, import_set: ImportSet, inlined_paths: Set[str], module_order: List[str]):
        self.text = text
        self.import_set = import_set
        self.inlined_paths = inlined_paths
        self.module_order = module_order

    @property
    def kept_paths(self) -> List[str]:
        return self.import_set.paths

    def write(self, path: Path) -> Path:
        return write_output(path, self.text)


class MergeDriver:
    """
    Orchestrates one merge.

    A driver may run several merges; each `merge` call gets a fresh
    MergeContext, so no state leaks between runs.
    """

    def __init__(self, config: MergeConfig, loader: Optional[ModuleLoader] = None):
        self.config = config
        self.loader = loader or ModuleLoader(PathResolver(config.source_roots))
        self.collision_resolver = CollisionResolver()
        self.renamer = SymbolRenamer()
        self.emitter = SourceEmitter()

    def merge(self, root: str) -> MergeResult:
        """
        Merge `root` and everything it inlines into one formatted module.

        Raises:
            ModuleResolutionError, ModuleSyntaxError: a module could not be loaded
            FormatError: the merged text is not valid Python
        """
        config = self.config_for(root)
        ctx = self.traverse(root, config)
        text = OutputAssembler(config).assemble(ctx.import_set, ctx.output.getvalue())
        logger.info(
            f"Merged {root}: {len(ctx.inlined_paths)} modules inlined, "
            f"{len(ctx.import_set)} imports kept"
        )
        return MergeResult(text, ctx.import_set, set(ctx.inlined_paths), ctx.output.modules)

    def config_for(self, root: str) -> MergeConfig:
        """The run configuration; the root prefix defaults to the root's top-level package."""
        if self.config.root_prefix:
            return self.config
        prefix = root.split(MODULE_SEPARATOR)[0]
        logger.debug(f"Root prefix defaults to '{prefix}'")
        return dataclasses.replace(self.config, root_prefix=prefix)

    def traverse(self, root: str, config: Optional[MergeConfig] = None) -> MergeContext:
        """Walk the import graph from `root`; return the filled context."""
        ctx = MergeContext(config or self.config_for(root))
        unit = self.loader.load(root)
        ctx.modules[root] = InlinedModule(unit, prefix="", is_root=True)
        ctx.reserve(unit.symbols)
        rewriter = ReferenceRewriter(ctx.modules)
        self._walk(ctx, unit, rewriter)
        self._emit(ctx, unit, inlined=False)
        return ctx

    def _walk(self, ctx: MergeContext, unit: ModuleUnit, rewriter: ReferenceRewriter) -> None:
        for path in unit.import_paths:
            if classify(path, ctx.config) is Disposition.KEEP:
                for record in unit.imports_for(path):
                    ctx.import_set.add(record)
                continue
            dependency = ctx.modules.get(path)
            if dependency is None:
                dependency = self._inline(ctx, path, rewriter)
            rewriter.rewrite(unit, dependency)
        self._check_block_imports(ctx, unit, rewriter)
        rewriter.report_unflattened(unit)

    def _inline(self, ctx: MergeContext, path: str, rewriter: ReferenceRewriter) -> InlinedModule:
        logger.debug(f"Inlining {path}")
        unit = self.loader.load(path)
        collisions = self.collision_resolver.resolve(unit)
        # kept imports come through under their own binding
        ctx.reserve(
            record.spec.binding for record in unit.imports
            if record.spec.name != "*" and classify(record.path, ctx.config) is Disposition.KEEP
        )
        prefix = ctx.allocate_prefix(unit, sorted(symbol.name for symbol in collisions))
        renames = self.renamer.rename(unit, collisions, prefix)
        dependency = InlinedModule(unit, prefix, renames)
        # Registered before the walk so that import cycles stop here
        ctx.modules[path] = dependency
        ctx.inlined_paths.add(path)
        self._walk(ctx, unit, rewriter)
        self._emit(ctx, unit, inlined=True)
        return dependency

    def _emit(self, ctx: MergeContext, unit: ModuleUnit, inlined: bool) -> None:
        ctx.output.append(unit.path, self.emitter.emit(unit, inlined))

    def _check_block_imports(self, ctx: MergeContext, unit: ModuleUnit, rewriter: ReferenceRewriter) -> None:
        """Rewrite through typing-only imports of inlined modules; warn about nested internal imports."""
        typing_paths = {record.path for record in unit.type_checking_imports} - set(unit.import_paths)
        for path in sorted(typing_paths):
            if classify(path, ctx.config) is Disposition.KEEP:
                continue
            dependency = ctx.modules.get(path)
            if dependency is None:
                logger.debug(
                    f"{unit.path}: {path} is only imported for type checking; annotations left as written"
                )
                continue
            rewriter.rewrite(unit, dependency)
        for record in unit.nested_imports:
            if classify(record.path, ctx.config) is Disposition.INLINE:
                logger.warning(
                    f"{unit.path}:{record.line}: import of {record.path} inside a block "
                    f"is left as is and will not resolve in the merged module"
                )
