"""
Source Emitter

Re-emits a module's top-level declarations with every occurrence edit
applied, keeping the comments that document them:

- a declaration's range starts at its first decorator, or at an own-line
  comment group ending on the line directly above it
- free-standing comment groups between declarations are printed on their own
- a same-line trailing comment stays on the declaration's last line
- comments after the last declaration are flushed at the end

Imports, import-only `if TYPE_CHECKING:` blocks and the module docstring are
never emitted; inlined modules also lose their `if __name__ == "__main__":`
block.
"""

import ast
import logging
import re
from typing import List, Optional, Tuple

from ..analysis.module_system.module_info import CommentGroup, ModuleUnit, Position, SourceFile
from ..analysis.module_system.module_loader import is_type_checking_block
from ..utils.config import MODULE_SEPARATOR, QUALIFIER_SENTINEL

logger = logging.getLogger(__name__)

_PRAGMA = re.compile(r"#!|#.*coding[:=]")


def is_docstring(stmt: ast.stmt) -> bool:
    return (isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant)
            and isinstance(stmt.value.value, str))


def is_main_guard(stmt: ast.stmt) -> bool:
    """`if __name__ == "__main__":` in either operand order."""
    if not isinstance(stmt, ast.If) or not isinstance(stmt.test, ast.Compare):
        return False
    test = stmt.test
    if len(test.ops) != 1 or not isinstance(test.ops[0], ast.Eq):
        return False
    operands = [test.left, test.comparators[0]]
    has_name = any(isinstance(o, ast.Name) and o.id == "__name__" for o in operands)
    has_main = any(isinstance(o, ast.Constant) and o.value == "__main__" for o in operands)
    return has_name and has_main


def _is_import(stmt: ast.stmt) -> bool:
    return isinstance(stmt, (ast.Import, ast.ImportFrom))


def is_typing_only(stmt: ast.stmt) -> bool:
    """An `if TYPE_CHECKING:` block holding nothing but imports; it never runs."""
    return is_type_checking_block(stmt) and all(_is_import(inner) for inner in stmt.body)


def _group_text(group: CommentGroup) -> str:
    """Text of a comment group without shebang or encoding lines."""
    return "\n".join(
        comment.text for comment in group.comments
        if not (comment.line <= 2 and _PRAGMA.match(comment.text))
    )


class SourceEmitter:
    """Turns one loaded (and already rewritten) module into declaration text."""

    def emit(self, unit: ModuleUnit, inlined: bool) -> str:
        pieces: List[str] = []
        if unit.import_aliases:
            aliases = [f"{local} = {target}" for local, target in sorted(unit.import_aliases.items())]
            pieces.append("\n".join(aliases) + "\n\n")
        for source_file in unit.files:
            pieces.extend(self._emit_file(source_file, inlined))
        text = "".join(pieces)
        return text.replace(QUALIFIER_SENTINEL + MODULE_SEPARATOR, "")

    def _emit_file(self, source_file: SourceFile, inlined: bool) -> List[str]:
        body = source_file.tree.body
        pieces: List[str] = []
        header = self._header_length(body)
        if header:
            last = self._statement_end(source_file, body[header - 1])[0]
        elif body:
            last = self.source_range(source_file, body[0])[0]
        else:
            last = (1, 0)

        for stmt in body[header:]:
            start, end = self.source_range(source_file, stmt)
            pieces.extend(self._comments_between(source_file, last, start))
            stmt_end, trailing = self._statement_end(source_file, stmt)
            if _is_import(stmt) or is_typing_only(stmt) or (inlined and is_main_guard(stmt)):
                last = stmt_end
                continue
            text = source_file.render(start, end)
            if trailing is not None:
                text += "  " + trailing.comments[0].text
            pieces.append(text + "\n\n")
            last = stmt_end

        pieces.extend(self._comments_between(source_file, last, None))
        return pieces

    @staticmethod
    def _header_length(body: List[ast.stmt]) -> int:
        """Number of leading statements forming the header: docstring, then imports."""
        count = 0
        for index, stmt in enumerate(body):
            if (index == 0 and is_docstring(stmt)) or _is_import(stmt):
                count += 1
            else:
                break
        return count

    # ------------------------------------------------------------------
    # Ranges and comments
    # ------------------------------------------------------------------

    def source_range(self, source_file: SourceFile, stmt: ast.stmt) -> Tuple[Position, Position]:
        """[start, end) of a statement including decorators and its attached comment group."""
        decorators = getattr(stmt, "decorator_list", None) or []
        line = decorators[0].lineno if decorators else stmt.lineno
        column = source_file.char_col(stmt.lineno, stmt.col_offset)
        start = (line, column)
        group = source_file.attached_comment_group(line, column)
        if group is not None:
            start = group.start
        return start, source_file.node_end(stmt)

    def _statement_end(self, source_file: SourceFile, stmt: ast.stmt) -> Tuple[Position, Optional[CommentGroup]]:
        """End of a statement, moved past a trailing comment on its last line."""
        end = source_file.node_end(stmt)
        for group in source_file.comment_groups:
            if group.own_line or group.start[0] != end[0] or group.start[1] < end[1]:
                continue
            if not source_file.text_between(end, group.start).strip():
                return group.end, group
        return end, None

    def _comments_between(self, source_file: SourceFile, start: Position,
                          end: Optional[Position]) -> List[str]:
        """Free-standing comment groups in [start, end), each followed by a blank line."""
        pieces = []
        for group in source_file.comment_groups:
            if group.start < start or (end is not None and group.start >= end):
                continue
            if not group.own_line:
                continue
            text = _group_text(group)
            if text:
                pieces.append(text + "\n\n")
        return pieces
