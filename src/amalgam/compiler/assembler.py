"""
Output Assembler

Builds the final module text: header docstring, kept import block, merged
declarations. The result always passes through the formatter.
"""

import logging
from typing import Optional

from .formatter import SourceFormatter
from ..passes.base import ImportSet
from ..utils.config import HEADER_TEMPLATE, MergeConfig

logger = logging.getLogger(__name__)


class OutputAssembler:

    def __init__(self, config: MergeConfig, formatter: Optional[SourceFormatter] = None):
        self.config = config
        self.formatter = formatter or SourceFormatter(
            config.formatter_command, filename=f"<merged {config.module_name}>"
        )

    def assemble(self, import_set: ImportSet, body: str) -> str:
        """Header, then imports (`__future__` first, one per line; omitted when empty), then body."""
        parts = [HEADER_TEMPLATE.format(name=self.config.module_name)]
        statements = import_set.statements()
        if statements:
            parts.append("\n".join(statements))
        if body.strip():
            parts.append(body)
        text = "\n\n".join(parts) + "\n"
        logger.debug(f"Assembled {len(statements)} imports and {len(body)} characters of declarations")
        return self.formatter.format(text)
