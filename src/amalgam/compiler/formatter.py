"""
Output Formatter

Last step of every merge: the merged text must compile, then its whitespace
is normalized. An external formatter command may run afterwards; it reads the
text on stdin and writes the formatted text to stdout.
"""

import io
import logging
import subprocess
import tokenize
from typing import Optional, Sequence, Set

from ..shared.errors import FormatError
from ..shared.source_location import SourceLocation
from ..utils.config import MAX_BLANK_LINES

logger = logging.getLogger(__name__)


def _string_lines(text: str) -> Set[int]:
    """Lines covered by multi-line tokens (triple-quoted strings), which must stay verbatim."""
    protected: Set[int] = set()
    for token in tokenize.generate_tokens(io.StringIO(text).readline):
        if token.type in (tokenize.NL, tokenize.NEWLINE):
            continue
        if token.start[0] != token.end[0]:
            protected.update(range(token.start[0], token.end[0] + 1))
    return protected


def normalize_whitespace(text: str) -> str:
    """Strip trailing spaces, drop leading blank lines, cap blank runs, end with one newline."""
    protected = _string_lines(text)
    out = []
    blank_run = 0
    for number, line in enumerate(text.split("\n"), start=1):
        if number in protected:
            out.append(line)
            blank_run = 0
            continue
        line = line.rstrip()
        if line:
            blank_run = 0
        elif not out:
            continue
        else:
            blank_run += 1
            if blank_run > MAX_BLANK_LINES:
                continue
        out.append(line)
    return "\n".join(out).rstrip("\n") + "\n"


class SourceFormatter:
    """
    Validates and formats merged text.

    `command` is an optional external formatter such as ("ruff", "format", "-").
    """

    def __init__(self, command: Optional[Sequence[str]] = None, filename: str = "<merged>"):
        self.command = tuple(command) if command else None
        self.filename = filename

    def format(self, text: str) -> str:
        """
        Return the formatted text.

        Raises:
            FormatError: the text does not compile or the external formatter failed;
                the unformatted text is kept on the exception
        """
        self.check(text)
        formatted = normalize_whitespace(text)
        if self.command:
            formatted = self._run_command(formatted)
        return formatted

    def check(self, text: str) -> None:
        try:
            compile(text, self.filename, "exec", dont_inherit=True)
        except SyntaxError as e:
            location = SourceLocation(self.filename, e.lineno or 1, e.offset or 1)
            raise FormatError(f"merged output is not valid Python: {e.msg}", text, location) from e
        except ValueError as e:
            raise FormatError(f"merged output is not valid Python: {e}", text) from e

    def _run_command(self, text: str) -> str:
        logger.debug(f"Running formatter: {' '.join(self.command)}")
        try:
            result = subprocess.run(
                list(self.command),
                input=text,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise FormatError(f"formatter '{self.command[0]}' could not be run: {e}", text) from e
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise FormatError(f"formatter '{self.command[0]}' failed: {detail}", text)
        output = result.stdout
        return output if output.endswith("\n") else output + "\n"
