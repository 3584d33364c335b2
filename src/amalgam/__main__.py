"""CLI entry point: run `amalgam ROOT_MODULE TARGET_MODULE` or `python -m amalgam ...`."""

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from .compiler.driver import MergeDriver
from .shared.errors import MergeError, MergeImplementationError
from .utils.config import (
    DEFAULT_DESTINATION_ROOT,
    DEFAULT_FILE_NAME,
    DEFAULT_MODULE_NAME,
    DEFAULT_VENDOR_MARKERS,
    MergeConfig,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="amalgam",
        usage="%(prog)s [options] ROOT_MODULE TARGET_MODULE",
        description="Merge a Python package and its internal dependencies into a single module.",
    )
    parser.add_argument("modules", nargs="*", metavar="MODULE",
                        help="root module to merge, then the target module name for the output directory")
    parser.add_argument("--file-name", default=DEFAULT_FILE_NAME,
                        help=f"output file name (default: {DEFAULT_FILE_NAME})")
    parser.add_argument("--module-name", default=DEFAULT_MODULE_NAME,
                        help=f"module name written in the output header (default: {DEFAULT_MODULE_NAME})")
    parser.add_argument("--root-module", default="",
                        help="module prefix of first-party code to inline (default: the root module's package)")
    parser.add_argument("--destination-root", default=DEFAULT_DESTINATION_ROOT,
                        help=f"directory receiving the output (default: {DEFAULT_DESTINATION_ROOT})")
    parser.add_argument("--source-root", action="append", type=Path, default=None,
                        help="directory searched for modules; repeatable (default: current directory)")
    parser.add_argument("--vendor-marker", action="append", default=None,
                        help=f"path segment marking vendored code to inline; repeatable "
                             f"(default: {', '.join(DEFAULT_VENDOR_MARKERS)})")
    parser.add_argument("--keep", action="append", default=[],
                        help="module prefix that always stays an import; repeatable")
    parser.add_argument("--formatter", default=None,
                        help="external formatter command reading stdin, e.g. 'ruff format -'")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every merge step")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if len(args.modules) != 2:
        parser.print_usage(sys.stderr)
        sys.stderr.write("amalgam: error: expected ROOT_MODULE and TARGET_MODULE\n")
        return 2
    root, target = args.modules

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = MergeConfig(
        root_prefix=args.root_module,
        vendor_markers=tuple(args.vendor_marker or DEFAULT_VENDOR_MARKERS),
        keep_prefixes=tuple(args.keep),
        source_roots=tuple(args.source_root or [Path.cwd()]),
        module_name=args.module_name,
        formatter_command=tuple(shlex.split(args.formatter)) if args.formatter else None,
    )

    try:
        result = MergeDriver(config).merge(root)
    except (MergeError, MergeImplementationError) as e:
        sys.stderr.write(e.render(color=None if sys.stderr.isatty() else False) + "\n")
        return 1

    output = Path(args.destination_root) / target / args.file_name
    try:
        result.write(output)
    except OSError as e:
        sys.stderr.write(f"amalgam: error: could not write {output}: {e}\n")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
