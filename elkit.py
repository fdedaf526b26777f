import argparse
import logging
import os
import sys
from typing import List, Optional, Sequence

from ellang import (
    ErrorCode,
    ExclusionDataManager,
    ExclusionParser,
    ExclusionWriter,
    ParserConfig,
    WriterConfig,
)
from ellang.renderers import renderer_registry

logger = logging.getLogger("elkit")


def _fail(message: str, code: ErrorCode) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return abs(int(code))


def _missing(paths: Sequence[str]) -> Optional[str]:
    for path in paths:
        if not os.path.isfile(path):
            return path
    return None


def cmd_stats(args: argparse.Namespace) -> int:
    """Parse one or more exclusion files and print statistics and a scope table.

    The output format is selected with the global ``--format`` option.
    """
    missing = _missing(args.files)
    if missing:
        return _fail(f"File not found: {missing}", ErrorCode.FILE_NOT_FOUND)

    parser = ExclusionParser()
    result = parser.parse_files(args.files, continue_on_error=False)
    if not result.success:
        return _fail(result.error_message, ErrorCode.PARSE_FAILED)
    for warning in result.warnings:
        logger.warning(warning)

    renderer = renderer_registry.create(args.format)
    title = "Exclusion report: " + ", ".join(os.path.basename(f) for f in args.files)
    print(renderer.render_report(
        title,
        parser.get_last_parse_statistics(),
        parser.get_data().scopes.values(),
    ))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Strictly parse a file and report every problem found."""
    if not os.path.isfile(args.file):
        return _fail(f"File not found: {args.file}", ErrorCode.FILE_NOT_FOUND)

    parser = ExclusionParser(ParserConfig(strict_mode=True))
    problems: List[str] = []
    if not parser.validate_file(args.file):
        problems.append("Exclusion list header not found")

    result = parser.parse_file(args.file)
    if result.success:
        problems.extend(result.warnings)
        problems.extend(parser.data_manager.validate_data())
    else:
        problems.append(result.error_message)

    if not problems:
        print(f"{args.file}: OK")
        return 0

    for problem in problems:
        print(problem)
    return abs(int(ErrorCode.PARSE_FAILED if not result.success else ErrorCode.INVALID_FORMAT))


def cmd_merge(args: argparse.Namespace) -> int:
    """Merge several exclusion files into one output file."""
    missing = _missing(args.files)
    if missing:
        return _fail(f"File not found: {missing}", ErrorCode.FILE_NOT_FOUND)

    merged = ExclusionDataManager()
    for path in args.files:
        parser = ExclusionParser()
        result = parser.parse_file(path)
        if not result.success:
            return _fail(f"Failed to parse {path}: {result.error_message}", ErrorCode.PARSE_FAILED)
        merged.merge_data(parser.get_data(), overwrite_existing=args.overwrite)

    writer = ExclusionWriter(WriterConfig(sort_exclusions=args.sort))
    result = writer.write_file(args.output, merged.get_data())
    if not result.success:
        return _fail(result.error_message, ErrorCode.WRITE_FAILED)

    print(
        f"Wrote {result.exclusions_written} exclusions in "
        f"{result.scopes_written} scopes to {args.output}"
    )
    return 0


def cmd_find(args: argparse.Namespace) -> int:
    """Print the scope names matching a wildcard pattern."""
    if not os.path.isfile(args.file):
        return _fail(f"File not found: {args.file}", ErrorCode.FILE_NOT_FOUND)

    parser = ExclusionParser()
    result = parser.parse_file(args.file)
    if not result.success:
        return _fail(result.error_message, ErrorCode.PARSE_FAILED)

    for name in parser.data_manager.find_scopes_matching(
        args.pattern, case_sensitive=not args.ignore_case
    ):
        print(name)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="elkit.py",
        description="Facade for coverage exclusion list utilities.",
    )

    # Global options
    parser.add_argument(
        "--format",
        choices=renderer_registry.keys(),
        default="text",
        help="Report format (default: text).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    subparsers = parser.add_subparsers(dest="command")

    stats = subparsers.add_parser(
        "stats",
        help="Print exclusion statistics and a per-scope table.",
    )
    stats.add_argument("files", metavar="FILE", nargs="+", help="Exclusion list file(s).")
    stats.set_defaults(func=cmd_stats)

    validate = subparsers.add_parser(
        "validate",
        help="Strictly parse a file and report problems.",
    )
    validate.add_argument("file", metavar="FILE", help="Exclusion list file.")
    validate.set_defaults(func=cmd_validate)

    merge = subparsers.add_parser(
        "merge",
        help="Merge exclusion files into one.",
    )
    merge.add_argument("files", metavar="FILE", nargs="+", help="Input exclusion list files.")
    merge.add_argument("-o", "--output", required=True, help="Output file.")
    merge.add_argument(
        "--overwrite",
        action="store_true",
        help="Let later files replace same-named scopes wholesale.",
    )
    merge.add_argument(
        "--sort",
        action="store_true",
        help="Sort scopes and exclusions for deterministic output.",
    )
    merge.set_defaults(func=cmd_merge)

    find = subparsers.add_parser(
        "find",
        help="List scope names matching a wildcard pattern (* and ?).",
    )
    find.add_argument("file", metavar="FILE", help="Exclusion list file.")
    find.add_argument("pattern", metavar="PATTERN", help="Wildcard pattern, e.g. 'tb.*.core'.")
    find.add_argument("-i", "--ignore-case", action="store_true", help="Match case-insensitively.")
    find.set_defaults(func=cmd_find)

    return parser


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
