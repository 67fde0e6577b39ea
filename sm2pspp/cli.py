import sys
import os
import argparse
import json
import logging

from pydantic import ValidationError

from . import __version__
from .config import PROGRAM_URL, load_config
from .errors import ProcessingError
from .messages import Diagnostic, log_diagnostic
from .processor import ProcessStatus, analyze_file, process_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sm2pspp",
        description=f"sm2pspp {__version__}\n{PROGRAM_URL}\n\n"
                    "Converts PrusaSlicer G-code files in place for the Snapmaker 2.0 terminal.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("files", nargs="*", metavar="FILE", help="G-code file(s) to post-process")
    parser.add_argument(
        "--remove-thumbnail", "-r",
        action="store_true",
        default=None,
        help="Remove the original thumbnail block from the output",
    )
    parser.add_argument(
        "--summary", "-s",
        action="store_true",
        help="Print the header values as JSON without modifying the file",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"sm2pspp {__version__}")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.files:
        parser.print_help(sys.stderr)
        return 1

    if args.verbose:
        level = logging.DEBUG
    else:
        # 알 수 없는 레벨 이름은 INFO
        level = getattr(logging, os.getenv("SM2PSPP_LOG_LEVEL", "INFO").upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)

    try:
        config = load_config(remove_original_thumbnail=args.remove_thumbnail)
    except ValidationError as e:
        print(f"sm2pspp: invalid configuration\n{e}", file=sys.stderr)
        return 1

    exit_code = 0
    for path in args.files:
        if args.summary:
            try:
                fields = analyze_file(path, config)
            except ProcessingError as e:
                print(Diagnostic.create(e.kind, path).format(), file=sys.stderr)
                exit_code = 1
                continue
            print(json.dumps({"file": path, **fields.model_dump(mode="json")}, indent=2, ensure_ascii=False))
            continue

        status = process_file(path, callback=log_diagnostic, config=config)
        if status != ProcessStatus.SUCCESS:
            exit_code = 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
