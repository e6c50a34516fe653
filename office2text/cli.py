from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from office2text.config import get_default_config
from office2text.engine import extract_file
from office2text.exceptions import ExtractionError
from office2text.serialization import serialize_result


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="office2text",
        description="Extract document text and emit it to stdout (or JSON with --json).",
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the file to extract.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit content, metadata and diagnostics as JSON instead of plain text.",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum nesting depth of embedded objects.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Extraction timeout in seconds.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args, unknown = parser.parse_known_args(argv)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        return code

    if unknown:
        unknown_str = " ".join(unknown)
        print(
            f"office2text: warning: unsupported arguments: {unknown_str}",
            file=sys.stderr,
        )
        return 1

    overrides = {}
    if args.max_depth is not None:
        overrides["max_embedded_depth"] = args.max_depth
    if args.timeout is not None:
        overrides["extraction_timeout"] = args.timeout

    try:
        config = get_default_config().with_overrides(**overrides)
        result = extract_file(args.path, config)
    except ValueError as exc:
        print(f"office2text: {exc}", file=sys.stderr)
        return 1
    except ExtractionError as exc:
        print(f"office2text: {exc.kind.value}: {exc.message}", file=sys.stderr)
        return 1

    if args.json:
        json.dump(serialize_result(result), sys.stdout)
    else:
        for chunk in result.iterator():
            sys.stdout.write(chunk)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
