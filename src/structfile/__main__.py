"""CLI entry point: python -m structfile <command>."""

from __future__ import annotations

import argparse
import logging
import sys


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="structfile",
        description="Validate project structure files",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging")
    sub = parser.add_subparsers(dest="command")

    va = sub.add_parser("validate", help="Validate structure files under a project root")
    va.add_argument("root", nargs="?", default=".", help="Project root directory")
    va.add_argument("--strict", action="store_true", default=None, help="Unknown fields are errors")
    va.add_argument(
        "--no-validate-paths",
        dest="validate_paths",
        action="store_false",
        default=None,
        help="Skip existence checks for declared paths",
    )
    va.add_argument(
        "--no-hooks",
        dest="hooks_enabled",
        action="store_false",
        default=None,
        help="Do not index .structure/hooks",
    )
    va.add_argument("--json", action="store_true", default=False, help="Output as JSON")
    va.add_argument("--output", default="", help="Also write the JSON report to this file")
    va.add_argument("--workers", type=int, default=4, help="Loader/validator threads")

    rs = sub.add_parser("resolve", help="Print merged patterns and templates")
    rs.add_argument("root", nargs="?", default=".", help="Project root directory")
    rs.add_argument("--json", action="store_true", default=False, help="Output as JSON")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "validate":
        from structfile.cli.validate import run_validate
        run_validate(args)
    elif args.command == "resolve":
        from structfile.cli.resolve import run_resolve
        run_resolve(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
