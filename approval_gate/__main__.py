"""CLI for the approval gate.

Usage:
    python -m approval_gate main    # open the issue and wait for a verdict
    python -m approval_gate post    # close the issue if the job was cancelled
"""

from __future__ import annotations

import argparse
import sys

from dotenv import load_dotenv

from approval_gate.actions_runtime import configure_logging
from approval_gate.entrypoints import main_phase, post_phase


def cmd_main(args: argparse.Namespace) -> int:
    return main_phase()


def cmd_post(args: argparse.Namespace) -> int:
    return post_phase()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="approval-gate",
        description="Manual approval gate backed by GitHub issues",
    )
    parser.add_argument("--debug", action="store_true", default=None, help="enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_main = sub.add_parser("main", help="open the approval issue and wait for a verdict")
    p_main.set_defaults(func=cmd_main)

    p_post = sub.add_parser("post", help="close an approval issue left open by a cancelled run")
    p_post.set_defaults(func=cmd_post)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(debug=args.debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
