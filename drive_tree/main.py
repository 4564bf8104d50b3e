#!/usr/bin/env python3
"""
Drive Tree CLI

Browses and edits a remote drive through its REST API.

Usage:
    drive-tree tree /docs/reports
    drive-tree ls /docs --sort size
    drive-tree mkdir /docs/archive
    drive-tree upload ./report.pdf /docs
"""

import argparse
import logging
import sys

from . import cli

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drive-tree",
        description="Browse and edit a remote drive",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Drive API URL (default: from config, else http://localhost:4023)",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Bearer token sent with every request",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command", metavar="command")

    p = sub.add_parser("ls", help="List a directory")
    p.add_argument("path", nargs="?", default="/")
    p.add_argument("--sort", choices=["name", "size", "type", "modified"], default=None)
    p.add_argument("--reverse", "-r", action="store_true")
    p.set_defaults(func=cli.cmd_ls)

    p = sub.add_parser("tree", help="Reveal a path in the directory tree")
    p.add_argument("path", nargs="?", default="/")
    p.add_argument("--files", action="store_true", help="Show files as well as folders")
    p.set_defaults(func=cli.cmd_tree)

    p = sub.add_parser("mkdir", help="Create a folder")
    p.add_argument("path")
    p.set_defaults(func=cli.cmd_mkdir)

    p = sub.add_parser("touch", help="Create an empty file")
    p.add_argument("path")
    p.set_defaults(func=cli.cmd_touch)

    p = sub.add_parser("mv", help="Rename or move an entry")
    p.add_argument("source")
    p.add_argument("destination")
    p.set_defaults(func=cli.cmd_mv)

    p = sub.add_parser("rm", help="Delete a file or folder")
    p.add_argument("path")
    p.set_defaults(func=cli.cmd_rm)

    p = sub.add_parser("upload", help="Upload a local file")
    p.add_argument("file")
    p.add_argument("destination", nargs="?", default="/", help="Remote folder (default: /)")
    p.add_argument("--name", default=None, help="Remote file name (default: local name)")
    p.set_defaults(func=cli.cmd_upload)

    p = sub.add_parser("download", help="Download a remote file")
    p.add_argument("path")
    p.add_argument("--output", "-o", default=None, help="Local file or directory")
    p.set_defaults(func=cli.cmd_download)

    p = sub.add_parser("config", help="Show or change configuration")
    p.add_argument("--set", nargs=2, metavar=("KEY", "VALUE"), default=None,
                   help="Set a key, e.g. --set listing.sort_by size")
    p.set_defaults(func=cli.cmd_config)

    p = sub.add_parser("status", help="Show version and API reachability")
    p.set_defaults(func=cli.cmd_status)

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(2)

    try:
        args.func(args)
    except KeyboardInterrupt:
        log.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
