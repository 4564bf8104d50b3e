"""
Subcommand implementations for the drive-tree CLI.

Commands: ls, tree, mkdir, touch, mv, rm, upload, download, config, status.
"""

import logging
import os
import sys
from argparse import Namespace
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
import trio

from .config import (
    DriveConfig, get_config_path, load_config, read_config_file, set_config_value,
)
from .errors import NamespaceError
from .paths import as_path
from .session import DriveSession

log = logging.getLogger(__name__)

T = TypeVar("T")


# --- ANSI formatting helpers ---

def _supports_color() -> bool:
    """Check if terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(sys.stdout, "isatty") or not sys.stdout.isatty():
        return False
    return True

_COLOR = _supports_color()

def _bold(text: str) -> str:
    return f"\033[1m{text}\033[0m" if _COLOR else text

def _green(text: str) -> str:
    return f"\033[32m{text}\033[0m" if _COLOR else text

def _yellow(text: str) -> str:
    return f"\033[33m{text}\033[0m" if _COLOR else text

def _red(text: str) -> str:
    return f"\033[31m{text}\033[0m" if _COLOR else text

def _dim(text: str) -> str:
    return f"\033[2m{text}\033[0m" if _COLOR else text


def _get_version() -> str:
    """Get package version."""
    from importlib.metadata import version, PackageNotFoundError
    try:
        return version("drive-tree")
    except PackageNotFoundError:
        return "dev"


def _test_api(api_url: str, access_token: str = "") -> tuple[bool, str]:
    """Test API connectivity. Returns (reachable, detail_or_error)."""
    headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
    try:
        resp = httpx.get(f"{api_url}/uploads", headers=headers, timeout=5)
        if resp.status_code == 200:
            return True, f"{len(resp.json())} entries at /"
        return False, f"HTTP {resp.status_code}"
    except httpx.ConnectError:
        return False, "connection refused"
    except Exception as e:
        return False, str(e)


def _mask_secret(secret: str) -> str:
    """Mask a secret, showing only last 4 chars."""
    if len(secret) <= 4:
        return "****"
    return f"****{secret[-4:]}"


def _format_size(size: Optional[int]) -> str:
    """Human-readable size, the way the listing table shows it."""
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{int(value)} B" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def _config_for(args: Namespace) -> DriveConfig:
    return load_config(
        cli_api_url=getattr(args, "api_url", None),
        cli_token=getattr(args, "token", None),
    )


def _run(args: Namespace, body: Callable[[DriveSession], Awaitable[T]]) -> T:
    """Run body against a fresh session under trio; NamespaceError exits 1."""
    config = _config_for(args)

    async def runner() -> T:
        session = DriveSession.from_config(config)
        try:
            return await body(session)
        finally:
            await session.close()

    try:
        return trio.run(runner)
    except NamespaceError as e:
        print(_red(f"Error: {e}"), file=sys.stderr)
        sys.exit(1)


# --- Browsing ---

def cmd_ls(args: Namespace) -> None:
    """List one directory."""
    config = _config_for(args)
    sort_by = args.sort or config.listing.sort_by
    reverse = args.reverse or config.listing.reverse
    path = as_path(args.path or "/")

    async def body(session: DriveSession):
        await session.listing.navigate(path)
        return session.listing.sorted_entries(by=sort_by, reverse=reverse)

    entries = _run(args, body)
    if not entries:
        print(_dim(f"{path} is empty"))
        return
    for entry in entries:
        if entry.is_directory:
            print(f"{'':>10}  {_bold(entry.name + '/')}")
        else:
            print(f"{_format_size(entry.size):>10}  {entry.name}")


def cmd_tree(args: Namespace) -> None:
    """Reveal a path in the directory tree and print the expanded tree."""
    config = _config_for(args)
    target = as_path(args.path or "/")
    show_files = args.files or config.tree.show_files

    async def body(session: DriveSession):
        result = await session.expansion.navigate(target)
        if result.ok and not target.is_root:
            await session.expansion.expand(target)
        return result, list(session.expansion.visible_tree(directories_only=not show_files))

    result, rows = _run(args, body)
    for depth, node in rows:
        if node.path.is_root:
            print(_bold("/"))
            continue
        label = node.name + "/" if node.is_directory else node.name
        if node.path == target:
            label = _green(label)
        elif not node.is_directory:
            label = _dim(label)
        print(f"{'  ' * depth}{label}")

    if result.error is not None:
        print(_red(f"Could not open {result.failed_at}: {result.error}"), file=sys.stderr)
        sys.exit(1)


# --- Mutations ---

def cmd_mkdir(args: Namespace) -> None:
    """Create a folder."""
    path = as_path(args.path)

    async def body(session: DriveSession):
        return await session.mutations.create_folder(path.parent, path.name)

    created = _run(args, body)
    print(f"{_green('Created')} {created}/")


def cmd_touch(args: Namespace) -> None:
    """Create an empty file."""
    path = as_path(args.path)

    async def body(session: DriveSession):
        return await session.mutations.create_file(path.parent, path.name)

    created = _run(args, body)
    print(f"{_green('Created')} {created}")


def cmd_mv(args: Namespace) -> None:
    """Rename or move an entry."""
    old = as_path(args.source)
    new = as_path(args.destination)

    async def body(session: DriveSession):
        return await session.mutations.rename(old, new)

    moved = _run(args, body)
    print(f"{_green('Moved')} {old} -> {moved}")


def cmd_rm(args: Namespace) -> None:
    """Delete a file, or a folder with everything below it."""
    path = as_path(args.path)

    async def body(session: DriveSession):
        await session.mutations.delete(path)

    _run(args, body)
    print(f"{_green('Deleted')} {path}")


def cmd_upload(args: Namespace) -> None:
    """Upload a local file into a remote folder."""
    local = Path(args.file)
    if not local.is_file():
        print(_red(f"Not a file: {local}"), file=sys.stderr)
        sys.exit(1)
    parent = as_path(args.destination or "/")
    name = args.name or local.name

    async def body(session: DriveSession):
        content = await trio.Path(local).read_bytes()
        return await session.mutations.upload(parent, name, content)

    uploaded = _run(args, body)
    print(f"{_green('Uploaded')} {local} -> {uploaded}")


def cmd_download(args: Namespace) -> None:
    """Download a remote file."""
    remote = as_path(args.path)
    if remote.is_root:
        print(_red("Cannot download the root folder"), file=sys.stderr)
        sys.exit(1)
    destination = Path(args.output) if args.output else Path(remote.name)
    if destination.is_dir():
        destination = destination / remote.name

    async def body(session: DriveSession):
        return await session.client.download_file(remote, destination)

    written = _run(args, body)
    print(f"{_green('Downloaded')} {remote} -> {destination} ({_format_size(written)})")


# --- Setup ---

def cmd_config(args: Namespace) -> None:
    """Show current configuration with the token masked, or set one key."""
    if getattr(args, "set", None):
        key, value = args.set
        try:
            set_config_value(key, value)
        except KeyError:
            print(_red(f"Unknown config key: {key}"), file=sys.stderr)
            sys.exit(1)
        except ValueError as e:
            print(_red(f"Invalid value for {key}: {e}"), file=sys.stderr)
            sys.exit(1)
        print(f"{_green('Set')} {key} = {value}")
        return

    path = get_config_path()
    exists = _green("(exists)") if path.exists() else _yellow("(not found, using defaults)")
    print(f"\n{_bold('config:')} {path} {exists}")

    config = load_config()
    token = config.access_token
    print(f"  api_url:         {config.api_url}")
    print(f"  access_token:    {_mask_secret(token) if token else '(not set)'}")
    print(f"  request_timeout: {config.request_timeout}")
    print(f"  tree.show_files: {config.tree.show_files}")
    print(f"  listing.sort_by: {config.listing.sort_by}")
    print(f"  listing.reverse: {config.listing.reverse}")

    if read_config_file() is None and path.exists():
        print(f"\n  {_red('config.json could not be parsed')}")
    print()


def cmd_status(args: Namespace) -> None:
    """Show version, config location and API reachability."""
    ver = _get_version()
    config = _config_for(args)

    print(f"\n{_bold(f'drive-tree {ver}')}\n")
    path = get_config_path()
    if not path.exists():
        print(f"Config:  {_dim('(defaults, no config.json)')}")
    else:
        print(f"Config:  {path}")

    reachable, detail = _test_api(config.api_url, config.access_token)
    if reachable:
        print(f"API:     {config.api_url} {_green('reachable')} {_dim(detail)}")
    else:
        print(f"API:     {config.api_url} {_red('unreachable')} {_dim(detail)}")
    print()
