"""
Pytest fixtures for drive-tree tests.

Provides:
- anyio backend pinned to trio (the library runs under trio)
- FakeClient: in-memory NamespaceClient that records calls and can be gated
  or told to fail per path
"""

from pathlib import Path
from typing import Optional, Union

import pytest
import trio

from drive_tree.api_client import NamespaceClient
from drive_tree.errors import NamespaceError, NotFound
from drive_tree.models import EntryInfo
from drive_tree.paths import ROOT, NamespacePath, as_path


@pytest.fixture
def anyio_backend():
    return "trio"


class FakeClient(NamespaceClient):
    """In-memory drive.

    dirs maps every directory path to its entries in insertion (server) order.
    gates[path] holds list_directory(path) until the event is set; the listing
    is snapshotted before waiting, like a response already on the wire.
    fail[path] makes every list_directory(path) raise that error.
    Mutations overwrite an existing destination instead of refusing it, the
    way the drive server does.
    """

    def __init__(self):
        self.dirs: dict[NamespacePath, dict[str, EntryInfo]] = {ROOT: {}}
        self.contents: dict[NamespacePath, bytes] = {}
        self.calls: list[tuple] = []
        self.gates: dict[NamespacePath, trio.Event] = {}
        self.fail: dict[NamespacePath, NamespaceError] = {}
        self.mutation_error: Optional[NamespaceError] = None

    # ── Seeding ──────────────────────────────────────────────────────────

    def add_dir(self, path) -> NamespacePath:
        path = as_path(path)
        for ancestor in path.ancestors()[1:]:
            if ancestor not in self.dirs:
                self.dirs[ancestor.parent][ancestor.name] = EntryInfo(ancestor.name, True)
                self.dirs[ancestor] = {}
        return path

    def add_file(self, path, content: bytes = b"") -> NamespacePath:
        path = as_path(path)
        self.add_dir(path.parent)
        self.dirs[path.parent][path.name] = EntryInfo(path.name, False, size=len(content))
        self.contents[path] = content
        return path

    @property
    def list_calls(self) -> list[NamespacePath]:
        return [c[1] for c in self.calls if c[0] == "list"]

    @property
    def mutation_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] != "list"]

    # ── NamespaceClient ──────────────────────────────────────────────────

    async def list_directory(self, path: NamespacePath) -> list[EntryInfo]:
        self.calls.append(("list", path))
        snapshot = list(self.dirs[path].values()) if path in self.dirs else None
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()
        await trio.lowlevel.checkpoint()
        if path in self.fail:
            raise self.fail[path]
        if snapshot is None:
            raise NotFound(f"HTTP 404 {path}", path=path, status=404)
        return snapshot

    def _check_mutation(self) -> None:
        if self.mutation_error is not None:
            raise self.mutation_error

    async def create_entry(self, parent: NamespacePath, name: str, is_directory: bool) -> None:
        self.calls.append(("create", parent, name, is_directory))
        await trio.lowlevel.checkpoint()
        self._check_mutation()
        if parent not in self.dirs:
            raise NotFound(path=parent, status=404)
        # Like the real server: an existing directory is kept, a file is truncated
        if is_directory:
            self.add_dir(parent.child(name))
        else:
            self._drop(parent.child(name))
            self.add_file(parent.child(name))

    async def rename_entry(self, old: NamespacePath, new: NamespacePath) -> None:
        self.calls.append(("rename", old, new))
        await trio.lowlevel.checkpoint()
        self._check_mutation()
        if old.parent not in self.dirs or old.name not in self.dirs[old.parent]:
            raise NotFound(path=old, status=404)
        if new.parent not in self.dirs:
            raise NotFound(path=new.parent, status=404)
        # Like the real server: the destination is silently replaced
        self._drop(new)

        entry = self.dirs[old.parent].pop(old.name)
        self.dirs[new.parent][new.name] = EntryInfo(new.name, entry.is_directory, entry.size)
        for table in (self.dirs, self.contents):
            for path in [p for p in table if p == old or old.is_ancestor_of(p)]:
                table[NamespacePath(new.segments + path.segments[old.depth:])] = table.pop(path)

    def _drop(self, path: NamespacePath) -> None:
        """Remove path and its subtree if present."""
        self.dirs.get(path.parent, {}).pop(path.name, None)
        for table in (self.dirs, self.contents):
            for p in [p for p in table if p == path or path.is_ancestor_of(p)]:
                del table[p]

    async def delete_entry(self, path: NamespacePath) -> None:
        self.calls.append(("delete", path))
        await trio.lowlevel.checkpoint()
        self._check_mutation()
        if path.parent not in self.dirs or path.name not in self.dirs[path.parent]:
            raise NotFound(path=path, status=404)
        self._drop(path)

    async def upload_file(self, parent: NamespacePath, name: str, content: Union[bytes, str]) -> None:
        self.calls.append(("upload", parent, name, len(content)))
        await trio.lowlevel.checkpoint()
        self._check_mutation()
        if parent not in self.dirs:
            raise NotFound(path=parent, status=404)
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._drop(parent.child(name))
        self.add_file(parent.child(name), content)

    async def download_file(self, path: NamespacePath, destination: Path) -> int:
        self.calls.append(("download", path, destination))
        if path not in self.contents:
            raise NotFound(path=path, status=404)
        data = self.contents[path]
        await trio.Path(destination).write_bytes(data)
        return len(data)


@pytest.fixture
def client() -> FakeClient:
    """
    Drive with:

        /docs/reports/q1.pdf
        /docs/reports/2024/
        /docs/notes.txt
        /photos/
        /readme.txt
    """
    fake = FakeClient()
    fake.add_dir("/docs/reports")
    fake.add_file("/docs/reports/q1.pdf", b"%PDF-1.4")
    fake.add_dir("/docs/reports/2024")
    fake.add_file("/docs/notes.txt", b"remember the milk")
    fake.add_dir("/photos")
    fake.add_file("/readme.txt", b"hello")
    return fake
