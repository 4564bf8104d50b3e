"""
Namespace mutations.

Every mutation goes to the server first; only after it returned success is an
invalidation published for the parent directory of the affected entry (both
parents for a cross-directory rename). Failures publish nothing and are raised
to the caller exactly once.

The server overwrites whatever already sits at a destination, so create and
rename list the destination parent first and refuse a taken name themselves.
Uploads replace on purpose and are not checked.
"""

import logging
from typing import Union

from .api_client import NamespaceClient
from .errors import AlreadyExists, InvalidName
from .invalidation import InvalidationBus, parent_scope
from .paths import NamespacePath, PathLike, as_path, validate_name

log = logging.getLogger(__name__)


class Mutations:
    """Create, rename, delete and upload, followed by scoped invalidation."""

    def __init__(self, client: NamespaceClient, bus: InvalidationBus):
        self._client = client
        self._bus = bus

    async def create_folder(self, parent: PathLike, name: str) -> NamespacePath:
        return await self._create(as_path(parent), name, is_directory=True)

    async def create_file(self, parent: PathLike, name: str) -> NamespacePath:
        return await self._create(as_path(parent), name, is_directory=False)

    async def _create(self, parent: NamespacePath, name: str, is_directory: bool) -> NamespacePath:
        target = parent.child(validate_name(name))
        await self._ensure_free(target)
        await self._client.create_entry(parent, name, is_directory)
        log.info(f"Created {'folder' if is_directory else 'file'}: {target}")
        self._bus.publish_path(parent)
        return target

    async def rename(self, old: PathLike, new: PathLike) -> NamespacePath:
        """Move old to new. An existing destination is AlreadyExists, never overwritten."""
        old = as_path(old)
        new = as_path(new)
        if old.is_root or new.is_root:
            raise InvalidName("Cannot rename the root", path=old)
        validate_name(new.name)
        if old == new:
            return new
        if old.is_ancestor_of(new):
            raise InvalidName(f"Cannot move {old} into itself", path=new)

        await self._ensure_free(new)
        await self._client.rename_entry(old, new)
        log.info(f"Renamed {old} -> {new}")
        self._bus.publish_path(parent_scope(old))
        if parent_scope(new) != parent_scope(old):
            self._bus.publish_path(parent_scope(new))
        return new

    async def _ensure_free(self, target: NamespacePath) -> None:
        """Raise AlreadyExists if target is already listed in its parent."""
        entries = await self._client.list_directory(target.parent)
        if any(e.name == target.name for e in entries):
            log.warning(f"Refusing to overwrite existing {target}")
            raise AlreadyExists(f"{target} already exists", path=target)

    async def delete(self, path: PathLike) -> None:
        path = as_path(path)
        if path.is_root:
            raise InvalidName("Cannot delete the root", path=path)
        await self._client.delete_entry(path)
        log.info(f"Deleted {path}")
        self._bus.publish_path(parent_scope(path))

    async def upload(self, parent: PathLike, name: str, content: Union[bytes, str]) -> NamespacePath:
        """Upload content as parent/name; the invalidation follows the completed upload."""
        parent = as_path(parent)
        target = parent.child(validate_name(name))
        await self._client.upload_file(parent, name, content)
        size = len(content)
        log.info(f"Uploaded {target} ({size} bytes)")
        self._bus.publish_path(parent)
        return target
