"""
Listing view binding: flat contents of the current directory.

Independent of the tree cache: the listing needs files and directories with
their metadata, the tree only needs directory structure. Both share the
invalidation bus and the NamespacePath encoding.

Latest request wins: each fetch takes a sequence number and a response that
is no longer the newest is dropped, so rapid navigation never shows the
listing of a directory the user already left.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import trio

from .api_client import NamespaceClient
from .errors import NamespaceError
from .invalidation import InvalidationBus
from .models import EntryInfo, InvalidationEvent
from .paths import ROOT, NamespacePath, PathLike, as_path

log = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

SORT_KEYS = {
    "name": lambda e: e.name.lower(),
    "size": lambda e: e.size or 0,
    "type": lambda e: (not e.is_directory, e.name.lower()),
    "modified": lambda e: e.modified or _EPOCH,
}


class ListingView:
    """Current directory's entries, refetched on navigation and invalidation."""

    def __init__(self, client: NamespaceClient, bus: Optional[InvalidationBus] = None):
        self._client = client
        self.path: NamespacePath = ROOT
        self.entries: Optional[list[EntryInfo]] = None
        self.error: Optional[NamespaceError] = None
        self.stale = True

        self._next_request = 0
        self._latest_request = 0
        self._nursery: Optional[trio.Nursery] = None

        if bus is not None:
            bus.subscribe(self._on_invalidation)

    def set_nursery(self, nursery: trio.Nursery) -> None:
        self._nursery = nursery

    async def navigate(self, path: PathLike) -> list[EntryInfo]:
        """Show path and fetch its listing."""
        self.path = as_path(path)
        self.stale = True
        return await self.reload()

    async def reload(self) -> list[EntryInfo]:
        """Fetch the listing of the current path.

        Returns the entries of this request. If a newer request started in
        the meantime, the view keeps the newer state and this result is only
        returned, not stored.
        """
        self._next_request += 1
        request_id = self._next_request
        self._latest_request = request_id
        path = self.path

        try:
            entries = await self._client.list_directory(path)
        except NamespaceError as e:
            if request_id == self._latest_request:
                self.entries = None
                self.error = e
                self.stale = False
            log.warning(f"Listing of {path} failed: {e}")
            raise

        if request_id != self._latest_request:
            log.debug(f"Dropping superseded listing of {path} (request {request_id})")
            return entries

        self.entries = entries
        self.error = None
        self.stale = False
        return entries

    def _on_invalidation(self, event: InvalidationEvent) -> None:
        if not event.covers(self.path):
            return
        self.stale = True
        if self._nursery is not None:
            self._nursery.start_soon(self._background_reload)

    async def _background_reload(self) -> None:
        try:
            await self.reload()
        except NamespaceError:
            pass  # Stored on self.error by reload()

    def sorted_entries(self, by: str = "type", reverse: bool = False) -> list[EntryInfo]:
        """Entries ordered like the listing table columns."""
        if by not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {by}")
        return sorted(self.entries or [], key=SORT_KEYS[by], reverse=reverse)
