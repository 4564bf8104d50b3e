"""
Drive session: one wired-up set of cache, views and mutations.

Everything in a session shares one InvalidationBus, so a mutation made through
session.mutations reaches the tree cache, the expansion controller and the
listing view without any of them knowing about each other.
"""

import logging
from typing import Optional

import trio

from .api_client import DriveClient, NamespaceClient
from .config import DriveConfig
from .expansion import ExpansionController
from .invalidation import InvalidationBus
from .listing import ListingView
from .models import EntryInfo, ExpansionResult
from .mutations import Mutations
from .paths import PathLike, as_path
from .tree_cache import TreeCache

log = logging.getLogger(__name__)


class DriveSession:
    """Tree cache, expansion controller, listing view and mutations over one client."""

    def __init__(self, client: NamespaceClient, bus: Optional[InvalidationBus] = None):
        self.client = client
        self.bus = bus or InvalidationBus()
        self.cache = TreeCache(client, self.bus)
        self.expansion = ExpansionController(self.cache, self.bus)
        self.listing = ListingView(client, self.bus)
        self.mutations = Mutations(client, self.bus)

    @classmethod
    def from_config(cls, config: DriveConfig) -> "DriveSession":
        client = DriveClient(
            api_url=config.api_url,
            access_token=config.access_token,
            timeout=config.request_timeout,
        )
        return cls(client)

    def set_nursery(self, nursery: trio.Nursery) -> None:
        """Let invalidations trigger background reloads in nursery."""
        self.expansion.set_nursery(nursery)
        self.listing.set_nursery(nursery)

    async def navigate(self, path: PathLike, is_directory: bool = True
                       ) -> tuple[ExpansionResult, Optional[list[EntryInfo]]]:
        """Reveal path in the tree, then fetch its listing.

        The listing is only fetched for a directory whose ancestors all
        loaded; otherwise entries is None. A listing failure is raised
        (and also kept on self.listing.error).
        """
        path = as_path(path)
        result = await self.expansion.navigate(path, is_directory)
        if not result.ok or not is_directory:
            return result, None
        entries = await self.listing.navigate(path)
        return result, entries

    async def close(self) -> None:
        await self.client.close()
