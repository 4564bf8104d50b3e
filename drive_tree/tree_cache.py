"""
Lazy, path-keyed mirror of the remote directory tree.

Cache contract:
  - Loaded node        → children served from memory, no request
  - Unloaded / Error   → exactly one list_directory() call, concurrent callers join it
  - invalidate(path)   → only that node drops its children; ancestors, siblings and
                         descendants keep theirs
  - invalidate("all")  → every node reverts to Unloaded

Children are replaced wholesale on every load. Entries that disappeared from a
listing are pruned together with their cached subtree; entries that survive keep
their own load state.
"""

import logging
import time
from typing import Optional

import trio

from .api_client import NamespaceClient
from .errors import NamespaceError
from .invalidation import InvalidationBus
from .models import ALL, EntryInfo, InvalidationEvent, LoadState, Node
from .paths import ROOT, NamespacePath, PathLike, as_path

log = logging.getLogger(__name__)


class _PendingLoad:
    """One in-flight listing that later callers wait on."""

    def __init__(self):
        self.done = trio.Event()
        self.children: Optional[list[Node]] = None
        self.error: Optional[NamespaceError] = None


class TreeCache:
    """In-memory tree of Nodes keyed by NamespacePath, rooted at ROOT."""

    def __init__(self, client: NamespaceClient, bus: Optional[InvalidationBus] = None):
        self._client = client
        self._nodes: dict[NamespacePath, Node] = {ROOT: Node(path=ROOT)}

        # Per-path single-flight guard
        self._inflight: dict[NamespacePath, _PendingLoad] = {}
        # Bumped by every invalidation of a path; an in-flight load compares
        # generations to detect that its response predates an invalidation
        self._generations: dict[NamespacePath, int] = {}

        self.requests = 0  # list_directory calls issued (diagnostics)

        if bus is not None:
            self.attach(bus)

    def attach(self, bus: InvalidationBus) -> None:
        """Subscribe to invalidation events."""
        bus.subscribe(self._on_invalidation)

    def _on_invalidation(self, event: InvalidationEvent) -> None:
        self.invalidate(event.scope)

    # ── Reads (no I/O) ───────────────────────────────────────────────────

    def get_node(self, path: PathLike) -> Optional[Node]:
        return self._nodes.get(as_path(path))

    def __contains__(self, path) -> bool:
        return as_path(path) in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def children_of(self, path: PathLike) -> Optional[list[Node]]:
        """Cached children of a Loaded node, or None if not loaded."""
        node = self._nodes.get(as_path(path))
        if node is None or node.children is None or not node.is_loaded:
            return None
        return [self._nodes[child] for child in node.children]

    def loaded_paths(self) -> list[NamespacePath]:
        return sorted(p for p, n in self._nodes.items() if n.is_loaded)

    def is_loading(self, path: PathLike) -> bool:
        return as_path(path) in self._inflight

    def check_ancestry(self) -> list[NamespacePath]:
        """Loaded paths with an ancestor that is missing or was never loaded.

        Empty list when the cache is consistent.
        """
        orphans = []
        for path, node in self._nodes.items():
            if not node.is_loaded:
                continue
            for ancestor in path.ancestors()[:-1]:
                parent = self._nodes.get(ancestor)
                if parent is None or parent.loaded_at is None:
                    orphans.append(path)
                    break
        return sorted(orphans)

    # ── Loading ──────────────────────────────────────────────────────────

    async def ensure_loaded(self, path: PathLike) -> list[Node]:
        """Return the children of path, listing it only if not already loaded.

        Ancestors that never completed a load are listed first, root-first.
        Raises the NamespaceError of the failed listing (an ancestor's error
        included); the node is left in ERROR and the next call retries.
        """
        path = as_path(path)
        if not path.is_root:
            parent = self._nodes.get(path.parent)
            if parent is None or parent.loaded_at is None:
                # Ancestors first, one at a time, so no Loaded node is cached without them
                log.debug(f"Loading ancestry of {path}")
                await self.ensure_loaded(path.parent)

        while True:
            node = self._nodes.get(path)
            if node is not None and node.is_loaded:
                log.debug(f"Cache hit: {path}")
                return self.children_of(path)

            pending = self._inflight.get(path)
            if pending is None:
                return await self._load(path)

            log.debug(f"Joining in-flight load: {path}")
            await pending.done.wait()
            if pending.error is not None:
                raise pending.error
            if pending.children is not None:
                return pending.children
            # Owner was cancelled before finishing; loop and take over

    async def _load(self, path: NamespacePath) -> list[Node]:
        pending = _PendingLoad()
        self._inflight[path] = pending

        node = self._nodes.get(path)
        if node is None:
            node = Node(path=path)
            self._nodes[path] = node
        node.load_state = LoadState.LOADING

        try:
            while True:
                generation = self._generations.get(path, 0)
                self.requests += 1
                try:
                    entries = await self._client.list_directory(path)
                except NamespaceError as e:
                    node.load_state = LoadState.ERROR
                    node.children = None
                    node.error = e
                    pending.error = e
                    log.warning(f"Failed to list {path}: {e}")
                    raise
                if generation == self._generations.get(path, 0):
                    break
                log.debug(f"Listing of {path} invalidated while in flight, refetching")

            if self._nodes.get(path) is not node:
                # Pruned or reset while in flight: answer the callers, keep the map clean
                node.load_state = LoadState.LOADED
                log.debug(f"Discarding listing of {path}: node left the cache")
                children = [
                    Node(path=NamespacePath(path.segments + (e.name,)),
                         is_directory=e.is_directory, entry=e)
                    for e in entries
                ]
            else:
                children = self._store(node, entries)
            pending.children = children
            return children
        finally:
            if node.load_state is LoadState.LOADING:
                # Cancelled or unexpected failure: leave the node retryable
                node.load_state = LoadState.UNLOADED
            if self._inflight.get(path) is pending:
                del self._inflight[path]
            pending.done.set()

    def _store(self, node: Node, entries: list[EntryInfo]) -> list[Node]:
        """Replace node's children with one listing result."""
        path = node.path
        new_children: list[NamespacePath] = []
        seen = set()
        for entry in entries:
            child_path = NamespacePath(path.segments + (entry.name,))
            if child_path in seen:
                continue
            seen.add(child_path)
            new_children.append(child_path)

            child = self._nodes.get(child_path)
            if child is None or child.is_directory != entry.is_directory:
                if child is not None:
                    self._prune(child_path)
                child = Node(path=child_path, is_directory=entry.is_directory)
                self._nodes[child_path] = child
            child.entry = entry

        # node.children is already None after an invalidation, so vanished
        # entries are found by scanning the map for anything below path
        depth = path.depth + 1
        vanished = {NamespacePath(p.segments[:depth]) for p in self._nodes
                    if path.is_ancestor_of(p)} - seen
        for stale in vanished:
            self._prune(stale)

        node.children = tuple(new_children)
        node.load_state = LoadState.LOADED
        node.error = None
        node.loaded_at = time.time()
        log.debug(f"Stored {path}: {len(new_children)} children")
        return [self._nodes[child] for child in new_children]

    def _prune(self, path: NamespacePath) -> None:
        """Drop path and everything cached below it."""
        doomed = [p for p in self._nodes if p == path or path.is_ancestor_of(p)]
        for p in doomed:
            del self._nodes[p]
        if doomed:
            log.debug(f"Pruned {len(doomed)} node(s) under {path}")

    # ── Invalidation ─────────────────────────────────────────────────────

    def invalidate(self, scope) -> None:
        """Forget the children of one path, or of every path for "all"."""
        if scope == ALL:
            for path in list(self._nodes):
                self._invalidate_one(path)
            log.info("Tree cache: invalidated all nodes")
            return

        path = as_path(scope)
        if path not in self._nodes:
            return
        self._invalidate_one(path)
        log.debug(f"Tree cache: invalidated {path}")

    def _invalidate_one(self, path: NamespacePath) -> None:
        self._generations[path] = self._generations.get(path, 0) + 1
        node = self._nodes[path]
        node.children = None
        node.error = None
        if path not in self._inflight:
            node.load_state = LoadState.UNLOADED

    def reset(self) -> None:
        """Drop everything except an Unloaded root.

        Loads in flight keep answering their own callers but no longer
        store anything or take new joiners.
        """
        self._nodes = {ROOT: Node(path=ROOT)}
        self._inflight.clear()
        # _generations is kept: older loads still compare against those counters
        log.info("Tree cache reset")
