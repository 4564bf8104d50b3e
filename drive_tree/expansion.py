"""
Expansion controller: reconciles the tree view with the current location.

navigate(target) walks the ancestors of target root-first and asks the tree
cache to load each one, strictly one after another. Ancestors that are already
loaded cost nothing, so re-navigating inside a known subtree performs no
requests. The walk stops at the first failing ancestor and leaves everything
loaded before it intact.

Only the newest walk may touch the expansion state. An older walk that notices
it was superseded stops issuing loads (the load it is awaiting still completes
and populates the cache).
"""

import logging
from typing import Iterator, Optional

import trio

from .errors import NamespaceError
from .invalidation import InvalidationBus
from .models import ExpansionResult, ExpansionState, InvalidationEvent, Node
from .paths import ROOT, NamespacePath, PathLike, as_path
from .tree_cache import TreeCache

log = logging.getLogger(__name__)


def walk_paths(target: NamespacePath) -> list[NamespacePath]:
    """Paths the tree must load to show target: its proper ancestors, root-first.

    The root target is the one case that loads itself. A non-root target's own
    listing belongs to the listing view.
    """
    if target.is_root:
        return [ROOT]
    return target.ancestors()[:-1]


def expanded_paths(target: NamespacePath, is_directory: bool = True) -> set[NamespacePath]:
    paths = set(target.ancestors())
    if not is_directory:
        paths.discard(target)
    return paths


class ExpansionController:
    """Drives TreeCache loads for navigation and owns the ExpansionState."""

    def __init__(self, cache: TreeCache, bus: Optional[InvalidationBus] = None):
        self.cache = cache
        self.state = ExpansionState()
        self.target: NamespacePath = ROOT
        self._walk_id = 0
        self._nursery: Optional[trio.Nursery] = None
        self._refresh_pending = False

        if bus is not None:
            bus.subscribe(self._on_invalidation)

    def set_nursery(self, nursery: trio.Nursery) -> None:
        """Enable background reloads of expanded paths after invalidations."""
        self._nursery = nursery

    # ── Navigation ───────────────────────────────────────────────────────

    async def navigate(self, target: PathLike, is_directory: bool = True) -> ExpansionResult:
        """Load the ancestors of target in order and expand exactly that path."""
        target = as_path(target)
        self._walk_id += 1
        walk_id = self._walk_id
        self.target = target
        result = ExpansionResult(target=target)
        log.info(f"Navigate: {target}")

        for path in walk_paths(target):
            if walk_id != self._walk_id:
                log.debug(f"Walk to {target} superseded before {path}")
                result.abandoned = True
                return result
            try:
                await self.cache.ensure_loaded(path)
            except NamespaceError as e:
                result.failed_at = path
                result.error = e
                break
            result.loaded.append(path)
            self.state.loaded.add(path)

        if walk_id != self._walk_id:
            result.abandoned = True
            return result

        if result.error is not None:
            log.warning(f"Walk to {target} stopped at {result.failed_at}: {result.error}")
            self.state.expanded = set(result.loaded)
        else:
            self.state.expanded = expanded_paths(target, is_directory)
        return result

    async def expand(self, path: PathLike) -> list[Node]:
        """Load one directory and mark it expanded (tree node opened by hand)."""
        path = as_path(path)
        children = await self.cache.ensure_loaded(path)
        self.state.loaded.add(path)
        self.state.expanded.add(path)
        return children

    def collapse(self, path: PathLike) -> None:
        """Close path and every expanded path below it."""
        path = as_path(path)
        self.state.expanded = {
            p for p in self.state.expanded
            if p != path and not path.is_ancestor_of(p)
        }

    def _forget(self, path: NamespacePath) -> None:
        """Drop path and its subtree from the expansion state entirely."""
        self.collapse(path)
        self.state.loaded = {
            p for p in self.state.loaded
            if p != path and not path.is_ancestor_of(p)
        }

    # ── Invalidation ─────────────────────────────────────────────────────

    def _on_invalidation(self, event: InvalidationEvent) -> None:
        if not event.is_global and event.scope not in self.state.expanded:
            return
        if self._nursery is None or self._refresh_pending:
            return
        self._refresh_pending = True
        self._nursery.start_soon(self._background_refresh)

    async def _background_refresh(self) -> None:
        self._refresh_pending = False
        await self.refresh()

    async def refresh(self) -> list[NamespacePath]:
        """Reload expanded paths that are no longer loaded, root-first.

        Only paths this controller loaded before are candidates. Returns the
        paths that were reloaded. A failing path stops the reload of everything
        below it; siblings still reload.
        """
        reloaded = []
        failed: list[NamespacePath] = []
        candidates = self.state.expanded & self.state.loaded
        for path in sorted(candidates, key=lambda p: (p.depth, p.segments)):
            if any(f.is_ancestor_of(path) for f in failed):
                continue
            node = self.cache.get_node(path)
            if node is not None and node.is_loaded:
                continue
            if node is None and not path.is_root:
                parent = self.cache.get_node(path.parent)
                if parent is not None and parent.is_loaded:
                    # Parent's fresh listing no longer has it (renamed or deleted)
                    self._forget(path)
                    failed.append(path)
                    continue
            try:
                await self.cache.ensure_loaded(path)
            except NamespaceError as e:
                log.warning(f"Reload of expanded {path} failed: {e}")
                failed.append(path)
                continue
            reloaded.append(path)
        if reloaded:
            log.debug(f"Reloaded {len(reloaded)} expanded path(s)")
        return reloaded

    # ── View model ───────────────────────────────────────────────────────

    def visible_tree(self, directories_only: bool = True) -> Iterator[tuple[int, Node]]:
        """(depth, node) rows of the expanded tree in display order, root first."""
        root = self.cache.get_node(ROOT)
        if root is None:
            return
        yield 0, root
        yield from self._visible_children(ROOT, 1, directories_only)

    def _visible_children(self, path: NamespacePath, depth: int,
                          directories_only: bool) -> Iterator[tuple[int, Node]]:
        if path not in self.state.expanded:
            return
        children = self.cache.children_of(path) or []
        for child in children:
            if directories_only and not child.is_directory:
                continue
            yield depth, child
            if child.is_directory:
                yield from self._visible_children(child.path, depth + 1, directories_only)
