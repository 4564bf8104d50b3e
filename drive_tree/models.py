"""Data models for the namespace tree cache."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .errors import NamespaceError
from .paths import NamespacePath


@dataclass(frozen=True)
class EntryInfo:
    """One row of a directory listing as returned by the server."""
    name: str
    is_directory: bool
    size: Optional[int] = None
    modified: Optional[datetime] = None


class LoadState(Enum):
    """Load status of a directory node.

    UNLOADED: never fetched, or invalidated
    LOADING:  exactly one listing request in flight
    LOADED:   children reflect one completed listing
    ERROR:    last listing failed; the next ensure_loaded retries
    """
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass
class Node:
    """Local representation of one namespace entry.

    children is None while the node is not loaded; an empty tuple means
    "loaded, no entries". Children are stored as paths (node identities),
    the Node objects themselves live in the cache mapping.
    """
    path: NamespacePath
    is_directory: bool = True
    children: Optional[tuple[NamespacePath, ...]] = None
    load_state: LoadState = LoadState.UNLOADED
    entry: Optional[EntryInfo] = None  # Listing metadata from the parent's listing
    error: Optional[NamespaceError] = None
    loaded_at: Optional[float] = None  # Time of the last completed load (None = never)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_loaded(self) -> bool:
        return self.load_state is LoadState.LOADED


ALL = "all"


@dataclass(frozen=True)
class InvalidationEvent:
    """The listing of scope may have changed (or everything, for ALL)."""
    scope: Union[NamespacePath, str]

    @classmethod
    def everything(cls) -> "InvalidationEvent":
        return cls(scope=ALL)

    @property
    def is_global(self) -> bool:
        return self.scope == ALL

    def covers(self, path: NamespacePath) -> bool:
        """True if the listing of path must be treated as stale."""
        return self.is_global or self.scope == path


@dataclass
class ExpansionState:
    """Expanded paths in the tree view, plus paths loaded at least once."""
    expanded: set[NamespacePath] = field(default_factory=set)
    loaded: set[NamespacePath] = field(default_factory=set)

    def is_expanded(self, path: NamespacePath) -> bool:
        return path in self.expanded


@dataclass
class ExpansionResult:
    """Outcome of one ancestor walk."""
    target: NamespacePath
    loaded: list[NamespacePath] = field(default_factory=list)
    failed_at: Optional[NamespacePath] = None
    error: Optional[NamespaceError] = None
    abandoned: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.abandoned
