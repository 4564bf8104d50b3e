"""Lazy directory tree and listing client for a remote drive."""

from .api_client import DriveClient, NamespaceClient
from .errors import (
    AlreadyExists, Conflict, InvalidName, NamespaceError, NotFound,
    PermissionDenied, ServerError, StorageLimitExceeded, TransportError,
)
from .expansion import ExpansionController
from .invalidation import InvalidationBus
from .listing import ListingView
from .models import ALL, EntryInfo, ExpansionResult, ExpansionState, InvalidationEvent, LoadState, Node
from .mutations import Mutations
from .paths import ROOT, NamespacePath, as_path
from .session import DriveSession
from .tree_cache import TreeCache

__version__ = "0.1.0"
