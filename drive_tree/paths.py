"""
Namespace paths.

A path is the ordered tuple of decoded segments from the namespace root.
The root is the empty tuple. Identity, hashing and comparison use the decoded
segments only; percent-encoding happens exclusively when a request target is
composed for the HTTP API.

    NamespacePath.parse("/docs/my%20file") == NamespacePath.parse("docs/my file/")
"""

from dataclasses import dataclass
from typing import Iterable, Union
from urllib.parse import quote, unquote

from .errors import InvalidName

# Names the remote store refuses (it rejects any path containing "..")
_RESERVED_NAMES = frozenset({".", ".."})
_FORBIDDEN_CHARS = ("/", "\\", "\x00")


def validate_name(name: str) -> str:
    """Check a single entry name and return it unchanged."""
    if not name or not name.strip():
        raise InvalidName("Name cannot be empty")
    if name in _RESERVED_NAMES:
        raise InvalidName(f"Invalid name: {name!r}")
    for ch in _FORBIDDEN_CHARS:
        if ch in name:
            raise InvalidName(f"Name may not contain {ch!r}: {name!r}")
    return name


@dataclass(frozen=True, order=True)
class NamespacePath:
    """Decoded path of an entry in the remote namespace."""
    segments: tuple[str, ...] = ()

    def __post_init__(self):
        # Accept lists from callers, store a tuple so the path stays hashable
        if not isinstance(self.segments, tuple):
            object.__setattr__(self, "segments", tuple(self.segments))
        for segment in self.segments:
            if not segment:
                raise InvalidName("Path segments cannot be empty")

    @classmethod
    def parse(cls, text: str) -> "NamespacePath":
        """Parse a slash separated, possibly percent-encoded path."""
        parts = [unquote(part) for part in text.replace("\\", "/").split("/") if part]
        return cls(tuple(parts))

    @property
    def is_root(self) -> bool:
        return not self.segments

    @property
    def name(self) -> str:
        """Last segment ("" for the root)."""
        return self.segments[-1] if self.segments else ""

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def key(self) -> str:
        """Canonical joined form, used in logs and JSON payloads."""
        return "/".join(self.segments)

    @property
    def parent(self) -> "NamespacePath":
        """Parent directory. The root is its own parent."""
        if not self.segments:
            return self
        return NamespacePath(self.segments[:-1])

    def child(self, name: str) -> "NamespacePath":
        return NamespacePath(self.segments + (validate_name(name),))

    def ancestors(self) -> list["NamespacePath"]:
        """Root-first list of paths from the root down to (and including) self."""
        return [NamespacePath(self.segments[:i]) for i in range(len(self.segments) + 1)]

    def is_ancestor_of(self, other: "NamespacePath") -> bool:
        """True if other lies strictly below self."""
        n = len(self.segments)
        return len(other.segments) > n and other.segments[:n] == self.segments

    def encoded(self) -> str:
        """Request target form: every segment percent-encoded on its own."""
        return "/".join(quote(segment, safe="") for segment in self.segments)

    def __str__(self) -> str:
        return "/" + self.key


ROOT = NamespacePath()

PathLike = Union[NamespacePath, str, Iterable[str]]


def as_path(value: PathLike) -> NamespacePath:
    """Coerce user input (path object, string or segment list) to a NamespacePath."""
    if isinstance(value, NamespacePath):
        return value
    if isinstance(value, str):
        return NamespacePath.parse(value)
    return NamespacePath(tuple(value))
