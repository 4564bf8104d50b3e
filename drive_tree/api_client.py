"""HTTP API client for the remote drive namespace."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import httpx
import trio

from .errors import NamespaceError, TransportError, error_for_status
from .models import EntryInfo
from .paths import NamespacePath, validate_name

log = logging.getLogger(__name__)


class NamespaceClient(ABC):
    """Contract the tree cache and views consume. No caching happens here."""

    @abstractmethod
    async def list_directory(self, path: NamespacePath) -> list[EntryInfo]:
        """Entries of one directory, in server order."""

    @abstractmethod
    async def create_entry(self, parent: NamespacePath, name: str, is_directory: bool) -> None:
        """Create an empty file or a directory named name inside parent.

        The drive server truncates an existing file and keeps an existing
        directory; callers that must not overwrite check first.
        """

    @abstractmethod
    async def rename_entry(self, old: NamespacePath, new: NamespacePath) -> None:
        """Move old to new. The drive server replaces an existing destination."""

    @abstractmethod
    async def delete_entry(self, path: NamespacePath) -> None:
        """Delete a file, or a directory with everything below it."""

    @abstractmethod
    async def upload_file(self, parent: NamespacePath, name: str, content: Union[bytes, str]) -> None:
        """Store content as parent/name; str content is sent as UTF-8."""

    @abstractmethod
    async def download_file(self, path: NamespacePath, destination: Path) -> int:
        """Write the bytes of path to destination, return the byte count."""

    async def close(self) -> None:
        """Release transport resources."""


def _parse_modified(value) -> Optional[datetime]:
    """Server timestamps come as epoch seconds or ISO-8601 strings."""
    if value is None:
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        if isinstance(value, str):
            parsed = datetime.fromisoformat(value)
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except (ValueError, OverflowError, OSError):
        log.debug(f"Ignoring unparseable modified time: {value!r}")
    return None


def _parse_entry(item: dict) -> Optional[EntryInfo]:
    name = item.get("name")
    if not name:
        return None
    is_dir = bool(item.get("is_dir", item.get("is_directory", False)))
    size = item.get("size")
    return EntryInfo(
        name=name,
        is_directory=is_dir,
        size=None if is_dir or size is None else int(size),
        modified=_parse_modified(item.get("modified")),
    )


class DriveClient(NamespaceClient):
    """Async HTTP client for the drive REST API."""

    def __init__(self, api_url: str, access_token: str = "", timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout

        self._transport = transport  # Injected in tests (httpx.MockTransport)
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    async def _request(self, method: str, url: str, path, **kwargs) -> httpx.Response:
        """Send one request, translating failures into NamespaceError."""
        client = await self._get_client()
        try:
            response = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {url} failed: {e}", path=path) from e

        if response.status_code >= 400:
            raise error_for_status(response.status_code, path, response.text[:200])
        return response

    # ── Listing ──────────────────────────────────────────────────────────

    async def list_directory(self, path: NamespacePath) -> list[EntryInfo]:
        url = "/uploads" if path.is_root else f"/uploads/{path.encoded()}"
        response = await self._request("GET", url, path)
        try:
            data = response.json()
        except ValueError as e:
            raise NamespaceError(f"Malformed listing for {path}", path=path) from e

        if isinstance(data, dict):
            data = data.get("entries", [])

        entries = []
        for item in data:
            entry = _parse_entry(item)
            if entry is not None:
                entries.append(entry)
        log.debug(f"Listed {path}: {len(entries)} entries")
        return entries

    # ── Mutations ────────────────────────────────────────────────────────

    async def create_entry(self, parent: NamespacePath, name: str, is_directory: bool) -> None:
        target = parent.child(name)
        # Trailing slash tells the server to create a directory
        suffix = "/" if is_directory else ""
        await self._request("POST", f"/create_path/{target.encoded()}{suffix}", target)

    async def rename_entry(self, old: NamespacePath, new: NamespacePath) -> None:
        await self._request(
            "POST",
            "/rename",
            old,
            json={"old_path": old.key, "new_path": new.key},
        )

    async def delete_entry(self, path: NamespacePath) -> None:
        await self._request("DELETE", f"/delete/{path.encoded()}", path)

    # ── Transfers ────────────────────────────────────────────────────────

    async def upload_file(self, parent: NamespacePath, name: str, content: Union[bytes, str]) -> None:
        validate_name(name)
        url = "/upload/" if parent.is_root else f"/upload/{parent.encoded()}"
        if isinstance(content, str):
            content = content.encode("utf-8")
        await self._request("POST", url, parent.child(name), files={"file": (name, content)})

    async def download_file(self, path: NamespacePath, destination: Path) -> int:
        client = await self._get_client()
        url = f"/download/{path.encoded()}"
        written = 0
        try:
            async with client.stream("GET", url, headers=self._headers()) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise error_for_status(response.status_code, path, response.text[:200])
                async with await trio.open_file(destination, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
                        written += len(chunk)
        except httpx.TransportError as e:
            raise TransportError(f"GET {url} failed: {e}", path=path) from e
        log.info(f"Downloaded {path} -> {destination} ({written} bytes)")
        return written

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
