"""Blob store interface for screenshot payloads.

The blob store holds the binary image objects; PostgreSQL holds the records
that reference them by URL.  The interface is async to support both local
filesystem and remote (S3) backends.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

ProgressCallback = Callable[[int, int], None]
"""Called with ``(transferred_bytes, total_bytes)`` while an object is written."""


def screenshot_key(workspace_id: str, user_id: str) -> str:
    """Object key for a user's screenshot.  One object per user per workspace."""
    return f"workspaces/{workspace_id}/screenshots/{user_id}.jpg"


@runtime_checkable
class BlobStore(Protocol):
    """Async protocol for writing, locating and deleting binary objects.

    Keys are slash-separated paths such as
    ``workspaces/{workspace_id}/screenshots/{user_id}.jpg``.  Writing an
    existing key overwrites it.
    """

    async def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "image/jpeg",
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Write *data* under *key*, reporting progress as bytes are transferred."""
        ...

    async def read(self, key: str) -> bytes:
        """Read an object.  Raises ``FileNotFoundError`` if not found."""
        ...

    async def url(self, key: str) -> str:
        """Return a retrievable URL for the object."""
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def delete(self, key: str) -> None:
        """Delete an object.  No-op if not found."""
        ...
