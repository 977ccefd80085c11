"""Local filesystem blob store.

Stores objects as files under a data root with optional namespace prefix::

    {data_root}/{prefix}/objects/{key}

When prefix is None, the path collapses to::

    {data_root}/objects/{key}

Uses ``anyio.to_thread.run_sync`` for non-blocking file I/O.  Progress
callbacks are marshalled back onto the event loop with
``anyio.from_thread.run_sync`` so observers never run on a worker thread.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed to the target path.  Readers never see a half-written image.
Objects are served back by the ``/objects/{key}`` route of the app, so
:meth:`LocalBlobStore.url` joins the key onto the public base URL.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from functools import partial
from pathlib import Path, PurePosixPath
from urllib.parse import quote

from anyio import from_thread, to_thread

from sharenight.backend.store.base import ProgressCallback


class LocalBlobStore:
    """Local filesystem implementation of the BlobStore protocol."""

    def __init__(
        self,
        data_root: str | Path,
        prefix: str | None = None,
        *,
        base_url: str = "http://localhost:8000",
        chunk_size: int = 256 * 1024,
    ) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "objects"
        self._base_url = base_url.rstrip("/")
        self._chunk_size = chunk_size

    def path_for(self, key: str) -> Path:
        """Resolve *key* to a file path.  Raises ``ValueError`` on traversal."""
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            msg = f"Invalid object key: {key!r}"
            raise ValueError(msg)
        return self._base.joinpath(*relative.parts)

    # -- Write -----------------------------------------------------------------

    async def put(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "image/jpeg",
        on_progress: ProgressCallback | None = None,
    ) -> None:
        path = self.path_for(key)
        report = None
        if on_progress is not None:
            report = partial(from_thread.run_sync, on_progress)
        await to_thread.run_sync(partial(_atomic_write, path, data, self._chunk_size, report))

    # -- Read ------------------------------------------------------------------

    async def read(self, key: str) -> bytes:
        path = self.path_for(key)
        return await to_thread.run_sync(path.read_bytes)

    async def url(self, key: str) -> str:
        if not await self.exists(key):
            msg = f"Object not found: {key}"
            raise FileNotFoundError(msg)
        return f"{self._base_url}/objects/{quote(key, safe='/')}"

    # -- Utilities -------------------------------------------------------------

    async def exists(self, key: str) -> bool:
        path = self.path_for(key)
        return await to_thread.run_sync(path.is_file)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        await to_thread.run_sync(partial(path.unlink, missing_ok=True))


# -- Sync helpers (run in thread pool) -----------------------------------------


def _atomic_write(path: Path, data: bytes, chunk_size: int, report: ProgressCallback | None) -> None:
    """Write data atomically in chunks: temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    total = len(data)
    try:
        with os.fdopen(fd, "wb") as f:
            written = 0
            if report is not None:
                report(0, total)
            while written < total:
                chunk = data[written : written + chunk_size]
                f.write(chunk)
                written += len(chunk)
                if report is not None:
                    report(written, total)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
