"""Blob store implementations for screenshot payloads."""

from sharenight.backend.store.base import BlobStore, screenshot_key
from sharenight.backend.store.local import LocalBlobStore

__all__ = ["BlobStore", "LocalBlobStore", "screenshot_key"]
