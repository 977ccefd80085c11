"""Screenshot upload workflow.

One :class:`UploadWorkflow` drives one user's submission through::

    idle -> validating -> uploading(progress 0..1) -> persisting -> done -> idle

with ``error`` reachable from the three working states.  Validation failures
return the machine to ``idle`` right after reporting; transport and
persistence failures leave it in ``error`` until the next submission.

The workflow knows nothing about the database: the record write is handed in
as a ``persist`` coroutine so that the caller decides how the screenshot row
is created.  If ``persist`` fails, the freshly written object is deleted as a
compensating action so no unreferenced payload is left behind.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from loguru import logger

from sharenight.backend.managers.imaging import DEFAULT_JPEG_QUALITY, ImageEncodingError, encode_jpeg
from sharenight.backend.models.entities import SCREENSHOT_COMMENT_MAX_LENGTH
from sharenight.backend.models.enums import UploadState

if TYPE_CHECKING:
    from sharenight.backend.store.base import BlobStore

    Observer = Callable[[UploadWorkflow], None]
    Persist = Callable[[str, str | None], Awaitable[R]]

R = TypeVar("R")

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

_BUSY = (UploadState.VALIDATING, UploadState.UPLOADING, UploadState.PERSISTING)


class UploadError(Exception):
    """A submission failed.  ``stage`` is the state the failure happened in."""

    def __init__(self, stage: UploadState, message: str) -> None:
        super().__init__(message)
        self.stage = stage
        self.message = message


class UploadInProgressError(RuntimeError):
    """Raised when submitting while a previous submission is still running."""


def validate_comment(comment: str | None) -> str | None:
    """Normalise an optional screenshot comment.  Empty means no comment."""
    if not comment:
        return None
    if len(comment) > SCREENSHOT_COMMENT_MAX_LENGTH:
        msg = f"Comment must be {SCREENSHOT_COMMENT_MAX_LENGTH} characters or fewer"
        raise ValueError(msg)
    return comment


class UploadWorkflow:
    """State machine for a single uploader's screenshot submissions.

    Observers are called synchronously on every state or progress change with
    the workflow itself, so they can read ``state``, ``progress`` and
    ``error``.
    """

    def __init__(
        self,
        store: BlobStore,
        key: str,
        *,
        max_bytes: int = MAX_UPLOAD_BYTES,
        encoder: Callable[[bytes], bytes] | None = None,
        quality: int = DEFAULT_JPEG_QUALITY,
    ) -> None:
        self._store = store
        self.key = key
        self.max_bytes = max_bytes
        self._encoder = encoder or (lambda data: encode_jpeg(data, quality))
        self._observers: list[Observer] = []

        self.state = UploadState.IDLE
        self.progress = 0.0
        self.error: str | None = None

    # -- Observation -----------------------------------------------------------

    def observe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a function that removes it."""
        self._observers.append(observer)
        return lambda: self._observers.remove(observer) if observer in self._observers else None

    @property
    def is_uploading(self) -> bool:
        return self.state in _BUSY

    def _transition(self, state: UploadState) -> None:
        logger.debug("Upload {}: {} -> {}", self.key, self.state, state)
        self.state = state
        self._notify()

    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self)

    def _on_progress(self, done: int, total: int) -> None:
        self.progress = done / total if total else 1.0
        self._notify()

    def _fail(self, stage: UploadState, message: str) -> UploadError:
        self.error = message
        self._transition(UploadState.ERROR)
        return UploadError(stage, message)

    # -- Run -------------------------------------------------------------------

    async def submit(
        self,
        image: bytes,
        comment: str | None,
        persist: Persist[R],
        *,
        discard_on_failure: bool = True,
    ) -> R:
        """Validate, upload and persist one screenshot.

        Returns whatever *persist* returns.  Raises ``UploadError`` on any
        failure and ``UploadInProgressError`` if a submission is running.
        Pass ``discard_on_failure=False`` when an existing record already
        points at ``key``, so a failed re-upload does not remove its object.
        """
        if self.is_uploading:
            raise UploadInProgressError(self.key)

        self.error = None
        self.progress = 0.0
        self._transition(UploadState.VALIDATING)
        try:
            payload, comment = self._validate(image, comment)
        except UploadError:
            raise
        except Exception as exc:
            logger.warning("Upload {}: validation crashed: {!r}", self.key, exc)
            raise self._reject("Failed to convert the image") from exc

        self._transition(UploadState.UPLOADING)
        try:
            await self._store.put(self.key, payload, content_type="image/jpeg", on_progress=self._on_progress)
        except Exception as exc:
            logger.warning("Upload {}: transfer failed: {}", self.key, exc)
            raise self._fail(UploadState.UPLOADING, f"Upload failed: {exc}") from exc

        self._transition(UploadState.PERSISTING)
        try:
            url = await self._store.url(self.key)
            result = await persist(url, comment)
        except Exception as exc:
            logger.warning("Upload {}: saving the record failed: {}", self.key, exc)
            if discard_on_failure:
                await self._discard_object()
            raise self._fail(UploadState.PERSISTING, f"Failed to save: {exc}") from exc

        self._transition(UploadState.DONE)
        self._transition(UploadState.IDLE)
        return result

    def _validate(self, image: bytes, comment: str | None) -> tuple[bytes, str | None]:
        try:
            payload = self._encoder(image)
        except ImageEncodingError as exc:
            raise self._reject("Failed to convert the image") from exc

        if len(payload) > self.max_bytes:
            size_mb = len(payload) / 1024 / 1024
            limit_mb = self.max_bytes / 1024 / 1024
            raise self._reject(f"File is too large ({size_mb:.1f}MB / {limit_mb:g}MB)")

        try:
            comment = validate_comment(comment)
        except ValueError as exc:
            raise self._reject(str(exc)) from None
        return payload, comment

    def _reject(self, message: str) -> UploadError:
        error = self._fail(UploadState.VALIDATING, message)
        self._transition(UploadState.IDLE)
        return error

    async def _discard_object(self) -> None:
        try:
            await self._store.delete(self.key)
        except Exception as exc:
            logger.warning("Upload {}: could not remove orphaned object: {}", self.key, exc)
