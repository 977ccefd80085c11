from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, HTTPException, status
from fastapi.responses import FileResponse
from fastapi.routing import APIRouter
from loguru import logger
from sse_starlette.sse import AppStatus

from sharenight.backend.db.engine import create_engine, create_session_factory
from sharenight.backend.feed.base import ChangeFeed
from sharenight.backend.feed.memory import MemoryChangeFeed
from sharenight.backend.feed.pubsub import RedisChangeFeed
from sharenight.backend.log import setup_logging
from sharenight.backend.managers.screenshots import ScreenshotManager
from sharenight.backend.settings import ShareNightSettings, get_settings
from sharenight.backend.store.base import BlobStore
from sharenight.backend.store.local import LocalBlobStore


def _create_blob_store(settings: ShareNightSettings) -> BlobStore:
    """Create the blob store backend based on configuration."""
    if settings.blob_store == "s3":
        from sharenight.backend.store.s3 import S3BlobStore

        if not settings.s3_bucket:
            msg = "SHARENIGHT_S3_BUCKET is required when SHARENIGHT_BLOB_STORE=s3"
            raise RuntimeError(msg)
        return S3BlobStore(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint,
            access_key=settings.s3_access_key,
            secret_key=settings.s3_secret_key.get_secret_value() if settings.s3_secret_key else None,
            prefix=settings.data_prefix,
            region=settings.s3_region,
            path_style=settings.s3_path_style,
        )
    return LocalBlobStore(
        settings.data_root,
        prefix=settings.data_prefix,
        base_url=settings.public_base_url,
        chunk_size=settings.upload_chunk_size,
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, json=settings.log_json, log_file=settings.log_file)

    logger.info("ShareNight backend starting (host={}, port={})", settings.host, settings.port)
    prefix_info = f", prefix={settings.data_prefix}" if settings.data_prefix else ""
    logger.info("Data root: {} (store={}{})", settings.data_root, settings.blob_store, prefix_info)

    # -- Initialise state fields (always present, possibly None) ----------------
    _app.state.db_engine = None
    _app.state.db_session_factory = None
    _app.state.redis = None
    _app.state.screenshot_manager = None

    # -- Database --------------------------------------------------------------
    if settings.database_url:
        engine = create_engine(settings.database_url)
        _app.state.db_engine = engine
        _app.state.db_session_factory = create_session_factory(engine)
        logger.info("PostgreSQL: connected (pool_size=5, max_overflow=10)")
    else:
        logger.warning("SHARENIGHT_DATABASE_URL not set -- database features disabled")

    # -- Change feed -----------------------------------------------------------
    feed: ChangeFeed
    if settings.redis_url:
        _app.state.redis = aioredis.from_url(
            settings.redis_url,
            decode_responses=False,
            socket_connect_timeout=5,
            retry_on_timeout=True,
        )
        feed = RedisChangeFeed(_app.state.redis)
        logger.info("Redis: connected, live updates shared across workers")
    else:
        feed = MemoryChangeFeed()
        logger.warning("SHARENIGHT_REDIS_URL not set -- live updates are in-process only")
    _app.state.change_feed = feed

    # -- SSE -------------------------------------------------------------------
    # Let live streams finish on their own; the feed is closed on shutdown.
    AppStatus.disable_automatic_graceful_drain()

    # -- Screenshot manager ----------------------------------------------------
    store = _create_blob_store(settings)
    _app.state.blob_store = store
    if _app.state.db_session_factory is not None:
        _app.state.screenshot_manager = ScreenshotManager(
            store,
            feed,
            max_upload_bytes=settings.max_upload_bytes,
            jpeg_quality=settings.jpeg_quality,
        )
        logger.info("ScreenshotManager: initialised")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("ShareNight backend shutting down")

    # Closing the feed ends every live subscription, which ends the SSE streams.
    await feed.aclose()
    AppStatus.should_exit = True

    if _app.state.redis is not None:
        await _app.state.redis.aclose()
        logger.info("Redis: closed")

    if _app.state.db_engine is not None:
        await _app.state.db_engine.dispose()
        logger.info("PostgreSQL: disposed")


app = FastAPI(title="ShareNight", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from sharenight.backend.routers.auth import router as auth_router  # noqa: E402
from sharenight.backend.routers.comments import router as comments_router  # noqa: E402
from sharenight.backend.routers.live import router as live_router  # noqa: E402
from sharenight.backend.routers.screenshots import router as screenshots_router  # noqa: E402
from sharenight.backend.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(auth_router)
api.include_router(workspaces_router)
api.include_router(screenshots_router)
api.include_router(comments_router)
api.include_router(live_router)

app.include_router(api)


# ---------------------------------------------------------------------------
# Object serving for the local blob store
# ---------------------------------------------------------------------------


@app.get("/objects/{key:path}")
async def serve_object(key: str) -> FileResponse:
    """Serve a screenshot stored by ``LocalBlobStore``."""
    store = getattr(app.state, "blob_store", None)
    if not isinstance(store, LocalBlobStore):
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Objects are not served by this instance.")
    try:
        path = store.path_for(key)
    except ValueError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Object not found.") from None
    if not path.is_file():
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail="Object not found.")
    return FileResponse(path, media_type="image/jpeg")
