"""FastAPI application entry point."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.errors import LineageError

logger = logging.getLogger(__name__)


def build_workspace():
    """Wire the production repository, processor client and publisher."""
    from app.core.database import async_session_factory
    from app.core.workspace import LineageWorkspace
    from pipeline.lineage.events import StatusPublisher
    from pipeline.lineage.processor import RemoteProcessorClient
    from pipeline.lineage.repository import SqlVersionRepository

    return LineageWorkspace(
        repository=SqlVersionRepository(async_session_factory),
        processor=RemoteProcessorClient(),
        publisher=StatusPublisher(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown events."""
    # --- Startup ---
    logger.info("Starting Version Lineage API v0.1.0...")

    owns_workspace = getattr(app.state, "workspace", None) is None
    if owns_workspace:
        from app.core.database import engine
        from app.models import Base
        from sqlalchemy.exc import SQLAlchemyError

        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database connection OK")
        except SQLAlchemyError as exc:
            logger.error("Database connection failed: %s", exc)
            raise

        app.state.workspace = build_workspace()

    logger.info("Version Lineage API started successfully")
    yield

    # --- Shutdown ---
    await app.state.workspace.shutdown()
    if owns_workspace:
        from app.core.database import engine

        await engine.dispose()
        app.state.workspace = None
    logger.info("Version Lineage API shut down")


app = FastAPI(
    title="Version Lineage API",
    description="Dataset version lineage, preprocessing pipeline orchestration and lineage tree layout.",
    version="0.1.0",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:3000", "http://localhost"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LineageError)
async def lineage_error_handler(request: Request, exc: LineageError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# Include routers
from app.api.versions import router as versions_router

app.include_router(versions_router, prefix="/api")


@app.get("/api/health", tags=["Health"])
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "version": "0.1.0"}


# ────────────────────────────────────────────────────────
# WebSocket: real-time version status
# ────────────────────────────────────────────────────────

@app.websocket("/api/ws/version/{version_id}")
async def ws_version_status(websocket: WebSocket, version_id: int):
    """WebSocket endpoint relaying polled version status via Redis pub/sub."""
    from pipeline.lineage.events import version_channel

    await websocket.accept()
    logger.info("WebSocket connected for version: %s", version_id)

    redis_client = aioredis.from_url(settings.REDIS_URL)
    pubsub = redis_client.pubsub()
    channel = version_channel(version_id)

    try:
        await pubsub.subscribe(channel)

        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message and message["type"] == "message":
                data = message["data"]
                if isinstance(data, bytes):
                    data = data.decode("utf-8")
                await websocket.send_text(data)

                try:
                    parsed = json.loads(data)
                    if parsed.get("terminal"):
                        break
                except json.JSONDecodeError:
                    pass

            await asyncio.sleep(0.1)

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected for version: %s", version_id)
    except RedisError as exc:
        logger.error("WebSocket error for version %s: %s", version_id, exc)
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        await redis_client.aclose()
