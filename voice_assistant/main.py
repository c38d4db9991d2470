"""Voice Assistant - FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from voice_assistant import __version__
from voice_assistant.config import settings
from voice_assistant.dependencies import get_assistant, verify_api_key
from voice_assistant.mcp_server import mcp_mount
from voice_assistant.routers import auth, health, services, voice

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with mcp_mount.lifespan(app):
        yield
    # Let queued history writes land before the loop closes
    await get_assistant().history.flush()
    logger.info("History flushed, shutting down")


app = FastAPI(
    title="Voice Assistant",
    description="Voice command gateway for Google Calendar, Gmail, YouTube and Amazon Music",
    version=__version__,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = voice.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers (health is public; others require API key when API_KEY is set)
app.include_router(health.router)
app.include_router(
    voice.router, prefix="/voice", tags=["voice"], dependencies=[Depends(verify_api_key)]
)
app.include_router(
    auth.router, prefix="/auth", tags=["auth"], dependencies=[Depends(verify_api_key)]
)
app.include_router(
    services.google_router, prefix="/google", tags=["google"], dependencies=[Depends(verify_api_key)]
)
app.include_router(
    services.youtube_router, prefix="/youtube", tags=["youtube"], dependencies=[Depends(verify_api_key)]
)
app.include_router(
    services.amazon_music_router,
    prefix="/amazon/music",
    tags=["amazon-music"],
    dependencies=[Depends(verify_api_key)],
)

# MCP tools for AI clients (checks API_KEY itself)
app.mount("/mcp/voice-assistant", mcp_mount)
