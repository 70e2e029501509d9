from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import player, playlists, websocket
from app.config import get_settings
from app.core.logging import setup_logging, get_logger
from app.services.player_session import SessionRegistry
from app.services.websocket_manager import WebSocketManager

# Configure logging before anything else
setup_logging()
logger = get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: sweep player sessions whose tab went away
    logger.info("Application startup: starting idle session sweeper...")
    app.state.registry.start_sweeper(settings.session_idle_seconds, app.state.websockets.is_connected)

    yield

    # Shutdown: stop the sweeper and drop all sessions
    logger.info("Application shutdown: stopping idle session sweeper...")
    await app.state.registry.stop_sweeper()
    logger.info(f"Dropped {len(app.state.registry.sessions)} player sessions")


app = FastAPI(
    title="Player Session Server",
    description="Backend for browser music player sessions and user playlists",
    version="1.0.0",
    debug=settings.debug,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)
app.state.registry = SessionRegistry()
app.state.websockets = WebSocketManager()

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API v1 endpoints
app.include_router(player.router, prefix=f"{settings.api_v1_prefix}/player", tags=["Player"])
app.include_router(
    playlists.router,
    prefix=f"{settings.api_v1_prefix}/player/{{session_id}}/playlists",
    tags=["Playlists"]
)
app.include_router(websocket.router, tags=["WebSocket"])


@app.get("/")
async def root():
    return {"message": "Welcome to Player Session Server!", "status": "running"}


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "sessions": len(app.state.registry.sessions),
        "connections": app.state.websockets.get_connection_count()
    }
