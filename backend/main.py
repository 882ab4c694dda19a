"""
StepCoach Backend API

FastAPI application for dance practice posture and expression scoring.

Run with:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000

API docs available at:
    http://localhost:8000/docs (Swagger UI)
    http://localhost:8000/redoc (ReDoc)
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stepcoach import config
from stepcoach.services import SessionStore, MockVerifier, create_storage
from stepcoach_api.routes import router as api_router
from stepcoach_api.websocket import websocket_endpoint, ConnectionManager

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=config.LOG_LEVEL,
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan (startup/shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown hook.

    Builds the shared session store and verifier before the app starts
    accepting requests.
    """
    # Startup
    logger.info(" StepCoach API starting up...")

    store = SessionStore(create_storage())
    verifier = MockVerifier()
    app.state.session_store = store
    app.state.connection_manager = ConnectionManager(store, verifier)

    logger.info(f" Session storage: {type(store.storage).__name__}")
    logger.info(" API docs: http://localhost:8000/docs")
    logger.info(" WebSocket: ws://localhost:8000/ws/practice")

    yield  # App runs here

    # Shutdown
    logger.info(" StepCoach API shutting down...")
    store.storage.close()


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="StepCoach API",
    description="""
    **Dance Practice Coach**

    Live posture and expression scoring from detector landmarks, with
    recorded practice sessions and history.

    ## Endpoints

    - `GET /api/health` - Health check
    - `POST /api/frames/score` - Score a single landmark frame
    - `GET /api/sessions` - Session history (optionally per dance)
    - `GET /api/sessions/{session_id}` - One stored session
    - `POST /api/sessions/{session_id}/verification` - Verification verdict
    - `WS /ws/practice` - Live practice stream

    ## WebSocket Protocol

    Connect to `/ws/practice` and send commands as JSON:
```json
    {"type": "setup", "data": {"dance_id": "salsa", "lecture_id": "basic-step"}, "timestamp": 0}
    {"type": "start", "data": {}, "timestamp": 0}
    {"type": "frame", "data": {"body": [...], "face": [...], "timestamp_ms": 0}, "timestamp": 0}
    {"type": "stop", "data": {}, "timestamp": 0}
```
    """,
    version=config.API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# =============================================================================
# CORS Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Routes
# =============================================================================

# REST routes live under /api
app.include_router(api_router, prefix="/api")

# Live practice stream
app.websocket("/ws/practice")(websocket_endpoint)


# =============================================================================
# Root endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Service name, version and where to find the rest of the API.
    """
    return {
        "name": "StepCoach API",
        "version": config.API_VERSION,
        "description": "Dance Practice Coach",
        "docs": "/docs",
        "health": "/api/health",
        "websocket": "ws://localhost:8000/ws/practice"
    }


# =============================================================================
# Run directly (for development)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
