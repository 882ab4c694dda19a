"""
REST API Routes

FastAPI routes for dance practice scoring.
Handles single-frame scoring, session history and verification callbacks.
"""

import time
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from .schemas import (
    LandmarkFrameSchema,
    FrameScoreResponse,
    SessionSummarySchema,
    SessionListResponse,
    VerificationRequest,
    HealthResponse,
)
from .serializers import posture_to_schema, expression_to_schema, summary_to_schema
from stepcoach import config
from stepcoach.domain import (
    InvalidFrame,
    MissingBodyLandmarks,
    MissingFaceLandmarks,
    NotFound,
    PersistenceFailure,
)
from stepcoach.services import (
    SessionStore,
    LandmarkNormalizer,
    PostureScorer,
    ExpressionClassifier,
)

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter()

# Stateless scorers shared by every request
normalizer = LandmarkNormalizer()
posture_scorer = PostureScorer()
expression_classifier = ExpressionClassifier()


# Store calls take a lock and do I/O, so handlers that use the store are
# plain functions and run in FastAPI's threadpool, off the event loop.

def get_store(request: Request) -> SessionStore:
    """Session store created in the app lifespan."""
    return request.app.state.session_store


# =============================================================================
# Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Health check endpoint"
)
def health_check(store: SessionStore = Depends(get_store)) -> HealthResponse:
    """
    Check if the API is running and session storage is readable.

    Returns:
        Health status and version information
    """
    storage_ok = True
    detail = None
    try:
        store.list()
    except PersistenceFailure as e:
        logger.warning(f"Session storage not readable: {e}")
        storage_ok = False
        detail = str(e)

    return HealthResponse(
        status="healthy" if storage_ok else "degraded",
        version=config.API_VERSION,
        storage_backend=type(store.storage).__name__,
        storage_ok=storage_ok,
        detail=detail,
    )


# =============================================================================
# Frame Scoring
# =============================================================================

@router.post(
    "/frames/score",
    response_model=FrameScoreResponse,
    tags=["Scoring"],
    summary="Score a single landmark frame"
)
async def score_frame(request: LandmarkFrameSchema) -> FrameScoreResponse:
    """
    Score posture and expression for one landmark frame.

    This endpoint is useful for:
    - Testing scoring on captured frames
    - Clients that do not record sessions

    For live practice, use the WebSocket endpoint instead.

    Returns:
        Posture and expression results; a missing body or face only blanks
        that half of the response
    """
    start_time = time.time()

    try:
        frame = normalizer.normalize(request.model_dump())
    except InvalidFrame as e:
        raise HTTPException(status_code=422, detail=str(e))

    errors = {}
    posture = None
    expression = None

    try:
        posture = posture_scorer.score(frame)
    except MissingBodyLandmarks as e:
        errors["posture"] = str(e)

    try:
        expression = expression_classifier.classify(frame)
    except MissingFaceLandmarks as e:
        errors["expression"] = str(e)

    processing_time = (time.time() - start_time) * 1000

    return FrameScoreResponse(
        posture=posture_to_schema(posture),
        expression=expression_to_schema(expression),
        errors=errors,
        processing_time_ms=processing_time,
    )


# =============================================================================
# Session History
# =============================================================================

@router.get(
    "/sessions",
    response_model=SessionListResponse,
    tags=["Sessions"],
    summary="List stored practice sessions"
)
def list_sessions(
    dance_id: Optional[str] = Query(None, description="Only sessions for this dance form"),
    store: SessionStore = Depends(get_store),
) -> SessionListResponse:
    """
    Session history, newest first.
    """
    try:
        summaries = store.list(dance_id)
    except PersistenceFailure as e:
        logger.error(f"Listing sessions failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return SessionListResponse(
        sessions=[summary_to_schema(s) for s in summaries],
        count=len(summaries),
    )


@router.get(
    "/sessions/{session_id}",
    response_model=SessionSummarySchema,
    tags=["Sessions"],
    summary="Get one stored session"
)
def get_session(
    session_id: str,
    store: SessionStore = Depends(get_store),
) -> SessionSummarySchema:
    try:
        summary = store.get(session_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceFailure as e:
        logger.error(f"Reading session {session_id} failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return summary_to_schema(summary)


@router.post(
    "/sessions/{session_id}/verification",
    response_model=SessionSummarySchema,
    tags=["Sessions"],
    summary="Record a verification verdict"
)
def mark_verified(
    session_id: str,
    request: VerificationRequest,
    store: SessionStore = Depends(get_store),
) -> SessionSummarySchema:
    """
    Update hook for the external verification authority.
    """
    try:
        summary = store.mark_verified(session_id, request.verified)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceFailure as e:
        logger.error(f"Storing verification for {session_id} failed: {e}")
        raise HTTPException(status_code=507, detail=str(e))

    return summary_to_schema(summary)
