"""
API Schemas

Pydantic models for request/response validation.
"""

from .landmarks import (
    LandmarkSchema,
    LandmarkFrameSchema,
    ExpressionLabelEnum,
    PostureResultSchema,
    ExpressionResultSchema,
    FrameScoreResponse,
    WebSocketMessageType,
    SetupMessage,
)

from .sessions import (
    TrendEnum,
    SessionSummarySchema,
    SessionListResponse,
    VerificationRequest,
    HealthResponse,
)

__all__ = [
    # Landmark schemas
    "LandmarkSchema",
    "LandmarkFrameSchema",
    "ExpressionLabelEnum",
    "PostureResultSchema",
    "ExpressionResultSchema",
    "FrameScoreResponse",
    "WebSocketMessageType",
    "SetupMessage",
    # Session schemas
    "TrendEnum",
    "SessionSummarySchema",
    "SessionListResponse",
    "VerificationRequest",
    "HealthResponse",
]
