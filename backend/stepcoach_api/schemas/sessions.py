"""
Session API Schemas

Pydantic models for session history, verification and health responses.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum
from datetime import datetime


class TrendEnum(str, Enum):
    """Score trend across a session."""
    IMPROVING = "improving"
    STEADY = "steady"
    DECLINING = "declining"


class SessionSummarySchema(BaseModel):
    """
    Stored result of one practice session.
    """
    session_id: str = Field(..., description="Unique session ID")
    dance_id: str = Field(..., description="Dance form")
    lecture_id: str = Field(..., description="Lecture within the dance form")
    duration_ms: int = Field(..., ge=0, description="Recording duration in milliseconds")
    average_score: int = Field(..., ge=0, le=100, description="Mean overall posture score")
    peak_score: int = Field(..., ge=0, le=100, description="Best overall posture score")
    verified: bool = Field(..., description="Confirmed by the verification authority")
    created_at: datetime = Field(..., description="When the summary was produced")
    frame_count: int = Field(0, ge=0, description="Recorded frames")
    trend: TrendEnum = Field(TrendEnum.STEADY, description="Score direction over the session")

    class Config:
        json_schema_extra = {
            "example": {
                "session_id": "550e8400-e29b-41d4-a716-446655440000",
                "dance_id": "salsa",
                "lecture_id": "basic-step",
                "duration_ms": 42000,
                "average_score": 78,
                "peak_score": 94,
                "verified": True,
                "created_at": "2024-01-15T10:30:00Z",
                "frame_count": 1260,
                "trend": "improving"
            }
        }


class SessionListResponse(BaseModel):
    """
    Session history, newest first.
    """
    sessions: List[SessionSummarySchema] = Field(default_factory=list, description="Stored sessions")
    count: int = Field(..., ge=0, description="Number of sessions returned")


class VerificationRequest(BaseModel):
    """
    Verdict from the verification authority.
    """
    verified: bool = Field(..., description="Whether the session is confirmed")


class HealthResponse(BaseModel):
    """
    Health check response.
    """
    status: str = Field("healthy", description="Service status")
    version: str = Field(..., description="API version")
    storage_backend: str = Field(..., description="Session storage backend in use")
    storage_ok: bool = Field(..., description="Whether session storage is readable")
    detail: Optional[str] = Field(None, description="Storage error, if any")
