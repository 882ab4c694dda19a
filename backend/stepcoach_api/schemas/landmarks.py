"""
Landmark & Scoring API Schemas

Pydantic models for landmark frames and the per-frame scores returned to the
frontend, plus the WebSocket message types.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from enum import Enum


class LandmarkSchema(BaseModel):
    """
    Single landmark as sent by the detection engine.

    Coordinates are normalized to the image (roughly 0.0 to 1.0).
    """
    x: float = Field(..., description="Horizontal position (0=left, 1=right)")
    y: float = Field(..., description="Vertical position (0=top, 1=bottom)")
    z: float = Field(0.0, description="Depth (negative=closer to camera)")
    visibility: float = Field(1.0, description="Detection confidence")

    class Config:
        json_schema_extra = {
            "example": {
                "x": 0.45,
                "y": 0.32,
                "z": -0.15,
                "visibility": 0.95
            }
        }


class LandmarkFrameSchema(BaseModel):
    """
    One detector frame: body, hands and face groups.

    Any group may be omitted. Body must hold 33 points when present.
    """
    body: Optional[List[LandmarkSchema]] = Field(None, description="33 body landmarks")
    left_hand: Optional[List[LandmarkSchema]] = Field(None, description="Up to 21 hand landmarks")
    right_hand: Optional[List[LandmarkSchema]] = Field(None, description="Up to 21 hand landmarks")
    face: Optional[List[LandmarkSchema]] = Field(None, description="Face mesh landmarks (468/478)")
    timestamp_ms: int = Field(0, ge=0, description="Capture timestamp in milliseconds")
    frame_number: int = Field(0, ge=0, description="Sequential frame number")

    class Config:
        json_schema_extra = {
            "example": {
                "body": [
                    {"x": 0.5, "y": 0.2, "z": 0.0, "visibility": 0.99}
                ],
                "face": None,
                "timestamp_ms": 1500,
                "frame_number": 45
            }
        }


class ExpressionLabelEnum(str, Enum):
    """Expression labels for API."""
    NEUTRAL = "Neutral"
    SURPRISE = "Surprise"
    JOY = "Joy"
    ANGER = "Anger"


class PostureResultSchema(BaseModel):
    """
    Posture score breakdown for one frame.
    """
    spine_score: float = Field(..., ge=0, le=100, description="Nose over hip midpoint")
    shoulder_score: float = Field(..., ge=0, le=100, description="Shoulder level")
    arm_score: float = Field(..., ge=0, le=100, description="Elbow spread vs target")
    overall: int = Field(..., ge=0, le=100, description="Weighted overall score")
    grade: str = Field(..., description="Letter grade (A-F)")
    timestamp_ms: int = Field(..., description="Frame timestamp")

    class Config:
        json_schema_extra = {
            "example": {
                "spine_score": 92.5,
                "shoulder_score": 88.0,
                "arm_score": 70.0,
                "overall": 86,
                "grade": "B",
                "timestamp_ms": 1500
            }
        }


class ExpressionResultSchema(BaseModel):
    """
    Expression label for one frame.
    """
    label: ExpressionLabelEnum = Field(..., description="Detected expression")
    intensity: float = Field(..., description="Ratio that triggered the label (0 for Neutral)")
    timestamp_ms: int = Field(..., description="Frame timestamp")


class FrameScoreResponse(BaseModel):
    """
    Response from single-frame scoring.

    Either result may be null when its landmarks were missing; ``errors``
    says why.
    """
    posture: Optional[PostureResultSchema] = Field(None, description="Posture score")
    expression: Optional[ExpressionResultSchema] = Field(None, description="Expression label")
    errors: Dict[str, str] = Field(default_factory=dict, description="Failed stage -> message")
    processing_time_ms: float = Field(..., description="Time taken to score in milliseconds")


# =============================================================================
# WebSocket Message Schemas
# =============================================================================

class WebSocketMessageType(str, Enum):
    """Types of WebSocket messages."""
    # Client -> Server
    SETUP = "setup"                    # Select dance + lecture
    START = "start"                    # Start recording
    FRAME = "frame"                    # Landmark frame from the detector
    STOP = "stop"                      # Stop recording and save
    CANCEL = "cancel"                  # Abort without saving
    END_SESSION = "end_session"        # Close the connection

    # Server -> Client
    CONNECTED = "connected"
    FRAME_SCORED = "frame_scored"
    SESSION_STATE_CHANGED = "session_state_changed"
    SESSION_PERSISTED = "session_persisted"
    SESSION_FAILED = "session_failed"
    SESSION_VERIFIED = "session_verified"
    ERROR = "error"


class SetupMessage(BaseModel):
    """
    Payload of a ``setup`` message.
    """
    dance_id: str = Field(..., min_length=1, description="Dance form")
    lecture_id: str = Field(..., min_length=1, description="Lecture within the dance form")
