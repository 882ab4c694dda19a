"""
Domain Models

Pure data structures representing dance practice scoring concepts.
No external dependencies - just Python dataclasses and enums.
"""

from .landmarks import Landmark, LandmarkFrame, BodyPart, FacePoint
from .results import (
    ExpressionLabel,
    ExpressionResult,
    ExpressionSignals,
    PostureResult,
    ScoredFrame,
)
from .session import Session, SessionState, SessionSummary, Trend
from .events import (
    Event,
    FrameScored,
    SessionStateChanged,
    SessionPersisted,
    SessionFailed,
    SessionVerified,
)
from .errors import (
    StepCoachError,
    FrameError,
    InvalidFrame,
    MissingBodyLandmarks,
    MissingFaceLandmarks,
    SessionError,
    EmptySession,
    PersistenceFailure,
    InvalidTransition,
    NotFound,
)

__all__ = [
    "Landmark",
    "LandmarkFrame",
    "BodyPart",
    "FacePoint",
    "ExpressionLabel",
    "ExpressionResult",
    "ExpressionSignals",
    "PostureResult",
    "ScoredFrame",
    "Session",
    "SessionState",
    "SessionSummary",
    "Trend",
    "Event",
    "FrameScored",
    "SessionStateChanged",
    "SessionPersisted",
    "SessionFailed",
    "SessionVerified",
    "StepCoachError",
    "FrameError",
    "InvalidFrame",
    "MissingBodyLandmarks",
    "MissingFaceLandmarks",
    "SessionError",
    "EmptySession",
    "PersistenceFailure",
    "InvalidTransition",
    "NotFound",
]
