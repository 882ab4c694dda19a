"""
Event Domain Models

Typed messages published on the event bus. Listeners (WebSocket bridge, UI)
receive them read-only.
"""

from dataclasses import dataclass
from typing import Optional

from .results import PostureResult, ExpressionResult
from .session import SessionState, SessionSummary


@dataclass(frozen=True)
class Event:
    """Base class for all bus events."""

    @property
    def type(self) -> str:
        return _EVENT_TYPES[type(self)]


@dataclass(frozen=True)
class FrameScored(Event):
    """
    Live feedback for one frame.

    Either result may be None when that signal failed for this frame.
    ``recorded`` tells whether the pair was appended to the active session.
    """
    posture: Optional[PostureResult]
    expression: Optional[ExpressionResult]
    recorded: bool = False
    running_average: Optional[float] = None
    peak: Optional[int] = None


@dataclass(frozen=True)
class SessionStateChanged(Event):
    from_state: SessionState
    to_state: SessionState
    session_id: Optional[str] = None


@dataclass(frozen=True)
class SessionPersisted(Event):
    summary: SessionSummary


@dataclass(frozen=True)
class SessionFailed(Event):
    reason: str
    session_id: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class SessionVerified(Event):
    session_id: str
    verified: bool


_EVENT_TYPES = {
    FrameScored: "frame_scored",
    SessionStateChanged: "session_state_changed",
    SessionPersisted: "session_persisted",
    SessionFailed: "session_failed",
    SessionVerified: "session_verified",
}
