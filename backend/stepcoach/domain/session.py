"""
Session Domain Models

A Session is one continuous recording attempt for a dance/lecture pair.
A SessionSummary is the immutable digest of a finished session and the unit
that gets persisted.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from .results import ScoredFrame


class SessionState(Enum):
    """
    Recording lifecycle states.

    - IDLE: nothing selected
    - ARMED: dance + lecture selected, waiting for start
    - RECORDING: frames are being appended
    - FINALIZING: frames frozen, summary being computed and stored
    - COMPLETED / ABORTED: terminal, the machine resets to IDLE afterwards
    """
    IDLE = "idle"
    ARMED = "armed"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABORTED)


class Trend(Enum):
    """Direction of the overall score across a session."""
    IMPROVING = "improving"
    STEADY = "steady"
    DECLINING = "declining"


@dataclass
class Session:
    """
    A recording attempt.

    Only the session machine mutates ``frames``; everyone else gets a
    snapshot via :meth:`snapshot`.
    """
    id: str
    dance_id: str
    lecture_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    frames: list[ScoredFrame] = field(default_factory=list)
    status: SessionState = SessionState.RECORDING

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    def snapshot(self) -> "Session":
        """Copy that shares no mutable state with this session."""
        return replace(self, frames=list(self.frames))


@dataclass(frozen=True)
class SessionSummary:
    """
    Aggregated result of a finished session.

    Attributes:
        session_id: Session this summary belongs to
        dance_id: Dance form the session was recorded for
        lecture_id: Lecture within the dance form
        duration_ms: ended_at - started_at
        average_score: mean overall posture score, rounded half up
        peak_score: highest overall posture score
        verified: set by the external verification authority
        created_at: when the summary was produced
        frame_count: number of recorded frames
        trend: score direction from the first to the last third of the session
    """
    session_id: str
    dance_id: str
    lecture_id: str
    duration_ms: int
    average_score: int
    peak_score: int
    verified: bool
    created_at: datetime
    frame_count: int = 0
    trend: Trend = Trend.STEADY

    def with_verified(self, verified: bool) -> "SessionSummary":
        return replace(self, verified=verified)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation used by the session store."""
        return {
            "session_id": self.session_id,
            "dance_id": self.dance_id,
            "lecture_id": self.lecture_id,
            "duration_ms": self.duration_ms,
            "average_score": self.average_score,
            "peak_score": self.peak_score,
            "verified": self.verified,
            "created_at": self.created_at.isoformat(),
            "frame_count": self.frame_count,
            "trend": self.trend.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionSummary":
        return cls(
            session_id=data["session_id"],
            dance_id=data["dance_id"],
            lecture_id=data["lecture_id"],
            duration_ms=int(data["duration_ms"]),
            average_score=int(data["average_score"]),
            peak_score=int(data["peak_score"]),
            verified=bool(data["verified"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            frame_count=int(data.get("frame_count", 0)),
            trend=Trend(data.get("trend", Trend.STEADY.value)),
        )
