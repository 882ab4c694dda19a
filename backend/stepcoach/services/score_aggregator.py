"""
Score Aggregator Service

Reduces the frozen frame sequence of a finished session to a SessionSummary,
and keeps the running numbers shown during recording.
"""

import math
from datetime import datetime
from typing import Callable, Optional, Sequence

import numpy as np

from .. import config
from ..domain.results import ScoredFrame
from ..domain.session import Session, SessionSummary, Trend
from ..domain.errors import EmptySession


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up."""
    return math.floor(value + 0.5)


class RunningStats:
    """Incremental average and peak of the overall score while recording."""

    def __init__(self):
        self.count = 0
        self.total = 0
        self.peak: Optional[int] = None

    def add(self, overall: int) -> None:
        self.count += 1
        self.total += overall
        self.peak = overall if self.peak is None else max(self.peak, overall)

    @property
    def average(self) -> Optional[float]:
        if self.count == 0:
            return None
        return self.total / self.count


class ScoreAggregator:
    """
    Builds session summaries.

    Usage:
        aggregator = ScoreAggregator()
        summary = aggregator.summarize(frozen_session)
    """

    def __init__(
        self,
        trend_threshold: float = config.TREND_THRESHOLD,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.trend_threshold = trend_threshold
        self.clock = clock

    def summarize(self, session: Session) -> SessionSummary:
        """
        Aggregate a frozen session.

        Raises:
            EmptySession: the session recorded no frames
        """
        if not session.frames:
            raise EmptySession(f"Session {session.id} recorded no frames")

        scores = np.array([frame.posture.overall for frame in session.frames], dtype=np.float64)

        ended_at = session.ended_at or session.started_at
        duration_ms = int((ended_at - session.started_at).total_seconds() * 1000)

        return SessionSummary(
            session_id=session.id,
            dance_id=session.dance_id,
            lecture_id=session.lecture_id,
            duration_ms=max(0, duration_ms),
            average_score=round_half_up(float(scores.mean())),
            peak_score=int(scores.max()),
            verified=False,
            created_at=self.clock(),
            frame_count=len(session.frames),
            trend=self.trend(session.frames),
        )

    def trend(self, frames: Sequence[ScoredFrame]) -> Trend:
        """
        Compare the mean score of the first third with the last third.

        Sessions shorter than three frames are always steady.
        """
        if len(frames) < 3:
            return Trend.STEADY

        third = len(frames) // 3
        first = np.mean([f.posture.overall for f in frames[:third]])
        last = np.mean([f.posture.overall for f in frames[-third:]])
        delta = float(last - first)

        if delta > self.trend_threshold:
            return Trend.IMPROVING
        elif delta < -self.trend_threshold:
            return Trend.DECLINING
        return Trend.STEADY
