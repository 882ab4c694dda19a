"""
Practice Engine Service

High-level service that wires normalizer, scorers, session machine,
aggregator, store and verifier together for one practice client.

This is the single ingestion entry point for landmark frames.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from ..domain.results import PostureResult, ExpressionResult, ScoredFrame
from ..domain.session import Session, SessionState, SessionSummary
from ..domain.events import FrameScored, SessionFailed, SessionPersisted, SessionVerified
from ..domain.errors import (
    SessionError,
    EmptySession,
    PersistenceFailure,
    InvalidFrame,
    MissingBodyLandmarks,
    MissingFaceLandmarks,
    NotFound,
)
from .event_bus import EventBus
from .landmark_normalizer import LandmarkNormalizer
from .posture_scorer import PostureScorer
from .expression_classifier import ExpressionClassifier
from .score_aggregator import ScoreAggregator, RunningStats
from .session_machine import SessionMachine
from .session_store import SessionStore
from .verification import Verifier

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class FrameOutcome:
    """
    What happened to one ingested frame.

    ``errors`` maps the failed stage ("frame", "posture", "expression") to
    its message. A frame is recorded only when both signals succeeded and
    the session is recording.
    """
    posture: Optional[PostureResult] = None
    expression: Optional[ExpressionResult] = None
    errors: dict[str, str] = field(default_factory=dict)
    recorded: bool = False

    @property
    def is_partial(self) -> bool:
        return bool(self.errors) and (self.posture is not None or self.expression is not None)


class PracticeEngine:
    """
    Scores a live landmark stream and runs the recording lifecycle.

    Frame processing is synchronous and never blocks; finalization awaits
    the store in a worker thread so the caller's event loop keeps serving
    frames while a session is being saved.

    Usage:
        engine = PracticeEngine(store, verifier=MockVerifier())
        engine.bus.subscribe(FrameScored, on_frame)

        engine.setup("salsa", "basic-step")
        engine.start()
        for raw in detector_output:
            engine.ingest(raw)
        summary = await engine.stop()
    """

    def __init__(
        self,
        store: SessionStore,
        verifier: Optional[Verifier] = None,
        bus: Optional[EventBus] = None,
        normalizer: Optional[LandmarkNormalizer] = None,
        posture_scorer: Optional[PostureScorer] = None,
        expression_classifier: Optional[ExpressionClassifier] = None,
        aggregator: Optional[ScoreAggregator] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.verifier = verifier
        self.bus = bus or EventBus()
        self.normalizer = normalizer or LandmarkNormalizer()
        self.posture_scorer = posture_scorer or PostureScorer()
        self.expression_classifier = expression_classifier or ExpressionClassifier()
        self.aggregator = aggregator or ScoreAggregator(clock=clock)
        self.machine = SessionMachine(self.bus, clock=clock)
        self._stats = RunningStats()

    @property
    def state(self) -> SessionState:
        return self.machine.state

    # -------------------------------------------------------------------------
    # Lifecycle Commands
    # -------------------------------------------------------------------------

    def setup(self, dance_id: str, lecture_id: str) -> None:
        self.machine.setup(dance_id, lecture_id)

    def start(self) -> Session:
        self._stats = RunningStats()
        return self.machine.start()

    def cancel(self) -> bool:
        self._stats = RunningStats()
        return self.machine.cancel()

    def close(self) -> None:
        """Drop any unfinished session (client went away)."""
        if not self.machine.state.is_terminal and self.machine.state is not SessionState.IDLE:
            self.cancel()

    async def stop(self) -> Optional[SessionSummary]:
        """
        Stop recording, aggregate, persist and verify.

        Returns:
            The stored summary, or None if the session was aborted
            (empty, storage failure, or cancelled while saving)
        """
        frozen = self.machine.stop()
        return await self._finalize(frozen)

    # -------------------------------------------------------------------------
    # Frame Ingestion
    # -------------------------------------------------------------------------

    def ingest(self, raw: Any) -> FrameOutcome:
        """
        Score one frame from the detector and record it if recording.

        Per-frame problems never raise: they are reported in the outcome
        and the FrameScored event carries whatever signal did succeed.
        """
        outcome = FrameOutcome()

        try:
            frame = self.normalizer.normalize(raw)
        except InvalidFrame as e:
            logger.warning(f"Skipping invalid frame: {e}")
            outcome.errors["frame"] = str(e)
            self.bus.publish(FrameScored(
                posture=None,
                expression=None,
                running_average=self._stats.average,
                peak=self._stats.peak,
            ))
            return outcome

        try:
            outcome.posture = self.posture_scorer.score(frame)
        except MissingBodyLandmarks as e:
            outcome.errors["posture"] = str(e)

        try:
            outcome.expression = self.expression_classifier.classify(frame)
        except MissingFaceLandmarks as e:
            outcome.errors["expression"] = str(e)

        if outcome.posture is not None and outcome.expression is not None:
            outcome.recorded = self.machine.append(
                ScoredFrame(posture=outcome.posture, expression=outcome.expression)
            )
            if outcome.recorded:
                self._stats.add(outcome.posture.overall)

        self.bus.publish(FrameScored(
            posture=outcome.posture,
            expression=outcome.expression,
            recorded=outcome.recorded,
            running_average=self._stats.average,
            peak=self._stats.peak,
        ))
        return outcome

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    async def _finalize(self, frozen: Session) -> Optional[SessionSummary]:
        try:
            summary = self.aggregator.summarize(frozen)
        except EmptySession as e:
            self._abort(frozen.id, e)
            return None

        try:
            await asyncio.to_thread(self.store.save, summary)
        except PersistenceFailure as e:
            if self._is_finalizing(frozen.id):
                self._abort(frozen.id, e)
            return None

        if not self._is_finalizing(frozen.id):
            # Cancelled while the save was in flight: roll it back
            try:
                await asyncio.to_thread(self.store.delete, summary.session_id)
            except NotFound:
                pass
            logger.info(f"Session {frozen.id} cancelled during finalize, summary discarded")
            return None

        self.machine.complete()
        self.bus.publish(SessionPersisted(summary=summary))
        logger.info(f"Session {summary.session_id} completed: "
                    f"avg={summary.average_score} peak={summary.peak_score} "
                    f"frames={summary.frame_count}")

        if self.verifier is not None:
            summary = await self._verify(summary)
        return summary

    async def _verify(self, summary: SessionSummary) -> SessionSummary:
        """Ask the verification authority and record its verdict."""
        try:
            verified = await self.verifier.verify(summary.session_id)
        except Exception as e:
            logger.warning(f"Verification of {summary.session_id} failed: {e}")
            return summary

        try:
            updated = await asyncio.to_thread(self.store.mark_verified, summary.session_id, verified)
        except NotFound:
            logger.warning(f"Session {summary.session_id} disappeared before verification")
            return summary
        except PersistenceFailure as e:
            logger.error(f"Could not store verification for {summary.session_id}: {e}")
            return summary

        self.bus.publish(SessionVerified(session_id=summary.session_id, verified=verified))
        return updated

    def _is_finalizing(self, session_id: str) -> bool:
        return (
            self.machine.state is SessionState.FINALIZING
            and self.machine.session_id == session_id
        )

    def _abort(self, session_id: str, error: SessionError) -> None:
        logger.error(f"Session {session_id} failed ({error.reason}): {error}")
        self.machine.fail(error.reason)
        self.bus.publish(SessionFailed(
            reason=error.reason,
            session_id=session_id,
            message=str(error),
        ))
