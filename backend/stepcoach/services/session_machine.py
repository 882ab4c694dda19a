"""
Session State Machine

Owns the recording lifecycle and the active Session:

    idle -> armed -> recording -> finalizing -> completed | aborted -> idle

``cancel`` moves any non-terminal state straight to aborted. Frames are only
appended while recording; anything arriving in another state is dropped so a
late detection callback cannot leak into the next session.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..domain.results import ScoredFrame
from ..domain.session import Session, SessionState
from ..domain.events import SessionStateChanged
from ..domain.errors import InvalidTransition
from .event_bus import EventBus

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Everything the machine owns. Never handed out directly."""
    state: SessionState = SessionState.IDLE
    dance_id: Optional[str] = None
    lecture_id: Optional[str] = None
    session: Optional[Session] = None


class SessionMachine:
    """
    Recording lifecycle for one practice client.

    Every transition is published on the bus as SessionStateChanged.
    Commands issued in a state that does not accept them raise
    InvalidTransition, except ``append`` (silently ignored) and ``cancel``
    (no-op once terminal).

    Usage:
        machine = SessionMachine(bus)
        machine.setup("salsa", "basic-step")
        machine.start()
        machine.append(scored_frame)
        frozen = machine.stop()
        machine.complete()
    """

    def __init__(
        self,
        bus: EventBus,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.bus = bus
        self.clock = clock
        self.id_factory = id_factory
        self._ctx = SessionContext()

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._ctx.state

    @property
    def session_id(self) -> Optional[str]:
        return self._ctx.session.id if self._ctx.session else None

    @property
    def selection(self) -> tuple[Optional[str], Optional[str]]:
        """Currently selected (dance_id, lecture_id)."""
        return self._ctx.dance_id, self._ctx.lecture_id

    @property
    def session(self) -> Optional[Session]:
        """Copy of the active session, if any."""
        return self._ctx.session.snapshot() if self._ctx.session else None

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def setup(self, dance_id: str, lecture_id: str) -> None:
        """
        Select a dance and lecture (idle -> armed).

        Also accepted after a terminal state, which resets to idle first,
        and while armed, which just changes the selection.
        """
        if not dance_id or not lecture_id:
            raise ValueError("dance_id and lecture_id are required")

        if self.state.is_terminal:
            self.reset()

        if self.state is SessionState.ARMED:
            self._ctx.dance_id, self._ctx.lecture_id = dance_id, lecture_id
            return

        self._require("setup", SessionState.IDLE)
        self._ctx.dance_id, self._ctx.lecture_id = dance_id, lecture_id
        self._transition(SessionState.ARMED)

    def start(self) -> Session:
        """Begin recording (armed -> recording) with a fresh session."""
        self._require("start", SessionState.ARMED)

        self._ctx.session = Session(
            id=self.id_factory(),
            dance_id=self._ctx.dance_id,
            lecture_id=self._ctx.lecture_id,
            started_at=self.clock(),
        )
        self._transition(SessionState.RECORDING)
        logger.info(f"Recording session {self._ctx.session.id} "
                    f"({self._ctx.dance_id}/{self._ctx.lecture_id})")
        return self._ctx.session.snapshot()

    def append(self, frame: ScoredFrame) -> bool:
        """
        Record one scored frame (recording -> recording).

        Returns:
            True if recorded, False if dropped because we are not recording
        """
        if self.state is not SessionState.RECORDING:
            return False
        self._ctx.session.frames.append(frame)
        return True

    def stop(self) -> Session:
        """
        Stop recording (recording -> finalizing).

        Returns:
            Frozen copy of the session with ended_at set
        """
        self._require("stop", SessionState.RECORDING)

        self._ctx.session.ended_at = self.clock()
        self._transition(SessionState.FINALIZING)
        return self._ctx.session.snapshot()

    def complete(self) -> None:
        """Summary stored (finalizing -> completed)."""
        self._require("complete", SessionState.FINALIZING)
        self._transition(SessionState.COMPLETED)
        self._ctx.session = None

    def fail(self, reason: str) -> None:
        """Aggregation or persistence failed (finalizing -> aborted)."""
        self._require("fail", SessionState.FINALIZING)
        logger.warning(f"Session {self.session_id} aborted: {reason}")
        self._transition(SessionState.ABORTED)
        self._ctx.session = None

    def cancel(self) -> bool:
        """
        Abort from any non-terminal state, discarding recorded frames.

        Returns:
            True if the machine moved to aborted, False if already terminal
        """
        if self.state.is_terminal:
            return False

        session_id = self.session_id
        self._transition(SessionState.ABORTED)
        self._ctx.session = None
        logger.info(f"Session {session_id or '-'} cancelled")
        return True

    def reset(self) -> None:
        """Leave a terminal state (completed/aborted -> idle)."""
        if self.state is SessionState.IDLE:
            return
        if not self.state.is_terminal:
            raise InvalidTransition("reset", self.state.value)

        self._ctx.dance_id = self._ctx.lecture_id = None
        self._transition(SessionState.IDLE)

    # -------------------------------------------------------------------------
    # Private Helper Methods
    # -------------------------------------------------------------------------

    def _require(self, command: str, expected: SessionState) -> None:
        if self.state is not expected:
            raise InvalidTransition(command, self.state.value)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._ctx.state
        self._ctx.state = to_state
        if self._ctx.session is not None:
            self._ctx.session.status = to_state

        self.bus.publish(SessionStateChanged(
            from_state=from_state,
            to_state=to_state,
            session_id=self.session_id,
        ))
