"""
Error Taxonomy

Per-frame errors are recovered by the practice engine; session-level errors
abort the session and are reported on the event bus. NotFound is an ordinary
lookup miss and deliberately sits outside both families.
"""

from typing import Optional


class StepCoachError(Exception):
    """Base class for all StepCoach errors."""


# -----------------------------------------------------------------------------
# Per-frame
# -----------------------------------------------------------------------------

class FrameError(StepCoachError):
    """A single landmark frame could not be used."""


class InvalidFrame(FrameError):
    """Malformed frame: wrong body point count, non-finite values, or empty."""


class MissingBodyLandmarks(FrameError):
    """Posture scoring needs body landmarks."""


class MissingFaceLandmarks(FrameError):
    """Expression classification needs face landmarks."""


# -----------------------------------------------------------------------------
# Session-level
# -----------------------------------------------------------------------------

class SessionError(StepCoachError):
    """A session could not move through its lifecycle."""

    reason = "session_error"


class EmptySession(SessionError):
    """A session was stopped without any recorded frames."""

    reason = "empty_session"


class PersistenceFailure(SessionError):
    """The session store could not write (quota exceeded or serialization)."""

    reason = "persistence_failure"


class InvalidTransition(SessionError):
    """A lifecycle command was issued in a state that does not accept it."""

    reason = "invalid_transition"

    def __init__(self, command: str, state: str, message: Optional[str] = None):
        self.command = command
        self.state = state
        super().__init__(message or f"Cannot '{command}' while session is {state}")


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------

class NotFound(StepCoachError):
    """No stored session summary with the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")
