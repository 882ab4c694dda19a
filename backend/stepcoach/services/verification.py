"""
Verification Service

The ``verified`` flag on a session summary is decided by an external
authority after the summary is stored. The core only depends on the
Verifier interface; swap MockVerifier for a real client without touching
the practice engine.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from .. import config

# Configure logging
logger = logging.getLogger(__name__)


class Verifier(ABC):
    """Capability interface for the verification authority."""

    @abstractmethod
    async def verify(self, session_id: str) -> bool:
        """
        Ask the authority whether a stored session is genuine.

        Returns:
            The verdict. Implementations raise on transport/backend errors.
        """


class MockVerifier(Verifier):
    """
    Stand-in backend that approves every session after a fixed delay.

    Args:
        delay_seconds: simulated round-trip time
        verdict: value returned for every session
    """

    def __init__(self, delay_seconds: float = config.VERIFY_DELAY_SECONDS, verdict: bool = True):
        self.delay_seconds = delay_seconds
        self.verdict = verdict

    async def verify(self, session_id: str) -> bool:
        logger.info(f"Verifying session {session_id} (mock, {self.delay_seconds}s)")
        await asyncio.sleep(self.delay_seconds)
        return self.verdict
