"""
Scoring Domain Models

Per-frame results produced by the posture scorer and expression classifier.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ExpressionLabel(Enum):
    """Discrete facial expression labels, one per frame."""
    NEUTRAL = "Neutral"
    SURPRISE = "Surprise"
    JOY = "Joy"
    ANGER = "Anger"


@dataclass(frozen=True)
class PostureResult:
    """
    Posture score for a single frame.

    Sub-scores are 0-100 floats kept for the UI breakdown; ``overall`` is the
    floored weighted sum shown to the user.
    """
    spine_score: float
    shoulder_score: float
    arm_score: float
    overall: int
    timestamp_ms: int = 0

    @property
    def grade(self) -> str:
        """Convert overall score to letter grade."""
        if self.overall >= 90:
            return "A"
        elif self.overall >= 80:
            return "B"
        elif self.overall >= 70:
            return "C"
        elif self.overall >= 60:
            return "D"
        else:
            return "F"


@dataclass(frozen=True)
class ExpressionSignals:
    """Raw face ratios the expression label is derived from."""
    mouth_open_ratio: float
    smile_width_ratio: float
    brow_distance_ratio: float


@dataclass(frozen=True)
class ExpressionResult:
    """Expression label and intensity for a single frame."""
    label: ExpressionLabel
    intensity: float
    timestamp_ms: int = 0
    signals: Optional[ExpressionSignals] = None


@dataclass(frozen=True)
class ScoredFrame:
    """The (posture, expression) pair recorded into a session."""
    posture: PostureResult
    expression: ExpressionResult
