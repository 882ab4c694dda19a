"""
Services Layer

Business logic for dance practice scoring.
These services orchestrate domain models and external collaborators.
"""

from .landmark_normalizer import LandmarkNormalizer, normalize_frame
from .posture_scorer import PostureScorer
from .expression_classifier import ExpressionClassifier
from .score_aggregator import ScoreAggregator, RunningStats
from .event_bus import EventBus
from .session_machine import SessionMachine
from .session_store import (
    SessionStore,
    StorageBackend,
    MemoryStorage,
    SqlStorage,
    collection_key,
    create_storage,
)
from .verification import Verifier, MockVerifier
from .practice_engine import PracticeEngine, FrameOutcome

__all__ = [
    "LandmarkNormalizer",
    "normalize_frame",
    "PostureScorer",
    "ExpressionClassifier",
    "ScoreAggregator",
    "RunningStats",
    "EventBus",
    "SessionMachine",
    "SessionStore",
    "StorageBackend",
    "MemoryStorage",
    "SqlStorage",
    "collection_key",
    "create_storage",
    "Verifier",
    "MockVerifier",
    "PracticeEngine",
    "FrameOutcome",
]
