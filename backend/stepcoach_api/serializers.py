"""
Domain -> API Conversion

Helpers that turn domain results and bus events into API schemas / JSON
payloads. Shared by the REST routes and the WebSocket handler.
"""

import time
from typing import Optional

from stepcoach.domain import (
    Event,
    ExpressionResult,
    FrameScored,
    PostureResult,
    SessionFailed,
    SessionPersisted,
    SessionStateChanged,
    SessionSummary,
    SessionVerified,
)

from .schemas import (
    ExpressionLabelEnum,
    ExpressionResultSchema,
    PostureResultSchema,
    SessionSummarySchema,
    TrendEnum,
)


def now_ms() -> int:
    """Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def posture_to_schema(result: Optional[PostureResult]) -> Optional[PostureResultSchema]:
    if result is None:
        return None
    return PostureResultSchema(
        spine_score=result.spine_score,
        shoulder_score=result.shoulder_score,
        arm_score=result.arm_score,
        overall=result.overall,
        grade=result.grade,
        timestamp_ms=result.timestamp_ms,
    )


def expression_to_schema(result: Optional[ExpressionResult]) -> Optional[ExpressionResultSchema]:
    if result is None:
        return None
    return ExpressionResultSchema(
        label=ExpressionLabelEnum(result.label.value),
        intensity=result.intensity,
        timestamp_ms=result.timestamp_ms,
    )


def summary_to_schema(summary: SessionSummary) -> SessionSummarySchema:
    return SessionSummarySchema(
        session_id=summary.session_id,
        dance_id=summary.dance_id,
        lecture_id=summary.lecture_id,
        duration_ms=summary.duration_ms,
        average_score=summary.average_score,
        peak_score=summary.peak_score,
        verified=summary.verified,
        created_at=summary.created_at,
        frame_count=summary.frame_count,
        trend=TrendEnum(summary.trend.value),
    )


def event_to_message(event: Event) -> dict:
    """
    Build the WebSocket envelope for a bus event.

    {"type": "frame_scored", "data": {...}, "timestamp": 1704067200025}
    """
    if isinstance(event, FrameScored):
        posture = posture_to_schema(event.posture)
        expression = expression_to_schema(event.expression)
        data = {
            "posture": posture.model_dump(mode="json") if posture else None,
            "expression": expression.model_dump(mode="json") if expression else None,
            "recorded": event.recorded,
            "running_average": event.running_average,
            "peak": event.peak,
        }
    elif isinstance(event, SessionStateChanged):
        data = {
            "from": event.from_state.value,
            "to": event.to_state.value,
            "session_id": event.session_id,
        }
    elif isinstance(event, SessionPersisted):
        data = {"summary": summary_to_schema(event.summary).model_dump(mode="json")}
    elif isinstance(event, SessionFailed):
        data = {
            "reason": event.reason,
            "session_id": event.session_id,
            "message": event.message,
        }
    elif isinstance(event, SessionVerified):
        data = {"session_id": event.session_id, "verified": event.verified}
    else:
        raise TypeError(f"Unsupported event: {type(event).__name__}")

    return {
        "type": event.type,
        "data": data,
        "timestamp": now_ms(),
    }
